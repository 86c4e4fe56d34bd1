from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils.text import slugify

from ledger_core.exceptions import MissingAccountConfiguration
from ledger_core.models import Entity, Group
from ledger_core.services import (bind_default_roles, seed_entity_accounts,
                                  seed_group_chart)


class Command(BaseCommand):
    help = (
        "Seed the default chart for a group and, for each entity, one account "
        "per subcategory plus the well-known role bindings."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--group",
            required=True,
            help="Group name; created when no group has its slug.",
        )
        parser.add_argument(
            "--entity",
            action="append",
            default=[],
            help="Entity name (repeatable); created under the group if missing.",
        )
        parser.add_argument(
            "--currency", default="USD", help="Currency code for new entities."
        )

    @transaction.atomic
    def handle(self, *args, **options):
        group_name = options["group"]
        group, created = Group.objects.get_or_create(
            slug=slugify(group_name) or "group",
            defaults={"name": group_name},
        )
        verb = "Created" if created else "Using"
        self.stdout.write(self.style.NOTICE(f"{verb} group {group.slug}"))

        rows = seed_group_chart(group)
        self.stdout.write(f"  chart: {rows} categories/subcategories created")

        for entity_name in options["entity"]:
            entity, _ = Entity.objects.get_or_create(
                group=group,
                slug=slugify(entity_name) or "entity",
                defaults={
                    "name": entity_name,
                    "currency_code": options["currency"],
                },
            )
            accounts = seed_entity_accounts(entity)
            try:
                bind_default_roles(entity)
            except MissingAccountConfiguration as exc:
                raise CommandError(str(exc)) from exc
            self.stdout.write(
                f"  entity {entity.slug}: {len(accounts)} accounts created, roles bound"
            )

        self.stdout.write(self.style.SUCCESS("Chart seeded successfully!"))
