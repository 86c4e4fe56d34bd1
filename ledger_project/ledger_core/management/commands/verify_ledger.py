from django.core.management.base import BaseCommand, CommandError

from ledger_core.models import Entity
from ledger_core.services import verify_entity_balances


class Command(BaseCommand):
    help = "Check every account balance against its posted transactions."

    def add_arguments(self, parser):
        parser.add_argument(
            "--entity",
            type=int,
            help="Only verify this entity id (default: all entities).",
        )

    def handle(self, *args, **options):
        entities = Entity.objects.order_by("id")
        if options["entity"] is not None:
            entities = entities.filter(pk=options["entity"])

        total = 0
        for entity in entities:
            mismatches = verify_entity_balances(entity)
            total += len(mismatches)
            for row in mismatches:
                self.stdout.write(self.style.ERROR(
                    f"{entity}: {row['code']} stored={row['stored']} "
                    f"expected={row['expected']}"
                ))

        if total:
            raise CommandError(f"{total} account balance(s) do not reconcile")
        self.stdout.write(self.style.SUCCESS("All account balances reconcile."))
