from django.core.management.base import BaseCommand

from ledger_core.services import seed_account_types


class Command(BaseCommand):
    help = "Seed the five system-wide account types (idempotent)."

    def handle(self, *args, **options):
        types = seed_account_types()
        for account_type in types:
            self.stdout.write(f"  {account_type.code} {account_type.name}")
        self.stdout.write(self.style.SUCCESS(
            f"{len(types)} account types in place."))
