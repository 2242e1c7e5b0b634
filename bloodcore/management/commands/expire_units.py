# bloodcore/management/commands/expire_units.py
from django.core.management.base import BaseCommand, CommandError

from bloodcore.exceptions import BloodCoreError
from bloodcore.expiry import expire_stale


class Command(BaseCommand):
    help = "Mark Available units past their expiry date as Expired and debit them from the ledger."

    def handle(self, *args, **opts):
        try:
            expired = expire_stale()
        except BloodCoreError as exc:
            raise CommandError(f"Nothing expired: {exc}") from exc
        for unit in expired:
            self.stdout.write(f"{unit.code} {unit.blood_type} {unit.quantity} ml (expired {unit.expiry_date:%Y-%m-%d})")
        self.stdout.write(self.style.SUCCESS(f"Done. Expired {len(expired)} unit(s)."))
