# bloodcore/management/commands/stock_report.py
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from bloodcore import conf
from bloodcore.expiry import CRITICAL, LOW, find_expiring_within, stock_level
from bloodcore.ledger import InventoryLedger
from bloodcore.models import BloodUnit


class Command(BaseCommand):
    help = "Print stock per blood type, alert levels and units expiring soon."

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=None,
                            help="Expiry horizon in days (default: NEAR_EXPIRY_DAYS)")
        parser.add_argument("--reconcile", action="store_true",
                            help="Also compare ledger counters with unit records")

    def handle(self, *args, **opts):
        days = conf.near_expiry_days() if opts["days"] is None else opts["days"]
        if days < 0:
            raise CommandError("--days must not be negative.")
        today = timezone.localdate()
        ledger = InventoryLedger()

        self.stdout.write(f"{'Type':<5} {'Available':>12} {'Reserved':>12} {'Units':>7}  Level")
        for item in ledger.snapshot():
            level = stock_level(item)
            line = (f"{item.blood_type:<5} {item.available:>9} ml {item.reserved:>9} ml "
                    f"{item.available_units:>7}  {level}")
            if level == CRITICAL:
                line = self.style.ERROR(line)
            elif level == LOW:
                line = self.style.WARNING(line)
            self.stdout.write(line)

        units = BloodUnit.objects.filter(status=BloodUnit.Status.AVAILABLE, expiry_date__gte=today)
        expiring = find_expiring_within(units, today, days)
        self.stdout.write("")
        self.stdout.write(f"Units expiring within {days} day(s): {len(expiring)}")
        for unit in expiring:
            self.stdout.write(f"  {unit.code} {unit.blood_type} {unit.quantity} ml expires {unit.expiry_date:%Y-%m-%d}")

        if opts["reconcile"]:
            discrepancies = ledger.reconcile()
            self.stdout.write("")
            if not discrepancies:
                self.stdout.write(self.style.SUCCESS("Ledger matches unit records."))
            for bt, diff in discrepancies.items():
                self.stdout.write(self.style.WARNING(
                    f"{bt}: ledger {diff['ledger_available']}/{diff['ledger_reserved']} ml, "
                    f"units {diff['unit_available']}/{diff['unit_reserved']} ml (available/reserved)"
                ))
