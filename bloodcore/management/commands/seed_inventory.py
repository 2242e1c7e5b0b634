# bloodcore/management/commands/seed_inventory.py
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from bloodcore.donations import DonationRecorder
from bloodcore.ledger import InventoryLedger
from bloodcore.models import BloodType, BloodUnit, DonationRecord, Donor, InventoryItem


class Command(BaseCommand):
    help = "Seed initial inventory: record donations until each blood type holds --per-type ml available."

    def add_arguments(self, parser):
        parser.add_argument("--per-type", type=int, default=4500,
                            help="Target available ml per blood type (default: 4500)")
        parser.add_argument("--unit-ml", type=int, default=450,
                            help="Volume of each seeded donation in ml (default: 450)")
        parser.add_argument("--reset", action="store_true",
                            help="Delete all units, donation records and ledger rows before seeding")

    def handle(self, *args, **opts):
        per_type = opts["per_type"]
        unit_ml = opts["unit_ml"]
        if per_type < 0 or unit_ml <= 0:
            raise CommandError("--per-type must be >= 0 and --unit-ml must be > 0.")

        if opts["reset"]:
            self.stdout.write(self.style.WARNING("Deleting ALL units, donation records and ledger rows..."))
            with transaction.atomic():
                DonationRecord.objects.all().delete()
                BloodUnit.objects.all().delete()
                InventoryItem.objects.all().delete()

        ledger = InventoryLedger()
        recorder = DonationRecorder(ledger=ledger)
        today = timezone.localdate()

        created_total = 0
        for bt in BloodType.values:
            current = ledger.get(bt).available
            remaining = max(0, per_type - current)
            if remaining == 0:
                self.stdout.write(f"{bt}: already has {current} ml, skipping.")
                continue

            # seed donor (technical), one per type since a unit takes its donor's blood type
            seed_donor = Donor.objects.filter(name=f"Seed Stock {bt}", blood_type=bt).first()
            if seed_donor is None:
                seed_donor = Donor.objects.create(
                    name=f"Seed Stock {bt}", age=30, gender="Other", blood_type=bt, phone="000-0000"
                )

            added = 0
            while remaining > 0:
                volume = min(unit_ml, remaining)
                recorder.record_donation(seed_donor.code, today, volume, notes="seed")
                remaining -= volume
                added += 1
            created_total += added
            self.stdout.write(self.style.SUCCESS(f"{bt}: added {added} unit(s) (now target={per_type} ml)."))

        self.stdout.write(self.style.SUCCESS(f"Done. Created {created_total} unit(s) total."))
