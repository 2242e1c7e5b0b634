# bloodcore/donations.py
import datetime
import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.db import transaction

from . import conf
from .audit import log_event
from .exceptions import DonorNotFoundError, NotFoundError, ValidationError, clean_or_raise
from .ledger import InventoryLedger, check_blood_type, check_quantity
from .models import BloodUnit, DonationRecord, Donor

logger = logging.getLogger(__name__)


# ------------------------ donor directory ------------------------
class DonorDirectory:
    # blood_type is fixed at registration; past credits were booked against it
    UPDATABLE_FIELDS = ("name", "age", "gender", "phone", "email", "address",
                        "last_donation", "donation_count")

    def __init__(self, using="default"):
        self.using = using

    def get_donor(self, donor_id, lock=False):
        qs = Donor.objects.using(self.using)
        if lock:
            qs = qs.select_for_update()
        try:
            return qs.get(code=donor_id)
        except Donor.DoesNotExist:
            logger.warning("Donor %r not found", donor_id)
            raise DonorNotFoundError(f"Donor {donor_id!r} not found.") from None

    def update_donor(self, donor_id, **patch):
        unknown = set(patch) - set(self.UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update donor field(s): {', '.join(sorted(unknown))}.")
        with transaction.atomic(using=self.using):
            donor = self.get_donor(donor_id, lock=True)
            for field, value in patch.items():
                setattr(donor, field, value)
            clean_or_raise(donor)
            donor.save(using=self.using, update_fields=list(patch))
        return donor

    def register_donor(self, user=None, **fields):
        fields.pop("donation_count", None)
        fields.pop("last_donation", None)
        unknown = set(fields) - {"blood_type", *self.UPDATABLE_FIELDS}
        if unknown:
            raise ValidationError(f"Unknown donor field(s): {', '.join(sorted(unknown))}.")
        check_blood_type(fields.get("blood_type"))
        donor = Donor(**fields)
        clean_or_raise(donor, exclude=["code"])
        with transaction.atomic(using=self.using):
            donor.save(using=self.using)
            log_event("donor_registered", user=user, using=self.using,
                      donor=donor.code, blood_type=donor.blood_type)
        return donor


# ------------------------ donation recorder ------------------------
class DonationRecorder:
    """
    Books a completed donation: unit record, ledger credit, donor update and audit
    entry, all in one transaction.
    """

    def __init__(self, ledger=None, directory=None, using="default"):
        self.using = using
        self.ledger = ledger or InventoryLedger(using=using)
        self.directory = directory or DonorDirectory(using=using)

    def _validate(self, donation_date, quantity_ml, hemoglobin):
        if isinstance(donation_date, datetime.datetime):
            donation_date = donation_date.date()
        if not isinstance(donation_date, datetime.date):
            raise ValidationError(f"Donation date must be a date, got {donation_date!r}.", field="date")

        check_quantity(quantity_ml, field="quantity")
        ceiling = conf.max_donation_ml()
        if quantity_ml > ceiling:
            raise ValidationError(
                f"A single donation cannot exceed {ceiling} ml (got {quantity_ml} ml).", field="quantity"
            )

        if hemoglobin is not None:
            try:
                hemoglobin = Decimal(str(hemoglobin)).quantize(Decimal("0.1"))
            except InvalidOperation:
                raise ValidationError(f"Hemoglobin must be a number, got {hemoglobin!r}.",
                                      field="hemoglobin") from None
            if not hemoglobin.is_finite():
                raise ValidationError(f"Hemoglobin must be a finite number, got {hemoglobin}.", field="hemoglobin")
            low, high = conf.hemoglobin_range()
            if not Decimal(str(low)) <= hemoglobin <= Decimal(str(high)):
                raise ValidationError(
                    f"Hemoglobin {hemoglobin} g/dL is outside {low}-{high} g/dL.", field="hemoglobin"
                )
        return donation_date, hemoglobin

    def record_donation(self, donor_id, donation_date, quantity_ml, hemoglobin=None, notes="", user=None):
        donation_date, hemoglobin = self._validate(donation_date, quantity_ml, hemoglobin)

        with transaction.atomic(using=self.using):
            donor = self.directory.get_donor(donor_id, lock=True)

            unit = BloodUnit(
                donor=donor,
                donor_name=donor.name,
                blood_type=donor.blood_type,
                quantity=quantity_ml,
                collection_date=donation_date,
                expiry_date=donation_date + timedelta(days=conf.shelf_life_days()),
                status=BloodUnit.Status.AVAILABLE,
            )
            unit.save(using=self.using)

            self.ledger.credit(donor.blood_type, quantity_ml)

            donor.last_donation = donation_date
            donor.donation_count += 1
            donor.save(using=self.using, update_fields=["last_donation", "donation_count"])

            record = DonationRecord(
                donor=donor,
                donor_name=donor.name,
                blood_type=donor.blood_type,
                date=donation_date,
                quantity=quantity_ml,
                hemoglobin=hemoglobin,
                notes=notes or "",
                status=DonationRecord.Status.AVAILABLE,
                unit=unit,
                recorded_by=user if getattr(user, "is_authenticated", False) else None,
            )
            record.save(using=self.using)

            log_event(
                "donation_recorded",
                user=user,
                using=self.using,
                record=record.code,
                unit=unit.code,
                donor=donor.code,
                blood_type=donor.blood_type,
                quantity=quantity_ml,
            )

        logger.info("Recorded donation %s: %s ml %s from %s", record.code, quantity_ml,
                    donor.blood_type, donor.code)
        return record

    def discard_donation(self, record_id, reason="", user=None):
        """
        Mark a donation Discarded. Its unit, if still on the shelf, is withdrawn and
        its volume debited from available stock.
        """
        with transaction.atomic(using=self.using):
            try:
                record = (DonationRecord.objects.using(self.using)
                          .select_for_update(of=("self",)).select_related("unit").get(code=record_id))
            except DonationRecord.DoesNotExist:
                logger.warning("Donation record %r not found", record_id)
                raise NotFoundError(f"Donation record {record_id!r} not found.") from None

            record.transition_to(DonationRecord.Status.DISCARDED)
            record.save(using=self.using, update_fields=["status"])

            unit = record.unit
            if unit is not None and unit.status == BloodUnit.Status.AVAILABLE:
                unit.transition_to(BloodUnit.Status.EXPIRED)
                unit.save(using=self.using, update_fields=["status"])
                self.ledger.adjust(unit.blood_type, -unit.quantity,
                                   reason=f"discarded {record.code}: {reason}".strip(), user=user)

            log_event("donation_discarded", user=user, using=self.using,
                      record=record.code, reason=reason)
        return record
