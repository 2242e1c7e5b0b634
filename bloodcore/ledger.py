# bloodcore/ledger.py
"""
Per-blood-type stock counters.

`available` is stock free to reserve, `reserved` is stock committed to fulfilled
requests and not yet issued. Both are millilitres. Every write takes the row lock
for its blood type and applies a single conditional UPDATE, so concurrent writers
for one type are serialized and a debit can never take a counter below zero.
"""
import logging

from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from . import conf
from .audit import log_event
from .exceptions import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from .models import BloodType, BloodUnit, InventoryItem

logger = logging.getLogger(__name__)


# ------------------------ helpers ------------------------
def check_blood_type(blood_type):
    if blood_type not in BloodType.values:
        logger.warning("Rejected unknown blood type %r", blood_type)
        raise NotFoundError(f"Unknown blood type: {blood_type!r}.")
    return blood_type


def check_quantity(quantity, field="quantity"):
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError(f"{field} must be a positive whole number of ml, got {quantity!r}.", field=field)
    return quantity


# ------------------------ ledger ------------------------
class InventoryLedger:
    def __init__(self, using="default"):
        self.using = using

    def _items(self):
        return InventoryItem.objects.using(self.using)

    def _lock(self, blood_type):
        # caller holds the transaction
        item, _ = self._items().select_for_update().get_or_create(blood_type=blood_type)
        return item

    def _apply(self, item, guard, **changes):
        """UPDATE the row with `changes` when `guard` holds; True if a row changed."""
        changes.setdefault("updated_at", timezone.now())
        return bool(self._items().filter(pk=item.pk, **guard).update(**changes))

    # ---- reads ----
    def get(self, blood_type):
        check_blood_type(blood_type)
        with transaction.atomic(using=self.using):
            item = self._items().filter(blood_type=blood_type).first()
        return item or InventoryItem(blood_type=blood_type)

    def snapshot(self):
        """One row per catalog blood type, in catalog order, read in one transaction."""
        with transaction.atomic(using=self.using):
            rows = {item.blood_type: item for item in self._items().all()}
        return [rows.get(bt) or InventoryItem(blood_type=bt) for bt in BloodType.values]

    # ---- writes ----
    def credit(self, blood_type, quantity):
        check_blood_type(blood_type)
        check_quantity(quantity)
        ceiling = conf.ledger_max_credit_ml()
        if quantity > ceiling:
            raise ValidationError(
                f"A single credit of {quantity} ml exceeds the {ceiling} ml ceiling.", field="quantity"
            )
        with transaction.atomic(using=self.using):
            item = self._lock(blood_type)
            self._apply(item, {}, available=F("available") + quantity)
            item.refresh_from_db(using=self.using)
        logger.debug("Credited %s ml of %s (available=%s)", quantity, blood_type, item.available)
        return item

    def reserve(self, blood_type, quantity):
        check_blood_type(blood_type)
        check_quantity(quantity)
        with transaction.atomic(using=self.using):
            item = self._lock(blood_type)
            moved = self._apply(
                item,
                {"available__gte": quantity},
                available=F("available") - quantity,
                reserved=F("reserved") + quantity,
            )
            if not moved:
                raise InsufficientStockError(blood_type, requested=quantity, available=item.available)
            item.refresh_from_db(using=self.using)
        logger.debug("Reserved %s ml of %s (available=%s reserved=%s)",
                     quantity, blood_type, item.available, item.reserved)
        return item

    def release(self, blood_type, quantity):
        check_blood_type(blood_type)
        check_quantity(quantity)
        with transaction.atomic(using=self.using):
            item = self._lock(blood_type)
            moved = self._apply(
                item,
                {"reserved__gte": quantity},
                available=F("available") + quantity,
                reserved=F("reserved") - quantity,
            )
            if not moved:
                logger.warning("Release of %s ml %s refused: only %s ml reserved",
                               quantity, blood_type, item.reserved)
                raise InvalidStateError(
                    f"Cannot release {quantity} ml of {blood_type}: only {item.reserved} ml reserved."
                )
            item.refresh_from_db(using=self.using)
        return item

    def consume(self, blood_type, quantity):
        """Retire reserved stock once it has been issued. Unit records are moved by the caller."""
        check_blood_type(blood_type)
        check_quantity(quantity)
        with transaction.atomic(using=self.using):
            item = self._lock(blood_type)
            if not self._apply(item, {"reserved__gte": quantity}, reserved=F("reserved") - quantity):
                logger.warning("Consume of %s ml %s refused: only %s ml reserved",
                               quantity, blood_type, item.reserved)
                raise InvalidStateError(
                    f"Cannot consume {quantity} ml of {blood_type}: only {item.reserved} ml reserved."
                )
            item.refresh_from_db(using=self.using)
        return item

    def adjust(self, blood_type, delta, reason="", user=None):
        """
        Manual correction of available stock. A negative delta larger than the
        available figure fails with InsufficientStockError; nothing is clamped.
        A positive delta is bounded by LEDGER_MAX_CREDIT_ML, as a credit is.
        """
        check_blood_type(blood_type)
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise ValidationError(f"delta must be a non-zero whole number of ml, got {delta!r}.", field="delta")
        ceiling = conf.ledger_max_credit_ml()
        if delta > ceiling:
            raise ValidationError(
                f"A single adjustment of +{delta} ml exceeds the {ceiling} ml ceiling.", field="delta"
            )
        with transaction.atomic(using=self.using):
            item = self._lock(blood_type)
            guard = {"available__gte": -delta} if delta < 0 else {}
            if not self._apply(item, guard, available=F("available") + delta):
                raise InsufficientStockError(blood_type, requested=-delta, available=item.available)
            item.refresh_from_db(using=self.using)
            log_event(
                "inventory_adjusted",
                user=user,
                using=self.using,
                blood_type=blood_type,
                delta=delta,
                reason=reason,
                available=item.available,
            )
        logger.info("Adjusted %s by %+d ml (%s)", blood_type, delta, reason or "no reason given")
        return item

    # ---- reconciliation ----
    def reconcile(self):
        """
        Compare the counters with the volume held by unit records.
        Returns {blood_type: {...}} for every type that disagrees; empty when consistent.
        """
        units = BloodUnit.objects.using(self.using)
        free_statuses = [BloodUnit.Status.AVAILABLE, BloodUnit.Status.PROCESSING]

        def volume_by_type(qs):
            return dict(qs.order_by().values("blood_type").annotate(total=Sum("quantity")).values_list("blood_type", "total"))

        with transaction.atomic(using=self.using):
            free = volume_by_type(units.filter(status__in=free_statuses))
            held = volume_by_type(units.filter(status=BloodUnit.Status.RESERVED))
            items = self.snapshot()

        discrepancies = {}
        for item in items:
            bt = item.blood_type
            unit_available, unit_reserved = free.get(bt, 0), held.get(bt, 0)
            if (item.available, item.reserved) != (unit_available, unit_reserved):
                discrepancies[bt] = {
                    "ledger_available": item.available,
                    "unit_available": unit_available,
                    "ledger_reserved": item.reserved,
                    "unit_reserved": unit_reserved,
                }
        if discrepancies:
            logger.warning("Ledger disagrees with unit records for %s", ", ".join(discrepancies))
        return discrepancies
