# bloodcore/expiry.py
"""
Expiry and stock-level alerting.

Expiry is evaluated lazily: a unit whose expiry date has passed reads as Expired
through `effective_status` without any write. `expire_stale` is the optional
sweep that persists the transition and takes the volume off the ledger.
"""
import logging
from datetime import timedelta

from django.db import transaction
from django.utils import timezone

from . import conf
from .exceptions import ValidationError
from .ledger import InventoryLedger
from .models import BloodUnit

logger = logging.getLogger(__name__)

CRITICAL = "critical"
LOW = "low"
OK = "ok"


def find_expiring_within(units, today, horizon_days):
    """Available units with today <= expiry_date <= today + horizon_days, soonest first."""
    if horizon_days < 0:
        raise ValidationError(f"horizon_days must not be negative, got {horizon_days}.", field="horizon_days")
    cutoff = today + timedelta(days=horizon_days)
    expiring = [
        unit for unit in units
        if unit.status == BloodUnit.Status.AVAILABLE and today <= unit.expiry_date <= cutoff
    ]
    return sorted(expiring, key=lambda unit: unit.expiry_date)


def is_critical(item, threshold=None):
    """threshold is in ml; defaults to CRITICAL_ALERT_THRESHOLD units."""
    if threshold is None:
        threshold = conf.to_ml(conf.critical_threshold_units())
    return item.available <= threshold


def stock_level(item):
    if is_critical(item):
        return CRITICAL
    if item.available <= conf.to_ml(conf.low_threshold_units()):
        return LOW
    return OK


def effective_status(unit, today=None):
    today = today or timezone.localdate()
    on_shelf = (BloodUnit.Status.AVAILABLE, BloodUnit.Status.PROCESSING)
    if unit.status in on_shelf and unit.expiry_date < today:
        return BloodUnit.Status.EXPIRED
    return unit.status


def expire_stale(today=None, using="default", ledger=None, user=None):
    """
    Persist Expired on every Available unit past its expiry date and debit the
    ledger for each one. Returns the expired units.
    """
    today = today or timezone.localdate()
    ledger = ledger or InventoryLedger(using=using)
    with transaction.atomic(using=using):
        stale = list(
            BloodUnit.objects.using(using)
            .select_for_update()
            .filter(status=BloodUnit.Status.AVAILABLE, expiry_date__lt=today)
            .order_by("expiry_date", "pk")
        )
        for unit in stale:
            unit.transition_to(BloodUnit.Status.EXPIRED)
            unit.save(using=using, update_fields=["status"])
            ledger.adjust(unit.blood_type, -unit.quantity, reason=f"expired {unit.code}", user=user)
    if stale:
        logger.info("Expired %d unit(s) past %s", len(stale), today.isoformat())
    return stale
