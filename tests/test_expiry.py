# tests/test_expiry.py
import datetime

import pytest

from bloodcore.exceptions import InsufficientStockError, ValidationError
from bloodcore.expiry import (
    CRITICAL, LOW, OK, effective_status, expire_stale, find_expiring_within, is_critical, stock_level,
)
from bloodcore.models import BloodUnit, InventoryItem

TODAY = datetime.date(2026, 3, 10)


def unit(days_left, status=BloodUnit.Status.AVAILABLE, code=None):
    return BloodUnit(code=code, blood_type="O+", quantity=450, status=status,
                     collection_date=TODAY - datetime.timedelta(days=42 - days_left),
                     expiry_date=TODAY + datetime.timedelta(days=days_left))


def test_expiring_window_includes_today_and_excludes_beyond_horizon():
    today_unit, tomorrow_unit, later_unit = unit(0), unit(1), unit(8)
    found = find_expiring_within([later_unit, tomorrow_unit, today_unit], TODAY, 7)
    assert found == [today_unit, tomorrow_unit]


def test_expiring_window_boundary_at_horizon():
    edge = unit(7)
    assert find_expiring_within([edge], TODAY, 7) == [edge]


def test_expiring_ignores_past_and_non_available_units():
    units = [unit(-1), unit(2, status=BloodUnit.Status.RESERVED), unit(3, status=BloodUnit.Status.USED)]
    assert find_expiring_within(units, TODAY, 7) == []


def test_expiring_is_restartable():
    units = (u for u in [unit(5), unit(1)])
    materialized = list(units)
    first = find_expiring_within(materialized, TODAY, 7)
    second = find_expiring_within(materialized, TODAY, 7)
    assert first == second
    assert [u.expiry_date for u in first] == sorted(u.expiry_date for u in first)


def test_negative_horizon_rejected():
    with pytest.raises(ValidationError):
        find_expiring_within([], TODAY, -1)


def test_is_critical_uses_explicit_threshold():
    assert is_critical(InventoryItem(blood_type="O-", available=900), threshold=900)
    assert not is_critical(InventoryItem(blood_type="O-", available=901), threshold=900)


def test_stock_levels_from_default_thresholds():
    # defaults: critical <= 3 units, low <= 10 units, 450 ml per unit
    assert stock_level(InventoryItem(blood_type="A+", available=3 * 450)) == CRITICAL
    assert stock_level(InventoryItem(blood_type="A+", available=3 * 450 + 1)) == LOW
    assert stock_level(InventoryItem(blood_type="A+", available=10 * 450)) == LOW
    assert stock_level(InventoryItem(blood_type="A+", available=10 * 450 + 1)) == OK


def test_thresholds_follow_settings(settings):
    settings.CRITICAL_ALERT_THRESHOLD = 1
    settings.BLOOD_ML_PER_UNIT = 500
    assert is_critical(InventoryItem(blood_type="A+", available=500))
    assert not is_critical(InventoryItem(blood_type="A+", available=501))


def test_effective_status_is_lazy():
    past = unit(-2)
    assert effective_status(past, TODAY) == BloodUnit.Status.EXPIRED
    assert past.status == BloodUnit.Status.AVAILABLE
    assert effective_status(unit(0), TODAY) == BloodUnit.Status.AVAILABLE
    assert effective_status(unit(-2, status=BloodUnit.Status.USED), TODAY) == BloodUnit.Status.USED


def test_expire_stale_marks_units_and_debits_ledger(ledger, make_unit):
    stale = make_unit(blood_type="A-", collection_date=TODAY - datetime.timedelta(days=43),
                      expiry_date=TODAY - datetime.timedelta(days=1))
    fresh = make_unit(blood_type="A-", collection_date=TODAY)
    ledger.credit("A-", 900)

    expired = expire_stale(today=TODAY, ledger=ledger)

    assert [u.pk for u in expired] == [stale.pk]
    stale.refresh_from_db()
    fresh.refresh_from_db()
    assert stale.status == BloodUnit.Status.EXPIRED
    assert fresh.status == BloodUnit.Status.AVAILABLE
    assert ledger.get("A-").available == 450


def test_expire_stale_is_all_or_nothing(ledger, make_unit):
    make_unit(blood_type="B+", collection_date=TODAY - datetime.timedelta(days=43),
              expiry_date=TODAY - datetime.timedelta(days=1))
    # ledger was corrected below the unit volume, so the debit cannot apply
    ledger.credit("B+", 100)

    with pytest.raises(InsufficientStockError):
        expire_stale(today=TODAY, ledger=ledger)

    assert BloodUnit.objects.get().status == BloodUnit.Status.AVAILABLE
    assert ledger.get("B+").available == 100
