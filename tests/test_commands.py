# tests/test_commands.py
import datetime
from io import StringIO

import pytest
from django.core.management import CommandError, call_command
from django.utils import timezone

from bloodcore.models import BloodType, BloodUnit, DonationRecord


def run(*args):
    out = StringIO()
    call_command(*args, stdout=out)
    return out.getvalue()


def test_seed_inventory_fills_every_type(ledger):
    run("seed_inventory", "--per-type", "900")
    assert {item.blood_type: item.available for item in ledger.snapshot()} == {bt: 900 for bt in BloodType.values}
    assert BloodUnit.objects.count() == 16
    assert DonationRecord.objects.count() == 16


def test_seed_inventory_tops_up_only(ledger):
    ledger.credit("A+", 900)
    output = run("seed_inventory", "--per-type", "900", "--unit-ml", "300")
    assert "A+: already has 900 ml" in output
    assert ledger.get("B+").available == 900
    assert BloodUnit.objects.filter(blood_type="B+").count() == 3


def test_seed_inventory_reset(ledger):
    run("seed_inventory", "--per-type", "450")
    run("seed_inventory", "--per-type", "450", "--reset")
    assert ledger.get("O-").available == 450
    assert BloodUnit.objects.count() == 8


def test_seed_inventory_rejects_bad_volume(db):
    with pytest.raises(CommandError):
        run("seed_inventory", "--unit-ml", "0")


def test_stock_report_lists_types_and_expiring_units(ledger, make_unit):
    today = timezone.localdate()
    unit = make_unit(blood_type="B-", collection_date=today - datetime.timedelta(days=40),
                     expiry_date=today + datetime.timedelta(days=1))
    ledger.credit("B-", 450)

    output = run("stock_report", "--reconcile")

    for bt in BloodType.values:
        assert bt in output
    assert "Units expiring within 7 day(s): 1" in output
    assert unit.code in output
    assert "Ledger matches unit records." in output


def test_stock_report_rejects_negative_days(db):
    with pytest.raises(CommandError):
        run("stock_report", "--days", "-1")


def test_expire_units_command(ledger, make_unit):
    today = timezone.localdate()
    stale = make_unit(blood_type="AB-", collection_date=today - datetime.timedelta(days=45),
                      expiry_date=today - datetime.timedelta(days=3))
    ledger.credit("AB-", 450)

    output = run("expire_units")

    assert stale.code in output
    assert "Expired 1 unit(s)." in output
    assert ledger.get("AB-").available == 0


def test_expire_units_surfaces_ledger_errors(ledger, make_unit):
    today = timezone.localdate()
    make_unit(blood_type="AB-", collection_date=today - datetime.timedelta(days=45),
              expiry_date=today - datetime.timedelta(days=3))
    with pytest.raises(CommandError):
        run("expire_units")
