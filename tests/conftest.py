# tests/conftest.py
import datetime

import pytest

from bloodcore.donations import DonationRecorder, DonorDirectory
from bloodcore.fulfillment import RequestFulfillmentEngine
from bloodcore.ledger import InventoryLedger
from bloodcore.models import BloodUnit, Donor

TODAY = datetime.date(2026, 3, 10)


@pytest.fixture
def ledger(db):
    return InventoryLedger()


@pytest.fixture
def directory(db):
    return DonorDirectory()


@pytest.fixture
def recorder(ledger, directory):
    return DonationRecorder(ledger=ledger, directory=directory)


@pytest.fixture
def engine(ledger):
    return RequestFulfillmentEngine(ledger=ledger)


@pytest.fixture
def make_donor(db):
    def _make(blood_type="O-", name="Emma Johnson", **extra):
        fields = dict(name=name, age=34, gender="Female", blood_type=blood_type, phone="(555) 201-3344")
        fields.update(extra)
        return Donor.objects.create(**fields)
    return _make


@pytest.fixture
def make_request(engine):
    def _make(blood_type="O-", quantity=900, **extra):
        fields = dict(
            patient_name="Robert Clark",
            patient_age=61,
            patient_gender="Male",
            blood_type=blood_type,
            quantity=quantity,
            urgency="High",
            hospital="Memorial Hospital",
        )
        fields.update(extra)
        return engine.create_request(**fields)
    return _make


@pytest.fixture
def make_unit(make_donor):
    def _make(blood_type="O-", quantity=450, collection_date=TODAY, expiry_date=None,
              status=BloodUnit.Status.AVAILABLE):
        donor = make_donor(blood_type=blood_type)
        return BloodUnit.objects.create(
            donor=donor,
            donor_name=donor.name,
            blood_type=blood_type,
            quantity=quantity,
            collection_date=collection_date,
            expiry_date=expiry_date or collection_date + datetime.timedelta(days=42),
            status=status,
        )
    return _make
