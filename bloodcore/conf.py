# bloodcore/conf.py
"""
Policy constants. Each one can be overridden from the Django settings module.
"""
from django.conf import settings


def shelf_life_days():
    return getattr(settings, "BLOOD_SHELF_LIFE_DAYS", 42)


def ml_per_unit():
    return getattr(settings, "BLOOD_ML_PER_UNIT", 450)


def max_donation_ml():
    return getattr(settings, "MAX_DONATION_ML", 500)


def ledger_max_credit_ml():
    return getattr(settings, "LEDGER_MAX_CREDIT_ML", 5000)


def hemoglobin_range():
    return getattr(settings, "HEMOGLOBIN_RANGE", (5.0, 25.0))


def near_expiry_days():
    return getattr(settings, "NEAR_EXPIRY_DAYS", 7)


def critical_threshold_units():
    return getattr(settings, "CRITICAL_ALERT_THRESHOLD", 3)


def low_threshold_units():
    return getattr(settings, "LOW_ALERT_THRESHOLD", 10)


def to_units(ml):
    """Millilitres -> display units, one decimal place."""
    return round(ml / ml_per_unit(), 1)


def to_ml(units):
    return int(units * ml_per_unit())
