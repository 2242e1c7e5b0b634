# bloodcore/exceptions.py
from django.core.exceptions import ValidationError as DjangoValidationError


class BloodCoreError(Exception):
    """Base class for every error raised by the accounting operations."""
    code = "error"

    def as_dict(self):
        return {"error": self.code, "detail": str(self)}


class NotFoundError(BloodCoreError):
    code = "not_found"


class DonorNotFoundError(NotFoundError):
    code = "donor_not_found"


class RequestNotFoundError(NotFoundError):
    code = "request_not_found"


class InsufficientStockError(BloodCoreError):
    """Raised when a debit would take a blood type's available stock below zero."""
    code = "insufficient_stock"

    def __init__(self, blood_type, requested, available):
        self.blood_type = blood_type
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {blood_type}: requested {requested} ml, available {available} ml."
        )

    def as_dict(self):
        data = super().as_dict()
        data.update(blood_type=self.blood_type, requested=self.requested, available=self.available)
        return data


class InvalidStateError(BloodCoreError):
    code = "invalid_state"


class ValidationError(BloodCoreError):
    code = "validation_error"

    def __init__(self, message, field=None):
        self.field = field
        super().__init__(message)

    def as_dict(self):
        data = super().as_dict()
        if self.field:
            data["field"] = self.field
        return data


def clean_or_raise(instance, exclude=None):
    """Run model validation, re-raising the first problem as ValidationError."""
    try:
        instance.full_clean(exclude=exclude)
    except DjangoValidationError as exc:
        field, messages = next(iter(exc.message_dict.items()))
        raise ValidationError(f"{field}: {' '.join(messages)}", field=field) from None
