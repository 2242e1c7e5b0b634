# bloodcore/models.py
from django.conf import settings
from django.db import models
from django.utils import timezone

from .exceptions import InvalidStateError


# -------------------- Constants --------------------
class BloodType(models.TextChoices):
    A_POS = "A+", "A+"
    A_NEG = "A-", "A-"
    B_POS = "B+", "B+"
    B_NEG = "B-", "B-"
    AB_POS = "AB+", "AB+"
    AB_NEG = "AB-", "AB-"
    O_POS = "O+", "O+"
    O_NEG = "O-", "O-"


BLOOD_TYPES = BloodType.choices


class Gender(models.TextChoices):
    MALE = "Male", "Male"
    FEMALE = "Female", "Female"
    OTHER = "Other", "Other"


# -------------------- Base classes --------------------
class CodedModel(models.Model):
    """
    Records carry a readable, monotonically increasing code (D1000, BU10000, ...)
    derived from the primary key on first save.
    """
    CODE_PREFIX = ""
    CODE_START = 0

    code = models.CharField("Code", max_length=20, unique=True, null=True, editable=False)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        if not self.code:
            self.code = f"{self.CODE_PREFIX}{self.CODE_START + self.pk}"
            super().save(using=kwargs.get("using"), update_fields=["code"])

    def __str__(self):
        return self.code or f"{self.CODE_PREFIX}?"


class StatusMachine:
    """
    Mixin for models whose `status` moves along ALLOWED_TRANSITIONS only.
    Keys and targets are plain status values, as stored in the database.
    """
    ALLOWED_TRANSITIONS = {}

    def can_transition_to(self, status):
        return str(status) in self.ALLOWED_TRANSITIONS.get(str(self.status), ())

    def transition_to(self, status):
        if not self.can_transition_to(status):
            raise InvalidStateError(
                f"{type(self).__name__} {self} cannot move from {self.status} to {status}."
            )
        self.status = status


# -------------------- Core domain --------------------
class Donor(CodedModel):
    CODE_PREFIX = "D"
    CODE_START = 1000

    name = models.CharField("Full name", max_length=120)
    age = models.PositiveSmallIntegerField("Age")
    gender = models.CharField("Gender", max_length=10, choices=Gender.choices)
    blood_type = models.CharField("Blood type", max_length=3, choices=BLOOD_TYPES)
    phone = models.CharField("Phone", max_length=30)
    email = models.EmailField("Email", blank=True)
    address = models.CharField("Address", max_length=200, blank=True)
    last_donation = models.DateField("Last donation", null=True, blank=True)
    donation_count = models.PositiveIntegerField("Donation count", default=0)
    created_at = models.DateTimeField("Created at", auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code})"


class BloodUnit(StatusMachine, CodedModel):
    CODE_PREFIX = "BU"
    CODE_START = 10000

    class Status(models.TextChoices):
        PROCESSING = "Processing", "Processing"
        AVAILABLE = "Available", "Available"
        RESERVED = "Reserved", "Reserved"
        USED = "Used", "Used"
        EXPIRED = "Expired", "Expired"

    ALLOWED_TRANSITIONS = {
        "Processing": {"Available", "Expired"},
        "Available": {"Reserved", "Expired"},
        "Reserved": {"Used"},
    }

    donor = models.ForeignKey(Donor, on_delete=models.PROTECT, related_name="units")
    donor_name = models.CharField("Donor name", max_length=120)
    blood_type = models.CharField("Blood type", max_length=3, choices=BLOOD_TYPES, db_index=True)
    quantity = models.PositiveIntegerField("Quantity (ml)")
    collection_date = models.DateField("Collection date")
    expiry_date = models.DateField("Expiry date", db_index=True)
    status = models.CharField("Status", max_length=12, choices=Status.choices,
                              default=Status.AVAILABLE, db_index=True)
    request = models.ForeignKey("BloodRequest", on_delete=models.SET_NULL, null=True, blank=True,
                                related_name="units")

    class Meta:
        ordering = ["expiry_date", "collection_date"]

    def __str__(self):
        return f"{self.code} {self.blood_type} {self.quantity}ml ({self.status})"


class DonationRecord(StatusMachine, CodedModel):
    CODE_PREFIX = "DN"
    CODE_START = 1

    class Status(models.TextChoices):
        PROCESSING = "Processing", "Processing"
        AVAILABLE = "Available", "Available"
        DISCARDED = "Discarded", "Discarded"

    ALLOWED_TRANSITIONS = {
        "Processing": {"Available", "Discarded"},
        "Available": {"Discarded"},
    }

    donor = models.ForeignKey(Donor, on_delete=models.PROTECT, related_name="donations")
    donor_name = models.CharField("Donor name", max_length=120)
    blood_type = models.CharField("Blood type", max_length=3, choices=BLOOD_TYPES)
    date = models.DateField("Donation date")
    quantity = models.PositiveIntegerField("Quantity (ml)")
    hemoglobin = models.DecimalField("Hemoglobin (g/dL)", max_digits=4, decimal_places=1,
                                     null=True, blank=True)
    notes = models.TextField("Notes", blank=True)
    status = models.CharField("Status", max_length=12, choices=Status.choices,
                              default=Status.AVAILABLE, db_index=True)
    unit = models.OneToOneField(BloodUnit, on_delete=models.SET_NULL, null=True, blank=True,
                                related_name="donation")
    recorded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
                                    null=True, blank=True)
    created_at = models.DateTimeField("Created at", auto_now_add=True)

    class Meta:
        ordering = ["-date", "-created_at"]

    def __str__(self):
        return f"{self.code} {self.blood_type} {self.quantity}ml - {self.donor_name}"


class BloodRequest(StatusMachine, CodedModel):
    CODE_PREFIX = "R"
    CODE_START = 5000

    class Status(models.TextChoices):
        PENDING = "Pending", "Pending"
        PROCESSING = "Processing", "Processing"
        FULFILLED = "Fulfilled", "Fulfilled"
        CANCELLED = "Cancelled", "Cancelled"

    class Urgency(models.TextChoices):
        LOW = "Low", "Low"
        MEDIUM = "Medium", "Medium"
        HIGH = "High", "High"
        CRITICAL = "Critical", "Critical"

    # Processing is a recognised value for imported records; nothing moves into it.
    ALLOWED_TRANSITIONS = {
        "Pending": {"Fulfilled", "Cancelled"},
    }
    URGENT = (Urgency.HIGH, Urgency.CRITICAL)

    patient_name = models.CharField("Patient name", max_length=120)
    patient_age = models.PositiveSmallIntegerField("Patient age")
    patient_gender = models.CharField("Patient gender", max_length=10, choices=Gender.choices)
    blood_type = models.CharField("Blood type", max_length=3, choices=BLOOD_TYPES)
    quantity = models.PositiveIntegerField("Quantity (ml)")
    urgency = models.CharField("Urgency", max_length=10, choices=Urgency.choices,
                               default=Urgency.MEDIUM)
    hospital = models.CharField("Hospital", max_length=120)
    request_date = models.DateTimeField("Request date", default=timezone.now)
    status = models.CharField("Status", max_length=12, choices=Status.choices,
                              default=Status.PENDING, db_index=True)
    notes = models.TextField("Notes", blank=True)
    fulfilled_at = models.DateTimeField("Fulfilled at", null=True, blank=True)
    issued_at = models.DateTimeField("Issued at", null=True, blank=True)

    class Meta:
        ordering = ["-request_date"]

    def __str__(self):
        return f"{self.code} {self.blood_type} {self.quantity}ml ({self.urgency}) - {self.hospital}"


class InventoryItem(models.Model):
    """Ledger row: millilitres free to reserve and millilitres committed to requests."""
    blood_type = models.CharField("Blood type", max_length=3, choices=BLOOD_TYPES, unique=True)
    available = models.PositiveIntegerField("Available (ml)", default=0)
    reserved = models.PositiveIntegerField("Reserved (ml)", default=0)
    updated_at = models.DateTimeField("Updated at", auto_now=True)

    class Meta:
        ordering = ["blood_type"]

    def __str__(self):
        return f"{self.blood_type}: {self.available}ml available, {self.reserved}ml reserved"

    @property
    def total(self):
        return self.available + self.reserved

    @property
    def available_units(self):
        from .conf import to_units
        return to_units(self.available)

    @property
    def reserved_units(self):
        from .conf import to_units
        return to_units(self.reserved)


# -------------------- Audit --------------------
class AuditEvent(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField("Action", max_length=50)
    details = models.JSONField("Details", default=dict, blank=True)
    created_at = models.DateTimeField("Created at", auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        who = self.user.get_username() if self.user else "system"
        return f"{self.created_at:%Y-%m-%d %H:%M} {who} -> {self.action}"
