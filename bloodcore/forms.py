# bloodcore/forms.py
from django import forms
from django.core.validators import RegexValidator
from django.utils import timezone

from . import conf
from .models import BloodRequest, Donor

# ---------------- Validators ----------------
phone_validator = RegexValidator(regex=r"^[\d\s()+\-]{7,30}$",
                                 message="Phone may contain digits, spaces, parentheses, + and - only.")
name_validator = RegexValidator(regex=r"^[^\W\d_][\w\s'.\-]*$",
                                message="Name may contain letters, spaces, apostrophes, dots and hyphens only.")


# ==================== Registry forms ====================
class DonorForm(forms.ModelForm):
    name = forms.CharField(label="Full name", max_length=120, validators=[name_validator])
    phone = forms.CharField(label="Phone", max_length=30, validators=[phone_validator])

    class Meta:
        model = Donor
        fields = ["name", "age", "gender", "blood_type", "phone", "email", "address"]

    def clean_age(self):
        age = self.cleaned_data["age"]
        if not 16 <= age <= 80:
            raise forms.ValidationError("Donors must be between 16 and 80 years old.")
        return age


# ==================== Domain forms ====================
class DonationForm(forms.Form):
    date = forms.DateField(label="Donation date")
    quantity = forms.IntegerField(label="Quantity (ml)", min_value=1, initial=450)
    hemoglobin = forms.DecimalField(label="Hemoglobin (g/dL)", required=False,
                                    max_digits=4, decimal_places=1, initial=14)
    notes = forms.CharField(label="Notes", required=False, widget=forms.Textarea(attrs={"rows": 3}))

    def clean_date(self):
        value = self.cleaned_data["date"]
        if value > timezone.localdate():
            raise forms.ValidationError("Donation date cannot be in the future.")
        return value

    def clean_quantity(self):
        value = self.cleaned_data["quantity"]
        ceiling = conf.max_donation_ml()
        if value > ceiling:
            raise forms.ValidationError(f"A single donation cannot exceed {ceiling} ml.")
        return value


class BloodRequestForm(forms.ModelForm):
    patient_name = forms.CharField(label="Patient name", max_length=120, validators=[name_validator])
    quantity = forms.IntegerField(label="Quantity (ml)", min_value=1)

    class Meta:
        model = BloodRequest
        fields = ["patient_name", "patient_age", "patient_gender", "blood_type",
                  "quantity", "urgency", "hospital", "notes"]


class AdjustmentForm(forms.Form):
    delta = forms.IntegerField(label="Change (ml)")
    reason = forms.CharField(label="Reason", max_length=200)

    def clean_delta(self):
        value = self.cleaned_data["delta"]
        if value == 0:
            raise forms.ValidationError("Adjustment must be non-zero.")
        return value
