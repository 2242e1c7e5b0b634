from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


BLOOD_TYPES = [
    ("A+", "A+"), ("A-", "A-"), ("B+", "B+"), ("B-", "B-"),
    ("AB+", "AB+"), ("AB-", "AB-"), ("O+", "O+"), ("O-", "O-"),
]
GENDERS = [("Male", "Male"), ("Female", "Female"), ("Other", "Other")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Donor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(editable=False, max_length=20, null=True, unique=True, verbose_name="Code")),
                ("name", models.CharField(max_length=120, verbose_name="Full name")),
                ("age", models.PositiveSmallIntegerField(verbose_name="Age")),
                ("gender", models.CharField(choices=GENDERS, max_length=10, verbose_name="Gender")),
                ("blood_type", models.CharField(choices=BLOOD_TYPES, max_length=3, verbose_name="Blood type")),
                ("phone", models.CharField(max_length=30, verbose_name="Phone")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="Email")),
                ("address", models.CharField(blank=True, max_length=200, verbose_name="Address")),
                ("last_donation", models.DateField(blank=True, null=True, verbose_name="Last donation")),
                ("donation_count", models.PositiveIntegerField(default=0, verbose_name="Donation count")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="BloodRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(editable=False, max_length=20, null=True, unique=True, verbose_name="Code")),
                ("patient_name", models.CharField(max_length=120, verbose_name="Patient name")),
                ("patient_age", models.PositiveSmallIntegerField(verbose_name="Patient age")),
                ("patient_gender", models.CharField(choices=GENDERS, max_length=10, verbose_name="Patient gender")),
                ("blood_type", models.CharField(choices=BLOOD_TYPES, max_length=3, verbose_name="Blood type")),
                ("quantity", models.PositiveIntegerField(verbose_name="Quantity (ml)")),
                ("urgency", models.CharField(
                    choices=[("Low", "Low"), ("Medium", "Medium"), ("High", "High"), ("Critical", "Critical")],
                    default="Medium", max_length=10, verbose_name="Urgency")),
                ("hospital", models.CharField(max_length=120, verbose_name="Hospital")),
                ("request_date", models.DateTimeField(default=django.utils.timezone.now, verbose_name="Request date")),
                ("status", models.CharField(
                    choices=[("Pending", "Pending"), ("Processing", "Processing"),
                             ("Fulfilled", "Fulfilled"), ("Cancelled", "Cancelled")],
                    db_index=True, default="Pending", max_length=12, verbose_name="Status")),
                ("notes", models.TextField(blank=True, verbose_name="Notes")),
                ("fulfilled_at", models.DateTimeField(blank=True, null=True, verbose_name="Fulfilled at")),
            ],
            options={"ordering": ["-request_date"]},
        ),
        migrations.CreateModel(
            name="BloodUnit",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(editable=False, max_length=20, null=True, unique=True, verbose_name="Code")),
                ("donor_name", models.CharField(max_length=120, verbose_name="Donor name")),
                ("blood_type", models.CharField(choices=BLOOD_TYPES, db_index=True, max_length=3, verbose_name="Blood type")),
                ("quantity", models.PositiveIntegerField(verbose_name="Quantity (ml)")),
                ("collection_date", models.DateField(verbose_name="Collection date")),
                ("expiry_date", models.DateField(db_index=True, verbose_name="Expiry date")),
                ("status", models.CharField(
                    choices=[("Processing", "Processing"), ("Available", "Available"), ("Reserved", "Reserved"),
                             ("Used", "Used"), ("Expired", "Expired")],
                    db_index=True, default="Available", max_length=12, verbose_name="Status")),
                ("donor", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="units",
                                            to="bloodcore.donor")),
                ("request", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                                              related_name="units", to="bloodcore.bloodrequest")),
            ],
            options={"ordering": ["expiry_date", "collection_date"]},
        ),
        migrations.CreateModel(
            name="DonationRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(editable=False, max_length=20, null=True, unique=True, verbose_name="Code")),
                ("donor_name", models.CharField(max_length=120, verbose_name="Donor name")),
                ("blood_type", models.CharField(choices=BLOOD_TYPES, max_length=3, verbose_name="Blood type")),
                ("date", models.DateField(verbose_name="Donation date")),
                ("quantity", models.PositiveIntegerField(verbose_name="Quantity (ml)")),
                ("hemoglobin", models.DecimalField(blank=True, decimal_places=1, max_digits=4, null=True,
                                                   verbose_name="Hemoglobin (g/dL)")),
                ("notes", models.TextField(blank=True, verbose_name="Notes")),
                ("status", models.CharField(
                    choices=[("Processing", "Processing"), ("Available", "Available"), ("Discarded", "Discarded")],
                    db_index=True, default="Available", max_length=12, verbose_name="Status")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
                ("donor", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="donations",
                                            to="bloodcore.donor")),
                ("unit", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                                              related_name="donation", to="bloodcore.bloodunit")),
                ("recorded_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                                                  to=settings.AUTH_USER_MODEL)),
            ],
            options={"ordering": ["-date", "-created_at"]},
        ),
        migrations.CreateModel(
            name="InventoryItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("blood_type", models.CharField(choices=BLOOD_TYPES, max_length=3, unique=True, verbose_name="Blood type")),
                ("available", models.PositiveIntegerField(default=0, verbose_name="Available (ml)")),
                ("reserved", models.PositiveIntegerField(default=0, verbose_name="Reserved (ml)")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated at")),
            ],
            options={"ordering": ["blood_type"]},
        ),
        migrations.CreateModel(
            name="AuditEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50, verbose_name="Action")),
                ("details", models.JSONField(blank=True, default=dict, verbose_name="Details")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                                           to=settings.AUTH_USER_MODEL)),
            ],
            options={"ordering": ["-created_at"]},
        ),
    ]
