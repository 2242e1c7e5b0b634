# bloodcore/admin.py
from django.contrib import admin, messages

from .exceptions import BloodCoreError
from .fulfillment import RequestFulfillmentEngine
from .models import AuditEvent, BloodRequest, BloodUnit, DonationRecord, Donor, InventoryItem


@admin.register(Donor)
class DonorAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "blood_type", "phone", "last_donation", "donation_count")
    list_filter = ("blood_type", "gender")
    search_fields = ("code", "name", "phone", "email")
    readonly_fields = ("code", "last_donation", "donation_count")


@admin.register(BloodUnit)
class BloodUnitAdmin(admin.ModelAdmin):
    list_display = ("code", "blood_type", "quantity", "collection_date", "expiry_date", "status", "request")
    list_filter = ("blood_type", "status")
    search_fields = ("code", "donor_name")
    readonly_fields = [f.name for f in BloodUnit._meta.fields]


@admin.register(DonationRecord)
class DonationRecordAdmin(admin.ModelAdmin):
    list_display = ("code", "donor_name", "blood_type", "date", "quantity", "hemoglobin", "status")
    list_filter = ("blood_type", "status")
    readonly_fields = [f.name for f in DonationRecord._meta.fields]


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    # counters change through the ledger only
    list_display = ("blood_type", "available", "reserved", "updated_at")
    readonly_fields = ("blood_type", "available", "reserved", "updated_at")

    def has_add_permission(self, request):
        return False


@admin.register(BloodRequest)
class BloodRequestAdmin(admin.ModelAdmin):
    list_display = ("code", "patient_name", "blood_type", "quantity", "urgency", "hospital", "status",
                    "request_date")
    list_filter = ("status", "urgency", "blood_type")
    search_fields = ("code", "patient_name", "hospital")
    readonly_fields = ("code", "status", "fulfilled_at", "issued_at")
    actions = ["fulfill_selected", "issue_selected", "cancel_selected"]

    def _run(self, request, queryset, operation, verb):
        engine = RequestFulfillmentEngine()
        done = 0
        for req in queryset.order_by("request_date"):
            try:
                getattr(engine, operation)(req.code, user=request.user)
                done += 1
            except BloodCoreError as exc:
                self.message_user(request, f"{req.code}: {exc}", level=messages.ERROR)
        if done:
            self.message_user(request, f"{done} request(s) {verb}.", level=messages.SUCCESS)

    @admin.action(description="Fulfill selected requests")
    def fulfill_selected(self, request, queryset):
        self._run(request, queryset, "fulfill", "fulfilled")

    @admin.action(description="Issue selected fulfilled requests")
    def issue_selected(self, request, queryset):
        self._run(request, queryset, "issue", "issued")

    @admin.action(description="Cancel selected requests")
    def cancel_selected(self, request, queryset):
        self._run(request, queryset, "cancel", "cancelled")


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ("created_at", "user", "action")
    list_filter = ("action",)
    readonly_fields = ("created_at", "user", "action", "details")
