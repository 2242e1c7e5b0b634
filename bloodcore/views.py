# bloodcore/views.py
import json
import logging
from functools import wraps

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST

from . import conf
from .donations import DonationRecorder, DonorDirectory
from .exceptions import BloodCoreError, InsufficientStockError, InvalidStateError, NotFoundError
from .expiry import find_expiring_within, stock_level
from .forms import AdjustmentForm, BloodRequestForm, DonationForm, DonorForm
from .fulfillment import RequestFulfillmentEngine
from .ledger import InventoryLedger
from .models import BloodRequest, BloodUnit

logger = logging.getLogger(__name__)

ERROR_STATUS = (
    (NotFoundError, 404),
    (InsufficientStockError, 409),
    (InvalidStateError, 409),
)


# ------------------------ helpers ------------------------
def _payload(request):
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except ValueError:
            return None
        return data if isinstance(data, dict) else None
    return request.POST


def _form_errors(form):
    return JsonResponse({"error": "validation_error", "fields": form.errors.get_json_data()}, status=400)


def _bad_json():
    return JsonResponse({"error": "validation_error", "detail": "Malformed JSON body."}, status=400)


def _item_json(item, near_counts):
    return {
        "blood_type": item.blood_type,
        "available_ml": item.available,
        "reserved_ml": item.reserved,
        "available_units": item.available_units,
        "reserved_units": item.reserved_units,
        "expiring_soon": near_counts.get(item.blood_type, 0),
        "level": stock_level(item),
    }


def _request_json(req):
    return {
        "id": req.code,
        "patient_name": req.patient_name,
        "blood_type": req.blood_type,
        "quantity_ml": req.quantity,
        "urgency": req.urgency,
        "hospital": req.hospital,
        "status": req.status,
        "fulfilled_at": req.fulfilled_at.isoformat() if req.fulfilled_at else None,
        "issued_at": req.issued_at.isoformat() if req.issued_at else None,
    }


def _donation_json(record):
    return {
        "id": record.code,
        "donor": record.donor.code,
        "blood_type": record.blood_type,
        "date": record.date.isoformat(),
        "quantity_ml": record.quantity,
        "unit": record.unit.code if record.unit else None,
        "expiry_date": record.unit.expiry_date.isoformat() if record.unit else None,
        "status": record.status,
    }


# ------------------------ guards ------------------------
def staff_required(view_func):
    @wraps(view_func)
    @login_required
    def _wrapped(request, *args, **kwargs):
        if not request.user.is_staff:
            return JsonResponse({"error": "forbidden", "detail": "Staff access only."}, status=403)
        return view_func(request, *args, **kwargs)
    return _wrapped


def api_errors(view_func):
    """Turn accounting errors into JSON responses carrying the error context."""
    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except BloodCoreError as exc:
            status = next((code for kind, code in ERROR_STATUS if isinstance(exc, kind)), 400)
            if isinstance(exc, (NotFoundError, InvalidStateError)):
                logger.warning("%s %s failed for %s: %s", request.method, request.path,
                               request.user.get_username(), exc)
            return JsonResponse(exc.as_dict(), status=status)
    return _wrapped


# ------------------------ inventory ------------------------
@staff_required
@require_GET
def inventory_dashboard(request):
    """
    Stock per blood type with alert levels, units expiring inside the
    NEAR_EXPIRY_DAYS window and the count of urgent pending requests.
    """
    today = timezone.localdate()
    near_days = conf.near_expiry_days()
    candidates = BloodUnit.objects.filter(status=BloodUnit.Status.AVAILABLE, expiry_date__gte=today)
    expiring = find_expiring_within(candidates, today, near_days)

    near_counts = {}
    for unit in expiring:
        near_counts[unit.blood_type] = near_counts.get(unit.blood_type, 0) + 1

    rows = [_item_json(item, near_counts) for item in InventoryLedger().snapshot()]
    urgent_pending = BloodRequest.objects.filter(
        status=BloodRequest.Status.PENDING, urgency__in=BloodRequest.URGENT
    ).count()

    return JsonResponse({
        "near_days": near_days,
        "ml_per_unit": conf.ml_per_unit(),
        "rows": rows,
        "critical_types": [row["blood_type"] for row in rows if row["level"] == "critical"],
        "expiring_soon": [
            {"unit": u.code, "blood_type": u.blood_type, "expiry_date": u.expiry_date.isoformat()}
            for u in expiring
        ],
        "urgent_pending_count": urgent_pending,
    })


@staff_required
@require_POST
@api_errors
def inventory_adjust(request, blood_type):
    data = _payload(request)
    if data is None:
        return _bad_json()
    form = AdjustmentForm(data)
    if not form.is_valid():
        return _form_errors(form)
    item = InventoryLedger().adjust(
        blood_type, form.cleaned_data["delta"], reason=form.cleaned_data["reason"], user=request.user
    )
    return JsonResponse(_item_json(item, {}))


# ------------------------ donors & donations ------------------------
@staff_required
@require_POST
@api_errors
def donor_register(request):
    data = _payload(request)
    if data is None:
        return _bad_json()
    form = DonorForm(data)
    if not form.is_valid():
        return _form_errors(form)
    donor = DonorDirectory().register_donor(user=request.user, **form.cleaned_data)
    return JsonResponse({"id": donor.code, "blood_type": donor.blood_type}, status=201)


@staff_required
@require_POST
@api_errors
def donation_record(request, donor_id):
    data = _payload(request)
    if data is None:
        return _bad_json()
    form = DonationForm(data)
    if not form.is_valid():
        return _form_errors(form)
    record = DonationRecorder().record_donation(
        donor_id,
        form.cleaned_data["date"],
        form.cleaned_data["quantity"],
        hemoglobin=form.cleaned_data.get("hemoglobin"),
        notes=form.cleaned_data.get("notes", "").strip(),
        user=request.user,
    )
    return JsonResponse(_donation_json(record), status=201)


# ------------------------ requests ------------------------
@staff_required
@require_POST
@api_errors
def request_create(request):
    data = _payload(request)
    if data is None:
        return _bad_json()
    form = BloodRequestForm(data)
    if not form.is_valid():
        return _form_errors(form)
    req = RequestFulfillmentEngine().create_request(user=request.user, **form.cleaned_data)
    return JsonResponse(_request_json(req), status=201)


@staff_required
@require_POST
@api_errors
def request_fulfill(request, request_id):
    req = RequestFulfillmentEngine().fulfill(request_id, user=request.user)
    return JsonResponse(_request_json(req))


@staff_required
@require_POST
@api_errors
def request_cancel(request, request_id):
    req = RequestFulfillmentEngine().cancel(request_id, user=request.user)
    return JsonResponse(_request_json(req))


@staff_required
@require_POST
@api_errors
def request_issue(request, request_id):
    req = RequestFulfillmentEngine().issue(request_id, user=request.user)
    return JsonResponse(_request_json(req))
