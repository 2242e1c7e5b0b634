# tests/test_views.py
import datetime

import pytest
from django.urls import reverse
from django.utils import timezone

from bloodcore.models import AuditEvent, BloodRequest, Donor

ML = 450


def post_json(client, url, data=None):
    return client.post(url, data or {}, content_type="application/json")


@pytest.fixture
def staff_client(client, django_user_model):
    user = django_user_model.objects.create_user("nurse", password="pw", is_staff=True)
    client.force_login(user)
    return client


def test_anonymous_user_is_redirected_to_login(client, db):
    response = client.get(reverse("bloodcore:inventory"))
    assert response.status_code == 302


def test_non_staff_user_is_forbidden(client, django_user_model):
    user = django_user_model.objects.create_user("visitor", password="pw")
    client.force_login(user)
    response = client.get(reverse("bloodcore:inventory"))
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


def test_dashboard_lists_levels_and_expiring_units(staff_client, ledger, make_unit, make_request):
    today = timezone.localdate()
    make_unit(blood_type="O-", collection_date=today - datetime.timedelta(days=40),
              expiry_date=today + datetime.timedelta(days=2))
    ledger.credit("O-", ML)
    ledger.credit("A+", 11 * ML)
    make_request(blood_type="A+", urgency="Critical")
    make_request(blood_type="A+", urgency="Low")

    data = staff_client.get(reverse("bloodcore:inventory")).json()

    rows = {row["blood_type"]: row for row in data["rows"]}
    assert len(rows) == 8
    assert rows["O-"]["level"] == "critical"
    assert rows["O-"]["expiring_soon"] == 1
    assert rows["A+"]["level"] == "ok"
    assert rows["A+"]["available_units"] == 11.0
    assert "O-" in data["critical_types"] and "A+" not in data["critical_types"]
    assert [u["blood_type"] for u in data["expiring_soon"]] == ["O-"]
    assert data["urgent_pending_count"] == 1
    assert data["near_days"] == 7


def test_adjust_updates_ledger(staff_client, ledger):
    ledger.credit("B+", 900)
    response = post_json(staff_client, reverse("bloodcore:inventory_adjust", args=["B+"]),
                         {"delta": -450, "reason": "cold chain breach"})
    assert response.status_code == 200
    assert response.json()["available_ml"] == 450
    assert AuditEvent.objects.get(action="inventory_adjusted").user.username == "nurse"


def test_adjust_below_zero_is_a_conflict(staff_client, ledger):
    ledger.credit("B+", 100)
    response = post_json(staff_client, reverse("bloodcore:inventory_adjust", args=["B+"]),
                         {"delta": -450, "reason": "recount"})
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "insufficient_stock"
    assert body["available"] == 100
    assert ledger.get("B+").available == 100


def test_adjust_unknown_type_is_not_found(staff_client):
    response = post_json(staff_client, reverse("bloodcore:inventory_adjust", args=["Q+"]),
                         {"delta": 5, "reason": "recount"})
    assert response.status_code == 404


def test_adjust_rejects_zero_and_bad_json(staff_client):
    url = reverse("bloodcore:inventory_adjust", args=["B+"])
    assert post_json(staff_client, url, {"delta": 0, "reason": "noop"}).status_code == 400
    response = staff_client.post(url, "{not json", content_type="application/json")
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    for body in ("[1, 2]", "\"x\"", "5", "null"):
        response = staff_client.post(url, body, content_type="application/json")
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


def test_register_donor_and_record_donation(staff_client, ledger):
    response = post_json(staff_client, reverse("bloodcore:donor_register"), {
        "name": "Sarah Davis", "age": 29, "gender": "Female", "blood_type": "AB-",
        "phone": "(555) 303-4040",
    })
    assert response.status_code == 201
    donor_id = response.json()["id"]
    assert Donor.objects.get(code=donor_id).blood_type == "AB-"

    today = timezone.localdate()
    response = post_json(staff_client, reverse("bloodcore:donation_record", args=[donor_id]), {
        "date": today.isoformat(), "quantity": 450, "hemoglobin": "14.2",
    })
    assert response.status_code == 201
    body = response.json()
    assert body["donor"] == donor_id
    assert body["expiry_date"] == (today + datetime.timedelta(days=42)).isoformat()
    assert ledger.get("AB-").available == 450


def test_register_donor_reports_field_errors(staff_client):
    response = post_json(staff_client, reverse("bloodcore:donor_register"), {
        "name": "Sarah Davis", "age": 12, "gender": "Female", "blood_type": "AB-", "phone": "555-0101",
    })
    assert response.status_code == 400
    assert "age" in response.json()["fields"]
    assert not Donor.objects.exists()


def test_donation_for_unknown_donor_is_not_found(staff_client):
    response = post_json(staff_client, reverse("bloodcore:donation_record", args=["D404"]), {
        "date": timezone.localdate().isoformat(), "quantity": 450,
    })
    assert response.status_code == 404
    assert response.json()["error"] == "donor_not_found"


def test_future_donation_date_is_rejected(staff_client, make_donor):
    donor = make_donor()
    tomorrow = timezone.localdate() + datetime.timedelta(days=1)
    response = post_json(staff_client, reverse("bloodcore:donation_record", args=[donor.code]), {
        "date": tomorrow.isoformat(), "quantity": 450,
    })
    assert response.status_code == 400
    assert "date" in response.json()["fields"]


def test_request_create_fulfill_and_cancel(staff_client, ledger):
    ledger.credit("O+", 2 * ML)
    payload = {
        "patient_name": "Michael Brown", "patient_age": 47, "patient_gender": "Male",
        "blood_type": "O+", "quantity": ML, "urgency": "Critical", "hospital": "City Hospital",
    }
    first = post_json(staff_client, reverse("bloodcore:request_create"), payload)
    second = post_json(staff_client, reverse("bloodcore:request_create"), payload)
    assert first.status_code == second.status_code == 201
    first_id, second_id = first.json()["id"], second.json()["id"]

    response = post_json(staff_client, reverse("bloodcore:request_fulfill", args=[first_id]))
    assert response.status_code == 200
    assert response.json()["status"] == "Fulfilled"
    item = ledger.get("O+")
    assert (item.available, item.reserved) == (ML, ML)

    response = post_json(staff_client, reverse("bloodcore:request_cancel", args=[second_id]))
    assert response.json()["status"] == "Cancelled"

    response = post_json(staff_client, reverse("bloodcore:request_cancel", args=[first_id]))
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_state"


def test_fulfill_without_stock_is_a_conflict(staff_client, make_request):
    req = make_request(blood_type="AB+", quantity=ML)
    response = post_json(staff_client, reverse("bloodcore:request_fulfill", args=[req.code]))
    assert response.status_code == 409
    body = response.json()
    assert (body["requested"], body["available"]) == (ML, 0)
    assert BloodRequest.objects.get(pk=req.pk).status == BloodRequest.Status.PENDING


def test_fulfill_unknown_request_is_not_found(staff_client):
    response = post_json(staff_client, reverse("bloodcore:request_fulfill", args=["R1"]))
    assert response.status_code == 404
    assert response.json()["error"] == "request_not_found"


def test_endpoints_reject_wrong_method(staff_client):
    assert staff_client.get(reverse("bloodcore:request_create")).status_code == 405


def test_issue_endpoint_retires_reservation(staff_client, ledger, make_request):
    ledger.credit("A-", ML)
    req = make_request(blood_type="A-", quantity=ML)
    post_json(staff_client, reverse("bloodcore:request_fulfill", args=[req.code]))

    response = post_json(staff_client, reverse("bloodcore:request_issue", args=[req.code]))

    assert response.status_code == 200
    assert response.json()["issued_at"] is not None
    assert ledger.get("A-").reserved == 0
    response = post_json(staff_client, reverse("bloodcore:request_issue", args=[req.code]))
    assert response.status_code == 409
