# bloodcore/fulfillment.py
import logging

from django.db import transaction
from django.utils import timezone

from .audit import log_event
from .exceptions import (
    InsufficientStockError, InvalidStateError, RequestNotFoundError, ValidationError, clean_or_raise,
)
from .ledger import InventoryLedger, check_blood_type, check_quantity
from .models import BloodRequest, BloodUnit

logger = logging.getLogger(__name__)


class RequestFulfillmentEngine:
    """
    Moves Pending requests to Fulfilled against available stock, or cancels them.

    Fulfilment reserves the requested volume in the ledger (available -> reserved)
    and allocates unit records first-expiry-first-out. Issuing a fulfilled request
    retires that reservation and marks its units Used. A request is only ever
    checked against its own blood type; there is no cross-type substitution.
    """

    REQUEST_FIELDS = ("patient_name", "patient_age", "patient_gender", "blood_type", "quantity",
                      "urgency", "hospital", "notes", "request_date")

    def __init__(self, ledger=None, using="default"):
        self.using = using
        self.ledger = ledger or InventoryLedger(using=using)

    def create_request(self, user=None, **fields):
        fields.pop("status", None)
        unknown = set(fields) - set(self.REQUEST_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown request field(s): {', '.join(sorted(unknown))}.")
        check_blood_type(fields.get("blood_type"))
        check_quantity(fields.get("quantity"))
        req = BloodRequest(status=BloodRequest.Status.PENDING, **fields)
        clean_or_raise(req, exclude=["code"])
        with transaction.atomic(using=self.using):
            req.save(using=self.using)
            log_event(
                "request_created",
                user=user,
                using=self.using,
                request=req.code,
                blood_type=req.blood_type,
                quantity=req.quantity,
                urgency=req.urgency,
                hospital=req.hospital,
            )
        return req

    def get_request(self, request_id, lock=False):
        qs = BloodRequest.objects.using(self.using)
        if lock:
            qs = qs.select_for_update()
        try:
            return qs.get(code=request_id)
        except BloodRequest.DoesNotExist:
            logger.warning("Blood request %r not found", request_id)
            raise RequestNotFoundError(f"Blood request {request_id!r} not found.") from None

    def _ensure_can_move(self, req, status, action):
        if not req.can_transition_to(status):
            logger.warning("Refusing to %s request %s in status %s", action, req.code, req.status)
            raise InvalidStateError(f"Request {req.code} is {req.status}; only Pending requests can be {status.lower()}.")

    def _split_unit(self, unit, keep):
        """Cut `unit` down to `keep` ml; the remainder stays on the shelf as a new Available unit."""
        remainder = BloodUnit(
            donor_id=unit.donor_id,
            donor_name=unit.donor_name,
            blood_type=unit.blood_type,
            quantity=unit.quantity - keep,
            collection_date=unit.collection_date,
            expiry_date=unit.expiry_date,
            status=BloodUnit.Status.AVAILABLE,
        )
        remainder.save(using=self.using)
        unit.quantity = keep
        logger.debug("Split %s: %s ml kept, %s ml left as %s", unit.code, keep, remainder.quantity, remainder.code)
        return remainder

    def _allocate_units(self, req):
        """
        Mark Available, unexpired units Reserved, soonest expiry first, until they
        cover the request. The last unit is split when it holds more than is still
        needed, so reserved unit volume matches the ledger reservation.
        """
        today = timezone.localdate()
        units = (
            BloodUnit.objects.using(self.using)
            .select_for_update(skip_locked=True)
            .filter(blood_type=req.blood_type, status=BloodUnit.Status.AVAILABLE, expiry_date__gte=today)
            .order_by("expiry_date", "collection_date", "pk")
        )
        needed, allocated = req.quantity, []
        for unit in units:
            if needed <= 0:
                break
            if unit.quantity > needed:
                self._split_unit(unit, needed)
            unit.transition_to(BloodUnit.Status.RESERVED)
            unit.request = req
            unit.save(using=self.using, update_fields=["status", "request", "quantity"])
            needed -= unit.quantity
            allocated.append(unit.code)
        return allocated

    def fulfill(self, request_id, user=None):
        try:
            with transaction.atomic(using=self.using):
                req = self.get_request(request_id, lock=True)
                self._ensure_can_move(req, BloodRequest.Status.FULFILLED, "fulfill")

                self.ledger.reserve(req.blood_type, req.quantity)
                allocated = self._allocate_units(req)

                req.transition_to(BloodRequest.Status.FULFILLED)
                req.fulfilled_at = timezone.now()
                req.save(using=self.using, update_fields=["status", "fulfilled_at"])

                log_event(
                    "request_fulfilled",
                    user=user,
                    using=self.using,
                    request=req.code,
                    blood_type=req.blood_type,
                    quantity=req.quantity,
                    units=allocated,
                )
        except InsufficientStockError as exc:
            log_event(
                "request_fulfillment_failed",
                user=user,
                using=self.using,
                request=request_id,
                blood_type=exc.blood_type,
                requested=exc.requested,
                available=exc.available,
                reason="insufficient_stock",
            )
            raise

        logger.info("Fulfilled request %s: %s ml %s", req.code, req.quantity, req.blood_type)
        return req

    def issue(self, request_id, user=None):
        """
        Hand a fulfilled request's blood over: its Reserved units become Used and the
        reserved volume is retired from the ledger.
        """
        with transaction.atomic(using=self.using):
            req = self.get_request(request_id, lock=True)
            if req.status != BloodRequest.Status.FULFILLED or req.issued_at is not None:
                logger.warning("Refusing to issue request %s in status %s (issued_at=%s)",
                               req.code, req.status, req.issued_at)
                state = "already issued" if req.issued_at else req.status
                raise InvalidStateError(f"Request {req.code} is {state}; only fulfilled requests can be issued.")

            units = list(
                BloodUnit.objects.using(self.using)
                .select_for_update()
                .filter(request=req, status=BloodUnit.Status.RESERVED)
            )
            for unit in units:
                unit.transition_to(BloodUnit.Status.USED)
                unit.save(using=self.using, update_fields=["status"])
            self.ledger.consume(req.blood_type, req.quantity)

            req.issued_at = timezone.now()
            req.save(using=self.using, update_fields=["issued_at"])
            log_event(
                "request_issued",
                user=user,
                using=self.using,
                request=req.code,
                blood_type=req.blood_type,
                quantity=req.quantity,
                units=[unit.code for unit in units],
            )
        logger.info("Issued request %s: %s ml %s", req.code, req.quantity, req.blood_type)
        return req

    def cancel(self, request_id, user=None):
        with transaction.atomic(using=self.using):
            req = self.get_request(request_id, lock=True)
            self._ensure_can_move(req, BloodRequest.Status.CANCELLED, "cancel")
            req.transition_to(BloodRequest.Status.CANCELLED)
            req.save(using=self.using, update_fields=["status"])
            log_event("request_cancelled", user=user, using=self.using,
                      request=req.code, blood_type=req.blood_type, quantity=req.quantity)
        return req
