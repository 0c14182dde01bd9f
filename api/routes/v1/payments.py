"""
api/routes/v1/payments.py -- Payment records.

All routes: owner, receptionist, customer.

Card payments carry the full card number, CVV and expiry on input so they
can be validated; only the last four digits are persisted (cardLastFour).
Dates are stored as UTC ISO 8601 strings so dateFrom/dateTo filters compare
correctly. A date-only dateTo includes that whole day.
"""

from datetime import datetime, time, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import DESCRIPTION_PATTERN, PaymentCreate, PaymentPatch, PaymentStatus
from api.shaping import ok, paged
from auth.dependencies import get_current_user, require_roles
from auth.models import Identity
from core.errors import NotFound, ValidationFailed
from shop.models import Payment
from shop.store import ShopStore

router = APIRouter(dependencies=[Depends(get_current_user)])

_payers = require_roles("owner", "receptionist", "customer")

PaymentSort = Literal["createdAt", "-createdAt", "date", "-date", "amount", "-amount", "status", "-status"]


def _store(request: Request) -> ShopStore:
    return request.app.state.shop_store


def _utc_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _bound(field: str, raw: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationFailed.for_field(field, f"{field} must be in ISO 8601 format") from exc
    if end_of_day and len(raw) == 10:
        value = datetime.combine(value.date(), time.max)
    return value


def _payment_fields(body: PaymentCreate | PaymentPatch, fields: dict) -> dict:
    """Swap raw card details for the stored last four digits; normalise the date."""
    for secret in ("card_number", "cvv", "expiry_date"):
        fields.pop(secret, None)
    if body.card_number:
        fields["card_last_four"] = body.card_last_four()
    if fields.get("date") is not None:
        fields["date"] = _utc_iso(body.date)
    return fields


@router.get("/payments")
def list_payments(
    request: Request,
    page: int = Query(1, ge=1, le=10000),
    limit: int = Query(10, ge=1, le=1000),
    status: Optional[PaymentStatus] = None,
    payment_method: Optional[Literal["card", "cash"]] = Query(None, alias="paymentMethod"),
    min_amount: Optional[float] = Query(None, ge=0, alias="minAmount"),
    max_amount: Optional[float] = Query(None, ge=0, alias="maxAmount"),
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    search: Optional[str] = Query(None, min_length=1, max_length=100, pattern=DESCRIPTION_PATTERN),
    sort: PaymentSort = "-createdAt",
    identity: Identity = Depends(_payers),
) -> dict:
    if min_amount is not None and max_amount is not None and max_amount < min_amount:
        raise ValidationFailed.for_field(
            "maxAmount", "Maximum amount must be greater than or equal to minimum amount"
        )
    start = _bound("dateFrom", date_from)
    end = _bound("dateTo", date_to, end_of_day=True)
    if start is not None and end is not None and _utc_iso(end) < _utc_iso(start):
        raise ValidationFailed.for_field("dateTo", "Date to must be greater than or equal to date from")
    return paged(
        _store(request).list_payments(
            page,
            limit,
            status=status.value if status else None,
            payment_method=payment_method,
            min_amount=min_amount,
            max_amount=max_amount,
            date_from=_utc_iso(start) if start else None,
            date_to=_utc_iso(end) if end else None,
            search=(search or "").strip(),
            sort=sort,
        )
    )


@router.get("/payments/{payment_id}")
def get_payment(request: Request, payment_id: int, identity: Identity = Depends(_payers)) -> dict:
    payment = _store(request).get_payment(payment_id)
    if payment is None:
        raise NotFound("Payment not found")
    return ok(payment)


@router.post("/payments", status_code=201)
def create_payment(request: Request, body: PaymentCreate, identity: Identity = Depends(_payers)) -> dict:
    fields = _payment_fields(body, body.store_fields())
    fields["date"] = fields.get("date") or ""
    return ok(_store(request).create_payment(Payment(**fields)), "Payment recorded")


@router.put("/payments/{payment_id}")
def update_payment(request: Request, payment_id: int, body: PaymentPatch, identity: Identity = Depends(_payers)) -> dict:
    payment = _store(request).update_payment(payment_id, **_payment_fields(body, body.patch_fields()))
    if payment is None:
        raise NotFound("Payment not found")
    return ok(payment, "Payment updated")


@router.delete("/payments/{payment_id}")
def delete_payment(request: Request, payment_id: int, identity: Identity = Depends(_payers)) -> dict:
    if not _store(request).delete_payment(payment_id):
        raise NotFound("Payment not found")
    return ok(message="Deleted")
