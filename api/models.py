"""
API request models for the garage manager REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in shop/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

JSON bodies are camelCase; Python attributes are snake_case. Every model
accepts either spelling on input (populate_by_name).

Every entity has a Create model (required fields enforced) and an explicit
Patch model (every field optional). Handlers apply a patch with
model_dump(exclude_unset=True) (patch_fields), so only fields the client actually sent are
written and unknown keys never reach the store.
"""

import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from auth.models import Role

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
MECHANIC_NAME_PATTERN = r"^[A-Za-z\s\-'.]+$"
DESCRIPTION_PATTERN = r"^[A-Za-z0-9\s\-.,!?()]+$"
TRANSACTION_ID_PATTERN = r"^[A-Za-z0-9\-_]+$"

MAX_TASKS = 20
MAX_AMOUNT = 999999.99

_EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/(\d{2}|\d{4})$")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AppointmentStatus(str, Enum):
    pending = "pending"
    scheduled = "scheduled"
    completed = "completed"
    cancelled = "cancelled"


class JobStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"


class Availability(str, Enum):
    available = "available"
    busy = "busy"
    unavailable = "unavailable"


class PaymentStatus(str, Enum):
    completed = "completed"
    pending = "pending"


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=True,
    )

    def patch_fields(self) -> dict:
        """Return only the fields the client sent, by Python attribute name.

        JSON mode: datetimes become ISO 8601 strings and nested models plain dicts,
        ready for the store.
        """
        return self.model_dump(mode="json", exclude_unset=True)

    def store_fields(self) -> dict:
        return self.model_dump(mode="json")


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Auth and users
# ---------------------------------------------------------------------------


class RegisterRequest(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=6, max_length=128)
    role: Role = Role.customer


class LoginRequest(CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class ForgotPasswordRequest(CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)


class ResetPasswordRequest(CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    code: str = Field(min_length=6, max_length=6)
    new_password: str = Field(min_length=6, max_length=128)


class UserCreate(CamelModel):
    """POST /users. The initial password is password, or else nic."""

    name: str = Field(min_length=2, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    role: Role
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = Field(default=None, max_length=500)
    nic: Optional[str] = Field(default=None, max_length=50)

    @model_validator(mode="after")
    def require_initial_password(self) -> "UserCreate":
        if not self.password and not self.nic:
            raise ValueError("Password or NIC is required to set initial password")
        return self


class UserPatch(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    role: Optional[Role] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = Field(default=None, max_length=500)
    nic: Optional[str] = Field(default=None, max_length=50)


class MechanicNicReset(CamelModel):
    nic: str = Field(min_length=1, max_length=50)


# ---------------------------------------------------------------------------
# Cars
# ---------------------------------------------------------------------------


class CarCreate(CamelModel):
    license_plate: str = Field(min_length=2, max_length=50)
    customer_name: str = Field(min_length=2, max_length=255)
    customer_phone: str = Field(min_length=3, max_length=50)
    customer_email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    make: str = Field(min_length=1, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    year: int = Field(ge=1900, le=2100)
    color: Optional[str] = Field(default=None, max_length=50)
    vin: Optional[str] = Field(default=None, max_length=50)

    @field_validator("vin", "color", "customer_email", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CarPatch(CarCreate):
    license_plate: Optional[str] = Field(default=None, min_length=2, max_length=50)
    customer_name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    customer_phone: Optional[str] = Field(default=None, min_length=3, max_length=50)
    make: Optional[str] = Field(default=None, min_length=1, max_length=100)
    model: Optional[str] = Field(default=None, min_length=1, max_length=100)
    year: Optional[int] = Field(default=None, ge=1900, le=2100)


# ---------------------------------------------------------------------------
# Appointments
# ---------------------------------------------------------------------------


class AppointmentCreate(CamelModel):
    customer_name: str = Field(min_length=1, max_length=255)
    customer_email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    vehicle: str = Field(min_length=1, max_length=255)
    service_type: str = Field(min_length=1, max_length=255)
    preferred_date: datetime
    notes: Optional[str] = Field(default=None, max_length=1000)
    status: AppointmentStatus = AppointmentStatus.pending

    @field_validator("preferred_date")
    @classmethod
    def to_utc(cls, value: datetime) -> datetime:
        return _aware(value)


class AppointmentPatch(AppointmentCreate):
    customer_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    vehicle: Optional[str] = Field(default=None, min_length=1, max_length=255)
    service_type: Optional[str] = Field(default=None, min_length=1, max_length=255)
    preferred_date: Optional[datetime] = None
    status: Optional[AppointmentStatus] = None

    @field_validator("preferred_date")
    @classmethod
    def to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _aware(value) if value is not None else None


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


class TaskIn(CamelModel):
    # Emptiness is checked by the handler so the error names the task list.
    description: str = Field(default="", max_length=500)
    completed: bool = False


class JobCreate(CamelModel):
    """POST /jobs. car and appointment are ids; at least one is required."""

    car: Optional[int] = None
    appointment: Optional[int] = None
    assigned_mechanic: Optional[str] = Field(
        default=None, min_length=2, max_length=50, pattern=MECHANIC_NAME_PATTERN
    )
    tasks: list[TaskIn] = Field(default_factory=list, max_length=MAX_TASKS)
    status: JobStatus = JobStatus.pending
    estimated_completion: Optional[datetime] = None
    customer_phone: Optional[str] = Field(default=None, max_length=50)

    @field_validator("estimated_completion")
    @classmethod
    def within_next_year(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        value = _aware(value)
        now = datetime.now(timezone.utc)
        if value <= now:
            raise ValueError("Estimated completion must be in the future")
        if value > now + timedelta(days=365):
            raise ValueError("Estimated completion cannot be more than one year ahead")
        return value


class JobPatch(JobCreate):
    tasks: Optional[list[TaskIn]] = Field(default=None, max_length=MAX_TASKS)
    status: Optional[JobStatus] = None


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


class SupplierInfoIn(CamelModel):
    contact_name: str = Field(default="", max_length=255)
    email: str = Field(default="", max_length=255)
    phone: str = Field(default="", max_length=50)
    address: str = Field(default="", max_length=500)
    website: str = Field(default="", max_length=255)
    lead_time: int = Field(default=7, ge=0)
    minimum_order: int = Field(default=0, ge=0)
    preferred_supplier: bool = False


class InventoryCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    category: str = Field(min_length=1, max_length=100)
    supplier: str = Field(min_length=1, max_length=255)
    supplier_info: SupplierInfoIn = Field(default_factory=SupplierInfoIn)
    sku: Optional[str] = Field(default=None, max_length=100)
    quantity: float = Field(ge=0)
    price: float = Field(ge=0)
    min_threshold: float = Field(ge=0)

    @field_validator("sku", mode="before")
    @classmethod
    def blank_sku(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class InventoryPatch(InventoryCreate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    supplier: Optional[str] = Field(default=None, min_length=1, max_length=255)
    supplier_info: Optional[SupplierInfoIn] = None
    quantity: Optional[float] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, ge=0)
    min_threshold: Optional[float] = Field(default=None, ge=0)


class StockReduceRequest(CamelModel):
    quantity: float = Field(ge=0.01)
    reason: Optional[str] = Field(default=None, max_length=100)
    job_id: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)


class BulkReduceLine(CamelModel):
    """One line of a bulk reduction. Checked per line by the handler so a bad
    line is reported in the result instead of rejecting the whole batch."""

    item_id: Optional[int] = None
    quantity: Optional[float] = None
    reason: Optional[str] = Field(default=None, max_length=100)


class BulkReduceRequest(CamelModel):
    items: list[BulkReduceLine] = Field(min_length=1, max_length=200)
    job_id: Optional[str] = Field(default=None, max_length=100)
    reason: str = Field(default="bulk_adjustment", max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Mechanics
# ---------------------------------------------------------------------------


class MechanicCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    skills: list[str] = Field(default_factory=list, max_length=50)
    availability: Availability = Availability.available
    experience: Optional[str] = Field(default=None, max_length=1000)


class MechanicPatch(MechanicCreate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    skills: Optional[list[str]] = Field(default=None, max_length=50)
    availability: Optional[Availability] = None


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


def _check_amount(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    if value < 0.01 or value > MAX_AMOUNT:
        raise ValueError("Amount must be between 0.01 and 999999.99")
    if round(value, 2) != value:
        raise ValueError("Amount can have at most 2 decimal places")
    return value


def _check_payment_date(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    value = _aware(value)
    now = datetime.now(timezone.utc)
    if abs(value - now) > timedelta(days=365):
        raise ValueError("Payment date must be within one year of today")
    return value


def _check_expiry(value: str) -> str:
    match = _EXPIRY_RE.match(value)
    if not match:
        raise ValueError("Expiry date must be MM/YY or MM/YYYY")
    month = int(match.group(1))
    year = int(match.group(2))
    if year < 100:
        year += 2000
    now = datetime.now(timezone.utc)
    if (year, month) < (now.year, now.month):
        raise ValueError("Card has expired")
    if year > now.year + 10:
        raise ValueError("Expiry date is too far in the future")
    return value


def _check_cvv(value: Optional[str]) -> Optional[str]:
    if value and not re.fullmatch(r"\d{3}", value):
        raise ValueError("CVV must be 3 digits")
    return value or None


def _check_card_details(card_number: Optional[str], cvv: Optional[str], expiry_date: Optional[str]) -> None:
    missing = [
        name
        for name, value in (("cardNumber", card_number), ("cvv", cvv), ("expiryDate", expiry_date))
        if not value
    ]
    if missing:
        raise ValueError(f"Card payments require {', '.join(missing)}")


def _card_digits(value: Any) -> Any:
    if isinstance(value, str):
        value = value.replace(" ", "").replace("-", "")
        if value and not re.fullmatch(r"\d{16}", value):
            raise ValueError("Card number must be 16 digits")
    return value or None


class PaymentCreate(CamelModel):
    """POST /payments.

    card_number and cvv are validated and then discarded; only the last four
    digits of the card survive, as card_last_four.
    """

    amount: float
    payment_method: Literal["card", "cash"]
    description: Optional[str] = Field(default=None, min_length=1, max_length=500, pattern=DESCRIPTION_PATTERN)
    date: Optional[datetime] = None
    status: PaymentStatus = PaymentStatus.completed
    transaction_id: Optional[str] = Field(default=None, min_length=3, max_length=100, pattern=TRANSACTION_ID_PATTERN)
    card_number: Optional[str] = None
    cvv: Optional[str] = None
    expiry_date: Optional[str] = None
    job_sheet_id: Optional[int] = None
    car_id: Optional[int] = None

    @field_validator("amount")
    @classmethod
    def amount_in_range(cls, value: float) -> float:
        return _check_amount(value)

    @field_validator("date")
    @classmethod
    def date_near_today(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _check_payment_date(value)

    @field_validator("card_number", mode="before")
    @classmethod
    def digits_only(cls, value: Any) -> Any:
        return _card_digits(value)

    @field_validator("cvv")
    @classmethod
    def cvv_digits(cls, value: Optional[str]) -> Optional[str]:
        return _check_cvv(value)

    @field_validator("expiry_date")
    @classmethod
    def expiry_in_range(cls, value: Optional[str]) -> Optional[str]:
        return _check_expiry(value) if value else None

    @model_validator(mode="after")
    def card_details_for_card_payments(self):
        if self.payment_method == "card":
            _check_card_details(self.card_number, self.cvv, self.expiry_date)
        return self

    def card_last_four(self) -> Optional[str]:
        return self.card_number[-4:] if self.card_number else None


class PaymentPatch(CamelModel):
    amount: Optional[float] = None
    payment_method: Optional[Literal["card", "cash"]] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=500, pattern=DESCRIPTION_PATTERN)
    date: Optional[datetime] = None
    status: Optional[PaymentStatus] = None
    transaction_id: Optional[str] = Field(default=None, min_length=3, max_length=100, pattern=TRANSACTION_ID_PATTERN)
    card_number: Optional[str] = None
    cvv: Optional[str] = None
    expiry_date: Optional[str] = None
    job_sheet_id: Optional[int] = None
    car_id: Optional[int] = None

    @field_validator("amount")
    @classmethod
    def amount_in_range(cls, value: Optional[float]) -> Optional[float]:
        return _check_amount(value)

    @field_validator("date")
    @classmethod
    def date_near_today(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _check_payment_date(value)

    @field_validator("card_number", mode="before")
    @classmethod
    def digits_only(cls, value: Any) -> Any:
        return _card_digits(value)

    @field_validator("cvv")
    @classmethod
    def cvv_digits(cls, value: Optional[str]) -> Optional[str]:
        return _check_cvv(value)

    @field_validator("expiry_date")
    @classmethod
    def expiry_in_range(cls, value: Optional[str]) -> Optional[str]:
        return _check_expiry(value) if value else None

    @model_validator(mode="after")
    def card_details_for_card_payments(self):
        """Switching to card, or replacing the card, needs the full card details."""
        if self.payment_method == "card" or self.card_number:
            _check_card_details(self.card_number, self.cvv, self.expiry_date)
        return self

    def card_last_four(self) -> Optional[str]:
        return self.card_number[-4:] if self.card_number else None
