"""
shop/models.py -- Domain dataclasses for the garage workshop.

These are pure data containers with zero logic. Persistence lives in
shop/store.py; stock heuristics in shop/inventory.py.

Every persisted entity carries id (None before insert) and ISO 8601
created_at / updated_at strings set by the store. version is an internal
optimistic-concurrency counter bumped on every write; response shaping
strips it.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Car:
    """A customer vehicle.

    Ownership is by customer_email match, not a foreign key: a customer
    account "owns" every car whose customer_email equals its login email.
    """

    license_plate: str
    customer_name: str
    customer_phone: str
    make: str
    model: str
    year: int
    customer_email: Optional[str] = None
    color: Optional[str] = None
    vin: Optional[str] = None  # unique when present
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
    version: int = 1


@dataclass
class Appointment:
    customer_name: str
    vehicle: str  # free-text vehicle description
    service_type: str
    preferred_date: str  # ISO 8601
    customer_email: Optional[str] = None
    notes: Optional[str] = None
    status: str = "pending"  # "pending" | "scheduled" | "completed" | "cancelled"
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
    version: int = 1


@dataclass
class JobTask:
    description: str
    completed: bool = False


@dataclass
class AppointmentSummary:
    """The subset of an Appointment embedded in job responses."""

    id: int
    customer_name: str
    vehicle: str
    service_type: str
    preferred_date: str


@dataclass
class Job:
    """A repair job sheet.

    At least one of car_id / appointment_id is set. appointment_id is unique
    across jobs: one job per appointment.

    car and appointment are populated by the store on reads (the joined
    documents); they are never written back.
    """

    car_id: Optional[int] = None
    appointment_id: Optional[int] = None
    assigned_mechanic: Optional[str] = None
    tasks: list[JobTask] = field(default_factory=list)
    status: str = "pending"  # "pending" | "in_progress" | "completed"
    estimated_completion: Optional[str] = None  # ISO 8601
    customer_phone: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
    version: int = 1
    car: Optional[Car] = None
    appointment: Optional[AppointmentSummary] = None


@dataclass
class SupplierInfo:
    contact_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    website: str = ""
    lead_time: int = 7  # days
    minimum_order: int = 0
    preferred_supplier: bool = False


@dataclass
class InventoryItem:
    name: str
    category: str = ""
    supplier: str = ""
    supplier_info: SupplierInfo = field(default_factory=SupplierInfo)
    sku: Optional[str] = None  # unique when present
    quantity: float = 0
    price: float = 0  # unit price
    min_threshold: float = 0  # reorder alert level: quantity <= min_threshold is "low"
    last_updated: str = ""  # ISO 8601, refreshed on every stock change or edit
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
    version: int = 1


@dataclass
class StockMovement:
    """Append-only ledger entry written whenever stock is reduced.

    quantity is signed: negative for reductions.
    """

    item_id: int
    item_name: str
    movement_type: str  # "reduction"
    quantity: float
    previous_quantity: float
    new_quantity: float
    reason: str = "adjustment"
    job_id: Optional[str] = None
    notes: Optional[str] = None
    timestamp: str = ""
    id: Optional[int] = None


@dataclass
class StockReduction:
    """Outcome of a single successful reduce_stock() call."""

    item: InventoryItem
    movement: StockMovement
    stock_status: str  # "out" | "low" | "good"


@dataclass
class Mechanic:
    name: str
    email: str  # unique
    phone: Optional[str] = None
    skills: list[str] = field(default_factory=list)
    availability: str = "available"  # "available" | "busy" | "unavailable"
    experience: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
    version: int = 1


@dataclass
class Payment:
    """A recorded payment.

    job_sheet_id / car_id are loose numeric references with no integrity
    check. Only the last four card digits are ever stored.
    """

    amount: float
    payment_method: str  # "card" | "cash"
    description: Optional[str] = None
    date: str = ""  # ISO 8601, defaults to insert time
    status: str = "completed"  # "completed" | "pending"
    transaction_id: Optional[str] = None
    card_last_four: Optional[str] = None
    job_sheet_id: Optional[int] = None
    car_id: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
    version: int = 1
