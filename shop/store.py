"""
shop/store.py -- SQLAlchemy Core persistence layer for the garage workshop.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in shop/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. ShopStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers (they translate
raw DB rows into domain dataclasses). Route handlers never touch SQL directly.

List-valued and nested fields (job tasks, mechanic skills, supplier contact
details) are JSON text columns.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ShopStore("sqlite:///garage.db")
    car = store.create_car(Car(license_plate="ABC-123", ...))
    page = store.list_cars(page=1, limit=10, search="toyota")
    reduction = store.reduce_stock(item_id, 2, reason="job")
    store.close()

Layer rule: no imports from api/, web/, auth/, or cache/.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import (
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.errors import Conflict, InsufficientStock, NotFound, ValidationFailed
from core.models import Page, page_offset
from shop.inventory import stock_status
from shop.models import (
    Appointment,
    AppointmentSummary,
    Car,
    InventoryItem,
    Job,
    JobTask,
    Mechanic,
    Payment,
    StockMovement,
    StockReduction,
    SupplierInfo,
)

logger = logging.getLogger("garage.shop")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()


def _timestamps() -> list[Column]:
    return [
        Column("created_at", String(32), nullable=False),
        Column("updated_at", String(32), nullable=False),
        Column("version", Integer, nullable=False, server_default="1"),
    ]


_cars = Table(
    "cars",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("license_plate", String(50), nullable=False),
    Column("customer_name", String(255), nullable=False),
    Column("customer_phone", String(50), nullable=False),
    Column("customer_email", String(255), index=True),
    Column("make", String(100), nullable=False),
    Column("model", String(100), nullable=False),
    Column("year", Integer, nullable=False),
    Column("color", String(50)),
    Column("vin", String(50), unique=True),  # NULLs never collide
    *_timestamps(),
)

_appointments = Table(
    "appointments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("customer_name", String(255), nullable=False),
    Column("customer_email", String(255), index=True),
    Column("vehicle", String(255), nullable=False),
    Column("service_type", String(255), nullable=False),
    Column("preferred_date", String(32), nullable=False),
    Column("notes", Text),
    Column("status", String(20), nullable=False, server_default="pending"),
    *_timestamps(),
)

_jobs = Table(
    "jobs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("car_id", Integer, index=True),
    Column("appointment_id", Integer, unique=True),  # one job per appointment
    Column("assigned_mechanic", String(100)),
    Column("tasks", Text, nullable=False, server_default="[]"),  # JSON array
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("estimated_completion", String(32)),
    Column("customer_phone", String(50)),
    *_timestamps(),
)

_items = Table(
    "inventory_items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("category", String(100), nullable=False, server_default=""),
    Column("supplier", String(255), nullable=False, server_default=""),
    Column("supplier_info", Text, nullable=False, server_default="{}"),  # JSON object
    Column("sku", String(100), unique=True),
    Column("quantity", Float, nullable=False, server_default="0"),
    Column("price", Float, nullable=False, server_default="0"),
    Column("min_threshold", Float, nullable=False, server_default="0"),
    Column("last_updated", String(32), nullable=False),
    *_timestamps(),
)

_movements = Table(
    "stock_movements",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("item_id", Integer, nullable=False, index=True),
    Column("item_name", String(255), nullable=False),
    Column("movement_type", String(20), nullable=False),
    Column("quantity", Float, nullable=False),
    Column("previous_quantity", Float, nullable=False),
    Column("new_quantity", Float, nullable=False),
    Column("reason", String(100), nullable=False),
    Column("job_id", String(100)),
    Column("notes", Text),
    Column("timestamp", String(32), nullable=False),
)

_mechanics = Table(
    "mechanics",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("phone", String(50)),
    Column("skills", Text, nullable=False, server_default="[]"),  # JSON array
    Column("availability", String(20), nullable=False, server_default="available"),
    Column("experience", Text),
    *_timestamps(),
)

_payments = Table(
    "payments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("amount", Float, nullable=False),
    Column("payment_method", String(10), nullable=False),
    Column("description", Text),
    Column("date", String(32), nullable=False),
    Column("status", String(20), nullable=False, server_default="completed"),
    Column("transaction_id", String(100)),
    Column("card_last_four", String(4)),
    Column("job_sheet_id", Integer),
    Column("car_id", Integer),
    *_timestamps(),
)

_JSON_COLUMNS = frozenset({"tasks", "skills", "supplier_info"})

# Columns the store owns. Inserts and partial updates never write these from input.
_MANAGED_COLUMNS = frozenset({"id", "created_at", "updated_at", "version"})

# Free-text search fields per entity (case-insensitive substring, OR-combined).
_CAR_SEARCH = (
    _cars.c.license_plate,
    _cars.c.customer_name,
    _cars.c.customer_phone,
    _cars.c.make,
    _cars.c.model,
)
_ITEM_SEARCH = (_items.c.name, _items.c.category, _items.c.supplier, _items.c.sku)
_MECHANIC_SEARCH = (_mechanics.c.name, _mechanics.c.email)
_PAYMENT_SEARCH = (_payments.c.description, _payments.c.transaction_id)

_PAYMENT_SORTS = {
    "createdAt": _payments.c.created_at.asc(),
    "-createdAt": _payments.c.created_at.desc(),
    "date": _payments.c.date.asc(),
    "-date": _payments.c.date.desc(),
    "amount": _payments.c.amount.asc(),
    "-amount": _payments.c.amount.desc(),
    "status": _payments.c.status.asc(),
    "-status": _payments.c.status.desc(),
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _normalize_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


def _encode(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, list):
        return [_encode(v) for v in value]
    return value


def _column_values(table: Table, fields: dict) -> dict:
    """Keep only writable columns of table; serialise JSON columns."""
    values = {}
    for key, value in fields.items():
        if key in _MANAGED_COLUMNS or key not in table.c:
            continue
        if value is None and not table.c[key].nullable and key not in _JSON_COLUMNS:
            # A patch cannot null out a required column.
            continue
        if key in _JSON_COLUMNS:
            if value is None:
                value = {} if key == "supplier_info" else []
            value = json.dumps(_encode(value))
        values[key] = value
    return values


def _search_clause(columns, search: str):
    return or_(*(col.icontains(search, autoescape=True) for col in columns))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ShopStore:
    """Repository for every workshop entity.

    Every get_* returns None for an unknown id and every update_* returns None
    when nothing matched; route handlers turn that into NotFound. delete_*
    returns False when nothing was deleted.
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Generic table operations
    # ------------------------------------------------------------------

    def _insert(self, table: Table, fields: dict, conflict_message: str) -> int:
        now = _now_iso()
        values = _column_values(table, fields)
        values.update(created_at=now, updated_at=now, version=1)
        try:
            with self.engine.connect() as conn:
                result = conn.execute(table.insert().values(**values))
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise Conflict(conflict_message) from exc

    def _fetch(self, table: Table, row_id: int, mapper: Callable):
        with self.engine.connect() as conn:
            row = conn.execute(table.select().where(table.c.id == row_id)).fetchone()
        return mapper(row) if row is not None else None

    def _update(self, table: Table, row_id: int, fields: dict, conflict_message: str) -> bool:
        """Apply a partial update; True if the row exists.

        Only columns present in fields change. updated_at is refreshed and
        version bumped on every write.
        """
        values = _column_values(table, fields)
        if not values:
            raise ValidationFailed("No fields to update.")
        values["updated_at"] = _now_iso()
        values["version"] = table.c.version + 1
        try:
            with self.engine.connect() as conn:
                result = conn.execute(table.update().where(table.c.id == row_id).values(**values))
                conn.commit()
        except IntegrityError as exc:
            raise Conflict(conflict_message) from exc
        return result.rowcount > 0

    def _delete(self, table: Table, row_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(table.delete().where(table.c.id == row_id))
            conn.commit()
        return result.rowcount > 0

    def _page(self, table: Table, mapper: Callable, conditions: list, order_by, page: int, limit: int) -> Page:
        query = table.select()
        count_query = select(func.count()).select_from(table)
        if conditions:
            query = query.where(*conditions)
            count_query = count_query.where(*conditions)
        with self.engine.connect() as conn:
            total = conn.execute(count_query).scalar() or 0
            rows = conn.execute(
                query.order_by(*order_by).offset(page_offset(page, limit)).limit(limit)
            ).fetchall()
        return Page(items=[mapper(r) for r in rows], page=page, limit=limit, total=total)

    def _all(self, table: Table, mapper: Callable, order_by) -> list:
        with self.engine.connect() as conn:
            rows = conn.execute(table.select().order_by(*order_by)).fetchall()
        return [mapper(r) for r in rows]

    @staticmethod
    def _newest_first(table: Table) -> tuple:
        return (table.c.created_at.desc(), table.c.id.desc())

    # ------------------------------------------------------------------
    # Cars
    # ------------------------------------------------------------------

    def create_car(self, car: Car) -> Car:
        fields = asdict(car)
        fields["customer_email"] = _normalize_email(car.customer_email)
        car_id = self._insert(_cars, fields, "A car with this VIN already exists")
        return self.get_car(car_id)

    def get_car(self, car_id: int) -> Car | None:
        return self._fetch(_cars, car_id, _row_to_car)

    def list_cars(self, page: int = 1, limit: int = 10, search: str = "") -> Page[Car]:
        conditions = [_search_clause(_CAR_SEARCH, search)] if search else []
        return self._page(_cars, _row_to_car, conditions, self._newest_first(_cars), page, limit)

    def all_cars(self) -> list[Car]:
        return self._all(_cars, _row_to_car, self._newest_first(_cars))

    def update_car(self, car_id: int, **fields) -> Car | None:
        if "customer_email" in fields:
            fields["customer_email"] = _normalize_email(fields["customer_email"])
        if not self._update(_cars, car_id, fields, "A car with this VIN already exists"):
            return None
        return self.get_car(car_id)

    def delete_car(self, car_id: int) -> bool:
        """Hard delete. Jobs that reference the car are left untouched."""
        return self._delete(_cars, car_id)

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------

    def create_appointment(self, appointment: Appointment) -> Appointment:
        fields = asdict(appointment)
        fields["customer_email"] = _normalize_email(appointment.customer_email)
        appointment_id = self._insert(_appointments, fields, "Appointment already exists")
        return self.get_appointment(appointment_id)

    def get_appointment(self, appointment_id: int, customer_email: Optional[str] = None) -> Appointment | None:
        """Return the appointment, or None if missing or outside customer_email's scope."""
        appointment = self._fetch(_appointments, appointment_id, _row_to_appointment)
        if appointment is None:
            return None
        if customer_email is not None and appointment.customer_email != _normalize_email(customer_email):
            return None
        return appointment

    def list_appointments(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> Page[Appointment]:
        """Newest first. customer_email restricts the result to one customer's bookings."""
        conditions = []
        if status:
            conditions.append(_appointments.c.status == status)
        if customer_email is not None:
            conditions.append(_appointments.c.customer_email == _normalize_email(customer_email))
        return self._page(
            _appointments, _row_to_appointment, conditions, self._newest_first(_appointments), page, limit
        )

    def update_appointment(self, appointment_id: int, **fields) -> Appointment | None:
        if "customer_email" in fields:
            fields["customer_email"] = _normalize_email(fields["customer_email"])
        if not self._update(_appointments, appointment_id, fields, "Appointment already exists"):
            return None
        return self.get_appointment(appointment_id)

    def delete_appointment(self, appointment_id: int) -> bool:
        return self._delete(_appointments, appointment_id)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def save_job(self, job: Job, changes: Optional[dict] = None) -> tuple[Job, bool]:
        """Create a job, or update the existing job for the same appointment.

        Returns (job, created). A job linked to an appointment is an upsert
        keyed by appointment_id: submitting twice for one appointment leaves
        exactly one row. The UNIQUE index on appointment_id settles races
        between concurrent submissions.

        changes holds the fields written when the appointment already has a
        job; columns not named in it keep their stored values. When omitted,
        every field of job is written.
        """
        fields = asdict(job)
        fields.pop("car", None)
        fields.pop("appointment", None)
        if changes is None:
            changes = fields
        if job.appointment_id is not None:
            existing = self._job_id_for_appointment(job.appointment_id)
            if existing is not None:
                return self.update_job(existing, **changes), False
        try:
            job_id = self._insert(_jobs, fields, "A job already exists for this appointment")
        except Conflict:
            existing = self._job_id_for_appointment(job.appointment_id) if job.appointment_id else None
            if existing is None:
                raise
            return self.update_job(existing, **changes), False
        return self.get_job(job_id), True

    def _job_id_for_appointment(self, appointment_id: int) -> Optional[int]:
        with self.engine.connect() as conn:
            return conn.execute(
                select(_jobs.c.id).where(_jobs.c.appointment_id == appointment_id)
            ).scalar()

    def get_job(self, job_id: int, customer_email: Optional[str] = None) -> Job | None:
        """Return the populated job, or None if missing or outside customer_email's scope."""
        query = select(_jobs).where(_jobs.c.id == job_id)
        if customer_email is not None:
            query = query.join(_cars, _jobs.c.car_id == _cars.c.id).where(
                _cars.c.customer_email == _normalize_email(customer_email)
            )
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        if row is None:
            return None
        return self._populate([_row_to_job(row)])[0]

    def list_jobs(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> Page[Job]:
        """Newest first, with car and appointment populated.

        customer_email scopes the listing to jobs whose linked car carries
        that email. The join, filter, count, and LIMIT/OFFSET all run in the
        database, so total and paging reflect the scoped result.
        """
        source = _jobs
        conditions = []
        if customer_email is not None:
            source = _jobs.join(_cars, _jobs.c.car_id == _cars.c.id)
            conditions.append(_cars.c.customer_email == _normalize_email(customer_email))
        if status:
            conditions.append(_jobs.c.status == status)
        query = select(_jobs).select_from(source)
        count_query = select(func.count()).select_from(source)
        if conditions:
            query = query.where(*conditions)
            count_query = count_query.where(*conditions)
        with self.engine.connect() as conn:
            total = conn.execute(count_query).scalar() or 0
            rows = conn.execute(
                query.order_by(*self._newest_first(_jobs)).offset(page_offset(page, limit)).limit(limit)
            ).fetchall()
        return Page(items=self._populate([_row_to_job(r) for r in rows]), page=page, limit=limit, total=total)

    def all_jobs(self) -> list[Job]:
        return self._all(_jobs, _row_to_job, self._newest_first(_jobs))

    def _populate(self, jobs: list[Job]) -> list[Job]:
        """Attach car and appointment summaries, one query per referenced table."""
        car_ids = {j.car_id for j in jobs if j.car_id is not None}
        appointment_ids = {j.appointment_id for j in jobs if j.appointment_id is not None}
        cars: dict[int, Car] = {}
        appointments: dict[int, AppointmentSummary] = {}
        with self.engine.connect() as conn:
            if car_ids:
                for row in conn.execute(_cars.select().where(_cars.c.id.in_(car_ids))):
                    cars[row.id] = _row_to_car(row)
            if appointment_ids:
                for row in conn.execute(_appointments.select().where(_appointments.c.id.in_(appointment_ids))):
                    appointments[row.id] = AppointmentSummary(
                        id=row.id,
                        customer_name=row.customer_name,
                        vehicle=row.vehicle,
                        service_type=row.service_type,
                        preferred_date=row.preferred_date,
                    )
        for job in jobs:
            job.car = cars.get(job.car_id) if job.car_id is not None else None
            job.appointment = appointments.get(job.appointment_id) if job.appointment_id is not None else None
        return jobs

    def update_job(self, job_id: int, **fields) -> Job | None:
        fields.pop("car", None)
        fields.pop("appointment", None)
        if not self._update(_jobs, job_id, fields, "A job already exists for this appointment"):
            return None
        return self.get_job(job_id)

    def delete_job(self, job_id: int) -> bool:
        return self._delete(_jobs, job_id)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def create_item(self, item: InventoryItem) -> InventoryItem:
        fields = asdict(item)
        fields["last_updated"] = _now_iso()
        item_id = self._insert(_items, fields, "An item with this SKU already exists")
        return self.get_item(item_id)

    def get_item(self, item_id: int) -> InventoryItem | None:
        return self._fetch(_items, item_id, _row_to_item)

    def list_items(self, page: int = 1, limit: int = 10, search: str = "") -> Page[InventoryItem]:
        conditions = [_search_clause(_ITEM_SEARCH, search)] if search else []
        return self._page(_items, _row_to_item, conditions, self._newest_first(_items), page, limit)

    def all_items(self) -> list[InventoryItem]:
        return self._all(_items, _row_to_item, (_items.c.updated_at.desc(), _items.c.id.desc()))

    def update_item(self, item_id: int, **fields) -> InventoryItem | None:
        if _column_values(_items, fields):
            fields["last_updated"] = _now_iso()
        if not self._update(_items, item_id, fields, "An item with this SKU already exists"):
            return None
        return self.get_item(item_id)

    def delete_item(self, item_id: int) -> bool:
        return self._delete(_items, item_id)

    def reduce_stock(
        self,
        item_id: int,
        quantity: float,
        reason: str = "adjustment",
        job_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> StockReduction:
        """Atomically take quantity units out of stock and record the movement.

        The decrement is one conditional UPDATE guarded by quantity >= :q, so
        concurrent reductions can never drive stock below zero. The movement
        row is written in the same transaction.

        Raises NotFound for an unknown item, InsufficientStock when the
        guard fails (quantity is left unchanged).
        """
        if quantity <= 0:
            raise ValidationFailed.for_field("quantity", "Quantity must be a positive number")
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _items.update()
                .where((_items.c.id == item_id) & (_items.c.quantity >= quantity))
                .values(
                    quantity=_items.c.quantity - quantity,
                    version=_items.c.version + 1,
                    last_updated=now,
                    updated_at=now,
                )
            )
            row = conn.execute(_items.select().where(_items.c.id == item_id)).fetchone()
            if row is None:
                raise NotFound("Item not found")
            if result.rowcount == 0:
                raise InsufficientStock(available=row.quantity, requested=quantity)
            item = _row_to_item(row)
            movement = StockMovement(
                item_id=item.id,
                item_name=item.name,
                movement_type="reduction",
                quantity=-quantity,
                previous_quantity=item.quantity + quantity,
                new_quantity=item.quantity,
                reason=reason or "adjustment",
                job_id=job_id,
                notes=notes,
                timestamp=now,
            )
            values = asdict(movement)
            values.pop("id")
            movement.id = conn.execute(_movements.insert().values(**values)).inserted_primary_key[0]
        logger.info(
            "stock reduced item=%s qty=%g prev=%g new=%g reason=%s job=%s",
            item.id,
            quantity,
            movement.previous_quantity,
            movement.new_quantity,
            movement.reason,
            job_id or "-",
        )
        return StockReduction(item=item, movement=movement, stock_status=stock_status(item))

    def list_movements(self, item_id: int, page: int = 1, limit: int = 20) -> Page[StockMovement]:
        return self._page(
            _movements,
            _row_to_movement,
            [_movements.c.item_id == item_id],
            (_movements.c.timestamp.desc(), _movements.c.id.desc()),
            page,
            limit,
        )

    # ------------------------------------------------------------------
    # Mechanics
    # ------------------------------------------------------------------

    def create_mechanic(self, mechanic: Mechanic) -> Mechanic:
        fields = asdict(mechanic)
        fields["email"] = _normalize_email(mechanic.email)
        mechanic_id = self._insert(_mechanics, fields, "A mechanic with this email already exists")
        return self.get_mechanic(mechanic_id)

    def get_mechanic(self, mechanic_id: int) -> Mechanic | None:
        return self._fetch(_mechanics, mechanic_id, _row_to_mechanic)

    def list_mechanics(self, page: int = 1, limit: int = 10, search: str = "") -> Page[Mechanic]:
        conditions = [_search_clause(_MECHANIC_SEARCH, search)] if search else []
        return self._page(_mechanics, _row_to_mechanic, conditions, self._newest_first(_mechanics), page, limit)

    def all_mechanics(self) -> list[Mechanic]:
        return self._all(_mechanics, _row_to_mechanic, self._newest_first(_mechanics))

    def update_mechanic(self, mechanic_id: int, **fields) -> Mechanic | None:
        if fields.get("email") is not None:
            fields["email"] = _normalize_email(fields["email"])
        if not self._update(_mechanics, mechanic_id, fields, "A mechanic with this email already exists"):
            return None
        return self.get_mechanic(mechanic_id)

    def delete_mechanic(self, mechanic_id: int) -> bool:
        return self._delete(_mechanics, mechanic_id)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def create_payment(self, payment: Payment) -> Payment:
        fields = asdict(payment)
        fields["date"] = payment.date or _now_iso()
        payment_id = self._insert(_payments, fields, "Payment already exists")
        return self.get_payment(payment_id)

    def get_payment(self, payment_id: int) -> Payment | None:
        return self._fetch(_payments, payment_id, _row_to_payment)

    def list_payments(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        payment_method: Optional[str] = None,
        min_amount: Optional[float] = None,
        max_amount: Optional[float] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        search: str = "",
        sort: str = "-createdAt",
    ) -> Page[Payment]:
        """Filtered, sorted payment listing.

        sort is one of createdAt, date, amount, status with an optional "-"
        prefix for descending. Unknown values fall back to -createdAt.
        date_from/date_to compare as ISO 8601 strings (inclusive).
        """
        conditions = []
        if status:
            conditions.append(_payments.c.status == status)
        if payment_method:
            conditions.append(_payments.c.payment_method == payment_method)
        if min_amount is not None:
            conditions.append(_payments.c.amount >= min_amount)
        if max_amount is not None:
            conditions.append(_payments.c.amount <= max_amount)
        if date_from:
            conditions.append(_payments.c.date >= date_from)
        if date_to:
            conditions.append(_payments.c.date <= date_to)
        if search:
            conditions.append(_search_clause(_PAYMENT_SEARCH, search))
        order = _PAYMENT_SORTS.get(sort, _PAYMENT_SORTS["-createdAt"])
        return self._page(_payments, _row_to_payment, conditions, (order, _payments.c.id.desc()), page, limit)

    def all_payments(self) -> list[Payment]:
        return self._all(_payments, _row_to_payment, self._newest_first(_payments))

    def update_payment(self, payment_id: int, **fields) -> Payment | None:
        if not self._update(_payments, payment_id, fields, "Payment already exists"):
            return None
        return self.get_payment(payment_id)

    def delete_payment(self, payment_id: int) -> bool:
        return self._delete(_payments, payment_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_car(row) -> Car:
    return Car(
        id=row.id,
        license_plate=row.license_plate,
        customer_name=row.customer_name,
        customer_phone=row.customer_phone,
        customer_email=row.customer_email,
        make=row.make,
        model=row.model,
        year=row.year,
        color=row.color,
        vin=row.vin,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
    )


def _row_to_appointment(row) -> Appointment:
    return Appointment(
        id=row.id,
        customer_name=row.customer_name,
        customer_email=row.customer_email,
        vehicle=row.vehicle,
        service_type=row.service_type,
        preferred_date=row.preferred_date,
        notes=row.notes,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
    )


def _row_to_job(row) -> Job:
    tasks = json.loads(row.tasks) if row.tasks else []
    return Job(
        id=row.id,
        car_id=row.car_id,
        appointment_id=row.appointment_id,
        assigned_mechanic=row.assigned_mechanic,
        tasks=[JobTask(description=t.get("description", ""), completed=bool(t.get("completed", False))) for t in tasks],
        status=row.status,
        estimated_completion=row.estimated_completion,
        customer_phone=row.customer_phone,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
    )


def _row_to_item(row) -> InventoryItem:
    info = json.loads(row.supplier_info) if row.supplier_info else {}
    known = SupplierInfo.__dataclass_fields__
    return InventoryItem(
        id=row.id,
        name=row.name,
        category=row.category,
        supplier=row.supplier,
        supplier_info=SupplierInfo(**{k: v for k, v in info.items() if k in known}),
        sku=row.sku,
        quantity=row.quantity,
        price=row.price,
        min_threshold=row.min_threshold,
        last_updated=row.last_updated,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
    )


def _row_to_movement(row) -> StockMovement:
    return StockMovement(
        id=row.id,
        item_id=row.item_id,
        item_name=row.item_name,
        movement_type=row.movement_type,
        quantity=row.quantity,
        previous_quantity=row.previous_quantity,
        new_quantity=row.new_quantity,
        reason=row.reason,
        job_id=row.job_id,
        notes=row.notes,
        timestamp=row.timestamp,
    )


def _row_to_mechanic(row) -> Mechanic:
    return Mechanic(
        id=row.id,
        name=row.name,
        email=row.email,
        phone=row.phone,
        skills=json.loads(row.skills) if row.skills else [],
        availability=row.availability,
        experience=row.experience,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
    )


def _row_to_payment(row) -> Payment:
    return Payment(
        id=row.id,
        amount=row.amount,
        payment_method=row.payment_method,
        description=row.description,
        date=row.date,
        status=row.status,
        transaction_id=row.transaction_id,
        card_last_four=row.card_last_four,
        job_sheet_id=row.job_sheet_id,
        car_id=row.car_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
    )
