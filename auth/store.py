"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as shop/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Emails are normalised (trimmed, lowercased) before every write and lookup,
  so the UNIQUE constraint on users.email is case-insensitive in effect.

Layer rule: no imports from api/, web/, shop/, or cache/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User
from core.errors import Conflict
from core.models import Page, page_offset

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False),
    Column("phone", String(50)),
    Column("address", Text),
    Column("nic", String(50)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Fields a partial update may touch. Anything else is dropped before SQL.
_UPDATABLE_FIELDS = frozenset({"name", "email", "role", "phone", "address", "nic", "hashed_password"})


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///garage.db")
        user_id = store.create_user(User(name="Ana", email="ana@x.com", role="owner", hashed_password=...))
        user = store.get_by_email("ana@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises Conflict if the email is already registered. The UNIQUE index
        is the source of truth, so two concurrent registrations for the same
        email cannot both succeed.
        """
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        name=user.name,
                        email=normalize_email(user.email),
                        hashed_password=user.hashed_password,
                        role=user.role,
                        phone=user.phone,
                        address=user.address,
                        nic=user.nic,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise Conflict("User already exists") from exc

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_mechanic_by_nic(self, nic: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.role == "mechanic") & (_users.c.nic == nic.strip()))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(
        self,
        page: int = 1,
        limit: int = 10,
        search: str = "",
        role: Optional[str] = None,
    ) -> Page[User]:
        """Return one page of users, newest first.

        search matches name or email case-insensitively; role is an exact filter.
        """
        conditions = []
        if role:
            conditions.append(_users.c.role == role)
        if search:
            conditions.append(
                or_(
                    _users.c.name.icontains(search, autoescape=True),
                    _users.c.email.icontains(search, autoescape=True),
                )
            )
        query = _users.select()
        count_query = select(func.count()).select_from(_users)
        if conditions:
            query = query.where(*conditions)
            count_query = count_query.where(*conditions)
        with self.engine.connect() as conn:
            total = conn.execute(count_query).scalar() or 0
            rows = conn.execute(
                query.order_by(_users.c.created_at.desc(), _users.c.id.desc())
                .offset(page_offset(page, limit))
                .limit(limit)
            ).fetchall()
        return Page(items=[_row_to_user(r) for r in rows], page=page, limit=limit, total=total)

    def update_user(self, user_id: int, **fields) -> User | None:
        """Apply a partial update and return the refreshed user.

        Only keys in _UPDATABLE_FIELDS are written; updated_at is always
        refreshed. Returns None if user_id does not exist. Raises Conflict if
        the new email belongs to another account.
        """
        values = {
            k: v
            for k, v in fields.items()
            if k in _UPDATABLE_FIELDS and (v is not None or _users.c[k].nullable)
        }
        if "email" in values:
            values["email"] = normalize_email(values["email"])
        values["updated_at"] = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
                conn.commit()
        except IntegrityError as exc:
            raise Conflict("Another user already uses that email") from exc
        if result.rowcount == 0:
            return None
        return self.get_by_id(user_id)

    def set_password(self, user_id: int, hashed_password: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(hashed_password=hashed_password, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        phone=row.phone,
        address=row.address,
        nic=row.nic,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
