"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in shop/models.py -- dataclasses own domain shape; stores and routes do the work.

Layer rule: no imports from api/, web/, shop/, or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    owner = "owner"
    receptionist = "receptionist"
    mechanic = "mechanic"
    customer = "customer"


ROLES: tuple[str, ...] = tuple(r.value for r in Role)


@dataclass
class User:
    """A staff member or customer account.

    hashed_password is an internal field. Response shaping strips it, so it
    never leaves the process in an API response.

    id is None before the record is written to the database.
    """

    name: str
    email: str
    role: str  # "owner" | "receptionist" | "mechanic" | "customer"
    hashed_password: str = ""
    phone: Optional[str] = None
    address: Optional[str] = None
    nic: Optional[str] = None  # national identity card number
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class Identity:
    """The caller resolved from a verified bearer token.

    Built from token claims alone -- no database round trip per request.
    """

    id: int
    role: str
    name: str = ""
    email: str = ""

    def claims(self) -> dict:
        return {"id": self.id, "role": self.role, "name": self.name, "email": self.email}
