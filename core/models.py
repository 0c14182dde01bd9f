"""
core/models.py -- Layer-neutral data containers shared by every store.

Pure data, zero logic. shop/ and auth/ both return Page objects from their
list_* methods so the route layer builds the paginated envelope the same way
for every entity.
"""

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of an offset-paginated listing.

    total is the size of the full filtered result, independent of page/limit.
    """

    items: list[T] = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0


def page_offset(page: int, limit: int) -> int:
    """Return the row offset for a 1-based page number."""
    return (max(page, 1) - 1) * limit
