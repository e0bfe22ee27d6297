"""Defines common Value Objects used across different domain contexts.

These objects represent the simple values and records that flow between the
cache, normalizer, paginator and resolver: cache keys, endpoint ids, cursors,
normalized pages and workspaces.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NewType, Optional, TypedDict

# === Core Value Objects ===

CacheKey = NewType("CacheKey", str)        # Caller-built key, must encode scope/filters
Cursor = NewType("Cursor", str)            # Opaque upstream pagination token

# === Response Normalization Context ===

@dataclass(frozen=True)
class EndpointShape:
    """How a list endpoint lays out its payload.

    Wrapped endpoints return ``{"meta": {...}, <resource_key>: [...]}``;
    direct endpoints return the bare array.
    """
    is_wrapped: bool
    resource_key: Optional[str] = None
    api_name: str = ""


@dataclass(frozen=True)
class PaginationMeta:
    """Pagination metadata carried by wrapped responses."""
    next_cursor: Optional[Cursor] = None
    page_size: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, meta: Dict[str, Any]) -> "PaginationMeta":
        """Builds meta leniently; unexpected value types are dropped, not raised."""
        next_cursor = meta.get("nextCursor")
        page_size = meta.get("pageSize")
        return cls(
            next_cursor=Cursor(str(next_cursor)) if next_cursor not in (None, "") else None,
            page_size=page_size if isinstance(page_size, int) and not isinstance(page_size, bool) else None,
            raw=dict(meta),
        )


@dataclass
class UnwrappedResponse:
    """Uniform result of normalizing one upstream list payload.

    ``data`` is always a list (possibly empty); ``meta`` is None for direct
    responses or when the upstream omitted it.
    """
    data: List[Any] = field(default_factory=list)
    meta: Optional[PaginationMeta] = None


# === Pagination Context ===

class OversizedPagePolicy(str, Enum):
    """What to do with a page larger than the per-page item cap."""
    TRUNCATE = "truncate"
    REJECT = "reject"


@dataclass
class PaginatedResponse:
    """Accumulated result of draining a cursor-paginated collection."""
    items: List[Any]
    next_cursor: Optional[Cursor]
    has_more: bool
    total_fetched: int
    page_count: int = 0
    # Why the loop ended early: max_items, max_pages, cursor_not_advancing,
    # page_failed or page_rejected. None when the collection was exhausted.
    stop_reason: Optional[str] = None
    error: Optional[BaseException] = None


# === Workspace Context ===

@dataclass(frozen=True)
class Workspace:
    """Canonical workspace record as resolved for one call chain."""
    id: str
    name: str
    type: str = "unknown"

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Workspace":
        return cls(
            id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            type=str(payload.get("type") or "unknown"),
        )


# --- Structured Data ---

class CacheStats(TypedDict):
    """Snapshot of cache occupancy and counters."""
    size: int
    max_size: int
    ttl_seconds: float
    hits: int
    misses: int
    evictions: int
    in_flight: int

