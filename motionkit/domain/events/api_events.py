"""Domain Events related to upstream calls, caching and pagination.

Events are dispatched to the debug log by the services that raise them; see
``dispatch_event``.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# --- Upstream Call Events ---

@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an upstream call succeeds."""
    endpoint: str
    attempts: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when an upstream call fails definitively."""
    endpoint: str
    attempts: int
    error_type: str
    error_message: str
    status: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed upstream call."""
    endpoint: str
    attempt_number: int
    delay_ms: float
    status: Optional[int] = None
    from_retry_after: bool = False
    timestamp: float = field(default_factory=time.time)


# --- Cache Events ---

@dataclass
class CacheEntryEvicted(DomainEvent):
    """Event triggered when the LRU entry is dropped to make room."""
    key: str
    size: int
    timestamp: float = field(default_factory=time.time)


# --- Pagination Events ---

@dataclass
class PaginationStopped(DomainEvent):
    """Event triggered when pagination ends early for a non-exhaustion reason."""
    endpoint: str
    reason: str  # 'cursor_not_advancing', 'max_items', 'max_pages', 'page_failed', 'page_rejected'
    page_count: int
    total_items: int
    timestamp: float = field(default_factory=time.time)


def dispatch_event(event: Any) -> None:
    """Publishes an event. Currently events only go to the debug log."""
    logger.debug(f"EVENT: {type(event).__name__}", extra={"fields": asdict(event)})
