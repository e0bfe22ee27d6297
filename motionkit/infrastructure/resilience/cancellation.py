"""Cooperative cancellation for retry sleeps and page loops.

A ``CancellationToken`` is checked before every attempt and every page fetch,
and the retry sleep races against it so a cancelled caller does not sit out
a long backoff.
"""

import asyncio
import logging
from typing import Optional

from motionkit.domain.errors import OperationCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Signals that the caller no longer wants the result."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled by caller") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
            logger.debug(f"Cancellation requested: {reason}")

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(
                f"Operation cancelled: {self.reason}", context={"reason": self.reason}
            )

    async def wait(self) -> None:
        await self._event.wait()


async def sleep_or_cancel(delay_s: float, token: Optional[CancellationToken] = None) -> None:
    """Sleeps for ``delay_s`` seconds, returning early with an error if ``token`` fires.

    Raises:
        OperationCancelledError: If the token is (or becomes) cancelled.
    """
    if token is None:
        await asyncio.sleep(delay_s)
        return
    token.raise_if_cancelled()
    try:
        await asyncio.wait_for(token.wait(), timeout=delay_s)
    except asyncio.TimeoutError:
        return
    token.raise_if_cancelled()
