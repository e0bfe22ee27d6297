"""Cursor pagination over Motion API list endpoints.

``Paginator.fetch_all_pages`` drives a caller-supplied page fetcher through
the retry service and the response normalizer, accumulating items until the
collection is exhausted or a bound is hit:

- ``max_items``: memory bound on the accumulated list
- ``max_pages`` (never above ``absolute_max_pages``): loop bound
- ``max_page_size``: per-page cap against a runaway page
- a cursor that does not advance ends the loop

Anomalies and page-fetch failures end pagination with a partial result and
a log record; they never raise. Cancellation does raise.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from motionkit.domain.errors import OperationCancelledError
from motionkit.domain.events.api_events import PaginationStopped, dispatch_event
from motionkit.domain.interfaces.motion_api import PageFetcher
from motionkit.domain.models.common import (
    Cursor, OversizedPagePolicy, PaginatedResponse, UnwrappedResponse
)
from motionkit.infrastructure.normalization.response_normalizer import ResponseNormalizer
from motionkit.infrastructure.resilience.api_retry import ApiRetryService
from motionkit.infrastructure.resilience.cancellation import CancellationToken

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGE_SIZE = 200
DEFAULT_ABSOLUTE_MAX_PAGES = 100
DEFAULT_MAX_PAGES = 50


@dataclass(frozen=True)
class PaginationLimits:
    """Bounds applied to every ``fetch_all_pages`` call."""
    max_page_size: int = DEFAULT_MAX_PAGE_SIZE
    absolute_max_pages: int = DEFAULT_ABSOLUTE_MAX_PAGES
    default_max_pages: int = DEFAULT_MAX_PAGES
    default_max_items: int = DEFAULT_MAX_PAGE_SIZE * 10
    oversized_page_policy: OversizedPagePolicy = OversizedPagePolicy.TRUNCATE

    def __post_init__(self) -> None:
        for name in ("max_page_size", "absolute_max_pages", "default_max_pages", "default_max_items"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")


class Paginator:
    """Accumulates cursor-paginated collections within memory and loop bounds."""

    def __init__(
        self,
        normalizer: ResponseNormalizer,
        retry_service: Optional[ApiRetryService] = None,
        limits: Optional[PaginationLimits] = None,
    ):
        """Initializes the paginator.

        Args:
            normalizer: Maps each raw page to items + meta.
            retry_service: Wraps each page fetch; None fetches once per page.
            limits: Page/item bounds and the oversized-page policy.
        """
        self.normalizer = normalizer
        self.retry_service = retry_service
        self.limits = limits or PaginationLimits()

    async def _fetch_raw(
        self,
        page_fetcher: PageFetcher,
        cursor: Optional[Cursor],
        endpoint_id: str,
        cancel_token: Optional[CancellationToken],
    ) -> Any:
        if self.retry_service is None:
            return await page_fetcher(cursor)
        return await self.retry_service.execute_with_retry(
            page_fetcher, cursor, endpoint_name=endpoint_id, cancel_token=cancel_token
        )

    async def fetch_single_page(
        self,
        page_fetcher: PageFetcher,
        endpoint_id: str,
        cursor: Optional[Cursor] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> UnwrappedResponse:
        """Fetches and normalizes one page. Fetch errors propagate."""
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        raw = await self._fetch_raw(page_fetcher, cursor, endpoint_id, cancel_token)
        return self.normalizer.unwrap(raw, endpoint_id)

    def _stop(self, endpoint_id: str, reason: str, page_count: int, total_items: int) -> str:
        dispatch_event(PaginationStopped(endpoint=endpoint_id, reason=reason, page_count=page_count, total_items=total_items))
        return reason

    async def fetch_all_pages(
        self,
        page_fetcher: PageFetcher,
        endpoint_id: str,
        max_pages: Optional[int] = None,
        max_items: Optional[int] = None,
        page_size: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
        log_progress: bool = True,
    ) -> PaginatedResponse:
        """Drains a cursor-paginated collection.

        Args:
            page_fetcher: ``async (cursor) -> raw payload``; the first call gets None.
            endpoint_id: Registered response shape of the route.
            max_pages: Page limit for this call, clamped to ``absolute_max_pages``.
            max_items: Item limit for this call.
            page_size: Expected page size; lowers the per-page cap when smaller.
            cancel_token: Checked before every page fetch and retry wait.
            log_progress: Emit per-page debug records.

        Returns:
            PaginatedResponse with ``total_fetched == len(items)``.

        Raises:
            ValueError: If a limit argument is below 1.
            OperationCancelledError: If ``cancel_token`` fires.
        """
        limits = self.limits
        for name, value in (("max_pages", max_pages), ("max_items", max_items), ("page_size", page_size)):
            if value is not None and value < 1:
                raise ValueError(f"{name} must be at least 1, got {value}")
        page_limit = min(max_pages if max_pages is not None else limits.default_max_pages, limits.absolute_max_pages)
        item_limit = max_items if max_items is not None else limits.default_max_items
        page_cap = limits.max_page_size if page_size is None else min(page_size, limits.max_page_size)

        items: List[Any] = []
        cursor: Optional[Cursor] = None
        page_count = 0
        has_more = True
        stop_reason: Optional[str] = None
        error: Optional[BaseException] = None

        while has_more and page_count < page_limit:
            # Pre-fetch early termination once the item budget is spent
            if len(items) >= item_limit:
                has_more = False
                stop_reason = self._stop(endpoint_id, "max_items", page_count, len(items))
                break

            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            if log_progress and page_count > 0:
                logger.debug(
                    f"Fetching page {page_count + 1} for {endpoint_id}",
                    extra={"fields": {"endpoint": endpoint_id, "cursor": cursor, "pageCount": page_count, "itemsSoFar": len(items)}},
                )

            try:
                raw = await self._fetch_raw(page_fetcher, cursor, endpoint_id, cancel_token)
            except OperationCancelledError:
                raise
            except Exception as e:
                logger.error(
                    f"Failed to fetch page {page_count + 1} for {endpoint_id}",
                    extra={"fields": {"endpoint": endpoint_id, "error": str(e), "pageCount": page_count, "cursor": cursor}},
                )
                # Return what we have so far
                error = e
                has_more = False
                stop_reason = self._stop(endpoint_id, "page_failed", page_count, len(items))
                break

            page = self.normalizer.unwrap(raw, endpoint_id)
            page_items = page.data

            if len(page_items) > page_cap:
                if limits.oversized_page_policy is OversizedPagePolicy.REJECT:
                    logger.error(
                        f"Page size {len(page_items)} exceeds maximum allowed {page_cap}, rejecting page",
                        extra={"fields": {"endpoint": endpoint_id, "pageNumber": page_count + 1, "pageSize": len(page_items), "maxPageSize": page_cap}},
                    )
                    has_more = False
                    stop_reason = self._stop(endpoint_id, "page_rejected", page_count, len(items))
                    break
                logger.warning(
                    f"Page size {len(page_items)} exceeds maximum allowed {page_cap}, truncating",
                    extra={"fields": {"endpoint": endpoint_id, "pageNumber": page_count + 1, "originalSize": len(page_items), "truncatedSize": page_cap}},
                )
                page_items = page_items[:page_cap]

            if len(items) + len(page_items) > item_limit:
                remaining = item_limit - len(items)
                items.extend(page_items[:remaining])
                logger.warning(
                    f"Memory limit reached for {endpoint_id}, stopping pagination",
                    extra={"fields": {"endpoint": endpoint_id, "totalItems": len(items), "maxItems": item_limit, "pageCount": page_count + 1}},
                )
                has_more = False
                stop_reason = self._stop(endpoint_id, "max_items", page_count + 1, len(items))
            else:
                items.extend(page_items)
            page_count += 1

            next_cursor = page.meta.next_cursor if page.meta is not None else None
            if next_cursor:
                if next_cursor == cursor:
                    logger.warning(
                        f"Cursor not advancing for {endpoint_id}, stopping pagination",
                        extra={"fields": {"endpoint": endpoint_id, "oldCursor": cursor, "newCursor": next_cursor, "pageCount": page_count}},
                    )
                    has_more = False
                    stop_reason = self._stop(endpoint_id, "cursor_not_advancing", page_count, len(items))
                else:
                    cursor = next_cursor
            else:
                has_more = False

            if not page.data:
                has_more = False

            if log_progress:
                logger.debug(
                    f"Page {page_count} fetched for {endpoint_id}",
                    extra={"fields": {"endpoint": endpoint_id, "pageItems": len(page_items), "totalItems": len(items), "hasMore": has_more, "nextCursor": cursor}},
                )

        if has_more and page_count >= page_limit:
            logger.warning(
                f"Reached maximum page limit for {endpoint_id}",
                extra={"fields": {"endpoint": endpoint_id, "maxPages": page_limit, "totalItems": len(items)}},
            )
            stop_reason = self._stop(endpoint_id, "max_pages", page_count, len(items))

        return PaginatedResponse(
            items=items,
            next_cursor=cursor,
            has_more=has_more,
            total_fetched=len(items),
            page_count=page_count,
            stop_reason=stop_reason,
            error=error,
        )
