"""Interface for the upstream Motion API transport.

The core only names routes; it consumes raw decoded payloads returned by
an implementation of this port (or by a page fetcher built on top of it).
"""

import abc
from typing import Any, Awaitable, Callable, Dict, Optional

from ..models.common import Cursor

# Fetches one page given the cursor of the previous page (None for the first page).
PageFetcher = Callable[[Optional[Cursor]], Awaitable[Any]]


class MotionApi(abc.ABC):
    """Abstract transport for the Motion REST API."""

    @abc.abstractmethod
    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Performs a GET and returns the decoded JSON body.

        Args:
            path: Route relative to the API base URL (e.g. '/workspaces').
            params: Optional query parameters; None values are dropped.

        Raises:
            UpstreamHTTPError: On a non-2xx response or a transport failure.
        """

    @abc.abstractmethod
    async def send_json(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Sends a request with an optional JSON body (POST, PATCH, DELETE).

        Returns:
            The decoded JSON body, or None when the response has no body.

        Raises:
            UpstreamHTTPError: On a non-2xx response or a transport failure.
        """

    @abc.abstractmethod
    async def aclose(self) -> None:
        """Releases the underlying connection pool."""
