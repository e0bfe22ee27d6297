"""Motion REST API client.

API docs: https://docs.usemotion.com/
Auth: ``X-API-Key`` header. Rate limiting is signalled with 429 and a
Retry-After header.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from motionkit.domain.errors import UpstreamHTTPError
from motionkit.domain.interfaces.motion_api import MotionApi
from motionkit.infrastructure.resilience.api_retry import parse_retry_after

logger = logging.getLogger(__name__)

API_BASE = "https://api.usemotion.com/v1"
DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


def _error_message(response: httpx.Response) -> str:
    """Upstream error text: the JSON ``message`` field when there is one."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


class MotionHttpClient(MotionApi):
    """Thin async transport; retries and normalization live above it."""

    def __init__(
        self,
        api_key: str,
        base_url: str = API_BASE,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError("MOTION_API_KEY is required to talk to the Motion API")
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"X-API-Key": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        logger.info("Initializing Motion API client", extra={"fields": {"baseUrl": self.base_url}})

    async def __aenter__(self) -> "MotionHttpClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_json(self, path: str, params: Optional[dict] = None) -> Any:
        """GET ``path`` and return the decoded body.

        Raises:
            UpstreamHTTPError: status set for non-2xx responses, None for
                transport failures (DNS, connect, timeout).
        """
        return await self.send_json("GET", path, params=params)

    async def send_json(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        body: Optional[dict] = None,
    ) -> Any:
        """Sends one request and returns the decoded body (None for an empty body)."""
        query = {k: v for k, v in (params or {}).items() if v is not None}
        try:
            response = await self._client.request(method, path, params=query, json=body)
        except httpx.TransportError as e:
            logger.error(
                "Motion API request failed before a response",
                extra={"fields": {"url": path, "method": method, "errorMessage": str(e)}},
            )
            raise UpstreamHTTPError(None, f"Network error calling {path}: {e}", context={"url": path}) from e

        if response.is_success:
            logger.info(
                "Motion API response successful",
                extra={"fields": {"url": path, "method": method, "status": response.status_code}},
            )
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                # Undecodable body is handed on as text; the normalizer degrades it to an empty page.
                logger.warning(f"Motion API returned non-JSON body for {path}: {e}")
                return response.text

        message = _error_message(response)
        retry_after = parse_retry_after(response.headers.get("retry-after"))
        logger.error(
            "Motion API request failed",
            extra={"fields": {
                "url": path, "method": method, "status": response.status_code,
                "statusText": response.reason_phrase, "apiMessage": message,
            }},
        )
        raise UpstreamHTTPError(response.status_code, message, retry_after=retry_after, context={"url": path})
