"""Motion API response normalization.

The Motion API is inconsistent about list payloads:

- some endpoints return a wrapped object ``{"meta": {...}, "<resource>": [...]}``
- others return the bare array ``[...]``

``ResponseNormalizer.unwrap`` maps both to an ``UnwrappedResponse`` using a
per-endpoint shape registry. Normalization never raises: a payload that does
not match the registered shape yields an empty page and a warning.
"""

import logging
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from motionkit.domain.models.common import EndpointShape, PaginationMeta, UnwrappedResponse

logger = logging.getLogger(__name__)

# Known response patterns of the Motion API list endpoints.
DEFAULT_ENDPOINT_SHAPES: Dict[str, EndpointShape] = {
    # Wrapped responses (with meta pagination)
    "tasks": EndpointShape(is_wrapped=True, resource_key="tasks", api_name="Tasks"),
    "projects": EndpointShape(is_wrapped=True, resource_key="projects", api_name="Projects"),
    "comments": EndpointShape(is_wrapped=True, resource_key="comments", api_name="Comments"),
    # Recurring tasks come back as { meta, tasks }, not { meta, recurringTasks }
    "recurring-tasks": EndpointShape(is_wrapped=True, resource_key="tasks", api_name="Recurring Tasks"),
    "custom-fields": EndpointShape(is_wrapped=True, resource_key="customFields", api_name="Custom Fields"),
    # Direct array responses (no wrapper)
    "schedules": EndpointShape(is_wrapped=False, api_name="Schedules"),
    "statuses": EndpointShape(is_wrapped=False, api_name="Statuses"),
    "workspaces": EndpointShape(is_wrapped=False, api_name="Workspaces"),
    "users": EndpointShape(is_wrapped=False, api_name="Users"),
}

# Scanned in order when an endpoint has no registered shape.
FALLBACK_RESOURCE_KEYS: Tuple[str, ...] = (
    "items", "tasks", "projects", "comments", "users",
    "workspaces", "schedules", "statuses", "customFields",
)


def _type_name(value: Any) -> str:
    return "null" if value is None else type(value).__name__


class EndpointRegistry:
    """Per-endpoint response shapes, seeded at startup and updatable at runtime."""

    def __init__(self, shapes: Optional[Mapping[str, EndpointShape]] = None):
        self._shapes: Dict[str, EndpointShape] = dict(DEFAULT_ENDPOINT_SHAPES if shapes is None else shapes)

    def __contains__(self, endpoint_id: str) -> bool:
        return endpoint_id in self._shapes

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._shapes))

    def get(self, endpoint_id: str) -> Optional[EndpointShape]:
        return self._shapes.get(endpoint_id)

    def register(self, endpoint_id: str, is_wrapped: bool, resource_key: Optional[str] = None) -> EndpointShape:
        """Adds or replaces the shape of ``endpoint_id``.

        Used to follow upstream schema drift without a restart.

        Raises:
            ValueError: If a wrapped shape is registered without a resource key.
        """
        if is_wrapped and not resource_key:
            raise ValueError(f"Wrapped endpoint '{endpoint_id}' needs a resource_key")
        shape = EndpointShape(is_wrapped=is_wrapped, resource_key=resource_key if is_wrapped else None, api_name=endpoint_id)
        previous = self._shapes.get(endpoint_id)
        self._shapes[endpoint_id] = shape
        logger.info(
            f"Updated API pattern for {endpoint_id}",
            extra={"fields": {
                "endpoint": endpoint_id, "isWrapped": is_wrapped, "resourceKey": shape.resource_key,
                "previous": None if previous is None else {"isWrapped": previous.is_wrapped, "resourceKey": previous.resource_key},
            }},
        )
        return shape


class ResponseNormalizer:
    """Maps heterogeneous upstream list payloads to ``UnwrappedResponse``."""

    def __init__(self, registry: Optional[EndpointRegistry] = None):
        self.registry = registry if registry is not None else EndpointRegistry()

    def register_endpoint(self, endpoint_id: str, is_wrapped: bool, resource_key: Optional[str] = None) -> EndpointShape:
        return self.registry.register(endpoint_id, is_wrapped, resource_key)

    def supports_pagination(self, endpoint_id: str) -> bool:
        """Only wrapped endpoints carry a meta object with a cursor."""
        shape = self.registry.get(endpoint_id)
        return bool(shape and shape.is_wrapped)

    def resource_key(self, endpoint_id: str) -> Optional[str]:
        shape = self.registry.get(endpoint_id)
        return shape.resource_key if shape else None

    def unwrap(self, payload: Any, endpoint_id: str) -> UnwrappedResponse:
        """Normalizes ``payload`` for ``endpoint_id``. Never raises.

        Args:
            payload: The decoded JSON body of one upstream response.
            endpoint_id: Selects the registered shape (e.g. 'tasks').

        Returns:
            UnwrappedResponse whose ``data`` is always a list.
        """
        shape = self.registry.get(endpoint_id)
        if shape is None:
            logger.warning(
                f"Unknown API endpoint pattern: {endpoint_id}",
                extra={"fields": {"endpoint": endpoint_id, "availablePatterns": list(self.registry)}},
            )
            return self._fallback_unwrap(payload, endpoint_id)
        if shape.is_wrapped:
            return self._unwrap_wrapped(payload, shape)
        return self._unwrap_direct(payload, shape)

    # --- Shape handlers ---

    def _unwrap_wrapped(self, payload: Any, shape: EndpointShape) -> UnwrappedResponse:
        name = shape.api_name or shape.resource_key
        if not isinstance(payload, dict):
            logger.warning(
                f"Expected wrapped response object for {name}",
                extra={"fields": {"endpoint": name, "receivedType": _type_name(payload)}},
            )
            return UnwrappedResponse()

        data = payload.get(shape.resource_key)
        meta = payload.get("meta")
        if not isinstance(data, list):
            logger.warning(
                f"Expected array for {shape.resource_key} in {name} response",
                extra={"fields": {
                    "endpoint": name, "resourceKey": shape.resource_key, "receivedType": _type_name(data),
                    "hasMetaField": meta is not None, "responseKeys": list(payload.keys()),
                }},
            )
            return UnwrappedResponse()

        return UnwrappedResponse(data=data, meta=self._parse_meta(meta))

    def _unwrap_direct(self, payload: Any, shape: EndpointShape) -> UnwrappedResponse:
        if not isinstance(payload, list):
            extra_fields: Dict[str, Any] = {"endpoint": shape.api_name, "receivedType": _type_name(payload)}
            if isinstance(payload, dict):
                extra_fields["responseKeys"] = list(payload.keys())
            logger.warning(f"Expected direct array response for {shape.api_name}", extra={"fields": extra_fields})
            return UnwrappedResponse()
        return UnwrappedResponse(data=payload)

    def _fallback_unwrap(self, payload: Any, endpoint_id: str) -> UnwrappedResponse:
        # Case 1: Direct array
        if isinstance(payload, list):
            logger.debug(
                f"Fallback: treating {endpoint_id} as direct array",
                extra={"fields": {"endpoint": endpoint_id, "itemCount": len(payload)}},
            )
            return UnwrappedResponse(data=payload)

        # Case 2: Wrapped response - try common resource keys
        if isinstance(payload, dict):
            for key in FALLBACK_RESOURCE_KEYS:
                candidate = payload.get(key)
                if isinstance(candidate, list):
                    logger.debug(
                        f"Fallback: found array at {key} for {endpoint_id}",
                        extra={"fields": {"endpoint": endpoint_id, "key": key, "itemCount": len(candidate), "hasMeta": "meta" in payload}},
                    )
                    return UnwrappedResponse(data=candidate, meta=self._parse_meta(payload.get("meta")))
            logger.warning(
                f"Fallback: no array found in object response for {endpoint_id}",
                extra={"fields": {"endpoint": endpoint_id, "responseKeys": list(payload.keys())}},
            )
            return UnwrappedResponse()

        # Case 3: Unexpected response
        logger.error(
            f"Fallback: unexpected response format for {endpoint_id}",
            extra={"fields": {"endpoint": endpoint_id, "responseType": _type_name(payload)}},
        )
        return UnwrappedResponse()

    @staticmethod
    def _parse_meta(meta: Any) -> Optional[PaginationMeta]:
        if isinstance(meta, dict):
            return PaginationMeta.from_payload(meta)
        return None
