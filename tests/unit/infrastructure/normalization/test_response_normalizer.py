import logging

import pytest

from motionkit.domain.models.common import EndpointShape
from motionkit.infrastructure.normalization.response_normalizer import (
    DEFAULT_ENDPOINT_SHAPES, EndpointRegistry, ResponseNormalizer
)


def test_wrapped_tasks_are_unwrapped_with_meta(normalizer):
    payload = {"meta": {"nextCursor": "abc", "pageSize": 2}, "tasks": [{"id": 1}, {"id": 2}]}

    page = normalizer.unwrap(payload, "tasks")

    assert page.data == [{"id": 1}, {"id": 2}]
    assert page.meta.next_cursor == "abc"
    assert page.meta.page_size == 2


def test_direct_workspaces_are_returned_as_is(normalizer):
    page = normalizer.unwrap([{"id": "w1"}], "workspaces")
    assert page.data == [{"id": "w1"}]
    assert page.meta is None


def test_recurring_tasks_use_the_tasks_key(normalizer):
    page = normalizer.unwrap({"meta": {}, "tasks": [{"id": "r1"}]}, "recurring-tasks")
    assert page.data == [{"id": "r1"}]
    assert page.meta.next_cursor is None


def test_wrong_type_under_resource_key_yields_empty_page(normalizer, caplog):
    with caplog.at_level(logging.WARNING):
        page = normalizer.unwrap({"tasks": "oops"}, "tasks")

    assert page.data == []
    assert page.meta is None
    assert "Expected array for tasks" in caplog.text


@pytest.mark.parametrize("payload", [None, "text", 42, [{"id": 1}]])
def test_wrapped_endpoint_with_non_object_payload_yields_empty_page(normalizer, payload):
    assert normalizer.unwrap(payload, "projects").data == []


@pytest.mark.parametrize("payload", [None, {"workspaces": []}, "text"])
def test_direct_endpoint_with_non_array_payload_yields_empty_page(normalizer, payload):
    assert normalizer.unwrap(payload, "workspaces").data == []


def test_unknown_endpoint_falls_back_to_direct_array(normalizer):
    assert normalizer.unwrap([1, 2], "labels").data == [1, 2]


def test_unknown_endpoint_scans_known_keys_in_order(normalizer, caplog):
    payload = {"meta": {"nextCursor": "n"}, "users": [{"id": "u"}], "items": [{"id": "i"}]}

    with caplog.at_level(logging.WARNING):
        page = normalizer.unwrap(payload, "labels")

    assert page.data == [{"id": "i"}]
    assert page.meta.next_cursor == "n"
    assert "Unknown API endpoint pattern: labels" in caplog.text


def test_unknown_endpoint_without_array_yields_empty_page(normalizer):
    assert normalizer.unwrap({"message": "hi"}, "labels").data == []
    assert normalizer.unwrap(17, "labels").data == []


def test_runtime_registration_changes_shape(normalizer):
    assert normalizer.unwrap([{"id": "s"}], "statuses").data == [{"id": "s"}]

    normalizer.register_endpoint("statuses", is_wrapped=True, resource_key="statuses")

    assert normalizer.unwrap([{"id": "s"}], "statuses").data == []
    assert normalizer.unwrap({"statuses": [{"id": "s"}]}, "statuses").data == [{"id": "s"}]
    assert normalizer.supports_pagination("statuses") is True


def test_registering_wrapped_shape_requires_resource_key():
    with pytest.raises(ValueError):
        EndpointRegistry().register("labels", is_wrapped=True)


def test_registries_do_not_share_state():
    first = EndpointRegistry()
    first.register("labels", is_wrapped=False)
    assert "labels" in first
    assert "labels" not in EndpointRegistry()
    assert "labels" not in DEFAULT_ENDPOINT_SHAPES


def test_custom_registry_is_used():
    registry = EndpointRegistry({"labels": EndpointShape(is_wrapped=True, resource_key="labels", api_name="Labels")})
    normalizer = ResponseNormalizer(registry)

    assert normalizer.resource_key("labels") == "labels"
    assert normalizer.resource_key("tasks") is None
    assert normalizer.unwrap({"labels": ["x"]}, "labels").data == ["x"]


def test_supports_pagination_only_for_wrapped_endpoints(normalizer):
    assert normalizer.supports_pagination("tasks") is True
    assert normalizer.supports_pagination("users") is False
    assert normalizer.supports_pagination("unknown") is False
