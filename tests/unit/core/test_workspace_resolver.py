import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from motionkit.core.services.motion_service import MotionService
from motionkit.core.services.workspace_resolver import WorkspaceResolver, prefer_individual
from motionkit.domain.errors import (
    ErrorCode, NoDefaultWorkspaceError, OperationCancelledError, UpstreamHTTPError, WorkspaceError, WorkspaceNotFoundError
)
from motionkit.domain.models.common import Workspace


@pytest.fixture
def workspaces(workspace_payloads):
    return [Workspace.from_payload(p) for p in workspace_payloads]


@pytest.fixture
def mock_motion_service(workspaces):
    mock = MagicMock(spec=MotionService)
    mock.get_workspaces = AsyncMock(return_value=workspaces)
    return mock


@pytest.fixture
def resolver(mock_motion_service):
    return WorkspaceResolver(mock_motion_service)


def _resolve(resolver, **kwargs):
    return asyncio.run(resolver.resolve_workspace(**kwargs))


def test_id_without_validation_is_trusted(resolver, mock_motion_service):
    workspace = _resolve(resolver, workspace_id="ws-anything")

    assert workspace == Workspace(id="ws-anything", name="ws-anything", type="unknown")
    mock_motion_service.get_workspaces.assert_not_called()


def test_id_with_validation_returns_canonical_record(resolver):
    assert _resolve(resolver, workspace_id="ws-ops", validate_access=True).name == "Ops"


def test_unknown_id_with_validation_raises_with_alternatives(resolver):
    with pytest.raises(WorkspaceNotFoundError) as excinfo:
        _resolve(resolver, workspace_id="ws-missing", validate_access=True)

    context = excinfo.value.context
    assert context["workspaceId"] == "ws-missing"
    assert {"id": "ws-me", "name": "My Space"} in context["availableWorkspaces"]


def test_id_takes_precedence_over_name(resolver):
    assert _resolve(resolver, workspace_id="ws-ops", workspace_name="My Space").id == "ws-ops"


def test_name_exact_match(resolver):
    assert _resolve(resolver, workspace_name="Acme Team").id == "ws-team"


def test_name_case_insensitive_match(resolver):
    assert _resolve(resolver, workspace_name="my space").id == "ws-me"


def test_exact_match_wins_over_case_insensitive():
    service = MagicMock(spec=MotionService)
    service.get_workspaces = AsyncMock(return_value=[Workspace("a", "ops"), Workspace("b", "Ops")])

    assert _resolve(WorkspaceResolver(service), workspace_name="Ops").id == "b"


def test_unknown_name_lists_available_names(resolver):
    with pytest.raises(WorkspaceNotFoundError) as excinfo:
        _resolve(resolver, workspace_name="Marketing")

    error = excinfo.value
    assert error.code == ErrorCode.WORKSPACE_NOT_FOUND
    assert "Acme Team, My Space, Ops" in error.message
    assert error.context["requestedName"] == "Marketing"
    assert error.context["availableNames"] == ["Acme Team", "My Space", "Ops"]


def test_default_prefers_individual_workspace(resolver):
    assert _resolve(resolver).id == "ws-me"


def test_default_falls_back_to_first_workspace_without_individual():
    service = MagicMock(spec=MotionService)
    service.get_workspaces = AsyncMock(return_value=[Workspace("t1", "One", "TEAM"), Workspace("t2", "Two", "TEAM")])

    assert _resolve(WorkspaceResolver(service)).id == "t1"


def test_custom_ranking(mock_motion_service):
    resolver = WorkspaceResolver(mock_motion_service, ranking=lambda w: 1.0 if w.name == "Ops" else 0.0)
    assert _resolve(resolver).id == "ws-ops"


def test_empty_collection_with_fallback_raises_no_default():
    service = MagicMock(spec=MotionService)
    service.get_workspaces = AsyncMock(return_value=[])

    with pytest.raises(NoDefaultWorkspaceError) as excinfo:
        _resolve(WorkspaceResolver(service))

    assert excinfo.value.code == ErrorCode.NO_DEFAULT_WORKSPACE


def test_no_reference_without_fallback_raises(resolver, mock_motion_service):
    with pytest.raises(NoDefaultWorkspaceError):
        _resolve(resolver, fallback_to_default=False)

    mock_motion_service.get_workspaces.assert_not_called()


def test_empty_strings_count_as_absent(resolver):
    assert _resolve(resolver, workspace_id="", workspace_name="").id == "ws-me"


def test_fetch_failure_is_wrapped(mock_motion_service, resolver):
    mock_motion_service.get_workspaces.side_effect = UpstreamHTTPError(503, "unavailable")

    with pytest.raises(WorkspaceError) as excinfo:
        _resolve(resolver, workspace_name="Ops")

    assert excinfo.value.code == ErrorCode.MOTION_API_ERROR
    assert excinfo.value.context["requestedName"] == "Ops"
    assert isinstance(excinfo.value.__cause__, UpstreamHTTPError)


def test_cancellation_is_not_wrapped(mock_motion_service, resolver):
    mock_motion_service.get_workspaces.side_effect = OperationCancelledError("stop")

    with pytest.raises(OperationCancelledError):
        _resolve(resolver)


def test_prefer_individual_scores():
    assert prefer_individual(Workspace("a", "A", "individual")) == 1.0
    assert prefer_individual(Workspace("b", "B", "TEAM")) == 0.0


def test_requires_motion_service():
    with pytest.raises(ValueError):
        WorkspaceResolver(None)
