"""WorkspaceResolver: turns an id/name reference into a canonical workspace.

Precedence:

1. ``workspace_id`` with ``validate_access``: must match an accessible workspace.
2. ``workspace_id`` alone: returned as a placeholder, no round trip.
3. ``workspace_name``: exact match, then case-insensitive match.
4. Nothing given and ``fallback_to_default``: best-ranked workspace.
5. Nothing given, no fallback: error.

Every failure carries the requested reference and the available
alternatives in ``error.context``.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from motionkit.domain.errors import (
    ErrorCode, NoDefaultWorkspaceError, OperationCancelledError, WorkspaceError, WorkspaceNotFoundError
)
from motionkit.domain.models.common import Workspace

logger = logging.getLogger(__name__)

# Scores a candidate default workspace; the highest score wins, ties keep list order.
WorkspaceRanking = Callable[[Workspace], float]


def prefer_individual(workspace: Workspace) -> float:
    """Default ranking: personal (INDIVIDUAL) workspaces before team workspaces."""
    return 1.0 if workspace.type.upper() == "INDIVIDUAL" else 0.0


def _summaries(workspaces: List[Workspace]) -> List[Dict[str, str]]:
    return [{"id": w.id, "name": w.name} for w in workspaces]


class WorkspaceResolver:
    """Resolves workspace references against the (cached) workspace list."""

    def __init__(self, motion_service: Any, ranking: WorkspaceRanking = prefer_individual):
        """Initializes the resolver.

        Args:
            motion_service: Anything with ``async get_workspaces() -> List[Workspace]``.
            ranking: Scores candidates when picking a default workspace.
        """
        if motion_service is None:
            raise ValueError("motion_service is required for WorkspaceResolver")
        self.motion_service = motion_service
        self.ranking = ranking

    async def resolve_workspace(
        self,
        workspace_id: Optional[str] = None,
        workspace_name: Optional[str] = None,
        fallback_to_default: bool = True,
        validate_access: bool = False,
    ) -> Workspace:
        """Resolves a workspace reference.

        Raises:
            WorkspaceNotFoundError: The id/name did not match.
            NoDefaultWorkspaceError: No reference and no default available.
            WorkspaceError: The workspace list could not be fetched.
        """
        logger.debug(
            "Starting workspace resolution",
            extra={"fields": {
                "workspaceId": workspace_id, "workspaceName": workspace_name,
                "fallbackToDefault": fallback_to_default, "validateAccess": validate_access,
            }},
        )
        try:
            if workspace_id:
                if validate_access:
                    resolved = await self._resolve_by_id(workspace_id)
                else:
                    resolved = Workspace(id=workspace_id, name=workspace_id, type="unknown")
            elif workspace_name:
                resolved = await self._resolve_by_name(workspace_name)
            elif fallback_to_default:
                resolved = await self._resolve_default()
            else:
                raise NoDefaultWorkspaceError(
                    "No workspace specified and fallback to default is disabled",
                    context={"fallbackToDefault": False},
                )
        except WorkspaceError as e:
            logger.error(
                "Failed to resolve workspace",
                extra={"fields": {"error": e.message, "code": e.code, "workspaceId": workspace_id, "workspaceName": workspace_name}},
            )
            raise

        logger.info(
            "Workspace resolved successfully",
            extra={"fields": {"resolvedId": resolved.id, "resolvedName": resolved.name}},
        )
        return resolved

    async def _fetch_workspaces(self, reference: Dict[str, Any]) -> List[Workspace]:
        try:
            return list(await self.motion_service.get_workspaces())
        except OperationCancelledError:
            raise
        except Exception as e:
            raise WorkspaceError(
                f"Failed to fetch workspaces: {e}",
                code=ErrorCode.MOTION_API_ERROR,
                context={**reference, "cause": str(e)},
            ) from e

    async def _resolve_by_id(self, workspace_id: str) -> Workspace:
        workspaces = await self._fetch_workspaces({"workspaceId": workspace_id})
        for workspace in workspaces:
            if workspace.id == workspace_id:
                return workspace
        raise WorkspaceNotFoundError(
            f'Workspace with ID "{workspace_id}" not found',
            context={"workspaceId": workspace_id, "availableWorkspaces": _summaries(workspaces)},
        )

    async def _resolve_by_name(self, workspace_name: str) -> Workspace:
        workspaces = await self._fetch_workspaces({"requestedName": workspace_name})

        for workspace in workspaces:
            if workspace.name == workspace_name:
                return workspace

        lowered = workspace_name.lower()
        for workspace in workspaces:
            if workspace.name.lower() == lowered:
                return workspace

        available = [w.name for w in workspaces]
        raise WorkspaceNotFoundError(
            f'Workspace "{workspace_name}" not found. Available workspaces: {", ".join(available)}',
            context={"requestedName": workspace_name, "availableNames": available, "availableWorkspaces": _summaries(workspaces)},
        )

    async def _resolve_default(self) -> Workspace:
        workspaces = await self._fetch_workspaces({})
        if not workspaces:
            raise NoDefaultWorkspaceError("No workspaces available", context={"fallbackToDefault": True, "availableCount": 0})

        best_index = 0
        best_score = self.ranking(workspaces[0])
        for index, candidate in enumerate(workspaces[1:], start=1):
            score = self.ranking(candidate)
            if score > best_score:
                best_index, best_score = index, score

        chosen = workspaces[best_index]
        logger.info(
            "Using default workspace",
            extra={"fields": {"workspaceId": chosen.id, "workspaceName": chosen.name, "workspaceType": chosen.type, "score": best_score}},
        )
        return chosen
