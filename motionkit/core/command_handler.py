"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the work
to MotionService and WorkspaceResolver. Every handler returns True on success;
motionkit errors are shown through the UserInterface and reported as False so
the entry point can set the exit code.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from motionkit.core.services.motion_service import MotionService
from motionkit.core.services.workspace_resolver import WorkspaceResolver
from motionkit.domain.errors import MotionError
from motionkit.domain.interfaces.user_interface import UserInterface

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(self, motion_service: MotionService, resolver: WorkspaceResolver, ui: UserInterface):
        self.motion_service = motion_service
        self.resolver = resolver
        self.ui = ui

    async def _guard(self, command: str, action: Callable[[], Awaitable[Any]]) -> bool:
        try:
            await action()
            return True
        except MotionError as e:
            logger.error(f"Command '{command}' failed: {e}", extra={"fields": e.to_dict()})
            self.ui.display_error(str(e), context=e.context, code=e.code)
            return False

    async def aclose(self) -> None:
        """Releases the upstream connection pool."""
        await self.motion_service.api.aclose()

    async def handle_workspaces(self) -> bool:
        logger.info("Handling 'workspaces' command")

        async def action() -> None:
            self.ui.display_workspaces(await self.motion_service.get_workspaces())

        return await self._guard("workspaces", action)

    async def handle_resolve(
        self,
        workspace_id: Optional[str] = None,
        workspace_name: Optional[str] = None,
        fallback_to_default: bool = True,
        validate_access: bool = False,
    ) -> bool:
        logger.info(f"Handling 'resolve' command for id={workspace_id!r} name={workspace_name!r}")

        async def action() -> None:
            workspace = await self.resolver.resolve_workspace(
                workspace_id=workspace_id,
                workspace_name=workspace_name,
                fallback_to_default=fallback_to_default,
                validate_access=validate_access,
            )
            self.ui.display_workspaces([workspace], title="Resolved workspace")

        return await self._guard("resolve", action)

    async def handle_projects(self, workspace_name: Optional[str] = None) -> bool:
        logger.info(f"Handling 'projects' command for workspace {workspace_name or '<default>'}")

        async def action() -> None:
            workspace = await self.resolver.resolve_workspace(workspace_name=workspace_name)
            projects = await self.motion_service.get_projects(workspace.id)
            self.ui.display_projects(projects, workspace)

        return await self._guard("projects", action)

    async def handle_tasks(
        self,
        workspace_name: Optional[str] = None,
        project_id: Optional[str] = None,
        max_items: Optional[int] = None,
    ) -> bool:
        """Lists tasks; a partial listing is shown with a note rather than failing."""
        logger.info(f"Handling 'tasks' command for workspace {workspace_name or '<default>'}")

        async def action() -> None:
            workspace = await self.resolver.resolve_workspace(workspace_name=workspace_name)
            result = await self.motion_service.list_tasks(workspace.id, project_id=project_id, max_items=max_items)
            if result.error is not None:
                self.ui.display_warning(f"Failed to fetch every page of tasks: {result.error}")
            self.ui.display_tasks(result.items, more_available=result.has_more, stop_reason=result.stop_reason)

        return await self._guard("tasks", action)

    async def handle_statuses(self, workspace_name: Optional[str] = None) -> bool:
        logger.info(f"Handling 'statuses' command for workspace {workspace_name or '<default>'}")

        async def action() -> None:
            workspace = await self.resolver.resolve_workspace(workspace_name=workspace_name)
            self.ui.display_statuses(await self.motion_service.get_statuses(workspace.id), workspace)

        return await self._guard("statuses", action)

    async def handle_create_project(
        self,
        name: str,
        workspace_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> bool:
        logger.info(f"Handling 'create-project' command for {name!r}")

        async def action() -> None:
            workspace = await self.resolver.resolve_workspace(workspace_name=workspace_name)
            fields = {"description": description} if description else {}
            project = await self.motion_service.create_project(workspace.id, name, **fields)
            self.ui.display_info(f"Created project {project.get('name', name)} ({project.get('id')}) in {workspace.name}")

        return await self._guard("create-project", action)
