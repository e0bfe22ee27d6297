"""Main entry point for the motionkit application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from typing import Annotated, Any, Coroutine, Dict, Optional

import typer

# --- Core Layer ---
from motionkit.core.command_handler import CommandHandler
from motionkit.core.services.motion_service import MotionService
from motionkit.core.services.workspace_resolver import WorkspaceResolver

# --- Infrastructure Layer ---
# Config
from motionkit.infrastructure.config.settings import (
    get_config, get_motion_api_key, get_motion_base_url, load_configuration, load_resilience_settings
)
# UI
from motionkit.infrastructure.cli.display import ConsoleDisplay
# HTTP
from motionkit.infrastructure.http.motion_client import API_BASE, MotionHttpClient
# Cache
from motionkit.infrastructure.cache.caching_service import CachingServiceImpl
# Resilience
from motionkit.infrastructure.resilience.api_retry import ApiRetryService
# Normalization / pagination
from motionkit.infrastructure.normalization.response_normalizer import ResponseNormalizer
from motionkit.infrastructure.pagination.paginator import Paginator
# Monitoring
from motionkit.infrastructure.monitoring.logger_setup import DEFAULT_LOG_FORMAT, setup_logging

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}
    dependencies["ui"] = ConsoleDisplay()
    try:
        # 1. Load Configuration First
        load_configuration()
        log_level_name = str(get_config("logging.level", "INFO")).upper()
        setup_logging(
            log_level=getattr(logging, log_level_name, logging.INFO),
            log_format=get_config("logging.format", DEFAULT_LOG_FORMAT),
            log_file=get_config("logging.file"),
            json_lines=bool(get_config("logging.json", True)),
        )
        settings = load_resilience_settings()

        api_key = get_motion_api_key()
        if not api_key:
            raise ValueError("MOTION_API_KEY is not set (environment, .env or ~/.motionkit/config.yaml)")

        # 2. Infrastructure adapters
        dependencies["api"] = MotionHttpClient(api_key=api_key, base_url=get_motion_base_url() or API_BASE)
        dependencies["normalizer"] = ResponseNormalizer()
        dependencies["api_retry_service"] = ApiRetryService(policy=settings.retry)
        dependencies["paginator"] = Paginator(
            normalizer=dependencies["normalizer"],
            retry_service=dependencies["api_retry_service"],
            limits=settings.pagination,
        )
        dependencies["workspace_cache"] = CachingServiceImpl(
            ttl_seconds=settings.workspaces_ttl_seconds, max_size=settings.cache_max_size, name="workspaces"
        )
        dependencies["user_cache"] = CachingServiceImpl(
            ttl_seconds=settings.users_ttl_seconds, max_size=settings.cache_max_size, name="users"
        )
        dependencies["project_cache"] = CachingServiceImpl(
            ttl_seconds=settings.projects_ttl_seconds, max_size=settings.cache_max_size, name="projects"
        )

        # 3. Core services
        dependencies["motion_service"] = MotionService(
            api=dependencies["api"],
            retry_service=dependencies["api_retry_service"],
            normalizer=dependencies["normalizer"],
            paginator=dependencies["paginator"],
            workspace_cache=dependencies["workspace_cache"],
            user_cache=dependencies["user_cache"],
            project_cache=dependencies["project_cache"],
        )
        dependencies["resolver"] = WorkspaceResolver(dependencies["motion_service"])

        # 4. Command Handler
        dependencies["command_handler"] = CommandHandler(
            motion_service=dependencies["motion_service"],
            resolver=dependencies["resolver"],
            ui=dependencies["ui"],
        )
        logger.debug("All dependencies initialized successfully.")
        return dependencies

    except ValueError as e:
        logger.error(f"Fatal Error during application initialization: {e}")
        dependencies["ui"].display_error(f"Application Initialization Failed: {e}")
        raise typer.Exit(code=1)


# --- Typer App Definition ---
app = typer.Typer(
    name="motionkit",
    help="motionkit: resilient, cached access to the Motion API.",
    add_completion=False,
)


# --- Helper for Running Async Commands ---
def run_async(handler: CommandHandler, coro: Coroutine[Any, Any, bool]) -> None:
    """Runs a handler coroutine from a sync Typer command and maps failure to exit code 1."""
    async def _run() -> bool:
        try:
            return await coro
        finally:
            await handler.aclose()

    if not asyncio.run(_run()):
        raise typer.Exit(code=1)


def _handler() -> CommandHandler:
    return create_dependencies()["command_handler"]


# --- CLI Commands ---

WorkspaceOption = Annotated[
    Optional[str],
    typer.Option("--workspace", "-w", help="Workspace name. Uses the default workspace if not set."),
]


@app.command()
def workspaces():
    """List the workspaces visible to the API key."""
    handler = _handler()
    run_async(handler, handler.handle_workspaces())


@app.command()
def resolve(
    workspace_id: Annotated[Optional[str], typer.Option("--id", help="Workspace ID.")] = None,
    name: Annotated[Optional[str], typer.Option("--name", help="Workspace name (case-insensitive fallback).")] = None,
    no_fallback: Annotated[bool, typer.Option("--no-fallback", help="Fail instead of picking a default workspace.")] = False,
    validate: Annotated[bool, typer.Option("--validate", help="Check that --id is an accessible workspace.")] = False,
):
    """Resolve a workspace reference to a canonical workspace."""
    handler = _handler()
    run_async(handler, handler.handle_resolve(workspace_id, name, not no_fallback, validate))


@app.command()
def projects(workspace: WorkspaceOption = None):
    """List the projects of a workspace."""
    handler = _handler()
    run_async(handler, handler.handle_projects(workspace))


@app.command()
def tasks(
    workspace: WorkspaceOption = None,
    project: Annotated[Optional[str], typer.Option("--project", help="Only tasks of this project ID.")] = None,
    max_items: Annotated[Optional[int], typer.Option("--max-items", min=1, help="Upper bound on tasks fetched.")] = None,
):
    """List the tasks of a workspace."""
    handler = _handler()
    run_async(handler, handler.handle_tasks(workspace, project, max_items))


@app.command()
def statuses(workspace: WorkspaceOption = None):
    """List the task statuses of a workspace."""
    handler = _handler()
    run_async(handler, handler.handle_statuses(workspace))


@app.command("create-project")
def create_project(
    name: Annotated[str, typer.Argument(help="Name of the new project.")],
    workspace: WorkspaceOption = None,
    description: Annotated[Optional[str], typer.Option("--description", help="Project description.")] = None,
):
    """Create a project in a workspace."""
    handler = _handler()
    run_async(handler, handler.handle_create_project(name, workspace, description))


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
