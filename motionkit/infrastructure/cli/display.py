import logging
from typing import Any, Dict, List, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from motionkit.domain.interfaces.user_interface import UserInterface
from motionkit.domain.models.common import Workspace

logger = logging.getLogger(__name__)


def _field(row: Dict[str, Any], *path: str) -> str:
    """Reads a nested field of an upstream record as display text ('' when absent)."""
    value: Any = row
    for key in path:
        if not isinstance(value, dict):
            return ""
        value = value.get(key)
    return "" if value is None else str(value)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    # --- Messages ---

    def display_error(self, error_message: str, context: Optional[Dict[str, Any]] = None, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
            context: Structured error details; available workspaces are listed
                so the user can correct the reference.
        """
        body = Text(error_message, style="white")
        code = kwargs.get("code")
        if code:
            body.append(f"\n[{code}]", style="dim")
        available = (context or {}).get("availableWorkspaces")
        if available:
            body.append("\nAvailable workspaces:", style="bold")
            for summary in available:
                body.append(f"\n  - {summary.get('name')} ({summary.get('id')})")
        self.console.print(Panel(body, title="[bold red]Error[/bold red]", border_style="red", box=HEAVY, padding=(0, 1)))

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.debug(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1),
        )
        self.console.print(panel)

    # --- Tables ---

    def display_workspaces(self, workspaces: List[Workspace], title: str = "Workspaces") -> None:
        table = Table(title=title, box=ROUNDED, border_style="cyan")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="bold")
        table.add_column("Type")
        for workspace in workspaces:
            table.add_row(workspace.id, workspace.name, workspace.type)
        self.console.print(table)

    def display_projects(self, projects: List[Dict[str, Any]], workspace: Workspace) -> None:
        if not projects:
            self.display_info(f"No projects in workspace {workspace.name}")
            return
        table = Table(title=f"Projects in {workspace.name}", box=ROUNDED, border_style="cyan")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="bold")
        table.add_column("Status")
        for project in projects:
            table.add_row(_field(project, "id"), _field(project, "name"), _field(project, "status", "name"))
        self.console.print(table)

    def display_tasks(self, tasks: List[Dict[str, Any]], more_available: bool = False, stop_reason: Optional[str] = None) -> None:
        """Displays a task table plus a note when the listing is partial.

        Args:
            tasks: Task records as returned upstream.
            more_available: A cursor remained when the page limit stopped pagination.
            stop_reason: Why pagination stopped early, if it did.
        """
        table = Table(title=f"Tasks ({len(tasks)})", box=ROUNDED, border_style="cyan")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="bold")
        table.add_column("Status")
        table.add_column("Due")
        for task in tasks:
            table.add_row(_field(task, "id"), _field(task, "name"), _field(task, "status", "name"), _field(task, "dueDate"))
        self.console.print(table)

        if stop_reason == "max_items":
            self.display_info("More tasks are available; raise --max-items to fetch more.")
        elif more_available or stop_reason == "max_pages":
            self.display_info(
                "More tasks are available beyond the page limit; narrow the listing with --project "
                "or raise pagination.max_pages."
            )
        elif stop_reason:
            self.display_warning(f"Task listing may be incomplete (pagination stopped: {stop_reason}).")

    def display_statuses(self, statuses: List[Dict[str, Any]], workspace: Workspace) -> None:
        if not statuses:
            self.display_info(f"No statuses in workspace {workspace.name}")
            return
        table = Table(title=f"Statuses in {workspace.name}", box=ROUNDED, border_style="cyan")
        table.add_column("Name", style="bold")
        table.add_column("Default")
        table.add_column("Resolved")
        for status in statuses:
            table.add_row(
                _field(status, "name"),
                "yes" if status.get("isDefaultStatus") else "",
                "yes" if status.get("isResolvedStatus") else "",
            )
        self.console.print(table)
