"""Interface for presenting results and errors to the user.

Bounded Context: Presentation
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from motionkit.domain.models.common import Workspace


class UserInterface(ABC):
    """Abstract output surface used by the command handler."""

    @abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def display_error(self, error_message: str, context: Optional[Dict[str, Any]] = None, **kwargs: Any) -> None:
        """Displays an error, with its structured context when present."""
        pass

    @abstractmethod
    def display_workspaces(self, workspaces: List[Workspace], title: str = "Workspaces") -> None:
        pass

    @abstractmethod
    def display_projects(self, projects: List[Dict[str, Any]], workspace: Workspace) -> None:
        pass

    @abstractmethod
    def display_tasks(self, tasks: List[Dict[str, Any]], more_available: bool = False, stop_reason: Optional[str] = None) -> None:
        pass

    @abstractmethod
    def display_statuses(self, statuses: List[Dict[str, Any]], workspace: Workspace) -> None:
        pass
