"""Motion domain operations built from the cache, retry and pagination layers.

Each operation picks the route, query and endpoint id; the shared layers do
the rest. Slow-changing collections (workspaces, users, projects) are cached
per resource kind; tasks, comments and the small lookup lists are always
read fresh. Project mutations drop the cached project lists they affect.
"""

import logging
from typing import Any, Dict, List, Optional

from motionkit.domain.errors import InvalidParametersError
from motionkit.domain.interfaces.cache import CacheService
from motionkit.domain.interfaces.motion_api import MotionApi, PageFetcher
from motionkit.domain.models.common import CacheKey, Cursor, PaginatedResponse, Workspace
from motionkit.infrastructure.normalization.response_normalizer import ResponseNormalizer
from motionkit.infrastructure.pagination.paginator import Paginator
from motionkit.infrastructure.resilience.api_retry import ApiRetryService
from motionkit.infrastructure.resilience.cancellation import CancellationToken

logger = logging.getLogger(__name__)


def _page_fetcher(api: MotionApi, path: str, params: Dict[str, Any]) -> PageFetcher:
    """Builds a fetcher that adds the cursor to a fixed route/query."""
    async def fetch(cursor: Optional[Cursor]) -> Any:
        return await api.get_json(path, {**params, "cursor": cursor})
    return fetch


def _projects_key(workspace_id: str) -> CacheKey:
    return CacheKey(f"projects:workspace:{workspace_id}")


def _search_needle(query: str) -> str:
    if not query or not query.strip():
        raise InvalidParametersError("Search query must not be empty", context={"query": query})
    return query.strip().lower()


def _field(record: Any, key: str) -> Optional[str]:
    value = record.get(key) if isinstance(record, dict) else None
    return str(value) if value else None


def _matches(record: Any, needle: str) -> bool:
    """Case-insensitive substring match on a record's name or description."""
    if not isinstance(record, dict):
        return False
    return any(needle in str(record.get(field) or "").lower() for field in ("name", "description"))


class MotionService:
    """Operations against the Motion API."""

    def __init__(
        self,
        api: MotionApi,
        retry_service: ApiRetryService,
        normalizer: ResponseNormalizer,
        paginator: Paginator,
        workspace_cache: CacheService,
        user_cache: CacheService,
        project_cache: CacheService,
    ):
        self.api = api
        self.retry_service = retry_service
        self.normalizer = normalizer
        self.paginator = paginator
        self.workspace_cache = workspace_cache
        self.user_cache = user_cache
        self.project_cache = project_cache

    async def _get_list(self, path: str, endpoint_id: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        raw = await self.retry_service.execute_with_retry(self.api.get_json, path, params, endpoint_name=endpoint_id)
        return self.normalizer.unwrap(raw, endpoint_id).data

    async def _drain(self, path: str, endpoint_id: str, params: Dict[str, Any], **options: Any) -> PaginatedResponse:
        return await self.paginator.fetch_all_pages(_page_fetcher(self.api, path, params), endpoint_id, **options)

    async def _drain_complete(self, path: str, endpoint_id: str, params: Dict[str, Any]) -> List[Any]:
        """Drains a collection that is about to be cached; a failed page raises."""
        result = await self._drain(path, endpoint_id, params)
        if result.error is not None:
            raise result.error
        return result.items

    # --- Cached collections ---

    async def get_workspaces(self) -> List[Workspace]:
        """All workspaces visible to the API key, cached under 'workspaces'."""
        async def produce() -> List[Workspace]:
            logger.debug("Fetching workspaces from Motion API")
            rows = await self._get_list("/workspaces", "workspaces")
            workspaces = [Workspace.from_payload(row) for row in rows if isinstance(row, dict)]
            logger.info(
                "Workspaces fetched successfully",
                extra={"fields": {"count": len(workspaces), "workspaceNames": [w.name for w in workspaces]}},
            )
            return workspaces

        return await self.workspace_cache.with_cache(CacheKey("workspaces"), produce)

    async def get_users(self, workspace_id: Optional[str] = None) -> List[Dict[str, Any]]:
        key = CacheKey(f"users:workspace:{workspace_id}" if workspace_id else "users:all")

        async def produce() -> List[Dict[str, Any]]:
            users = await self._get_list("/users", "users", {"workspaceId": workspace_id})
            logger.info("Users fetched successfully", extra={"fields": {"count": len(users), "workspaceId": workspace_id}})
            return users

        return await self.user_cache.with_cache(key, produce)

    async def get_projects(self, workspace_id: str) -> List[Dict[str, Any]]:
        """All projects of a workspace.

        Only a fully drained collection is cached: if any page fails the
        error is raised instead of caching a partial list.
        """
        async def produce() -> List[Dict[str, Any]]:
            projects = await self._drain_complete("/projects", "projects", {"workspaceId": workspace_id})
            logger.info("Projects fetched successfully", extra={"fields": {"count": len(projects), "workspaceId": workspace_id}})
            return projects

        return await self.project_cache.with_cache(_projects_key(workspace_id), produce)

    def invalidate_projects(self, workspace_id: Optional[str] = None) -> int:
        """Drops cached project lists after a mutation (all workspaces if None)."""
        if workspace_id:
            # Exact key, so "ws1" leaves "ws10" alone.
            return int(self.project_cache.delete(_projects_key(workspace_id)))
        return self.project_cache.invalidate("projects:")

    # --- Uncached, paginated collections ---

    async def list_tasks(
        self,
        workspace_id: str,
        project_id: Optional[str] = None,
        max_items: Optional[int] = None,
        max_pages: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PaginatedResponse:
        """Tasks in a workspace (optionally one project). May be partial; see ``stop_reason``."""
        return await self._drain(
            "/tasks", "tasks", {"workspaceId": workspace_id, "projectId": project_id},
            max_items=max_items, max_pages=max_pages, cancel_token=cancel_token,
        )

    async def list_comments(self, task_id: str, cancel_token: Optional[CancellationToken] = None) -> PaginatedResponse:
        return await self._drain("/comments", "comments", {"taskId": task_id}, cancel_token=cancel_token)

    async def list_recurring_tasks(
        self,
        workspace_id: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PaginatedResponse:
        return await self._drain(
            "/recurring-tasks", "recurring-tasks", {"workspaceId": workspace_id}, cancel_token=cancel_token
        )

    # --- Single-shot lookups ---

    async def get_statuses(self, workspace_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self._get_list("/statuses", "statuses", {"workspaceId": workspace_id})

    async def get_schedules(
        self,
        user_id: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Schedules of a user (the key's owner when None), optionally within a date range."""
        return await self._get_list(
            "/schedules", "schedules", {"userId": user_id, "startDate": start_date, "endDate": end_date}
        )

    async def get_custom_fields(self, workspace_id: str) -> List[Dict[str, Any]]:
        return await self._get_list(f"/beta/workspaces/{workspace_id}/custom-fields", "custom-fields")

    async def get_project(self, project_id: str) -> Dict[str, Any]:
        return await self.retry_service.execute_with_retry(
            self.api.get_json, f"/projects/{project_id}", endpoint_name="project"
        )

    async def get_project_by_name(self, project_name: str, workspace_id: str) -> Optional[Dict[str, Any]]:
        """Exact-name lookup over the cached project list; None when nothing matches."""
        projects = await self.get_projects(workspace_id)
        for project in projects:
            if isinstance(project, dict) and project.get("name") == project_name:
                logger.info("Project found by name", extra={"fields": {"projectName": project_name, "projectId": project.get("id")}})
                return project
        logger.warning(
            "Project not found by name",
            extra={"fields": {"projectName": project_name, "availableProjects": [p.get("name") for p in projects if isinstance(p, dict)]}},
        )
        return None

    # --- Search ---

    async def search_projects(self, query: str, workspace_id: str) -> List[Dict[str, Any]]:
        needle = _search_needle(query)
        matches = [p for p in await self.get_projects(workspace_id) if _matches(p, needle)]
        logger.info("Project search completed", extra={"fields": {"query": query, "resultsCount": len(matches)}})
        return matches

    async def search_tasks(
        self,
        query: str,
        workspace_id: str,
        max_items: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Dict[str, Any]]:
        """Tasks whose name or description contains ``query`` (case-insensitive).

        Only the tasks fetched within the pagination bounds are searched.
        """
        needle = _search_needle(query)
        result = await self.list_tasks(workspace_id, max_items=max_items, cancel_token=cancel_token)
        matches = [t for t in result.items if _matches(t, needle)]
        logger.info(
            "Task search completed",
            extra={"fields": {"query": query, "resultsCount": len(matches), "searched": result.total_fetched, "stopReason": result.stop_reason}},
        )
        return matches

    # --- Project mutations ---

    async def create_project(self, workspace_id: str, name: str, **fields: Any) -> Dict[str, Any]:
        """Creates a project and drops the workspace's cached project list.

        Sent once: a create is not idempotent, so it is never retried.

        Raises:
            InvalidParametersError: If ``workspace_id`` or ``name`` is empty.
        """
        if not workspace_id:
            raise InvalidParametersError("Workspace ID is required to create a project", context={"name": name})
        if not name:
            raise InvalidParametersError("Project name is required", context={"workspaceId": workspace_id})
        project = await self.api.send_json("POST", "/projects", body={**fields, "name": name, "workspaceId": workspace_id})
        self.invalidate_projects(workspace_id)
        logger.info("Project created successfully", extra={"fields": {"projectId": _field(project, "id"), "workspaceId": workspace_id}})
        return project

    async def update_project(self, project_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        project = await self.retry_service.execute_with_retry(
            self.api.send_json, "PATCH", f"/projects/{project_id}", body=dict(updates), endpoint_name="project"
        )
        # A response without workspaceId clears every workspace.
        self.invalidate_projects(_field(project, "workspaceId"))
        logger.info("Project updated successfully", extra={"fields": {"projectId": project_id, "updates": sorted(updates)}})
        return project

    async def delete_project(self, project_id: str) -> None:
        await self.retry_service.execute_with_retry(
            self.api.send_json, "DELETE", f"/projects/{project_id}", endpoint_name="project"
        )
        # The owning workspace is unknown here.
        self.invalidate_projects()
        logger.info("Project deleted successfully", extra={"fields": {"projectId": project_id}})
