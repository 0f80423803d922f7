"""ClickUp task source."""

import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx
import structlog

from taskdigest.models.config import Settings
from taskdigest.models.task import ListTasks, Task, TaskList
from taskdigest.source.base import BaseTaskSource, SourceError

logger = structlog.get_logger(__name__)


class ClickUpSource(BaseTaskSource):
    """Reads lists, tasks and comments from the ClickUp v2 API."""

    MAX_ATTEMPTS = 3
    DEFAULT_RETRY_AFTER = 5
    PAGE_SIZE = 100
    TIME_IN_STATUS_BATCH = 25

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        """Initialize the ClickUp source.

        Args:
            settings: Application settings with token and workspace names
            client: Optional pre-configured HTTP client

        Raises:
            SourceError: If no API token is configured
        """
        if not settings.clickup_api_token:
            raise SourceError("CLICKUP_API_TOKEN is not set")

        self.settings = settings
        self.client = client or httpx.AsyncClient(
            base_url=settings.clickup_base_url,
            headers={"Authorization": settings.clickup_api_token},
            timeout=settings.request_timeout,
        )
        self.min_interval = settings.min_request_interval_ms / 1000
        self._last_request = 0.0

    async def _throttle(self) -> None:
        elapsed = time.monotonic() - self._last_request
        if elapsed < self.min_interval:
            await asyncio.sleep(self.min_interval - elapsed)
        self._last_request = time.monotonic()

    async def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET an endpoint with throttling and 429 retries.

        Args:
            endpoint: Path relative to the API base URL
            params: Query parameters; list values are repeated

        Returns:
            Decoded JSON body

        Raises:
            SourceError: On transport errors, non-2xx responses or exhausted retries
        """
        for _ in range(self.MAX_ATTEMPTS):
            await self._throttle()
            try:
                response = await self.client.get(endpoint, params=params)
            except httpx.HTTPError as e:
                raise SourceError(f"Request to {endpoint} failed: {e}") from e

            if response.status_code == 429:
                retry_after = _parse_retry_after(response.headers.get("retry-after"))
                logger.info("rate_limited", endpoint=endpoint, retry_after=retry_after)
                await asyncio.sleep(retry_after)
                continue

            if response.is_error:
                raise SourceError(
                    f"API error {response.status_code} on {endpoint}: {response.text}"
                )

            try:
                return response.json()
            except ValueError as e:
                raise SourceError(f"Invalid JSON from {endpoint}: {e}") from e

        raise SourceError(f"Failed after {self.MAX_ATTEMPTS} retries on {endpoint}")

    async def discover_folder(self) -> str:
        teams = (await self._get("/team")).get("teams") or []
        if not teams:
            raise SourceError("No workspaces found")
        team = teams[0]
        logger.info("workspace_found", name=team.get("name"), id=team["id"])

        spaces = (await self._get(f"/team/{team['id']}/space", {"archived": "false"})).get(
            "spaces"
        ) or []
        space = next((s for s in spaces if s.get("name") == self.settings.space_name), None)
        if space is None:
            raise SourceError(f'Space "{self.settings.space_name}" not found')

        folders = (await self._get(f"/space/{space['id']}/folder", {"archived": "false"})).get(
            "folders"
        ) or []
        folder = next((f for f in folders if f.get("name") == self.settings.folder_name), None)
        if folder is None:
            raise SourceError(f'Folder "{self.settings.folder_name}" not found')

        logger.info("folder_found", name=folder["name"], id=folder["id"])
        return str(folder["id"])

    async def fetch_lists(self, folder_id: str) -> List[TaskList]:
        data = await self._get(f"/folder/{folder_id}/list", {"archived": "false"})
        return [TaskList.from_api(item) for item in data.get("lists") or []]

    async def fetch_list_details(self, lists: List[TaskList]) -> Dict[str, TaskList]:
        details = {}
        for task_list in lists:
            data = await self._get(f"/list/{task_list.id}")
            details[task_list.id] = TaskList.from_api(data)
        return details

    async def fetch_tasks(self, task_list: TaskList) -> ListTasks:
        raw_tasks: List[Dict[str, Any]] = []
        page = 0
        while True:
            data = await self._get(
                f"/list/{task_list.id}/task",
                {"subtasks": "true", "include_closed": "true", "page": str(page)},
            )
            batch = data.get("tasks") or []
            raw_tasks.extend(batch)
            if len(batch) < self.PAGE_SIZE:
                break
            page += 1

        tasks = [Task.from_api(item) for item in raw_tasks if not item.get("archived")]
        logger.info("tasks_fetched", list_name=task_list.name, count=len(tasks))
        return ListTasks(task_list=task_list, tasks=tasks)

    async def fetch_comments(self, task_id: str) -> List[Dict[str, Any]]:
        data = await self._get(f"/task/{task_id}/comment")
        return data.get("comments") or []

    async def fetch_time_in_status(self, task_ids: List[str]) -> Dict[str, int]:
        durations: Dict[str, int] = {}
        for i in range(0, len(task_ids), self.TIME_IN_STATUS_BATCH):
            batch = task_ids[i : i + self.TIME_IN_STATUS_BATCH]
            data = await self._get("/task/bulk_time_in_status/task_ids", {"task_ids": batch})
            for task_id, entry in data.items():
                minutes = (
                    ((entry or {}).get("current_status") or {}).get("total_time") or {}
                ).get("by_minute")
                if minutes and minutes > 0:
                    durations[task_id] = int(minutes) * 60 * 1000
        return durations

    async def aclose(self) -> None:
        await self.client.aclose()


def _parse_retry_after(value: Optional[str]) -> int:
    try:
        return int(value) if value else ClickUpSource.DEFAULT_RETRY_AFTER
    except ValueError:
        return ClickUpSource.DEFAULT_RETRY_AFTER
