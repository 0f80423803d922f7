"""Base class for task sources."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from taskdigest.models.task import ListTasks, TaskList


class SourceError(Exception):
    """Raised when the task source cannot be reached or returns an error."""


class BaseTaskSource(ABC):
    """Abstract read-only view of an external task tracker."""

    @abstractmethod
    async def discover_folder(self) -> str:
        """Locate the folder whose lists are reported on.

        Returns:
            Folder identifier

        Raises:
            SourceError: If the workspace, space or folder cannot be found
        """
        pass

    @abstractmethod
    async def fetch_lists(self, folder_id: str) -> List[TaskList]:
        """Fetch the non-archived lists of a folder."""
        pass

    @abstractmethod
    async def fetch_list_details(self, lists: List[TaskList]) -> Dict[str, TaskList]:
        """Fetch full list records, including free-text content and dates.

        Returns:
            Mapping of list id to detailed list
        """
        pass

    @abstractmethod
    async def fetch_tasks(self, task_list: TaskList) -> ListTasks:
        """Fetch every non-archived task of a list, subtasks and closed included."""
        pass

    @abstractmethod
    async def fetch_comments(self, task_id: str) -> List[Dict[str, Any]]:
        """Fetch comments for a task, newest first.

        Raises:
            SourceError: If the comments cannot be fetched
        """
        pass

    @abstractmethod
    async def fetch_time_in_status(self, task_ids: List[str]) -> Dict[str, int]:
        """Fetch time spent in the current status.

        Returns:
            Mapping of task id to milliseconds in the current status

        Raises:
            SourceError: If the data is not available
        """
        pass

    async def fetch_all_tasks(self, lists: List[TaskList]) -> List[ListTasks]:
        """Fetch tasks for each list, preserving list order."""
        return [await self.fetch_tasks(task_list) for task_list in lists]

    async def aclose(self) -> None:
        """Release any underlying connections."""
        pass
