"""Remote task data source speaking to the task service HTTP API."""

from typing import Any, Optional
from urllib.parse import quote
import logging

import httpx

from todorepo.domain.errors import SourceUnavailableError
from todorepo.domain.models import Task
from todorepo.domain.protocols import TaskOrId


logger = logging.getLogger(__name__)


class HttpTaskDataSource:
    """Remote data source backed by the task service API (see todorepo.api)."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        name: str = "remote",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the HTTP data source.

        Args:
            base_url: Root URL of the task service, e.g. http://localhost:8000
            api_key: Optional bearer token sent with every request
            timeout: Request timeout in seconds
            name: Source name used in logs and errors
            http_client: Optional HTTP client for testing
        """
        self.name = name
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._http_client = http_client

    def _get_headers(self) -> dict:
        """Get API request headers."""
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _request(
        self, method: str, path: str, *, allow_not_found: bool = False, **kwargs: Any
    ) -> httpx.Response:
        """Send a request, translating transport and server errors.

        Error statuses raise SourceUnavailableError, except a 404 when
        allow_not_found is set, which is returned to the caller.
        """
        client = self._http_client or httpx.AsyncClient()
        try:
            response = await client.request(
                method,
                f"{self._base_url}{path}",
                headers=self._get_headers(),
                timeout=self._timeout,
                **kwargs,
            )
        except httpx.HTTPError as e:
            logger.debug(f"{self.name}: {method} {path} failed: {e}")
            raise SourceUnavailableError(self.name, str(e)) from e
        finally:
            if self._http_client is None:
                await client.aclose()

        if allow_not_found and response.status_code == 404:
            return response
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailableError(
                self.name, f"HTTP {response.status_code} for {method} {path}"
            ) from e
        return response

    async def get_tasks(self) -> list[Task]:
        """Fetch all tasks from the service."""
        response = await self._request("GET", "/tasks")
        data = response.json()
        return [self._payload_to_task(item) for item in data.get("tasks", [])]

    async def get_task(self, task_id: str) -> Optional[Task]:
        """Fetch a single task.

        Returns:
            Task if found, None if the service answers 404
        """
        response = await self._request("GET", _task_path(task_id), allow_not_found=True)
        if response.status_code == 404:
            return None
        return self._payload_to_task(response.json())

    async def save_task(self, task: Task) -> None:
        """Create or replace a task on the service."""
        await self._request("PUT", _task_path(task.id), json=self._task_to_payload(task))

    async def complete_task(self, task: TaskOrId) -> None:
        """Mark a task as completed on the service."""
        if isinstance(task, Task):
            await self.save_task(task.completed())
        else:
            await self._request("POST", f"{_task_path(task)}/complete")

    async def activate_task(self, task: TaskOrId) -> None:
        """Mark a task as active on the service."""
        if isinstance(task, Task):
            await self.save_task(task.activated())
        else:
            await self._request("POST", f"{_task_path(task)}/activate")

    async def clear_completed_tasks(self) -> None:
        """Delete completed tasks on the service."""
        await self._request("DELETE", "/tasks", params={"completed": "true"})

    async def delete_all_tasks(self) -> None:
        """Delete all tasks on the service."""
        await self._request("DELETE", "/tasks")

    async def delete_task(self, task_id: str) -> None:
        """Delete a task on the service."""
        await self._request("DELETE", _task_path(task_id))

    @staticmethod
    def _task_to_payload(task: Task) -> dict:
        return {
            "id": task.id,
            "title": task.title,
            "description": task.description,
            "is_completed": task.is_completed,
        }

    def _payload_to_task(self, payload: dict) -> Task:
        try:
            return Task(
                id=payload["id"],
                title=payload.get("title") or "",
                description=payload.get("description") or "",
                is_completed=bool(payload.get("is_completed", False)),
            )
        except (KeyError, TypeError) as e:
            raise SourceUnavailableError(self.name, f"malformed task payload: {e}") from e


def _task_path(task_id: str) -> str:
    # Ids are opaque, so "/" and other reserved characters must stay inside one segment
    return f"/tasks/{quote(task_id, safe='')}"
