from __future__ import annotations

import logging
from typing import Any

from devshed_client.context import ContextStore
from devshed_client.http import HttpClient, TransportError
from devshed_client.models import DEFAULT_TASK_STATUS, ApiResponse, DevShedConfig

logger = logging.getLogger(__name__)

NO_PROJECT_ERROR = (
    'No project ID specified. Use "devshed context switch project <id>" '
    "to set a current project."
)


class DevShedApiClient:
    """Entity operations over the DevShed API.

    Every public method returns an :class:`ApiResponse`; nothing raised by the
    transport escapes. Payloads are returned as the server sent them, callers
    normalize them with :mod:`devshed_client.responses`.
    """

    def __init__(
        self,
        config: DevShedConfig,
        http_client: HttpClient | None = None,
        timeout_seconds: float | None = None,
    ):
        self._config = config
        self._base_url = config.api_url[:-1] if config.api_url.endswith("/") else config.api_url
        self._http_client = http_client or HttpClient(config.api_key, timeout_seconds)

    @staticmethod
    def from_store(
        store: ContextStore,
        timeout_seconds: float | None = None,
    ) -> "DevShedApiClient | None":
        config = store.load()
        if config is None:
            return None
        return DevShedApiClient(config, timeout_seconds=timeout_seconds)

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        self._http_client.close()

    def __enter__(self) -> "DevShedApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def request(
        self,
        endpoint: str,
        method: str = "POST",
        body: dict[str, Any] | None = None,
    ) -> ApiResponse:
        """Call ``endpoint``. POST and PUT bodies always carry the user and organization ids."""
        url = f"{self._base_url}/{endpoint.lstrip('/')}"
        if method.upper() in ("POST", "PUT"):
            body = {**self._base_body(), **(body or {})}
        try:
            data = self._http_client.send_json(method, url, body)
        except TransportError as exc:
            logger.info("%s %s failed: %s", method, endpoint, exc)
            return ApiResponse.failure(str(exc))
        except Exception as exc:
            logger.exception("Unexpected failure calling %s", endpoint)
            return ApiResponse.failure(str(exc) or "Unknown error occurred")
        return ApiResponse.ok(data)

    def _base_body(self) -> dict[str, Any]:
        return {
            "user_id": self._config.user_id,
            "organization_id": self._config.default_organization_id,
        }

    def _resolve_project(self, project_id: str | None) -> str | None:
        return project_id or self._config.current_project_id or None

    # Projects

    def list_projects(self) -> ApiResponse:
        return self.request("projects/list", "POST")

    def create_project(self, name: str, description: str | None = None) -> ApiResponse:
        body = {
            "name": name,
            "description": description or "",
        }
        return self.request("projects/create", "POST", body)

    def read_project(self, project_id: str) -> ApiResponse:
        body = {"id": project_id}
        return self.request("projects/read", "POST", body)

    def update_project(self, project_id: str, **fields: Any) -> ApiResponse:
        body = {"id": project_id, **fields}
        return self.request("projects/update", "POST", body)

    # Tasks

    def list_tasks(self, project_id: str | None = None) -> ApiResponse:
        resolved = self._resolve_project(project_id)
        if resolved is None:
            return ApiResponse.failure(NO_PROJECT_ERROR)
        body = {"project_id": resolved}
        return self.request("tasks/list", "POST", body)

    def create_task(
        self,
        title: str,
        project_id: str,
        description: str | None = None,
        status: str | None = None,
    ) -> ApiResponse:
        body = {
            "project_id": project_id,
            "title": title,
            "description": description or "",
            "status": status or DEFAULT_TASK_STATUS,
        }
        return self.request("tasks/create", "POST", body)

    def read_task(self, task_id: str, project_id: str | None = None) -> ApiResponse:
        resolved = self._resolve_project(project_id)
        if resolved is None:
            return ApiResponse.failure(NO_PROJECT_ERROR)
        body = {"project_id": resolved, "id": task_id}
        return self.request("tasks/read", "POST", body)

    def update_task(
        self,
        task_id: str,
        project_id: str | None = None,
        **fields: Any,
    ) -> ApiResponse:
        resolved = self._resolve_project(project_id)
        if resolved is None:
            return ApiResponse.failure(NO_PROJECT_ERROR)
        body = {"project_id": resolved, "id": task_id, **fields}
        return self.request("tasks/update", "POST", body)
