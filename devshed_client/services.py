from __future__ import annotations

import logging
from typing import Any, Callable, Mapping
from urllib.parse import urlparse

from devshed_client.client import DevShedApiClient
from devshed_client.context import ContextStore
from devshed_client.identifiers import entity_id
from devshed_client.models import (
    DEFAULT_TASK_STATUS,
    TASK_STATUSES,
    ApiResponse,
    ContextSnapshot,
    DevShedConfig,
    Preferences,
)
from devshed_client.responses import (
    PROJECT_COLLECTION_KEYS,
    TASK_COLLECTION_KEYS,
    ShapeError,
    extract_collection,
    extract_entity,
)
from devshed_client.selection import Selector

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ContextStore], "DevShedApiClient | None"]

_UPDATABLE_TASK_FIELDS = ("title", "description", "status")


class FlowError(RuntimeError):
    pass


class RoutingError(FlowError):
    pass


class DevShedService:
    """Create/select/update flows over the context store and the API client.

    A fresh client is built for every operation so that it always sees the
    context as last saved, and it is closed when the operation ends.
    """

    def __init__(
        self,
        store: ContextStore,
        client_factory: ClientFactory | None = None,
        request_timeout_seconds: float | None = None,
    ):
        self._store = store
        self._request_timeout_seconds = request_timeout_seconds
        self._client_factory = client_factory or self._default_client_factory

    @property
    def store(self) -> ContextStore:
        return self._store

    def _default_client_factory(self, store: ContextStore) -> DevShedApiClient | None:
        return DevShedApiClient.from_store(store, timeout_seconds=self._request_timeout_seconds)

    # Setup and context

    def needs_setup(self) -> bool:
        return self._store.load() is None

    def initialize_config(
        self,
        api_url: str,
        api_key: str,
        user_id: str,
        organization_id: str,
        current_project_id: str | None = None,
    ) -> DevShedConfig:
        api_url = api_url.strip()
        parsed = urlparse(api_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise FlowError("Please enter a valid URL")

        required = {
            "API Key": api_key,
            "User ID": user_id,
            "Default Organization ID": organization_id,
        }
        for label, value in required.items():
            if not value or not value.strip():
                raise FlowError(f"{label} is required")

        config = DevShedConfig(
            api_url=api_url,
            api_key=api_key.strip(),
            user_id=user_id.strip(),
            default_organization_id=organization_id.strip(),
            current_project_id=(current_project_id or "").strip() or None,
            preferences=Preferences.defaults(),
        )
        self._store.save(config)
        logger.info("Initialized config at %s", self._store.config_path)
        return config

    def context(self) -> ContextSnapshot:
        return ContextSnapshot(config=self._store.load(), config_path=self._store.config_path)

    def switch_project(self, project_id: str) -> DevShedConfig:
        return self._store.set_current_project(project_id)

    def switch_organization(self, organization_id: str) -> DevShedConfig:
        return self._store.set_organization(organization_id)

    # Projects

    def list_projects(self) -> list[Any]:
        with self._client() as client:
            response = client.list_projects()
        return self._collection(response, PROJECT_COLLECTION_KEYS, "load projects")

    def create_project(self, name: str, description: str | None = None) -> Mapping[str, Any]:
        if not name or not name.strip():
            raise FlowError("Project name is required")
        with self._client() as client:
            response = client.create_project(name.strip(), description)
        return self._entity(response, "create project")

    def read_project(self, project_id: str | None = None) -> Mapping[str, Any]:
        resolved = project_id or self._require_config().current_project_id
        if not resolved:
            raise RoutingError(
                "No project ID specified and no current project set. "
                'Use "devshed projects switch" to set a current project.'
            )
        with self._client() as client:
            response = client.read_project(resolved)
        return self._entity(response, "load project")

    def project_selector(self) -> Selector:
        projects = self.list_projects()
        config = self._store.load()
        return Selector(
            projects,
            kind="project",
            current_id=config.current_project_id if config else None,
            title="Select a project",
        )

    def select_project(self, selector: Selector) -> Mapping[str, Any] | None:
        return selector.submit(self._switch_to_project)

    def _switch_to_project(self, project: Any) -> Mapping[str, Any]:
        project_id = entity_id(project)
        if not project_id:
            raise FlowError("Unable to extract project ID")
        self._store.set_current_project(project_id)
        return project

    # Tasks

    def list_tasks(self, project_id: str | None = None) -> list[Any]:
        with self._client() as client:
            response = client.list_tasks(project_id)
        return self._collection(response, TASK_COLLECTION_KEYS, "load tasks")

    def create_task(
        self,
        title: str,
        project_id: str | None = None,
        status: str = DEFAULT_TASK_STATUS,
        description: str | None = None,
    ) -> Mapping[str, Any]:
        if not title or not title.strip():
            raise FlowError("Task title is required")
        _check_status(status)

        resolved = project_id or self._require_config().current_project_id
        if not resolved:
            raise RoutingError(
                "No project specified and no current project set. "
                'Use "devshed projects switch" to set a current project, '
                'or pass one with "devshed tasks create <title> -p <project-id>".'
            )

        with self._client() as client:
            response = client.create_task(
                title.strip(),
                resolved,
                description=description,
                status=status,
            )
        return self._entity(response, "create task")

    def read_task(
        self,
        task_id: str | None = None,
        project_id: str | None = None,
    ) -> Mapping[str, Any]:
        config = self._require_config()
        resolved_task = task_id or config.current_task_id
        if not resolved_task:
            raise RoutingError(
                "No task ID specified and no current task set. "
                'Use "devshed tasks switch" to set a current task.'
            )
        resolved_project = project_id or config.current_project_id
        if not resolved_project:
            raise RoutingError(
                "No project ID specified and no current project set. "
                'Use "devshed projects switch" to set a current project.'
            )

        with self._client() as client:
            response = client.read_task(resolved_task, resolved_project)
        return self._entity(response, "load task")

    def update_task(
        self,
        task_id: str | None = None,
        project_id: str | None = None,
        **fields: Any,
    ) -> Mapping[str, Any]:
        resolved_task = task_id or self._require_config().current_task_id
        if not resolved_task:
            raise RoutingError(
                "No task specified and no current task set. "
                'Use "devshed tasks switch" to set a current task, '
                'or: devshed tasks update <task-id>'
            )

        changes = {key: value for key, value in fields.items() if value is not None}
        unknown = sorted(set(changes) - set(_UPDATABLE_TASK_FIELDS))
        if unknown:
            raise FlowError("Cannot update task fields: " + ", ".join(unknown))
        if not changes:
            raise FlowError("Nothing to update: pass a new title, description or status")
        if "status" in changes:
            _check_status(changes["status"])

        with self._client() as client:
            response = client.update_task(resolved_task, project_id, **changes)
        return self._entity(response, "update task")

    def task_selector(self, project_id: str | None = None) -> Selector:
        config = self._require_config()
        resolved = project_id or config.current_project_id
        if not resolved:
            raise RoutingError(
                "No project specified and no current project set. "
                'Use "devshed projects switch" to set a current project.'
            )

        project_name = self._project_name(resolved)
        tasks = self.list_tasks(resolved)
        return Selector(
            tasks,
            kind="task",
            current_id=config.current_task_id,
            title=f"Select a task in {project_name}",
        )

    def select_task(self, selector: Selector) -> Mapping[str, Any] | None:
        return selector.submit(self._switch_to_task)

    def _switch_to_task(self, task: Any) -> Mapping[str, Any]:
        task_id = entity_id(task)
        if not task_id:
            raise FlowError("Unable to extract task ID")
        self._store.set_current_task(task_id)
        return task

    def clear_task(self, selector: Selector | None = None) -> DevShedConfig | None:
        """Drop the current task. Inside a selector this is ignored while a switch is running."""
        if selector is not None:
            return selector.run(self._store.clear_current_task)
        return self._store.clear_current_task()

    def _project_name(self, project_id: str) -> str:
        with self._client() as client:
            response = client.read_project(project_id)
        if not response.success:
            return project_id
        project = extract_entity(response.data)
        if isinstance(project, Mapping) and project.get("name"):
            return str(project["name"])
        return project_id

    # Helpers

    def _require_config(self) -> DevShedConfig:
        config = self._store.load()
        if config is None:
            raise FlowError("No configuration found. Run 'devshed init' to set up.")
        return config

    def _client(self) -> DevShedApiClient:
        client = self._client_factory(self._store)
        if client is None:
            raise FlowError("Failed to initialize API client. Run 'devshed init' to set up.")
        return client

    @staticmethod
    def _collection(response: ApiResponse, candidate_keys: tuple[str, ...], action: str) -> list[Any]:
        if not response.success:
            raise FlowError(response.error or f"Failed to {action}")
        if response.data is None:
            return []
        try:
            return extract_collection(response.data, candidate_keys)
        except ShapeError as exc:
            raise FlowError(str(exc)) from exc

    @staticmethod
    def _entity(response: ApiResponse, action: str) -> Mapping[str, Any]:
        if not response.success:
            raise FlowError(response.error or f"Failed to {action}")
        entity = extract_entity(response.data)
        if not isinstance(entity, Mapping):
            raise FlowError("Invalid response format")
        return entity


def _check_status(status: str) -> None:
    allowed = [option.value for option in TASK_STATUSES]
    if status not in allowed:
        raise FlowError(f"Unknown status '{status}'. Choose one of: " + ", ".join(allowed))
