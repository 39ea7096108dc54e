from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from devshed_client.config import ConfigurationError
from devshed_client.identifiers import normalize_id

_CONTEXT_PERSISTENCE_MODES = ("session", "config", "session_and_config")
_TASK_VIEWS = ("compact", "detailed")
_PREFERENCE_KEYS = ("autoSaveContext", "showContextInPrompt", "contextPersistence", "defaultTaskView")


@dataclass(frozen=True)
class Preferences:
    """Display and context preferences. Stored and shown, never enforced.

    Keys and values this client does not recognise are kept in ``extras`` and
    written back unchanged.
    """

    auto_save_context: bool | None = None
    show_context_in_prompt: bool | None = None
    context_persistence: str | None = None
    default_task_view: str | None = None
    extras: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @staticmethod
    def defaults() -> "Preferences":
        return Preferences(
            auto_save_context=True,
            show_context_in_prompt=True,
            context_persistence="session_and_config",
            default_task_view="compact",
        )

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Preferences":
        extras = {key: value for key, value in data.items() if key not in _PREFERENCE_KEYS}

        def _flag(key: str) -> bool | None:
            value = data.get(key)
            if isinstance(value, bool):
                return value
            if value is not None:
                extras[key] = value
            return None

        def _choice(key: str, allowed: tuple[str, ...]) -> str | None:
            value = data.get(key)
            if value in allowed:
                return value
            if value is not None:
                extras[key] = value
            return None

        return Preferences(
            auto_save_context=_flag("autoSaveContext"),
            show_context_in_prompt=_flag("showContextInPrompt"),
            context_persistence=_choice("contextPersistence", _CONTEXT_PERSISTENCE_MODES),
            default_task_view=_choice("defaultTaskView", _TASK_VIEWS),
            extras=extras,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.extras)
        raw = {
            "autoSaveContext": self.auto_save_context,
            "showContextInPrompt": self.show_context_in_prompt,
            "contextPersistence": self.context_persistence,
            "defaultTaskView": self.default_task_view,
        }
        payload.update({key: value for key, value in raw.items() if value is not None})
        return payload


# Python field name -> key in config.json
_CONFIG_KEYS = {
    "api_url": "apiUrl",
    "api_key": "apiKey",
    "user_id": "userId",
    "default_organization_id": "defaultOrganizationId",
    "current_project_id": "currentProjectId",
    "current_task_id": "currentTaskId",
}
REQUIRED_CONFIG_FIELDS = ("api_url", "api_key", "user_id", "default_organization_id")
OPTIONAL_CONFIG_FIELDS = ("current_project_id", "current_task_id", "preferences")


@dataclass(frozen=True)
class DevShedConfig:
    """Persisted user context: credentials plus the current organization, project and task.

    Keys this client does not know about are carried in ``extras`` so that a
    rewrite of the file does not drop them.
    """

    api_url: str
    api_key: str
    user_id: str
    default_organization_id: str
    current_project_id: str | None = None
    current_task_id: str | None = None
    preferences: Preferences | None = None
    extras: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def validate(self) -> None:
        missing = [
            _CONFIG_KEYS[name]
            for name in REQUIRED_CONFIG_FIELDS
            if not isinstance(getattr(self, name), str) or not getattr(self, name).strip()
        ]
        if missing:
            raise ConfigurationError("Missing required config fields: " + ", ".join(missing))

        for name in ("current_project_id", "current_task_id"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise ConfigurationError(f"{_CONFIG_KEYS[name]} must be a string")

        if self.preferences is not None and not isinstance(self.preferences, Preferences):
            raise ConfigurationError("preferences must be a Preferences object")

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "DevShedConfig":
        if not isinstance(data, Mapping):
            raise ConfigurationError("Config file must contain a JSON object")

        raw_preferences = data.get("preferences")
        preferences = (
            Preferences.from_dict(raw_preferences) if isinstance(raw_preferences, Mapping) else None
        )

        known_keys = set(_CONFIG_KEYS.values()) | {"preferences"}
        config = DevShedConfig(
            api_url=data.get("apiUrl", ""),
            api_key=data.get("apiKey", ""),
            user_id=data.get("userId", ""),
            default_organization_id=data.get("defaultOrganizationId", ""),
            current_project_id=normalize_id(data.get("currentProjectId")),
            current_task_id=normalize_id(data.get("currentTaskId")),
            preferences=preferences,
            extras={key: value for key, value in data.items() if key not in known_keys},
        )
        config.validate()
        return config

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.extras)
        for name, key in _CONFIG_KEYS.items():
            value = getattr(self, name)
            if value is not None:
                payload[key] = value
        if self.preferences is not None:
            payload["preferences"] = self.preferences.to_dict()
        return payload


@dataclass(frozen=True)
class ApiResponse:
    """Envelope returned by every remote call: ``{success, data, error}``."""

    success: bool
    data: Any = None
    error: str | None = None

    @staticmethod
    def ok(data: Any) -> "ApiResponse":
        return ApiResponse(success=True, data=data)

    @staticmethod
    def failure(error: str) -> "ApiResponse":
        return ApiResponse(success=False, error=error)


@dataclass(frozen=True)
class TaskStatus:
    value: str
    label: str
    description: str


TASK_STATUSES: tuple[TaskStatus, ...] = (
    TaskStatus("todo", "Todo", "Ready to start"),
    TaskStatus("in_progress", "In Progress", "Currently working on"),
    TaskStatus("blocked", "Blocked", "Cannot proceed"),
    TaskStatus("in_review", "In Review", "Awaiting review"),
    TaskStatus("done", "Done", "Completed"),
)
DEFAULT_TASK_STATUS = "todo"


def status_label(value: str) -> str:
    """Human label for a status value, e.g. ``In Progress (in_progress)``."""
    for option in TASK_STATUSES:
        if option.value == value:
            return f"{option.label} ({option.value})"
    return value


@dataclass(frozen=True)
class ContextSnapshot:
    config: DevShedConfig | None
    config_path: Path
