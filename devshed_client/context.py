from __future__ import annotations

import dataclasses
import json
import logging
import os
from pathlib import Path
import tempfile
from typing import Any, Mapping

from devshed_client.config import AppSettings, ConfigurationError
from devshed_client.models import (
    OPTIONAL_CONFIG_FIELDS,
    REQUIRED_CONFIG_FIELDS,
    DevShedConfig,
    Preferences,
)

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    pass


class NoConfigError(RuntimeError):
    pass


class ContextStore:
    """Owns ``config.json``: credentials plus the current organization, project and task.

    The last successfully loaded or saved configuration is cached for the
    lifetime of the store, and every mutation goes through :meth:`save`.
    """

    def __init__(self, config_path: Path):
        self._config_path = Path(config_path)
        self._config: DevShedConfig | None = None

    @property
    def config_path(self) -> Path:
        return self._config_path

    def exists(self) -> bool:
        return self._config_path.is_file()

    def current(self) -> DevShedConfig | None:
        return self._config

    def load(self) -> DevShedConfig | None:
        if self._config is not None:
            return self._config

        raw = self._read_file()
        if raw is None:
            return None

        try:
            self._config = DevShedConfig.from_dict(raw)
        except ConfigurationError as exc:
            logger.warning("Ignoring config at %s: %s", self._config_path, exc)
            return None
        return self._config

    def save(self, config: DevShedConfig) -> None:
        config.validate()
        directory = self._config_path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Failed to create config directory {directory}: {exc}") from exc

        serialized = json.dumps(config.to_dict(), indent=2)
        try:
            self._write_atomic(serialized)
        except OSError as exc:
            raise PersistenceError(f"Failed to save config to {self._config_path}: {exc}") from exc

        self._config = config
        logger.debug("Saved config to %s", self._config_path)

    def update(self, **changes: Any) -> DevShedConfig:
        current = self.load()
        if current is None:
            raise NoConfigError(
                f"No config found to update at {self._config_path}. Run 'devshed init' first."
            )

        unknown = sorted(set(changes) - set(REQUIRED_CONFIG_FIELDS) - set(OPTIONAL_CONFIG_FIELDS))
        if unknown:
            raise ConfigurationError("Unknown config fields: " + ", ".join(unknown))

        preferences = changes.get("preferences")
        if isinstance(preferences, Mapping):
            changes["preferences"] = Preferences.from_dict(preferences)

        updated = dataclasses.replace(current, **changes)
        self.save(updated)
        return updated

    def set_current_project(self, project_id: str) -> DevShedConfig:
        return self.update(current_project_id=project_id)

    def set_current_task(self, task_id: str) -> DevShedConfig:
        return self.update(current_task_id=task_id)

    def clear_current_task(self) -> DevShedConfig:
        return self.update(current_task_id=None)

    def set_organization(self, organization_id: str) -> DevShedConfig:
        return self.update(default_organization_id=organization_id)

    def _read_file(self) -> dict[str, Any] | None:
        try:
            text = self._config_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Could not read config at %s: %s", self._config_path, exc)
            return None
        return _parse_json_object(text)

    def _write_atomic(self, text: str) -> None:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._config_path.name}.",
            suffix=".tmp",
            dir=str(self._config_path.parent),
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
                handle.write("\n")
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._config_path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise


def _parse_json_object(text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


_default_store: ContextStore | None = None


def get_context_store(settings: AppSettings | None = None) -> ContextStore:
    """Return the process-wide store, creating it on first use."""
    global _default_store
    if _default_store is None:
        resolved = settings or AppSettings.from_env()
        _default_store = ContextStore(resolved.config_path)
    return _default_store


def reset_context_store() -> None:
    global _default_store
    _default_store = None
