"""Shared fixtures: an isolated context store and a recording transport."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from devshed_client.context import ContextStore, reset_context_store
from devshed_client.http import TransportError
from devshed_client.models import DevShedConfig


class FakeHttp:
    """Stands in for HttpClient: records calls and replays queued results."""

    def __init__(self, *results: Any):
        self.results = list(results)
        self.calls: list[tuple[str, str, dict[str, Any] | None]] = []
        self.closed = 0

    def queue(self, result: Any) -> None:
        self.results.append(result)

    def send_json(self, method: str, url: str, payload: dict[str, Any] | None = None) -> Any:
        self.calls.append((method, url, payload))
        if not self.results:
            raise TransportError("no response queued")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def close(self) -> None:
        self.closed += 1


@pytest.fixture(autouse=True)
def _isolated_default_store():
    reset_context_store()
    yield
    reset_context_store()


@pytest.fixture
def config() -> DevShedConfig:
    return DevShedConfig(
        api_url="https://api.x/",
        api_key="k",
        user_id="u",
        default_organization_id="o",
    )


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / ".devshed" / "config.json"


@pytest.fixture
def store(config_path: Path) -> ContextStore:
    return ContextStore(config_path)


@pytest.fixture
def saved_store(store: ContextStore, config: DevShedConfig) -> ContextStore:
    store.save(config)
    return store


def write_raw_config(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


_ENV_KEYS = ("DEVSHED_CONFIG_DIR", "DEVSHED_TIMEOUT_SECONDS", "DEVSHED_LOG_LEVEL", "DEVSHED_ENV_FILE")


@pytest.fixture
def clean_env(tmp_path: Path, monkeypatch):
    """Run in an empty directory with no DEVSHED_* variables.

    Setting before deleting makes monkeypatch restore the variables even
    when a .env file loaded them during the test.
    """
    monkeypatch.chdir(tmp_path)
    for key in _ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
