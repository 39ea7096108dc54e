"""Tests for the command line wrapper."""

from pathlib import Path

import pytest

from conftest import FakeHttp, write_raw_config
from devshed_client.cli import main
from devshed_client.context import ContextStore

pytestmark = pytest.mark.usefixtures("clean_env")

BASE_CONFIG = {
    "apiUrl": "https://api.x/",
    "apiKey": "k",
    "userId": "u",
    "defaultOrganizationId": "o",
}


@pytest.fixture
def config_dir(tmp_path: Path, monkeypatch) -> Path:
    directory = tmp_path / "devshed-home"
    monkeypatch.setenv("DEVSHED_CONFIG_DIR", str(directory))
    return directory


@pytest.fixture
def http(monkeypatch) -> FakeHttp:
    fake = FakeHttp()
    monkeypatch.setattr("devshed_client.client.HttpClient", lambda api_key, timeout=None: fake)
    return fake


def _answers(*values: str):
    remaining = list(values)
    return lambda message: remaining.pop(0)


def _stored(config_dir: Path):
    return ContextStore(config_dir / "config.json").load()


class TestContextCommands:
    def test_show(self, config_dir: Path, capsys):
        write_raw_config(config_dir / "config.json", {**BASE_CONFIG, "currentProjectId": "p1"})
        assert main(["context", "show"]) == 0
        out = capsys.readouterr().out
        assert "Current Project: p1" in out
        assert "Current Task: None set" in out
        assert str(config_dir / "config.json") in out

    def test_switch_project(self, config_dir: Path):
        write_raw_config(config_dir / "config.json", BASE_CONFIG)
        assert main(["context", "switch", "project", "p1"]) == 0
        assert _stored(config_dir).current_project_id == "p1"

    def test_switch_org(self, config_dir: Path):
        write_raw_config(config_dir / "config.json", BASE_CONFIG)
        assert main(["context", "switch", "org", "o2"]) == 0
        assert _stored(config_dir).default_organization_id == "o2"


class TestInit:
    def test_init_prompts_and_saves(self, config_dir: Path, capsys):
        prompt = _answers("", "key-1", "user-1", "org-1", "")
        assert main(["init"], prompt=prompt) == 0
        stored = _stored(config_dir)
        assert stored.api_url == "https://api.devshed.dev"
        assert stored.api_key == "key-1"
        assert "Configuration saved" in capsys.readouterr().out

    def test_missing_config_runs_setup_first(self, config_dir: Path, http: FakeHttp, capsys):
        http.queue({"projects": [{"_id": "p1", "name": "Alpha"}]})
        prompt = _answers("https://api.x", "k", "u", "o", "")
        assert main(["projects", "list"], prompt=prompt) == 0
        assert "Alpha" in capsys.readouterr().out
        assert http.calls[0][1] == "https://api.x/projects/list"

    def test_invalid_url(self, config_dir: Path, capsys):
        prompt = _answers("ftp:/nowhere", "k", "u", "o", "")
        assert main(["init"], prompt=prompt) == 1
        assert "valid URL" in capsys.readouterr().err


class TestProjectCommands:
    def test_list(self, config_dir: Path, http: FakeHttp, capsys):
        write_raw_config(config_dir / "config.json", BASE_CONFIG)
        http.queue([{"_id": {"$oid": "p1"}, "name": "Alpha", "status": "active"}])
        assert main(["projects", "list"]) == 0
        out = capsys.readouterr().out
        assert "Projects (1)" in out
        assert "Alpha (active) [ID: p1]" in out

    def test_list_http_failure(self, config_dir: Path, http: FakeHttp, capsys):
        from devshed_client.http import TransportError

        write_raw_config(config_dir / "config.json", BASE_CONFIG)
        http.queue(TransportError("HTTP 503: Service Unavailable"))
        assert main(["projects", "list"]) == 1
        assert "Error: HTTP 503: Service Unavailable" in capsys.readouterr().err

    def test_switch_by_number(self, config_dir: Path, http: FakeHttp, capsys):
        write_raw_config(config_dir / "config.json", BASE_CONFIG)
        http.queue([{"_id": "p1", "name": "Alpha"}, {"_id": "p2", "name": "Beta"}])
        assert main(["projects", "switch"], prompt=_answers("2")) == 0
        assert _stored(config_dir).current_project_id == "p2"
        assert "Switched to project" in capsys.readouterr().out

    def test_switch_by_id(self, config_dir: Path, http: FakeHttp):
        write_raw_config(config_dir / "config.json", BASE_CONFIG)
        http.queue([{"_id": "p1", "name": "Alpha"}, {"_id": {"$oid": "p2"}, "name": "Beta"}])
        assert main(["projects", "switch"], prompt=_answers("p2")) == 0
        assert _stored(config_dir).current_project_id == "p2"

    def test_switch_unknown_id(self, config_dir: Path, http: FakeHttp, capsys):
        write_raw_config(config_dir / "config.json", BASE_CONFIG)
        http.queue([{"_id": "p1", "name": "Alpha"}])
        assert main(["projects", "switch"], prompt=_answers("p9")) == 1
        assert "No project matches: p9" in capsys.readouterr().err
        assert _stored(config_dir).current_project_id is None

    def test_transport_is_closed(self, config_dir: Path, http: FakeHttp):
        write_raw_config(config_dir / "config.json", BASE_CONFIG)
        http.queue([])
        assert main(["projects", "list"]) == 0
        assert http.closed == 1

    def test_switch_quit_changes_nothing(self, config_dir: Path, http: FakeHttp):
        write_raw_config(config_dir / "config.json", BASE_CONFIG)
        http.queue([{"_id": "p1", "name": "Alpha"}])
        assert main(["projects", "switch"], prompt=_answers("q")) == 0
        assert _stored(config_dir).current_project_id is None


class TestTaskCommands:
    def test_list_without_project(self, config_dir: Path, http: FakeHttp, capsys):
        write_raw_config(config_dir / "config.json", BASE_CONFIG)
        assert main(["tasks", "list"]) == 1
        assert "No project ID specified" in capsys.readouterr().err
        assert http.calls == []

    def test_list_shows_status_labels(self, config_dir: Path, http: FakeHttp, capsys):
        write_raw_config(config_dir / "config.json", {**BASE_CONFIG, "currentProjectId": "p1"})
        http.queue({"tasks": [{"_id": "t1", "title": "Ship it", "status": "in_progress"}]})
        assert main(["tasks", "list"]) == 0
        assert "Ship it (In Progress (in_progress)) [ID: t1]" in capsys.readouterr().out

    def test_status_help_lists_labels(self, capsys):
        with pytest.raises(SystemExit):
            main(["tasks", "create", "--help"])
        out = " ".join(capsys.readouterr().out.split())
        assert "in_review = In Review: Awaiting review" in out
        assert "blocked = Blocked: Cannot proceed" in out

    def test_clear_command(self, config_dir: Path):
        write_raw_config(
            config_dir / "config.json",
            {**BASE_CONFIG, "currentProjectId": "p1", "currentTaskId": "t1"},
        )
        assert main(["tasks", "clear"]) == 0
        stored = _stored(config_dir)
        assert stored.current_task_id is None
        assert stored.current_project_id == "p1"

    def test_switch_can_clear(self, config_dir: Path, http: FakeHttp, capsys):
        write_raw_config(
            config_dir / "config.json",
            {**BASE_CONFIG, "currentProjectId": "p1", "currentTaskId": "t1"},
        )
        http.queue({"data": {"name": "Project One"}})
        http.queue({"tasks": [{"_id": "t1", "title": "A"}, {"_id": "t2", "title": "B"}]})
        assert main(["tasks", "switch"], prompt=_answers("c")) == 0
        assert _stored(config_dir).current_task_id is None
        assert "Cleared current task" in capsys.readouterr().out

    def test_create_in_current_project(self, config_dir: Path, http: FakeHttp, capsys):
        write_raw_config(config_dir / "config.json", {**BASE_CONFIG, "currentProjectId": "p1"})
        http.queue({"data": {"_id": "t1", "title": "Ship it", "status": "todo", "project_id": "p1"}})
        assert main(["tasks", "create", "Ship it"]) == 0
        out = capsys.readouterr().out
        assert "ID: t1" in out
        assert http.calls[0][2]["project_id"] == "p1"

    def test_update_current_task(self, config_dir: Path, http: FakeHttp):
        write_raw_config(
            config_dir / "config.json",
            {**BASE_CONFIG, "currentProjectId": "p1", "currentTaskId": "t1"},
        )
        http.queue({"data": {"_id": "t1", "status": "done"}})
        assert main(["tasks", "update", "--status", "done"]) == 0
        assert http.calls[0][2]["id"] == "t1"
        assert http.calls[0][2]["status"] == "done"

    def test_read_marks_current_task(self, config_dir: Path, http: FakeHttp, capsys):
        write_raw_config(
            config_dir / "config.json",
            {**BASE_CONFIG, "currentProjectId": "p1", "currentTaskId": "t1"},
        )
        http.queue({"data": {"_id": {"$oid": "t1"}, "title": "Ship it", "assignee_id": {"$oid": "u7"}}})
        assert main(["tasks", "read"]) == 0
        out = capsys.readouterr().out
        assert "Task: Ship it (current)" in out
        assert "Assignee: u7" in out
