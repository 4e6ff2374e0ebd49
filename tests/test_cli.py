from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import make_user
from usermirror.cli import app
from usermirror.errors import RemoteFetchError, StoreError
from usermirror.infrastructure.remote.http_user_source import HttpUserSource
from usermirror.infrastructure.repositories.sqlite_user_repository import SQLiteUserRepository

runner = CliRunner()

REMOTE = [make_user(1, "Leanne Graham"), make_user(2, "Ervin Howell"), make_user(3, "Clementine Bauch")]


@pytest.fixture
def cli_args(tmp_path: Path):
    base = ["--settings", str(tmp_path / "settings.json"), "--db", str(tmp_path / "users.db")]

    def _args(*command: str) -> list[str]:
        return base + list(command)

    return _args


@pytest.fixture
def remote_ok(monkeypatch):
    monkeypatch.setattr(HttpUserSource, "fetch_all", lambda self: list(REMOTE))


@pytest.fixture
def remote_down(monkeypatch):
    def _fail(self):
        raise RemoteFetchError("Could not connect to https://jsonplaceholder.typicode.com/users")

    monkeypatch.setattr(HttpUserSource, "fetch_all", _fail)


def test_sync_then_list(cli_args, remote_ok):
    result = runner.invoke(app, cli_args("sync"))
    assert result.exit_code == 0, result.output
    assert "Synced 3 users" in result.output

    result = runner.invoke(app, cli_args("list", "--json"))
    assert result.exit_code == 0, result.output
    names = [user["name"] for user in json.loads(result.output)]
    assert names == ["Clementine Bauch", "Ervin Howell", "Leanne Graham"]


def test_list_filter_and_page(cli_args, remote_ok, tmp_path):
    runner.invoke(app, cli_args("sync"))

    result = runner.invoke(app, cli_args("list", "--json", "-q", "HOWELL"))
    assert [user["id"] for user in json.loads(result.output)] == [2]

    (tmp_path / "settings.json").write_text(json.dumps({"paging": {"page_size": 2}}), encoding="utf-8")
    result = runner.invoke(app, cli_args("list", "--json", "--page", "2"))
    assert [user["name"] for user in json.loads(result.output)] == ["Leanne Graham"]


def test_sync_failure_exits_nonzero(cli_args, remote_down):
    result = runner.invoke(app, cli_args("sync"))

    assert result.exit_code == 1
    assert "Error: Could not connect" in result.output


def test_show(cli_args, remote_ok):
    runner.invoke(app, cli_args("sync"))

    result = runner.invoke(app, cli_args("show", "2", "--json"))
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["name"] == "Ervin Howell"
    assert payload["company"]["catchPhrase"] == "Multi-layered client-server"
    assert payload["lastSyncedAt"] is not None

    result = runner.invoke(app, cli_args("show", "42"))
    assert result.exit_code == 1
    assert "No cached user with id 42" in result.output


def test_status(cli_args, remote_ok):
    result = runner.invoke(app, cli_args("status"))
    assert result.exit_code == 0, result.output
    assert "never" in result.output

    runner.invoke(app, cli_args("sync"))
    result = runner.invoke(app, cli_args("status"))
    assert "never" not in result.output
    assert "3" in result.output


def test_browse_offline_shows_cache(cli_args, remote_ok):
    runner.invoke(app, cli_args("sync"))

    result = runner.invoke(app, cli_args("browse", "--offline"))

    assert result.exit_code == 0, result.output
    assert "3 users" in result.output


def test_browse_degraded_when_remote_down(cli_args, remote_ok, monkeypatch):
    runner.invoke(app, cli_args("sync"))

    def _fail(self):
        raise RemoteFetchError("Timed out")

    monkeypatch.setattr(HttpUserSource, "fetch_all", _fail)
    result = runner.invoke(app, cli_args("browse"))

    assert result.exit_code == 0, result.output
    assert "Failed to sync with the server" in result.output
    assert "3 users" in result.output


def test_browse_fatal_with_empty_store(cli_args, remote_down):
    result = runner.invoke(app, cli_args("browse"))

    assert result.exit_code == 1
    assert "Could not connect" in result.output


def test_invalid_settings_file(cli_args, tmp_path):
    (tmp_path / "settings.json").write_text(json.dumps({"paging": {"page_size": -3}}), encoding="utf-8")

    result = runner.invoke(app, cli_args("status"))

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_show_reports_store_failure(cli_args, remote_ok, monkeypatch):
    runner.invoke(app, cli_args("sync"))

    def _locked(self, user_id):
        raise StoreError("database is locked")

    monkeypatch.setattr(SQLiteUserRepository, "get_by_id", _locked)
    result = runner.invoke(app, cli_args("show", "1"))

    assert result.exit_code == 1
    assert "Error: database is locked" in result.output
    assert "No cached user" not in result.output


def test_browse_surfaces_unexpected_page_error(cli_args, remote_ok, monkeypatch):
    runner.invoke(app, cli_args("sync"))

    def _broken(self, term, limit, offset):
        raise RuntimeError("cursor closed")

    monkeypatch.setattr(SQLiteUserRepository, "page", _broken)
    result = runner.invoke(app, cli_args("browse", "--offline", "--pages", "1"))

    assert result.exit_code == 0, result.output
    assert "CRITICAL: cursor closed" in result.output
    assert "3 users" in result.output
