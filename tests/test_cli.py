"""Tests for the claude-tracker command line."""

import os
import signal
import sys
from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from claude_tracker.cli.main import main
from claude_tracker.config import (
    AirtableConfig,
    FeatureFlags,
    TrackerConfig,
    save_config,
)
from claude_tracker.core.registry import REGISTRY_FILENAME, JsonFileRegistry
from claude_tracker.models.session import EndReason
from claude_tracker.storage.airtable import AirtableSync
from claude_tracker.storage.sqlite import DB_FILENAME, SessionStore
from claude_tracker.utils.formatting import period_start

from conftest import make_session


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workdir(runner, tmp_path, tracker_home):
    with runner.isolated_filesystem(temp_dir=tmp_path) as path:
        yield Path(path).resolve()


@pytest.fixture
def registry(tracker_home):
    return JsonFileRegistry(tracker_home / REGISTRY_FILENAME)


def save_sessions(tracker_home, *sessions):
    store = SessionStore(tracker_home / DB_FILENAME)
    for session in sessions:
        store.save(session)
    store.close()


class TestNoteAndStatus:
    def test_note_without_session(self, runner, workdir):
        result = runner.invoke(main, ["note", "Fix login"])

        assert result.exit_code != 0
        assert "No active session" in result.output

    def test_note_and_status(self, runner, workdir, registry):
        registry.register(workdir, "abcdef123456", 4242)

        result = runner.invoke(main, ["note", "Fix login"])
        assert result.exit_code == 0
        assert registry.get_note(workdir) == "Fix login"

        result = runner.invoke(main, ["status"])
        assert result.exit_code == 0
        assert "abcdef123456" in result.output
        assert "Fix login" in result.output

    def test_status_without_session(self, runner, workdir):
        result = runner.invoke(main, ["status"])
        assert result.exit_code == 0
        assert "No active session" in result.output


class TestStop:
    def test_stop_signals_tracker_process(self, runner, workdir, registry):
        registry.register(workdir, "abcdef123456", 4242)

        with patch("claude_tracker.cli.main.os.kill") as kill:
            result = runner.invoke(main, ["stop"])

        assert result.exit_code == 0
        kill.assert_called_once_with(4242, signal.SIGTERM)
        assert "Stop requested" in result.output

    def test_stop_removes_stale_entry(self, runner, workdir, registry):
        registry.register(workdir, "abcdef123456", 4242)

        with patch("claude_tracker.cli.main.os.kill", side_effect=ProcessLookupError):
            result = runner.invoke(main, ["stop"])

        assert result.exit_code == 0
        assert registry.entries() == {}

    def test_stop_without_session(self, runner, workdir):
        result = runner.invoke(main, ["stop"])
        assert result.exit_code != 0


class TestHistoryAndReport:
    def test_history(self, runner, workdir, tracker_home):
        save_sessions(
            tracker_home,
            make_session("s-1", feature="Add OAuth integration"),
            make_session("s-2", feature="Fix login", project="web"),
        )

        result = runner.invoke(main, ["history", "-n", "5"])

        assert result.exit_code == 0
        assert "Fix login" in result.output

    def test_history_empty(self, runner, workdir):
        result = runner.invoke(main, ["history"])
        assert result.exit_code == 0
        assert "No sessions recorded yet" in result.output

    def test_report(self, runner, workdir, tracker_home):
        today = period_start("day", datetime.now().astimezone())
        save_sessions(
            tracker_home,
            make_session("s-1", start=today, minutes=45, project="api"),
            make_session("s-2", start=today, minutes=15, project="web"),
        )

        result = runner.invoke(main, ["report", "--week"])

        assert result.exit_code == 0
        assert "api" in result.output
        assert "web" in result.output
        assert "2 session(s), 1h 0m 0s" in result.output

    def test_report_email_requires_config(self, runner, workdir):
        result = runner.invoke(main, ["report", "--email"])

        assert result.exit_code != 0
        assert "not configured" in result.output


class TestSync:
    def test_sync_disabled(self, runner, workdir):
        result = runner.invoke(main, ["sync"])
        assert result.exit_code == 0
        assert "not enabled" in result.output

    def test_sync_pending_sessions(self, runner, workdir, tracker_home):
        save_config(
            TrackerConfig(
                features=FeatureFlags(airtable_sync=True),
                airtable=AirtableConfig(api_key="key", base_id="app1"),
            )
        )
        save_sessions(tracker_home, make_session("s-1"), make_session("s-2"))

        with patch.object(AirtableSync, "sync", new=AsyncMock(return_value="rec1")):
            result = runner.invoke(main, ["sync"])

        assert result.exit_code == 0
        assert "Synced 2 session(s)" in result.output
        store = SessionStore(tracker_home / DB_FILENAME)
        assert store.get_unsynced() == []
        store.close()


class TestStart:
    def test_start_records_session(self, runner, workdir, tracker_home):
        save_config(TrackerConfig(claude_command=sys.executable))

        result = runner.invoke(
            main, ["start", "-c", "import sys; sys.exit(0)"], input="Wrote CLI tests\n"
        )

        assert result.exit_code == 0, result.output
        assert "Session recorded" in result.output
        store = SessionStore(tracker_home / DB_FILENAME)
        sessions = store.get_all()
        store.close()
        assert len(sessions) == 1
        assert sessions[0].feature == "Wrote CLI tests"
        assert sessions[0].end_reason == EndReason.PROCESS_EXIT
        assert sessions[0].project_path == workdir
        assert JsonFileRegistry(tracker_home / REGISTRY_FILENAME).entries() == {}

    def test_start_with_missing_command(self, runner, workdir, tracker_home, registry):
        save_config(TrackerConfig(claude_command="claude-does-not-exist-for-tests"))

        result = runner.invoke(main, ["start"])

        assert result.exit_code != 0
        assert "Error" in result.output
        assert registry.entries() == {}

    def test_start_refuses_when_tracked_elsewhere(self, runner, workdir, registry):
        registry.register(workdir, "abcdef123456", os.getpid())

        result = runner.invoke(main, ["start"])

        assert result.exit_code != 0
        assert "already being tracked" in result.output
