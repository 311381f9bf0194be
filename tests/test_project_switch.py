"""Tests for following the watched process into another project."""

import asyncio
import os
from pathlib import Path

import pytest

from claude_tracker.core.project_switch import ProjectSwitchDetector, process_cwd
from claude_tracker.core.registry import InMemoryRegistry
from claude_tracker.core.session_manager import SessionManager, SessionState
from claude_tracker.models.session import EndReason

from conftest import FakeGit, FakePrompter, ProcessFactory


@pytest.fixture
def projects(tmp_path):
    first = tmp_path / "api"
    second = tmp_path / "web"
    first.mkdir()
    second.mkdir()
    return first.resolve(), second.resolve()


@pytest.fixture
def manager(store, clock):
    return SessionManager(
        registry=InMemoryRegistry(),
        store=store,
        git=FakeGit(),
        prompter=FakePrompter(),
        process_factory=ProcessFactory(),
        poll_interval=3600,
        clock=clock,
    )


class TestProjectSwitchDetector:
    @pytest.mark.asyncio
    async def test_same_directory_does_nothing(self, manager, projects):
        first, _second = projects
        await manager.start(first)
        detector = ProjectSwitchDetector(manager, lambda: first)

        assert not await detector.check()
        assert manager.current.project_path == first
        await manager.stop()

    @pytest.mark.asyncio
    async def test_switch_finalizes_then_starts(self, manager, store, projects):
        first, second = projects
        old = await manager.start(first, ["--continue"])
        detector = ProjectSwitchDetector(manager, lambda: second, ["--continue"])

        assert await detector.check()

        assert store.get(old.id).end_reason == EndReason.PROJECT_SWITCH
        assert manager.current.project_path == second
        assert manager.process.args == ["--continue"]
        await manager.stop()

    @pytest.mark.asyncio
    async def test_ignores_unknown_or_missing_directory(self, manager, tmp_path, projects):
        first, _second = projects
        await manager.start(first)

        assert not await ProjectSwitchDetector(manager, lambda: None).check()
        assert not await ProjectSwitchDetector(
            manager, lambda: tmp_path / "deleted"
        ).check()
        await manager.stop()

    @pytest.mark.asyncio
    async def test_idle_manager_is_left_alone(self, manager, projects):
        _first, second = projects
        assert not await ProjectSwitchDetector(manager, lambda: second).check()
        assert manager.state == SessionState.IDLE

    @pytest.mark.asyncio
    async def test_polling_stops_when_session_ends(self, manager, projects):
        first, _second = projects
        await manager.start(first)
        detector = ProjectSwitchDetector(manager, lambda: first, interval=0.01)
        detector.start()

        await manager.stop()
        await asyncio.sleep(0.05)

        assert detector._task.done()


def test_process_cwd_of_current_process():
    cwd = process_cwd(os.getpid())
    # Only Linux exposes /proc
    if cwd is not None:
        assert cwd == Path(os.getcwd())


def test_process_cwd_without_pid():
    assert process_cwd(None) is None
