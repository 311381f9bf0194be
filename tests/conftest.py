"""Shared fixtures and test doubles."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import pytest

from claude_tracker.core.prompter import PromptContext
from claude_tracker.errors import ProcessLaunchError
from claude_tracker.models.git_context import GitContext
from claude_tracker.models.session import EndReason, Session
from claude_tracker.storage.sqlite import SessionStore

START = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeProcess:
    """Stands in for ClaudeProcess without spawning anything."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.pid = 4242
        self.running = False
        self.terminated = False
        self.on_exit = None
        self.args: Optional[List[str]] = None
        self.cwd: Optional[Path] = None

    async def launch(self, args, cwd, on_exit) -> None:
        if self.fail:
            raise ProcessLaunchError("claude: command not found")
        self.args = list(args)
        self.cwd = cwd
        self.on_exit = on_exit
        self.running = True

    def is_running(self) -> bool:
        return self.running

    async def terminate(self) -> None:
        self.terminated = True
        self.exit(143)

    def exit(self, code: int = 0) -> None:
        self.running = False
        if self.on_exit is not None:
            self.on_exit(code)


class ProcessFactory:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.created: List[FakeProcess] = []

    def __call__(self) -> FakeProcess:
        process = FakeProcess(fail=self.fail)
        self.created.append(process)
        return process

    @property
    def last(self) -> FakeProcess:
        return self.created[-1]


class FakeGit:
    def __init__(self, context: Optional[GitContext] = None):
        self.context = context or GitContext(branch="feature/token-refresh")
        self.since = None

    def get_branch(self, project_path: Path) -> str:
        return self.context.branch

    def get_context(self, project_path: Path, since=None) -> GitContext:
        self.since = since
        return self.context


class FakePrompter:
    def __init__(self, answer: str = "Token refresh"):
        self.answer = answer
        self.calls: List[PromptContext] = []

    def prompt_for_feature(self, ctx: PromptContext) -> str:
        self.calls.append(ctx)
        return self.answer


def make_session(
    session_id: str = "s-1",
    start: datetime = START,
    minutes: int = 30,
    feature: str = "Add OAuth integration",
    project: str = "api",
    **kwargs,
) -> Session:
    return Session(
        id=session_id,
        project_path=Path("/work") / project,
        project_name=project,
        branch=kwargs.pop("branch", "main"),
        feature=feature,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        end_reason=kwargs.pop("end_reason", EndReason.PROCESS_EXIT),
        **kwargs,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    session_store = SessionStore(tmp_path / "state" / "sessions.db")
    yield session_store
    session_store.close()


@pytest.fixture
def tracker_home(tmp_path, monkeypatch):
    """Point all tracker state at a temporary directory."""
    home = tmp_path / "tracker-home"
    monkeypatch.setenv("CLAUDE_TRACKER_HOME", str(home))
    return home
