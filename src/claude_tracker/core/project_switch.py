"""Follow the watched process into a different project directory."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, List, Optional

from claude_tracker.core.session_manager import SessionManager, SessionState
from claude_tracker.errors import TrackerError

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 5.0


def process_cwd(pid: Optional[int]) -> Optional[Path]:
    """Working directory of a running process, where the OS exposes it."""
    if pid is None:
        return None
    try:
        return Path(os.readlink(f"/proc/{pid}/cwd"))
    except OSError:
        return None


class ProjectSwitchDetector:
    """Poll a working-directory source and switch projects when it moves.

    The old session is always finalized before the new one starts. The
    detector stops on its own once the manager has no active session.
    """

    def __init__(
        self,
        manager: SessionManager,
        cwd_provider: Callable[[], Optional[Path]],
        launch_args: Optional[List[str]] = None,
        interval: float = DEFAULT_CHECK_INTERVAL,
    ):
        self.manager = manager
        self.cwd_provider = cwd_provider
        self.launch_args = launch_args or []
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        self.stop()
        self._task = asyncio.ensure_future(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def check(self) -> bool:
        """Switch if the directory changed; returns whether it did."""
        handle = self.manager.current
        if handle is None or self.manager.state != SessionState.ACTIVE:
            return False

        cwd = self.cwd_provider()
        if cwd is None:
            return False
        cwd = Path(cwd).resolve()
        if cwd == handle.project_path or not cwd.is_dir():
            return False

        logger.info("Project changed: %s -> %s", handle.project_path, cwd)
        await self.manager.switch_project(cwd, self.launch_args)
        return True

    async def _run(self) -> None:
        while self.manager.state != SessionState.IDLE:
            await asyncio.sleep(self.interval)
            try:
                await self.check()
            except TrackerError as e:
                logger.error("Project switch failed: %s", e)
                return
