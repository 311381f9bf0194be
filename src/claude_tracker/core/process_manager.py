"""Launch and supervise the Claude Code process."""

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional

from claude_tracker.errors import ProcessLaunchError

logger = logging.getLogger(__name__)

ExitCallback = Callable[[Optional[int]], None]


class ClaudeProcess:
    """A single watched ``claude`` process sharing this terminal."""

    def __init__(self, command: str = "claude", terminate_timeout: float = 10.0):
        self.command = command
        self.terminate_timeout = terminate_timeout
        self._process: Optional[asyncio.subprocess.Process] = None
        self._watcher: Optional[asyncio.Task] = None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    async def launch(
        self, args: List[str], cwd: Path, on_exit: ExitCallback
    ) -> None:
        """Start the process with inherited stdio.

        ``on_exit`` is called with the exit code once the process ends,
        whatever the cause.

        Raises:
            ProcessLaunchError: The executable could not be started.
        """
        if self.is_running():
            raise ProcessLaunchError(f"{self.command} is already running")

        logger.info("Launching Claude Code...")
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.command, *args, cwd=str(cwd)
            )
        except OSError as e:
            raise ProcessLaunchError(f"Failed to launch {self.command}: {e}") from e

        self._watcher = asyncio.ensure_future(self._watch(on_exit))

    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def terminate(self) -> None:
        """Ask the process to exit and wait until it has."""
        process = self._process
        if process is None or process.returncode is not None:
            return

        logger.debug("Stopping Claude Code before prompting...")
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=self.terminate_timeout)
        except ProcessLookupError:
            pass
        except asyncio.TimeoutError:
            logger.warning(
                "Claude Code did not exit within %ss, killing it",
                self.terminate_timeout,
            )
            process.kill()
            await process.wait()

    async def _watch(self, on_exit: ExitCallback) -> None:
        code = await self._process.wait()
        logger.debug("Claude Code exited with code %s", code)
        on_exit(code)
