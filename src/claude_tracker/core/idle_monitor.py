"""Polling idle detection for a tracked project."""

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT = 10 * 60
DEFAULT_POLL_INTERVAL = 30
RECENT_ACTIVITY_WINDOW = 60


class IdleMonitor:
    """Raise a single idle event after a period without project activity.

    Runs as a recurring ``call_later`` timer on the current event loop, so
    ticks interleave with the rest of the session pipeline instead of
    running on a separate thread. After the idle callback fires the
    monitor stops; call ``start()`` again to re-arm it.
    """

    def __init__(
        self,
        project_path: Path,
        on_idle: Callable[[], None],
        is_process_running: Callable[[], bool],
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        self.project_path = Path(project_path)
        self.on_idle = on_idle
        self.is_process_running = is_process_running
        self.idle_timeout = idle_timeout
        self.poll_interval = poll_interval
        self._clock = clock
        self._timer: Optional[asyncio.TimerHandle] = None
        self._fired = False
        self.last_activity = clock()

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        """Arm the timer. Must be called from a running event loop."""
        self.stop()
        self._fired = False
        self.last_activity = self._clock()
        self._schedule()
        logger.debug(
            "Idle detection started (timeout: %ss, poll: %ss)",
            self.idle_timeout,
            self.poll_interval,
        )

    def stop(self) -> None:
        """Cancel the timer; a no-op when not running."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        logger.debug("Idle detection stopped")

    def record_activity(self) -> None:
        """Reset the idle clock from an external activity signal."""
        self.last_activity = self._clock()

    def poll(self) -> None:
        """Run one idle check."""
        if self._fired:
            return

        if not self.is_process_running():
            # Process exit is handled by the session manager's exit callback
            self.stop()
            return

        if self.has_recent_activity():
            self.record_activity()

        idle_for = self._clock() - self.last_activity
        if idle_for >= self.idle_timeout:
            logger.debug("Idle timeout reached (%ds)", round(idle_for))
            self._fired = True
            self.stop()
            self.on_idle()

    def has_recent_activity(self) -> bool:
        """Whether any top-level, non-hidden entry was modified in the last minute."""
        now = self._clock()
        try:
            entries = list(os.scandir(self.project_path))
        except OSError:
            return False

        for entry in entries:
            if entry.name.startswith("."):
                continue
            try:
                mtime = entry.stat().st_mtime
            except OSError:
                continue
            if now - mtime < RECENT_ACTIVITY_WINDOW:
                return True
        return False

    def _schedule(self) -> None:
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.poll_interval, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self.poll()
        if not self._fired and self._timer is None and self.is_process_running():
            self._schedule()
