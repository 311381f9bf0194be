"""Drive one tracked session from launch to a persisted record."""

import asyncio
import logging
import os
import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Set

from claude_tracker.core.git_context import GitContextProvider
from claude_tracker.core.idle_monitor import (
    DEFAULT_IDLE_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    IdleMonitor,
)
from claude_tracker.core.process_manager import ClaudeProcess
from claude_tracker.core.prompter import PromptContext
from claude_tracker.core.registry import SessionRegistry
from claude_tracker.core.suggestions import build_suggestions
from claude_tracker.core.sync_queue import RecordSync, SyncRetryQueue
from claude_tracker.errors import (
    AlreadyActiveError,
    NoActiveSessionError,
    ProcessLaunchError,
)
from claude_tracker.models.conversation import ConversationAnalysis
from claude_tracker.models.git_context import GitContext
from claude_tracker.models.session import EndReason, Session, SessionHandle
from claude_tracker.models.suggestion import FeatureSuggestion
from claude_tracker.storage.sqlite import SessionStore
from claude_tracker.utils.formatting import format_duration, utcnow

logger = logging.getLogger(__name__)


class Analyzer(Protocol):
    async def analyze(
        self, project_path: Path, start_time: datetime, end_time: datetime
    ) -> Optional[ConversationAnalysis]: ...


class Prompter(Protocol):
    def prompt_for_feature(self, ctx: PromptContext) -> str: ...


class Notifier(Protocol):
    async def send(self, session: Session) -> None: ...


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    FINALIZING = "finalizing"


class SessionManager:
    """Owns the lifecycle of the single session tracked by this process.

    A session ends on the first of: the watched process exiting, the idle
    monitor firing, an explicit ``stop()`` or a project switch. Later
    triggers for the same session are no-ops, and triggers raised by an
    earlier session are ignored, so each lifecycle yields at most one
    persisted ``Session``.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        store: SessionStore,
        git: GitContextProvider,
        prompter: Prompter,
        analyzer: Optional[Analyzer] = None,
        record_sync: Optional[RecordSync] = None,
        notifier: Optional[Notifier] = None,
        sync_queue: Optional[SyncRetryQueue] = None,
        process_factory: Callable[[], ClaudeProcess] = ClaudeProcess,
        monitor_factory: Callable[..., IdleMonitor] = IdleMonitor,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], datetime] = utcnow,
        pid: Optional[int] = None,
    ):
        self.registry = registry
        self.store = store
        self.git = git
        self.prompter = prompter
        self.analyzer = analyzer
        self.record_sync = record_sync
        self.notifier = notifier
        self.sync_queue = sync_queue
        self.process_factory = process_factory
        self.monitor_factory = monitor_factory
        self.idle_timeout = idle_timeout
        self.poll_interval = poll_interval
        self._clock = clock
        self._pid = pid if pid is not None else os.getpid()

        self._handle: Optional[SessionHandle] = None
        self._finalizing = False
        self._process: Optional[ClaudeProcess] = None
        self._monitor: Optional[IdleMonitor] = None
        self._closed: Optional[asyncio.Future] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> SessionState:
        if self._handle is None:
            return SessionState.IDLE
        if self._finalizing:
            return SessionState.FINALIZING
        return SessionState.ACTIVE

    @property
    def current(self) -> Optional[SessionHandle]:
        return self._handle

    @property
    def process(self) -> Optional[ClaudeProcess]:
        return self._process

    @property
    def monitor(self) -> Optional[IdleMonitor]:
        return self._monitor

    async def start(
        self, project_path: Path, launch_args: Optional[List[str]] = None
    ) -> SessionHandle:
        """Begin tracking a session and launch the watched process.

        Raises:
            AlreadyActiveError: This manager already tracks a session.
            ProcessLaunchError: The watched process could not be started.
        """
        if self._handle is not None:
            raise AlreadyActiveError(
                f"A session is already active for {self._handle.project_path}"
            )

        path = Path(project_path).resolve()
        handle = SessionHandle(
            id=str(uuid.uuid4()),
            project_path=path,
            project_name=path.name,
            start_time=self._clock(),
            branch=self.git.get_branch(path),
        )
        self._handle = handle
        self._closed = asyncio.get_running_loop().create_future()

        process = self.process_factory()
        self._process = process
        registered = False
        try:
            self.registry.register(path, handle.id, self._pid)
            registered = True

            self._monitor = self.monitor_factory(
                path,
                on_idle=lambda: self._trigger(handle.id, EndReason.IDLE_TIMEOUT),
                is_process_running=process.is_running,
                idle_timeout=self.idle_timeout,
                poll_interval=self.poll_interval,
            )
            self._monitor.start()

            await process.launch(
                launch_args or [],
                path,
                on_exit=lambda code: self._trigger(handle.id, EndReason.PROCESS_EXIT),
            )
        except BaseException:
            self._abort_start(path, registered)
            raise

        logger.info("Session started for %s (%s)", handle.project_name, handle.branch)

        if self.sync_queue is not None:
            self._spawn(self._retry_syncs())

        return handle

    async def finalize(self, reason: EndReason) -> Optional[Session]:
        """End the current session and persist it.

        Returns ``None`` without doing anything when there is no session or
        another finalize is already running.

        Raises:
            SessionPersistenceError: The session could not be saved locally.
        """
        handle = self._handle
        if handle is None:
            logger.debug("Finalize (%s) ignored: no active session", reason.value)
            return None
        if self._finalizing:
            logger.debug("Finalize (%s) ignored: already finalizing", reason.value)
            return None

        self._finalizing = True
        closed = self._closed
        try:
            session = await self._finalize(handle, reason)
        except asyncio.CancelledError:
            if closed is not None and not closed.done():
                closed.cancel()
            raise
        except Exception as e:
            if closed is not None and not closed.done():
                closed.set_exception(e)
            raise
        else:
            if closed is not None and not closed.done():
                closed.set_result(session)
            return session
        finally:
            self._unregister(handle.project_path)
            self._reset()

    async def stop(self) -> Optional[Session]:
        """Manually end the current session.

        Raises:
            NoActiveSessionError: Nothing is being tracked.
        """
        if self._handle is None:
            raise NoActiveSessionError("No active session to stop")
        return await self.finalize(EndReason.MANUAL_STOP)

    async def switch_project(
        self, new_path: Path, launch_args: Optional[List[str]] = None
    ) -> SessionHandle:
        """End the current session, then start one in ``new_path``."""
        await self.finalize(EndReason.PROJECT_SWITCH)
        return await self.start(new_path, launch_args)

    async def wait_closed(self) -> Optional[Session]:
        """Wait for the current lifecycle to end and return its session."""
        if self._closed is None:
            return None
        return await self._closed

    async def wait_background(self) -> None:
        """Wait for background work such as the sync retry to settle."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _finalize(self, handle: SessionHandle, reason: EndReason) -> Session:
        logger.info("Ending session (%s)...", reason.value)

        if self._monitor is not None:
            self._monitor.stop()
        if self._process is not None and self._process.is_running():
            await self._process.terminate()

        end_time = max(self._clock(), handle.start_time)
        logger.debug(
            "Session duration: %s", format_duration(end_time - handle.start_time)
        )

        git_context = self.git.get_context(handle.project_path, since=handle.start_time)
        analysis = await self._analyze(handle, end_time)
        suggestions = build_suggestions(git_context, analysis)
        note = self.registry.get_note(handle.project_path)

        feature = self._resolve_feature(
            handle, reason, end_time, git_context, suggestions, analysis, note
        )

        current_pr = git_context.current_pr()
        session = Session(
            id=handle.id,
            project_path=handle.project_path,
            project_name=handle.project_name,
            branch=git_context.branch,
            feature=feature,
            start_time=handle.start_time,
            end_time=end_time,
            end_reason=reason,
            commits=[c.message for c in git_context.recent_commits],
            changed_files=git_context.changed_files,
            pr_url=current_pr.url if current_pr else None,
            conversation_summary=analysis.summary if analysis else None,
        )

        try:
            self.store.save(session)
        except Exception:
            logger.error("Session could not be saved: %s", session.model_dump_json())
            raise
        logger.info(
            "Session saved: %s (%s)", session.feature, format_duration(session.duration)
        )

        session = await self._deliver(session)
        return session

    def _resolve_feature(
        self,
        handle: SessionHandle,
        reason: EndReason,
        end_time: datetime,
        git_context: GitContext,
        suggestions: List[FeatureSuggestion],
        analysis: Optional[ConversationAnalysis],
        note: Optional[str],
    ) -> str:
        if reason == EndReason.IDLE_TIMEOUT and note:
            logger.info("Using note for idle session: %s", note)
            return note

        return self.prompter.prompt_for_feature(
            PromptContext(
                project_name=handle.project_name,
                branch=git_context.branch,
                duration=end_time - handle.start_time,
                start_time=handle.start_time,
                suggestions=suggestions,
                conversation_analysis=analysis,
                default_note=note,
            )
        )

    async def _analyze(
        self, handle: SessionHandle, end_time: datetime
    ) -> Optional[ConversationAnalysis]:
        if self.analyzer is None:
            return None
        try:
            return await self.analyzer.analyze(
                handle.project_path, handle.start_time, end_time
            )
        except Exception as e:
            logger.warning("Conversation analysis failed: %s", e)
            return None

    async def _deliver(self, session: Session) -> Session:
        """Best-effort sync and notification; failures only log."""
        if self.record_sync is not None:
            try:
                record_id = await self.record_sync.sync(session)
                self.store.mark_synced(session.id, record_id)
                session = session.model_copy(
                    update={"record_synced": True, "record_id": record_id}
                )
            except Exception as e:
                logger.warning("Sync failed, will retry on next start: %s", e)

        if self.notifier is not None:
            try:
                await self.notifier.send(session)
                self.store.mark_notified(session.id)
                session = session.model_copy(update={"notification_sent": True})
            except Exception as e:
                logger.warning("Failed to send session email: %s", e)

        return session

    def _trigger(self, session_id: str, reason: EndReason) -> None:
        if self._handle is None or self._handle.id != session_id:
            logger.debug("Ignoring %s from a previous session", reason.value)
            return
        self._spawn(self._finalize_quietly(session_id, reason))

    async def _finalize_quietly(self, session_id: str, reason: EndReason) -> None:
        # The session may have ended and another started before this ran
        if self._handle is None or self._handle.id != session_id:
            return
        # Errors reach callers through wait_closed()
        try:
            await self.finalize(reason)
        except Exception as e:
            logger.debug("Finalize after %s failed: %s", reason.value, e)

    async def _retry_syncs(self) -> None:
        try:
            await self.sync_queue.retry_failed_syncs()
        except Exception as e:
            logger.warning("Background sync retry failed: %s", e)

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _abort_start(self, path: Path, registered: bool) -> None:
        try:
            if self._monitor is not None:
                self._monitor.stop()
            if registered:
                self._unregister(path)
        finally:
            if self._closed is not None and not self._closed.done():
                self._closed.cancel()
            self._closed = None
            self._reset()

    def _unregister(self, path: Path) -> None:
        try:
            self.registry.unregister(path)
        except OSError as e:
            logger.warning("Could not remove registry entry for %s: %s", path, e)

    def _reset(self) -> None:
        self._handle = None
        self._finalizing = False
        self._process = None
        self._monitor = None
