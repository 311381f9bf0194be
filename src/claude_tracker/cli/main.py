"""Main CLI interface for Claude Tracker."""

import asyncio
import logging
import os
import signal
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from claude_tracker.app import Tracker, build_registry, build_tracker
from claude_tracker.config import load_config
from claude_tracker.core.project_switch import ProjectSwitchDetector, process_cwd
from claude_tracker.core.session_manager import SessionManager, SessionState
from claude_tracker.email.template import build_report_html
from claude_tracker.errors import NoActiveSessionForPathError, TrackerError
from claude_tracker.logging_config import setup_logging
from claude_tracker.models.session import Session
from claude_tracker.utils.formatting import (
    format_datetime,
    format_duration,
    format_duration_short,
    period_start,
)

console = Console()
logger = logging.getLogger(__name__)

PERIOD_TITLES = {"day": "Daily", "week": "Weekly", "month": "Monthly"}


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _print_session(session: Session) -> None:
    console.print(
        f"[green]✅ Session recorded:[/green] {escape(session.feature)} "
        f"[dim]({format_duration(session.duration)}, {session.end_reason.value})[/dim]"
    )


def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop, manager: SessionManager
) -> None:
    """SIGTERM (sent by ``claude-tracker stop``) ends the session manually."""

    async def stop_session() -> None:
        try:
            await manager.stop()
        except TrackerError as e:
            logger.debug("Manual stop failed: %s", e)

    try:
        loop.add_signal_handler(
            signal.SIGTERM, lambda: asyncio.ensure_future(stop_session())
        )
        # Ctrl+C belongs to Claude Code while it runs
        loop.add_signal_handler(signal.SIGINT, lambda: None)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers not supported on this platform")


async def _run_session(
    tracker: Tracker, project_path: Path, claude_args: List[str], watch_cwd: bool
) -> Optional[Session]:
    manager = tracker.session_manager(console)
    detector: Optional[ProjectSwitchDetector] = None
    try:
        await manager.start(project_path, claude_args)
        _install_signal_handlers(asyncio.get_running_loop(), manager)

        if watch_cwd:
            detector = ProjectSwitchDetector(
                manager,
                lambda: process_cwd(manager.process.pid if manager.process else None),
                claude_args,
            )
            detector.start()

        while True:
            session = await manager.wait_closed()
            if manager.state == SessionState.IDLE:
                break
            # A project switch began a new session
            if session is not None:
                _print_session(session)
        await manager.wait_background()
        return session
    finally:
        if detector is not None:
            detector.stop()
        await tracker.aclose()


async def _retry_syncs(tracker: Tracker) -> Tuple[int, int]:
    try:
        result = await tracker.sync_queue.retry_failed_syncs()
        return result.synced, result.failed
    finally:
        await tracker.aclose()


async def _send_report(tracker: Tracker, subject: str, html: str) -> None:
    try:
        await tracker.report_notifier.send_report(subject, html)
    finally:
        await tracker.aclose()


@click.group()
@click.version_option(package_name="claude-tracker")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def main(verbose: bool):
    """Claude Tracker - Time tracking for Claude Code sessions."""
    setup_logging(verbose)


@main.command(
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True}
)
@click.option(
    "--watch-cwd",
    is_flag=True,
    help="Start a new session when Claude Code changes project directory",
)
@click.argument("claude_args", nargs=-1, type=click.UNPROCESSED)
def start(watch_cwd: bool, claude_args: Tuple[str, ...]):
    """Launch Claude Code and track the session in this directory."""
    project_path = Path.cwd().resolve()
    tracker = build_tracker(load_config())

    existing = tracker.registry.get_entry(project_path)
    if existing is not None and _pid_alive(existing.pid):
        console.print(
            f"[red]A session is already being tracked here "
            f"(pid {existing.pid}). Run 'claude-tracker stop' first.[/red]"
        )
        tracker.store.close()
        raise click.Abort()

    console.print(f"[bold]Tracking session in[/bold] {escape(str(project_path))}")
    try:
        session = asyncio.run(
            _run_session(tracker, project_path, list(claude_args), watch_cwd)
        )
    except TrackerError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise click.Abort() from e

    if session is not None:
        _print_session(session)


@main.command()
def stop():
    """Stop the session tracked in this directory."""
    project_path = Path.cwd().resolve()
    registry = build_registry()
    entry = registry.get_entry(project_path)
    if entry is None:
        console.print(f"[red]No active session for {escape(str(project_path))}[/red]")
        raise click.Abort()

    try:
        os.kill(entry.pid, signal.SIGTERM)
    except ProcessLookupError:
        registry.unregister(project_path)
        console.print(
            "[yellow]Tracker process is gone; removed the stale session entry[/yellow]"
        )
        return
    except PermissionError as e:
        console.print(f"[red]Cannot signal tracker process {entry.pid}: {e}[/red]")
        raise click.Abort() from e

    console.print(f"[green]Stop requested for session {entry.session_id[:8]}[/green]")


@main.command()
def status():
    """Show active sessions."""
    project_path = Path.cwd().resolve()
    entries = build_registry().entries()

    current = entries.get(str(project_path))
    if current is None:
        console.print(f"[dim]No active session for {escape(str(project_path))}[/dim]")
    else:
        console.print(f"[bold]Session:[/bold] {current.session_id}")
        console.print(f"[bold]Tracker pid:[/bold] {current.pid}")
        if current.note:
            console.print(f"[bold]Note:[/bold] {escape(current.note)}")

    others = {path: e for path, e in entries.items() if path != str(project_path)}
    if not others:
        return

    table = Table(title="Other active sessions")
    table.add_column("Project", style="cyan")
    table.add_column("Session")
    table.add_column("PID", justify="right")
    table.add_column("Running")
    table.add_column("Note")
    for path, entry in sorted(others.items()):
        table.add_row(
            escape(path),
            entry.session_id[:8],
            str(entry.pid),
            "yes" if _pid_alive(entry.pid) else "[red]no[/red]",
            escape(entry.note or ""),
        )
    console.print(table)


@main.command()
@click.argument("text")
def note(text: str):
    """Attach a note to the session tracked in this directory."""
    text = text.strip()
    if not text:
        console.print("[red]Note cannot be empty[/red]")
        raise click.Abort()

    try:
        build_registry().set_note(Path.cwd(), text)
    except NoActiveSessionForPathError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise click.Abort() from e

    console.print(f"[green]Note saved:[/green] {escape(text)}")


@main.command()
def sync():
    """Retry syncing sessions that never reached Airtable."""
    tracker = build_tracker(load_config())
    if tracker.sync_queue is None:
        console.print("[yellow]Airtable sync is not enabled[/yellow]")
        tracker.store.close()
        return

    synced, failed = asyncio.run(_retry_syncs(tracker))
    if synced == 0 and failed == 0:
        console.print("[green]Everything is already synced[/green]")
        return
    console.print(f"[green]Synced {synced} session(s)[/green]")
    if failed:
        console.print(f"[yellow]{failed} session(s) still pending[/yellow]")


@main.command()
@click.option("--limit", "-n", default=10, help="Number of sessions to show")
def history(limit: int):
    """Show recent sessions."""
    tracker = build_tracker(load_config())
    try:
        sessions = tracker.store.get_all(limit=limit)
    finally:
        tracker.store.close()

    if not sessions:
        console.print("[dim]No sessions recorded yet[/dim]")
        return

    table = Table(title="Recent sessions")
    table.add_column("Started", style="dim")
    table.add_column("Project", style="cyan")
    table.add_column("Feature")
    table.add_column("Duration", justify="right")
    table.add_column("Branch", style="blue")
    table.add_column("Synced")
    for session in sessions:
        table.add_row(
            format_datetime(session.start_time),
            escape(session.project_name),
            escape(session.feature),
            format_duration_short(session.duration),
            escape(session.branch),
            "✓" if session.record_synced else "",
        )
    console.print(table)


@main.command()
@click.option("--day", "period", flag_value="day", default=True, help="Today")
@click.option("--week", "period", flag_value="week", help="This week")
@click.option("--month", "period", flag_value="month", help="This month")
@click.option("--email", "send_email", is_flag=True, help="Email the report")
def report(period: str, send_email: bool):
    """Summarize sessions for a period."""
    tracker = build_tracker(load_config())
    now = datetime.now().astimezone()
    since = period_start(period, now)
    try:
        sessions = tracker.store.get_by_date_range(since, now)
    finally:
        tracker.store.close()

    title = f"Claude Tracker {PERIOD_TITLES[period]} Report"
    label = f"{since:%b %d, %Y} - {now:%b %d, %Y}"

    if not sessions:
        console.print(f"[dim]No sessions for {label}[/dim]")
    else:
        totals: Dict[str, Tuple[int, float]] = {}
        for session in sessions:
            count, seconds = totals.get(session.project_name, (0, 0.0))
            totals[session.project_name] = (
                count + 1,
                seconds + session.duration.total_seconds(),
            )

        table = Table(title=f"{title} ({label})")
        table.add_column("Project", style="cyan")
        table.add_column("Sessions", justify="right")
        table.add_column("Time", justify="right")
        for project, (count, seconds) in sorted(totals.items()):
            table.add_row(escape(project), str(count), format_duration_short(seconds))
        console.print(table)

        total = sum(seconds for _count, seconds in totals.values())
        console.print(
            f"[bold]Total:[/bold] {len(sessions)} session(s), {format_duration(total)}"
        )

    if not send_email:
        return

    if tracker.report_notifier is None:
        console.print("[red]Email reports are not configured[/red]")
        raise click.Abort()

    html = build_report_html(title, sessions, label)
    try:
        asyncio.run(_send_report(tracker, f"[Claude Tracker] {title}: {label}", html))
    except TrackerError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise click.Abort() from e
    console.print("[green]Report emailed[/green]")


if __name__ == "__main__":
    main()
