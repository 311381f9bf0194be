"""Tests for polling idle detection."""

import asyncio
import os
import time

import pytest

from claude_tracker.core.idle_monitor import IdleMonitor


class Ticker:
    """Controllable clock anchored at the real current time."""

    def __init__(self):
        self.now = time.time()

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def project(tmp_path):
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def ticker():
    return Ticker()


def touch(path, when):
    path.write_text("x")
    os.utime(path, (when, when))


def make_monitor(project, ticker, fired, running=lambda: True, **kwargs):
    return IdleMonitor(
        project,
        on_idle=lambda: fired.append(ticker()),
        is_process_running=running,
        idle_timeout=600,
        clock=ticker,
        **kwargs,
    )


class TestPoll:
    def test_fires_once_at_threshold(self, project, ticker):
        fired = []
        monitor = make_monitor(project, ticker, fired)

        ticker.now += 599
        monitor.poll()
        assert fired == []

        ticker.now += 1
        monitor.poll()
        assert len(fired) == 1

        ticker.now += 3600
        monitor.poll()
        assert len(fired) == 1

    def test_recent_modification_resets_clock(self, project, ticker):
        fired = []
        monitor = make_monitor(project, ticker, fired)

        ticker.now += 500
        touch(project / "app.py", ticker.now)
        monitor.poll()
        assert monitor.last_activity == ticker.now

        ticker.now += 599
        monitor.poll()
        assert fired == []

        ticker.now += 1
        monitor.poll()
        assert len(fired) == 1

    def test_hidden_entries_are_ignored(self, project, ticker):
        fired = []
        monitor = make_monitor(project, ticker, fired)

        ticker.now += 600
        touch(project / ".DS_Store", ticker.now)
        monitor.poll()

        assert len(fired) == 1

    def test_stops_without_firing_when_process_gone(self, project, ticker):
        fired = []
        monitor = make_monitor(project, ticker, fired, running=lambda: False)

        ticker.now += 10_000
        monitor.poll()

        assert fired == []
        assert not monitor.is_running

    def test_record_activity(self, project, ticker):
        fired = []
        monitor = make_monitor(project, ticker, fired)

        ticker.now += 590
        monitor.record_activity()
        ticker.now += 590
        monitor.poll()

        assert fired == []

    def test_missing_directory_is_not_activity(self, tmp_path, ticker):
        monitor = make_monitor(tmp_path / "gone", ticker, [])
        assert not monitor.has_recent_activity()


class TestTimer:
    def test_stop_is_idempotent(self, project, ticker):
        monitor = make_monitor(project, ticker, [])
        monitor.stop()
        monitor.stop()
        assert not monitor.is_running

    @pytest.mark.asyncio
    async def test_timer_fires_idle_callback(self, project):
        event = asyncio.Event()
        monitor = IdleMonitor(
            project,
            on_idle=event.set,
            is_process_running=lambda: True,
            idle_timeout=0,
            poll_interval=0.01,
        )

        monitor.start()
        assert monitor.is_running
        await asyncio.wait_for(event.wait(), timeout=2)

        assert not monitor.is_running

    @pytest.mark.asyncio
    async def test_restart_rearms(self, project):
        fired = []
        monitor = IdleMonitor(
            project,
            on_idle=lambda: fired.append(1),
            is_process_running=lambda: True,
            idle_timeout=0,
            poll_interval=0.01,
        )

        monitor.start()
        await asyncio.sleep(0.1)
        assert fired == [1]

        monitor.start()
        await asyncio.sleep(0.1)
        assert fired == [1, 1]
        monitor.stop()

    @pytest.mark.asyncio
    async def test_timer_keeps_polling_until_idle(self, project):
        fired = []
        monitor = IdleMonitor(
            project,
            on_idle=lambda: fired.append(1),
            is_process_running=lambda: True,
            idle_timeout=3600,
            poll_interval=0.01,
        )

        monitor.start()
        await asyncio.sleep(0.1)

        assert fired == []
        assert monitor.is_running
        monitor.stop()
        assert not monitor.is_running
