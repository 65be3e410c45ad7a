"""Tests for PollingLoop and scheduler registration."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from notifier.enums import LoopState
from notifier.scheduler import PollingLoop, get_loops, schedule_loop, shutdown_scheduler


class TestPollingLoop:
    @pytest.mark.asyncio
    async def test_tick_runs_and_records_result(self):
        func = AsyncMock(return_value={"created": 1})
        loop = PollingLoop("lobby_monitor", func, 60)

        assert await loop.tick() is True

        func.assert_awaited_once()
        assert loop.runs == 1
        assert loop.last_result == {"created": 1}
        assert loop.state == LoopState.idle
        assert loop.last_finished_at >= loop.last_started_at

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self):
        release = asyncio.Event()
        calls = 0

        async def slow():
            nonlocal calls
            calls += 1
            await release.wait()

        loop = PollingLoop("lobby_monitor", slow, 60)
        first = asyncio.create_task(loop.tick())
        await asyncio.sleep(0)
        assert loop.state == LoopState.running

        assert await loop.tick() is False
        assert await loop.tick() is False

        release.set()
        assert await first is True
        assert calls == 1
        assert loop.skipped == 2
        assert loop.state == LoopState.idle

    @pytest.mark.asyncio
    async def test_skip_warning_is_throttled(self, caplog):
        loop = PollingLoop("lobby_monitor", AsyncMock(), 60)
        loop.state = LoopState.running

        with caplog.at_level(logging.WARNING):
            for _ in range(5):
                await loop.tick()

        assert caplog.text.count("skipping") == 1

    @pytest.mark.asyncio
    async def test_errors_are_contained(self):
        loop = PollingLoop("lobby_monitor", AsyncMock(side_effect=RuntimeError("boom")), 60)

        with patch("notifier.scheduler.sentry_sdk") as mock_sentry:
            assert await loop.tick() is True

        mock_sentry.capture_exception.assert_called_once()
        assert loop.last_error == "boom"
        assert loop.state == LoopState.idle

    def test_status_serializes_result(self):
        loop = PollingLoop("lobby_monitor", AsyncMock(), 60)
        loop.last_result = MagicMock(as_dict=MagicMock(return_value={"created": 2}))

        status = loop.status()

        assert status["name"] == "lobby_monitor"
        assert status["state"] == "idle"
        assert status["last_result"] == {"created": 2}


class TestScheduleLoop:
    def test_registers_interval_job_that_runs_immediately(self):
        mock_scheduler = MagicMock()
        loop = PollingLoop("lobby_monitor", AsyncMock(), 60)

        with patch("notifier.scheduler._scheduler", mock_scheduler):
            schedule_loop(loop)
            assert get_loops() == [loop]

        call_kwargs = mock_scheduler.add_job.call_args[1]
        assert call_kwargs["id"] == "lobby_monitor"
        assert call_kwargs["seconds"] == 60
        assert call_kwargs["replace_existing"] is True
        assert "next_run_time" in call_kwargs
        shutdown_scheduler()

    def test_rescheduling_a_name_replaces_the_loop(self):
        mock_scheduler = MagicMock()
        first = PollingLoop("lobby_monitor", AsyncMock(), 60)
        second = PollingLoop("lobby_monitor", AsyncMock(), 30)

        with patch("notifier.scheduler._scheduler", mock_scheduler):
            schedule_loop(first)
            schedule_loop(second, run_immediately=False)
            assert get_loops() == [second]

        assert "next_run_time" not in mock_scheduler.add_job.call_args[1]
        shutdown_scheduler()

    def test_requires_initialized_scheduler(self):
        with patch("notifier.scheduler._scheduler", None):
            with pytest.raises(RuntimeError):
                schedule_loop(PollingLoop("x", AsyncMock(), 60))

    def test_shutdown_clears_loops(self):
        mock_scheduler = MagicMock()
        with patch("notifier.scheduler._scheduler", mock_scheduler):
            schedule_loop(PollingLoop("x", AsyncMock(), 60))
            shutdown_scheduler()

        mock_scheduler.shutdown.assert_called_once_with(wait=False)
        assert get_loops() == []
