"""Tests for monitor wiring."""

import logging
from unittest.mock import MagicMock, patch

import pytest

from notifier.config import get_lobby_settings, get_reminder_settings
from notifier.monitors import (
    build_lobby_instance,
    build_loops,
    build_reminder_instance,
    start_monitors,
)
from notifier.reminders import DueReminderSource
from notifier.sinks import ChannelSink, DirectMessageSink


@pytest.fixture
def monitor_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/itt")
    monkeypatch.setenv("LOBBY_NOTIFICATION_CHANNEL_ID", "111")
    monkeypatch.setenv("COMPLETED_GAMES_NOTIFICATION_CHANNEL_ID", "222")
    for name in ("LOBBY_MONITORING_ENABLED", "COMPLETED_GAMES_MONITORING_ENABLED", "REMINDERS_ENABLED"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestBuildInstances:
    def test_lobby_instance_supports_edit_and_retire(self, monitor_env):
        instance = build_lobby_instance(get_lobby_settings())

        assert instance.supports_update and instance.supports_retire
        assert isinstance(instance.sink, ChannelSink)
        assert instance.sink.channel_id == "111"
        assert instance.store.collection == "lobby_notifications"

    def test_reminder_instance_reads_its_own_store(self, monitor_env):
        instance = build_reminder_instance(get_reminder_settings())

        assert isinstance(instance.reminder_sink, DirectMessageSink)
        assert isinstance(instance.source, DueReminderSource)
        assert instance.source.store is instance.store
        assert instance.active_field == "due_at"
        assert instance.recipient(MagicMock(payload={"user_id": "42"})) == "42"


class TestBuildLoops:
    def test_all_loops_with_cleanup(self, monitor_env):
        names = [loop.name for loop in build_loops()]
        assert names == [
            "lobby_monitor",
            "lobby_cleanup",
            "completed_games_monitor",
            "completed_games_cleanup",
            "reminder_dispatcher",
            "reminder_cleanup",
        ]

    def test_disabled_loop_is_skipped(self, monitor_env, caplog):
        monitor_env.setenv("COMPLETED_GAMES_MONITORING_ENABLED", "false")

        with caplog.at_level(logging.INFO):
            names = [loop.name for loop in build_loops()]

        assert "completed_games_monitor" not in names
        assert "Completed games monitoring disabled" in caplog.text

    def test_missing_channel_skips_only_that_loop(self, monitor_env, caplog):
        monitor_env.delenv("LOBBY_NOTIFICATION_CHANNEL_ID")

        with caplog.at_level(logging.WARNING):
            names = [loop.name for loop in build_loops()]

        assert "lobby_monitor" not in names
        assert "completed_games_monitor" in names
        assert "LOBBY_NOTIFICATION_CHANNEL_ID" in caplog.text


class TestStartMonitors:
    def test_schedules_every_loop(self, monitor_env):
        with patch("notifier.monitors.init_scheduler") as mock_init, patch(
            "notifier.monitors.schedule_loop"
        ) as mock_schedule:
            loops = start_monitors()

        mock_init.assert_called_once()
        assert mock_schedule.call_count == len(loops) == 6

    def test_nothing_starts_without_database(self, monitor_env):
        monitor_env.delenv("DATABASE_URL")

        with patch("notifier.monitors.init_scheduler") as mock_init:
            assert start_monitors() == []

        mock_init.assert_not_called()
