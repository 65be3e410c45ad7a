"""
Polling notification engine.

Watches external sources (open lobbies, completed games, due reminders) and
keeps Discord in sync with them through one generic reconciliation loop.
"""

from .monitors import start_monitors
from .reconciler import NotificationInstance, Reconciler, plan_actions
from .reminders import cancel_game_reminder, schedule_game_reminder
from .scheduler import get_loops, shutdown_scheduler

__all__ = [
    "start_monitors",
    "shutdown_scheduler",
    "get_loops",
    "NotificationInstance",
    "Reconciler",
    "plan_actions",
    "schedule_game_reminder",
    "cancel_game_reminder",
]
