"""
Shared constants for the notification loops.
"""

# Record collections, one per polling loop
LOBBY_COLLECTION = "lobby_notifications"
COMPLETED_GAME_COLLECTION = "completed_game_notifications"
REMINDER_COLLECTION = "game_reminders"

# Loop / job names as they appear in logs and /health
LOBBY_LOOP = "lobby_monitor"
COMPLETED_GAMES_LOOP = "completed_games_monitor"
REMINDER_LOOP = "reminder_dispatcher"
LOBBY_CLEANUP_LOOP = "lobby_cleanup"
COMPLETED_GAMES_CLEANUP_LOOP = "completed_games_cleanup"
REMINDER_CLEANUP_LOOP = "reminder_cleanup"
