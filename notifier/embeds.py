"""Discord embeds and DM text for the three notification kinds."""

from datetime import datetime

import discord

from .templates import get_message
from .timezone import ensure_utc, parse_source_timestamp
from .types import Entity

LOBBY_COLOR = 0x2ECC71
COMPLETED_GAME_COLOR = 0x0099FF

# Discord caps a field value at 1024 characters
_FIELD_LIMIT = 1024


def _players_value(lobby: dict) -> str:
    taken = lobby.get("slotsTaken")
    total = lobby.get("slotsTotal")
    if taken is None:
        return "?"
    return f"{taken}/{total}" if total else str(taken)


def lobby_fingerprint(entity: Entity) -> dict:
    """Fields whose change warrants editing the lobby message."""
    lobby = entity.payload
    return {
        "name": lobby.get("name"),
        "slotsTaken": lobby.get("slotsTaken"),
        "slotsTotal": lobby.get("slotsTotal"),
    }


def create_lobby_embed(entity: Entity) -> discord.Embed:
    lobby = entity.payload
    embed = discord.Embed(
        title=get_message("lobby_opened", "title"),
        description=lobby.get("name") or "Unnamed lobby",
        color=LOBBY_COLOR,
        timestamp=entity.created_at or entity.observed_at,
    )
    embed.add_field(name="🗺️ Map", value=lobby.get("map") or "Unknown", inline=False)
    embed.add_field(name="👑 Host", value=lobby.get("host") or "Unknown", inline=True)
    embed.add_field(name="👥 Players", value=_players_value(lobby), inline=True)
    embed.set_footer(
        text=get_message(
            "lobby_opened",
            "footer",
            lobby_id=entity.external_id,
            server=lobby.get("server") or "?",
        )
    )
    return embed


def _player_line(player: dict) -> str:
    name = str(player.get("name") or player.get("battleTag") or "Unknown")
    result = player.get("result") or player.get("flag")
    return f"{name} ({result})" if result else name


def create_completed_game_embed(entity: Entity) -> discord.Embed:
    game = entity.payload
    embed = discord.Embed(
        title=get_message("game_completed", "title", game_id=entity.external_id),
        description=get_message(
            "game_completed",
            "description",
            game_name=game.get("gamename") or "Unnamed",
        ),
        color=COMPLETED_GAME_COLOR,
        timestamp=entity.created_at,
    )
    players = game.get("players") or []
    player_count = game.get("playerCount") or len(players)

    if game.get("category"):
        embed.add_field(name="🎯 Category", value=str(game["category"]), inline=True)
    embed.add_field(name="👥 Players", value=str(player_count), inline=True)
    if game.get("map"):
        embed.add_field(name="🗺️ Map", value=str(game["map"]), inline=True)

    if players:
        lines = "\n".join(_player_line(p) for p in players if isinstance(p, dict))
        if len(lines) > _FIELD_LIMIT:
            lines = lines[: _FIELD_LIMIT - 1] + "…"
        if lines:
            embed.add_field(name="Roster", value=lines, inline=False)
    return embed


def game_time_of(game: dict) -> datetime | None:
    """Scheduled start of a game from the backend's game document."""
    return parse_source_timestamp(
        game.get("scheduledDateTimeString") or game.get("scheduledDateTime")
    )


def reminder_text(entity: Entity) -> str:
    """DM text for a due reminder; minutes are counted from the tick that delivers it."""
    data = entity.payload
    context = {"game_id": data.get("game_id", "unknown")}
    game_time = parse_source_timestamp(data.get("game_time"))
    if game_time is None:
        return get_message("game_reminder", "discord_started", **context)

    minutes = round((ensure_utc(game_time) - entity.observed_at).total_seconds() / 60)
    if minutes <= 0:
        return get_message("game_reminder", "discord_started", **context)
    return get_message("game_reminder", "discord", minutes=minutes, **context)


__all__ = [
    "create_lobby_embed",
    "create_completed_game_embed",
    "lobby_fingerprint",
    "reminder_text",
    "game_time_of",
]
