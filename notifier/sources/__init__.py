"""External source adapters: each pulls a snapshot of candidate entities."""

from typing import Protocol

from ..types import Entity
from .itt_api import CompletedGamesSource, get_completed_games
from .wc3stats import LobbySource, fetch_active_lobbies, filter_itt_games


class Source(Protocol):
    async def fetch_snapshot(self) -> list[Entity]:
        """Raises SourceUnavailable on network or parse errors."""
        ...


__all__ = [
    "Source",
    "LobbySource",
    "CompletedGamesSource",
    "fetch_active_lobbies",
    "filter_itt_games",
    "get_completed_games",
]
