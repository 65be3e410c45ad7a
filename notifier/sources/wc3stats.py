"""
wc3stats public game list.

Lists every hosted Warcraft III lobby; we only keep Island Troll Tribes maps.
"""

import logging

import httpx

from ..config import DEFAULT_LOBBY_MAP_PREFIX, USER_AGENT, get_wc3stats_api_base
from ..errors import SourceUnavailable
from ..timezone import parse_source_timestamp, utc_now
from ..types import Entity

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15.0


async def fetch_active_lobbies() -> list[dict]:
    """
    Fetch active game lobbies from the wc3stats API.

    Raises:
        SourceUnavailable: On HTTP errors or an unexpected response shape
    """
    url = f"{get_wc3stats_api_base()}/gamelist"
    headers = {"Accept": "application/json", "User-Agent": USER_AGENT}

    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            response = await client.get(url, headers=headers)
            if response.status_code != 200:
                raise SourceUnavailable(
                    f"wc3stats API returned HTTP {response.status_code}"
                )
            data = response.json()
    except httpx.HTTPError as e:
        raise SourceUnavailable(f"wc3stats request failed: {e}") from e
    except ValueError as e:
        raise SourceUnavailable(f"wc3stats returned invalid JSON: {e}") from e

    if not isinstance(data, dict) or data.get("status") != "OK":
        raise SourceUnavailable("Invalid wc3stats response structure")
    body = data.get("body")
    if not isinstance(body, list):
        raise SourceUnavailable("Invalid wc3stats response structure")

    return body


def filter_itt_games(games: list, prefix: str = DEFAULT_LOBBY_MAP_PREFIX) -> list[dict]:
    """Keep lobbies whose map name starts with prefix (case-insensitive)."""
    if not isinstance(games, list):
        return []
    prefix = prefix.lower()
    return [
        game
        for game in games
        if isinstance(game, dict)
        and str(game.get("map") or "").lower().startswith(prefix)
    ]


class LobbySource:
    """Open ITT lobbies as entities, keyed by the wc3stats lobby id."""

    def __init__(self, map_prefix: str = DEFAULT_LOBBY_MAP_PREFIX):
        self.map_prefix = map_prefix

    async def fetch_snapshot(self) -> list[Entity]:
        lobbies = filter_itt_games(await fetch_active_lobbies(), self.map_prefix)
        observed_at = utc_now()

        entities = []
        for lobby in lobbies:
            if lobby.get("id") is None:
                logger.debug(f"Skipping lobby without id: {lobby.get('name')}")
                continue
            entities.append(
                Entity(
                    external_id=str(lobby["id"]),
                    payload=lobby,
                    observed_at=observed_at,
                    created_at=parse_source_timestamp(lobby.get("created")),
                )
            )
        return entities
