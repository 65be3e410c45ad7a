"""
ITT backend API (games).

Only the read side used by the notification loops lives here; scheduling,
joining and leaving games belong to the command handlers.
"""

import logging

import httpx

from ..config import USER_AGENT, get_itt_api_base
from ..errors import SourceUnavailable
from ..timezone import parse_source_timestamp, utc_now
from ..types import Entity

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15.0


def get_game_id(game: dict) -> str | None:
    """Public game number, falling back to the document id."""
    game_id = game.get("gameId") or game.get("id")
    return str(game_id) if game_id else None


async def get_completed_games(limit: int = 10) -> list[dict]:
    """
    Get recently completed games, players included.

    Raises:
        SourceUnavailable: On HTTP errors or an unexpected response shape
    """
    url = f"{get_itt_api_base()}/api/games"
    params = {"gameState": "completed", "limit": limit, "includePlayers": "true"}

    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            response = await client.get(
                url, params=params, headers={"User-Agent": USER_AGENT}
            )
            if response.status_code != 200:
                raise SourceUnavailable(
                    f"Failed to fetch completed games: HTTP {response.status_code}"
                )
            result = response.json()
    except httpx.HTTPError as e:
        raise SourceUnavailable(f"ITT API request failed: {e}") from e
    except ValueError as e:
        raise SourceUnavailable(f"ITT API returned invalid JSON: {e}") from e

    games = ((result or {}).get("data") or {}).get("games") or []
    if not isinstance(games, list):
        raise SourceUnavailable("Invalid ITT API response structure")
    return games


class CompletedGamesSource:
    """Recently completed games as entities, keyed by game id."""

    def __init__(self, limit: int = 10):
        self.limit = limit

    async def fetch_snapshot(self) -> list[Entity]:
        games = await get_completed_games(self.limit)
        observed_at = utc_now()

        entities = []
        for game in games:
            game_id = get_game_id(game)
            if not game_id:
                logger.debug("Skipping completed game without id")
                continue
            entities.append(
                Entity(
                    external_id=game_id,
                    payload=game,
                    observed_at=observed_at,
                    created_at=parse_source_timestamp(
                        game.get("datetime") or game.get("createdAt")
                    ),
                )
            )
        return entities
