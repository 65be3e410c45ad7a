"""
Unified entry point.

Architecture:
- One Python process, one asyncio event loop
- Peer services running concurrently:
  1. FastAPI (health/status endpoints)
  2. Discord bot (WebSocket connection to Discord)
  3. Notification loops (APScheduler, started by the bot's notifier cog)

We use FastAPI's lifespan to manage startup/shutdown, but at runtime
all services are equal peers in the event loop.

Run with: python main.py [--no-bot] [--port PORT]
"""

import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Set up import paths before any local imports
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))
# Append (not insert at 0) to allow cog loading without shadowing root main.py
sys.path.append(str(project_root / "discord_bot"))

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")
load_dotenv()

import sentry_sdk
from fastapi import FastAPI

from notifier.config import check_required_env_vars, get_log_level
from notifier.database import close_engine
from notifier.scheduler import get_loops, shutdown_scheduler

from discord_bot.main import bot

logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("main")

if os.environ.get("SENTRY_DSN"):
    sentry_sdk.init(
        dsn=os.environ["SENTRY_DSN"],
        environment=os.environ.get("SENTRY_ENVIRONMENT", "production"),
        traces_sample_rate=0.0,
    )

# Track bot task for cleanup
_bot_task: asyncio.Task | None = None


async def start_bot():
    """
    Start Discord bot (non-blocking).

    Uses bot.start() instead of bot.run() so it can run
    alongside FastAPI in the same event loop.
    """
    if os.getenv("DISABLE_DISCORD_BOT", "").lower() in ("true", "1", "yes"):
        logger.info("Discord bot disabled (--no-bot flag or DISABLE_DISCORD_BOT=true)")
        return

    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.warning("DISCORD_BOT_TOKEN not set, Discord bot will not start")
        return

    try:
        await bot.start(token)
    except Exception as e:
        logger.error(f"Discord bot error: {e}")
        sentry_sdk.capture_exception(e)
        raise


async def stop_bot():
    """Stop Discord bot gracefully."""
    if bot and not bot.is_closed():
        await bot.close()
        logger.info("Discord bot stopped")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Starts the Discord bot as a background task; the bot starts the
    notification loops once it is connected.
    """
    global _bot_task

    for warning in check_required_env_vars():
        logger.warning(warning)

    logger.info("Starting Discord bot...")
    _bot_task = asyncio.create_task(start_bot())

    yield  # FastAPI runs here, bot runs alongside it

    logger.info("Shutting down peer services...")
    shutdown_scheduler()
    await stop_bot()
    await close_engine()
    if _bot_task:
        _bot_task.cancel()
        try:
            await _bot_task
        except asyncio.CancelledError:
            pass


app = FastAPI(
    title="ITT Discord Notifier",
    lifespan=lifespan,
)


@app.get("/api/status")
async def api_status():
    return {
        "status": "ok",
        "bot_ready": bot.is_ready() if bot else False,
    }


@app.get("/health")
async def health():
    """Health check endpoint with per-loop status."""
    return {
        "status": "healthy",
        "bot_connected": bot.is_ready() if bot else False,
        "bot_latency_ms": round(bot.latency * 1000) if bot and bot.is_ready() else None,
        "loops": [loop.status() for loop in get_loops()],
    }


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="ITT Discord Notifier")
    parser.add_argument(
        "--no-bot",
        action="store_true",
        help="Disable Discord bot (health endpoints only)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000)",
    )
    args = parser.parse_args()

    # Set env var so it persists across uvicorn reloads
    if args.no_bot:
        os.environ["DISABLE_DISCORD_BOT"] = "true"

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )
