"""
Island Troll Tribes - Discord Bot
Bot construction and startup.

The bot itself only hosts the notifier: once connected it hands itself to
notifier.discord_outbound and loads the cog that starts the polling loops.
"""

import logging
import os

import discord
from discord.ext import commands
from dotenv import load_dotenv

from notifier.discord_outbound import set_bot

logger = logging.getLogger(__name__)


def create_bot() -> commands.Bot:
    """Create and configure the bot instance."""
    # Posting and DMs need no privileged intents
    intents = discord.Intents.default()

    bot = commands.Bot(command_prefix="!", intents=intents)

    @bot.event
    async def on_ready():
        """Called on every (re)connect; cogs are loaded only once."""
        logger.info(f"Bot is ready! Logged in as {bot.user}")
        set_bot(bot)

        for cog in COGS:
            if cog in bot.extensions:
                logger.info(f"  - {cog} already loaded")
                continue
            try:
                await bot.load_extension(cog)
                logger.info(f"  ✓ Loaded {cog}")
            except Exception:
                logger.exception(f"  ✗ Error loading {cog}")

    return bot


COGS = [
    "cogs.notifier_cog",
]


bot = create_bot()


def main():
    """Run the bot standalone, without the HTTP status server."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.error("DISCORD_BOT_TOKEN environment variable not set!")
        raise SystemExit(1)

    bot.run(token)


if __name__ == "__main__":
    main()
