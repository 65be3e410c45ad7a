"""
Notifier Cog - starts the notification loops once the bot is connected.

Thin adapter: all logic lives in notifier/.
"""

import logging

from discord.ext import commands

from notifier import shutdown_scheduler, start_monitors

logger = logging.getLogger(__name__)


class NotifierCog(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def cog_load(self):
        loops = start_monitors()
        if not loops:
            logger.warning("No notification loops configured; nothing will be posted")

    async def cog_unload(self):
        shutdown_scheduler()


async def setup(bot: commands.Bot):
    await bot.add_cog(NotifierCog(bot))
