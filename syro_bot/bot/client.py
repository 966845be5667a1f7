"""
Discord client setup using discord.py-self.
Routes incoming messages into the command manager.
"""

import asyncio
import signal
from typing import Optional

import discord

from syro_bot.bot.config import CommandSettings, config
from syro_bot.bot.context import InvocationContext
from syro_bot.bot.status_server import run_server, update_bot_status
from syro_bot.commands.builtin import register_builtin_commands
from syro_bot.commands.command_manager import CommandManager
from syro_bot.utils.error_handler import setup_error_handler
from syro_bot.utils.logger import get_logger

logger = get_logger("Client")


class SyroBot(discord.Client):
    """Discord client driving the command system."""

    def __init__(self, settings: Optional[CommandSettings] = None):
        super().__init__()

        self.settings = settings or CommandSettings.from_env()
        self.manager = CommandManager(settings=self.settings)
        self.manager.monitoring.client = self

        # Track uptime
        self.start_time: Optional[float] = None
        self._server_task: Optional[asyncio.Task] = None

    async def setup_hook(self):
        """Called when the client is starting up."""
        logger.info("Setting up bot...")

        setup_error_handler(asyncio.get_running_loop())

        count = register_builtin_commands(self.manager, latency=lambda: self.latency)
        logger.info(f"Registered {count} built-in commands")

        self.manager.start()
        self._server_task = run_server(self.manager)

        logger.info("Bot setup complete")

    async def on_ready(self):
        """Called when the client is ready."""
        self.start_time = asyncio.get_running_loop().time()
        self.manager.bot_user_id = str(self.user.id)
        update_bot_status(status="ready", discord_connected=True)

        logger.info(f"Logged in as: {self.user}")
        logger.info(f"Use {self.settings.prefix}help to see available commands")

    async def on_message(self, message: discord.Message):
        """Handle incoming messages."""
        if self.user is not None and message.author.id == self.user.id:
            return

        ctx = InvocationContext.from_message(message)
        await self.manager.execute_command(ctx)

    async def close(self):
        """Clean shutdown."""
        logger.info("Shutting down bot...")

        await self.manager.stop()
        if self._server_task and not self._server_task.done():
            self._server_task.cancel()

        update_bot_status(status="offline", discord_connected=False)
        await super().close()


# Global bot instance
bot: Optional[SyroBot] = None


def create_bot(settings: Optional[CommandSettings] = None) -> SyroBot:
    """Create and return bot instance."""
    global bot
    bot = SyroBot(settings)
    return bot


async def run_bot():
    """Run the bot."""
    config.validate()

    client = create_bot()

    def shutdown_handler(sig, frame):
        logger.info(f"Received signal {sig}, shutting down...")
        asyncio.create_task(client.close())

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    try:
        await client.start(config.DISCORD_TOKEN)
    except Exception as e:
        logger.error(f"Bot error: {e}")
        raise
