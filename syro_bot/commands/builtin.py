"""
Built-in Commands
ping, help and status
"""

import time
from typing import Any, Callable, Dict, Optional

from syro_bot.commands.base_command import BaseCommand
from syro_bot.utils.discord import DiscordUtils


class PingCommand(BaseCommand):
    """Round-trip and gateway latency."""

    def __init__(self, latency: Optional[Callable[[], float]] = None):
        super().__init__({
            "name": "ping",
            "description": "Check bot latency",
            "category": "utility",
            "cooldown": 3000,
            "aliases": ["latency", "pong"],
            "usage": "ping",
            "examples": ["ping"],
        })
        self.latency = latency

    async def run(self, ctx: Any, args: Dict[str, Any]) -> None:
        started = time.perf_counter()
        await ctx.reply("🏓 Pinging...")
        round_trip = (time.perf_counter() - started) * 1000

        lines = ["🏓 **Pong!**", f"**Round trip:** {round_trip:.0f}ms"]
        if self.latency is not None:
            gateway = self.latency()
            if gateway != float("inf"):
                lines.append(f"**Gateway:** {gateway * 1000:.0f}ms")
        await ctx.reply("\n".join(lines))


class HelpCommand(BaseCommand):
    """Lists commands, or details one of them."""

    def __init__(self, manager: Any):
        super().__init__({
            "name": "help",
            "description": "Show available commands",
            "category": "info",
            "cooldown": 2000,
            "aliases": ["commands", "h"],
            "usage": "help [command]",
            "examples": ["help", "help ping"],
            "args": {
                "command": {"type": "string", "required": False},
            },
        })
        self.manager = manager

    async def run(self, ctx: Any, args: Dict[str, Any]) -> None:
        prefix = await self.manager.get_server_prefix(ctx.guild_id)
        registry = self.manager.registry

        name = args.get("command")
        if name:
            text = registry.generate_command_help(name, prefix)
            if text is None:
                await ctx.reply(f"❌ Unknown command: `{name}`")
                return
        else:
            text = registry.generate_help(prefix)

        await ctx.reply(text)


class StatusCommand(BaseCommand):
    """Health and counters of the command system."""

    def __init__(self, manager: Any):
        super().__init__({
            "name": "status",
            "description": "Show bot health status and metrics",
            "category": "info",
            "cooldown": 5000,
            "aliases": ["health"],
            "usage": "status",
        })
        self.manager = manager

    async def run(self, ctx: Any, args: Dict[str, Any]) -> None:
        monitoring = self.manager.monitoring
        health = monitoring.get_health_status()
        app = monitoring.get_app_metrics()
        uptime = int(time.time() - monitoring.start_time)

        status_icon = "🟢" if health.healthy else "🟡"
        lines = [
            f"{status_icon} **Bot Health Status: {health.status.upper()}**",
            "",
            "📈 **Commands:**",
            f"Executed: {DiscordUtils.format_number(app['totalExecutions'])} "
            f"({app['commandsPerHour']}/hr)",
            f"Succeeded: {app['successfulExecutions']} | Failed: {app['failedExecutions']}",
            f"Denied: {app['permissionDenials']} permission, {app['cooldownDenials']} cooldown",
            "",
            f"⏱️ **Uptime:** {monitoring.format_duration(uptime)}",
        ]
        await ctx.reply("\n".join(lines))


def register_builtin_commands(manager: Any, latency: Optional[Callable[[], float]] = None) -> int:
    """
    Register ping, help and status on a manager.

    Returns:
        Number of commands registered
    """
    commands = [PingCommand(latency), HelpCommand(manager), StatusCommand(manager)]
    return sum(1 for command in commands if manager.register_command(command))
