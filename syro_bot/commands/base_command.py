"""
Base Command
Template for class-based commands: config validation, context checks and
typed argument parsing
"""

import re
import time
from abc import abstractmethod
from typing import Any, Callable, Dict, List, Optional

from syro_bot.commands.descriptor import CommandDescriptor, CommandHandler
from syro_bot.errors import ValidationError
from syro_bot.utils.logger import get_logger

TRUTHY = ("true", "1", "yes", "on")

MENTION_PATTERNS = {
    "user": re.compile(r"[<@!>]"),
    "channel": re.compile(r"[<#>]"),
    "role": re.compile(r"[<@&>]"),
}


class BaseCommand(CommandHandler):
    """Base class for commands implemented as classes."""

    def __init__(self, config: Dict[str, Any]):
        self._validate_config(config)
        self.logger = get_logger(f"Command.{config['name']}")

        self.name: str = config["name"].lower()
        self.description: str = config["description"]
        self.category: str = config["category"]
        self.permissions: List[str] = list(config.get("permissions", []))
        self.cooldown: int = config.get("cooldown", 0)
        self.aliases: List[str] = list(config.get("aliases", []))
        self.usage: str = config.get("usage", "")
        self.examples: List[str] = list(config.get("examples", []))
        self.args: Dict[str, Dict[str, Any]] = dict(config.get("args", {}))
        self.guild_only: bool = config.get("guild_only", False)
        self.dm_only: bool = config.get("dm_only", False)
        self.bot_permissions: List[str] = list(config.get("bot_permissions", []))

        self.usage_count = 0
        self.errors = 0
        self.last_used: Optional[float] = None
        self.average_execution_time = 0.0

    @staticmethod
    def _validate_config(config: Dict[str, Any]) -> None:
        for field_name in ("name", "description", "category"):
            value = config.get(field_name)
            if not isinstance(value, str) or not value:
                raise ValidationError(f"Missing required field: {field_name}")

        cooldown = config.get("cooldown", 0)
        if isinstance(cooldown, bool) or not isinstance(cooldown, int) or cooldown < 0:
            raise ValidationError("Cooldown must be a non-negative integer")

        for field_name in ("aliases", "permissions", "bot_permissions", "examples"):
            if field_name in config and not isinstance(config[field_name], list):
                raise ValidationError(f"{field_name} must be a list")

        if "args" in config and not isinstance(config["args"], dict):
            raise ValidationError("args must be a dict")

    async def execute(self, ctx: Any, args: List[str]) -> Any:
        """
        Check context, parse arguments and run the command.

        Args:
            ctx: Invocation context
            args: Argument tokens

        Returns:
            Result of run(), or False when the invocation was rejected
        """
        started = time.perf_counter()
        self.usage_count += 1
        self.last_used = time.time() * 1000

        if not self._validate_context(ctx):
            return False

        parsed = self.parse_arguments(args)
        problem = self.validate_arguments(parsed)
        if problem:
            self.logger.warning(f"Invalid usage of {self.name}: {problem}")
            await ctx.reply(f"❌ Invalid usage.\n\n**Usage:** {self.usage_text()}")
            return False

        try:
            result = await self.run(ctx, parsed)
        except Exception:
            self.errors += 1
            raise

        self._update_timing((time.perf_counter() - started) * 1000)
        return result

    @abstractmethod
    async def run(self, ctx: Any, args: Dict[str, Any]) -> Any:
        """Command body. Receives parsed arguments by name."""

    def _validate_context(self, ctx: Any) -> bool:
        if self.guild_only and not ctx.in_guild:
            self.logger.warning(f"Command {self.name} is guild-only but executed in DM")
            return False
        if self.dm_only and ctx.in_guild:
            self.logger.warning(f"Command {self.name} is DM-only but executed in guild")
            return False
        return True

    def parse_arguments(self, args: List[str]) -> Dict[str, Any]:
        """
        Map positional tokens onto the declared arguments.

        Args:
            args: Argument tokens

        Returns:
            Dict of argument name -> converted value (None when missing and required)
        """
        parsed: Dict[str, Any] = {}
        for position, (key, definition) in enumerate(self.args.items()):
            index = definition.get("index", position)
            if index < len(args):
                parsed[key] = self.convert_argument(args[index], definition.get("type"))
            elif definition.get("required"):
                parsed[key] = None
            else:
                parsed[key] = definition.get("default")
        return parsed

    @staticmethod
    def convert_argument(value: str, arg_type: Optional[str]) -> Any:
        if arg_type == "string":
            return str(value)
        if arg_type == "number":
            try:
                return float(value)
            except ValueError:
                return None
        if arg_type == "integer":
            try:
                return int(value)
            except ValueError:
                return None
        if arg_type == "boolean":
            return value.lower() in TRUTHY
        if arg_type in MENTION_PATTERNS:
            return MENTION_PATTERNS[arg_type].sub("", value)
        return value

    def validate_arguments(self, parsed: Dict[str, Any]) -> Optional[str]:
        """Return a description of the first invalid argument, or None."""
        for key, definition in self.args.items():
            value = parsed.get(key)

            if value is None:
                if definition.get("required"):
                    return f"Required argument missing: {key}"
                continue

            validator: Optional[Callable[[Any], bool]] = definition.get("validate")
            if validator is not None and not validator(value):
                return f"Invalid argument value: {key} = {value}"

            if "min" in definition and value < definition["min"]:
                return f"Argument too small: {key} = {value} (min: {definition['min']})"
            if "max" in definition and value > definition["max"]:
                return f"Argument too large: {key} = {value} (max: {definition['max']})"

        return None

    def usage_text(self) -> str:
        if self.usage:
            return self.usage
        parts = [self.name]
        for key, definition in self.args.items():
            parts.append(f"<{key}>" if definition.get("required") else f"[{key}]")
        return " ".join(parts)

    def _update_timing(self, elapsed_ms: float) -> None:
        completed = self.usage_count - self.errors
        if completed <= 0:
            return
        self.average_execution_time = (
            self.average_execution_time * (completed - 1) + elapsed_ms
        ) / completed

    def get_stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "usageCount": self.usage_count,
            "lastUsed": self.last_used,
            "errors": self.errors,
            "averageExecutionTime": round(self.average_execution_time, 2),
            "successRate": (
                round((self.usage_count - self.errors) / self.usage_count * 100, 2)
                if self.usage_count else 0
            ),
        }

    def to_descriptor(self) -> CommandDescriptor:
        """Build the registry descriptor with this command as handler."""
        return CommandDescriptor(
            name=self.name,
            description=self.description,
            category=self.category,
            handler=self,
            permissions=list(self.permissions),
            cooldown=self.cooldown,
            aliases=list(self.aliases),
            bot_permissions=list(self.bot_permissions),
            usage=self.usage_text(),
            examples=list(self.examples),
            guild_only=self.guild_only,
            dm_only=self.dm_only,
        )
