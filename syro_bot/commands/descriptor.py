"""
Command descriptors, categories and the handler interface
"""

import hashlib
import inspect
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional


class CommandHandler(ABC):
    """Interface every command implementation satisfies."""

    @abstractmethod
    async def execute(self, ctx: Any, args: List[str]) -> Any:
        """Run the command for one invocation."""


class FunctionHandler(CommandHandler):
    """Adapts a plain ``async def handler(ctx, args)`` to CommandHandler."""

    def __init__(self, func: Callable[[Any, List[str]], Awaitable[Any]]):
        if not inspect.iscoroutinefunction(func):
            raise TypeError("Handler function must be a coroutine function")
        self.func = func

    async def execute(self, ctx: Any, args: List[str]) -> Any:
        return await self.func(ctx, args)

    def __repr__(self) -> str:
        return f"FunctionHandler({getattr(self.func, '__name__', self.func)!r})"


@dataclass
class CommandDescriptor:
    """Registered definition of a command."""

    name: str
    description: str
    category: str
    handler: Optional[CommandHandler]
    permissions: List[str] = field(default_factory=list)
    cooldown: int = 0
    aliases: List[str] = field(default_factory=list)
    bot_permissions: List[str] = field(default_factory=list)
    usage: str = ""
    examples: List[str] = field(default_factory=list)
    guild_only: bool = False
    dm_only: bool = False

    # Mutable bookkeeping
    usage_count: int = 0
    last_used: Optional[float] = None
    registered_at: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def mark_used(self, now: Optional[float] = None) -> None:
        self.usage_count += 1
        self.last_used = now if now is not None else time.time() * 1000

    def fingerprint(self) -> str:
        """md5 of the public definition, used to spot re-registrations."""
        content = json.dumps({
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "aliases": self.aliases,
        }, sort_keys=True)
        return hashlib.md5(content.encode("utf-8")).hexdigest()

    def complexity(self) -> float:
        score = 1.0
        if self.aliases:
            score += 0.5
        if self.permissions:
            score += 0.5
        if self.cooldown > 0:
            score += 0.5
        return score

    def dependencies(self) -> List[str]:
        deps = []
        if self.permissions:
            deps.append("permissions")
        if self.cooldown:
            deps.append("cooldown")
        if self.aliases:
            deps.append("aliases")
        return deps

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "permissions": list(self.permissions),
            "botPermissions": list(self.bot_permissions),
            "cooldown": self.cooldown,
            "aliases": list(self.aliases),
            "usage": self.usage,
            "examples": list(self.examples),
            "guildOnly": self.guild_only,
            "dmOnly": self.dm_only,
            "usageCount": self.usage_count,
            "lastUsed": self.last_used,
        }


@dataclass
class Category:
    """A named group of commands, created on first membership."""

    name: str
    display_name: str = ""
    description: str = ""
    enabled: bool = True
    allowed_roles: List[str] = field(default_factory=list)
    commands: Dict[str, CommandDescriptor] = field(default_factory=dict)

    def __post_init__(self):
        if not self.display_name:
            self.display_name = self.name.capitalize()
        if not self.description:
            self.description = f"{self.name} commands"
