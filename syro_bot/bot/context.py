"""
Invocation Context
Envelope carrying sender, scope, channel and content for one user action
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Set

ReplyFunc = Callable[[str], Awaitable[Any]]


def _permission_names(permissions: Any) -> Set[str]:
    """Collect the granted capability bits from a discord.Permissions."""
    if permissions is None:
        return set()
    return {name for name, value in permissions if value}


@dataclass
class InvocationContext:
    """One inbound message, reduced to what the command pipeline needs."""

    message_id: str
    author_id: str
    author_name: str
    content: str
    channel_id: str
    channel_name: str = ""
    guild_id: Optional[str] = None
    guild_name: Optional[str] = None
    author_is_bot: bool = False

    # role id -> role name
    roles: Dict[str, str] = field(default_factory=dict)
    capabilities: Set[str] = field(default_factory=set)
    bot_capabilities: Set[str] = field(default_factory=set)

    reply_func: Optional[ReplyFunc] = None
    raw: Any = None

    @property
    def in_guild(self) -> bool:
        return self.guild_id is not None

    def has_capability(self, capability: str) -> bool:
        """Whether the invoker holds a capability bit in this scope."""
        return "administrator" in self.capabilities or capability in self.capabilities

    def bot_has_capability(self, capability: str) -> bool:
        """Whether the acting bot holds a capability bit in this scope."""
        return "administrator" in self.bot_capabilities or capability in self.bot_capabilities

    def has_role(self, role_id: str) -> bool:
        return role_id in self.roles

    def has_role_named(self, role_name: str) -> bool:
        return role_name in self.roles.values()

    async def reply(self, content: str) -> Any:
        if self.reply_func is None:
            return None
        return await self.reply_func(content)

    @classmethod
    def from_message(cls, message: Any) -> "InvocationContext":
        """
        Build a context from a discord.Message.

        Args:
            message: Discord message object

        Returns:
            InvocationContext for the command pipeline
        """
        guild = getattr(message, "guild", None)
        author = message.author
        channel = message.channel

        roles: Dict[str, str] = {}
        capabilities: Set[str] = set()
        bot_capabilities: Set[str] = set()

        if guild is not None:
            for role in getattr(author, "roles", []) or []:
                roles[str(role.id)] = role.name
            capabilities = _permission_names(getattr(author, "guild_permissions", None))
            me = getattr(guild, "me", None)
            if me is not None:
                bot_capabilities = _permission_names(getattr(me, "guild_permissions", None))

        return cls(
            message_id=str(message.id),
            author_id=str(author.id),
            author_name=str(author),
            content=message.content or "",
            channel_id=str(channel.id),
            channel_name=getattr(channel, "name", "") or "",
            guild_id=str(guild.id) if guild is not None else None,
            guild_name=guild.name if guild is not None else None,
            author_is_bot=bool(getattr(author, "bot", False)),
            roles=roles,
            capabilities=capabilities,
            bot_capabilities=bot_capabilities,
            reply_func=message.reply,
            raw=message,
        )
