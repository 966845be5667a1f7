"""
Shared pytest fixtures for the command system tests.

Time is injected everywhere through a FakeClock so cooldown and TTL
behaviour is deterministic.
"""

import itertools
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from syro_bot.bot.config import CommandSettings
from syro_bot.bot.context import InvocationContext
from syro_bot.commands.descriptor import CommandDescriptor, CommandHandler, FunctionHandler
from syro_bot.utils.error_handler import ErrorHandler

_message_ids = itertools.count(1)


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingHandler(CommandHandler):
    """Handler that records its calls and returns a fixed result."""

    def __init__(self, result: Any = True):
        self.calls: List[List[str]] = []
        self.result = result

    async def execute(self, ctx: Any, args: List[str]) -> Any:
        self.calls.append(list(args))
        return self.result


def make_descriptor(
    name: str = "ping",
    category: str = "utility",
    handler: Optional[CommandHandler] = None,
    **kwargs: Any,
) -> CommandDescriptor:
    return CommandDescriptor(
        name=name,
        description=kwargs.pop("description", f"{name} command"),
        category=category,
        handler=handler or RecordingHandler(),
        **kwargs,
    )


def make_context(
    author_id: str = "100",
    content: str = "xping",
    guild_id: Optional[str] = "500",
    roles: Optional[Dict[str, str]] = None,
    capabilities: Optional[set] = None,
    bot_capabilities: Optional[set] = None,
    author_is_bot: bool = False,
) -> InvocationContext:
    return InvocationContext(
        message_id=str(next(_message_ids)),
        author_id=author_id,
        author_name=f"user{author_id}",
        content=content,
        channel_id="900",
        channel_name="general",
        guild_id=guild_id,
        guild_name="Test Guild" if guild_id else None,
        author_is_bot=author_is_bot,
        roles=dict(roles or {}),
        capabilities=set(capabilities or ()),
        bot_capabilities=set(bot_capabilities or ()),
        reply_func=AsyncMock(),
    )


def replies(ctx: InvocationContext) -> List[str]:
    """Every message sent through ctx.reply."""
    return [call.args[0] for call in ctx.reply_func.call_args_list]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def error_handler() -> ErrorHandler:
    return ErrorHandler()


@pytest.fixture
def settings() -> CommandSettings:
    return CommandSettings(prefix="x", owner_id="1", timeout_ms=200, max_retries=1)


@pytest.fixture
def recording_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def function_handler() -> FunctionHandler:
    async def handler(ctx, args):
        return None

    return FunctionHandler(handler)
