"""
Tests for CommandManager.

Tests:
- Ignore, parse and resolve stages
- Permission and cooldown denials
- Per-user and global cooldown windows end to end
- Prefixes, administrative entry points and observability
"""

import asyncio

import pytest

from syro_bot.bot.config import CommandSettings
from syro_bot.bot.constants import MESSAGES
from syro_bot.commands.base_command import BaseCommand
from syro_bot.commands.builtin import register_builtin_commands
from syro_bot.commands.command_manager import CommandManager
from syro_bot.errors import ValidationError

from tests.conftest import RecordingHandler, make_context, make_descriptor, replies


@pytest.fixture
def manager(settings, clock):
    return CommandManager(settings=settings, bot_user_id="999", clock=clock)


@pytest.fixture
def ping_handler(manager):
    handler = RecordingHandler()
    manager.register_command(make_descriptor("ping", handler=handler, cooldown=3000, aliases=["p"]))
    return handler


class TestPipeline:
    """Tests for execute_command() stages."""

    @pytest.mark.asyncio
    async def test_dispatch_with_args(self, manager, ping_handler):
        """Test prefix stripping, lower-casing and argument split."""
        ctx = make_context(content="xPING  one   two")

        assert await manager.execute_command(ctx) is True
        assert ping_handler.calls == [["one", "two"]]
        assert manager.registry.get("ping").usage_count == 1

    @pytest.mark.asyncio
    async def test_alias_dispatch(self, manager, ping_handler):
        """Test aliases resolve to the command."""
        assert await manager.execute_command(make_context(content="xp")) is True
        assert len(ping_handler.calls) == 1

    @pytest.mark.asyncio
    async def test_ignores_bots_and_self(self, manager, ping_handler):
        """Test bot authors and the bot's own messages are ignored."""
        assert await manager.execute_command(make_context(author_is_bot=True)) is False
        assert await manager.execute_command(make_context(author_id="999")) is False
        assert ping_handler.calls == []

    @pytest.mark.asyncio
    async def test_ignores_missing_prefix_and_unknown(self, manager, ping_handler):
        """Test content without prefix or with unknown commands is ignored silently."""
        for content in ("ping", "x", "x   ", "xunknown"):
            ctx = make_context(content=content)
            assert await manager.execute_command(ctx) is False
            assert replies(ctx) == []

    @pytest.mark.asyncio
    async def test_permission_denied(self, manager):
        """Test a denial replies and stops the pipeline."""
        handler = RecordingHandler()
        manager.register_command(
            make_descriptor("ban", category="moderation", handler=handler, permissions=["ban_members"])
        )
        ctx = make_context(content="xban 123")

        assert await manager.execute_command(ctx) is False
        assert handler.calls == []
        assert replies(ctx) == [MESSAGES["no_permission"]]
        assert manager.execution_stats["permissionDenials"] == 1

    @pytest.mark.asyncio
    async def test_role_override_denies(self, manager):
        """Test a server role override denies a member with matching bits."""
        manager.register_command(
            make_descriptor("ban", category="moderation", permissions=["ban_members"])
        )
        assert await manager.set_role_permission("500", "ban", "r1", False)

        ctx = make_context(content="xban", roles={"r1": "Moderator"}, capabilities={"ban_members"})
        assert await manager.execute_command(ctx) is False
        assert replies(ctx) == [MESSAGES["no_permission"]]

    @pytest.mark.asyncio
    async def test_handler_failure_returns_false(self, manager):
        """Test executor failures count as failed executions."""

        class Broken(RecordingHandler):
            async def execute(self, ctx, args):
                raise RuntimeError("Channel not found")

        manager.register_command(make_descriptor("boom", handler=Broken()))
        ctx = make_context(content="xboom")

        assert await manager.execute_command(ctx) is False
        assert replies(ctx) == [MESSAGES["not_found"]]
        assert manager.execution_stats["failedExecutions"] == 1

    @pytest.mark.asyncio
    async def test_cancelled_handler_is_contained(self, manager):
        """Test a handler raising CancelledError ends as a failed invocation."""

        class Cancelling(RecordingHandler):
            async def execute(self, ctx, args):
                raise asyncio.CancelledError()

        manager.register_command(make_descriptor("halt", handler=Cancelling()))
        ctx = make_context(content="xhalt")

        assert await manager.execute_command(ctx) is False
        assert replies(ctx) == [MESSAGES["retry_exhausted"]]
        assert manager.execution_stats["failedExecutions"] == 1
        assert [e["status"] for e in manager.get_active_executions()] == ["failed"]


class TestCooldownScenarios:
    """End-to-end cooldown behaviour."""

    @pytest.mark.asyncio
    async def test_per_user_window(self, manager, ping_handler, clock):
        """Test U is throttled within the window while V is not."""
        assert await manager.execute_command(make_context(author_id="U")) is True

        clock.advance(1000)
        second = make_context(author_id="U")
        assert await manager.execute_command(second) is False
        assert replies(second) == [MESSAGES["cooldown"].format(time=2)]

        assert await manager.execute_command(make_context(author_id="V")) is True
        assert len(ping_handler.calls) == 2

        clock.advance(2000)
        assert await manager.execute_command(make_context(author_id="U")) is True

    @pytest.mark.asyncio
    async def test_global_window(self, manager, clock):
        """Test a global policy blocks everyone after one use."""
        handler = RecordingHandler()
        manager.register_command(make_descriptor("nuke", handler=handler))
        assert manager.set_global_cooldown("nuke", 300000)

        assert await manager.execute_command(make_context(author_id="A", content="xnuke")) is True

        clock.advance(1000)
        b = make_context(author_id="B", content="xnuke")
        assert await manager.execute_command(b) is False
        assert replies(b) == [MESSAGES["global_cooldown"].format(time=299)]

        result = await manager.cooldown_manager.check_cooldown("B", "nuke", 0)
        assert result.allowed is False
        assert result.kind == "global"
        assert result.remaining_time == 299000
        assert len(handler.calls) == 1

    @pytest.mark.asyncio
    async def test_default_global_policies(self, manager):
        """Test the default policy table is loaded."""
        assert manager.global_cooldowns["nuke"] == 60000
        assert manager.global_cooldowns["warn"] == 3000

    @pytest.mark.asyncio
    async def test_remove_global_cooldown(self, manager, clock):
        """Test removing the policy and its open window."""
        manager.register_command(make_descriptor("nuke"))
        await manager.execute_command(make_context(author_id="A", content="xnuke"))

        assert manager.remove_global_cooldown("nuke") is True
        assert await manager.execute_command(make_context(author_id="B", content="xnuke")) is True

    @pytest.mark.asyncio
    async def test_admin_set_cooldown(self, manager, ping_handler):
        """Test an admin-set window throttles the user."""
        assert manager.set_cooldown("U", "p", 10000)

        ctx = make_context(author_id="U")
        assert await manager.execute_command(ctx) is False
        assert replies(ctx) == [MESSAGES["cooldown"].format(time=10)]
        assert not manager.set_cooldown("U", "missing", 1000)


class TestRegistration:
    """Tests for register/unregister/reload."""

    def test_unknown_category_rejected(self, manager):
        """Test commands must use a known category."""
        result = manager.register_command(make_descriptor("x1", category="nope"))
        assert not result
        assert isinstance(result.error, ValidationError)

    def test_add_category(self, manager):
        """Test added categories accept commands and carry default roles."""
        manager.add_category("games", description="Games", allowed_roles=["@everyone"])
        assert manager.register_command(make_descriptor("dice", category="games"))
        assert manager.permission_manager.category_roles["games"]["roles"] == ["@everyone"]

    def test_default_categories(self, manager):
        """Test the seven default categories exist."""
        names = [c.name for c in manager.registry.get_categories()]
        assert names == ["admin", "moderation", "utility", "info", "fun", "economy", "music"]

    def test_register_base_command(self, manager):
        """Test BaseCommand instances register through their descriptor."""

        class Hello(BaseCommand):
            def __init__(self):
                super().__init__({"name": "hello", "description": "Say hi", "category": "fun"})

            async def run(self, ctx, args):
                await ctx.reply("hi")

        command = Hello()
        assert manager.register_command(command)
        assert manager.registry.get("hello").handler is command

    def test_unregister_by_alias(self, manager, ping_handler):
        """Test unregister resolves aliases."""
        assert manager.unregister_command("p")
        assert manager.registry.get("ping") is None
        assert not manager.unregister_command("ping")

    @pytest.mark.asyncio
    async def test_reload_commands(self, manager, ping_handler):
        """Test reload re-registers every known command."""
        manager.register_command(make_descriptor("help", category="info"))

        assert await manager.reload_commands()
        assert {d.name for d in manager.registry.get_all()} == {"ping", "help"}
        assert manager.registry.get("p").name == "ping"

    @pytest.mark.asyncio
    async def test_builtin_commands(self, manager):
        """Test ping, help and status are registered and runnable."""
        assert register_builtin_commands(manager) == 3

        ctx = make_context(content="xhelp ping")
        assert await manager.execute_command(ctx) is True
        assert "`ping`" in replies(ctx)[0]

        status = make_context(author_id="7", content="xstatus")
        assert await manager.execute_command(status) is True
        assert "Bot Health Status" in replies(status)[0]


class TestPrefixes:
    """Tests for server prefixes."""

    @pytest.mark.asyncio
    async def test_default_prefix(self, manager):
        """Test servers without a custom prefix use the default."""
        assert await manager.get_server_prefix("500") == "x"
        assert await manager.get_server_prefix(None) == "x"

    @pytest.mark.asyncio
    async def test_custom_prefix(self, manager, ping_handler):
        """Test a custom prefix replaces the default for one server."""
        assert await manager.set_server_prefix("500", "!")

        assert await manager.execute_command(make_context(content="!ping")) is True
        assert await manager.execute_command(make_context(author_id="2", content="xping")) is False
        assert await manager.execute_command(make_context(author_id="3", guild_id="600")) is True

    @pytest.mark.asyncio
    async def test_custom_prefix_survives_cache_clear(self, manager):
        """Test the periodic cache clear doesn't lose custom prefixes."""
        await manager.set_server_prefix("500", "?")
        await manager.scheduler.run_pending("prefix-cache")

        assert manager.prefix_cache == {}
        assert await manager.get_server_prefix("500") == "?"

    @pytest.mark.asyncio
    async def test_invalid_prefix(self, manager):
        """Test empty, long and whitespace prefixes are rejected."""
        assert not await manager.set_server_prefix("500", "")
        assert not await manager.set_server_prefix("500", "toolong")
        assert not await manager.set_server_prefix("500", "a b")
        assert await manager.get_server_prefix("500") == "x"


class TestObservability:
    """Tests for stats, dashboards and sweeps."""

    @pytest.mark.asyncio
    async def test_get_stats(self, manager, ping_handler):
        """Test stats cover every component."""
        await manager.execute_command(make_context())

        stats = manager.get_stats()
        assert set(stats) == {"manager", "registry", "permissions", "cooldowns", "executor", "scheduler"}
        assert stats["manager"]["successfulExecutions"] == 1
        assert stats["executor"]["totalExecutions"] == 1
        assert stats["permissions"]["totalChecks"] == 1
        assert stats["cooldowns"]["totalChecks"] == 1

    @pytest.mark.asyncio
    async def test_dashboard(self, manager, ping_handler):
        """Test dashboard rows include server overrides."""
        await manager.set_role_permission("500", "ping", "r1", False)

        rows = await manager.get_commands_for_dashboard("500")
        assert rows[0]["name"] == "ping"
        assert rows[0]["categoryName"] == "Utility"
        assert rows[0]["roleOverrides"]["r1"]["allowed"] is False
        assert manager.get_guild_permissions("500")["ping"]["r1"]["allowed"] is False

    @pytest.mark.asyncio
    async def test_role_permission_unknown_command(self, manager):
        """Test overrides require a registered command."""
        assert not await manager.set_role_permission("500", "missing", "r1", False)

    @pytest.mark.asyncio
    async def test_history_and_audit_passthrough(self, manager, ping_handler):
        """Test history and audit slices are exposed."""
        await manager.execute_command(make_context(author_id="42"))

        assert manager.get_execution_history({"user_id": "42"})[0]["commandName"] == "ping"
        assert manager.get_audit_log({"user_id": "42"})[0]["allowed"] is True
        assert manager.get_active_executions()[0]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_sweeps_registered(self, manager, ping_handler, clock):
        """Test every sweep is registered and runnable."""
        names = [job["name"] for job in manager.scheduler.jobs()]
        assert "cooldown-expired" in names
        assert "permission-cache" in names
        assert "active-executions" in names

        await manager.execute_command(make_context(author_id="U"))
        clock.advance(3000)
        assert await manager.scheduler.run_pending() == len(names)
        assert manager.cooldown_manager.get_user_cooldowns("U") == {}

    @pytest.mark.asyncio
    async def test_start_and_stop(self, manager):
        """Test the scheduler lifecycle."""
        manager.start()
        assert manager.scheduler.started
        await manager.stop()
        assert not manager.scheduler.started

    @pytest.mark.asyncio
    async def test_health_status(self, manager):
        """Test health combines process and command checks."""
        health = manager.get_health_status()
        assert health["status"] in ("healthy", "degraded")
        assert health["checks"]["scheduler"] is False

    @pytest.mark.asyncio
    async def test_clear_all_data(self, manager, ping_handler):
        """Test everything observable is reset."""
        await manager.execute_command(make_context())
        manager.clear_all_data()

        assert manager.get_execution_history() == []
        assert manager.get_audit_log() == []
        assert manager.execution_stats["totalExecutions"] == 0
        assert await manager.execute_command(make_context()) is True


def test_owner_from_settings(clock):
    """Test the owner id flows from settings into the permission manager."""
    manager = CommandManager(settings=CommandSettings(owner_id="77"), clock=clock)
    assert manager.permission_manager.owner_id == "77"


@pytest.mark.asyncio
async def test_managers_keep_separate_error_stats(settings, clock):
    """Test each manager owns its error statistics."""
    first = CommandManager(settings=settings, clock=clock)
    second = CommandManager(settings=settings, clock=clock)
    assert first.error_handler is not second.error_handler
    assert first.executor.error_handler is first.error_handler

    class Broken(RecordingHandler):
        async def execute(self, ctx, args):
            raise RuntimeError("Channel not found")

    first.register_command(make_descriptor("boom", handler=Broken()))
    await first.execute_command(make_context(content="xboom"))

    assert first.get_stats()["executor"]["errors"]["totalErrors"] == 1
    assert second.get_stats()["executor"]["errors"]["totalErrors"] == 0

    second.clear_all_data()
    assert len(first.error_handler.get_stats()["recentErrors"]) == 1


def test_global_cooldown_rejects_non_finite(manager):
    """Test non-finite global policies are refused without raising."""
    assert not manager.set_global_cooldown("nuke", float("nan"))
    assert not manager.set_global_cooldown("nuke", float("inf"))
    assert manager.global_cooldowns["nuke"] == 60000
