"""
Tests for CommandRegistry.

Tests:
- Registration, validation and conflict detection
- Lookup by name and alias
- Category bookkeeping
- Alias management
- Bounded history
- Help rendering
"""

import pytest

from syro_bot.commands.command_registry import CommandRegistry
from syro_bot.commands.descriptor import CommandDescriptor
from syro_bot.errors import ConflictError, ValidationError

from tests.conftest import FakeClock, RecordingHandler, make_descriptor


@pytest.fixture
def registry(clock):
    return CommandRegistry(clock=clock)


class TestRegistration:
    """Tests for register()."""

    def test_register_and_get(self, registry):
        """Test a registered command is found by name."""
        descriptor = make_descriptor("ping", aliases=["pong"])
        result = registry.register(descriptor)

        assert result
        assert registry.get("ping") is descriptor
        assert registry.has("ping")
        assert descriptor.registered_at == registry.clock()
        assert descriptor.metadata["hash"] == descriptor.fingerprint()

    def test_names_are_normalized(self, registry):
        """Test names and aliases are lower-cased."""
        registry.register(make_descriptor("PING", aliases=["Pong"]))

        assert registry.get("ping").name == "ping"
        assert registry.get("PONG").name == "ping"
        assert registry.get_aliases("ping") == ["pong"]

    def test_duplicate_name_conflicts(self, registry):
        """Test second registration of a name fails and leaves state unchanged."""
        first = make_descriptor("ping")
        registry.register(first)

        result = registry.register(make_descriptor("ping", description="other"))

        assert not result
        assert isinstance(result.error, ConflictError)
        assert registry.get("ping") is first
        assert len(registry.get_all()) == 1
        assert registry.conflicts[-1]["type"] == "duplicate_name"

    def test_alias_cannot_become_name(self, registry):
        """Test an alias of A can't be registered as the name of B."""
        registry.register(make_descriptor("ping", aliases=["p"]))

        result = registry.register(make_descriptor("p"))

        assert not result
        assert isinstance(result.error, ConflictError)
        assert registry.get("p").name == "ping"

    def test_alias_cannot_be_reused(self, registry):
        """Test an alias of A can't be registered as an alias of B."""
        registry.register(make_descriptor("ping", aliases=["p"]))

        result = registry.register(make_descriptor("purge", aliases=["pu", "p"]))

        assert not result
        assert isinstance(result.error, ConflictError)
        assert registry.get("purge") is None
        assert registry.get("pu") is None
        assert registry.aliases == {"p": "ping"}

    def test_alias_equal_to_own_name_conflicts(self, registry):
        """Test a command can't alias itself."""
        result = registry.register(make_descriptor("ping", aliases=["ping"]))
        assert not result
        assert isinstance(result.error, ConflictError)

    def test_missing_fields_fail_validation(self, registry):
        """Test required fields are enforced."""
        result = registry.register(make_descriptor("ping", description=""))
        assert not result
        assert isinstance(result.error, ValidationError)

        missing_handler = CommandDescriptor(
            name="ping", description="d", category="utility", handler=None
        )
        assert not registry.register(missing_handler)
        assert registry.get_all() == []

    def test_handler_must_implement_interface(self, registry):
        """Test duck-typed handlers are rejected at registration."""

        class Duck:
            async def execute(self, ctx, args):
                return None

        descriptor = CommandDescriptor(name="ping", description="d", category="utility", handler=Duck())
        result = registry.register(descriptor)

        assert not result
        assert "CommandHandler" in result.reason

    def test_too_many_aliases(self, clock):
        """Test alias count is capped."""
        registry = CommandRegistry(max_aliases=2, clock=clock)
        result = registry.register(make_descriptor("ping", aliases=["a", "b", "c"]))

        assert not result
        assert isinstance(result.error, ValidationError)

    def test_negative_cooldown_rejected(self, registry):
        """Test cooldown must be non-negative."""
        result = registry.register(make_descriptor("ping", cooldown=-5))
        assert not result

    def test_non_finite_cooldown_rejected(self, registry):
        """Test infinite and NaN cooldowns fail validation instead of raising."""
        for cooldown in (float("inf"), float("nan")):
            result = registry.register(make_descriptor("ping", cooldown=cooldown))
            assert not result
            assert isinstance(result.error, ValidationError)
        assert registry.get_all() == []

    def test_guild_only_and_dm_only_conflict(self, registry):
        """Test a command can't be both guild-only and DM-only."""
        result = registry.register(make_descriptor("ping", guild_only=True, dm_only=True))
        assert not result


class TestCategories:
    """Tests for category bookkeeping."""

    def test_category_created_lazily(self, registry):
        """Test the first member creates the category."""
        assert registry.get_categories() == []

        registry.register(make_descriptor("ping", category="utility"))
        registry.register(make_descriptor("serverinfo", category="info"))
        registry.register(make_descriptor("userinfo", category="info"))

        assert [c.name for c in registry.get_categories()] == ["utility", "info"]
        assert [d.name for d in registry.get_by_category("info")] == ["serverinfo", "userinfo"]
        assert registry.get_by_category("music") == []

    def test_unregister_removes_membership_and_aliases(self, registry):
        """Test unregister cleans every index."""
        registry.register(make_descriptor("ping", aliases=["p", "pong"]))

        assert registry.unregister("ping")
        assert registry.get("ping") is None
        assert registry.get("p") is None
        assert registry.aliases == {}
        assert registry.get_by_category("utility") == []

    def test_unregister_unknown(self, registry):
        """Test unregistering an unknown command reports NotFound."""
        result = registry.unregister("missing")
        assert not result
        assert "not found" in result.reason


class TestAliases:
    """Tests for add_alias() and remove_alias()."""

    def test_add_alias(self, registry):
        """Test a new alias resolves to the command."""
        registry.register(make_descriptor("ping"))

        assert registry.add_alias("ping", "latency")
        assert registry.get("latency").name == "ping"
        assert registry.get("ping").aliases == ["latency"]

    def test_add_alias_conflict(self, registry):
        """Test add_alias refuses names and aliases in use."""
        registry.register(make_descriptor("ping", aliases=["p"]))
        registry.register(make_descriptor("help"))

        assert not registry.add_alias("help", "p")
        assert not registry.add_alias("help", "ping")
        assert registry.get("p").name == "ping"

    def test_add_alias_unknown_command(self, registry):
        """Test add_alias on a missing command."""
        assert not registry.add_alias("missing", "m")

    def test_remove_alias(self, registry):
        """Test remove_alias drops the alias only."""
        registry.register(make_descriptor("ping", aliases=["p"]))

        assert registry.remove_alias("p")
        assert registry.get("p") is None
        assert registry.get("ping").aliases == []
        assert not registry.remove_alias("p")


class TestHistoryAndStats:
    """Tests for history, stats and help."""

    def test_history_is_bounded(self):
        """Test history keeps only the most recent entries."""
        registry = CommandRegistry(history_limit=3, clock=FakeClock())
        for i in range(5):
            registry.register(make_descriptor(f"cmd{i}"))

        history = registry.get_history()
        assert len(history) == 3
        assert [h["command"] for h in history] == ["cmd2", "cmd3", "cmd4"]
        assert registry.get_history(limit=1)[0]["command"] == "cmd4"

    def test_lookup_stats(self, registry):
        """Test lookups are counted and resettable."""
        registry.register(make_descriptor("ping"))
        registry.get("ping")
        registry.get("missing")

        stats = registry.get_stats()
        assert stats["performance"]["lookupCount"] == 2
        assert stats["commands"]["total"] == 1
        assert stats["commands"]["byCategory"] == {"utility": 1}

        registry.reset_lookup_stats()
        assert registry.get_stats()["performance"]["lookupCount"] == 0

    def test_generate_help(self, registry):
        """Test help lists commands per category."""
        registry.register(make_descriptor("ping", aliases=["p"], description="Check latency"))

        text = registry.generate_help("x")
        assert "Utility" in text
        assert "`xping` (p) - Check latency" in text

    def test_generate_command_help(self, registry):
        """Test detailed help via alias."""
        registry.register(make_descriptor(
            "ping", aliases=["p"], cooldown=3000, usage="ping", examples=["ping"]
        ))

        text = registry.generate_command_help("p", "x")
        assert "`ping`" in text
        assert "**Cooldown:** 3s" in text
        assert registry.generate_command_help("missing") is None

    def test_clear(self, registry):
        """Test clear empties commands but keeps categories."""
        registry.register(make_descriptor("ping", handler=RecordingHandler()))
        registry.clear()

        assert registry.get_all() == []
        assert registry.aliases == {}
        assert [c.name for c in registry.get_categories()] == ["utility"]
