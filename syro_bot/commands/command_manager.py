"""
Command Manager
Orchestrates prefix resolution, parsing, authorization, throttling and
dispatch of incoming invocations
"""

import time
from typing import Any, Callable, Dict, List, Optional, Union

from syro_bot.bot.config import CommandSettings
from syro_bot.bot.constants import CATEGORIES, DEFAULT_CATEGORY_ROLES, GLOBAL_COOLDOWNS, MESSAGES
from syro_bot.commands.base_command import BaseCommand
from syro_bot.commands.command_executor import CommandExecutor
from syro_bot.commands.command_registry import CommandRegistry
from syro_bot.commands.cooldown_manager import CooldownManager
from syro_bot.commands.descriptor import Category, CommandDescriptor
from syro_bot.commands.permission_manager import DIRECT_SCOPE, PermissionManager
from syro_bot.errors import OperationResult, ValidationError
from syro_bot.utils.discord import DiscordUtils
from syro_bot.utils.error_handler import ErrorHandler
from syro_bot.utils.logger import get_logger
from syro_bot.utils.monitoring import Monitoring
from syro_bot.utils.scheduler import SweepScheduler
from syro_bot.utils.validation import ValidationUtils

CommandSource = Union[CommandDescriptor, BaseCommand]


def _now_ms() -> float:
    return time.time() * 1000


class CommandManager:
    """Entry point of the command system."""

    def __init__(
        self,
        settings: Optional[CommandSettings] = None,
        registry: Optional[CommandRegistry] = None,
        permission_manager: Optional[PermissionManager] = None,
        cooldown_manager: Optional[CooldownManager] = None,
        executor: Optional[CommandExecutor] = None,
        scheduler: Optional[SweepScheduler] = None,
        error_handler: Optional[ErrorHandler] = None,
        bot_user_id: Optional[str] = None,
        global_cooldowns: Optional[Dict[str, int]] = None,
        clock: Callable[[], float] = _now_ms,
    ):
        self.logger = get_logger("CommandManager")
        self.settings = settings or CommandSettings.from_env()
        self.clock = clock
        self.bot_user_id = bot_user_id
        s = self.settings

        self.registry = registry or CommandRegistry(
            max_aliases=s.max_aliases,
            enable_validation=s.enable_validation,
            history_limit=s.history_limit,
            clock=clock,
        )
        self.permission_manager = permission_manager or PermissionManager(
            owner_id=s.owner_id,
            enable_caching=s.enable_caching,
            cache_ttl_ms=s.cache_ttl_ms,
            enable_audit_logging=s.enable_audit_logging,
            audit_limit=s.audit_limit,
            clock=clock,
        )
        self.cooldown_manager = cooldown_manager or CooldownManager(
            enable_caching=s.enable_caching,
            cache_ttl_ms=s.cooldown_cache_ttl_ms,
            max_cooldowns=s.max_cooldowns,
            fail_open=s.cooldown_fail_open,
            clock=clock,
        )
        self.executor = executor or CommandExecutor(
            timeout_ms=s.timeout_ms,
            max_retries=s.max_retries,
            enable_validation=s.enable_validation,
            history_limit=s.history_limit,
            history_retention_ms=s.history_retention_ms,
            active_execution_ttl_ms=s.active_execution_ttl_ms,
            error_handler=error_handler or ErrorHandler(),
            clock=clock,
        )
        self.error_handler = self.executor.error_handler
        self.scheduler = scheduler or SweepScheduler()
        self.monitoring = Monitoring(self)

        # command -> window (ms) opened for everyone on each dispatch
        self.global_cooldowns: Dict[str, int] = dict(
            GLOBAL_COOLDOWNS if global_cooldowns is None else global_cooldowns
        )

        # Server-specific settings (in memory only) and the prefix cache
        self.server_settings: Dict[str, Dict[str, Any]] = {}
        self.prefix_cache: Dict[str, str] = {}

        # Registered sources, replayed by reload_commands()
        self._sources: Dict[str, CommandSource] = {}

        self.execution_stats = {
            "totalExecutions": 0,
            "successfulExecutions": 0,
            "failedExecutions": 0,
            "averageExecutionTime": 0.0,
            "permissionDenials": 0,
            "cooldownDenials": 0,
        }

        self._load_default_categories()
        self._register_sweeps()
        self.logger.info("Command Manager initialized")

    def _load_default_categories(self) -> None:
        for name in CATEGORIES:
            self.registry.ensure_category(
                name,
                allowed_roles=DEFAULT_CATEGORY_ROLES.get(name, {}).get("roles", []),
            )

    def _register_sweeps(self) -> None:
        s = self.settings
        add = self.scheduler.add_job

        add("permission-cache", s.cache_ttl_ms, self.permission_manager.clear_cache)
        add("prefix-cache", s.cache_ttl_ms, self.clear_prefix_cache)
        add("cooldown-expired", s.expired_sweep_interval_ms, self.cooldown_manager.cleanup_expired)
        add("cooldown-cache", s.expired_sweep_interval_ms, self.cooldown_manager.clear_cache)
        add("cooldown-memory", s.memory_sweep_interval_ms, self.cooldown_manager.manage_memory)
        add("execution-history", s.history_sweep_interval_ms, self.executor.cleanup_history)
        add("active-executions", s.memory_sweep_interval_ms, self.executor.cleanup_active_executions)
        add("registry-stats", s.registry_stats_interval_ms, self.registry.reset_lookup_stats)
        add("hourly-stats", 3600000, self.monitoring.record_hourly_stats)
        if s.enable_statistics:
            add(
                "performance-reset",
                s.performance_reset_interval_ms,
                self.executor.reset_performance_stats,
            )

    def start(self) -> None:
        """Start the periodic sweeps. Requires a running event loop."""
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()

    def add_category(
        self,
        name: str,
        description: str = "",
        allowed_roles: Optional[List[str]] = None,
    ) -> Category:
        """
        Add a category beyond the defaults.

        Args:
            name: Category key
            description: Description shown in help
            allowed_roles: Role names allowed by default

        Returns:
            The category
        """
        category = self.registry.ensure_category(
            name, description=description, allowed_roles=allowed_roles
        )
        if allowed_roles is not None:
            category.allowed_roles = list(allowed_roles)
            self.permission_manager.set_category_roles(name, allowed_roles)
        return category

    def register_command(self, command: CommandSource) -> OperationResult:
        """
        Register a command descriptor or a BaseCommand instance.

        Args:
            command: Descriptor or class-based command

        Returns:
            OperationResult
        """
        descriptor = command.to_descriptor() if isinstance(command, BaseCommand) else command
        if not isinstance(descriptor, CommandDescriptor):
            self.logger.error(f"Invalid command structure: {command!r}")
            return OperationResult.failure(ValidationError("Expected a CommandDescriptor or BaseCommand"))

        if descriptor.category not in self.registry.categories:
            self.logger.error(f"Unknown category for {descriptor.name}: {descriptor.category}")
            return OperationResult.failure(ValidationError(f"Unknown category: {descriptor.category}"))

        result = self.registry.register(descriptor)
        if result:
            self._sources[descriptor.name] = command
        return result

    def unregister_command(self, name: str) -> OperationResult:
        descriptor = self.registry.get(name)
        if descriptor is None:
            self.logger.warning(f"Command not found: {name}")
            return OperationResult.failure(ValidationError(f"Command not found: {name}"))

        result = self.registry.unregister(descriptor.name)
        if result:
            self._sources.pop(descriptor.name, None)
        return result

    async def reload_commands(self) -> OperationResult:
        """Clear the registry and register every known command again."""
        self.logger.info("Reloading all commands...")
        sources = list(self._sources.values())
        self.registry.clear()
        self._sources.clear()
        self.permission_manager.clear_cache()

        failed = [source for source in sources if not self.register_command(source)]
        if failed:
            return OperationResult.failure(
                ValidationError(f"{len(failed)} of {len(sources)} commands failed to reload")
            )

        self.logger.info(f"Commands reloaded successfully ({len(sources)})")
        return OperationResult.success()

    async def execute_command(self, ctx: Any) -> bool:
        """
        Handle one incoming message.

        Args:
            ctx: Invocation context

        Returns:
            True if a command ran successfully
        """
        started = self.clock()

        if ctx.author_is_bot or (self.bot_user_id and ctx.author_id == self.bot_user_id):
            return False

        try:
            prefix = await self.get_server_prefix(ctx.guild_id)
            content = ctx.content or ""
            if not content.startswith(prefix):
                return False

            tokens = ValidationUtils.split_arguments(content[len(prefix):])
            if not tokens:
                return False
            command_name, args = tokens[0].lower(), tokens[1:]

            descriptor = self.registry.get(command_name)
            if descriptor is None:
                return False

            descriptor.mark_used(self.clock())

            if not await self.permission_manager.check(ctx, descriptor):
                self.execution_stats["permissionDenials"] += 1
                await DiscordUtils.safe_reply(ctx, MESSAGES["no_permission"])
                return False

            cooldown = await self.cooldown_manager.check_cooldown(
                ctx.author_id, descriptor.name, descriptor.cooldown
            )
            if not cooldown.allowed:
                self.execution_stats["cooldownDenials"] += 1
                await DiscordUtils.safe_reply(ctx, self._cooldown_message(cooldown))
                return False

            self._open_windows(ctx.author_id, descriptor)

            success = await self.executor.execute(ctx, descriptor, args)
            self._update_execution_stats(success, self.clock() - started)
            return success

        except Exception as e:
            self.logger.error(f"Command execution error: {e}")
            self._update_execution_stats(False, self.clock() - started)
            await DiscordUtils.safe_reply(ctx, MESSAGES["execution_error"])
            return False

    def _cooldown_message(self, cooldown: Any) -> str:
        if cooldown.kind == "error":
            return MESSAGES["execution_error"]
        seconds = DiscordUtils.seconds_left(cooldown.remaining_time)
        key = "global_cooldown" if cooldown.kind == "global" else "cooldown"
        return MESSAGES[key].format(time=seconds)

    def _open_windows(self, user_id: str, descriptor: CommandDescriptor) -> None:
        if descriptor.cooldown > 0:
            self.cooldown_manager.set_cooldown(user_id, descriptor.name, descriptor.cooldown)
        window = self.global_cooldowns.get(descriptor.name)
        if window:
            self.cooldown_manager.set_global_cooldown(descriptor.name, window)

    def _update_execution_stats(self, success: bool, execution_time: float) -> None:
        stats = self.execution_stats
        stats["totalExecutions"] += 1
        if success:
            stats["successfulExecutions"] += 1
        else:
            stats["failedExecutions"] += 1

        total = stats["totalExecutions"]
        stats["averageExecutionTime"] = (
            stats["averageExecutionTime"] * (total - 1) + execution_time
        ) / total

    async def get_server_prefix(self, guild_id: Optional[str]) -> str:
        """
        Get the prefix of a server.

        Args:
            guild_id: Server ID (None for direct messages)

        Returns:
            Custom prefix or the default one
        """
        scope = guild_id or DIRECT_SCOPE
        cached = self.prefix_cache.get(scope)
        if cached is not None:
            return cached

        # TODO: load the prefix from the server settings store once one exists
        prefix = self.server_settings.get(scope, {}).get("prefix", self.settings.prefix)
        self.prefix_cache[scope] = prefix
        return prefix

    async def set_server_prefix(self, guild_id: str, prefix: str) -> OperationResult:
        """
        Set a custom prefix for a server.

        Args:
            guild_id: Server ID
            prefix: New prefix (1 to max_prefix_length characters)

        Returns:
            OperationResult
        """
        check = ValidationUtils.validate_prefix(prefix, self.settings.max_prefix_length)
        if not guild_id or not check:
            self.logger.error(f"Invalid prefix for guild {guild_id}: {prefix!r}")
            return OperationResult.failure(ValidationError(check.error or "guild_id is required"))

        # TODO: save the prefix to the server settings store once one exists
        self.server_settings.setdefault(guild_id, {})["prefix"] = check.sanitized
        self.prefix_cache[guild_id] = check.sanitized
        self.logger.info(f"Prefix updated for guild {guild_id}: {check.sanitized}")
        return OperationResult.success()

    def clear_prefix_cache(self) -> None:
        self.prefix_cache.clear()
        self.logger.debug("Prefix cache cleared")

    async def set_role_permission(
        self,
        guild_id: str,
        command: str,
        role_id: str,
        allowed: bool,
        set_by: str = "system",
        expires_at: Optional[float] = None,
    ) -> OperationResult:
        """
        Allow or deny a command for a role in one server.

        Args:
            guild_id: Server ID
            command: Command name or alias
            role_id: Role ID
            allowed: Grant value
            set_by: Identity making the change
            expires_at: Optional expiry (ms timestamp)

        Returns:
            OperationResult
        """
        descriptor = self.registry.get(command)
        if descriptor is None:
            return OperationResult.failure(ValidationError(f"Command not found: {command}"))
        return await self.permission_manager.set_scope_grant(
            guild_id, descriptor.name, role_id, allowed, set_by=set_by, expires_at=expires_at
        )

    async def remove_role_permission(self, guild_id: str, command: str, role_id: str) -> OperationResult:
        descriptor = self.registry.get(command)
        name = descriptor.name if descriptor else command
        return await self.permission_manager.remove_scope_grant(guild_id, name, role_id)

    def get_guild_permissions(self, guild_id: str) -> Dict[str, Dict[str, Dict[str, Any]]]:
        return self.permission_manager.get_scope_grants(guild_id)

    def set_cooldown(self, user_id: str, command: str, duration: int) -> OperationResult:
        descriptor = self.registry.get(command)
        if descriptor is None:
            return OperationResult.failure(ValidationError(f"Command not found: {command}"))
        return self.cooldown_manager.set_cooldown(user_id, descriptor.name, duration)

    def set_global_cooldown(self, command: str, duration: int) -> OperationResult:
        """
        Set the global cooldown policy of a command.

        Every successful dispatch of the command then blocks everyone for
        duration milliseconds. A duration of 0 disables the policy.

        Args:
            command: Command name or alias
            duration: Window length in milliseconds

        Returns:
            OperationResult
        """
        check = ValidationUtils.validate_duration(duration)
        if not check:
            return OperationResult.failure(ValidationError(check.error))

        descriptor = self.registry.get(command)
        name = descriptor.name if descriptor else command.lower()
        if check.value:
            self.global_cooldowns[name] = check.value
        else:
            self.global_cooldowns.pop(name, None)
        self.logger.info(f"Global cooldown policy set: {name} ({check.value}ms)")
        return OperationResult.success()

    def remove_global_cooldown(self, command: str) -> bool:
        """Drop the policy and any open global window of a command."""
        descriptor = self.registry.get(command)
        name = descriptor.name if descriptor else command.lower()
        had_policy = self.global_cooldowns.pop(name, None) is not None
        had_window = self.cooldown_manager.remove_global_cooldown(name)
        return had_policy or had_window

    def get_stats(self) -> Dict[str, Any]:
        categories = self.registry.get_categories()
        return {
            "manager": {
                **self.execution_stats,
                "totalCommands": len(self.registry.commands),
                "totalCategories": len(categories),
                "totalAliases": len(self.registry.aliases),
                "cachedPrefixes": len(self.prefix_cache),
                "globalCooldownPolicies": dict(self.global_cooldowns),
                "categories": [
                    {"name": c.name, "commandCount": len(c.commands), "enabled": c.enabled}
                    for c in categories
                ],
            },
            "registry": self.registry.get_stats(),
            "permissions": self.permission_manager.get_stats(),
            "cooldowns": self.cooldown_manager.get_stats(),
            "executor": self.executor.get_stats(),
            "scheduler": self.scheduler.jobs(),
        }

    def get_execution_history(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self.executor.get_execution_history(filters)

    def get_audit_log(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self.permission_manager.get_audit_log(filters)

    def get_active_executions(self) -> List[Dict[str, Any]]:
        return self.executor.get_active_executions()

    async def get_commands_for_dashboard(self, guild_id: str) -> List[Dict[str, Any]]:
        """
        Flattened command list for a command-management screen.

        Args:
            guild_id: Server whose grants are included

        Returns:
            One dict per command
        """
        grants = self.permission_manager.get_scope_grants(guild_id)
        commands = []
        for descriptor in self.registry.get_all():
            category = self.registry.categories.get(descriptor.category)
            commands.append({
                **descriptor.to_dict(),
                "categoryName": category.display_name if category else descriptor.category,
                "enabled": category.enabled if category else True,
                "globalCooldown": self.global_cooldowns.get(descriptor.name, 0),
                "roleOverrides": grants.get(descriptor.name, {}),
            })
        return commands

    def get_health_status(self) -> Dict[str, Any]:
        return self.monitoring.get_health_status().to_dict()

    def clear_all_data(self) -> None:
        """Reset history, audit log, cooldowns, caches and counters."""
        self.executor.clear_all_data()
        self.permission_manager.clear_audit_log()
        self.permission_manager.clear_cache()
        self.cooldown_manager.clear_all_cooldowns()
        self.prefix_cache.clear()
        for key in self.execution_stats:
            self.execution_stats[key] = 0 if key != "averageExecutionTime" else 0.0
        self.logger.info("All command data cleared")
