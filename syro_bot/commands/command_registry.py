"""
Command Registry
Canonical index of command names, aliases and categories
"""

import time
from typing import Any, Callable, Dict, List, Optional

from syro_bot.bot.constants import CATEGORIES
from syro_bot.commands.descriptor import Category, CommandDescriptor, CommandHandler
from syro_bot.errors import ConflictError, OperationResult, ValidationError
from syro_bot.utils.logger import get_logger
from syro_bot.utils.validation import ValidationUtils


def _now_ms() -> float:
    return time.time() * 1000


class CommandRegistry:
    """Centralized command registration and lookup."""

    def __init__(
        self,
        max_aliases: int = 10,
        enable_validation: bool = True,
        history_limit: int = 1000,
        clock: Callable[[], float] = _now_ms,
    ):
        self.logger = get_logger("CommandRegistry")
        self.max_aliases = max_aliases
        self.enable_validation = enable_validation
        self.history_limit = history_limit
        self.clock = clock

        self.commands: Dict[str, CommandDescriptor] = {}
        self.aliases: Dict[str, str] = {}
        self.categories: Dict[str, Category] = {}

        self.history: List[Dict[str, Any]] = []
        self.conflicts: List[Dict[str, Any]] = []

        self.lookup_count = 0
        self.total_lookup_time = 0.0

        self.logger.info("Command Registry initialized")

    def register(self, descriptor: CommandDescriptor) -> OperationResult:
        """
        Register a command.

        Validation failures and conflicts are reported, never raised, and
        leave the registry unchanged.

        Args:
            descriptor: Command descriptor

        Returns:
            OperationResult (truthy on success)
        """
        try:
            if self.enable_validation:
                self._validate(descriptor)
            else:
                descriptor.name = descriptor.name.lower()
                descriptor.aliases = [a.lower() for a in descriptor.aliases]
            self._check_conflicts(descriptor)
        except (ValidationError, ConflictError) as e:
            level = self.logger.warning if isinstance(e, ConflictError) else self.logger.error
            level(f"Registration refused for {getattr(descriptor, 'name', descriptor)!r}: {e}")
            return OperationResult.failure(e)

        descriptor.registered_at = self.clock()
        descriptor.metadata = {
            "hash": descriptor.fingerprint(),
            "complexity": descriptor.complexity(),
            "dependencies": descriptor.dependencies(),
        }

        self.commands[descriptor.name] = descriptor
        for alias in descriptor.aliases:
            self.aliases[alias] = descriptor.name

        category = self.ensure_category(descriptor.category)
        category.commands[descriptor.name] = descriptor

        self._record("register", descriptor.name)
        self.logger.info(f"Command registered: {descriptor.name} ({descriptor.category})")
        return OperationResult.success()

    def unregister(self, name: str) -> OperationResult:
        """
        Remove a command with its aliases and category membership.

        Args:
            name: Command name

        Returns:
            OperationResult (NotFound reported as ValidationError)
        """
        normalized = name.lower() if isinstance(name, str) else name
        descriptor = self.commands.pop(normalized, None)
        if descriptor is None:
            self.logger.warning(f"Command not found for unregistration: {name}")
            return OperationResult.failure(ValidationError(f"Command not found: {name}"))

        for alias in [a for a, target in self.aliases.items() if target == normalized]:
            del self.aliases[alias]

        category = self.categories.get(descriptor.category)
        if category is not None:
            category.commands.pop(normalized, None)

        self._record("unregister", normalized)
        self.logger.info(f"Command unregistered: {normalized}")
        return OperationResult.success()

    def get(self, name: str) -> Optional[CommandDescriptor]:
        """
        Get a command by name or alias.

        Args:
            name: Command name or alias

        Returns:
            CommandDescriptor or None if not found
        """
        if not isinstance(name, str):
            return None

        started = time.perf_counter()
        normalized = name.lower()

        command = self.commands.get(normalized)
        if command is None:
            target = self.aliases.get(normalized)
            if target is not None:
                command = self.commands.get(target)

        self.lookup_count += 1
        self.total_lookup_time += (time.perf_counter() - started) * 1000
        return command

    def has(self, name: str) -> bool:
        normalized = name.lower()
        return normalized in self.commands or normalized in self.aliases

    def get_all(self) -> List[CommandDescriptor]:
        return list(self.commands.values())

    def get_by_category(self, category: str) -> List[CommandDescriptor]:
        """
        Get all commands in a category.

        Args:
            category: Category name

        Returns:
            Member descriptors in registration order
        """
        bucket = self.categories.get(category)
        if bucket is None:
            return []
        return list(bucket.commands.values())

    def get_categories(self) -> List[Category]:
        return list(self.categories.values())

    def ensure_category(
        self,
        name: str,
        display_name: str = "",
        description: str = "",
        allowed_roles: Optional[List[str]] = None,
    ) -> Category:
        """Return the category, creating it on first use."""
        category = self.categories.get(name)
        if category is None:
            meta = CATEGORIES.get(name, {})
            category = Category(
                name=name,
                display_name=display_name or meta.get("name", ""),
                description=description or meta.get("description", ""),
                allowed_roles=list(allowed_roles or []),
            )
            self.categories[name] = category
            self.logger.debug(f"Category created: {name}")
        return category

    def get_aliases(self, name: str) -> List[str]:
        normalized = name.lower()
        return [alias for alias, target in self.aliases.items() if target == normalized]

    def add_alias(self, name: str, alias: str) -> OperationResult:
        """
        Add an alias to a registered command.

        Args:
            name: Command name
            alias: New alias

        Returns:
            OperationResult
        """
        normalized = name.lower()
        descriptor = self.commands.get(normalized)
        if descriptor is None:
            self.logger.error(f"Command not found: {name}")
            return OperationResult.failure(ValidationError(f"Command not found: {name}"))

        check = ValidationUtils.validate_command_name(alias)
        if not check:
            return OperationResult.failure(ValidationError(check.error))
        alias = check.sanitized

        if alias in self.aliases or alias in self.commands:
            self._record_conflict("alias_conflict", normalized, alias)
            self.logger.warning(f"Alias conflicts with existing name or alias: {alias}")
            return OperationResult.failure(ConflictError(f"Alias already in use: {alias}"))

        if len(descriptor.aliases) >= self.max_aliases:
            return OperationResult.failure(
                ValidationError(f"Too many aliases (max: {self.max_aliases})")
            )

        self.aliases[alias] = normalized
        descriptor.aliases.append(alias)
        self.logger.info(f"Alias added: {alias} -> {normalized}")
        return OperationResult.success()

    def remove_alias(self, alias: str) -> OperationResult:
        normalized = alias.lower()
        target = self.aliases.pop(normalized, None)
        if target is None:
            self.logger.warning(f"Alias not found: {alias}")
            return OperationResult.failure(ValidationError(f"Alias not found: {alias}"))

        descriptor = self.commands.get(target)
        if descriptor is not None and normalized in descriptor.aliases:
            descriptor.aliases.remove(normalized)

        self.logger.info(f"Alias removed: {normalized}")
        return OperationResult.success()

    def clear(self) -> None:
        self.commands.clear()
        self.aliases.clear()
        for category in self.categories.values():
            category.commands.clear()
        self.history.clear()
        self.conflicts.clear()
        self.logger.info("Command Registry cleared")

    def reset_lookup_stats(self) -> None:
        self.lookup_count = 0
        self.total_lookup_time = 0.0
        self.logger.debug("Command Registry lookup stats reset")

    def get_history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        entries = list(self.history)
        if limit:
            entries = entries[-limit:]
        return entries

    def get_stats(self) -> Dict[str, Any]:
        total = len(self.commands)
        return {
            "commands": {
                "total": total,
                "byCategory": {
                    name: len(category.commands) for name, category in self.categories.items()
                },
            },
            "aliases": {
                "total": len(self.aliases),
                "averagePerCommand": round(len(self.aliases) / total, 2) if total else 0,
            },
            "performance": {
                "lookupCount": self.lookup_count,
                "averageLookupTime": (
                    round(self.total_lookup_time / self.lookup_count, 4)
                    if self.lookup_count else 0
                ),
            },
            "metadata": {
                "totalCategories": len(self.categories),
                "conflicts": len(self.conflicts),
                "historySize": len(self.history),
                "lastRegistration": self.history[-1] if self.history else None,
            },
        }

    def generate_help(self, prefix: str = "") -> str:
        """
        Generate help text for all commands.

        Args:
            prefix: Prefix shown in front of command names

        Returns:
            Formatted help string
        """
        lines = ["📖 **Commands**", ""]

        for name, category in self.categories.items():
            if not category.commands or not category.enabled:
                continue

            icon = CATEGORIES.get(name, {}).get("icon", "•")
            lines.append(f"**{icon} {category.display_name}:**")

            for cmd in category.commands.values():
                aliases_str = f" ({', '.join(cmd.aliases)})" if cmd.aliases else ""
                lines.append(f"• `{prefix}{cmd.name}`{aliases_str} - {cmd.description}")

            lines.append("")

        return "\n".join(lines).rstrip()

    def generate_command_help(self, name: str, prefix: str = "") -> Optional[str]:
        """
        Generate detailed help for a specific command.

        Args:
            name: Command name or alias
            prefix: Prefix shown in front of usage lines

        Returns:
            Formatted help string or None if command not found
        """
        cmd = self.get(name)
        if cmd is None:
            return None

        lines = [
            f"📖 **Command:** `{cmd.name}`",
            "",
            f"**Description:** {cmd.description}",
            f"**Usage:** `{prefix}{cmd.usage or cmd.name}`",
        ]

        if cmd.aliases:
            lines.append(f"**Aliases:** {', '.join(f'`{a}`' for a in cmd.aliases)}")

        if cmd.cooldown:
            lines.append(f"**Cooldown:** {cmd.cooldown / 1000:g}s")

        if cmd.examples:
            lines.append("**Examples:**")
            for example in cmd.examples:
                lines.append(f"  • `{prefix}{example}`")

        return "\n".join(lines)

    def _validate(self, descriptor: CommandDescriptor) -> None:
        """Raise ValidationError for a malformed descriptor; normalizes names in place."""
        if not isinstance(descriptor, CommandDescriptor):
            raise ValidationError("Expected a CommandDescriptor")

        for field_name in ("name", "description", "category"):
            value = getattr(descriptor, field_name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"Missing required field: {field_name}")

        if descriptor.handler is None:
            raise ValidationError("Missing required field: handler")
        if not isinstance(descriptor.handler, CommandHandler):
            raise ValidationError("Handler must implement CommandHandler")

        name_check = ValidationUtils.validate_command_name(descriptor.name)
        if not name_check:
            raise ValidationError(name_check.error)

        alias_check = ValidationUtils.validate_string_list(
            descriptor.aliases, "aliases", self.max_aliases
        )
        if not alias_check:
            raise ValidationError(alias_check.error)

        aliases = []
        for alias in alias_check.value:
            check = ValidationUtils.validate_command_name(alias)
            if not check:
                raise ValidationError(check.error)
            aliases.append(check.sanitized)

        for field_name in ("permissions", "bot_permissions"):
            check = ValidationUtils.validate_string_list(getattr(descriptor, field_name), field_name)
            if not check:
                raise ValidationError(check.error)

        cooldown = ValidationUtils.validate_duration(descriptor.cooldown)
        if not cooldown:
            raise ValidationError(f"Invalid cooldown: {cooldown.error}")

        if descriptor.guild_only and descriptor.dm_only:
            raise ValidationError("Command cannot be both guild-only and DM-only")

        descriptor.name = name_check.sanitized
        descriptor.aliases = aliases
        descriptor.cooldown = cooldown.value

    def _check_conflicts(self, descriptor: CommandDescriptor) -> None:
        name = descriptor.name

        if name in self.commands or name in self.aliases:
            self._record_conflict("duplicate_name", name)
            raise ConflictError(f"Command name already in use: {name}")

        seen = set()
        for alias in descriptor.aliases:
            if alias == name or alias in seen or alias in self.commands or alias in self.aliases:
                self._record_conflict("alias_conflict", name, alias)
                raise ConflictError(f"Alias already in use: {alias}")
            seen.add(alias)

    def _record_conflict(self, kind: str, command: str, alias: Optional[str] = None) -> None:
        entry = {"type": kind, "command": command, "timestamp": self.clock()}
        if alias is not None:
            entry["alias"] = alias
        self.conflicts.append(entry)
        if len(self.conflicts) > self.history_limit:
            self.conflicts = self.conflicts[-self.history_limit:]

    def _record(self, action: str, command: str) -> None:
        self.history.append({"action": action, "command": command, "timestamp": self.clock()})
        if len(self.history) > self.history_limit:
            self.history = self.history[-self.history_limit:]
