"""
Command system: registry, permissions, cooldowns, execution and orchestration.
"""

from .descriptor import Category, CommandDescriptor, CommandHandler, FunctionHandler
from .base_command import BaseCommand
from .command_registry import CommandRegistry
from .permission_manager import PermissionGrant, PermissionManager
from .cooldown_manager import CooldownManager, CooldownRecord, CooldownResult
from .command_executor import CommandExecutor, ExecutionRecord
from .command_manager import CommandManager

__all__ = [
    "Category",
    "CommandDescriptor",
    "CommandHandler",
    "FunctionHandler",
    "BaseCommand",
    "CommandRegistry",
    "PermissionGrant",
    "PermissionManager",
    "CooldownManager",
    "CooldownRecord",
    "CooldownResult",
    "CommandExecutor",
    "ExecutionRecord",
    "CommandManager",
]
