"""
Configuration management for the command system.
Loads environment variables and provides configuration settings.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _env_bool(key: str, default: bool) -> bool:
    return os.getenv(key, "true" if default else "false").lower() == "true"


def _env_int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


@dataclass(frozen=True)
class Config:
    """Bot configuration settings."""

    # Discord
    DISCORD_TOKEN: str

    # Identity that bypasses every permission check
    BOT_OWNER_ID: str = ""

    # Fallback prefix for servers without a custom one
    COMMAND_PREFIX: str = "x"

    # Status server
    PORT: int = 11186
    HOST: str = "0.0.0.0"

    # Debug
    DEBUG: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            DISCORD_TOKEN=os.getenv("DISCORD_TOKEN", ""),
            BOT_OWNER_ID=os.getenv("BOT_OWNER_ID", ""),
            COMMAND_PREFIX=os.getenv("COMMAND_PREFIX", "x"),
            PORT=_env_int("PORT", 11186),
            HOST=os.getenv("HOST", "0.0.0.0"),
            DEBUG=_env_bool("DEBUG", False),
        )

    def validate(self) -> None:
        """Validate required configuration."""
        if not self.DISCORD_TOKEN:
            raise ValueError("DISCORD_TOKEN is required")
        if not self.COMMAND_PREFIX or len(self.COMMAND_PREFIX) > 5:
            raise ValueError("COMMAND_PREFIX must be 1-5 characters")


@dataclass(frozen=True)
class CommandSettings:
    """Tunables of the command dispatch core (durations in milliseconds)."""

    prefix: str = "x"
    owner_id: str = ""

    enable_caching: bool = True
    cache_ttl_ms: int = 300000
    cooldown_cache_ttl_ms: int = 5000
    enable_validation: bool = True
    enable_statistics: bool = True
    enable_audit_logging: bool = True

    max_aliases: int = 10
    max_cooldowns: int = 1000
    max_prefix_length: int = 5
    cooldown_fail_open: bool = True

    timeout_ms: int = 30000
    max_retries: int = 1

    history_limit: int = 1000
    audit_limit: int = 1000
    history_retention_ms: int = 86400000
    active_execution_ttl_ms: int = 3600000

    expired_sweep_interval_ms: int = 60000
    memory_sweep_interval_ms: int = 300000
    history_sweep_interval_ms: int = 3600000
    registry_stats_interval_ms: int = 3600000
    performance_reset_interval_ms: int = 86400000

    @classmethod
    def from_env(cls) -> "CommandSettings":
        """Load command settings, overriding defaults from the environment."""
        defaults = cls()
        return cls(
            prefix=os.getenv("COMMAND_PREFIX", defaults.prefix),
            owner_id=os.getenv("BOT_OWNER_ID", defaults.owner_id),
            enable_caching=_env_bool("COMMAND_CACHING", defaults.enable_caching),
            cache_ttl_ms=_env_int("COMMAND_CACHE_TTL_MS", defaults.cache_ttl_ms),
            cooldown_cache_ttl_ms=_env_int(
                "COOLDOWN_CACHE_TTL_MS", defaults.cooldown_cache_ttl_ms
            ),
            enable_audit_logging=_env_bool("PERMISSION_AUDIT", defaults.enable_audit_logging),
            max_cooldowns=_env_int("MAX_COOLDOWNS", defaults.max_cooldowns),
            cooldown_fail_open=_env_bool("COOLDOWN_FAIL_OPEN", defaults.cooldown_fail_open),
            timeout_ms=_env_int("COMMAND_TIMEOUT_MS", defaults.timeout_ms),
            max_retries=_env_int("COMMAND_MAX_RETRIES", defaults.max_retries),
        )


# Global config instance
config = Config.from_env()
