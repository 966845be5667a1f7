"""
Cooldown Manager
Per-identity and per-command global rate limits with a decision cache
"""

import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from syro_bot.errors import OperationResult, ValidationError
from syro_bot.utils.logger import get_logger
from syro_bot.utils.validation import ValidationUtils

CacheKey = Tuple[str, str]


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class CooldownRecord:
    """An active window. subject is None for a global (per-command) record."""

    subject: Optional[str]
    command: str
    set_at: float
    expires_at: float
    duration: int

    def remaining(self, now: float) -> int:
        return max(0, math.ceil(self.expires_at - now))

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now

    def to_dict(self, now: float) -> Dict[str, Any]:
        remaining = self.remaining(now)
        return {
            "command": self.command,
            "setAt": self.set_at,
            "expiresAt": self.expires_at,
            "duration": self.duration,
            "remainingTime": remaining,
            "isExpired": remaining <= 0,
        }


@dataclass
class CooldownResult:
    """Outcome of a cooldown check."""

    allowed: bool
    remaining_time: int = 0
    kind: str = "user"

    def to_dict(self) -> Dict[str, Any]:
        return {"allowed": self.allowed, "remainingTime": self.remaining_time, "type": self.kind}


class CooldownManager:
    """Enforces per-identity and global cooldowns."""

    def __init__(
        self,
        enable_caching: bool = True,
        cache_ttl_ms: int = 5000,
        max_cooldowns: int = 1000,
        fail_open: bool = True,
        clock: Callable[[], float] = _now_ms,
    ):
        self.logger = get_logger("CooldownManager")
        self.enable_caching = enable_caching
        self.cache_ttl_ms = cache_ttl_ms
        self.max_cooldowns = max_cooldowns
        self.fail_open = fail_open
        self.clock = clock

        # user -> command -> record
        self.user_cooldowns: Dict[str, Dict[str, CooldownRecord]] = {}
        # command -> record
        self.global_cooldowns: Dict[str, CooldownRecord] = {}

        # (user, command) -> (result, cached_at)
        self._cache: Dict[CacheKey, Tuple[CooldownResult, float]] = {}

        self.stats = {
            "totalChecks": 0,
            "cacheHits": 0,
            "cacheMisses": 0,
            "cooldownHits": 0,
            "cooldownMisses": 0,
            "totalCooldownTime": 0,
            "errors": 0,
        }
        self.total_check_time = 0.0

        self.logger.info("Cooldown Manager initialized")

    async def check_cooldown(self, user_id: str, command: str, duration: int = 0) -> CooldownResult:
        """
        Check whether a user may run a command now.

        The global window is consulted first and denies everyone with
        kind="global". Internal errors allow (kind="error") unless the
        manager was built with fail_open=False.

        Args:
            user_id: Invoker ID
            command: Command name
            duration: The command's configured cooldown (ms), logged only

        Returns:
            CooldownResult
        """
        started = time.perf_counter()
        self.stats["totalChecks"] += 1

        try:
            now = self.clock()
            key = (user_id, command)

            cached = self._cache_get(key, now)
            if cached is not None:
                self.stats["cacheHits"] += 1
                return cached

            self.stats["cacheMisses"] += 1

            result = self._check_global(command, now)
            if result.allowed:
                result = self._check_user(user_id, command, now)

            if result.allowed:
                self.stats["cooldownMisses"] += 1
            else:
                self.stats["cooldownHits"] += 1
                self.stats["totalCooldownTime"] += result.remaining_time
                self.logger.debug(
                    f"Cooldown hit ({result.kind}): {user_id} -> {command} "
                    f"{result.remaining_time}ms left (configured {duration}ms)"
                )

            if self.enable_caching:
                self._cache[key] = (result, now)

            return result
        except Exception as e:
            self.stats["errors"] += 1
            self.logger.error(f"Cooldown check error ({command}): {e}")
            return CooldownResult(allowed=self.fail_open, remaining_time=0, kind="error")
        finally:
            self.total_check_time += (time.perf_counter() - started) * 1000

    def _check_global(self, command: str, now: float) -> CooldownResult:
        record = self.global_cooldowns.get(command)
        if record is None:
            return CooldownResult(allowed=True, remaining_time=0, kind="global")
        remaining = record.remaining(now)
        return CooldownResult(allowed=remaining <= 0, remaining_time=remaining, kind="global")

    def _check_user(self, user_id: str, command: str, now: float) -> CooldownResult:
        record = self.user_cooldowns.get(user_id, {}).get(command)
        if record is None:
            return CooldownResult(allowed=True, remaining_time=0, kind="user")
        remaining = record.remaining(now)
        return CooldownResult(allowed=remaining <= 0, remaining_time=remaining, kind="user")

    def _cache_get(self, key: CacheKey, now: float) -> Optional[CooldownResult]:
        if not self.enable_caching:
            return None
        entry = self._cache.get(key)
        if entry is None:
            return None

        result, cached_at = entry
        elapsed = now - cached_at
        if elapsed >= self.cache_ttl_ms:
            del self._cache[key]
            return None

        if result.allowed:
            return result

        remaining = math.ceil(result.remaining_time - elapsed)
        if remaining <= 0:
            del self._cache[key]
            return None
        return CooldownResult(allowed=False, remaining_time=remaining, kind=result.kind)

    def set_cooldown(self, user_id: str, command: str, duration: int) -> OperationResult:
        """
        Start a per-user window.

        Args:
            user_id: User ID
            command: Command name
            duration: Duration in milliseconds

        Returns:
            OperationResult
        """
        check = ValidationUtils.validate_duration(duration)
        if not user_id or not command or not check:
            return OperationResult.failure(
                ValidationError(check.error or "user_id and command are required")
            )

        now = self.clock()
        self.user_cooldowns.setdefault(user_id, {})[command] = CooldownRecord(
            subject=user_id,
            command=command,
            set_at=now,
            expires_at=now + check.value,
            duration=check.value,
        )
        self._cache.pop((user_id, command), None)
        self.logger.debug(f"Cooldown set: {user_id} -> {command} ({check.value}ms)")
        return OperationResult.success()

    def set_global_cooldown(self, command: str, duration: int) -> OperationResult:
        """
        Start a window that blocks every user for one command.

        Args:
            command: Command name
            duration: Duration in milliseconds

        Returns:
            OperationResult
        """
        check = ValidationUtils.validate_duration(duration)
        if not command or not check:
            return OperationResult.failure(ValidationError(check.error or "command is required"))

        now = self.clock()
        self.global_cooldowns[command] = CooldownRecord(
            subject=None,
            command=command,
            set_at=now,
            expires_at=now + check.value,
            duration=check.value,
        )
        self._clear_command_cache(command)
        self.logger.info(f"Global cooldown set: {command} ({check.value}ms)")
        return OperationResult.success()

    def remove_cooldown(self, user_id: str, command: str) -> bool:
        commands = self.user_cooldowns.get(user_id)
        if not commands or command not in commands:
            return False
        del commands[command]
        if not commands:
            del self.user_cooldowns[user_id]
        self._cache.pop((user_id, command), None)
        self.logger.debug(f"Cooldown removed: {user_id} -> {command}")
        return True

    def remove_global_cooldown(self, command: str) -> bool:
        if self.global_cooldowns.pop(command, None) is None:
            return False
        self._clear_command_cache(command)
        self.logger.info(f"Global cooldown removed: {command}")
        return True

    def get_cooldown(self, user_id: str, command: str) -> Optional[Dict[str, Any]]:
        record = self.user_cooldowns.get(user_id, {}).get(command)
        if record is None:
            return None
        return record.to_dict(self.clock())

    def get_global_cooldown(self, command: str) -> Optional[Dict[str, Any]]:
        record = self.global_cooldowns.get(command)
        if record is None:
            return None
        return record.to_dict(self.clock())

    def get_user_cooldowns(self, user_id: str) -> Dict[str, Dict[str, Any]]:
        """
        All windows of one user.

        Returns:
            command -> {setAt, expiresAt, duration, remainingTime, isExpired}
        """
        now = self.clock()
        return {
            command: record.to_dict(now)
            for command, record in self.user_cooldowns.get(user_id, {}).items()
        }

    def clear_user_cooldowns(self, user_id: str) -> bool:
        if self.user_cooldowns.pop(user_id, None) is None:
            return False
        for key in [k for k in self._cache if k[0] == user_id]:
            self._cache.pop(key, None)
        self.logger.info(f"All cooldowns cleared for user: {user_id}")
        return True

    def clear_all_cooldowns(self) -> None:
        self.user_cooldowns.clear()
        self.global_cooldowns.clear()
        self._cache.clear()
        self.logger.info("All cooldowns cleared")

    def clear_cache(self) -> None:
        """Drop every cached decision."""
        if self._cache:
            self.logger.debug(f"Cooldown cache cleared ({len(self._cache)} entries)")
        self._cache.clear()

    def cleanup_expired(self) -> int:
        """
        Purge expired user and global records.

        Returns:
            Number of records removed
        """
        now = self.clock()
        cleaned = 0

        for user_id in list(self.user_cooldowns):
            commands = self.user_cooldowns.get(user_id)
            if commands is None:
                continue
            for command in [c for c, record in commands.items() if record.is_expired(now)]:
                del commands[command]
                cleaned += 1
            if not commands:
                del self.user_cooldowns[user_id]

        for command in [c for c, record in self.global_cooldowns.items() if record.is_expired(now)]:
            del self.global_cooldowns[command]
            cleaned += 1

        if cleaned:
            self.logger.debug(f"Cleaned up {cleaned} expired cooldowns")
        return cleaned

    def manage_memory(self) -> int:
        """
        Evict the least-recently-set users once tracking exceeds max_cooldowns.

        Returns:
            Number of users evicted
        """
        excess = len(self.user_cooldowns) - self.max_cooldowns
        if excess <= 0:
            return 0

        def last_set(item: Tuple[str, Dict[str, CooldownRecord]]) -> float:
            records = item[1].values()
            return max((r.set_at for r in records), default=float("-inf"))

        oldest = sorted(self.user_cooldowns.items(), key=last_set)[:excess]
        for user_id, _ in oldest:
            self.user_cooldowns.pop(user_id, None)
            for key in [k for k in self._cache if k[0] == user_id]:
                self._cache.pop(key, None)

        self.logger.info(f"Removed {excess} old user cooldown entries")
        return excess

    def get_stats(self) -> Dict[str, Any]:
        total = self.stats["totalChecks"]
        hits = self.stats["cooldownHits"]
        return {
            **self.stats,
            "cacheHitRate": round(self.stats["cacheHits"] / total * 100, 2) if total else 0,
            "cooldownHitRate": round(hits / total * 100, 2) if total else 0,
            "averageCooldownTime": round(self.stats["totalCooldownTime"] / hits, 2) if hits else 0,
            "averageCheckTime": round(self.total_check_time / total, 4) if total else 0,
            "storage": {
                "totalUsers": len(self.user_cooldowns),
                "totalGlobalCooldowns": len(self.global_cooldowns),
                "totalCachedEntries": len(self._cache),
            },
        }

    def _clear_command_cache(self, command: str) -> None:
        for key in [k for k in self._cache if k[1] == command]:
            self._cache.pop(key, None)
