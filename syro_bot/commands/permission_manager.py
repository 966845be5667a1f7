"""
Permission Manager
Layered authorization: owner, bot capabilities, scope grants, category
defaults and capability bits, with a decision cache and audit trail
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from syro_bot.bot.constants import DEFAULT_CATEGORY_ROLES, EVERYONE_ROLE
from syro_bot.commands.descriptor import CommandDescriptor
from syro_bot.errors import OperationResult, ValidationError
from syro_bot.utils.logger import get_logger

# Scope used for invocations outside any server
DIRECT_SCOPE = "@dm"

CacheKey = Tuple[str, str, str]


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class PermissionGrant:
    """Scope-specific allow/deny of a command for one role."""

    scope_id: str
    command: str
    role_id: str
    allowed: bool
    set_by: str = "system"
    set_at: float = 0.0
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "setBy": self.set_by,
            "setAt": self.set_at,
            "expiresAt": self.expires_at,
        }


class PermissionManager:
    """Decides whether an invoker may run a command in a scope."""

    def __init__(
        self,
        owner_id: str = "",
        enable_caching: bool = True,
        cache_ttl_ms: int = 300000,
        enable_audit_logging: bool = True,
        audit_limit: int = 1000,
        category_roles: Optional[Dict[str, Dict[str, Any]]] = None,
        clock: Callable[[], float] = _now_ms,
    ):
        self.logger = get_logger("PermissionManager")
        self.owner_id = owner_id
        self.enable_caching = enable_caching
        self.cache_ttl_ms = cache_ttl_ms
        self.enable_audit_logging = enable_audit_logging
        self.audit_limit = audit_limit
        self.clock = clock

        # category -> {"roles": [...], "description": ...}
        self.category_roles: Dict[str, Dict[str, Any]] = {
            name: {"roles": list(entry["roles"]), "description": entry.get("description", "")}
            for name, entry in (category_roles or DEFAULT_CATEGORY_ROLES).items()
        }

        # scope -> command -> role -> grant (insertion ordered)
        self.scope_grants: Dict[str, Dict[str, Dict[str, PermissionGrant]]] = {}

        # (user, command, scope) -> (allowed, cached_at)
        self._cache: Dict[CacheKey, Tuple[bool, float]] = {}

        self.audit_log: List[Dict[str, Any]] = []

        self.stats = {
            "totalChecks": 0,
            "cacheHits": 0,
            "cacheMisses": 0,
            "grantedPermissions": 0,
            "deniedPermissions": 0,
            "errors": 0,
        }

        self.logger.info("Permission Manager initialized")

    async def check(self, ctx: Any, descriptor: CommandDescriptor) -> bool:
        """
        Check whether the invoker may run the command in the context's scope.

        Every decision, cached or not, is appended to the audit log.
        Evaluation errors deny.

        Args:
            ctx: Invocation context (identity, roles, capabilities, scope)
            descriptor: Resolved command

        Returns:
            True if allowed
        """
        started = time.perf_counter()
        self.stats["totalChecks"] += 1
        scope = ctx.guild_id or DIRECT_SCOPE
        key = (ctx.author_id, descriptor.name, scope)
        cached = False

        try:
            hit = self._cache_get(key)
            if hit is not None:
                self.stats["cacheHits"] += 1
                allowed, reason, cached = hit, "cached", True
            else:
                self.stats["cacheMisses"] += 1
                allowed, reason = self._evaluate(ctx, descriptor, scope)
                if self.enable_caching:
                    self._cache[key] = (allowed, self.clock())
        except Exception as e:
            self.stats["errors"] += 1
            self.logger.error(f"Permission check error ({descriptor.name}): {e}")
            allowed, reason = False, "error"

        if allowed:
            self.stats["grantedPermissions"] += 1
        else:
            self.stats["deniedPermissions"] += 1
            self.logger.debug(f"Denied {ctx.author_id} -> {descriptor.name} in {scope} ({reason})")

        self._audit({
            "type": "permission_check",
            "userId": ctx.author_id,
            "username": ctx.author_name,
            "command": descriptor.name,
            "guildId": scope,
            "guildName": ctx.guild_name,
            "allowed": allowed,
            "reason": reason,
            "cached": cached,
            "duration": round((time.perf_counter() - started) * 1000, 3),
            "timestamp": self.clock(),
        })
        return allowed

    def _evaluate(self, ctx: Any, descriptor: CommandDescriptor, scope: str) -> Tuple[bool, str]:
        if self.owner_id and ctx.author_id == self.owner_id:
            return True, "owner"

        # The bot's own capabilities gate the command regardless of invoker
        for capability in descriptor.bot_permissions:
            if not ctx.in_guild or not ctx.bot_has_capability(capability):
                self.logger.warning(f"Bot lacks {capability} for command: {descriptor.name}")
                return False, "bot_capability"

        now = self.clock()
        grants = self.scope_grants.get(scope, {}).get(descriptor.name, {})
        for role_id, grant in grants.items():
            if grant.is_expired(now):
                continue
            if ctx.has_role(role_id):
                return grant.allowed, "scope_grant"

        category = self.category_roles.get(descriptor.category)
        if category is not None:
            for role_name in category["roles"]:
                if role_name == EVERYONE_ROLE or ctx.has_role_named(role_name):
                    return True, "category_default"

        if descriptor.permissions:
            if all(ctx.has_capability(capability) for capability in descriptor.permissions):
                return True, "capability"
            return False, "no_match"

        # No category defaults and no required bits: unrestricted
        if category is None:
            return True, "unrestricted"

        return False, "no_match"

    def _cache_get(self, key: CacheKey) -> Optional[bool]:
        if not self.enable_caching:
            return None
        entry = self._cache.get(key)
        if entry is None:
            return None
        allowed, cached_at = entry
        if self.clock() - cached_at >= self.cache_ttl_ms:
            del self._cache[key]
            return None
        return allowed

    async def set_scope_grant(
        self,
        scope_id: str,
        command: str,
        role_id: str,
        allowed: bool,
        set_by: str = "system",
        expires_at: Optional[float] = None,
    ) -> OperationResult:
        """
        Allow or deny a command for a role within one scope.

        Args:
            scope_id: Server ID
            command: Command name
            role_id: Role ID
            allowed: Grant value
            set_by: Identity making the change
            expires_at: Optional expiry (ms timestamp)

        Returns:
            OperationResult
        """
        if not scope_id or not command or not role_id:
            self.logger.error("Invalid parameters for set_scope_grant")
            return OperationResult.failure(
                ValidationError("scope_id, command and role_id are required")
            )

        scope_id, role_id, command = str(scope_id), str(role_id), command.lower()
        commands = self.scope_grants.setdefault(scope_id, {})
        roles = commands.setdefault(command, {})
        roles[role_id] = PermissionGrant(
            scope_id=scope_id,
            command=command,
            role_id=role_id,
            allowed=bool(allowed),
            set_by=set_by,
            set_at=self.clock(),
            expires_at=expires_at,
        )

        self.clear_scope_cache(scope_id)
        self._audit_change(scope_id, command, role_id, bool(allowed), "set", set_by)
        self.logger.info(f"Role permission set: {role_id} -> {command} ({allowed}) in {scope_id}")
        return OperationResult.success()

    async def remove_scope_grant(self, scope_id: str, command: str, role_id: str) -> OperationResult:
        scope_id, role_id, command = str(scope_id), str(role_id), command.lower()

        roles = self.scope_grants.get(scope_id, {}).get(command)
        if not roles or role_id not in roles:
            self.logger.warning(f"No grant for {role_id} -> {command} in {scope_id}")
            return OperationResult.failure(ValidationError(f"Grant not found: {role_id} -> {command}"))

        del roles[role_id]
        if not roles:
            del self.scope_grants[scope_id][command]
        if not self.scope_grants[scope_id]:
            del self.scope_grants[scope_id]

        self.clear_scope_cache(scope_id)
        self._audit_change(scope_id, command, role_id, None, "removed", "system")
        self.logger.info(f"Role permission removed: {role_id} -> {command} in {scope_id}")
        return OperationResult.success()

    def get_scope_grants(self, scope_id: str) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """
        Grants of a scope as plain dicts.

        Returns:
            command -> role -> {allowed, setBy, setAt, expiresAt}
        """
        commands = self.scope_grants.get(str(scope_id), {})
        return {
            command: {role_id: grant.to_dict() for role_id, grant in roles.items()}
            for command, roles in commands.items()
        }

    def set_category_roles(self, category: str, roles: List[str]) -> None:
        """Replace the default roles of a category and drop every cached decision."""
        entry = self.category_roles.setdefault(category, {"roles": [], "description": ""})
        entry["roles"] = list(roles)
        self.clear_cache()

    def clear_cache(self) -> None:
        """Drop every cached decision."""
        if self._cache:
            self.logger.debug(f"Permission cache cleared ({len(self._cache)} entries)")
        self._cache.clear()

    def clear_scope_cache(self, scope_id: str) -> None:
        for key in [k for k in self._cache if k[2] == scope_id]:
            self._cache.pop(key, None)

    def get_audit_log(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Filtered slice of the audit log.

        Args:
            filters: guild_id, command_name, user_id, type, limit

        Returns:
            Matching entries, oldest first
        """
        filters = filters or {}
        entries = list(self.audit_log)

        if filters.get("guild_id"):
            entries = [e for e in entries if e.get("guildId") == filters["guild_id"]]
        if filters.get("command_name"):
            entries = [e for e in entries if e.get("command") == filters["command_name"]]
        if filters.get("user_id"):
            entries = [e for e in entries if e.get("userId") == filters["user_id"]]
        if filters.get("type"):
            entries = [e for e in entries if e.get("type") == filters["type"]]
        if filters.get("limit"):
            entries = entries[-filters["limit"]:]

        return entries

    def clear_audit_log(self) -> None:
        self.audit_log = []
        self.logger.info("Audit log cleared")

    def get_stats(self) -> Dict[str, Any]:
        total = self.stats["totalChecks"]
        return {
            **self.stats,
            "cacheHitRate": round(self.stats["cacheHits"] / total * 100, 2) if total else 0,
            "cachedDecisions": len(self._cache),
            "totalGuilds": len(self.scope_grants),
            "totalAuditLogs": len(self.audit_log),
        }

    def _audit_change(
        self,
        scope_id: str,
        command: str,
        role_id: str,
        allowed: Optional[bool],
        action: str,
        set_by: str,
    ) -> None:
        self._audit({
            "type": "permission_change",
            "guildId": scope_id,
            "command": command,
            "roleId": role_id,
            "allowed": allowed,
            "action": action,
            "setBy": set_by,
            "timestamp": self.clock(),
        })

    def _audit(self, entry: Dict[str, Any]) -> None:
        if not self.enable_audit_logging:
            return
        self.audit_log.append(entry)
        if len(self.audit_log) > self.audit_limit:
            self.audit_log = self.audit_log[-self.audit_limit:]
