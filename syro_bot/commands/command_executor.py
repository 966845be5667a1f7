"""
Command Executor
Runs handlers under a timeout with bounded retries, result validation and
execution statistics
"""

import asyncio
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from syro_bot.commands.descriptor import CommandDescriptor, CommandHandler
from syro_bot.errors import (
    CommandError,
    ExecutionError,
    ExecutionTimeout,
    RetryExhausted,
    ValidationError,
)
from syro_bot.utils.discord import DiscordUtils
from syro_bot.utils.error_handler import ErrorHandler
from syro_bot.utils.logger import get_logger

# Completed entries stay visible in the active table for this long
RELEASE_AFTER_MS = 60000


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class ExecutionRecord:
    """One attempt of one invocation."""

    execution_id: str
    command_name: str
    user_id: str
    username: str
    guild_id: Optional[str]
    guild_name: Optional[str]
    channel_id: str
    channel_name: str
    started_at: float
    execution_time: float
    success: bool
    attempt: int
    error: Optional[Dict[str, str]]
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "executionId": data["execution_id"],
            "commandName": data["command_name"],
            "userId": data["user_id"],
            "username": data["username"],
            "guildId": data["guild_id"],
            "guildName": data["guild_name"],
            "channelId": data["channel_id"],
            "channelName": data["channel_name"],
            "startedAt": data["started_at"],
            "executionTime": data["execution_time"],
            "success": data["success"],
            "attempt": data["attempt"],
            "error": data["error"],
            "timestamp": data["timestamp"],
        }


class CommandExecutor:
    """Executes resolved commands safely."""

    def __init__(
        self,
        timeout_ms: int = 30000,
        max_retries: int = 1,
        enable_validation: bool = True,
        history_limit: int = 1000,
        history_retention_ms: int = 86400000,
        active_execution_ttl_ms: int = 3600000,
        error_handler: Optional[ErrorHandler] = None,
        clock: Callable[[], float] = _now_ms,
    ):
        self.logger = get_logger("CommandExecutor")
        self.timeout_ms = timeout_ms
        self.max_retries = max(0, max_retries)
        self.enable_validation = enable_validation
        self.history_limit = history_limit
        self.history_retention_ms = history_retention_ms
        self.active_execution_ttl_ms = active_execution_ttl_ms
        self.error_handler = error_handler or ErrorHandler()
        self.clock = clock

        self.execution_history: List[ExecutionRecord] = []
        self.active_executions: Dict[str, Dict[str, Any]] = {}

        # Handlers that outlived their timeout; kept referenced until they settle
        self._abandoned: Set[asyncio.Task] = set()

        self.stats = {
            "totalExecutions": 0,
            "successfulExecutions": 0,
            "failedExecutions": 0,
            "timeoutExecutions": 0,
            "retryExecutions": 0,
            "averageExecutionTime": 0.0,
            "totalExecutionTime": 0.0,
        }
        self.performance: Dict[str, Any] = {
            "fastestExecution": float("inf"),
            "slowestExecution": 0.0,
            "executionTimes": [],
        }

        self.logger.info("Command Executor initialized")

    async def execute(self, ctx: Any, descriptor: CommandDescriptor, args: List[str]) -> bool:
        """
        Execute a command with timeout protection and retries.

        Never raises: every failure ends as False plus a reply to the invoker.

        Args:
            ctx: Invocation context
            descriptor: Resolved command
            args: Argument tokens

        Returns:
            True if some attempt succeeded
        """
        execution_id = self._generate_execution_id()
        started_at = self.clock()
        self.stats["totalExecutions"] += 1

        command_name = getattr(descriptor, "name", "unknown")
        self.active_executions[execution_id] = {
            "executionId": execution_id,
            "messageId": getattr(ctx, "message_id", None),
            "commandName": command_name,
            "userId": getattr(ctx, "author_id", None),
            "guildId": getattr(ctx, "guild_id", None),
            "startTime": started_at,
            "status": "running",
        }

        attempt = 0
        error: Optional[BaseException] = None

        try:
            if not self._validate_execution(ctx, descriptor, args):
                raise ValidationError("Invalid command execution parameters")

            while True:
                attempt += 1
                attempt_started = self.clock()
                try:
                    result = await self._execute_with_timeout(descriptor.handler.execute(ctx, args))
                    if self.enable_validation and not self._validate_result(result):
                        raise ExecutionError("Command returned invalid result")
                except Exception as e:
                    error = self._wrap(e)
                    self._log_execution(execution_id, ctx, command_name, attempt_started, attempt, error)
                    self.error_handler.record(error, context=command_name)

                    if attempt <= self.max_retries and self.error_handler.is_retryable(error):
                        self.stats["retryExecutions"] += 1
                        self.logger.info(f"Retrying command execution: {command_name} ({execution_id})")
                        continue
                    break

                self._log_execution(execution_id, ctx, command_name, attempt_started, attempt, None)
                if attempt > 1:
                    self.logger.info(f"Command retry successful: {command_name} ({execution_id})")
                error = None
                break
        except asyncio.CancelledError:
            elapsed = self.clock() - started_at
            self._update_failure_stats(elapsed)
            self._finish(execution_id, "cancelled", elapsed, "Dispatch was cancelled")
            self.logger.warning(f"Command dispatch cancelled: {command_name} ({execution_id})")
            raise
        except Exception as e:
            # Parameter validation or bookkeeping failure
            error = self._wrap(e)
            self._log_execution(execution_id, ctx, command_name, started_at, max(attempt, 1), error)
            self.error_handler.record(error, context=command_name)

        elapsed = self.clock() - started_at
        if error is None:
            self._update_success_stats(elapsed)
            self._finish(execution_id, "completed", elapsed, None)
            return True

        self._update_failure_stats(elapsed)
        final: BaseException = error
        if attempt > 1:
            final = RetryExhausted(attempt, error)
            self.logger.error(f"Command retry failed: {command_name} ({execution_id})")
        status = "timeout" if isinstance(error, ExecutionTimeout) else "failed"
        self._finish(execution_id, status, elapsed, str(error))

        await DiscordUtils.safe_reply(ctx, self.error_handler.user_message(final))
        return False

    async def _execute_with_timeout(self, coro: Any) -> Any:
        """
        Await a handler coroutine for at most timeout_ms.

        On timeout the task is abandoned, not cancelled: it keeps running
        and whatever it eventually produces is discarded.
        """
        task = asyncio.ensure_future(coro)
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout_ms / 1000)
        except asyncio.CancelledError:
            # The dispatching task itself is being cancelled
            self._abandon(task)
            raise

        if task not in done:
            self.stats["timeoutExecutions"] += 1
            self._abandon(task)
            raise ExecutionTimeout(self.timeout_ms)
        if task.cancelled():
            raise ExecutionError("Command was cancelled")
        return task.result()

    def _abandon(self, task: asyncio.Task) -> None:
        self._abandoned.add(task)
        task.add_done_callback(self._settle_abandoned)

    def _settle_abandoned(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.debug(f"Abandoned handler finished with error: {error}")

    @property
    def abandoned_count(self) -> int:
        return len(self._abandoned)

    @staticmethod
    def _wrap(error: BaseException) -> BaseException:
        if isinstance(error, CommandError):
            return error
        return ExecutionError(str(error) or type(error).__name__, original=error)

    def _validate_execution(self, ctx: Any, descriptor: Any, args: Any) -> bool:
        if ctx is None or descriptor is None:
            self.logger.error("Invalid execution parameters")
            return False
        if not isinstance(getattr(descriptor, "handler", None), CommandHandler):
            self.logger.error("Command handler does not implement CommandHandler")
            return False
        if not isinstance(args, list):
            self.logger.error("Command arguments must be a list")
            return False
        return True

    def _validate_result(self, result: Any) -> bool:
        if result is None:
            return True
        if asyncio.iscoroutine(result):
            result.close()
            self.logger.warning("Command returned an unawaited coroutine instead of a result")
            return False
        if callable(result):
            self.logger.warning("Command returned a callable instead of a result")
            return False
        return True

    def _update_success_stats(self, execution_time: float) -> None:
        self.stats["successfulExecutions"] += 1
        self._add_time(execution_time)

        self.performance["fastestExecution"] = min(self.performance["fastestExecution"], execution_time)
        self.performance["slowestExecution"] = max(self.performance["slowestExecution"], execution_time)
        self.performance["executionTimes"].append(execution_time)
        if len(self.performance["executionTimes"]) > 1000:
            self.performance["executionTimes"] = self.performance["executionTimes"][-1000:]

    def _update_failure_stats(self, execution_time: float) -> None:
        self.stats["failedExecutions"] += 1
        self._add_time(execution_time)

    def _add_time(self, execution_time: float) -> None:
        self.stats["totalExecutionTime"] += execution_time
        self.stats["averageExecutionTime"] = (
            self.stats["totalExecutionTime"] / self.stats["totalExecutions"]
        )

    def _finish(self, execution_id: str, status: str, execution_time: float, error: Optional[str]) -> None:
        entry = self.active_executions.get(execution_id)
        if entry is None:
            return
        entry.update({
            "status": status,
            "executionTime": execution_time,
            "success": status == "completed",
            "finishedAt": self.clock(),
        })
        if error:
            entry["error"] = error

    def _log_execution(
        self,
        execution_id: str,
        ctx: Any,
        command_name: str,
        attempt_started: float,
        attempt: int,
        error: Optional[BaseException],
    ) -> None:
        now = self.clock()
        record = ExecutionRecord(
            execution_id=execution_id,
            command_name=command_name,
            user_id=getattr(ctx, "author_id", ""),
            username=getattr(ctx, "author_name", ""),
            guild_id=getattr(ctx, "guild_id", None),
            guild_name=getattr(ctx, "guild_name", None),
            channel_id=getattr(ctx, "channel_id", ""),
            channel_name=getattr(ctx, "channel_name", ""),
            started_at=attempt_started,
            execution_time=now - attempt_started,
            success=error is None,
            attempt=attempt,
            error=self._describe(error) if error else None,
            timestamp=now,
        )

        self.execution_history.append(record)
        if len(self.execution_history) > self.history_limit:
            self.execution_history = self.execution_history[-self.history_limit:]

        if error is None:
            self.logger.info(f"Command executed: {command_name} ({record.execution_time:.0f}ms) - {execution_id}")
        else:
            self.logger.error(
                f"Command failed: {command_name} ({record.execution_time:.0f}ms) - {execution_id}: {error}"
            )

    def _describe(self, error: BaseException) -> Dict[str, str]:
        original = getattr(error, "original", None) or error
        return {
            "kind": self.error_handler.classify(error),
            "type": type(original).__name__,
            "message": str(error),
        }

    @staticmethod
    def _generate_execution_id() -> str:
        return f"exec_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"

    def get_stats(self) -> Dict[str, Any]:
        total = self.stats["totalExecutions"]
        fastest = self.performance["fastestExecution"]
        return {
            **self.stats,
            "successRate": round(self.stats["successfulExecutions"] / total * 100, 2) if total else 0,
            "retryRate": round(self.stats["retryExecutions"] / total * 100, 2) if total else 0,
            "performance": {
                "fastestExecution": 0 if fastest == float("inf") else fastest,
                "slowestExecution": self.performance["slowestExecution"],
                "executionTimes": list(self.performance["executionTimes"]),
                "averageExecutionTime": round(self.stats["averageExecutionTime"], 2),
            },
            "errors": self.error_handler.get_stats(),
            "activeExecutions": sum(
                1 for entry in self.active_executions.values() if entry["status"] == "running"
            ),
            "abandonedExecutions": len(self._abandoned),
        }

    def get_execution_history(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Filtered slice of the execution history.

        Args:
            filters: command_name, user_id, guild_id, success, limit

        Returns:
            Matching records as dicts, oldest first
        """
        filters = filters or {}
        entries = list(self.execution_history)

        if filters.get("command_name"):
            entries = [e for e in entries if e.command_name == filters["command_name"]]
        if filters.get("user_id"):
            entries = [e for e in entries if e.user_id == filters["user_id"]]
        if filters.get("guild_id"):
            entries = [e for e in entries if e.guild_id == filters["guild_id"]]
        if filters.get("success") is not None:
            entries = [e for e in entries if e.success == filters["success"]]
        if filters.get("limit"):
            entries = entries[-filters["limit"]:]

        return [e.to_dict() for e in entries]

    def get_active_executions(self) -> List[Dict[str, Any]]:
        return [dict(entry) for entry in self.active_executions.values()]

    def cleanup_history(self) -> int:
        """Drop history entries older than the retention window."""
        cutoff = self.clock() - self.history_retention_ms
        before = len(self.execution_history)
        self.execution_history = [e for e in self.execution_history if e.timestamp > cutoff]
        removed = before - len(self.execution_history)
        self.logger.debug(
            f"Cleaned up execution history, {len(self.execution_history)} entries remaining"
        )
        return removed

    def cleanup_active_executions(self) -> int:
        """
        Release finished entries after a minute and drop stale running ones.

        Returns:
            Number of entries removed
        """
        now = self.clock()
        stale = []
        for execution_id, entry in self.active_executions.items():
            finished_at = entry.get("finishedAt")
            if finished_at is not None and now - finished_at >= RELEASE_AFTER_MS:
                stale.append(execution_id)
            elif now - entry["startTime"] > self.active_execution_ttl_ms:
                stale.append(execution_id)

        for execution_id in stale:
            self.active_executions.pop(execution_id, None)

        if stale:
            self.logger.debug(f"Cleaned up {len(stale)} stale active executions")
        return len(stale)

    def reset_performance_stats(self) -> None:
        self.performance["fastestExecution"] = float("inf")
        self.performance["slowestExecution"] = 0.0
        self.performance["executionTimes"] = []
        self.logger.info("Performance statistics reset")

    def clear_all_data(self) -> None:
        self.execution_history = []
        self.active_executions.clear()
        self.error_handler.clear()
        self.logger.info("All execution data cleared")
