"""
Monitoring Utilities
Process metrics and health status of the command system
"""

import os
import platform
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import psutil


class HealthStatus:
    """Health status result."""

    def __init__(
        self,
        healthy: bool,
        status: str,
        checks: Dict[str, bool],
        timestamp: str,
    ):
        self.healthy = healthy
        self.status = status
        self.checks = checks
        self.timestamp = timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthy": self.healthy,
            "status": self.status,
            "checks": dict(self.checks),
            "timestamp": self.timestamp,
        }


class Monitoring:
    """Process metrics combined with command system statistics."""

    def __init__(self, manager: Any, client: Any = None):
        self.manager = manager
        self.client = client
        self.start_time = time.time()
        self.hourly_stats: Dict[str, Dict[str, Any]] = {}

    def get_system_metrics(self) -> Dict[str, Any]:
        """
        Get system metrics.

        Returns:
            Dict with memory, CPU, uptime, and platform info
        """
        process = psutil.Process()
        memory_info = process.memory_info()
        virtual = psutil.virtual_memory()
        load_avg = os.getloadavg() if hasattr(os, "getloadavg") else (0.0, 0.0, 0.0)

        return {
            "memory": {
                "used": round(memory_info.rss / 1024 / 1024),
                "virtual": round(memory_info.vms / 1024 / 1024),
                "systemTotal": round(virtual.total / 1024 / 1024),
                "systemFree": round(virtual.available / 1024 / 1024),
            },
            "cpu": {
                "loadAvg1m": round(load_avg[0], 2),
                "loadAvg5m": round(load_avg[1], 2),
                "loadAvg15m": round(load_avg[2], 2),
                "cores": psutil.cpu_count(),
            },
            "uptime": {
                "process": self.format_duration(int(time.time() - process.create_time())),
                "bot": self.format_duration(int(time.time() - self.start_time)),
            },
            "platform": {
                "python": platform.python_version(),
                "os": f"{platform.system()} {platform.release()}",
                "arch": platform.machine(),
            },
        }

    def get_discord_metrics(self) -> Dict[str, Any]:
        """Gateway client metrics; zeros when no client is attached."""
        if self.client is None:
            return {"connected": False, "ping": 0, "guilds": 0}

        latency = getattr(self.client, "latency", 0) or 0
        guilds = getattr(self.client, "guilds", []) or []
        is_ready = getattr(self.client, "is_ready", None)
        return {
            "connected": bool(is_ready()) if callable(is_ready) else False,
            "ping": 0 if latency == float("inf") else round(latency * 1000),
            "guilds": len(guilds),
        }

    def get_app_metrics(self) -> Dict[str, Any]:
        stats = self.manager.execution_stats
        hours = (time.time() - self.start_time) / 3600
        return {
            **stats,
            "commandsPerHour": round(stats["totalExecutions"] / hours) if hours > 0 else 0,
        }

    def record_hourly_stats(self) -> None:
        """Snapshot the manager counters, keeping the last 24 hours."""
        hour = datetime.now().strftime("%Y-%m-%dT%H")
        self.hourly_stats[hour] = dict(self.manager.execution_stats)

        keys = sorted(self.hourly_stats.keys())
        if len(keys) > 24:
            for old_key in keys[:-24]:
                del self.hourly_stats[old_key]

    def get_health_status(self) -> HealthStatus:
        """
        Get health status.

        Returns:
            HealthStatus with overall health and individual checks
        """
        system = self.get_system_metrics()
        executor = self.manager.executor.get_stats()
        total = executor["totalExecutions"]

        checks = {
            "memory": system["memory"]["used"] < system["memory"]["systemTotal"] * 0.8,
            "failureRate": (executor["failedExecutions"] / total < 0.5) if total >= 10 else True,
            "abandonedExecutions": executor["abandonedExecutions"] < 100,
            "scheduler": self.manager.scheduler.started,
        }

        healthy = all(checks.values())

        return HealthStatus(
            healthy=healthy,
            status="healthy" if healthy else "degraded",
            checks=checks,
            timestamp=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        )

    @staticmethod
    def format_duration(seconds: int) -> str:
        """
        Format duration in human readable format.

        Args:
            seconds: Duration in seconds

        Returns:
            Formatted duration string
        """
        days = seconds // 86400
        hours = (seconds % 86400) // 3600
        mins = (seconds % 3600) // 60
        secs = seconds % 60

        parts: List[str] = []
        if days > 0:
            parts.append(f"{days}d")
        if hours > 0:
            parts.append(f"{hours}h")
        if mins > 0:
            parts.append(f"{mins}m")
        if secs > 0 or not parts:
            parts.append(f"{secs}s")

        return " ".join(parts)

    def get_full_status(self, include_system: bool = True) -> Dict[str, Any]:
        """
        Get full status report.

        Returns:
            Dict with health, system, discord and app metrics plus the last hourly snapshot
        """
        status: Dict[str, Any] = {
            "health": self.get_health_status().to_dict(),
            "discord": self.get_discord_metrics(),
            "app": self.get_app_metrics(),
            "lastHour": self.last_snapshot(),
        }
        if include_system:
            status["system"] = self.get_system_metrics()
        return status

    def last_snapshot(self) -> Optional[Dict[str, Any]]:
        if not self.hourly_stats:
            return None
        return self.hourly_stats[sorted(self.hourly_stats)[-1]]
