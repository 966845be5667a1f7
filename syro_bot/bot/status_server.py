"""
Status web server.
Read-only observability endpoints over the command system.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from syro_bot import __version__
from syro_bot.bot.config import config
from syro_bot.utils.logger import get_logger

logger = get_logger("StatusServer")

# Track bot status
_bot_status = {
    "status": "starting",
    "discord_connected": False,
}


def update_bot_status(**kwargs):
    """Update bot status for health endpoint."""
    _bot_status.update(kwargs)


def get_bot_status() -> dict:
    return dict(_bot_status)


def create_app(manager: Any) -> FastAPI:
    """
    Build the status app for a command manager.

    Args:
        manager: CommandManager to report on

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Status server starting...")
        _bot_status["status"] = "running"
        yield
        logger.info("Status server shutting down...")

    app = FastAPI(
        title="Syro Bot",
        description="Command system status server",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Syro Bot",
            "version": __version__,
            "status": _bot_status.get("status", "unknown"),
        }

    @app.get("/health")
    async def health():
        """Health check endpoint for monitoring."""
        health_status = manager.get_health_status()
        healthy = health_status["healthy"]

        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                **health_status,
                "discord": "connected" if _bot_status.get("discord_connected") else "disconnected",
            },
        )

    @app.get("/ping")
    async def ping():
        """Simple ping endpoint."""
        return {"pong": True}

    @app.get("/status")
    async def status(system: bool = True):
        """Health, process, gateway and command metrics in one report."""
        return manager.monitoring.get_full_status(include_system=system)

    @app.get("/stats")
    async def stats():
        return manager.get_stats()

    @app.get("/executions")
    async def executions(
        command: Optional[str] = None,
        user_id: Optional[str] = None,
        guild_id: Optional[str] = None,
        success: Optional[bool] = None,
        limit: int = Query(100, ge=1, le=1000),
    ):
        """Recent execution history."""
        return manager.get_execution_history({
            "command_name": command,
            "user_id": user_id,
            "guild_id": guild_id,
            "success": success,
            "limit": limit,
        })

    @app.get("/executions/active")
    async def active_executions():
        return manager.get_active_executions()

    @app.get("/audit")
    async def audit(
        guild_id: Optional[str] = None,
        command: Optional[str] = None,
        user_id: Optional[str] = None,
        type: Optional[str] = None,
        limit: int = Query(100, ge=1, le=1000),
    ):
        """Permission audit log."""
        return manager.get_audit_log({
            "guild_id": guild_id,
            "command_name": command,
            "user_id": user_id,
            "type": type,
            "limit": limit,
        })

    @app.get("/commands/{guild_id}")
    async def commands(guild_id: str):
        """Commands with per-server overrides, for a management screen."""
        return await manager.get_commands_for_dashboard(guild_id)

    return app


async def start_server(manager: Any):
    """Start the status server."""
    import uvicorn

    config_uvicorn = uvicorn.Config(
        create_app(manager),
        host=config.HOST,
        port=config.PORT,
        log_level="warning",
        access_log=False,
    )
    server = uvicorn.Server(config_uvicorn)

    logger.info(f"Status server listening on port {config.PORT}")
    await server.serve()


def run_server(manager: Any) -> asyncio.Task:
    """Run server in background task."""
    return asyncio.create_task(start_server(manager))
