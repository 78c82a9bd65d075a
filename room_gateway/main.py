"""
Room Gateway main application.

Serves the player WebSocket and a thin HTTP status side channel. The
gateway is built in the lifespan and kept on ``app.state.gateway``.

Run with:
    python -m room_gateway.main
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from room_gateway.components.endpoints.player import PlayerEndpoint
from room_gateway.components.protocol.types import now_ms
from room_gateway.config.logging import gateway_logger as logger, setup_logging
from room_gateway.config.settings import Settings, get_settings
from room_gateway.gateway import ConnectionGateway


# =============================================================================
# Background tasks
# =============================================================================


async def run_heartbeat(gateway: ConnectionGateway) -> None:
    """
    Periodically ping every connection and close silent ones.

    Runs every ``ping_interval`` seconds.
    """
    interval = gateway.settings.ping_interval
    while True:
        try:
            await asyncio.sleep(interval)
            gateway.heartbeat_tick()
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Error in heartbeat", error=str(e), exc_info=True)


async def run_idle_sweep(gateway: ConnectionGateway) -> None:
    """
    Periodically close rooms without activity.

    Runs every ``room_cleanup_interval`` seconds.
    """
    interval = gateway.settings.room_cleanup_interval
    while True:
        try:
            await asyncio.sleep(interval)
            closed = gateway.sweep_idle_rooms()
            if closed:
                logger.info("Closed inactive rooms", count=len(closed))
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Error in idle sweep", error=str(e), exc_info=True)


async def _stop_task(task: asyncio.Task) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


# =============================================================================
# FastAPI Application
# =============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use (defaults to get_settings()).
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Starts:
        - Heartbeat task for silent connections
        - Idle sweep task for inactive rooms
        """
        setup_logging(settings)
        for problem in settings.validate_runtime():
            logger.warning("Configuration problem", problem=problem)

        gateway = ConnectionGateway(settings)
        app.state.gateway = gateway
        logger.info(
            "Starting room gateway",
            port=settings.port,
            env=settings.environment,
            lobby=settings.lobby_room_id,
        )

        heartbeat_task = asyncio.create_task(run_heartbeat(gateway), name="heartbeat")
        sweep_task = asyncio.create_task(run_idle_sweep(gateway), name="idle_sweep")

        yield

        logger.info("Shutting down room gateway")
        await _stop_task(heartbeat_task)
        await _stop_task(sweep_task)
        gateway.shutdown()

    app = FastAPI(
        title="Room Gateway",
        description="Real-time multiplayer rooms for vehicle sessions",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health")
    def health_check():
        """Basic health check endpoint."""
        return {"status": "ok", "timestamp": now_ms()}

    @app.get("/health/detailed")
    def detailed_health_check(request: Request):
        """Health check with per-component statistics."""
        gateway: ConnectionGateway = request.app.state.gateway
        return {
            "status": "ok",
            "timestamp": now_ms(),
            "environment": settings.environment,
            "version": app.version,
            **gateway.get_detailed_stats(),
        }

    @app.get("/stats")
    def stats(request: Request):
        """Room, in-room player and live connection counts."""
        gateway: ConnectionGateway = request.app.state.gateway
        return gateway.get_stats()

    # =========================================================================
    # WebSocket Endpoints
    # =========================================================================

    @app.websocket("/ws")
    async def player_websocket(websocket: WebSocket):
        """WebSocket endpoint for players."""
        endpoint = PlayerEndpoint(websocket, websocket.app.state.gateway, "/ws")
        await endpoint.run()

    @app.websocket("/")
    async def root_websocket(websocket: WebSocket):
        """Same endpoint on the root path for clients that connect to the bare host."""
        endpoint = PlayerEndpoint(websocket, websocket.app.state.gateway, "/")
        await endpoint.run()

    return app


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        create_app(_settings),
        host=_settings.host,
        port=_settings.port,
        log_config=None,
    )
