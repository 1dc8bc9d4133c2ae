"""Quart application for grain bin tracking."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Optional

from quart import Quart
from werkzeug.exceptions import HTTPException

from ..config import GrainbinConfig, load_config
from ..core.accrual import AccrualLoop
from ..core.errors import BinNotFoundError, ConfigurationError, ValidationError
from ..core.events import Event, EventType
from ..core.manager import BinManager
from ..notify import create_notifier
from ..store import create_store
from .routes import bins, notes, settings
from .schemas import BinResponse, ErrorResponse, SettingsResponse
from .websocket import WebSocketManager

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """Application state container."""

    manager: Optional[BinManager] = None
    config: Optional[GrainbinConfig] = None
    ws_manager: WebSocketManager = field(default_factory=WebSocketManager)
    accrual_loop: Optional[AccrualLoop] = None
    _accrual_task: Optional[asyncio.Task] = None
    _flush_task: Optional[asyncio.Task] = None


# Global app state
app_state = AppState()


async def _event_handler(event: Event) -> None:
    """Handle manager events and broadcast to WebSocket clients."""
    ws_manager = app_state.ws_manager
    manager = app_state.manager
    data = event.data or {}

    if event.type == EventType.BIN_UPDATED:
        if manager is None or ws_manager.connection_count == 0:
            return
        try:
            bin_, metrics = await manager.get_bin_metrics(data["bin_id"])
        except BinNotFoundError:
            return
        await ws_manager.broadcast_bin_update(
            BinResponse.from_bin(bin_, metrics),
            operation=data.get("operation", ""),
        )

    elif event.type == EventType.SETTINGS_UPDATED:
        if manager is not None:
            await ws_manager.broadcast_settings_update(
                SettingsResponse.from_settings(manager.settings)
            )

    elif event.type == EventType.AUTO_STOPPED:
        logger.info(
            "Bin %s is full at %.1f ft, filling stopped",
            data.get("bin_id"),
            data.get("fill_feet", 0.0),
        )

    elif event.type == EventType.PERSISTENCE_FAILED:
        await ws_manager.broadcast_error(
            message=data.get("message", "Unknown persistence error"),
            error_type="persistence",
        )


async def start_services(config: Optional[GrainbinConfig] = None) -> BinManager:
    """Build the manager, load state and start background tasks.

    Args:
        config: Configuration to use. Loaded from files and env if None.

    Returns:
        The running bin manager.
    """
    cfg = config or load_config()
    app_state.config = cfg

    notifier = create_notifier(
        cfg.notifier_backend,
        sender=app_state.ws_manager.broadcast_notification,
        periodic_minutes=cfg.periodic_reminder_minutes,
    )
    manager = BinManager(
        store=create_store(cfg),
        notifier=notifier,
        activity_log_limit=cfg.activity_log_limit,
        default_bin_count=cfg.default_bin_count,
        default_capacity_feet=cfg.default_capacity_feet,
    )
    manager.add_listener(_event_handler)
    await manager.load()
    app_state.manager = manager

    app_state.accrual_loop = AccrualLoop(manager, tick_interval=cfg.tick_interval)
    app_state._accrual_task = asyncio.create_task(
        app_state.accrual_loop.run(),
        name="accrual",
    )
    app_state._flush_task = asyncio.create_task(
        manager.run_flush_loop(cfg.flush_interval),
        name="persistence-flush",
    )

    logger.info("Grain bin API started")
    return manager


async def stop_services() -> None:
    """Stop background tasks and write pending changes."""
    logger.info("Shutting down grain bin API")

    if app_state.accrual_loop is not None:
        app_state.accrual_loop.stop()

    if app_state._accrual_task is not None:
        try:
            await asyncio.wait_for(app_state._accrual_task, timeout=2.0)
        except asyncio.TimeoutError:
            app_state._accrual_task.cancel()

    # Final flush happens here, after accrual has stopped
    if app_state.manager is not None:
        await app_state.manager.stop()

    if app_state._flush_task is not None:
        try:
            await asyncio.wait_for(app_state._flush_task, timeout=2.0)
        except asyncio.TimeoutError:
            app_state._flush_task.cancel()

    app_state.accrual_loop = None
    app_state._accrual_task = None
    app_state._flush_task = None
    logger.info("Grain bin API shutdown complete")


def create_app() -> Quart:
    """Create and configure the Quart application."""
    app = Quart(__name__)

    app.register_blueprint(bins.bp, url_prefix="/api/bins")
    app.register_blueprint(notes.bp, url_prefix="/api/bins")
    app.register_blueprint(settings.bp, url_prefix="/api/settings")

    @app.before_serving
    async def startup() -> None:
        await start_services()

    @app.after_serving
    async def shutdown() -> None:
        await stop_services()

    @app.route("/health")
    async def health_check():
        """Health check endpoint."""
        manager = app_state.manager
        return {
            "status": "healthy",
            "manager_running": manager is not None,
            "accrual_running": (
                app_state.accrual_loop is not None and app_state.accrual_loop.is_running
            ),
            "pending_changes": manager.is_dirty if manager is not None else False,
            "websocket_connections": app_state.ws_manager.connection_count,
        }

    @app.errorhandler(HTTPException)
    async def handle_http_error(e: HTTPException):
        return asdict(ErrorResponse(error=e.name, detail=e.description)), e.code

    @app.errorhandler(BinNotFoundError)
    async def handle_not_found(e: BinNotFoundError):
        return asdict(ErrorResponse(error="Not Found", detail=str(e))), 404

    @app.errorhandler(ValidationError)
    async def handle_validation_error(e: ValidationError):
        return asdict(ErrorResponse(error="Bad Request", detail=str(e))), 400

    @app.errorhandler(ConfigurationError)
    async def handle_configuration_error(e: ConfigurationError):
        return asdict(ErrorResponse(error="Bad Request", detail=str(e))), 400

    return app


# Create the app instance
app = create_app()
