"""System settings API routes."""

from __future__ import annotations

from dataclasses import asdict

from quart import Blueprint

from ..schemas import SettingsResponse, SettingsUpdate
from .bins import get_json_body, get_manager

bp = Blueprint("settings", __name__)


@bp.route("/")
async def get_settings():
    """Get current system settings."""
    manager = get_manager()
    return asdict(SettingsResponse.from_settings(manager.settings))


@bp.route("/", methods=["PUT"])
async def update_settings():
    """Apply a partial settings update and persist it."""
    manager = get_manager()
    data = await get_json_body()
    update = SettingsUpdate(
        elevator_speed=data.get("elevator_speed"),
        tons_per_foot=data.get("tons_per_foot"),
        tons_per_trailer=data.get("tons_per_trailer"),
        tons_per_wagon=data.get("tons_per_wagon"),
        notifications=data.get("notifications"),
    )
    settings = await manager.update_system_settings(**update.changes())
    return asdict(SettingsResponse.from_settings(settings))


@bp.route("/notifications/test", methods=["POST"])
async def send_test_notification():
    manager = get_manager()
    return {"success": manager.send_test_notification()}


@bp.route("/notifications/cooldown/<bin_id>", methods=["POST"])
async def reset_notification_cooldown(bin_id: str):
    """Allow the next threshold alert for a bin to fire immediately."""
    manager = get_manager()
    bin_ = await manager.get_bin(bin_id)
    manager.reset_notification_cooldown(bin_.id)
    return {"success": True}
