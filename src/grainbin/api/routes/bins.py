"""Bin API routes."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING, Any

from quart import Blueprint, abort, request, websocket

from ..schemas import (
    BinResponse,
    CountRequest,
    GrainTypeRequest,
    LoadRequest,
    ManualFillRequest,
)

if TYPE_CHECKING:
    from ...core.manager import BinManager
    from ..app import AppState

bp = Blueprint("bins", __name__)


def get_app_state() -> "AppState":
    """Get app state - injected at runtime."""
    from ..app import app_state
    return app_state


def get_manager() -> "BinManager":
    state = get_app_state()
    if state.manager is None:
        abort(503, description="Bin manager not initialized")
    return state.manager


async def get_json_body() -> dict[str, Any]:
    """Request body as a dict; empty if there is none."""
    data = await request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        abort(400, description="Request body must be a JSON object")
    return data


async def bin_payload(manager: "BinManager", bin_id: str) -> dict[str, Any]:
    bin_, metrics = await manager.get_bin_metrics(bin_id)
    return asdict(BinResponse.from_bin(bin_, metrics))


@bp.route("/")
async def list_bins():
    """Get all bins with their metrics."""
    manager = get_manager()
    return {
        "bins": [
            asdict(BinResponse.from_bin(bin_, metrics))
            for bin_, metrics in await manager.get_all_bin_metrics()
        ],
    }


@bp.route("/<bin_id>")
async def get_bin(bin_id: str):
    manager = get_manager()
    return await bin_payload(manager, bin_id)


@bp.route("/<bin_id>/metrics")
async def get_bin_metrics(bin_id: str):
    manager = get_manager()
    _, metrics = await manager.get_bin_metrics(bin_id)
    return asdict(metrics)


@bp.route("/<bin_id>/start", methods=["POST"])
async def start_filling(bin_id: str):
    """Start continuous filling."""
    manager = get_manager()
    if not await manager.start_filling(bin_id):
        abort(400, description="Bin is already filling")
    return {"success": True, "bin": await bin_payload(manager, bin_id)}


@bp.route("/<bin_id>/stop", methods=["POST"])
async def stop_filling(bin_id: str):
    """Stop continuous filling."""
    manager = get_manager()
    if not await manager.stop_filling(bin_id):
        abort(400, description="Bin is not filling")
    return {"success": True, "bin": await bin_payload(manager, bin_id)}


@bp.route("/<bin_id>/reset", methods=["POST"])
async def reset_bin(bin_id: str):
    """Empty the bin."""
    manager = get_manager()
    await manager.reset(bin_id)
    return {"success": True, "bin": await bin_payload(manager, bin_id)}


@bp.route("/<bin_id>/manual-fill", methods=["POST"])
async def manual_fill(bin_id: str):
    """Set the fill level from a measured remaining headspace."""
    manager = get_manager()
    data = await get_json_body()
    req = ManualFillRequest(remaining_feet=data.get("remaining_feet"))

    # A reading taller than the bin is an operator error here; the core
    # would clamp it to empty.
    bin_ = await manager.get_bin(bin_id)
    value = req.remaining_feet
    if (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and value > bin_.max_capacity_feet
    ):
        abort(
            400,
            description=f"remaining_feet cannot exceed bin capacity ({bin_.max_capacity_feet:g} ft)",
        )

    await manager.update_manual_fill(bin_id, value)
    return {"success": True, "bin": await bin_payload(manager, bin_id)}


@bp.route("/<bin_id>/inload", methods=["POST"])
async def manual_inload(bin_id: str):
    manager = get_manager()
    data = await get_json_body()
    req = LoadRequest(tons=data.get("tons"), load_type=data.get("load_type"))
    await manager.manual_inload(bin_id, req.tons, req.load_type)
    return {"success": True, "bin": await bin_payload(manager, bin_id)}


@bp.route("/<bin_id>/outload", methods=["POST"])
async def manual_outload(bin_id: str):
    manager = get_manager()
    data = await get_json_body()
    req = LoadRequest(tons=data.get("tons"), load_type=data.get("load_type"))
    await manager.manual_outload(bin_id, req.tons, req.load_type)
    return {"success": True, "bin": await bin_payload(manager, bin_id)}


@bp.route("/<bin_id>/trailers/<action>", methods=["POST"])
async def trailer_action(bin_id: str, action: str):
    """Add, remove or reset trailer loads."""
    manager = get_manager()

    if action == "reset":
        await manager.reset_trailer_count(bin_id)
    else:
        data = await get_json_body()
        req = CountRequest(count=data.get("count", 1))
        if action == "add":
            await manager.add_truck_load(bin_id, req.count)
        elif action == "remove":
            await manager.remove_trailer_load(bin_id, req.count)
        else:
            abort(404, description=f"Unknown trailer action: {action}")

    return {"success": True, "bin": await bin_payload(manager, bin_id)}


@bp.route("/<bin_id>/wagons/<action>", methods=["POST"])
async def wagon_action(bin_id: str, action: str):
    """Add, remove or reset rail wagon loads."""
    manager = get_manager()

    if action == "reset":
        await manager.reset_wagon_count(bin_id)
    else:
        data = await get_json_body()
        req = CountRequest(count=data.get("count", 1))
        if action == "add":
            await manager.add_wagon_load(bin_id, req.count)
        elif action == "remove":
            await manager.remove_wagon_load(bin_id, req.count)
        else:
            abort(404, description=f"Unknown wagon action: {action}")

    return {"success": True, "bin": await bin_payload(manager, bin_id)}


@bp.route("/<bin_id>/grain-type", methods=["PUT"])
async def update_grain_type(bin_id: str):
    manager = get_manager()
    data = await get_json_body()
    req = GrainTypeRequest(grain_type=data.get("grain_type"))
    await manager.update_grain_type(bin_id, req.grain_type)
    return {"success": True, "bin": await bin_payload(manager, bin_id)}


@bp.route("/<bin_id>/activity")
async def get_activity(bin_id: str):
    """Get the bin's activity ledger, most recent first."""
    manager = get_manager()
    payload = await bin_payload(manager, bin_id)
    return {"activity_logs": payload["activity_logs"]}


@bp.route("/<bin_id>/activity/undo", methods=["POST"])
async def undo_activity(bin_id: str):
    """Undo the most recent ledger entry."""
    manager = get_manager()
    result = await manager.undo_last_activity(bin_id)

    response: dict[str, Any] = {
        "success": result is not None,
        "reverted": result.reverted if result is not None else False,
        "entry": result.entry.to_dict() if result is not None else None,
    }
    response["bin"] = await bin_payload(manager, bin_id)
    return response


@bp.route("/<bin_id>/activity/<log_id>", methods=["DELETE"])
async def delete_activity(bin_id: str, log_id: str):
    manager = get_manager()
    if not await manager.delete_activity_log(bin_id, log_id):
        abort(404, description=f"Unknown activity log: {log_id}")
    return {"success": True}


@bp.websocket("/ws")
async def websocket_endpoint():
    """WebSocket endpoint for real-time updates."""
    state = get_app_state()
    connection = websocket._get_current_object()
    await state.ws_manager.connect(connection)
    try:
        while True:
            # Keep connection alive; clients only listen
            await websocket.receive()
    finally:
        await state.ws_manager.disconnect(connection)
