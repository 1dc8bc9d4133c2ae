"""Bin note API routes."""

from __future__ import annotations

from dataclasses import asdict

from quart import Blueprint, abort

from ..schemas import NoteRequest, NoteResponse
from .bins import get_json_body, get_manager

bp = Blueprint("notes", __name__)


@bp.route("/<bin_id>/notes")
async def list_notes(bin_id: str):
    manager = get_manager()
    bin_ = await manager.get_bin(bin_id)
    return {"notes": [asdict(NoteResponse.from_note(note)) for note in bin_.notes]}


@bp.route("/<bin_id>/notes", methods=["POST"])
async def add_note(bin_id: str):
    """Attach a note to a bin."""
    manager = get_manager()
    data = await get_json_body()
    req = NoteRequest(
        title=data.get("title"),
        content=data.get("content"),
        priority=data.get("priority", "medium"),
    )
    note = await manager.add_note(bin_id, req.title, req.content, req.priority)
    return asdict(NoteResponse.from_note(note)), 201


@bp.route("/<bin_id>/notes/<note_id>", methods=["PUT"])
async def update_note(bin_id: str, note_id: str):
    manager = get_manager()
    data = await get_json_body()
    req = NoteRequest(
        title=data.get("title"),
        content=data.get("content"),
        priority=data.get("priority", "medium"),
    )
    note = await manager.update_note(bin_id, note_id, req.title, req.content, req.priority)
    if note is None:
        abort(404, description=f"Unknown note: {note_id}")
    return asdict(NoteResponse.from_note(note))


@bp.route("/<bin_id>/notes/<note_id>/read", methods=["POST"])
async def mark_note_read(bin_id: str, note_id: str):
    manager = get_manager()
    data = await get_json_body()
    note = await manager.mark_note_read(bin_id, note_id, bool(data.get("is_read", True)))
    if note is None:
        abort(404, description=f"Unknown note: {note_id}")
    return asdict(NoteResponse.from_note(note))


@bp.route("/<bin_id>/notes/<note_id>", methods=["DELETE"])
async def delete_note(bin_id: str, note_id: str):
    manager = get_manager()
    if not await manager.delete_note(bin_id, note_id):
        abort(404, description=f"Unknown note: {note_id}")
    return {"success": True}
