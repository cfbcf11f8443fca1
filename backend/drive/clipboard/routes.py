from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ..common.identity import current_user
from ..services.clipboard import clear_clipboard, paste, peek_clipboard, set_clipboard
from ..services.items import parse_optional_id


clipboard_bp = Blueprint("clipboard", __name__, url_prefix="/clipboard")


@clipboard_bp.get("")
@jwt_required()
def show():
    user = current_user()
    entry = peek_clipboard(user.id)
    return jsonify({"entry": entry.to_dict() if entry else None})


@clipboard_bp.delete("")
@jwt_required()
def clear():
    user = current_user()
    return jsonify({"cleared": clear_clipboard(user.id)})


@clipboard_bp.post("/paste")
@jwt_required()
def paste_entry():
    user = current_user()
    payload = request.get_json(silent=True) or {}
    folder_id = parse_optional_id(payload.get("folder_id"), "folder_id")
    result = paste(user.id, folder_id)
    return jsonify(result.to_dict())


@clipboard_bp.post("/<string:operation>/<string:item_kind>/<int:item_id>")
@jwt_required()
def hold(operation: str, item_kind: str, item_id: int):
    user = current_user()
    entry = set_clipboard(user.id, operation, item_kind, item_id)
    return jsonify({"entry": entry.to_dict()})
