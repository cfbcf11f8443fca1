from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ..common.identity import current_user
from ..models import ItemKind
from ..services.items import parse_optional_id
from ..services.mutations import copy_item, create_folder, move_item, rename_item, soft_delete


folders_bp = Blueprint("folders", __name__, url_prefix="/folders")


@folders_bp.post("")
@jwt_required()
def create():
    user = current_user()
    payload = request.get_json(silent=True) or {}
    parent_id = parse_optional_id(payload.get("parent_id"), "parent_id")
    folder = create_folder(user.id, payload.get("name") or "", parent_id)
    return jsonify({"folder": folder.to_dict()}), 201


@folders_bp.patch("/<int:folder_id>")
@jwt_required()
def rename(folder_id: int):
    user = current_user()
    payload = request.get_json(silent=True) or {}
    folder = rename_item(user.id, ItemKind.FOLDER, folder_id, payload.get("name") or "")
    return jsonify({"folder": folder.to_dict()})


@folders_bp.delete("/<int:folder_id>")
@jwt_required()
def delete(folder_id: int):
    user = current_user()
    folder = soft_delete(user.id, ItemKind.FOLDER, folder_id)
    return jsonify({"deleted": True, "folder": folder.to_dict()})


@folders_bp.post("/<int:folder_id>/copy")
@jwt_required()
def copy(folder_id: int):
    user = current_user()
    payload = request.get_json(silent=True) or {}
    target_id = parse_optional_id(payload.get("folder_id"), "folder_id")
    folder = copy_item(user.id, ItemKind.FOLDER, folder_id, target_id)
    return jsonify({"folder": folder.to_dict()}), 201


@folders_bp.post("/<int:folder_id>/move")
@jwt_required()
def move(folder_id: int):
    user = current_user()
    payload = request.get_json(silent=True) or {}
    target_id = parse_optional_id(payload.get("folder_id"), "folder_id")
    folder = move_item(user.id, ItemKind.FOLDER, folder_id, target_id)
    return jsonify({"folder": folder.to_dict()})
