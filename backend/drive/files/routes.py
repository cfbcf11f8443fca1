from __future__ import annotations

from pathlib import Path
from typing import Any

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ..common.errors import ValidationError
from ..common.identity import current_user
from ..models import File, ItemKind
from ..services.items import parse_optional_id
from ..services.mutations import (
    content_url,
    copy_item,
    file_versions,
    list_folder,
    move_item,
    rename_item,
    search_items,
    soft_delete,
    upload_file,
)


files_bp = Blueprint("files", __name__, url_prefix="/files")


def _file_payload(file: File) -> dict[str, Any]:
    payload = file.to_dict()
    payload["public_url"] = content_url(file)
    return payload


def _item_payload(item: Any) -> dict[str, Any]:
    return _file_payload(item) if isinstance(item, File) else item.to_dict()


@files_bp.post("/upload")
@jwt_required()
def upload():
    user = current_user()

    file_obj = request.files.get("file")
    if file_obj is None:
        raise ValidationError("INVALID_FILE", "Multipart field 'file' is required.")
    if not file_obj.filename:
        raise ValidationError("INVALID_FILE", "File name is required.")

    folder_id = parse_optional_id(request.form.get("folder_id"), "folder_id")
    data = file_obj.read()

    file, url = upload_file(
        owner_id=user.id,
        data=data,
        name=Path(file_obj.filename).name,
        size=len(data),
        content_type=file_obj.mimetype,
        folder_id=folder_id,
    )
    payload = file.to_dict()
    payload["public_url"] = url
    return jsonify({"file": payload, "public_url": url}), 201


@files_bp.get("/list")
@jwt_required()
def list_items():
    user = current_user()
    folder_id = parse_optional_id(request.args.get("folder_id"), "folder_id")
    folders, files = list_folder(user.id, folder_id)
    return jsonify(
        {
            "folders": [folder.to_dict() for folder in folders],
            "files": [_file_payload(file) for file in files],
        }
    )


@files_bp.get("/search")
@jwt_required()
def search():
    user = current_user()
    results = search_items(user.id, request.args.get("q") or "")
    return jsonify({"results": [_item_payload(item) for item in results]})


@files_bp.patch("/<int:file_id>")
@jwt_required()
def rename(file_id: int):
    user = current_user()
    payload = request.get_json(silent=True) or {}
    file = rename_item(user.id, ItemKind.FILE, file_id, payload.get("name") or "")
    return jsonify({"file": _file_payload(file)})


@files_bp.delete("/<int:file_id>")
@jwt_required()
def delete(file_id: int):
    user = current_user()
    file = soft_delete(user.id, ItemKind.FILE, file_id)
    return jsonify({"deleted": True, "file": file.to_dict()})


@files_bp.get("/<int:file_id>/versions")
@jwt_required()
def versions(file_id: int):
    user = current_user()
    return jsonify({"items": [version.to_dict() for version in file_versions(user.id, file_id)]})


@files_bp.post("/<int:file_id>/copy")
@jwt_required()
def copy(file_id: int):
    user = current_user()
    payload = request.get_json(silent=True) or {}
    folder_id = parse_optional_id(payload.get("folder_id"), "folder_id")
    file = copy_item(user.id, ItemKind.FILE, file_id, folder_id)
    return jsonify({"file": _item_payload(file)}), 201


@files_bp.post("/<int:file_id>/move")
@jwt_required()
def move(file_id: int):
    user = current_user()
    payload = request.get_json(silent=True) or {}
    folder_id = parse_optional_id(payload.get("folder_id"), "folder_id")
    file = move_item(user.id, ItemKind.FILE, file_id, folder_id)
    return jsonify({"file": _item_payload(file)})
