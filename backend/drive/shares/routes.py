from __future__ import annotations

import io
from datetime import datetime, timedelta
from typing import Any

from flask import Blueprint, jsonify, request, send_file
from flask_jwt_extended import jwt_required

from ..common.errors import ValidationError
from ..common.identity import current_user
from ..models import Permission, utc_now
from ..services.capabilities import (
    issue_share,
    list_shares,
    parse_role,
    resolve_download,
    resolve_share,
    revoke_share,
)
from ..services.items import parse_optional_id
from ..services.mutations import edit_shared_file


shares_bp = Blueprint("shares", __name__, url_prefix="/shares")
public_shares_bp = Blueprint("public_shares", __name__, url_prefix="/share")


def _public_url_for_token(token: str) -> str:
    return f"{request.host_url.rstrip('/')}/share/{token}"


def _share_payload(permission: Permission) -> dict[str, Any]:
    payload = permission.to_dict()
    payload["share_url"] = _public_url_for_token(permission.share_token)
    return payload


def _parse_bool(value: Any, field_name: str, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ValidationError("INVALID_PARAMETER", f"{field_name} must be a boolean.")


def _parse_expiry(payload: dict[str, Any]) -> datetime | None:
    expires_at = payload.get("expires_at")
    if expires_at not in (None, ""):
        try:
            return datetime.fromisoformat(str(expires_at))
        except ValueError as error:
            raise ValidationError("INVALID_PARAMETER", "expires_at must be an ISO-8601 timestamp.") from error

    expires_in_days = payload.get("expires_in_days")
    if expires_in_days in (None, ""):
        return None
    try:
        days = int(expires_in_days)
    except (TypeError, ValueError) as error:
        raise ValidationError("INVALID_PARAMETER", "expires_in_days must be an integer.") from error
    if days <= 0:
        raise ValidationError("INVALID_PARAMETER", "expires_in_days must be positive.")
    return utc_now() + timedelta(days=days)


@shares_bp.post("")
@jwt_required()
def create_share():
    actor = current_user()
    payload = request.get_json(silent=True) or {}

    file_id = payload.get("file_id")
    if isinstance(file_id, bool) or not isinstance(file_id, int):
        raise ValidationError("INVALID_PARAMETER", "file_id must be an integer.")

    permission = issue_share(
        actor.id,
        file_id,
        role=parse_role(payload.get("role")),
        can_download=_parse_bool(payload.get("can_download"), "can_download", True),
        can_preview=_parse_bool(payload.get("can_preview"), "can_preview", True),
        expires_at=_parse_expiry(payload),
        max_access_count=payload.get("max_access_count"),
    )
    return jsonify({"share": _share_payload(permission), "token": permission.share_token}), 201


@shares_bp.get("")
@jwt_required()
def list_file_shares():
    actor = current_user()
    file_id = parse_optional_id(request.args.get("file_id"), "file_id")
    if file_id is None:
        raise ValidationError("INVALID_PARAMETER", "file_id is required.")
    return jsonify({"items": [_share_payload(permission) for permission in list_shares(actor.id, file_id)]})


@shares_bp.delete("/<int:share_id>")
@jwt_required()
def delete_share(share_id: int):
    actor = current_user()
    revoke_share(actor.id, share_id)
    return jsonify({"deleted": True})


@public_shares_bp.get("/<string:token>")
def resolve(token: str):
    share = resolve_share(token)
    return jsonify(share.to_dict())


@public_shares_bp.get("/<string:token>/download")
def download(token: str):
    share, data = resolve_download(token)
    file = share.file
    response = send_file(
        io.BytesIO(data),
        as_attachment=True,
        download_name=file.name,
        mimetype=file.content_type or "application/octet-stream",
    )
    response.headers["Cache-Control"] = "no-cache"
    return response


@public_shares_bp.patch("/<string:token>")
def edit(token: str):
    payload = request.get_json(silent=True) or {}
    file, version = edit_shared_file(token, payload.get("name") or "")
    return jsonify({"file": file.to_dict(), "version": version.to_dict()})
