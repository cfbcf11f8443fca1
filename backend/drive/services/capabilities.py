from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from flask import current_app
from sqlalchemy import update

from ..common import metadata
from ..common.activity import record_activity
from ..common.errors import CapabilityError, ConflictError, NotFoundOrUnauthorized, ValidationError
from ..common.storage import blob_store
from ..extensions import db
from ..models import File, Permission, ShareRole, as_utc, utc_now
from .items import get_live_file


MIN_TOKEN_BYTES = 16
ISSUABLE_ROLES = (ShareRole.VIEW, ShareRole.EDIT)


@dataclass(frozen=True)
class ResolvedShare:
    file: File
    permission: Permission

    def capabilities(self) -> dict[str, Any]:
        return self.permission.capabilities()

    def to_dict(self) -> dict[str, Any]:
        item = self.file.to_dict()
        item["public_url"] = blob_store().url_for(self.file.blob_path) if self.permission.can_preview else None
        return {"file": item, "permissions": self.capabilities()}


def new_share_token() -> str:
    size = max(MIN_TOKEN_BYTES, int(current_app.config.get("SHARE_TOKEN_BYTES", 24)))
    return secrets.token_urlsafe(size)


def parse_role(value: str | None) -> ShareRole:
    normalized = (value or "").strip().lower()
    for role in ISSUABLE_ROLES:
        if role.value == normalized:
            return role
    raise ValidationError("INVALID_ROLE", "Role must be 'view' or 'edit'.")


def _validate_limits(expires_at: datetime | None, max_access_count: int | None) -> datetime | None:
    if max_access_count is not None:
        if isinstance(max_access_count, bool) or not isinstance(max_access_count, int) or max_access_count < 1:
            raise ValidationError("INVALID_PARAMETER", "max_access_count must be a positive integer.")

    expires_at = as_utc(expires_at)
    if expires_at is not None:
        now = utc_now()
        if expires_at <= now:
            raise ValidationError("INVALID_PARAMETER", "expires_at must be in the future.")
        max_days = int(current_app.config.get("SHARE_MAX_EXPIRY_DAYS", 3650))
        if expires_at > now + timedelta(days=max_days):
            raise ValidationError("INVALID_PARAMETER", f"expires_at must be within {max_days} days.")
    return expires_at


def owner_permission(file_id: int) -> Permission | None:
    return Permission.query.filter_by(file_id=file_id, role=ShareRole.OWNER).one_or_none()


def holds_owner(user_id: int, file_id: int) -> bool:
    permission = owner_permission(file_id)
    return permission is not None and permission.user_id == user_id


def require_owner(user_id: int, file_id: int) -> File:
    file = get_live_file(file_id)
    if not holds_owner(user_id, file.id):
        raise NotFoundOrUnauthorized("FILE_NOT_FOUND", "File not found or unauthorized.")
    return file


def grant_owner(file: File) -> Permission:
    """Insert the single owner capability of a freshly created file."""
    permission = Permission(
        file_id=file.id,
        user_id=file.owner_id,
        role=ShareRole.OWNER,
        share_token=new_share_token(),
        can_download=True,
        can_preview=True,
        access_count=0,
    )
    return metadata.insert(permission)


def issue_share(
    actor_id: int,
    file_id: int,
    role: ShareRole | str,
    can_download: bool = True,
    can_preview: bool = True,
    expires_at: datetime | None = None,
    max_access_count: int | None = None,
) -> Permission:
    file = require_owner(actor_id, file_id)
    role = parse_role(role.value if isinstance(role, ShareRole) else role)
    expires_at = _validate_limits(expires_at, max_access_count)

    permission = metadata.insert(
        Permission(
            file_id=file.id,
            user_id=None,
            role=role,
            share_token=new_share_token(),
            can_download=bool(can_download),
            can_preview=bool(can_preview),
            expires_at=expires_at,
            max_access_count=max_access_count,
            access_count=0,
        )
    )
    record_activity(
        "share.issue",
        actor_id=actor_id,
        file_id=file.id,
        details={"permission_id": permission.id, "role": role.value, "max_access_count": max_access_count},
    )
    return permission


def list_shares(actor_id: int, file_id: int) -> list[Permission]:
    file = require_owner(actor_id, file_id)
    return (
        Permission.query.filter(Permission.file_id == file.id, Permission.role != ShareRole.OWNER)
        .order_by(Permission.created_at.desc(), Permission.id.desc())
        .all()
    )


def revoke_share(actor_id: int, permission_id: int) -> None:
    permission = db.session.get(Permission, permission_id)
    if permission is None or not holds_owner(actor_id, permission.file_id):
        raise NotFoundOrUnauthorized("SHARE_NOT_FOUND", "Share not found or unauthorized.")
    if permission.role == ShareRole.OWNER:
        raise ConflictError("OWNER_SHARE", "The owner capability cannot be revoked.")

    file_id = permission.file_id
    metadata.delete(permission)
    record_activity("share.revoke", actor_id=actor_id, file_id=file_id, details={"permission_id": permission_id})


def _consume(permission: Permission) -> None:
    statement = (
        update(Permission)
        .where(Permission.id == permission.id)
        .values(access_count=Permission.access_count + 1)
        .execution_options(synchronize_session=False)
    )
    if permission.max_access_count is not None:
        statement = statement.where(Permission.access_count < Permission.max_access_count)
    if metadata.execute(statement) == 0:
        raise CapabilityError("SHARE_EXHAUSTED", "Share link access limit reached.")
    db.session.refresh(permission)


def resolve_share(
    token: str,
    *,
    require_download: bool = False,
    required_role: ShareRole | None = None,
    consume: bool = True,
) -> ResolvedShare:
    """Validate a share token and count one access against it.

    The access that reaches ``max_access_count`` is still served; the next one
    is refused. The increment is a conditional update, so concurrent resolutions
    cannot push ``access_count`` past the ceiling.
    """
    cleaned = (token or "").strip()
    permission = Permission.query.filter_by(share_token=cleaned).one_or_none() if cleaned else None
    if permission is None:
        raise NotFoundOrUnauthorized("SHARE_NOT_FOUND", "Invalid or expired share link.")
    if permission.is_expired():
        raise CapabilityError("SHARE_EXPIRED", "Share link has expired.")
    if permission.is_exhausted:
        raise CapabilityError("SHARE_EXHAUSTED", "Share link access limit reached.")
    if require_download and not permission.can_download:
        raise CapabilityError("DOWNLOAD_NOT_ALLOWED", "Download not allowed for this share link.")
    if required_role is not None and permission.role != required_role:
        raise CapabilityError("ROLE_MISMATCH", f"Share link does not grant {required_role.value} access.")

    file = get_live_file(permission.file_id)
    if consume:
        _consume(permission)
    return ResolvedShare(file=file, permission=permission)


def resolve_download(token: str) -> tuple[ResolvedShare, bytes]:
    """Validate a download link and return its content.

    The access is counted only once the content has been read, so a storage
    failure leaves the link as it was.
    """
    share = resolve_share(token, require_download=True, consume=False)
    data = blob_store().get(share.file.blob_path)
    _consume(share.permission)
    return share, data


def require_role(token: str, role: ShareRole) -> ResolvedShare:
    return resolve_share(token, required_role=role)
