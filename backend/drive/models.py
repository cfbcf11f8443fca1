from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any

from .extensions import db


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # sqlite hands back naive datetimes for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class ItemKind(str, enum.Enum):
    FILE = "file"
    FOLDER = "folder"


class ClipboardOperation(str, enum.Enum):
    COPY = "copy"
    CUT = "cut"


class ShareRole(str, enum.Enum):
    OWNER = "owner"
    VIEW = "view"
    EDIT = "edit"


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(120), unique=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "username": self.username, "created_at": self.created_at.isoformat()}


class Folder(db.Model):
    __tablename__ = "folders"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("folders.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    parent = db.relationship("Folder", remote_side=[id])

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": ItemKind.FOLDER.value,
            "name": self.name,
            "owner_id": self.owner_id,
            "parent_id": self.parent_id,
            "created_at": self.created_at.isoformat(),
            "deleted_at": _isoformat(self.deleted_at),
        }


class File(db.Model):
    __tablename__ = "files"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    size = db.Column(db.BigInteger, nullable=False, default=0)
    content_type = db.Column(db.String(255), nullable=False, default="application/octet-stream")
    blob_path = db.Column(db.String(512), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    folder_id = db.Column(db.Integer, db.ForeignKey("folders.id", ondelete="SET NULL"), nullable=True, index=True)
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    folder = db.relationship("Folder")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": ItemKind.FILE.value,
            "name": self.name,
            "size": self.size,
            "content_type": self.content_type,
            "blob_path": self.blob_path,
            "owner_id": self.owner_id,
            "folder_id": self.folder_id,
            "is_public": self.is_public,
            "created_at": self.created_at.isoformat(),
            "deleted_at": _isoformat(self.deleted_at),
        }


class FileVersion(db.Model):
    __tablename__ = "file_versions"

    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(db.Integer, db.ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)
    version_number = db.Column(db.Integer, nullable=False)
    blob_path = db.Column(db.String(512), nullable=False)
    size = db.Column(db.BigInteger, nullable=False, default=0)
    content_type = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (db.UniqueConstraint("file_id", "version_number", name="uq_file_version_number"),)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "file_id": self.file_id,
            "version_number": self.version_number,
            "blob_path": self.blob_path,
            "size": self.size,
            "content_type": self.content_type,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
        }


class Permission(db.Model):
    __tablename__ = "permissions"

    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(db.Integer, db.ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    role = db.Column(db.Enum(ShareRole), nullable=False, default=ShareRole.VIEW)
    share_token = db.Column(db.String(128), unique=True, nullable=False)
    can_download = db.Column(db.Boolean, nullable=False, default=True)
    can_preview = db.Column(db.Boolean, nullable=False, default=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    max_access_count = db.Column(db.Integer, nullable=True)
    access_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    file = db.relationship("File")

    def is_expired(self, now: datetime | None = None) -> bool:
        expires_at = as_utc(self.expires_at)
        return expires_at is not None and expires_at <= (now or utc_now())

    @property
    def is_exhausted(self) -> bool:
        return self.max_access_count is not None and self.access_count >= self.max_access_count

    def capabilities(self) -> dict[str, Any]:
        return {
            "role": self.role.value,
            "can_download": self.can_download,
            "can_preview": self.can_preview,
            "expires_at": _isoformat(self.expires_at),
            "access_count": self.access_count,
            "max_access_count": self.max_access_count,
        }

    def to_dict(self) -> dict[str, Any]:
        payload = self.capabilities()
        payload.update(
            {
                "id": self.id,
                "file_id": self.file_id,
                "user_id": self.user_id,
                "share_token": self.share_token,
                "created_at": self.created_at.isoformat(),
            }
        )
        return payload


class ClipboardEntry(db.Model):
    __tablename__ = "clipboard_entries"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    item_id = db.Column(db.Integer, nullable=False)
    item_kind = db.Column(db.Enum(ItemKind), nullable=False)
    operation = db.Column(db.Enum(ClipboardOperation), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "item_id": self.item_id,
            "item_kind": self.item_kind.value,
            "operation": self.operation.value,
            "created_at": self.created_at.isoformat(),
        }


class ActivityLog(db.Model):
    __tablename__ = "activity_logs"

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    file_id = db.Column(db.Integer, db.ForeignKey("files.id", ondelete="SET NULL"), nullable=True, index=True)
    action = db.Column(db.String(128), nullable=False, index=True)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "file_id": self.file_id,
            "action": self.action,
            "details": self.details,
            "created_at": self.created_at.isoformat(),
        }
