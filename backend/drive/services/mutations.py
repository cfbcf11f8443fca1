from __future__ import annotations

import re
from functools import partial

from flask import current_app

from ..common import metadata
from ..common.activity import record_activity
from ..common.errors import ConflictError, NotFoundOrUnauthorized, ValidationError
from ..common.storage import blob_store, blob_timestamp, build_blob_path, validate_node_name
from ..models import File, FileVersion, Folder, ItemKind, ShareRole, utc_now
from .capabilities import grant_owner, require_owner, require_role
from .items import get_owned_folder, get_owned_item, is_descendant_or_self, resolve_target_folder
from .saga import Saga
from .versions import append_version, list_versions


COPY_SUFFIX = " (copy)"
SEARCH_CLEAN_PATTERN = re.compile(r"[^A-Za-z0-9\s]")
SEARCH_LIMIT = 200


def _delete_blobs(paths: list[str], _result: object = None) -> None:
    blob_store().delete(paths)


def _copy_name(name: str) -> str:
    return f"{name}{COPY_SUFFIX}"


def upload_file(
    owner_id: int,
    data: bytes,
    name: str,
    size: int,
    content_type: str | None,
    folder_id: int | None = None,
) -> tuple[File, str]:
    """Store a new file and return it with a content URL.

    On success the File row, its blob and its owner Permission all exist. On
    failure every completed step is compensated and the error is re-raised.
    The version-1 artifact and its FileVersion row are best-effort.
    """
    file_name = validate_node_name(name)
    if size <= 0 or len(data) == 0:
        raise ValidationError("INVALID_FILE", "File is empty.")
    if size != len(data):
        raise ValidationError("INVALID_FILE", "Declared size does not match the uploaded content.")
    if size > int(current_app.config["MAX_UPLOAD_SIZE_BYTES"]):
        raise ValidationError("UPLOAD_TOO_LARGE", "File exceeds max upload size.")
    folder = resolve_target_folder(owner_id, folder_id)

    content_type = content_type or "application/octet-stream"
    stamp = blob_timestamp()
    live_path = build_blob_path(owner_id, file_name, stamp)
    version_path = build_blob_path(owner_id, file_name, stamp, versioned=True)
    store = blob_store()
    saga = Saga("upload")

    file = saga.step(
        "insert_file",
        lambda: metadata.insert(
            File(
                name=file_name,
                size=size,
                content_type=content_type,
                blob_path=live_path,
                owner_id=owner_id,
                folder_id=folder.id if folder else None,
            )
        ),
        compensation=metadata.delete,
    )
    saga.step(
        "put_blob",
        lambda: store.put(live_path, data, content_type),
        compensation=partial(_delete_blobs, [live_path]),
    )
    versioned = saga.best_effort(
        "put_version_blob",
        lambda: store.put(version_path, data, content_type),
        compensation=partial(_delete_blobs, [version_path]),
    )
    saga.step("grant_owner", lambda: grant_owner(file))
    if versioned is not None:
        saga.best_effort(
            "append_version",
            lambda: append_version(file, version_path, size, content_type, created_by=owner_id),
        )

    record_activity(
        "upload",
        actor_id=owner_id,
        file_id=file.id,
        details={"name": file_name, "size": size, "folder_id": file.folder_id},
    )
    return file, store.url_for(file.blob_path)


def _copy_file(actor_id: int, source: File, folder: Folder | None) -> File:
    store = blob_store()
    copy_name = _copy_name(source.name)
    new_path = build_blob_path(actor_id, copy_name, blob_timestamp())
    saga = Saga("copy_file")

    data = saga.step("get_source", lambda: store.get(source.blob_path))
    saga.step(
        "put_blob",
        lambda: store.put(new_path, data, source.content_type),
        compensation=partial(_delete_blobs, [new_path]),
    )
    clone = saga.step(
        "insert_file",
        lambda: metadata.insert(
            File(
                name=copy_name,
                size=len(data),
                content_type=source.content_type,
                blob_path=new_path,
                owner_id=actor_id,
                folder_id=folder.id if folder else None,
            )
        ),
        compensation=metadata.delete,
    )
    saga.step("grant_owner", lambda: grant_owner(clone))
    return clone


def copy_item(actor_id: int, kind: ItemKind, item_id: int, folder_id: int | None = None) -> File | Folder:
    """Duplicate a file (with its own blob) or shallow-copy a folder.

    A folder copy creates only the folder row; its children are not duplicated.
    """
    item = get_owned_item(actor_id, kind, item_id)
    folder = resolve_target_folder(actor_id, folder_id)

    if isinstance(item, File):
        copied: File | Folder = _copy_file(actor_id, item, folder)
        file_id = copied.id
    else:
        copied = metadata.insert(
            Folder(name=_copy_name(item.name), owner_id=actor_id, parent_id=folder.id if folder else None)
        )
        file_id = None

    record_activity(
        "copy",
        actor_id=actor_id,
        file_id=file_id,
        details={"item_kind": kind.value, "source_id": item.id, "copy_id": copied.id, "folder_id": folder_id},
    )
    return copied


def move_item(actor_id: int, kind: ItemKind, item_id: int, folder_id: int | None = None) -> File | Folder:
    item = get_owned_item(actor_id, kind, item_id)
    target = resolve_target_folder(actor_id, folder_id)
    target_id = target.id if target else None

    if isinstance(item, Folder):
        if target is not None and is_descendant_or_self(target, item):
            raise ConflictError("INVALID_MOVE", "Cannot move a folder into itself or one of its descendants.")
        metadata.update(item, parent_id=target_id)
        file_id = None
    else:
        metadata.update(item, folder_id=target_id)
        file_id = item.id

    record_activity(
        "move",
        actor_id=actor_id,
        file_id=file_id,
        details={"item_kind": kind.value, "item_id": item.id, "folder_id": target_id},
    )
    return item


def edit_shared_file(share_token: str, new_name: str) -> tuple[File, FileVersion]:
    """Rename a file through an ``edit`` share link, recording a new version.

    The current content is re-stored under a fresh version path so the version
    row points at its own blob. A failed version insert removes that blob; a
    failed rename also removes the version row.
    """
    name = validate_node_name(new_name)
    share = require_role(share_token, ShareRole.EDIT)
    file = share.file
    store = blob_store()
    version_path = build_blob_path(file.owner_id, name, blob_timestamp(), versioned=True)
    saga = Saga("versioned_edit")

    data = saga.step("get_current", lambda: store.get(file.blob_path))
    saga.step(
        "put_version_blob",
        lambda: store.put(version_path, data, file.content_type),
        compensation=partial(_delete_blobs, [version_path]),
    )
    version = saga.step(
        "append_version",
        lambda: append_version(file, version_path, len(data), file.content_type, created_by=None),
        compensation=metadata.delete,
    )
    previous_name = file.name
    saga.step("rename_file", lambda: metadata.update(file, name=name))

    record_activity(
        "share.edit",
        file_id=file.id,
        details={
            "permission_id": share.permission.id,
            "from": previous_name,
            "to": name,
            "version_number": version.version_number,
        },
    )
    return file, version


def _has_live_children(folder: Folder) -> bool:
    files = File.query.filter(File.folder_id == folder.id, File.deleted_at.is_(None)).count()
    if files:
        return True
    folders = Folder.query.filter(Folder.parent_id == folder.id, Folder.deleted_at.is_(None)).count()
    return folders > 0


def soft_delete(actor_id: int, kind: ItemKind, item_id: int) -> File | Folder:
    """Mark an item deleted. Blob bytes stay in the blob store."""
    if kind == ItemKind.FILE:
        item: File | Folder = require_owner(actor_id, item_id)
    else:
        item = get_owned_folder(actor_id, item_id)
        if _has_live_children(item):
            raise ConflictError("FOLDER_NOT_EMPTY", "Folder still contains files or folders.")

    metadata.update(item, deleted_at=utc_now())
    record_activity(
        "delete",
        actor_id=actor_id,
        file_id=item.id if kind == ItemKind.FILE else None,
        details={"item_kind": kind.value, "item_id": item.id},
    )
    return item


def create_folder(owner_id: int, name: str, parent_id: int | None = None) -> Folder:
    folder_name = validate_node_name(name)
    parent = resolve_target_folder(owner_id, parent_id)
    folder = metadata.insert(Folder(name=folder_name, owner_id=owner_id, parent_id=parent.id if parent else None))
    record_activity("folder.create", actor_id=owner_id, details={"folder_id": folder.id, "parent_id": parent_id})
    return folder


def rename_item(actor_id: int, kind: ItemKind, item_id: int, name: str) -> File | Folder:
    new_name = validate_node_name(name)
    item = get_owned_item(actor_id, kind, item_id)
    metadata.update(item, name=new_name)
    record_activity(
        "rename",
        actor_id=actor_id,
        file_id=item.id if kind == ItemKind.FILE else None,
        details={"item_kind": kind.value, "item_id": item.id, "name": new_name},
    )
    return item


def list_folder(owner_id: int, folder_id: int | None = None) -> tuple[list[Folder], list[File]]:
    folder = resolve_target_folder(owner_id, folder_id)
    parent_id = folder.id if folder else None

    folders = (
        Folder.query.filter_by(owner_id=owner_id, parent_id=parent_id)
        .filter(Folder.deleted_at.is_(None))
        .order_by(Folder.name.asc())
        .all()
    )
    files = (
        File.query.filter_by(owner_id=owner_id, folder_id=parent_id)
        .filter(File.deleted_at.is_(None))
        .order_by(File.name.asc())
        .all()
    )
    return folders, files


def search_items(owner_id: int, query: str) -> list[File | Folder]:
    cleaned = SEARCH_CLEAN_PATTERN.sub("", query or "").strip()
    if not cleaned:
        raise ValidationError("INVALID_QUERY", "Search query is required.")

    pattern = f"%{cleaned}%"
    files = (
        File.query.filter(File.owner_id == owner_id, File.deleted_at.is_(None), File.name.ilike(pattern))
        .limit(SEARCH_LIMIT)
        .all()
    )
    folders = (
        Folder.query.filter(Folder.owner_id == owner_id, Folder.deleted_at.is_(None), Folder.name.ilike(pattern))
        .limit(SEARCH_LIMIT)
        .all()
    )
    results: list[File | Folder] = [*files, *folders]
    results.sort(key=lambda item: (item.name.lower(), item.id))
    return results


def file_versions(actor_id: int, file_id: int) -> list[FileVersion]:
    file = require_owner(actor_id, file_id)
    return list_versions(file.id)


def content_url(file: File) -> str:
    if file.is_deleted:
        raise NotFoundOrUnauthorized("FILE_NOT_FOUND", "File not found or unauthorized.")
    return blob_store().url_for(file.blob_path)
