from __future__ import annotations

from ..common.errors import NotFoundOrUnauthorized, ValidationError
from ..extensions import db
from ..models import File, Folder, ItemKind


def parse_item_kind(value: str | ItemKind | None) -> ItemKind:
    if isinstance(value, ItemKind):
        return value
    normalized = (value or "").strip().lower()
    try:
        return ItemKind(normalized)
    except ValueError as error:
        raise ValidationError("INVALID_ITEM_KIND", "Item kind must be 'file' or 'folder'.") from error


def parse_optional_id(value: str | int | None, field_name: str) -> int | None:
    if value in (None, "", "null"):
        return None
    if isinstance(value, bool):
        raise ValidationError("INVALID_PARAMETER", f"{field_name} must be an integer or null.")
    try:
        return int(value)
    except (TypeError, ValueError) as error:
        raise ValidationError("INVALID_PARAMETER", f"{field_name} must be an integer or null.") from error


def get_live_file(file_id: int) -> File:
    file = db.session.get(File, file_id)
    if file is None or file.is_deleted:
        raise NotFoundOrUnauthorized("FILE_NOT_FOUND", "File not found or unauthorized.")
    return file


def get_owned_file(owner_id: int, file_id: int) -> File:
    file = get_live_file(file_id)
    if file.owner_id != owner_id:
        raise NotFoundOrUnauthorized("FILE_NOT_FOUND", "File not found or unauthorized.")
    return file


def get_owned_folder(owner_id: int, folder_id: int) -> Folder:
    folder = db.session.get(Folder, folder_id)
    if folder is None or folder.is_deleted or folder.owner_id != owner_id:
        raise NotFoundOrUnauthorized("FOLDER_NOT_FOUND", "Folder not found or unauthorized.")
    return folder


def get_owned_item(owner_id: int, kind: ItemKind, item_id: int) -> File | Folder:
    if kind == ItemKind.FILE:
        return get_owned_file(owner_id, item_id)
    return get_owned_folder(owner_id, item_id)


def resolve_target_folder(owner_id: int, folder_id: int | None) -> Folder | None:
    """``None`` targets the owner's root."""
    if folder_id is None:
        return None
    return get_owned_folder(owner_id, folder_id)


def is_descendant_or_self(folder: Folder, ancestor: Folder) -> bool:
    seen: set[int] = set()
    cursor: Folder | None = folder
    while cursor is not None and cursor.id not in seen:
        if cursor.id == ancestor.id:
            return True
        seen.add(cursor.id)
        cursor = cursor.parent
    return False
