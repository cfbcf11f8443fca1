from __future__ import annotations

from dataclasses import dataclass

from ..common import metadata
from ..common.activity import record_activity
from ..common.errors import NotFoundOrUnauthorized, ValidationError
from ..models import ClipboardEntry, ClipboardOperation, File, Folder, ItemKind
from .items import get_owned_item, parse_item_kind, resolve_target_folder
from .mutations import copy_item, move_item


def parse_operation(value: str | ClipboardOperation | None) -> ClipboardOperation:
    if isinstance(value, ClipboardOperation):
        return value
    normalized = (value or "").strip().lower()
    try:
        return ClipboardOperation(normalized)
    except ValueError as error:
        raise ValidationError("INVALID_OPERATION", "Operation must be 'copy' or 'cut'.") from error


class ClipboardStore:
    """Single slot per user, keyed by user id. The last write wins."""

    def get(self, user_id: int) -> ClipboardEntry | None:
        return ClipboardEntry.query.filter_by(user_id=user_id).one_or_none()

    def put(self, user_id: int, operation: ClipboardOperation, kind: ItemKind, item_id: int) -> ClipboardEntry:
        entry = self.get(user_id)
        if entry is None:
            return metadata.insert(
                ClipboardEntry(user_id=user_id, item_id=item_id, item_kind=kind, operation=operation)
            )
        return metadata.update(entry, item_id=item_id, item_kind=kind, operation=operation)

    def discard(self, user_id: int) -> bool:
        entry = self.get(user_id)
        if entry is None:
            return False
        metadata.delete(entry)
        return True


clipboard_store = ClipboardStore()


@dataclass(frozen=True)
class PasteResult:
    operation: ClipboardOperation
    item_kind: ItemKind
    item: File | Folder
    consumed: bool

    def to_dict(self) -> dict:
        return {
            "operation": self.operation.value,
            "item_kind": self.item_kind.value,
            "item": self.item.to_dict(),
            "consumed": self.consumed,
        }


def set_clipboard(
    user_id: int,
    operation: ClipboardOperation | str,
    kind: ItemKind | str,
    item_id: int,
    store: ClipboardStore = clipboard_store,
) -> ClipboardEntry:
    operation = parse_operation(operation)
    kind = parse_item_kind(kind)
    item = get_owned_item(user_id, kind, item_id)
    entry = store.put(user_id, operation, kind, item.id)
    record_activity(
        f"clipboard.{operation.value}",
        actor_id=user_id,
        file_id=item.id if kind == ItemKind.FILE else None,
        details={"item_kind": kind.value, "item_id": item.id},
    )
    return entry


def peek_clipboard(user_id: int, store: ClipboardStore = clipboard_store) -> ClipboardEntry | None:
    return store.get(user_id)


def clear_clipboard(user_id: int, store: ClipboardStore = clipboard_store) -> bool:
    return store.discard(user_id)


def paste(user_id: int, folder_id: int | None = None, store: ClipboardStore = clipboard_store) -> PasteResult:
    """Apply the held copy or cut to ``folder_id`` (``None`` is the root).

    A successful cut consumes the entry; a copy stays available for another
    paste. Any failure leaves the entry as it was.
    """
    entry = store.get(user_id)
    if entry is None:
        raise NotFoundOrUnauthorized("CLIPBOARD_EMPTY", "Clipboard empty.")
    resolve_target_folder(user_id, folder_id)

    operation = entry.operation
    kind = entry.item_kind
    if operation == ClipboardOperation.CUT:
        item = move_item(user_id, kind, entry.item_id, folder_id)
        store.discard(user_id)
        consumed = True
    else:
        item = copy_item(user_id, kind, entry.item_id, folder_id)
        consumed = False

    return PasteResult(operation=operation, item_kind=kind, item=item, consumed=consumed)
