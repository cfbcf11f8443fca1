from __future__ import annotations

import io

import pytest

from drive.common.errors import NotFoundOrUnauthorized
from drive.extensions import db
from drive.models import ClipboardEntry, ClipboardOperation, File, ItemKind
from drive.services.clipboard import ClipboardStore, paste, set_clipboard


def _folder(client, headers, name: str, parent_id: int | None = None) -> int:
    response = client.post("/folders", json={"name": name, "parent_id": parent_id}, headers=headers)
    assert response.status_code == 201
    return response.get_json()["folder"]["id"]


def _upload(client, headers, name: str = "memo.txt", data: bytes = b"memo", folder_id: int | None = None) -> int:
    form = {"file": (io.BytesIO(data), name)}
    if folder_id is not None:
        form["folder_id"] = str(folder_id)
    response = client.post("/files/upload", data=form, headers=headers, content_type="multipart/form-data")
    assert response.status_code == 201
    return response.get_json()["file"]["id"]


def test_cut_paste_consumes_entry(client, app, alice_headers):
    folder_a = _folder(client, alice_headers, "A")
    folder_b = _folder(client, alice_headers, "B")
    file_id = _upload(client, alice_headers, folder_id=folder_a)

    held = client.post(f"/clipboard/cut/file/{file_id}", headers=alice_headers)
    assert held.status_code == 200
    assert held.get_json()["entry"]["operation"] == "cut"

    pasted = client.post("/clipboard/paste", json={"folder_id": folder_b}, headers=alice_headers)
    assert pasted.status_code == 200
    body = pasted.get_json()
    assert body["consumed"] is True
    assert body["item"]["id"] == file_id
    assert body["item"]["folder_id"] == folder_b

    again = client.post("/clipboard/paste", json={"folder_id": folder_b}, headers=alice_headers)
    assert again.status_code == 404
    assert again.get_json()["error"]["code"] == "CLIPBOARD_EMPTY"

    assert client.get("/clipboard", headers=alice_headers).get_json()["entry"] is None


def test_copy_paste_is_repeatable(client, app, alice_headers):
    folder_b = _folder(client, alice_headers, "B")
    file_id = _upload(client, alice_headers, name="memo.txt")

    client.post(f"/clipboard/copy/file/{file_id}", headers=alice_headers)

    first = client.post("/clipboard/paste", json={"folder_id": folder_b}, headers=alice_headers)
    second = client.post("/clipboard/paste", json={"folder_id": folder_b}, headers=alice_headers)
    assert first.status_code == 200
    assert second.status_code == 200

    first_item = first.get_json()["item"]
    second_item = second.get_json()["item"]
    assert first.get_json()["consumed"] is False
    assert first_item["id"] != second_item["id"]
    assert first_item["blob_path"] != second_item["blob_path"]
    assert first_item["name"] == second_item["name"] == "memo.txt (copy)"

    entry = client.get("/clipboard", headers=alice_headers).get_json()["entry"]
    assert entry["item_id"] == file_id
    assert entry["operation"] == "copy"

    with app.app_context():
        assert File.query.filter_by(folder_id=folder_b).count() == 2


def test_cut_folder_into_own_descendant_leaves_entry(client, app, alice_headers):
    parent = _folder(client, alice_headers, "parent")
    child = _folder(client, alice_headers, "child", parent_id=parent)

    client.post(f"/clipboard/cut/folder/{parent}", headers=alice_headers)
    response = client.post("/clipboard/paste", json={"folder_id": child}, headers=alice_headers)
    assert response.status_code == 409

    entry = client.get("/clipboard", headers=alice_headers).get_json()["entry"]
    assert entry == {
        "user_id": entry["user_id"],
        "item_id": parent,
        "item_kind": "folder",
        "operation": "cut",
        "created_at": entry["created_at"],
    }


def test_paste_into_foreign_folder_leaves_entry(client, alice_headers, bob_headers):
    file_id = _upload(client, alice_headers)
    foreign = _folder(client, bob_headers, "bob")

    client.post(f"/clipboard/cut/file/{file_id}", headers=alice_headers)
    response = client.post("/clipboard/paste", json={"folder_id": foreign}, headers=alice_headers)
    assert response.status_code == 404

    assert client.get("/clipboard", headers=alice_headers).get_json()["entry"]["item_id"] == file_id


def test_cannot_hold_someone_elses_item(client, alice_headers, bob_headers):
    file_id = _upload(client, alice_headers)

    response = client.post(f"/clipboard/copy/file/{file_id}", headers=bob_headers)
    assert response.status_code == 404
    assert client.get("/clipboard", headers=bob_headers).get_json()["entry"] is None


def test_invalid_operation_or_kind(client, alice_headers):
    file_id = _upload(client, alice_headers)

    assert client.post(f"/clipboard/move/file/{file_id}", headers=alice_headers).status_code == 400
    assert client.post(f"/clipboard/copy/blob/{file_id}", headers=alice_headers).status_code == 400


def test_last_write_wins(client, app, alice_headers, users):
    first = _upload(client, alice_headers, name="first.txt")
    second = _upload(client, alice_headers, name="second.txt")

    client.post(f"/clipboard/copy/file/{first}", headers=alice_headers)
    client.post(f"/clipboard/cut/file/{second}", headers=alice_headers)

    with app.app_context():
        entries = ClipboardEntry.query.filter_by(user_id=users["alice"]).all()
        assert len(entries) == 1
        assert entries[0].item_id == second
        assert entries[0].operation == ClipboardOperation.CUT


def test_clear_clipboard(client, alice_headers):
    file_id = _upload(client, alice_headers)
    client.post(f"/clipboard/copy/file/{file_id}", headers=alice_headers)

    assert client.delete("/clipboard", headers=alice_headers).get_json() == {"cleared": True}
    assert client.delete("/clipboard", headers=alice_headers).get_json() == {"cleared": False}


def test_paste_with_explicit_store(client, app, alice_headers, users):
    file_id = _upload(client, alice_headers)
    store = ClipboardStore()

    with app.app_context():
        with pytest.raises(NotFoundOrUnauthorized):
            paste(users["alice"], store=store)

        set_clipboard(users["alice"], "copy", ItemKind.FILE, file_id, store=store)
        result = paste(users["alice"], store=store)
        assert result.operation == ClipboardOperation.COPY
        assert result.item.name == "memo.txt (copy)"
        assert store.get(users["alice"]) is not None
        assert db.session.get(File, file_id).deleted_at is None
