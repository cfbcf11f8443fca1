from __future__ import annotations

import io

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from drive.common import metadata
from drive.common.errors import CollaboratorFailure
from drive.models import File, FileVersion, Permission, ShareRole
from drive.services import mutations, versions


def _upload(client, headers, name: str = "report.pdf", data: bytes = b"x" * 1024, folder_id: int | None = None):
    form = {"file": (io.BytesIO(data), name)}
    if folder_id is not None:
        form["folder_id"] = str(folder_id)
    return client.post("/files/upload", data=form, headers=headers, content_type="multipart/form-data")


def _stored_files(blob_root) -> list[str]:
    return sorted(str(path.relative_to(blob_root)) for path in blob_root.rglob("*") if path.is_file())


def test_upload_creates_file_owner_permission_and_first_version(client, app, alice_headers, users, blob_root):
    response = _upload(client, alice_headers)
    assert response.status_code == 201
    body = response.get_json()
    item = body["file"]
    assert item["name"] == "report.pdf"
    assert item["size"] == 1024
    assert item["folder_id"] is None
    assert item["blob_path"].startswith(f"{users['alice']}/")
    assert item["blob_path"].endswith("_report.pdf")
    assert "/blobs/" in body["public_url"]

    with app.app_context():
        permissions = Permission.query.filter_by(file_id=item["id"]).all()
        assert len(permissions) == 1
        assert permissions[0].role == ShareRole.OWNER
        assert permissions[0].user_id == users["alice"]
        assert permissions[0].access_count == 0

        versions = FileVersion.query.filter_by(file_id=item["id"]).all()
        assert [version.version_number for version in versions] == [1]
        assert versions[0].blob_path.startswith(f"versions/{users['alice']}/")

    assert len(_stored_files(blob_root)) == 2

    content = client.get(body["public_url"].replace("http://localhost", ""))
    assert content.status_code == 200
    assert content.data == b"x" * 1024


def test_owner_share_tokens_are_unique(client, app, alice_headers):
    for index in range(3):
        assert _upload(client, alice_headers, name=f"doc-{index}.txt", data=b"data").status_code == 201

    with app.app_context():
        tokens = [permission.share_token for permission in Permission.query.all()]
    assert len(tokens) == 3
    assert len(set(tokens)) == 3


def test_blob_failure_leaves_no_file_row(client, app, alice_headers, blob_root, monkeypatch):
    store = app.extensions["blob_store"]

    def failing_put(path, data, content_type=None):
        raise CollaboratorFailure("blob_store", "put")

    monkeypatch.setattr(store, "put", failing_put)

    response = _upload(client, alice_headers)
    assert response.status_code == 502
    error = response.get_json()["error"]
    assert error["code"] == "COLLABORATOR_FAILURE"
    assert "blob_store" not in error["message"]

    listing = client.get("/files/list", headers=alice_headers)
    assert listing.get_json()["files"] == []
    with app.app_context():
        assert File.query.count() == 0
    assert _stored_files(blob_root) == []


def test_permission_failure_removes_blobs_and_file_row(app, users, blob_root, monkeypatch):
    def failing_grant(file):
        raise CollaboratorFailure("metadata_store", "insert")

    monkeypatch.setattr(mutations, "grant_owner", failing_grant)

    with app.app_context():
        with pytest.raises(CollaboratorFailure):
            mutations.upload_file(users["alice"], b"payload", "notes.txt", 7, "text/plain")

        assert File.query.count() == 0
        assert Permission.query.count() == 0
        assert FileVersion.query.count() == 0

    assert _stored_files(blob_root) == []


def test_version_copy_failure_does_not_fail_upload(client, app, alice_headers, blob_root, monkeypatch):
    store = app.extensions["blob_store"]
    real_put = store.put

    def put_without_versions(path, data, content_type=None):
        if path.startswith("versions/"):
            raise CollaboratorFailure("blob_store", "put")
        return real_put(path, data, content_type)

    monkeypatch.setattr(store, "put", put_without_versions)

    response = _upload(client, alice_headers, name="draft.txt", data=b"draft")
    assert response.status_code == 201
    file_id = response.get_json()["file"]["id"]

    with app.app_context():
        assert FileVersion.query.filter_by(file_id=file_id).count() == 0
        assert Permission.query.filter_by(file_id=file_id, role=ShareRole.OWNER).count() == 1
    assert len(_stored_files(blob_root)) == 1


def test_version_row_failure_does_not_fail_upload(app, users, monkeypatch):
    def failing_append(*args, **kwargs):
        raise CollaboratorFailure("metadata_store", "insert")

    monkeypatch.setattr(mutations, "append_version", failing_append)

    with app.app_context():
        file, url = mutations.upload_file(users["alice"], b"abc", "abc.txt", 3, "text/plain")
        assert file.id is not None
        assert url
        assert FileVersion.query.count() == 0


def test_version_number_read_failure_does_not_fail_upload(client, app, alice_headers, monkeypatch):
    def failing_read(file_id):
        raise OperationalError("SELECT max(version_number)", {}, Exception("database is locked"))

    monkeypatch.setattr(versions, "latest_version_number", failing_read)

    response = _upload(client, alice_headers, name="abc.txt", data=b"abc")
    assert response.status_code == 201
    file_id = response.get_json()["file"]["id"]

    with app.app_context():
        assert File.query.count() == 1
        assert Permission.query.filter_by(file_id=file_id, role=ShareRole.OWNER).count() == 1
        assert FileVersion.query.count() == 0


def test_metadata_read_failure_is_a_collaborator_failure(app):
    with app.app_context():
        with pytest.raises(CollaboratorFailure):
            metadata.scalar(text("SELECT max(id) FROM missing_table"))


def test_upload_into_foreign_folder_is_not_found(client, alice_headers, bob_headers):
    folder = client.post("/folders", json={"name": "private"}, headers=bob_headers)
    assert folder.status_code == 201
    folder_id = folder.get_json()["folder"]["id"]

    response = _upload(client, alice_headers, folder_id=folder_id)
    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == "FOLDER_NOT_FOUND"


def test_upload_into_own_folder(client, alice_headers):
    folder = client.post("/folders", json={"name": "docs"}, headers=alice_headers)
    folder_id = folder.get_json()["folder"]["id"]

    response = _upload(client, alice_headers, name="note.txt", data=b"hello cloud", folder_id=folder_id)
    assert response.status_code == 201
    assert response.get_json()["file"]["folder_id"] == folder_id

    listing = client.get(f"/files/list?folder_id={folder_id}", headers=alice_headers)
    names = [item["name"] for item in listing.get_json()["files"]]
    assert names == ["note.txt"]


def test_upload_rejects_empty_and_oversized_files(client, app, alice_headers):
    empty = _upload(client, alice_headers, name="empty.txt", data=b"")
    assert empty.status_code == 400

    app.config["MAX_UPLOAD_SIZE_BYTES"] = 4
    too_large = _upload(client, alice_headers, name="large.txt", data=b"12345")
    assert too_large.status_code == 400
    assert too_large.get_json()["error"]["code"] == "UPLOAD_TOO_LARGE"


def test_upload_filename_traversal_is_sanitized(client, alice_headers):
    response = _upload(client, alice_headers, name="../../escape.txt", data=b"hello")
    assert response.status_code == 201
    item = response.get_json()["file"]
    assert item["name"] == "escape.txt"
    assert ".." not in item["blob_path"]


def test_upload_requires_authentication(client):
    response = _upload(client, {})
    assert response.status_code == 401
    assert response.get_json()["error"]["code"] == "UNAUTHENTICATED"
