from __future__ import annotations

import os
import re
import time
from pathlib import Path

from flask import Flask, current_app, has_request_context, request
from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from .errors import CapabilityError, CollaboratorFailure, NotFoundOrUnauthorized, ValidationError


INVALID_NAME_PATTERN = re.compile(r"[\\/\x00]")
UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
VERSIONS_PREFIX = "versions"
BLOB_URL_SALT = "drive-blob-url-v1"


def validate_node_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("INVALID_NAME", "Name cannot be empty.")
    if len(cleaned) > 255:
        raise ValidationError("INVALID_NAME", "Name must be <= 255 characters.")
    if INVALID_NAME_PATTERN.search(cleaned):
        raise ValidationError("INVALID_NAME", "Name contains invalid characters.")
    if cleaned in {".", ".."}:
        raise ValidationError("INVALID_NAME", "Reserved name.")
    return cleaned


def sanitize_blob_name(name: str) -> str:
    cleaned = UNSAFE_PATH_CHARS.sub("_", name).strip("._")
    return cleaned or "file"


def blob_timestamp() -> int:
    # Microseconds; two puts for the same owner and name land on distinct paths.
    return time.time_ns() // 1000


def build_blob_path(owner_id: int, name: str, timestamp: int, *, versioned: bool = False) -> str:
    relative = f"{owner_id}/{timestamp}_{sanitize_blob_name(name)}"
    if versioned:
        return f"{VERSIONS_PREFIX}/{relative}"
    return relative


def _safe_resolve(storage_root: Path, relative_path: str) -> Path:
    root = storage_root.resolve()
    candidate = (root / relative_path).resolve()
    if os.path.commonpath([str(root), str(candidate)]) != str(root) or candidate == root:
        raise ValidationError("INVALID_PATH", "Invalid storage path.")
    return candidate


class BlobStore:
    """Content store keyed by opaque relative paths."""

    def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        raise NotImplementedError

    def get(self, path: str) -> bytes:
        raise NotImplementedError

    def delete(self, paths: list[str]) -> None:
        raise NotImplementedError

    def url_for(self, path: str) -> str:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """Filesystem blob store. Content URLs are signed and expire after ``url_ttl`` seconds."""

    def __init__(self, root: Path, secret_key: str, url_ttl: int, public_base_url: str) -> None:
        self.root = root.resolve()
        self.url_ttl = url_ttl
        self.public_base_url = public_base_url.rstrip("/")
        self._serializer = URLSafeTimedSerializer(secret_key, salt=BLOB_URL_SALT)

    def resolve(self, path: str) -> Path:
        return _safe_resolve(self.root, path)

    def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        target = self.resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            output = target.open("xb")
        except OSError as error:
            current_app.logger.warning("Blob put failed for %s: %s", path, error)
            raise CollaboratorFailure("blob_store", "put") from error
        try:
            with output:
                output.write(data)
        except OSError as error:
            # The path was created by this call; drop the partial write.
            target.unlink(missing_ok=True)
            current_app.logger.warning("Blob put failed for %s: %s", path, error)
            raise CollaboratorFailure("blob_store", "put") from error
        return path

    def get(self, path: str) -> bytes:
        target = self.resolve(path)
        try:
            return target.read_bytes()
        except OSError as error:
            current_app.logger.warning("Blob get failed for %s: %s", path, error)
            raise CollaboratorFailure("blob_store", "get") from error

    def delete(self, paths: list[str]) -> None:
        for path in paths:
            target = self.resolve(path)
            try:
                target.unlink(missing_ok=True)
            except OSError as error:
                current_app.logger.warning("Blob delete failed for %s: %s", path, error)
                raise CollaboratorFailure("blob_store", "delete") from error

    def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    def url_for(self, path: str) -> str:
        signed = self._serializer.dumps(path)
        base = request.host_url.rstrip("/") if has_request_context() else self.public_base_url
        return f"{base}/blobs/{signed}"

    def path_from_signed(self, signed: str) -> str:
        try:
            path = self._serializer.loads(signed, max_age=self.url_ttl)
        except BadTimeSignature as error:
            raise CapabilityError("BLOB_URL_EXPIRED", "Content URL has expired.") from error
        except BadSignature as error:
            raise NotFoundOrUnauthorized() from error
        if not isinstance(path, str):
            raise NotFoundOrUnauthorized()
        return path


def init_blob_store(app: Flask) -> LocalBlobStore:
    root = Path(app.config["STORAGE_ROOT"])
    root.mkdir(parents=True, exist_ok=True)
    store = LocalBlobStore(
        root,
        secret_key=app.config["SECRET_KEY"],
        url_ttl=int(app.config["BLOB_URL_TTL_SECONDS"]),
        public_base_url=app.config["BLOB_PUBLIC_BASE_URL"],
    )
    app.extensions["blob_store"] = store
    return store


def blob_store() -> LocalBlobStore:
    return current_app.extensions["blob_store"]
