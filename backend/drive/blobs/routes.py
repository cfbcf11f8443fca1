from __future__ import annotations

from flask import Blueprint, send_file

from ..common.errors import NotFoundOrUnauthorized
from ..common.storage import blob_store


blobs_bp = Blueprint("blobs", __name__, url_prefix="/blobs")


@blobs_bp.get("/<string:signed>")
def serve(signed: str):
    store = blob_store()
    path = store.path_from_signed(signed)
    if not store.exists(path):
        raise NotFoundOrUnauthorized("BLOB_NOT_FOUND", "Content not found.")
    return send_file(store.resolve(path), conditional=True)
