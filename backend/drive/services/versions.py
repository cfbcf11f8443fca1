from __future__ import annotations

from sqlalchemy import func, select

from ..common import metadata
from ..models import File, FileVersion


def latest_version_number(file_id: int) -> int:
    current = metadata.scalar(select(func.max(FileVersion.version_number)).where(FileVersion.file_id == file_id))
    return int(current or 0)


def append_version(
    file: File,
    blob_path: str,
    size: int,
    content_type: str | None,
    created_by: int | None,
) -> FileVersion:
    """Append the next immutable version row for ``file``.

    ``created_by`` is ``None`` for edits made through a share link.
    """
    version = FileVersion(
        file_id=file.id,
        version_number=latest_version_number(file.id) + 1,
        blob_path=blob_path,
        size=size,
        content_type=content_type,
        created_by=created_by,
    )
    return metadata.insert(version)


def list_versions(file_id: int) -> list[FileVersion]:
    return (
        FileVersion.query.filter_by(file_id=file_id)
        .order_by(FileVersion.version_number.desc())
        .all()
    )
