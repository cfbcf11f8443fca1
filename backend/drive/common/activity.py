from __future__ import annotations

from typing import Any

from flask import current_app

from ..models import ActivityLog
from . import metadata
from .errors import CollaboratorFailure


def record_activity(
    action: str,
    actor_id: int | None = None,
    file_id: int | None = None,
    details: dict[str, Any] | None = None,
) -> ActivityLog | None:
    entry = ActivityLog(actor_id=actor_id, file_id=file_id, action=action, details=details or {})
    # Activity must never break the primary mutation.
    try:
        return metadata.insert(entry)
    except CollaboratorFailure:
        current_app.logger.warning("Activity log entry dropped: action=%s file_id=%s", action, file_id)
        return None
