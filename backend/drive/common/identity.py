from __future__ import annotations

from flask_jwt_extended import get_jwt_identity

from ..extensions import db
from ..models import User
from .errors import APIError


def current_user() -> User:
    identity = get_jwt_identity()
    if identity is None:
        raise APIError(401, "UNAUTHENTICATED", "Authentication required.")

    try:
        user = db.session.get(User, int(identity))
    except (TypeError, ValueError) as error:
        raise APIError(401, "UNAUTHENTICATED", "Invalid session.") from error
    if user is None:
        raise APIError(401, "UNAUTHENTICATED", "Invalid session.")
    return user
