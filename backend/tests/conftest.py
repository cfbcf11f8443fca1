from __future__ import annotations

from pathlib import Path

import pytest
from flask_jwt_extended import create_access_token

from drive import create_app
from drive.extensions import db
from drive.models import User


@pytest.fixture
def app(tmp_path: Path):
    db_path = tmp_path / "test.db"
    storage_path = tmp_path / "storage"

    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "STORAGE_ROOT": str(storage_path),
            "SECRET_KEY": "test-secret-key-at-least-32-bytes-long",
            "JWT_SECRET_KEY": "test-jwt-secret-key-at-least-32-bytes-long",
            "MAX_UPLOAD_SIZE_BYTES": 1024 * 1024,
            "FRONTEND_ORIGINS": ["http://localhost:3000"],
        }
    )

    with app.app_context():
        db.create_all()
        db.session.add_all([User(username="alice"), User(username="bob")])
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app) -> dict[str, int]:
    with app.app_context():
        return {user.username: user.id for user in User.query.all()}


def _headers(app, user_id: int) -> dict[str, str]:
    with app.app_context():
        token = create_access_token(identity=str(user_id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice_headers(app, users) -> dict[str, str]:
    return _headers(app, users["alice"])


@pytest.fixture
def bob_headers(app, users) -> dict[str, str]:
    return _headers(app, users["bob"])


@pytest.fixture
def blob_root(app) -> Path:
    return Path(app.config["STORAGE_ROOT"])
