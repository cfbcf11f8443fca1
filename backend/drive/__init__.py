from __future__ import annotations

from typing import Any

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_jwt_extended import JWTManager

from .blobs import blobs_bp
from .clipboard import clipboard_bp
from .common.errors import error_payload, register_error_handlers
from .common.storage import init_blob_store
from .config import Config
from .extensions import cors, db, jwt, migrate
from .files import files_bp
from .folders import folders_bp
from .shares import public_shares_bp, shares_bp


load_dotenv()


def _register_jwt_handlers(jwt_manager: JWTManager) -> None:
    @jwt_manager.unauthorized_loader
    def unauthorized(reason: str):  # type: ignore[no-untyped-def]
        return jsonify(error_payload("UNAUTHENTICATED", "Missing or invalid authentication token.", {"reason": reason})), 401

    @jwt_manager.invalid_token_loader
    def invalid_token(reason: str):  # type: ignore[no-untyped-def]
        return jsonify(error_payload("INVALID_TOKEN", "Invalid token.", {"reason": reason})), 401

    @jwt_manager.expired_token_loader
    def expired_token(jwt_header, jwt_payload):  # type: ignore[no-untyped-def]
        return jsonify(error_payload("TOKEN_EXPIRED", "Token has expired.")), 401


def create_app(config_override: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    _register_jwt_handlers(jwt)
    cors.init_app(app, resources={r"/*": {"origins": app.config["FRONTEND_ORIGINS"]}})
    init_blob_store(app)

    app.register_blueprint(files_bp)
    app.register_blueprint(folders_bp)
    app.register_blueprint(shares_bp)
    app.register_blueprint(public_shares_bp)
    app.register_blueprint(clipboard_bp)
    app.register_blueprint(blobs_bp)

    @app.get("/health")
    def healthcheck():
        return {"status": "ok"}

    register_error_handlers(app)

    return app
