# backend/zakat/__init__.py
import os

from flask import Flask, request
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from .config import Config, engine_options_for
from .extensions import db, migrate
from .responses import error_response, fail
from .validation import ZakatError


def create_app(test_config=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)
        if "SQLALCHEMY_ENGINE_OPTIONS" not in test_config:
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options_for(app.config["SQLALCHEMY_DATABASE_URI"])

    if not app.config.get("UPLOAD_FOLDER"):
        app.config["UPLOAD_FOLDER"] = os.path.join(app.instance_path, "uploads", "distribusi")

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.regions import rt_bp, rw_bp
    from .routes.payers import payers_bp
    from .routes.donations import donations_bp
    from .routes.beneficiaries import beneficiaries_bp
    from .routes.distributions import distributions_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(rt_bp)
    app.register_blueprint(rw_bp)
    app.register_blueprint(payers_bp)
    app.register_blueprint(donations_bp)
    app.register_blueprint(beneficiaries_bp)
    app.register_blueprint(distributions_bp)
    app.register_blueprint(reports_bp)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(_exc):
        max_mb = app.config["MAX_PROOF_PHOTO_BYTES"] // (1024 * 1024)
        return fail(f"Upload exceeds the {max_mb} MB limit", 413)

    @app.errorhandler(ZakatError)
    def handle_domain_error(exc):
        db.session.rollback()
        return error_response(exc)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return fail(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(_exc):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        db.session.rollback()
        return fail("Internal server error", 500)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
