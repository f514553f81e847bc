from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .db_utils import ensure_database_schema
from .extensions import csrf, db, login_manager, migrate


BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

# Blueprints whose endpoints only ever accept bearer credentials.
CSRF_EXEMPT_BLUEPRINTS = {"generation"}
# Credential exchanges run before any session exists.
CSRF_EXEMPT_ENDPOINTS = {"auth.login", "auth.register"}


def create_app(config_class: type[Config] = Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    register_extensions(app)
    register_blueprints(app)
    register_error_handlers(app)

    with app.app_context():
        ensure_database_schema()

    return app


def register_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    app.before_request(protect_cookie_sessions)


def protect_cookie_sessions() -> None:
    """Require a CSRF token unless the request carries a bearer credential."""

    if not current_app.config.get("WTF_CSRF_ENABLED", True):
        return
    if request.blueprint in CSRF_EXEMPT_BLUEPRINTS or request.endpoint in CSRF_EXEMPT_ENDPOINTS:
        return
    if request.headers.get("Authorization", "").startswith("Bearer "):
        return
    csrf.protect()


def register_blueprints(app: Flask) -> None:
    from .auth import bp as auth_bp
    from .generation import bp as generation_bp
    from .main import bp as main_bp
    from .projects import bp as projects_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(generation_bp)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        return jsonify({"error": exc.name, "message": exc.description}), exc.code
