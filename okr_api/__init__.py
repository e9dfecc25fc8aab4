"""
OKR Platform API.

    from okr_api import create_app
    app = create_app()            # APP_ENV, else "development"
    app = create_app("testing")

Request chain installed here, in order:

    jwt_auth  →  tenant_context  →  Flask-Limiter  →  blueprint
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import event
from sqlalchemy.engine import Engine

from okr_api.config import config
from okr_api.middleware.jwt_auth import init_jwt_middleware
from okr_api.middleware.logging_config import configure_logging
from okr_api.middleware.rate_limiter import init_rate_limits
from okr_api.middleware.tenant_context import init_tenant_context
from okr_api.models import db
from okr_api.utils.errors import E, api_error

logger = logging.getLogger(__name__)

migrate = Migrate()
# Limits are attached per blueprint in init_rate_limits.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri=os.getenv("REDIS_URL") or "memory://",
)

BLUEPRINTS = (
    "okr_api.blueprints.health_bp:health_bp",
    "okr_api.blueprints.auth_bp:auth_bp",
    "okr_api.blueprints.okr_bp:okr_bp",
    "okr_api.blueprints.cycle_bp:cycle_bp",
    "okr_api.blueprints.rbac_bp:rbac_bp",
    "okr_api.blueprints.tenant_bp:tenant_bp",
    "okr_api.blueprints.tenant_bp:exec_whitelist_bp",
)


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, _record):
    # Cascades on tenant deletion rely on this under SQLite.
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _register_blueprints(app):
    from importlib import import_module

    for target in BLUEPRINTS:
        module_name, attr = target.split(":")
        app.register_blueprint(getattr(import_module(module_name), attr))


def _register_app_errors(app):
    @app.errorhandler(404)
    def not_found(_e):
        return api_error(E.NOT_FOUND, "Not found")

    @app.errorhandler(405)
    def method_not_allowed(_e):
        return api_error(E.VALIDATION_REQUIRED, "Method not allowed", status=405)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", retry_after=e.description)

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")


def create_app(config_name=None):
    """Build the Flask app for ``config_name`` (development | testing | production)."""
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiated so ProductionConfig can refuse to start without its secrets.
    app.config.from_object(config[config_name]())

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)

    origins = [o.strip() for o in app.config.get("CORS_ORIGINS", "*").split(",") if o.strip()]
    if origins and origins != ["*"]:
        CORS(app, origins=origins)
    else:
        CORS(app)

    init_jwt_middleware(app)
    init_tenant_context(app)
    limiter.init_app(app)

    # Model modules must be imported before create_all and Alembic autogenerate.
    from okr_api.models import audit, auth, okr  # noqa: F401

    # CREATE IF NOT EXISTS; Alembic revisions stay authoritative for changes.
    with app.app_context():
        db.create_all()

    _register_blueprints(app)
    _register_app_errors(app)
    init_rate_limits(app, limiter)

    return app
