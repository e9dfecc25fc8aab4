"""
Probes for the load balancer and orchestrator. No token, no tenant.

    GET /api/v1/health        process is up
    GET /api/v1/health/live   process is up and the database answers
"""

import logging
import time

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from okr_api.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def ready():
    return jsonify({"status": "ok", "service": "okr-platform-api"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    started = time.perf_counter()
    try:
        db.session.execute(db.text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Database check failed: %s", exc, extra={"event_type": "health_db_down"})
        return jsonify({"status": "error", "database": "unreachable"}), 503
    elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
    return jsonify({"status": "ok", "database": "ok", "latency_ms": elapsed_ms}), 200
