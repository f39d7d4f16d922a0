"""
Health Check Route
Simple endpoint to verify the API and its database are reachable
"""
from flask import Blueprint, jsonify
from sqlalchemy import text

from tracking_pkg.models import db
from logger_config import error_logger

bp = Blueprint("health", __name__)


@bp.route("/health", methods=["GET"])
def health():
    """
    GET /api/health
    Health check endpoint - no authentication required
    """
    try:
        db.session.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        error_logger.error(f"Health check database error: {e}")
        database = "unavailable"

    status_code = 200 if database == "ok" else 503
    return jsonify({
        "status": "ok" if status_code == 200 else "degraded",
        "service": "order tracking backend",
        "database": database,
    }), status_code
