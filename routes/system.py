"""System endpoints (health check and stats)."""

from flask import Blueprint, jsonify
from pymongo.errors import PyMongoError

from config.database import mongodb
from middleware.errors import ConfigurationError
from middleware.auth import login_required

system_bp = Blueprint("system", __name__)


@system_bp.route("/health", methods=["GET"])
def health_check():
    """Simple health-check route without authentication."""
    try:
        mongodb.ping()
        db_status = "ok"
    except (PyMongoError, ConfigurationError) as e:
        db_status = f"error: {str(e)}"

    return jsonify({
        "status": "ok",
        "database": db_status,
    }), 200


@system_bp.route("/stats", methods=["GET"])
@login_required
def get_stats():
    """Return member counts by approval status."""
    from routes.members import get_member_repository

    try:
        by_status = get_member_repository().count_by_status()
    except PyMongoError as e:
        return jsonify({
            "status": "error",
            "message": f"Failed to retrieve statistics: {str(e)}",
        }), 503

    return jsonify({
        "status": "ok",
        "members_count": sum(by_status.values()),
        "members_by_status": by_status,
        "message": "Successfully retrieved statistics",
    }), 200
