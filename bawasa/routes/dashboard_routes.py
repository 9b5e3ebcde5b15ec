from flask import Blueprint, jsonify, request

from bawasa.auth.middleware import require_admin
from bawasa.config import DEBUG
from bawasa.services.dashboard_service import dashboard_service
from bawasa.utils import error_response

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.route("/stats", methods=["GET"])
@require_admin
def stats():
    """
    Admin dashboard counters
    """
    try:
        return jsonify({"success": True, "data": dashboard_service.get_stats()}), 200
    except Exception as e:
        return error_response("Failed to fetch dashboard stats", 500, {"details": str(e) if DEBUG else None})


@dashboard_bp.route("/recent-readings", methods=["GET"])
@require_admin
def recent_readings():
    try:
        data = dashboard_service.get_recent_meter_readings(request.args.get("limit", 5, type=int))
        return jsonify({"success": True, "data": data}), 200
    except Exception as e:
        return error_response("Failed to fetch recent readings", 500, {"details": str(e) if DEBUG else None})


@dashboard_bp.route("/recent-issues", methods=["GET"])
@require_admin
def recent_issues():
    try:
        data = dashboard_service.get_recent_issues(request.args.get("limit", 5, type=int))
        return jsonify({"success": True, "data": data}), 200
    except Exception as e:
        return error_response("Failed to fetch recent issues", 500, {"details": str(e) if DEBUG else None})


@dashboard_bp.route("/revenue", methods=["GET"])
@require_admin
def revenue():
    """
    Yearly revenue with monthly buckets
    Query: ?year=2025
    """
    try:
        year = request.args.get("year", type=int)
        if request.args.get("year") and not year:
            return error_response("year must be a number", 400)
        return jsonify({"success": True, "data": dashboard_service.get_revenue_stats(year)}), 200
    except Exception as e:
        return error_response("Failed to fetch revenue data", 500, {"details": str(e) if DEBUG else None})
