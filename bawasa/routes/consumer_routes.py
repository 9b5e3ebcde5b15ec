"""
Consumer Routes
Self-service endpoints for the signed-in consumer (mobile app)
"""
from flask import Blueprint, jsonify, request

from bawasa.auth.middleware import get_current_user, require_role
from bawasa.config import DEBUG
from bawasa.database.models import AccountRole
from bawasa.services.consumer_service import consumer_service
from bawasa.services.issue_service import issue_service
from bawasa.utils import error_response, result_response

consumer_bp = Blueprint("consumer", __name__, url_prefix="/api/consumer")

require_consumer = require_role(AccountRole.CONSUMER)


def _details(e: Exception) -> dict:
    return {"details": str(e) if DEBUG else None}


def _own_consumer_id():
    return consumer_service.get_consumer_id_for_account(get_current_user()["account_id"])


@consumer_bp.route("/billings", methods=["GET"])
@require_consumer
def my_billings():
    try:
        consumer_id = _own_consumer_id()
        if not consumer_id:
            return error_response("Consumer data not found", 404)
        return jsonify({"success": True, "data": consumer_service.get_billing_history(consumer_id)}), 200
    except Exception as e:
        return error_response("Failed to fetch billings", 500, _details(e))


@consumer_bp.route("/meter-readings", methods=["GET"])
@require_consumer
def my_meter_readings():
    try:
        consumer_id = _own_consumer_id()
        if not consumer_id:
            return error_response("Consumer data not found", 404)
        return jsonify({"success": True, "data": consumer_service.get_reading_history(consumer_id)}), 200
    except Exception as e:
        return error_response("Failed to fetch meter readings", 500, _details(e))


@consumer_bp.route("/issues", methods=["GET"])
@require_consumer
def my_issues():
    try:
        consumer_id = _own_consumer_id()
        if not consumer_id:
            return error_response("Consumer data not found", 404)
        return jsonify({"success": True, "data": issue_service.get_issues_by_consumer(consumer_id)}), 200
    except Exception as e:
        return error_response("Failed to fetch issues", 500, _details(e))


@consumer_bp.route("/issues", methods=["POST"])
@require_consumer
def report_issue():
    """
    Body: { "issue_title", "issue_type", "priority", "description", "issue_images" }
    """
    try:
        consumer_id = _own_consumer_id()
        if not consumer_id:
            return error_response("Consumer data not found", 404)

        data = request.get_json(silent=True)
        if not data:
            return error_response("Request body is required", 400)
        return result_response(issue_service.create_issue(consumer_id, data), 201)
    except Exception as e:
        return error_response("Failed to report issue", 500, _details(e))
