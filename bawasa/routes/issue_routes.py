"""
Issue Routes
Maintenance ticket management for admins
"""
from flask import Blueprint, jsonify, request

from bawasa.auth.middleware import require_admin
from bawasa.config import DEBUG
from bawasa.services.issue_service import issue_service
from bawasa.utils import error_response, result_response

issue_bp = Blueprint("issues", __name__, url_prefix="/api/issues")


def _details(e: Exception) -> dict:
    return {"details": str(e) if DEBUG else None}


@issue_bp.route("", methods=["GET"])
@require_admin
def list_issues():
    """Query: ?q=<title | description>&priority=<low|medium|high>&consumer_id="""
    try:
        args = request.args
        if args.get("q"):
            issues = issue_service.search_issues(args["q"])
        elif args.get("priority"):
            issues = issue_service.get_issues_by_priority(args["priority"])
        elif args.get("consumer_id"):
            issues = issue_service.get_issues_by_consumer(args.get("consumer_id", type=int))
        else:
            issues = issue_service.get_all_issues()
        return jsonify({"success": True, "data": issues, "count": len(issues)}), 200
    except Exception as e:
        return error_response("Failed to fetch issues", 500, _details(e))


@issue_bp.route("", methods=["POST"])
@require_admin
def create_issue():
    """Body: { "consumer_id", "issue_title", "issue_type", "priority", "description", "issue_images" }"""
    try:
        data = request.get_json(silent=True) or {}
        if not data.get("consumer_id"):
            return error_response("consumer_id is required", 400)
        return result_response(issue_service.create_issue(data["consumer_id"], data), 201)
    except Exception as e:
        return error_response("Failed to create issue", 500, _details(e))


@issue_bp.route("/stats", methods=["GET"])
@require_admin
def issue_stats():
    try:
        return jsonify({"success": True, "data": issue_service.get_issue_stats()}), 200
    except Exception as e:
        return error_response("Failed to fetch issue stats", 500, _details(e))


@issue_bp.route("/<int:issue_id>", methods=["GET"])
@require_admin
def get_issue(issue_id):
    try:
        issue = issue_service.get_issue(issue_id)
        if not issue:
            return error_response("Issue not found", 404)
        return jsonify({"success": True, "data": issue}), 200
    except Exception as e:
        return error_response("Failed to fetch issue", 500, _details(e))


@issue_bp.route("/<int:issue_id>/status", methods=["PUT"])
@require_admin
def update_issue_status(issue_id):
    """Body: { "status": "resolved" }"""
    try:
        data = request.get_json(silent=True) or {}
        return result_response(issue_service.update_issue_status(issue_id, data.get("status")))
    except Exception as e:
        return error_response("Failed to update issue", 500, _details(e))


@issue_bp.route("/<int:issue_id>/schedule", methods=["POST"])
@require_admin
def schedule_issue(issue_id):
    """Body: { "scheduled_date": "2025-10-20T09:00:00", "technician": "...", "notes": "..." }"""
    try:
        data = request.get_json(silent=True) or {}
        result = issue_service.schedule_issue(
            issue_id,
            data.get("scheduled_date"),
            technician=data.get("technician"),
            notes=data.get("notes"),
        )
        return result_response(result)
    except Exception as e:
        return error_response("Failed to schedule issue", 500, _details(e))
