"""
Meter Reading Routes
Monthly readings, reader assignments and the reader's own workload
"""
from datetime import date

from flask import Blueprint, jsonify, request

from bawasa.auth.middleware import get_current_user, require_admin, require_meter_reader, require_staff
from bawasa.config import DEBUG
from bawasa.database.models import AccountRole
from bawasa.services.assignment_service import assignment_service
from bawasa.services.meter_reading_service import meter_reading_service
from bawasa.utils import error_response, result_response

reading_bp = Blueprint("meter_readings", __name__, url_prefix="/api/meter-readings")


def _details(e: Exception) -> dict:
    return {"details": str(e) if DEBUG else None}


def _year_month(data: dict):
    today = date.today()
    return int(data.get("year") or today.year), int(data.get("month") or today.month)


@reading_bp.route("", methods=["GET"])
@require_admin
def list_readings():
    """
    Query: ?q=<name | email | meter no>&status=<payment status>&year=&month=&latest=true
    """
    try:
        args = request.args
        if args.get("q"):
            readings = meter_reading_service.search_readings(args["q"])
        elif args.get("status"):
            try:
                readings = meter_reading_service.get_readings_by_payment_status(args["status"])
            except ValueError as e:
                return error_response(str(e), 400)
        elif args.get("year") and args.get("month"):
            year, month = args.get("year", type=int), args.get("month", type=int)
            if year is None or month is None or not 1 <= month <= 12:
                return error_response("year and month must be numbers", 400)
            readings = meter_reading_service.get_readings_for_month(year, month)
        elif args.get("latest", "").lower() == "true":
            readings = meter_reading_service.get_latest_readings()
        else:
            readings = meter_reading_service.get_all_readings(args.get("limit", type=int))
        return jsonify({"success": True, "data": readings, "count": len(readings)}), 200
    except Exception as e:
        return error_response("Failed to fetch meter readings", 500, _details(e))


@reading_bp.route("/stats", methods=["GET"])
@require_admin
def reading_stats():
    try:
        return jsonify({"success": True, "data": meter_reading_service.get_reading_stats()}), 200
    except Exception as e:
        return error_response("Failed to fetch meter reading stats", 500, _details(e))


@reading_bp.route("/<int:reading_id>", methods=["GET"])
@require_staff
def get_reading(reading_id):
    try:
        reading = meter_reading_service.get_reading(reading_id)
        if not reading:
            return error_response("Meter reading not found", 404)
        return jsonify({"success": True, "data": reading}), 200
    except Exception as e:
        return error_response("Failed to fetch meter reading", 500, _details(e))


@reading_bp.route("/monthly", methods=["POST"])
@require_admin
def create_monthly_readings():
    """
    Empty readings for every consumer
    Body: { "year": 2025, "month": 10 }  (defaults to the current month)
    """
    try:
        year, month = _year_month(request.get_json(silent=True) or {})
        return result_response(meter_reading_service.create_empty_readings_for_month(year, month), 201)
    except (TypeError, ValueError):
        return error_response("year and month must be numbers", 400)
    except Exception as e:
        return error_response("Failed to create monthly readings", 500, _details(e))


@reading_bp.route("/<int:reading_id>/record", methods=["POST"])
@require_meter_reader
def record_reading(reading_id):
    """
    Body: { "present_reading": 123.4, "meter_image": "...", "remarks": "..." }
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("present_reading") is None:
            return error_response("present_reading is required", 400)

        user = get_current_user()
        reader_account_id = user["account_id"] if user["role"] == AccountRole.METER_READER.value else None

        result = meter_reading_service.record_present_reading(
            reading_id,
            data["present_reading"],
            meter_image=data.get("meter_image"),
            remarks=data.get("remarks"),
            meter_reader_account_id=reader_account_id,
        )
        return result_response(result)
    except Exception as e:
        return error_response("Failed to record meter reading", 500, _details(e))


# ==============================
# ASSIGNMENTS
# ==============================

@reading_bp.route("/assignments", methods=["GET"])
@require_admin
def list_assignments():
    """Query: ?meter_reader_id=&status="""
    try:
        assignments = assignment_service.get_assignments(
            request.args.get("meter_reader_id", type=int),
            request.args.get("status"),
        )
        return jsonify({"success": True, "data": assignments}), 200
    except Exception as e:
        return error_response("Failed to fetch assignments", 500, _details(e))


@reading_bp.route("/assignments", methods=["POST"])
@require_admin
def assign_consumers():
    """
    Body: { "meter_reader_id": 1, "consumer_ids": [1, 2, 3] }
    """
    try:
        data = request.get_json(silent=True) or {}
        meter_reader_id = data.get("meter_reader_id")
        consumer_ids = data.get("consumer_ids")
        if not meter_reader_id:
            return error_response("meter_reader_id is required", 400)
        if not isinstance(consumer_ids, list):
            return error_response("consumer_ids must be a list", 400)

        return result_response(assignment_service.assign_consumers(meter_reader_id, consumer_ids), 201)
    except Exception as e:
        return error_response("Failed to assign consumers", 500, _details(e))


@reading_bp.route("/assignments/available-consumers", methods=["GET"])
@require_admin
def available_consumers():
    try:
        consumers = assignment_service.get_available_consumers()
        return jsonify({"success": True, "data": consumers}), 200
    except Exception as e:
        return error_response("Failed to fetch available consumers", 500, _details(e))


@reading_bp.route("/assignments/<int:assignment_id>/status", methods=["PUT"])
@require_meter_reader
def update_assignment_status(assignment_id):
    """Body: { "status": "ongoing" }"""
    try:
        data = request.get_json(silent=True) or {}
        return result_response(assignment_service.update_assignment_status(assignment_id, data.get("status")))
    except Exception as e:
        return error_response("Failed to update assignment", 500, _details(e))


@reading_bp.route("/assignments/<int:assignment_id>", methods=["DELETE"])
@require_admin
def unassign(assignment_id):
    try:
        return result_response(assignment_service.unassign(assignment_id))
    except Exception as e:
        return error_response("Failed to remove assignment", 500, _details(e))


@reading_bp.route("/my-assignments", methods=["GET"])
@require_meter_reader
def my_assignments():
    """Assignments of the signed-in meter reader"""
    try:
        assignments = assignment_service.get_assignments_for_account(
            get_current_user()["account_id"], request.args.get("status")
        )
        return jsonify({"success": True, "data": assignments}), 200
    except Exception as e:
        return error_response("Failed to fetch assignments", 500, _details(e))
