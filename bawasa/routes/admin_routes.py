"""
Admin Routes
Consumer, staff and account management for the admin dashboard
"""
from flask import Blueprint, Response, jsonify, request

from bawasa.auth.middleware import require_admin
from bawasa.config import DEBUG
from bawasa.database.models import AccountRole
from bawasa.services.account_service import account_service
from bawasa.services.consumer_service import consumer_service
from bawasa.services.export_service import export_service
from bawasa.services.meter_reading_service import meter_reading_service
from bawasa.services.staff_service import cashier_service, meter_reader_service
from bawasa.utils import error_response, result_response

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def csv_response(filename: str, content: str) -> Response:
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def _details(e: Exception) -> dict:
    return {"details": str(e) if DEBUG else None}


# ==============================
# CONSUMERS
# ==============================

@admin_bp.route("/consumers", methods=["GET"])
@require_admin
def list_consumers():
    """
    Consumers with their latest reading and billing
    Query: ?q=<meter no | email | name | address>
    """
    try:
        query = request.args.get("q")
        consumers = consumer_service.search_consumers(query) if query else consumer_service.list_consumers()
        return jsonify({"success": True, "data": consumers, "count": len(consumers)}), 200
    except Exception as e:
        return error_response("Failed to fetch consumers", 500, _details(e))


@admin_bp.route("/consumers", methods=["POST"])
@require_admin
def create_consumer():
    """
    Body: { "email", "password", "water_meter_no", "full_name", "full_address",
            "mobile_no", "registered_voter" }
    """
    try:
        data = request.get_json(silent=True)
        if not data:
            return error_response("Request body is required", 400)
        return result_response(consumer_service.create_consumer(data), 201)
    except Exception as e:
        return error_response("Failed to create consumer", 500, _details(e))


@admin_bp.route("/consumers/<int:consumer_id>", methods=["GET"])
@require_admin
def get_consumer(consumer_id):
    try:
        consumer = consumer_service.get_consumer(consumer_id)
        if not consumer:
            return error_response("Consumer not found", 404)
        return jsonify({"success": True, "data": consumer}), 200
    except Exception as e:
        return error_response("Failed to fetch consumer", 500, _details(e))


@admin_bp.route("/consumers/<int:consumer_id>", methods=["PUT"])
@require_admin
def update_consumer(consumer_id):
    try:
        data = request.get_json(silent=True)
        if not data:
            return error_response("Request body is required", 400)
        return result_response(consumer_service.update_consumer(consumer_id, data))
    except Exception as e:
        return error_response("Failed to update consumer", 500, _details(e))


@admin_bp.route("/consumers/<int:consumer_id>", methods=["DELETE"])
@require_admin
def delete_consumer(consumer_id):
    try:
        return result_response(consumer_service.delete_consumer(consumer_id))
    except Exception as e:
        return error_response("Failed to delete consumer", 500, _details(e))


@admin_bp.route("/consumers/<int:consumer_id>/suspend", methods=["POST"])
@require_admin
def suspend_consumer(consumer_id):
    try:
        return result_response(consumer_service.set_suspended(consumer_id, True))
    except Exception as e:
        return error_response("Failed to suspend consumer", 500, _details(e))


@admin_bp.route("/consumers/<int:consumer_id>/unsuspend", methods=["POST"])
@require_admin
def unsuspend_consumer(consumer_id):
    try:
        return result_response(consumer_service.set_suspended(consumer_id, False))
    except Exception as e:
        return error_response("Failed to unsuspend consumer", 500, _details(e))


@admin_bp.route("/consumers/<int:consumer_id>/billing-status", methods=["PUT"])
@require_admin
def update_consumer_billing_status(consumer_id):
    """
    Payment status of the consumer's latest billing
    Body: { "status": "paid" }
    """
    try:
        data = request.get_json(silent=True) or {}
        if not data.get("status"):
            return error_response("status is required", 400)
        return result_response(consumer_service.update_latest_billing_status(consumer_id, data["status"]))
    except Exception as e:
        return error_response("Failed to update billing status", 500, _details(e))


@admin_bp.route("/consumers/<int:consumer_id>/meter-readings", methods=["GET"])
@require_admin
def consumer_meter_readings(consumer_id):
    try:
        readings = consumer_service.get_reading_history(consumer_id)
        return jsonify({"success": True, "data": readings}), 200
    except Exception as e:
        return error_response("Failed to fetch meter readings", 500, _details(e))


@admin_bp.route("/consumers/<int:consumer_id>/billings", methods=["GET"])
@require_admin
def consumer_billings(consumer_id):
    try:
        billings = consumer_service.get_billing_history(consumer_id)
        return jsonify({"success": True, "data": billings}), 200
    except Exception as e:
        return error_response("Failed to fetch billings", 500, _details(e))


@admin_bp.route("/consumers/<int:consumer_id>/issues", methods=["GET"])
@require_admin
def consumer_issues(consumer_id):
    try:
        issues = consumer_service.get_issue_history(consumer_id)
        return jsonify({"success": True, "data": issues}), 200
    except Exception as e:
        return error_response("Failed to fetch issues", 500, _details(e))


@admin_bp.route("/consumers/<int:consumer_id>/export/<kind>", methods=["GET"])
@require_admin
def export_consumer_history(consumer_id, kind):
    """kind: billings | meter-readings | issues"""
    exporters = {
        "billings": export_service.export_billing_history,
        "meter-readings": export_service.export_meter_reading_history,
        "issues": export_service.export_issue_history,
    }
    if kind not in exporters:
        return error_response(f"Unknown export. Expected one of {sorted(exporters)}", 400)

    try:
        filename, content = exporters[kind](consumer_id)
        return csv_response(filename, content)
    except LookupError as e:
        return error_response(str(e), 404)
    except Exception as e:
        return error_response("Export failed", 500, _details(e))


# ==============================
# METER READERS
# ==============================

@admin_bp.route("/meter-readers", methods=["GET"])
@require_admin
def list_meter_readers():
    try:
        readers = meter_reader_service.list_meter_readers(request.args.get("q"))
        return jsonify({"success": True, "data": readers}), 200
    except Exception as e:
        return error_response("Failed to fetch meter readers", 500, _details(e))


@admin_bp.route("/meter-readers", methods=["POST"])
@require_admin
def create_meter_reader():
    try:
        data = request.get_json(silent=True)
        if not data:
            return error_response("Request body is required", 400)
        return result_response(meter_reader_service.create_meter_reader(data), 201)
    except Exception as e:
        return error_response("Failed to create meter reader", 500, _details(e))


@admin_bp.route("/meter-readers/<int:meter_reader_id>", methods=["GET"])
@require_admin
def get_meter_reader(meter_reader_id):
    try:
        reader = meter_reader_service.get_meter_reader(meter_reader_id)
        if not reader:
            return error_response("Meter reader not found", 404)
        return jsonify({"success": True, "data": reader}), 200
    except Exception as e:
        return error_response("Failed to fetch meter reader", 500, _details(e))


@admin_bp.route("/meter-readers/<int:meter_reader_id>", methods=["PUT"])
@require_admin
def update_meter_reader(meter_reader_id):
    try:
        data = request.get_json(silent=True)
        if not data:
            return error_response("Request body is required", 400)
        return result_response(meter_reader_service.update_meter_reader(meter_reader_id, data))
    except Exception as e:
        return error_response("Failed to update meter reader", 500, _details(e))


@admin_bp.route("/meter-readers/<int:meter_reader_id>", methods=["DELETE"])
@require_admin
def delete_meter_reader(meter_reader_id):
    try:
        return result_response(meter_reader_service.delete_meter_reader(meter_reader_id))
    except Exception as e:
        return error_response("Failed to delete meter reader", 500, _details(e))


@admin_bp.route("/meter-readers/<int:meter_reader_id>/suspend", methods=["POST"])
@require_admin
def suspend_meter_reader(meter_reader_id):
    try:
        return result_response(meter_reader_service.set_suspended(meter_reader_id, True))
    except Exception as e:
        return error_response("Failed to suspend meter reader", 500, _details(e))


@admin_bp.route("/meter-readers/<int:meter_reader_id>/unsuspend", methods=["POST"])
@require_admin
def unsuspend_meter_reader(meter_reader_id):
    try:
        return result_response(meter_reader_service.set_suspended(meter_reader_id, False))
    except Exception as e:
        return error_response("Failed to unsuspend meter reader", 500, _details(e))


# ==============================
# CASHIERS
# ==============================

@admin_bp.route("/cashiers", methods=["GET"])
@require_admin
def list_cashiers():
    try:
        cashiers = cashier_service.list_cashiers(request.args.get("q"))
        return jsonify({"success": True, "data": cashiers}), 200
    except Exception as e:
        return error_response("Failed to fetch cashiers", 500, _details(e))


@admin_bp.route("/cashiers", methods=["POST"])
@require_admin
def create_cashier():
    """
    Body: { "email", "password", "employee_id", "full_name", "mobile_no", "hire_date" }
    """
    try:
        data = request.get_json(silent=True)
        if not data:
            return error_response("Request body is required", 400)
        return result_response(cashier_service.create_cashier(data), 201)
    except Exception as e:
        return error_response("Failed to create cashier", 500, _details(e))


@admin_bp.route("/cashiers/<int:cashier_id>", methods=["GET"])
@require_admin
def get_cashier(cashier_id):
    try:
        cashier = cashier_service.get_cashier(cashier_id)
        if not cashier:
            return error_response("Cashier not found", 404)
        return jsonify({"success": True, "data": cashier}), 200
    except Exception as e:
        return error_response("Failed to fetch cashier", 500, _details(e))


@admin_bp.route("/cashiers/<int:cashier_id>", methods=["PUT"])
@require_admin
def update_cashier(cashier_id):
    try:
        data = request.get_json(silent=True)
        if not data:
            return error_response("Request body is required", 400)
        return result_response(cashier_service.update_cashier(cashier_id, data))
    except Exception as e:
        return error_response("Failed to update cashier", 500, _details(e))


@admin_bp.route("/cashiers/<int:cashier_id>/status", methods=["PUT"])
@require_admin
def update_cashier_status(cashier_id):
    """Body: { "status": "active" | "inactive" | "suspended" }"""
    try:
        data = request.get_json(silent=True) or {}
        return result_response(cashier_service.update_cashier_status(cashier_id, data.get("status")))
    except Exception as e:
        return error_response("Failed to update cashier status", 500, _details(e))


# ==============================
# ACCOUNTS
# ==============================

@admin_bp.route("/accounts", methods=["GET"])
@require_admin
def list_accounts():
    """
    Query: ?role=consumer&q=<name | email | phone>
    """
    try:
        role = request.args.get("role")
        try:
            role = AccountRole(role) if role else None
        except ValueError:
            return error_response(f"Invalid role. Expected one of {[r.value for r in AccountRole]}", 400)

        accounts = account_service.list_accounts(role, request.args.get("q"))
        return jsonify({"success": True, "data": accounts}), 200
    except Exception as e:
        return error_response("Failed to fetch accounts", 500, _details(e))


@admin_bp.route("/accounts/<int:account_id>/status", methods=["PUT"])
@require_admin
def update_account_status(account_id):
    """Body: { "status": "active" | "suspended" }"""
    try:
        data = request.get_json(silent=True) or {}
        return result_response(account_service.set_account_status(account_id, data.get("status")))
    except Exception as e:
        return error_response("Failed to update account status", 500, _details(e))


# ==============================
# METER CHANGE
# ==============================

@admin_bp.route("/change-meter", methods=["POST"])
@require_admin
def change_meter():
    """
    Records the final reading of a replaced meter
    Body: { "consumerId", "newStartingReading", "effectiveDate", "reason", "readingBeforeChange" }
    """
    try:
        data = request.get_json(silent=True) or {}

        try:
            consumer_id = int(data.get("consumerId") or data.get("consumer_id"))
        except (TypeError, ValueError):
            return error_response("Invalid consumer ID", 400)

        new_start = data.get("newStartingReading", data.get("new_starting_reading"))
        if not isinstance(new_start, (int, float)) or isinstance(new_start, bool) or new_start < 0:
            return error_response("Invalid starting reading", 400)

        effective_date = data.get("effectiveDate") or data.get("effective_date")
        if not effective_date or not isinstance(effective_date, str):
            return error_response("Invalid effective date", 400)

        reason = data.get("reason")
        if not reason or not isinstance(reason, str):
            return error_response("Reason is required", 400)

        result = meter_reading_service.change_meter(
            consumer_id,
            new_start,
            effective_date,
            reason,
            data.get("readingBeforeChange", data.get("reading_before_change")),
        )
        return result_response(result)
    except Exception as e:
        return error_response("An unexpected error occurred", 500, _details(e))


@admin_bp.route("/consumers/<int:consumer_id>/meter-changes", methods=["GET"])
@require_admin
def meter_change_history(consumer_id):
    try:
        history = meter_reading_service.get_meter_change_history(consumer_id)
        return jsonify({"success": True, "data": history}), 200
    except Exception as e:
        return error_response("Failed to load meter change history", 500, _details(e))
