"""
Billing Routes
Billing generation, status updates, queries and printable statements
"""
from flask import Blueprint, Response, jsonify, request

from bawasa.auth.middleware import require_admin, require_cashier
from bawasa.config import DEBUG
from bawasa.services.billing_service import billing_service
from bawasa.services.payment_service import payment_service
from bawasa.services.pdf_service import pdf_service
from bawasa.utils import error_response, parse_date, result_response

billing_bp = Blueprint("billings", __name__, url_prefix="/api/billings")


def _details(e: Exception) -> dict:
    return {"details": str(e) if DEBUG else None}


@billing_bp.route("", methods=["GET"])
@require_cashier
def list_billings():
    """
    Query: ?status=<unpaid|partial|paid|overdue>&q=<name | email | meter no>
    """
    try:
        status = request.args.get("status")
        query = request.args.get("q")

        if query:
            billings = billing_service.search_billings(query, outstanding_only=False)
        elif status:
            try:
                billings = billing_service.get_billings_by_status(status)
            except ValueError as e:
                return error_response(str(e), 400)
        else:
            billings = billing_service.get_all_billings()

        return jsonify({"success": True, "data": billings, "count": len(billings)}), 200
    except Exception as e:
        return error_response("Failed to fetch billings", 500, _details(e))


@billing_bp.route("/stats", methods=["GET"])
@require_cashier
def billing_stats():
    try:
        return jsonify({"success": True, "data": billing_service.get_billing_stats()}), 200
    except Exception as e:
        return error_response("Failed to fetch billing stats", 500, _details(e))


@billing_bp.route("/revenue-trends", methods=["GET"])
@require_admin
def revenue_trends():
    try:
        return jsonify({"success": True, "data": billing_service.get_revenue_trends()}), 200
    except Exception as e:
        return error_response("Failed to fetch revenue trends", 500, _details(e))


@billing_bp.route("/<int:billing_id>", methods=["GET"])
@require_cashier
def get_billing(billing_id):
    try:
        billing = billing_service.get_billing(billing_id)
        if not billing:
            return error_response("Billing not found", 404)
        return jsonify({"success": True, "data": billing}), 200
    except Exception as e:
        return error_response("Failed to fetch billing", 500, _details(e))


@billing_bp.route("/<int:billing_id>/transactions", methods=["GET"])
@require_cashier
def billing_transactions(billing_id):
    try:
        transactions = payment_service.get_billing_transactions(billing_id)
        return jsonify({"success": True, "data": transactions}), 200
    except Exception as e:
        return error_response("Failed to fetch transactions", 500, _details(e))


@billing_bp.route("/<int:billing_id>/statement", methods=["GET"])
@require_cashier
def billing_statement(billing_id):
    """Printable PDF statement"""
    try:
        billing = billing_service.get_billing(billing_id)
        if not billing:
            return error_response("Billing not found", 404)

        pdf = pdf_service.generate_billing_statement(billing)
        meter_no = (billing.get("consumer") or {}).get("water_meter_no") or billing_id
        return Response(
            pdf,
            mimetype="application/pdf",
            headers={"Content-Disposition": f"inline; filename=water_bill_{meter_no}_{billing_id}.pdf"},
        )
    except Exception as e:
        return error_response("Failed to generate statement", 500, _details(e))


@billing_bp.route("/<int:billing_id>/status", methods=["PUT"])
@require_admin
def update_billing_status(billing_id):
    """Body: { "status": "paid" }"""
    try:
        data = request.get_json(silent=True) or {}
        return result_response(billing_service.update_billing_status(billing_id, data.get("status")))
    except Exception as e:
        return error_response("Failed to update billing status", 500, _details(e))


@billing_bp.route("/generate", methods=["POST"])
@require_admin
def generate_billing():
    """Body: { "meter_reading_id": 1 }"""
    try:
        data = request.get_json(silent=True) or {}
        reading_id = data.get("meter_reading_id")
        if not reading_id:
            return error_response("meter_reading_id is required", 400)
        return result_response(billing_service.generate_billing_for_reading(reading_id), 201)
    except Exception as e:
        return error_response("Failed to generate billing", 500, _details(e))


@billing_bp.route("/generate-month", methods=["POST"])
@require_admin
def generate_month():
    """Body: { "year": 2025, "month": 10 }"""
    try:
        data = request.get_json(silent=True) or {}
        if not data.get("year") or not data.get("month"):
            return error_response("year and month are required", 400)
        return result_response(billing_service.generate_billings_for_month(data["year"], data["month"]))
    except Exception as e:
        return error_response("Failed to generate billings", 500, _details(e))


@billing_bp.route("/mark-overdue", methods=["POST"])
@require_admin
def mark_overdue():
    """Body (optional): { "today": "2025-11-02" }"""
    try:
        data = request.get_json(silent=True) or {}
        try:
            today = parse_date(data.get("today"))
        except ValueError:
            return error_response("Invalid date", 400)
        return result_response(billing_service.mark_overdue_billings(today))
    except Exception as e:
        return error_response("Failed to update overdue billings", 500, _details(e))
