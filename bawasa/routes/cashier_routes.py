"""
Cashier Routes
Cashier portal: dashboard, bill lookup, payments and transactions
"""
from flask import Blueprint, Response, jsonify, request

from bawasa.auth.middleware import get_current_user, require_cashier
from bawasa.config import DEBUG
from bawasa.services.billing_service import billing_service
from bawasa.services.export_service import export_service
from bawasa.services.payment_service import payment_service
from bawasa.utils import error_response, result_response

cashier_bp = Blueprint("cashier", __name__, url_prefix="/api/cashier")


def _details(e: Exception) -> dict:
    return {"details": str(e) if DEBUG else None}


@cashier_bp.route("/dashboard", methods=["GET"])
@require_cashier
def dashboard():
    try:
        return jsonify({"success": True, "data": payment_service.get_cashier_dashboard()}), 200
    except Exception as e:
        return error_response("Failed to load cashier dashboard", 500, _details(e))


@cashier_bp.route("/billings/search", methods=["GET"])
@require_cashier
def search_billings():
    """Unsettled bills by consumer name, e-mail or meter number. Query: ?q="""
    try:
        query = request.args.get("q", "")
        if not query.strip():
            return error_response("Search query is required", 400)
        billings = billing_service.search_billings(query)
        return jsonify({"success": True, "data": billings}), 200
    except Exception as e:
        return error_response("Failed to search billings", 500, _details(e))


@cashier_bp.route("/payments", methods=["POST"])
@require_cashier
def process_payment():
    """
    Body: { "billing_id": 1, "amount": 250.0, "payment_method": "cash" }
    """
    try:
        data = request.get_json(silent=True) or {}
        if not data.get("billing_id"):
            return error_response("billing_id is required", 400)
        if data.get("amount") is None:
            return error_response("amount is required", 400)

        result = payment_service.process_payment(
            data["billing_id"],
            data["amount"],
            get_current_user()["account_id"],
            data.get("payment_method", "cash"),
        )
        return result_response(result, 201)
    except Exception as e:
        return error_response("Failed to process payment", 500, _details(e))


@cashier_bp.route("/transactions", methods=["GET"])
@require_cashier
def transactions():
    """Query: ?mine=true for the signed-in cashier only, &limit="""
    try:
        account_id = get_current_user()["account_id"] if request.args.get("mine", "").lower() == "true" else None
        data = payment_service.get_transactions(account_id, request.args.get("limit", type=int))
        return jsonify({"success": True, "data": data}), 200
    except Exception as e:
        return error_response("Failed to fetch transactions", 500, _details(e))


@cashier_bp.route("/transactions/export", methods=["GET"])
@require_cashier
def export_transactions():
    try:
        filename, content = export_service.export_transactions()
        return Response(
            content,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    except Exception as e:
        return error_response("Export failed", 500, _details(e))
