from datetime import date

from conftest import make_admin, make_cashier, make_consumer, record_month

from bawasa.services.billing_service import billing_service
from bawasa.services.payment_service import payment_service
from bawasa.services.staff_service import cashier_service


def _billing(consumer_id, present=10, year=2025, month=1):
    return billing_service.generate_billing_for_reading(record_month(consumer_id, year, month, present))["billing"]


def test_partial_then_full_payment():
    consumer = make_consumer()
    cashier = make_cashier()
    billing = _billing(consumer["id"])

    first = payment_service.process_payment(billing["id"], 120, cashier["account_id"], "gcash")
    assert first["success"]
    assert first["billing"]["payment_status"] == "partial"
    assert first["billing"]["amount_paid"] == 120
    assert first["transaction"]["balance_after"] == 180
    assert first["transaction"]["payment_method"] == "gcash"
    assert first["transaction"]["cashier_employee_id"] == "CASH-001"

    second = payment_service.process_payment(billing["id"], 180, cashier["account_id"])
    assert second["billing"]["payment_status"] == "paid"
    assert second["billing"]["amount_paid"] == 300
    assert second["billing"]["outstanding_balance"] == 0

    again = payment_service.process_payment(billing["id"], 1, cashier["account_id"])
    assert again["error_code"] == "conflict"

    history = payment_service.get_billing_transactions(billing["id"])
    assert [t["status_after"] for t in history] == ["partial", "paid"]


def test_amount_validation():
    consumer = make_consumer()
    cashier = make_cashier()
    billing = _billing(consumer["id"])

    assert payment_service.process_payment(billing["id"], 0, cashier["account_id"])["error_code"] == "invalid"
    assert payment_service.process_payment(billing["id"], -5, cashier["account_id"])["error_code"] == "invalid"
    assert payment_service.process_payment(billing["id"], "abc", cashier["account_id"])["error_code"] == "invalid"
    assert payment_service.process_payment(billing["id"], 300.01, cashier["account_id"])["error_code"] == "invalid"
    assert payment_service.process_payment(billing["id"], 10, cashier["account_id"], "crypto")["error_code"] == "invalid"
    assert payment_service.process_payment(4242, 10, cashier["account_id"])["error_code"] == "not_found"


def test_overdue_penalty_is_collectable():
    consumer = make_consumer()
    cashier = make_cashier()
    billing = _billing(consumer["id"])
    billing_service.mark_overdue_billings(date(2025, 3, 1))

    result = payment_service.process_payment(billing["id"], 315, cashier["account_id"])

    assert result["success"]
    assert result["billing"]["payment_status"] == "paid"


def test_inactive_cashier_cannot_collect():
    consumer = make_consumer()
    cashier = make_cashier()
    billing = _billing(consumer["id"])
    cashier_service.update_cashier_status(cashier["id"], "suspended")

    result = payment_service.process_payment(billing["id"], 50, cashier["account_id"])
    assert result["error_code"] == "forbidden"


def test_admin_may_collect():
    consumer = make_consumer()
    admin = make_admin()
    billing = _billing(consumer["id"])

    result = payment_service.process_payment(billing["id"], 300, admin["account_id"])

    assert result["success"]
    assert result["transaction"]["cashier_id"] is None


def test_cashier_dashboard():
    first = make_consumer("BWS-0001")
    second = make_consumer("BWS-0002")
    cashier = make_cashier()
    paid = _billing(first["id"])
    _billing(second["id"], present=5)
    payment_service.process_payment(paid["id"], 300, cashier["account_id"])

    dashboard = payment_service.get_cashier_dashboard()

    assert dashboard["all_transactions"] == 1
    assert dashboard["all_revenue"] == 300
    assert dashboard["pending_bills"] == 1
    assert dashboard["completed_bills"] == 1
    assert dashboard["recent_payments"][0]["consumer"]["water_meter_no"] == "BWS-0001"


def test_cashier_routes(client):
    consumer = make_consumer(full_name="Lorna Bautista")
    cashier = make_cashier()
    billing = _billing(consumer["id"])

    found = client.get("/api/cashier/billings/search?q=bautista", headers=cashier["headers"])
    assert found.status_code == 200
    assert [b["id"] for b in found.get_json()["data"]] == [billing["id"]]

    assert client.get("/api/cashier/billings/search?q=", headers=cashier["headers"]).status_code == 400

    paid = client.post(
        "/api/cashier/payments",
        json={"billing_id": billing["id"], "amount": 300, "payment_method": "cash"},
        headers=cashier["headers"],
    )
    assert paid.status_code == 201

    overpaid = client.post(
        "/api/cashier/payments",
        json={"billing_id": billing["id"], "amount": 10},
        headers=cashier["headers"],
    )
    assert overpaid.status_code == 409

    mine = client.get("/api/cashier/transactions?mine=true", headers=cashier["headers"]).get_json()["data"]
    assert len(mine) == 1
    assert mine[0]["consumer_name"] == "Lorna Bautista"

    export = client.get("/api/cashier/transactions/export", headers=cashier["headers"])
    assert export.status_code == 200
    assert export.mimetype == "text/csv"

    # Consumers have no access to the cashier portal
    assert client.get("/api/cashier/dashboard", headers=consumer["headers"]).status_code == 403
