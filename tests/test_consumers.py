from conftest import PASSWORD, make_admin, make_consumer, make_meter_reader, record_month

from bawasa.services.billing_service import billing_service
from bawasa.services.consumer_service import consumer_service


def test_create_consumer_conflicts():
    make_consumer("BWS-0001", email="juan@test.local")

    same_meter = consumer_service.create_consumer({
        "email": "other@test.local", "password": PASSWORD, "water_meter_no": "BWS-0001",
    })
    same_email = consumer_service.create_consumer({
        "email": "JUAN@test.local", "password": PASSWORD, "water_meter_no": "BWS-0002",
    })
    no_meter = consumer_service.create_consumer({"email": "x@test.local", "password": PASSWORD})
    short_password = consumer_service.create_consumer({
        "email": "y@test.local", "password": "123", "water_meter_no": "BWS-0003",
    })

    assert same_meter["error_code"] == "conflict"
    assert same_email["error_code"] == "conflict"
    assert no_meter["error_code"] == "invalid"
    assert short_password["error_code"] == "invalid"


def test_listing_carries_latest_billing_status():
    billed = make_consumer("BWS-0001")
    make_consumer("BWS-0002")
    billing_service.generate_billing_for_reading(record_month(billed["id"], 2025, 1, 10))
    consumer_service.update_latest_billing_status(billed["id"], "paid")

    by_meter = {c["water_meter_no"]: c for c in consumer_service.list_consumers()}

    assert by_meter["BWS-0001"]["status"] == "paid"
    assert by_meter["BWS-0001"]["latest_billing"]["amount_paid"] == 300
    assert by_meter["BWS-0001"]["latest_meter_reading"]["present_reading"] == 10
    assert by_meter["BWS-0002"]["status"] == "unpaid"
    assert by_meter["BWS-0002"]["latest_billing"] is None


def test_search_by_name_or_address():
    make_consumer("BWS-0001", full_name="Rosa Mendoza")
    make_consumer("BWS-0002", full_name="Carlos Garcia")

    assert [c["water_meter_no"] for c in consumer_service.search_consumers("mendoza")] == ["BWS-0001"]
    assert len(consumer_service.search_consumers("Anonang")) == 2
    assert consumer_service.search_consumers("nobody") == []


def test_update_and_delete():
    consumer = make_consumer("BWS-0001")
    make_consumer("BWS-0002")
    billing_service.generate_billing_for_reading(record_month(consumer["id"], 2025, 1, 10))

    taken = consumer_service.update_consumer(consumer["id"], {"water_meter_no": "BWS-0002"})
    assert taken["error_code"] == "conflict"

    updated = consumer_service.update_consumer(consumer["id"], {"registered_voter": True, "full_name": "New Name"})
    assert updated["consumer"]["registered_voter"] is True
    assert updated["consumer"]["account"]["full_name"] == "New Name"

    assert consumer_service.delete_consumer(consumer["id"])["success"]
    assert consumer_service.get_consumer(consumer["id"]) is None
    assert consumer_service.get_billing_history(consumer["id"]) == []
    assert consumer_service.delete_consumer(consumer["id"])["error_code"] == "not_found"


def test_admin_consumer_routes(client):
    admin = make_admin()

    created = client.post("/api/admin/consumers", json={
        "email": "new.consumer@test.local",
        "password": PASSWORD,
        "water_meter_no": "BWS-0100",
        "full_name": "Nena Villanueva",
        "registered_voter": True,
    }, headers=admin["headers"])
    assert created.status_code == 201
    consumer_id = created.get_json()["consumer"]["id"]

    listed = client.get("/api/admin/consumers?q=villanueva", headers=admin["headers"]).get_json()
    assert listed["count"] == 1

    suspended = client.post(f"/api/admin/consumers/{consumer_id}/suspend", headers=admin["headers"])
    assert suspended.get_json()["consumer"]["account"]["status"] == "suspended"

    missing = client.put(f"/api/admin/consumers/{consumer_id}/billing-status", json={"status": "paid"}, headers=admin["headers"])
    assert missing.status_code == 404

    assert client.get("/api/admin/consumers/4242", headers=admin["headers"]).status_code == 404


def test_staff_routes(client):
    admin = make_admin()

    reader = client.post("/api/admin/meter-readers", json={
        "email": "field@test.local", "password": PASSWORD, "full_name": "Field Reader",
    }, headers=admin["headers"])
    assert reader.status_code == 201
    reader_id = reader.get_json()["meter_reader"]["id"]

    suspended = client.post(f"/api/admin/meter-readers/{reader_id}/suspend", headers=admin["headers"]).get_json()
    assert suspended["meter_reader"]["status"] == "suspended"
    assert suspended["meter_reader"]["account"]["status"] == "suspended"

    cashier = client.post("/api/admin/cashiers", json={
        "email": "till@test.local", "password": PASSWORD, "employee_id": "CASH-009",
    }, headers=admin["headers"])
    assert cashier.status_code == 201
    cashier_id = cashier.get_json()["cashier"]["id"]

    duplicate = client.post("/api/admin/cashiers", json={
        "email": "till2@test.local", "password": PASSWORD, "employee_id": "CASH-009",
    }, headers=admin["headers"])
    assert duplicate.status_code == 409

    bad_status = client.put(f"/api/admin/cashiers/{cashier_id}/status", json={"status": "fired"}, headers=admin["headers"])
    assert bad_status.status_code == 400


def test_account_listing(client):
    admin = make_admin()
    make_consumer()
    make_meter_reader()

    consumers = client.get("/api/admin/accounts?role=consumer", headers=admin["headers"]).get_json()["data"]
    assert len(consumers) == 1
    assert consumers[0]["display_status"] == "pending"

    assert client.get("/api/admin/accounts?role=janitor", headers=admin["headers"]).status_code == 400


def test_consumer_self_service(client):
    consumer = make_consumer()
    billing_service.generate_billing_for_reading(record_month(consumer["id"], 2025, 1, 10))

    billings = client.get("/api/consumer/billings", headers=consumer["headers"]).get_json()["data"]
    assert billings[0]["billing_month"] == "January 2025"

    readings = client.get("/api/consumer/meter-readings", headers=consumer["headers"]).get_json()["data"]
    assert readings[0]["present_reading"] == 10

    reported = client.post("/api/consumer/issues", json={
        "issue_title": "Leaking pipe",
        "issue_type": "leak",
        "priority": "high",
    }, headers=consumer["headers"])
    assert reported.status_code == 201

    issues = client.get("/api/consumer/issues", headers=consumer["headers"]).get_json()["data"]
    assert issues[0]["issue_title"] == "Leaking pipe"
