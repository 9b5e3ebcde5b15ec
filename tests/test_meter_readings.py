from conftest import make_admin, make_consumer, make_meter_reader, reading_for, record_month

from bawasa.services.assignment_service import assignment_service
from bawasa.services.billing_service import billing_service
from bawasa.services.meter_reading_service import (
    meter_change_start,
    meter_reading_service,
    next_previous_reading,
)


def test_monthly_readings_start_from_last_present_value():
    consumer = make_consumer()
    record_month(consumer["id"], 2025, 1, 42)

    result = meter_reading_service.create_empty_readings_for_month(2025, 2)

    assert result["success"]
    assert result["created"] == 1
    february = result["readings"][0]
    assert february["previous_reading"] == 42
    assert february["present_reading"] == 42
    assert february["is_recorded"] is False
    assert february["reading_assigned"] is False


def test_monthly_readings_are_idempotent():
    make_consumer("BWS-0001")
    make_consumer("BWS-0002")

    first = meter_reading_service.create_empty_readings_for_month(2025, 3)
    second = meter_reading_service.create_empty_readings_for_month(2025, 3)

    assert first["created"] == 2
    assert second["created"] == 0
    assert second["skipped"] == 2
    assert len(meter_reading_service.get_readings_for_month(2025, 3)) == 2


def test_first_reading_starts_at_zero():
    consumer = make_consumer()
    meter_reading_service.create_empty_readings_for_month(2025, 1)
    assert reading_for(consumer["id"], 2025, 1)["previous_reading"] == 0


def test_invalid_month_rejected():
    result = meter_reading_service.create_empty_readings_for_month(2025, 13)
    assert not result["success"]
    assert result["error_code"] == "invalid"


def test_present_reading_below_previous_rejected():
    consumer = make_consumer()
    record_month(consumer["id"], 2025, 1, 50)
    meter_reading_service.create_empty_readings_for_month(2025, 2)
    reading = reading_for(consumer["id"], 2025, 2)

    result = meter_reading_service.record_present_reading(reading["id"], 49)

    assert not result["success"]
    assert result["error_code"] == "invalid"


def test_recording_computes_consumption():
    consumer = make_consumer()
    record_month(consumer["id"], 2025, 1, 20)
    reading_id = record_month(consumer["id"], 2025, 2, 35.5)

    reading = meter_reading_service.get_reading(reading_id)
    assert reading["consumption_cubic_meters"] == 15.5
    assert reading["is_recorded"] is True
    assert reading["consumer"]["water_meter_no"] == "BWS-0001"


def test_billed_reading_cannot_be_rerecorded():
    consumer = make_consumer()
    reading_id = record_month(consumer["id"], 2025, 1, 12)
    assert billing_service.generate_billing_for_reading(reading_id)["success"]

    result = meter_reading_service.record_present_reading(reading_id, 15)
    assert result["error_code"] == "conflict"


def test_reader_must_hold_the_assignment():
    consumer = make_consumer()
    reader = make_meter_reader()
    other = make_meter_reader("other.reader@test.local")
    meter_reading_service.create_empty_readings_for_month(2025, 1)
    reading = reading_for(consumer["id"], 2025, 1)
    assignment_service.assign_consumers(reader["id"], [consumer["id"]])

    refused = meter_reading_service.record_present_reading(
        reading["id"], 10, meter_reader_account_id=other["account_id"]
    )
    assert refused["error_code"] == "forbidden"

    accepted = meter_reading_service.record_present_reading(
        reading["id"], 10, meter_reader_account_id=reader["account_id"]
    )
    assert accepted["success"]
    assignments = assignment_service.get_assignments(reader["id"])
    assert assignments[0]["status"] == "completed"
    assert assignments[0]["meter_reading_id"] == reading["id"]


def test_meter_change_marker_parsing():
    assert meter_change_start(None) is None
    assert meter_change_start("Regular reading") is None
    assert meter_change_start("METER CHANGE: broken. [METER_CHANGED:12.5]") == 12.5
    assert meter_change_start("[METER_CHANGED]") == 0.0
    assert next_previous_reading(None) == 0.0


def test_meter_change_reseeds_next_month():
    consumer = make_consumer()
    record_month(consumer["id"], 2025, 1, 100)
    meter_reading_service.create_empty_readings_for_month(2025, 2)

    result = meter_reading_service.change_meter(
        consumer["id"], 0, "2025-02-15", "Meter cracked", reading_before_change=112
    )

    assert result["success"], result
    summary = result["summary"]
    assert summary["previous_reading"] == 100
    assert summary["final_reading_before_change"] == 112
    assert summary["consumption_to_bill"] == 12
    assert "[METER_CHANGED:0.0]" in result["reading"]["remarks"]
    # The February placeholder became the old meter's final reading
    assert result["reading"]["id"] == reading_for(consumer["id"], 2025, 2)["id"]
    assert result["reading"]["reading_assigned"] is False

    billed = billing_service.generate_billings_for_month(2025, 2)
    assert billed["created"] == 1
    assert billed["billings"][0]["amount_current_billing"] == 360

    march = meter_reading_service.create_empty_readings_for_month(2025, 3)
    assert march["readings"][0]["previous_reading"] == 0


def test_meter_change_without_placeholder_inserts_reading():
    consumer = make_consumer()
    record_month(consumer["id"], 2025, 1, 30)

    result = meter_reading_service.change_meter(consumer["id"], 5, "2025-01-20", "Upgrade")

    assert result["success"]
    assert result["reading"]["reading_date"] == "2025-01-20"
    assert result["summary"]["consumption_to_bill"] == 0

    history = meter_reading_service.get_meter_change_history(consumer["id"])
    assert len(history) == 1
    assert history[0]["new_meter_starts_at"] == 5
    assert history[0]["reason"] == "Upgrade"


def test_meter_change_validation():
    consumer = make_consumer()

    assert meter_reading_service.change_meter(consumer["id"], -1, "2025-01-01", "x")["error_code"] == "invalid"
    assert meter_reading_service.change_meter(consumer["id"], 0, "not-a-date", "x")["error_code"] == "invalid"
    assert meter_reading_service.change_meter(consumer["id"], 0, "2025-01-01", "  ")["error_code"] == "invalid"
    assert meter_reading_service.change_meter(9999, 0, "2025-01-01", "x")["error_code"] == "not_found"


def test_reading_routes(client):
    admin = make_admin()
    consumer = make_consumer()
    reader = make_meter_reader()

    created = client.post("/api/meter-readings/monthly", json={"year": 2025, "month": 4}, headers=admin["headers"])
    assert created.status_code == 201
    reading_id = created.get_json()["readings"][0]["id"]

    # Readers cannot open a billing cycle
    assert client.post("/api/meter-readings/monthly", json={}, headers=reader["headers"]).status_code == 403

    assignment_service.assign_consumers(reader["id"], [consumer["id"]])
    recorded = client.post(
        f"/api/meter-readings/{reading_id}/record",
        json={"present_reading": 9, "meter_image": "meter/4.jpg"},
        headers=reader["headers"],
    )
    assert recorded.status_code == 200
    assert recorded.get_json()["reading"]["consumption_cubic_meters"] == 9

    stats = client.get("/api/meter-readings/stats", headers=admin["headers"]).get_json()["data"]
    assert stats["total"] == 1
    assert stats["recorded"] == 1

    bad_status = client.get("/api/meter-readings?status=bogus", headers=admin["headers"])
    assert bad_status.status_code == 400

    by_month = client.get("/api/meter-readings?year=2025&month=4", headers=admin["headers"])
    assert by_month.get_json()["count"] == 1
    assert client.get("/api/meter-readings?year=abc&month=1", headers=admin["headers"]).status_code == 400
    assert client.get("/api/meter-readings?year=2025&month=13", headers=admin["headers"]).status_code == 400


def test_change_meter_route(client):
    admin = make_admin()
    consumer = make_consumer()

    response = client.post("/api/admin/change-meter", json={
        "consumerId": str(consumer["id"]),
        "newStartingReading": 0,
        "effectiveDate": "2025-05-02",
        "reason": "Stuck dial",
    }, headers=admin["headers"])
    assert response.status_code == 200

    history = client.get(f"/api/admin/consumers/{consumer['id']}/meter-changes", headers=admin["headers"])
    assert history.get_json()["data"][0]["reason"] == "Stuck dial"
