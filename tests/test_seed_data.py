from datetime import date

from conftest import make_admin

from bawasa.database.db import get_db
from bawasa.database.models import Billing, MeterReading
from bawasa.database.seed_data import generate_email, month_starts, seed_all
from bawasa.services.billing_calculator import calculate_billing


def test_generate_email():
    assert generate_email("ANA REYES") == "ana.reyes@bawasa.local"
    assert generate_email("Juan  Dela Cruz") == "juan.dela.cruz@bawasa.local"


def test_month_starts_cross_the_year():
    assert month_starts(date(2025, 2, 14), 3) == [date(2024, 11, 1), date(2024, 12, 1), date(2025, 1, 1)]


def test_seed_is_repeatable():
    first = seed_all(today=date(2025, 6, 15))

    assert first["accounts_created"] == 8
    assert first["consumers_created"] == 5
    assert first["meter_readings"] == 60
    assert first["billings"] == 60

    second = seed_all(today=date(2025, 6, 15))
    assert second["accounts_created"] == 0
    assert second["meter_readings"] == 0


def test_seeded_bills_follow_the_calculator():
    seed_all(today=date(2025, 6, 15))

    with get_db() as db:
        readings = db.query(MeterReading).order_by(MeterReading.consumer_id, MeterReading.reading_date).all()
        for reading in readings:
            billing = db.query(Billing).filter(Billing.meter_reading_id == reading.id).one()
            expected = calculate_billing(
                reading.consumption_cubic_meters,
                is_registered_voter=bool(reading.consumer.registered_voter),
                account_created_at=reading.consumer.account.created_at,
                today=reading.reading_date,
            )
            assert billing.amount_current_billing == expected.amount_current_billing
            assert billing.total_amount_due >= billing.amount_current_billing

        # Each month continues from the last one
        by_consumer = {}
        for reading in readings:
            if reading.consumer_id in by_consumer:
                assert reading.previous_reading == by_consumer[reading.consumer_id]
            by_consumer[reading.consumer_id] = reading.present_reading


def test_dry_run_writes_nothing():
    summary = seed_all(dry_run=True, today=date(2025, 6, 15))

    assert summary["dry_run"] is True
    assert summary["billings"] == 60
    with get_db() as db:
        assert db.query(MeterReading).count() == 0


def test_seed_route(client):
    admin = make_admin()

    response = client.post("/api/seed", json={"dryRun": True}, headers=admin["headers"])

    assert response.status_code == 200
    assert response.get_json()["dry_run"] is True
