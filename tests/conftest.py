import os
import tempfile

# Settings are read at import time, so the environment goes first
_DB_DIR = tempfile.mkdtemp(prefix="bawasa-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'bawasa_test.db')}"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DEBUG"] = "true"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"

from datetime import date, datetime  # noqa: E402

import pytest  # noqa: E402

from bawasa.app import app as flask_app  # noqa: E402
from bawasa.auth.jwt_utils import create_token  # noqa: E402
from bawasa.database.db import Base, engine, get_db  # noqa: E402
from bawasa.database.models import AccountRole, Consumer, MeterReading  # noqa: E402
from bawasa.services.account_service import build_account  # noqa: E402
from bawasa.services.consumer_service import consumer_service  # noqa: E402
from bawasa.services.meter_reading_service import meter_reading_service  # noqa: E402
from bawasa.services.staff_service import cashier_service, meter_reader_service  # noqa: E402

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def clean_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    flask_app.config["TESTING"] = True
    with flask_app.test_client() as test_client:
        yield test_client


def auth_headers(account_id: int, email: str, role: AccountRole) -> dict:
    return {"Authorization": f"Bearer {create_token(account_id, email, role)}"}


def set_account_created_at(consumer_id: int, created_at: datetime):
    with get_db() as db:
        consumer = db.query(Consumer).filter(Consumer.id == consumer_id).first()
        consumer.account.created_at = created_at


def make_admin(email: str = "admin@test.local") -> dict:
    with get_db() as db:
        account = build_account(email, PASSWORD, AccountRole.ADMIN, full_name="Test Admin")
        db.add(account)
        db.flush()
        account_id = account.id
    return {"account_id": account_id, "email": email, "headers": auth_headers(account_id, email, AccountRole.ADMIN)}


def make_consumer(
    meter_no: str = "BWS-0001",
    email: str = None,
    full_name: str = "Juan Dela Cruz",
    registered_voter: bool = False,
    created_at: datetime = None,
) -> dict:
    email = email or f"{meter_no.lower()}@test.local"
    result = consumer_service.create_consumer({
        "email": email,
        "password": PASSWORD,
        "water_meter_no": meter_no,
        "full_name": full_name,
        "full_address": "Purok 1, Barangay Anonang",
        "registered_voter": registered_voter,
    })
    assert result["success"], result
    consumer = result["consumer"]
    if created_at:
        set_account_created_at(consumer["id"], created_at)
    return {
        "id": consumer["id"],
        "account_id": consumer["account_id"],
        "email": email,
        "headers": auth_headers(consumer["account_id"], email, AccountRole.CONSUMER),
    }


def make_meter_reader(email: str = "reader@test.local") -> dict:
    result = meter_reader_service.create_meter_reader({
        "email": email,
        "password": PASSWORD,
        "full_name": "Pedro Reader",
    })
    assert result["success"], result
    reader = result["meter_reader"]
    return {
        "id": reader["id"],
        "account_id": reader["reader_id"],
        "email": email,
        "headers": auth_headers(reader["reader_id"], email, AccountRole.METER_READER),
    }


def make_cashier(email: str = "cashier@test.local", employee_id: str = "CASH-001") -> dict:
    result = cashier_service.create_cashier({
        "email": email,
        "password": PASSWORD,
        "employee_id": employee_id,
        "full_name": "Maria Cashier",
    })
    assert result["success"], result
    cashier = result["cashier"]
    return {
        "id": cashier["id"],
        "account_id": cashier["account_id"],
        "email": email,
        "headers": auth_headers(cashier["account_id"], email, AccountRole.CASHIER),
    }


def reading_for(consumer_id: int, year: int, month: int) -> dict:
    with get_db() as db:
        reading = db.query(MeterReading).filter(
            MeterReading.consumer_id == consumer_id,
            MeterReading.reading_date == date(year, month, 1),
        ).first()
        return {"id": reading.id, "previous_reading": reading.previous_reading} if reading else None


def record_month(consumer_id: int, year: int, month: int, present_reading: float) -> int:
    """Opens the month's readings and records the consumer's value; returns the reading id"""
    meter_reading_service.create_empty_readings_for_month(year, month)
    reading = reading_for(consumer_id, year, month)
    result = meter_reading_service.record_present_reading(reading["id"], present_reading)
    assert result["success"], result
    return reading["id"]
