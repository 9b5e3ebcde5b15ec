from conftest import PASSWORD, make_admin, make_cashier, make_consumer, make_meter_reader

from bawasa.auth.jwt_utils import get_account_id_from_token, get_role_from_token, verify_token
from bawasa.database.models import AccountRole
from bawasa.services.account_service import INVALID_CREDENTIALS, RESET_SUCCESS, SUSPENDED_CASHIER
from bawasa.services.staff_service import cashier_service


def test_admin_login(client):
    admin = make_admin()

    response = client.post("/api/auth/login", json={"email": admin["email"], "password": PASSWORD})

    assert response.status_code == 200
    body = response.get_json()
    assert body["user"]["role"] == "admin"
    assert get_role_from_token(body["token"]) == AccountRole.ADMIN
    assert get_account_id_from_token(body["token"]) == admin["account_id"]


def test_login_rejects_bad_password(client):
    admin = make_admin()
    response = client.post("/api/auth/login", json={"email": admin["email"], "password": "wrong-password"})
    assert response.status_code == 401


def test_login_requires_both_fields(client):
    assert client.post("/api/auth/login", json={"email": "a@b.co"}).status_code == 400


def test_consumers_use_the_mobile_flow(client):
    consumer = make_consumer()
    response = client.post("/api/auth/login", json={"email": consumer["email"], "password": PASSWORD})
    assert response.status_code == 403


def test_cashier_login_and_suspension(client):
    cashier = make_cashier()

    ok = client.post("/api/auth/login", json={"email": cashier["email"], "password": PASSWORD})
    assert ok.status_code == 200
    assert ok.get_json()["user"]["cashier"]["employee_id"] == "CASH-001"

    cashier_service.update_cashier_status(cashier["id"], "suspended")
    blocked = client.post("/api/auth/login", json={"email": cashier["email"], "password": PASSWORD})
    assert blocked.status_code == 403
    assert blocked.get_json()["message"] == SUSPENDED_CASHIER


def test_mobile_verify(client):
    consumer = make_consumer()
    reader = make_meter_reader()

    response = client.post("/api/auth/verify", json={"email": consumer["email"], "password": PASSWORD})
    assert response.status_code == 200
    user = response.get_json()["user"]
    assert user["user_type"] == "consumer"
    assert user["consumer_id"] == consumer["id"]
    assert user["water_meter_no"] == "BWS-0001"

    response = client.post("/api/auth/verify", json={"email": reader["email"], "password": PASSWORD})
    assert response.get_json()["user"]["meter_reader_id"] == reader["id"]


def test_mobile_verify_failures_look_the_same(client):
    consumer = make_consumer()
    admin = make_admin()

    attempts = [
        {"email": consumer["email"], "password": "not-the-password"},
        {"email": "nobody@test.local", "password": PASSWORD},
        {"email": admin["email"], "password": PASSWORD},
    ]
    for attempt in attempts:
        response = client.post("/api/auth/verify", json=attempt)
        assert response.status_code == 401
        assert response.get_json()["message"] == INVALID_CREDENTIALS


def test_reset_password_does_not_reveal_accounts(client):
    consumer = make_consumer()

    known = client.post("/api/auth/reset-password", json={"email": consumer["email"], "newPassword": "fresh-pass"})
    unknown = client.post("/api/auth/reset-password", json={"email": "ghost@test.local", "newPassword": "fresh-pass"})

    assert known.status_code == unknown.status_code == 200
    assert known.get_json()["message"] == unknown.get_json()["message"] == RESET_SUCCESS

    verified = client.post("/api/auth/verify", json={"email": consumer["email"], "password": "fresh-pass"})
    assert verified.status_code == 200


def test_reset_password_minimum_length(client):
    response = client.post("/api/auth/reset-password", json={"email": "a@test.local", "newPassword": "123"})
    assert response.status_code == 400


def test_me_and_profile_update(client):
    cashier = make_cashier()

    me = client.get("/api/auth/me", headers=cashier["headers"])
    assert me.status_code == 200
    assert me.get_json()["cashier"]["employee_id"] == "CASH-001"
    assert "password" not in me.get_json()

    updated = client.put("/api/auth/update-profile", json={"mobile_no": "09171234567"}, headers=cashier["headers"])
    assert updated.get_json()["user"]["mobile_no"] == "09171234567"


def test_change_password(client):
    admin = make_admin()

    wrong = client.post(
        "/api/auth/change-password",
        json={"current_password": "nope-nope", "new_password": "another1"},
        headers=admin["headers"],
    )
    assert wrong.status_code == 400

    ok = client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "another1"},
        headers=admin["headers"],
    )
    assert ok.status_code == 200
    assert client.post("/api/auth/login", json={"email": admin["email"], "password": "another1"}).status_code == 200


def test_protected_routes_need_a_token(client):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401
    assert verify_token("garbage") is None
