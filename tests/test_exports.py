import csv
import io

import pytest
from conftest import make_admin, make_cashier, make_consumer, record_month

from bawasa.services.billing_service import billing_service
from bawasa.services.export_service import UTF8_BOM, export_service, to_csv
from bawasa.services.issue_service import issue_service
from bawasa.services.payment_service import payment_service


def _rows(content):
    assert content.startswith(UTF8_BOM)
    return list(csv.reader(io.StringIO(content[len(UTF8_BOM):])))


def test_to_csv_quotes_separators():
    content = to_csv([{"A": 'say "hi"', "B": "x,y"}, {"A": None, "B": "line\nbreak"}], ["A", "B"])

    assert content.startswith(UTF8_BOM + "A,B\n")
    assert '"say ""hi"""' in content
    assert '"x,y"' in content
    assert _rows(content) == [["A", "B"], ['say "hi"', "x,y"], ["", "line\nbreak"]]


def test_billing_history_export():
    consumer = make_consumer(full_name="Gloria Lim")
    billing_service.generate_billing_for_reading(record_month(consumer["id"], 2025, 1, 10))

    filename, content = export_service.export_billing_history(consumer["id"])

    assert filename.startswith("billing_payment_history_Gloria_Lim_BWS_0001_")
    assert filename.endswith(".csv")
    rows = _rows(content)
    assert rows[0][:3] == ["Billing Month", "Due Date", "Amount Due"]
    assert rows[1][:5] == ["January 2025", "2025-02-01", "300.00", "0.00", "unpaid"]
    assert rows[1][5] == "N/A"


def test_issue_history_export_keeps_commas():
    consumer = make_consumer()
    issue_service.create_issue(consumer["id"], {"issue_title": "Leak, near gate", "description": "Big, loud"})

    _, content = export_service.export_issue_history(consumer["id"])

    rows = _rows(content)
    assert rows[1][2] == "Leak, near gate"
    assert rows[1][6] == "Big, loud"
    assert rows[1][8] == "Not assigned"


def test_reading_history_export():
    consumer = make_consumer()
    record_month(consumer["id"], 2025, 1, 8)

    _, content = export_service.export_meter_reading_history(consumer["id"])

    rows = _rows(content)
    assert rows[1][1] == "2025-01-01"
    assert rows[1][5] == "N/A"
    assert rows[1][8] == "No image"


def test_unknown_consumer():
    with pytest.raises(LookupError):
        export_service.export_billing_history(4242)


def test_transactions_export():
    consumer = make_consumer()
    cashier = make_cashier()
    billing = billing_service.generate_billing_for_reading(record_month(consumer["id"], 2025, 1, 10))["billing"]
    first = payment_service.process_payment(billing["id"], 100, cashier["account_id"])["transaction"]
    second = payment_service.process_payment(billing["id"], 200, cashier["account_id"])["transaction"]

    filename, content = export_service.export_transactions()

    assert filename.startswith("cashier_transactions_")
    rows = _rows(content)
    assert rows[0][:2] == ["Transaction ID", "Transaction Date"]
    assert len(rows) == 3
    assert [row[0] for row in rows[1:]] == [str(second["id"]), str(first["id"])]
    assert rows[1][4] == "BWS-0001"
    assert [row[6] for row in rows[1:]] == ["200.00", "100.00"]
    assert [row[9] for row in rows[1:]] == ["paid", "partial"]
    assert rows[2][8] == "200.00"
    assert rows[1][10] == "CASH-001"


def test_export_routes(client):
    admin = make_admin()
    consumer = make_consumer()

    response = client.get(f"/api/admin/consumers/{consumer['id']}/export/billings", headers=admin["headers"])
    assert response.status_code == 200
    assert response.mimetype == "text/csv"
    assert "attachment; filename=billing_payment_history_" in response.headers["Content-Disposition"]

    assert client.get(f"/api/admin/consumers/{consumer['id']}/export/unknown", headers=admin["headers"]).status_code == 400
    assert client.get("/api/admin/consumers/4242/export/issues", headers=admin["headers"]).status_code == 404
