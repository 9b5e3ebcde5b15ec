from conftest import make_admin, make_consumer

from bawasa.services.issue_service import issue_service


def _report(consumer_id, title="No water", priority="medium", issue_type="no_supply", **extra):
    data = {"issue_title": title, "priority": priority, "issue_type": issue_type, **extra}
    result = issue_service.create_issue(consumer_id, data)
    assert result["success"], result
    return result["issue"]


def test_create_issue_defaults():
    consumer = make_consumer(full_name="Lito Ramos")

    result = issue_service.create_issue(consumer["id"], {"issue_title": "Low pressure"})

    issue = result["issue"]
    assert issue["priority"] == "medium"
    assert issue["status"] == "open"
    assert issue["issue_images"] == []
    assert issue["reporter"]["full_name"] == "Lito Ramos"
    assert issue["reporter"]["water_meter_no"] == "BWS-0001"


def test_create_issue_validation():
    consumer = make_consumer()

    assert issue_service.create_issue(consumer["id"], {})["error_code"] == "invalid"
    assert issue_service.create_issue(consumer["id"], {"issue_title": "x", "priority": "urgent"})["error_code"] == "invalid"
    assert issue_service.create_issue(consumer["id"], {"issue_title": "x", "issue_images": "a.jpg"})["error_code"] == "invalid"
    assert issue_service.create_issue(4242, {"issue_title": "x"})["error_code"] == "not_found"


def test_images_round_trip_as_list():
    consumer = make_consumer()
    issue = _report(consumer["id"], issue_images=["issues/1.jpg", "issues/2.jpg"])
    assert issue_service.get_issue(issue["id"])["issue_images"] == ["issues/1.jpg", "issues/2.jpg"]


def test_filters_and_stats():
    consumer = make_consumer()
    _report(consumer["id"], "Burst pipe on main road", "high", "leak")
    _report(consumer["id"], "Dirty water", "low", "quality", description="Brown water since Monday")
    _report(consumer["id"], "Meter fogged", "low", None)

    assert [i["issue_title"] for i in issue_service.search_issues("monday")] == ["Dirty water"]
    assert len(issue_service.get_issues_by_priority("low")) == 2
    assert len(issue_service.get_issues_by_consumer(consumer["id"])) == 3

    stats = issue_service.get_issue_stats()
    assert stats["total"] == 3
    assert stats["high"] == 1
    assert stats["low"] == 2
    assert stats["medium"] == 0
    assert stats["by_type"] == {"leak": 1, "quality": 1, "Unknown": 1}


def test_status_update():
    consumer = make_consumer()
    issue = _report(consumer["id"])

    assert issue_service.update_issue_status(issue["id"], "resolved")["issue"]["status"] == "resolved"
    assert issue_service.update_issue_status(issue["id"], "fixed")["error_code"] == "invalid"
    assert issue_service.update_issue_status(4242, "closed")["error_code"] == "not_found"


def test_schedule_appends_note():
    consumer = make_consumer()
    issue = _report(consumer["id"], description="Pipe burst near the gate")

    result = issue_service.schedule_issue(issue["id"], "2025-10-20T09:30:00", technician="Tony", notes="Bring clamps")

    scheduled = result["issue"]
    assert scheduled["status"] == "assigned"
    assert scheduled["assigned_technician"] == "Tony"
    assert scheduled["description"].startswith("Pipe burst near the gate\n\n---\nSCHEDULED FIX:\n")
    assert "Date: Monday, October 20, 2025" in scheduled["description"]
    assert "Time: 09:30 AM" in scheduled["description"]
    assert "Technician: Tony" in scheduled["description"]
    assert scheduled["description"].endswith("Notes: Bring clamps")

    assert issue_service.schedule_issue(issue["id"], "someday")["error_code"] == "invalid"


def test_issue_routes(client):
    admin = make_admin()
    consumer = make_consumer()

    created = client.post("/api/issues", json={
        "consumer_id": consumer["id"], "issue_title": "Broken valve", "priority": "high",
    }, headers=admin["headers"])
    assert created.status_code == 201
    issue_id = created.get_json()["issue"]["id"]

    assert client.post("/api/issues", json={"issue_title": "x"}, headers=admin["headers"]).status_code == 400
    assert client.get("/api/issues?priority=high", headers=admin["headers"]).get_json()["count"] == 1

    scheduled = client.post(
        f"/api/issues/{issue_id}/schedule",
        json={"scheduled_date": "2025-11-03T14:00:00", "technician": "Dodong"},
        headers=admin["headers"],
    )
    assert scheduled.status_code == 200
    assert scheduled.get_json()["issue"]["status"] == "assigned"

    assert client.get("/api/issues/4242", headers=admin["headers"]).status_code == 404
    assert client.get("/api/issues", headers=consumer["headers"]).status_code == 403
