import uuid
from datetime import timedelta

from staffhub.services.time_rules import utcnow


def _task_body(staff_id=None, **overrides):
    start = utcnow() + timedelta(days=1)
    body = {
        "title": "Inspect generator",
        "description": "Quarterly check",
        "location": "5 Admiralty Way, Lekki",
        "latitude": 6.4474,
        "longitude": 3.4723,
        "contactPerson": "Mr. Bello",
        "scheduledStartTime": start.isoformat(),
        "scheduledEndTime": (start + timedelta(hours=2)).isoformat(),
        "totalHours": 2,
    }
    if staff_id:
        body["staffId"] = str(staff_id)
    body.update(overrides)
    return body


def test_create_task_with_assignee(client, headers, admin, staff):
    r = client.post("/admin/tasks", json=_task_body(staff.id), headers=headers(admin))
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "assigned"
    assert body["assignedTo"]["id"] == str(staff.id)
    assert body["coordinates"] == {"latitude": 6.4474, "longitude": 3.4723}
    assert body["hoursSpent"] == 0


def test_create_task_without_assignee_is_pending(client, headers, admin):
    r = client.post("/admin/tasks", json=_task_body(), headers=headers(admin))
    assert r.status_code == 201
    assert r.json()["status"] == "pending"
    assert r.json()["assignedTo"] is None


def test_create_task_validation(client, headers, admin):
    h = headers(admin)
    start = utcnow()
    bad_schedule = _task_body(scheduledEndTime=(start - timedelta(hours=1)).isoformat(), scheduledStartTime=start.isoformat())
    assert client.post("/admin/tasks", json=bad_schedule, headers=h).status_code == 422
    assert client.post("/admin/tasks", json=_task_body(totalHours=0.05), headers=h).status_code == 422
    assert client.post("/admin/tasks", json=_task_body(latitude=95), headers=h).status_code == 422
    assert client.post("/admin/tasks", json=_task_body(staff_id=uuid.uuid4()), headers=h).status_code == 404


def test_staff_cannot_manage_tasks(client, headers, staff):
    assert client.post("/admin/tasks", json=_task_body(), headers=headers(staff)).status_code == 403
    assert client.get("/admin/tasks", headers=headers(staff)).status_code == 403


def test_list_and_filter(client, headers, admin, make_task, staff):
    make_task(assignee=staff)
    make_task()
    h = headers(admin)
    assert len(client.get("/admin/tasks", headers=h).json()) == 2
    pending = client.get("/admin/tasks", params={"status": "pending"}, headers=h).json()
    assert [t["status"] for t in pending] == ["pending"]


def test_assigning_pending_task(client, headers, admin, make_task, staff):
    task = make_task()
    r = client.put(f"/admin/tasks/{task.id}", json={"staffId": str(staff.id)}, headers=headers(admin))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "assigned"


def test_status_transitions(client, headers, admin, make_task):
    task = make_task()
    h = headers(admin)
    r = client.put(f"/admin/tasks/{task.id}", json={"status": "completed"}, headers=h)
    assert r.status_code == 400
    r = client.put(f"/admin/tasks/{task.id}", json={"status": "cancelled"}, headers=h)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    r = client.put(f"/admin/tasks/{task.id}", json={"status": "pending"}, headers=h)
    assert r.status_code == 400


def test_update_rejects_inverted_schedule(client, headers, admin, make_task):
    task = make_task()
    past = (utcnow() - timedelta(days=2)).isoformat()
    r = client.put(f"/admin/tasks/{task.id}", json={"scheduledEndTime": past}, headers=headers(admin))
    assert r.status_code == 400


def test_get_and_delete(client, headers, admin, make_task):
    task = make_task()
    h = headers(admin)
    assert client.get("/admin/tasks/bogus", headers=h).status_code == 400
    assert client.get(f"/admin/tasks/{task.id}", headers=h).status_code == 200
    assert client.delete(f"/admin/tasks/{task.id}", headers=h).status_code == 200
    assert client.get(f"/admin/tasks/{task.id}", headers=h).status_code == 404


def test_override_endpoints(client, headers, admin, make_task, staff):
    task = make_task(assignee=staff, start=utcnow() - timedelta(hours=5))
    h = headers(admin)

    r = client.post(f"/admin/tasks/{task.id}/override-clock-out", json={"reason": "x", "workSummary": "y"}, headers=h)
    assert r.status_code == 400

    r = client.post(f"/admin/tasks/{task.id}/override-clock-in", json={"reason": "Phone died"}, headers=h)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "in-progress"
    assert r.json()["overrideClockIn"] is True

    r = client.post(f"/admin/tasks/{task.id}/override-clock-in", json={"reason": "again"}, headers=h)
    assert r.status_code == 409

    r = client.post(
        f"/admin/tasks/{task.id}/override-clock-out",
        json={"reason": "Left without clocking out", "workSummary": "Generator serviced"},
        headers=h,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "completed"
    assert body["overrideClockOut"] is True
    assert "Left without clocking out" in body["overrideReason"]


def test_staff_accounts(client, headers, admin):
    h = headers(admin)
    r = client.post("/admin/staff", json={"name": "New Hire", "email": "New.Hire@Example.com", "password": "s3cretpass"}, headers=h)
    assert r.status_code == 201, r.text
    staff_id = r.json()["id"]
    assert r.json()["email"] == "new.hire@example.com"
    assert r.json()["isActive"] is True

    dup = client.post("/admin/staff", json={"name": "Dup", "email": "new.hire@example.com", "password": "s3cretpass"}, headers=h)
    assert dup.status_code == 409

    assert [s["id"] for s in client.get("/admin/staff", headers=h).json()] == [staff_id]

    r = client.put(f"/admin/staff/{staff_id}/toggle-status", headers=h)
    assert r.json()["isActive"] is False

    login = client.post("/auth/login", json={"email": "new.hire@example.com", "password": "s3cretpass"})
    assert login.status_code == 403


def test_activity_log(client, headers, admin, make_task, staff):
    task = make_task(assignee=staff)
    client.post(
        f"/tasks/{task.id}/clock-in",
        json={"latitude": 6.5244, "longitude": 3.3792},
        headers=headers(staff),
    )
    r = client.get("/admin/activity-logs", params={"userId": str(staff.id)}, headers=headers(admin))
    assert r.status_code == 200
    logs = r.json()
    assert [entry["activityType"] for entry in logs] == ["clock_in"]
    assert logs[0]["context"]["task_id"] == str(task.id)

    r = client.get("/admin/activity-logs", params={"activityType": "clock_out"}, headers=headers(admin))
    assert r.json() == []


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_update_rejects_null_title(client, headers, admin, make_task):
    task = make_task()
    h = headers(admin)
    assert client.put(f"/admin/tasks/{task.id}", json={"title": None}, headers=h).status_code == 422
    assert client.put(f"/admin/tasks/{task.id}", json={"title": "   "}, headers=h).status_code == 422
    r = client.put(f"/admin/tasks/{task.id}", json={"title": " Rewire panel "}, headers=h)
    assert r.status_code == 200
    assert r.json()["title"] == "Rewire panel"
