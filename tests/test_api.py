def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_requires_identity(client):
    assert client.get("/api/users/me").status_code == 401


def test_me_includes_driver_lists(client, people, as_user):
    r = client.get("/api/users/me", headers=as_user(people["parent"]))

    assert r.status_code == 200
    body = r.json()
    assert body["role"] == "parent"
    assert body["managed_student_ids"] == [people["student"]]
    assert body["approved_drivers"] == {}
    assert body["declined_driver_ids"] == []


def test_approval_flow_over_http(client, people, as_user):
    driver, parent, student = people["driver"], people["parent"], people["student"]

    r = client.post("/api/rydz", json={"event_name": "Finals", "passenger_capacity": 2}, headers=as_user(driver))
    assert r.status_code == 201, r.text
    ryd_id = r.json()["data"]["id"]

    r = client.post(f"/api/rydz/{ryd_id}/join", json={}, headers=as_user(student))
    assert r.status_code == 200, r.text

    r = client.get("/api/parent/approvals", headers=as_user(parent))
    assert r.status_code == 200
    pending = r.json()["pending_approvals"]
    assert [(p["active_ryd_id"], p["student"]["uid"], p["driver"]["uid"]) for p in pending] == [(ryd_id, student, driver)]

    decision = {
        "student_user_id": student,
        "driver_id": driver,
        "active_ryd_id": ryd_id,
        "decision": "approve_permanently",
    }
    r = client.post("/api/parent/approvals", json=decision, headers=as_user(parent))
    assert r.status_code == 200, r.text
    assert r.json()["success"] is True

    r = client.post("/api/parent/approvals", json=decision, headers=as_user(parent))
    assert r.status_code == 409

    ryd = client.get(f"/api/rydz/{ryd_id}", headers=as_user(driver)).json()
    assert ryd["uids_pending_parental_approval"] == []
    assert ryd["passenger_manifest"][0]["status"] == "pending_driver_approval"

    me = client.get("/api/users/me", headers=as_user(parent)).json()
    assert me["approved_drivers"] == {str(driver): [student]}

    notes = client.get("/api/notifications", headers=as_user(driver)).json()
    assert [n["title"] for n in notes] == ["Ryd Request Forwarded"]

    r = client.post(
        f"/api/rydz/{ryd_id}/passengers",
        json={"passenger_user_id": student, "new_status": "confirmed_by_driver"},
        headers=as_user(driver),
    )
    assert r.status_code == 200, r.text


def test_decision_by_other_parent_is_forbidden(client, people, pending_ryd, make_user, as_user):
    from rydz import models as m

    other = make_user("Olive Other", role=m.UserRole.PARENT)
    decision = {
        "student_user_id": people["student"],
        "driver_id": people["driver"],
        "active_ryd_id": pending_ryd,
        "decision": "reject",
    }

    r = client.post("/api/parent/approvals", json=decision, headers=as_user(other.id))

    assert r.status_code == 403


def test_unknown_decision_is_unprocessable(client, people, pending_ryd, as_user):
    decision = {
        "student_user_id": people["student"],
        "driver_id": people["driver"],
        "active_ryd_id": pending_ryd,
        "decision": "approve_forever",
    }

    r = client.post("/api/parent/approvals", json=decision, headers=as_user(people["parent"]))

    assert r.status_code == 422


def test_driver_list_endpoints(client, people, as_user):
    parent, driver, student = people["parent"], people["driver"], people["student"]

    r = client.get("/api/parent/drivers/lookup", params={"email": "dana.driver@example.com"}, headers=as_user(parent))
    assert r.status_code == 200
    assert r.json()["driver"]["uid"] == driver

    r = client.post(
        "/api/parent/drivers/approve",
        json={"driver_email": "dana.driver@example.com", "student_ids": []},
        headers=as_user(parent),
    )
    assert r.status_code == 400

    r = client.post(
        "/api/parent/drivers/approve",
        json={"driver_email": "dana.driver@example.com", "student_ids": [student]},
        headers=as_user(parent),
    )
    assert r.status_code == 200

    r = client.post(
        "/api/parent/drivers",
        json={"driver_id": driver, "list_name": "declined", "action": "add"},
        headers=as_user(parent),
    )
    assert r.status_code == 200
    page = client.get("/api/parent/approvals", headers=as_user(parent)).json()
    assert page["approved_drivers"] == []
    assert [d["uid"] for d in page["declined_drivers"]] == [driver]

    r = client.delete(f"/api/parent/drivers/declined/{driver}", headers=as_user(parent))
    assert r.status_code == 200
    page = client.get("/api/parent/approvals", headers=as_user(parent)).json()
    assert page["declined_drivers"] == []

    r = client.get("/api/parent/drivers/lookup", params={"email": "nobody@example.com"}, headers=as_user(parent))
    assert r.status_code == 404


def test_family_endpoints(client, make_user, as_user):
    from rydz import models as m

    parent = make_user("Pat Parent", role=m.UserRole.PARENT)

    r = client.post("/api/family/students", json={"student_email": "kid@example.com"}, headers=as_user(parent.id))
    assert r.status_code == 200, r.text

    r = client.get("/api/family/students", headers=as_user(parent.id))
    assert [s["full_name"] for s in r.json()["data"]] == ["Invited User"]


def test_notification_endpoints(client, people, pending_ryd, as_user):
    parent = people["parent"]
    notes = client.get("/api/notifications", headers=as_user(parent)).json()
    assert [n["read"] for n in notes] == [False]

    r = client.post(f"/api/notifications/{notes[0]['id']}/read", headers=as_user(people["driver"]))
    assert r.status_code == 403

    r = client.post("/api/notifications/read-all", headers=as_user(parent))
    assert r.status_code == 200
    assert [n["read"] for n in client.get("/api/notifications", headers=as_user(parent)).json()] == [True]


def test_profile_update_is_self_only(client, people, as_user):
    r = client.patch(f"/api/users/{people['driver']}", json={"bio": "hi"}, headers=as_user(people["parent"]))
    assert r.status_code == 403

    r = client.patch(f"/api/users/{people['driver']}", json={"bio": "Safe driver"}, headers=as_user(people["driver"]))
    assert r.status_code == 200
    assert r.json()["bio"] == "Safe driver"
