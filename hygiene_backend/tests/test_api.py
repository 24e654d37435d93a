from datetime import timedelta

from fastapi.testclient import TestClient

from conftest import PASSWORD, auth_headers
from hygiene_backend.app import app
from hygiene_backend.models import Complaint, Feedback, Sensor, SensorDataPoint
from hygiene_backend.rules.complaints import utcnow
from hygiene_backend.security import decode_access_token

client = TestClient(app)

complaint_item = {
    "title": "Broken Door Lock",
    "description": "The main entrance door lock gets stuck.",
    "category": "maintenance",
    "priority": "high",
    "location": {"building": "Main Building", "floor": "1st Floor"},
    "tags": ["door"],
}

sensor_item = {
    "name": "Waste Bin Level Monitor",
    "type": "bin-level",
    "device_id": "BIN001",
    "current_value": 85,
    "threshold_value": 80,
    "unit": "%",
    "location": {"building": "Main Building", "area": "Kitchen Area"},
    "battery_level": 45,
    "signal_strength": 78,
}


def create_complaint(headers, **overrides):
    r = client.post("/api/complaints", json={**complaint_item, **overrides}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["complaint"]


def create_sensor(headers, **overrides):
    r = client.post("/api/sensors", json={**sensor_item, **overrides}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["sensor"]


def resolved_complaint(user_headers, admin_headers):
    complaint = create_complaint(user_headers)
    r = client.post(f"/api/complaints/{complaint['id']}/resolve", json={"notes": "Fixed"}, headers=admin_headers)
    assert r.status_code == 200
    return r.json()["complaint"]


# ---------- Health & auth ----------
def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("status") == "ok"


def test_register_login_and_profile():
    payload = {
        "username": "carol_1",
        "email": "Carol@Example.com",
        "password": "Passw0rd",
        "first_name": "Carol",
    }
    r = client.post("/api/auth/register", json=payload)
    assert r.status_code == 201
    data = r.json()
    assert data["user"]["role"] == "user"
    assert data["user"]["email"] == "carol@example.com"
    assert "hashed_password" not in data["user"]
    assert data["token"]

    r = client.post("/api/auth/register", json=payload)
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"

    r = client.post("/api/auth/login", json={"email": "carol@example.com", "password": "Passw0rd"})
    assert r.status_code == 200
    headers = {"Authorization": f"Bearer {r.json()['token']}"}
    assert r.json()["user"]["last_login"] is not None

    r = client.put("/api/auth/me", json={"last_name": "Jones"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["last_name"] == "Jones"

    r = client.put(
        "/api/auth/change-password",
        json={"current_password": "wrong", "new_password": "NewPassw0rd"},
        headers=headers,
    )
    assert r.status_code == 400

    r = client.put(
        "/api/auth/change-password",
        json={"current_password": "Passw0rd", "new_password": "NewPassw0rd"},
        headers=headers,
    )
    assert r.status_code == 200
    r = client.post("/api/auth/login", json={"email": "carol@example.com", "password": "NewPassw0rd"})
    assert r.status_code == 200


def test_weak_password_is_rejected():
    r = client.post(
        "/api/auth/register",
        json={"username": "dave", "email": "dave@example.com", "password": "password"},
    )
    assert r.status_code == 422


def test_bad_credentials_and_missing_token(user):
    r = client.post("/api/auth/login", json={"email": user.email, "password": "nope"})
    assert r.status_code == 401
    assert r.json()["code"] == "AUTH_FAILED"

    r = client.get("/api/complaints")
    assert r.status_code == 401


def test_refresh_token_carries_current_role(user, user_headers, db):
    user.role = "admin"
    db.commit()

    r = client.post("/api/auth/refresh", headers=user_headers)
    assert r.status_code == 200
    token = r.json()["token"]
    assert decode_access_token(token)["role"] == "admin"
    headers = {"Authorization": f"Bearer {token}"}
    assert client.get("/api/admin/system-health", headers=headers).status_code == 200

    user.is_active = False
    db.commit()
    assert client.post("/api/auth/refresh", headers=headers).status_code == 401
    assert client.post("/api/auth/refresh").status_code == 401


# ---------- Complaints ----------
def test_create_complaint_starts_pending(user_headers, user):
    complaint = create_complaint(user_headers)
    assert complaint["status"] == "pending"
    assert complaint["escalation_level"] == 0
    assert complaint["is_urgent"] is False
    assert complaint["user_id"] == user.id
    assert complaint["location"]["building"] == "Main Building"
    assert complaint["tags"] == ["door"]
    assert complaint["age_in_days"] == 0


def test_invalid_category_is_rejected(user_headers):
    r = client.post("/api/complaints", json={**complaint_item, "category": "plumbing"}, headers=user_headers)
    assert r.status_code == 422


def test_users_only_see_their_own_complaints(user_headers, other_headers, admin_headers):
    mine = create_complaint(user_headers)
    create_complaint(other_headers, title="Odor in hallway", category="cleanliness")

    r = client.get("/api/complaints", headers=user_headers)
    assert r.status_code == 200
    body = r.json()
    assert [c["id"] for c in body["items"]] == [mine["id"]]
    assert body["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}

    r = client.get("/api/complaints", params={"category": "cleanliness"}, headers=admin_headers)
    assert r.json()["pagination"]["total"] == 1

    assert client.get(f"/api/complaints/{mine['id']}", headers=other_headers).status_code == 403
    assert client.get(f"/api/complaints/{mine['id']}", headers=admin_headers).status_code == 200
    assert client.get("/api/complaints/9999", headers=admin_headers).status_code == 404


def test_pagination_limit_bounds(user_headers):
    assert client.get("/api/complaints", params={"limit": 101}, headers=user_headers).status_code == 422
    assert client.get("/api/complaints", params={"page": 0}, headers=user_headers).status_code == 422


def test_update_guarded_by_status(user_headers, admin_headers):
    complaint = create_complaint(user_headers)
    url = f"/api/complaints/{complaint['id']}"

    r = client.put(url, json={"title": "Door lock fully broken"}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["complaint"]["title"] == "Door lock fully broken"

    client.post(f"{url}/resolve", headers=admin_headers)
    r = client.put(url, json={"title": "Too late"}, headers=user_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "STATE_PRECONDITION_FAILED"


def test_update_can_clear_location(user_headers):
    complaint = create_complaint(user_headers)
    r = client.put(f"/api/complaints/{complaint['id']}", json={"location": None}, headers=user_headers)
    assert r.status_code == 200
    body = r.json()["complaint"]
    assert body["location"] is None
    assert body["title"] == complaint_item["title"]


def test_delete_only_while_pending(user_headers, admin_headers):
    pending = create_complaint(user_headers)
    assert client.delete(f"/api/complaints/{pending['id']}", headers=user_headers).status_code == 200
    assert client.get(f"/api/complaints/{pending['id']}", headers=user_headers).status_code == 404

    started = create_complaint(user_headers)
    r = client.patch(f"/api/complaints/{started['id']}/status", json={"status": "in-progress"}, headers=admin_headers)
    assert r.status_code == 200
    r = client.delete(f"/api/complaints/{started['id']}", headers=user_headers)
    assert r.status_code == 409


def test_admin_actions_require_admin(user_headers):
    complaint = create_complaint(user_headers)
    for action in ("respond", "resolve", "escalate"):
        r = client.post(f"/api/complaints/{complaint['id']}/{action}", json={"message": "hi"}, headers=user_headers)
        assert r.status_code == 403
        assert r.json()["code"] == "NOT_AUTHORIZED"


def test_respond_keeps_status(user_headers, admin_headers, admin):
    complaint = create_complaint(user_headers)
    r = client.post(
        f"/api/complaints/{complaint['id']}/respond",
        json={"message": "Technician scheduled"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    body = r.json()["complaint"]
    assert body["status"] == "pending"
    assert body["admin_response"]["message"] == "Technician scheduled"
    assert body["admin_response"]["responded_by_id"] == admin.id


def test_second_resolve_fails_and_timestamp_is_kept(user_headers, admin_headers, admin):
    complaint = create_complaint(user_headers)
    url = f"/api/complaints/{complaint['id']}/resolve"

    r = client.post(url, json={"notes": "Replaced the lock"}, headers=admin_headers)
    assert r.status_code == 200
    first = r.json()["complaint"]
    assert first["status"] == "resolved"
    assert first["assigned_to_id"] == admin.id
    assert first["actual_resolution_time"] is not None

    r = client.post(url, headers=admin_headers)
    assert r.status_code == 409

    r = client.get(f"/api/complaints/{complaint['id']}", headers=admin_headers)
    assert r.json()["actual_resolution_time"] == first["actual_resolution_time"]


def test_escalate_and_terminal_guard(user_headers, admin_headers):
    complaint = create_complaint(user_headers, priority="low")
    url = f"/api/complaints/{complaint['id']}"

    levels = [client.post(f"{url}/escalate", headers=admin_headers).json()["complaint"] for _ in range(4)]
    assert [c["escalation_level"] for c in levels] == [1, 2, 3, 3]
    assert levels[1]["is_urgent"] is True

    client.patch(f"{url}/status", json={"status": "closed"}, headers=admin_headers)
    assert client.post(f"{url}/escalate", headers=admin_headers).status_code == 409


def test_status_transitions(user_headers, admin_headers):
    complaint = create_complaint(user_headers)
    url = f"/api/complaints/{complaint['id']}/status"

    assert client.patch(url, json={"status": "resolved"}, headers=admin_headers).status_code == 409
    assert client.patch(url, json={"status": "in-progress"}, headers=admin_headers).status_code == 200
    assert client.patch(url, json={"status": "pending"}, headers=admin_headers).status_code == 409
    assert client.patch(url, json={"status": "bogus"}, headers=admin_headers).status_code == 422


def test_assign(user_headers, admin_headers, admin):
    complaint = create_complaint(user_headers)
    url = f"/api/complaints/{complaint['id']}/assign"

    r = client.patch(url, json={"assignee_id": admin.id}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["complaint"]["assigned_to_id"] == admin.id
    assert client.patch(url, json={"assignee_id": "missing"}, headers=admin_headers).status_code == 404


def test_stale_high_priority_complaint_escalates_on_save(user_headers, db):
    complaint = create_complaint(user_headers)

    row = db.get(Complaint, complaint["id"])
    row.created_at = utcnow() - timedelta(days=14)
    db.commit()

    r = client.put(f"/api/complaints/{complaint['id']}", json={"description": "Still broken"}, headers=user_headers)
    assert r.status_code == 200
    body = r.json()["complaint"]
    assert body["escalation_level"] == 2
    assert body["is_urgent"] is True
    assert body["age_in_days"] == 14


def test_complaint_stats_and_urgent(user_headers, admin_headers):
    create_complaint(user_headers)
    create_complaint(user_headers, priority="low", category="security")

    r = client.get("/api/complaints/stats/overview", headers=admin_headers)
    assert r.status_code == 200
    stats = r.json()["stats"]
    assert stats["total"] == 2
    assert stats["urgent"] == 1
    assert {"key": "pending", "count": 2} in stats["by_status"]

    r = client.get("/api/complaints/urgent", headers=admin_headers)
    assert [c["priority"] for c in r.json()["complaints"]] == ["high"]

    assert client.get("/api/complaints/stats/overview", headers=user_headers).status_code == 403


def test_complaints_by_user(user, user_headers, other_headers):
    create_complaint(user_headers)
    assert client.get(f"/api/complaints/user/{user.id}", headers=user_headers).json()["pagination"]["total"] == 1
    assert client.get(f"/api/complaints/user/{user.id}", headers=other_headers).status_code == 403


# ---------- Feedback ----------
def test_feedback_requires_resolved_complaint(user_headers, admin_headers):
    complaint = create_complaint(user_headers)
    feedback = {"complaint_id": complaint["id"], "rating": 5, "message": "Great"}

    r = client.post("/api/feedback", json=feedback, headers=user_headers)
    assert r.status_code == 409

    client.post(f"/api/complaints/{complaint['id']}/resolve", headers=admin_headers)
    r = client.post("/api/feedback", json=feedback, headers=user_headers)
    assert r.status_code == 201
    body = r.json()["feedback"]
    assert body["rating_description"] == "Very Satisfied"
    assert body["sentiment"] == "positive"
    assert body["category"] == "overall-satisfaction"

    r = client.post("/api/feedback", json=feedback, headers=user_headers)
    assert r.status_code == 409


def test_feedback_only_from_complaint_owner(user_headers, other_headers, admin_headers):
    complaint = resolved_complaint(user_headers, admin_headers)
    r = client.post(
        "/api/feedback",
        json={"complaint_id": complaint["id"], "rating": 1, "message": "Not mine"},
        headers=other_headers,
    )
    assert r.status_code == 403

    r = client.post("/api/feedback", json={"complaint_id": 9999, "rating": 3, "message": "?"}, headers=user_headers)
    assert r.status_code == 404


def test_feedback_edit_window(user_headers, admin_headers, db):
    complaint = resolved_complaint(user_headers, admin_headers)
    r = client.post(
        "/api/feedback",
        json={"complaint_id": complaint["id"], "rating": 2, "message": "Slow"},
        headers=user_headers,
    )
    feedback_id = r.json()["feedback"]["id"]

    r = client.put(f"/api/feedback/{feedback_id}", json={"rating": 3}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["feedback"]["sentiment"] == "neutral"

    row = db.get(Feedback, feedback_id)
    row.created_at = utcnow() - timedelta(hours=2)
    db.commit()

    assert client.put(f"/api/feedback/{feedback_id}", json={"rating": 4}, headers=user_headers).status_code == 409
    assert client.delete(f"/api/feedback/{feedback_id}", headers=user_headers).status_code == 409
    assert client.delete(f"/api/feedback/{feedback_id}", headers=admin_headers).status_code == 200


def test_feedback_moderation_and_stats(user_headers, admin_headers):
    complaint = resolved_complaint(user_headers, admin_headers)
    r = client.post(
        "/api/feedback",
        json={"complaint_id": complaint["id"], "rating": 4, "message": "Good job", "category": "communication"},
        headers=user_headers,
    )
    feedback_id = r.json()["feedback"]["id"]

    r = client.post(f"/api/feedback/{feedback_id}/helpful", headers=user_headers)
    assert r.json()["helpful_count"] == 1

    assert client.post(f"/api/feedback/{feedback_id}/flag", json={"reason": "spam"}, headers=user_headers).status_code == 403
    r = client.post(f"/api/feedback/{feedback_id}/flag", json={"reason": "spam"}, headers=admin_headers)
    assert r.json()["feedback"]["is_flagged"] is True
    r = client.post(f"/api/feedback/{feedback_id}/respond", json={"message": "Thanks"}, headers=admin_headers)
    assert r.json()["feedback"]["admin_response"]["message"] == "Thanks"

    assert len(client.get("/api/feedback/flagged", headers=admin_headers).json()["feedbacks"]) == 1
    assert len(client.get("/api/feedback/recent", headers=admin_headers).json()["feedbacks"]) == 1
    assert len(client.get(f"/api/feedback/complaint/{complaint['id']}", headers=user_headers).json()["feedbacks"]) == 1

    stats = client.get("/api/feedback/stats/overview", headers=admin_headers).json()["stats"]
    assert stats["total_feedback"] == 1
    assert stats["average_rating"] == 4
    assert {"key": "positive", "count": 1} in stats["sentiment_distribution"]


def test_blank_feedback_text_is_rejected(user_headers, admin_headers):
    complaint = resolved_complaint(user_headers, admin_headers)
    r = client.post(
        "/api/feedback",
        json={"complaint_id": complaint["id"], "rating": 4, "message": "   "},
        headers=user_headers,
    )
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"
    assert client.get("/api/feedback", headers=user_headers).json()["pagination"]["total"] == 0

    r = client.post(
        "/api/feedback",
        json={"complaint_id": complaint["id"], "rating": 4, "message": "  Fixed quickly  "},
        headers=user_headers,
    )
    assert r.status_code == 201
    feedback = r.json()["feedback"]
    assert feedback["message"] == "Fixed quickly"
    url = f"/api/feedback/{feedback['id']}"

    assert client.put(url, json={"message": "  "}, headers=user_headers).status_code == 400
    assert client.post(f"{url}/flag", json={"reason": "  "}, headers=admin_headers).status_code == 400
    assert client.post(f"{url}/respond", json={"message": "  "}, headers=admin_headers).status_code == 400

    body = client.get(url, headers=admin_headers).json()
    assert body["message"] == "Fixed quickly"
    assert body["is_flagged"] is False
    assert body["admin_response"] is None


# ---------- Sensors ----------
def test_sensor_status_is_derived_on_create(admin_headers, user_headers):
    sensor = create_sensor(admin_headers)
    assert sensor["status"] == "warning"
    assert sensor["health_score"] == 65
    assert sensor["last_reading_value"] == 85

    odor = create_sensor(admin_headers, device_id="ODOR001", type="odor", current_value=8.5, threshold_value=6.0)
    assert odor["status"] == "warning"

    assert client.post("/api/sensors", json={**sensor_item, "device_id": "X1"}, headers=user_headers).status_code == 403
    assert client.post("/api/sensors", json=sensor_item, headers=admin_headers).status_code == 400
    assert client.post("/api/sensors", json={**sensor_item, "device_id": "X2", "threshold_value": 0}, headers=admin_headers).status_code == 422


def test_sensor_update_rederives_status(admin_headers):
    sensor = create_sensor(admin_headers)
    r = client.put(f"/api/sensors/{sensor['id']}", json={"threshold_value": 50}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["sensor"]["status"] == "critical"


def test_public_data_ingest(admin_headers, user_headers):
    sensor = create_sensor(admin_headers)
    r = client.post(f"/api/sensors/{sensor['id']}/data", json={"value": 40, "battery_level": 90})
    assert r.status_code == 200
    assert r.json()["sensor"]["status"] == "normal"
    assert r.json()["sensor"]["current_value"] == 40

    r = client.get(f"/api/sensors/{sensor['id']}/data", headers=user_headers)
    assert [p["value"] for p in r.json()["data_points"]] == [40]

    r = client.get(f"/api/sensors/{sensor['id']}", headers=user_headers)
    assert r.json()["battery_level"] == 90


def test_1001st_data_point_evicts_the_oldest(admin_headers, user_headers, db):
    sensor = create_sensor(admin_headers)
    start = utcnow() - timedelta(days=1)
    db.add_all(
        SensorDataPoint(sensor_id=sensor["id"], value=float(i), timestamp=start + timedelta(seconds=i))
        for i in range(1000)
    )
    db.commit()

    r = client.post(f"/api/sensors/{sensor['id']}/data", json={"value": 1234})
    assert r.status_code == 200

    assert db.query(SensorDataPoint).filter(SensorDataPoint.sensor_id == sensor["id"]).count() == 1000
    r = client.get(f"/api/sensors/{sensor['id']}/data", params={"limit": 1000}, headers=user_headers)
    values = [p["value"] for p in r.json()["data_points"]]
    assert len(values) == 1000
    assert values[0] == 1.0
    assert values[-1] == 1234


def test_inactive_sensor_rejects_ingest(admin_headers, user_headers):
    sensor = create_sensor(admin_headers)
    assert client.delete(f"/api/sensors/{sensor['id']}", headers=admin_headers).status_code == 200

    r = client.post(f"/api/sensors/{sensor['id']}/data", json={"value": 1})
    assert r.status_code == 409
    assert client.get("/api/sensors", headers=user_headers).json()["pagination"]["total"] == 0


def test_alerts_and_maintenance(admin_headers, admin):
    sensor = create_sensor(admin_headers)
    url = f"/api/sensors/{sensor['id']}"

    r = client.post(f"{url}/alert", json={"type": "threshold-exceeded", "message": "Bin full", "severity": "high"}, headers=admin_headers)
    assert r.status_code == 201
    alert = r.json()["sensor"]["alerts"][0]
    assert alert["is_acknowledged"] is False

    r = client.post(f"{url}/alert/{alert['id']}/acknowledge", headers=admin_headers)
    acked = r.json()["sensor"]["alerts"]
    assert len(acked) == 1
    assert acked[0]["is_acknowledged"] is True
    assert acked[0]["acknowledged_by_id"] == admin.id

    assert client.post(f"{url}/alert/9999/acknowledge", headers=admin_headers).status_code == 404

    r = client.post(f"{url}/maintenance", json={"type": "cleaning", "description": "Emptied and wiped"}, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["sensor"]["maintenance_history"][0]["performed_by"] == admin.id


def test_blank_sensor_text_is_rejected(admin_headers):
    for field in ("name", "unit", "device_id"):
        r = client.post("/api/sensors", json={**sensor_item, field: "   "}, headers=admin_headers)
        assert r.status_code == 422, field

    sensor = create_sensor(admin_headers, name="  Kitchen Bin  ")
    assert sensor["name"] == "Kitchen Bin"
    url = f"/api/sensors/{sensor['id']}"

    assert client.put(url, json={"unit": " "}, headers=admin_headers).status_code == 422
    assert client.post(f"{url}/maintenance", json={"type": "  ", "description": "Wiped"}, headers=admin_headers).status_code == 422
    assert client.post(f"{url}/alert", json={"type": "battery-low", "message": "  "}, headers=admin_headers).status_code == 422

    detail = client.get(url, headers=admin_headers).json()
    assert detail["unit"] == "%"
    assert detail["maintenance_history"] == []
    assert detail["alerts"] == []


def test_offline_and_monitoring_views(admin_headers):
    normal = create_sensor(admin_headers, device_id="TEMP001", type="temperature", current_value=22.5, threshold_value=25)
    critical = create_sensor(admin_headers, device_id="BIN002", current_value=130, battery_level=10)

    r = client.post(f"/api/sensors/{normal['id']}/offline", headers=admin_headers)
    assert r.json()["sensor"]["status"] == "offline"
    assert r.json()["sensor"]["health_score"] == 25

    crit = client.get("/api/sensors/critical", headers=admin_headers).json()["sensors"]
    assert [s["id"] for s in crit] == [critical["id"]]

    maint = client.get("/api/sensors/maintenance-required", headers=admin_headers).json()["sensors"]
    assert {s["id"] for s in maint} == {normal["id"], critical["id"]}

    stats = client.get("/api/sensors/stats/overview", headers=admin_headers).json()["stats"]
    assert {"key": "offline", "count": 1} in stats["by_status"]

    health = client.get("/api/admin/system-health", headers=admin_headers).json()
    assert health["system_health"] == {"score": 0, "status": "poor"}
    assert health["alerts"]["offline_sensors"] == 1
    assert health["alerts"]["critical_sensors"] == 1


# ---------- Users & admin ----------
def test_user_management(admin_headers, admin, user, user_headers, other_user):
    assert client.get("/api/users", headers=user_headers).status_code == 403

    r = client.get("/api/users", params={"role": "user"}, headers=admin_headers)
    assert r.json()["pagination"]["total"] == 2

    r = client.get("/api/users/search", params={"q": "ali"}, headers=admin_headers)
    assert [u["username"] for u in r.json()["users"]] == ["alice"]

    assert client.post(f"/api/users/{admin.id}/deactivate", headers=admin_headers).status_code == 409
    assert client.post(f"/api/users/{admin.id}/demote", headers=admin_headers).status_code == 409

    r = client.post(f"/api/users/{user.id}/deactivate", headers=admin_headers)
    assert r.json()["user"]["is_active"] is False
    assert client.get("/api/auth/me", headers=user_headers).status_code == 401
    assert client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD}).status_code == 401
    assert client.post(f"/api/users/{user.id}/activate", headers=admin_headers).status_code == 200

    r = client.post(f"/api/users/{other_user.id}/promote", headers=admin_headers)
    assert r.json()["user"]["role"] == "admin"
    promoted = auth_headers(other_user)
    assert client.get("/api/users/stats/overview", headers=promoted).json()["stats"]["admin_users"] == 2


def test_user_with_history_is_not_hard_deleted(admin_headers, user, user_headers, other_user):
    create_complaint(user_headers)
    r = client.delete(f"/api/users/{user.id}", headers=admin_headers)
    assert r.status_code == 409

    assert client.delete(f"/api/users/{other_user.id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/users/{other_user.id}", headers=admin_headers).status_code == 404


def test_admin_dashboard(admin_headers, user_headers):
    create_complaint(user_headers)
    create_sensor(admin_headers, current_value=200)

    r = client.get("/api/admin/dashboard", headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["overview"]["total_complaints"] == 1
    assert body["overview"]["total_sensors"] == 1
    assert len(body["recent_activity"]["critical_sensors"]) == 1
    assert len(body["recent_activity"]["open_complaints"]) == 1


def test_admin_analytics(admin_headers, user_headers, admin, db):
    resolved_complaint(user_headers, admin_headers)
    create_complaint(user_headers, title="Odor in hallway", category="cleanliness", priority="low")
    old = db.query(Complaint).filter(Complaint.title == "Odor in hallway").one()
    old.created_at = utcnow() - timedelta(days=40)
    db.commit()
    create_sensor(admin_headers)

    r = client.get("/api/admin/analytics", headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert (body["period"], body["type"]) == ("30d", "complaints")
    data = body["analytics"]
    assert sum(day["count"] for day in data["daily_complaints"]) == 1
    assert data["complaints_by_category"] == [{"key": "maintenance", "count": 1}]
    assert data["average_resolution_hours"] >= 0

    r = client.get("/api/admin/analytics", params={"period": "90d"}, headers=admin_headers)
    assert sum(day["count"] for day in r.json()["analytics"]["daily_complaints"]) == 2

    r = client.get("/api/admin/analytics", params={"type": "sensors"}, headers=admin_headers)
    data = r.json()["analytics"]
    assert data["sensors_by_status"] == [{"key": "warning", "count": 1}]
    assert data["average_health_score"] == 65

    r = client.get("/api/admin/analytics", params={"type": "users", "period": "7d"}, headers=admin_headers)
    assert {"key": "admin", "count": 1} in r.json()["analytics"]["users_by_role"]

    r = client.get("/api/admin/analytics", params={"type": "feedback"}, headers=admin_headers)
    assert r.json()["analytics"] == {"daily_feedback": [], "feedback_by_rating": [], "average_rating": 0.0}

    assert client.get("/api/admin/analytics", params={"period": "2w"}, headers=admin_headers).status_code == 422
    assert client.get("/api/admin/analytics", headers=user_headers).status_code == 403


def test_admin_reports(admin_headers, user_headers, user):
    complaint = resolved_complaint(user_headers, admin_headers)
    client.post(
        "/api/feedback",
        json={"complaint_id": complaint["id"], "rating": 5, "message": "Great", "is_anonymous": True},
        headers=user_headers,
    )
    create_sensor(admin_headers)

    r = client.get("/api/admin/reports", params={"type": "complaints"}, headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["type"] == "complaints"
    assert body["generated_at"]
    row = body["data"][0]
    assert row["submitted_by"] == user.username
    assert row["assigned_to"] == "Unassigned"
    assert row["status"] == "resolved"
    assert row["resolution_time_hours"] == 0

    sensors = client.get("/api/admin/reports", params={"type": "sensors"}, headers=admin_headers).json()["data"]
    assert sensors[0]["health_score"] == 65
    users = client.get("/api/admin/reports", params={"type": "users"}, headers=admin_headers).json()["data"]
    assert all("hashed_password" not in u for u in users)
    feedback = client.get("/api/admin/reports", params={"type": "feedback"}, headers=admin_headers).json()["data"]
    assert feedback[0]["submitted_by"] == "Anonymous"
    assert feedback[0]["complaint_title"] == complaint_item["title"]

    assert client.get("/api/admin/reports", headers=admin_headers).status_code == 422
    params = {"type": "users", "format": "csv"}
    assert client.get("/api/admin/reports", params=params, headers=admin_headers).status_code == 422


def test_seed_admin_is_idempotent(db):
    from hygiene_backend.config import settings
    from hygiene_backend.seed_admin import seed_admin

    first = seed_admin(db)
    db.commit()
    assert first.email == settings.ADMIN_EMAIL.lower()
    assert seed_admin(db).id == first.id


def test_seed_demo_loads_dataset(db):
    from hygiene_backend.seed_demo import seed_demo

    counts = seed_demo(db)
    assert counts == {"users": 4, "sensors": 5, "complaints": 5, "feedback": 1}
    assert db.query(Sensor).filter(Sensor.device_id == "BIN001").one().status == "warning"
    assert db.query(Feedback).one().complaint.status == "resolved"
