import pytest
from fastapi.testclient import TestClient

from rehearsal_scheduler.app import app, get_store
from rehearsal_scheduler.store import JsonStore

BAND = "band-1"


@pytest.fixture
def store(tmp_path):
    s = JsonStore(str(tmp_path / "store.json"))
    s.create_band(BAND, "admin")
    s.add_member(BAND, "A")
    s.add_member(BAND, "B")
    return s


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def post_rule(client, user, body):
    return client.post(f"/api/availability/band/{BAND}", params={"user_id": user}, json=body)


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}


class TestAvailabilityRoutes:

    def test_create_and_list(self, client):
        r = post_rule(client, "A", {"isRecurring": True, "dayOfWeek": 1, "startTime": "18:00:00", "endTime": "21:00:00"})
        assert r.status_code == 201
        rule = r.json()["data"]
        assert rule["kind"] == "recurring"
        assert rule["participantId"] == "A"

        post_rule(client, "A", {"specificDate": "2024-06-12", "startTime": "09:00", "endTime": "10:00"})
        listed = client.get(f"/api/availability/band/{BAND}", params={"user_id": "A"}).json()
        assert listed["count"] == 2
        assert [d["kind"] for d in listed["data"]] == ["recurring", "specific_date"]

    def test_invalid_rule_is_400(self, client):
        r = post_rule(client, "A", {"isRecurring": True, "dayOfWeek": 1, "startTime": "21:00", "endTime": "18:00"})
        assert r.status_code == 400
        assert r.json()["error"] == "validation_error"
        assert r.json()["field"] == "endTime"

    def test_non_member_is_403(self, client):
        r = post_rule(client, "stranger", {"dayOfWeek": 1, "startTime": "18:00", "endTime": "21:00"})
        assert r.status_code == 403
        assert r.json()["error"] == "forbidden"

    def test_unknown_band_is_404(self, client):
        r = client.get("/api/availability/band/nope", params={"user_id": "A"})
        assert r.status_code == 404

    def test_update_and_delete(self, client):
        rid = post_rule(client, "A", {"dayOfWeek": 1, "startTime": "18:00", "endTime": "21:00"}).json()["data"]["id"]

        assert client.put(f"/api/availability/{rid}", params={"user_id": "B"}, json={"notes": "x"}).status_code == 403

        r = client.put(f"/api/availability/{rid}", params={"user_id": "A"},
                       json={"endTime": "22:00:00", "priority": 2, "notes": "late"})
        assert r.status_code == 200
        assert r.json()["data"]["endTime"] == "22:00:00"
        assert r.json()["data"]["priority"] == 2

        r = client.put(f"/api/availability/{rid}", params={"user_id": "A"},
                       json={"isException": True, "specificDate": "2024-06-10", "startTime": None, "endTime": None})
        assert r.json()["data"]["kind"] == "exception"
        assert r.json()["data"]["dayOfWeek"] is None

        assert client.delete(f"/api/availability/{rid}", params={"user_id": "A"}).json() == {"success": True, "data": {}}
        assert client.delete(f"/api/availability/{rid}", params={"user_id": "A"}).status_code == 404

    def test_band_wide_listing_needs_admin(self, client):
        post_rule(client, "A", {"dayOfWeek": 1, "startTime": "18:00", "endTime": "21:00"})
        post_rule(client, "B", {"dayOfWeek": 1, "startTime": "19:00", "endTime": "22:00"})
        assert client.get(f"/api/availability/band/{BAND}/all", params={"user_id": "A"}).status_code == 403
        body = client.get(f"/api/availability/band/{BAND}/all", params={"user_id": "admin"}).json()
        assert [d["participantId"] for d in body["data"]] == ["A", "B"]


class TestBandRoutes:

    def test_members(self, client):
        r = client.post(f"/api/bands/{BAND}/members", params={"user_id": "admin"}, json={"userId": "C"})
        assert r.status_code == 201
        listed = client.get(f"/api/bands/{BAND}/members", params={"user_id": "C"}).json()
        assert [m["userId"] for m in listed["data"]] == ["admin", "A", "B", "C"]

    def test_only_admins_add_members(self, client):
        r = client.post(f"/api/bands/{BAND}/members", params={"user_id": "A"}, json={"userId": "C"})
        assert r.status_code == 403

    def test_create_band(self, client):
        r = client.post("/api/bands", params={"user_id": "D"}, json={"bandId": "band-2"})
        assert r.status_code == 201
        assert r.json()["data"]["members"] == [{"userId": "D", "role": "admin", "isActive": True}]

    def test_existing_band_cannot_be_claimed(self, client, store):
        r = client.post("/api/bands", params={"user_id": "mallory"}, json={"bandId": BAND})
        assert r.status_code == 409
        assert r.json()["error"] == "conflict"
        assert not store.is_admin(BAND, "mallory")
        assert not store.is_member(BAND, "mallory")

    def test_change_role(self, client, store):
        r = client.put(f"/api/bands/{BAND}/members/A", params={"user_id": "admin"}, json={"role": "admin"})
        assert r.status_code == 200
        assert r.json()["data"] == {"userId": "A", "role": "admin", "isActive": True}
        assert store.is_admin(BAND, "A")

        r = client.put(f"/api/bands/{BAND}/members/B", params={"user_id": "admin"}, json={"role": "boss"})
        assert r.status_code == 400
        assert r.json()["field"] == "role"
        assert client.put(f"/api/bands/{BAND}/members/Z", params={"user_id": "admin"},
                          json={"role": "member"}).status_code == 404
        assert client.put(f"/api/bands/{BAND}/members/A", params={"user_id": "B"},
                          json={"role": "member"}).status_code == 403

    def test_remove_member_deactivates(self, client, store):
        assert client.delete(f"/api/bands/{BAND}/members/B", params={"user_id": "A"}).status_code == 403

        r = client.delete(f"/api/bands/{BAND}/members/B", params={"user_id": "admin"})
        assert r.status_code == 200
        assert r.json()["data"]["isActive"] is False
        assert store.get_group_roster(BAND) == ["admin", "A"]
        # B stays on the member list but loses access
        assert [m["userId"] for m in store.members(BAND)] == ["admin", "A", "B"]
        assert client.get(f"/api/availability/band/{BAND}", params={"user_id": "B"}).status_code == 403

    def test_owner_cannot_be_removed(self, client):
        r = client.delete(f"/api/bands/{BAND}/members/admin", params={"user_id": "admin"})
        assert r.status_code == 400
        assert r.json()["error"] == "invalid_request"

    def test_re_adding_reactivates(self, client, store):
        client.delete(f"/api/bands/{BAND}/members/B", params={"user_id": "admin"})
        client.post(f"/api/bands/{BAND}/members", params={"user_id": "admin"}, json={"userId": "B"})
        assert store.get_group_roster(BAND) == ["admin", "A", "B"]


class TestOptimalRoute:

    def test_monday_evening(self, client):
        post_rule(client, "A", {"dayOfWeek": 1, "startTime": "18:00", "endTime": "21:00"})
        post_rule(client, "B", {"dayOfWeek": 1, "startTime": "19:00", "endTime": "22:00"})
        r = client.post(f"/api/availability/band/{BAND}/optimal", params={"user_id": "admin"},
                        json={"duration": 60, "requiredMembers": ["A", "B"],
                              "startDate": "2024-06-10", "endDate": "2024-06-16"})
        assert r.status_code == 200
        data = r.json()["data"]
        best = data["recommendations"][0]
        assert best["date"] == "2024-06-10"
        assert best["windows"] == [{"start": "19:00:00", "end": "21:00:00", "availableCount": 2,
                                    "participants": ["A", "B"]}]
        # admin has no rules, so two of three members are covered
        assert best["totalCount"] == 3
        assert round(best["availabilityPercentage"], 2) == 66.67
        assert len(data["days"]) == 7

    def test_bad_duration(self, client):
        r = client.post(f"/api/availability/band/{BAND}/optimal", params={"user_id": "admin"}, json={"duration": 0})
        assert r.status_code == 400
        assert r.json()["error"] == "invalid_request"

    def test_unknown_required_member(self, client):
        r = client.post(f"/api/availability/band/{BAND}/optimal", params={"user_id": "admin"},
                        json={"requiredMembers": ["Z"]})
        assert r.status_code == 404

    def test_members_cannot_search(self, client):
        r = client.post(f"/api/availability/band/{BAND}/optimal", params={"user_id": "A"}, json={})
        assert r.status_code == 403

    def test_inactive_member_leaves_the_search(self, client):
        post_rule(client, "A", {"dayOfWeek": 1, "startTime": "18:00", "endTime": "21:00"})
        post_rule(client, "B", {"dayOfWeek": 1, "startTime": "19:00", "endTime": "22:00"})
        client.delete(f"/api/bands/{BAND}/members/B", params={"user_id": "admin"})

        r = client.post(f"/api/availability/band/{BAND}/optimal", params={"user_id": "admin"},
                        json={"duration": 60, "startDate": "2024-06-10", "endDate": "2024-06-10"})
        [day] = r.json()["data"]["days"]
        assert day["totalCount"] == 2
        assert day["windows"] == [{"start": "18:00:00", "end": "21:00:00", "availableCount": 1,
                                   "participants": ["A"]}]
        assert day["availabilityPercentage"] == 50

        r = client.post(f"/api/availability/band/{BAND}/optimal", params={"user_id": "admin"},
                        json={"requiredMembers": ["B"]})
        assert r.status_code == 404

    def test_fractional_duration_is_400(self, client):
        r = client.post(f"/api/availability/band/{BAND}/optimal", params={"user_id": "admin"},
                        json={"duration": 90.9})
        assert r.status_code == 400
        assert r.json()["field"] == "durationMinutes"
