"""API tests over the in-memory app: profiles, partner access to cycle
data, period history, calendar, day logs and the other trackers."""

from __future__ import annotations

from datetime import date

from fastapi.testclient import TestClient

from src.routers.tests.conftest import ALICE, API, BOB, SignedIn, create_couple
from src.services.tracker import day_log_key
from src.storage.service import get_storage

REGULAR_STARTS = ["2025-11-18", "2025-12-16", "2026-01-13", "2026-02-10"]


def seed_periods(client: TestClient) -> None:
    for start in REGULAR_STARTS:
        resp = client.post(f"{API}/tracker/periods", json={"start_date": start})
        assert resp.status_code == 201, resp.text


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["storage"]["preferred"] == "memory"


class TestProfiles:
    def test_profile_lifecycle(self, client: TestClient) -> None:
        assert client.get(f"{API}/users/me").status_code == 404

        resp = client.post(f"{API}/users/me", json=ALICE)
        assert resp.status_code == 201
        assert resp.json()["id"] == "user_alice"

        resp = client.patch(f"{API}/users/me", json={"display_name": "Alicia"})
        assert resp.status_code == 200
        assert resp.json()["display_name"] == "Alicia"
        assert resp.json()["gender"] == "female"

        assert client.get(f"{API}/users/me").json()["display_name"] == "Alicia"

    def test_duplicate_profile(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        assert client.post(f"{API}/users/me", json=ALICE).status_code == 409

    def test_invalid_profile_body(self, client: TestClient) -> None:
        resp = client.post(f"{API}/users/me", json={**ALICE, "email": "not-an-email"})
        assert resp.status_code == 422
        resp = client.post(f"{API}/users/me", json={**ALICE, "display_name": "A"})
        assert resp.status_code == 422


class TestPartners:
    def test_link_and_read_partner(self, client: TestClient, signed_in: SignedIn) -> None:
        create_couple(client, signed_in)
        resp = client.get(f"{API}/users/me/partner")
        assert resp.json() == {"partner_id": "user_bob", "display_name": "Bob"}

    def test_unknown_code(self, client: TestClient, signed_in: SignedIn) -> None:
        signed_in.user_id = "user_bob"
        client.post(f"{API}/users/me", json=BOB)
        resp = client.post(f"{API}/users/me/partner", json={"code": "ZZZZZZ"})
        assert resp.status_code == 404

    def test_code_must_be_six_characters(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        assert client.post(f"{API}/users/me/partner", json={"code": "ABC"}).status_code == 422

    def test_disconnect(self, client: TestClient, signed_in: SignedIn) -> None:
        create_couple(client, signed_in)
        assert client.delete(f"{API}/users/me/partner").status_code == 204
        assert client.get(f"{API}/users/me/partner").json()["partner_id"] is None

    def test_partner_reads_but_cannot_write(self, client: TestClient, signed_in: SignedIn) -> None:
        create_couple(client, signed_in)
        seed_periods(client)

        signed_in.user_id = "user_bob"
        resp = client.get(f"{API}/tracker/cycle-info")
        assert resp.status_code == 200
        assert resp.json()["last_period_date"] == "2026-02-10"

        resp = client.post(f"{API}/tracker/periods", json={"start_date": "2026-02-20"})
        assert resp.status_code == 403
        assert client.get(f"{API}/tracker/calendar").json()["can_edit"] is False


class TestCycleAccess:
    def test_no_profile(self, client: TestClient) -> None:
        assert client.get(f"{API}/tracker/cycle-info").status_code == 404

    def test_unlinked_man_refused(self, client: TestClient, signed_in: SignedIn) -> None:
        signed_in.user_id = "user_bob"
        client.post(f"{API}/users/me", json=BOB)
        resp = client.get(f"{API}/tracker/cycle-info")
        assert resp.status_code == 403
        assert "partner" in resp.json()["detail"]


class TestPeriods:
    def test_log_and_list(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        seed_periods(client)
        resp = client.get(f"{API}/tracker/periods", params={"limit": 2})
        assert [p["start_date"] for p in resp.json()] == ["2026-02-10", "2026-01-13"]

    def test_future_start(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        resp = client.post(f"{API}/tracker/periods", json={"start_date": "2026-02-24"})
        assert resp.status_code == 400

    def test_duplicate_start(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        client.post(f"{API}/tracker/periods", json={"start_date": "2026-02-10"})
        resp = client.post(f"{API}/tracker/periods", json={"start_date": "2026-02-10"})
        assert resp.status_code == 409

    def test_short_gap_warning(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        client.post(f"{API}/tracker/periods", json={"start_date": "2026-02-10"})
        resp = client.post(f"{API}/tracker/periods", json={"start_date": "2026-02-20"})
        assert resp.status_code == 201
        assert len(resp.json()["warnings"]) == 1

    def test_validate(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        client.post(f"{API}/tracker/periods", json={"start_date": "2026-02-10"})
        resp = client.get(f"{API}/tracker/periods/validate", params={"start_date": "2026-02-15"})
        assert resp.json()["is_valid"] is True
        assert resp.json()["days_since_last_period"] == 5

    def test_delete(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        entry = client.post(f"{API}/tracker/periods", json={"start_date": "2026-02-10"}).json()["entry"]
        assert client.delete(f"{API}/tracker/periods/{entry['id']}").status_code == 204
        assert client.delete(f"{API}/tracker/periods/{entry['id']}").status_code == 404

    def test_migrate(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        client.post(f"{API}/tracker/periods", json={"start_date": "2026-02-10"})
        resp = client.post(f"{API}/tracker/periods/migrate")
        assert resp.json() == {"migrated": 0, "skipped": 1}


class TestPredictions:
    def test_cycle_info(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        seed_periods(client)
        body = client.get(f"{API}/tracker/cycle-info").json()
        assert body["average_cycle_length"] == 28
        assert body["next_period_date"] == "2026-03-10"
        assert body["days_until_next_period"] == 15
        assert body["cycle_phase"] == "ovulatory"

    def test_fertile_window(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        seed_periods(client)
        body = client.get(f"{API}/tracker/fertile-window").json()
        assert body["ovulation_date"] == "2026-02-24"
        assert body["fertile_start"] == "2026-02-19"
        assert body["days_to_ovulation"] == 1

    def test_default_window_without_history(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        body = client.get(f"{API}/tracker/fertile-window").json()
        assert body["is_default"] is True
        assert body["days_to_ovulation"] == 14

    def test_countdown(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        seed_periods(client)
        body = client.get(f"{API}/tracker/countdown").json()
        assert body["event_type"] == "ovulation"
        assert body["message"] == "Ovulation predicted tomorrow"


class TestCalendar:
    def test_two_week_strip(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        seed_periods(client)
        body = client.get(f"{API}/tracker/calendar", params={"start": "2026-02-20"}).json()
        assert body["start_date"] == "2026-02-20"
        assert body["end_date"] == "2026-03-05"
        assert body["label"] == "Feb - Mar 2026"
        assert body["previous_start"] == "2026-02-06"
        assert body["next_start"] == "2026-03-06"
        assert body["can_edit"] is True
        assert len(body["days"]) == 14
        assert body["days"][4]["is_ovulation"] is True

    def test_month(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        body = client.get(f"{API}/tracker/calendar/month", params={"year": 2026, "month": 4}).json()
        assert body["days"][:3] == [None, None, None]
        assert body["days"][3]["day"] == "2026-04-01"

    def test_month_out_of_range(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        resp = client.get(f"{API}/tracker/calendar/month", params={"year": 2026, "month": 13})
        assert resp.status_code == 422


class TestDayLogs:
    def test_save_read_delete(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        resp = client.put(
            f"{API}/tracker/day-logs/2026-02-10",
            json={"period": {"is_start": True, "flow": "medium"}, "mood": "tired"},
        )
        assert resp.status_code == 200
        assert resp.json()["period_entry"]["start_date"] == "2026-02-10"

        log = client.get(f"{API}/tracker/day-logs/2026-02-10").json()
        assert log["mood"] == "tired"
        assert log["period"]["flow"] == "medium"

        assert client.delete(f"{API}/tracker/day-logs/2026-02-10").status_code == 204
        assert client.get(f"{API}/tracker/day-logs/2026-02-10").status_code == 404
        assert client.get(f"{API}/tracker/periods").json() == []

    def test_empty_log_rejected(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        resp = client.put(f"{API}/tracker/day-logs/2026-02-10", json={})
        assert resp.status_code == 400

    def test_future_period_rejected(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        resp = client.put(f"{API}/tracker/day-logs/2026-03-01", json={"period": {"flow": "light"}})
        assert resp.status_code == 400

    def test_list_range(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        for day in ("2026-02-01", "2026-02-05", "2026-02-20"):
            client.put(f"{API}/tracker/day-logs/{day}", json={"notes": "ok"})
        resp = client.get(
            f"{API}/tracker/day-logs", params={"start": "2026-02-01", "end": "2026-02-10"}
        )
        assert [log["date"] for log in resp.json()] == ["2026-02-01", "2026-02-05"]

        resp = client.get(
            f"{API}/tracker/day-logs", params={"start": "2026-02-10", "end": "2026-02-01"}
        )
        assert resp.status_code == 400

    def test_delete_missing(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        assert client.delete(f"{API}/tracker/day-logs/2026-02-10").status_code == 404

    def test_delete_period_start_whose_log_was_lost(self, client: TestClient) -> None:
        client.post(f"{API}/users/me", json=ALICE)
        seed_periods(client)
        get_storage().delete(day_log_key("user_alice", date(2026, 2, 10)))

        assert client.delete(f"{API}/tracker/day-logs/2026-02-10").status_code == 204
        starts = [p["start_date"] for p in client.get(f"{API}/tracker/periods").json()]
        assert "2026-02-10" not in starts


class TestTrackers:
    def test_mood_history_and_delete(self, client: TestClient) -> None:
        resp = client.post(f"{API}/tracker/moods", json={"date": "2026-02-23", "mood": "calm"})
        assert resp.status_code == 201
        entry_id = resp.json()["id"]

        history = client.get(f"{API}/tracker/history/mood").json()
        assert [h["id"] for h in history] == [entry_id]

        assert client.delete(f"{API}/tracker/history/mood/{entry_id}").status_code == 204
        assert client.delete(f"{API}/tracker/history/mood/{entry_id}").status_code == 404

    def test_sleep_score(self, client: TestClient) -> None:
        resp = client.post(
            f"{API}/tracker/sleep", json={"date": "2026-02-23", "hours": 8, "quality": "excellent"}
        )
        assert resp.status_code == 201
        assert resp.json()["quality_score"] == 4

    def test_sleep_hours_bounded(self, client: TestClient) -> None:
        resp = client.post(
            f"{API}/tracker/sleep", json={"date": "2026-02-23", "hours": 25, "quality": "good"}
        )
        assert resp.status_code == 422

    def test_nutrition(self, client: TestClient) -> None:
        resp = client.post(
            f"{API}/tracker/nutrition",
            json={"date": "2026-02-23", "meals": [{"name": "Soup", "calories": 300}], "water": 2},
        )
        assert resp.status_code == 201
        assert resp.json()["meals"][0]["calories"] == 300

    def test_activity_summary(self, client: TestClient) -> None:
        client.post(f"{API}/tracker/activities", json={"date": "2026-02-23", "type": "steps", "steps": 5000})
        client.post(
            f"{API}/tracker/activities",
            json={"date": "2026-02-23", "type": "cycling", "distance": 12.5},
        )
        body = client.get(f"{API}/tracker/activities/summary").json()
        assert body["date"] == "2026-02-23"
        assert body["total_steps"] == 5000
        assert body["cycling_distance"] == 12.5
        assert body["entries"] == 2

    def test_activity_missing_measurement(self, client: TestClient) -> None:
        resp = client.post(f"{API}/tracker/activities", json={"date": "2026-02-23", "type": "steps"})
        assert resp.status_code == 400

    def test_period_history_routes_redirect(self, client: TestClient) -> None:
        assert client.get(f"{API}/tracker/history/period").status_code == 400
        assert client.delete(f"{API}/tracker/history/period/abc").status_code == 400

    def test_unknown_tracker_type(self, client: TestClient) -> None:
        assert client.get(f"{API}/tracker/history/weight").status_code == 422

    def test_trackers_need_no_profile(self, client: TestClient, signed_in: SignedIn) -> None:
        signed_in.user_id = "user_bob"
        resp = client.post(f"{API}/tracker/moods", json={"date": "2026-02-23", "mood": "fine"})
        assert resp.status_code == 201
