"""
Tests for the HTTP layer
"""
import pytest
from fastapi.testclient import TestClient

from raceledger.core.deps import get_app_settings, get_db_session, get_notifier, get_session_factory
from raceledger.main import app


@pytest.fixture
def client(session_factory, notifier, settings):
    def _db_session():
        db = session_factory()
        try:
            yield db
            db.commit()
        finally:
            db.close()

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_db_session] = _db_session
    app.dependency_overrides[get_app_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def _payload(track_name="Red Bull Ring", **extra):
    return {
        "sessionInfo": {"trackName": track_name, "sessionType": 10, "sessionUID": 987654321},
        "driverResults": [
            {"position": 1, "driverName": "Alice Racer", "networkId": 1, "points": 25, "resultStatus": 3},
            {"position": 2, "driverName": "Bob Racer", "networkId": 2, "points": 18, "resultStatus": 3},
        ],
        **extra,
    }


class TestSessionEndpoints:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] == "ok"

    def test_import_and_read_results(self, client, race, mappings, members):
        response = client.post("/sessions/import", json=_payload(raceId=race.id))

        assert response.status_code == 201
        sid = response.json()["session_result_id"]

        results = client.get(f"/sessions/{sid}/results").json()
        assert [r["sim_driver_name"] for r in results] == ["Alice Racer", "Bob Racer"]
        assert results[0]["member_id"] == members["alice"].id

    def test_duplicate_import_conflicts(self, client, race):
        first = client.post("/sessions/import", json=_payload(raceId=race.id)).json()

        response = client.post("/sessions/import", json=_payload(raceId=race.id))

        assert response.status_code == 409
        assert response.json()["detail"]["conflicting_entry_id"] == first["session_result_id"]

    def test_unmatched_track_is_accepted_as_orphan(self, client, season):
        response = client.post("/sessions/import", json=_payload("Nordschleife"))

        assert response.status_code == 202
        orphan_id = response.json()["detail"]["orphan_id"]
        listed = client.get("/orphans", params={"status": "pending"}).json()
        assert [o["id"] for o in listed] == [orphan_id]

    def test_duplicate_positions_rejected(self, client, race):
        payload = _payload(raceId=race.id)
        payload["driverResults"][1]["position"] = 1

        assert client.post("/sessions/import", json=payload).status_code == 422

    def test_unknown_session_results(self, client):
        assert client.get("/sessions/999/results").status_code == 404


class TestResultEndpoints:
    def test_penalty_and_revert(self, client, imported, load_rows):
        alice = load_rows(imported.session_result_id)["alice"]

        added = client.post(
            f"/results/drivers/{alice.id}/penalties",
            json={"seconds": 5, "reason": "Track limits", "edited_by": "steward"},
        )
        assert added.status_code == 200

        reverted = client.post(f"/results/edits/{added.json()['id']}/revert", json={"edited_by": "steward"})
        assert reverted.status_code == 200
        assert reverted.json()["reverts_edit_id"] == added.json()["id"]

        again = client.post(f"/results/edits/{added.json()['id']}/revert", json={"edited_by": "steward"})
        assert again.status_code == 409

    def test_invalid_position_is_bad_request(self, client, imported, load_rows):
        sid = imported.session_result_id
        bob = load_rows(sid)["bob"]

        response = client.post(
            f"/results/sessions/{sid}/drivers/{bob.id}/position",
            json={"new_position": 0, "edited_by": "steward"},
        )

        assert response.status_code == 400

    def test_mapping_conflict_names_entry(self, client, imported, load_rows, members):
        rows = load_rows(imported.session_result_id)

        response = client.put(
            f"/results/drivers/{rows['carol'].id}/member",
            json={"member_id": members["alice"].id, "edited_by": "admin"},
        )

        assert response.status_code == 409
        assert response.json()["detail"]["conflicting_entry_id"] == rows["alice"].id

    def test_validate_reports_errors_in_body(self, client, imported):
        response = client.post(
            f"/results/sessions/{imported.session_result_id}/validate",
            json={"edit_type": "disqualification", "data": {"reason": ""}},
        )

        assert response.status_code == 200
        assert response.json() == {"valid": False, "errors": ["Disqualification reason is required"]}

    def test_history_and_reset(self, client, race, imported, load_rows):
        sid = imported.session_result_id
        bob = load_rows(sid)["bob"]
        client.post(
            f"/results/sessions/{sid}/drivers/{bob.id}/disqualify",
            json={"reason": "Illegal floor", "edited_by": "steward"},
        )

        reset = client.post(f"/results/races/{race.id}/reset", json={"edited_by": "admin"})
        history = client.get(f"/results/sessions/{sid}/history").json()

        assert reset.status_code == 200
        assert [e["edit_type"] for e in history] == ["reset_to_original", "disqualification"]


class TestAdminEndpoints:
    def test_backup_round_trip(self, client, imported):
        sid = imported.session_result_id

        created = client.post(f"/backups/sessions/{sid}")
        assert created.status_code == 201
        backup_id = created.json()["backup_id"]

        assert client.get(f"/backups/sessions/{sid}").json()[0]["row_count"] == 3
        restored = client.post(f"/backups/{backup_id}/restore", json={"edited_by": "admin"})
        assert restored.json()["edit_type"] == "backup_restore"

    def test_season_lifecycle(self, client):
        assert client.get("/seasons/active").status_code == 404

        season = client.post("/seasons", json={"name": "Season 9", "year": 2025, "is_active": True}).json()
        race = client.post(f"/seasons/{season['id']}/races", json={"track_name": "Monza"})
        member = client.post("/members", json={"name": "Dana"}).json()
        mapping = client.post(
            f"/seasons/{season['id']}/mappings",
            json={"member_id": member["id"], "sim_driver_name": "Dana Racer", "network_id": 4},
        )

        assert client.get("/seasons/active").json()["id"] == season["id"]
        assert race.json()["track_name"] == "Autodromo Nazionale di Monza"
        assert mapping.status_code == 201
        assert client.get(f"/seasons/{season['id']}/standings").json() == []
        assert client.delete(f"/seasons/{season['id']}").status_code == 204

    def test_blank_member_rejected(self, client):
        assert client.post("/members", json={"name": " "}).status_code == 400
