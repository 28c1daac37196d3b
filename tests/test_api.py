"""
Tests for the FastAPI app — routing, request validation and failure mapping.
"""
import pytest
from fastapi.testclient import TestClient

from conftest import run

from fundtrack.main import create_app
from fundtrack.api import dependencies, router_approved, router_dashboard, router_datasets

SPRING = "/api/datasets/dt_spring_2025"


@pytest.fixture()
def client(store, tmp_path, monkeypatch):
    monkeypatch.setattr(router_datasets, "UPLOADS_FOLDER", tmp_path / "uploads")
    monkeypatch.setattr(router_approved, "REPORTS_FOLDER", tmp_path / "reports")
    monkeypatch.setattr(router_dashboard, "REPORTS_FOLDER", tmp_path / "reports")
    with TestClient(create_app()) as c:
        dependencies.set_store(store)
        yield c


@pytest.fixture()
def spring(client, store, spring_dataset):
    run(store.save_dataset(spring_dataset))
    return client


# ── Datasets ──────────────────────────────────────────────────────────────────

class TestDatasets:
    def test_health(self, spring):
        r = spring.get("/api/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"
        assert r.json()["datasets"] == 1

    def test_upload_csv(self, client, spring_csv):
        with open(spring_csv, "rb") as fh:
            r = client.post("/api/datasets", files={"file": ("spring.csv", fh, "text/csv")},
                            data={"name": "Spring 2025", "user": "ana"})
        assert r.status_code == 200
        body = r.json()
        assert body["dataset"]["match_column"] == "Project Name"
        assert body["dataset"]["match_column_locked"] is True
        assert body["dataset"]["proposals"] == 4
        assert body["inference"]["column"] == "Project Name"
        assert len(client.get("/api/datasets").json()) == 1

    def test_upload_rejects_other_types(self, client):
        r = client.post("/api/datasets", files={"file": ("notes.txt", b"hello", "text/plain")})
        assert r.status_code == 400

    def test_detail_and_delete(self, spring):
        r = spring.get(SPRING)
        assert r.status_code == 200
        assert r.json()["rows"][0]["identity"] == "Campus Garden Expansion"
        assert spring.delete(SPRING).status_code == 200
        assert spring.get(SPRING).status_code == 404

    def test_unknown_dataset_404(self, client):
        assert client.get("/api/datasets/dt_nope/tracker").status_code == 404


class TestMatchColumn:
    def test_inference_is_read_only(self, spring):
        r = spring.get(f"{SPRING}/match-column/inference")
        assert r.status_code == 200
        assert r.json()["column"] == "Project Name"
        assert spring.get(f"{SPRING}/match-column/history").json()["history"] == []

    def test_locked_change_conflicts(self, spring):
        r = spring.post(f"{SPRING}/match-column", json={"column": "Email"})
        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "locked"

    def test_confirmed_change(self, spring):
        r = spring.post(f"{SPRING}/match-column", json={"column": "Email", "user": "ana", "confirm_unlock": True})
        assert r.status_code == 200
        assert r.json()["changed"] is True
        history = spring.get(f"{SPRING}/match-column/history").json()["history"]
        assert history[0]["column"] == "Email"
        assert history[0]["changed_by"] == "ana"

    def test_file_like_rejected(self, spring):
        r = spring.post(f"{SPRING}/match-column", json={"column": "Attachment", "confirm_unlock": True})
        assert r.status_code == 400
        assert r.json()["detail"]["code"] == "file_like"

    def test_lock_toggle(self, spring):
        r = spring.post(f"{SPRING}/match-column/lock", json={"locked": False})
        assert r.json() == {"match_column": "Project Name", "match_column_locked": False}

    def test_hide_row(self, spring):
        assert spring.post(f"{SPRING}/rows/1/hidden").json()["hidden"] is True
        projects = [p["project"] for p in spring.get(f"{SPRING}/tracker").json()["proposals"]]
        assert "Solar Bench Pilot" not in projects
        assert spring.post(f"{SPRING}/rows/42/hidden").status_code == 400

    def test_pin_column(self, spring):
        r = spring.post(f"{SPRING}/pinned-columns", json={"column": "Speed Type"})
        assert r.json() == {"pinned_columns": ["Speed Type"]}
        assert spring.get(SPRING).json()["headers"][0] == "Speed Type"
        assert spring.post(f"{SPRING}/pinned-columns", json={"column": "Colour"}).status_code == 400


# ── Tracker ───────────────────────────────────────────────────────────────────

class TestTracker:
    def test_auto_assign_then_tracker(self, spring):
        r = spring.post(f"{SPRING}/auto-assign", json={
            "meeting_dates": "2025-03-01\n2025-03-15", "reviewer_pool": ["Ana", "Ben", "Cam"], "reviewer_count": 2,
        })
        assert r.status_code == 200
        assert r.json()["total_assignments"] == 8
        rows = spring.get(f"{SPRING}/tracker").json()["proposals"]
        assert {row["status"] for row in rows} == {"Under Review"}
        assert rows[0]["due_date"] == "2025-03-01"

    def test_auto_assign_validation(self, spring):
        r = spring.post(f"{SPRING}/auto-assign", json={"meeting_dates": "", "reviewer_pool": "Ana", "reviewer_count": 1})
        assert r.status_code == 400
        assert r.json()["detail"]["code"] == "no_dates"

    def test_auto_assign_count_must_be_positive(self, spring):
        r = spring.post(f"{SPRING}/auto-assign", json={"meeting_dates": "2025-03-01", "reviewer_count": 0})
        assert r.status_code == 422

    def test_manual_assignees(self, spring):
        r = spring.put(f"{SPRING}/assignments", json={"identity": "Bike Repair Hub", "reviewers": "Ana, Ben"})
        assert r.json() == {"identity": "Bike Repair Hub", "reviewers": ["Ana", "Ben"]}
        assert spring.get(f"{SPRING}/assignments").json()["assignments"] == {"Bike Repair Hub": ["Ana", "Ben"]}
        spring.delete(f"{SPRING}/assignments")
        assert spring.get(f"{SPRING}/assignments").json()["assignments"] == {}

    def test_proposal_fields(self, spring):
        r = spring.patch(f"{SPRING}/proposals", json={"identity": "Bike Repair Hub", "funding_status": "fully"})
        assert r.json()["saved"] == {"funding_status": "fully"}
        bad = spring.patch(f"{SPRING}/proposals", json={"identity": "Bike Repair Hub", "due_date": "someday"})
        assert bad.status_code == 400

    def test_submissions_and_feed(self, spring):
        spring.put(f"{SPRING}/assignments", json={"identity": "Bike Repair Hub", "reviewers": ["Ana Lopez"]})
        r = spring.post(f"{SPRING}/submissions", json={
            "project_name": "Bike Repair Hub", "reviewer_name": "Ana", "overall": "Fund it",
        })
        sub_id = r.json()["id"]
        feed = spring.get(f"{SPRING}/reviewer-feed", params={"reviewer": "ana"}).json()["items"]
        assert feed == [{
            "reviewer": "Ana Lopez", "project": "Bike Repair Hub", "due_date": "",
            "submitted": True, "status": "Ready for Review", "proposal_url": "",
        }]
        assert spring.delete(f"{SPRING}/submissions/{sub_id}").status_code == 200
        assert spring.delete(f"{SPRING}/submissions/{sub_id}").status_code == 404

    def test_matches_and_speedtype(self, spring):
        r = spring.get(f"{SPRING}/matches", params={"identity": "Campus Garden Expansion"})
        assert r.status_code == 200
        assert r.json()["matches"] == []
        st = spring.get(f"{SPRING}/speedtype", params={"identity": "Bike Repair Hub"}).json()
        assert st == {"identity": "Bike Repair Hub", "speedtype": "18765432"}
        assert spring.get(f"{SPRING}/speedtype", params={"identity": "Nope"}).status_code == 404


# ── Approved / dashboard ──────────────────────────────────────────────────────

class TestApprovedAndDashboard:
    def test_approve_flow(self, spring):
        r = spring.post(f"{SPRING}/approved/toggle", json={"identity": "Campus Garden Expansion"})
        assert r.json() == {"identity": "Campus Garden Expansion", "approved": True}
        data = spring.get(f"{SPRING}/approved").json()
        assert data["records"][0]["speedtype"] == "12345678"

        bad = spring.put(f"{SPRING}/approved/speedtype", json={"identity": "Campus Garden Expansion", "speedtype": "99"})
        assert bad.status_code == 400
        assert spring.post(f"{SPRING}/approved/remap", json={}).json()["count"] == 1

        xlsx = spring.get(f"{SPRING}/approved/excel")
        assert xlsx.status_code == 200
        assert xlsx.content[:2] == b"PK"

    def test_dashboard(self, spring):
        assert spring.get(f"{SPRING}/summary").json()["proposals"] == 4
        assert spring.get(f"{SPRING}/reviewers", params={"today": "2025-03-01"}).json() == {"reviewers": []}
        assert spring.get(f"{SPRING}/reviewers", params={"today": "March"}).status_code == 400
        report = spring.get(f"{SPRING}/report").json()
        assert report["dataset_name"] == "Spring 2025"
        assert spring.get(f"{SPRING}/report/excel").status_code == 200

    def test_auto_assign_defaults(self, client):
        body = client.get("/api/auto-assign/defaults").json()
        assert body["reviewer_count"] == 2
        assert "Bianca" in body["reviewer_pool"]
