"""
Ecological Submissions Endpoint Tests

Coverage:
- Admin key security (fail open in dev, 401 when configured)
- Staff identity headers
- List / detail / review / delete / recover
- Error mapping: 400 / 403 / 404 / 409 / 502
- CSV export (BOM, content type), template, import preview and commit

Version: ecological_admin_v1
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from api_server import app
from ecoprofile.audit import MemoryAuditSink
from ecoprofile.errors import PersistenceError
from ecoprofile.moderation.admin import get_orchestrator
from ecoprofile.moderation.orchestrator import ModerationOrchestrator
from ecoprofile.persistence import InMemoryPersistence
from ecoprofile.records.models import Submission

STAFF_HEADERS = {"X-Staff-Name": "Ana Reyes", "X-Staff-Role": "secretary"}


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def store():
    return InMemoryPersistence(prefix="ECO")


@pytest.fixture
def audit():
    return MemoryAuditSink(enabled=True)


@pytest.fixture
def client(store, audit):
    orchestrator = ModerationOrchestrator(store, audit)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with patch("ecoprofile.config.ADMIN_API_KEY", None):
        yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def submission(store):
    return store.insert_submission(Submission(
        submission_number=store.next_submission_number(),
        household_number="HH-001",
        respondent_name="Juan Dela Cruz",
        household_members=[
            {"full_name": "Juan Dela Cruz", "is_head_of_household": True},
            {"full_name": "Maria Dela Cruz"},
        ],
    ))


# ============================================================
# TEST: SECURITY
# ============================================================

class TestSecurity:
    def test_fail_open_without_configured_key(self, client, submission):
        response = client.get("/api/v1/ecological/submissions")
        assert response.status_code == 200

    def test_missing_key_401(self, client):
        with patch("ecoprofile.config.ADMIN_API_KEY", "test-secret-key"):
            response = client.get("/api/v1/ecological/submissions")
        assert response.status_code == 401
        assert "Missing" in response.json()["detail"]

    def test_wrong_key_401(self, client):
        with patch("ecoprofile.config.ADMIN_API_KEY", "test-secret-key"):
            response = client.get(
                "/api/v1/ecological/submissions",
                headers={"X-Admin-API-Key": "wrong"},
            )
        assert response.status_code == 401

    def test_correct_key(self, client):
        with patch("ecoprofile.config.ADMIN_API_KEY", "test-secret-key"):
            response = client.get(
                "/api/v1/ecological/submissions",
                headers={"X-Admin-API-Key": "test-secret-key"},
            )
        assert response.status_code == 200

    def test_review_requires_staff_name(self, client, submission):
        response = client.post(
            f"/api/v1/ecological/submissions/{submission.id}/review",
            json={"decision": "approve"},
        )
        assert response.status_code == 401

    def test_role_without_permission_403(self, client, submission):
        response = client.post(
            f"/api/v1/ecological/submissions/{submission.id}/review",
            json={"decision": "approve"},
            headers={"X-Staff-Name": "Leo", "X-Staff-Role": "sk_chairman"},
        )
        assert response.status_code == 403


# ============================================================
# TEST: SUBMISSIONS
# ============================================================

class TestSubmissions:
    def test_list(self, client, submission):
        body = client.get("/api/v1/ecological/submissions").json()
        assert body["total"] == 1
        assert body["pending"] == 1
        assert body["submissions"][0]["household_number"] == "HH-001"

    def test_list_bad_filter_400(self, client):
        response = client.get("/api/v1/ecological/submissions", params={"status": "archived"})
        assert response.status_code == 400
        assert response.json()["detail"]["field"] == "status"

    def test_detail(self, client, submission):
        body = client.get(f"/api/v1/ecological/submissions/{submission.id}").json()
        assert body["submission"]["submission_number"] == submission.submission_number
        assert set(body["allowed_actions"]) == {"begin_review", "approve", "reject"}

    def test_detail_404(self, client):
        assert client.get("/api/v1/ecological/submissions/nope").status_code == 404

    def test_approve(self, client, store, submission):
        response = client.post(
            f"/api/v1/ecological/submissions/{submission.id}/review",
            json={"decision": "approve", "notes": "Verified"},
            headers=STAFF_HEADERS,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["submission"]["status"] == "approved"
        assert body["submission"]["reviewed_by"] == "Ana Reyes"
        assert body["household_synced"] is True
        assert body["household_number"] == "HH-001"
        assert store.get_household("HH-001") is not None

    def test_approve_twice_409(self, client, submission):
        url = f"/api/v1/ecological/submissions/{submission.id}/review"
        client.post(url, json={"decision": "approve"}, headers=STAFF_HEADERS)
        response = client.post(url, json={"decision": "approve"}, headers=STAFF_HEADERS)
        assert response.status_code == 409
        assert response.json()["detail"]["current_status"] == "approved"

    def test_reject_without_reason_409(self, client, submission):
        response = client.post(
            f"/api/v1/ecological/submissions/{submission.id}/review",
            json={"decision": "reject"},
            headers=STAFF_HEADERS,
        )
        assert response.status_code == 409

    def test_unknown_decision_422(self, client, submission):
        response = client.post(
            f"/api/v1/ecological/submissions/{submission.id}/review",
            json={"decision": "archive"},
            headers=STAFF_HEADERS,
        )
        assert response.status_code == 422

    def test_partial_sync_reported(self, client, store, submission):
        with patch.object(store, "upsert_member", side_effect=PersistenceError("timeout")):
            response = client.post(
                f"/api/v1/ecological/submissions/{submission.id}/review",
                json={"decision": "approve"},
                headers=STAFF_HEADERS,
            )
        body = response.json()
        assert response.status_code == 200
        assert body["submission"]["status"] == "approved"
        assert body["household_synced"] is False
        assert "not fully updated" in body["warnings"][0]

    def test_store_failure_502(self, client, store, submission):
        with patch.object(store, "upsert_household", side_effect=PersistenceError("db down")):
            response = client.post(
                f"/api/v1/ecological/submissions/{submission.id}/review",
                json={"decision": "approve"},
                headers=STAFF_HEADERS,
            )
        assert response.status_code == 502
        assert "db down" in response.json()["detail"]

    def test_delete_and_recover(self, client, submission):
        url = f"/api/v1/ecological/submissions/{submission.id}"
        deleted = client.delete(url, headers=STAFF_HEADERS).json()
        assert deleted["changed"] is True
        assert deleted["workflow_status"] == "pending"
        assert deleted["submission"]["deleted_by"] == "Ana Reyes"

        assert client.delete(url, headers=STAFF_HEADERS).json()["changed"] is False
        assert client.get("/api/v1/ecological/submissions").json()["total"] == 0

        recovered = client.post(f"{url}/recover", headers=STAFF_HEADERS).json()
        assert recovered["changed"] is True
        assert recovered["submission"]["deleted_at"] is None


# ============================================================
# TEST: CSV
# ============================================================

class TestCsvEndpoints:
    def test_export_has_bom_and_headers(self, client, submission):
        response = client.get("/api/v1/ecological/export")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        assert response.content.startswith(b"\xef\xbb\xbf")
        text = response.content.decode("utf-8-sig")
        assert text.split("\n")[0].startswith("Submission Number,Status,Household Number")

    def test_export_members_view(self, client, submission):
        response = client.get("/api/v1/ecological/export", params={"view": "members"})
        lines = response.content.decode("utf-8-sig").split("\n")
        assert len(lines) == 3
        assert "ecological_members_" in response.headers["content-disposition"]

    def test_export_unknown_view_400(self, client):
        assert client.get("/api/v1/ecological/export", params={"view": "x"}).status_code == 400

    def test_template(self, client):
        response = client.get("/api/v1/ecological/template")
        text = response.content.decode("utf-8-sig")
        assert text.split("\n")[0].startswith("Household Number,")

    def test_preview_writes_nothing(self, client, store):
        template = client.get("/api/v1/ecological/template").content.decode("utf-8-sig")
        body = client.post("/api/v1/ecological/import/preview", json={"csv": template}).json()
        assert body["valid"] is True
        assert body["row_count"] == 1
        assert body["preview"][0]["household_number"] == "HH-001"
        assert store.submissions == {}

    def test_preview_reports_row_errors(self, client):
        csv_text = 'Household Number,Members (JSON)\nHH-1,\nHH-2,"[bad"'
        body = client.post("/api/v1/ecological/import/preview", json={"csv": csv_text}).json()
        assert body["valid"] is False
        assert body["errors"][0]["row"] == 2

    def test_import(self, client, store, audit):
        members = json.dumps([{"full_name": "Juan", "is_head_of_household": True}]).replace('"', '""')
        csv_text = f'Household Number,Members (JSON)\nHH-1,"{members}"\nHH-2,[bad\nHH-3,'
        response = client.post("/api/v1/ecological/import", json={"csv": csv_text}, headers=STAFF_HEADERS)

        body = response.json()
        assert response.status_code == 200
        assert body["success_count"] == 2
        assert body["failure_count"] == 1
        assert body["failures"][0]["row"] == 2
        assert len(store.submissions) == 2
        assert audit.actions() == ["import"]

    def test_import_blank_422(self, client):
        response = client.post("/api/v1/ecological/import", json={"csv": "   "}, headers=STAFF_HEADERS)
        assert response.status_code == 422


class TestHealth:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
