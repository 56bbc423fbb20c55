"""
Workflow API Tests — HTTP adapter over the engine.

Covers:
  - organization_id is required
  - GET project workflow / available transitions
  - POST transition: 200 success, 422 blocked with code + details, 404 not found
"""

from tracker.models import db
from tracker.models.issue import IssueHistory
from tracker.services.workflow_engine import find_transition
from tests._factories import ORG_ID, PROJECT_ID, USER_ID


def _transition(client, issue_id, transition_id, **extra):
    payload = {"organization_id": ORG_ID, "transition_id": transition_id,
               "user_id": USER_ID, **extra}
    return client.post(f"/api/v1/issues/{issue_id}/transitions", json=payload)


class TestRequestGuards:

    def test_health(self, client):
        r = client.get("/api/v1/health")
        assert r.status_code == 200
        assert r.get_json()["status"] == "ok"

    def test_organization_required(self, client, world):
        r = client.get("/api/v1/issues/issue-1/transitions")
        assert r.status_code == 400
        assert r.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_transition_id_required(self, client, world):
        r = client.post("/api/v1/issues/issue-1/transitions",
                        json={"organization_id": ORG_ID})
        assert r.status_code == 400


class TestReadEndpoints:

    def test_project_workflow(self, client, world):
        r = client.get(f"/api/v1/projects/{PROJECT_ID}/workflow?organization_id={ORG_ID}")
        assert r.status_code == 200
        body = r.get_json()
        assert body["id"] == "wf-1"
        assert [s["status_id"] for s in body["statuses"]] == [
            "status-todo", "status-ip", "status-done",
        ]

    def test_project_workflow_missing_default(self, client):
        r = client.get(f"/api/v1/projects/{PROJECT_ID}/workflow?organization_id=42")
        assert r.status_code == 404
        assert r.get_json()["code"] == "ERR_NOT_FOUND"

    def test_available_transitions(self, client, world):
        r = client.get(f"/api/v1/issues/issue-1/transitions?organization_id={ORG_ID}")
        assert r.status_code == 200
        [only] = r.get_json()["transitions"]
        assert only["id"] == "trans-start"
        assert only["to_status"]["name"] == "In Progress"


class TestExecuteTransition:

    def test_success(self, client, world):
        r = _transition(client, "issue-1", "trans-start")

        assert r.status_code == 200
        body = r.get_json()
        assert body["status_id"] == "status-ip"
        assert body["status"]["category"] == "IN_PROGRESS"
        assert IssueHistory.query.filter_by(issue_id="issue-1").count() == 1

    def test_status_mismatch_is_422(self, client, world):
        r = _transition(client, "issue-1", "trans-done")

        assert r.status_code == 422
        body = r.get_json()
        assert body["code"] == "WORKFLOW_TRANSITION_BLOCKED"
        assert body["details"]["reason"] == "status_mismatch"

    def test_validator_failure_is_422_with_details(self, client, world):
        find_transition(world["workflow"], "trans-start").validators = [
            {"type": "required_field", "config": {"field": "resolutionId"}},
        ]
        db.session.commit()

        r = _transition(client, "issue-1", "trans-start")

        assert r.status_code == 422
        body = r.get_json()
        assert body["code"] == "WORKFLOW_TRANSITION_BLOCKED"
        assert body["details"] == {"validator": "required_field", "field": "resolutionId"}

    def test_unknown_transition_is_404(self, client, world):
        r = _transition(client, "issue-1", "trans-missing")
        assert r.status_code == 404

    def test_user_from_header(self, client, world):
        r = client.post(
            "/api/v1/issues/issue-1/transitions",
            json={"organization_id": ORG_ID, "transition_id": "trans-start"},
            headers={"X-User-Id": USER_ID},
        )
        assert r.status_code == 200
        assert IssueHistory.query.filter_by(issue_id="issue-1").one().user_id == USER_ID


def test_zero_organization_id_in_query_is_not_overridden_by_body(client, world):
    r = client.get(f"/api/v1/projects/{PROJECT_ID}/workflow?organization_id=0",
                   json={"organization_id": ORG_ID})
    assert r.status_code == 404
