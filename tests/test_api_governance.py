"""
Governance blueprint API tests.

Tests cover:
  - Approval request gated by the announcement checklist (422 READINESS_NOT_MET)
  - Governor approve / reject, including 409 on non-pending projects
  - Review queue and announced listings
  - Announcement and execution toggles over HTTP
"""
from fundtrack.services import donation_service, project_service

GOVERNOR = {"X-User-Id": "gov-1", "X-User-Name": "Gina Governor"}


def _url(pid, suffix):
    return f"/api/v1/projects/{pid}/{suffix}"


# ═════════════════════════════════════════════════════════════════════════
# APPROVAL
# ═════════════════════════════════════════════════════════════════════════

class TestApprovalEndpoints:
    def test_request_with_incomplete_checklist(self, client, project):
        res = client.post(_url(project.id, "approval/request"))
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "READINESS_NOT_MET"
        assert "At least one risk" in body["details"]["missing"]
        assert project_service.get_project(project.id).approval_status is None

    def test_request_then_approve(self, client, ready_project):
        res = client.post(_url(ready_project.id, "approval/request"))
        assert res.status_code == 200
        assert res.get_json()["project"]["approval_status"] == "pending"

        queue = client.get("/api/v1/projects/awaiting-approval").get_json()
        assert [p["id"] for p in queue["items"]] == [ready_project.id]

        res = client.post(_url(ready_project.id, "approval/approve"), headers=GOVERNOR)
        assert res.status_code == 200
        data = res.get_json()
        assert data["approval_status"] == "approved"
        assert data["has_been_approved"] is True
        assert data["is_announced_to_donors"] is False

        assert client.get("/api/v1/projects/awaiting-approval").get_json()["total"] == 0

    def test_request_twice_conflicts(self, client, ready_project):
        client.post(_url(ready_project.id, "approval/request"))
        res = client.post(_url(ready_project.id, "approval/request"))
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_approve_twice_conflicts(self, client, approved_project):
        res = client.post(_url(approved_project.id, "approval/approve"), headers=GOVERNOR)
        assert res.status_code == 409

    def test_approve_never_submitted(self, client, project):
        res = client.post(_url(project.id, "approval/approve"), headers=GOVERNOR)
        assert res.status_code == 409
        assert res.get_json()["details"]["current"] is None

    def test_reject_requires_reason(self, client, ready_project):
        client.post(_url(ready_project.id, "approval/request"))
        res = client.post(_url(ready_project.id, "approval/reject"), json={"reason": "   "})
        assert res.status_code == 422
        assert project_service.get_project(ready_project.id).approval_status == "pending"

    def test_reject_then_resubmit(self, client, ready_project):
        client.post(_url(ready_project.id, "approval/request"))
        res = client.post(_url(ready_project.id, "approval/reject"), json={"reason": "Budget unclear"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["approval_status"] == "rejected"
        assert data["rejection_reason"] == "Budget unclear"

        res = client.post(_url(ready_project.id, "approval/request"))
        assert res.status_code == 200
        assert project_service.get_project(ready_project.id).rejection_reason is None

    def test_unknown_project(self, client):
        assert client.post(_url("missing", "approval/request")).status_code == 404


# ═════════════════════════════════════════════════════════════════════════
# ANNOUNCEMENT / EXECUTION
# ═════════════════════════════════════════════════════════════════════════

class TestAnnouncementEndpoint:
    def test_first_announcement_requests_approval(self, client, ready_project):
        res = client.post(_url(ready_project.id, "announcement"), json={"announce": True})
        assert res.status_code == 200
        body = res.get_json()
        assert body["outcome"] == "approval_requested"

    def test_default_is_announce(self, client, approved_project):
        res = client.post(_url(approved_project.id, "announcement"))
        assert res.status_code == 200
        body = res.get_json()
        assert body["outcome"] == "announced"
        assert body["project"]["is_announced_to_donors"] is True

        listing = client.get("/api/v1/projects/announced").get_json()
        assert listing["total"] == 1

    def test_announce_while_pending(self, client, ready_project):
        client.post(_url(ready_project.id, "approval/request"))
        res = client.post(_url(ready_project.id, "announcement"), json={"announce": True})
        assert res.status_code == 409

    def test_incomplete_checklist(self, client, project):
        res = client.post(_url(project.id, "announcement"), json={"announce": True})
        assert res.status_code == 422
        assert res.get_json()["details"]["missing"]

    def test_invalid_flag(self, client, project):
        res = client.post(_url(project.id, "announcement"), json={"announce": "maybe"})
        assert res.status_code == 400

    def test_withdraw(self, client, announced_project):
        res = client.post(_url(announced_project.id, "announcement"), json={"announce": "false"})
        assert res.status_code == 200
        body = res.get_json()
        assert body["outcome"] == "unannounced"
        assert body["project"]["approval_status"] == "approved"


class TestExecutionEndpoint:
    def test_execute_required(self, client, announced_project):
        res = client.post(_url(announced_project.id, "execution"), json={})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_not_announced(self, client, ready_project):
        res = client.post(_url(ready_project.id, "execution"), json={"execute": True})
        assert res.status_code == 422
        assert res.get_json()["code"] == "READINESS_NOT_MET"

    def test_start_execution(self, client, announced_project):
        task = announced_project.tasks[0]
        engineer = announced_project.human_resources[0]
        project_service.add_task_resource(announced_project.id, task.id, {
            "resource_id": engineer.id, "resource_type": "human",
        })
        donation = donation_service.create_donation(announced_project.id, 1000)
        donation_service.complete_donation(donation.id)

        res = client.post(_url(announced_project.id, "execution"), json={"execute": True})
        assert res.status_code == 200
        body = res.get_json()
        assert body["outcome"] == "execution_started"
        assert body["project"]["is_in_execution"] is True

    def test_stop_execution(self, client, project):
        res = client.post(_url(project.id, "execution"), json={"execute": False})
        assert res.status_code == 200
        assert res.get_json()["outcome"] == "execution_stopped"
