"""
Project approval state machine tests.

Tests cover:
  - request_approval: pending on complete checklist, structured refusal otherwise
  - approve / reject only from pending
  - Blank rejection reason
  - Rejected projects can be resubmitted
  - Review queue and announced listings
"""
import pytest

from fundtrack.core.exceptions import InvalidStateTransition, NotFoundError, ValidationError
from fundtrack.services import approval_service, project_service, status_service


class TestRequestApproval:
    def test_complete_checklist_goes_pending(self, ready_project):
        result = approval_service.request_approval(ready_project.id)
        assert result == {"ok": True, "approval_status": "pending"}

        project = project_service.get_project(ready_project.id)
        assert project.approval_status == "pending"
        assert project.is_announced_to_donors is False

    def test_incomplete_checklist_returns_missing_items(self, project):
        result = approval_service.request_approval(project.id)
        assert result["ok"] is False
        assert "At least one risk" in result["missing"]
        assert project_service.get_project(project.id).approval_status is None

    def test_already_pending(self, ready_project):
        approval_service.request_approval(ready_project.id)
        with pytest.raises(InvalidStateTransition):
            approval_service.request_approval(ready_project.id)

    def test_already_approved(self, approved_project):
        with pytest.raises(InvalidStateTransition):
            approval_service.request_approval(approved_project.id)

    def test_unknown_project(self):
        with pytest.raises(NotFoundError):
            approval_service.request_approval("does-not-exist")


class TestApproveReject:
    def test_approve_sets_sticky_flag(self, ready_project):
        approval_service.request_approval(ready_project.id)
        project = approval_service.approve(ready_project.id, approver="Gina")
        assert project.approval_status == "approved"
        assert project.has_been_approved is True
        assert project.rejection_reason is None

    def test_approve_without_request(self, ready_project):
        with pytest.raises(InvalidStateTransition):
            approval_service.approve(ready_project.id)

    def test_reapprove_approved(self, approved_project):
        with pytest.raises(InvalidStateTransition):
            approval_service.approve(approved_project.id)

    def test_reject_blank_reason_keeps_pending(self, ready_project):
        approval_service.request_approval(ready_project.id)
        with pytest.raises(ValidationError):
            approval_service.reject(ready_project.id, "   ")
        assert project_service.get_project(ready_project.id).approval_status == "pending"

    def test_reject_records_reason(self, ready_project):
        approval_service.request_approval(ready_project.id)
        project = approval_service.reject(ready_project.id, " Missing budget detail ")
        assert project.approval_status == "rejected"
        assert project.rejection_reason == "Missing budget detail"
        assert project.has_been_approved is False

    def test_rereject_rejected(self, ready_project):
        approval_service.request_approval(ready_project.id)
        approval_service.reject(ready_project.id, "No")
        with pytest.raises(InvalidStateTransition):
            approval_service.reject(ready_project.id, "Still no")

    def test_rejected_project_can_resubmit(self, ready_project):
        approval_service.request_approval(ready_project.id)
        approval_service.reject(ready_project.id, "Fix the plan")

        result = approval_service.request_approval(ready_project.id)
        assert result["ok"] is True
        project = project_service.get_project(ready_project.id)
        assert project.approval_status == "pending"
        assert project.rejection_reason is None


class TestListings:
    def test_awaiting_approval(self, ready_project, project):
        approval_service.request_approval(ready_project.id)
        ids = [p.id for p in approval_service.list_awaiting_approval()]
        assert ids == [ready_project.id]

    def test_announced(self, approved_project):
        assert approval_service.list_announced() == []
        status_service.set_announcement(approved_project.id)
        assert [p.id for p in approval_service.list_announced()] == [approved_project.id]
