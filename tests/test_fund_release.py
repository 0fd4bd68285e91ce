"""
Fund release workflow tests.

Tests cover:
  - Request submission, amount validation, one active request per milestone
  - Approve / reject transitions
  - Scheduled transfer creation: approval required, one per request, snapshots
  - Transfer scheduling, completion and DTO-limited updates
  - Funding summary (gross donations, committed, available)
"""
import pytest

from fundtrack.core.exceptions import (
    ConflictError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from fundtrack.services import donation_service, fund_release_service as frs, project_service
from fundtrack.services import milestone_budget_service


@pytest.fixture()
def milestone(ready_project):
    """First milestone, budgeted at 6000."""
    milestone = ready_project.milestones[0]
    milestone_budget_service.add_milestone_budget(ready_project.id, milestone.id, 6000)
    return milestone


@pytest.fixture()
def account(ready_project):
    return ready_project.fund_accounts[0]


def _submit(project, milestone, amount=5000):
    return frs.submit_fund_release_request(
        project.id, milestone.id, amount, description="Drilling rig hire",
        requested_by="owner-1", requested_by_name="Olive Owner",
    )


def _approved_request(project, milestone, amount=5000):
    req = _submit(project, milestone, amount)
    return frs.approve_fund_release_request(project.id, req.id, "cust-1", "Carl Custodian")


class TestSubmit:
    def test_creates_pending(self, ready_project, milestone):
        req = _submit(ready_project, milestone)
        assert req.status == "Pending"
        assert req.amount == 5000
        assert req.requested_by_name == "Olive Owner"
        assert req.request_date is not None

    @pytest.mark.parametrize("amount", [0, -10, "abc"])
    def test_invalid_amount(self, ready_project, milestone, amount):
        with pytest.raises(ValidationError):
            frs.submit_fund_release_request(ready_project.id, milestone.id, amount)

    def test_unknown_milestone(self, ready_project):
        with pytest.raises(NotFoundError):
            frs.submit_fund_release_request(ready_project.id, "nope", 100)

    @pytest.mark.parametrize("amount", [None, ""])
    def test_amount_defaults_to_budget(self, ready_project, milestone, amount):
        req = frs.submit_fund_release_request(ready_project.id, milestone.id, amount)
        assert req.amount == 6000

    def test_milestone_without_budget(self, ready_project):
        unbudgeted = project_service.add_milestone(
            ready_project.id, {"name": "Well 2 operational", "date": "2026-05-01"},
        )
        with pytest.raises(NotFoundError) as exc:
            frs.submit_fund_release_request(ready_project.id, unbudgeted.id, 100)
        assert "MilestoneBudget" in str(exc.value)
        assert frs.list_fund_release_requests(ready_project.id) == []

    def test_amount_above_budget(self, ready_project, milestone):
        with pytest.raises(ValidationError) as exc:
            frs.submit_fund_release_request(ready_project.id, milestone.id, 6000.01)
        assert exc.value.details == {"amount": "exceeds milestone budget"}
        assert frs.list_fund_release_requests(ready_project.id) == []

    def test_amount_equal_to_budget(self, ready_project, milestone):
        assert _submit(ready_project, milestone, 6000).amount == 6000

    def test_second_active_request_conflicts(self, ready_project, milestone):
        _submit(ready_project, milestone)
        with pytest.raises(ConflictError):
            _submit(ready_project, milestone, 100)
        assert len(frs.list_fund_release_requests(ready_project.id)) == 1

    def test_approved_request_still_blocks(self, ready_project, milestone):
        _approved_request(ready_project, milestone)
        with pytest.raises(ConflictError):
            _submit(ready_project, milestone)

    def test_rejected_request_frees_milestone(self, ready_project, milestone):
        req = _submit(ready_project, milestone)
        frs.reject_fund_release_request(ready_project.id, req.id, "Too early")
        again = _submit(ready_project, milestone, 3000)
        assert again.status == "Pending"


class TestReview:
    def test_approve(self, ready_project, milestone):
        req = _approved_request(ready_project, milestone)
        assert req.status == "Approved"
        assert req.approved_by == "cust-1"
        assert req.approved_by_name == "Carl Custodian"
        assert req.approval_date is not None

    def test_reject_requires_reason(self, ready_project, milestone):
        req = _submit(ready_project, milestone)
        with pytest.raises(ValidationError):
            frs.reject_fund_release_request(ready_project.id, req.id, "")
        assert frs.list_fund_release_requests(ready_project.id)[0].status == "Pending"

    def test_reject(self, ready_project, milestone):
        req = _submit(ready_project, milestone)
        rejected = frs.reject_fund_release_request(ready_project.id, req.id, "Missing invoices")
        assert rejected.status == "Rejected"
        assert rejected.rejection_reason == "Missing invoices"

    def test_only_pending_can_be_reviewed(self, ready_project, milestone):
        req = _approved_request(ready_project, milestone)
        with pytest.raises(InvalidStateTransition):
            frs.approve_fund_release_request(ready_project.id, req.id)
        with pytest.raises(InvalidStateTransition):
            frs.reject_fund_release_request(ready_project.id, req.id, "Changed mind")

    def test_filter_by_status(self, ready_project, milestone):
        _submit(ready_project, milestone)
        assert frs.list_fund_release_requests(ready_project.id, status="Approved") == []


class TestScheduledTransfer:
    def test_requires_approved_request(self, ready_project, milestone, account):
        req = _submit(ready_project, milestone)
        with pytest.raises(InvalidStateTransition):
            frs.create_scheduled_transfer(ready_project.id, req.id, account.id)

    def test_missing_account(self, ready_project, milestone):
        req = _approved_request(ready_project, milestone)
        with pytest.raises(NotFoundError) as exc:
            frs.create_scheduled_transfer(ready_project.id, req.id, "no-account")
        assert "FundAccount" in str(exc.value)

    def test_missing_request(self, ready_project, account):
        with pytest.raises(NotFoundError) as exc:
            frs.create_scheduled_transfer(ready_project.id, "no-request", account.id)
        assert "FundReleaseRequest" in str(exc.value)

    def test_snapshot_survives_account_rename(self, ready_project, milestone, account):
        req = _approved_request(ready_project, milestone, 5000)
        transfer = frs.create_scheduled_transfer(ready_project.id, req.id, account.id)
        assert transfer.status == "To be Transferred"

        project_service.update_fund_account(ready_project.id, account.id, {"account_name": "Renamed"})
        project_service.update_milestone(ready_project.id, milestone.id, {"name": "Renamed milestone"})

        stored = frs.list_scheduled_transfers(ready_project.id)[0]
        assert stored.amount == 5000
        assert stored.account_name == "Ops Account"
        assert stored.account_number == "001-2345"
        assert stored.bank_name == "Equity Bank"
        assert stored.milestone_name == "Well 1 operational"
        assert stored.project_name == "Clean Water for Kisumu"
        assert stored.requested_by_name == "Olive Owner"
        assert stored.fund_release_request_id == req.id

    def test_one_transfer_per_request(self, ready_project, milestone, account):
        req = _approved_request(ready_project, milestone)
        frs.create_scheduled_transfer(ready_project.id, req.id, account.id)
        with pytest.raises(ConflictError):
            frs.create_scheduled_transfer(ready_project.id, req.id, account.id)

    def test_schedule_then_complete(self, ready_project, milestone, account):
        req = _approved_request(ready_project, milestone)
        transfer = frs.create_scheduled_transfer(ready_project.id, req.id, account.id)

        scheduled = frs.schedule_transfer(ready_project.id, transfer.id, "2026-02-01", notes="Batch 3")
        assert scheduled.status == "Pending"
        assert scheduled.scheduled_date.isoformat() == "2026-02-01"
        assert scheduled.notes == "Batch 3"

        with pytest.raises(InvalidStateTransition):
            frs.schedule_transfer(ready_project.id, transfer.id, "2026-02-02")

        done = frs.mark_transferred(ready_project.id, transfer.id, "cust-1", "Carl Custodian")
        assert done.status == "Transferred"
        assert done.transferred_by_name == "Carl Custodian"
        assert done.transferred_date is not None

        with pytest.raises(InvalidStateTransition):
            frs.mark_transferred(ready_project.id, transfer.id)

    def test_schedule_requires_date(self, ready_project, milestone, account):
        req = _approved_request(ready_project, milestone)
        transfer = frs.create_scheduled_transfer(ready_project.id, req.id, account.id)
        with pytest.raises(ValidationError):
            frs.schedule_transfer(ready_project.id, transfer.id, None)

    def test_update_rejects_snapshot_fields(self, ready_project, milestone, account):
        req = _approved_request(ready_project, milestone)
        transfer = frs.create_scheduled_transfer(ready_project.id, req.id, account.id)
        with pytest.raises(ValidationError):
            frs.update_scheduled_transfer(ready_project.id, transfer.id, {"amount": 1})
        with pytest.raises(ValidationError):
            frs.update_scheduled_transfer(ready_project.id, transfer.id, {"status": "Lost"})

    def test_partial_update(self, ready_project, milestone, account):
        req = _approved_request(ready_project, milestone)
        transfer = frs.create_scheduled_transfer(ready_project.id, req.id, account.id)
        updated = frs.update_scheduled_transfer(ready_project.id, transfer.id, {"notes": "Call bank first"})
        assert updated.notes == "Call bank first"
        assert updated.status == "To be Transferred"

    def test_list_across_projects(self, ready_project, milestone, account):
        req = _approved_request(ready_project, milestone)
        frs.create_scheduled_transfer(ready_project.id, req.id, account.id)
        assert len(frs.list_scheduled_transfers()) == 1
        assert frs.list_scheduled_transfers(status="Transferred") == []


class TestFundingSummary:
    def test_gross_donations_and_committed(self, ready_project, milestone, account):
        donation = donation_service.create_donation(ready_project.id, 8000)
        donation_service.complete_donation(donation.id)

        req = _approved_request(ready_project, milestone, 5000)
        frs.create_scheduled_transfer(ready_project.id, req.id, account.id)

        summary = frs.funding_summary(ready_project.id)
        assert summary["donations"] == 8000
        assert summary["committed"] == 5000
        assert summary["available"] == 3000
        assert summary["transferred"] == 0
        assert summary["cost"] == 6500
        # transfers never reduce the gross total
        assert project_service.get_project(ready_project.id).donations == 8000
