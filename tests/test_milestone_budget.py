"""
Milestone budget ledger tests.

Tests cover:
  - percent_of_total edge cases
  - add: defaults from milestone, duplicate refusal, unknown milestone
  - update: status reset to Planned, moving between milestones
  - explicit status setter and milestone verification
  - cascade delete with the milestone, orphan report, over-allocation
"""
from types import SimpleNamespace

import pytest

from fundtrack.core.exceptions import DuplicateMilestoneBudget, NotFoundError, ValidationError
from fundtrack.models import db
from fundtrack.models.funding import MilestoneBudget
from fundtrack.services import milestone_budget_service as mbs
from fundtrack.services import project_service


@pytest.fixture()
def milestone(ready_project):
    return ready_project.milestones[0]


def _second_milestone(pid):
    return project_service.add_milestone(pid, {"name": "Well 2 operational", "date": "2026-05-01"})


class TestPercentOfTotal:
    @pytest.mark.parametrize("total", [0, -5, None])
    def test_non_positive_total(self, total):
        assert mbs.percent_of_total(1000, total) == 0

    def test_share(self):
        assert mbs.percent_of_total(1625, 6500) == 25


class TestAddBudget:
    def test_defaults_from_milestone(self, ready_project, milestone):
        entry = mbs.add_milestone_budget(ready_project.id, milestone.id, 2000)
        assert entry.status == "Planned"
        assert entry.milestone_name == "Well 1 operational"
        assert entry.due_date.isoformat() == "2026-03-01"
        assert entry.budget == 2000

    def test_explicit_name_and_date(self, ready_project, milestone):
        entry = mbs.add_milestone_budget(
            ready_project.id, milestone.id, "1500.50", due_date="2026-04-01", milestone_name="Phase A",
        )
        assert entry.milestone_name == "Phase A"
        assert entry.due_date.isoformat() == "2026-04-01"
        assert entry.budget == 1500.5

    def test_duplicate_leaves_existing_untouched(self, ready_project, milestone):
        first = mbs.add_milestone_budget(ready_project.id, milestone.id, 2000)
        with pytest.raises(DuplicateMilestoneBudget):
            mbs.add_milestone_budget(ready_project.id, milestone.id, 9999)

        rows = db.session.query(MilestoneBudget).filter_by(project_id=ready_project.id).all()
        assert len(rows) == 1
        assert rows[0].id == first.id
        assert rows[0].budget == 2000

    def test_unknown_milestone(self, ready_project):
        with pytest.raises(NotFoundError) as exc:
            mbs.add_milestone_budget(ready_project.id, "nope", 100)
        assert "Milestone" in str(exc.value)

    def test_negative_budget(self, ready_project, milestone):
        with pytest.raises(ValidationError):
            mbs.add_milestone_budget(ready_project.id, milestone.id, -1)


class TestUpdateBudget:
    def test_edit_resets_status(self, ready_project, milestone):
        entry = mbs.add_milestone_budget(ready_project.id, milestone.id, 2000)
        mbs.set_milestone_budget_status(ready_project.id, entry.id, "In-progress")

        updated = mbs.update_milestone_budget(ready_project.id, entry.id, budget=2500)
        assert updated.budget == 2500
        assert updated.status == "Planned"

    def test_move_to_free_milestone(self, ready_project, milestone):
        entry = mbs.add_milestone_budget(ready_project.id, milestone.id, 2000)
        other = _second_milestone(ready_project.id)
        updated = mbs.update_milestone_budget(ready_project.id, entry.id, milestone_id=other.id)
        assert updated.milestone_id == other.id
        assert updated.milestone_name == "Well 2 operational"

    def test_move_to_budgeted_milestone(self, ready_project, milestone):
        entry = mbs.add_milestone_budget(ready_project.id, milestone.id, 2000)
        other = _second_milestone(ready_project.id)
        mbs.add_milestone_budget(ready_project.id, other.id, 1000)
        with pytest.raises(DuplicateMilestoneBudget):
            mbs.update_milestone_budget(ready_project.id, entry.id, milestone_id=other.id)

    def test_unknown_budget(self, ready_project):
        with pytest.raises(NotFoundError):
            mbs.update_milestone_budget(ready_project.id, "missing", budget=1)

    def test_status_not_editable_through_standard_path(self, ready_project, milestone):
        entry = mbs.add_milestone_budget(ready_project.id, milestone.id, 2000)
        with pytest.raises(ValidationError):
            mbs.update_milestone_budget(ready_project.id, entry.id, status="Completed")

    def test_invalid_status(self, ready_project, milestone):
        entry = mbs.add_milestone_budget(ready_project.id, milestone.id, 2000)
        with pytest.raises(ValidationError):
            mbs.set_milestone_budget_status(ready_project.id, entry.id, "Done")


class TestLedger:
    def test_delete_milestone_removes_budget(self, ready_project, milestone):
        mbs.add_milestone_budget(ready_project.id, milestone.id, 2000)
        project_service.delete_milestone(ready_project.id, milestone.id)
        assert db.session.query(MilestoneBudget).count() == 0

    def test_delete_budget(self, ready_project, milestone):
        entry = mbs.add_milestone_budget(ready_project.id, milestone.id, 2000)
        mbs.delete_milestone_budget(ready_project.id, entry.id)
        assert mbs.list_milestone_budgets(ready_project.id)["items"] == []

    def test_list_with_percent_and_over_allocation(self, ready_project, milestone):
        # project cost: 100 × 2 × 30 + 500 = 6500
        mbs.add_milestone_budget(ready_project.id, milestone.id, 1625)
        listing = mbs.list_milestone_budgets(ready_project.id)
        assert listing["items"][0]["percent_of_total"] == 25
        assert listing["summary"]["over_allocated"] is False
        assert listing["summary"]["unallocated"] == 4875

        other = _second_milestone(ready_project.id)
        mbs.add_milestone_budget(ready_project.id, other.id, 6000)
        summary = mbs.list_milestone_budgets(ready_project.id)["summary"]
        assert summary["total"] == 7625
        assert summary["over_allocated"] is True

    def test_find_orphans(self):
        project = SimpleNamespace(
            milestones=[SimpleNamespace(id="m1")],
            milestone_budgets=[
                SimpleNamespace(id="b1", milestone_id="m1"),
                SimpleNamespace(id="b2", milestone_id="gone"),
            ],
        )
        assert [b.id for b in mbs.find_orphan_budgets(project)] == ["b2"]

    def test_verify_milestone_completes_both(self, ready_project, milestone):
        entry = mbs.add_milestone_budget(ready_project.id, milestone.id, 2000)
        result = mbs.verify_milestone(ready_project.id, milestone.id)
        assert result["milestone"]["status"] == "Completed"
        assert result["milestone_budget"]["id"] == entry.id
        assert result["milestone_budget"]["status"] == "Completed"

    def test_verify_milestone_without_budget(self, ready_project, milestone):
        result = mbs.verify_milestone(ready_project.id, milestone.id)
        assert result["milestone_budget"] is None
