"""
Readiness evaluator tests.

Tests cover:
  - Announcement checklist sections, progress and missing items
  - can_announce depends on checklist + previous approval
  - Execution gate: earliest task cost vs donations, failure codes
"""
import pytest

from fundtrack.models import db
from fundtrack.models.project import Project
from fundtrack.services import approval_service, donation_service, project_service, readiness


def _donate(pid, amount):
    donation = donation_service.create_donation(pid, amount, donor_name="Dana Donor")
    donation_service.complete_donation(donation.id)


def _assign_engineer(project, quantity=1):
    task = project.tasks[0]
    engineer = project.human_resources[0]
    return project_service.add_task_resource(project.id, task.id, {
        "resource_id": engineer.id, "resource_type": "human", "quantity": quantity,
    })


# ═════════════════════════════════════════════════════════════════════════
# ANNOUNCEMENT CHECKLIST
# ═════════════════════════════════════════════════════════════════════════

class TestAnnouncementChecklist:
    def test_bare_project_progress(self, project):
        checklist = readiness.announcement_checklist(project)
        assert checklist["checklist_complete"] is False
        assert checklist["can_announce"] is False
        assert len(checklist["sections"]) == 9
        # name, scope and location are filled
        basics = checklist["sections"][0]
        assert basics["complete"] is True
        assert basics["progress"] == 100
        assert checklist["met"] == 3
        assert checklist["progress"] == round(3 / checklist["total"] * 100)
        assert "At least one risk" in checklist["missing"]

    def test_ready_project_complete_but_not_announceable(self, ready_project):
        checklist = readiness.announcement_checklist(ready_project)
        assert checklist["checklist_complete"] is True
        assert checklist["progress"] == 100
        assert checklist["missing"] == []
        assert checklist["can_announce"] is False

    def test_document_without_url_does_not_count(self, project):
        project_service.add_document(project.id, {"name": "Registration", "type": "business"})
        checklist = readiness.announcement_checklist(project_service.get_project(project.id))
        section = next(s for s in checklist["sections"] if s["key"] == "business_document")
        assert section["complete"] is False

    def test_incomplete_communication_plan(self, ready_project):
        project_service.set_communication_plan(ready_project.id, {"emergency_contacts": "  "})
        checklist = readiness.announcement_checklist(project_service.get_project(ready_project.id))
        assert "Complete communication plan" in checklist["missing"]

    def test_missing_risk_then_added_flips_can_announce(self, approved_project):
        pid = approved_project.id
        risk = approved_project.risks[0]
        project_service.delete_risk(pid, risk.id)

        project = db.session.get(Project, pid)
        assert readiness.can_announce(project) is False

        project_service.add_risk(pid, {"name": "Flooding", "impact": 3, "probability": 3})
        project = db.session.get(Project, pid)
        assert readiness.can_announce(project) is True

    def test_rejected_project_never_approved_cannot_announce(self, ready_project):
        approval_service.request_approval(ready_project.id)
        approval_service.reject(ready_project.id, "Budget unclear")
        assert readiness.can_announce(project_service.get_project(ready_project.id)) is False


# ═════════════════════════════════════════════════════════════════════════
# EXECUTION CHECKLIST
# ═════════════════════════════════════════════════════════════════════════

class TestExecutionChecklist:
    def test_not_announced_fails(self, ready_project):
        checklist = readiness.execution_checklist(ready_project)
        assert checklist["can_execute"] is False
        assert checklist["items"][0]["code"] == readiness.NOT_ANNOUNCED

    def test_no_tasks(self, announced_project):
        pid = announced_project.id
        for task in list(announced_project.tasks):
            project_service.delete_task(pid, task.id)
        checklist = readiness.execution_checklist(project_service.get_project(pid))
        funding = checklist["items"][1]
        assert funding["met"] is False
        assert funding["code"] == readiness.NO_MILESTONE_BUDGET_DEFINED

    def test_first_task_without_cost(self, announced_project):
        checklist = readiness.execution_checklist(announced_project)
        funding = checklist["items"][1]
        assert funding["code"] == readiness.NO_BUDGET_ASSIGNED
        assert checklist["can_execute"] is False

    def test_shortfall_then_covered(self, announced_project):
        pid = announced_project.id
        _assign_engineer(announced_project)  # 100/day × 10 days
        _donate(pid, 999)

        checklist = readiness.execution_checklist(project_service.get_project(pid))
        assert checklist["can_execute"] is False
        assert "1000" in checklist["reason"]
        assert "999" in checklist["reason"]
        assert checklist["items"][1]["code"] == readiness.INSUFFICIENT_DONATIONS

        _donate(pid, 1)
        assert readiness.can_execute(project_service.get_project(pid)) is True

    def test_earliest_task_wins(self, announced_project):
        pid = announced_project.id
        _assign_engineer(announced_project)
        project_service.add_task(pid, {"name": "Mobilisation", "start_date": "2025-12-01",
                                       "end_date": "2025-12-02"})
        project = project_service.get_project(pid)
        assert readiness.earliest_task(project).name == "Mobilisation"
        # The new earliest task has no assignments
        assert readiness.execution_checklist(project)["items"][1]["code"] == readiness.NO_BUDGET_ASSIGNED

    def test_undated_tasks_sort_last(self, announced_project):
        pid = announced_project.id
        project_service.add_task(pid, {"name": "Someday"})
        assert readiness.earliest_task(project_service.get_project(pid)).name == "Site survey"


class TestReadinessNotMet:
    def test_result_shape(self):
        result = readiness.readiness_not_met(["A"], "because", progress=50)
        assert result == {"ok": False, "missing": ["A"], "reason": "because", "progress": 50}

    @pytest.mark.parametrize("value,expected", [(1000.0, "1000"), (999.5, "999.50")])
    def test_money_formatting(self, value, expected):
        assert readiness._fmt_money(value) == expected
