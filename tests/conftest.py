"""
Shared pytest fixtures for the FundTrack test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - project: Bare project with basics only
    - ready_project: Project whose announcement checklist is complete
    - approved_project: ready_project after a governor approved it
    - announced_project: approved_project announced to donors
"""

import pytest

from fundtrack import create_app
from fundtrack.models import db as _db
from fundtrack.models.project import Project
from fundtrack.services import approval_service, project_service, status_service


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factory helpers ──────────────────────────────────────────────────────


def _make_project(**overrides):
    data = {
        "name": "Clean Water for Kisumu",
        "description": "Boreholes for three villages",
        "scope": "Drill and equip three wells",
        "objectives": "Safe water within 500m",
        "category": "water",
        "location": "Kisumu, Kenya",
    }
    data.update(overrides)
    return project_service.create_project(data, owner_id="owner-1", owner_name="Olive Owner")


def _complete_checklist(pid):
    """Fill every announcement checklist item for project ``pid``."""
    project_service.add_document(pid, {
        "name": "Registration certificate", "type": "business", "url": "https://files.example/reg.pdf",
    })
    project_service.add_document(pid, {
        "name": "Tax clearance", "type": "tax", "url": "https://files.example/tax.pdf",
    })
    project_service.add_human_resource(pid, {
        "name": "Site engineer", "role": "Engineer", "cost_per_day": 100, "quantity": 2,
    })
    project_service.add_material_resource(pid, {
        "name": "Hand pump", "cost_type": "one-time", "cost_amount": 500,
    })
    project_service.add_fund_account(pid, {
        "account_name": "Ops Account", "account_number": "001-2345", "bank_name": "Equity Bank",
        "account_type": "Domestic Account",
    })
    activity = project_service.add_activity(pid, {"name": "Drilling"})
    project_service.add_task(pid, {
        "name": "Site survey", "activity_id": activity.id,
        "start_date": "2026-01-01", "end_date": "2026-01-10",
    })
    project_service.add_deliverable(pid, {"name": "Survey report", "deadline": "2026-01-15"})
    project_service.add_milestone(pid, {"name": "Well 1 operational", "date": "2026-03-01"})
    project_service.add_decision_gate(pid, {"name": "Go / no-go", "objective": "Confirm sites"})
    project_service.add_risk(pid, {"name": "Dry borehole", "impact": 4, "probability": 2})
    project_service.set_communication_plan(pid, {
        "stakeholder_strategy": "Village committees",
        "meeting_schedule": "Monthly",
        "reporting_frequency": "Quarterly",
        "feedback_mechanisms": "SMS hotline",
        "emergency_contacts": "+254 700 000 000",
    })
    project_service.add_social_media_account(pid, {"platform": "X", "username": "@cleanwater"})
    project_service.add_communication_medium(pid, {"medium": "Community radio"})


@pytest.fixture()
def project():
    return _make_project()


@pytest.fixture()
def ready_project():
    pid = _make_project().id
    _complete_checklist(pid)
    return _db.session.get(Project, pid)


@pytest.fixture()
def approved_project(ready_project):
    approval_service.request_approval(ready_project.id)
    return approval_service.approve(ready_project.id, approver="Gina Governor")


@pytest.fixture()
def announced_project(approved_project):
    result = status_service.set_announcement(approved_project.id, announce=True)
    assert result["outcome"] == "announced"
    return result["project"]
