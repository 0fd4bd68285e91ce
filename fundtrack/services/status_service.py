"""
Announcement / execution toggles.

Both flags are written together by ``update_project_status`` so a toggle can
never persist one flag from a stale read of the other. Gate failures are not
exceptions: the toggles return a readiness-not-met result listing the unmet
items, which the API turns into a 422 with code READINESS_NOT_MET.

Outcomes returned in ``result["outcome"]``:
    approval_requested   first announcement, sent to governor review
    announced            flag set (previously approved project)
    unannounced          flag cleared; execution is stopped with it
    execution_started / execution_stopped
"""

from __future__ import annotations

import logging

from fundtrack.core.exceptions import InvalidStateTransition
from fundtrack.models import db
from fundtrack.models.project import APPROVAL_APPROVED, APPROVAL_PENDING, Project
from fundtrack.services import approval_service, readiness
from fundtrack.services.project_service import lock_project

logger = logging.getLogger(__name__)


def _apply_status(project: Project, is_announced_to_donors: bool, is_in_execution: bool) -> None:
    project.is_announced_to_donors = bool(is_announced_to_donors)
    project.is_in_execution = bool(is_in_execution)


def update_project_status(
    project_id: str,
    is_announced_to_donors: bool,
    is_in_execution: bool,
) -> Project:
    """Persist both status flags in one write. No gating."""
    project = lock_project(project_id)
    _apply_status(project, is_announced_to_donors, is_in_execution)
    db.session.commit()

    logger.info(
        "Project status updated",
        extra={
            "project_id": project.id,
            "status": f"announced={project.is_announced_to_donors} "
                      f"executing={project.is_in_execution}",
        },
    )
    return project


def _ok(project: Project, outcome: str) -> dict:
    return {"ok": True, "outcome": outcome, "project": project}


def set_announcement(project_id: str, announce: bool = True) -> dict:
    """Announce a project to donors, or withdraw the announcement.

    A project that was never approved is sent to review instead and stays
    unannounced. A previously approved project is announced directly once
    its checklist is complete.

    Raises:
        InvalidStateTransition: announcing while approval is pending.
    """
    project = lock_project(project_id)

    if not announce:
        # execution cannot outlive the announcement it depends on
        was_executing = project.is_in_execution
        _apply_status(project, False, False)
        db.session.commit()
        logger.info(
            "Project unannounced",
            extra={
                "project_id": project.id,
                "outcome": "unannounced",
                "status": "execution stopped" if was_executing else "not executing",
            },
        )
        return _ok(project, "unannounced")

    if project.is_announced_to_donors:
        db.session.rollback()
        return _ok(project, "announced")

    if project.approval_status == APPROVAL_PENDING:
        db.session.rollback()
        raise InvalidStateTransition(
            entity="Project announcement",
            current=APPROVAL_PENDING,
            target="announced",
            message="Project is already awaiting approval",
        )

    previously_approved = project.has_been_approved or project.approval_status == APPROVAL_APPROVED
    if not previously_approved:
        try:
            result = approval_service.submit_for_approval(project)
        except InvalidStateTransition:
            db.session.rollback()
            raise
        if not result["ok"]:
            db.session.rollback()
            return result
        db.session.commit()
        logger.info(
            "Announcement requested; project sent for approval",
            extra={
                "project_id": project.id,
                "approval_status": APPROVAL_PENDING,
                "outcome": "approval_requested",
            },
        )
        return _ok(project, "approval_requested")

    checklist = readiness.announcement_checklist(project)
    if not checklist["can_announce"]:
        db.session.rollback()
        return readiness.readiness_not_met(
            checklist["missing"],
            "Complete all announcement requirements before announcing",
            progress=checklist["progress"],
        )

    approval_service.mark_announced(project)
    _apply_status(project, True, project.is_in_execution)
    db.session.commit()

    logger.info(
        "Project announced to donors",
        extra={"project_id": project.id, "approval_status": APPROVAL_APPROVED, "outcome": "announced"},
    )
    return _ok(project, "announced")


def set_execution(project_id: str, execute: bool) -> dict:
    """Start or stop execution.

    Changing the flag in either direction requires the execution checklist.
    Requesting the current value is a no-op and always succeeds.
    """
    project = lock_project(project_id)

    if bool(execute) != project.is_in_execution:
        checklist = readiness.execution_checklist(project)
        if not checklist["can_execute"]:
            db.session.rollback()
            return readiness.readiness_not_met(
                checklist["missing"],
                checklist["reason"],
                items=[i for i in checklist["items"] if not i["met"]],
            )

    _apply_status(project, project.is_announced_to_donors, execute)
    db.session.commit()

    outcome = "execution_started" if execute else "execution_stopped"
    logger.info("Project execution toggled", extra={"project_id": project.id, "outcome": outcome})
    return _ok(project, outcome)
