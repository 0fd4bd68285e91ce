"""
Project approval state machine.

    None ──request──▶ pending ──approve──▶ approved
                         │
                         └──reject───▶ rejected ──request──▶ pending

Only ``pending`` can be approved or rejected. A rejected project re-enters
``pending`` through a fresh announcement request. ``has_been_approved`` is
sticky: once a governor approved a project, later announcements skip review.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from fundtrack.core.exceptions import InvalidStateTransition, ValidationError
from fundtrack.models import db
from fundtrack.models.project import (
    APPROVAL_APPROVED,
    APPROVAL_PENDING,
    APPROVAL_REJECTED,
    Project,
)
from fundtrack.services import readiness
from fundtrack.services.project_service import lock_project

logger = logging.getLogger(__name__)


def _require_pending(project: Project, target: str) -> None:
    if project.approval_status != APPROVAL_PENDING:
        db.session.rollback()
        raise InvalidStateTransition(
            entity="Project approval",
            current=project.approval_status,
            target=target,
            message=(
                f"Project can only be {target} while pending review "
                f"(current: {project.approval_status or 'not submitted'})"
            ),
        )


def submit_for_approval(project: Project) -> dict:
    """Move an already-locked project to ``pending`` (caller commits).

    Returns the readiness-not-met result instead when the announcement
    checklist is incomplete.
    """
    if project.approval_status == APPROVAL_PENDING:
        raise InvalidStateTransition(
            entity="Project approval",
            current=APPROVAL_PENDING,
            target=APPROVAL_PENDING,
            message="Project is already awaiting approval",
        )
    if project.has_been_approved or project.approval_status == APPROVAL_APPROVED:
        raise InvalidStateTransition(
            entity="Project approval",
            current=project.approval_status,
            target=APPROVAL_PENDING,
            message="Project has already been approved; announce it directly",
        )
    if project.is_announced_to_donors:
        raise InvalidStateTransition(
            entity="Project approval",
            current=project.approval_status,
            target=APPROVAL_PENDING,
            message="Project is already announced to donors",
        )

    checklist = readiness.announcement_checklist(project)
    if not checklist["checklist_complete"]:
        return readiness.readiness_not_met(
            checklist["missing"],
            "Complete all announcement requirements before requesting approval",
            progress=checklist["progress"],
        )

    project.approval_status = APPROVAL_PENDING
    project.rejection_reason = None
    return {"ok": True, "approval_status": APPROVAL_PENDING}


def request_approval(project_id: str) -> dict:
    """Submit a project for governor review.

    Returns:
        ``{"ok": True, "approval_status": "pending"}`` on success, or the
        readiness-not-met result listing missing checklist items.

    Raises:
        InvalidStateTransition: already pending, or already approved/announced.
    """
    project = lock_project(project_id)
    try:
        result = submit_for_approval(project)
    except InvalidStateTransition:
        db.session.rollback()
        raise
    if not result["ok"]:
        db.session.rollback()
        return result

    db.session.commit()
    logger.info(
        "Project submitted for approval",
        extra={"project_id": project.id, "approval_status": APPROVAL_PENDING},
    )
    return result


def approve(project_id: str, approver: str | None = None) -> Project:
    """Governor approves a pending project."""
    project = lock_project(project_id)
    _require_pending(project, APPROVAL_APPROVED)

    project.approval_status = APPROVAL_APPROVED
    project.has_been_approved = True
    project.rejection_reason = None
    db.session.commit()

    logger.info(
        "Project approved by %s", approver or "unknown",
        extra={"project_id": project.id, "approval_status": APPROVAL_APPROVED},
    )
    return project


def reject(project_id: str, reason: str) -> Project:
    """Governor rejects a pending project. A non-blank reason is mandatory."""
    if not (reason or "").strip():
        raise ValidationError("A rejection reason is required", details={"reason": "required"})

    project = lock_project(project_id)
    _require_pending(project, APPROVAL_REJECTED)

    project.approval_status = APPROVAL_REJECTED
    project.rejection_reason = reason.strip()
    db.session.commit()

    logger.info(
        "Project rejected",
        extra={"project_id": project.id, "approval_status": APPROVAL_REJECTED},
    )
    return project


def list_awaiting_approval() -> list[Project]:
    """Projects in ``pending`` ordered oldest first (review queue)."""
    stmt = (
        select(Project)
        .where(Project.approval_status == APPROVAL_PENDING)
        .order_by(Project.updated_at.asc())
    )
    return list(db.session.execute(stmt).scalars())


def list_announced() -> list[Project]:
    """Projects visible to donors, most recently announced first."""
    stmt = (
        select(Project)
        .where(Project.is_announced_to_donors.is_(True))
        .order_by(Project.announcement_date.desc())
    )
    return list(db.session.execute(stmt).scalars())


def mark_announced(project: Project) -> None:
    """Set announcement fields on a locked project (caller commits)."""
    project.approval_status = APPROVAL_APPROVED
    project.has_been_approved = True
    project.announcement_date = datetime.now(timezone.utc)
