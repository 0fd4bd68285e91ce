"""
Donation recording.

A donation starts ``pending`` and is settled by the payment side as
``completed`` or ``failed``. Project.donations is always recomputed from the
completed rows, never incremented, so replays cannot double count.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select

from fundtrack.core.exceptions import InvalidStateTransition, NotFoundError, ValidationError
from fundtrack.models import db
from fundtrack.models.funding import (
    DONATION_COMPLETED,
    DONATION_FAILED,
    DONATION_PENDING,
    Donation,
)
from fundtrack.models.project import Project
from fundtrack.services.project_service import get_project, lock_project
from fundtrack.utils.helpers import parse_amount

logger = logging.getLogger(__name__)


def create_donation(
    project_id: str,
    amount,
    user_id: str | None = None,
    donor_name: str | None = None,
    donor_email: str | None = None,
    message: str | None = None,
    is_anonymous: bool = False,
) -> Donation:
    try:
        value = parse_amount(amount)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"amount": "invalid"}) from exc
    if value <= 0:
        raise ValidationError("amount must be greater than 0", details={"amount": "must be > 0"})

    project = lock_project(project_id)
    donation = Donation(
        user_id=user_id,
        donor_name=donor_name,
        donor_email=donor_email,
        amount=value,
        message=(message or "").strip() or None,
        is_anonymous=bool(is_anonymous),
        status=DONATION_PENDING,
    )
    project.donation_records.append(donation)
    db.session.commit()

    logger.info(
        "Donation created",
        extra={"project_id": project.id, "donation_id": donation.id, "amount": value},
    )
    return donation


def _load_pending(donation_id: str) -> tuple[Donation, Project]:
    donation = db.session.get(Donation, donation_id)
    if not donation:
        raise NotFoundError(resource="Donation", resource_id=donation_id)
    project = lock_project(donation.project_id)
    db.session.refresh(donation)
    if donation.status != DONATION_PENDING:
        db.session.rollback()
        raise InvalidStateTransition(entity="Donation", current=donation.status, target="settled")
    return donation, project


def recompute_donations(project: Project) -> float:
    """Store the sum of completed donations on ``project.donations`` (no commit)."""
    db.session.flush()
    total = db.session.execute(
        select(func.coalesce(func.sum(Donation.amount), 0.0)).where(
            Donation.project_id == project.id,
            Donation.status == DONATION_COMPLETED,
        )
    ).scalar_one()
    project.donations = float(total)
    return project.donations


def complete_donation(donation_id: str) -> Donation:
    """Mark a pending donation completed and refresh the project total."""
    donation, project = _load_pending(donation_id)
    donation.status = DONATION_COMPLETED
    recompute_donations(project)
    db.session.commit()

    logger.info(
        "Donation completed",
        extra={
            "project_id": project.id,
            "donation_id": donation.id,
            "amount": donation.amount,
        },
    )
    return donation


def fail_donation(donation_id: str) -> Donation:
    donation, project = _load_pending(donation_id)
    donation.status = DONATION_FAILED
    db.session.commit()

    logger.info(
        "Donation failed",
        extra={"project_id": project.id, "donation_id": donation.id},
    )
    return donation


def list_project_donations(project_id: str, status: str | None = None) -> list[Donation]:
    project = get_project(project_id)
    donations = list(reversed(project.donation_records))
    if status:
        donations = [d for d in donations if d.status == status]
    return donations


def donation_progress(project: Project) -> int:
    """Funded percentage of the project cost, capped at 100."""
    cost = project.cost or 0.0
    if cost <= 0:
        return 0
    return min(100, round((project.donations or 0.0) / cost * 100))
