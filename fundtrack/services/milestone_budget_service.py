"""
Milestone budget ledger.

One budget per milestone per project. The standard edit path resets the
status to Planned; ``set_milestone_budget_status`` is the only way to move a
budget forward (used by milestone verification). The ledger total is allowed
to exceed the project cost and is reported as over-allocated.
"""

from __future__ import annotations

import logging

from fundtrack.core.exceptions import DuplicateMilestoneBudget, NotFoundError, ValidationError
from fundtrack.models import db
from fundtrack.models.funding import (
    BUDGET_COMPLETED,
    BUDGET_PLANNED,
    MILESTONE_BUDGET_STATUSES,
    MilestoneBudget,
)
from fundtrack.models.project import Project
from fundtrack.services.project_service import find_milestone, get_project, lock_project
from fundtrack.utils.helpers import parse_amount, parse_date_input

logger = logging.getLogger(__name__)

# Fields the standard edit path may change.
BUDGET_UPDATE_FIELDS = ("budget", "due_date", "milestone_name", "milestone_id")


def percent_of_total(budget: float, total: float) -> float:
    """Share of ``total`` taken by ``budget``; 0 when total is not positive."""
    if not total or total <= 0:
        return 0.0
    return (budget or 0.0) / total * 100


def _find_budget(project: Project, budget_id: str) -> MilestoneBudget:
    for entry in project.milestone_budgets:
        if entry.id == budget_id:
            return entry
    raise NotFoundError(resource="MilestoneBudget", resource_id=budget_id, project_id=project.id)


def budget_for_milestone(project: Project, milestone_id: str) -> MilestoneBudget | None:
    for entry in project.milestone_budgets:
        if entry.milestone_id == milestone_id:
            return entry
    return None


def _parse_budget(value) -> float:
    try:
        amount = parse_amount(value, "budget")
    except ValueError as exc:
        raise ValidationError(str(exc), details={"budget": "invalid"}) from exc
    if amount < 0:
        raise ValidationError("budget cannot be negative", details={"budget": "negative"})
    return amount


def _parse_due_date(value):
    try:
        return parse_date_input(value)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"due_date": "invalid"}) from exc


def add_milestone_budget(
    project_id: str,
    milestone_id: str,
    budget,
    due_date=None,
    milestone_name: str | None = None,
) -> MilestoneBudget:
    """Assign a budget to a milestone that has none yet.

    Name and due date default to the milestone's own values.

    Raises:
        NotFoundError: milestone not in project.
        DuplicateMilestoneBudget: milestone already budgeted (existing row untouched).
    """
    amount = _parse_budget(budget)
    parsed_due = _parse_due_date(due_date)

    project = lock_project(project_id)
    try:
        milestone = find_milestone(project, milestone_id)
        if budget_for_milestone(project, milestone_id) is not None:
            raise DuplicateMilestoneBudget(milestone_id)
    except (NotFoundError, ValidationError):
        db.session.rollback()
        raise

    entry = MilestoneBudget(
        milestone_id=milestone.id,
        milestone_name=(milestone_name or "").strip() or milestone.name,
        due_date=parsed_due or milestone.date,
        budget=amount,
        status=BUDGET_PLANNED,
    )
    project.milestone_budgets.append(entry)
    db.session.commit()

    logger.info(
        "Milestone budget added",
        extra={
            "project_id": project.id,
            "milestone_id": milestone.id,
            "budget_id": entry.id,
            "amount": amount,
        },
    )
    return entry


def update_milestone_budget(project_id: str, budget_id: str, **fields) -> MilestoneBudget:
    """Edit a budget in place; status goes back to Planned.

    Accepted fields: budget, due_date, milestone_name, milestone_id. Moving
    onto a milestone that already has a budget raises DuplicateMilestoneBudget.
    """
    unknown = set(fields) - set(BUDGET_UPDATE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unsupported fields: {', '.join(sorted(unknown))}",
            details={f: "not updatable" for f in unknown},
        )
    amount = _parse_budget(fields["budget"]) if "budget" in fields else None
    parsed_due = _parse_due_date(fields["due_date"]) if "due_date" in fields else None

    project = lock_project(project_id)
    try:
        entry = _find_budget(project, budget_id)
        target_id = fields.get("milestone_id")
        if target_id and target_id != entry.milestone_id:
            milestone = find_milestone(project, target_id)
            if budget_for_milestone(project, target_id) is not None:
                raise DuplicateMilestoneBudget(target_id)
            entry.milestone_id = milestone.id
            if "milestone_name" not in fields:
                entry.milestone_name = milestone.name
    except (NotFoundError, ValidationError):
        db.session.rollback()
        raise

    if amount is not None:
        entry.budget = amount
    if "due_date" in fields:
        entry.due_date = parsed_due
    if "milestone_name" in fields:
        entry.milestone_name = (fields["milestone_name"] or "").strip() or entry.milestone_name
    entry.status = BUDGET_PLANNED
    db.session.commit()

    logger.info(
        "Milestone budget updated",
        extra={"project_id": project.id, "budget_id": entry.id, "milestone_id": entry.milestone_id},
    )
    return entry


def set_milestone_budget_status(project_id: str, budget_id: str, status: str) -> MilestoneBudget:
    """Set a budget's status explicitly (bypasses the Planned reset)."""
    if status not in MILESTONE_BUDGET_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(sorted(MILESTONE_BUDGET_STATUSES))}",
            details={"status": "invalid choice"},
        )
    project = lock_project(project_id)
    try:
        entry = _find_budget(project, budget_id)
    except NotFoundError:
        db.session.rollback()
        raise
    entry.status = status
    db.session.commit()

    logger.info(
        "Milestone budget status set",
        extra={"project_id": project.id, "budget_id": entry.id, "status": status},
    )
    return entry


def delete_milestone_budget(project_id: str, budget_id: str) -> None:
    project = lock_project(project_id)
    try:
        entry = _find_budget(project, budget_id)
    except NotFoundError:
        db.session.rollback()
        raise
    project.milestone_budgets.remove(entry)
    db.session.commit()

    logger.info(
        "Milestone budget deleted",
        extra={"project_id": project.id, "budget_id": budget_id},
    )


def total_milestone_budget(project: Project) -> dict:
    total = sum(b.budget or 0.0 for b in project.milestone_budgets)
    cost = project.cost or 0.0
    return {
        "total": total,
        "project_cost": cost,
        "percent_of_cost": percent_of_total(total, cost),
        "over_allocated": total > cost,
        "unallocated": max(cost - total, 0.0),
    }


def list_milestone_budgets(project_id: str) -> dict:
    """Budgets with their share of the project cost, plus ledger totals."""
    project = get_project(project_id)
    cost = project.cost or 0.0
    items = []
    for entry in project.milestone_budgets:
        row = entry.to_dict()
        row["percent_of_total"] = percent_of_total(entry.budget, cost)
        items.append(row)
    return {"items": items, "summary": total_milestone_budget(project)}


def find_orphan_budgets(project: Project) -> list[MilestoneBudget]:
    """Budgets whose milestone no longer exists in the project."""
    milestone_ids = {m.id for m in project.milestones}
    return [b for b in project.milestone_budgets if b.milestone_id not in milestone_ids]


def verify_milestone(project_id: str, milestone_id: str) -> dict:
    """Fund custodian confirms a milestone; it and its budget become Completed."""
    project = lock_project(project_id)
    try:
        milestone = find_milestone(project, milestone_id)
    except NotFoundError:
        db.session.rollback()
        raise

    milestone.status = BUDGET_COMPLETED
    entry = budget_for_milestone(project, milestone_id)
    if entry is not None:
        entry.status = BUDGET_COMPLETED
    db.session.commit()

    logger.info(
        "Milestone verified",
        extra={"project_id": project.id, "milestone_id": milestone.id},
    )
    return {
        "milestone": milestone.to_dict(),
        "milestone_budget": entry.to_dict() if entry is not None else None,
    }
