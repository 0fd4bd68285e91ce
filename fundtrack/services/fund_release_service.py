"""
Fund release workflow.

    FundReleaseRequest: Pending ──approve──▶ Approved ──▶ ScheduledTransfer
                               └─reject───▶ Rejected

    ScheduledTransfer: To be Transferred ──schedule──▶ Pending ──complete──▶ Transferred

Rules:
    - A request is raised against a milestone budget; the amount defaults
      to the budget and cannot exceed it.
    - At most one active (Pending or Approved) request per milestone.
    - A transfer can only be created from an Approved request, once.
    - Transfer snapshots (amount, milestone, account, project, requester)
      are copied at creation and never updated.
    - Project.donations is gross; transfers are reported as ``committed``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from fundtrack.core.exceptions import (
    ConflictError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from fundtrack.models import db
from fundtrack.models.funding import (
    REVIEW_APPROVED,
    REVIEW_PENDING,
    REVIEW_REJECTED,
    TRANSFER_PENDING,
    TRANSFER_STATUSES,
    TRANSFER_TO_BE_TRANSFERRED,
    TRANSFER_TRANSFERRED,
    FundReleaseRequest,
    ScheduledTransfer,
)
from fundtrack.models.project import Project
from fundtrack.services.milestone_budget_service import budget_for_milestone, total_milestone_budget
from fundtrack.services.project_service import (
    find_fund_account,
    find_milestone,
    get_project,
    lock_project,
)
from fundtrack.utils.helpers import parse_amount, parse_date_input

logger = logging.getLogger(__name__)

# Fields accepted by update_scheduled_transfer. Snapshot columns are absent
# on purpose and cannot be changed after creation.
TRANSFER_UPDATE_FIELDS = (
    "status",
    "scheduled_date",
    "notes",
    "transferred_date",
    "transferred_by",
    "transferred_by_name",
)


def _utcnow():
    return datetime.now(timezone.utc)


def _find_request(project: Project, request_id: str) -> FundReleaseRequest:
    for req in project.fund_release_requests:
        if req.id == request_id:
            return req
    raise NotFoundError(resource="FundReleaseRequest", resource_id=request_id, project_id=project.id)


def _find_transfer(project: Project, transfer_id: str) -> ScheduledTransfer:
    for transfer in project.scheduled_transfers:
        if transfer.id == transfer_id:
            return transfer
    raise NotFoundError(resource="ScheduledTransfer", resource_id=transfer_id, project_id=project.id)


def _fail(exc: Exception):
    """Roll back the locking transaction and re-raise."""
    db.session.rollback()
    raise exc


# ═════════════════════════════════════════════════════════════════════════════
# Fund release requests
# ═════════════════════════════════════════════════════════════════════════════


def submit_fund_release_request(
    project_id: str,
    milestone_id: str,
    amount,
    description: str | None = None,
    requested_by: str | None = None,
    requested_by_name: str | None = None,
) -> FundReleaseRequest:
    """Project owner asks for a milestone's money.

    Requests are raised against the milestone's budget: ``amount`` defaults
    to the budgeted figure and may not exceed it.

    Raises:
        ValidationError: amount not positive, or above the milestone budget.
        NotFoundError: milestone not in project, or milestone has no budget.
        ConflictError: an active request already exists for the milestone.
    """
    value = None
    if amount not in (None, ""):
        try:
            value = parse_amount(amount)
        except ValueError as exc:
            raise ValidationError(str(exc), details={"amount": "invalid"}) from exc
        if value <= 0:
            raise ValidationError("amount must be greater than 0", details={"amount": "must be > 0"})

    project = lock_project(project_id)
    try:
        milestone = find_milestone(project, milestone_id)
        budget = budget_for_milestone(project, milestone.id)
        if budget is None:
            raise NotFoundError(resource="MilestoneBudget", resource_id=milestone.id,
                                project_id=project.id)
    except NotFoundError as exc:
        _fail(exc)

    if value is None:
        value = budget.budget or 0.0
        if value <= 0:
            _fail(ValidationError("Milestone budget is 0; nothing to release",
                                  details={"amount": "must be > 0"}))
    elif value > (budget.budget or 0.0):
        _fail(ValidationError(
            f"amount {value:g} exceeds the milestone budget of {budget.budget or 0.0:g}",
            details={"amount": "exceeds milestone budget"},
        ))

    if any(r.milestone_id == milestone.id and r.is_active() for r in project.fund_release_requests):
        _fail(ConflictError(resource="Active FundReleaseRequest", field="milestone_id",
                            value=milestone.id))

    req = FundReleaseRequest(
        milestone_id=milestone.id,
        amount=value,
        description=(description or "").strip() or None,
        status=REVIEW_PENDING,
        requested_by=requested_by,
        requested_by_name=requested_by_name,
        request_date=_utcnow(),
    )
    project.fund_release_requests.append(req)
    db.session.commit()

    logger.info(
        "Fund release requested",
        extra={
            "project_id": project.id,
            "milestone_id": milestone.id,
            "release_request_id": req.id,
            "amount": value,
        },
    )
    return req


def _require_pending_request(req: FundReleaseRequest, target: str) -> None:
    if req.status != REVIEW_PENDING:
        _fail(InvalidStateTransition(entity="FundReleaseRequest", current=req.status, target=target))


def approve_fund_release_request(
    project_id: str,
    request_id: str,
    approver_id: str | None = None,
    approver_name: str | None = None,
) -> FundReleaseRequest:
    project = lock_project(project_id)
    try:
        req = _find_request(project, request_id)
    except NotFoundError as exc:
        _fail(exc)
    _require_pending_request(req, REVIEW_APPROVED)

    req.status = REVIEW_APPROVED
    req.approved_by = approver_id
    req.approved_by_name = approver_name
    req.approval_date = _utcnow()
    req.rejection_reason = None
    db.session.commit()

    logger.info(
        "Fund release approved",
        extra={"project_id": project.id, "release_request_id": req.id, "approval_status": REVIEW_APPROVED},
    )
    return req


def reject_fund_release_request(
    project_id: str,
    request_id: str,
    reason: str,
    approver_id: str | None = None,
    approver_name: str | None = None,
) -> FundReleaseRequest:
    """Refuse a pending request; the milestone becomes free for a new one."""
    if not (reason or "").strip():
        raise ValidationError("A rejection reason is required", details={"reason": "required"})

    project = lock_project(project_id)
    try:
        req = _find_request(project, request_id)
    except NotFoundError as exc:
        _fail(exc)
    _require_pending_request(req, REVIEW_REJECTED)

    req.status = REVIEW_REJECTED
    req.rejection_reason = reason.strip()
    req.approved_by = approver_id
    req.approved_by_name = approver_name
    req.approval_date = _utcnow()
    db.session.commit()

    logger.info(
        "Fund release rejected",
        extra={"project_id": project.id, "release_request_id": req.id, "approval_status": REVIEW_REJECTED},
    )
    return req


def list_fund_release_requests(project_id: str, status: str | None = None) -> list[FundReleaseRequest]:
    project = get_project(project_id)
    requests = list(project.fund_release_requests)
    if status:
        requests = [r for r in requests if r.status == status]
    return requests


# ═════════════════════════════════════════════════════════════════════════════
# Scheduled transfers
# ═════════════════════════════════════════════════════════════════════════════


def create_scheduled_transfer(
    project_id: str,
    fund_release_request_id: str,
    recipient_id: str,
) -> ScheduledTransfer:
    """Turn an approved request into a transfer to a project fund account.

    Raises:
        NotFoundError: request, its milestone, or the fund account missing.
        InvalidStateTransition: request not Approved.
        ConflictError: a transfer already exists for the request.
    """
    project = lock_project(project_id)
    try:
        req = _find_request(project, fund_release_request_id)
        milestone = find_milestone(project, req.milestone_id)
        account = find_fund_account(project, recipient_id)
    except NotFoundError as exc:
        _fail(exc)

    if req.status != REVIEW_APPROVED:
        _fail(InvalidStateTransition(
            entity="FundReleaseRequest",
            current=req.status,
            target="transfer",
            message=f"Only approved requests can be transferred (current: {req.status})",
        ))
    if any(t.fund_release_request_id == req.id for t in project.scheduled_transfers):
        _fail(ConflictError(resource="ScheduledTransfer", field="fund_release_request_id",
                            value=req.id))

    transfer = ScheduledTransfer(
        milestone_id=milestone.id,
        fund_release_request_id=req.id,
        recipient_id=account.id,
        status=TRANSFER_TO_BE_TRANSFERRED,
        amount=req.amount,
        milestone_name=milestone.name,
        account_name=account.account_name,
        account_number=account.account_number,
        bank_name=account.bank_name,
        project_name=project.name,
        requested_by=req.requested_by,
        requested_by_name=req.requested_by_name,
        request_date=req.request_date,
    )
    project.scheduled_transfers.append(transfer)
    db.session.commit()

    logger.info(
        "Scheduled transfer created",
        extra={
            "project_id": project.id,
            "transfer_id": transfer.id,
            "release_request_id": req.id,
            "amount": transfer.amount,
        },
    )
    return transfer


def _coerce_transfer_updates(updates: dict) -> dict:
    unknown = set(updates) - set(TRANSFER_UPDATE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Fields cannot be updated: {', '.join(sorted(unknown))}",
            details={f: "not updatable" for f in unknown},
        )
    clean = {}
    for field, value in updates.items():
        if field == "status":
            if value not in TRANSFER_STATUSES:
                raise ValidationError(
                    f"status must be one of: {', '.join(sorted(TRANSFER_STATUSES))}",
                    details={"status": "invalid choice"},
                )
            clean[field] = value
        elif field == "scheduled_date":
            try:
                clean[field] = parse_date_input(value)
            except ValueError as exc:
                raise ValidationError(str(exc), details={field: "invalid"}) from exc
        elif field == "transferred_date":
            if value in (None, ""):
                clean[field] = None
            elif isinstance(value, datetime):
                clean[field] = value
            else:
                try:
                    clean[field] = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
                except ValueError as exc:
                    raise ValidationError("Invalid transferred_date", details={field: "invalid"}) from exc
        else:
            clean[field] = (str(value).strip() or None) if value is not None else None
    return clean


def update_scheduled_transfer(project_id: str, transfer_id: str, updates: dict) -> ScheduledTransfer:
    """Partial update limited to scheduling and settlement fields."""
    clean = _coerce_transfer_updates(updates)

    project = lock_project(project_id)
    try:
        transfer = _find_transfer(project, transfer_id)
    except NotFoundError as exc:
        _fail(exc)

    if transfer.status == TRANSFER_TRANSFERRED and clean.get("status", TRANSFER_TRANSFERRED) != TRANSFER_TRANSFERRED:
        _fail(InvalidStateTransition(
            entity="ScheduledTransfer", current=transfer.status, target=clean["status"],
        ))

    for field, value in clean.items():
        setattr(transfer, field, value)
    db.session.commit()

    logger.info(
        "Scheduled transfer updated",
        extra={"project_id": project.id, "transfer_id": transfer.id, "status": transfer.status},
    )
    return transfer


def schedule_transfer(project_id: str, transfer_id: str, scheduled_date, notes: str | None = None) -> ScheduledTransfer:
    """Fund custodian books a date: To be Transferred → Pending."""
    clean = _coerce_transfer_updates({
        "status": TRANSFER_PENDING,
        "scheduled_date": scheduled_date,
        "notes": notes,
    })
    if clean["scheduled_date"] is None:
        raise ValidationError("scheduled_date is required", details={"scheduled_date": "required"})

    project = lock_project(project_id)
    try:
        transfer = _find_transfer(project, transfer_id)
    except NotFoundError as exc:
        _fail(exc)
    if transfer.status != TRANSFER_TO_BE_TRANSFERRED:
        _fail(InvalidStateTransition(entity="ScheduledTransfer", current=transfer.status, target=TRANSFER_PENDING))

    for field, value in clean.items():
        setattr(transfer, field, value)
    db.session.commit()

    logger.info(
        "Transfer scheduled",
        extra={"project_id": project.id, "transfer_id": transfer.id, "status": transfer.status},
    )
    return transfer


def mark_transferred(
    project_id: str,
    transfer_id: str,
    transferred_by: str | None = None,
    transferred_by_name: str | None = None,
) -> ScheduledTransfer:
    """Fund custodian confirms the money left: → Transferred."""
    project = lock_project(project_id)
    try:
        transfer = _find_transfer(project, transfer_id)
    except NotFoundError as exc:
        _fail(exc)
    if transfer.status == TRANSFER_TRANSFERRED:
        _fail(InvalidStateTransition(entity="ScheduledTransfer", current=transfer.status,
                                     target=TRANSFER_TRANSFERRED))

    transfer.status = TRANSFER_TRANSFERRED
    transfer.transferred_date = _utcnow()
    transfer.transferred_by = transferred_by
    transfer.transferred_by_name = transferred_by_name
    db.session.commit()

    logger.info(
        "Transfer completed",
        extra={"project_id": project.id, "transfer_id": transfer.id, "amount": transfer.amount},
    )
    return transfer


def list_scheduled_transfers(project_id: str | None = None, status: str | None = None) -> list[ScheduledTransfer]:
    """Transfers for one project, or across all projects (custodian queue)."""
    stmt = select(ScheduledTransfer).order_by(ScheduledTransfer.request_date.asc())
    if project_id:
        get_project(project_id)
        stmt = stmt.where(ScheduledTransfer.project_id == project_id)
    if status:
        stmt = stmt.where(ScheduledTransfer.status == status)
    return list(db.session.execute(stmt).scalars())


# ═════════════════════════════════════════════════════════════════════════════
# Summary
# ═════════════════════════════════════════════════════════════════════════════


def funding_summary(project_id: str) -> dict:
    """Gross donations against cost, budgets and committed transfers."""
    project = get_project(project_id)
    donations = project.donations or 0.0
    committed = sum(t.amount or 0.0 for t in project.scheduled_transfers)
    transferred = sum(
        t.amount or 0.0 for t in project.scheduled_transfers if t.status == TRANSFER_TRANSFERRED
    )
    requested = sum(
        r.amount or 0.0 for r in project.fund_release_requests if r.is_active()
    )
    return {
        "project_id": project.id,
        "cost": project.cost or 0.0,
        "donations": donations,
        "committed": committed,
        "transferred": transferred,
        "available": donations - committed,
        "active_requests": requested,
        "milestone_budgets": total_milestone_budget(project),
    }
