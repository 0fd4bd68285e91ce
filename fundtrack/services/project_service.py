"""
Project repository and per-collection CRUD for the project data graph.

Every write path loads the project with ``lock_project`` (SELECT ... FOR
UPDATE), applies its change through the owning collection and commits once.
Writes that touch human or material resources recompute ``Project.cost`` in
the same transaction.

Collections are described once in ``_COLLECTIONS`` (model, typed fields,
required fields, allowed values). The public ``add_*`` / ``update_*`` /
``delete_*`` names are bound to the generic ``add_item`` / ``update_item`` /
``delete_item`` at the bottom of the module.
"""

from __future__ import annotations

import logging
from datetime import datetime
from functools import partial

from sqlalchemy import select

from fundtrack.core.exceptions import NotFoundError, ValidationError
from fundtrack.models import db
from fundtrack.models.funding import (
    ACCOUNT_TYPES,
    REVIEW_APPROVED,
    REVIEW_REJECTED,
    FundAccount,
)
from fundtrack.models.project import (
    COMMUNICATION_PLAN_FIELDS,
    COST_TYPES,
    DECISION_GATE_STATUSES,
    DOCUMENT_TYPES,
    RESOURCE_TYPES,
    RISK_STATUSES,
    WORK_STATUSES,
    Activity,
    CommunicationMedium,
    CommunicationPlan,
    DecisionGate,
    Deliverable,
    HumanResource,
    MaterialResource,
    Project,
    ProjectDocument,
    ProjectMilestone,
    Risk,
    SocialMediaAccount,
    Task,
    TaskResourceAssignment,
    calculate_risk_score,
)
from fundtrack.services import cost_calculator
from fundtrack.utils.helpers import parse_amount, parse_date_input

logger = logging.getLogger(__name__)

PROJECT_FIELDS = (
    "name",
    "description",
    "scope",
    "objectives",
    "category",
    "location",
    "image_url",
)


# ═════════════════════════════════════════════════════════════════════════════
# Loading
# ═════════════════════════════════════════════════════════════════════════════


def get_project(project_id: str) -> Project:
    """Plain read. Raises NotFoundError."""
    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def lock_project(project_id: str) -> Project:
    """Load the project row FOR UPDATE; every mutating call starts here."""
    stmt = (
        select(Project)
        .where(Project.id == project_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    project = db.session.execute(stmt).scalar_one_or_none()
    if not project:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def list_projects(owner_id: str | None = None) -> list[Project]:
    stmt = select(Project).order_by(Project.created_at.desc())
    if owner_id:
        stmt = stmt.where(Project.owner_id == owner_id)
    return list(db.session.execute(stmt).scalars())


def find_milestone(project: Project, milestone_id: str) -> ProjectMilestone:
    for milestone in project.milestones:
        if milestone.id == milestone_id:
            return milestone
    raise NotFoundError(resource="Milestone", resource_id=milestone_id, project_id=project.id)


def find_fund_account(project: Project, account_id: str) -> FundAccount:
    for account in project.fund_accounts:
        if account.id == account_id:
            return account
    raise NotFoundError(resource="FundAccount", resource_id=account_id, project_id=project.id)


# ═════════════════════════════════════════════════════════════════════════════
# Cost
# ═════════════════════════════════════════════════════════════════════════════


def recompute_cost(project: Project) -> float:
    """Store the derived resource total on ``project.cost`` (no commit)."""
    project.cost = cost_calculator.total_project_cost(project)
    return project.cost


# ═════════════════════════════════════════════════════════════════════════════
# Field coercion
# ═════════════════════════════════════════════════════════════════════════════


def _parse_datetime(value):
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _parse_int(value, field):
    if isinstance(value, bool):
        raise ValueError(f"{field} must be an integer")
    number = float(value)
    if not number.is_integer():
        raise ValueError(f"{field} must be an integer")
    return int(number)


def _coerce(field: str, kind: str, value):
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        if kind == "str":
            return str(value).strip()
        if kind == "date":
            return parse_date_input(value)
        if kind == "datetime":
            return _parse_datetime(value)
        if kind == "float":
            return parse_amount(value, field)
        if kind == "int":
            return _parse_int(value, field)
        if kind == "bool":
            return bool(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid value for {field}", details={field: str(exc)}) from exc
    raise ValueError(f"Unknown field kind {kind!r}")


def _apply_fields(item, meta: dict, data: dict, creating: bool) -> list[str]:
    """Copy whitelisted, coerced values from ``data`` onto ``item``.

    Returns the names of fields that were written.
    """
    columns = item.__table__.c
    written = []
    for field, kind in meta["fields"].items():
        if field not in data:
            continue
        value = _coerce(field, kind, data[field])
        if value is None:
            if field in meta["required"]:
                raise ValidationError(f"{field} is required", details={field: "required"})
            if not columns[field].nullable:
                continue
        allowed = meta["choices"].get(field)
        if value is not None and allowed and value not in allowed:
            raise ValidationError(
                f"{field} must be one of: {', '.join(sorted(allowed))}",
                details={field: "invalid choice"},
            )
        setattr(item, field, value)
        written.append(field)

    if creating:
        missing = [f for f in meta["required"] if getattr(item, f, None) in (None, "")]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={f: "required" for f in missing},
            )
    return written


# ── Per-collection validators (run before the item joins the collection) ──


def _validate_human(item, project):
    if item.quantity is not None and item.quantity < 1:
        raise ValidationError("quantity must be at least 1", details={"quantity": "min 1"})
    cost_calculator.human_resource_cost(item)


def _validate_material(item, project):
    cost_calculator.material_resource_cost(item)


def _validate_task(item, project):
    if item.activity_id and not any(a.id == item.activity_id for a in project.activities):
        raise NotFoundError(resource="Activity", resource_id=item.activity_id, project_id=project.id)
    if item.start_date and item.end_date and item.end_date < item.start_date:
        raise ValidationError("end_date cannot be before start_date",
                              details={"end_date": "before start_date"})


def _validate_activity(item, project):
    if item.start_date and item.end_date and item.end_date < item.start_date:
        raise ValidationError("end_date cannot be before start_date",
                              details={"end_date": "before start_date"})


def _validate_risk(item, project):
    for field in ("impact", "probability"):
        value = getattr(item, field)
        if value is not None and not 1 <= value <= 5:
            raise ValidationError(f"{field} must be between 1 and 5", details={field: "range 1-5"})
    item.risk_score = calculate_risk_score(item.probability, item.impact)


_COLLECTIONS: dict[str, dict] = {
    "human_resources": {
        "model": HumanResource,
        "label": "HumanResource",
        "fields": {"name": "str", "role": "str", "email": "str", "phone": "str",
                   "cost_per_day": "float", "quantity": "int"},
        "required": ("role",),
        "choices": {},
        "validate": _validate_human,
        "affects_cost": True,
    },
    "material_resources": {
        "model": MaterialResource,
        "label": "MaterialResource",
        "fields": {"name": "str", "type": "str", "description": "str", "cost_type": "str",
                   "cost_amount": "float", "amortization_period": "int"},
        "required": ("name",),
        "choices": {"cost_type": COST_TYPES},
        "validate": _validate_material,
        "affects_cost": True,
    },
    "fund_accounts": {
        "model": FundAccount,
        "label": "FundAccount",
        "fields": {"account_name": "str", "account_number": "str", "account_type": "str",
                   "bank_name": "str", "account_owner_name": "str"},
        "required": ("account_name", "account_number", "bank_name"),
        "choices": {"account_type": ACCOUNT_TYPES},
    },
    "activities": {
        "model": Activity,
        "label": "Activity",
        "fields": {"name": "str", "description": "str", "start_date": "date",
                   "end_date": "date", "status": "str"},
        "required": ("name",),
        "choices": {"status": WORK_STATUSES},
        "validate": _validate_activity,
    },
    "tasks": {
        "model": Task,
        "label": "Task",
        "fields": {"activity_id": "str", "name": "str", "description": "str",
                   "start_date": "date", "end_date": "date", "duration": "int", "status": "str"},
        "required": ("name",),
        "choices": {"status": WORK_STATUSES},
        "validate": _validate_task,
    },
    "deliverables": {
        "model": Deliverable,
        "label": "Deliverable",
        "fields": {"name": "str", "description": "str", "deadline": "date", "status": "str"},
        "required": ("name",),
        "choices": {"status": WORK_STATUSES},
    },
    "milestones": {
        "model": ProjectMilestone,
        "label": "Milestone",
        "fields": {"name": "str", "description": "str", "date": "date", "status": "str",
                   "budget": "float", "percent_of_total": "float"},
        "required": ("name",),
        "choices": {"status": WORK_STATUSES},
    },
    "decision_gates": {
        "model": DecisionGate,
        "label": "DecisionGate",
        "fields": {"name": "str", "objective": "str", "date_time": "datetime",
                   "video_conference_link": "str", "status": "str"},
        "required": ("name",),
        "choices": {"status": DECISION_GATE_STATUSES},
    },
    "risks": {
        "model": Risk,
        "label": "Risk",
        "fields": {"name": "str", "description": "str", "impact": "int",
                   "probability": "int", "status": "str"},
        "required": ("name",),
        "choices": {"status": RISK_STATUSES},
        "validate": _validate_risk,
    },
    "documents": {
        "model": ProjectDocument,
        "label": "Document",
        "fields": {"name": "str", "type": "str", "url": "str"},
        "required": ("name", "type"),
        "choices": {"type": DOCUMENT_TYPES},
    },
    "social_media_accounts": {
        "model": SocialMediaAccount,
        "label": "SocialMediaAccount",
        "fields": {"platform": "str", "username": "str", "url": "str"},
        "required": ("platform", "username"),
        "choices": {},
    },
    "communication_mediums": {
        "model": CommunicationMedium,
        "label": "CommunicationMedium",
        "fields": {"medium": "str"},
        "required": ("medium",),
        "choices": {},
    },
}

COLLECTION_NAMES = tuple(_COLLECTIONS)


def _collection_meta(collection: str) -> dict:
    meta = _COLLECTIONS.get(collection)
    if meta is None:
        raise NotFoundError(resource="Collection", resource_id=collection)
    return meta


def _find_item(project: Project, collection: str, item_id: str):
    meta = _collection_meta(collection)
    for item in getattr(project, collection):
        if item.id == item_id:
            return item
    raise NotFoundError(resource=meta["label"], resource_id=item_id, project_id=project.id)


# ═════════════════════════════════════════════════════════════════════════════
# Project CRUD
# ═════════════════════════════════════════════════════════════════════════════


def create_project(data: dict, owner_id: str | None = None, owner_name: str | None = None) -> Project:
    """Create a project. Status fields always start unset / False."""
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})

    project = Project(owner_id=owner_id, owner_name=owner_name)
    for field in PROJECT_FIELDS:
        if field in data:
            setattr(project, field, _coerce(field, "str", data[field]))
    project.name = name
    db.session.add(project)
    db.session.commit()

    logger.info("Project created", extra={"project_id": project.id})
    return project


def update_project(project_id: str, fields: dict) -> Project:
    """Update descriptive fields only; status fields have their own services."""
    project = lock_project(project_id)
    for field in PROJECT_FIELDS:
        if field not in fields:
            continue
        value = _coerce(field, "str", fields[field])
        if field == "name" and not value:
            db.session.rollback()
            raise ValidationError("name cannot be empty", details={"name": "required"})
        setattr(project, field, value)
    db.session.commit()

    logger.info("Project updated", extra={"project_id": project.id})
    return project


def delete_project(project_id: str) -> None:
    project = lock_project(project_id)
    db.session.delete(project)
    db.session.commit()
    logger.info("Project deleted", extra={"project_id": project_id})


# ═════════════════════════════════════════════════════════════════════════════
# Generic collection CRUD
# ═════════════════════════════════════════════════════════════════════════════


def add_item(collection: str, project_id: str, data: dict):
    """Create a child record in ``collection`` and return it."""
    meta = _collection_meta(collection)
    project = lock_project(project_id)
    item = meta["model"]()
    try:
        _apply_fields(item, meta, data, creating=True)
        if meta.get("validate"):
            meta["validate"](item, project)
    except (ValidationError, NotFoundError):
        db.session.rollback()
        raise

    getattr(project, collection).append(item)
    if meta.get("affects_cost"):
        db.session.flush()
        recompute_cost(project)
    db.session.commit()

    logger.info(
        "%s added", meta["label"],
        extra={"project_id": project.id, "item_id": item.id},
    )
    return item


def update_item(collection: str, project_id: str, item_id: str, data: dict):
    """Partial update of a child record; only whitelisted fields are written."""
    meta = _collection_meta(collection)
    project = lock_project(project_id)
    item = _find_item(project, collection, item_id)
    try:
        _apply_fields(item, meta, data, creating=False)
        if meta.get("validate"):
            meta["validate"](item, project)
    except (ValidationError, NotFoundError):
        db.session.rollback()
        raise

    if meta.get("affects_cost"):
        recompute_cost(project)
    db.session.commit()

    logger.info(
        "%s updated", meta["label"],
        extra={"project_id": project.id, "item_id": item.id},
    )
    return item


def delete_item(collection: str, project_id: str, item_id: str) -> None:
    """Remove a child record.

    Deleting a milestone also deletes its milestone budget. Deleting an
    activity detaches its tasks.
    """
    meta = _collection_meta(collection)
    project = lock_project(project_id)
    item = _find_item(project, collection, item_id)

    if collection == "milestones":
        for budget in [b for b in project.milestone_budgets if b.milestone_id == item.id]:
            project.milestone_budgets.remove(budget)
    elif collection == "activities":
        for task in project.tasks:
            if task.activity_id == item.id:
                task.activity_id = None

    getattr(project, collection).remove(item)
    if meta.get("affects_cost"):
        db.session.flush()
        recompute_cost(project)
    db.session.commit()

    logger.info(
        "%s deleted", meta["label"],
        extra={"project_id": project.id, "item_id": item_id},
    )


add_human_resource = partial(add_item, "human_resources")
update_human_resource = partial(update_item, "human_resources")
delete_human_resource = partial(delete_item, "human_resources")

add_material_resource = partial(add_item, "material_resources")
update_material_resource = partial(update_item, "material_resources")
delete_material_resource = partial(delete_item, "material_resources")

add_fund_account = partial(add_item, "fund_accounts")
update_fund_account = partial(update_item, "fund_accounts")
delete_fund_account = partial(delete_item, "fund_accounts")

add_activity = partial(add_item, "activities")
update_activity = partial(update_item, "activities")
delete_activity = partial(delete_item, "activities")

add_task = partial(add_item, "tasks")
update_task = partial(update_item, "tasks")
delete_task = partial(delete_item, "tasks")

add_deliverable = partial(add_item, "deliverables")
update_deliverable = partial(update_item, "deliverables")
delete_deliverable = partial(delete_item, "deliverables")

add_milestone = partial(add_item, "milestones")
update_milestone = partial(update_item, "milestones")
delete_milestone = partial(delete_item, "milestones")

add_decision_gate = partial(add_item, "decision_gates")
update_decision_gate = partial(update_item, "decision_gates")
delete_decision_gate = partial(delete_item, "decision_gates")

add_risk = partial(add_item, "risks")
update_risk = partial(update_item, "risks")
delete_risk = partial(delete_item, "risks")

add_document = partial(add_item, "documents")
update_document = partial(update_item, "documents")
delete_document = partial(delete_item, "documents")

add_social_media_account = partial(add_item, "social_media_accounts")
update_social_media_account = partial(update_item, "social_media_accounts")
delete_social_media_account = partial(delete_item, "social_media_accounts")

add_communication_medium = partial(add_item, "communication_mediums")
update_communication_medium = partial(update_item, "communication_mediums")
delete_communication_medium = partial(delete_item, "communication_mediums")


# ═════════════════════════════════════════════════════════════════════════════
# Communication plan (one per project)
# ═════════════════════════════════════════════════════════════════════════════


def set_communication_plan(project_id: str, data: dict) -> CommunicationPlan:
    """Create or update the project's communication plan."""
    project = lock_project(project_id)
    plan = project.communication_plan
    if plan is None:
        plan = CommunicationPlan()
        project.communication_plan = plan
    for field in COMMUNICATION_PLAN_FIELDS:
        if field in data:
            setattr(plan, field, _coerce(field, "str", data[field]))
    db.session.commit()

    logger.info(
        "Communication plan saved",
        extra={"project_id": project.id, "complete": plan.is_complete()},
    )
    return plan


# ═════════════════════════════════════════════════════════════════════════════
# Task resource assignments
# ═════════════════════════════════════════════════════════════════════════════


def _find_resource(project: Project, resource_type: str, resource_id: str):
    pool = project.human_resources if resource_type == "human" else project.material_resources
    for resource in pool:
        if resource.id == resource_id:
            return resource
    label = "HumanResource" if resource_type == "human" else "MaterialResource"
    raise NotFoundError(resource=label, resource_id=resource_id, project_id=project.id)


def add_task_resource(project_id: str, task_id: str, data: dict) -> TaskResourceAssignment:
    """Book a project resource on a task and price the booking.

    The assignment's period defaults to the task's dates. Its ``total_cost``
    feeds the task cost used by the execution gate.
    """
    project = lock_project(project_id)
    task = _find_item(project, "tasks", task_id)

    resource_type = (data.get("resource_type") or "").strip()
    if resource_type not in RESOURCE_TYPES:
        db.session.rollback()
        raise ValidationError(
            "resource_type must be 'human' or 'material'", details={"resource_type": "invalid choice"},
        )
    try:
        resource = _find_resource(project, resource_type, data.get("resource_id"))
        quantity = _coerce("quantity", "int", data.get("quantity")) or 1
        if quantity < 1:
            raise ValidationError("quantity must be at least 1", details={"quantity": "min 1"})
        start = _coerce("start_date", "date", data.get("start_date")) or task.start_date
        end = _coerce("end_date", "date", data.get("end_date")) or task.end_date
        duration = cost_calculator.assignment_duration(
            start, end, fallback=_coerce("duration", "int", data.get("duration")) or task.duration,
        )
        daily_cost, total_cost = cost_calculator.assignment_cost(
            resource_type, resource, quantity, duration,
        )
    except (ValidationError, NotFoundError):
        db.session.rollback()
        raise

    assignment = TaskResourceAssignment(
        resource_id=resource.id,
        resource_type=resource_type,
        quantity=quantity,
        start_date=start,
        end_date=end,
        duration=duration,
        daily_cost=daily_cost,
        total_cost=total_cost,
    )
    task.resources.append(assignment)
    db.session.commit()

    logger.info(
        "Resource assigned to task",
        extra={"project_id": project.id, "task_id": task.id, "amount": total_cost},
    )
    return assignment


def delete_task_resource(project_id: str, task_id: str, assignment_id: str) -> None:
    project = lock_project(project_id)
    task = _find_item(project, "tasks", task_id)
    for assignment in task.resources:
        if assignment.id == assignment_id:
            task.resources.remove(assignment)
            db.session.commit()
            logger.info(
                "Resource unassigned from task",
                extra={"project_id": project.id, "task_id": task.id},
            )
            return
    raise NotFoundError(resource="TaskResourceAssignment", resource_id=assignment_id,
                        project_id=project.id)


# ═════════════════════════════════════════════════════════════════════════════
# Fund account review (fund custodian)
# ═════════════════════════════════════════════════════════════════════════════


def review_fund_account(project_id: str, account_id: str, status: str) -> FundAccount:
    """Approve or refuse a project's bank account."""
    if status not in (REVIEW_APPROVED, REVIEW_REJECTED):
        raise ValidationError(
            "status must be 'Approved' or 'Rejected'", details={"status": "invalid choice"},
        )
    project = lock_project(project_id)
    account = find_fund_account(project, account_id)
    account.status = status
    db.session.commit()

    logger.info(
        "Fund account reviewed",
        extra={"project_id": project.id, "account_id": account.id, "approval_status": status},
    )
    return account
