"""
FundTrack
Project aggregate and the planning collections it owns.

Models:
    - Project: aggregate root (approval / announcement / execution status)
    - ProjectDocument: business / tax / additional documents (URL only)
    - HumanResource, MaterialResource: cost line items
    - Activity, Task, TaskResourceAssignment: work breakdown
    - Deliverable, ProjectMilestone, DecisionGate, Risk: planning records
    - CommunicationPlan, SocialMediaAccount, CommunicationMedium

Every child row carries project_id with ON DELETE CASCADE; the Project
relationships use delete-orphan so removing a row from a collection deletes it.
"""

import uuid
from datetime import datetime, timezone

from fundtrack.models import db


# ── Helpers ──────────────────────────────────────────────────────────────────

def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


def _project_fk():
    return db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


# ── Constants ────────────────────────────────────────────────────────────────

APPROVAL_PENDING = "pending"
APPROVAL_APPROVED = "approved"
APPROVAL_REJECTED = "rejected"
APPROVAL_STATUSES = {APPROVAL_PENDING, APPROVAL_APPROVED, APPROVAL_REJECTED}

DOCUMENT_TYPES = {"business", "tax", "additional"}

COST_TYPE_ONE_TIME = "one-time"
COST_TYPE_RECURRING = "recurring"
COST_TYPES = {COST_TYPE_ONE_TIME, COST_TYPE_RECURRING}

RESOURCE_TYPES = {"human", "material"}

WORK_STATUSES = {"Not Started", "In Progress", "Completed", "Delayed"}
DECISION_GATE_STATUSES = {"Scheduled", "Completed", "Cancelled"}
RISK_STATUSES = {"Active", "Mitigated", "Closed", "Accepted"}

COMMUNICATION_PLAN_FIELDS = (
    "stakeholder_strategy",
    "meeting_schedule",
    "reporting_frequency",
    "feedback_mechanisms",
    "emergency_contacts",
)


# ═══════════════════════════════════════════════════════════════════════════
#  PROJECT
# ═══════════════════════════════════════════════════════════════════════════

class Project(db.Model):
    """
    A donor-funded project owned by a project owner.

    Status fields:
        approval_status         None | pending | approved | rejected
        has_been_approved       sticky; True once a governor approved it
        is_announced_to_donors  visible to donors
        is_in_execution         execution started

    cost is a cached total of the resource collections; donations is the
    gross total of completed donations. Neither is decremented by transfers.
    """

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    owner_id = db.Column(db.String(128), nullable=True, index=True)
    owner_name = db.Column(db.String(200), nullable=True)

    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    scope = db.Column(db.Text, nullable=True)
    objectives = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(50), nullable=True)
    location = db.Column(db.String(200), nullable=True)
    image_url = db.Column(db.String(500), nullable=True)

    cost = db.Column(db.Float, nullable=False, default=0.0)
    donations = db.Column(db.Float, nullable=False, default=0.0)

    approval_status = db.Column(
        db.String(20), nullable=True,
        comment="NULL (never submitted) | pending | approved | rejected",
    )
    rejection_reason = db.Column(db.Text, nullable=True)
    has_been_approved = db.Column(db.Boolean, nullable=False, default=False)
    is_announced_to_donors = db.Column(db.Boolean, nullable=False, default=False)
    is_in_execution = db.Column(db.Boolean, nullable=False, default=False)
    announcement_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    # ── Owned collections ──
    documents = db.relationship(
        "ProjectDocument", backref="project", cascade="all, delete-orphan",
        order_by="ProjectDocument.uploaded_at",
    )
    human_resources = db.relationship(
        "HumanResource", backref="project", cascade="all, delete-orphan",
        order_by="HumanResource.created_at",
    )
    material_resources = db.relationship(
        "MaterialResource", backref="project", cascade="all, delete-orphan",
        order_by="MaterialResource.created_at",
    )
    activities = db.relationship(
        "Activity", backref="project", cascade="all, delete-orphan",
        order_by="Activity.created_at",
    )
    tasks = db.relationship(
        "Task", backref="project", cascade="all, delete-orphan",
        order_by="Task.created_at",
    )
    deliverables = db.relationship(
        "Deliverable", backref="project", cascade="all, delete-orphan",
        order_by="Deliverable.created_at",
    )
    milestones = db.relationship(
        "ProjectMilestone", backref="project", cascade="all, delete-orphan",
        order_by="ProjectMilestone.date",
    )
    decision_gates = db.relationship(
        "DecisionGate", backref="project", cascade="all, delete-orphan",
        order_by="DecisionGate.created_at",
    )
    risks = db.relationship(
        "Risk", backref="project", cascade="all, delete-orphan",
        order_by="Risk.created_at",
    )
    communication_plan = db.relationship(
        "CommunicationPlan", backref="project", uselist=False,
        cascade="all, delete-orphan",
    )
    social_media_accounts = db.relationship(
        "SocialMediaAccount", backref="project", cascade="all, delete-orphan",
        order_by="SocialMediaAccount.created_at",
    )
    communication_mediums = db.relationship(
        "CommunicationMedium", backref="project", cascade="all, delete-orphan",
        order_by="CommunicationMedium.created_at",
    )
    fund_accounts = db.relationship(
        "FundAccount", backref="project", cascade="all, delete-orphan",
        order_by="FundAccount.created_at",
    )
    milestone_budgets = db.relationship(
        "MilestoneBudget", backref="project", cascade="all, delete-orphan",
        order_by="MilestoneBudget.created_at",
    )
    fund_release_requests = db.relationship(
        "FundReleaseRequest", backref="project", cascade="all, delete-orphan",
        order_by="FundReleaseRequest.request_date",
    )
    scheduled_transfers = db.relationship(
        "ScheduledTransfer", backref="project", cascade="all, delete-orphan",
        order_by="ScheduledTransfer.request_date",
    )
    donation_records = db.relationship(
        "Donation", backref="project", cascade="all, delete-orphan",
        order_by="Donation.timestamp",
    )

    def to_dict(self, include_children: bool = False) -> dict:
        """Serialize project fields; children only when requested."""
        d = {
            "id": self.id,
            "owner_id": self.owner_id,
            "owner_name": self.owner_name,
            "name": self.name,
            "description": self.description,
            "scope": self.scope,
            "objectives": self.objectives,
            "category": self.category,
            "location": self.location,
            "image_url": self.image_url,
            "cost": self.cost,
            "donations": self.donations,
            "approval_status": self.approval_status,
            "rejection_reason": self.rejection_reason,
            "has_been_approved": self.has_been_approved,
            "is_announced_to_donors": self.is_announced_to_donors,
            "is_in_execution": self.is_in_execution,
            "announcement_date": _iso(self.announcement_date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_children:
            d.update({
                "documents": [x.to_dict() for x in self.documents],
                "human_resources": [x.to_dict() for x in self.human_resources],
                "material_resources": [x.to_dict() for x in self.material_resources],
                "activities": [x.to_dict() for x in self.activities],
                "tasks": [x.to_dict() for x in self.tasks],
                "deliverables": [x.to_dict() for x in self.deliverables],
                "milestones": [x.to_dict() for x in self.milestones],
                "decision_gates": [x.to_dict() for x in self.decision_gates],
                "risks": [x.to_dict() for x in self.risks],
                "communication_plan": (
                    self.communication_plan.to_dict() if self.communication_plan else None
                ),
                "social_media_accounts": [x.to_dict() for x in self.social_media_accounts],
                "communication_mediums": [x.to_dict() for x in self.communication_mediums],
                "fund_accounts": [x.to_dict() for x in self.fund_accounts],
                "milestone_budgets": [x.to_dict() for x in self.milestone_budgets],
                "fund_release_requests": [x.to_dict() for x in self.fund_release_requests],
                "scheduled_transfers": [x.to_dict() for x in self.scheduled_transfers],
            })
        return d

    def __repr__(self):
        return f"<Project {self.id}: {self.name[:40]}>"


# ═══════════════════════════════════════════════════════════════════════════
#  DOCUMENTS
# ═══════════════════════════════════════════════════════════════════════════

class ProjectDocument(db.Model):
    """Registration/tax paperwork. The file itself lives in blob storage."""

    __tablename__ = "project_documents"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(20), nullable=False, comment="business | tax | additional")
    url = db.Column(db.String(1000), nullable=True)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "type": self.type,
            "url": self.url,
            "uploaded_at": _iso(self.uploaded_at),
        }


# ═══════════════════════════════════════════════════════════════════════════
#  RESOURCES
# ═══════════════════════════════════════════════════════════════════════════

class HumanResource(db.Model):
    """Staff line item costed per day."""

    __tablename__ = "human_resources"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    name = db.Column(db.String(200), nullable=True)
    role = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    cost_per_day = db.Column(db.Float, nullable=False, default=0.0)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "role": self.role,
            "email": self.email,
            "phone": self.phone,
            "cost_per_day": self.cost_per_day,
            "quantity": self.quantity,
            "created_at": _iso(self.created_at),
        }


class MaterialResource(db.Model):
    """Equipment / supplies; one-time or recurring (amortized) cost."""

    __tablename__ = "material_resources"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)
    cost_type = db.Column(db.String(20), nullable=False, default=COST_TYPE_ONE_TIME,
                          comment="one-time | recurring")
    cost_amount = db.Column(db.Float, nullable=False, default=0.0)
    amortization_period = db.Column(db.Integer, nullable=True, comment="Days; recurring only")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "cost_type": self.cost_type,
            "cost_amount": self.cost_amount,
            "amortization_period": self.amortization_period,
            "created_at": _iso(self.created_at),
        }


# ═══════════════════════════════════════════════════════════════════════════
#  PLANNING
# ═══════════════════════════════════════════════════════════════════════════

class Activity(db.Model):
    __tablename__ = "activities"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="Not Started")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "status": self.status,
            "created_at": _iso(self.created_at),
        }


class Task(db.Model):
    """A unit of work; its cost is the sum of its resource assignments."""

    __tablename__ = "tasks"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    activity_id = db.Column(
        db.String(36), db.ForeignKey("activities.id", ondelete="SET NULL"), nullable=True,
    )
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    duration = db.Column(db.Integer, nullable=True, comment="Days")
    status = db.Column(db.String(20), nullable=False, default="Not Started")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    resources = db.relationship(
        "TaskResourceAssignment", backref="task", cascade="all, delete-orphan",
        order_by="TaskResourceAssignment.created_at",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "activity_id": self.activity_id,
            "name": self.name,
            "description": self.description,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "duration": self.duration,
            "status": self.status,
            "resources": [r.to_dict() for r in self.resources],
            "total_cost": sum(r.total_cost or 0.0 for r in self.resources),
            "created_at": _iso(self.created_at),
        }


class TaskResourceAssignment(db.Model):
    """A human or material resource booked on a task for a period."""

    __tablename__ = "task_resource_assignments"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    task_id = db.Column(
        db.String(36), db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    resource_id = db.Column(db.String(36), nullable=False)
    resource_type = db.Column(db.String(10), nullable=False, comment="human | material")
    quantity = db.Column(db.Integer, nullable=False, default=1)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    duration = db.Column(db.Integer, nullable=True)
    daily_cost = db.Column(db.Float, nullable=False, default=0.0)
    total_cost = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "task_id": self.task_id,
            "resource_id": self.resource_id,
            "resource_type": self.resource_type,
            "quantity": self.quantity,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "duration": self.duration,
            "daily_cost": self.daily_cost,
            "total_cost": self.total_cost,
        }


class Deliverable(db.Model):
    __tablename__ = "deliverables"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    deadline = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="Not Started")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "deadline": _iso(self.deadline),
            "status": self.status,
            "created_at": _iso(self.created_at),
        }


class ProjectMilestone(db.Model):
    """
    A dated checkpoint. budget / percent_of_total are legacy inline values;
    a MilestoneBudget row supersedes them when present.
    """

    __tablename__ = "milestones"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    date = db.Column(db.Date, nullable=True, comment="Due date")
    status = db.Column(db.String(20), nullable=False, default="Not Started")
    budget = db.Column(db.Float, nullable=True)
    percent_of_total = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "date": _iso(self.date),
            "status": self.status,
            "budget": self.budget,
            "percent_of_total": self.percent_of_total,
            "created_at": _iso(self.created_at),
        }


class DecisionGate(db.Model):
    __tablename__ = "decision_gates"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    name = db.Column(db.String(255), nullable=False)
    objective = db.Column(db.Text, nullable=True)
    date_time = db.Column(db.DateTime(timezone=True), nullable=True)
    video_conference_link = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="Scheduled")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "objective": self.objective,
            "date_time": _iso(self.date_time),
            "video_conference_link": self.video_conference_link,
            "status": self.status,
            "created_at": _iso(self.created_at),
        }


def calculate_risk_score(probability: int, impact: int) -> int:
    """Risk score: probability (1-5) × impact (1-5). Range 1–25."""
    p = max(1, min(5, int(probability or 1)))
    i = max(1, min(5, int(impact or 1)))
    return p * i


class Risk(db.Model):
    __tablename__ = "project_risks"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    impact = db.Column(db.Integer, nullable=False, default=1)
    probability = db.Column(db.Integer, nullable=False, default=1)
    risk_score = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(20), nullable=False, default="Active")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "impact": self.impact,
            "probability": self.probability,
            "risk_score": self.risk_score,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ═══════════════════════════════════════════════════════════════════════════
#  COMMUNICATION
# ═══════════════════════════════════════════════════════════════════════════

class CommunicationPlan(db.Model):
    """One per project; complete when all five text fields are filled."""

    __tablename__ = "communication_plans"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    stakeholder_strategy = db.Column(db.Text, nullable=True)
    meeting_schedule = db.Column(db.Text, nullable=True)
    reporting_frequency = db.Column(db.Text, nullable=True)
    feedback_mechanisms = db.Column(db.Text, nullable=True)
    emergency_contacts = db.Column(db.Text, nullable=True)

    def is_complete(self) -> bool:
        return all((getattr(self, f) or "").strip() for f in COMMUNICATION_PLAN_FIELDS)

    def to_dict(self):
        d = {f: getattr(self, f) for f in COMMUNICATION_PLAN_FIELDS}
        d["project_id"] = self.project_id
        return d


class SocialMediaAccount(db.Model):
    __tablename__ = "social_media_accounts"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    platform = db.Column(db.String(50), nullable=False)
    username = db.Column(db.String(200), nullable=False)
    url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "platform": self.platform,
            "username": self.username,
            "url": self.url,
        }


class CommunicationMedium(db.Model):
    __tablename__ = "communication_mediums"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    medium = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {"id": self.id, "project_id": self.project_id, "medium": self.medium}
