"""
FundTrack
Money-side models: where funds come from and how they are released.

Models:
    - FundAccount: bank account that receives released funds
    - MilestoneBudget: ledger entry assigning money to a milestone
    - FundReleaseRequest: owner's request to release a milestone's money
    - ScheduledTransfer: approved payout with frozen account/milestone snapshot
    - Donation: donor contribution; completed rows roll up into Project.donations
"""

from fundtrack.models import db
from fundtrack.models.project import _iso, _project_fk, _utcnow, _uuid


# ── Constants ────────────────────────────────────────────────────────────────

ACCOUNT_TYPES = {"Domestic Account", "Foreign Account"}

REVIEW_PENDING = "Pending"
REVIEW_APPROVED = "Approved"
REVIEW_REJECTED = "Rejected"
FUND_ACCOUNT_STATUSES = {REVIEW_PENDING, REVIEW_APPROVED, REVIEW_REJECTED}

BUDGET_PLANNED = "Planned"
BUDGET_IN_PROGRESS = "In-progress"
BUDGET_COMPLETED = "Completed"
MILESTONE_BUDGET_STATUSES = {BUDGET_PLANNED, BUDGET_IN_PROGRESS, BUDGET_COMPLETED}

# Fund-release requests share the review vocabulary with fund accounts.
FUND_RELEASE_STATUSES = FUND_ACCOUNT_STATUSES
ACTIVE_FUND_RELEASE_STATUSES = (REVIEW_PENDING, REVIEW_APPROVED)

TRANSFER_TO_BE_TRANSFERRED = "To be Transferred"
TRANSFER_PENDING = "Pending"
TRANSFER_TRANSFERRED = "Transferred"
TRANSFER_STATUSES = {TRANSFER_TO_BE_TRANSFERRED, TRANSFER_PENDING, TRANSFER_TRANSFERRED}

DONATION_PENDING = "pending"
DONATION_COMPLETED = "completed"
DONATION_FAILED = "failed"
DONATION_STATUSES = {DONATION_PENDING, DONATION_COMPLETED, DONATION_FAILED}


# ═══════════════════════════════════════════════════════════════════════════
#  FUND ACCOUNT
# ═══════════════════════════════════════════════════════════════════════════

class FundAccount(db.Model):
    """Bank account owned by the project; reviewed by a fund custodian."""

    __tablename__ = "fund_accounts"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    account_name = db.Column(db.String(200), nullable=False)
    account_number = db.Column(db.String(100), nullable=False)
    account_type = db.Column(db.String(30), nullable=False, default="Domestic Account",
                             comment="Domestic Account | Foreign Account")
    bank_name = db.Column(db.String(200), nullable=False)
    account_owner_name = db.Column(db.String(200), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=REVIEW_PENDING)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "account_name": self.account_name,
            "account_number": self.account_number,
            "account_type": self.account_type,
            "bank_name": self.bank_name,
            "account_owner_name": self.account_owner_name,
            "status": self.status,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<FundAccount {self.id}: {self.account_name}>"


# ═══════════════════════════════════════════════════════════════════════════
#  MILESTONE BUDGET
# ═══════════════════════════════════════════════════════════════════════════

class MilestoneBudget(db.Model):
    """
    Budget assigned to one milestone. (project_id, milestone_id) is unique;
    the row goes away with its milestone.
    """

    __tablename__ = "milestone_budgets"
    __table_args__ = (
        db.UniqueConstraint("project_id", "milestone_id", name="uq_milestone_budget_milestone"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    milestone_id = db.Column(
        db.String(36),
        db.ForeignKey("milestones.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    milestone_name = db.Column(db.String(255), nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    budget = db.Column(db.Float, nullable=False, default=0.0)
    status = db.Column(db.String(20), nullable=False, default=BUDGET_PLANNED,
                       comment="Planned | In-progress | Completed")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "milestone_id": self.milestone_id,
            "milestone_name": self.milestone_name,
            "due_date": _iso(self.due_date),
            "budget": self.budget,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<MilestoneBudget {self.id}: milestone={self.milestone_id} {self.budget}>"


# ═══════════════════════════════════════════════════════════════════════════
#  FUND RELEASE REQUEST
# ═══════════════════════════════════════════════════════════════════════════

class FundReleaseRequest(db.Model):
    """Pending → Approved | Rejected. At most one active request per milestone."""

    __tablename__ = "fund_release_requests"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    milestone_id = db.Column(db.String(36), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default=REVIEW_PENDING)
    requested_by = db.Column(db.String(128), nullable=True)
    requested_by_name = db.Column(db.String(200), nullable=True)
    request_date = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    approved_by = db.Column(db.String(128), nullable=True)
    approved_by_name = db.Column(db.String(200), nullable=True)
    approval_date = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    def is_active(self) -> bool:
        return self.status in ACTIVE_FUND_RELEASE_STATUSES

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "milestone_id": self.milestone_id,
            "amount": self.amount,
            "description": self.description,
            "status": self.status,
            "requested_by": self.requested_by,
            "requested_by_name": self.requested_by_name,
            "request_date": _iso(self.request_date),
            "approved_by": self.approved_by,
            "approved_by_name": self.approved_by_name,
            "approval_date": _iso(self.approval_date),
            "rejection_reason": self.rejection_reason,
        }

    def __repr__(self):
        return f"<FundReleaseRequest {self.id}: {self.status} {self.amount}>"


# ═══════════════════════════════════════════════════════════════════════════
#  SCHEDULED TRANSFER
# ═══════════════════════════════════════════════════════════════════════════

# Columns copied at creation time; never written afterwards.
TRANSFER_SNAPSHOT_FIELDS = (
    "amount",
    "milestone_name",
    "account_name",
    "account_number",
    "bank_name",
    "project_name",
    "requested_by",
    "requested_by_name",
    "request_date",
)


class ScheduledTransfer(db.Model):
    """
    Payout created from an approved FundReleaseRequest.

    Lifecycle: To be Transferred → Pending (scheduled) → Transferred.
    """

    __tablename__ = "scheduled_transfers"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    milestone_id = db.Column(db.String(36), nullable=False)
    fund_release_request_id = db.Column(
        db.String(36),
        db.ForeignKey("fund_release_requests.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    recipient_id = db.Column(db.String(36), nullable=False, comment="FundAccount id")
    status = db.Column(db.String(30), nullable=False, default=TRANSFER_TO_BE_TRANSFERRED)

    # ── Snapshot ──
    amount = db.Column(db.Float, nullable=False)
    milestone_name = db.Column(db.String(255), nullable=True)
    account_name = db.Column(db.String(200), nullable=True)
    account_number = db.Column(db.String(100), nullable=True)
    bank_name = db.Column(db.String(200), nullable=True)
    project_name = db.Column(db.String(200), nullable=True)
    requested_by = db.Column(db.String(128), nullable=True)
    requested_by_name = db.Column(db.String(200), nullable=True)
    request_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # ── Scheduling / settlement ──
    scheduled_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    transferred_date = db.Column(db.DateTime(timezone=True), nullable=True)
    transferred_by = db.Column(db.String(128), nullable=True)
    transferred_by_name = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    fund_release_request = db.relationship("FundReleaseRequest")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "milestone_id": self.milestone_id,
            "fund_release_request_id": self.fund_release_request_id,
            "recipient_id": self.recipient_id,
            "status": self.status,
            "amount": self.amount,
            "milestone_name": self.milestone_name,
            "account_name": self.account_name,
            "account_number": self.account_number,
            "bank_name": self.bank_name,
            "project_name": self.project_name,
            "requested_by": self.requested_by,
            "requested_by_name": self.requested_by_name,
            "request_date": _iso(self.request_date),
            "scheduled_date": _iso(self.scheduled_date),
            "notes": self.notes,
            "transferred_date": _iso(self.transferred_date),
            "transferred_by": self.transferred_by,
            "transferred_by_name": self.transferred_by_name,
        }

    def __repr__(self):
        return f"<ScheduledTransfer {self.id}: {self.status} {self.amount}>"


# ═══════════════════════════════════════════════════════════════════════════
#  DONATION
# ═══════════════════════════════════════════════════════════════════════════

class Donation(db.Model):
    __tablename__ = "donations"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = _project_fk()
    user_id = db.Column(db.String(128), nullable=True)
    donor_name = db.Column(db.String(200), nullable=True)
    donor_email = db.Column(db.String(255), nullable=True)
    amount = db.Column(db.Float, nullable=False)
    message = db.Column(db.Text, nullable=True)
    is_anonymous = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(20), nullable=False, default=DONATION_PENDING,
                       comment="pending | completed | failed")
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": None if self.is_anonymous else self.user_id,
            "donor_name": "Anonymous" if self.is_anonymous else self.donor_name,
            "donor_email": None if self.is_anonymous else self.donor_email,
            "amount": self.amount,
            "message": self.message,
            "is_anonymous": self.is_anonymous,
            "status": self.status,
            "timestamp": _iso(self.timestamp),
        }
