"""
FundTrack
Funding blueprint: milestone budgets, fund release, transfers, accounts, donations.

Endpoints:
    BUDGET      /api/v1/projects/<id>/milestone-budgets                    GET, POST
                /api/v1/projects/<id>/milestone-budgets/orphans            GET
                /api/v1/projects/<id>/milestone-budgets/<bid>              PUT, DELETE
                /api/v1/projects/<id>/milestone-budgets/<bid>/status       PATCH
                /api/v1/projects/<id>/milestones/<mid>/verify              POST

    RELEASE     /api/v1/projects/<id>/fund-release-requests                GET, POST
                /api/v1/projects/<id>/fund-release-requests/<rid>/approve  POST
                /api/v1/projects/<id>/fund-release-requests/<rid>/reject   POST

    TRANSFER    /api/v1/scheduled-transfers                                GET
                /api/v1/projects/<id>/scheduled-transfers                  GET, POST
                /api/v1/projects/<id>/scheduled-transfers/<tid>            PUT
                /api/v1/projects/<id>/scheduled-transfers/<tid>/schedule   POST
                /api/v1/projects/<id>/scheduled-transfers/<tid>/complete   POST

    ACCOUNT     /api/v1/projects/<id>/fund-accounts/<aid>/review           POST

    DONATION    /api/v1/projects/<id>/donations                            GET, POST
                /api/v1/donations/<did>/complete                           POST
                /api/v1/donations/<did>/fail                               POST
"""

import logging

from flask import Blueprint, jsonify, request

from fundtrack.blueprints import json_body, parse_bool
from fundtrack.services import (
    donation_service,
    fund_release_service,
    milestone_budget_service,
    project_service,
)
from fundtrack.utils.errors import E, api_error, register_error_handlers
from fundtrack.utils.helpers import current_user

logger = logging.getLogger(__name__)

funding_bp = Blueprint("funding", __name__, url_prefix="/api/v1")
register_error_handlers(funding_bp)


# ═══════════════════════════════════════════════════════════════════════════
#  MILESTONE BUDGETS
# ═══════════════════════════════════════════════════════════════════════════

@funding_bp.route("/projects/<project_id>/milestone-budgets", methods=["GET"])
def list_milestone_budgets(project_id):
    return jsonify(milestone_budget_service.list_milestone_budgets(project_id))


@funding_bp.route("/projects/<project_id>/milestone-budgets", methods=["POST"])
def add_milestone_budget(project_id):
    data, err = json_body()
    if err:
        return err
    if not data.get("milestone_id"):
        return api_error(E.VALIDATION_REQUIRED, "milestone_id is required")
    if data.get("budget") in (None, ""):
        return api_error(E.VALIDATION_REQUIRED, "budget is required")
    entry = milestone_budget_service.add_milestone_budget(
        project_id,
        data["milestone_id"],
        data["budget"],
        due_date=data.get("due_date"),
        milestone_name=data.get("milestone_name"),
    )
    return jsonify(entry.to_dict()), 201


@funding_bp.route("/projects/<project_id>/milestone-budgets/orphans", methods=["GET"])
def orphan_budgets(project_id):
    project = project_service.get_project(project_id)
    orphans = milestone_budget_service.find_orphan_budgets(project)
    return jsonify({"items": [b.to_dict() for b in orphans], "total": len(orphans)})


@funding_bp.route("/projects/<project_id>/milestone-budgets/<budget_id>", methods=["PUT"])
def update_milestone_budget(project_id, budget_id):
    data, err = json_body()
    if err:
        return err
    fields = {k: v for k, v in data.items() if k in milestone_budget_service.BUDGET_UPDATE_FIELDS}
    entry = milestone_budget_service.update_milestone_budget(project_id, budget_id, **fields)
    return jsonify(entry.to_dict())


@funding_bp.route("/projects/<project_id>/milestone-budgets/<budget_id>/status", methods=["PATCH"])
def set_milestone_budget_status(project_id, budget_id):
    data, err = json_body()
    if err:
        return err
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    entry = milestone_budget_service.set_milestone_budget_status(project_id, budget_id, data["status"])
    return jsonify(entry.to_dict())


@funding_bp.route("/projects/<project_id>/milestone-budgets/<budget_id>", methods=["DELETE"])
def delete_milestone_budget(project_id, budget_id):
    milestone_budget_service.delete_milestone_budget(project_id, budget_id)
    return jsonify({"message": "Milestone budget deleted"}), 200


@funding_bp.route("/projects/<project_id>/milestones/<milestone_id>/verify", methods=["POST"])
def verify_milestone(project_id, milestone_id):
    return jsonify(milestone_budget_service.verify_milestone(project_id, milestone_id))


# ═══════════════════════════════════════════════════════════════════════════
#  FUND RELEASE REQUESTS
# ═══════════════════════════════════════════════════════════════════════════

@funding_bp.route("/projects/<project_id>/fund-release-requests", methods=["GET"])
def list_fund_release_requests(project_id):
    requests_ = fund_release_service.list_fund_release_requests(
        project_id, status=request.args.get("status"),
    )
    return jsonify({"items": [r.to_dict() for r in requests_], "total": len(requests_)})


@funding_bp.route("/projects/<project_id>/fund-release-requests", methods=["POST"])
def submit_fund_release_request(project_id):
    data, err = json_body()
    if err:
        return err
    if not data.get("milestone_id"):
        return api_error(E.VALIDATION_REQUIRED, "milestone_id is required")
    user_id, user_name = current_user()
    req = fund_release_service.submit_fund_release_request(
        project_id,
        data["milestone_id"],
        data.get("amount"),
        description=data.get("description"),
        requested_by=user_id,
        requested_by_name=user_name,
    )
    return jsonify(req.to_dict()), 201


@funding_bp.route("/projects/<project_id>/fund-release-requests/<request_id>/approve", methods=["POST"])
def approve_fund_release_request(project_id, request_id):
    user_id, user_name = current_user()
    req = fund_release_service.approve_fund_release_request(
        project_id, request_id, approver_id=user_id, approver_name=user_name,
    )
    return jsonify(req.to_dict())


@funding_bp.route("/projects/<project_id>/fund-release-requests/<request_id>/reject", methods=["POST"])
def reject_fund_release_request(project_id, request_id):
    data, err = json_body()
    if err:
        return err
    user_id, user_name = current_user()
    req = fund_release_service.reject_fund_release_request(
        project_id,
        request_id,
        data.get("reason") or "",
        approver_id=user_id,
        approver_name=user_name,
    )
    return jsonify(req.to_dict())


# ═══════════════════════════════════════════════════════════════════════════
#  SCHEDULED TRANSFERS
# ═══════════════════════════════════════════════════════════════════════════

@funding_bp.route("/scheduled-transfers", methods=["GET"])
def list_all_transfers():
    transfers = fund_release_service.list_scheduled_transfers(status=request.args.get("status"))
    return jsonify({"items": [t.to_dict() for t in transfers], "total": len(transfers)})


@funding_bp.route("/projects/<project_id>/scheduled-transfers", methods=["GET"])
def list_project_transfers(project_id):
    transfers = fund_release_service.list_scheduled_transfers(
        project_id=project_id, status=request.args.get("status"),
    )
    return jsonify({"items": [t.to_dict() for t in transfers], "total": len(transfers)})


@funding_bp.route("/projects/<project_id>/scheduled-transfers", methods=["POST"])
def create_scheduled_transfer(project_id):
    data, err = json_body()
    if err:
        return err
    for field in ("fund_release_request_id", "recipient_id"):
        if not data.get(field):
            return api_error(E.VALIDATION_REQUIRED, f"{field} is required")
    transfer = fund_release_service.create_scheduled_transfer(
        project_id, data["fund_release_request_id"], data["recipient_id"],
    )
    return jsonify(transfer.to_dict()), 201


@funding_bp.route("/projects/<project_id>/scheduled-transfers/<transfer_id>", methods=["PUT"])
def update_scheduled_transfer(project_id, transfer_id):
    data, err = json_body()
    if err:
        return err
    transfer = fund_release_service.update_scheduled_transfer(project_id, transfer_id, data)
    return jsonify(transfer.to_dict())


@funding_bp.route("/projects/<project_id>/scheduled-transfers/<transfer_id>/schedule", methods=["POST"])
def schedule_transfer(project_id, transfer_id):
    data, err = json_body()
    if err:
        return err
    transfer = fund_release_service.schedule_transfer(
        project_id, transfer_id, data.get("scheduled_date"), notes=data.get("notes"),
    )
    return jsonify(transfer.to_dict())


@funding_bp.route("/projects/<project_id>/scheduled-transfers/<transfer_id>/complete", methods=["POST"])
def complete_transfer(project_id, transfer_id):
    user_id, user_name = current_user()
    transfer = fund_release_service.mark_transferred(
        project_id, transfer_id, transferred_by=user_id, transferred_by_name=user_name,
    )
    return jsonify(transfer.to_dict())


# ═══════════════════════════════════════════════════════════════════════════
#  FUND ACCOUNT REVIEW
# ═══════════════════════════════════════════════════════════════════════════

@funding_bp.route("/projects/<project_id>/fund-accounts/<account_id>/review", methods=["POST"])
def review_fund_account(project_id, account_id):
    data, err = json_body()
    if err:
        return err
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    account = project_service.review_fund_account(project_id, account_id, data["status"])
    return jsonify(account.to_dict())


# ═══════════════════════════════════════════════════════════════════════════
#  DONATIONS
# ═══════════════════════════════════════════════════════════════════════════

@funding_bp.route("/projects/<project_id>/donations", methods=["GET"])
def list_donations(project_id):
    donations = donation_service.list_project_donations(project_id, status=request.args.get("status"))
    return jsonify({"items": [d.to_dict() for d in donations], "total": len(donations)})


@funding_bp.route("/projects/<project_id>/donations", methods=["POST"])
def create_donation(project_id):
    data, err = json_body()
    if err:
        return err
    user_id, user_name = current_user()
    donation = donation_service.create_donation(
        project_id,
        data.get("amount"),
        user_id=user_id,
        donor_name=data.get("donor_name") or user_name,
        donor_email=data.get("donor_email"),
        message=data.get("message"),
        is_anonymous=bool(parse_bool(data.get("is_anonymous"), default=False)),
    )
    return jsonify(donation.to_dict()), 201


@funding_bp.route("/donations/<donation_id>/complete", methods=["POST"])
def complete_donation(donation_id):
    return jsonify(donation_service.complete_donation(donation_id).to_dict())


@funding_bp.route("/donations/<donation_id>/fail", methods=["POST"])
def fail_donation(donation_id):
    return jsonify(donation_service.fail_donation(donation_id).to_dict())
