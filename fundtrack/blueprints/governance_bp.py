"""
FundTrack
Governance blueprint: governor review and the announcement / execution toggles.

Endpoints:
    APPROVAL    /api/v1/projects/<id>/approval/request     POST
                /api/v1/projects/<id>/approval/approve     POST
                /api/v1/projects/<id>/approval/reject      POST   {reason}
                /api/v1/projects/awaiting-approval         GET
                /api/v1/projects/announced                 GET

    STATUS      /api/v1/projects/<id>/announcement         POST   {announce: bool}
                /api/v1/projects/<id>/execution            POST   {execute: bool}

Gate failures come back as 422 READINESS_NOT_MET with the missing items.
"""

import logging

from flask import Blueprint, jsonify

from fundtrack.blueprints import json_body, parse_bool, status_result_response
from fundtrack.services import approval_service, project_service, status_service
from fundtrack.utils.errors import E, api_error, register_error_handlers
from fundtrack.utils.helpers import current_user

logger = logging.getLogger(__name__)

governance_bp = Blueprint("governance", __name__, url_prefix="/api/v1")
register_error_handlers(governance_bp)


# ═══════════════════════════════════════════════════════════════════════════
#  APPROVAL
# ═══════════════════════════════════════════════════════════════════════════

@governance_bp.route("/projects/<project_id>/approval/request", methods=["POST"])
def request_approval(project_id):
    result = approval_service.request_approval(project_id)
    if not result["ok"]:
        return status_result_response(result)
    project = project_service.get_project(project_id)
    return jsonify({**result, "project": project.to_dict()}), 200


@governance_bp.route("/projects/<project_id>/approval/approve", methods=["POST"])
def approve_project(project_id):
    _, approver_name = current_user()
    project = approval_service.approve(project_id, approver=approver_name)
    return jsonify(project.to_dict())


@governance_bp.route("/projects/<project_id>/approval/reject", methods=["POST"])
def reject_project(project_id):
    data, err = json_body()
    if err:
        return err
    project = approval_service.reject(project_id, data.get("reason") or "")
    return jsonify(project.to_dict())


@governance_bp.route("/projects/awaiting-approval", methods=["GET"])
def awaiting_approval():
    projects = approval_service.list_awaiting_approval()
    return jsonify({"items": [p.to_dict() for p in projects], "total": len(projects)})


@governance_bp.route("/projects/announced", methods=["GET"])
def announced_projects():
    projects = approval_service.list_announced()
    return jsonify({"items": [p.to_dict() for p in projects], "total": len(projects)})


# ═══════════════════════════════════════════════════════════════════════════
#  STATUS TOGGLES
# ═══════════════════════════════════════════════════════════════════════════

@governance_bp.route("/projects/<project_id>/announcement", methods=["POST"])
def toggle_announcement(project_id):
    data, err = json_body()
    if err:
        return err
    announce = parse_bool(data.get("announce"), default=True)
    if announce is None:
        return api_error(E.VALIDATION_INVALID, "announce must be a boolean")
    result = status_service.set_announcement(project_id, announce=announce)
    return status_result_response(result)


@governance_bp.route("/projects/<project_id>/execution", methods=["POST"])
def toggle_execution(project_id):
    data, err = json_body()
    if err:
        return err
    if "execute" not in data:
        return api_error(E.VALIDATION_REQUIRED, "execute is required")
    execute = parse_bool(data.get("execute"))
    if execute is None:
        return api_error(E.VALIDATION_INVALID, "execute must be a boolean")
    result = status_service.set_execution(project_id, execute)
    return status_result_response(result)
