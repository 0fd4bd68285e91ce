"""
FundTrack
Project blueprint: project CRUD, readiness report and the project data graph.

Endpoints:
    PROJECT     /api/v1/projects                                   GET, POST
                /api/v1/projects/<id>                              GET, PUT, DELETE
                /api/v1/projects/<id>/readiness                    GET
                /api/v1/projects/<id>/funding-summary              GET

    COLLECTION  /api/v1/projects/<id>/<collection>                 GET, POST
                /api/v1/projects/<id>/<collection>/<item_id>       PUT, DELETE
                (human-resources, material-resources, fund-accounts, activities,
                 tasks, deliverables, milestones, decision-gates, risks,
                 documents, social-media-accounts, communication-mediums)

    COMMS       /api/v1/projects/<id>/communication-plan           GET, PUT

    ASSIGNMENT  /api/v1/projects/<id>/tasks/<task_id>/resources              POST
                /api/v1/projects/<id>/tasks/<task_id>/resources/<assign_id>  DELETE
"""

import logging

from flask import Blueprint, jsonify, request

from fundtrack.blueprints import json_body
from fundtrack.services import cost_calculator, donation_service, fund_release_service, readiness
from fundtrack.services import project_service
from fundtrack.utils.errors import register_error_handlers
from fundtrack.utils.helpers import current_user

logger = logging.getLogger(__name__)

project_bp = Blueprint("projects", __name__, url_prefix="/api/v1")
register_error_handlers(project_bp)

# URL slug → Project relationship name
_SLUGS = {name.replace("_", "-"): name for name in project_service.COLLECTION_NAMES}
# any() arguments with hyphens must be quoted or Werkzeug cannot parse the rule
_COLLECTION = "<any({}):collection>".format(", ".join(f"'{s}'" for s in sorted(_SLUGS)))


def _project_payload(project):
    data = project.to_dict(include_children=True)
    data["cost_breakdown"] = cost_calculator.cost_breakdown(project)
    data["donation_progress"] = donation_service.donation_progress(project)
    return data


# ═══════════════════════════════════════════════════════════════════════════
#  PROJECT CRUD
# ═══════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects", methods=["GET"])
def list_projects():
    projects = project_service.list_projects(owner_id=request.args.get("owner_id"))
    return jsonify({"items": [p.to_dict() for p in projects], "total": len(projects)})


@project_bp.route("/projects", methods=["POST"])
def create_project():
    data, err = json_body()
    if err:
        return err
    owner_id, owner_name = current_user()
    project = project_service.create_project(data, owner_id=owner_id, owner_name=owner_name)
    return jsonify(project.to_dict()), 201


@project_bp.route("/projects/<project_id>", methods=["GET"])
def get_project(project_id):
    project = project_service.get_project(project_id)
    return jsonify(_project_payload(project))


@project_bp.route("/projects/<project_id>", methods=["PUT"])
def update_project(project_id):
    data, err = json_body()
    if err:
        return err
    project = project_service.update_project(project_id, data)
    return jsonify(project.to_dict())


@project_bp.route("/projects/<project_id>", methods=["DELETE"])
def delete_project(project_id):
    project_service.delete_project(project_id)
    return jsonify({"message": "Project deleted"}), 200


@project_bp.route("/projects/<project_id>/readiness", methods=["GET"])
def project_readiness(project_id):
    project = project_service.get_project(project_id)
    return jsonify(readiness.readiness_report(project))


@project_bp.route("/projects/<project_id>/funding-summary", methods=["GET"])
def funding_summary(project_id):
    summary = fund_release_service.funding_summary(project_id)
    project = project_service.get_project(project_id)
    summary["donation_progress"] = donation_service.donation_progress(project)
    return jsonify(summary)


# ═══════════════════════════════════════════════════════════════════════════
#  COLLECTIONS
# ═══════════════════════════════════════════════════════════════════════════

@project_bp.route(f"/projects/<project_id>/{_COLLECTION}", methods=["GET"])
def list_collection(project_id, collection):
    project = project_service.get_project(project_id)
    items = getattr(project, _SLUGS[collection])
    return jsonify({"items": [i.to_dict() for i in items], "total": len(items)})


@project_bp.route(f"/projects/<project_id>/{_COLLECTION}", methods=["POST"])
def add_collection_item(project_id, collection):
    data, err = json_body()
    if err:
        return err
    item = project_service.add_item(_SLUGS[collection], project_id, data)
    return jsonify(item.to_dict()), 201


@project_bp.route(f"/projects/<project_id>/{_COLLECTION}/<item_id>", methods=["PUT"])
def update_collection_item(project_id, collection, item_id):
    data, err = json_body()
    if err:
        return err
    item = project_service.update_item(_SLUGS[collection], project_id, item_id, data)
    return jsonify(item.to_dict())


@project_bp.route(f"/projects/<project_id>/{_COLLECTION}/<item_id>", methods=["DELETE"])
def delete_collection_item(project_id, collection, item_id):
    project_service.delete_item(_SLUGS[collection], project_id, item_id)
    return jsonify({"message": "Deleted"}), 200


# ── Communication plan ──────────────────────────────────────────────────────

@project_bp.route("/projects/<project_id>/communication-plan", methods=["GET"])
def get_communication_plan(project_id):
    project = project_service.get_project(project_id)
    plan = project.communication_plan
    return jsonify(plan.to_dict() if plan else {})


@project_bp.route("/projects/<project_id>/communication-plan", methods=["PUT"])
def set_communication_plan(project_id):
    data, err = json_body()
    if err:
        return err
    plan = project_service.set_communication_plan(project_id, data)
    return jsonify(plan.to_dict())


# ── Task resource assignments ───────────────────────────────────────────────

@project_bp.route("/projects/<project_id>/tasks/<task_id>/resources", methods=["POST"])
def assign_task_resource(project_id, task_id):
    data, err = json_body()
    if err:
        return err
    assignment = project_service.add_task_resource(project_id, task_id, data)
    return jsonify(assignment.to_dict()), 201


@project_bp.route(
    "/projects/<project_id>/tasks/<task_id>/resources/<assignment_id>", methods=["DELETE"],
)
def unassign_task_resource(project_id, task_id, assignment_id):
    project_service.delete_task_resource(project_id, task_id, assignment_id)
    return jsonify({"message": "Deleted"}), 200
