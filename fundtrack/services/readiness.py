"""
Readiness evaluator for announcement and execution.

Read-only. Every call walks the loaded project graph and recomputes the
checklists; nothing is cached on the project.

Announcement checklist sections:
    basics, business_document, tax_document, human_resources,
    material_resources, fund_accounts, planning, risks, communication

Execution checklist:
    announced   project is visible to donors
    funding     donations cover the cost of the earliest-starting task
"""

from __future__ import annotations

from datetime import date

from flask import current_app, has_app_context

from fundtrack.models.project import APPROVAL_APPROVED
from fundtrack.services.cost_calculator import task_cost

# Failure codes on the execution funding item
NO_MILESTONE_BUDGET_DEFINED = "NoMilestoneBudgetDefined"
NO_BUDGET_ASSIGNED = "NoBudgetAssigned"
INSUFFICIENT_DONATIONS = "InsufficientDonations"
NOT_ANNOUNCED = "NotAnnounced"


def _filled(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _has_document(project, doc_type: str) -> bool:
    return any(d.type == doc_type and _filled(d.url) for d in project.documents)


def _item(key: str, label: str, met: bool) -> dict:
    return {"key": key, "label": label, "met": bool(met)}


def _progress(met: int, total: int) -> int:
    return round(met / total * 100) if total else 100


def _section(key: str, title: str, items: list[dict]) -> dict:
    met = sum(1 for i in items if i["met"])
    return {
        "key": key,
        "title": title,
        "items": items,
        "met": met,
        "total": len(items),
        "progress": _progress(met, len(items)),
        "complete": met == len(items),
    }


def _fmt_money(value: float) -> str:
    value = float(value or 0)
    return str(int(value)) if value.is_integer() else f"{value:.2f}"


def _currency() -> str:
    if has_app_context():
        return current_app.config.get("CURRENCY", "USD")
    return "USD"


# ═════════════════════════════════════════════════════════════════════════════
# Announcement
# ═════════════════════════════════════════════════════════════════════════════


def announcement_checklist(project) -> dict:
    """Evaluate everything a project needs before it can be shown to donors.

    Returns:
        dict with ``sections`` (each with items and progress), overall
        ``met`` / ``total`` / ``progress``, ``checklist_complete``,
        ``can_announce`` and the flat list of ``missing`` item labels.
    """
    plan = project.communication_plan
    sections = [
        _section("basics", "Project basics", [
            _item("name", "Project name", _filled(project.name)),
            _item("scope", "Project scope", _filled(project.scope)),
            _item("location", "Project location", _filled(project.location)),
        ]),
        _section("business_document", "Business document", [
            _item("business_document", "Business registration document",
                  _has_document(project, "business")),
        ]),
        _section("tax_document", "Tax document", [
            _item("tax_document", "Tax document", _has_document(project, "tax")),
        ]),
        _section("human_resources", "Human resources", [
            _item("human_resources", "At least one human resource",
                  len(project.human_resources) > 0),
        ]),
        _section("material_resources", "Material resources", [
            _item("material_resources", "At least one material resource",
                  len(project.material_resources) > 0),
        ]),
        _section("fund_accounts", "Fund accounts", [
            _item("fund_accounts", "At least one fund account", len(project.fund_accounts) > 0),
        ]),
        _section("planning", "Planning", [
            _item("activities", "At least one activity", len(project.activities) > 0),
            _item("tasks", "At least one task", len(project.tasks) > 0),
            _item("deliverables", "At least one deliverable", len(project.deliverables) > 0),
            _item("milestones", "At least one milestone", len(project.milestones) > 0),
            _item("decision_gates", "At least one decision gate",
                  len(project.decision_gates) > 0),
        ]),
        _section("risks", "Risks", [
            _item("risks", "At least one risk", len(project.risks) > 0),
        ]),
        _section("communication", "Communication", [
            _item("communication_plan", "Complete communication plan",
                  plan is not None and plan.is_complete()),
            _item("social_media_accounts", "At least one social media account",
                  len(project.social_media_accounts) > 0),
            _item("communication_mediums", "At least one communication medium",
                  len(project.communication_mediums) > 0),
        ]),
    ]

    met = sum(s["met"] for s in sections)
    total = sum(s["total"] for s in sections)
    complete = met == total
    previously_approved = bool(project.has_been_approved) or (
        project.approval_status == APPROVAL_APPROVED
    )
    return {
        "sections": sections,
        "met": met,
        "total": total,
        "progress": _progress(met, total),
        "checklist_complete": complete,
        "previously_approved": previously_approved,
        "can_announce": complete and previously_approved,
        "missing": [i["label"] for s in sections for i in s["items"] if not i["met"]],
    }


def checklist_complete(project) -> bool:
    return announcement_checklist(project)["checklist_complete"]


def can_announce(project) -> bool:
    return announcement_checklist(project)["can_announce"]


# ═════════════════════════════════════════════════════════════════════════════
# Execution
# ═════════════════════════════════════════════════════════════════════════════


def earliest_task(project):
    """Task with the earliest start date; undated tasks sort last."""
    if not project.tasks:
        return None
    return min(
        project.tasks,
        key=lambda t: (t.start_date is None, t.start_date or date.max),
    )


def _funding_item(project) -> dict:
    donated = float(project.donations or 0)
    first = earliest_task(project)
    if first is None:
        return {
            "key": "funding",
            "label": "Donations cover the first task",
            "met": False,
            "code": NO_MILESTONE_BUDGET_DEFINED,
            "message": "No tasks are defined, so no initial budget can be determined",
            "required": None,
            "donated": donated,
        }

    required = task_cost(first)
    if required <= 0:
        return {
            "key": "funding",
            "label": "Donations cover the first task",
            "met": False,
            "code": NO_BUDGET_ASSIGNED,
            "message": f"The first task '{first.name}' has no budget assigned",
            "required": required,
            "donated": donated,
            "task_id": first.id,
        }

    met = donated >= required
    currency = _currency()
    return {
        "key": "funding",
        "label": "Donations cover the first task",
        "met": met,
        "code": None if met else INSUFFICIENT_DONATIONS,
        "message": None if met else (
            f"The first task '{first.name}' requires {_fmt_money(required)} {currency} "
            f"but only {_fmt_money(donated)} {currency} has been donated"
        ),
        "required": required,
        "donated": donated,
        "task_id": first.id,
    }


def execution_checklist(project) -> dict:
    """Evaluate whether a project may enter execution.

    ``reason`` carries the message of the first unmet item, ``None`` when
    ``can_execute`` holds.
    """
    announced = {
        "key": "announced",
        "label": "Project is announced to donors",
        "met": bool(project.is_announced_to_donors),
        "code": None if project.is_announced_to_donors else NOT_ANNOUNCED,
        "message": None if project.is_announced_to_donors else (
            "The project must be announced to donors before execution"
        ),
    }
    items = [announced, _funding_item(project)]
    unmet = [i for i in items if not i["met"]]
    return {
        "items": items,
        "can_execute": not unmet,
        "missing": [i["label"] for i in unmet],
        "reason": unmet[0]["message"] if unmet else None,
    }


def can_execute(project) -> bool:
    return execution_checklist(project)["can_execute"]


# ═════════════════════════════════════════════════════════════════════════════
# Results
# ═════════════════════════════════════════════════════════════════════════════


def readiness_not_met(missing: list[str], reason: str | None, **extra) -> dict:
    """Structured refusal returned by status toggles instead of raising."""
    result = {"ok": False, "missing": list(missing), "reason": reason}
    result.update(extra)
    return result


def readiness_report(project) -> dict:
    return {
        "project_id": project.id,
        "announcement": announcement_checklist(project),
        "execution": execution_checklist(project),
    }
