"""
Cost calculator: turns resource line items into projected money.

Pure functions, no session access. The projection window (days) comes from
``COST_PROJECTION_DAYS`` when an app context is active, 30 otherwise.

    human      cost_per_day × quantity × days
    one-time   cost_amount
    recurring  cost_amount × days / amortization_period
"""

from __future__ import annotations

from flask import current_app, has_app_context

from fundtrack.core.exceptions import InvalidResourceError
from fundtrack.models.project import COST_TYPE_RECURRING

DEFAULT_PROJECTION_DAYS = 30


def projection_days() -> int:
    if has_app_context():
        return int(current_app.config.get("COST_PROJECTION_DAYS", DEFAULT_PROJECTION_DAYS))
    return DEFAULT_PROJECTION_DAYS


def _non_negative(value, field: str) -> float:
    amount = float(value or 0)
    if amount < 0:
        raise InvalidResourceError(f"{field} cannot be negative", details={field: "negative"})
    return amount


def human_resource_cost(resource, days: int | None = None) -> float:
    """Projected cost of a human resource over ``days``."""
    days = projection_days() if days is None else days
    per_day = _non_negative(resource.cost_per_day, "cost_per_day")
    quantity = _non_negative(resource.quantity, "quantity")
    return per_day * quantity * days


def material_resource_cost(resource, days: int | None = None) -> float:
    """Projected cost of a material resource.

    One-time items cost their amount once. Recurring items are amortized:
    the amount covers ``amortization_period`` days and is scaled to ``days``.

    Raises:
        InvalidResourceError: negative amount, or recurring item with an
            amortization period below one day.
    """
    days = projection_days() if days is None else days
    amount = _non_negative(resource.cost_amount, "cost_amount")
    if resource.cost_type != COST_TYPE_RECURRING:
        return amount

    period = resource.amortization_period
    if period is None or period < 1:
        raise InvalidResourceError(
            "amortization_period must be at least 1 day for recurring resources",
            details={"amortization_period": "must be >= 1"},
        )
    return amount * days / period


def cost_breakdown(project, days: int | None = None) -> dict:
    """Human / material / total split for a project."""
    days = projection_days() if days is None else days
    human = sum(human_resource_cost(r, days) for r in project.human_resources)
    material = sum(material_resource_cost(r, days) for r in project.material_resources)
    return {
        "human": human,
        "material": material,
        "total": human + material,
        "projection_days": days,
    }


def total_project_cost(project, days: int | None = None) -> float:
    return cost_breakdown(project, days)["total"]


def assignment_duration(start_date, end_date, fallback: int | None = None) -> int:
    """Inclusive day count between two dates; ``fallback`` (or 1) when undated."""
    if start_date and end_date:
        if end_date < start_date:
            raise InvalidResourceError(
                "end_date cannot be before start_date", details={"end_date": "before start_date"},
            )
        return (end_date - start_date).days + 1
    return max(1, int(fallback or 1))


def assignment_cost(resource_type: str, resource, quantity: int, duration: int) -> tuple[float, float]:
    """(daily_cost, total_cost) of booking ``quantity`` units of a resource.

    Human resources cost per day. One-time materials cost their amount per
    unit regardless of duration. Recurring materials cost their amortized
    daily rate.
    """
    quantity = _non_negative(quantity, "quantity")
    if resource_type == "human":
        daily = _non_negative(resource.cost_per_day, "cost_per_day")
        return daily, daily * duration * quantity

    amount = _non_negative(resource.cost_amount, "cost_amount")
    if resource.cost_type == COST_TYPE_RECURRING:
        daily = material_resource_cost(resource, days=1)
        return daily, daily * duration * quantity
    total = amount * quantity
    return total / duration, total


def task_cost(task) -> float:
    """Sum of the task's resource assignment totals."""
    return sum(a.total_cost or 0.0 for a in task.resources)
