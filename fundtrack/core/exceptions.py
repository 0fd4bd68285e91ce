"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from fundtrack.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=project_id)
    raise ValidationError("reason is required", details={"reason": "blank"})
"""


class NotFoundError(Exception):
    """Raised when a referenced entity does not exist in the project graph.

    Args:
        resource: Human-readable entity name (e.g. "Project", "FundAccount").
        resource_id: The id that was looked up.
        project_id: Optional owning project, included in the message.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        project_id: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.project_id = project_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if project_id is not None:
            msg += f" in project {project_id}"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input, caught in blueprint). Maps to
    HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class DuplicateMilestoneBudget(ValidationError):
    """A milestone may carry at most one budget per project."""

    def __init__(self, milestone_id: str) -> None:
        self.milestone_id = milestone_id
        super().__init__(
            f"Milestone {milestone_id} already has a budget assigned",
            details={"milestone_id": "duplicate"},
        )


class InvalidResourceError(ValidationError):
    """A resource line item cannot be costed (zero amortization period, negative amount)."""


class InvalidStateTransition(Exception):
    """Raised when a status change is not allowed from the current state.

    Maps to HTTP 409.

    Args:
        entity: Name of the entity whose status is changing.
        current: Current status (None when never set).
        target: Requested status.
        message: Optional override for the default message.
    """

    def __init__(
        self,
        entity: str,
        current: str | None,
        target: str,
        message: str | None = None,
    ) -> None:
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(
            message or f"{entity} cannot move from {current or 'unset'} to {target}"
        )


class ConflictError(Exception):
    """Raised when an operation would duplicate something that must be unique.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)
