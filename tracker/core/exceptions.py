"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them
once and get consistent HTTP status codes everywhere.

Usage:
    from tracker.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Issue", resource_id="abc")
    raise ValidationError(
        "Transition 'Done' is not valid from current status",
        code="WORKFLOW_TRANSITION_BLOCKED",
        details={"from_status_id": "..."},
    )
"""

WORKFLOW_TRANSITION_BLOCKED = "WORKFLOW_TRANSITION_BLOCKED"


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given organization.

    Used for BOTH genuinely missing records AND cross-organization access
    attempts. A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable entity name (e.g. "Issue", "Transition").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
        organization_id: Optional. The scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        organization_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.organization_id = organization_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if organization_id is not None:
            msg += f" (organization={organization_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when a well-formed request violates a business rule.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional structured breakdown (field, count, validator type…).
        code: Optional stable machine-readable code, e.g.
              ``WORKFLOW_TRANSITION_BLOCKED``.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        code: str | None = None,
    ) -> None:
        self.details = details or {}
        self.code = code
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique constraint violation.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)
