"""
Platform-wide exception hierarchy.

Services raise these; blueprints register handlers against them once and
get consistent HTTP status codes everywhere.

Usage:
    from okr_api.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Objective", resource_id=42)
    raise ValidationError("Title is required", details={"title": "required"})
    raise AuthorizationDenied(decision)

A "denied" authorisation outcome is a normal return value of the evaluator
(see services/authorisation.py). ``AuthorizationDenied`` only appears once a
service decides to act on such a decision.
"""


class NotFoundError(Exception):
    """The resource is absent from the caller's scope. Maps to HTTP 404.

    Missing rows, rows of another tenant and rows the visibility rules hide
    all raise this, so a response never confirms that a hidden resource
    exists. ``resource_id`` and ``tenant_id`` reach the logs only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        tenant_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.tenant_id = tenant_id
        where = f" in tenant {tenant_id}" if tenant_id is not None else ""
        super().__init__(f"{resource} {resource_id!r} not found{where}")


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Identity-independent: a legacy visibility value on write, a weight outside
    [0, max], a missing title. Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Field-level breakdown. Keys are field names; values are
                 error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation conflicts with current state. Maps to HTTP 409.

    Covers duplicates (``resource`` already has ``field=value``) as well as
    state conflicts such as deleting a Key Result that still has linked
    Initiatives; pass ``message`` for the latter.
    """

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        self.is_duplicate = message is None
        super().__init__(message or f"{resource} with {field}={value!r} already exists")


class AuthorizationDenied(Exception):
    """Raised by services when the evaluator declined an action. Maps to HTTP 403.

    Carries the full ``Decision`` so handlers can expose the primary reason
    tag and the reason flags. ``resource`` is the ResourceContext the
    decision was made on (used by the explain surface).
    """

    def __init__(self, decision, message: str | None = None, resource=None) -> None:
        self.decision = decision
        self.resource = resource
        self.primary = decision.primary
        self.reasons = decision.reasons
        super().__init__(message or decision.message)
