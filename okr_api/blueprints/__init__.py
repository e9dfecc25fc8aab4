"""
Shared blueprint plumbing: pagination and the service-exception → HTTP mapping.
"""

import logging

from flask import g, request

from okr_api.core.exceptions import AuthorizationDenied, ConflictError, NotFoundError, ValidationError
from okr_api.services.explain import explain_if_enabled
from okr_api.services.publish_lock import TransitionError
from okr_api.utils.errors import AUTHZ_CODES, E, api_error

logger = logging.getLogger(__name__)


def _page_args(default_limit, max_limit) -> tuple[int, int]:
    """``(limit, offset)`` from the request; limit clamped to [1, max_limit], offset >= 0."""
    args = request.args
    limit = args.get("limit", default_limit, type=int) or default_limit
    offset = args.get("offset", 0, type=int) or 0
    return min(max(limit, 1), max_limit), max(offset, 0)


def paginate_query(query, default_limit=200, max_limit=1000):
    """``(items, total)`` for a SQLAlchemy query; paging happens in SQL."""
    limit, offset = _page_args(default_limit, max_limit)
    return query.limit(limit).offset(offset).all(), query.count()


def paginate_list(items: list, default_limit=200, max_limit=1000):
    """``(page, total)`` for a list already filtered in Python (per-row visibility)."""
    limit, offset = _page_args(default_limit, max_limit)
    return items[offset:offset + limit], len(items)


def denial_response(error: AuthorizationDenied):
    """403 body for an evaluator denial; adds ``explain`` for inspector users."""
    decision = error.decision
    extra = {
        "reason": decision.primary.value if decision.primary else None,
        "reasons": decision.reasons.to_dict(),
        "lock_reason": decision.lock.reason.value if decision.lock.reason else None,
    }
    if error.resource is not None:
        explanation = explain_if_enabled(
            getattr(g, "current_user", None), decision.action, error.resource, decision,
        )
        if explanation is not None:
            extra["explain"] = explanation
    code = AUTHZ_CODES.get(extra["reason"], E.FORBIDDEN)
    return api_error(code, str(error), **extra)


def register_error_handlers(bp):
    """Map service-layer exceptions to HTTP responses on ``bp``."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, f"{error.resource} not found")

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        code = E.CONFLICT_DUPLICATE if error.is_duplicate else E.CONFLICT_STATE
        return api_error(code, str(error))

    @bp.errorhandler(TransitionError)
    def _handle_transition(error: TransitionError):
        return api_error(E.CONFLICT_STATE, str(error), current_state=error.current_state)

    @bp.errorhandler(AuthorizationDenied)
    def _handle_denied(error: AuthorizationDenied):
        return denial_response(error)
