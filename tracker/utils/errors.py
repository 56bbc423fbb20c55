"""Standardised API error responses.

Usage
-----
    from tracker.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Issue not found")
    return api_error(E.WORKFLOW_TRANSITION_BLOCKED, str(exc), details=exc.details)
"""

from __future__ import annotations

from flask import jsonify

from tracker.core.exceptions import WORKFLOW_TRANSITION_BLOCKED


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"

    # Business rule – HTTP 422
    BUSINESS_RULE = "ERR_BUSINESS_RULE"
    WORKFLOW_TRANSITION_BLOCKED = WORKFLOW_TRANSITION_BLOCKED

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.BUSINESS_RULE: 422,
    E.WORKFLOW_TRANSITION_BLOCKED: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field name, open subtask count, …).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status
