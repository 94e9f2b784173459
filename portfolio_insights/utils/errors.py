"""JSON error envelope for the API.

    {"ok": false, "error": "<message>", "code": "ERR_*", "details": {...}}

Usage
-----
    from portfolio_insights.utils.errors import api_error, from_validation_error, E

    return api_error(E.VALIDATION_REQUIRED, "JSON body is required")
    return from_validation_error(exc)
"""

from __future__ import annotations

from flask import jsonify

from portfolio_insights.core.exceptions import ValidationError


class E:
    """Machine-readable error codes."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"   # 400: body missing
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"     # 422: body has the wrong shape
    NOT_FOUND = "ERR_NOT_FOUND"
    INTERNAL = "ERR_INTERNAL"


_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.NOT_FOUND: 404,
    E.INTERNAL: 500,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build ``(response, status)`` for a Flask view.

    ``status`` overrides the code's default; unknown codes fall back to 400.
    ``details`` is omitted from the body when empty.
    """
    body: dict = {"ok": False, "error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _DEFAULT_STATUS.get(code, 400)


def from_validation_error(exc: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(exc), details=exc.details)
