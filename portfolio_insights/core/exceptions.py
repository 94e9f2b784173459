"""
Exception types raised at the request boundary.

The reducers themselves never raise: missing or malformed signals degrade
to "no signal". Only a request body with the wrong top-level shape is an
error, and blueprints map it to HTTP 422.

Usage:
    from portfolio_insights.core.exceptions import ValidationError

    raise ValidationError("project_ids must be a list", details={"project_ids": "expected a list"})
"""


class ValidationError(Exception):
    """Raised when a request payload has the wrong top-level shape.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)
