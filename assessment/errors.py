"""
Error taxonomy for the assessment engine.

Only two conditions raise: a missing record the caller asked for by id,
and input that cannot be interpreted at all. Thin history is never an
error; it shows up as a low confidence score or a low probability.
"""

from __future__ import annotations

from typing import Any, Optional


class AssessmentError(Exception):
    """Base class carrying an HTTP-equivalent status and a stable code."""

    status: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Client-safe error body."""
        body = {
            "message": self.message,
            "status": self.status,
            "code": self.code,
        }
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(AssessmentError):
    """A property or valuation the caller referenced does not exist for the tenant."""

    status = 404
    code = "NOT_FOUND"


class InvalidInputError(AssessmentError, ValueError):
    """Input that cannot be coerced into a usable value."""

    status = 400
    code = "INVALID_INPUT"
