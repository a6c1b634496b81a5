"""
API error taxonomy.

Every failure that leaves the API carries one of these stable codes.
Domain code raises ApiError; the handlers registered in config.api turn it
into an ErrorResponse body with the mapped HTTP status.
"""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Machine-readable error codes returned in ErrorResponse.code."""

    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_MEMBER = "NOT_MEMBER"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    MISSING_IDENTIFIER = "MISSING_IDENTIFIER"
    ORG_NOT_FOUND = "ORG_NOT_FOUND"
    MEMBERSHIP_NOT_FOUND = "MEMBERSHIP_NOT_FOUND"

    INVALID_NAME = "INVALID_NAME"
    INVALID_SLUG = "INVALID_SLUG"
    INVALID_PLAN = "INVALID_PLAN"
    INVALID_ROLE = "INVALID_ROLE"
    INVALID_EMAIL_FORMAT = "INVALID_EMAIL_FORMAT"
    INVALID_DOMAIN = "INVALID_DOMAIN"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    ORGANIZATION_EXISTS = "ORGANIZATION_EXISTS"
    INVITATION_EXISTS = "INVITATION_EXISTS"

    MEMBER_LIMIT_REACHED = "MEMBER_LIMIT_REACHED"
    LAST_ADMIN = "LAST_ADMIN"
    CANNOT_REMOVE_SELF = "CANNOT_REMOVE_SELF"
    CANNOT_CHANGE_OWN_ROLE = "CANNOT_CHANGE_OWN_ROLE"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"

    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.NOT_MEMBER: 403,
    ErrorCode.INSUFFICIENT_PERMISSIONS: 403,
    ErrorCode.MISSING_IDENTIFIER: 400,
    ErrorCode.ORG_NOT_FOUND: 404,
    ErrorCode.MEMBERSHIP_NOT_FOUND: 404,
    ErrorCode.INVALID_NAME: 400,
    ErrorCode.INVALID_SLUG: 400,
    ErrorCode.INVALID_PLAN: 400,
    ErrorCode.INVALID_ROLE: 400,
    ErrorCode.INVALID_EMAIL_FORMAT: 400,
    ErrorCode.INVALID_DOMAIN: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.ORGANIZATION_EXISTS: 409,
    ErrorCode.INVITATION_EXISTS: 409,
    ErrorCode.MEMBER_LIMIT_REACHED: 400,
    ErrorCode.LAST_ADMIN: 400,
    ErrorCode.CANNOT_REMOVE_SELF: 400,
    ErrorCode.CANNOT_CHANGE_OWN_ROLE: 400,
    ErrorCode.CONFIRMATION_REQUIRED: 400,
    ErrorCode.INTERNAL_ERROR: 500,
}


class ApiError(Exception):
    """
    An expected failure with a stable error code.

    Args:
        code: The ErrorCode returned to the client.
        message: Human-readable detail. Never include internal error text.
        status: Overrides the default status for the code (e.g. 503 for an
            unavailable directory).
        **extra: Additional response fields, e.g. ``identifier`` for ORG_NOT_FOUND.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status: int | None = None,
        **extra: Any,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status or ERROR_STATUS[code]
        self.extra = extra

    def to_response(self) -> dict[str, Any]:
        """Build the ErrorResponse payload."""
        return {"code": self.code.value, "detail": self.message, **self.extra}
