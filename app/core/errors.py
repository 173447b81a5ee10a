"""Domain exceptions and HTTP errors that carry a machine-readable code.

Usage:
    from app.core.errors import raise_with_code, WEEKLY_REVIEW_CLOSED

    raise_with_code(
        status_code=403,
        detail="Weekly review for this week is closed.",
        error_code=WEEKLY_REVIEW_CLOSED,
    )

The response body will be:
    {"detail": "...", "error_code": "WEEKLY_REVIEW_CLOSED"}
"""

from fastapi import HTTPException
from fastapi.responses import JSONResponse


# Error codes returned to API clients
WEEKLY_REVIEW_CLOSED = "WEEKLY_REVIEW_CLOSED"
CLASS_NOT_FOUND = "CLASS_NOT_FOUND"
CHECK_ITEM_NOT_FOUND = "CHECK_ITEM_NOT_FOUND"
INVALID_SCOPE = "INVALID_SCOPE"
AI_NOT_CONFIGURED = "AI_NOT_CONFIGURED"
ROLE_NOT_ALLOWED = "ROLE_NOT_ALLOWED"
INVALID_OPTION = "INVALID_OPTION"
OVERRIDE_CONFIRMATION_REQUIRED = "OVERRIDE_CONFIRMATION_REQUIRED"


# ---------------------------------------------------------------------------
# Domain exceptions (never reach the client directly)
# ---------------------------------------------------------------------------

class ReviewEngineError(Exception):
    """Base class for review engine failures."""


class DeadlineConfigError(ReviewEngineError):
    """No deadline could be determined for the requested window."""


class UpstreamTimeoutError(ReviewEngineError):
    """The LLM provider did not answer within the configured timeout."""


class LLMResponseError(ReviewEngineError):
    """The LLM provider answered with something that is not a JSON object."""


# ---------------------------------------------------------------------------
# HTTP errors
# ---------------------------------------------------------------------------

def raise_with_code(
    status_code: int,
    detail: str,
    error_code: str,
) -> None:
    """Raise an HTTPException whose body includes an error_code field.

    FastAPI's default exception handler only serializes `detail`, so we use
    a custom HTTPException subclass that overrides the response body.
    """
    raise CodedHTTPException(
        status_code=status_code,
        detail=detail,
        error_code=error_code,
    )


class CodedHTTPException(HTTPException):
    """HTTPException that includes an error_code in the JSON response."""

    def __init__(self, status_code: int, detail: str, error_code: str):
        super().__init__(status_code=status_code, detail=detail)
        self.error_code = error_code


def coded_exception_handler(_request, exc: CodedHTTPException):
    """Custom handler registered on the FastAPI app."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code},
    )
