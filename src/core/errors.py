"""Error classification utilities for quest log operations."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel


class ErrorCategory(Enum):
    """Categories of errors that can occur while serving a request."""

    QUEST_NOT_FOUND = "quest_not_found"
    TEMPLATE_NOT_FOUND = "template_not_found"
    PROJECT_NOT_FOUND = "project_not_found"
    INVALID_STATUS_TRANSITION = "invalid_status_transition"
    INVALID_TEMPLATE = "invalid_template"
    DUPLICATE_QUEST = "duplicate_quest"
    STORE_UNAVAILABLE = "store_unavailable"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Lookup errors
    ERR_QUEST_NOT_FOUND = "ERR_QUEST_NOT_FOUND"
    ERR_TEMPLATE_NOT_FOUND = "ERR_TEMPLATE_NOT_FOUND"
    ERR_PROJECT_NOT_FOUND = "ERR_PROJECT_NOT_FOUND"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"

    # Quest errors
    ERR_INVALID_STATUS_TRANSITION = "ERR_INVALID_STATUS_TRANSITION"
    ERR_DUPLICATE_QUEST = "ERR_DUPLICATE_QUEST"
    ERR_INVALID_TEMPLATE = "ERR_INVALID_TEMPLATE"
    ERR_VALIDATION = "ERR_VALIDATION"

    # Storage errors
    ERR_STORE_UNAVAILABLE = "ERR_STORE_UNAVAILABLE"
    ERR_DATABASE = "ERR_DATABASE"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity
    status_code: int = 500


_ERROR_PATTERNS: dict[
    Literal["not_found", "transition", "duplicate", "unavailable", "template"],
    dict[str, list[str] | set[str]],
] = {
    "not_found": {
        "phrases": ["not found", "does not belong to"],
        "exception_types": {"RecordNotFoundError", "KeyError"},
    },
    "transition": {
        "phrases": ["cannot transition", "invalid status transition"],
        "exception_types": {"InvalidStatusTransitionError"},
    },
    "duplicate": {
        "phrases": ["already has an open quest", "duplicate record"],
        "exception_types": {"DuplicateRecordError", "QuestAlreadyOpenError"},
    },
    "unavailable": {
        "phrases": ["database unavailable", "unable to open database", "database is locked"],
        "exception_types": {"StoreUnavailableError", "ConnectionError", "TimeoutError"},
    },
    "template": {
        "phrases": ["days_of_week", "weeks_of_month", "dates_of_month", "month_of_year", "quest type free"],
        "exception_types": set(),
    },
}


def _exception_names(exception: Exception) -> set[str]:
    return {cls.__name__ for cls in type(exception).__mro__}


def _match_error_pattern(
    *,
    error_str: str,
    exception_types: set[str],
    pattern_type: Literal["not_found", "transition", "duplicate", "unavailable", "template"],
) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or bool(
        exception_types & set(patterns["exception_types"])
    )


def _not_found_response(error_str: str) -> ErrorResponse:
    if "quest_templates" in error_str or "template" in error_str:
        code, message = ErrorCode.ERR_TEMPLATE_NOT_FOUND, "I couldn't find that template."
    elif "projects" in error_str or "project" in error_str:
        code, message = ErrorCode.ERR_PROJECT_NOT_FOUND, "I couldn't find that project."
    elif "quest" in error_str:
        code, message = ErrorCode.ERR_QUEST_NOT_FOUND, "I couldn't find that quest."
    else:
        code, message = ErrorCode.ERR_NOT_FOUND, "Record not found."
    return ErrorResponse(
        code=code,
        message=message,
        suggestion="Refresh your quest board and try again.",
        severity=ErrorSeverity.LOW,
        status_code=404,
    )


def classify_error_with_response(exception: Exception) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, suggestion, severity and HTTP status
    """
    error_str = str(exception).lower()
    exception_types = _exception_names(exception)

    # Storage outages are checked first: StoreUnavailableError is also a DatabaseError
    if _match_error_pattern(error_str=error_str, exception_types=exception_types, pattern_type="unavailable"):
        return ErrorResponse(
            code=ErrorCode.ERR_STORE_UNAVAILABLE,
            message="The quest log database is unavailable.",
            suggestion="Please try again in a moment.",
            severity=ErrorSeverity.CRITICAL,
            status_code=503,
        )

    if _match_error_pattern(error_str=error_str, exception_types=exception_types, pattern_type="transition"):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_STATUS_TRANSITION,
            message="This status change is not allowed for the quest's current state.",
            suggestion="Finished quests cannot change; open quests can only move forward or be paused, cancelled or failed.",
            severity=ErrorSeverity.LOW,
            status_code=400,
        )

    if _match_error_pattern(error_str=error_str, exception_types=exception_types, pattern_type="duplicate"):
        return ErrorResponse(
            code=ErrorCode.ERR_DUPLICATE_QUEST,
            message="This template already has an open quest.",
            suggestion="Finish or cancel the open quest first.",
            severity=ErrorSeverity.LOW,
            status_code=409,
        )

    if _match_error_pattern(error_str=error_str, exception_types=exception_types, pattern_type="not_found"):
        return _not_found_response(error_str)

    if "ValueError" in exception_types:
        if _match_error_pattern(error_str=error_str, exception_types=exception_types, pattern_type="template"):
            return ErrorResponse(
                code=ErrorCode.ERR_INVALID_TEMPLATE,
                message="The template's schedule is invalid.",
                suggestion="Weekdays are 0-6 (Sunday first), weeks 1-5, dates 1-31 and months 1-12.",
                severity=ErrorSeverity.LOW,
                status_code=400,
            )
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            message=str(exception) or "Invalid request.",
            suggestion="Check the request fields and try again.",
            severity=ErrorSeverity.LOW,
            status_code=400,
        )

    if "DatabaseError" in exception_types:
        return ErrorResponse(
            code=ErrorCode.ERR_DATABASE,
            message="A database error occurred.",
            suggestion="Please try again later. If the problem persists, check the server logs.",
            severity=ErrorSeverity.HIGH,
            status_code=500,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, check the server logs.",
        severity=ErrorSeverity.MEDIUM,
        status_code=500,
    )
