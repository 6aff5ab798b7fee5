"""
Custom exceptions for the application.
"""

from fastapi import HTTPException, status


class JournalException(Exception):
    """Base exception for the practice journal."""

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


# ═══════════════════════════════════════════════════════════════════════════
# AUTHENTICATION & VALIDATION EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════


class InvalidTokenError(JournalException):
    """Raised when a JWT token is invalid or expired."""
    pass


class InvalidInputError(JournalException):
    """Raised for empty required text or malformed dates."""
    pass


# ═══════════════════════════════════════════════════════════════════════════
# TOPIC, GOAL & LOG EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════


class TopicNotFoundError(JournalException):
    """Raised when a topic is not found."""
    pass


class GoalNotFoundError(JournalException):
    """Raised when a goal is not found."""
    pass


class LogNotFoundError(JournalException):
    """Raised when a log entry is not found."""
    pass


class NumberingConflictError(JournalException):
    """
    Raised when an allocated topic or goal number is already taken.

    Numbers are allocated as max + 1 without a lock, so two concurrent
    creations can compute the same value; the unique index rejects the
    second one.
    """
    pass


# ═══════════════════════════════════════════════════════════════════════════
# LIBRARY EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════


class ContentNotFoundError(JournalException):
    """Raised when a content item is not found."""
    pass


class RepertoireNotFoundError(JournalException):
    """Raised when a repertoire item is not found."""
    pass


class TagNotFoundError(JournalException):
    """Raised when a tag is not found."""
    pass


class StatsRecomputeError(JournalException):
    """Raised when the repertoire stats recompute fails."""
    pass


# ═══════════════════════════════════════════════════════════════════════════
# HTTP EXCEPTION HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# ═══════════════════════════════════════════════════════════════════════════
# ERROR RESPONSE MAPPING
# ═══════════════════════════════════════════════════════════════════════════

# (HTTP status, error code) per domain exception, checked in order
ERROR_RESPONSES = [
    (InvalidTokenError, status.HTTP_401_UNAUTHORIZED, "INVALID_TOKEN"),
    (InvalidInputError, status.HTTP_422_UNPROCESSABLE_ENTITY, "INVALID_INPUT"),
    (TopicNotFoundError, status.HTTP_404_NOT_FOUND, "TOPIC_NOT_FOUND"),
    (GoalNotFoundError, status.HTTP_404_NOT_FOUND, "GOAL_NOT_FOUND"),
    (LogNotFoundError, status.HTTP_404_NOT_FOUND, "LOG_NOT_FOUND"),
    (ContentNotFoundError, status.HTTP_404_NOT_FOUND, "CONTENT_NOT_FOUND"),
    (RepertoireNotFoundError, status.HTTP_404_NOT_FOUND, "REPERTOIRE_NOT_FOUND"),
    (TagNotFoundError, status.HTTP_404_NOT_FOUND, "TAG_NOT_FOUND"),
    (NumberingConflictError, status.HTTP_409_CONFLICT, "NUMBERING_CONFLICT"),
    (StatsRecomputeError, status.HTTP_500_INTERNAL_SERVER_ERROR, "STATS_RECOMPUTE_FAILED"),
]


def error_response_for(exc: JournalException):
    """Return (status_code, code) for a domain exception."""
    for exc_type, status_code, code in ERROR_RESPONSES:
        if isinstance(exc, exc_type):
            return status_code, code
    return status.HTTP_400_BAD_REQUEST, "JOURNAL_ERROR"
