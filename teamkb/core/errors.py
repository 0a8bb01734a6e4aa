from __future__ import annotations

from fastapi import status


class KnowledgeBaseError(Exception):
    """Base for failures reported to the caller as ``{"message": ...}``."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    event: str = "error"
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidArgument(KnowledgeBaseError):
    status_code = status.HTTP_400_BAD_REQUEST
    event = "invalid_argument"
    default_message = "Invalid argument"


class Unauthenticated(KnowledgeBaseError):
    status_code = status.HTTP_401_UNAUTHORIZED
    event = "unauthenticated"
    default_message = "Authentication required"


class Forbidden(KnowledgeBaseError):
    status_code = status.HTTP_403_FORBIDDEN
    event = "forbidden"
    default_message = "Forbidden"


class NotFound(KnowledgeBaseError):
    status_code = status.HTTP_404_NOT_FOUND
    event = "not_found"
    default_message = "Not found"


class InternalError(KnowledgeBaseError):
    event = "internal_error"


def require_text(value: str | None, field: str) -> str:
    """Return ``value`` stripped, or raise InvalidArgument when it is blank."""
    text = (value or "").strip()
    if not text:
        raise InvalidArgument(f"{field} is required")
    return text
