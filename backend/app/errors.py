"""
Application error type.
Every expected failure is raised as an AppError tagged with an ErrorKind;
the HTTP layer maps kinds to status codes through STATUS_BY_KIND.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMIT_EXCEEDED"
    INTERNAL = "INTERNAL_ERROR"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL: 500,
}


class AppError(Exception):
    """A tagged application error: kind, human message, optional details."""

    def __init__(self, kind: ErrorKind, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict:
        """Error body of the response envelope."""
        return {
            "statusCode": self.status_code,
            "code": self.kind.value,
            "message": self.message,
            "details": self.details,
        }

    @classmethod
    def not_found(cls, message: str = "Resource not found", details: Any = None) -> "AppError":
        return cls(ErrorKind.NOT_FOUND, message, details)

    @classmethod
    def validation(cls, message: str, details: Any = None) -> "AppError":
        return cls(ErrorKind.VALIDATION, message, details)

    @classmethod
    def unauthorized(cls, message: str = "Authentication required") -> "AppError":
        return cls(ErrorKind.UNAUTHORIZED, message)

    @classmethod
    def forbidden(cls, message: str = "Access denied") -> "AppError":
        return cls(ErrorKind.FORBIDDEN, message)

    def __repr__(self) -> str:
        return f"AppError({self.kind.name}, {self.message!r})"
