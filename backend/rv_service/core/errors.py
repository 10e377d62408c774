"""
Typed failures raised by the reviewer assignment engine and its storage
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Failure classes the request layer maps to transport statuses"""
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    ALREADY_EXISTS = "already_exists"
    INTERNAL = "internal"


class ErrorCode(str, Enum):
    """Machine-readable failure reasons"""
    NOT_FOUND = "NOT_FOUND"
    AUTHOR_NOT_FOUND = "AUTHOR_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    TEAM_NOT_FOUND = "TEAM_NOT_FOUND"
    PR_MERGED = "PR_MERGED"
    NOT_ASSIGNED = "NOT_ASSIGNED"
    NO_CANDIDATE = "NO_CANDIDATE"
    TEAM_EXISTS = "TEAM_EXISTS"
    STATE_CHANGED = "STATE_CHANGED"
    PR_EXISTS = "PR_EXISTS"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ReviewServiceError(Exception):
    """Base class for all engine failures"""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> Dict[str, Any]:
        return {"error": {"code": self.code.value, "message": self.message}}

    def __repr__(self):
        return f"<{type(self).__name__}(code={self.code.value}, message={self.message!r})>"


class NotFoundError(ReviewServiceError):
    """Pull request, author, user or team is absent"""
    kind = ErrorKind.NOT_FOUND
    default_code = ErrorCode.NOT_FOUND


class ConflictError(ReviewServiceError):
    """The operation is illegal given the current state"""
    kind = ErrorKind.CONFLICT
    default_code = ErrorCode.STATE_CHANGED

    def __init__(self, message: str, reason: ErrorCode = ErrorCode.STATE_CHANGED):
        super().__init__(message, code=reason)

    @property
    def reason(self) -> ErrorCode:
        return self.code


class AlreadyExistsError(ReviewServiceError):
    """Duplicate pull request id"""
    kind = ErrorKind.ALREADY_EXISTS
    default_code = ErrorCode.PR_EXISTS


class InternalError(ReviewServiceError):
    """Storage failure unrelated to business rules"""
    kind = ErrorKind.INTERNAL
    default_code = ErrorCode.INTERNAL_ERROR
