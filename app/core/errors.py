"""
Error taxonomy shared by the validation gate, the job handlers and the dispatcher.

Failures travel as values: gate checks return a JobError (or None), handler
steps return a Result. The dispatcher decides retry vs terminal from
JobError.retryable alone.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional
import logging

import httpx
from fastapi import HTTPException
from postgrest.exceptions import APIError

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    VALIDATION_FAILURE = "validation_failure"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INVARIANT_VIOLATION = "invariant_violation"
    TRANSIENT_INFRA = "transient_infra"


class ErrorCode(str, Enum):
    # Group errors
    GROUP_NOT_FOUND = "GROUP_NOT_FOUND"
    GROUP_FULL = "GROUP_FULL"
    GROUP_NAME_TOO_LONG = "GROUP_NAME_TOO_LONG"
    GROUP_HAS_MEMBERS = "GROUP_HAS_MEMBERS"

    # User/Member errors
    USER_GROUP_LIMIT = "USER_GROUP_LIMIT"
    NOT_GROUP_MEMBER = "NOT_GROUP_MEMBER"
    NOT_GROUP_OWNER = "NOT_GROUP_OWNER"
    ALREADY_MEMBER = "ALREADY_MEMBER"

    # Invite errors
    INVITE_NOT_FOUND = "INVITE_NOT_FOUND"
    INVITE_EXPIRED = "INVITE_EXPIRED"
    INVITE_ALREADY_USED = "INVITE_ALREADY_USED"

    # Prompt errors
    PROMPT_ALREADY_ANSWERED = "PROMPT_ALREADY_ANSWERED"

    # Job errors
    UNKNOWN_JOB_KIND = "UNKNOWN_JOB_KIND"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"

    # Generic errors
    DUPLICATE = "DUPLICATE"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.GROUP_NOT_FOUND: "Group not found",
    ErrorCode.GROUP_FULL: "This group has reached the maximum number of members",
    ErrorCode.GROUP_NAME_TOO_LONG: "Group name is too long",
    ErrorCode.GROUP_HAS_MEMBERS: "Cannot delete group that has other members",
    ErrorCode.USER_GROUP_LIMIT: "You've reached the maximum number of groups",
    ErrorCode.NOT_GROUP_MEMBER: "You're not a member of this group",
    ErrorCode.NOT_GROUP_OWNER: "Only the group owner can perform this action",
    ErrorCode.ALREADY_MEMBER: "You're already a member of this group",
    ErrorCode.INVITE_NOT_FOUND: "Invite not found",
    ErrorCode.INVITE_EXPIRED: "This invite has expired",
    ErrorCode.INVITE_ALREADY_USED: "This invite has already been used",
    ErrorCode.PROMPT_ALREADY_ANSWERED: "You've already answered today's prompt for this group",
    ErrorCode.UNKNOWN_JOB_KIND: "Unknown job kind",
    ErrorCode.INVALID_PAYLOAD: "Invalid job payload",
    ErrorCode.DUPLICATE: "Record already exists",
    ErrorCode.STORE_UNAVAILABLE: "Data store unavailable",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred",
}


@dataclass(frozen=True)
class JobError:
    kind: ErrorKind
    code: ErrorCode
    message: str = ""

    @property
    def retryable(self) -> bool:
        return self.kind == ErrorKind.TRANSIENT_INFRA

    def at_apply_time(self) -> "JobError":
        """A validation failure found by a handler means the gate's earlier read went stale."""
        if self.kind == ErrorKind.VALIDATION_FAILURE:
            return JobError(ErrorKind.INVARIANT_VIOLATION, self.code, self.message)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "code": self.code.value, "message": self.message}


def rejection(kind: ErrorKind, code: ErrorCode, message: Optional[str] = None) -> JobError:
    return JobError(kind, code, message or ERROR_MESSAGES[code])


@dataclass(frozen=True)
class Result:
    value: Any = None
    error: Optional[JobError] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, error: JobError) -> "Result":
        return cls(error=error)


# SQLSTATE classes that indicate the store, not the request, is at fault
_TRANSIENT_SQLSTATE_CLASSES = ("08", "40", "53", "57")
_TRANSIENT_POSTGREST_CODES = ("PGRST000", "PGRST001", "PGRST002", "PGRST003")


def classify_exception(exc: Exception) -> JobError:
    """Map a store/transport exception onto the error taxonomy."""
    if isinstance(exc, APIError):
        code = str(exc.code or "")
        detail = exc.message or str(exc)
        if code == "23505":
            return JobError(ErrorKind.CONFLICT, ErrorCode.DUPLICATE, detail)
        if code == "23503":
            return JobError(ErrorKind.NOT_FOUND, ErrorCode.GROUP_NOT_FOUND, detail)
        if code.startswith(_TRANSIENT_SQLSTATE_CLASSES) or code in _TRANSIENT_POSTGREST_CODES:
            return JobError(ErrorKind.TRANSIENT_INFRA, ErrorCode.STORE_UNAVAILABLE, detail)
        return JobError(ErrorKind.INVARIANT_VIOLATION, ErrorCode.INTERNAL_ERROR, detail)
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return JobError(ErrorKind.TRANSIENT_INFRA, ErrorCode.STORE_UNAVAILABLE, str(exc) or type(exc).__name__)
    # Unknown failures get the retry budget rather than being dropped
    return JobError(ErrorKind.TRANSIENT_INFRA, ErrorCode.INTERNAL_ERROR, str(exc) or type(exc).__name__)


def is_unique_violation(exc: Exception) -> bool:
    return isinstance(exc, APIError) and str(exc.code) == "23505"


def run_step(description: str, fn: Callable[..., Any], *args, **kwargs) -> Result:
    """Run one store round trip and turn any exception into a Result."""
    try:
        return Result.success(fn(*args, **kwargs))
    except Exception as e:
        error = classify_exception(e)
        logger.error(f"Step '{description}' failed ({error.kind.value}): {error.message}")
        return Result.failure(error)


_HTTP_STATUS = {
    ErrorKind.VALIDATION_FAILURE: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVARIANT_VIOLATION: 409,
    ErrorKind.TRANSIENT_INFRA: 503,
}
_FORBIDDEN_CODES = (ErrorCode.NOT_GROUP_OWNER, ErrorCode.NOT_GROUP_MEMBER)


def to_http_exception(error: JobError) -> HTTPException:
    status_code = 403 if error.code in _FORBIDDEN_CODES else _HTTP_STATUS[error.kind]
    return HTTPException(status_code=status_code, detail={"code": error.code.value, "message": error.message})
