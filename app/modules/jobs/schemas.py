from enum import Enum
from typing import Any, Dict, Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from app.core.errors import ErrorCode, ErrorKind, Result, rejection


class JobKind(str, Enum):
    CREATE_GROUP = "create-group"
    DELETE_GROUP = "delete-group"
    LEAVE_GROUP = "leave-group"
    ACCEPT_INVITE = "accept-invite"


class JobStatus(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"


class JobPayload(BaseModel):
    """Payloads and results travel as camelCase JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CreateGroupPayload(JobPayload):
    owner_id: str
    name: str


class CreateGroupResult(JobPayload):
    group_id: str


class DeleteGroupPayload(JobPayload):
    group_id: str
    user_id: str


class DeleteGroupResult(JobPayload):
    deleted: bool


class LeaveGroupPayload(JobPayload):
    group_id: str
    user_id: str


class LeaveGroupResult(JobPayload):
    left: bool
    group_deleted: bool
    new_owner_id: Optional[str] = None


class AcceptInvitePayload(JobPayload):
    invite_token: str
    invite_id: str
    group_id: str
    user_id: str


class AcceptInviteResult(JobPayload):
    joined: bool
    group_id: str
    already_member: bool = False


class JobRecord(BaseModel):
    id: str
    idempotency_key: str
    kind: str
    payload: Dict[str, Any]
    status: JobStatus
    attempts: int = 0
    max_attempts: int
    next_attempt_at: Optional[datetime] = None
    locked_until: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JobAccepted(BaseModel):
    job_id: str
    status: str


class JobStatusResponse(BaseModel):
    job_id: str
    kind: str
    status: JobStatus
    attempts: int
    result: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None


def parse_payload(job: JobRecord, model: type):
    """Validate a job's payload against its kind's model. Returns a Result."""
    try:
        return Result.success(model.model_validate(job.payload))
    except ValidationError as e:
        return Result.failure(rejection(ErrorKind.INVARIANT_VIOLATION, ErrorCode.INVALID_PAYLOAD, str(e)))
