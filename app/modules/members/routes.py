from fastapi import APIRouter, Depends
from app.core.dependencies import (
    admit_job, get_admission, get_current_user_id, get_gate, get_idempotency_key, require_gate
)
from app.modules.jobs.admission import JobAdmission, idempotency_key_for
from app.modules.jobs.gate import ValidationGate
from app.modules.jobs.schemas import JobAccepted, JobKind, LeaveGroupPayload
from typing import Dict, Optional

router = APIRouter(prefix="/groups/{group_id}/members", tags=["members"])


@router.delete("/me", response_model=JobAccepted, status_code=202)
async def leave_group(
    group_id: str,
    user_data: Dict = Depends(get_current_user_id),
    gate: ValidationGate = Depends(get_gate),
    admission: JobAdmission = Depends(get_admission),
    client_key: Optional[str] = Depends(get_idempotency_key)
):
    """Queue the caller leaving the group. Ownership passes to the earliest-joined member."""
    user_id = user_data["id"]
    require_gate(gate.check_leave_group, group_id, user_id)
    return admit_job(
        admission,
        JobKind.LEAVE_GROUP,
        LeaveGroupPayload(group_id=group_id, user_id=user_id),
        idempotency_key_for(JobKind.LEAVE_GROUP, user_id, client_key),
    )
