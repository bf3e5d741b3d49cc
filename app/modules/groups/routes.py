from fastapi import APIRouter, Depends, HTTPException
from app.core.dependencies import (
    admit_job, get_admission, get_current_user_id, get_gate, get_idempotency_key, require_gate
)
from app.core.errors import ErrorCode, ErrorKind, rejection, to_http_exception
from app.database.supabase_client import get_service_supabase
from app.modules.groups.schemas import GroupCreate, GroupWithMembersResponse
from app.modules.groups.service import GroupService
from app.modules.jobs.admission import JobAdmission, idempotency_key_for
from app.modules.jobs.gate import ValidationGate
from app.modules.jobs.schemas import CreateGroupPayload, DeleteGroupPayload, JobAccepted, JobKind
from supabase import Client
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["groups"])


def get_group_service(supabase: Client = Depends(get_service_supabase)) -> GroupService:
    return GroupService(supabase)


@router.post("", response_model=JobAccepted, status_code=202)
async def create_group(
    group_data: GroupCreate,
    user_data: Dict = Depends(get_current_user_id),
    gate: ValidationGate = Depends(get_gate),
    admission: JobAdmission = Depends(get_admission),
    client_key: Optional[str] = Depends(get_idempotency_key)
):
    """Queue creation of a group owned by the caller"""
    user_id = user_data["id"]
    require_gate(gate.check_create_group, user_id)
    return admit_job(
        admission,
        JobKind.CREATE_GROUP,
        CreateGroupPayload(owner_id=user_id, name=group_data.name),
        idempotency_key_for(JobKind.CREATE_GROUP, user_id, client_key),
    )


@router.delete("/{group_id}", response_model=JobAccepted, status_code=202)
async def delete_group(
    group_id: str,
    user_data: Dict = Depends(get_current_user_id),
    gate: ValidationGate = Depends(get_gate),
    admission: JobAdmission = Depends(get_admission),
    client_key: Optional[str] = Depends(get_idempotency_key)
):
    """Queue deletion of a group (owner only, no other members)"""
    user_id = user_data["id"]
    require_gate(gate.check_delete_group, group_id, user_id)
    return admit_job(
        admission,
        JobKind.DELETE_GROUP,
        DeleteGroupPayload(group_id=group_id, user_id=user_id),
        idempotency_key_for(JobKind.DELETE_GROUP, user_id, client_key),
    )


@router.get("/{group_id}", response_model=GroupWithMembersResponse)
async def get_group(
    group_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Get a group with its members (members only)"""
    try:
        group = service.get_group(group_id)
        members = service.list_members(group_id) if group else []
    except Exception as e:
        logger.error(f"Error fetching group {group_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch group")
    if group is None:
        raise to_http_exception(rejection(ErrorKind.NOT_FOUND, ErrorCode.GROUP_NOT_FOUND))
    if not any(m["user_id"] == user_data["id"] for m in members):
        raise to_http_exception(rejection(ErrorKind.VALIDATION_FAILURE, ErrorCode.NOT_GROUP_MEMBER))
    return {**group, "members": members}
