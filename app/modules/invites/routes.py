from fastapi import APIRouter, Depends, HTTPException
from app.config import settings
from app.core.dependencies import (
    admit_job, get_admission, get_current_user_id, get_gate, get_idempotency_key, require_gate
)
from app.core.errors import ErrorCode, ErrorKind, rejection, to_http_exception
from app.database.supabase_client import get_service_supabase
from app.modules.groups.service import GroupService
from app.modules.invites.schemas import (
    AcceptInviteAccepted, InviteCreate, InviteCreatedResponse, InvitePreviewResponse
)
from app.modules.invites.service import InviteService
from app.modules.jobs.admission import JobAdmission, idempotency_key_for
from app.modules.jobs.gate import ValidationGate
from app.modules.jobs.schemas import AcceptInvitePayload, JobKind
from supabase import Client
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["invites"])


def get_invite_service(supabase: Client = Depends(get_service_supabase)) -> InviteService:
    return InviteService(supabase)


def get_group_service(supabase: Client = Depends(get_service_supabase)) -> GroupService:
    return GroupService(supabase)


@router.post("/groups/{group_id}/invites", response_model=InviteCreatedResponse, status_code=201)
async def create_invite(
    group_id: str,
    invite_data: InviteCreate,
    user_data: Dict = Depends(get_current_user_id),
    service: InviteService = Depends(get_invite_service),
    groups: GroupService = Depends(get_group_service)
):
    """Create an invite link for a group (members only)"""
    if groups.get_membership(group_id, user_data["id"]) is None:
        raise to_http_exception(rejection(ErrorKind.VALIDATION_FAILURE, ErrorCode.NOT_GROUP_MEMBER))
    try:
        invite = service.create_invite(group_id, user_data["id"], settings.invite_expiry_days, invite_data.email)
    except Exception as e:
        logger.error(f"Error creating invite: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create invite")
    return InviteCreatedResponse(token=invite["invite_token"], expires_at=invite["expires_at"])


@router.get("/invites/{token}", response_model=InvitePreviewResponse)
async def get_invite_preview(
    token: str,
    service: InviteService = Depends(get_invite_service)
):
    """Public invite preview"""
    preview = service.get_invite_preview(token, settings.max_members_per_group)
    if preview is None:
        raise to_http_exception(rejection(ErrorKind.NOT_FOUND, ErrorCode.INVITE_NOT_FOUND))
    return preview


@router.post("/invites/{token}/accept", response_model=AcceptInviteAccepted, status_code=202)
async def accept_invite(
    token: str,
    user_data: Dict = Depends(get_current_user_id),
    gate: ValidationGate = Depends(get_gate),
    admission: JobAdmission = Depends(get_admission),
    client_key: Optional[str] = Depends(get_idempotency_key)
):
    """Queue joining the invite's group"""
    user_id = user_data["id"]
    checked = require_gate(gate.check_accept_invite, token, user_id)
    group_id = checked.context["group_id"]
    accepted = admit_job(
        admission,
        JobKind.ACCEPT_INVITE,
        AcceptInvitePayload(
            invite_token=token,
            invite_id=checked.context["invite_id"],
            group_id=group_id,
            user_id=user_id,
        ),
        idempotency_key_for(JobKind.ACCEPT_INVITE, user_id, client_key),
    )
    return AcceptInviteAccepted(job_id=accepted.job_id, status=accepted.status, group_id=group_id)
