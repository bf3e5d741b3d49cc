from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime


class InviteCreate(BaseModel):
    email: Optional[EmailStr] = None


class InviteCreatedResponse(BaseModel):
    token: str
    expires_at: datetime


class InvitePreviewResponse(BaseModel):
    group_name: str
    member_count: int
    expires_at: datetime
    is_expired: bool
    is_used: bool
    is_group_full: bool


class AcceptInviteAccepted(BaseModel):
    job_id: str
    status: str
    group_id: str
