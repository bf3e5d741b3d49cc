from pydantic import BaseModel, field_validator
from typing import Optional, List
from datetime import datetime

from app.config import settings


class GroupCreate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("Group name cannot be empty")
        if len(name) > settings.max_group_name_length:
            raise ValueError(f"Group name cannot exceed {settings.max_group_name_length} characters")
        return name


class GroupResponse(BaseModel):
    id: str
    name: str
    owner_id: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GroupMemberResponse(BaseModel):
    id: str
    group_id: str
    user_id: str
    role: str
    seq: int
    invite_id: Optional[str] = None
    joined_at: datetime

    class Config:
        from_attributes = True


class GroupWithMembersResponse(GroupResponse):
    members: List[GroupMemberResponse]
