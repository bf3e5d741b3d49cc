from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import Client

ROLE_OWNER = "owner"
ROLE_MEMBER = "member"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class GroupService:
    """Data access for groups and group_members. Store exceptions propagate to the caller."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_group(self, group_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("groups")\
            .select("*")\
            .eq("id", group_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            return None
        return result.data

    def insert_group(self, group_id: str, name: str, owner_id: str) -> Dict[str, Any]:
        now = _now()
        result = self.supabase.table("groups").insert({
            "id": group_id,
            "name": name,
            "owner_id": owner_id,
            "created_at": now,
            "updated_at": now,
        }).execute()
        return result.data[0]

    def delete_group(self, group_id: str) -> bool:
        # group_members, group_invites, messages and prompt_responses go with it (on delete cascade)
        result = self.supabase.table("groups")\
            .delete()\
            .eq("id", group_id)\
            .execute()
        return len(result.data) > 0

    def set_owner(self, group_id: str, owner_id: str) -> bool:
        result = self.supabase.table("groups")\
            .update({"owner_id": owner_id, "updated_at": _now()})\
            .eq("id", group_id)\
            .execute()
        return len(result.data) > 0

    def count_members(self, group_id: str) -> int:
        result = self.supabase.table("group_members")\
            .select("id", count="exact")\
            .eq("group_id", group_id)\
            .execute()
        return result.count or 0

    def count_user_memberships(self, user_id: str) -> int:
        result = self.supabase.table("group_members")\
            .select("id", count="exact")\
            .eq("user_id", user_id)\
            .execute()
        return result.count or 0

    def get_membership(self, group_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("group_members")\
            .select("*")\
            .eq("group_id", group_id)\
            .eq("user_id", user_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            return None
        return result.data

    def list_members(self, group_id: str) -> List[Dict[str, Any]]:
        """Members of a group, earliest joined first."""
        result = self.supabase.table("group_members")\
            .select("*")\
            .eq("group_id", group_id)\
            .order("joined_at")\
            .order("seq")\
            .execute()
        return result.data or []

    def insert_membership(
        self,
        group_id: str,
        user_id: str,
        role: str = ROLE_MEMBER,
        invite_id: Optional[str] = None
    ) -> Dict[str, Any]:
        # joined_at and seq come from the store (default now(), bigserial)
        row = {
            "group_id": group_id,
            "user_id": user_id,
            "role": role,
        }
        if invite_id:
            row["invite_id"] = invite_id
        result = self.supabase.table("group_members").insert(row).execute()
        return result.data[0]

    def set_member_role(self, group_id: str, user_id: str, role: str) -> bool:
        result = self.supabase.table("group_members")\
            .update({"role": role})\
            .eq("group_id", group_id)\
            .eq("user_id", user_id)\
            .execute()
        return len(result.data) > 0

    def remove_membership(self, group_id: str, user_id: str) -> bool:
        result = self.supabase.table("group_members")\
            .delete()\
            .eq("group_id", group_id)\
            .eq("user_id", user_id)\
            .execute()
        return len(result.data) > 0

    def remove_membership_by_id(self, membership_id: str) -> bool:
        result = self.supabase.table("group_members")\
            .delete()\
            .eq("id", membership_id)\
            .execute()
        return len(result.data) > 0
