import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from supabase import Client

from app.modules.groups.checks import parse_timestamp


class InviteService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    @staticmethod
    def generate_invite_token() -> str:
        return secrets.token_hex(32)

    def get_invite_by_token(self, token: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("group_invites")\
            .select("*")\
            .eq("invite_token", token)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            return None
        return result.data

    def create_invite(
        self,
        group_id: str,
        invited_by: str,
        expiry_days: int,
        email: Optional[str] = None
    ) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        result = self.supabase.table("group_invites").insert({
            "group_id": group_id,
            "invited_by": invited_by,
            "invite_token": self.generate_invite_token(),
            "email": email,
            "expires_at": (now + timedelta(days=expiry_days)).isoformat(),
            "created_at": now.isoformat(),
        }).execute()
        return result.data[0]

    def mark_used(self, invite_id: str, user_id: str) -> bool:
        """Conditional write: only an unused invite is marked. False means someone else got there first."""
        result = self.supabase.table("group_invites")\
            .update({
                "used_at": datetime.now(timezone.utc).isoformat(),
                "used_by": user_id,
            })\
            .eq("id", invite_id)\
            .is_("used_at", "null")\
            .execute()
        return len(result.data) > 0

    def invalidate(self, invite_id: str) -> bool:
        """Expire the token now. Used when marking it used could not be recorded."""
        result = self.supabase.table("group_invites")\
            .update({"expires_at": datetime.now(timezone.utc).isoformat()})\
            .eq("id", invite_id)\
            .is_("used_at", "null")\
            .execute()
        return len(result.data) > 0

    def get_invite_preview(self, token: str, max_members: int) -> Optional[Dict[str, Any]]:
        invite = self.get_invite_by_token(token)
        if invite is None:
            return None
        group = self.supabase.table("groups")\
            .select("id, name")\
            .eq("id", invite["group_id"])\
            .maybe_single()\
            .execute()
        members = self.supabase.table("group_members")\
            .select("id", count="exact")\
            .eq("group_id", invite["group_id"])\
            .execute()
        member_count = members.count or 0
        return {
            "group_name": group.data["name"] if group and group.data else "Unknown Group",
            "member_count": member_count,
            "expires_at": invite["expires_at"],
            "is_expired": parse_timestamp(invite["expires_at"]) < datetime.now(timezone.utc),
            "is_used": bool(invite.get("used_at")),
            "is_group_full": member_count >= max_members,
        }
