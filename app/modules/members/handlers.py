import logging
from typing import Any, Dict, List, Optional

from supabase import Client

from app.config import Settings
from app.core.errors import Result, run_step
from app.modules.groups.service import GroupService, ROLE_MEMBER, ROLE_OWNER
from app.modules.jobs.schemas import JobRecord, LeaveGroupPayload, LeaveGroupResult, parse_payload

logger = logging.getLogger(__name__)


def pick_successor(group: Dict[str, Any], members: List[Dict[str, Any]], leaving_user_id: str) -> Optional[str]:
    """
    Earliest-joined member other than the one leaving.

    `members` must already be ordered by (joined_at, seq). If the group's
    owner_id already points at another current member, an earlier attempt
    chose it and it is kept.
    """
    remaining = [m["user_id"] for m in members if m["user_id"] != leaving_user_id]
    if not remaining:
        return None
    if group.get("owner_id") != leaving_user_id and group.get("owner_id") in remaining:
        return group["owner_id"]
    return remaining[0]


class MembershipTransferHandler:
    """
    Applies leave-group jobs.

    Steps, each durable before the next:
      1. load the group's memberships, earliest joined first
      2. last member leaving -> delete the group (cascade is the store's job)
      3. owner leaving -> point group.owner_id at the successor, then promote it
      4. remove the leaving membership
    A redelivered job resumes past whatever already happened.
    """

    def __init__(self, supabase: Client, settings: Settings):
        self.groups = GroupService(supabase)
        self.settings = settings

    def handle_leave_group(self, job: JobRecord) -> Result:
        parsed = parse_payload(job, LeaveGroupPayload)
        if not parsed.ok:
            return parsed
        payload: LeaveGroupPayload = parsed.value
        group_id, user_id = payload.group_id, payload.user_id
        logger.info(f"User {user_id} leaving group {group_id}")

        loaded = run_step("load members", self.groups.list_members, group_id)
        if not loaded.ok:
            return loaded
        members = loaded.value
        own = next((m for m in members if m["user_id"] == user_id), None)

        if own is None:
            group = run_step("load group", self.groups.get_group, group_id)
            if not group.ok:
                return group
            logger.info(f"User {user_id} already absent from group {group_id}; leave already applied")
            return Result.success(LeaveGroupResult(left=True, group_deleted=group.value is None).to_json())

        if len(members) == 1:
            deleted = run_step("delete group", self.groups.delete_group, group_id)
            if not deleted.ok:
                return deleted
            logger.info(f"Deleted group {group_id} as last member left")
            return Result.success(LeaveGroupResult(left=True, group_deleted=True).to_json())

        group = run_step("load group", self.groups.get_group, group_id)
        if not group.ok:
            return group
        if group.value is None:
            logger.info(f"Group {group_id} deleted concurrently")
            return Result.success(LeaveGroupResult(left=True, group_deleted=True).to_json())

        new_owner_id = None
        if own.get("role") == ROLE_OWNER or group.value.get("owner_id") == user_id:
            new_owner_id = pick_successor(group.value, members, user_id)
            transferred = self._transfer_ownership(group_id, group.value, new_owner_id)
            if not transferred.ok:
                return transferred

        removed = run_step("remove membership", self.groups.remove_membership, group_id, user_id)
        if not removed.ok:
            return removed
        logger.info(f"User {user_id} left group {group_id}")

        settled = self._settle_after_leave(group_id)
        if not settled.ok:
            return settled
        owner_id = settled.value
        if owner_id is None:
            return Result.success(LeaveGroupResult(left=True, group_deleted=True).to_json())
        # Report the settled owner; a concurrent leave may have moved it again
        if new_owner_id is None and owner_id == group.value.get("owner_id"):
            owner_id = None
        return Result.success(LeaveGroupResult(left=True, group_deleted=False, new_owner_id=owner_id).to_json())

    def _transfer_ownership(self, group_id: str, group: Dict[str, Any], successor_id: str) -> Result:
        # owner_id moves first so the group always names a current member as owner
        if group.get("owner_id") != successor_id:
            moved = run_step("set group owner", self.groups.set_owner, group_id, successor_id)
            if not moved.ok:
                return moved
        promoted = run_step("promote successor", self.groups.set_member_role, group_id, successor_id, ROLE_OWNER)
        if not promoted.ok:
            return promoted
        logger.info(f"Transferred ownership of group {group_id} to user {successor_id}")
        return Result.success(successor_id)

    def _settle_after_leave(self, group_id: str) -> Result:
        """
        Re-check the group once the membership is gone. Concurrent leaves can
        empty a group or remove a freshly chosen successor; either is fixed
        here. Returns the owner the group settled on, or None when the group
        was deleted.
        """
        loaded = run_step("reload members", self.groups.list_members, group_id)
        if not loaded.ok:
            return loaded
        members = loaded.value
        if not members:
            deleted = run_step("delete emptied group", self.groups.delete_group, group_id)
            if not deleted.ok:
                return deleted
            logger.warning(f"Group {group_id} emptied by concurrent leaves; deleted")
            return Result.success(None)
        group = run_step("reload group", self.groups.get_group, group_id)
        if not group.ok:
            return group
        if group.value is None:
            return Result.success(None)
        owner_id = group.value.get("owner_id")
        owner_rows = [m for m in members if m.get("role") == ROLE_OWNER]
        if any(m["user_id"] == owner_id for m in owner_rows) and len(owner_rows) == 1:
            return Result.success(owner_id)
        # Ownership drifted; re-anchor on the recorded owner if still a member, else the earliest member
        successor_id = owner_id if any(m["user_id"] == owner_id for m in members) else members[0]["user_id"]
        logger.warning(f"Repairing ownership of group {group_id}; owner is {successor_id}")
        repaired = self._transfer_ownership(group_id, group.value, successor_id)
        if not repaired.ok:
            return repaired
        for row in owner_rows:
            if row["user_id"] != successor_id:
                demoted = run_step("demote stale owner", self.groups.set_member_role, group_id, row["user_id"], ROLE_MEMBER)
                if not demoted.ok:
                    return demoted
        return Result.success(successor_id)
