"""
Precondition checks shared by the validation gate and the job handlers.

Each check reads current state and returns a JobError describing the
rejection, or None when the condition holds. Store exceptions propagate;
callers decide how to surface them.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.core.errors import ErrorCode, ErrorKind, JobError, rejection
from app.modules.groups.service import GroupService


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def check_user_group_limit(groups: GroupService, user_id: str, limit: int) -> Optional[JobError]:
    if groups.count_user_memberships(user_id) >= limit:
        return rejection(ErrorKind.VALIDATION_FAILURE, ErrorCode.USER_GROUP_LIMIT)
    return None


def check_group_owner(group: Optional[Dict[str, Any]], user_id: str) -> Optional[JobError]:
    if group is None:
        return rejection(ErrorKind.NOT_FOUND, ErrorCode.GROUP_NOT_FOUND)
    if group.get("owner_id") != user_id:
        return rejection(ErrorKind.VALIDATION_FAILURE, ErrorCode.NOT_GROUP_OWNER)
    return None


def check_sole_member(groups: GroupService, group_id: str) -> Optional[JobError]:
    if groups.count_members(group_id) > 1:
        return rejection(ErrorKind.VALIDATION_FAILURE, ErrorCode.GROUP_HAS_MEMBERS)
    return None


def check_is_member(groups: GroupService, group_id: str, user_id: str) -> Optional[JobError]:
    if groups.get_membership(group_id, user_id) is None:
        return rejection(ErrorKind.VALIDATION_FAILURE, ErrorCode.NOT_GROUP_MEMBER)
    return None


def check_not_member(groups: GroupService, group_id: str, user_id: str) -> Optional[JobError]:
    if groups.get_membership(group_id, user_id) is not None:
        return rejection(ErrorKind.CONFLICT, ErrorCode.ALREADY_MEMBER)
    return None


def check_group_capacity(groups: GroupService, group_id: str, limit: int) -> Optional[JobError]:
    if groups.count_members(group_id) >= limit:
        return rejection(ErrorKind.VALIDATION_FAILURE, ErrorCode.GROUP_FULL)
    return None


def check_invite_usable(invite: Optional[Dict[str, Any]], now: Optional[datetime] = None) -> Optional[JobError]:
    if invite is None:
        return rejection(ErrorKind.NOT_FOUND, ErrorCode.INVITE_NOT_FOUND)
    if invite.get("used_at"):
        return rejection(ErrorKind.CONFLICT, ErrorCode.INVITE_ALREADY_USED)
    now = now or datetime.now(timezone.utc)
    if parse_timestamp(invite["expires_at"]) < now:
        return rejection(ErrorKind.VALIDATION_FAILURE, ErrorCode.INVITE_EXPIRED)
    return None


def exceeds_limit(count: int, limit: int) -> bool:
    """Post-insert bound check. Run after the caller's own row is committed.

    A row whose check sees the bound exceeded removes itself, whatever its
    position. The last racer to commit sees every earlier survivor, so the
    rows that stay never exceed the limit. Racers that all see the overflow
    all back out.
    """
    return count > limit
