import logging
from typing import Any, Dict

from supabase import Client

from app.config import Settings
from app.core.errors import ErrorCode, ErrorKind, JobError, Result, rejection, run_step
from app.modules.groups import checks
from app.modules.groups.service import GroupService, ROLE_MEMBER
from app.modules.invites.service import InviteService
from app.modules.jobs.schemas import AcceptInvitePayload, AcceptInviteResult, JobRecord, parse_payload

logger = logging.getLogger(__name__)


class InviteAcceptanceHandler:
    """
    Applies accept-invite jobs.

    Every condition the gate checked is checked again here. The membership
    is inserted first, then the invite is marked used with a conditional
    write. Memberships remember the invite that produced them, so a
    redelivered job picks up after its own earlier insert.
    """

    def __init__(self, supabase: Client, settings: Settings):
        self.groups = GroupService(supabase)
        self.invites = InviteService(supabase)
        self.settings = settings

    def handle_accept_invite(self, job: JobRecord) -> Result:
        parsed = parse_payload(job, AcceptInvitePayload)
        if not parsed.ok:
            return parsed
        payload: AcceptInvitePayload = parsed.value
        user_id = payload.user_id
        logger.info(f"User {user_id} accepting invite {payload.invite_id} to group {payload.group_id}")

        loaded = run_step("load invite", self.invites.get_invite_by_token, payload.invite_token)
        if not loaded.ok:
            return loaded
        invite = loaded.value
        if invite is None:
            return Result.failure(rejection(ErrorKind.NOT_FOUND, ErrorCode.INVITE_NOT_FOUND))
        if invite["id"] != payload.invite_id or invite["group_id"] != payload.group_id:
            return Result.failure(rejection(
                ErrorKind.INVARIANT_VIOLATION, ErrorCode.INVALID_PAYLOAD, "Invite token does not match invite id or group"
            ))
        group_id = invite["group_id"]

        current = run_step("load membership", self.groups.get_membership, group_id, user_id)
        if not current.ok:
            return current
        membership = current.value

        if membership is not None and membership.get("invite_id") == invite["id"]:
            logger.info(f"Membership from invite {invite['id']} already present; resuming")
            return self._finish(invite, membership, user_id, already_member=True)

        usable = checks.check_invite_usable(invite)
        if usable is not None:
            return Result.failure(usable.at_apply_time())
        if membership is not None:
            return Result.failure(rejection(ErrorKind.CONFLICT, ErrorCode.ALREADY_MEMBER))

        bounds = run_step("check limits", self._check_limits, group_id, user_id)
        if not bounds.ok:
            return bounds
        if bounds.value is not None:
            return Result.failure(bounds.value.at_apply_time())

        inserted = run_step("insert membership", self.groups.insert_membership, group_id, user_id, ROLE_MEMBER, invite["id"])
        if not inserted.ok:
            # Nothing was committed; the unique (group_id, user_id) index settles racing double joins
            if inserted.error.code == ErrorCode.DUPLICATE:
                return Result.failure(rejection(ErrorKind.CONFLICT, ErrorCode.ALREADY_MEMBER))
            return inserted
        return self._finish(invite, inserted.value, user_id, already_member=False)

    def _check_limits(self, group_id: str, user_id: str):
        return (
            checks.check_group_capacity(self.groups, group_id, self.settings.max_members_per_group)
            or checks.check_user_group_limit(self.groups, user_id, self.settings.max_groups_per_user)
        )

    def _finish(self, invite: Dict[str, Any], membership: Dict[str, Any], user_id: str, already_member: bool) -> Result:
        group_id = invite["group_id"]

        overflow = self._overflow(group_id, user_id)
        if not overflow.ok:
            return overflow
        if overflow.value is not None:
            return self._undo_join(membership, overflow.value)

        if not invite.get("used_at"):
            marked = run_step("mark invite used", self.invites.mark_used, invite["id"], user_id)
            if not marked.ok:
                # The user has joined; leaving the token live is the lesser harm, but try to expire it
                logger.warning(f"Failed to mark invite {invite['id']} as used: {marked.error.message}")
                self._invalidate(invite["id"])
            elif not marked.value:
                reloaded = run_step("reload invite", self.invites.get_invite_by_token, invite["invite_token"])
                if not reloaded.ok:
                    return reloaded
                if not reloaded.value or reloaded.value.get("used_by") != user_id:
                    logger.warning(f"Invite {invite['id']} was redeemed by someone else first")
                    return self._undo_join(membership, rejection(ErrorKind.CONFLICT, ErrorCode.INVITE_ALREADY_USED))
        elif invite.get("used_by") != user_id:
            return self._undo_join(membership, rejection(ErrorKind.CONFLICT, ErrorCode.INVITE_ALREADY_USED))

        logger.info(f"User {user_id} joined group {group_id} via invite {invite['id']}")
        return Result.success(AcceptInviteResult(joined=True, group_id=group_id, already_member=already_member).to_json())

    def _overflow(self, group_id: str, user_id: str) -> Result:
        """Racing joins can overshoot a limit; a join that sees the overshoot backs out."""
        group_count = run_step("count group members", self.groups.count_members, group_id)
        if not group_count.ok:
            return group_count
        if checks.exceeds_limit(group_count.value, self.settings.max_members_per_group):
            return Result.success(rejection(ErrorKind.INVARIANT_VIOLATION, ErrorCode.GROUP_FULL))
        user_count = run_step("count user memberships", self.groups.count_user_memberships, user_id)
        if not user_count.ok:
            return user_count
        if checks.exceeds_limit(user_count.value, self.settings.max_groups_per_user):
            return Result.success(rejection(ErrorKind.INVARIANT_VIOLATION, ErrorCode.USER_GROUP_LIMIT))
        return Result.success(None)

    def _undo_join(self, membership: Dict[str, Any], error: JobError) -> Result:
        removed = run_step("remove membership", self.groups.remove_membership_by_id, membership["id"])
        if not removed.ok:
            # Redelivery finds the membership by its invite and tries again
            return removed
        logger.warning(f"Removed membership {membership['id']}: {error.code.value}")
        return Result.failure(error)

    def _invalidate(self, invite_id: str):
        invalidated = run_step("invalidate invite", self.invites.invalidate, invite_id)
        if invalidated.ok:
            logger.info(f"Expired invite {invite_id} in place of marking it used")
        else:
            logger.warning(f"Invite {invite_id} remains redeemable; mark and invalidate both failed")
