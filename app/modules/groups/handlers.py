import logging
import uuid

from supabase import Client

from app.config import Settings
from app.core.errors import ErrorCode, ErrorKind, Result, rejection, run_step
from app.modules.groups import checks
from app.modules.groups.service import GroupService, ROLE_OWNER
from app.modules.jobs.schemas import (
    CreateGroupPayload, CreateGroupResult, DeleteGroupPayload, DeleteGroupResult,
    JobRecord, parse_payload
)

logger = logging.getLogger(__name__)


def group_id_for_job(job_id: str) -> str:
    """A create-group job always creates the same group id, however often it is delivered."""
    return str(uuid.uuid5(uuid.UUID(job_id), "group"))


class GroupLifecycleHandler:
    """Applies create-group and delete-group jobs."""

    def __init__(self, supabase: Client, settings: Settings):
        self.groups = GroupService(supabase)
        self.settings = settings

    def handle_create_group(self, job: JobRecord) -> Result:
        parsed = parse_payload(job, CreateGroupPayload)
        if not parsed.ok:
            return parsed
        payload: CreateGroupPayload = parsed.value
        group_id = group_id_for_job(job.id)
        logger.info(f"Creating group \"{payload.name}\" ({group_id}) for user {payload.owner_id}")

        existing = run_step("load group", self.groups.get_group, group_id)
        if not existing.ok:
            return existing

        if existing.value is None:
            limit = run_step(
                "check user group limit",
                checks.check_user_group_limit, self.groups, payload.owner_id, self.settings.max_groups_per_user
            )
            if not limit.ok:
                return limit
            if limit.value is not None:
                return Result.failure(limit.value.at_apply_time())

            inserted = run_step("insert group", self.groups.insert_group, group_id, payload.name, payload.owner_id)
            if not inserted.ok and inserted.error.code != ErrorCode.DUPLICATE:
                return inserted

        return self._ensure_owner_membership(group_id, payload.owner_id)

    def _ensure_owner_membership(self, group_id: str, owner_id: str) -> Result:
        current = run_step("load owner membership", self.groups.get_membership, group_id, owner_id)
        if not current.ok:
            return current
        membership = current.value
        if membership is None:
            inserted = run_step("insert owner membership", self.groups.insert_membership, group_id, owner_id, ROLE_OWNER)
            if not inserted.ok and inserted.error.code == ErrorCode.DUPLICATE:
                # A concurrent delivery of this job inserted it first
                inserted = run_step("reload owner membership", self.groups.get_membership, group_id, owner_id)
            if not inserted.ok or inserted.value is None:
                self._compensate_create(group_id)
                return inserted if not inserted.ok else Result.failure(
                    rejection(ErrorKind.TRANSIENT_INFRA, ErrorCode.INTERNAL_ERROR, "Owner membership vanished")
                )
            membership = inserted.value
        elif membership.get("role") != ROLE_OWNER:
            return Result.failure(rejection(
                ErrorKind.INVARIANT_VIOLATION, ErrorCode.INTERNAL_ERROR,
                f"Group {group_id} already has a non-owner membership for its creator"
            ))
        else:
            logger.info(f"Owner membership for group {group_id} already present; create already applied")

        # Another join may have raced this one past the user's group limit
        counted = run_step("count user memberships", self.groups.count_user_memberships, owner_id)
        if not counted.ok:
            return counted
        if checks.exceeds_limit(counted.value, self.settings.max_groups_per_user):
            logger.warning(f"User {owner_id} exceeded group limit while creating {group_id}; rolling back")
            self._compensate_create(group_id)
            return Result.failure(rejection(ErrorKind.INVARIANT_VIOLATION, ErrorCode.USER_GROUP_LIMIT))

        logger.info(f"Created group {group_id} for user {owner_id}")
        return Result.success(CreateGroupResult(group_id=group_id).to_json())

    def _compensate_create(self, group_id: str):
        # No cross-row atomicity: a group row without its owner membership must not survive
        removed = run_step("compensating group delete", self.groups.delete_group, group_id)
        if removed.ok:
            logger.warning(f"Rolled back group {group_id} after failed owner membership")
        else:
            logger.error(f"Rollback of group {group_id} failed; redelivery will finish or undo it")

    def handle_delete_group(self, job: JobRecord) -> Result:
        parsed = parse_payload(job, DeleteGroupPayload)
        if not parsed.ok:
            return parsed
        payload: DeleteGroupPayload = parsed.value
        logger.info(f"Deleting group {payload.group_id} by user {payload.user_id}")

        group = run_step("load group", self.groups.get_group, payload.group_id)
        if not group.ok:
            return group
        if group.value is None:
            logger.info(f"Group {payload.group_id} already absent")
            return Result.success(DeleteGroupResult(deleted=True).to_json())

        # Re-check at apply time: the gate's read may be stale
        owner = checks.check_group_owner(group.value, payload.user_id)
        if owner is not None:
            return Result.failure(owner.at_apply_time())
        sole = run_step("check sole member", checks.check_sole_member, self.groups, payload.group_id)
        if not sole.ok:
            return sole
        if sole.value is not None:
            logger.warning(f"Group {payload.group_id} gained members since the delete was requested")
            return Result.failure(sole.value.at_apply_time())

        deleted = run_step("delete group", self.groups.delete_group, payload.group_id)
        if not deleted.ok:
            return deleted
        logger.info(f"Deleted group {payload.group_id}")
        return Result.success(DeleteGroupResult(deleted=True).to_json())
