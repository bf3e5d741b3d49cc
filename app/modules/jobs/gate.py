"""
Validation gate: synchronous, read-only precondition checks run in the
request path before a job is admitted.

The gate is advisory. State can change between these reads and the
handler's apply, so every handler re-checks what it depends on.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from supabase import Client

from app.config import Settings
from app.core.errors import JobError
from app.modules.groups import checks
from app.modules.groups.service import GroupService
from app.modules.invites.service import InviteService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateResult:
    rejection: Optional[JobError] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.rejection is None


class ValidationGate:
    def __init__(self, supabase: Client, settings: Settings):
        self.groups = GroupService(supabase)
        self.invites = InviteService(supabase)
        self.settings = settings

    def _result(self, rejection: Optional[JobError], **context) -> GateResult:
        if rejection is not None:
            logger.info(f"Gate rejected request: {rejection.code.value}")
        return GateResult(rejection=rejection, context=context)

    def check_create_group(self, user_id: str) -> GateResult:
        return self._result(
            checks.check_user_group_limit(self.groups, user_id, self.settings.max_groups_per_user)
        )

    def check_delete_group(self, group_id: str, user_id: str) -> GateResult:
        group = self.groups.get_group(group_id)
        rejection = checks.check_group_owner(group, user_id) or checks.check_sole_member(self.groups, group_id)
        return self._result(rejection)

    def check_leave_group(self, group_id: str, user_id: str) -> GateResult:
        return self._result(checks.check_is_member(self.groups, group_id, user_id))

    def check_accept_invite(self, token: str, user_id: str) -> GateResult:
        invite = self.invites.get_invite_by_token(token)
        rejection = checks.check_invite_usable(invite)
        if rejection:
            return self._result(rejection)
        group_id = invite["group_id"]
        rejection = (
            checks.check_not_member(self.groups, group_id, user_id)
            or checks.check_group_capacity(self.groups, group_id, self.settings.max_members_per_group)
            or checks.check_user_group_limit(self.groups, user_id, self.settings.max_groups_per_user)
        )
        return self._result(rejection, invite_id=invite["id"], group_id=group_id)
