"""Validation gate: read-only checks run before a job is admitted.

Tests cover:
    - create-group is rejected at the user's group limit
    - delete-group needs an existing group, its owner, and no other members
    - leave-group needs a membership
    - accept-invite rejects missing, used, expired invites, existing members,
      full groups and users at their limit
    - a passing accept-invite check carries the invite and group ids
    - the gate never writes
"""

from app.core.errors import ErrorCode, ErrorKind
from app.modules.jobs.gate import ValidationGate
from tests.conftest import new_id, seed_group, seed_invite


def _gate(db, test_settings):
    return ValidationGate(db, test_settings)


def _writes(db):
    return [call for call in db.calls if call[1] != "select"]


def test_create_group_allowed_under_limit(db, test_settings):
    assert _gate(db, test_settings).check_create_group("u1").ok


def test_create_group_rejected_at_user_limit(db, test_settings):
    for _ in range(test_settings.max_groups_per_user):
        seed_group(db, "u1")
    result = _gate(db, test_settings).check_create_group("u1")
    assert result.rejection.code == ErrorCode.USER_GROUP_LIMIT
    assert result.rejection.kind == ErrorKind.VALIDATION_FAILURE


def test_delete_group_missing_group_is_not_found(db, test_settings):
    result = _gate(db, test_settings).check_delete_group(new_id(), "u1")
    assert result.rejection.kind == ErrorKind.NOT_FOUND
    assert result.rejection.code == ErrorCode.GROUP_NOT_FOUND


def test_delete_group_requires_owner(db, test_settings):
    group_id = seed_group(db, "u1", members=["u2"])
    result = _gate(db, test_settings).check_delete_group(group_id, "u2")
    assert result.rejection.code == ErrorCode.NOT_GROUP_OWNER


def test_delete_group_requires_sole_member(db, test_settings):
    group_id = seed_group(db, "u1", members=["u2"])
    result = _gate(db, test_settings).check_delete_group(group_id, "u1")
    assert result.rejection.code == ErrorCode.GROUP_HAS_MEMBERS


def test_delete_group_allowed_for_sole_owner(db, test_settings):
    group_id = seed_group(db, "u1")
    assert _gate(db, test_settings).check_delete_group(group_id, "u1").ok


def test_leave_group_requires_membership(db, test_settings):
    group_id = seed_group(db, "u1")
    gate = _gate(db, test_settings)
    assert gate.check_leave_group(group_id, "u1").ok
    assert gate.check_leave_group(group_id, "u9").rejection.code == ErrorCode.NOT_GROUP_MEMBER


def test_accept_invite_unknown_token(db, test_settings):
    result = _gate(db, test_settings).check_accept_invite("nope", "u2")
    assert result.rejection.kind == ErrorKind.NOT_FOUND
    assert result.rejection.code == ErrorCode.INVITE_NOT_FOUND


def test_accept_invite_used_token_is_conflict(db, test_settings):
    group_id = seed_group(db, "u1")
    invite = seed_invite(db, group_id, "u1", used_by="u3")
    result = _gate(db, test_settings).check_accept_invite(invite["invite_token"], "u2")
    assert result.rejection.kind == ErrorKind.CONFLICT
    assert result.rejection.code == ErrorCode.INVITE_ALREADY_USED


def test_accept_invite_expired_token(db, test_settings):
    group_id = seed_group(db, "u1")
    invite = seed_invite(db, group_id, "u1", expires_in_days=-1)
    result = _gate(db, test_settings).check_accept_invite(invite["invite_token"], "u2")
    assert result.rejection.code == ErrorCode.INVITE_EXPIRED


def test_accept_invite_existing_member_is_conflict(db, test_settings):
    group_id = seed_group(db, "u1", members=["u2"])
    invite = seed_invite(db, group_id, "u1")
    result = _gate(db, test_settings).check_accept_invite(invite["invite_token"], "u2")
    assert result.rejection.kind == ErrorKind.CONFLICT
    assert result.rejection.code == ErrorCode.ALREADY_MEMBER


def test_accept_invite_full_group_rejected_without_writes(db, test_settings):
    group_id = seed_group(db, "u1", members=["u2", "u3"])
    invite = seed_invite(db, group_id, "u1")
    db.calls.clear()
    result = _gate(db, test_settings).check_accept_invite(invite["invite_token"], "u4")
    assert result.rejection.code == ErrorCode.GROUP_FULL
    assert _writes(db) == []
    assert db.rows("jobs") == []


def test_accept_invite_user_at_group_limit(db, test_settings):
    for _ in range(test_settings.max_groups_per_user):
        seed_group(db, "u2")
    group_id = seed_group(db, "u1")
    invite = seed_invite(db, group_id, "u1")
    result = _gate(db, test_settings).check_accept_invite(invite["invite_token"], "u2")
    assert result.rejection.code == ErrorCode.USER_GROUP_LIMIT


def test_accept_invite_passes_with_context(db, test_settings):
    group_id = seed_group(db, "u1")
    invite = seed_invite(db, group_id, "u1")
    result = _gate(db, test_settings).check_accept_invite(invite["invite_token"], "u2")
    assert result.ok
    assert result.context == {"invite_id": invite["id"], "group_id": group_id}
