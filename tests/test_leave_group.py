"""Membership transfer handler: leave-group jobs and ownership succession.

Tests cover:
    - owner leaving hands ownership to the earliest-joined member
    - joined_at ties are broken by the membership sequence number
    - last member leaving deletes the group
    - a plain member leaving changes nothing else
    - redelivery after a partial transfer finishes the job
    - redelivery after the leave already applied is a no-op
    - concurrent leaves that empty a group still delete it
    - the reported new owner is the one the group settled on after a repair
"""

from app.modules.jobs.schemas import JobKind
from app.modules.members.handlers import MembershipTransferHandler, pick_successor
from tests.conftest import BASE_TIME, make_job, new_id, seed_group, seed_membership


def _leave(group_id, user_id):
    return make_job(JobKind.LEAVE_GROUP, {"groupId": group_id, "userId": user_id})


def _roles(db, group_id):
    return {m["user_id"]: m["role"] for m in db.rows("group_members", group_id=group_id)}


def test_owner_leaving_promotes_earliest_member(db, test_settings):
    group_id = seed_group(db, "u1", members=["u2", "u3"])
    handler = MembershipTransferHandler(db, test_settings)

    result = handler.handle_leave_group(_leave(group_id, "u1"))

    assert result.ok
    assert result.value == {"left": True, "groupDeleted": False, "newOwnerId": "u2"}
    assert db.rows("groups", id=group_id)[0]["owner_id"] == "u2"
    assert _roles(db, group_id) == {"u2": "owner", "u3": "member"}


def test_joined_at_tie_broken_by_sequence(db, test_settings):
    group_id = seed_group(db, "u1")
    seed_membership(db, group_id, "u3", minutes=5)
    seed_membership(db, group_id, "u2", minutes=5)
    handler = MembershipTransferHandler(db, test_settings)

    result = handler.handle_leave_group(_leave(group_id, "u1"))

    assert result.value["newOwnerId"] == "u3"


def test_last_member_leaving_deletes_group(db, test_settings):
    group_id = seed_group(db, "u1")
    handler = MembershipTransferHandler(db, test_settings)

    result = handler.handle_leave_group(_leave(group_id, "u1"))

    assert result.value == {"left": True, "groupDeleted": True}
    assert db.rows("groups", id=group_id) == []
    assert db.rows("group_members", group_id=group_id) == []


def test_member_leaving_keeps_owner(db, test_settings):
    group_id = seed_group(db, "u1", members=["u2", "u3"])
    handler = MembershipTransferHandler(db, test_settings)

    result = handler.handle_leave_group(_leave(group_id, "u2"))

    assert result.value == {"left": True, "groupDeleted": False}
    assert _roles(db, group_id) == {"u1": "owner", "u3": "member"}
    assert db.rows("groups", id=group_id)[0]["owner_id"] == "u1"


def test_redelivery_after_partial_transfer(db, test_settings):
    group_id = seed_group(db, "u1", members=["u2", "u3"])
    handler = MembershipTransferHandler(db, test_settings)
    job = _leave(group_id, "u1")
    # owner_id moves, then promoting u2 fails
    db.fail_next("group_members", "update")

    failed = handler.handle_leave_group(job)
    assert failed.error.retryable
    assert db.rows("groups", id=group_id)[0]["owner_id"] == "u2"

    retried = handler.handle_leave_group(job)
    assert retried.ok
    assert retried.value["newOwnerId"] == "u2"
    assert _roles(db, group_id) == {"u2": "owner", "u3": "member"}


def test_redelivery_after_leave_applied(db, test_settings):
    group_id = seed_group(db, "u1", members=["u2"])
    handler = MembershipTransferHandler(db, test_settings)
    job = _leave(group_id, "u2")

    handler.handle_leave_group(job)
    again = handler.handle_leave_group(job)

    assert again.value == {"left": True, "groupDeleted": False}
    assert _roles(db, group_id) == {"u1": "owner"}


def test_redelivery_after_group_deleted(db, test_settings):
    group_id = seed_group(db, "u1")
    handler = MembershipTransferHandler(db, test_settings)
    job = _leave(group_id, "u1")

    handler.handle_leave_group(job)
    again = handler.handle_leave_group(job)

    assert again.value == {"left": True, "groupDeleted": True}


def test_concurrent_leave_empties_group(db, test_settings):
    group_id = seed_group(db, "u1", members=["u2"])
    handler = MembershipTransferHandler(db, test_settings)

    # u2's own leave lands while u1's job is removing its membership
    db.before_next(
        "group_members", "delete",
        lambda: db.tables["group_members"].remove(db.rows("group_members", group_id=group_id, user_id="u2")[0]),
    )
    result = handler.handle_leave_group(_leave(group_id, "u1"))

    assert result.value["groupDeleted"] is True
    assert db.rows("groups", id=group_id) == []


def test_successor_leaving_during_owner_leave(db, test_settings):
    group_id = seed_group(db, "u1", members=["u2", "u3"])
    handler = MembershipTransferHandler(db, test_settings)
    outcomes = {}

    # u2 is promoted by u1's job, then leaves before u1's membership is removed
    db.before_next("group_members", "delete", lambda: outcomes.update(u2=handler.handle_leave_group(_leave(group_id, "u2"))))
    outcomes["u1"] = handler.handle_leave_group(_leave(group_id, "u1"))

    assert outcomes["u2"].ok
    assert outcomes["u1"].value == {"left": True, "groupDeleted": False, "newOwnerId": "u3"}
    assert db.rows("groups", id=group_id)[0]["owner_id"] == "u3"
    assert _roles(db, group_id) == {"u3": "owner"}


def test_pick_successor_keeps_recorded_owner():
    members = [
        {"user_id": "u1", "joined_at": BASE_TIME.isoformat()},
        {"user_id": "u2", "joined_at": BASE_TIME.isoformat()},
        {"user_id": "u3", "joined_at": BASE_TIME.isoformat()},
    ]
    assert pick_successor({"id": new_id(), "owner_id": "u1"}, members, "u1") == "u2"
    assert pick_successor({"id": new_id(), "owner_id": "u3"}, members, "u1") == "u3"
    assert pick_successor({"id": new_id(), "owner_id": "u1"}, members[:1], "u1") is None
