"""Root conftest: an in-memory store, small limits, and seeding helpers.

Invariants:
    - Every test gets a fresh FakeSupabase; no network is ever touched
    - Limits are shrunk (3 members, 3 groups) so boundary tests stay short
    - Seeded memberships get explicit, increasing joined_at values
"""

import os
import uuid
from datetime import datetime, timedelta, timezone

import pytest

# Never pick up a real project from the environment
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

from app.config import Settings
from app.modules.jobs.schemas import JobKind, JobRecord, JobStatus
from tests.fake_supabase import FakeSupabase

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def test_settings():
    return Settings(
        supabase_url="http://localhost:54321",
        supabase_key="test-anon-key",
        max_groups_per_user=3,
        max_members_per_group=3,
        job_max_attempts=3,
        job_backoff_base_sec=2.0,
        job_backoff_max_sec=10.0,
    )


def new_id() -> str:
    return str(uuid.uuid4())


def seed_group(db: FakeSupabase, owner_id: str, members=(), name: str = "Book Club", group_id: str = None) -> str:
    """Insert a group, its owner membership first, then `members` in order."""
    group_id = group_id or new_id()
    db.tables["groups"].append({
        "id": group_id,
        "name": name,
        "owner_id": owner_id,
        "created_at": BASE_TIME.isoformat(),
        "updated_at": BASE_TIME.isoformat(),
    })
    seed_membership(db, group_id, owner_id, role="owner", minutes=0)
    for n, user_id in enumerate(members, start=1):
        seed_membership(db, group_id, user_id, minutes=n)
    return group_id


def seed_membership(db: FakeSupabase, group_id: str, user_id: str, role: str = "member", minutes: int = 0, invite_id: str = None):
    return db._insert("group_members", [{
        "group_id": group_id,
        "user_id": user_id,
        "role": role,
        "invite_id": invite_id,
        "joined_at": (BASE_TIME + timedelta(minutes=minutes)).isoformat(),
    }])[0]


def seed_invite(db: FakeSupabase, group_id: str, invited_by: str, expires_in_days: float = 7, used_by: str = None) -> dict:
    now = datetime.now(timezone.utc)
    return db._insert("group_invites", [{
        "group_id": group_id,
        "invited_by": invited_by,
        "invite_token": uuid.uuid4().hex + uuid.uuid4().hex,
        "expires_at": (now + timedelta(days=expires_in_days)).isoformat(),
        "used_at": now.isoformat() if used_by else None,
        "used_by": used_by,
    }])[0]


def make_job(kind: JobKind, payload: dict, attempts: int = 1, max_attempts: int = 3, job_id: str = None) -> JobRecord:
    """An in-flight job as a dispatcher would hand it to a handler."""
    now = datetime.now(timezone.utc)
    job_id = job_id or new_id()
    return JobRecord(
        id=job_id,
        idempotency_key=f"{kind.value}:test:{job_id}",
        kind=kind.value,
        payload=payload,
        status=JobStatus.IN_FLIGHT,
        attempts=attempts,
        max_attempts=max_attempts,
        next_attempt_at=now,
        created_at=now,
    )
