import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from supabase import Client

from app.config import Settings
from app.core.errors import JobError, is_unique_violation
from app.modules.jobs.schemas import JobKind, JobRecord, JobStatus

logger = logging.getLogger(__name__)

JOB_ID_NAMESPACE = uuid.UUID("6f1c52a4-2a1e-4df4-9b7e-6c0d7d1f3a90")

# How many due candidates one claim attempt looks at before giving up
CLAIM_BATCH_SIZE = 5


def _now() -> datetime:
    return datetime.now(timezone.utc)


def job_id_for(idempotency_key: str) -> str:
    return str(uuid.uuid5(JOB_ID_NAMESPACE, idempotency_key))


class JobStore:
    """Durable job queue on the `jobs` table. Every state change is a conditional write."""

    def __init__(self, supabase: Client, settings: Settings):
        self.supabase = supabase
        self.settings = settings

    def insert(self, kind: JobKind, payload: Dict[str, Any], idempotency_key: str) -> Tuple[JobRecord, bool]:
        """Record a job. Returns (job, created); a repeated idempotency key returns the existing job."""
        job_id = job_id_for(idempotency_key)
        now = _now().isoformat()
        try:
            result = self.supabase.table("jobs").insert({
                "id": job_id,
                "idempotency_key": idempotency_key,
                "kind": kind.value,
                "payload": payload,
                "status": JobStatus.PENDING.value,
                "attempts": 0,
                "max_attempts": self.settings.job_max_attempts,
                "next_attempt_at": now,
                "created_at": now,
                "updated_at": now,
            }).execute()
            return JobRecord(**result.data[0]), True
        except Exception as e:
            if not is_unique_violation(e):
                raise
        existing = self.get(job_id)
        if existing is None:
            raise RuntimeError(f"Job {job_id} reported as duplicate but could not be read back")
        logger.info(f"Duplicate admission for key {idempotency_key}; returning job {job_id}")
        return existing, False

    def get(self, job_id: str) -> Optional[JobRecord]:
        result = self.supabase.table("jobs")\
            .select("*")\
            .eq("id", job_id)\
            .maybe_single()\
            .execute()
        if not result or not result.data:
            return None
        return JobRecord(**result.data)

    def claim_next(self, worker_id: str) -> Optional[JobRecord]:
        """Lease the oldest due pending job, else an in-flight job whose lease expired."""
        now = _now().isoformat()
        pending = self.supabase.table("jobs")\
            .select("*")\
            .eq("status", JobStatus.PENDING.value)\
            .lte("next_attempt_at", now)\
            .order("next_attempt_at")\
            .limit(CLAIM_BATCH_SIZE)\
            .execute()
        for row in pending.data or []:
            job = self._try_claim(row, worker_id)
            if job:
                return job
        expired = self.supabase.table("jobs")\
            .select("*")\
            .eq("status", JobStatus.IN_FLIGHT.value)\
            .lt("locked_until", now)\
            .order("locked_until")\
            .limit(CLAIM_BATCH_SIZE)\
            .execute()
        for row in expired.data or []:
            job = self._try_claim(row, worker_id)
            if job:
                logger.warning(f"Reclaimed job {job.id} after lease expiry (attempt {job.attempts})")
                return job
        return None

    def _try_claim(self, row: Dict[str, Any], worker_id: str) -> Optional[JobRecord]:
        now = _now()
        result = self.supabase.table("jobs")\
            .update({
                "status": JobStatus.IN_FLIGHT.value,
                "attempts": row["attempts"] + 1,
                "locked_until": (now + timedelta(seconds=self.settings.job_lease_sec)).isoformat(),
                "updated_at": now.isoformat(),
            })\
            .eq("id", row["id"])\
            .eq("status", row["status"])\
            .eq("attempts", row["attempts"])\
            .execute()
        if not result.data:
            return None
        logger.debug(f"Worker {worker_id} claimed job {row['id']}")
        return JobRecord(**result.data[0])

    def complete(self, job: JobRecord, result: Dict[str, Any]) -> bool:
        return self._settle(job, {
            "status": JobStatus.DONE.value,
            "result": result,
            "error": None,
            "locked_until": None,
        })

    def requeue(self, job: JobRecord, error: JobError, delay_sec: float) -> bool:
        return self._settle(job, {
            "status": JobStatus.PENDING.value,
            "error": error.to_dict(),
            "locked_until": None,
            "next_attempt_at": (_now() + timedelta(seconds=delay_sec)).isoformat(),
        })

    def fail(self, job: JobRecord, error: JobError) -> bool:
        return self._settle(job, {
            "status": JobStatus.FAILED.value,
            "error": error.to_dict(),
            "locked_until": None,
        })

    def _settle(self, job: JobRecord, update: Dict[str, Any]) -> bool:
        # Only the lease holder (same attempt number) may settle the job
        update["updated_at"] = _now().isoformat()
        result = self.supabase.table("jobs")\
            .update(update)\
            .eq("id", job.id)\
            .eq("status", JobStatus.IN_FLIGHT.value)\
            .eq("attempts", job.attempts)\
            .execute()
        if not result.data:
            logger.warning(f"Job {job.id} attempt {job.attempts} lost its lease; {update['status']} not recorded")
            return False
        return True
