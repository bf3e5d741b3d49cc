import logging
import uuid
from typing import Optional

from app.modules.jobs.schemas import JobAccepted, JobKind, JobPayload
from app.modules.jobs.store import JobStore

logger = logging.getLogger(__name__)


def idempotency_key_for(kind: JobKind, actor_id: str, client_key: Optional[str] = None) -> str:
    """Namespace the caller's key by kind and actor; no key means the request is not deduplicated."""
    return f"{kind.value}:{actor_id}:{client_key or uuid.uuid4()}"


class JobAdmission:
    """Durably records a job and returns at once. Callers must have passed the gate first."""

    def __init__(self, store: JobStore):
        self.store = store

    def admit(self, kind: JobKind, payload: JobPayload, idempotency_key: str) -> JobAccepted:
        job, created = self.store.insert(kind, payload.to_json(), idempotency_key)
        if created:
            logger.info(f"Admitted {kind.value} job {job.id}")
        return JobAccepted(job_id=job.id, status=job.status.value)
