from fastapi import APIRouter, Depends, HTTPException
from app.core.dependencies import get_current_user_id, get_job_store
from app.modules.jobs.schemas import JobStatusResponse
from app.modules.jobs.store import JobStore
from typing import Dict

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job(
    job_id: str,
    user_data: Dict = Depends(get_current_user_id),
    store: JobStore = Depends(get_job_store)
):
    """Poll an admitted job. Only the user who requested it can see it."""
    job = store.get(job_id)
    # Idempotency keys are "{kind}:{actor}:{client key}"
    if job is None or job.idempotency_key.split(":")[1] != user_data["id"]:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(
        job_id=job.id,
        kind=job.kind,
        status=job.status,
        attempts=job.attempts,
        result=job.result,
        error=job.error,
    )
