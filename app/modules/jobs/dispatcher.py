import logging
import threading
from typing import Callable, Mapping, Optional

from app.config import Settings
from app.core.errors import ErrorCode, ErrorKind, Result, classify_exception, rejection
from app.modules.jobs.schemas import JobRecord
from app.modules.jobs.store import JobStore

logger = logging.getLogger(__name__)

JobHandler = Callable[[JobRecord], Result]

# settle() outcome when another worker holds the job by the time this one finishes
LEASE_LOST = "lease_lost"


class WorkerDispatcher:
    """
    Pulls jobs, routes them by kind, and settles them.

    The kind -> handler table is built once at process start and handed in;
    the dispatcher knows nothing about what the handlers do. A failed job is
    requeued with backoff when its error is retryable and attempts remain,
    otherwise it is marked failed. Errors are never dropped.
    """

    def __init__(self, store: JobStore, handlers: Mapping[str, JobHandler], settings: Settings, worker_id: str = "worker"):
        self.store = store
        self.handlers = dict(handlers)
        self.settings = settings
        self.worker_id = worker_id

    def dispatch(self, job: JobRecord) -> Result:
        handler = self.handlers.get(job.kind)
        if handler is None:
            return Result.failure(rejection(ErrorKind.INVARIANT_VIOLATION, ErrorCode.UNKNOWN_JOB_KIND, f"No handler for '{job.kind}'"))
        try:
            return handler(job)
        except Exception as e:
            logger.exception(f"Handler for {job.kind} raised on job {job.id}")
            return Result.failure(classify_exception(e))

    def settle(self, job: JobRecord, result: Result) -> str:
        """
        Record the outcome. Returns the status written: done, pending (requeued)
        or failed. Returns "lease_lost" when another worker reclaimed the job
        and nothing was recorded; that worker settles it.
        """
        if result.ok:
            if not self.store.complete(job, result.value or {}):
                return self._lease_lost(job, "done")
            logger.info(f"Job {job.id} ({job.kind}) done")
            return "done"
        error = result.error
        if error.retryable and job.attempts < job.max_attempts:
            delay = self.settings.backoff_delay(job.attempts)
            if not self.store.requeue(job, error, delay):
                return self._lease_lost(job, "pending")
            logger.warning(
                f"Job {job.id} ({job.kind}) attempt {job.attempts}/{job.max_attempts} failed with "
                f"{error.code.value}; retrying in {delay:.1f}s"
            )
            return "pending"
        if not self.store.fail(job, error):
            return self._lease_lost(job, "failed")
        logger.error(f"Job {job.id} ({job.kind}) failed terminally: {error.kind.value} {error.code.value} {error.message}")
        return "failed"

    def _lease_lost(self, job: JobRecord, outcome: str) -> str:
        logger.warning(f"Dispatcher {self.worker_id} lost the lease on job {job.id} attempt {job.attempts}; {outcome} not recorded")
        return LEASE_LOST

    def run_once(self) -> Optional[str]:
        """Process at most one job. Returns the settled status, or None when the queue was empty."""
        job = self.store.claim_next(self.worker_id)
        if job is None:
            return None
        logger.info(f"Processing job {job.id} of type {job.kind} (attempt {job.attempts})")
        return self.settle(job, self.dispatch(job))

    def run_forever(self, stop_event: threading.Event):
        logger.info(f"Dispatcher {self.worker_id} started")
        while not stop_event.is_set():
            try:
                status = self.run_once()
            except Exception as e:
                # Queue unreachable: the lease on any claimed job expires and it is redelivered
                logger.error(f"Dispatcher {self.worker_id} poll failed: {str(e)}")
                status = None
            if status is None:
                stop_event.wait(self.settings.worker_poll_interval_sec)
        logger.info(f"Dispatcher {self.worker_id} stopped")
