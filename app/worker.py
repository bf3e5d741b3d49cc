"""
Job worker process: `python -m app.worker`.

Runs `worker_concurrency` dispatcher threads against the jobs table until
SIGINT/SIGTERM. Any number of worker processes may run side by side;
claims and settles are conditional writes.
"""

import logging
import signal
import socket
import threading
from typing import Dict

from supabase import Client

from app.config import Settings, settings
from app.database.supabase_client import get_service_supabase
from app.modules.groups.handlers import GroupLifecycleHandler
from app.modules.invites.handlers import InviteAcceptanceHandler
from app.modules.jobs.dispatcher import JobHandler, WorkerDispatcher
from app.modules.jobs.schemas import JobKind
from app.modules.jobs.store import JobStore
from app.modules.members.handlers import MembershipTransferHandler

logger = logging.getLogger(__name__)


def build_handler_table(supabase: Client, settings: Settings) -> Dict[str, JobHandler]:
    """The one place job kinds are bound to handlers."""
    groups = GroupLifecycleHandler(supabase, settings)
    members = MembershipTransferHandler(supabase, settings)
    invites = InviteAcceptanceHandler(supabase, settings)
    return {
        JobKind.CREATE_GROUP.value: groups.handle_create_group,
        JobKind.DELETE_GROUP.value: groups.handle_delete_group,
        JobKind.LEAVE_GROUP.value: members.handle_leave_group,
        JobKind.ACCEPT_INVITE.value: invites.handle_accept_invite,
    }


def main():
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    supabase = get_service_supabase()
    store = JobStore(supabase, settings)
    handlers = build_handler_table(supabase, settings)
    stop_event = threading.Event()

    def _shutdown(signum, frame):
        logger.info(f"Received signal {signum}; finishing in-flight jobs")
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    host = socket.gethostname()
    threads = []
    for n in range(max(settings.worker_concurrency, 1)):
        dispatcher = WorkerDispatcher(store, handlers, settings, worker_id=f"{host}-{n}")
        thread = threading.Thread(target=dispatcher.run_forever, args=(stop_event,), name=f"dispatcher-{n}", daemon=True)
        thread.start()
        threads.append(thread)
    logger.info(f"Worker started with {len(threads)} dispatcher(s)")

    while any(t.is_alive() for t in threads):
        for thread in threads:
            thread.join(timeout=1.0)
    logger.info("Worker stopped")


if __name__ == "__main__":
    main()
