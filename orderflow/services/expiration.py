# orderflow/services/expiration.py
"""
Time-based order expiration.

Entering a timed state schedules one callback `(order_id, expected_state)` due at
the order's `state_expires_at`. Callbacks are never cancelled: when one fires for
an order that has since moved on (or fires early, or fires twice) it simply finds
its precondition stale and does nothing.

  ExpirationQueue   durable store of scheduled callbacks (the expiration_jobs table)
  ExpireOrderJob    what a callback does when it fires
  ExpirationWorker  polls the queue and fires due callbacks (at-least-once)
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from orderflow.config import settings
from orderflow.core.clock import Clock, format_timestamp, parse_timestamp, utcnow
from orderflow.core.errors import OrderValidationError
from orderflow.database import FileBackedDB
from orderflow.models.order import PENDING, SUBMITTED, APPROVED
from orderflow.services.order_service import OrderService

logger = logging.getLogger(__name__)

JOBS = "expiration_jobs"

SCHEDULED = "scheduled"
DONE = "done"
FAILED = "failed"


class ExpirationQueue:
    def __init__(self, db: FileBackedDB, clock: Clock = utcnow, max_attempts: Optional[int] = None):
        self.db = db
        self.clock = clock
        self.max_attempts = max_attempts if max_attempts is not None else settings.EXPIRATION_MAX_ATTEMPTS

    def schedule(self, order_id: str, expected_state: str, run_at: datetime) -> Dict[str, Any]:
        job = {
            "order_id": order_id,
            "expected_state": expected_state,
            "run_at": format_timestamp(run_at),
            "status": SCHEDULED,
            "attempts": 0,
            "created_at": format_timestamp(self.clock()),
            "completed_at": "",
            "last_error": "",
        }
        return self.db.create_record(JOBS, job, id_field="id")

    def due(self, now: datetime) -> List[Dict[str, Any]]:
        """Scheduled jobs whose run_at has passed, oldest first."""
        jobs = []
        for job in self.db.list_records(JOBS, status=SCHEDULED):
            run_at = parse_timestamp(job.get("run_at"))
            if run_at is not None and run_at <= now:
                jobs.append(job)
        return sorted(jobs, key=lambda j: parse_timestamp(j["run_at"]))

    @staticmethod
    def _attempts(job: Dict[str, Any]) -> int:
        try:
            return int(float(job.get("attempts") or 0))
        except ValueError:
            return 0

    def mark_done(self, job: Dict[str, Any], now: datetime) -> bool:
        """Close a job. False when another worker closed it first."""
        updated = self.db.compare_and_update(
            JOBS, "id", job["id"], {"status": SCHEDULED},
            {"status": DONE, "attempts": self._attempts(job) + 1, "completed_at": format_timestamp(now)},
        )
        return updated is not None

    def record_failure(self, job: Dict[str, Any], now: datetime, error: str) -> str:
        """
        Count a failed attempt. The job stays scheduled and is retried on the next
        pass until it has used up max_attempts, then it is parked as failed.
        Returns the job's new status.
        """
        attempts = self._attempts(job) + 1
        status = FAILED if attempts >= self.max_attempts else SCHEDULED
        updates = {"status": status, "attempts": attempts, "last_error": error}
        if status == FAILED:
            updates["completed_at"] = format_timestamp(now)
        self.db.compare_and_update(JOBS, "id", job["id"], {"status": SCHEDULED}, updates)
        return status


class ExpireOrderJob:
    """Force the timeout transition for an order, if it is still due one."""

    def __init__(self, service: OrderService, clock: Clock = utcnow):
        self.service = service
        self.clock = clock

    def perform(self, order_id: str, expected_state: str) -> None:
        order = self.service.find_order(order_id)
        if order is None:
            logger.warning("Expiration for unknown order %s ignored", order_id)
            return

        now = self.clock()
        if order.state != expected_state:
            logger.debug("Order %s is %s, not %s; expiration skipped", order.id, order.state, expected_state)
            return
        if order.state_expires_at is None or now < order.state_expires_at:
            logger.debug("Order %s not yet expired (expires %s); expiration skipped", order.id, order.state_expires_at)
            return

        try:
            if order.state == PENDING:
                self.service.abandon(order)
            elif order.state in (SUBMITTED, APPROVED):
                self.service.reject(order)
            else:
                logger.error("Order %s expired in state %s which has no timeout transition", order.id, order.state)
        except OrderValidationError as exc:
            # someone else moved the order between our read and our write
            logger.info("Expiration of order %s lost a race: %s", order.id, exc.error.code)


class ExpirationWorker:
    def __init__(self, queue: ExpirationQueue, job: ExpireOrderJob, clock: Clock = utcnow):
        self.queue = queue
        self.job = job
        self.clock = clock

    def run_pending(self) -> int:
        """
        Fire every due job once and mark it done. Returns the number of jobs fired.

        A job is closed only after it ran, so a crash in between means it fires
        again next time; ExpireOrderJob tolerates that.
        """
        fired = 0
        now = self.clock()
        for job in self.queue.due(now):
            try:
                self.job.perform(job["order_id"], job["expected_state"])
            except Exception as e:
                # log it and move on to the next due job
                status = self.queue.record_failure(job, self.clock(), repr(e))
                logger.exception("Expiration job %s for order %s failed (now %s)", job["id"], job["order_id"], status)
                continue
            if self.queue.mark_done(job, self.clock()):
                fired += 1
        if fired:
            logger.info("Fired %d expiration job(s)", fired)
        return fired


def build_worker(db: FileBackedDB, clock: Clock = utcnow) -> ExpirationWorker:
    queue = ExpirationQueue(db, clock)
    service = OrderService(db, queue, clock)
    return ExpirationWorker(queue, ExpireOrderJob(service, clock), clock)
