"""Periodic reconciliation of time-expired scheduling state.

``sweep_expired_requests`` auto-rejects pending requests whose ten minute
grace period has passed. Only pending rows are selected, so running it again
without the clock moving changes nothing.

``ExpirationSweeper`` owns the recurring task. Each tick sweeps requests,
releases orphaned reservations and removes unbooked slots that have started.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from backend.core import temporal
from backend.core.statuses import ConsultationStatus
from backend.models.consultation import Consultation
from backend.services import availability_store
from backend.services.booking import reconcile_orphaned_reservations
from backend.services.conflicts import BulkResult, reject_each
from backend.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

EXPIRED_REQUEST_REASON = (
    'This consultation request has expired. The scheduled time has passed and the counselor '
    'did not respond within the 10-minute grace period.'
)


@dataclass(frozen=True)
class SweepSummary:
    requests: BulkResult
    orphans_released: int
    slots_purged: int


def find_grace_expired_requests(db: Session, now: datetime, counselor_id: int | None = None) -> list[Consultation]:
    query = db.query(Consultation).filter(
        Consultation.status == ConsultationStatus.PENDING,
        Consultation.date <= now.date(),
    )
    if counselor_id is not None:
        query = query.filter(Consultation.counselor_id == counselor_id)

    return [
        consultation
        for consultation in query.order_by(Consultation.id.asc()).all()
        if temporal.is_grace_expired(consultation.date, consultation.time, now)
    ]


def sweep_expired_requests(
    db: Session,
    now: datetime,
    counselor_id: int | None = None,
    notifier: NotificationDispatcher | None = None,
) -> BulkResult:
    expired = find_grace_expired_requests(db, now, counselor_id)
    if not expired:
        return BulkResult()

    logger.info('Found %d expired consultation request(s)', len(expired))
    result = reject_each(db, expired, EXPIRED_REQUEST_REASON, notifier)
    if result.succeeded:
        logger.info('Auto-rejected %d expired consultation request(s)', result.success_count)
    return result


class ExpirationSweeper:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Callable[[], datetime] = datetime.now,
        interval_seconds: float = 60,
        orphan_after: timedelta = timedelta(minutes=2),
        notifier: NotificationDispatcher | None = None,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.interval_seconds = interval_seconds
        self.orphan_after = orphan_after
        self.notifier = notifier
        self.last_summary: SweepSummary | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> SweepSummary:
        now = self.clock()
        db = self.session_factory()
        try:
            requests = sweep_expired_requests(db, now, notifier=self.notifier)
            orphans = reconcile_orphaned_reservations(db, now, self.orphan_after)
            purged = availability_store.purge_expired_slots(db, now)
        finally:
            db.close()

        if orphans or purged:
            logger.info('Sweep released %d orphaned reservation(s), purged %d expired slot(s)', orphans, purged)
        self.last_summary = SweepSummary(requests=requests, orphans_released=orphans, slots_purged=purged)
        return self.last_summary

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.run_once)
            except Exception:
                logger.exception('Expiration sweep failed; retrying next interval')
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        logger.info('Starting expiration sweeper (every %ss)', self.interval_seconds)
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info('Expiration sweeper stopped')
