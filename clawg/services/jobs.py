"""
Batch Jobs
Snapshot refresh, analytics recompute and signal recompute.

Every item is read, computed, written and committed on its own, so a failure
or a crash loses at most one item's update. Jobs are idempotent; the next
scheduled run is the retry.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional
import logging
import threading
import time

from clawg.config import SNAPSHOT_PACING_SECONDS
from clawg.models import db, Agent, BuildLog
from clawg.services.analytics import AnalyticsService
from clawg.services.signal import SignalService
from clawg.services.snapshots import SnapshotService
from clawg.services.sources import MarketDataAggregator
from clawg.services.tokens import TokenService

logger = logging.getLogger(__name__)

JOB_SNAPSHOTS = 'snapshot_refresh'
JOB_SIGNAL = 'signal_recompute'
JOB_ANALYTICS = 'analytics_recompute'
JOB_IDS = [JOB_SNAPSHOTS, JOB_SIGNAL, JOB_ANALYTICS]


@dataclass
class JobResult:
    """Outcome of one job run."""
    job: str
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False
    errors: List[dict] = field(default_factory=list)
    details: dict = field(default_factory=dict)
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            'job': self.job,
            'summary': {
                'processed': self.processed,
                'failed': self.failed,
                'skipped': self.skipped,
            },
            'details': self.details,
            'cancelled': self.cancelled,
            'errors': self.errors,
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
        }


class JobControl:
    """
    Cooperative cancellation, checked only between items.
    Only a run in progress can be cancelled.
    """

    def __init__(self):
        self._events = {job_id: threading.Event() for job_id in JOB_IDS}
        self._running = set()
        self._lock = threading.Lock()

    def cancel(self, job_id: str) -> bool:
        """Request cancellation. Returns False when the job is not running."""
        if job_id not in self._events:
            raise ValueError(f"Unknown job: {job_id}")
        with self._lock:
            if job_id not in self._running:
                return False
            self._events[job_id].set()
        logger.info(f"[Jobs] Cancel requested for {job_id}")
        return True

    def is_cancelled(self, job_id: str) -> bool:
        return self._events[job_id].is_set()

    def started(self, job_id: str):
        with self._lock:
            self._events[job_id].clear()
            self._running.add(job_id)

    def finished(self, job_id: str):
        with self._lock:
            self._running.discard(job_id)
            self._events[job_id].clear()

    def is_running(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._running


job_control = JobControl()


class BatchJobs:
    """
    The three batch jobs. Call inside an application context.
    """

    def __init__(
        self,
        aggregator: Optional[MarketDataAggregator] = None,
        pacing_seconds: float = SNAPSHOT_PACING_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        control: Optional[JobControl] = None
    ):
        self.aggregator = aggregator
        self.pacing_seconds = pacing_seconds
        self._sleep = sleep
        self.control = control or job_control

    def _run_items(self, result: JobResult, items, label: Callable, work: Callable, pace: float = 0):
        """Process items one at a time; log and continue past a failing item."""
        for index, item in enumerate(items):
            if index > 0 and pace > 0 and not self._cancelled(result):
                self._sleep(pace)
            if self._cancelled(result):
                break

            name = label(item)
            try:
                work(item)
                db.session.commit()
                result.processed += 1
            except Exception as e:
                db.session.rollback()
                result.failed += 1
                result.errors.append({'item': name, 'error': str(e)})
                logger.error(f"[Jobs] {result.job} failed for {name}: {e}")

    def _cancelled(self, result: JobResult) -> bool:
        if not self.control.is_cancelled(result.job):
            return False
        if not result.cancelled:
            result.cancelled = True
            logger.info(f"[Jobs] {result.job} cancelled after {result.processed} items")
        return True

    def _run(self, job_id: str, body: Callable[[JobResult], None]) -> JobResult:
        result = JobResult(job=job_id)
        self.control.started(job_id)
        try:
            body(result)
        finally:
            self.control.finished(job_id)
            result.finished_at = datetime.utcnow()

        logger.info(
            f"[Jobs] {job_id} complete: {result.processed} processed, "
            f"{result.failed} failed, {result.skipped} skipped"
        )
        return result

    # -------------------------------------------------------------------------
    # (1) Snapshot refresh
    # -------------------------------------------------------------------------

    def refresh_snapshots(self) -> JobResult:
        """One snapshot per linked token, paced to respect provider quotas."""
        aggregator = self.aggregator or MarketDataAggregator()

        def body(result: JobResult):
            tokens = TokenService.get_all_linked_tokens()
            self._run_items(
                result,
                tokens,
                label=lambda t: f"{t.symbol}:{t.chain}",
                work=lambda t: SnapshotService.record_snapshot(t, aggregator),
                pace=self.pacing_seconds
            )

        return self._run(JOB_SNAPSHOTS, body)

    # -------------------------------------------------------------------------
    # (2) Signal score recompute
    # -------------------------------------------------------------------------

    def recompute_signal_scores(self, now: Optional[datetime] = None) -> JobResult:
        """Overwrite the signal score of every identity-verified agent."""
        def body(result: JobResult):
            agents = Agent.query.filter(Agent.erc8004_agent_id.isnot(None)).order_by(Agent.id).all()
            result.skipped = Agent.query.count() - len(agents)
            self._run_items(
                result,
                agents,
                label=lambda a: a.handle,
                work=lambda a: SignalService.update_signal_score(a, now)
            )

        return self._run(JOB_SIGNAL, body)

    # -------------------------------------------------------------------------
    # (3) Full analytics recompute
    # -------------------------------------------------------------------------

    def recompute_analytics(self, now: Optional[datetime] = None) -> JobResult:
        """
        Rebuild AgentMetrics and log quality scores.

        Pass 1 derives each agent's own rates. Pass 2 derives audience score
        and relative performance, which read other agents' pass-1 rates.
        Pass 3 scores every log.
        """
        now = now or datetime.utcnow()

        def body(result: JobResult):
            agents = Agent.query.order_by(Agent.id).all()
            result.details = {'agents_updated': 0, 'logs_updated': 0}

            self._run_items(
                result,
                agents,
                label=lambda a: a.handle,
                work=lambda a: AnalyticsService.recompute_agent_rates(a, now)
            )
            if result.cancelled:
                return

            platform_rates = AnalyticsService.platform_rates()
            before = result.processed
            self._run_items(
                result,
                agents,
                label=lambda a: a.handle,
                work=lambda a: AnalyticsService.recompute_agent_audience(a, platform_rates)
            )
            result.details['agents_updated'] = result.processed - before
            if result.cancelled:
                return

            logs = BuildLog.query.order_by(BuildLog.id).all()
            before = result.processed
            self._run_items(
                result,
                logs,
                label=lambda l: f"log {l.id}",
                work=AnalyticsService.recompute_log_quality
            )
            result.details['logs_updated'] = result.processed - before

        return self._run(JOB_ANALYTICS, body)

    def run(self, job_id: str) -> JobResult:
        """Dispatch by job id."""
        if job_id == JOB_SNAPSHOTS:
            return self.refresh_snapshots()
        if job_id == JOB_SIGNAL:
            return self.recompute_signal_scores()
        if job_id == JOB_ANALYTICS:
            return self.recompute_analytics()
        raise ValueError(f"Unknown job: {job_id}")
