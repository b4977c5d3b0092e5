"""
Background Task Scheduler

In-process jobs that run next to the API:
- Publish approved scheduled posts (every minute)
- RSS heartbeat: run the next batch of due feeds
- Daily cleanup of expired activities and old notifications

Each job opens its own database session. Overlapping runs of the same job
are skipped by a single-flight guard; this only holds within one process,
so run the scheduler in a single instance.
"""
import threading
from typing import Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import get_settings
from ..database import SessionLocal
from ..logging_config import timed, worker_logger
from ..services.activity_log import purge_expired_activities
from ..services.in_app import cleanup_notifications
from ..services.rss_ingest import process_due_feeds
from ..services.scheduled_publisher import publish_due_posts


class SingleFlight:
    """Run a callable unless a previous call is still in progress."""

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self.last_result = None

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def run(self, func: Callable, *args, **kwargs) -> Optional[Dict]:
        if not self._lock.acquire(blocking=False):
            worker_logger.info("Skipping overlapping run", job=self.name)
            return None
        try:
            self.last_result = func(*args, **kwargs)
            return self.last_result
        finally:
            self._lock.release()


@timed(worker_logger)
def publish_job(session_factory=SessionLocal) -> Dict:
    db = session_factory()
    try:
        return {"published": publish_due_posts(db)}
    finally:
        db.close()


@timed(worker_logger)
def rss_job(session_factory=SessionLocal) -> Dict:
    return process_due_feeds(session_factory)


@timed(worker_logger)
def cleanup_job(session_factory=SessionLocal) -> Dict:
    db = session_factory()
    try:
        return {
            "activities": purge_expired_activities(db),
            "notifications": cleanup_notifications(db),
        }
    finally:
        db.close()


class TaskScheduler:
    """
    Owns the APScheduler instance and one guard per job.

    `trigger()` runs a job immediately through the same guard, which is what
    the manual "trigger auto-publish" endpoint uses.
    """

    JOBS = {
        "publish": publish_job,
        "rss": rss_job,
        "cleanup": cleanup_job,
    }

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory
        self.guards = {name: SingleFlight(name) for name in self.JOBS}
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def running(self) -> bool:
        return bool(self._scheduler and self._scheduler.running)

    def trigger(self, name: str) -> Optional[Dict]:
        """Run a job now. Returns None if it was already running."""
        return self.guards[name].run(self.JOBS[name], self.session_factory)

    def _run_guarded(self, name: str):
        try:
            self.trigger(name)
        except Exception as e:
            worker_logger.error("Scheduled job failed", error=e, job=name)

    def start(self):
        if self.running:
            return
        settings = get_settings()
        self._scheduler = BackgroundScheduler(timezone="UTC")
        self._scheduler.add_job(
            self._run_guarded, IntervalTrigger(seconds=settings.publish_poll_seconds),
            args=["publish"], id="publish", replace_existing=True, max_instances=1, coalesce=True,
        )
        self._scheduler.add_job(
            self._run_guarded, IntervalTrigger(minutes=settings.rss_heartbeat_minutes),
            args=["rss"], id="rss", replace_existing=True, max_instances=1, coalesce=True,
        )
        self._scheduler.add_job(
            self._run_guarded, CronTrigger(hour=settings.cleanup_cron_hour, minute=0),
            args=["cleanup"], id="cleanup", replace_existing=True, max_instances=1, coalesce=True,
        )
        self._scheduler.start()
        worker_logger.info("Task scheduler started", jobs=list(self.JOBS))

    def stop(self):
        if self.running:
            self._scheduler.shutdown(wait=False)
            worker_logger.info("Task scheduler stopped")
        self._scheduler = None

    def status(self) -> Dict:
        jobs = {}
        for name, guard in self.guards.items():
            job = self._scheduler.get_job(name) if self.running else None
            jobs[name] = {
                "running": guard.running,
                "next_run": job.next_run_time.isoformat() if job and job.next_run_time else None,
                "last_result": guard.last_result,
            }
        return {"running": self.running, "jobs": jobs}


task_scheduler = TaskScheduler()
