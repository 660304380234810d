"""Recurring timers for scheduled report and task-generation jobs.

Each active job owns one asyncio task on the application's event loop. The
task sleeps until the job's ``next_run``, fires the bound action in a worker
thread, then sleeps again until the freshly computed ``next_run``. A firing
always stamps ``last_run``/``next_run``, even when its action fails, so a
poisoned job is retried on its next tick rather than in a tight loop.

``install`` and ``stop`` may be called from request threads; they hop onto
the loop captured by ``start``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from zoneinfo import ZoneInfo

from .curriculum import TaskConfigStore, task_config_store
from .db.session import session_scope
from .mailer import MailTransport, SmtpMailTransport
from .reporting import ReportPipeline, report_pipeline
from .repositories.scheduled_jobs import scheduled_jobs
from .schedules import (
    Schedule,
    ScheduledJob,
    local_today,
    next_run_after,
    resolve_timezone,
    scheduler_zone,
)
from .task_synthesizer import generate_tasks
from .telemetry import emit_event

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def report_filename(job: ScheduledJob, fired_at: datetime) -> str:
    stem = "-".join(job.name.split()) or "report"
    return f"{stem}-{fired_at.date().isoformat()}.{job.format or 'json'}"


class JobScheduler:
    def __init__(
        self,
        *,
        timezone_name: Optional[str] = None,
        clock: Clock = _utcnow,
        pipeline: ReportPipeline = report_pipeline,
        mail_transport: Optional[MailTransport] = None,
        config_store: TaskConfigStore = task_config_store,
    ) -> None:
        self._timezone_name = timezone_name
        self._clock = clock
        self._pipeline = pipeline
        self._mail_transport = mail_transport
        self._config_store = config_store
        self._timers: Dict[str, asyncio.Task[None]] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def tz(self) -> ZoneInfo:
        if self._timezone_name:
            return resolve_timezone(self._timezone_name)
        return scheduler_zone()

    @property
    def running(self) -> bool:
        return self._loop is not None

    @property
    def active_job_ids(self) -> list[str]:
        return sorted(job_id for job_id, timer in self._timers.items() if not timer.done())

    def first_run(self, schedule: Schedule) -> datetime:
        """Next firing instant strictly after the current clock reading."""
        return next_run_after(schedule, self._clock(), self.tz)

    async def start(self) -> int:
        """Capture the running loop and install timers for every active job."""
        self._loop = asyncio.get_running_loop()
        jobs = await asyncio.to_thread(self._load_active_jobs)
        for job in jobs:
            self._install_now(job)
        logger.info("Scheduler started with %s active jobs", len(jobs))
        return len(jobs)

    async def shutdown(self) -> None:
        timers = list(self._timers.values())
        self._timers.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)
        self._loop = None
        logger.info("Scheduler stopped (%s timers cancelled)", len(timers))

    def install(self, job: ScheduledJob) -> bool:
        """(Re)install the timer for an active job. Returns False when not running."""
        return self._dispatch(self._install_now, job)

    def stop(self, job_id: str) -> bool:
        """Cancel a job's pending timer; an in-flight firing is left to finish."""
        return self._dispatch(self._stop_now, job_id)

    def fire(self, job_id: str, *, slot: Optional[datetime] = None) -> Optional[ScheduledJob]:
        """Run a job's action once and stamp its run times. Blocking.

        ``slot`` is the scheduled instant a timer is firing for. The following
        ``next_run`` is computed from the later of ``slot`` and the clock, so a
        wake-up that lands marginally early never yields the same slot again.
        Manual runs pass no slot and advance from the current time.
        """
        with session_scope(commit=False) as session:
            job = scheduled_jobs.get(session, job_id)
        if job is None:
            logger.info("Scheduled job %s no longer exists; skipping firing", job_id)
            return None
        if not job.is_active:
            logger.info("Scheduled job %s is inactive; skipping firing", job_id)
            return job

        fired_at = self._clock()
        status = "success"
        error: Optional[str] = None
        try:
            self._execute(job, fired_at)
        except Exception as exc:  # noqa: BLE001
            status = "error"
            error = str(exc)
            logger.exception("Scheduled job %s (%s) failed", job.name, job_id)

        reference = max(fired_at, slot) if slot is not None else fired_at
        next_run = next_run_after(job.schedule, reference, self.tz)
        with session_scope() as session:
            updated = scheduled_jobs.record_run(session, job_id, last_run=fired_at, next_run=next_run)
        emit_event(
            "scheduled_job_fired",
            job_id=job_id,
            job_type=job.job_type,
            status=status,
            error=error,
            last_run=fired_at,
            next_run=next_run,
        )
        return updated

    def _execute(self, job: ScheduledJob, fired_at: datetime) -> None:
        if job.job_type == "report":
            payload = self._pipeline.generate_report(
                job.report_type or "custom",
                job.format or "json",
                dict(job.filters),
            )
            transport = self._mail_transport or SmtpMailTransport()
            transport.send_with_attachment(
                job.recipients,
                f"Scheduled Report: {job.name}",
                f"Please find attached your scheduled report: {job.name}",
                payload,
                report_filename(job, fired_at),
            )
            return
        with session_scope() as session:
            generate_tasks(
                session,
                job.task_scope or "all",
                self._config_store.get(),
                class_id=job.filters.get("class_id"),
                today=local_today(fired_at, self.tz),
                now=fired_at,
            )

    def _dispatch(self, callback: Callable[..., None], argument: object) -> bool:
        loop = self._loop
        if loop is None or loop.is_closed():
            return False
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            callback(argument)
        else:
            loop.call_soon_threadsafe(callback, argument)
        return True

    def _install_now(self, job: ScheduledJob) -> None:
        assert job.id is not None
        self._stop_now(job.id, quiet=True)
        if not job.is_active:
            return
        loop = self._loop
        assert loop is not None
        self._timers[job.id] = loop.create_task(self._run_timer(job), name=f"scheduled-job-{job.id}")
        emit_event("scheduled_job_installed", job_id=job.id, next_run=job.next_run)

    def _stop_now(self, job_id: str, quiet: bool = False) -> None:
        timer = self._timers.pop(job_id, None)
        if timer is None:
            return
        timer.cancel()
        if not quiet:
            emit_event("scheduled_job_stopped", job_id=job_id)

    async def _run_timer(self, job: ScheduledJob) -> None:
        assert job.id is not None
        next_run = job.next_run
        if next_run <= self._clock():
            next_run = self.first_run(job.schedule)
        while True:
            delay = (next_run - self._clock()).total_seconds()
            if delay > 0:
                # Sleep can return a little ahead of the wall clock; re-check before firing.
                await asyncio.sleep(delay)
                continue
            try:
                updated = await asyncio.shield(asyncio.to_thread(self.fire, job.id, slot=next_run))
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("Could not record firing of scheduled job %s", job.id)
                next_run = self.first_run(job.schedule)
                continue
            if updated is None or not updated.is_active:
                if self._timers.get(job.id) is asyncio.current_task():
                    del self._timers[job.id]
                return
            next_run = updated.next_run

    def _load_active_jobs(self) -> list[ScheduledJob]:
        with session_scope(commit=False) as session:
            return scheduled_jobs.list_jobs(session, active_only=True)


job_scheduler = JobScheduler()

__all__ = ["JobScheduler", "job_scheduler", "report_filename"]
