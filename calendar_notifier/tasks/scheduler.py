"""APScheduler integration for the periodic notification jobs.

``JobScheduler`` owns an ``AsyncIOScheduler`` running in the application's
event loop and adds two things on top of it:

- a single-flight guard per job name: a run that starts while the previous
  one is still executing is skipped and counted, never queued
- exception isolation: a failing job is logged and counted, the scheduler
  and the other jobs keep going

``advance(delta)`` drives the same jobs from a ``ManualClock`` without
starting APScheduler or sleeping, which is how tests exercise schedules.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from calendar_notifier.core.clock import ManualClock, SystemClock
from calendar_notifier.infra.logging import log_context
from calendar_notifier.infra.metrics.prometheus import (
    scheduled_job_duration_seconds,
    scheduled_job_running,
    scheduled_job_runs_total,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from apscheduler.triggers.base import BaseTrigger

    from calendar_notifier.core.clock import Clock

logger = logging.getLogger(__name__)

JOB_DEFAULTS = {
    "coalesce": True,  # Combine multiple pending executions into one
    "max_instances": 1,  # Only one instance of each job at a time
    "misfire_grace_time": 60,  # Allow 60s delay before considering job missed
}


@dataclass
class RegisteredJob:
    name: str
    func: Callable[[], Any]
    trigger: BaseTrigger
    description: str
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    next_fire: datetime | None = None
    runs: int = 0
    failures: int = 0
    skipped: int = 0
    last_run: datetime | None = None
    last_error: str | None = None


class JobScheduler:
    """Registry and runner for periodic jobs.

    Example:
        scheduler = JobScheduler()
        scheduler.register("process_due_notifications", engine.ticker.tick, IntervalTrigger(seconds=60))
        scheduler.start()
        ...
        scheduler.shutdown()
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._scheduler = AsyncIOScheduler(timezone="UTC", job_defaults=JOB_DEFAULTS)
        self._jobs: dict[str, RegisteredJob] = {}

    @property
    def running(self) -> bool:
        return self._scheduler.running

    @property
    def job_names(self) -> list[str]:
        return list(self._jobs)

    def register(
        self,
        name: str,
        func: Callable[[], Any],
        trigger: BaseTrigger,
        *,
        description: str | None = None,
    ) -> None:
        """Add (or replace) a job. ``func`` may be sync or async."""
        job = RegisteredJob(
            name=name,
            func=func,
            trigger=trigger,
            description=description or name,
        )
        job.next_fire = self._first_fire(trigger, self._clock.now())
        self._jobs[name] = job
        self._scheduler.add_job(
            func=self.run_job,
            args=[name],
            trigger=trigger,
            id=name,
            name=job.description,
            replace_existing=True,
        )
        logger.debug("Registered job", extra={"job": name, "trigger": str(trigger)})

    def start(self) -> None:
        """Start APScheduler. Must be called from within the running event loop."""
        if self._scheduler.running:
            logger.warning("Scheduler is already running")
            return
        self._scheduler.start()
        logger.info("Scheduler started", extra={"jobs": self.job_names})

    def shutdown(self) -> None:
        if self._scheduler.running:
            logger.info("Stopping scheduler")
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        else:
            logger.debug("Scheduler is not running")

    async def run_job(self, name: str) -> str:
        """Run one job now, honouring its single-flight guard.

        Returns:
            ``"success"``, ``"error"`` or ``"skipped"``.

        Raises:
            KeyError: If no job with that name is registered.
        """
        job = self._jobs[name]
        if job.lock.locked():
            job.skipped += 1
            scheduled_job_runs_total.labels(job=name, outcome="skipped").inc()
            logger.warning("Previous run still in progress, skipping", extra={"job": name})
            return "skipped"

        async with job.lock:
            with log_context(job=name):
                scheduled_job_running.labels(job=name).set(1)
                start_time = time.perf_counter()
                job.last_run = self._clock.now()
                try:
                    result = job.func()
                    if inspect.isawaitable(result):
                        result = await result
                except Exception as e:
                    outcome = "error"
                    job.failures += 1
                    job.last_error = str(e) or type(e).__name__
                    logger.exception("Scheduled job failed", extra={"job": name})
                else:
                    outcome = "success"
                    job.last_error = None
                    logger.debug(
                        "Scheduled job finished",
                        extra={"job": name, "result": _summarize(result)},
                    )
                finally:
                    duration = time.perf_counter() - start_time
                    scheduled_job_running.labels(job=name).set(0)
                    scheduled_job_duration_seconds.labels(job=name).observe(duration)

        job.runs += 1
        scheduled_job_runs_total.labels(job=name, outcome=outcome).inc()
        return outcome

    async def advance(self, delta: timedelta) -> list[str]:
        """Move the manual clock forward by ``delta``, running every job that comes due.

        Jobs fire in time order; the clock is set to each fire time before
        the job runs and ends at ``now + delta``.

        Returns:
            Names of the jobs run, in order.

        Raises:
            TypeError: If the scheduler was not built with a ``ManualClock``.
        """
        if not isinstance(self._clock, ManualClock):
            raise TypeError("advance() requires a ManualClock")

        target = self._clock.now() + delta
        fired: list[str] = []
        while True:
            due = [j for j in self._jobs.values() if j.next_fire is not None and j.next_fire <= target]
            if not due:
                break
            job = min(due, key=lambda j: j.next_fire)
            fire_time = job.next_fire
            self._clock.set(fire_time)
            await self.run_job(job.name)
            fired.append(job.name)
            job.next_fire = self._following_fire(job.trigger, fire_time)

        self._clock.set(target)
        return fired

    def get_job_status(self) -> list[dict[str, Any]]:
        """Status of all registered jobs."""
        scheduled = {job.id: job for job in self._scheduler.get_jobs()}
        statuses = []
        for name, job in self._jobs.items():
            aps_job = scheduled.get(name)
            next_run = getattr(aps_job, "next_run_time", None) if aps_job else None
            statuses.append(
                {
                    "id": name,
                    "name": job.description,
                    "trigger": str(job.trigger),
                    "next_run_time": next_run.isoformat() if next_run else None,
                    "running": job.lock.locked(),
                    "runs": job.runs,
                    "failures": job.failures,
                    "skipped": job.skipped,
                    "last_run": job.last_run.isoformat() if job.last_run else None,
                    "last_error": job.last_error,
                }
            )
        return statuses

    def pause_job(self, name: str) -> None:
        self._scheduler.pause_job(name)
        logger.info("Paused job", extra={"job": name})

    def resume_job(self, name: str) -> None:
        self._scheduler.resume_job(name)
        logger.info("Resumed job", extra={"job": name})

    @staticmethod
    def _first_fire(trigger: BaseTrigger, now: datetime) -> datetime | None:
        # IntervalTrigger anchors on the wall clock at construction; use the injected clock instead
        if isinstance(trigger, IntervalTrigger):
            return now + trigger.interval
        return trigger.get_next_fire_time(None, now)

    @staticmethod
    def _following_fire(trigger: BaseTrigger, previous: datetime) -> datetime | None:
        if isinstance(trigger, IntervalTrigger):
            return previous + trigger.interval
        return trigger.get_next_fire_time(previous, previous)


def _summarize(result: Any) -> Any:
    if result is None or isinstance(result, (int, float, str, bool)):
        return result
    return repr(result)
