"""Scheduler process for the daily reminder job.

Run separately from CLI/manual flows using:
    python -m clinic_reminders.jobs.scheduler
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from datetime import date as Date
from datetime import datetime
from typing import Any, Callable
from zoneinfo import ZoneInfo

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.executors.debug import DebugExecutor
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from clinic_reminders.adapters.messaging import AuthenticationError, MessagingClient
from clinic_reminders.config import ReminderConfig, resolve_config
from clinic_reminders.jobs.readiness import ReadinessGate
from clinic_reminders.jobs.tasks import DailyReminderJob
from clinic_reminders.storage.appointments import AppointmentStore
from clinic_reminders.utils.logging import configure_logging

JOB_ID = "daily_reminders"
HEARTBEAT_JOB_ID = "messaging_heartbeat"

logger = logging.getLogger(__name__)


def _log_job_state(scheduler: BlockingScheduler, tz: ZoneInfo, event: JobExecutionEvent) -> None:
    """Log last and next run metadata for observability."""
    if event.job_id != JOB_ID:
        if event.exception:
            logger.error("Job %s failed: %s", event.job_id, event.exception)
        return

    job = scheduler.get_job(event.job_id)
    job_next_run = getattr(job, "next_run_time", None) if job else None
    next_run = job_next_run.isoformat() if job_next_run else "none"
    last_run_at = (
        event.scheduled_run_time.astimezone(tz).isoformat()
        if event.scheduled_run_time
        else datetime.now(tz=tz).isoformat()
    )

    if event.exception:
        logger.exception(
            "Job %s failed at %s; next run at %s",
            event.job_id,
            last_run_at,
            next_run,
            exc_info=event.exception,
        )
        return

    logger.info("Job %s completed at %s; next run at %s", event.job_id, last_run_at, next_run)


class ReminderScheduler:
    """Daily cron trigger for reminders plus the messaging heartbeat.

    Jobs run on the scheduler's own thread so the messaging client is only
    ever touched from one thread.
    """

    def __init__(
        self,
        job: Callable[[], Any],
        *,
        tz: ZoneInfo,
        cron: str = "0 8 * * *",
        client: MessagingClient | None = None,
        poll_interval_s: float = 60.0,
    ) -> None:
        self.job = job
        self.tz = tz
        self.cron = cron
        self.scheduler = BlockingScheduler(timezone=tz, executors={"default": DebugExecutor()})
        self._armed = False

        self.scheduler.add_listener(
            lambda event: _log_job_state(self.scheduler, tz, event),
            EVENT_JOB_EXECUTED | EVENT_JOB_ERROR,
        )
        if client is not None and poll_interval_s > 0:
            self.scheduler.add_job(
                client.poll,
                trigger=IntervalTrigger(seconds=poll_interval_s, timezone=tz),
                id=HEARTBEAT_JOB_ID,
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self) -> None:
        """Register the daily reminder job; later calls are no-ops."""
        if self._armed:
            logger.info("Reminder schedule already armed; ignoring")
            return

        trigger = CronTrigger.from_crontab(self.cron, timezone=self.tz)
        self.scheduler.add_job(
            self.job,
            trigger=trigger,
            id=JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=1800,
        )
        self._armed = True

        next_run = trigger.get_next_fire_time(None, datetime.now(tz=self.tz))
        logger.info(
            "Registered %s for '%s' %s (next run: %s)",
            JOB_ID,
            self.cron,
            self.tz.key,
            next_run.isoformat() if next_run else "none",
        )

    def start(self) -> None:
        logger.info("Starting scheduler process")
        self.scheduler.start()


@dataclass
class ReminderRuntime:
    client: MessagingClient
    gate: ReadinessGate
    job: DailyReminderJob
    scheduler: ReminderScheduler


def build_runtime(config: ReminderConfig, client: MessagingClient | None = None) -> ReminderRuntime:
    """Wire store, messaging client, readiness gate, job and scheduler."""
    if client is None:
        from clinic_reminders.adapters.whatsapp_adapter_ui import WhatsAppAdapterUI

        client = WhatsAppAdapterUI(
            session_dir=config.session_dir,
            headless=config.headless,
            auth_timeout_s=config.auth_timeout_s,
        )

    store = AppointmentStore(config.store_path, tz=config.timezone)
    gate = ReadinessGate()
    job = DailyReminderJob(store, client, gate, config.timezone)
    scheduler = ReminderScheduler(
        job,
        tz=config.timezone,
        cron=config.reminder_cron,
        client=client,
        poll_interval_s=config.poll_interval_s,
    )
    gate.set_arm(scheduler.arm)
    gate.attach(client)
    return ReminderRuntime(client=client, gate=gate, job=job, scheduler=scheduler)


def run_once(runtime: ReminderRuntime, target_date: Date | None = None) -> dict[str, Any]:
    """Connect, dispatch a single batch and disconnect."""
    try:
        runtime.client.initialize()
        logger.info("Running in manual mode: executing %s once", JOB_ID)
        result = runtime.job.run(target_date=target_date)
        logger.info("Manual execution of %s finished with status %s", JOB_ID, result["status"])
        return result
    finally:
        runtime.client.close()


def serve(runtime: ReminderRuntime) -> None:
    """Connect the messaging client and block on the scheduler."""
    try:
        logger.info("Initializing messaging client")
        runtime.client.initialize()
        runtime.scheduler.start()
    finally:
        runtime.client.close()


def main() -> None:
    """Entrypoint for a dedicated scheduler process."""
    parser = argparse.ArgumentParser(description="Run the daily reminder scheduler")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Send reminders immediately and exit (manual mode)",
    )
    args = parser.parse_args()

    configure_logging()
    runtime = build_runtime(resolve_config())

    try:
        if args.once:
            run_once(runtime)
            return
        serve(runtime)
    except AuthenticationError:
        raise SystemExit(1)
    except KeyboardInterrupt:
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    main()
