"""Task functions executed by the scheduler."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, tzinfo
from typing import Any, Callable

from clinic_reminders.adapters.messaging import MessagingClient
from clinic_reminders.jobs.readiness import ReadinessGate
from clinic_reminders.storage.appointments import AppointmentStore, AppointmentStoreError
from clinic_reminders.workflows.dispatch import dispatch_reminders, reminder_target_date

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class DailyReminderJob:
    """Body of the daily reminder trigger.

    Skips while the messaging client is not ready and drops a trigger that
    arrives while a previous run is still in flight.
    """

    def __init__(
        self,
        store: AppointmentStore,
        client: MessagingClient,
        gate: ReadinessGate,
        tz: tzinfo,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self.gate = gate
        self.tz = tz
        self.clock = clock or (lambda: datetime.now(tz=tz))
        self._running = threading.Lock()

    def __call__(self) -> dict[str, Any]:
        return self.run()

    def run(self, target_date: date | None = None) -> dict[str, Any]:
        if not self.gate.is_ready:
            logger.info("Messaging client not ready (%s); skipping reminder run", self.gate.state.value)
            return {"status": "skipped", "reason": "not_ready"}

        if not self._running.acquire(blocking=False):
            logger.warning("Reminder run already in progress; dropping trigger")
            return {"status": "dropped", "reason": "run_in_progress"}

        try:
            resolved_date = target_date or reminder_target_date(self.tz, self.clock())
            logger.info("Running reminder dispatch for %s", resolved_date.isoformat())
            try:
                result = dispatch_reminders(self.store, self.client, target_date=resolved_date)
            except AppointmentStoreError as exc:
                logger.exception("Reminder batch for %s abandoned: store unavailable", resolved_date.isoformat())
                return {
                    "status": "failed",
                    "target_date": resolved_date.isoformat(),
                    "reason": type(exc).__name__,
                    "error": str(exc),
                }
            return {"status": "completed", **result}
        finally:
            self._running.release()
