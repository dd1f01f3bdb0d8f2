"""Daily reminder dispatch with per-recipient failure isolation."""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
from typing import Any

from clinic_reminders.adapters.messaging import MessagingClient
from clinic_reminders.orchestration.send import prepare_reminder
from clinic_reminders.reporting.summary import compute_summary
from clinic_reminders.storage.appointments import AppointmentStore
from clinic_reminders.utils.logging import get_structured_logger, log_reminder_event

WORKFLOW_STEP = "reminder_dispatch"


def reminder_target_date(tz: tzinfo, now: datetime | None = None) -> date:
    """Return tomorrow's calendar date as seen from the clinic timezone."""
    current = now.astimezone(tz) if now is not None else datetime.now(tz=tz)
    return current.date() + timedelta(days=1)


def dispatch_reminders(
    store: AppointmentStore,
    client: MessagingClient,
    *,
    target_date: date,
) -> dict[str, Any]:
    """Send one reminder per appointment due on ``target_date``.

    Store failures propagate to the caller; send failures are recorded per
    recipient and never abort the batch. No retries, no dedup.
    """
    logger = get_structured_logger()
    run_date = target_date.isoformat()

    appointments = store.find_by_date(target_date)
    if not appointments:
        log_reminder_event(
            logger,
            workflow_step=WORKFLOW_STEP,
            run_date=run_date,
            status="empty",
            message="Nothing to send",
        )
        return {
            "target_date": run_date,
            "summary": compute_summary([], total_appointments=0),
            "records": [],
        }

    log_reminder_event(
        logger,
        workflow_step=WORKFLOW_STEP,
        run_date=run_date,
        status="batch_loaded",
        message=f"Found {len(appointments)} reminders to send",
    )

    records: list[dict[str, Any]] = []
    for appointment in appointments:
        record: dict[str, Any] = {
            "appointment_id": appointment.appointment_id,
            "patient_name": appointment.patient_name,
            "attempted": False,
        }

        try:
            reminder = prepare_reminder(appointment)
            record["address"] = reminder.address
            record["attempted"] = True
            sent = client.send_message(reminder.address, reminder.message)
            if sent:
                record["status"] = "sent"
                log_reminder_event(
                    logger,
                    workflow_step=WORKFLOW_STEP,
                    run_date=run_date,
                    patient_name=appointment.patient_name,
                    appointment_id=appointment.appointment_id,
                    recipient=reminder.address,
                    status="sent",
                    message="Reminder sent",
                )
            else:
                record.update({"status": "failed", "reason": "send_returned_false"})
                log_reminder_event(
                    logger,
                    workflow_step=WORKFLOW_STEP,
                    run_date=run_date,
                    patient_name=appointment.patient_name,
                    appointment_id=appointment.appointment_id,
                    recipient=reminder.address,
                    status="failed",
                    error_code="SEND_FALSE",
                    error_message="Client returned false",
                    message="Send failed",
                )
        except Exception as exc:  # broad so one recipient never aborts the batch
            record.update({"status": "failed", "reason": type(exc).__name__, "error": str(exc)})
            log_reminder_event(
                logger,
                workflow_step=WORKFLOW_STEP,
                run_date=run_date,
                patient_name=appointment.patient_name,
                appointment_id=appointment.appointment_id,
                recipient=record.get("address"),
                status="failed",
                error_code=type(exc).__name__.upper(),
                error_message=str(exc),
                message="Send raised exception",
            )

        records.append(record)

    summary = compute_summary(records, total_appointments=len(appointments))
    log_reminder_event(
        logger,
        workflow_step=WORKFLOW_STEP,
        run_date=run_date,
        status="completed",
        message=(
            f"Batch completed: attempted={summary['attempted_sends']} "
            f"sent={summary['successful_sends']} failed={summary['failed']['total']}"
        ),
    )
    return {"target_date": run_date, "summary": summary, "records": records}
