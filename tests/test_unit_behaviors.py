from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone

import pytest

from clinic_reminders.domain.models import (
    Appointment,
    AppointmentValidationError,
    coerce_calendar_date,
    validate_appointment_fields,
)
from clinic_reminders.orchestration.send import build_reminder_message, prepare_reminder
from clinic_reminders.reporting.summary import compute_summary
from clinic_reminders.utils.logging import JsonFormatter, log_reminder_event, mask_patient_name, mask_recipient
from clinic_reminders.utils.phone import normalize_phone, to_whatsapp_address
from clinic_reminders.utils.qr import render_terminal_qr
from clinic_reminders.workflows.dispatch import reminder_target_date
from conftest import CLINIC_TZ


def test_phone_normalization_builds_whatsapp_address() -> None:
    assert normalize_phone("(11) 98888-7777") == "11988887777"
    assert to_whatsapp_address("(11) 98888-7777") == "11988887777@c.us"
    assert to_whatsapp_address("+55 (21) 3333-4444") == "552133334444@c.us"


def test_phone_without_digits_yields_bare_suffix() -> None:
    assert to_whatsapp_address("n/a") == "@c.us"
    assert to_whatsapp_address(None) == "@c.us"


def test_reminder_message_template() -> None:
    assert build_reminder_message("Ana", "14:30") == "Olá Ana, lembrando que sua consulta é amanhã às 14:30."


def test_prepare_reminder_combines_address_and_message() -> None:
    appointment = Appointment(
        appointment_id="a1",
        date=date(2026, 3, 10),
        time="14:30",
        patient_name="Ana",
        phone="(11) 98888-7777",
        owner="dra.lima",
    )

    reminder = prepare_reminder(appointment)

    assert reminder.address == "11988887777@c.us"
    assert reminder.message == "Olá Ana, lembrando que sua consulta é amanhã às 14:30."
    assert reminder.appointment_id == "a1"


def test_target_date_uses_clinic_timezone_across_utc_midnight() -> None:
    late_evening = datetime(2026, 3, 10, 2, 30, tzinfo=timezone.utc)  # 23:30 on the 9th in Sao Paulo
    morning = datetime(2026, 3, 10, 11, 0, tzinfo=timezone.utc)  # 08:00 on the 10th in Sao Paulo

    assert reminder_target_date(CLINIC_TZ, late_evening) == date(2026, 3, 10)
    assert reminder_target_date(CLINIC_TZ, morning) == date(2026, 3, 11)


def test_calendar_date_coercion() -> None:
    assert coerce_calendar_date("2026-03-10", CLINIC_TZ) == date(2026, 3, 10)
    assert coerce_calendar_date("2026-03-10T01:00:00Z", CLINIC_TZ) == date(2026, 3, 9)
    assert coerce_calendar_date(datetime(2026, 3, 10, 1, 0), CLINIC_TZ) == date(2026, 3, 10)
    assert coerce_calendar_date(date(2026, 3, 10), CLINIC_TZ) == date(2026, 3, 10)

    with pytest.raises(AppointmentValidationError):
        coerce_calendar_date("next tuesday", CLINIC_TZ)


def test_validation_trims_and_requires_fields() -> None:
    fields = validate_appointment_fields(
        date_value="2026-03-10",
        time_value=" 14:30 ",
        patient_name="  Ana  ",
        phone=" (11) 98888-7777 ",
        tz=CLINIC_TZ,
    )
    assert fields == {
        "date": date(2026, 3, 10),
        "time": "14:30",
        "patient_name": "Ana",
        "phone": "(11) 98888-7777",
    }

    base = {"date_value": "2026-03-10", "time_value": "14:30", "patient_name": "Ana", "phone": "119", "tz": CLINIC_TZ}
    for override in (
        {"date_value": None},
        {"time_value": ""},
        {"time_value": "25:00"},
        {"patient_name": "   "},
        {"phone": " "},
    ):
        with pytest.raises(AppointmentValidationError):
            validate_appointment_fields(**{**base, **override})


def test_calendar_event_shape() -> None:
    appointment = Appointment("a1", date(2026, 3, 10), "14:30", "Ana", "119", "dra.lima")

    assert appointment.calendar_event() == {
        "id": "a1",
        "title": "Ana - 14:30",
        "start": "2026-03-10T14:30",
    }


def test_summary_counts_attempts_and_failure_reasons() -> None:
    records = [
        {"status": "sent", "attempted": True},
        {"status": "failed", "attempted": True, "reason": "SendError"},
        {"status": "failed", "attempted": False, "reason": "AppointmentValidationError"},
    ]

    summary = compute_summary(records, total_appointments=3)

    assert summary == {
        "total_appointments": 3,
        "attempted_sends": 2,
        "successful_sends": 1,
        "failed": {"total": 2, "reasons": {"SendError": 1, "AppointmentValidationError": 1}},
    }


def test_json_formatter_masks_patient_names() -> None:
    record = logging.LogRecord("events", logging.INFO, __file__, 1, "Reminder sent", None, None)
    record.workflow_step = "reminder_dispatch"
    record.patient_name = "Ana"
    record.run_date = "2026-03-10"
    record.status = "sent"
    record.appointment_id = "a1"
    record.recipient = "11988887777@c.us"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["patient_name"] == "A**"
    assert payload["run_date"] == "2026-03-10"
    assert payload["status"] == "sent"
    assert payload["appointment_id"] == "a1"
    assert payload["recipient"] == "*******7777@c.us"
    assert payload["message"] == "Reminder sent"
    assert "error_code" not in payload
    assert mask_patient_name("") == ""
    assert mask_patient_name("A") == "*"


def test_terminal_qr_renders_block() -> None:
    rendered = render_terminal_qr("2@pairing-code,abc")

    lines = rendered.splitlines()
    assert len(lines) > 10
    assert len(set(len(line) for line in lines)) == 1


def test_reminder_events_carry_appointment_and_recipient() -> None:
    records: list[logging.LogRecord] = []
    handler = logging.Handler()
    handler.emit = records.append
    logger = logging.getLogger("tests.reminder_events")
    logger.addHandler(handler)
    try:
        log_reminder_event(
            logger,
            workflow_step="reminder_dispatch",
            run_date="2026-03-10",
            status="failed",
            patient_name="Ana",
            appointment_id="a1",
            recipient="11988887777@c.us",
            error_code="SENDERROR",
        )
    finally:
        logger.removeHandler(handler)

    payload = json.loads(JsonFormatter().format(records[0]))

    assert records[0].levelno == logging.WARNING
    assert payload["appointment_id"] == "a1"
    assert payload["recipient"] == "*******7777@c.us"
    assert payload["error_code"] == "SENDERROR"
    assert mask_recipient("@c.us") == "@c.us"
