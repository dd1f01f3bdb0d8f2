"""Structured JSON logging helpers for reminder events."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JsonFormatter(logging.Formatter):
    """Format log records as JSON with required reminder fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "workflow_step": getattr(record, "workflow_step", "unknown"),
            "patient_name": mask_patient_name(getattr(record, "patient_name", "")),
            "run_date": getattr(record, "run_date", None),
            "status": getattr(record, "status", record.levelname.lower()),
        }

        appointment_id = getattr(record, "appointment_id", None)
        if appointment_id:
            payload["appointment_id"] = appointment_id
        recipient = getattr(record, "recipient", None)
        if recipient:
            payload["recipient"] = mask_recipient(recipient)

        error_code = getattr(record, "error_code", None)
        error_message = getattr(record, "error_message", None)
        if error_code is not None:
            payload["error_code"] = error_code
        if error_message is not None:
            payload["error_message"] = error_message

        message = record.getMessage()
        if message:
            payload["message"] = message

        return json.dumps(payload, ensure_ascii=False)


def mask_patient_name(name: str) -> str:
    """Mask a patient name while keeping enough entropy for debugging."""
    if not name:
        return ""

    visible = 1
    if len(name) <= visible:
        return "*"
    return f"{name[:visible]}{'*' * (len(name) - visible)}"


def mask_recipient(address: str) -> str:
    """Mask a WhatsApp address down to its last four digits."""
    digits, at, domain = address.partition("@")
    hidden = max(len(digits) - 4, 0)
    return f"{'*' * hidden}{digits[hidden:]}{at}{domain}"


def configure_logging(level: int = logging.INFO) -> None:
    """Configure process-wide logging for scheduler and CLI mode."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


def get_structured_logger(name: str = "clinic_reminders.events") -> logging.Logger:
    """Return a logger configured to emit JSON records."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def log_reminder_event(
    logger: logging.Logger,
    *,
    workflow_step: str,
    run_date: str,
    status: str,
    patient_name: str = "",
    appointment_id: str | None = None,
    recipient: str | None = None,
    message: str = "",
    error_code: str | None = None,
    error_message: str | None = None,
) -> None:
    """Emit a structured reminder event."""
    extra: dict[str, Any] = {
        "workflow_step": workflow_step,
        "patient_name": patient_name,
        "appointment_id": appointment_id,
        "recipient": recipient,
        "run_date": run_date,
        "status": status,
        "error_code": error_code,
        "error_message": error_message,
    }
    level = logging.WARNING if status == "failed" else logging.INFO
    logger.log(level, message, extra=extra)
