"""Runtime configuration resolved from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "America/Sao_Paulo"
DEFAULT_REMINDER_CRON = "0 8 * * *"
DEFAULT_STORE_PATH = "/tmp/clinic-reminders/state/appointments.json"
DEFAULT_SESSION_DIR = "/tmp/clinic-reminders/whatsapp-session"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReminderConfig:
    timezone: ZoneInfo
    reminder_cron: str
    store_path: Path
    session_dir: Path
    headless: bool
    auth_timeout_s: float
    poll_interval_s: float


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def resolve_config() -> ReminderConfig:
    tz_name = os.getenv("CLINIC_TIMEZONE", DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE
    config = ReminderConfig(
        timezone=ZoneInfo(tz_name),
        reminder_cron=os.getenv("REMINDER_CRON", DEFAULT_REMINDER_CRON).strip() or DEFAULT_REMINDER_CRON,
        store_path=Path(os.getenv("APPOINTMENTS_STORE_PATH", DEFAULT_STORE_PATH)),
        session_dir=Path(os.getenv("WHATSAPP_SESSION_DIR", DEFAULT_SESSION_DIR)),
        headless=os.getenv("WHATSAPP_HEADLESS", "true").lower() != "false",
        auth_timeout_s=_env_float("WHATSAPP_AUTH_TIMEOUT_S", 300.0),
        poll_interval_s=_env_float("WHATSAPP_POLL_INTERVAL_S", 60.0),
    )
    logger.info(
        "Resolved reminder config (timezone=%s, cron=%s, store=%s)",
        config.timezone.key,
        config.reminder_cron,
        config.store_path,
    )
    return config
