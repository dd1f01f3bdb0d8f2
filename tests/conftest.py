from __future__ import annotations

import logging
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from clinic_reminders.adapters.messaging import DISCONNECTED, READY, MessagingClient, SendError
from clinic_reminders.config import ReminderConfig
from clinic_reminders.storage.appointments import AppointmentStore

CLINIC_TZ = ZoneInfo("America/Sao_Paulo")


class FakeMessagingClient(MessagingClient):
    """In-memory messaging client recording every send invocation."""

    def __init__(self, *, fail_for: tuple[str, ...] = (), false_for: tuple[str, ...] = ()) -> None:
        super().__init__()
        self.fail_for = set(fail_for)
        self.false_for = set(false_for)
        self.calls: list[tuple[str, str]] = []
        self.closed = False
        self.on_send = None

    def initialize(self) -> None:
        self.emit(READY)

    def drop_connection(self, reason: str = "network") -> None:
        self.emit(DISCONNECTED, reason)

    def send_message(self, address: str, text: str) -> bool:
        self.calls.append((address, text))
        if self.on_send is not None:
            self.on_send(address, text)
        if address in self.fail_for:
            raise SendError(f"delivery failed for {address}")
        return address not in self.false_for

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clinic_tz() -> ZoneInfo:
    return CLINIC_TZ


@pytest.fixture
def store(tmp_path: Path) -> AppointmentStore:
    return AppointmentStore(tmp_path / "state" / "appointments.json", tz=CLINIC_TZ)


@pytest.fixture
def fake_client() -> FakeMessagingClient:
    return FakeMessagingClient()


@pytest.fixture
def reminder_config(tmp_path: Path) -> ReminderConfig:
    return ReminderConfig(
        timezone=CLINIC_TZ,
        reminder_cron="0 8 * * *",
        store_path=tmp_path / "state" / "appointments.json",
        session_dir=tmp_path / "session",
        headless=True,
        auth_timeout_s=5.0,
        poll_interval_s=60.0,
    )


@pytest.fixture(autouse=True)
def _fresh_event_logger():
    # handlers bind sys.stderr at creation, which pytest swaps per test
    yield
    logging.getLogger("clinic_reminders.events").handlers.clear()
