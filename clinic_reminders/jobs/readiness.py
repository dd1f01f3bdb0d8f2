"""Connection readiness state for the messaging client."""

from __future__ import annotations

import enum
import logging
import threading
from typing import Callable

from clinic_reminders.adapters.messaging import AUTH_FAILURE, DISCONNECTED, QR, READY, MessagingClient
from clinic_reminders.utils.qr import render_terminal_qr

logger = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    INITIALIZING = "initializing"
    AWAITING_QR = "awaiting_qr"
    READY = "ready"
    DISCONNECTED = "disconnected"
    AUTH_FAILED = "auth_failed"


class ReadinessGate:
    """Single source of truth for whether reminders can be sent.

    State changes only through the ``on_*`` transitions, which are wired to
    the messaging client's lifecycle events by ``attach``. The first
    transition into READY calls ``arm`` exactly once.
    """

    def __init__(
        self,
        arm: Callable[[], None] | None = None,
        show_qr: Callable[[str], None] | None = None,
    ) -> None:
        self._arm = arm
        self._show_qr = show_qr or _print_qr
        self._state = ConnectionState.INITIALIZING
        self._armed = False
        self._lock = threading.Lock()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ConnectionState.READY

    @property
    def armed(self) -> bool:
        return self._armed

    def set_arm(self, arm: Callable[[], None]) -> None:
        self._arm = arm

    def attach(self, client: MessagingClient) -> None:
        client.on(QR, self.on_qr)
        client.on(READY, self.on_ready)
        client.on(DISCONNECTED, self.on_disconnected)
        client.on(AUTH_FAILURE, self.on_auth_failure)

    def _transition(self, new_state: ConnectionState, detail: str = "") -> None:
        old_state = self._state
        self._state = new_state
        suffix = f" ({detail})" if detail else ""
        logger.info("Messaging client %s -> %s%s", old_state.value, new_state.value, suffix)

    def on_qr(self, code: str) -> None:
        with self._lock:
            self._transition(ConnectionState.AWAITING_QR)
        logger.info("Scan the QR code below to connect WhatsApp")
        self._show_qr(code)

    def on_ready(self) -> None:
        with self._lock:
            self._transition(ConnectionState.READY)
            should_arm = not self._armed
            self._armed = True
        if should_arm and self._arm is not None:
            logger.info("First ready event; arming daily reminder schedule")
            self._arm()

    def on_disconnected(self, reason: str = "") -> None:
        with self._lock:
            self._transition(ConnectionState.DISCONNECTED, reason)

    def on_auth_failure(self, message: str = "") -> None:
        with self._lock:
            if not self.is_ready:
                self._transition(ConnectionState.AUTH_FAILED, message)
        logger.critical(
            "Messaging client authentication failed: %s. Operator must re-authenticate the session.",
            message,
        )


def _print_qr(code: str) -> None:
    print(render_terminal_qr(code), flush=True)
