"""Messaging client contract and lifecycle event registry."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

QR = "qr"
READY = "ready"
DISCONNECTED = "disconnected"
AUTH_FAILURE = "auth_failure"
LIFECYCLE_EVENTS = (QR, READY, DISCONNECTED, AUTH_FAILURE)

Handler = Callable[..., None]

logger = logging.getLogger(__name__)


class MessagingError(RuntimeError):
    """Base error for messaging client failures."""


class SendError(MessagingError):
    """Raised when a single outbound message could not be delivered."""


class AuthenticationError(MessagingError):
    """Raised when the client cannot authenticate without operator action."""


class MessagingClient:
    """Stateful connection to a messaging network.

    Implementations call ``emit`` for ``qr(code)``, ``ready()``,
    ``disconnected(reason)`` and ``auth_failure(message)``.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def on(self, event: str, handler: Handler) -> None:
        if event not in LIFECYCLE_EVENTS:
            raise ValueError(f"Unknown messaging event: {event!r}")
        self._handlers[event].append(handler)

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers[event]):
            handler(*args)

    def initialize(self) -> None:
        raise NotImplementedError

    def poll(self) -> None:
        """Re-check the connection and emit lifecycle transitions."""

    def send_message(self, address: str, text: str) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        """Release the connection."""
