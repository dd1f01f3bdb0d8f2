from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Callable, TypeVar
from urllib.parse import urlencode

from playwright.sync_api import BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from clinic_reminders.adapters.messaging import (
    AUTH_FAILURE,
    DISCONNECTED,
    QR,
    READY,
    AuthenticationError,
    MessagingClient,
    SendError,
)
from clinic_reminders.config import DEFAULT_SESSION_DIR
from clinic_reminders.utils.phone import WHATSAPP_USER_SUFFIX

CHAT_LIST_SELECTOR = "#pane-side"
QR_SELECTOR = "div[data-ref]"
COMPOSE_SELECTOR = "footer div[contenteditable='true']"
SEND_BUTTON_SELECTOR = "button[aria-label='Send'], span[data-icon='send']"
INVALID_NUMBER_SELECTOR = "div[data-animate-modal-popup='true']"
OUTGOING_MESSAGE_SELECTOR = "div.message-out"
PENDING_MESSAGE_SELECTOR = "div.message-out span[data-icon='msg-time']"
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

T = TypeVar("T")


class WhatsAppAdapterUI(MessagingClient):
    """WhatsApp Web messaging client via Playwright."""

    def __init__(
        self,
        session_dir: Path | str = DEFAULT_SESSION_DIR,
        screenshots_dir: Path | str = "/tmp/clinic-reminders/artifacts/screenshots",
        base_url: str | None = None,
        headless: bool = True,
        auth_timeout_s: float = 300.0,
        delivery_timeout_ms: int = 60_000,
    ) -> None:
        super().__init__()
        self.session_dir = Path(session_dir)
        self.screenshots_dir = Path(screenshots_dir) / "whatsapp"
        self.base_url = (base_url or os.getenv("WHATSAPP_WEB_URL", "https://web.whatsapp.com")).rstrip("/")
        self.headless = headless
        self.auth_timeout_s = auth_timeout_s
        self.delivery_timeout_ms = delivery_timeout_ms
        self.page: Page | None = None
        self._playwright: Playwright | None = None
        self._context: BrowserContext | None = None
        self._connected = False
        self._last_qr: str | None = None

    def _capture_failure_screenshot(self, action: str) -> Path | None:
        if self.page is None or self.page.is_closed():
            return None
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)
        path = self.screenshots_dir / f"{int(time.time() * 1000)}_{action}.png"
        self.page.screenshot(path=str(path), full_page=True)
        return path

    @staticmethod
    def _is_transient(exc: Exception) -> bool:
        if isinstance(exc, PlaywrightTimeoutError):
            return True
        if isinstance(exc, PlaywrightError):
            message = str(exc).lower()
            return "selector" in message or "timeout" in message
        return False

    def _retry_transient(self, action: str, fn: Callable[[], T], attempts: int = 3, delay_s: float = 0.6) -> T:
        last_exc: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except Exception as exc:
                if not self._is_transient(exc):
                    self._capture_failure_screenshot(f"{action}_fatal")
                    raise
                last_exc = exc
                if attempt == attempts:
                    self._capture_failure_screenshot(f"{action}_retries_exhausted")
                    raise
                time.sleep(delay_s)
        raise RuntimeError(f"Unreachable retry state for action={action}") from last_exc

    def _set_connected(self, connected: bool, reason: str = "") -> None:
        if connected == self._connected:
            return
        self._connected = connected
        if connected:
            self.emit(READY)
        else:
            self.emit(DISCONNECTED, reason)

    def _chat_list_visible(self) -> bool:
        if self.page is None or self.page.is_closed():
            return False
        try:
            return self.page.locator(CHAT_LIST_SELECTOR).count() > 0
        except PlaywrightError:
            return False

    def _current_qr_code(self) -> str | None:
        assert self.page is not None
        locator = self.page.locator(QR_SELECTOR)
        if not locator.count():
            return None
        return locator.first.get_attribute("data-ref")

    def initialize(self) -> None:
        """Open WhatsApp Web in the persistent profile and wait for login."""
        self.session_dir.mkdir(parents=True, exist_ok=True)
        self._playwright = sync_playwright().start()
        self._context = self._playwright.chromium.launch_persistent_context(
            str(self.session_dir),
            headless=self.headless,
            args=BROWSER_ARGS,
        )
        self.page = self._context.pages[0] if self._context.pages else self._context.new_page()
        self.page.goto(f"{self.base_url}/", wait_until="domcontentloaded")
        self._wait_for_login()

    def _wait_for_login(self) -> None:
        assert self.page is not None
        deadline = time.monotonic() + self.auth_timeout_s
        while time.monotonic() < deadline:
            if self._chat_list_visible():
                self._set_connected(True)
                return
            code = self._current_qr_code()
            if code and code != self._last_qr:
                self._last_qr = code
                self.emit(QR, code)
            self.page.wait_for_timeout(1_000)

        message = f"WhatsApp Web login not completed within {self.auth_timeout_s:.0f}s"
        self.emit(AUTH_FAILURE, message)
        raise AuthenticationError(message)

    def poll(self) -> None:
        if self.page is None or self.page.is_closed():
            self._set_connected(False, "page_closed")
            return
        if self._chat_list_visible():
            self._set_connected(True)
            return
        try:
            code = self._current_qr_code()
        except PlaywrightError:
            code = None
        self._set_connected(False, "logged_out" if code else "chat_list_missing")
        if code and code != self._last_qr:
            self._last_qr = code
            self.emit(QR, code)

    def send_message(self, address: str, text: str) -> bool:
        """Send one message and wait until WhatsApp stops showing it as pending.

        Only opening the chat is retried; the send click happens at most once.
        """
        if not self._connected or self.page is None:
            raise SendError("WhatsApp client is not connected")
        digits = address.removesuffix(WHATSAPP_USER_SUFFIX)
        if not digits.isdigit():
            raise SendError(f"Invalid WhatsApp address: {address!r}")

        page = self.page

        def _open_chat() -> None:
            page.goto(
                f"{self.base_url}/send?{urlencode({'phone': digits, 'text': text})}",
                wait_until="domcontentloaded",
            )
            page.wait_for_selector(f"{COMPOSE_SELECTOR}, {INVALID_NUMBER_SELECTOR}", timeout=30_000)
            if page.locator(INVALID_NUMBER_SELECTOR).count():
                raise SendError(f"Number is not on WhatsApp: {address}")

        try:
            self._retry_transient("open_chat", _open_chat)
            page.locator(SEND_BUTTON_SELECTOR).first.click(timeout=10_000)
            page.locator(OUTGOING_MESSAGE_SELECTOR).last.wait_for(timeout=10_000)
        except PlaywrightError as exc:
            raise SendError(str(exc)) from exc

        try:
            page.wait_for_selector(PENDING_MESSAGE_SELECTOR, state="detached", timeout=self.delivery_timeout_ms)
        except PlaywrightTimeoutError as exc:
            self._capture_failure_screenshot("send_message_pending")
            raise SendError(f"Message to {address} still pending after {self.delivery_timeout_ms} ms") from exc
        except PlaywrightError as exc:
            raise SendError(str(exc)) from exc
        return True

    def close(self) -> None:
        if self._context is not None:
            self._context.close()
            self._context = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
        self.page = None
        self._set_connected(False, "closed")
