from __future__ import annotations

import re

WHATSAPP_USER_SUFFIX = "@c.us"


def normalize_phone(phone: str | None) -> str:
    """Strip every non-digit character from a phone number."""
    return re.sub(r"\D", "", phone or "")


def to_whatsapp_address(phone: str | None) -> str:
    """Build the WhatsApp user address for a phone number.

    ``"(11) 98888-7777"`` becomes ``"11988887777@c.us"``. A phone without
    digits yields the bare suffix, which the messaging client rejects.
    """
    return f"{normalize_phone(phone)}{WHATSAPP_USER_SUFFIX}"
