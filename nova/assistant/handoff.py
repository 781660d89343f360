"""Telephony and messaging handoff.

Nova never places calls or sends messages itself. It builds a ``tel:`` or
WhatsApp link and hands it to the host (here: the display over MQTT), where the
user confirms. The outcome is never reported back.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol
from urllib.parse import quote

from .mqtt_publisher import AssistantMqttPublisher

LOGGER = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^(?=.*\d)[\d\s+-]+$")


class Handoff(Protocol):
    def dial(self, phone_number: str) -> None: ...

    def open_chat(self, phone_number: str, prefilled_text: str) -> None: ...


def looks_like_phone_number(value: str | None) -> bool:
    """At least one digit, and nothing but digits, spaces, ``+`` and ``-``."""
    return bool(value) and PHONE_RE.match(value or "") is not None


def normalize_phone_number(value: str) -> str:
    return re.sub(r"[\s-]", "", value)


def build_dial_url(phone_number: str) -> str:
    return f"tel:{normalize_phone_number(phone_number)}"


def build_chat_url(phone_number: str, prefilled_text: str = "") -> str:
    return f"https://wa.me/{normalize_phone_number(phone_number)}?text={quote(prefilled_text or '', safe='')}"


class MqttHandoff:
    """Publish call/chat links for the display to open."""

    def __init__(self, publisher: AssistantMqttPublisher, logger: logging.Logger | None = None) -> None:
        self.publisher = publisher
        self._logger = logger or LOGGER

    def dial(self, phone_number: str) -> None:
        url = build_dial_url(phone_number)
        self._logger.info("[handoff] Dial %s", url)
        self.publisher.publish_handoff("call", url)

    def open_chat(self, phone_number: str, prefilled_text: str) -> None:
        url = build_chat_url(phone_number, prefilled_text)
        self._logger.info("[handoff] Chat %s", url)
        self.publisher.publish_handoff("whatsapp", url)
