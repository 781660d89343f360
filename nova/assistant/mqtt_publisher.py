"""MQTT publishing for the Nova display.

The display (kiosk page, desk screen, phone dashboard) renders whatever Nova
publishes here. Every payload is JSON and state topics are retained so a
display that reconnects sees the current picture immediately:

- ``<base>/state``: assistant status (listening/thinking/speaking/idle)
- ``<base>/messages``: each appended conversation message (not retained)
- ``<base>/reminders``, ``/contacts``, ``/memory``: directory and memory snapshots
- ``<base>/web_sources``: citations for the latest grounded answer
- ``<base>/photo``: whether a still is currently frozen on the camera view
- ``<base>/ui``: one-shot display signals such as showing the contact list
- ``<base>/handoff``: ``tel:`` and ``wa.me`` links for the display to open

Like the rest of the telemetry path, publishing is a no-op when MQTT is not
configured.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .directory import Contact, Reminder
    from .llm import WebSource
    from .mqtt import AssistantMqtt
    from .session import Message

LOGGER = logging.getLogger(__name__)


class AssistantMqttPublisher:
    """Stateless publisher: callers hand in the snapshot to publish."""

    def __init__(self, mqtt: AssistantMqtt, topic_base: str, logger: logging.Logger | None = None) -> None:
        self.mqtt = mqtt
        self.logger = logger or LOGGER
        base = topic_base.rstrip("/")
        self.state_topic = f"{base}/state"
        self.messages_topic = f"{base}/messages"
        self.reminders_topic = f"{base}/reminders"
        self.contacts_topic = f"{base}/contacts"
        self.memory_topic = f"{base}/memory"
        self.web_sources_topic = f"{base}/web_sources"
        self.photo_topic = f"{base}/photo"
        self.ui_topic = f"{base}/ui"
        self.handoff_topic = f"{base}/handoff"
        self.ask_topic = f"{base}/ask"

    def publish_status(self, status: str) -> None:
        self._publish(self.state_topic, {"status": status}, retain=True)

    def publish_message(self, message: Message) -> None:
        self._publish(self.messages_topic, {"role": message.role, "text": message.text})

    def publish_reminders(self, reminders: Iterable[Reminder]) -> None:
        self._publish(self.reminders_topic, [reminder.to_dict() for reminder in reminders], retain=True)

    def publish_contacts(self, contacts: Iterable[Contact]) -> None:
        self._publish(self.contacts_topic, [contact.to_dict() for contact in contacts], retain=True)

    def publish_memory(self, entries: Mapping[str, str]) -> None:
        self._publish(self.memory_topic, dict(entries), retain=True)

    def publish_web_sources(self, sources: Iterable[WebSource]) -> None:
        payload = [{"uri": source.uri, "title": source.title} for source in sources]
        self._publish(self.web_sources_topic, payload, retain=True)

    def publish_photo_state(self, captured: bool) -> None:
        self._publish(self.photo_topic, {"captured": captured}, retain=True)

    def publish_ui_event(self, event: str, **details: Any) -> None:
        self._publish(self.ui_topic, {"event": event, **details})

    def publish_handoff(self, kind: str, url: str) -> None:
        self._publish(self.handoff_topic, {"kind": kind, "url": url})

    def _publish(self, topic: str, payload: Any, *, retain: bool = False) -> None:
        try:
            body = json.dumps(payload)
        except (TypeError, ValueError):
            self.logger.warning("[mqtt_publisher] Unable to serialize payload for %s", topic)
            return
        self.mqtt.publish(topic, body, retain=retain)
