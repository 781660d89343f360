"""Thin paho-mqtt wrapper used for display telemetry and typed input.

The wrapper registers a retained ``<base>/availability`` last will so a display
can tell when Nova drops off the broker, and remembers every subscription so
typed-input topics survive a broker reconnect.
"""

from __future__ import annotations

import logging
import ssl
import threading
from collections.abc import Callable

import paho.mqtt.client as mqtt

from .config import MqttConfig

ONLINE = "online"
OFFLINE = "offline"


class AssistantMqtt:
    def __init__(self, config: MqttConfig, logger: logging.Logger | None = None) -> None:
        self.config = config
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._lock = threading.Lock()
        self._handlers: dict[str, Callable[[str], None]] = {}
        self.availability_topic = f"{config.topic_base.rstrip('/')}/availability"

    @property
    def enabled(self) -> bool:
        return bool(self.config.host)

    def connect(self) -> None:
        if not self.enabled:
            self._logger.debug("[mqtt] No broker configured; display telemetry disabled")
            return
        with self._lock:
            if self._client is not None:
                return
            client = self._build_client()
            try:
                client.connect(self.config.host, self.config.port, keepalive=30)
            except Exception as exc:
                self._logger.warning("[mqtt] Could not reach broker %s:%s: %s", self.config.host, self.config.port, exc)
                return
            client.loop_start()
            self._client = client
            self._logger.info("[mqtt] Connected to %s:%s", self.config.host, self.config.port)

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=f"nova-assistant-{self.config.topic_base}",
            clean_session=True,
        )
        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password or "")
        if self.config.tls_enabled:
            client.tls_set(
                ca_certs=self.config.ca_cert,
                certfile=self.config.cert,
                keyfile=self.config.key,
                tls_version=ssl.PROTOCOL_TLS_CLIENT,
            )
        client.will_set(self.availability_topic, payload=OFFLINE, qos=1, retain=True)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        return client

    def _on_connect(self, client, _userdata, _flags, reason_code, _properties=None):  # type: ignore[no-untyped-def]
        if getattr(reason_code, "is_failure", False):
            self._logger.warning("[mqtt] Broker refused connection: %s", reason_code)
            return
        client.publish(self.availability_topic, payload=ONLINE, qos=1, retain=True)
        for topic in list(self._handlers):
            client.subscribe(topic)

    def _on_disconnect(self, _client, _userdata, _flags, reason_code, _properties=None):  # type: ignore[no-untyped-def]
        self._logger.info("[mqtt] Disconnected from broker (%s)", reason_code)

    def disconnect(self) -> None:
        with self._lock:
            client = self._client
            self._client = None
        if not client:
            return
        try:
            client.publish(self.availability_topic, payload=OFFLINE, qos=1, retain=True)
        except Exception as exc:
            self._logger.debug("[mqtt] Could not mark offline: %s", exc)
        client.loop_stop()
        client.disconnect()

    def is_connected(self) -> bool:
        client = self._client
        try:
            return bool(client and client.is_connected())
        except Exception:
            return False

    def publish(self, topic: str, payload: str, retain: bool = False, qos: int = 0) -> None:
        client = self._client
        if not client:
            return
        try:
            client.publish(topic, payload=payload, qos=qos, retain=retain)
        except Exception as exc:
            self._logger.debug("[mqtt] Failed to publish to %s: %s", topic, exc)

    def subscribe(self, topic: str, on_message: Callable[[str], None]) -> None:
        client = self._client
        if not client:
            raise RuntimeError("MQTT client is not connected")
        self._handlers[topic] = on_message
        client.message_callback_add(topic, self._dispatcher(topic))
        result, _mid = client.subscribe(topic)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self._logger.warning("[mqtt] Subscribe to %s returned rc=%s; will retry on reconnect", topic, result)

    def _dispatcher(self, topic: str) -> Callable[..., None]:
        def _deliver(_client, _userdata, message):  # type: ignore[no-untyped-def]
            handler = self._handlers.get(topic)
            if handler is None:
                return
            text = message.payload.decode("utf-8", errors="ignore")
            try:
                handler(text)
            except Exception as exc:
                self._logger.error("[mqtt] Handler for '%s' raised: %s", topic, exc, exc_info=True)

        return _deliver
