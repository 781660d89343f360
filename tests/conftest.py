"""Shared test fixtures and configuration for the Nova test suite.

This module provides reusable fixtures for common test scenarios including:
- MQTT broker/client mocking
- Chat service and speaker fakes
- Memory, directory and configuration objects
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, Mock

import paho.mqtt.client as mqtt
import pytest
from nova.assistant.config import LLMConfig, MqttConfig, SessionTimings
from nova.assistant.directory import Directory
from nova.assistant.llm import ChatReply
from nova.assistant.memory import InMemoryBlobStore, MemoryStore

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing.

    Returns a Mock with spec=logging.Logger to ensure only valid
    logger methods can be called.
    """
    return Mock(spec=logging.Logger)


# ============================================================================
# MQTT Fixtures
# ============================================================================


@pytest.fixture
def mqtt_config():
    """Create a basic MQTT configuration for testing."""
    return MqttConfig(
        host="localhost",
        port=1883,
        username=None,
        password=None,
        tls_enabled=False,
        cert=None,
        key=None,
        ca_cert=None,
        topic_base="test-device",
    )


@pytest.fixture
def mqtt_config_with_auth():
    """Create MQTT configuration with username/password authentication."""
    return MqttConfig(
        host="localhost",
        port=1883,
        username="test_user",
        password="test_pass",
        tls_enabled=False,
        cert=None,
        key=None,
        ca_cert=None,
        topic_base="test-device",
    )


@pytest.fixture
def mqtt_config_with_tls():
    """Create MQTT configuration with TLS encryption enabled."""
    return MqttConfig(
        host="localhost",
        port=8883,
        username="mqtt_user",
        password="mqtt_pass",
        tls_enabled=True,
        cert="/path/to/client.crt",
        key="/path/to/client.key",
        ca_cert="/path/to/ca.crt",
        topic_base="test-device",
    )


@pytest.fixture
def mock_mqtt_client():
    """Create a mock paho MQTT client.

    Provides common MQTT client methods as mocks for testing
    MQTT interactions without a real broker.
    """
    client = Mock(spec=mqtt.Client)
    client.connect = Mock()
    client.disconnect = Mock()
    client.subscribe = Mock(return_value=(mqtt.MQTT_ERR_SUCCESS, 1))
    client.publish = Mock()
    client.loop_start = Mock()
    client.loop_stop = Mock()
    client.is_connected = Mock(return_value=True)
    return client


# ============================================================================
# Chat Service and Speech Fixtures
# ============================================================================


@pytest.fixture
def make_llm_config():
    """Factory fixture for creating LLM configs with custom overrides.

    Usage:
        config = make_llm_config(gemini_api_key=None)
    """

    def _create_config(**overrides: Any) -> LLMConfig:
        defaults = {
            "system_prompt": "You are Nova.",
            "gemini_model": "gemini-2.5-flash",
            "gemini_api_key": "test_gemini_key",
            "gemini_base_url": "https://generativelanguage.googleapis.com/v1beta",
            "gemini_timeout": 30,
        }
        defaults.update(overrides)
        return LLMConfig(**defaults)  # type: ignore[arg-type]

    return _create_config


@pytest.fixture
def mock_chat():
    """Create a mock chat service whose replies tests set per call."""
    chat = AsyncMock()
    chat.send_message = AsyncMock(return_value="Okay.")
    chat.send_visual_query = AsyncMock(return_value="I see a mug.")
    chat.send_grounded_query = AsyncMock(return_value=ChatReply(text="Here is the news.", sources=[]))
    return chat


class RecordingSpeaker:
    """Speaker that records utterances and resolves them immediately unless held."""

    def __init__(self, hold: bool = False) -> None:
        self.spoken: list[str] = []
        self.hold = hold
        self.pending: list[asyncio.Future[None]] = []
        self.stop_calls = 0

    def speak(self, text: str) -> asyncio.Future[None]:
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        if not text:
            done.set_result(None)
            return done
        self.spoken.append(text)
        if self.hold:
            self.pending.append(done)
        else:
            done.set_result(None)
        return done

    def finish_all(self) -> None:
        for future in self.pending:
            if not future.done():
                future.set_result(None)
        self.pending.clear()

    async def stop(self) -> None:
        self.stop_calls += 1
        self.finish_all()


@pytest.fixture
def speaker():
    return RecordingSpeaker()


# ============================================================================
# State Fixtures
# ============================================================================


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def memory(blob_store):
    store = MemoryStore(blob_store)
    store.load()
    return store


@pytest.fixture
def directory():
    return Directory()


@pytest.fixture
def fixed_now():
    return datetime(2025, 3, 14, 9, 26, 53, tzinfo=UTC)


@pytest.fixture
def instant_timings():
    """Session timings with every delay collapsed to zero."""
    return SessionTimings(action_delay=0.0, recall_reply_delay=0.0, terminate_delay=0.0, reminder_poll_interval=0.05)
