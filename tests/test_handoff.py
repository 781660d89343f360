"""Tests for telephony and messaging handoff links."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from nova.assistant.handoff import (
    MqttHandoff,
    build_chat_url,
    build_dial_url,
    looks_like_phone_number,
    normalize_phone_number,
)


class TestPhoneNumbers:
    @pytest.mark.parametrize("value", ["+1 555-0100", "5550100", "  555 0100 "])
    def test_looks_like_phone_number(self, value):
        assert looks_like_phone_number(value)

    @pytest.mark.parametrize("value", ["Mom", "+ -", "", None, "555-CALL"])
    def test_not_phone_numbers(self, value):
        assert not looks_like_phone_number(value)

    def test_normalize(self):
        assert normalize_phone_number("+1 555-01 00") == "+15550100"


class TestUrls:
    def test_dial_url(self):
        assert build_dial_url("+1 555-0100") == "tel:+15550100"

    def test_chat_url_encodes_text(self):
        assert build_chat_url("+1 555 0100", "On my way & hungry") == (
            "https://wa.me/+15550100?text=On%20my%20way%20%26%20hungry"
        )

    def test_chat_url_without_text(self):
        assert build_chat_url("123") == "https://wa.me/123?text="


class TestMqttHandoff:
    def test_dial_publishes_call(self, mock_logger):
        publisher = Mock()
        MqttHandoff(publisher, logger=mock_logger).dial("555 0100")
        publisher.publish_handoff.assert_called_once_with("call", "tel:5550100")

    def test_open_chat_publishes_whatsapp(self, mock_logger):
        publisher = Mock()
        MqttHandoff(publisher, logger=mock_logger).open_chat("555 0100", "hi")
        publisher.publish_handoff.assert_called_once_with("whatsapp", "https://wa.me/5550100?text=hi")
