"""Tests for the recall short-circuit."""

from __future__ import annotations

import pytest
from nova.assistant.recall import extract_recall_subjects, format_recall_reply, intercept_recall


class TestExtractRecallSubjects:
    @pytest.mark.parametrize(
        ("text", "subject"),
        [
            ("What is my locker code?", "locker code"),
            ("what's my WiFi password?", "wifi password"),
            ("What did I tell you about the garage door?", "the garage door"),
            ("recall my parking spot", "parking spot"),
            ("Do you remember my blood type?", "blood type"),
        ],
    )
    def test_each_pattern(self, text, subject):
        assert extract_recall_subjects(text) == [subject]

    def test_question_mark_required_for_question_forms(self):
        assert extract_recall_subjects("what is my locker code") == []

    def test_blank(self):
        assert extract_recall_subjects("   ") == []
        assert extract_recall_subjects(None) == []


class TestInterceptRecall:
    def test_hit_uses_stored_casing(self, memory):
        memory.remember("Locker Code", "4411")
        hit = intercept_recall("  What is my locker code?  ", memory)
        assert hit is not None
        assert hit.key == "Locker Code"
        assert hit.reply == "Based on my records, your Locker Code is: 4411"

    def test_miss_returns_none(self, memory):
        assert intercept_recall("What is my locker code?", memory) is None

    def test_not_a_recall_question(self, memory):
        memory.remember("weather", "sunny")
        assert intercept_recall("How is the weather today?", memory) is None

    def test_falls_through_to_later_pattern(self, memory):
        # "what is my" captures the unknown "code"; "recall my" still matches
        memory.remember("door", "blue")
        hit = intercept_recall("what is my code? recall my door", memory)
        assert hit is not None
        assert hit.value == "blue"


def test_format_recall_reply():
    assert format_recall_reply("pet", "cat") == "Based on my records, your pet is: cat"
