"""
Recall short-circuit for questions about remembered facts

When the user asks for something Nova was told to remember ("what's my wifi
password?"), the answer comes straight from the memory store and the remote
model is never consulted.

Patterns are tried in declared order against the trimmed utterance and the
first one whose captured subject exists in memory wins. A pattern that matches
but names an unknown key falls through to the next pattern, and finally to the
normal chat path.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .memory import MemoryStore

RECALL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"what is my (.+)\?", re.IGNORECASE),
    re.compile(r"what's my (.+)\?", re.IGNORECASE),
    re.compile(r"what did i tell you about (.+)\?", re.IGNORECASE),
    re.compile(r"recall my (.+)", re.IGNORECASE),
    re.compile(r"do you remember my (.+)\?", re.IGNORECASE),
)


@dataclass(frozen=True, slots=True)
class RecallHit:
    key: str
    value: str

    @property
    def reply(self) -> str:
        return format_recall_reply(self.key, self.value)


def format_recall_reply(key: str, value: str) -> str:
    return f"Based on my records, your {key} is: {value}"


def extract_recall_subjects(text: str | None) -> list[str]:
    """Return the normalized subject captured by each matching pattern, in order."""
    trimmed = (text or "").strip()
    if not trimmed:
        return []
    subjects: list[str] = []
    for pattern in RECALL_PATTERNS:
        match = pattern.search(trimmed)
        if match and match.group(1):
            subject = match.group(1).strip().lower()
            if subject:
                subjects.append(subject)
    return subjects


def intercept_recall(text: str | None, memory: MemoryStore) -> RecallHit | None:
    """Answer ``text`` from memory when it is a recall question for a known key."""
    for subject in extract_recall_subjects(text):
        entry = memory.recall(subject)
        if entry is not None and entry.value:
            return RecallHit(key=entry.key, value=entry.value)
    return None
