"""
Voice assistant with an action protocol for memory, contacts and reminders

This package provides the Nova assistant runtime:

- Speech recognition: Wyoming protocol (faster-whisper) for local transcription
- Remote chat: Google Gemini for conversation, image questions and web-grounded answers
- Action protocol: ``[ACTION:...]`` tags in model replies drive local state changes
- Recall: questions about remembered facts are answered locally, no remote call
- Speech synthesis: Piper TTS over Wyoming
- Display telemetry: status, log and snapshots published over MQTT

Key modules:
- config: Configuration management from environment variables
- actions: Action tag grammar and parsing
- dispatcher: Action execution and status messages
- memory: Persisted key/value memory
- directory: Contacts and reminders
- reminders: Reminder polling
- session: Turn handling and state ownership
- runtime: Daemon wiring and entry point
"""

from __future__ import annotations

__all__ = [
    "config",
    "actions",
    "dispatcher",
    "memory",
    "directory",
    "recall",
    "reminders",
    "session",
    "llm",
    "mqtt",
    "runtime",
]
