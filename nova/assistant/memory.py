"""
Free-form key/value memory for the assistant

Stores facts the user asks Nova to remember ("my locker code is 4411") and
serves them back to the recall short-circuit and the ``view_memory`` action.

Features:
- Case-preserving keys: the casing of the first write is kept for display
- Case-insensitive lookup: recall and overwrite match keys regardless of case
- Write-through persistence: every change saves the full store to a blob store
- Tolerant load: unreadable or malformed blobs start an empty store

The blob store is a tiny get/set interface so hosts can persist wherever they
like; ``JsonFileBlobStore`` keeps the serialized store in a JSON file under a
fixed key.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

LOGGER = logging.getLogger(__name__)

MEMORY_BLOB_KEY = "novaKnowledgeBase"


class BlobStore(Protocol):
    def load(self) -> str | None: ...

    def save(self, blob: str) -> None: ...


class JsonFileBlobStore:
    """Persist named string blobs inside a single JSON document."""

    def __init__(self, path: Path, key: str = MEMORY_BLOB_KEY, logger: logging.Logger | None = None) -> None:
        self.path = path
        self.key = key
        self._logger = logger or LOGGER

    def load(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            self._logger.warning("[memory] Failed to read blob file %s: %s", self.path, exc)
            return None
        if not isinstance(data, dict):
            return None
        blob = data.get(self.key)
        return blob if isinstance(blob, str) else None

    def save(self, blob: str) -> None:
        data: dict[str, object] = {}
        if self.path.exists():
            try:
                existing = json.loads(self.path.read_text(encoding="utf-8"))
                if isinstance(existing, dict):
                    data = existing
            except (json.JSONDecodeError, OSError):
                data = {}
        data[self.key] = blob
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)


class InMemoryBlobStore:
    """Blob store that keeps the last saved blob in process memory."""

    def __init__(self, blob: str | None = None) -> None:
        self.blob = blob
        self.saves = 0

    def load(self) -> str | None:
        return self.blob

    def save(self, blob: str) -> None:
        self.blob = blob
        self.saves += 1


@dataclass(frozen=True, slots=True)
class RecalledEntry:
    key: str
    value: str


class MemoryStore:
    """Mutable string-to-string mapping with write-through persistence."""

    def __init__(self, blob_store: BlobStore | None = None, logger: logging.Logger | None = None) -> None:
        self._blob_store = blob_store
        self._logger = logger or LOGGER
        self._entries: dict[str, str] = {}

    def load(self) -> None:
        """Replace the in-memory entries with the persisted blob, if any."""
        self._entries = {}
        if self._blob_store is None:
            return
        try:
            blob = self._blob_store.load()
        except Exception as exc:
            self._logger.error("[memory] Failed to load memory blob: %s", exc, exc_info=True)
            return
        if not blob:
            return
        try:
            parsed = json.loads(blob)
        except json.JSONDecodeError as exc:
            self._logger.error("[memory] Stored memory is not valid JSON: %s", exc)
            return
        if not isinstance(parsed, dict):
            self._logger.error("[memory] Stored memory is not an object; starting empty")
            return
        self._entries = {str(key): str(value) for key, value in parsed.items() if value is not None}
        self._logger.info("[memory] Loaded %d memory entries", len(self._entries))

    def remember(self, key: str, value: str) -> str:
        """Upsert ``key`` and return the key the value was stored under."""
        stored_key = self._find_key(key) or key
        self._entries[stored_key] = value
        self._save()
        return stored_key

    def forget(self, key: str) -> bool:
        """Delete ``key`` (exact match first, then case-insensitive). Returns whether it existed."""
        stored_key = key if key in self._entries else self._find_key(key)
        if stored_key is None:
            return False
        del self._entries[stored_key]
        self._save()
        return True

    def recall(self, key: str) -> RecalledEntry | None:
        """Case-insensitive lookup returning the original-case key and value."""
        stored_key = self._find_key(key)
        if stored_key is None:
            return None
        return RecalledEntry(key=stored_key, value=self._entries[stored_key])

    def items(self) -> list[tuple[str, str]]:
        return list(self._entries.items())

    def snapshot(self) -> dict[str, str]:
        return dict(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._find_key(key) is not None

    def _find_key(self, key: str) -> str | None:
        needle = key.strip().lower()
        for stored_key in self._entries:
            if stored_key.lower() == needle:
                return stored_key
        return None

    def _save(self) -> None:
        if self._blob_store is None:
            return
        try:
            self._blob_store.save(json.dumps(self._entries))
        except Exception as exc:
            self._logger.error("[memory] Failed to save memory blob: %s", exc, exc_info=True)
