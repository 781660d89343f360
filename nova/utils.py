"""Small helpers shared by the Nova packages.

Environment parsing (``parse_bool``, ``parse_int``, ``parse_float``,
``strip_or_none``) feeds ``AssistantConfig.from_env``; ``chunk_bytes`` and
``await_with_timeout`` serve the Wyoming streams; ``epoch_millis`` stamps
reminder identifiers and capture file names.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable
from datetime import UTC, datetime
from typing import Any


def parse_bool(value: str | None, default: bool = False) -> bool:
    """Interpret env-style booleans."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_int(value: str | None, default: int) -> int:
    """Best-effort int parser with fallback."""
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_float(value: str | None, default: float) -> float:
    """Best-effort float parser with fallback."""
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


async def await_with_timeout(awaitable: Awaitable[Any], timeout: float | None) -> Any:
    """Await a coroutine with an optional timeout."""
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout)


def chunk_bytes(data: bytes, size: int) -> Iterable[bytes]:
    """Yield fixed-size chunks from a byte buffer."""
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    for start in range(0, len(data), size):
        end = min(start + size, len(data))
        yield data[start:end]


def strip_or_none(value: str | None) -> str | None:
    """Trim a string and collapse blanks to ``None``."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def epoch_millis(when: datetime | None = None) -> int:
    """Milliseconds since the epoch for ``when`` (defaults to now)."""
    moment = when or datetime.now(UTC)
    return int(moment.timestamp() * 1000)
