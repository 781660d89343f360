"""Visual capture via a still-image command (``fswebcam``, ``libcamera-still`` ...)."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol

from nova.utils import epoch_millis

from .config import CameraConfig

LOGGER = logging.getLogger(__name__)


class Camera(Protocol):
    async def capture(self) -> bytes | None: ...

    def clear(self) -> None: ...


class CommandCamera:
    """Run a capture command that writes one JPEG frame to stdout."""

    def __init__(self, config: CameraConfig, logger: logging.Logger | None = None) -> None:
        self.config = config
        self._logger = logger or LOGGER
        self.frozen_frame: bytes | None = None

    async def capture(self) -> bytes | None:
        self._logger.debug("[camera] Capturing still: %s", " ".join(self.config.command))
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.config.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            self._logger.warning("[camera] Capture command failed to start: %s", exc)
            return None
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.config.timeout)
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(proc.wait(), timeout=2)
            self._logger.warning("[camera] Capture timed out after %.1fs", self.config.timeout)
            return None
        if proc.returncode != 0 or not stdout:
            detail = stderr.decode("utf-8", errors="ignore").strip()
            self._logger.warning("[camera] Capture returned no image (rc=%s) %s", proc.returncode, detail)
            return None
        self.frozen_frame = stdout
        return stdout

    def clear(self) -> None:
        self.frozen_frame = None


def save_capture(image: bytes, directory: Path, *, now: datetime | None = None) -> Path:
    """Write a captured JPEG as ``nova-capture-<ms>.jpg`` and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / f"nova-capture-{epoch_millis(now)}.jpg"
    target.write_bytes(image)
    return target
