"""
Speech synthesis and capture for the assistant

Synthesis:
- ``speak(text)`` returns a future that resolves exactly once when the utterance
  ends, whether it finished, failed or was interrupted
- A new utterance cancels the one in progress (last writer wins on the speaker)
- ``WyomingSpeaker`` streams Piper audio over Wyoming into the local player;
  ``LogSpeaker`` only logs, for headless and text-only runs

Capture:
- ``WyomingListener`` records one phrase from the microphone (silence detection
  on RMS) and transcribes it with a Wyoming STT service
- ``StdinListener`` reads typed lines instead, for terminals without a mic
- Capture errors are logged and reported as "nothing heard"; they never stop the
  assistant
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Protocol

from .audio import AplaySink, ArecordStream, compute_rms
from .config import AssistantConfig
from .wyoming import play_tts_stream, transcribe_audio

LOGGER = logging.getLogger(__name__)


class Speaker(Protocol):
    def speak(self, text: str) -> asyncio.Future[None]: ...

    async def stop(self) -> None: ...


class SpeechListener(Protocol):
    async def start(self) -> None: ...

    async def listen(self) -> str | None: ...

    async def stop(self) -> None: ...


class BaseSpeaker:
    """Shared utterance bookkeeping: cancellation and exactly-once completion."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER
        self._current: asyncio.Task[None] | None = None

    @property
    def speaking(self) -> bool:
        return self._current is not None and not self._current.done()

    def speak(self, text: str) -> asyncio.Future[None]:
        loop = asyncio.get_running_loop()
        done: asyncio.Future[None] = loop.create_future()
        if not text or not text.strip():
            done.set_result(None)
            return done
        previous = self._current
        if previous is not None and not previous.done():
            previous.cancel()
        self._current = loop.create_task(self._run(text, done))
        return done

    async def stop(self) -> None:
        current = self._current
        self._current = None
        if current is None or current.done():
            return
        current.cancel()
        try:
            await current
        except asyncio.CancelledError:
            pass

    async def _run(self, text: str, done: asyncio.Future[None]) -> None:
        try:
            await self._play(text)
        except asyncio.CancelledError:
            self._logger.debug("[speech] Utterance interrupted: %s", text[:60])
            raise
        except Exception as exc:
            self._logger.warning("[speech] Speech synthesis failed: %s", exc)
        finally:
            if not done.done():
                done.set_result(None)

    async def _play(self, text: str) -> None:
        raise NotImplementedError


class WyomingSpeaker(BaseSpeaker):
    def __init__(self, config: AssistantConfig, sink: AplaySink | None = None, logger: logging.Logger | None = None):
        super().__init__(logger)
        self.config = config
        self.sink = sink or AplaySink(logger=self._logger)

    async def _play(self, text: str) -> None:
        await play_tts_stream(
            text,
            endpoint=self.config.tts_endpoint,
            sink=self.sink,
            voice_name=self.config.tts_voice,
            timeout=30.0,
        )


class LogSpeaker(BaseSpeaker):
    async def _play(self, text: str) -> None:
        self._logger.info("[speech] %s", text)
        await asyncio.sleep(0)


class WyomingListener:
    """Record a phrase from the microphone and transcribe it."""

    def __init__(
        self,
        config: AssistantConfig,
        mic: ArecordStream | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self._logger = logger or LOGGER
        self.mic = mic or ArecordStream(config.mic.command, config.mic.bytes_per_chunk, self._logger)

    async def start(self) -> None:
        await self.mic.start()

    async def stop(self) -> None:
        await self.mic.stop()

    async def listen(self) -> str | None:
        try:
            audio = await self.record_phrase()
            if not audio:
                return None
            transcript = await transcribe_audio(
                audio,
                endpoint=self.config.stt_endpoint,
                mic=self.config.mic,
                language=self.config.language,
                timeout=30.0,
                logger=self._logger,
            )
        except (OSError, RuntimeError, TimeoutError) as exc:
            self._logger.warning("[speech] Speech capture failed: %s", exc)
            return None
        text = (transcript or "").strip()
        return text or None

    async def record_phrase(self) -> bytes | None:
        """Record until trailing silence or the maximum phrase length."""
        phrase = self.config.phrase
        mic = self.config.mic
        min_chunks = int(max(1, (phrase.min_seconds * 1000) / mic.chunk_ms))
        max_chunks = int(max(1, (phrase.max_seconds * 1000) / mic.chunk_ms))
        silence_chunks = int(max(1, phrase.silence_ms / mic.chunk_ms))
        buffer = bytearray()
        heard_voice = False
        silence_run = 0
        chunks = 0
        while chunks < max_chunks:
            chunk = await self.mic.read_chunk()
            rms = compute_rms(chunk, mic.width)
            if rms >= phrase.rms_floor:
                heard_voice = True
                silence_run = 0
            elif heard_voice and chunks >= min_chunks:
                silence_run += 1
                if silence_run >= silence_chunks:
                    buffer.extend(chunk)
                    break
            if heard_voice:
                buffer.extend(chunk)
                chunks += 1
        return bytes(buffer) if buffer else None


class StdinListener:
    """Read typed utterances from standard input."""

    def __init__(self, prompt: str = "you> ", logger: logging.Logger | None = None) -> None:
        self.prompt = prompt
        self._logger = logger or LOGGER
        self._closed = False

    async def start(self) -> None:
        self._closed = False

    async def stop(self) -> None:
        self._closed = True

    async def listen(self) -> str | None:
        if self._closed:
            return None
        line = await asyncio.to_thread(self._read_line)
        if line == "":
            self._closed = True
            return None
        return line.strip() or None

    @property
    def closed(self) -> bool:
        return self._closed

    def _read_line(self) -> str:
        sys.stdout.write(self.prompt)
        sys.stdout.flush()
        return sys.stdin.readline()
