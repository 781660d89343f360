"""Tests for speech synthesis bookkeeping and phrase capture."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest
from nova.assistant.config import AssistantConfig
from nova.assistant.speech import BaseSpeaker, LogSpeaker, StdinListener, WyomingListener

pytestmark = pytest.mark.anyio


class _BlockingSpeaker(BaseSpeaker):
    def __init__(self, fail: bool = False) -> None:
        super().__init__()
        self.started: list[str] = []
        self.release = asyncio.Event()
        self.fail = fail

    async def _play(self, text: str) -> None:
        self.started.append(text)
        if self.fail:
            raise RuntimeError("tts offline")
        await self.release.wait()


# ---------------------------------------------------------------------------
# BaseSpeaker
# ---------------------------------------------------------------------------


class TestBaseSpeaker:
    async def test_resolves_when_finished(self):
        speaker = _BlockingSpeaker()
        done = speaker.speak("hello")
        await asyncio.sleep(0)
        assert speaker.speaking
        speaker.release.set()
        await asyncio.wait_for(done, 1)
        assert not speaker.speaking

    async def test_new_utterance_interrupts_previous(self):
        speaker = _BlockingSpeaker()
        first = speaker.speak("one")
        await asyncio.sleep(0)
        second = speaker.speak("two")
        await asyncio.wait_for(first, 1)
        assert first.done() and not first.cancelled()
        speaker.release.set()
        await asyncio.wait_for(second, 1)
        assert speaker.started == ["one", "two"]

    async def test_failure_still_resolves(self):
        speaker = _BlockingSpeaker(fail=True)
        await asyncio.wait_for(speaker.speak("hello"), 1)

    async def test_empty_text_resolves_without_interrupting(self):
        speaker = _BlockingSpeaker()
        speaker.speak("long story")
        await asyncio.sleep(0)
        done = speaker.speak("   ")
        assert done.done()
        assert speaker.speaking

    async def test_stop_resolves_current(self):
        speaker = _BlockingSpeaker()
        done = speaker.speak("hello")
        await asyncio.sleep(0)
        await speaker.stop()
        assert done.done()
        assert not speaker.speaking


async def test_log_speaker_logs(mock_logger):
    speaker = LogSpeaker(logger=mock_logger)
    await asyncio.wait_for(speaker.speak("hi there"), 1)
    mock_logger.info.assert_called_once()


# ---------------------------------------------------------------------------
# WyomingListener
# ---------------------------------------------------------------------------


@pytest.fixture
def config():
    return AssistantConfig.from_env(
        {
            "NOVA_HOSTNAME": "test",
            "NOVA_ASSISTANT_MIN_PHRASE_SECONDS": "0.03",
            "NOVA_ASSISTANT_MAX_PHRASE_SECONDS": "0.3",
            "NOVA_ASSISTANT_SILENCE_MS": "60",
            "NOVA_ASSISTANT_RMS_THRESHOLD": "100",
        }
    )


def _chunk(level: int, size: int = 960) -> bytes:
    sample = int(level).to_bytes(2, "little", signed=True)
    return sample * (size // 2)


class TestWyomingListener:
    async def test_record_phrase_stops_after_silence(self, config):
        mic = Mock()
        chunks = [_chunk(0), _chunk(1000), _chunk(1000), _chunk(0), _chunk(0), _chunk(1000)]
        mic.read_chunk = AsyncMock(side_effect=chunks)
        listener = WyomingListener(config, mic=mic)

        audio = await listener.record_phrase()

        # Leading silence skipped; two voiced chunks plus two silent ones
        assert audio == _chunk(1000) * 2 + _chunk(0) * 2

    async def test_record_phrase_capped_at_max_length(self, config):
        mic = Mock()
        mic.read_chunk = AsyncMock(side_effect=[_chunk(0)] * 10 + [_chunk(1000)] * 20)
        listener = WyomingListener(config, mic=mic)

        audio = await listener.record_phrase()

        # 0.3s of 30ms chunks
        assert audio == _chunk(1000) * 10

    async def test_listen_transcribes(self, config):
        listener = WyomingListener(config, mic=Mock())
        with (
            patch.object(listener, "record_phrase", new_callable=AsyncMock, return_value=b"pcm"),
            patch("nova.assistant.speech.transcribe_audio", new_callable=AsyncMock, return_value=" hello "),
        ):
            assert await listener.listen() == "hello"

    async def test_listen_swallows_capture_errors(self, config, mock_logger):
        listener = WyomingListener(config, mic=Mock(), logger=mock_logger)
        with patch.object(listener, "record_phrase", new_callable=AsyncMock, side_effect=RuntimeError("mic gone")):
            assert await listener.listen() is None
        mock_logger.warning.assert_called_once()

    async def test_listen_empty_transcript(self, config):
        listener = WyomingListener(config, mic=Mock())
        with (
            patch.object(listener, "record_phrase", new_callable=AsyncMock, return_value=b"pcm"),
            patch("nova.assistant.speech.transcribe_audio", new_callable=AsyncMock, return_value="  "),
        ):
            assert await listener.listen() is None


# ---------------------------------------------------------------------------
# StdinListener
# ---------------------------------------------------------------------------


class TestStdinListener:
    async def test_reads_line(self):
        listener = StdinListener()
        with patch.object(listener, "_read_line", return_value="  hi nova \n"):
            assert await listener.listen() == "hi nova"
        assert not listener.closed

    async def test_eof_closes(self):
        listener = StdinListener()
        with patch.object(listener, "_read_line", return_value=""):
            assert await listener.listen() is None
        assert listener.closed
        assert await listener.listen() is None
