"""Tests for microphone/speaker helpers (nova/assistant/audio.py)."""

from __future__ import annotations

import sys
from unittest.mock import patch

import pytest
from nova.assistant import audio
from nova.assistant.audio import ArecordStream, build_player_command, compute_rms

pytestmark = pytest.mark.anyio


class TestComputeRms:
    def test_silence(self):
        assert compute_rms(b"\x00\x00" * 100, 2) == 0

    def test_constant_level(self):
        sample = (1000).to_bytes(2, "little", signed=True)
        assert compute_rms(sample * 50, 2) == 1000

    def test_ignores_trailing_partial_frame(self):
        sample = (-300).to_bytes(2, "little", signed=True)
        assert compute_rms(sample * 4 + b"\x7f", 2) == 300

    def test_three_byte_samples(self):
        sample = (2000).to_bytes(3, "little", signed=True)
        assert compute_rms(sample * 10, 3) == 2000

    @pytest.mark.parametrize(("chunk", "width"), [(b"", 2), (b"\x01", 2), (b"\x01\x02", 0)])
    def test_degenerate_input(self, chunk, width):
        assert compute_rms(chunk, width) == 0


class TestBuildPlayerCommand:
    def test_pw_play(self):
        cmd = build_player_command("pw-play", 22050, 2, 1)
        assert cmd[0] == "pw-play"
        assert cmd[cmd.index("--format") + 1] == "s16"
        assert cmd[cmd.index("--rate") + 1] == "22050"

    def test_pw_play_unsupported_width_falls_back_to_aplay(self):
        assert build_player_command("pw-play", 16000, 3, 1)[0] == "aplay"

    def test_paplay(self):
        assert "--format=s24le" in build_player_command("paplay", 16000, 3, 2)

    def test_aplay_defaults(self):
        cmd = build_player_command("aplay", 16000, 2, 1)
        assert cmd[:4] == ["aplay", "-q", "-t", "raw"]
        assert cmd[cmd.index("-f") + 1] == "S16_LE"


class TestDeterminePlayer:
    def test_prefers_requested_binary(self, mock_logger):
        with patch.object(audio, "_supported_player", return_value=True):
            assert audio._determine_player("paplay", mock_logger) == "paplay"
        mock_logger.warning.assert_not_called()

    def test_missing_preference_falls_back(self, mock_logger):
        with patch.object(audio, "_supported_player", side_effect=lambda binary: binary == "aplay"):
            assert audio._determine_player("pw-play", mock_logger) == "aplay"
        mock_logger.warning.assert_called_once()

    def test_auto_detection_order(self, mock_logger):
        with patch.object(audio, "_supported_player", side_effect=lambda binary: binary in {"paplay", "aplay"}):
            assert audio._determine_player("auto", mock_logger) == "paplay"

    def test_nothing_installed(self, mock_logger):
        with patch.object(audio, "_supported_player", return_value=False):
            assert audio._determine_player("auto", mock_logger) == "aplay"


class TestArecordStream:
    async def test_reads_fixed_chunks(self):
        stream = ArecordStream([sys.executable, "-c", "import sys; sys.stdout.buffer.write(b'abcdef')"], 3)
        await stream.start()
        assert stream.running
        assert await stream.read_chunk() == b"abc"
        assert await stream.read_chunk() == b"def"
        await stream.stop()
        assert not stream.running

    async def test_short_read_raises(self):
        stream = ArecordStream([sys.executable, "-c", "import sys; sys.stdout.buffer.write(b'ab')"], 3)
        await stream.start()
        with pytest.raises(RuntimeError, match="ended unexpectedly"):
            await stream.read_chunk()
        await stream.stop()

    async def test_read_before_start(self):
        with pytest.raises(RuntimeError, match="not running"):
            await ArecordStream(["arecord"], 960).read_chunk()
