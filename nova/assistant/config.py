"""Configuration helpers for the Nova voice assistant."""

from __future__ import annotations

import os
import shlex
import socket
from dataclasses import dataclass
from pathlib import Path

from nova.utils import parse_bool, parse_float, parse_int, strip_or_none

DEFAULT_MEMORY_FILE = Path.home() / ".local" / "share" / "nova" / "memory.json"
DEFAULT_CAPTURE_DIR = Path.home() / "Pictures" / "nova"
DEFAULT_CAMERA_CMD = "fswebcam --no-banner --jpeg 90 -"


@dataclass(frozen=True)
class WyomingEndpoint:
    host: str
    port: int
    model: str | None = None


@dataclass(frozen=True)
class MicConfig:
    command: list[str]
    rate: int
    width: int
    channels: int
    chunk_ms: int

    @property
    def bytes_per_chunk(self) -> int:
        samples = int(self.rate * (self.chunk_ms / 1000))
        return samples * self.width * self.channels


@dataclass(frozen=True)
class PhraseConfig:
    min_seconds: float
    max_seconds: float
    silence_ms: int
    rms_floor: int


@dataclass(frozen=True)
class LLMConfig:
    system_prompt: str
    gemini_model: str
    gemini_api_key: str | None
    gemini_base_url: str
    gemini_timeout: int


@dataclass(frozen=True)
class MqttConfig:
    host: str | None
    port: int
    username: str | None
    password: str | None
    tls_enabled: bool
    cert: str | None
    key: str | None
    ca_cert: str | None
    topic_base: str


@dataclass(frozen=True)
class CameraConfig:
    command: list[str]
    capture_dir: Path
    timeout: float


@dataclass(frozen=True)
class SessionTimings:
    """Fixed delays that shape a conversational turn (seconds)."""

    action_delay: float
    recall_reply_delay: float
    terminate_delay: float
    reminder_poll_interval: float


@dataclass(frozen=True)
class AssistantConfig:
    hostname: str
    assistant_name: str
    language: str | None
    mic: MicConfig
    phrase: PhraseConfig
    stt_endpoint: WyomingEndpoint
    tts_endpoint: WyomingEndpoint
    tts_voice: str | None
    llm: LLMConfig
    mqtt: MqttConfig
    camera: CameraConfig | None
    memory_file: Path
    timings: SessionTimings
    log_llm_messages: bool

    @staticmethod
    def from_env(env: dict[str, str] | None = None) -> AssistantConfig:
        source = env if env is not None else os.environ
        hostname = source.get("NOVA_HOSTNAME") or socket.gethostname()
        assistant_name = (source.get("NOVA_ASSISTANT_NAME") or "Nova").strip() or "Nova"

        mic_cmd = shlex.split(
            source.get(
                "NOVA_ASSISTANT_MIC_CMD",
                "arecord -q -t raw -f S16_LE -c 1 -r 16000 -",
            )
        )
        mic = MicConfig(
            command=mic_cmd,
            rate=parse_int(source.get("NOVA_ASSISTANT_MIC_RATE"), 16000),
            width=parse_int(source.get("NOVA_ASSISTANT_MIC_WIDTH"), 2),
            channels=parse_int(source.get("NOVA_ASSISTANT_MIC_CHANNELS"), 1),
            chunk_ms=parse_int(source.get("NOVA_ASSISTANT_MIC_CHUNK_MS"), 30),
        )
        phrase = PhraseConfig(
            min_seconds=parse_float(source.get("NOVA_ASSISTANT_MIN_PHRASE_SECONDS"), 1.0),
            max_seconds=parse_float(source.get("NOVA_ASSISTANT_MAX_PHRASE_SECONDS"), 10.0),
            silence_ms=parse_int(source.get("NOVA_ASSISTANT_SILENCE_MS"), 1200),
            rms_floor=parse_int(source.get("NOVA_ASSISTANT_RMS_THRESHOLD"), 120),
        )

        stt_endpoint = WyomingEndpoint(
            host=source.get("WYOMING_WHISPER_HOST", "127.0.0.1"),
            port=parse_int(source.get("WYOMING_WHISPER_PORT"), 10300),
            model=source.get("NOVA_ASSISTANT_STT_MODEL"),
        )
        tts_endpoint = WyomingEndpoint(
            host=source.get("WYOMING_PIPER_HOST", "127.0.0.1"),
            port=parse_int(source.get("WYOMING_PIPER_PORT"), 10200),
            model=None,
        )

        system_prompt = source.get("NOVA_ASSISTANT_SYSTEM_PROMPT", "").strip()
        prompt_file = source.get("NOVA_ASSISTANT_SYSTEM_PROMPT_FILE")
        if not system_prompt and prompt_file:
            candidate = Path(prompt_file)
            if candidate.is_file():
                system_prompt = candidate.read_text(encoding="utf-8").strip()
        if not system_prompt:
            system_prompt = DEFAULT_SYSTEM_PROMPT

        llm = LLMConfig(
            system_prompt=system_prompt,
            gemini_model=source.get("GEMINI_MODEL", "gemini-2.5-flash"),
            gemini_api_key=strip_or_none(source.get("GEMINI_API_KEY") or source.get("API_KEY")),
            gemini_base_url=source.get("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
            gemini_timeout=parse_int(source.get("GEMINI_TIMEOUT_SECONDS"), 45),
        )

        topic_base = source.get("NOVA_ASSISTANT_TOPIC_BASE") or f"nova/{hostname}/assistant"
        mqtt = MqttConfig(
            host=strip_or_none(source.get("MQTT_HOST")),
            port=parse_int(source.get("MQTT_PORT"), 1883),
            username=strip_or_none(source.get("MQTT_USER") or source.get("MQTT_USERNAME")),
            password=strip_or_none(source.get("MQTT_PASS") or source.get("MQTT_PASSWORD")),
            tls_enabled=parse_bool(source.get("MQTT_TLS_ENABLED"), False),
            cert=strip_or_none(source.get("MQTT_CERT")),
            key=strip_or_none(source.get("MQTT_KEY")),
            ca_cert=strip_or_none(source.get("MQTT_CA_CERT")),
            topic_base=topic_base.rstrip("/"),
        )

        camera: CameraConfig | None = None
        camera_cmd = source.get("NOVA_CAMERA_CMD", DEFAULT_CAMERA_CMD).strip()
        if camera_cmd:
            camera = CameraConfig(
                command=shlex.split(camera_cmd),
                capture_dir=Path(source.get("NOVA_CAPTURE_DIR") or DEFAULT_CAPTURE_DIR).expanduser(),
                timeout=parse_float(source.get("NOVA_CAMERA_TIMEOUT_SECONDS"), 10.0),
            )

        memory_file = Path(source.get("NOVA_MEMORY_FILE") or DEFAULT_MEMORY_FILE).expanduser()

        timings = SessionTimings(
            action_delay=max(0.0, parse_float(source.get("NOVA_ACTION_DELAY_SECONDS"), 0.5)),
            recall_reply_delay=max(0.0, parse_float(source.get("NOVA_RECALL_REPLY_DELAY_SECONDS"), 0.3)),
            terminate_delay=max(0.0, parse_float(source.get("NOVA_TERMINATE_DELAY_SECONDS"), 1.5)),
            reminder_poll_interval=max(0.05, parse_float(source.get("NOVA_REMINDER_POLL_SECONDS"), 1.0)),
        )

        return AssistantConfig(
            hostname=hostname,
            assistant_name=assistant_name,
            language=source.get("NOVA_ASSISTANT_LANGUAGE"),
            mic=mic,
            phrase=phrase,
            stt_endpoint=stt_endpoint,
            tts_endpoint=tts_endpoint,
            tts_voice=source.get("NOVA_ASSISTANT_TTS_VOICE"),
            llm=llm,
            mqtt=mqtt,
            camera=camera,
            memory_file=memory_file,
            timings=timings,
            log_llm_messages=parse_bool(source.get("NOVA_ASSISTANT_LOG_LLM"), False),
        )


DEFAULT_SYSTEM_PROMPT = """You are Nova, a voice-first digital assistant. You respond only through voice; you do not show text.
Your personality is supportive, intuitive, and like a best friend who's always one step ahead.
You have a touch of wit and warmth.

KEY RULES:
- Your name is Nova. The user activates you by saying "Hello Nova".
- Your responses are for voice delivery: be conversational, concise, and engaging.
- Adapt your tone based on the user's emotional cues.
- You can analyze visual input from your camera if asked (e.g., 'What do you see?').
- For very recent events your knowledge might be limited. The system will automatically use a web search
  for certain queries.
- The user must give final confirmation for actions like sending a message or placing a call.

Do not use markdown formatting in your responses."""
