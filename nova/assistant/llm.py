"""Remote chat service (Google Gemini) and query routing."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import httpx

from .actions import render_action_instructions
from .config import LLMConfig

LOGGER = logging.getLogger(__name__)

VISUAL_KEYWORDS: tuple[str, ...] = ("see", "look at", "what is this", "describe this", "analyze this image")
SEARCH_KEYWORDS: tuple[str, ...] = ("search for", "look up", "what's the latest", "who won", "news about")

QueryKind = Literal["visual", "search", "chat"]

VISUAL_PROMPT = (
    "You are Nova, a helpful visual assistant. Your personality is supportive and friendly. "
    "Based on the user's request and the provided image, give a conversational, voice-friendly response. "
    'User request: "{prompt}"'
)
GROUNDED_PROMPT = (
    "You are Nova, a helpful assistant. Answer the following question based on your search results "
    'in a conversational, voice-friendly tone. Question: "{prompt}"'
)


class ChatServiceError(RuntimeError):
    """Generic remote chat failure."""


class ChatServiceAuthError(ChatServiceError):
    """Raised when the API key is missing or rejected."""


@dataclass(frozen=True, slots=True)
class WebSource:
    uri: str
    title: str


@dataclass
class ChatReply:
    text: str
    sources: list[WebSource] = field(default_factory=list)


class ChatService(Protocol):
    async def send_message(self, text: str) -> str: ...

    async def send_visual_query(self, text: str, image: bytes) -> str: ...

    async def send_grounded_query(self, text: str) -> ChatReply: ...


def classify_query(text: str, *, camera_available: bool) -> QueryKind:
    """Pick the service operation for ``text``; vision wins over search when a camera exists."""
    lowered = (text or "").lower()
    if camera_available and any(keyword in lowered for keyword in VISUAL_KEYWORDS):
        return "visual"
    if any(keyword in lowered for keyword in SEARCH_KEYWORDS):
        return "search"
    return "chat"


def build_system_instruction(config: LLMConfig) -> str:
    return f"{config.system_prompt.strip()}\n\n{render_action_instructions()}"


class GeminiChatService:
    """Gemini ``generateContent`` client holding one running chat history."""

    def __init__(
        self,
        config: LLMConfig,
        client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
        log_messages: bool = False,
    ) -> None:
        self.config = config
        self._logger = logger or LOGGER
        self._log_messages = log_messages
        self._client = client or httpx.AsyncClient(
            base_url=config.gemini_base_url.rstrip("/"),
            timeout=config.gemini_timeout,
        )
        self._history: list[dict[str, Any]] = []
        self.system_instruction = build_system_instruction(config)

    @property
    def history(self) -> list[dict[str, Any]]:
        return list(self._history)

    async def close(self) -> None:
        await self._client.aclose()

    async def send_message(self, text: str) -> str:
        user_turn = {"role": "user", "parts": [{"text": text}]}
        payload = {
            "contents": [*self._history, user_turn],
            "systemInstruction": {"parts": [{"text": self.system_instruction}]},
        }
        reply = _extract_text(await self._generate(payload))
        self._history.append(user_turn)
        self._history.append({"role": "model", "parts": [{"text": reply}]})
        self._log_exchange("chat", text, reply)
        return reply

    async def send_visual_query(self, text: str, image: bytes) -> str:
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"inlineData": {"mimeType": "image/jpeg", "data": base64.b64encode(image).decode("ascii")}},
                        {"text": VISUAL_PROMPT.format(prompt=text)},
                    ],
                }
            ]
        }
        reply = _extract_text(await self._generate(payload))
        self._log_exchange("visual", text, reply)
        return reply

    async def send_grounded_query(self, text: str) -> ChatReply:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": GROUNDED_PROMPT.format(prompt=text)}]}],
            "tools": [{"google_search": {}}],
        }
        parsed = await self._generate(payload)
        reply = ChatReply(text=_extract_text(parsed), sources=_extract_sources(parsed))
        self._log_exchange("search", text, reply.text)
        return reply

    async def _generate(self, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.config.gemini_api_key:
            raise ChatServiceAuthError("GEMINI_API_KEY is not set")
        model = (self.config.gemini_model or "").strip()
        if not model:
            raise ChatServiceError("GEMINI_MODEL is not set")
        try:
            response = await self._client.post(
                f"/models/{model}:generateContent",
                json=payload,
                headers={"x-goog-api-key": self.config.gemini_api_key},
            )
        except httpx.HTTPError as exc:
            raise ChatServiceError(f"Failed to contact Gemini: {exc}") from exc
        if response.status_code in (401, 403):
            raise ChatServiceAuthError("Gemini rejected the API key")
        if response.status_code >= 400:
            raise ChatServiceError(f"Gemini error {response.status_code}: {response.text[:200]}")
        try:
            parsed = response.json()
        except ValueError as exc:
            raise ChatServiceError("Gemini returned invalid JSON") from exc
        if not isinstance(parsed, dict):
            raise ChatServiceError("Gemini returned an unexpected payload")
        return parsed

    def _log_exchange(self, kind: str, prompt: str, reply: str) -> None:
        if self._log_messages:
            self._logger.info("[llm] %s prompt=%r reply=%r", kind, prompt, reply)


def _first_candidate(parsed: dict[str, Any]) -> dict[str, Any] | None:
    candidates = parsed.get("candidates") or []
    for candidate in candidates:
        if isinstance(candidate, dict):
            return candidate
    return None


def _extract_text(parsed: dict[str, Any]) -> str:
    candidate = _first_candidate(parsed)
    if candidate is not None:
        content = candidate.get("content") or {}
        parts = content.get("parts") if isinstance(content, dict) else None
        if isinstance(parts, list):
            texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
            if texts:
                return "".join(texts)

    prompt_feedback = parsed.get("promptFeedback")
    if isinstance(prompt_feedback, dict):
        block_reason = prompt_feedback.get("blockReason")
        if block_reason:
            raise ChatServiceError(f"Gemini blocked prompt: {block_reason}")
    raise ChatServiceError("Gemini response missing content")


def _extract_sources(parsed: dict[str, Any]) -> list[WebSource]:
    candidate = _first_candidate(parsed)
    if candidate is None:
        return []
    metadata = candidate.get("groundingMetadata") or {}
    chunks = metadata.get("groundingChunks") if isinstance(metadata, dict) else None
    if not isinstance(chunks, list):
        return []
    sources: list[WebSource] = []
    for chunk in chunks:
        web = chunk.get("web") if isinstance(chunk, dict) else None
        if not isinstance(web, dict):
            continue
        uri = str(web.get("uri") or "").strip()
        if not uri:
            continue
        sources.append(WebSource(uri=uri, title=str(web.get("title") or "").strip() or uri))
    return sources
