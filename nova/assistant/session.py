"""
Conversation session: one place that owns the assistant's state

A turn runs in this order:
1. Recall: questions about remembered facts are answered from memory, even
   while a chat request is in flight
2. Busy guard: blank input, or input while a request is pending, is dropped
3. Routing: visual questions (camera present) and search questions use their
   own remote calls; everything else goes to the running chat
4. Chat replies are split into spoken text and an optional action tag; the
   action runs shortly after the confirmation starts playing

Every log entry, snapshot change and status change is mirrored to the display
publisher when one is configured.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import httpx

from .actions import ParsedAction, parse_action_reply
from .camera import Camera
from .config import SessionTimings
from .directory import Directory, Reminder
from .dispatcher import ActionContext, ActionDispatcher, ActionOutcome
from .handoff import Handoff
from .llm import ChatService, ChatServiceError, WebSource, classify_query
from .memory import MemoryStore
from .mqtt_publisher import AssistantMqttPublisher
from .recall import intercept_recall
from .reminders import format_reminder_announcement
from .speech import Speaker

LOGGER = logging.getLogger(__name__)

MessageRole = Literal["user", "assistant", "system"]
AssistantStatus = Literal["listening", "thinking", "speaking", "idle"]

REMOTE_ERROR_MESSAGE = "Error communicating with Nova Core. Please check your connection or API key."
CAMERA_ERROR_MESSAGE = "I couldn't get an image from the camera. Please try again."
VISUAL_PROGRESS_MESSAGE = "Analyzing visual input..."
SEARCH_PROGRESS_MESSAGE = "Searching the web..."


@dataclass(frozen=True, slots=True)
class Message:
    role: MessageRole
    text: str


def derive_status(*, active: bool, is_loading: bool, is_speaking: bool) -> AssistantStatus:
    if not active:
        return "idle"
    if is_loading:
        return "thinking"
    if is_speaking:
        return "speaking"
    return "listening"


class AssistantSession:
    def __init__(
        self,
        *,
        chat: ChatService,
        speaker: Speaker,
        memory: MemoryStore,
        directory: Directory | None = None,
        camera: Camera | None = None,
        handoff: Handoff | None = None,
        publisher: AssistantMqttPublisher | None = None,
        timings: SessionTimings | None = None,
        capture_dir: Path | None = None,
        on_terminate: Callable[[], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.chat = chat
        self.speaker = speaker
        self.publisher = publisher
        self.timings = timings or SessionTimings(
            action_delay=0.5, recall_reply_delay=0.3, terminate_delay=1.5, reminder_poll_interval=1.0
        )
        self._on_terminate = on_terminate
        self._logger = logger or LOGGER
        self.context = ActionContext(
            memory=memory,
            directory=directory or Directory(logger=self._logger),
            camera=camera,
            handoff=handoff,
            capture_dir=capture_dir,
        )
        self.dispatcher = ActionDispatcher(self.context, logger=self._logger)
        self.messages: list[Message] = []
        self.web_sources: list[WebSource] = []
        self.active = True
        self.is_loading = False
        self.is_speaking = False
        self._utterance = 0
        self._last_status: AssistantStatus | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def memory(self) -> MemoryStore:
        return self.context.memory

    @property
    def directory(self) -> Directory:
        return self.context.directory

    @property
    def status(self) -> AssistantStatus:
        return derive_status(active=self.active, is_loading=self.is_loading, is_speaking=self.is_speaking)

    @property
    def busy(self) -> bool:
        return self.is_loading or self.is_speaking

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def handle_user_text(self, text: str | None) -> bool:
        """Process one utterance. Returns False when it was dropped."""
        if not self.active:
            self._logger.debug("[session] Ignoring input after termination")
            return False
        hit = intercept_recall(text, self.memory)
        if hit is not None:
            self._logger.info("[session] Answered '%s' from memory", hit.key)
            self.append_message("user", text or "")
            self._spawn(self._reply_after(self.timings.recall_reply_delay, hit.reply))
            return True

        prompt = (text or "").strip()
        if not prompt:
            return False
        if self.is_loading:
            self._logger.info("[session] Dropping input while a request is pending: %s", prompt)
            return False

        self.append_message("user", prompt)
        self._set_web_sources([])
        self._set_loading(True)
        try:
            kind = classify_query(prompt, camera_available=self.context.camera is not None)
            self._logger.debug("[session] Routing %s query", kind)
            if kind == "visual":
                await self._visual_turn(prompt)
            elif kind == "search":
                await self._search_turn(prompt)
            else:
                await self._chat_turn(prompt)
        except (ChatServiceError, httpx.HTTPError) as exc:
            self._logger.error("[session] Chat service failed: %s", exc)
            self.append_message("system", REMOTE_ERROR_MESSAGE)
            self.say(REMOTE_ERROR_MESSAGE)
        finally:
            self._set_loading(False)
        return True

    async def _chat_turn(self, prompt: str) -> None:
        reply = await self.chat.send_message(prompt)
        parsed = parse_action_reply(reply)
        if parsed.visible_text:
            self.append_message("assistant", parsed.visible_text)
            self.say(parsed.visible_text)
        if parsed.action is not None:
            self._spawn(self._dispatch_after(self.timings.action_delay, parsed.action))

    async def _visual_turn(self, prompt: str) -> None:
        image = self.context.photo.image
        if image is None and self.context.camera is not None:
            try:
                image = await self.context.camera.capture()
            except Exception as exc:
                self._logger.warning("[session] Camera capture failed: %s", exc)
                image = None
        if not image:
            self.append_message("system", CAMERA_ERROR_MESSAGE)
            self.say(CAMERA_ERROR_MESSAGE)
            return
        self.append_message("system", VISUAL_PROGRESS_MESSAGE)
        reply = await self.chat.send_visual_query(prompt, image)
        self._speak_reply(reply)

    async def _search_turn(self, prompt: str) -> None:
        self.append_message("system", SEARCH_PROGRESS_MESSAGE)
        reply = await self.chat.send_grounded_query(prompt)
        self._set_web_sources(reply.sources)
        self._speak_reply(reply.text)

    def _speak_reply(self, text: str) -> None:
        visible = (text or "").strip()
        if visible:
            self.append_message("assistant", visible)
            self.say(visible)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def run_action(self, action: ParsedAction) -> ActionOutcome | None:
        """Execute ``action`` now, log its status line and apply its display effects."""
        outcome = await self.dispatcher.execute(action)
        if outcome is None:
            return None
        self.append_message("system", outcome.message)
        self._apply_effects(outcome)
        return outcome

    def _apply_effects(self, outcome: ActionOutcome) -> None:
        for effect in outcome.effects:
            if effect in ("photo_captured", "photo_cleared"):
                self._publish("publish_photo_state", self.context.photo.captured)
            elif effect == "photo_saved":
                saved_to = self.context.photo.saved_to
                self._publish("publish_ui_event", "photo_saved", path=str(saved_to) if saved_to else None)
            elif effect == "reminders_changed":
                self._publish("publish_reminders", self.directory.reminders)
            elif effect in ("contacts_changed", "show_contacts"):
                self._publish("publish_contacts", self.directory.contacts)
                if effect == "show_contacts":
                    self._publish("publish_ui_event", "show_contacts")
            elif effect in ("memory_changed", "show_memory"):
                self._publish("publish_memory", self.memory.snapshot())
                if effect == "show_memory":
                    self._publish("publish_ui_event", "show_memory")
            elif effect == "terminate_session":
                self._spawn(self._terminate_after(self.timings.terminate_delay))

    async def _dispatch_after(self, delay: float, action: ParsedAction) -> None:
        await asyncio.sleep(delay)
        await self.run_action(action)

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    async def announce_reminder(self, reminder: Reminder) -> None:
        text = format_reminder_announcement(reminder)
        self.append_message("system", text)
        self.say(text)
        self._publish("publish_reminders", self.directory.reminders)

    # ------------------------------------------------------------------
    # Log, speech and status
    # ------------------------------------------------------------------

    def append_message(self, role: MessageRole, text: str) -> Message:
        message = Message(role=role, text=text)
        self.messages.append(message)
        self._publish("publish_message", message)
        return message

    def say(self, text: str) -> asyncio.Future[None]:
        """Speak ``text``; the most recent utterance owns the speaking flag."""
        done = self.speaker.speak(text)
        if done.done():
            return done
        self._utterance += 1
        utterance = self._utterance
        self._set_speaking(True)

        def _finished(_future: asyncio.Future[None]) -> None:
            if utterance == self._utterance:
                self._set_speaking(False)

        done.add_done_callback(_finished)
        return done

    def publish_snapshot(self) -> None:
        """Publish every retained snapshot (used after the display connects)."""
        self._publish_status(force=True)
        self._publish("publish_reminders", self.directory.reminders)
        self._publish("publish_contacts", self.directory.contacts)
        self._publish("publish_memory", self.memory.snapshot())
        self._publish("publish_web_sources", self.web_sources)
        self._publish("publish_photo_state", self.context.photo.captured)

    def _set_loading(self, value: bool) -> None:
        self.is_loading = value
        self._publish_status()

    def _set_speaking(self, value: bool) -> None:
        self.is_speaking = value
        self._publish_status()

    def _set_web_sources(self, sources: list[WebSource]) -> None:
        if not sources and not self.web_sources:
            return
        self.web_sources = list(sources)
        self._publish("publish_web_sources", self.web_sources)

    def _publish_status(self, *, force: bool = False) -> None:
        status = self.status
        if status == self._last_status and not force:
            return
        self._last_status = status
        self._logger.debug("[session] Status -> %s", status)
        self._publish("publish_status", status)

    def _publish(self, method: str, *args: Any, **kwargs: Any) -> None:
        if self.publisher is None:
            return
        try:
            getattr(self.publisher, method)(*args, **kwargs)
        except Exception:
            self._logger.exception("[session] Failed to publish via %s", method)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def terminate(self) -> None:
        if not self.active:
            return
        self._logger.info("[session] Terminating session")
        self.active = False
        await self.speaker.stop()
        self.is_speaking = False
        self._publish_status()
        if self._on_terminate is not None:
            self._on_terminate()

    async def _terminate_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.terminate()

    async def _reply_after(self, delay: float, text: str) -> None:
        await asyncio.sleep(delay)
        self.append_message("system", text)
        self.say(text)

    async def wait_for_pending(self) -> None:
        """Wait for scheduled replies, actions and termination to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.speaker.stop()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)

        def _cleanup(finished: asyncio.Task) -> None:
            self._tasks.discard(finished)
            if not finished.cancelled() and finished.exception() is not None:
                self._logger.error("[session] Background step failed", exc_info=finished.exception())

        task.add_done_callback(_cleanup)
        return task
