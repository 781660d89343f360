"""
Action execution against the assistant's stores and devices

Each recognised action validates its parameters, mutates the memory store or
directory, drives the camera or handoff interfaces where needed, and reports
one human-readable status line. Handlers never raise for bad input: missing or
invalid parameters become an ``ok=False`` outcome with an error message.

Outcomes also carry display effects (``show_contacts``, ``photo_captured``,
``terminate_session`` ...) which the session applies after the status message
is logged. Unknown action names are ignored without a message.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from .actions import ParsedAction
from .camera import Camera, save_capture
from .directory import Directory, DuplicateContactError
from .handoff import Handoff, looks_like_phone_number, normalize_phone_number
from .memory import MemoryStore

LOGGER = logging.getLogger(__name__)

UiEffect = Literal[
    "photo_captured",
    "photo_cleared",
    "photo_saved",
    "reminders_changed",
    "contacts_changed",
    "show_contacts",
    "memory_changed",
    "show_memory",
    "handoff",
    "terminate_session",
]

SESSION_APP_NAME = "nova"
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass
class PhotoState:
    image: bytes | None = None
    saved_to: Path | None = None

    @property
    def captured(self) -> bool:
        return self.image is not None


@dataclass
class ActionContext:
    memory: MemoryStore
    directory: Directory
    camera: Camera | None = None
    handoff: Handoff | None = None
    capture_dir: Path | None = None
    photo: PhotoState = field(default_factory=PhotoState)


@dataclass(frozen=True)
class ActionOutcome:
    action: str
    message: str
    ok: bool = True
    effects: tuple[UiEffect, ...] = ()


Handler = Callable[[ParsedAction], Awaitable[ActionOutcome | None]]


def parse_leading_int(value: str | None) -> int | None:
    """Read an integer prefix the way a lenient number parser would ("90s" -> 90)."""
    if not value:
        return None
    match = _LEADING_INT_RE.match(value)
    return int(match.group(1)) if match else None


class ActionDispatcher:
    """Route parsed actions to their handlers."""

    def __init__(
        self,
        context: ActionContext,
        *,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.context = context
        self._clock = clock or (lambda: datetime.now(UTC))
        self._logger = logger or LOGGER
        self._handlers: dict[str, Handler] = {
            "capture_photo": self._capture_photo,
            "clear_photo": self._clear_photo,
            "save_photo": self._save_photo,
            "set_reminder": self._set_reminder,
            "add_contact": self._add_contact,
            "delete_contact": self._delete_contact,
            "view_contacts": self._view_contacts,
            "remember": self._remember,
            "forget": self._forget,
            "view_memory": self._view_memory,
            "call_contact": self._reach_contact,
            "send_whatsapp": self._reach_contact,
            "open_app": self._open_app,
            "close_app": self._close_app,
        }

    @property
    def supported_actions(self) -> list[str]:
        return list(self._handlers)

    async def execute(self, action: ParsedAction) -> ActionOutcome | None:
        handler = self._handlers.get(action.name)
        if handler is None:
            self._logger.debug("[actions] Ignoring unknown action '%s'", action.name)
            return None
        outcome = await handler(action)
        if outcome is not None:
            self._logger.info("[actions] %s -> %s", action.name, "ok" if outcome.ok else "failed")
        return outcome

    # ------------------------------------------------------------------
    # Camera
    # ------------------------------------------------------------------

    async def capture_photo(self) -> ActionOutcome:
        camera = self.context.camera
        if camera is None:
            return ActionOutcome("capture_photo", "Error: Visual input component not available.", ok=False)
        try:
            image = await camera.capture()
        except Exception as exc:
            self._logger.warning("[actions] Camera capture raised: %s", exc)
            image = None
        if not image:
            return ActionOutcome("capture_photo", "Error: Could not capture visual input.", ok=False)
        self.context.photo.image = image
        return ActionOutcome("capture_photo", "Visual input captured.", effects=("photo_captured",))

    async def clear_photo(self) -> ActionOutcome | None:
        camera = self.context.camera
        if camera is None:
            return None
        camera.clear()
        self.context.photo.image = None
        return ActionOutcome(
            "clear_photo", "Visual input cleared. Resuming live feed.", effects=("photo_cleared",)
        )

    async def save_photo(self) -> ActionOutcome:
        image = self.context.photo.image
        if image is None:
            return ActionOutcome(
                "save_photo",
                "Action failed: No visual input has been captured. Please capture a photo before saving.",
                ok=False,
            )
        directory = self.context.capture_dir or Path.cwd()
        try:
            self.context.photo.saved_to = save_capture(image, directory, now=self._clock())
        except OSError as exc:
            self._logger.warning("[actions] Failed to save capture into %s: %s", directory, exc)
            return ActionOutcome("save_photo", "Action failed: Could not save the captured image.", ok=False)
        return ActionOutcome(
            "save_photo",
            "Acknowledged. Preparing secure download. Please authorize the save action in your browser.",
            effects=("photo_saved",),
        )

    async def _capture_photo(self, action: ParsedAction) -> ActionOutcome:
        return await self.capture_photo()

    async def _clear_photo(self, action: ParsedAction) -> ActionOutcome | None:
        return await self.clear_photo()

    async def _save_photo(self, action: ParsedAction) -> ActionOutcome:
        return await self.save_photo()

    # ------------------------------------------------------------------
    # Reminders and contacts
    # ------------------------------------------------------------------

    async def _set_reminder(self, action: ParsedAction) -> ActionOutcome:
        due_in_seconds = parse_leading_int(action.param("dueInSeconds"))
        message = action.param("message")
        if due_in_seconds is None or due_in_seconds <= 0 or not message:
            return ActionOutcome(action.name, "Error: Could not set reminder.", ok=False)
        try:
            self.context.directory.add_reminder(message, due_in_seconds, now=self._clock())
        except OverflowError:
            self._logger.warning("[actions] Reminder delay out of range: %s", due_in_seconds)
            return ActionOutcome(action.name, "Error: Could not set reminder.", ok=False)
        return ActionOutcome(action.name, f'Reminder set: "{message}"', effects=("reminders_changed",))

    async def _add_contact(self, action: ParsedAction) -> ActionOutcome:
        name = action.param("name")
        phone = action.param("phone")
        if not name or not phone:
            return ActionOutcome(action.name, "Error: Could not add contact.", ok=False)
        try:
            self.context.directory.add_contact(name, phone, now=self._clock())
        except DuplicateContactError:
            return ActionOutcome(action.name, f"Error: A contact named '{name}' already exists.", ok=False)
        return ActionOutcome(action.name, f"Contact '{name}' added successfully.", effects=("contacts_changed",))

    async def _delete_contact(self, action: ParsedAction) -> ActionOutcome:
        name = action.param("name")
        if not name:
            return ActionOutcome(action.name, "Error: Contact name not provided.", ok=False)
        if not self.context.directory.delete_contact(name):
            return ActionOutcome(action.name, f"Error: Contact '{name}' not found.", ok=False)
        return ActionOutcome(action.name, f"Contact '{name}' has been removed.", effects=("contacts_changed",))

    async def _view_contacts(self, action: ParsedAction) -> ActionOutcome:
        return ActionOutcome(action.name, "Displaying all saved contacts.", effects=("show_contacts",))

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    async def _remember(self, action: ParsedAction) -> ActionOutcome:
        key = action.param("key")
        value = action.param("value")
        if not key or not value:
            return ActionOutcome(action.name, "Error: Could not update memory.", ok=False)
        self.context.memory.remember(key, value)
        return ActionOutcome(
            action.name,
            f"Memory updated. I will remember that your {key} is {value}.",
            effects=("memory_changed",),
        )

    async def _forget(self, action: ParsedAction) -> ActionOutcome:
        key = action.param("key")
        if not key:
            return ActionOutcome(action.name, "Error: Key not provided.", ok=False)
        if not self.context.memory.forget(key):
            return ActionOutcome(action.name, f"Error: No information found for '{key}'.", ok=False)
        return ActionOutcome(
            action.name,
            f"Acknowledged. I have forgotten the information about '{key}'.",
            effects=("memory_changed",),
        )

    async def _view_memory(self, action: ParsedAction) -> ActionOutcome:
        entries = self.context.memory.items()
        if not entries:
            return ActionOutcome(action.name, "My memory banks are currently empty.")
        lines = "\n".join(f"• {key}: {value}" for key, value in entries)
        return ActionOutcome(action.name, f"Recalling all stored information:\n{lines}", effects=("show_memory",))

    # ------------------------------------------------------------------
    # Calls and messages
    # ------------------------------------------------------------------

    def resolve_recipient(self, recipient: str | None) -> str | None:
        """Contact name first (case-insensitive), then the recipient as a literal phone number."""
        contact = self.context.directory.find_contact(recipient)
        if contact is not None:
            return contact.phone
        if looks_like_phone_number(recipient):
            return recipient
        return None

    async def _reach_contact(self, action: ParsedAction) -> ActionOutcome:
        recipient = action.param("recipient")
        target = self.resolve_recipient(recipient)
        if not target:
            return ActionOutcome(action.name, f"Recipient '{recipient or ''}' not found or invalid.", ok=False)
        handoff = self.context.handoff
        if handoff is None:
            self._logger.warning("[actions] No telephony handoff configured for %s", action.name)
        phone_number = normalize_phone_number(target)
        if action.name == "call_contact":
            if handoff is not None:
                handoff.dial(phone_number)
            return ActionOutcome(action.name, f"Initiating call to {recipient}...", effects=("handoff",))
        if handoff is not None:
            handoff.open_chat(phone_number, action.param("message") or "")
        return ActionOutcome(
            action.name,
            "Opening WhatsApp... Please confirm and send the message in the new tab.",
            effects=("handoff",),
        )

    # ------------------------------------------------------------------
    # Apps
    # ------------------------------------------------------------------

    async def _open_app(self, action: ParsedAction) -> ActionOutcome:
        app_name = action.params_string.strip()
        if app_name.lower() == SESSION_APP_NAME:
            return ActionOutcome(action.name, "Acknowledged: This is the Nova Personal Assistant interface.")
        return ActionOutcome(action.name, f"Simulating: open_app('{app_name}')...")

    async def _close_app(self, action: ParsedAction) -> ActionOutcome:
        app_name = action.params_string.strip()
        if app_name.lower() == SESSION_APP_NAME:
            return ActionOutcome(
                action.name, "Acknowledged. Terminating Nova session.", effects=("terminate_session",)
            )
        return ActionOutcome(action.name, f"Executing: close_app('{app_name}')...")
