"""In-memory contacts and reminders owned by the assistant session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from nova.utils import epoch_millis

LOGGER = logging.getLogger(__name__)


class DuplicateContactError(ValueError):
    """Raised when a contact name collides (case-insensitively) with an existing one."""


@dataclass(frozen=True, slots=True)
class Contact:
    id: int
    name: str
    phone: str

    def to_dict(self) -> dict[str, object]:
        return {"id": self.id, "name": self.name, "phone": self.phone}


@dataclass(frozen=True, slots=True)
class Reminder:
    id: int
    text: str
    due_time: datetime

    def is_due(self, now: datetime) -> bool:
        return now >= self.due_time

    def to_dict(self) -> dict[str, object]:
        return {"id": self.id, "text": self.text, "due_time": self.due_time.isoformat()}


class Directory:
    """Contacts keyed by case-insensitive name plus reminders in creation order."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER
        self._contacts: list[Contact] = []
        self._reminders: list[Reminder] = []
        self._last_id = 0

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    @property
    def contacts(self) -> list[Contact]:
        return list(self._contacts)

    def find_contact(self, name: str | None) -> Contact | None:
        needle = (name or "").lower()
        for contact in self._contacts:
            if contact.name.lower() == needle:
                return contact
        return None

    def add_contact(self, name: str, phone: str, *, now: datetime | None = None) -> Contact:
        if self.find_contact(name) is not None:
            raise DuplicateContactError(name)
        contact = Contact(id=self._next_id(now), name=name, phone=phone)
        self._contacts.append(contact)
        self._logger.debug("[directory] Added contact %s", name)
        return contact

    def delete_contact(self, name: str) -> bool:
        needle = name.lower()
        remaining = [contact for contact in self._contacts if contact.name.lower() != needle]
        if len(remaining) == len(self._contacts):
            return False
        self._contacts = remaining
        self._logger.debug("[directory] Removed contact %s", name)
        return True

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    @property
    def reminders(self) -> list[Reminder]:
        return list(self._reminders)

    def add_reminder(self, text: str, due_in_seconds: float, *, now: datetime | None = None) -> Reminder:
        created = now or datetime.now(UTC)
        reminder = Reminder(
            id=self._next_id(created),
            text=text,
            due_time=created + timedelta(seconds=due_in_seconds),
        )
        self._reminders.append(reminder)
        self._logger.debug("[directory] Reminder %s due at %s", reminder.id, reminder.due_time.isoformat())
        return reminder

    def pop_due_reminders(self, now: datetime) -> list[Reminder]:
        """Remove and return every reminder due at ``now``, in insertion order."""
        due = [reminder for reminder in self._reminders if reminder.is_due(now)]
        if due:
            self._reminders = [reminder for reminder in self._reminders if not reminder.is_due(now)]
        return due

    def _next_id(self, now: datetime | None) -> int:
        candidate = epoch_millis(now)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return candidate
