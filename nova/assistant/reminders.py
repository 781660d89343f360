"""
Reminder polling

Reminders live in the session's ``Directory``; this module only watches the
clock. Once per poll interval every reminder whose due time has passed is
removed (in creation order) and handed to the notifier, which logs
``REMINDER: <text>`` and speaks it.

Firing is best effort: a reminder fires on the first poll at or after its due
time, never before it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .directory import Directory, Reminder

LOGGER = logging.getLogger(__name__)

ReminderCallback = Callable[[Reminder], Awaitable[None]]


def format_reminder_announcement(reminder: Reminder) -> str:
    return f"REMINDER: {reminder.text}"


@dataclass
class ReminderScheduler:
    directory: Directory
    notifier: ReminderCallback
    poll_interval: float = 1.0
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(UTC))
    logger: logging.Logger = field(default=LOGGER)
    _task: asyncio.Task | None = field(default=None, init=False)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def tick(self, now: datetime | None = None) -> list[Reminder]:
        """Fire every due reminder and return them."""
        due = self.directory.pop_due_reminders(now or self.clock())
        for reminder in due:
            self.logger.info("[reminders] Reminder %s due: %s", reminder.id, reminder.text)
            try:
                await self.notifier(reminder)
            except Exception:
                self.logger.exception("[reminders] Notifier failed for reminder %s", reminder.id)
        return due

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.tick()
