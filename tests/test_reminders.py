"""Tests for reminder polling."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from nova.assistant.reminders import ReminderScheduler, format_reminder_announcement

pytestmark = pytest.mark.anyio


class TestReminderScheduler:
    def _make_scheduler(self, directory, now, **kwargs):
        notifier = AsyncMock()
        scheduler = ReminderScheduler(directory=directory, notifier=notifier, clock=lambda: now, **kwargs)
        return scheduler, notifier

    async def test_tick_fires_due_reminders_in_order(self, directory, fixed_now):
        first = directory.add_reminder("first", 5, now=fixed_now)
        second = directory.add_reminder("second", 10, now=fixed_now)
        directory.add_reminder("later", 600, now=fixed_now)
        scheduler, notifier = self._make_scheduler(directory, fixed_now)

        fired = await scheduler.tick(fixed_now + timedelta(seconds=30))

        assert fired == [first, second]
        assert [call.args[0] for call in notifier.await_args_list] == [first, second]
        assert [reminder.text for reminder in directory.reminders] == ["later"]

    async def test_tick_never_fires_early(self, directory, fixed_now):
        directory.add_reminder("soon", 5, now=fixed_now)
        scheduler, notifier = self._make_scheduler(directory, fixed_now)

        assert await scheduler.tick(fixed_now + timedelta(seconds=4)) == []
        notifier.assert_not_awaited()

    async def test_tick_uses_clock_by_default(self, directory, fixed_now):
        directory.add_reminder("now", 1, now=fixed_now)
        scheduler, notifier = self._make_scheduler(directory, fixed_now + timedelta(seconds=1))
        await scheduler.tick()
        notifier.assert_awaited_once()

    async def test_notifier_failure_does_not_stop_other_reminders(self, directory, fixed_now, mock_logger):
        directory.add_reminder("a", 1, now=fixed_now)
        directory.add_reminder("b", 1, now=fixed_now)
        scheduler, notifier = self._make_scheduler(directory, fixed_now, logger=mock_logger)
        notifier.side_effect = [RuntimeError("speaker down"), None]

        fired = await scheduler.tick(fixed_now + timedelta(seconds=2))

        assert len(fired) == 2
        assert notifier.await_count == 2
        mock_logger.exception.assert_called_once()

    async def test_start_polls_until_stopped(self, directory, fixed_now):
        directory.add_reminder("tea", 1, now=fixed_now)
        scheduler, notifier = self._make_scheduler(directory, fixed_now + timedelta(seconds=5), poll_interval=0.01)

        scheduler.start()
        assert scheduler.running
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert not scheduler.running
        notifier.assert_awaited_once()

    async def test_start_is_idempotent(self, directory, fixed_now):
        scheduler, _ = self._make_scheduler(directory, fixed_now, poll_interval=0.01)
        scheduler.start()
        task = scheduler._task
        scheduler.start()
        assert scheduler._task is task
        await scheduler.stop()

    async def test_stop_without_start(self, directory, fixed_now):
        scheduler, _ = self._make_scheduler(directory, fixed_now)
        await scheduler.stop()


def test_format_reminder_announcement(directory, fixed_now):
    reminder = directory.add_reminder("take the bins out", 60, now=fixed_now)
    assert format_reminder_announcement(reminder) == "REMINDER: take the bins out"
