from __future__ import annotations

import asyncio

import pytest

from fakes import DummyMessaging, DummyNotifier, FakeClock
from group_assistant.auto_delete import AutoDeleteEntry, AutoDeleteQueue
from group_assistant.commands import AutoDeleteSettings
from group_assistant.models import SentMessage


def _handle(message_id: str) -> SentMessage:
    return SentMessage(chat_id="-100", message_id=message_id)


def _queue(
    messaging: DummyMessaging, clock: FakeClock, notifier: DummyNotifier | None = None
) -> AutoDeleteQueue:
    return AutoDeleteQueue(
        messaging, notifier=notifier, default_timeout_ms=60_000, clock=clock
    )


def test_entry_is_due_at_exact_timeout() -> None:
    entry = AutoDeleteEntry(handle=_handle("1"), timeout_ms=1_500, enqueued_at=10.0)

    assert not entry.is_due(11.499)
    assert entry.is_due(11.5)


@pytest.mark.asyncio
async def test_sweep_deletes_only_due_entries() -> None:
    messaging = DummyMessaging()
    clock = FakeClock()
    queue = _queue(messaging, clock)

    queue.enqueue(_handle("1"))
    clock.advance(30)
    queue.enqueue(_handle("2"))

    clock.advance(30)
    assert await queue.sweep() == 1
    assert [handle.message_id for handle in messaging.deleted] == ["1"]
    assert len(queue) == 1

    clock.advance(30)
    assert await queue.sweep() == 1
    assert [handle.message_id for handle in messaging.deleted] == ["1", "2"]
    assert len(queue) == 0


@pytest.mark.asyncio
async def test_sweep_stops_at_first_pending_entry() -> None:
    messaging = DummyMessaging()
    clock = FakeClock()
    queue = _queue(messaging, clock)

    queue.enqueue(_handle("slow"), timeout_ms=120_000)
    queue.enqueue(_handle("fast"), timeout_ms=1_000)

    assert await queue.sweep(now=clock.now + 60) == 0
    assert messaging.deleted == []
    assert await queue.sweep(now=clock.now + 120) == 2


@pytest.mark.asyncio
async def test_failed_deletion_is_dropped_and_reported() -> None:
    messaging = DummyMessaging()
    messaging.fail_delete.add("1")
    notifier = DummyNotifier()
    clock = FakeClock()
    queue = _queue(messaging, clock, notifier)

    queue.enqueue(_handle("1"), timeout_ms=0)
    queue.enqueue(_handle("2"), timeout_ms=0)

    assert await queue.sweep() == 2
    assert [handle.message_id for handle in messaging.deleted] == ["2"]
    assert len(queue) == 0
    assert notifier.texts == ["Failed to delete message 1 in -100: cannot delete 1"]


@pytest.mark.asyncio
async def test_deletion_timeout_counts_as_failure() -> None:
    class HangingMessaging(DummyMessaging):
        async def delete_message(self, handle: SentMessage) -> None:
            await asyncio.sleep(10)

    notifier = DummyNotifier()
    queue = AutoDeleteQueue(
        HangingMessaging(), notifier=notifier, deletion_timeout=0.01, clock=FakeClock()
    )
    queue.enqueue(_handle("1"), timeout_ms=0)

    assert await queue.sweep() == 1
    assert notifier.texts == ["Failed to delete message 1 in -100: TimeoutError"]


def test_track_respects_command_settings() -> None:
    clock = FakeClock()
    queue = _queue(DummyMessaging(), clock)
    settings = AutoDeleteSettings(command_messages=False, error_messages=True, delete_timeout_ms=5)

    queue.track(_handle("ok"), settings)
    assert len(queue) == 0

    queue.track(_handle("err"), settings, is_error=True)
    assert len(queue) == 1


@pytest.mark.asyncio
async def test_track_uses_command_timeout() -> None:
    messaging = DummyMessaging()
    clock = FakeClock()
    queue = _queue(messaging, clock)

    queue.track(_handle("1"), AutoDeleteSettings(command_messages=True, delete_timeout_ms=2_000))

    assert await queue.sweep(now=clock.now + 1) == 0
    assert await queue.sweep(now=clock.now + 2) == 1


@pytest.mark.asyncio
async def test_run_sweeps_until_stopped() -> None:
    messaging = DummyMessaging()
    queue = AutoDeleteQueue(messaging, interval=0.01, clock=FakeClock())
    queue.enqueue(_handle("1"), timeout_ms=0)

    task = asyncio.create_task(queue.run())
    for _ in range(100):
        if messaging.deleted:
            break
        await asyncio.sleep(0.01)
    queue.stop()
    await asyncio.wait_for(task, timeout=1)

    assert [handle.message_id for handle in messaging.deleted] == ["1"]
