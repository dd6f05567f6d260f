"""Delayed deletion of transient bot replies."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from .commands import AutoDeleteSettings
from .models import SentMessage
from .notify import AdminNotifier
from .structured_logging import log_event
from .telegram import MessagingAPI

DEFAULT_DELETION_TIMEOUT = 10.0

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AutoDeleteEntry:
    handle: SentMessage
    timeout_ms: int
    enqueued_at: float

    def is_due(self, now: float) -> bool:
        return (now - self.enqueued_at) * 1000 >= self.timeout_ms


class AutoDeleteQueue:
    """FIFO of sent messages waiting to be deleted.

    ``sweep`` stops at the first entry that is not due yet, so an entry with a
    longer timeout delays the ones queued after it.
    """

    def __init__(
        self,
        messaging: MessagingAPI,
        *,
        notifier: AdminNotifier | None = None,
        default_timeout_ms: int = 60_000,
        interval: float = 60.0,
        deletion_timeout: float = DEFAULT_DELETION_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._messaging = messaging
        self._notifier = notifier
        self._default_timeout_ms = default_timeout_ms
        self._interval = interval
        self._deletion_timeout = deletion_timeout
        self._clock = clock
        self._entries: deque[AutoDeleteEntry] = deque()
        self._stop_event = asyncio.Event()

    def __len__(self) -> int:
        return len(self._entries)

    def enqueue(self, handle: SentMessage, timeout_ms: int | None = None) -> None:
        self._entries.append(
            AutoDeleteEntry(
                handle=handle,
                timeout_ms=self._default_timeout_ms if timeout_ms is None else timeout_ms,
                enqueued_at=self._clock(),
            )
        )

    def track(
        self, handle: SentMessage, settings: AutoDeleteSettings, *, is_error: bool = False
    ) -> None:
        """Queue ``handle`` when the command opts into deleting this kind of reply."""

        enabled = settings.error_messages if is_error else settings.command_messages
        if enabled is True:
            self.enqueue(handle, settings.delete_timeout_ms)

    async def sweep(self, now: float | None = None) -> int:
        """Delete every due entry at the head of the queue; return how many were removed."""

        current = self._clock() if now is None else now
        removed = 0
        while self._entries and self._entries[0].is_due(current):
            entry = self._entries.popleft()
            removed += 1
            await self._delete(entry)
        if removed:
            log_event(
                "auto_delete_swept",
                level=logging.DEBUG,
                chat_id=None,
                user_id=None,
                command=None,
                outcome="success",
                latency_ms=None,
                extra={"removed": removed, "pending": len(self._entries)},
            )
        return removed

    async def run(self) -> None:
        self._stop_event.clear()
        while not self._stop_event.is_set():
            await self.sweep()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        self._stop_event.set()

    async def _delete(self, entry: AutoDeleteEntry) -> None:
        handle = entry.handle
        try:
            await asyncio.wait_for(
                self._messaging.delete_message(handle), timeout=self._deletion_timeout
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Failed to delete message %s in %s: %s", handle.message_id, handle.chat_id, exc)
            log_event(
                "auto_delete_failed",
                level=logging.WARNING,
                chat_id=handle.chat_id,
                user_id=None,
                command=None,
                outcome="error",
                latency_ms=None,
                extra={"message_id": handle.message_id, "error": str(exc) or type(exc).__name__},
            )
            if self._notifier is not None:
                await self._notifier.notify(
                    f"Failed to delete message {handle.message_id} in {handle.chat_id}: "
                    f"{str(exc) or type(exc).__name__}"
                )
