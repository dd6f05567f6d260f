"""Per-chat log of recent text messages used for summaries."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from .models import InboundMessage


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    message_id: str
    sender: str
    text: str
    timestamp: float


class MessageHistory:
    """Bounded ring buffer of text messages for every chat the bot sees."""

    def __init__(self, limit: int = 1000):
        self._limit = limit
        self._chats: dict[str, deque[HistoryEntry]] = {}

    def record(self, message: InboundMessage) -> None:
        text = message.body
        if not text or message.from_me:
            return
        entries = self._chats.get(message.chat_id)
        if entries is None:
            entries = deque(maxlen=self._limit)
            self._chats[message.chat_id] = entries
        entries.append(
            HistoryEntry(
                message_id=message.id,
                sender=message.sender_name or message.sender_username or message.sender_id,
                text=text,
                timestamp=message.timestamp,
            )
        )

    def last(
        self, chat_id: str, count: int, *, exclude: str | None = None
    ) -> list[HistoryEntry]:
        if count <= 0:
            return []
        entries = [entry for entry in self._chats.get(chat_id, ()) if entry.message_id != exclude]
        return entries[-count:]

    def since(
        self, chat_id: str, timestamp: float, *, exclude: str | None = None
    ) -> list[HistoryEntry]:
        return [
            entry
            for entry in self._chats.get(chat_id, ())
            if entry.timestamp >= timestamp and entry.message_id != exclude
        ]


def format_entries(entries: list[HistoryEntry]) -> str:
    return "\n".join(f">>> {entry.sender}: {entry.text}" for entry in entries)
