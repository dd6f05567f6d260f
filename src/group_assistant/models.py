"""Data models used across the assistant."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

MessageKind = Literal["text", "sticker", "audio", "voice", "photo", "video", "document", "other"]

AUDIO_KINDS: frozenset[str] = frozenset({"audio", "voice"})


@dataclass(slots=True)
class Contact:
    """Author of an inbound message."""

    id: str
    username: str | None = None
    display_name: str | None = None

    @property
    def name(self) -> str:
        return self.display_name or self.username or self.id


@dataclass(slots=True)
class Chat:
    """Conversation an inbound message belongs to."""

    id: str
    title: str | None = None
    is_group: bool = False


@dataclass(slots=True)
class InboundMessage:
    """Transport-neutral view of a received message."""

    id: str
    chat_id: str
    sender_id: str
    text: str = ""
    kind: MessageKind = "text"
    media_file_id: str | None = None
    quoted: InboundMessage | None = None
    timestamp: float = 0.0
    from_me: bool = False
    sender_username: str | None = None
    sender_name: str | None = None
    chat_title: str | None = None
    is_group: bool = False
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def has_media(self) -> bool:
        return self.media_file_id is not None

    @property
    def body(self) -> str:
        return self.text.strip()


@dataclass(frozen=True, slots=True)
class SentMessage:
    """Handle of a message the bot has sent."""

    chat_id: str
    message_id: str


@dataclass(frozen=True, slots=True)
class OutgoingMedia:
    """Binary payload attached to a reply."""

    data: bytes
    mime_type: str
    filename: str
    as_sticker: bool = False


@dataclass(frozen=True, slots=True)
class CommandInput:
    """A message resolved for command handling, optionally with rewritten text."""

    message: InboundMessage
    override_text: str | None = None

    @property
    def text(self) -> str:
        if self.override_text is not None:
            return self.override_text.strip()
        return self.message.body

    @property
    def words(self) -> list[str]:
        return self.text.split()

    @property
    def argument(self) -> str:
        """Text after the first word, i.e. after the command prefix."""

        _, _, rest = self.text.partition(" ")
        return rest.strip()


@dataclass(frozen=True, slots=True)
class QuietTime:
    start: str
    end: str


@dataclass(slots=True)
class GroupSummaryConfig:
    """Periodic summary settings for a single group."""

    enabled: bool
    interval_hours: int
    quiet_time: QuietTime
    delete_after: int | None
    prompt: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "intervalHours": self.interval_hours,
            "quietTime": {"start": self.quiet_time.start, "end": self.quiet_time.end},
            "deleteAfter": self.delete_after,
            "prompt": self.prompt,
        }


@dataclass(frozen=True, slots=True)
class SummaryDefaults:
    """Fallback values used when a group is configured with defaults."""

    interval_hours: int = 3
    quiet_time: QuietTime = QuietTime("22:00", "08:00")
    delete_after: int | None = None
    prompt: str = (
        "Faça um resumo conciso das mensagens do grupo nas últimas horas, "
        "destacando os principais assuntos, decisões e links compartilhados."
    )
    model: str = "gpt-4o-mini"
