"""Resolve inbound messages to command descriptors and check who may run them."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence

from .commands import ALL_CHATS, CommandDescriptor, CommandName, validate_descriptor
from .config import AdminIdentity
from .errors import ConfigurationError, GroupAssistantError
from .models import Chat, Contact, InboundMessage
from .structured_logging import log_event
from .telegram import MessagingAPI

TRIGGER_CHARACTER = "#"
SUMMARY_SHORTCUT = "#resumo"

logger = logging.getLogger(__name__)


def sticker_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def prefix_matches(text: str, prefix: str) -> bool:
    lowered = text.lower()
    candidate = prefix.lower()
    return lowered == candidate or lowered.startswith(candidate + " ")


class CommandMatcher:
    """Pick at most one command for a message.

    Stickers are matched by the SHA-256 of their bytes and never fall through
    to prefix matching. Text is matched against each descriptor's prefixes in
    declared order, then falls back to the free-form question command when it
    starts with ``#``. Descriptors failing validation are skipped.
    """

    def __init__(
        self,
        descriptors: Sequence[CommandDescriptor],
        messaging: MessagingAPI,
        *,
        admin: AdminIdentity | None = None,
    ) -> None:
        self._descriptors = tuple(descriptors)
        self._messaging = messaging
        self._admin = admin or AdminIdentity()

    @property
    def descriptors(self) -> tuple[CommandDescriptor, ...]:
        return self._descriptors

    def descriptor(self, name: CommandName) -> CommandDescriptor | None:
        for descriptor in self._descriptors:
            if descriptor.name is name:
                return descriptor
        return None

    async def match(self, message: InboundMessage) -> CommandDescriptor | None:
        if message.kind == "sticker":
            return await self._match_sticker(message)
        return self._match_text(message.body)

    async def _match_sticker(self, message: InboundMessage) -> CommandDescriptor | None:
        if not message.has_media:
            return None
        try:
            data = await self._messaging.download_media(message)
        except GroupAssistantError as exc:
            logger.error("Error downloading sticker %s: %s", message.id, exc)
            return None
        digest = sticker_digest(data)
        logger.debug("Calculated sticker hash: %s", digest)
        for descriptor in self._descriptors:
            if descriptor.matches_sticker(digest) and self._is_valid(descriptor, message):
                return descriptor
        return None

    def _match_text(self, text: str) -> CommandDescriptor | None:
        if not text:
            return None
        lowered = text.lower()
        for descriptor in self._descriptors:
            if descriptor.name is CommandName.RESUMO and lowered == SUMMARY_SHORTCUT:
                if self._is_valid(descriptor):
                    return descriptor
                continue
            prefixes = descriptor.prefixes
            if isinstance(prefixes, str) or not isinstance(prefixes, Sequence):
                self._is_valid(descriptor)
                continue
            for prefix in prefixes:
                if isinstance(prefix, str) and prefix and prefix_matches(text, prefix):
                    if self._is_valid(descriptor):
                        return descriptor
                    break

        if text.startswith(TRIGGER_CHARACTER):
            fallback = self.descriptor(CommandName.CHAT_GPT)
            if fallback is not None and self._is_valid(fallback):
                return fallback
        return None

    def _is_valid(
        self, descriptor: CommandDescriptor, message: InboundMessage | None = None
    ) -> bool:
        try:
            validate_descriptor(descriptor)
        except ConfigurationError as exc:
            logger.error("%s", exc)
            log_event(
                "command_rejected",
                level=logging.ERROR,
                chat_id=message.chat_id if message else None,
                user_id=message.sender_id if message else None,
                command=descriptor.name.value,
                outcome="invalid_config",
                latency_ms=None,
                extra={"reason": exc.reason},
            )
            return False
        return True

    def is_admin(self, contact: Contact, chat: Chat) -> bool:
        if self._admin.matches(contact.id, contact.username):
            return True
        # Private chats share their id with the user.
        return not chat.is_group and self._admin.matches(chat.id)

    def is_allowed(self, descriptor: CommandDescriptor, contact: Contact, chat: Chat) -> bool:
        if self.is_admin(contact, chat):
            return True
        allowed_in = descriptor.permissions.allowed_in
        if allowed_in == ALL_CHATS:
            return True
        if isinstance(allowed_in, str):
            return False
        allowed = set(allowed_in)
        if chat.is_group:
            return chat.title is not None and chat.title in allowed
        if contact.id in allowed:
            return True
        return any(
            f"dm.{name}" in allowed
            for name in (contact.username, contact.display_name)
            if name
        )
