"""Entry point for every inbound message."""

from __future__ import annotations

import logging

from .auto_delete import AutoDeleteQueue
from .commands import DEFAULT_NOT_ALLOWED
from .dispatch import CommandDispatcher
from .history import MessageHistory
from .matcher import CommandMatcher
from .models import CommandInput, InboundMessage
from .sessions import SessionStore
from .structured_logging import log_event
from .telegram import MessagingAPI
from .wizard import SummaryConfigWizard

logger = logging.getLogger(__name__)


class MessageRouter:
    """Send each message to the active wizard or to the matched command.

    Messages from the same user are handled one at a time, in arrival order,
    under that user's session lock.
    """

    def __init__(
        self,
        *,
        messaging: MessagingAPI,
        sessions: SessionStore,
        wizard: SummaryConfigWizard,
        matcher: CommandMatcher,
        dispatcher: CommandDispatcher,
        history: MessageHistory,
        auto_delete: AutoDeleteQueue,
        not_allowed_message: str = DEFAULT_NOT_ALLOWED,
    ) -> None:
        self._messaging = messaging
        self._sessions = sessions
        self._wizard = wizard
        self._matcher = matcher
        self._dispatcher = dispatcher
        self._history = history
        self._auto_delete = auto_delete
        self._not_allowed_message = not_allowed_message

    async def route(self, message: InboundMessage) -> None:
        if message.from_me:
            return
        log_event(
            "message_received",
            level=logging.DEBUG,
            chat_id=message.chat_id,
            user_id=message.sender_id,
            command=None,
            outcome=message.kind,
            latency_ms=None,
        )
        self._history.record(message)

        async with self._sessions.lock(message.sender_id):
            try:
                await self._route_locked(message)
            except Exception:
                logger.exception(
                    "Failed to route message %s from %s", message.id, message.sender_id
                )

    async def _route_locked(self, message: InboundMessage) -> None:
        session = self._sessions.get(message.sender_id)
        if session is not None:
            if self._sessions.is_expired(session):
                await self._wizard.expire(session, message)
                return
            await self._wizard.handle(session, message)
            return

        descriptor = await self._matcher.match(message)
        if descriptor is None:
            return

        contact = await self._messaging.get_contact(message)
        chat = await self._messaging.get_chat(message)
        if not self._matcher.is_allowed(descriptor, contact, chat):
            log_event(
                "command_denied",
                level=logging.INFO,
                chat_id=message.chat_id,
                user_id=message.sender_id,
                command=descriptor.name.value,
                outcome="denied",
                latency_ms=None,
            )
            text = descriptor.error_messages.get("notAllowed") or self._not_allowed_message
            handle = await self._messaging.reply(message, text)
            self._auto_delete.track(handle, descriptor.auto_delete, is_error=True)
            return

        log_event(
            "command_matched",
            level=logging.INFO,
            chat_id=message.chat_id,
            user_id=message.sender_id,
            command=descriptor.name.value,
            outcome="matched",
            latency_ms=None,
        )
        await self._messaging.send_typing(chat)
        await self._dispatcher.dispatch(descriptor, CommandInput(message))
