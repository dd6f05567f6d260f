from __future__ import annotations

import logging
from typing import Protocol

from .errors import GroupAssistantError
from .structured_logging import log_event, mask_bot_token

logger = logging.getLogger(__name__)


class AdminNotifier(Protocol):
    async def notify(self, text: str) -> None: ...


class _TextSender(Protocol):
    async def send_message(self, chat_id: str, text: str) -> object: ...


class ChatAdminNotifier:
    """Best-effort delivery of operational messages to the admin chat."""

    def __init__(self, messaging: _TextSender, admin_chat_id: str | None):
        self._messaging = messaging
        self._admin_chat_id = admin_chat_id

    async def notify(self, text: str) -> None:
        text = mask_bot_token(text)
        if not self._admin_chat_id:
            logger.info("Admin notification skipped, no admin chat configured: %s", text)
            return
        try:
            await self._messaging.send_message(self._admin_chat_id, text)
        except GroupAssistantError as exc:
            log_event(
                "admin_notify_failed",
                level=logging.WARNING,
                chat_id=self._admin_chat_id,
                user_id=None,
                command=None,
                outcome="error",
                latency_ms=None,
                extra={"error": str(exc)},
            )
