"""Run command handlers behind an error boundary."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import assert_never

from .auto_delete import AutoDeleteQueue
from .commands import CommandDescriptor, CommandName
from .handlers import CommandHandlers
from .models import CommandInput
from .notify import AdminNotifier
from .structured_logging import log_event
from .telegram import MessagingAPI

_FALLBACK_ERROR = "Ocorreu um erro ao processar seu comando."

logger = logging.getLogger(__name__)


class CommandDispatcher:
    """Route a matched command to its handler.

    Handler exceptions never escape :meth:`dispatch`: the user gets the
    command's generic error text and the admin gets the exception message.
    """

    def __init__(
        self,
        handlers: CommandHandlers,
        messaging: MessagingAPI,
        auto_delete: AutoDeleteQueue,
        notifier: AdminNotifier,
    ) -> None:
        self._handlers = handlers
        self._messaging = messaging
        self._auto_delete = auto_delete
        self._notifier = notifier

    async def dispatch(self, descriptor: CommandDescriptor, command: CommandInput) -> bool:
        started = time.perf_counter()
        try:
            await self._run(descriptor, command)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._report_failure(descriptor, command, exc, started)
            return False

        log_event(
            "command_completed",
            level=logging.INFO,
            chat_id=command.message.chat_id,
            user_id=command.message.sender_id,
            command=descriptor.name.value,
            outcome="success",
            latency_ms=(time.perf_counter() - started) * 1000,
        )
        return True

    async def _run(self, descriptor: CommandDescriptor, command: CommandInput) -> None:
        handlers = self._handlers
        name = descriptor.name
        match name:
            case CommandName.COMMAND_LIST:
                await handlers.command_list(descriptor, command)
            case CommandName.RESUMO:
                await handlers.resumo(descriptor, command)
            case CommandName.NEWS:
                await handlers.news(descriptor, command)
            case CommandName.STICKER:
                await handlers.sticker(descriptor, command)
            case CommandName.DESENHO:
                await handlers.desenho(descriptor, command)
            case CommandName.AUDIO:
                await handlers.audio(descriptor, command)
            case CommandName.RESUMO_CONFIG:
                await handlers.resumo_config(descriptor, command)
            case CommandName.CHAT_GPT:
                await handlers.chat_gpt(descriptor, command)
            case _:
                assert_never(name)

    async def _report_failure(
        self,
        descriptor: CommandDescriptor,
        command: CommandInput,
        exc: Exception,
        started: float,
    ) -> None:
        message = command.message
        name = descriptor.name.value
        logger.exception("Error in %s handler for %s in %s", name, message.sender_id, message.chat_id)
        log_event(
            "command_failed",
            level=logging.ERROR,
            chat_id=message.chat_id,
            user_id=message.sender_id,
            command=name,
            outcome="error",
            latency_ms=(time.perf_counter() - started) * 1000,
            extra={"error": str(exc) or type(exc).__name__},
        )

        try:
            handle = await self._messaging.reply(
                message, descriptor.error_messages.get("error") or _FALLBACK_ERROR
            )
            self._auto_delete.track(handle, descriptor.auto_delete, is_error=True)
        except Exception:
            logger.exception("Failed to send error reply for %s", name)

        try:
            await self._notifier.notify(f"Error in {name} handler: {exc}")
        except Exception:
            logger.exception("Failed to notify admin about %s failure", name)
