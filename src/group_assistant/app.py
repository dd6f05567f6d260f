"""Application bootstrap for the group assistant bot."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp
from openai import AsyncOpenAI

from .ai import OpenAICompletion, OpenAIImageGenerator, OpenAITranscriber
from .auto_delete import AutoDeleteQueue
from .config import BotConfig
from .dispatch import CommandDispatcher
from .handlers import CommandHandlers
from .history import MessageHistory
from .matcher import CommandMatcher
from .news import RssNewsSource
from .notify import ChatAdminNotifier
from .pages import HttpPageFetcher
from .prompts import PromptBook
from .router import MessageRouter
from .sessions import SessionStore
from .summary_store import SummaryConfigStore
from .telegram import TelegramAPI, parse_message
from .wizard import SummaryConfigWizard

logger = logging.getLogger(__name__)


class GroupAssistantApp:
    """High level coordinator wiring the transport, the router and the sweeper."""

    def __init__(self, config: BotConfig):
        if not config.openai_api_key:
            raise ValueError(
                "Configuration field 'openai_api_key' is required (or set OPENAI_API_KEY)"
            )
        self._config = config
        self._offset = 0
        self._running = True
        self._inflight: set[asyncio.Task[None]] = set()

    async def run(self) -> None:
        config = self._config
        async with aiohttp.ClientSession() as session:
            telegram = TelegramAPI(config.telegram_token, session)
            router, auto_delete = self._build(telegram, session)

            poll_task = asyncio.create_task(
                self._supervise("telegram-updates", lambda: self._poll_updates(telegram, router)),
                name="telegram-updates-supervisor",
            )
            sweep_task = asyncio.create_task(
                self._supervise("auto-delete", auto_delete.run),
                name="auto-delete-supervisor",
            )
            try:
                await asyncio.gather(poll_task, sweep_task)
            finally:
                auto_delete.stop()
                for task in (poll_task, sweep_task, *self._inflight):
                    task.cancel()

    def stop(self) -> None:
        self._running = False

    def _build(
        self, telegram: TelegramAPI, session: aiohttp.ClientSession
    ) -> tuple[MessageRouter, AutoDeleteQueue]:
        config = self._config
        client = AsyncOpenAI(api_key=config.openai_api_key)
        notifier = ChatAdminNotifier(telegram, config.admin.user_id)
        prompts = PromptBook(config.prompts, personalities=config.group_personalities)
        completion = OpenAICompletion(client, model=config.completion_model)
        sessions = SessionStore(ttl=config.session_ttl_minutes * 60)
        store = SummaryConfigStore(config.summary_store, config.summary_defaults)
        auto_delete = AutoDeleteQueue(
            telegram,
            notifier=notifier,
            default_timeout_ms=config.message_delete_timeout_ms,
            interval=config.sweep_interval,
        )
        history = MessageHistory(config.history_limit)
        matcher = CommandMatcher(config.commands, telegram, admin=config.admin)
        wizard = SummaryConfigWizard(sessions, store, completion, prompts, telegram, notifier)
        handlers = CommandHandlers(
            messaging=telegram,
            completion=completion,
            transcriber=OpenAITranscriber(client, model=config.transcription_model),
            images=OpenAIImageGenerator(client, model=config.image_model),
            news=RssNewsSource(
                session, feed_url=config.news_feed_url, search_url=config.news_search_url
            ),
            pages=HttpPageFetcher(session),
            history=history,
            prompts=prompts,
            auto_delete=auto_delete,
            matcher=matcher,
            wizard=wizard,
        )
        dispatcher = CommandDispatcher(handlers, telegram, auto_delete, notifier)
        router = MessageRouter(
            messaging=telegram,
            sessions=sessions,
            wizard=wizard,
            matcher=matcher,
            dispatcher=dispatcher,
            history=history,
            auto_delete=auto_delete,
            not_allowed_message=config.not_allowed_message,
        )
        return router, auto_delete

    async def _poll_updates(self, telegram: TelegramAPI, router: MessageRouter) -> None:
        while self._running:
            updates = await telegram.get_updates(self._offset or None, timeout=25)
            for update in updates:
                self._offset = max(self._offset, int(update.get("update_id", 0)) + 1)
                self._handle_update(update, router)

    def _handle_update(self, update: dict[str, Any], router: MessageRouter) -> None:
        payload = update.get("message")
        if not isinstance(payload, dict):
            return
        message = parse_message(payload)
        if message is None:
            return
        # Routed concurrently; the router serializes per user.
        task = asyncio.create_task(router.route(message), name=f"route-{message.id}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _supervise(
        self,
        name: str,
        factory: Callable[[], Awaitable[None]],
        *,
        retry_delay: float = 5.0,
    ) -> None:
        while self._running:
            try:
                await factory()
            except asyncio.CancelledError:
                logger.info("Task %s stopped", name)
                raise
            except Exception:
                logger.exception("Task %s failed", name)
            else:
                if not self._running:
                    return
                logger.warning("Task %s exited unexpectedly, restarting", name)
            await asyncio.sleep(retry_delay)


async def run_bot(config: BotConfig) -> None:
    app = GroupAssistantApp(config)
    await app.run()
