from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

import pytest

from fakes import (
    DummyImages,
    DummyMessaging,
    DummyNews,
    DummyNotifier,
    DummyPages,
    DummyTranscriber,
    FakeClock,
    FakeCompletion,
    make_message,
)
from group_assistant.auto_delete import AutoDeleteQueue
from group_assistant.commands import DEFAULT_COMMANDS
from group_assistant.config import AdminIdentity
from group_assistant.dispatch import CommandDispatcher
from group_assistant.handlers import CommandHandlers
from group_assistant.history import MessageHistory
from group_assistant.matcher import CommandMatcher
from group_assistant.prompts import PromptBook, merge_prompts
from group_assistant.router import MessageRouter
from group_assistant.sessions import SessionStore, WizardState
from group_assistant.summary_store import SummaryConfigStore
from group_assistant.wizard import EXPIRED_TEXT, SummaryConfigWizard

ADMIN_ID = "1"


@dataclass
class Harness:
    router: MessageRouter
    messaging: DummyMessaging
    sessions: SessionStore
    history: MessageHistory
    completion: FakeCompletion
    queue: AutoDeleteQueue
    clock: FakeClock


def build(tmp_path: Path, completion: FakeCompletion | None = None) -> Harness:
    messaging = DummyMessaging()
    notifier = DummyNotifier()
    clock = FakeClock()
    completion = completion or FakeCompletion()
    prompts = PromptBook(merge_prompts(None))
    sessions = SessionStore(ttl=30 * 60, clock=clock)
    history = MessageHistory()
    queue = AutoDeleteQueue(messaging, notifier=notifier, clock=clock)
    matcher = CommandMatcher(DEFAULT_COMMANDS, messaging, admin=AdminIdentity(user_id=ADMIN_ID))
    wizard = SummaryConfigWizard(
        sessions,
        SummaryConfigStore(tmp_path / "summary.json"),
        completion,
        prompts,
        messaging,
        notifier,
    )
    handlers = CommandHandlers(
        messaging=messaging,
        completion=completion,
        transcriber=DummyTranscriber(),
        images=DummyImages(),
        news=DummyNews(),
        pages=DummyPages(),
        history=history,
        prompts=prompts,
        auto_delete=queue,
        matcher=matcher,
        wizard=wizard,
        clock=clock,
        temp_dir=tmp_path,
    )
    dispatcher = CommandDispatcher(handlers, messaging, queue, notifier)
    router = MessageRouter(
        messaging=messaging,
        sessions=sessions,
        wizard=wizard,
        matcher=matcher,
        dispatcher=dispatcher,
        history=history,
        auto_delete=queue,
    )
    return Harness(router, messaging, sessions, history, completion, queue, clock)


@pytest.mark.asyncio
async def test_plain_text_is_only_recorded(tmp_path: Path) -> None:
    h = build(tmp_path)

    await h.router.route(make_message("bom dia", chat="-100", is_group=True, title="G"))

    assert h.messaging.replies == []
    assert [entry.text for entry in h.history.last("-100", 10)] == ["bom dia"]


@pytest.mark.asyncio
async def test_own_messages_are_ignored(tmp_path: Path) -> None:
    h = build(tmp_path)
    message = make_message("#oi")
    message.from_me = True

    await h.router.route(message)

    assert h.messaging.replies == []
    assert h.history.last(message.chat_id, 10) == []


@pytest.mark.asyncio
async def test_command_is_dispatched_with_typing_indicator(tmp_path: Path) -> None:
    h = build(tmp_path, FakeCompletion("resposta pronta"))

    await h.router.route(make_message("#como vai?", user="5"))

    assert h.messaging.typing == ["5"]
    assert h.messaging.texts == ["resposta pronta"]


@pytest.mark.asyncio
async def test_denied_command_gets_not_allowed_reply(tmp_path: Path) -> None:
    h = build(tmp_path)

    await h.router.route(make_message("#ferramentaresumo", user="5"))

    assert h.messaging.texts == ["Você não tem permissão para usar este comando."]
    assert h.sessions.get("5") is None
    assert h.messaging.typing == []
    assert len(h.queue) == 1


@pytest.mark.asyncio
async def test_active_session_captures_messages(tmp_path: Path) -> None:
    h = build(tmp_path)

    await h.router.route(make_message("#ferramentaresumo", user=ADMIN_ID))
    await h.router.route(make_message("#resumo", user=ADMIN_ID))

    session = h.sessions.get(ADMIN_ID)
    assert session is not None
    assert session.state is WizardState.AWAITING_GROUP_NAME
    assert "sem prefixos de comando" in (h.messaging.texts[-1] or "")
    assert h.completion.calls == []


@pytest.mark.asyncio
async def test_expired_session_is_dropped_on_next_message(tmp_path: Path) -> None:
    h = build(tmp_path)
    await h.router.route(make_message("#ferramentaresumo", user=ADMIN_ID))
    await h.router.route(make_message("Amigos", user=ADMIN_ID))

    h.clock.advance(30 * 60 + 1)
    await h.router.route(make_message("2", user=ADMIN_ID))

    assert h.sessions.get(ADMIN_ID) is None
    assert h.messaging.texts[-1] == EXPIRED_TEXT

    await h.router.route(make_message("#qual o clima?", user=ADMIN_ID))
    assert h.completion.calls != []


@pytest.mark.asyncio
async def test_messages_of_one_user_are_serialized(tmp_path: Path) -> None:
    h = build(tmp_path)
    await h.router.route(make_message("#ferramentaresumo", user=ADMIN_ID))
    h.messaging.reply_delay = 0.01

    await asyncio.gather(
        h.router.route(make_message("Amigos", user=ADMIN_ID)),
        h.router.route(make_message("2", user=ADMIN_ID)),
        h.router.route(make_message("4", user=ADMIN_ID)),
    )

    session = h.sessions.get(ADMIN_ID)
    assert session is not None
    assert session.state is WizardState.AWAITING_QUIET_START
    assert session.data.group_name == "Amigos"
    assert session.data.interval_hours == 4


@pytest.mark.asyncio
async def test_sessions_of_different_users_are_independent(tmp_path: Path) -> None:
    h = build(tmp_path)
    await h.router.route(make_message("#ferramentaresumo", user=ADMIN_ID))

    await h.router.route(make_message("#qual o clima?", user="5"))

    session = h.sessions.get(ADMIN_ID)
    assert session is not None and session.state is WizardState.AWAITING_GROUP_NAME
    assert len(h.completion.calls) == 1


@pytest.mark.asyncio
async def test_lock_map_does_not_grow_with_senders(tmp_path: Path) -> None:
    h = build(tmp_path)

    await asyncio.gather(
        *(h.router.route(make_message("oi", user=str(1000 + n), chat="-100")) for n in range(500))
    )

    assert len(h.sessions) == 0
    assert len(h.sessions._locks) == 0
