from __future__ import annotations

from collections.abc import Iterable
from types import TracebackType
from typing import Any

import aiohttp
import pytest

from fakes import make_message
from group_assistant.errors import TransportError
from group_assistant.models import Chat, OutgoingMedia, SentMessage
from group_assistant.telegram import TelegramAPI, parse_message


class _FakeResponse:
    def __init__(self, status: int = 200, *, json_payload: Any | None = None, body: bytes = b""):
        self.status = status
        self._json_payload = json_payload if json_payload is not None else {}
        self._body = body

    async def __aenter__(self) -> "_FakeResponse":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        return None

    async def json(self, content_type: str | None = None) -> Any:
        return self._json_payload

    async def read(self) -> bytes:
        return self._body


class _FakeSession:
    def __init__(self, responses: Iterable[_FakeResponse | Exception]):
        self._responses: list[_FakeResponse | Exception] = list(responses)
        self.requests: list[tuple[str, str, dict[str, Any]]] = []

    def _next(self, method: str, url: str, kwargs: dict[str, Any]) -> _FakeResponse:
        self.requests.append((method, url, kwargs))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url: str, **kwargs: Any) -> _FakeResponse:
        return self._next("POST", url, kwargs)

    def get(self, url: str, **kwargs: Any) -> _FakeResponse:
        return self._next("GET", url, kwargs)


def _api(*responses: _FakeResponse | Exception) -> tuple[TelegramAPI, _FakeSession]:
    session = _FakeSession(responses)
    return TelegramAPI("TOKEN", session), session  # type: ignore[arg-type]


def _ok(result: Any) -> _FakeResponse:
    return _FakeResponse(json_payload={"ok": True, "result": result})


def test_parse_group_text_message_with_reply() -> None:
    payload = {
        "message_id": 10,
        "date": 1700000000,
        "text": "#resumo",
        "chat": {"id": -100, "type": "supergroup", "title": "Amigos"},
        "from": {"id": 42, "first_name": "Ana", "last_name": "Lima", "username": "ana"},
        "reply_to_message": {
            "message_id": 9,
            "chat": {"id": -100, "type": "supergroup", "title": "Amigos"},
            "from": {"id": 7, "first_name": "Bruno"},
            "voice": {"file_id": "voice-9"},
        },
    }

    message = parse_message(payload)

    assert message is not None
    assert message.id == "10"
    assert message.chat_id == "-100"
    assert message.sender_id == "42"
    assert message.sender_name == "Ana Lima"
    assert message.sender_username == "ana"
    assert message.is_group and message.chat_title == "Amigos"
    assert message.kind == "text"
    assert message.timestamp == 1700000000.0
    quoted = message.quoted
    assert quoted is not None
    assert quoted.kind == "voice" and quoted.media_file_id == "voice-9"
    assert quoted.sender_name == "Bruno"


def test_parse_photo_uses_largest_size_and_caption() -> None:
    payload = {
        "message_id": 1,
        "caption": "#sticker",
        "chat": {"id": 5, "type": "private"},
        "from": {"id": 5, "first_name": "Ana"},
        "photo": [
            {"file_id": "small", "file_size": 100},
            {"file_id": "large", "file_size": 9000},
        ],
    }

    message = parse_message(payload)

    assert message is not None
    assert message.kind == "photo"
    assert message.media_file_id == "large"
    assert message.text == "#sticker"
    assert not message.is_group


def test_parse_marks_bot_messages_and_rejects_incomplete() -> None:
    bot_message = parse_message(
        {"message_id": 1, "text": "oi", "chat": {"id": 1}, "from": {"id": 2, "is_bot": True}}
    )
    assert bot_message is not None and bot_message.from_me

    assert parse_message({"message_id": 1, "text": "oi"}) is None
    assert parse_message(
        {"message_id": 1, "chat": {"id": 1}, "from": {"id": 2}}
    ).kind == "other"  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_reply_sends_text_as_reply() -> None:
    api, session = _api(_ok({"message_id": 77, "chat": {"id": -100}}))

    handle = await api.reply(make_message("#oi", chat="-100"), "olá")

    assert handle == SentMessage(chat_id="-100", message_id="77")
    method, url, kwargs = session.requests[0]
    assert method == "POST"
    assert url.endswith("/botTOKEN/sendMessage")
    assert kwargs["json"]["text"] == "olá"
    assert kwargs["json"]["chat_id"] == "-100"
    assert "reply_to_message_id" in kwargs["json"]


@pytest.mark.asyncio
async def test_reply_with_sticker_uses_multipart_form() -> None:
    api, session = _api(_ok({"message_id": 3, "chat": {"id": 5}}))

    await api.reply(
        make_message("#sticker", chat="5"),
        media=OutgoingMedia(b"png", "image/png", "sticker.png", as_sticker=True),
    )

    _, url, kwargs = session.requests[0]
    assert url.endswith("/sendSticker")
    assert isinstance(kwargs["data"], aiohttp.FormData)
    assert kwargs["json"] is None


@pytest.mark.asyncio
async def test_api_error_raises_transport_error() -> None:
    api, _ = _api(_FakeResponse(400, json_payload={"ok": False, "description": "message can't be deleted"}))

    with pytest.raises(TransportError) as excinfo:
        await api.delete_message(SentMessage(chat_id="1", message_id="2"))

    assert excinfo.value.status == 400
    assert "message can't be deleted" in str(excinfo.value)


@pytest.mark.asyncio
async def test_network_error_raises_transport_error() -> None:
    api, _ = _api(aiohttp.ClientConnectionError("reset"))

    with pytest.raises(TransportError):
        await api.send_message("1", "oi")


@pytest.mark.asyncio
async def test_typing_failures_are_ignored() -> None:
    api, _ = _api(aiohttp.ClientConnectionError("reset"))

    await api.send_typing(Chat(id="1"))


@pytest.mark.asyncio
async def test_download_media_resolves_file_path() -> None:
    api, session = _api(
        _ok({"file_path": "voice/file_1.oga"}),
        _FakeResponse(200, body=b"audio"),
    )

    data = await api.download_media(make_message(kind="voice", media_file_id="abc"))

    assert data == b"audio"
    assert session.requests[0][2]["json"] == {"file_id": "abc"}
    assert session.requests[1][1].endswith("/file/botTOKEN/voice/file_1.oga")


@pytest.mark.asyncio
async def test_download_without_media_fails() -> None:
    api, session = _api()

    with pytest.raises(TransportError):
        await api.download_media(make_message("texto"))
    assert session.requests == []


@pytest.mark.asyncio
async def test_get_updates_swallows_errors() -> None:
    api, _ = _api(aiohttp.ClientConnectionError("down"), _ok([{"update_id": 5}]))

    assert await api.get_updates(offset=1) == []
    assert await api.get_updates(offset=1) == [{"update_id": 5}]
