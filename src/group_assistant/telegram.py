"""Telegram Bot API transport and the messaging protocol the core depends on."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Protocol

import aiohttp

from .errors import TransportError
from .models import Chat, Contact, InboundMessage, MessageKind, OutgoingMedia, SentMessage

_API_BASE = "https://api.telegram.org"
_GROUP_CHAT_TYPES = frozenset({"group", "supergroup"})

logger = logging.getLogger(__name__)


class MessagingAPI(Protocol):
    async def get_contact(self, message: InboundMessage) -> Contact: ...

    async def get_chat(self, message: InboundMessage) -> Chat: ...

    async def reply(
        self,
        message: InboundMessage,
        text: str | None = None,
        *,
        media: OutgoingMedia | None = None,
    ) -> SentMessage: ...

    async def send_message(self, chat_id: str, text: str) -> SentMessage: ...

    async def download_media(self, message: InboundMessage) -> bytes: ...

    async def delete_message(self, handle: SentMessage) -> None: ...

    async def send_typing(self, chat: Chat) -> None: ...


class TelegramAPI:
    """Lightweight Telegram Bot API wrapper implementing :class:`MessagingAPI`."""

    def __init__(self, token: str, session: aiohttp.ClientSession):
        self._token = token
        self._session = session

    async def get_updates(
        self,
        offset: int | None = None,
        timeout: int = 30,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"timeout": timeout}
        if offset is not None:
            params["offset"] = offset
        url = f"{_API_BASE}/bot{self._token}/getUpdates"
        try:
            timeout_cfg = aiohttp.ClientTimeout(total=timeout + 5)
            async with self._session.get(
                url,
                params=params,
                timeout=timeout_cfg,
            ) as resp:
                payload = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError):
            return []
        if not payload.get("ok"):
            return []
        return list(payload.get("result") or [])

    async def get_contact(self, message: InboundMessage) -> Contact:
        return Contact(
            id=message.sender_id,
            username=message.sender_username,
            display_name=message.sender_name,
        )

    async def get_chat(self, message: InboundMessage) -> Chat:
        return Chat(id=message.chat_id, title=message.chat_title, is_group=message.is_group)

    async def reply(
        self,
        message: InboundMessage,
        text: str | None = None,
        *,
        media: OutgoingMedia | None = None,
    ) -> SentMessage:
        if media is None:
            return await self._send_text(message.chat_id, text or "", reply_to=message.id)

        method, field_name = ("sendSticker", "sticker") if media.as_sticker else ("sendPhoto", "photo")
        form = aiohttp.FormData()
        form.add_field("chat_id", message.chat_id)
        form.add_field("reply_to_message_id", message.id)
        if text and not media.as_sticker:
            form.add_field("caption", text[:1024])
        form.add_field(
            field_name,
            media.data,
            filename=media.filename,
            content_type=media.mime_type,
        )
        result = await self._call(method, form=form, timeout=60)
        return _sent_from_result(result, message.chat_id)

    async def send_message(self, chat_id: str, text: str) -> SentMessage:
        return await self._send_text(chat_id, text)

    async def download_media(self, message: InboundMessage) -> bytes:
        if message.media_file_id is None:
            raise TransportError("Message has no media")
        file_info = await self._call("getFile", data={"file_id": message.media_file_id})
        file_path = file_info.get("file_path") if isinstance(file_info, Mapping) else None
        if not file_path:
            raise TransportError("Telegram did not return a file path")
        url = f"{_API_BASE}/file/bot{self._token}/{file_path}"
        try:
            timeout_cfg = aiohttp.ClientTimeout(total=60)
            async with self._session.get(url, timeout=timeout_cfg) as resp:
                if resp.status != 200:
                    raise TransportError(
                        f"Media download failed with status {resp.status}",
                        status=resp.status,
                    )
                return await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Media download failed: {exc}") from exc

    async def delete_message(self, handle: SentMessage) -> None:
        await self._call(
            "deleteMessage",
            data={"chat_id": handle.chat_id, "message_id": handle.message_id},
        )

    async def send_typing(self, chat: Chat) -> None:
        try:
            await self._call("sendChatAction", data={"chat_id": chat.id, "action": "typing"})
        except TransportError:
            logger.debug("Failed to send typing action to %s", chat.id)

    async def _send_text(
        self, chat_id: str, text: str, *, reply_to: str | None = None
    ) -> SentMessage:
        data: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text[:4096],
            "disable_web_page_preview": True,
        }
        if reply_to is not None:
            data["reply_to_message_id"] = reply_to
            data["allow_sending_without_reply"] = True
        result = await self._call("sendMessage", data=data)
        return _sent_from_result(result, chat_id)

    async def _call(
        self,
        method: str,
        *,
        data: Mapping[str, Any] | None = None,
        form: aiohttp.FormData | None = None,
        timeout: float = 15,
    ) -> Any:
        url = f"{_API_BASE}/bot{self._token}/{method}"
        try:
            timeout_cfg = aiohttp.ClientTimeout(total=timeout)
            async with self._session.post(
                url,
                json=None if form is not None else dict(data or {}),
                data=form,
                timeout=timeout_cfg,
            ) as resp:
                payload = await resp.json(content_type=None)
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Telegram {method} failed: {exc}") from exc
        if not isinstance(payload, Mapping) or not payload.get("ok"):
            description = (
                payload.get("description") if isinstance(payload, Mapping) else None
            )
            raise TransportError(
                f"Telegram {method} failed with status {status}: {description}",
                status=status,
            )
        return payload.get("result")


def _sent_from_result(result: Any, chat_id: str) -> SentMessage:
    if isinstance(result, Mapping):
        chat = result.get("chat") or {}
        return SentMessage(
            chat_id=str(chat.get("id", chat_id)),
            message_id=str(result.get("message_id", "")),
        )
    raise TransportError("Unexpected Telegram response shape")


def parse_message(message: Mapping[str, Any]) -> InboundMessage | None:
    """Build an :class:`InboundMessage` from a Telegram ``Message`` object."""

    chat = message.get("chat")
    sender = message.get("from")
    if not isinstance(chat, Mapping) or not isinstance(sender, Mapping):
        return None

    kind, file_id = _detect_media(message)
    text = str(message.get("text") or message.get("caption") or "")
    first = str(sender.get("first_name") or "").strip()
    last = str(sender.get("last_name") or "").strip()
    display_name = " ".join(part for part in (first, last) if part) or None

    quoted_payload = message.get("reply_to_message")
    quoted = parse_message(quoted_payload) if isinstance(quoted_payload, Mapping) else None

    return InboundMessage(
        id=str(message.get("message_id", "")),
        chat_id=str(chat.get("id", "")),
        sender_id=str(sender.get("id", "")),
        text=text,
        kind=kind,
        media_file_id=file_id,
        quoted=quoted,
        timestamp=float(message.get("date") or 0),
        from_me=bool(sender.get("is_bot")),
        sender_username=str(sender["username"]) if sender.get("username") else None,
        sender_name=display_name,
        chat_title=str(chat["title"]) if chat.get("title") else None,
        is_group=str(chat.get("type")) in _GROUP_CHAT_TYPES,
        raw=message,
    )


def _detect_media(message: Mapping[str, Any]) -> tuple[MessageKind, str | None]:
    for key in ("sticker", "voice", "audio", "video", "document"):
        payload = message.get(key)
        if isinstance(payload, Mapping) and payload.get("file_id"):
            return key, str(payload["file_id"])  # type: ignore[return-value]
    photos = message.get("photo")
    if isinstance(photos, list) and photos:
        largest = max(
            (item for item in photos if isinstance(item, Mapping)),
            key=lambda item: int(item.get("file_size") or 0),
            default=None,
        )
        if largest is not None and largest.get("file_id"):
            return "photo", str(largest["file_id"])
    if message.get("text") is not None:
        return "text", None
    return "other", None
