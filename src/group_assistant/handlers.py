"""Command handlers invoked by the dispatcher."""

from __future__ import annotations

import logging
import os
import re
import tempfile
import time
from collections.abc import Callable
from pathlib import Path

from .ai import CompletionBackend, ImageGenerator, Transcriber
from .auto_delete import AutoDeleteQueue
from .commands import CommandDescriptor
from .errors import CompletionError, GroupAssistantError, TranscriptionError, TransportError
from .history import MessageHistory, format_entries
from .matcher import CommandMatcher
from .models import AUDIO_KINDS, Chat, CommandInput, InboundMessage, OutgoingMedia, SentMessage
from .news import NewsSource
from .pages import PageFetcher
from .prompts import PromptBook
from .telegram import MessagingAPI
from .utils import extract_links, parse_leading_int
from .wizard import SummaryConfigWizard

LINK_CONTEXT_ERROR = "Não consegui acessar o link para fornecer contexto adicional."
COMMAND_LIST_HEADER = "*Comandos Disponíveis:*\n"

_NUMBERING = re.compile(r"^\s*(?:\d+[.)-]|[-•*])\s*")

logger = logging.getLogger(__name__)


class CommandHandlers:
    """One coroutine per command; replies go through the auto-delete policy."""

    def __init__(
        self,
        *,
        messaging: MessagingAPI,
        completion: CompletionBackend,
        transcriber: Transcriber,
        images: ImageGenerator,
        news: NewsSource,
        pages: PageFetcher,
        history: MessageHistory,
        prompts: PromptBook,
        auto_delete: AutoDeleteQueue,
        matcher: CommandMatcher,
        wizard: SummaryConfigWizard,
        clock: Callable[[], float] = time.time,
        temp_dir: Path | None = None,
    ) -> None:
        self._messaging = messaging
        self._completion = completion
        self._transcriber = transcriber
        self._images = images
        self._news = news
        self._pages = pages
        self._history = history
        self._prompts = prompts
        self._auto_delete = auto_delete
        self._matcher = matcher
        self._wizard = wizard
        self._clock = clock
        self._temp_dir = temp_dir

    async def chat_gpt(self, descriptor: CommandDescriptor, command: CommandInput) -> None:
        message = command.message
        text = command.text
        if text.startswith("#!"):
            question = text[2:].strip()
        elif text.startswith("#"):
            question = text[1:].strip()
        else:
            question = text
        if not question:
            await self._error(message, descriptor, "invalidFormat")
            return

        contact = await self._messaging.get_contact(message)
        group = await self._group_title(message)
        quoted = message.quoted
        if quoted is not None and quoted.body:
            links = extract_links(quoted.body)
            if links:
                try:
                    context = await self._pages.fetch_text(links[0])
                except TransportError as exc:
                    logger.warning("Failed to fetch context link %s: %s", links[0], exc)
                    await self._reply(message, descriptor, LINK_CONTEXT_ERROR, is_error=True)
                    return
            else:
                context = quoted.body
            prompt = self._prompts.render(
                "CHAT_GPT",
                "WITH_CONTEXT",
                group=group,
                name=contact.name,
                question=question,
                context=context,
            )
        else:
            prompt = self._prompts.render(
                "CHAT_GPT", "DEFAULT", group=group, name=contact.name, question=question
            )

        answer = await self._complete(prompt, 1.0, descriptor)
        await self._reply(message, descriptor, answer)

    async def resumo(self, descriptor: CommandDescriptor, command: CommandInput) -> None:
        message = command.message
        quoted = message.quoted
        if quoted is not None and quoted.body:
            await self._summarize_quoted(descriptor, message, quoted)
            return

        contact = await self._messaging.get_contact(message)
        group = await self._group_title(message)
        limit = parse_leading_int(command.argument) if message.kind != "sticker" else None
        if limit is None:
            hours = descriptor.default_summary_hours
            entries = self._history.since(
                message.chat_id, self._clock() - hours * 3600, exclude=message.id
            )
            prompt_name, extra = "HOUR_SUMMARY", {"hours": hours}
        else:
            entries = self._history.last(message.chat_id, limit, exclude=message.id)
            prompt_name, extra = "DEFAULT", {"limit": limit}

        if not entries:
            await self._error(message, descriptor, "noMessages")
            return

        prompt = self._prompts.render(
            "RESUMO",
            prompt_name,
            group=group,
            name=contact.name,
            messageTexts=format_entries(entries),
            **extra,
        )
        summary = await self._complete(prompt, 1.0, descriptor)
        await self._reply(message, descriptor, summary)

    async def _summarize_quoted(
        self, descriptor: CommandDescriptor, message: InboundMessage, quoted: InboundMessage
    ) -> None:
        group = await self._group_title(message)
        links = extract_links(quoted.body)
        if links:
            try:
                page = await self._pages.fetch_text(links[0])
            except TransportError as exc:
                logger.warning("Failed to fetch %s for summary: %s", links[0], exc)
                await self._error(quoted, descriptor, "linkError")
                return
            prompt = self._prompts.render("RESUMO", "LINK_SUMMARY", group=group, pageContent=page)
        else:
            author = await self._messaging.get_contact(quoted)
            prompt = self._prompts.render(
                "RESUMO",
                "QUOTED_MESSAGE",
                group=group,
                name=author.name,
                quotedText=quoted.body,
            )
        summary = await self._complete(prompt, 1.0, descriptor)
        await self._reply(quoted, descriptor, summary)

    async def news(self, descriptor: CommandDescriptor, command: CommandInput) -> None:
        message = command.message
        term = command.argument if message.kind != "sticker" else ""
        headlines = await self._news.headlines(term or None)
        if not headlines:
            await self._error(message, descriptor, "noArticles")
            return

        prompt = self._prompts.render(
            "NEWS", "TRANSLATE", group=await self._group_title(message), newsText="\n".join(headlines)
        )
        translated = await self._complete(prompt, 0.3, descriptor)
        items = [
            _NUMBERING.sub("", line).strip() for line in translated.splitlines() if line.strip()
        ]
        if not items:
            await self._error(message, descriptor, "error")
            return

        contact = await self._messaging.get_contact(message)
        if term:
            header = f'Aqui estão as notícias sobre "{term}", {contact.name}:\n\n'
        else:
            header = f"Aqui estão as notícias mais relevantes de hoje, {contact.name}:\n\n"
        body = "".join(f"{index}. {item}\n" for index, item in enumerate(items, start=1))
        await self._reply(message, descriptor, header + body)

    async def sticker(self, descriptor: CommandDescriptor, command: CommandInput) -> None:
        message = command.message
        if message.has_media and message.kind != "sticker":
            data = await self._messaging.download_media(message)
            await self._reply(message, descriptor, media=_as_sticker(data))
            return

        quoted = message.quoted
        if quoted is not None:
            if not quoted.has_media:
                await self._error(message, descriptor, "noImage")
                return
            try:
                data = await self._messaging.download_media(quoted)
            except TransportError as exc:
                logger.warning("Failed to download quoted media %s: %s", quoted.id, exc)
                await self._error(message, descriptor, "downloadError")
                return
            await self._reply(message, descriptor, media=_as_sticker(data))
            return

        keyword = command.argument if message.kind != "sticker" else ""
        if not keyword:
            await self._error(message, descriptor, "noKeyword")
            return
        try:
            data = await self._images.generate(keyword)
        except GroupAssistantError as exc:
            logger.warning("Image generation for sticker %r failed: %s", keyword, exc)
            await self._error(message, descriptor, "noResults")
            return
        await self._reply(message, descriptor, media=_as_sticker(data))

    async def desenho(self, descriptor: CommandDescriptor, command: CommandInput) -> None:
        message = command.message
        description = command.argument
        if not description:
            await self._error(message, descriptor, "noPrompt")
            return

        try:
            prompt = self._prompts.render(
                "DESENHO",
                "IMPROVE_PROMPT",
                group=await self._group_title(message),
                prompt=description,
            )
            improved = await self._complete(prompt, 0.7, descriptor)
            original_image = await self._images.generate(description)
            improved_image = await self._images.generate(improved)
        except GroupAssistantError as exc:
            logger.error("Error in DESENHO command: %s", exc)
            await self._error(message, descriptor, "generateError")
            return

        await self._reply(
            message,
            descriptor,
            media=OutgoingMedia(original_image, "image/png", "original_image.png"),
        )
        await self._reply(
            message,
            descriptor,
            media=OutgoingMedia(improved_image, "image/png", "improved_image.png"),
        )

    async def audio(self, descriptor: CommandDescriptor, command: CommandInput) -> None:
        message = command.message
        if message.kind in AUDIO_KINDS:
            source = message
        elif message.quoted is not None and message.quoted.kind in AUDIO_KINDS:
            source = message.quoted
        else:
            await self._error(message, descriptor, "noAudio")
            return

        try:
            data = await self._messaging.download_media(source)
        except TransportError as exc:
            logger.warning("Failed to download audio %s: %s", source.id, exc)
            await self._error(message, descriptor, "downloadError")
            return

        fd, name = tempfile.mkstemp(prefix="audio_", suffix=".ogg", dir=self._temp_dir)
        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as file:
                file.write(data)
            try:
                transcription = await self._transcriber.transcribe(path)
            except TranscriptionError as exc:
                logger.warning("Transcription of %s failed: %s", source.id, exc)
                await self._error(message, descriptor, "transcriptionError")
                return
        finally:
            path.unlink(missing_ok=True)

        await self._reply(message, descriptor, f"Transcrição:\n_{transcription}_")

    async def command_list(self, descriptor: CommandDescriptor, command: CommandInput) -> None:
        message = command.message
        contact = await self._messaging.get_contact(message)
        chat = await self._messaging.get_chat(message)
        content = COMMAND_LIST_HEADER
        for candidate in self._matcher.descriptors:
            prefixes = candidate.prefixes
            if not candidate.description or isinstance(prefixes, str) or not prefixes:
                continue
            if not self._matcher.is_allowed(candidate, contact, chat):
                continue
            content += f"\n• {prefixes[0]} - {candidate.description}"
        await self._reply(message, descriptor, content)

    async def resumo_config(self, descriptor: CommandDescriptor, command: CommandInput) -> None:
        await self._wizard.start(command.message)

    async def _complete(
        self, prompt: str, temperature: float, descriptor: CommandDescriptor
    ) -> str:
        result = (await self._completion.complete(prompt, temperature, descriptor.model)).strip()
        if not result:
            raise CompletionError("Completion returned an empty text")
        return result

    async def _group_title(self, message: InboundMessage) -> str | None:
        chat: Chat = await self._messaging.get_chat(message)
        return chat.title if chat.is_group else None

    async def _reply(
        self,
        target: InboundMessage,
        descriptor: CommandDescriptor,
        text: str | None = None,
        *,
        media: OutgoingMedia | None = None,
        is_error: bool = False,
    ) -> SentMessage:
        handle = await self._messaging.reply(target, text, media=media)
        self._auto_delete.track(handle, descriptor.auto_delete, is_error=is_error)
        return handle

    async def _error(
        self, target: InboundMessage, descriptor: CommandDescriptor, key: str
    ) -> SentMessage:
        return await self._reply(target, descriptor, descriptor.error_text(key), is_error=True)


def _as_sticker(data: bytes) -> OutgoingMedia:
    return OutgoingMedia(data, "image/png", "sticker.png", as_sticker=True)
