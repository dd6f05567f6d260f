"""AI collaborators: text completion, audio transcription and image generation."""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from typing import Protocol

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    BadRequestError,
    PermissionDeniedError,
    RateLimitError,
)

from .errors import CompletionError, TranscriptionError

_SYSTEM_PROMPT = "You are a group chat assistant."
_MAX_ATTEMPTS = 3
_BASE_DELAY = 1.2

logger = logging.getLogger(__name__)


class CompletionBackend(Protocol):
    async def complete(
        self, prompt: str, temperature: float = 1.0, model: str | None = None
    ) -> str: ...


class Transcriber(Protocol):
    async def transcribe(self, path: Path) -> str: ...


class ImageGenerator(Protocol):
    async def generate(self, prompt: str) -> bytes: ...


class OpenAICompletion:
    """Chat completion with retries on transient OpenAI failures."""

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = "gpt-4o-mini",
        base_delay: float = _BASE_DELAY,
    ) -> None:
        self._client = client
        self._model = model
        self._base_delay = base_delay

    async def complete(
        self, prompt: str, temperature: float = 1.0, model: str | None = None
    ) -> str:
        for attempt in range(1, _MAX_ATTEMPTS + 1):
            try:
                completion = await self._client.chat.completions.create(
                    model=model or self._model,
                    messages=[
                        {"role": "system", "content": _SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=temperature,
                )
                return (completion.choices[0].message.content or "").strip()
            except (AuthenticationError, PermissionDeniedError, BadRequestError) as exc:
                raise CompletionError("OpenAI fatal error") from exc
            except (APITimeoutError, APIConnectionError, RateLimitError) as exc:
                logger.warning(
                    "Transient OpenAI error on attempt %s/%s: %s",
                    attempt,
                    _MAX_ATTEMPTS,
                    exc,
                )
                if attempt == _MAX_ATTEMPTS:
                    break
            except APIError as exc:
                status = getattr(exc, "status_code", None) or 500
                if status < 500 or attempt == _MAX_ATTEMPTS:
                    raise CompletionError(f"OpenAI processing error: {exc}") from exc

            await asyncio.sleep(self._base_delay * attempt)

        raise CompletionError("OpenAI communication error")


class OpenAITranscriber:
    def __init__(self, client: AsyncOpenAI, *, model: str = "whisper-1", language: str = "pt"):
        self._client = client
        self._model = model
        self._language = language

    async def transcribe(self, path: Path) -> str:
        try:
            with path.open("rb") as file:
                transcription = await self._client.audio.transcriptions.create(
                    file=file,
                    model=self._model,
                    language=self._language,
                )
        except (APIError, OSError) as exc:
            raise TranscriptionError(f"Transcription failed: {exc}") from exc
        text = (transcription.text or "").strip()
        if not text:
            raise TranscriptionError("Transcription returned no text")
        return text


class OpenAIImageGenerator:
    """Square PNG generation returning raw image bytes."""

    def __init__(self, client: AsyncOpenAI, *, model: str = "dall-e-3", size: str = "1024x1024"):
        self._client = client
        self._model = model
        self._size = size

    async def generate(self, prompt: str) -> bytes:
        try:
            response = await self._client.images.generate(
                model=self._model,
                prompt=prompt,
                size=self._size,
                n=1,
                response_format="b64_json",
            )
        except APIError as exc:
            raise CompletionError(f"Image generation failed: {exc}") from exc
        if not response.data or not response.data[0].b64_json:
            raise CompletionError("Image generation returned no data")
        return base64.b64decode(response.data[0].b64_json)
