from __future__ import annotations

import base64
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import httpx
import openai
import pytest

from group_assistant.ai import OpenAICompletion, OpenAIImageGenerator, OpenAITranscriber
from group_assistant.errors import CompletionError, TranscriptionError

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=_REQUEST)


def _auth_error() -> openai.AuthenticationError:
    response = httpx.Response(401, request=_REQUEST)
    return openai.AuthenticationError("invalid key", response=response, body=None)


def _completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class DummyOpenAI:
    def __init__(self, *outcomes: Any) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))
        self.audio = SimpleNamespace(transcriptions=SimpleNamespace(create=self._create))
        self.images = SimpleNamespace(generate=self._create)

    async def _create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.mark.asyncio
async def test_completion_returns_stripped_text() -> None:
    client = DummyOpenAI(_completion("  olá  "))
    backend = OpenAICompletion(client, model="gpt-4o-mini")  # type: ignore[arg-type]

    assert await backend.complete("oi", 0.3, "gpt-4o") == "olá"
    call = client.calls[0]
    assert call["model"] == "gpt-4o"
    assert call["temperature"] == 0.3
    assert call["messages"][-1] == {"role": "user", "content": "oi"}


@pytest.mark.asyncio
async def test_completion_retries_transient_errors() -> None:
    client = DummyOpenAI(_connection_error(), _connection_error(), _completion("ok"))
    backend = OpenAICompletion(client, base_delay=0)  # type: ignore[arg-type]

    assert await backend.complete("oi") == "ok"
    assert len(client.calls) == 3


@pytest.mark.asyncio
async def test_completion_gives_up_after_three_attempts() -> None:
    client = DummyOpenAI(_connection_error(), _connection_error(), _connection_error())
    backend = OpenAICompletion(client, base_delay=0)  # type: ignore[arg-type]

    with pytest.raises(CompletionError):
        await backend.complete("oi")
    assert len(client.calls) == 3


@pytest.mark.asyncio
async def test_completion_fatal_errors_are_not_retried() -> None:
    client = DummyOpenAI(_auth_error())
    backend = OpenAICompletion(client, base_delay=0)  # type: ignore[arg-type]

    with pytest.raises(CompletionError):
        await backend.complete("oi")
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_transcriber_reads_file_and_rejects_empty_text(tmp_path: Path) -> None:
    audio = tmp_path / "a.ogg"
    audio.write_bytes(b"ogg")
    client = DummyOpenAI(SimpleNamespace(text=" bom dia "), SimpleNamespace(text=""))
    transcriber = OpenAITranscriber(client)  # type: ignore[arg-type]

    assert await transcriber.transcribe(audio) == "bom dia"
    assert client.calls[0]["language"] == "pt"
    with pytest.raises(TranscriptionError):
        await transcriber.transcribe(audio)


@pytest.mark.asyncio
async def test_transcriber_missing_file(tmp_path: Path) -> None:
    transcriber = OpenAITranscriber(DummyOpenAI())  # type: ignore[arg-type]

    with pytest.raises(TranscriptionError):
        await transcriber.transcribe(tmp_path / "absent.ogg")


@pytest.mark.asyncio
async def test_image_generator_decodes_payload() -> None:
    encoded = base64.b64encode(b"png-bytes").decode()
    client = DummyOpenAI(
        SimpleNamespace(data=[SimpleNamespace(b64_json=encoded)]),
        SimpleNamespace(data=[]),
    )
    generator = OpenAIImageGenerator(client)  # type: ignore[arg-type]

    assert await generator.generate("um gato") == b"png-bytes"
    assert client.calls[0]["response_format"] == "b64_json"
    with pytest.raises(CompletionError):
        await generator.generate("nada")
