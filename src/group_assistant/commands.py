"""Command identities and their built-in descriptors."""

from __future__ import annotations

import enum
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .errors import ConfigurationError

ALL_CHATS = "all"
DEFAULT_NOT_ALLOWED = "Você não tem permissão para usar este comando."


class CommandName(str, enum.Enum):
    COMMAND_LIST = "COMMAND_LIST"
    RESUMO = "RESUMO"
    NEWS = "NEWS"
    STICKER = "STICKER"
    DESENHO = "DESENHO"
    AUDIO = "AUDIO"
    RESUMO_CONFIG = "RESUMO_CONFIG"
    CHAT_GPT = "CHAT_GPT"


@dataclass(frozen=True, slots=True)
class AutoDeleteSettings:
    command_messages: bool = False
    error_messages: bool = True
    delete_timeout_ms: int | None = None


@dataclass(frozen=True, slots=True)
class Permissions:
    # Either ALL_CHATS or an allow-list of group titles, user ids and dm.<name> markers.
    allowed_in: str | Sequence[str] = ALL_CHATS


@dataclass(frozen=True, slots=True)
class CommandDescriptor:
    """Static description of a command.

    Values coming from the YAML file are stored as loaded; structural checks
    happen in :func:`validate_descriptor` when the command is matched so a
    broken override disables only that command.
    """

    name: CommandName
    prefixes: Sequence[str] = ()
    description: str = ""
    permissions: Permissions = field(default_factory=Permissions)
    auto_delete: AutoDeleteSettings = field(default_factory=AutoDeleteSettings)
    error_messages: Mapping[str, str] = field(default_factory=dict)
    sticker_hashes: frozenset[str] = frozenset()
    sticker_hash: str | None = None
    model: str | None = None
    default_summary_hours: int = 3

    def error_text(self, key: str) -> str:
        messages = self.error_messages
        return messages.get(key) or messages.get("error") or ""

    def matches_sticker(self, digest: str) -> bool:
        if self.sticker_hashes:
            return digest in self.sticker_hashes
        # legacy single-hash field
        return self.sticker_hash is not None and self.sticker_hash == digest


def validate_descriptor(descriptor: CommandDescriptor) -> None:
    """Raise :class:`ConfigurationError` if ``descriptor`` cannot be executed."""

    name = descriptor.name.value
    messages: Any = descriptor.error_messages
    if not isinstance(messages, Mapping) or not messages:
        raise ConfigurationError(name, "errorMessages is missing or invalid")
    if not isinstance(messages.get("error"), str):
        raise ConfigurationError(name, "errorMessages.error template is required")

    prefixes: Any = descriptor.prefixes
    if isinstance(prefixes, str) or not isinstance(prefixes, Sequence):
        raise ConfigurationError(name, "prefixes must be a list")
    if not all(isinstance(prefix, str) and prefix for prefix in prefixes):
        raise ConfigurationError(name, "prefixes must be non-empty strings")

    allowed_in: Any = descriptor.permissions.allowed_in
    if isinstance(allowed_in, str):
        if allowed_in != ALL_CHATS:
            raise ConfigurationError(name, "permissions.allowedIn must be 'all' or a list")
    elif not isinstance(allowed_in, Sequence) or not all(
        isinstance(item, str) for item in allowed_in
    ):
        raise ConfigurationError(name, "permissions.allowedIn must be a list of strings")

    auto_delete = descriptor.auto_delete
    if not isinstance(auto_delete.command_messages, bool) or not isinstance(
        auto_delete.error_messages, bool
    ):
        raise ConfigurationError(name, "autoDelete properties must be boolean")


_GENERIC_ERROR = "Ocorreu um erro ao processar seu comando."

DEFAULT_COMMANDS: tuple[CommandDescriptor, ...] = (
    CommandDescriptor(
        name=CommandName.COMMAND_LIST,
        prefixes=("#?", "#comandos"),
        description="Lista os comandos disponíveis",
        auto_delete=AutoDeleteSettings(command_messages=True, error_messages=True),
        error_messages={
            "error": "Erro ao listar os comandos.",
            "notAllowed": DEFAULT_NOT_ALLOWED,
        },
    ),
    CommandDescriptor(
        name=CommandName.RESUMO,
        prefixes=("#resumo",),
        description="Resume as mensagens recentes do grupo (ex: #resumo 50)",
        auto_delete=AutoDeleteSettings(command_messages=False, error_messages=True),
        error_messages={
            "error": "Erro ao gerar o resumo.",
            "noMessages": "Não há mensagens suficientes para gerar um resumo.",
            "linkError": "Não consegui acessar o link para gerar o resumo.",
            "notAllowed": DEFAULT_NOT_ALLOWED,
        },
        default_summary_hours=3,
    ),
    CommandDescriptor(
        name=CommandName.NEWS,
        prefixes=("#noticias", "#news"),
        description="Mostra as notícias do dia ou sobre um tema (ex: #noticias futebol)",
        auto_delete=AutoDeleteSettings(command_messages=False, error_messages=True),
        error_messages={
            "error": "Erro ao buscar notícias.",
            "noArticles": "Nenhuma notícia encontrada.",
            "notAllowed": DEFAULT_NOT_ALLOWED,
        },
    ),
    CommandDescriptor(
        name=CommandName.STICKER,
        prefixes=("#sticker",),
        description="Cria um sticker a partir de uma imagem ou palavra-chave",
        auto_delete=AutoDeleteSettings(command_messages=False, error_messages=True),
        error_messages={
            "error": "Erro ao criar o sticker.",
            "noImage": "A mensagem citada não contém uma imagem.",
            "noKeyword": "Envie uma imagem, cite uma imagem ou informe uma palavra-chave.",
            "noResults": "Não encontrei nenhuma imagem para essa palavra-chave.",
            "downloadError": "Não consegui baixar a imagem.",
            "notAllowed": DEFAULT_NOT_ALLOWED,
        },
    ),
    CommandDescriptor(
        name=CommandName.DESENHO,
        prefixes=("#desenho",),
        description="Gera uma imagem a partir de uma descrição",
        auto_delete=AutoDeleteSettings(command_messages=False, error_messages=True),
        error_messages={
            "error": "Erro ao gerar a imagem.",
            "noPrompt": "Descreva o desenho depois do comando (ex: #desenho um gato astronauta).",
            "generateError": "Não consegui gerar a imagem. Tente novamente mais tarde.",
            "notAllowed": DEFAULT_NOT_ALLOWED,
        },
    ),
    CommandDescriptor(
        name=CommandName.AUDIO,
        prefixes=("#transcrever",),
        description="Transcreve um áudio (responda ao áudio com o comando)",
        auto_delete=AutoDeleteSettings(command_messages=False, error_messages=True),
        error_messages={
            "error": "Erro ao transcrever o áudio.",
            "noAudio": "Responda a um áudio para transcrevê-lo.",
            "transcriptionError": "Não consegui transcrever o áudio.",
            "downloadError": "Não consegui baixar o áudio.",
            "notAllowed": DEFAULT_NOT_ALLOWED,
        },
    ),
    CommandDescriptor(
        name=CommandName.RESUMO_CONFIG,
        prefixes=("#ferramentaresumo",),
        description="Configura o resumo periódico de um grupo (apenas admin)",
        permissions=Permissions(allowed_in=()),
        auto_delete=AutoDeleteSettings(command_messages=False, error_messages=True),
        error_messages={
            "error": "Erro ao iniciar a configuração do resumo.",
            "notAllowed": DEFAULT_NOT_ALLOWED,
        },
    ),
    CommandDescriptor(
        name=CommandName.CHAT_GPT,
        prefixes=("#!",),
        description="Pergunte qualquer coisa (ex: #qual a capital da Austrália?)",
        auto_delete=AutoDeleteSettings(command_messages=False, error_messages=True),
        error_messages={
            "error": _GENERIC_ERROR,
            "invalidFormat": "Escreva sua pergunta depois do #.",
            "notAllowed": DEFAULT_NOT_ALLOWED,
        },
    ),
)

WIZARD_ENTRY_PREFIXES: tuple[str, ...] = ("#ferramentaresumo",)
