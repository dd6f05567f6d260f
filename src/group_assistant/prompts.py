"""Prompt templates sent to the completion backend."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

DEFAULT_PROMPTS: dict[str, dict[str, str]] = {
    "CHAT_GPT": {
        "DEFAULT": (
            "{groupPersonality}"
            "Você é um assistente de um grupo de conversa. Responda em português, "
            "de forma direta e bem-humorada.\n\n"
            "{name} perguntou: {question}"
        ),
        "WITH_CONTEXT": (
            "{groupPersonality}"
            "Você é um assistente de um grupo de conversa. Use o contexto abaixo para "
            "responder em português.\n\n"
            "Contexto:\n{context}\n\n"
            "{name} perguntou: {question}"
        ),
    },
    "RESUMO": {
        "DEFAULT": (
            "{groupPersonality}"
            "{name} pediu um resumo das últimas {limit} mensagens do grupo. "
            "Faça um resumo curto, em tópicos, em português:\n\n{messageTexts}"
        ),
        "HOUR_SUMMARY": (
            "{groupPersonality}"
            "{name} pediu um resumo do que foi conversado nas últimas {hours} horas. "
            "Faça um resumo curto, em tópicos, em português:\n\n{messageTexts}"
        ),
        "LINK_SUMMARY": (
            "Resuma em português, em no máximo um parágrafo, o conteúdo da página abaixo:\n\n"
            "{pageContent}"
        ),
        "QUOTED_MESSAGE": (
            "Resuma em português, em poucas frases, a mensagem de {name}:\n\n{quotedText}"
        ),
    },
    "NEWS": {
        "TRANSLATE": (
            "Traduza para o português as manchetes abaixo, uma por linha, mantendo a "
            "ordem e sem numeração:\n\n{newsText}"
        ),
    },
    "DESENHO": {
        "IMPROVE_PROMPT": (
            "Reescreva a descrição abaixo como um prompt detalhado em inglês para um "
            "gerador de imagens. Responda apenas com o prompt.\n\n{prompt}"
        ),
    },
    "RESUMO_CONFIG": {
        "GENERATE_TEMPLATE": (
            "Crie um prompt, em português, para instruir um assistente a resumir "
            "periodicamente as conversas de um grupo com a seguinte descrição:\n\n"
            "{groupInfo}\n\n"
            "Responda apenas com o texto do prompt, sem aspas."
        ),
    },
}


def merge_prompts(
    overrides: Mapping[str, Mapping[str, str]] | None,
) -> dict[str, dict[str, str]]:
    merged = {command: dict(templates) for command, templates in DEFAULT_PROMPTS.items()}
    if not overrides:
        return merged
    for command, templates in overrides.items():
        merged.setdefault(str(command), {}).update(
            {str(name): str(text) for name, text in templates.items()}
        )
    return merged


def render_prompt(template: str, replacements: Mapping[str, Any]) -> str:
    """Substitute ``{key}`` placeholders, leaving unknown ones untouched."""

    prompt = template
    for key, value in replacements.items():
        prompt = prompt.replace(f"{{{key}}}", "" if value is None else str(value))
    return prompt


class PromptBook:
    """Lookup of prompt templates with per-group personality injection."""

    def __init__(
        self,
        templates: Mapping[str, Mapping[str, str]],
        *,
        personalities: Mapping[str, str] | None = None,
    ) -> None:
        self._templates = templates
        self._personalities = dict(personalities or {})

    def render(
        self,
        command: str,
        template_name: str,
        /,
        *,
        group: str | None = None,
        **replacements: Any,
    ) -> str:
        """Render ``command.template_name``; every keyword but ``group`` is a placeholder."""

        try:
            template = self._templates[command][template_name]
        except KeyError as exc:
            raise KeyError(f"Prompt not found: {command}.{template_name}") from exc
        personality = self._personalities.get(group or "", "")
        if personality:
            personality = f"{personality}\n\n"
        replacements.setdefault("groupPersonality", personality)
        return render_prompt(template, replacements)
