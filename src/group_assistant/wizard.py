"""Multi-turn dialogue that configures periodic summaries for a group."""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass
from typing import assert_never

from .ai import CompletionBackend
from .commands import WIZARD_ENTRY_PREFIXES, CommandName
from .errors import CompletionError, PersistenceError, ValidationError
from .models import GroupSummaryConfig, InboundMessage
from .notify import AdminNotifier
from .prompts import PromptBook
from .sessions import EditTarget, Session, SessionStore, WizardData, WizardState
from .structured_logging import log_event
from .summary_store import SummaryConfigStore
from .telegram import MessagingAPI
from .utils import parse_leading_int

CANCEL_WORDS = frozenset({"cancelar", "cancel"})
BACK_WORDS = frozenset({"voltar", "back"})
YES_WORDS = frozenset({"sim", "yes", "s", "y"})
NO_WORDS = frozenset({"nao", "não", "no", "n"})

QUIET_TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")

CANCELLED_TEXT = "❌ Configuração cancelada."
EXPIRED_TEXT = (
    "A sessão de configuração expirou. Por favor, inicie novamente com #ferramentaresumo"
)
PROCESSING_ERROR_TEXT = (
    "❌ Ocorreu um erro ao processar sua resposta. Por favor, tente novamente.\n\n"
    'Digite "cancelar" para cancelar a configuração.'
)
SAVE_FAILED_TEXT = (
    "❌ Não foi possível salvar a configuração. "
    "Por favor, inicie novamente com #ferramentaresumo"
)
SAVED_TEXT = (
    "✅ Configuração salva com sucesso! O resumo periódico está ativado para este grupo."
)
GROUP_DELETED_TEXT = "✅ Grupo excluído com sucesso!"
DELETE_CANCELLED_TEXT = "❌ Exclusão cancelada."
BACK_PREFIX = "Ok, vamos voltar.\n\n"

_MENU_HINT = 'Digite "voltar" para retornar ao menu anterior ou "cancelar" para cancelar.'
_CONFIG_TYPE_OPTIONS = (
    "Como você deseja configurar o resumo?\n\n"
    "1️⃣ - Usar configurações padrão\n"
    "2️⃣ - Personalizar configurações\n\n"
    "Responda com 1 ou 2."
)

_PREVIOUS_STATE: dict[WizardState, WizardState] = {
    WizardState.AWAITING_CONFIG_TYPE: WizardState.AWAITING_GROUP_NAME,
    WizardState.AWAITING_EDIT_OPTION: WizardState.AWAITING_GROUP_NAME,
    WizardState.AWAITING_INTERVAL: WizardState.AWAITING_CONFIG_TYPE,
    WizardState.AWAITING_QUIET_START: WizardState.AWAITING_INTERVAL,
    WizardState.AWAITING_QUIET_END: WizardState.AWAITING_QUIET_START,
    WizardState.AWAITING_AUTO_DELETE_CHOICE: WizardState.AWAITING_QUIET_END,
    WizardState.AWAITING_DELETE_AFTER: WizardState.AWAITING_AUTO_DELETE_CHOICE,
    WizardState.AWAITING_GROUP_INFO: WizardState.AWAITING_AUTO_DELETE_CHOICE,
    WizardState.AWAITING_PROMPT_APPROVAL: WizardState.AWAITING_GROUP_INFO,
    WizardState.AWAITING_CUSTOM_PROMPT: WizardState.AWAITING_PROMPT_APPROVAL,
    WizardState.AWAITING_CONFIRMATION: WizardState.AWAITING_PROMPT_APPROVAL,
    WizardState.AWAITING_DELETE_CONFIRM: WizardState.AWAITING_EDIT_OPTION,
}

# First and last state of each edit sub-flow.
_EDIT_ENTRY_STATE: dict[EditTarget, WizardState] = {
    EditTarget.INTERVAL: WizardState.AWAITING_INTERVAL,
    EditTarget.QUIET_TIME: WizardState.AWAITING_QUIET_START,
    EditTarget.PROMPT: WizardState.AWAITING_GROUP_INFO,
}
_EDIT_LAST_STATE: dict[EditTarget, WizardState] = {
    EditTarget.INTERVAL: WizardState.AWAITING_INTERVAL,
    EditTarget.QUIET_TIME: WizardState.AWAITING_QUIET_END,
    EditTarget.PROMPT: WizardState.AWAITING_PROMPT_APPROVAL,
}

logger = logging.getLogger(__name__)


def previous_state(state: WizardState, data: WizardData) -> WizardState | None:
    """Return the state "voltar" leads to, or ``None`` for the initial state."""

    target = data.edit_target
    if target is not None:
        if state is _EDIT_ENTRY_STATE[target]:
            return WizardState.AWAITING_EDIT_OPTION
        if state is WizardState.AWAITING_CONFIRMATION:
            return _EDIT_LAST_STATE[target]
    if state is WizardState.AWAITING_CONFIRMATION and data.use_defaults:
        return WizardState.AWAITING_CONFIG_TYPE
    return _PREVIOUS_STATE.get(state)


def is_entry_command(text: str) -> bool:
    lowered = text.strip().lower()
    return any(
        lowered == prefix or lowered.startswith(prefix + " ")
        for prefix in WIZARD_ENTRY_PREFIXES
    )


@dataclass(slots=True)
class _Transition:
    reply: str
    # ``None`` ends the session.
    state: WizardState | None
    data: WizardData | None = None


class SummaryConfigWizard:
    """State machine walking an admin through a group's summary settings.

    Every transition is computed on a copy of the session data and only
    committed after the reply went out, so a failing AI call or transport
    leaves the session exactly as it was.
    """

    def __init__(
        self,
        sessions: SessionStore,
        store: SummaryConfigStore,
        completion: CompletionBackend,
        prompts: PromptBook,
        messaging: MessagingAPI,
        notifier: AdminNotifier,
    ) -> None:
        self._sessions = sessions
        self._store = store
        self._completion = completion
        self._prompts = prompts
        self._messaging = messaging
        self._notifier = notifier

    async def start(self, message: InboundMessage) -> Session:
        """Open a fresh session for the sender, replacing any active one."""

        user_id = message.sender_id
        self._sessions.delete(user_id)
        await self._messaging.reply(message, self._intro_text())
        session = self._sessions.create(user_id)
        self._log(message, "started", WizardState.AWAITING_GROUP_NAME)
        return session

    async def expire(self, session: Session, message: InboundMessage) -> None:
        self._sessions.delete(session.user_id)
        log_event(
            "wizard_expired",
            level=logging.INFO,
            chat_id=message.chat_id,
            user_id=session.user_id,
            command=CommandName.RESUMO_CONFIG.value,
            outcome="expired",
            latency_ms=None,
            extra={"state": session.state.value},
        )
        await self._safe_reply(message, EXPIRED_TEXT)

    async def handle(self, session: Session, message: InboundMessage) -> None:
        text = message.body
        lowered = text.lower()

        if lowered in CANCEL_WORDS:
            self._sessions.delete(session.user_id)
            self._log(message, "cancelled", session.state)
            await self._safe_reply(message, CANCELLED_TEXT)
            return

        if is_entry_command(text):
            try:
                await self.start(message)
            except Exception:
                logger.exception("Failed to restart summary wizard for %s", session.user_id)
            return

        try:
            if lowered in BACK_WORDS and session.state is not WizardState.AWAITING_GROUP_NAME:
                transition = await self._back(session)
            else:
                transition = await self._advance(session, text, lowered)
        except ValidationError as exc:
            self._log(message, "rejected", session.state)
            await self._safe_reply(message, exc.reply)
            return
        except PersistenceError as exc:
            await self._abort_after_persist_failure(session, message, exc)
            return
        except Exception as exc:
            logger.exception("Error handling wizard response in state %s", session.state.value)
            await self._safe_reply(message, PROCESSING_ERROR_TEXT)
            await self._notify_admin(exc)
            return

        if transition.state is None:
            self._sessions.delete(session.user_id)
            self._log(message, "completed", session.state)
            await self._safe_reply(message, transition.reply)
            return

        try:
            await self._messaging.reply(message, transition.reply)
        except Exception as exc:
            logger.exception("Failed to send wizard prompt for %s", transition.state.value)
            await self._safe_reply(message, PROCESSING_ERROR_TEXT)
            await self._notify_admin(exc)
            return

        previous = session.state
        session.state = transition.state
        if transition.data is not None:
            session.data = transition.data
        self._sessions.touch(session)
        self._log(message, transition.state.value, previous)

    async def _back(self, session: Session) -> _Transition:
        target = previous_state(session.state, session.data)
        if target is None:
            raise ValidationError(self._group_name_question())
        data = dataclasses.replace(session.data)
        if target is WizardState.AWAITING_GROUP_NAME:
            data = WizardData()
        elif target is WizardState.AWAITING_EDIT_OPTION:
            data = WizardData(group_name=data.group_name)
        elif target is WizardState.AWAITING_PROMPT_APPROVAL:
            data.prompt = await self._generate_prompt(data)
        return _Transition(BACK_PREFIX + self._prompt_for(target, data), target, data)

    async def _advance(self, session: Session, text: str, lowered: str) -> _Transition:
        data = dataclasses.replace(session.data)
        state = session.state
        match state:
            case WizardState.AWAITING_GROUP_NAME:
                return self._on_group_name(text)
            case WizardState.AWAITING_CONFIG_TYPE:
                return self._on_config_type(lowered, data)
            case WizardState.AWAITING_EDIT_OPTION:
                return self._on_edit_option(lowered, data)
            case WizardState.AWAITING_INTERVAL:
                return self._on_interval(lowered, data)
            case WizardState.AWAITING_QUIET_START:
                return self._on_quiet_start(text, data)
            case WizardState.AWAITING_QUIET_END:
                return self._on_quiet_end(text, data)
            case WizardState.AWAITING_AUTO_DELETE_CHOICE:
                return self._on_auto_delete_choice(lowered, data)
            case WizardState.AWAITING_DELETE_AFTER:
                return self._on_delete_after(lowered, data)
            case WizardState.AWAITING_GROUP_INFO:
                return await self._on_group_info(text, data)
            case WizardState.AWAITING_PROMPT_APPROVAL:
                return self._on_prompt_approval(lowered, data)
            case WizardState.AWAITING_CUSTOM_PROMPT:
                return self._on_custom_prompt(text, data)
            case WizardState.AWAITING_CONFIRMATION:
                return self._on_confirmation(lowered, data)
            case WizardState.AWAITING_DELETE_CONFIRM:
                return self._on_delete_confirm(lowered, data)
            case _:
                assert_never(state)

    def _on_group_name(self, text: str) -> _Transition:
        groups = self._store.groups()
        index = parse_leading_int(text)
        if index is not None and 1 <= index <= len(groups):
            data = WizardData(group_name=groups[index - 1])
            return _Transition(
                self._edit_menu(data), WizardState.AWAITING_EDIT_OPTION, data
            )
        if not text:
            raise ValidationError(
                "❌ Por favor, envie o nome do grupo.\n\n"
                'Digite "cancelar" para cancelar a configuração.'
            )
        if text.startswith(("#", "@")):
            raise ValidationError(
                "❌ Por favor, envie apenas o nome do grupo, sem prefixos de comando (#, @).\n\n"
                'Digite "cancelar" para cancelar a configuração.'
            )
        data = WizardData(group_name=text)
        return _Transition(
            f'✅ Grupo selecionado: "{text}"\n\n'
            + self._prompt_for(WizardState.AWAITING_CONFIG_TYPE, data),
            WizardState.AWAITING_CONFIG_TYPE,
            data,
        )

    def _on_config_type(self, answer: str, data: WizardData) -> _Transition:
        if answer == "1":
            data.use_defaults = True
            data.prompt = self._store.defaults.prompt
            return self._to_confirmation(data)
        if answer == "2":
            data.use_defaults = False
            return self._to(WizardState.AWAITING_INTERVAL, data)
        raise ValidationError(
            "❌ Por favor, responda apenas com 1 (configurações padrão) ou 2 (personalizar).\n\n"
            'Digite "voltar" para mudar o grupo ou "cancelar" para cancelar.'
        )

    def _on_edit_option(self, answer: str, data: WizardData) -> _Transition:
        option = parse_leading_int(answer)
        if option is None or not 1 <= option <= 5:
            raise ValidationError("❌ Por favor, escolha uma opção válida (1-5).")
        match option:
            case 1:
                return self._toggle_group(data)
            case 2:
                data.edit_target = EditTarget.INTERVAL
                return self._to(WizardState.AWAITING_INTERVAL, data)
            case 3:
                data.edit_target = EditTarget.QUIET_TIME
                return self._to(WizardState.AWAITING_QUIET_START, data)
            case 4:
                data.edit_target = EditTarget.PROMPT
                return self._to(WizardState.AWAITING_GROUP_INFO, data)
            case _:
                return self._to(WizardState.AWAITING_DELETE_CONFIRM, data)

    def _on_interval(self, answer: str, data: WizardData) -> _Transition:
        interval = parse_leading_int(answer)
        if interval is None or not 1 <= interval <= 24:
            raise ValidationError(
                "❌ Por favor, envie um número válido entre 1 e 24.\n\n"
                'Digite "voltar" para mudar a configuração ou "cancelar" para cancelar.'
            )
        data.interval_hours = interval
        if data.edit_target is EditTarget.INTERVAL:
            return self._to_confirmation(data)
        return self._to(WizardState.AWAITING_QUIET_START, data)

    def _on_quiet_start(self, text: str, data: WizardData) -> _Transition:
        if not QUIET_TIME_PATTERN.match(text):
            raise ValidationError(
                "❌ Por favor, envie um horário válido no formato HH:MM (ex: 22:00).\n\n"
                'Digite "voltar" para mudar o intervalo ou "cancelar" para cancelar.'
            )
        data.quiet_start = text
        data.quiet_end = None
        return self._to(WizardState.AWAITING_QUIET_END, data)

    def _on_quiet_end(self, text: str, data: WizardData) -> _Transition:
        if not QUIET_TIME_PATTERN.match(text):
            raise ValidationError(
                "❌ Por favor, envie um horário válido no formato HH:MM (ex: 07:00).\n\n"
                'Digite "voltar" para mudar o horário de início ou "cancelar" para cancelar.'
            )
        data.quiet_end = text
        if data.edit_target is EditTarget.QUIET_TIME:
            return self._to_confirmation(data)
        return self._to(WizardState.AWAITING_AUTO_DELETE_CHOICE, data)

    def _on_auto_delete_choice(self, answer: str, data: WizardData) -> _Transition:
        if answer in YES_WORDS:
            return self._to(WizardState.AWAITING_DELETE_AFTER, data)
        if answer in NO_WORDS:
            data.delete_after = None
            return self._to(WizardState.AWAITING_GROUP_INFO, data)
        raise ValidationError(
            "❌ Por favor, responda apenas com *sim* ou *não*.\n\n"
            'Digite "voltar" para mudar o horário silencioso ou "cancelar" para cancelar.'
        )

    def _on_delete_after(self, answer: str, data: WizardData) -> _Transition:
        minutes = parse_leading_int(answer)
        if minutes is None or minutes < 1:
            raise ValidationError(
                "❌ Por favor, envie um número válido de minutos.\n\n"
                'Digite "voltar" para mudar sua escolha ou "cancelar" para cancelar.'
            )
        data.delete_after = minutes
        return self._to(WizardState.AWAITING_GROUP_INFO, data)

    async def _on_group_info(self, text: str, data: WizardData) -> _Transition:
        if not text:
            raise ValidationError(
                "❌ Por favor, descreva o grupo.\n\n"
                'Digite "voltar" para mudar sua escolha ou "cancelar" para cancelar.'
            )
        data.group_info = text
        data.prompt = await self._generate_prompt(data)
        return self._to(WizardState.AWAITING_PROMPT_APPROVAL, data)

    def _on_prompt_approval(self, answer: str, data: WizardData) -> _Transition:
        if answer == "1":
            return self._to_confirmation(data)
        if answer == "2":
            return self._to(WizardState.AWAITING_CUSTOM_PROMPT, data)
        raise ValidationError(
            "❌ Por favor, responda apenas com 1 (usar prompt sugerido) ou 2 (criar próprio).\n\n"
            'Digite "voltar" para mudar a descrição do grupo ou "cancelar" para cancelar.'
        )

    def _on_custom_prompt(self, text: str, data: WizardData) -> _Transition:
        if not text:
            raise ValidationError(
                "❌ Por favor, envie o texto do prompt.\n\n"
                'Digite "voltar" para usar o prompt sugerido ou "cancelar" para cancelar.'
            )
        data.prompt = text
        return self._to_confirmation(data)

    def _on_confirmation(self, answer: str, data: WizardData) -> _Transition:
        if answer in YES_WORDS:
            self._persist_group(self._group_name(data), self._resolve_config(data))
            return _Transition(SAVED_TEXT, None)
        if answer in NO_WORDS:
            return _Transition(CANCELLED_TEXT, None)
        raise ValidationError(
            "❌ Por favor, responda apenas com *sim* ou *não*.\n\n"
            'Digite "voltar" para revisar as configurações ou "cancelar" para cancelar.'
        )

    def _on_delete_confirm(self, answer: str, data: WizardData) -> _Transition:
        if answer in YES_WORDS:
            self._persist_removal(self._group_name(data))
            return _Transition(GROUP_DELETED_TEXT, None)
        if answer in NO_WORDS:
            return _Transition(DELETE_CANCELLED_TEXT, None)
        raise ValidationError(
            "❌ Por favor, responda apenas com *sim* ou *não*.\n\n"
            'Digite "voltar" para retornar ao menu anterior ou "cancelar" para cancelar.'
        )

    def _toggle_group(self, data: WizardData) -> _Transition:
        name = self._group_name(data)
        current = self._store.get(name) or self._default_config()
        updated = dataclasses.replace(current, enabled=not current.enabled)
        previous = self._store.get(name)
        self._store.set(name, updated)
        try:
            self._store.save()
        except PersistenceError:
            self._restore(name, previous)
            raise
        status = "ativado" if updated.enabled else "desativado"
        return _Transition(f"✅ Grupo {status} com sucesso!", None)

    def _persist_group(self, name: str, config: GroupSummaryConfig) -> None:
        previous = self._store.get(name)
        was_enabled = self._store.enabled
        self._store.set(name, config)
        self._store.set_enabled(True)
        try:
            self._store.save()
        except PersistenceError:
            self._restore(name, previous)
            self._store.set_enabled(was_enabled)
            raise

    def _persist_removal(self, name: str) -> None:
        previous = self._store.get(name)
        if not self._store.remove(name):
            return
        try:
            self._store.save()
        except PersistenceError:
            self._restore(name, previous)
            raise

    def _restore(self, name: str, previous: GroupSummaryConfig | None) -> None:
        if previous is None:
            self._store.remove(name)
        else:
            self._store.set(name, previous)

    async def _abort_after_persist_failure(
        self, session: Session, message: InboundMessage, exc: PersistenceError
    ) -> None:
        logger.error("Failed to persist summary config for %s: %s", session.user_id, exc)
        self._sessions.delete(session.user_id)
        self._log(message, "persist_failed", session.state)
        await self._safe_reply(message, SAVE_FAILED_TEXT)
        await self._notify_admin(exc)

    async def _notify_admin(self, exc: BaseException) -> None:
        try:
            await self._notifier.notify(f"Error in {CommandName.RESUMO_CONFIG.value} handler: {exc}")
        except Exception:
            logger.exception("Failed to notify admin about wizard error")

    async def _generate_prompt(self, data: WizardData) -> str:
        template = self._prompts.render(
            CommandName.RESUMO_CONFIG.value,
            "GENERATE_TEMPLATE",
            group=data.group_name,
            groupInfo=data.group_info or "",
        )
        generated = (await self._completion.complete(template, 0.7)).strip()
        if not generated:
            raise CompletionError("Prompt generation returned an empty text")
        return generated

    def _to(self, state: WizardState, data: WizardData) -> _Transition:
        return _Transition(self._prompt_for(state, data), state, data)

    def _to_confirmation(self, data: WizardData) -> _Transition:
        return self._to(WizardState.AWAITING_CONFIRMATION, data)

    def _prompt_for(self, state: WizardState, data: WizardData) -> str:
        editing = data.editing
        match state:
            case WizardState.AWAITING_GROUP_NAME:
                return self._group_name_question()
            case WizardState.AWAITING_CONFIG_TYPE:
                return (
                    f"{_CONFIG_TYPE_OPTIONS}\n\n"
                    'Digite "voltar" para selecionar outro grupo ou "cancelar" para cancelar '
                    "a configuração."
                )
            case WizardState.AWAITING_EDIT_OPTION:
                return self._edit_menu(data)
            case WizardState.AWAITING_INTERVAL:
                if editing:
                    return f"Digite o novo intervalo em horas (1-24):\n\n{_MENU_HINT}"
                return (
                    "Digite o intervalo desejado entre os resumos (em horas, entre 1 e 24):\n\n"
                    'Digite "voltar" para mudar a configuração ou "cancelar" para cancelar.'
                )
            case WizardState.AWAITING_QUIET_START:
                if editing:
                    return (
                        "Digite o novo horário de início do período silencioso "
                        f"(formato HH:MM, exemplo: 21:00):\n\n{_MENU_HINT}"
                    )
                return (
                    "Qual o horário de início do período silencioso? "
                    "(quando não deve enviar resumos)\n"
                    "Responda no formato HH:MM (ex: 22:00).\n\n"
                    'Digite "voltar" para mudar o intervalo ou "cancelar" para cancelar.'
                )
            case WizardState.AWAITING_QUIET_END:
                return (
                    "Qual o horário de fim do período silencioso?\n"
                    "Responda no formato HH:MM (ex: 07:00).\n\n"
                    'Digite "voltar" para mudar o horário de início ou "cancelar" para cancelar.'
                )
            case WizardState.AWAITING_AUTO_DELETE_CHOICE:
                return (
                    "Você deseja que os resumos sejam automaticamente excluídos após um "
                    "determinado tempo?\n\n"
                    "Responda com *sim* ou *não*.\n\n"
                    'Digite "voltar" para mudar o horário silencioso ou "cancelar" para cancelar.'
                )
            case WizardState.AWAITING_DELETE_AFTER:
                return (
                    "Digite após quantos minutos os resumos devem ser excluídos:\n\n"
                    'Digite "voltar" para mudar sua escolha ou "cancelar" para cancelar.'
                )
            case WizardState.AWAITING_GROUP_INFO:
                if editing:
                    return (
                        "Descreva o objetivo e contexto do grupo para gerar um novo prompt:\n\n"
                        f"{_MENU_HINT}"
                    )
                change = "sua escolha" if data.delete_after is None else "o tempo de auto-exclusão"
                return (
                    "Descreva os objetivos e características do grupo para eu gerar um "
                    "prompt personalizado.\n"
                    'Por exemplo: "Grupo de estudos de medicina focado em compartilhar artigos '
                    'e discutir casos clínicos"\n\n'
                    f'Digite "voltar" para mudar {change} ou "cancelar" para cancelar.'
                )
            case WizardState.AWAITING_PROMPT_APPROVAL:
                return (
                    "Este é o prompt sugerido para o resumo:\n\n"
                    f'"{data.prompt}"\n\n'
                    "1️⃣ - Usar este prompt\n"
                    "2️⃣ - Criar meu próprio prompt\n\n"
                    "Responda com 1 ou 2.\n\n"
                    'Digite "voltar" para mudar a descrição do grupo ou "cancelar" para cancelar.'
                )
            case WizardState.AWAITING_CUSTOM_PROMPT:
                return (
                    "Digite o prompt personalizado que você quer usar para os resumos.\n\n"
                    'Digite "voltar" para usar o prompt sugerido ou "cancelar" para cancelar.'
                )
            case WizardState.AWAITING_CONFIRMATION:
                return self._confirmation_text(data)
            case WizardState.AWAITING_DELETE_CONFIRM:
                return (
                    "⚠️ Tem certeza que deseja excluir a configuração do grupo "
                    f'"{data.group_name}"?\n\n'
                    "Digite *sim* para confirmar ou *não* para cancelar."
                )
            case _:
                assert_never(state)

    def _intro_text(self) -> str:
        return (
            "*Configuração do Resumo Periódico*\n\n"
            f"{self._group_name_question()}\n\n"
            'Digite "cancelar" para cancelar a configuração.'
        )

    def _group_name_question(self) -> str:
        groups = self._store.groups()
        if not groups:
            return "Qual é o nome exato do grupo que você quer configurar?"
        listing = "\n".join(f"{index}. {name}" for index, name in enumerate(groups, start=1))
        return (
            f"*Grupos configurados:*\n{listing}\n\n"
            "Responda com o número de um grupo para editá-lo ou envie o nome exato "
            "de um novo grupo para configurar."
        )

    def _edit_menu(self, data: WizardData) -> str:
        name = self._group_name(data)
        config = self._store.get(name) or self._default_config()
        status = "✅ Ativado" if config.enabled else "❌ Desativado"
        return (
            f"*Grupo selecionado:* {name}\n\n"
            "*Configurações atuais:*\n"
            f"1. Status: {status}\n"
            f"2. Intervalo: {config.interval_hours} horas\n"
            f"3. Período silencioso: {config.quiet_time.start} até {config.quiet_time.end}\n"
            f"4. Prompt:\n{config.prompt}\n\n"
            "*Escolha uma opção para editar ou 5 para excluir o grupo.*\n\n"
            "Responda com o número da opção desejada."
        )

    def _confirmation_text(self, data: WizardData) -> str:
        config = self._resolve_config(data)
        title = (
            "📋 *Resumo das configurações padrão:*"
            if data.use_defaults
            else "📋 *Resumo das configurações:*"
        )
        auto_delete = (
            "Não" if config.delete_after is None else f"Sim, após {config.delete_after} minutos"
        )
        return (
            f"{title}\n\n"
            f"• Grupo: {data.group_name}\n"
            f"• Intervalo: {config.interval_hours} horas\n"
            f"• Horário silencioso: {config.quiet_time.start} até {config.quiet_time.end}\n"
            f"• Auto-exclusão: {auto_delete}\n"
            f'• Prompt: "{config.prompt}"\n\n'
            "Confirma estas configurações?\n"
            "Responda com *sim* ou *não*.\n\n"
            'Digite "voltar" para revisar as configurações ou "cancelar" para cancelar.'
        )

    def _resolve_config(self, data: WizardData) -> GroupSummaryConfig:
        """Config the current answers would persist for the group."""

        defaults = self._store.defaults
        if data.use_defaults:
            return self._default_config()

        target = data.edit_target
        if target is None:
            return GroupSummaryConfig(
                enabled=True,
                interval_hours=data.interval_hours or defaults.interval_hours,
                quiet_time=data.quiet_time or defaults.quiet_time,
                delete_after=data.delete_after,
                prompt=data.prompt or defaults.prompt,
            )

        current = self._store.get(self._group_name(data)) or self._default_config()
        match target:
            case EditTarget.INTERVAL:
                return dataclasses.replace(
                    current, interval_hours=data.interval_hours or current.interval_hours
                )
            case EditTarget.QUIET_TIME:
                return dataclasses.replace(
                    current, quiet_time=data.quiet_time or current.quiet_time
                )
            case EditTarget.PROMPT:
                return dataclasses.replace(current, prompt=data.prompt or current.prompt)
            case _:
                assert_never(target)

    def _default_config(self) -> GroupSummaryConfig:
        defaults = self._store.defaults
        return GroupSummaryConfig(
            enabled=True,
            interval_hours=defaults.interval_hours,
            quiet_time=defaults.quiet_time,
            delete_after=defaults.delete_after,
            prompt=defaults.prompt,
        )

    @staticmethod
    def _group_name(data: WizardData) -> str:
        if data.group_name is None:
            raise ValueError("Wizard data has no group selected")
        return data.group_name

    async def _safe_reply(self, message: InboundMessage, text: str) -> None:
        try:
            await self._messaging.reply(message, text)
        except Exception:
            logger.exception("Failed to send wizard reply to %s", message.chat_id)

    def _log(self, message: InboundMessage, outcome: str, state: WizardState) -> None:
        log_event(
            "wizard_transition",
            level=logging.INFO,
            chat_id=message.chat_id,
            user_id=message.sender_id,
            command=CommandName.RESUMO_CONFIG.value,
            outcome=outcome,
            latency_ms=None,
            extra={"from_state": state.value},
        )
