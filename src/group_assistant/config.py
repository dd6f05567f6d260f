from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, cast

from yaml import safe_load

from .commands import (
    DEFAULT_COMMANDS,
    AutoDeleteSettings,
    CommandDescriptor,
    CommandName,
    Permissions,
)
from .models import QuietTime, SummaryDefaults
from .prompts import merge_prompts
from .utils import normalize_username

DEFAULT_SUMMARY_STORE: Final[Path] = Path("periodic_summary.json")
DEFAULT_MESSAGE_DELETE_TIMEOUT_MS: Final[int] = 60_000
DEFAULT_SWEEP_INTERVAL: Final[float] = 60.0
DEFAULT_SESSION_TTL_MINUTES: Final[float] = 30.0
DEFAULT_HISTORY_LIMIT: Final[int] = 1000
DEFAULT_COMPLETION_MODEL: Final[str] = "gpt-4o-mini"
DEFAULT_TRANSCRIPTION_MODEL: Final[str] = "whisper-1"
DEFAULT_IMAGE_MODEL: Final[str] = "dall-e-3"
DEFAULT_NEWS_FEED_URL: Final[str] = "https://news.google.com/rss?hl=pt-BR&gl=BR&ceid=BR:pt-419"
DEFAULT_NEWS_SEARCH_URL: Final[str] = "https://news.google.com/rss/search?hl=pt-BR&gl=BR&ceid=BR:pt-419"

__all__ = [
    "AdminIdentity",
    "BotConfig",
    "DEFAULT_MESSAGE_DELETE_TIMEOUT_MS",
    "DEFAULT_SWEEP_INTERVAL",
    "merge_command_overrides",
]


@dataclass(frozen=True, slots=True)
class AdminIdentity:
    """Administrator recognised by numeric id and/or username."""

    user_id: str | None = None
    username: str | None = None

    def matches(self, user_id: str | None, username: str | None = None) -> bool:
        if self.user_id is not None and user_id is not None:
            candidate = str(user_id).strip()
            if candidate.startswith("@"):
                candidate = candidate[1:]
            if candidate == self.user_id:
                return True
        normalized = normalize_username(username)
        return bool(normalized and self.username and normalized == self.username)

    @classmethod
    def parse(cls, value: object) -> AdminIdentity:
        if value is None:
            return cls()
        if isinstance(value, Mapping):
            raw_id = value.get("id", value.get("user_id"))
            user_id = str(raw_id).strip() if raw_id is not None else None
            return cls(
                user_id=user_id or None,
                username=normalize_username(_optional_str(value.get("username"))),
            )
        text = str(value).strip()
        if text.startswith("@"):
            return cls(username=normalize_username(text))
        if text.lstrip("-").isdigit():
            return cls(user_id=text)
        return cls(username=normalize_username(text))


@dataclass(frozen=True, slots=True)
class BotConfig:
    telegram_token: str
    admin: AdminIdentity = field(default_factory=AdminIdentity)
    openai_api_key: str | None = None
    completion_model: str = DEFAULT_COMPLETION_MODEL
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    summary_store: Path = DEFAULT_SUMMARY_STORE
    message_delete_timeout_ms: int = DEFAULT_MESSAGE_DELETE_TIMEOUT_MS
    sweep_interval: float = DEFAULT_SWEEP_INTERVAL
    session_ttl_minutes: float = DEFAULT_SESSION_TTL_MINUTES
    history_limit: int = DEFAULT_HISTORY_LIMIT
    news_feed_url: str = DEFAULT_NEWS_FEED_URL
    news_search_url: str = DEFAULT_NEWS_SEARCH_URL
    not_allowed_message: str = "Você não tem permissão para usar este comando."
    commands: tuple[CommandDescriptor, ...] = DEFAULT_COMMANDS
    prompts: Mapping[str, Mapping[str, str]] = field(default_factory=lambda: merge_prompts(None))
    group_personalities: Mapping[str, str] = field(default_factory=dict)
    summary_defaults: SummaryDefaults = field(default_factory=SummaryDefaults)

    @classmethod
    def from_file(cls, path: Path) -> BotConfig:
        path = path.expanduser()
        data = _load_yaml(path)
        return cls.from_mapping(data, base_dir=path.resolve().parent)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, base_dir: Path | None = None) -> BotConfig:
        try:
            telegram_token = str(data["telegram_token"]).strip()
        except KeyError as exc:
            missing = exc.args[0]
            raise ValueError(f"Missing required configuration key: {missing}") from exc
        if not telegram_token:
            raise ValueError("Configuration field 'telegram_token' must not be empty")

        api_key = _optional_str(data.get("openai_api_key")) or os.getenv("OPENAI_API_KEY")

        delete_timeout = int(
            data.get("message_delete_timeout_ms", DEFAULT_MESSAGE_DELETE_TIMEOUT_MS)
        )
        if delete_timeout < 0:
            raise ValueError(
                "Configuration field 'message_delete_timeout_ms' cannot be negative"
            )
        sweep_interval = float(data.get("sweep_interval", DEFAULT_SWEEP_INTERVAL))
        if sweep_interval <= 0:
            raise ValueError("Configuration field 'sweep_interval' must be positive")
        session_ttl = float(data.get("session_ttl_minutes", DEFAULT_SESSION_TTL_MINUTES))
        if session_ttl <= 0:
            raise ValueError("Configuration field 'session_ttl_minutes' must be positive")
        history_limit = int(data.get("history_limit", DEFAULT_HISTORY_LIMIT))
        if history_limit < 1:
            raise ValueError("Configuration field 'history_limit' must be at least 1")

        prompts = data.get("prompts")
        if prompts is not None and not isinstance(prompts, Mapping):
            raise ValueError("Configuration field 'prompts' must be a mapping if provided")
        personalities = data.get("group_personalities") or {}
        if not isinstance(personalities, Mapping):
            raise ValueError(
                "Configuration field 'group_personalities' must be a mapping if provided"
            )

        return cls(
            telegram_token=telegram_token,
            admin=AdminIdentity.parse(data.get("admin")),
            openai_api_key=api_key,
            completion_model=str(data.get("completion_model", DEFAULT_COMPLETION_MODEL)),
            transcription_model=str(
                data.get("transcription_model", DEFAULT_TRANSCRIPTION_MODEL)
            ),
            image_model=str(data.get("image_model", DEFAULT_IMAGE_MODEL)),
            summary_store=_resolve_path(base_dir, data.get("summary_store"), DEFAULT_SUMMARY_STORE),
            message_delete_timeout_ms=delete_timeout,
            sweep_interval=sweep_interval,
            session_ttl_minutes=session_ttl,
            history_limit=history_limit,
            news_feed_url=str(data.get("news_feed_url", DEFAULT_NEWS_FEED_URL)),
            news_search_url=str(data.get("news_search_url", DEFAULT_NEWS_SEARCH_URL)),
            not_allowed_message=str(
                data.get("not_allowed_message", "Você não tem permissão para usar este comando.")
            ),
            commands=merge_command_overrides(DEFAULT_COMMANDS, data.get("commands")),
            prompts=merge_prompts(cast("Mapping[str, Mapping[str, str]] | None", prompts)),
            group_personalities={str(k): str(v) for k, v in personalities.items()},
            summary_defaults=_parse_summary_defaults(data.get("periodic_summary")),
        )


def merge_command_overrides(
    defaults: Sequence[CommandDescriptor], overrides: object
) -> tuple[CommandDescriptor, ...]:
    """Apply per-command YAML overrides on top of the built-in descriptors.

    Override values are copied verbatim; type problems surface when the
    command is matched.
    """

    if overrides is None:
        return tuple(defaults)
    if not isinstance(overrides, Mapping):
        raise ValueError("Configuration field 'commands' must be a mapping if provided")

    known = {descriptor.name.value for descriptor in defaults}
    for key in overrides:
        if str(key).upper() not in known:
            raise ValueError(f"Unknown command in configuration: {key}")

    normalized = {str(key).upper(): value for key, value in overrides.items()}
    merged: list[CommandDescriptor] = []
    for descriptor in defaults:
        override = normalized.get(descriptor.name.value)
        if override is None:
            merged.append(descriptor)
            continue
        if not isinstance(override, Mapping):
            raise ValueError(
                f"Configuration for command '{descriptor.name.value}' must be a mapping"
            )
        merged.append(_apply_override(descriptor, override))
    return tuple(merged)


def _apply_override(descriptor: CommandDescriptor, override: Mapping[str, Any]) -> CommandDescriptor:
    changes: dict[str, Any] = {}
    if "prefixes" in override:
        prefixes = override["prefixes"]
        changes["prefixes"] = tuple(prefixes) if isinstance(prefixes, list) else prefixes
    if "description" in override:
        changes["description"] = str(override["description"])
    if "permissions" in override:
        permissions = override["permissions"]
        allowed_in = (
            permissions.get("allowedIn") if isinstance(permissions, Mapping) else permissions
        )
        if isinstance(allowed_in, list):
            allowed_in = tuple(allowed_in)
        changes["permissions"] = Permissions(allowed_in=allowed_in)
    if "autoDelete" in override:
        auto_delete = override["autoDelete"]
        if isinstance(auto_delete, Mapping):
            timeout = auto_delete.get("deleteTimeout")
            changes["auto_delete"] = AutoDeleteSettings(
                command_messages=auto_delete.get(
                    "commandMessages", descriptor.auto_delete.command_messages
                ),
                error_messages=auto_delete.get(
                    "errorMessages", descriptor.auto_delete.error_messages
                ),
                delete_timeout_ms=int(timeout) if timeout is not None else None,
            )
        else:
            changes["auto_delete"] = AutoDeleteSettings(
                command_messages=auto_delete, error_messages=auto_delete
            )
    if "errorMessages" in override:
        messages = override["errorMessages"]
        if isinstance(messages, Mapping):
            merged_messages = dict(descriptor.error_messages)
            merged_messages.update({str(k): v for k, v in messages.items()})
            changes["error_messages"] = merged_messages
        else:
            changes["error_messages"] = messages
    if "stickerHashes" in override:
        hashes = override["stickerHashes"] or ()
        if isinstance(hashes, str):
            hashes = (hashes,)
        changes["sticker_hashes"] = frozenset(str(item).lower() for item in hashes)
    if "stickerHash" in override:
        legacy_hash = _optional_str(override["stickerHash"])
        changes["sticker_hash"] = legacy_hash.lower() if legacy_hash else None
    if "model" in override:
        changes["model"] = _optional_str(override["model"])
    if "defaultSummaryHours" in override:
        changes["default_summary_hours"] = int(override["defaultSummaryHours"])
    return dataclasses.replace(descriptor, **changes)


def _parse_summary_defaults(value: object) -> SummaryDefaults:
    if value is None:
        return SummaryDefaults()
    if not isinstance(value, Mapping):
        raise ValueError("Configuration field 'periodic_summary' must be a mapping if provided")
    base = SummaryDefaults()
    quiet = value.get("quietTime") or {}
    if not isinstance(quiet, Mapping):
        raise ValueError("Configuration field 'periodic_summary.quietTime' must be a mapping")
    delete_after = value.get("deleteAfter", base.delete_after)
    interval = int(value.get("intervalHours", base.interval_hours))
    if not 1 <= interval <= 24:
        raise ValueError(
            "Configuration field 'periodic_summary.intervalHours' must be between 1 and 24"
        )
    return SummaryDefaults(
        interval_hours=interval,
        quiet_time=QuietTime(
            start=str(quiet.get("start", base.quiet_time.start)),
            end=str(quiet.get("end", base.quiet_time.end)),
        ),
        delete_after=int(delete_after) if delete_after is not None else None,
        prompt=str(value.get("prompt", base.prompt)),
        model=str(value.get("model", base.model)),
    )


def _resolve_path(base_dir: Path | None, value: object, default: Path) -> Path:
    candidate = Path(str(value)).expanduser() if value else default
    if candidate.is_absolute() or base_dir is None:
        return candidate
    return base_dir / candidate


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as file:
        data = safe_load(file) or {}

    if not isinstance(data, Mapping):  # pragma: no cover - configuration error path
        raise ValueError("Configuration file must contain a mapping at the top level")
    return dict(data)
