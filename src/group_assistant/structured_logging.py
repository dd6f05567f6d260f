from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping, MutableMapping
from typing import Any, Final

BOT_LOGGER_NAME: Final = "bot"
_REDACT_KEYS: Final = {"token", "authorization", "api_key"}
_MAX_STRING_LENGTH: Final = 512
# Bot API URLs embed the token as /bot<id>:<secret>/.
_BOT_TOKEN_PATTERN: Final = re.compile(r"bot(\d+):[A-Za-z0-9_-]+")
_LOGGER = logging.getLogger(BOT_LOGGER_NAME)


def configure_bot_logging(level: int) -> None:
    logger = _LOGGER
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def log_event(
    event: str,
    *,
    level: int,
    chat_id: str | None,
    user_id: str | None,
    command: str | None,
    outcome: str | None,
    latency_ms: float | None,
    extra: Mapping[str, Any] | None = None,
) -> None:
    payload: MutableMapping[str, Any] = {
        "event": event,
        "chat_id": chat_id,
        "user_id": user_id,
        "command": command,
        "outcome": outcome,
        "latency_ms": round(latency_ms, 3) if latency_ms is not None else None,
    }

    if extra:
        for key, value in extra.items():
            if key is None:
                continue
            key_text = str(key)
            lower_key = key_text.lower()
            if lower_key in _REDACT_KEYS:
                payload[key_text] = "***"
                continue
            payload[key_text] = _sanitize_value(value)

    _LOGGER.log(level, json.dumps(payload, ensure_ascii=False, separators=(",", ":")))


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        value = mask_bot_token(value)
        if len(value) > _MAX_STRING_LENGTH:
            return f"{value[:_MAX_STRING_LENGTH]}…"
        return value
    if isinstance(value, bool | int | float) or value is None:
        return value
    return mask_bot_token(str(value))


def mask_bot_token(text: str) -> str:
    return _BOT_TOKEN_PATTERN.sub(r"bot\1:***", text)
