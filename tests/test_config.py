import textwrap
from pathlib import Path
from typing import Any, Mapping

import pytest
from yaml import safe_dump

from group_assistant.commands import ALL_CHATS, DEFAULT_COMMANDS, CommandName
from group_assistant.config import AdminIdentity, BotConfig, merge_command_overrides
from group_assistant.models import QuietTime


def _write_config(path: Path, content: str | Mapping[str, Any]) -> None:
    if isinstance(content, str):
        text = textwrap.dedent(content).strip() + "\n"
        path.write_text(text, encoding="utf-8")
        return
    rendered = safe_dump(content, sort_keys=False, allow_unicode=True).rstrip() + "\n"
    path.write_text(rendered, encoding="utf-8")


def _base_config(extra: str = "") -> str:
    base = textwrap.dedent(
        """
        telegram_token: telegram
        openai_api_key: sk-test
        admin: "12345"
        """
    ).strip()
    extra_text = textwrap.dedent(extra).strip()
    if extra_text:
        return f"{base}\n{extra_text}\n"
    return base + "\n"


def _command(config: BotConfig, name: CommandName):
    return next(descriptor for descriptor in config.commands if descriptor.name is name)


def test_minimal_config_uses_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yml"
    _write_config(config_path, _base_config())

    config = BotConfig.from_file(config_path)

    assert config.telegram_token == "telegram"
    assert config.openai_api_key == "sk-test"
    assert config.admin == AdminIdentity(user_id="12345")
    assert config.message_delete_timeout_ms == 60_000
    assert config.session_ttl_minutes == 30.0
    assert config.commands == DEFAULT_COMMANDS
    assert config.summary_store == tmp_path.resolve() / "periodic_summary.json"


def test_summary_store_relative_to_config(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_path = config_dir / "config.yml"
    _write_config(config_path, _base_config("summary_store: data/resumos.json"))

    config = BotConfig.from_file(config_path)

    assert config.summary_store == config_dir.resolve() / "data" / "resumos.json"


def test_missing_token_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yml"
    _write_config(config_path, {"openai_api_key": "sk"})

    with pytest.raises(ValueError, match="telegram_token"):
        BotConfig.from_file(config_path)


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        BotConfig.from_file(tmp_path / "absent.yml")


def test_api_key_falls_back_to_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

    config = BotConfig.from_mapping({"telegram_token": "t"})

    assert config.openai_api_key == "sk-env"


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("message_delete_timeout_ms", -1),
        ("sweep_interval", 0),
        ("session_ttl_minutes", 0),
        ("history_limit", 0),
        ("prompts", "texto"),
        ("commands", ["RESUMO"]),
    ],
)
def test_invalid_values_are_rejected(key: str, value: object) -> None:
    with pytest.raises(ValueError):
        BotConfig.from_mapping({"telegram_token": "t", key: value})


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("@Chefe", AdminIdentity(username="chefe")),
        (42, AdminIdentity(user_id="42")),
        ("chefe", AdminIdentity(username="chefe")),
        ({"id": 7, "username": "@Boss"}, AdminIdentity(user_id="7", username="boss")),
        (None, AdminIdentity()),
    ],
)
def test_admin_identity_parsing(value: object, expected: AdminIdentity) -> None:
    assert AdminIdentity.parse(value) == expected


def test_command_overrides_are_merged(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yml"
    _write_config(
        config_path,
        _base_config(
            """
            commands:
              news:
                prefixes: ["#manchetes"]
                permissions:
                  allowedIn: ["Amigos", "dm.ana"]
                autoDelete:
                  commandMessages: true
                  deleteTimeout: 5000
                errorMessages:
                  noArticles: Nada por aqui.
              STICKER:
                stickerHashes: ["ABCDEF"]
              RESUMO:
                stickerHash: "FF00"
                defaultSummaryHours: 6
                model: gpt-4o
            """
        ),
    )

    config = BotConfig.from_file(config_path)

    news = _command(config, CommandName.NEWS)
    assert news.prefixes == ("#manchetes",)
    assert news.permissions.allowed_in == ("Amigos", "dm.ana")
    assert news.auto_delete.command_messages is True
    assert news.auto_delete.error_messages is True
    assert news.auto_delete.delete_timeout_ms == 5000
    assert news.error_text("noArticles") == "Nada por aqui."
    assert news.error_text("error") == "Erro ao buscar notícias."

    sticker = _command(config, CommandName.STICKER)
    assert sticker.sticker_hashes == frozenset({"abcdef"})

    resumo = _command(config, CommandName.RESUMO)
    assert resumo.sticker_hash == "ff00"
    assert resumo.default_summary_hours == 6
    assert resumo.model == "gpt-4o"

    assert _command(config, CommandName.CHAT_GPT).permissions.allowed_in == ALL_CHATS


def test_unknown_command_override_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown command"):
        merge_command_overrides(DEFAULT_COMMANDS, {"WEATHER": {}})


def test_malformed_override_is_kept_for_match_time() -> None:
    merged = merge_command_overrides(DEFAULT_COMMANDS, {"NEWS": {"prefixes": "#news"}})

    news = next(descriptor for descriptor in merged if descriptor.name is CommandName.NEWS)
    assert news.prefixes == "#news"


def test_periodic_summary_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yml"
    _write_config(
        config_path,
        _base_config(
            """
            periodic_summary:
              intervalHours: 4
              quietTime:
                start: "23:00"
              deleteAfter: 30
            """
        ),
    )

    defaults = BotConfig.from_file(config_path).summary_defaults

    assert defaults.interval_hours == 4
    assert defaults.quiet_time == QuietTime("23:00", "08:00")
    assert defaults.delete_after == 30


def test_periodic_summary_interval_out_of_range() -> None:
    with pytest.raises(ValueError, match="intervalHours"):
        BotConfig.from_mapping({"telegram_token": "t", "periodic_summary": {"intervalHours": 25}})


def test_prompt_overrides_keep_other_templates() -> None:
    config = BotConfig.from_mapping(
        {
            "telegram_token": "t",
            "prompts": {"CHAT_GPT": {"DEFAULT": "Responda: {question}"}},
            "group_personalities": {"Amigos": "Seja breve."},
        }
    )

    assert config.prompts["CHAT_GPT"]["DEFAULT"] == "Responda: {question}"
    assert "WITH_CONTEXT" in config.prompts["CHAT_GPT"]
    assert config.group_personalities == {"Amigos": "Seja breve."}
