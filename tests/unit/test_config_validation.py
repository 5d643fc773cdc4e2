import pytest

from chatloop.config import DEFAULT_MAX_RECURSION_DEPTH, get_settings, validate_settings_for_env


def test_defaults() -> None:
    settings = get_settings()
    assert settings.chat_provider == "openai"
    assert settings.chat_max_recursion_depth == DEFAULT_MAX_RECURSION_DEPTH == 10
    assert settings.chat_model_mapping == {}
    validate_settings_for_env(settings)


def test_model_mapping_parses_json(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHAT_MODEL_MAPPING", '{"fast": "gpt-4o-mini"}')
    settings = get_settings()
    assert settings.chat_model_mapping == {"fast": "gpt-4o-mini"}


def test_empty_model_mapping_is_empty_dict(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHAT_MODEL_MAPPING", "")
    assert get_settings().chat_model_mapping == {}


def test_invalid_model_mapping_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHAT_MODEL_MAPPING", "not-json")
    with pytest.raises(ValueError):
        get_settings()


def test_non_positive_depth_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHAT_MAX_RECURSION_DEPTH", "0")
    with pytest.raises(ValueError, match="CHAT_MAX_RECURSION_DEPTH"):
        validate_settings_for_env(get_settings())


def test_validate_settings_prod_missing_required(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("CHAT_PROVIDER", "openai")
    with pytest.raises(ValueError) as exc_info:
        validate_settings_for_env(get_settings())
    assert "CHAT_MODEL" in str(exc_info.value)


def test_validate_settings_prod_accepts_full_required_set(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("CHAT_PROVIDER", "deepseek")
    monkeypatch.setenv("CHAT_MODEL", "deepseek-chat")
    monkeypatch.setenv("CHAT_API_BASE", "https://api.deepseek.com")
    validate_settings_for_env(get_settings())
