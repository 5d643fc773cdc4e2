import pytest

from chatloop.config import get_settings
from chatloop.logging import clear_context

_CHAT_ENV = (
    "APP_ENV",
    "LOG_LEVEL",
    "CHAT_PROVIDER",
    "CHAT_API_BASE",
    "CHAT_API_KEY",
    "CHAT_MODEL",
    "CHAT_MODEL_MAPPING",
    "CHAT_TEMPERATURE",
    "CHAT_MAX_TOKENS",
    "CHAT_MAX_RECURSION_DEPTH",
    "CHAT_REQUEST_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def test_env(tmp_path, monkeypatch):
    # No stray .env from the working directory.
    monkeypatch.chdir(tmp_path)
    for key in _CHAT_ENV:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    clear_context()
