"""Application configuration contract."""

import json
import logging
from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECURSION_DEPTH = 10


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(alias="APP_ENV", default="dev")
    log_level: str = Field(alias="LOG_LEVEL", default="INFO")

    chat_provider: str = Field(alias="CHAT_PROVIDER", default="openai")
    chat_api_base: str = Field(alias="CHAT_API_BASE", default="")
    chat_api_key: str = Field(alias="CHAT_API_KEY", default="")
    chat_model: str = Field(alias="CHAT_MODEL", default="")
    chat_model_mapping: Annotated[dict[str, str], NoDecode] = Field(
        alias="CHAT_MODEL_MAPPING", default_factory=dict
    )
    chat_temperature: float = Field(alias="CHAT_TEMPERATURE", default=0.7)
    chat_max_tokens: int = Field(alias="CHAT_MAX_TOKENS", default=0)
    chat_max_recursion_depth: int = Field(
        alias="CHAT_MAX_RECURSION_DEPTH", default=DEFAULT_MAX_RECURSION_DEPTH
    )
    chat_request_timeout_seconds: float = Field(
        alias="CHAT_REQUEST_TIMEOUT_SECONDS", default=120.0
    )

    @field_validator("chat_model_mapping", mode="before")
    @classmethod
    def _parse_model_mapping(cls, value: object) -> object:
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("CHAT_MODEL_MAPPING must be a JSON object") from exc
            return decoded
        return value


def validate_settings_for_env(settings: Settings) -> None:
    problems: list[str] = []
    if settings.chat_max_recursion_depth < 1:
        problems.append("CHAT_MAX_RECURSION_DEPTH(must be >= 1)")
    if settings.chat_request_timeout_seconds <= 0:
        problems.append("CHAT_REQUEST_TIMEOUT_SECONDS(must be > 0)")

    if settings.app_env == "prod":
        required_non_empty = {
            "CHAT_PROVIDER": settings.chat_provider,
            "CHAT_MODEL": settings.chat_model,
        }
        for key, value in required_non_empty.items():
            if not value.strip():
                problems.append(key)
        base = settings.chat_api_base.strip()
        if base and not base.startswith("https://"):
            logger.warning("CHAT_API_BASE is not https in production: %s", base)

    if problems:
        keys = ", ".join(sorted(set(problems)))
        raise ValueError(f"invalid configuration: {keys}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
