"""Provider strategy sets for the chat orchestrator."""

from chatloop.providers.base import ApiSettings, ParserCallbacks, ProviderSpec
from chatloop.providers.factory import PROVIDERS, build_api_settings, get_provider

__all__ = [
    "PROVIDERS",
    "ApiSettings",
    "ParserCallbacks",
    "ProviderSpec",
    "build_api_settings",
    "get_provider",
]
