from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from quonitor.core.errors import UnknownProviderError
from quonitor.core.providers.anthropic import AnthropicProvider
from quonitor.core.providers.base import QuotaProvider
from quonitor.core.providers.github import GitHubProvider
from quonitor.core.providers.google import GoogleProvider
from quonitor.core.providers.openai import OpenAIProvider


@dataclass(frozen=True, slots=True)
class ProviderInfo:
    id: str
    display_name: str
    supports_oauth: bool


def _build_registry(*providers: QuotaProvider) -> Mapping[str, QuotaProvider]:
    return MappingProxyType({provider.provider_id: provider for provider in providers})


PROVIDERS: Mapping[str, QuotaProvider] = _build_registry(
    OpenAIProvider(),
    AnthropicProvider(),
    GoogleProvider(),
    GitHubProvider(),
)


def get_provider(provider_id: str, registry: Mapping[str, QuotaProvider] | None = None) -> QuotaProvider:
    providers = PROVIDERS if registry is None else registry
    provider = providers.get(provider_id)
    if provider is None:
        raise UnknownProviderError(provider_id)
    return provider


def list_providers(registry: Mapping[str, QuotaProvider] | None = None) -> list[ProviderInfo]:
    providers = PROVIDERS if registry is None else registry
    return [
        ProviderInfo(
            id=provider.provider_id,
            display_name=provider.display_name,
            supports_oauth=provider.supports_oauth,
        )
        for provider in providers.values()
    ]


__all__ = [
    "PROVIDERS",
    "ProviderInfo",
    "QuotaProvider",
    "get_provider",
    "list_providers",
]
