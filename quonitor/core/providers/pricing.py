from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from quonitor.core.errors import ConfigError


@dataclass(frozen=True)
class ModelPrice:
    input_per_1m: float
    output_per_1m: float


@dataclass(frozen=True)
class PriceTable:
    # Ordered: the first entry whose key is a substring of the model name wins.
    entries: tuple[tuple[str, ModelPrice], ...]
    default: ModelPrice


_ANTHROPIC_SONNET = ModelPrice(input_per_1m=3.0, output_per_1m=15.0)

OPENAI_PRICING = PriceTable(
    entries=(
        ("gpt-4o", ModelPrice(input_per_1m=2.5, output_per_1m=10.0)),
        ("gpt-4-turbo", ModelPrice(input_per_1m=10.0, output_per_1m=30.0)),
        ("gpt-4", ModelPrice(input_per_1m=30.0, output_per_1m=60.0)),
        ("gpt-3.5-turbo", ModelPrice(input_per_1m=0.5, output_per_1m=1.5)),
        ("o1-preview", ModelPrice(input_per_1m=15.0, output_per_1m=60.0)),
        ("o1-mini", ModelPrice(input_per_1m=3.0, output_per_1m=12.0)),
    ),
    default=ModelPrice(input_per_1m=1.0, output_per_1m=2.0),
)

ANTHROPIC_PRICING = PriceTable(
    entries=(
        ("opus", ModelPrice(input_per_1m=15.0, output_per_1m=75.0)),
        ("sonnet", _ANTHROPIC_SONNET),
        ("haiku", ModelPrice(input_per_1m=0.25, output_per_1m=1.25)),
    ),
    default=_ANTHROPIC_SONNET,
)

PRICING_TABLES: Mapping[str, PriceTable] = MappingProxyType(
    {
        "openai": OPENAI_PRICING,
        "anthropic": ANTHROPIC_PRICING,
    }
)


def resolve_price(provider_id: str, model: str) -> ModelPrice:
    table = PRICING_TABLES.get(provider_id)
    if table is None:
        raise ConfigError(f"No pricing table for provider {provider_id}")
    normalized = model.lower()
    for key, price in table.entries:
        if key in normalized:
            return price
    return table.default


def cost_for_price(price: ModelPrice, input_tokens: int, output_tokens: int) -> float:
    return (input_tokens / 1_000_000) * price.input_per_1m + (output_tokens / 1_000_000) * price.output_per_1m


def calculate_cost(provider_id: str, model: str, input_tokens: int, output_tokens: int) -> float:
    return cost_for_price(resolve_price(provider_id, model), input_tokens, output_tokens)
