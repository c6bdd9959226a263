from __future__ import annotations

import pytest

from quonitor.core.errors import ConfigError
from quonitor.core.providers.pricing import calculate_cost, resolve_price

pytestmark = pytest.mark.unit


def test_openai_first_matching_entry_wins():
    assert resolve_price("openai", "gpt-4o-mini-2024-07-18").input_per_1m == 2.5
    assert resolve_price("openai", "gpt-4-turbo-preview").input_per_1m == 10.0
    assert resolve_price("openai", "gpt-4-0613").input_per_1m == 30.0


def test_openai_match_is_case_insensitive():
    assert resolve_price("openai", "GPT-3.5-Turbo").output_per_1m == 1.5


def test_openai_unknown_model_uses_default():
    price = resolve_price("openai", "text-embedding-3-small")
    assert (price.input_per_1m, price.output_per_1m) == (1.0, 2.0)


def test_anthropic_families_and_default():
    assert resolve_price("anthropic", "claude-3-opus-20240229").output_per_1m == 75.0
    assert resolve_price("anthropic", "claude-3-haiku-20240307").input_per_1m == 0.25
    assert resolve_price("anthropic", "claude-next").input_per_1m == 3.0


def test_calculate_cost_per_million_tokens():
    assert calculate_cost("openai", "gpt-4o", 1_000_000, 500_000) == pytest.approx(7.5)
    assert calculate_cost("anthropic", "claude-3-5-sonnet", 0, 0) == 0.0


def test_provider_without_pricing_table_is_rejected():
    with pytest.raises(ConfigError):
        resolve_price("google", "gemini-pro")
