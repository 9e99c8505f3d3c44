"""Unit tests for token cost estimation."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import pytest
from services.cost_calculator import TARIFFS, calculate_cost, get_tariff


class TestCalculateCost:
    """Test suite for calculate_cost."""

    def test_gpt4o_tariff(self):
        """1M input + 1M output tokens costs input rate + output rate."""
        assert calculate_cost("GPT4O", 1_000_000, 1_000_000) == pytest.approx(12.50)

    def test_model_id_resolves_to_tariff(self):
        assert calculate_cost("gpt-4o", 1000, 500) == calculate_cost("GPT4O", 1000, 500)
        assert get_tariff("llama-3.3-70b-versatile") is TARIFFS["LLAMA_3_3_70B"]

    def test_small_request(self):
        # 1000 * 2.50/1M + 500 * 10/1M
        assert calculate_cost("GPT4O", 1000, 500) == pytest.approx(0.0075)

    @pytest.mark.parametrize("input_tokens,output_tokens", [
        (None, 100),
        (100, None),
        (None, None),
    ])
    def test_missing_counts_do_not_raise(self, input_tokens, output_tokens):
        cost = calculate_cost("GPT4O", input_tokens, output_tokens)
        assert cost is not None
        assert cost >= 0

    def test_missing_counts_are_treated_as_zero(self):
        assert calculate_cost("GPT4O", None, 100) == calculate_cost("GPT4O", 0, 100)
        assert calculate_cost("GPT4O", None, None) == 0

    def test_monotonic_in_input_tokens(self):
        costs = [calculate_cost("GPT4O", n, 50) for n in (0, 1, 10, 1000, 50_000)]
        assert costs == sorted(costs)

    def test_monotonic_in_output_tokens(self):
        costs = [calculate_cost("LLAMA_3_1_8B", 50, n) for n in (0, 1, 10, 1000, 50_000)]
        assert costs == sorted(costs)

    def test_unknown_model_returns_none(self):
        assert calculate_cost("mystery-model", 100, 100) is None
