"""Token-based cost estimation for completion requests."""
from dataclasses import dataclass
import logging
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tariff:
    """USD price per million tokens."""
    input_per_million: float
    output_per_million: float


TARIFFS = {
    "GPT4O": Tariff(input_per_million=2.50, output_per_million=10.00),
    "GPT4O_MINI": Tariff(input_per_million=0.15, output_per_million=0.60),
    "LLAMA_3_3_70B": Tariff(input_per_million=0.59, output_per_million=0.79),
    "LLAMA_3_1_8B": Tariff(input_per_million=0.05, output_per_million=0.08),
}

# Provider model identifiers -> tariff names
MODEL_TARIFFS = {
    "gpt-4o": "GPT4O",
    "gpt-4o-mini": "GPT4O_MINI",
    "llama-3.3-70b-versatile": "LLAMA_3_3_70B",
    "llama-3.1-8b-instant": "LLAMA_3_1_8B",
}


def get_tariff(model: str) -> Optional[Tariff]:
    """Look up a tariff by tariff name ("GPT4O") or model id ("gpt-4o")."""
    if model in TARIFFS:
        return TARIFFS[model]
    tariff_name = MODEL_TARIFFS.get(model)
    return TARIFFS.get(tariff_name) if tariff_name else None


def calculate_cost(
    model: str,
    input_tokens: Optional[int],
    output_tokens: Optional[int]
) -> Optional[float]:
    """
    Estimate the USD cost of a completion.

    Missing token counts are treated as zero. Returns None when no tariff is
    known for `model`.

    Args:
        model: Tariff name or provider model identifier
        input_tokens: Prompt tokens, or None if the provider omitted them
        output_tokens: Completion tokens, or None if the provider omitted them

    Returns:
        Cost in US dollars, or None for an unknown model
    """
    tariff = get_tariff(model)
    if tariff is None:
        logger.warning(f"No tariff configured for model {model!r}, cost unknown")
        return None

    input_count = max(input_tokens or 0, 0)
    output_count = max(output_tokens or 0, 0)

    cost = (
        input_count * tariff.input_per_million
        + output_count * tariff.output_per_million
    ) / 1_000_000
    return round(cost, 8)
