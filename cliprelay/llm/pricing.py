"""
Static model price table and cost calculation.

Prices are USD per one million tokens. Reasoning and extended-thinking
tokens are billed at the output rate.
"""
from dataclasses import dataclass
from typing import Optional
import logging

logger = logging.getLogger("cliprelay.llm.pricing")


@dataclass(frozen=True)
class ModelPrice:
    input_per_mtok: float
    output_per_mtok: float


# Matched by longest prefix so dated snapshots resolve to their family.
PRICE_TABLE: dict[str, ModelPrice] = {
    # Anthropic
    "claude-opus-4-1": ModelPrice(15.00, 75.00),
    "claude-opus-4": ModelPrice(15.00, 75.00),
    "claude-sonnet-4-5": ModelPrice(3.00, 15.00),
    "claude-sonnet-4": ModelPrice(3.00, 15.00),
    "claude-3-7-sonnet": ModelPrice(3.00, 15.00),
    "claude-3-5-sonnet": ModelPrice(3.00, 15.00),
    "claude-haiku-4-5": ModelPrice(1.00, 5.00),
    "claude-3-5-haiku": ModelPrice(0.80, 4.00),
    # OpenAI
    "gpt-5-mini": ModelPrice(0.25, 2.00),
    "gpt-5-nano": ModelPrice(0.05, 0.40),
    "gpt-5": ModelPrice(1.25, 10.00),
    "gpt-4.1-mini": ModelPrice(0.40, 1.60),
    "gpt-4.1-nano": ModelPrice(0.10, 0.40),
    "gpt-4.1": ModelPrice(2.00, 8.00),
    "gpt-4o-mini": ModelPrice(0.15, 0.60),
    "gpt-4o": ModelPrice(2.50, 10.00),
    "o4-mini": ModelPrice(1.10, 4.40),
    "o3-mini": ModelPrice(1.10, 4.40),
    "o3": ModelPrice(2.00, 8.00),
    "o1-mini": ModelPrice(1.10, 4.40),
    "o1": ModelPrice(15.00, 60.00),
}


def lookup_price(model: str) -> Optional[ModelPrice]:
    """Find the price entry with the longest prefix matching ``model``."""
    best: Optional[str] = None
    for prefix in PRICE_TABLE:
        if model.startswith(prefix) and (best is None or len(prefix) > len(best)):
            best = prefix
    return PRICE_TABLE[best] if best else None


def compute_cost(
    model: str,
    input_tokens: int,
    output_tokens: int,
) -> float:
    """
    Cost in USD, rounded to 6 decimals. Unknown models cost 0.0.

    Both vendors already count thinking / reasoning tokens inside
    ``output_tokens``.
    """
    price = lookup_price(model)
    if price is None:
        logger.warning("No price entry for model %s; cost reported as 0", model)
        return 0.0
    cost = (
        input_tokens * price.input_per_mtok
        + output_tokens * price.output_per_mtok
    ) / 1_000_000
    return round(cost, 6)
