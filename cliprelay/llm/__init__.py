"""
LLM vendor access - gateway, pricing and response parsing.
"""

from cliprelay.llm.gateway import (
    ImageInput,
    ModelCallError,
    ModelGateway,
    ModelRequest,
    ModelResult,
    ModelUnavailable,
    provider_for,
)
from cliprelay.llm.parsing import parse_json_response
from cliprelay.llm.pricing import compute_cost

__all__ = [
    "ImageInput",
    "ModelCallError",
    "ModelGateway",
    "ModelRequest",
    "ModelResult",
    "ModelUnavailable",
    "provider_for",
    "parse_json_response",
    "compute_cost",
]
