"""
Model gateway: one entry point over the Anthropic Messages API and the
OpenAI Responses API.

Callers describe a request once (system prompt, user text, optional
images, token limits) and get back a ``ModelResult`` with the answer
text, token usage and the derived cost.
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Optional
import logging
import time

import anthropic
import openai
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from cliprelay.config import Settings
from cliprelay.llm.pricing import compute_cost

logger = logging.getLogger("cliprelay.llm")

# Anthropic rejects thinking budgets below this.
MIN_THINKING_BUDGET = 1024

TRANSIENT_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class ModelUnavailable(Exception):
    """Raised when the vendor for a model has no API key configured."""
    pass


class ModelCallError(Exception):
    """Raised when the vendor call fails after retries."""

    def __init__(self, provider: str, model: str, message: str):
        super().__init__(f"{provider} call for {model} failed: {message}")
        self.provider = provider
        self.model = model


@dataclass
class ImageInput:
    """Base64 image payload as sent by the clients."""
    media_type: str
    data: str


@dataclass
class ModelRequest:
    system: str
    user_text: str
    images: list[ImageInput] = field(default_factory=list)
    max_tokens: int = 4096
    thinking_budget: int = 0
    reasoning_effort: Optional[str] = None


@dataclass
class ModelResult:
    provider: str
    model: str
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0
    cost_usd: float = 0.0
    elapsed_ms: int = 0

    def usage(self) -> dict[str, Any]:
        """Usage/cost breakdown without the answer text."""
        data = asdict(self)
        data.pop("text")
        return data


def provider_for(model: str) -> str:
    """``claude*`` models go to Anthropic, everything else to OpenAI."""
    return "anthropic" if model.lower().startswith("claude") else "openai"


class ModelGateway:
    """
    Vendor dispatch with retries and cost accounting.

    Clients are injected so tests can pass fakes; a missing client means
    the vendor is not configured.
    """

    def __init__(
        self,
        settings: Settings,
        anthropic_client: Optional[Any] = None,
        openai_client: Optional[Any] = None,
    ):
        self.settings = settings
        self.anthropic_client = anthropic_client
        self.openai_client = openai_client

    def available_providers(self) -> list[str]:
        providers = []
        if self.anthropic_client is not None:
            providers.append("anthropic")
        if self.openai_client is not None:
            providers.append("openai")
        return providers

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.settings.HTTP_RETRY_MAX_ATTEMPTS),
            wait=wait_exponential(
                multiplier=1,
                min=self.settings.HTTP_RETRY_WAIT_MIN_SECONDS,
                max=self.settings.HTTP_RETRY_WAIT_MAX_SECONDS,
            ),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True,
        )

    async def complete(self, model: str, request: ModelRequest) -> ModelResult:
        """
        Run one model call.

        Raises:
            ModelUnavailable: vendor not configured
            ModelCallError: vendor error after retries
        """
        provider = provider_for(model)
        started = time.perf_counter()

        try:
            if provider == "anthropic":
                result = await self._call_anthropic(model, request)
            else:
                result = await self._call_openai(model, request)
        except (anthropic.APIError, openai.APIError) as e:
            logger.error("llm.call provider=%s model=%s failed: %s", provider, model, e)
            raise ModelCallError(provider, model, str(e)) from e

        result.elapsed_ms = int((time.perf_counter() - started) * 1000)
        result.cost_usd = compute_cost(model, result.input_tokens, result.output_tokens)
        logger.info(
            "llm.call provider=%s model=%s images=%d input_tokens=%s output_tokens=%s "
            "reasoning_tokens=%s cost_usd=%.6f elapsed_ms=%s",
            provider,
            model,
            len(request.images),
            result.input_tokens,
            result.output_tokens,
            result.reasoning_tokens,
            result.cost_usd,
            result.elapsed_ms,
        )
        return result

    # === Anthropic Messages API ===

    async def _call_anthropic(self, model: str, request: ModelRequest) -> ModelResult:
        if self.anthropic_client is None:
            raise ModelUnavailable(f"ANTHROPIC_API_KEY not configured (model {model})")

        content: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": img.media_type, "data": img.data},
            }
            for img in request.images
        ]
        content.append({"type": "text", "text": request.user_text})

        payload: dict[str, Any] = {
            "model": model,
            "max_tokens": request.max_tokens,
            "system": request.system,
            "messages": [{"role": "user", "content": content}],
        }
        if request.thinking_budget > 0:
            budget = max(request.thinking_budget, MIN_THINKING_BUDGET)
            payload["thinking"] = {"type": "enabled", "budget_tokens": budget}
            # max_tokens must leave room for the answer after thinking
            if payload["max_tokens"] <= budget:
                payload["max_tokens"] = budget + request.max_tokens

        async for attempt in self._retrying():
            with attempt:
                message = await self.anthropic_client.messages.create(**payload)

        text = "".join(
            block.text for block in message.content
            if getattr(block, "type", None) == "text"
        )
        usage = getattr(message, "usage", None)
        return ModelResult(
            provider="anthropic",
            model=model,
            text=text.strip(),
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )

    # === OpenAI Responses API ===

    async def _call_openai(self, model: str, request: ModelRequest) -> ModelResult:
        if self.openai_client is None:
            raise ModelUnavailable(f"OPENAI_API_KEY not configured (model {model})")

        content: list[dict[str, Any]] = [{"type": "input_text", "text": request.user_text}]
        content.extend(
            {"type": "input_image", "image_url": f"data:{img.media_type};base64,{img.data}"}
            for img in request.images
        )

        payload: dict[str, Any] = {
            "model": model,
            "instructions": request.system,
            "input": [{"role": "user", "content": content}],
            "max_output_tokens": request.max_tokens,
        }
        if request.reasoning_effort:
            payload["reasoning"] = {"effort": request.reasoning_effort}

        async for attempt in self._retrying():
            with attempt:
                response = await self.openai_client.responses.create(**payload)

        usage = getattr(response, "usage", None)
        details = getattr(usage, "output_tokens_details", None)
        return ModelResult(
            provider="openai",
            model=model,
            text=(getattr(response, "output_text", "") or "").strip(),
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            reasoning_tokens=getattr(details, "reasoning_tokens", 0) or 0,
        )
