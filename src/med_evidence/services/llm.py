"""Language-model client shared by the translator, summarizer and question generator."""

import logging
from typing import Literal

import anthropic
from anthropic import NOT_GIVEN, AsyncAnthropic
from pydantic import BaseModel

from med_evidence.config import Settings
from med_evidence.constants import LLM_MAX_TOKENS, LLM_MODEL
from med_evidence.errors import LLMError
from med_evidence.utils.retry import (
    FixedDelayRetry,
    RetryExhaustedError,
    RetryPolicy,
    build_retry_policy,
)

logger = logging.getLogger(__name__)

# Transient provider failures. Auth and bad-request errors are not retried.
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    anthropic.APIConnectionError,  # includes APITimeoutError
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class LLMConfig(BaseModel):
    model: str = LLM_MODEL
    max_tokens: int = LLM_MAX_TOKENS
    temperature: float = 0.1
    api_key: str = ""


class LLMClient:
    """Sends role-tagged messages to the model and returns the text completion.

    Each call is stateless; no conversation is kept between calls. Transient
    failures are retried according to the injected RetryPolicy.
    """

    def __init__(
        self,
        config: LLMConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        client: AsyncAnthropic | None = None,
    ):
        self.config = config or LLMConfig()
        self.retry_policy = retry_policy or FixedDelayRetry(10, 1.0)
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(
            LLMConfig(
                model=settings.llm_model,
                max_tokens=settings.llm_max_tokens,
                temperature=settings.llm_temperature,
                api_key=settings.anthropic_api_key,
            ),
            build_retry_policy(
                settings.llm_retry_strategy,
                settings.llm_max_attempts,
                settings.llm_retry_delay,
                settings.llm_retry_max_delay,
            ),
        )

    @property
    def client(self) -> AsyncAnthropic:
        # Created lazily so constructing an LLMClient never needs credentials
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self.config.api_key or None)
        return self._client

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Return the model's text reply to `messages`.

        System messages are folded into the provider's `system` parameter.
        Raises LLMError once the retry policy gives up, or immediately for
        non-retryable provider errors.
        """
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        conversation = [
            {"role": m.role, "content": m.content}
            for m in messages
            if m.role != "system"
        ]
        if not conversation:
            raise ValueError("at least one user message is required")

        async def attempt() -> str:
            response = await self.client.messages.create(
                model=self.config.model,
                max_tokens=max_tokens or self.config.max_tokens,
                temperature=(
                    self.config.temperature if temperature is None else temperature
                ),
                system=system or NOT_GIVEN,
                messages=conversation,
            )
            return "".join(
                block.text
                for block in response.content
                if getattr(block, "type", None) == "text"
            )

        try:
            return await self.retry_policy.run(
                attempt, retry_on=RETRYABLE_ERRORS, label="llm.complete"
            )
        except RetryExhaustedError as e:
            raise LLMError(str(e), attempts=e.attempts) from e
        except anthropic.APIError as e:
            logger.error("Non-retryable LLM error: %s", e)
            raise LLMError(f"LLM request failed: {e}") from e
