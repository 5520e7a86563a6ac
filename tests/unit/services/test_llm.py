"""Unit tests for LLMClient: message shaping and retry behaviour."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest
from anthropic import NOT_GIVEN

from med_evidence.errors import LLMError
from med_evidence.services.llm import ChatMessage, LLMClient, LLMConfig
from med_evidence.utils.retry import ExponentialBackoffRetry, FixedDelayRetry

API_URL = "https://api.anthropic.com/v1/messages"


def connection_error() -> anthropic.APIConnectionError:
    return anthropic.APIConnectionError(request=httpx.Request("POST", API_URL))


def bad_request_error() -> anthropic.BadRequestError:
    request = httpx.Request("POST", API_URL)
    return anthropic.BadRequestError(
        "invalid request",
        response=httpx.Response(400, request=request),
        body=None,
    )


def make_client(create: AsyncMock, max_attempts: int = 3):
    """LLMClient over a fake Anthropic client; returns (client, recorded sleeps)."""
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    provider = MagicMock()
    provider.messages.create = create
    client = LLMClient(
        LLMConfig(model="test-model", max_tokens=500, temperature=0.1),
        FixedDelayRetry(max_attempts, delay=1.0, sleep=fake_sleep),
        client=provider,
    )
    return client, sleeps


MESSAGES = [
    ChatMessage(role="system", content="You are a translator."),
    ChatMessage(role="user", content="糖尿病"),
]


async def test_complete_returns_text(llm_response):
    create = AsyncMock(return_value=llm_response("diabetes"))
    client, _ = make_client(create)

    assert await client.complete(MESSAGES) == "diabetes"


async def test_complete_folds_system_messages(llm_response):
    create = AsyncMock(return_value=llm_response("ok"))
    client, _ = make_client(create)

    await client.complete(MESSAGES)

    kwargs = create.call_args.kwargs
    assert kwargs["system"] == "You are a translator."
    assert kwargs["messages"] == [{"role": "user", "content": "糖尿病"}]
    assert kwargs["model"] == "test-model"
    assert kwargs["max_tokens"] == 500
    assert kwargs["temperature"] == 0.1


async def test_complete_without_system_message(llm_response):
    create = AsyncMock(return_value=llm_response("ok"))
    client, _ = make_client(create)

    await client.complete([ChatMessage(role="user", content="hi")])

    assert create.call_args.kwargs["system"] is NOT_GIVEN


async def test_complete_overrides_max_tokens_and_temperature(llm_response):
    create = AsyncMock(return_value=llm_response("ok"))
    client, _ = make_client(create)

    await client.complete(MESSAGES, max_tokens=100, temperature=0.0)

    assert create.call_args.kwargs["max_tokens"] == 100
    assert create.call_args.kwargs["temperature"] == 0.0


async def test_complete_joins_text_blocks_only():
    response = SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text="first "),
            SimpleNamespace(type="tool_use", id="x"),
            SimpleNamespace(type="text", text="second"),
        ]
    )
    client, _ = make_client(AsyncMock(return_value=response))

    assert await client.complete(MESSAGES) == "first second"


async def test_complete_requires_a_user_message():
    client, _ = make_client(AsyncMock())

    with pytest.raises(ValueError):
        await client.complete([ChatMessage(role="system", content="only system")])


@pytest.mark.parametrize("k", [1, 2, 3])
async def test_transient_failures_then_success(llm_response, k):
    create = AsyncMock(
        side_effect=[connection_error() for _ in range(k - 1)]
        + [llm_response("ok")]
    )
    client, sleeps = make_client(create, max_attempts=3)

    assert await client.complete(MESSAGES) == "ok"
    assert create.call_count == k
    assert sleeps == [1.0] * (k - 1)


async def test_always_failing_raises_after_max_attempts():
    create = AsyncMock(side_effect=connection_error())
    client, sleeps = make_client(create, max_attempts=4)

    with pytest.raises(LLMError) as exc_info:
        await client.complete(MESSAGES)

    assert create.call_count == 4
    assert exc_info.value.attempts == 4
    assert len(sleeps) == 3


async def test_non_retryable_error_is_not_retried():
    create = AsyncMock(side_effect=bad_request_error())
    client, sleeps = make_client(create, max_attempts=5)

    with pytest.raises(LLMError):
        await client.complete(MESSAGES)

    assert create.call_count == 1
    assert sleeps == []


def test_from_settings_builds_policy():
    settings = SimpleNamespace(
        llm_model="m",
        llm_max_tokens=42,
        llm_temperature=0.2,
        anthropic_api_key="key",
        llm_retry_strategy="exponential",
        llm_max_attempts=6,
        llm_retry_delay=0.5,
        llm_retry_max_delay=8.0,
    )

    client = LLMClient.from_settings(settings)

    assert client.config.model == "m"
    assert client.config.max_tokens == 42
    assert isinstance(client.retry_policy, ExponentialBackoffRetry)
    assert client.retry_policy.max_attempts == 6
    assert client.retry_policy.max_delay == 8.0


def test_default_policy_is_ten_fixed_attempts():
    client = LLMClient()

    assert isinstance(client.retry_policy, FixedDelayRetry)
    assert client.retry_policy.max_attempts == 10
    assert client.retry_policy.delay == 1.0
