from __future__ import annotations

import json
import random
from unittest.mock import AsyncMock

import httpx
import pytest

from deep_research.errors import ParseFailure, RequestFailure, TransientFailure
from deep_research.llm_client import NO_RESPONSE, ChatClient, backoff_seconds


def completion(text: str | None) -> dict:
    return {
        "choices": [{"message": {"role": "assistant", "content": text}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 5},
    }


def make_client(responses: list, sleep: AsyncMock | None = None) -> tuple[ChatClient, list[httpx.Request]]:
    """Client whose transport replays ``responses``; an exception entry is raised instead."""
    requests: list[httpx.Request] = []
    script = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        item = script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    client = ChatClient(
        api_key="sk-test",
        model="gpt-test",
        base_url="https://llm.example/v1/",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=sleep or AsyncMock(),
        rng=random.Random(7),
    )
    return client, requests


@pytest.mark.asyncio
async def test_two_server_errors_then_success_uses_three_attempts():
    sleep = AsyncMock()
    client, requests = make_client(
        [
            httpx.Response(500, text="boom"),
            httpx.Response(503, text="unavailable"),
            httpx.Response(200, json=completion("final answer")),
        ],
        sleep=sleep,
    )

    assert await client.ask("question") == "final answer"
    assert len(requests) == 3
    delays = [call.args[0] for call in sleep.await_args_list]
    assert len(delays) == 2
    assert 1.0 <= delays[0] <= 1.5
    assert 2.0 <= delays[1] <= 2.5


@pytest.mark.asyncio
async def test_three_server_errors_raise_request_failure():
    client, requests = make_client([httpx.Response(502, text="bad gateway") for _ in range(3)])

    with pytest.raises(RequestFailure) as excinfo:
        await client.ask("question")

    assert len(requests) == 3
    assert isinstance(excinfo.value.__cause__, TransientFailure)
    assert "502" in str(excinfo.value)


@pytest.mark.asyncio
async def test_server_typed_error_envelope_is_retried():
    envelope = {"error": {"type": "server_error", "message": "The server had an error"}}
    client, requests = make_client(
        [
            httpx.Response(200, json=envelope),
            httpx.Response(200, json=completion("recovered")),
        ]
    )

    assert await client.ask("question") == "recovered"
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_context_length_error_fails_immediately_with_guidance():
    envelope = {
        "error": {
            "type": "invalid_request_error",
            "code": "context_length_exceeded",
            "message": "This model's maximum context length is 4097 tokens.",
        }
    }
    client, requests = make_client([httpx.Response(400, json=envelope)])

    with pytest.raises(RequestFailure) as excinfo:
        await client.ask("very long prompt")

    assert len(requests) == 1
    message = str(excinfo.value)
    assert "maximum context length" in message
    assert "larger-context model" in message
    assert "chunking" in message


@pytest.mark.asyncio
async def test_other_error_envelopes_are_not_retried():
    envelope = {"error": {"type": "invalid_api_key", "message": "Incorrect API key provided"}}
    client, requests = make_client([httpx.Response(401, json=envelope)])

    with pytest.raises(RequestFailure, match="Incorrect API key"):
        await client.ask("question")
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_missing_choices_yield_sentinel():
    client, _ = make_client([httpx.Response(200, json={"choices": []})])
    assert await client.ask("question") == NO_RESPONSE


@pytest.mark.asyncio
async def test_null_content_yields_sentinel():
    client, _ = make_client([httpx.Response(200, json=completion(None))])
    assert await client.ask("question") == NO_RESPONSE


@pytest.mark.asyncio
async def test_unparseable_bodies_exhaust_attempts_as_parse_failures():
    client, requests = make_client([httpx.Response(200, text="<html>gateway</html>") for _ in range(3)])

    with pytest.raises(RequestFailure) as excinfo:
        await client.ask("question")

    assert len(requests) == 3
    cause = excinfo.value.__cause__
    assert isinstance(cause, ParseFailure)
    assert cause.raw_body == "<html>gateway</html>"


@pytest.mark.asyncio
async def test_transport_errors_are_retried():
    request = httpx.Request("POST", "https://llm.example/v1/chat/completions")
    client, requests = make_client(
        [
            httpx.ConnectError("connection refused", request=request),
            httpx.Response(200, json=completion("ok")),
        ]
    )

    assert await client.ask("question") == "ok"
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_request_carries_system_role_user_prompt_and_bearer_token():
    client, requests = make_client([httpx.Response(200, json=completion("hi"))])

    await client.ask("What is sleep?")

    sent = requests[0]
    assert str(sent.url) == "https://llm.example/v1/chat/completions"
    assert sent.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(sent.content)
    assert body["model"] == "gpt-test"
    assert [m["role"] for m in body["messages"]] == ["system", "user"]
    assert body["messages"][0]["content"] == "You are a helpful research assistant."
    assert body["messages"][1]["content"] == "What is sleep?"


def test_backoff_grows_exponentially_with_bounded_jitter():
    rng = random.Random(1)
    for attempt, base in ((1, 1.0), (2, 2.0), (3, 4.0)):
        delay = backoff_seconds(attempt, rng)
        assert base <= delay <= base + 0.5
