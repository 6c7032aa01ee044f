from __future__ import annotations

import json

import httpx
import pytest

from shop_assistant.providers.base import MockAdapter, ProviderError, ProviderRuntimeConfig
from shop_assistant.providers.openai_adapter import OpenAIAdapter
from shop_assistant.schemas.conversation import IntentType, Turn
from shop_assistant.services.classification_client import ClassificationClient, fallback_response
from shop_assistant.services.prompt_builder import CLASSIFY_FUNCTION_NAME, PromptBuilder

FUNCTION = PromptBuilder.classification_function()
MESSAGES = [{"role": "user", "content": "show me laptops"}]


def openai_cfg(api_key: str | None = "sk-test") -> ProviderRuntimeConfig:
    return ProviderRuntimeConfig(
        provider="openai",
        model_name="gpt-test",
        base_url="https://api.openai.com",
        api_key=api_key,
    )


@pytest.mark.anyio
async def test_openai_adapter_forces_function_and_reads_tool_call():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["auth"] = request.headers.get("authorization")
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "choices": [
                    {
                        "message": {
                            "tool_calls": [
                                {
                                    "type": "function",
                                    "function": {
                                        "name": CLASSIFY_FUNCTION_NAME,
                                        "arguments": "{\"intent\": {}}",
                                    },
                                }
                            ]
                        }
                    }
                ],
                "usage": {"prompt_tokens": 11, "completion_tokens": 4},
            },
        )

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as client:
        adapter = OpenAIAdapter(http_client=client)
        result = await adapter.classify(openai_cfg(), MESSAGES, FUNCTION)

    assert result.content == "{\"intent\": {}}"
    assert result.token_in == 11
    assert result.token_out == 4
    assert captured["path"] == "/v1/chat/completions"
    assert captured["auth"] == "Bearer sk-test"
    assert captured["body"]["tool_choice"]["function"]["name"] == CLASSIFY_FUNCTION_NAME
    assert captured["body"]["tools"][0]["function"]["name"] == CLASSIFY_FUNCTION_NAME
    assert captured["body"]["messages"] == MESSAGES


@pytest.mark.anyio
async def test_openai_adapter_accepts_legacy_function_call():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"choices": [{"message": {"function_call": {"arguments": "{}"}}}]},
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        result = await OpenAIAdapter(http_client=client).classify(openai_cfg(), MESSAGES, FUNCTION)

    assert result.content == "{}"


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("response", "code", "status_code"),
    [
        (httpx.Response(429, json={"error": {"message": "rate limited"}}), "PROVIDER_RATE_LIMIT", 429),
        (httpx.Response(500, text="boom"), "PROVIDER_UPSTREAM", 500),
        (httpx.Response(401, json={"error": "bad key"}), "PROVIDER_BAD_STATUS", 401),
        (httpx.Response(200, json={"choices": []}), "PROVIDER_PARSE_ERROR", None),
        (
            httpx.Response(200, json={"choices": [{"message": {"content": "plain text"}}]}),
            "PROVIDER_PARSE_ERROR",
            None,
        ),
        (httpx.Response(200, json={"choices": ["oops"]}), "PROVIDER_PARSE_ERROR", None),
        (httpx.Response(200, json={"choices": {"0": 1}}), "PROVIDER_PARSE_ERROR", None),
        (httpx.Response(200, json={"choices": [{"message": "text"}]}), "PROVIDER_PARSE_ERROR", None),
        (
            httpx.Response(200, json={"choices": [{"message": {"tool_calls": ["bad"]}}]}),
            "PROVIDER_PARSE_ERROR",
            None,
        ),
    ],
)
async def test_openai_adapter_errors_are_normalized(response, code, status_code):
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response)) as client:
        with pytest.raises(ProviderError) as exc_info:
            await OpenAIAdapter(http_client=client).classify(openai_cfg(), MESSAGES, FUNCTION)

    assert exc_info.value.code == code
    assert exc_info.value.status_code == status_code


@pytest.mark.anyio
async def test_openai_adapter_serializes_object_arguments():
    arguments = {"intent": {"type": "GREETING", "confidence": 1}}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "choices": [
                    {
                        "message": {
                            "tool_calls": [
                                {"function": {"name": CLASSIFY_FUNCTION_NAME, "arguments": arguments}}
                            ]
                        }
                    }
                ]
            },
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        result = await OpenAIAdapter(http_client=client).classify(openai_cfg(), MESSAGES, FUNCTION)

    assert json.loads(result.content) == arguments


@pytest.mark.anyio
@pytest.mark.parametrize(
    "body",
    [
        {"choices": ["oops"]},
        {"choices": {"0": 1}},
        {"choices": [{"message": {"function_call": {"arguments": ["not", "json"]}}}]},
        {"choices": [{"message": {"function_call": {"arguments": "[1, 2]"}}}]},
        {"choices": [{"message": {"function_call": {"arguments": {"intent": "nope"}}}}]},
    ],
)
async def test_malformed_wire_payload_falls_back(body):
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=body))
    ) as client:
        classifier = ClassificationClient(OpenAIAdapter(http_client=client), openai_cfg())
        response = await classifier.classify([Turn(role="user", content="show me laptops")])

    assert response == fallback_response()
    assert response.intent.type == IntentType.UNKNOWN
    assert response.actions == []


@pytest.mark.anyio
async def test_openai_adapter_requires_api_key():
    with pytest.raises(ProviderError) as exc_info:
        await OpenAIAdapter().classify(openai_cfg(api_key=None), MESSAGES, FUNCTION)

    assert exc_info.value.code == "API_KEY_REQUIRED"


@pytest.mark.anyio
async def test_mock_adapter_classifies_greeting_and_search():
    adapter = MockAdapter()
    cfg = ProviderRuntimeConfig(provider="mock", model_name="mock-1")

    greeting = json.loads((await adapter.classify(cfg, [{"role": "user", "content": "Hello"}], FUNCTION)).content)
    search = json.loads((await adapter.classify(cfg, MESSAGES, FUNCTION)).content)

    assert greeting["intent"]["type"] == "GREETING"
    assert search["intent"]["entities"] == {"search": "show me laptops"}
    assert search["actions"][0]["type"] == "SHOW_PRODUCTS"
