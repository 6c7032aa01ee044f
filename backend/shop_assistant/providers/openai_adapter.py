from __future__ import annotations

import json
from typing import Any, Optional

import httpx

from shop_assistant.providers.base import (
    HTTPProviderAdapter,
    LLMAdapter,
    LLMResult,
    ProviderError,
    ProviderRuntimeConfig,
    require_api_key,
)


class OpenAIAdapter(HTTPProviderAdapter, LLMAdapter):
    """Adapter for OpenAI-compatible chat completion APIs with tool calling."""

    def __init__(self, timeout_sec: float = 90, http_client: Optional[httpx.AsyncClient] = None) -> None:
        super().__init__(timeout_sec=timeout_sec, http_client=http_client)

    async def classify(
        self, cfg: ProviderRuntimeConfig, messages: list[dict], function: dict[str, Any]
    ) -> LLMResult:
        url = self._join_url(cfg.base_url, "/v1/chat/completions")
        headers = {"Authorization": f"Bearer {require_api_key(cfg.api_key, 'OpenAI')}"}
        payload = {
            "model": cfg.model_name,
            "messages": messages,
            "tools": [{"type": "function", "function": function}],
            "tool_choice": {"type": "function", "function": {"name": function["name"]}},
        }
        data = await self._request_json("POST", url, headers=headers, json=payload)
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ProviderError("PROVIDER_PARSE_ERROR", "No choices returned by provider.")
        choice = choices[0] if isinstance(choices[0], dict) else {}
        message = choice.get("message")
        if not isinstance(message, dict):
            raise ProviderError("PROVIDER_PARSE_ERROR", "No message in provider response.")
        arguments = self._extract_arguments(message, function["name"])
        return LLMResult(
            content=arguments,
            model_provider=cfg.provider,
            model_name=cfg.model_name,
            token_in=self._get_usage_int(data, "prompt_tokens"),
            token_out=self._get_usage_int(data, "completion_tokens"),
        )

    @staticmethod
    def _extract_arguments(message: dict[str, Any], function_name: str) -> str:
        tool_calls = message.get("tool_calls")
        for call in tool_calls if isinstance(tool_calls, list) else []:
            function = call.get("function") if isinstance(call, dict) else None
            if isinstance(function, dict) and function.get("name") == function_name:
                arguments = _arguments_text(function.get("arguments"))
                if arguments:
                    return arguments
        # Older deployments still answer with the deprecated function_call field.
        legacy = message.get("function_call")
        if isinstance(legacy, dict):
            arguments = _arguments_text(legacy.get("arguments"))
            if arguments:
                return arguments
        raise ProviderError("PROVIDER_PARSE_ERROR", "No function call in provider response.")

    @staticmethod
    def _join_url(base_url: Optional[str], path: str) -> str:
        if not base_url:
            raise ProviderError("PROVIDER_BASE_URL_MISSING", "Base URL is required for OpenAI.")
        base = base_url.rstrip("/")
        if base.endswith("/v1") and path.startswith("/v1/"):
            return base + path[3:]
        return base + path

    @staticmethod
    def _get_usage_int(data: dict[str, Any], key: str) -> Optional[int]:
        usage = data.get("usage")
        if not isinstance(usage, dict):
            return None
        value = usage.get(key)
        return int(value) if isinstance(value, int) else None


def _arguments_text(arguments: Any) -> Optional[str]:
    """Return function arguments as JSON text; some gateways send a decoded object."""

    if isinstance(arguments, str):
        return arguments or None
    if isinstance(arguments, dict):
        return json.dumps(arguments)
    return None
