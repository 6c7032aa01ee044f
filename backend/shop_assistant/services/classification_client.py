from __future__ import annotations

import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional, Sequence

from shop_assistant.providers.base import LLMAdapter, LLMResult, ProviderError, ProviderRuntimeConfig
from shop_assistant.schemas.conversation import (
    ActionType,
    ClassificationResponse,
    ConversationContext,
    ImmediateResponse,
    Intent,
    IntentType,
    Turn,
)
from shop_assistant.services.prompt_builder import PromptBuilder

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Sorry, I'm having trouble processing your request. Could you please try again?"

Sleep = Callable[[float], Awaitable[None]]


def fallback_response() -> ClassificationResponse:
    """Fixed reply used whenever classification cannot produce a result."""

    return ClassificationResponse(
        intent=Intent(type=IntentType.UNKNOWN, confidence=0),
        actions=[],
        immediate_response=ImmediateResponse(
            message=FALLBACK_MESSAGE,
            tone="apologetic",
            should_block=False,
        ),
        context=ConversationContext(),
    )


class ClassificationClient:
    """Classify a transcript through the model backend.

    Rate-limited calls are retried with a flat back-off. Every other failure,
    and a rate limit that outlasts the retries, degrades to
    :func:`fallback_response`; ``classify`` never raises for backend faults.
    """

    def __init__(
        self,
        adapter: LLMAdapter,
        runtime_cfg: ProviderRuntimeConfig,
        prompt_builder: Optional[PromptBuilder] = None,
        max_attempts: int = 3,
        backoff_sec: float = 60,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._adapter = adapter
        self._cfg = runtime_cfg
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._max_attempts = max(1, max_attempts)
        self._backoff_sec = backoff_sec
        self._sleep = sleep

    async def classify(self, turns: Sequence[Turn]) -> ClassificationResponse:
        """Return the structured classification for ``turns``."""

        messages = self._prompt_builder.build_messages(turns)
        function = self._prompt_builder.classification_function()
        try:
            result = await self._with_rate_limit_retry(messages, function)
            return self._parse(result.content)
        except ProviderError as exc:
            logger.warning("Classification fell back (%s): %s", exc.code, exc.message)
        return fallback_response()

    async def _with_rate_limit_retry(self, messages: list[dict], function: dict) -> LLMResult:
        attempt = 1
        while True:
            try:
                return await self._adapter.classify(self._cfg, messages, function)
            except ProviderError as exc:
                if exc.code != "PROVIDER_RATE_LIMIT" or attempt >= self._max_attempts:
                    raise
                logger.warning(
                    "Rate limit hit, attempt %s/%s. Waiting %s seconds...",
                    attempt,
                    self._max_attempts,
                    self._backoff_sec,
                )
                await self._sleep(self._backoff_sec)
                attempt += 1

    @staticmethod
    def _parse(content: str) -> ClassificationResponse:
        try:
            response = ClassificationResponse.model_validate(json.loads(content))
        except (TypeError, ValueError) as exc:
            # Covers JSON decoding, non-text content and schema validation errors.
            raise ProviderError(
                "PROVIDER_PARSE_ERROR", f"Malformed classification payload: {exc}"
            ) from exc
        return _merge_entities_into_actions(response)


def _merge_entities_into_actions(response: ClassificationResponse) -> ClassificationResponse:
    entities = response.intent.entities
    if not entities or not response.actions:
        return response
    actions = [
        action.model_copy(update={"parameters": {**action.parameters, **entities}})
        if action.type == ActionType.SHOW_PRODUCTS
        else action
        for action in response.actions
    ]
    return response.model_copy(update={"actions": actions})
