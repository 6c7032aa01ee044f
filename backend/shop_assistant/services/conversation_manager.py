from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Optional, Sequence

from fastapi import Request

from shop_assistant.core.security import sanitize_text
from shop_assistant.schemas.conversation import (
    Action,
    ClassificationResponse,
    ConversationContext,
    ConversationState,
    ConversationStatus,
    Turn,
)
from shop_assistant.services.action_dispatcher import ActionDispatcher, ActionOutcome
from shop_assistant.services.classification_client import ClassificationClient

logger = logging.getLogger(__name__)


def merge_context(
    current: ConversationContext, update: ConversationContext
) -> ConversationContext:
    """Merge ``update`` into ``current``.

    Every key the update carries wins, ``null`` included; keys it does not
    mention are kept.
    """

    merged = current.model_dump(by_alias=True, exclude_unset=True)
    merged.update(update.model_dump(by_alias=True, exclude_unset=True))
    return ConversationContext.model_validate(merged)


class ConversationManager:
    """Drive input -> classification -> dispatch cycles for one conversation.

    Cycles are serialized: the user turn, classification, assistant turn and
    context merge of one cycle finish before the next cycle touches the
    history. Action batches are chained so they run in cycle order, never
    interleaved, whether or not the caller waits for them.
    """

    def __init__(
        self,
        classifier: ClassificationClient,
        dispatcher: ActionDispatcher,
        history_window: int = 10,
        max_input_chars: int = 2000,
    ) -> None:
        self._classifier = classifier
        self._dispatcher = dispatcher
        self._max_input_chars = max_input_chars
        self._turns: deque[Turn] = deque(maxlen=max(1, history_window))
        self._context = ConversationContext()
        self._status = ConversationStatus.IDLE
        self._cycle_lock = asyncio.Lock()
        self._dispatch_tail: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()

    @property
    def status(self) -> ConversationStatus:
        return self._status

    async def process_user_input(self, user_input: str) -> ClassificationResponse:
        """Run one cycle and return the classification response.

        Raises ``ValueError`` for empty input and
        :class:`~shop_assistant.services.action_dispatcher.ActionNotRegisteredError`
        for unknown action types. When the response asks to block, action
        failures are raised as
        :class:`~shop_assistant.services.action_dispatcher.ActionExecutionError`;
        otherwise they are only logged.
        """

        text = sanitize_text(user_input, self._max_input_chars)
        if not text:
            raise ValueError("User input must not be empty.")

        async with self._cycle_lock:
            self._status = ConversationStatus.PROCESSING
            try:
                self._turns.append(Turn(role="user", content=text))
                response = await self._classifier.classify(tuple(self._turns))
                self._turns.append(
                    Turn(role="assistant", content=response.immediate_response.message)
                )
                self._context = merge_context(self._context, response.context)
                task = self._schedule_dispatch(response.actions)
            finally:
                self._status = ConversationStatus.IDLE

        if task is None:
            return response
        if response.immediate_response.should_block:
            await task
        else:
            task.add_done_callback(_log_background_failure)
        return response

    def get_state(self) -> ConversationState:
        """Return a snapshot that callers cannot use to mutate the session."""

        return ConversationState(
            status=self._status,
            messages=list(self._turns),
            context=self._context.model_copy(deep=True),
        )

    async def reset(self) -> None:
        """Discard all turns and context to start a fresh conversation."""

        async with self._cycle_lock:
            self._turns.clear()
            self._context = ConversationContext()

    async def wait_for_background(self) -> None:
        """Wait until every scheduled action batch has finished."""

        while True:
            pending = [task for task in self._pending if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel action batches that are still running."""

        pending = list(self._pending)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    def _schedule_dispatch(self, actions: Sequence[Action]) -> Optional[asyncio.Task]:
        if not actions:
            return None
        # Raise configuration faults to the caller before anything runs.
        self._dispatcher.validate(actions)
        task = asyncio.create_task(self._dispatch_after(self._dispatch_tail, list(actions)))
        self._dispatch_tail = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _dispatch_after(
        self, previous: Optional[asyncio.Task], actions: list[Action]
    ) -> list[ActionOutcome]:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        return await self._dispatcher.execute(actions)


def _log_background_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background action dispatch failed: %s", exc, exc_info=exc)


def get_conversation_manager(request: Request) -> ConversationManager:
    """Dependency to access the conversation manager from app state."""

    return request.app.state.conversation_manager
