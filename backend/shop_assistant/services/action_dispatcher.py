from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Sequence

from shop_assistant.schemas.conversation import Action, ActionType

logger = logging.getLogger(__name__)

Executor = Callable[[dict[str, Any]], Awaitable[Any]]


class ActionDispatchError(RuntimeError):
    """Base class for failures raised while dispatching actions."""

    def __init__(self, code: str, message: str, action: Action) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.action = action


class ActionNotRegisteredError(ActionDispatchError):
    """An action type has no executor; the deployment is misconfigured."""

    def __init__(self, action: Action) -> None:
        super().__init__(
            "ACTION_NOT_REGISTERED",
            f"No executor registered for action type {action.type.value}.",
            action,
        )


class ActionExecutionError(ActionDispatchError):
    """An executor failed; the rest of the batch was not run."""

    def __init__(
        self, action: Action, completed: Sequence["ActionOutcome"], cause: BaseException
    ) -> None:
        super().__init__(
            "ACTION_FAILED",
            f"Action {action.type.value} failed: {cause}",
            action,
        )
        self.completed = list(completed)
        self.cause = cause


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one successfully executed action."""

    action: Action
    result: Any = field(default=None)


class ActionDispatcher:
    """Run classified actions through a registry of executors."""

    def __init__(self, executors: Optional[Mapping[ActionType, Executor]] = None) -> None:
        self._executors: dict[ActionType, Executor] = {}
        for action_type, executor in (executors or {}).items():
            self.register(action_type, executor)

    def register(self, action_type: ActionType | str, executor: Executor) -> None:
        """Add or replace the executor for ``action_type``."""

        self._executors[ActionType(action_type)] = executor

    def is_registered(self, action_type: ActionType | str) -> bool:
        return ActionType(action_type) in self._executors

    def registered_types(self) -> list[ActionType]:
        return list(self._executors)

    @staticmethod
    def order(actions: Iterable[Action]) -> list[Action]:
        """Sort by ascending priority; equal priorities keep their original order."""

        return sorted(actions, key=lambda action: action.priority)

    def validate(self, actions: Iterable[Action]) -> None:
        """Raise :class:`ActionNotRegisteredError` for the first unknown action type."""

        for action in actions:
            if action.type not in self._executors:
                logger.error("No executor registered for action type %s", action.type.value)
                raise ActionNotRegisteredError(action)

    async def execute(self, actions: Iterable[Action]) -> list[ActionOutcome]:
        """Execute ``actions`` one at a time in priority order.

        The whole batch is validated before the first executor runs. The first
        executor failure stops the batch and is raised as
        :class:`ActionExecutionError`.
        """

        ordered = self.order(actions)
        self.validate(ordered)
        outcomes: list[ActionOutcome] = []
        for action in ordered:
            executor = self._executors[action.type]
            try:
                result = await executor(dict(action.parameters))
            except Exception as exc:  # noqa: BLE001
                raise ActionExecutionError(action, outcomes, exc) from exc
            outcomes.append(ActionOutcome(action=action, result=result))
        return outcomes
