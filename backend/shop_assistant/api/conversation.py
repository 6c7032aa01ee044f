from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from shop_assistant.schemas.common import ErrorResponse
from shop_assistant.schemas.conversation import (
    ClassificationResponse,
    ConversationState,
    MessageRequest,
)
from shop_assistant.services.action_dispatcher import (
    ActionDispatchError,
    ActionNotRegisteredError,
)
from shop_assistant.services.conversation_manager import (
    ConversationManager,
    get_conversation_manager,
)

router = APIRouter(prefix="/api/conversation", tags=["conversation"])


@router.post("/message", response_model=ClassificationResponse)
async def send_message(
    payload: MessageRequest,
    manager: ConversationManager = Depends(get_conversation_manager),
) -> ClassificationResponse:
    """Process one user message and return the assistant's classified reply."""

    try:
        return await manager.process_user_input(payload.text)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ErrorResponse(code="INVALID_INPUT", message=str(exc)).model_dump(),
        ) from exc
    except ActionDispatchError as exc:
        raise HTTPException(
            status_code=_dispatch_status(exc),
            detail=ErrorResponse(code=exc.code, message=exc.message).model_dump(),
        ) from exc


@router.get("/state", response_model=ConversationState)
async def get_state(
    manager: ConversationManager = Depends(get_conversation_manager),
) -> ConversationState:
    """Return the current conversation history and context."""

    return manager.get_state()


@router.post("/reset", response_model=ConversationState)
async def reset_conversation(
    manager: ConversationManager = Depends(get_conversation_manager),
) -> ConversationState:
    """Discard history and context."""

    await manager.reset()
    return manager.get_state()


def _dispatch_status(exc: ActionDispatchError) -> int:
    if isinstance(exc, ActionNotRegisteredError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_409_CONFLICT
