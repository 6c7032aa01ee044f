from __future__ import annotations

from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import ConfigDict, Field

from shop_assistant.schemas.common import WireModel

Role = Literal["user", "assistant", "system"]
Tone = Literal["informative", "helpful", "apologetic", "enthusiastic"]


class IntentType(str, Enum):
    """Intent labels the classifier may assign to a user message."""

    PRODUCT_SEARCH = "PRODUCT_SEARCH"
    PRODUCT_QUERY = "PRODUCT_QUERY"
    GENERAL_QUERY = "GENERAL_QUERY"
    COMPARISON = "COMPARISON"
    CART_ACTION = "CART_ACTION"
    GREETING = "GREETING"
    UNKNOWN = "UNKNOWN"


class ActionType(str, Enum):
    """Side effects a classification can request."""

    SHOW_PRODUCTS = "SHOW_PRODUCTS"
    SHOW_PRODUCT_DETAILS = "SHOW_PRODUCT_DETAILS"
    UPDATE_CART = "UPDATE_CART"
    SHOW_CATEGORIES = "SHOW_CATEGORIES"
    SHOW_COMPARISON = "SHOW_COMPARISON"
    UPDATE_UI = "UPDATE_UI"
    NO_ACTION = "NO_ACTION"


class ConversationStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"


class Turn(WireModel):
    """One message of the transcript, tagged with its speaker."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class Intent(WireModel):
    """Structured interpretation of what the user wants."""

    model_config = ConfigDict(frozen=True)

    type: IntentType
    confidence: float = Field(ge=0, le=1)
    entities: dict[str, Any] = Field(default_factory=dict)


class Action(WireModel):
    """A typed side effect; lower priority values run first."""

    model_config = ConfigDict(frozen=True)

    type: ActionType
    parameters: dict[str, Any] = Field(default_factory=dict)
    priority: int = Field(default=1)


class ImmediateResponse(WireModel):
    """Reply shown to the user before or while actions run."""

    model_config = ConfigDict(frozen=True)

    message: str
    tone: Tone = "helpful"
    should_block: bool = False


class ConversationContext(WireModel):
    """Context accumulated across turns.

    The known keys are typed; any other key sent by the classifier is kept
    as an extra field so it survives merges.
    """

    model_config = ConfigDict(extra="allow")

    remembered_items: Optional[List[str]] = None
    follow_up_suggestions: Optional[List[str]] = None


class ClassificationResponse(WireModel):
    """Full structured output of one classification round trip."""

    model_config = ConfigDict(frozen=True)

    intent: Intent
    actions: List[Action] = Field(default_factory=list)
    immediate_response: ImmediateResponse
    context: ConversationContext = Field(default_factory=ConversationContext)


class ConversationState(WireModel):
    """Read-only snapshot of the conversation session."""

    status: ConversationStatus
    messages: List[Turn]
    context: ConversationContext


class MessageRequest(WireModel):
    """Payload for sending one user message."""

    text: str
