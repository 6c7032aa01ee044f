from __future__ import annotations

from typing import Any, Iterable, List

from shop_assistant.schemas.conversation import ActionType, IntentType, Turn

CLASSIFY_FUNCTION_NAME = "process_user_input"

OFF_TOPIC_REPLY = (
    "I'm sorry, I don't have an answer for that, but I can help you with questions "
    "related to this shopping website or our company."
)


class PromptBuilder:
    """Compose the classification transcript and function schema."""

    def __init__(self, store_name: str = "this shopping website") -> None:
        self._store_name = store_name

    def build_messages(self, turns: Iterable[Turn]) -> List[dict]:
        """Return the system instructions followed by the transcript turns."""

        messages = [{"role": "system", "content": self.system_prompt()}]
        messages.extend({"role": turn.role, "content": turn.content} for turn in turns)
        return messages

    def system_prompt(self) -> str:
        return (
            f"You are an AI shopping assistant for {self._store_name}. Your role is to:\n"
            "1. Understand user queries and determine their intent.\n"
            "2. When users ask about specific product types (e.g. \"televisions\", "
            "\"laptops\"), use the SHOW_PRODUCTS action with an appropriate productType "
            "parameter.\n"
            "3. Extract relevant product attributes and preferences from user queries.\n"
            "4. Provide helpful, concise responses.\n"
            "5. Remember context and maintain conversation flow.\n\n"
            "Examples:\n"
            "- If the user asks \"show me televisions\", set productType: \"television\" "
            "in the SHOW_PRODUCTS action.\n"
            "- If the user asks about specific features, include them in the search "
            "parameters.\n"
            "- Always try to narrow down the product selection based on the query.\n"
            "- Set shouldBlock to true only when the reply depends on the actions "
            "finishing, e.g. confirming a cart change.\n\n"
            "Only answer e-commerce related questions: product search, product queries, "
            "product advice, return policy, payment methods and product comparisons. "
            f"For anything else respond with \"{OFF_TOPIC_REPLY}\""
        )

    @staticmethod
    def classification_function() -> dict[str, Any]:
        """JSON schema of the forced function call the backend must answer with."""

        return {
            "name": CLASSIFY_FUNCTION_NAME,
            "description": "Process user input and determine intent, actions, and response",
            "parameters": {
                "type": "object",
                "properties": {
                    "intent": {
                        "type": "object",
                        "properties": {
                            "type": {
                                "type": "string",
                                "enum": [item.value for item in IntentType],
                            },
                            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                            "entities": {
                                "type": "object",
                                "properties": {
                                    "productType": {"type": "string"},
                                    "category": {"type": "string"},
                                    "features": {"type": "array", "items": {"type": "string"}},
                                    "priceRange": {
                                        "type": "object",
                                        "properties": {
                                            "min": {"type": "number"},
                                            "max": {"type": "number"},
                                        },
                                    },
                                },
                                "additionalProperties": True,
                            },
                        },
                        "required": ["type", "confidence"],
                    },
                    "actions": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "type": {
                                    "type": "string",
                                    "enum": [item.value for item in ActionType],
                                },
                                "parameters": {"type": "object", "additionalProperties": True},
                                "priority": {"type": "number", "minimum": 1},
                            },
                            "required": ["type", "parameters", "priority"],
                        },
                    },
                    "immediateResponse": {
                        "type": "object",
                        "properties": {
                            "message": {"type": "string"},
                            "tone": {
                                "type": "string",
                                "enum": ["informative", "helpful", "apologetic", "enthusiastic"],
                            },
                            "shouldBlock": {"type": "boolean"},
                        },
                        "required": ["message", "tone", "shouldBlock"],
                    },
                    "context": {
                        "type": "object",
                        "properties": {
                            "rememberedItems": {"type": "array", "items": {"type": "string"}},
                            "followUpSuggestions": {"type": "array", "items": {"type": "string"}},
                        },
                        "additionalProperties": True,
                    },
                },
                "required": ["intent", "actions", "immediateResponse", "context"],
            },
        }
