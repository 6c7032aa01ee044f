from __future__ import annotations

from shop_assistant.schemas.conversation import ActionType, Turn
from shop_assistant.services.prompt_builder import PromptBuilder


def test_prompt_builder_prepends_system_prompt() -> None:
    builder = PromptBuilder()
    messages = builder.build_messages(
        [Turn(role="user", content="hi"), Turn(role="assistant", content="hello")]
    )

    assert messages[0]["role"] == "system"
    assert "SHOW_PRODUCTS" in messages[0]["content"]
    assert "Only answer e-commerce related questions" in messages[0]["content"]
    assert messages[1:] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]


def test_classification_function_lists_every_action_type() -> None:
    schema = PromptBuilder.classification_function()["parameters"]
    action_enum = schema["properties"]["actions"]["items"]["properties"]["type"]["enum"]

    assert set(action_enum) == {item.value for item in ActionType}
    assert schema["required"] == ["intent", "actions", "immediateResponse", "context"]

