"""Writing-assistant actions layered on top of a text transformer."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from .errors import ProviderConfigurationError
from .providers import TextTransformer
from .structures import DeltaCallback

ASSISTANT_SYSTEM_INSTRUCTION = "You are a helpful AI assistant."


class AssistantAction(Enum):
    POLISH = "polish"
    SUMMARIZE = "summarize"
    TRANSLATE = "translate"
    CUSTOM = "custom"


ACTION_PROMPTS = {
    AssistantAction.POLISH: (
        "Rewrite the following markdown content to be more professional, concise, "
        "and engaging. Maintain the markdown formatting."
    ),
    AssistantAction.SUMMARIZE: "Summarize the following content in a bulleted list.",
    AssistantAction.TRANSLATE: (
        "Translate the following content into English (if it is not) or Chinese "
        "(if it is English). Maintain markdown structure."
    ),
}


def build_assistant_input(prompt: str, content: str) -> str:
    if not content:
        return prompt
    return f"{prompt}\n\nContext:\n{content}"


async def run_assistant(
    transformer: TextTransformer,
    action: AssistantAction | str,
    content: str,
    prompt: Optional[str] = None,
    on_delta: Optional[DeltaCallback] = None,
) -> str:
    """Run an assistant action over ``content`` and return the full response.

    Built-in actions use a fixed prompt; ``custom`` uses ``prompt``. The
    document travels with the prompt as context.
    """

    if not transformer.supports_instructions:
        raise ProviderConfigurationError(
            f"The '{transformer.name}' provider cannot run assistant actions. "
            "Configure the Google Gemini SDK or a custom endpoint."
        )
    action = AssistantAction(action)
    if action is AssistantAction.CUSTOM:
        if not prompt or not prompt.strip():
            raise ValueError("A prompt is required for the custom assistant action.")
        instruction = prompt.strip()
    else:
        if not content:
            raise ValueError(f"The '{action.value}' action needs document content.")
        instruction = ACTION_PROMPTS[action]
    return await transformer.transform(
        ASSISTANT_SYSTEM_INSTRUCTION,
        build_assistant_input(instruction, content),
        on_delta,
    )
