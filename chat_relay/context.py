"""
Prompt assembly from the current message and recent conversation history.
"""
from typing import Any, Sequence

from chat_relay.models import ROLE_USER

PREAMBLE = "You are a helpful AI assistant. "
HISTORY_HEADER = "Here's our conversation history for context:\n\n"
HISTORY_INSTRUCTION = (
    "\nBased on this conversation context, please provide a helpful and relevant response to: "
)
NO_HISTORY_INSTRUCTION = "Please provide a clear, concise, and helpful response to: "

CONTEXT_WINDOW = 10
TITLE_MAX_LENGTH = 50
TITLE_ELLIPSIS = "…"


def _field(message: Any, name: str) -> str:
    # History comes either as ORM rows or as plain dicts
    if isinstance(message, dict):
        return message.get(name) or ""
    return getattr(message, name, None) or ""


def _role_label(role: str) -> str:
    return "User" if role == ROLE_USER else "Assistant"


def build_context_prompt(
    current_message: str,
    chat_history: Sequence[Any] = (),
    window: int = CONTEXT_WINDOW,
) -> str:
    """
    Build the prompt sent to the generation backend.

    Args:
        current_message: The user's latest message, appended verbatim
        chat_history: Prior messages, oldest first
        window: Maximum number of trailing history messages to include

    Returns:
        The prompt string
    """
    prompt = PREAMBLE

    recent_history = list(chat_history)[-window:] if window > 0 else []

    if recent_history:
        prompt += HISTORY_HEADER
        for msg in recent_history:
            prompt += f"{_role_label(_field(msg, 'role'))}: {_field(msg, 'content')}\n"
        prompt += HISTORY_INSTRUCTION
    else:
        prompt += NO_HISTORY_INSTRUCTION

    return prompt + current_message


def derive_title(message: str) -> str:
    """Session title from the first message, truncated to 50 characters."""
    if len(message) > TITLE_MAX_LENGTH:
        return message[:TITLE_MAX_LENGTH] + TITLE_ELLIPSIS
    return message
