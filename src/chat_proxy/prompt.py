"""Flatten instruction + selected history + new turn into one completion prompt."""
from __future__ import annotations

from typing import Iterable

from .messages import USER, Message


def system_instruction(model_name: str) -> str:
    return (
        f"System: You are {model_name}, a helpful AI. "
        "Answer detailed and accurately. Use Markdown for code.\n\n"
    )


def role_label(role: str) -> str:
    return "User" if role == USER else "AI"


def compose_prompt(model_name: str, selected_history: Iterable[Message], new_prompt: str) -> str:
    """Render the upstream prompt.

    The result ends with ``"User: <new_prompt>\\nAI:"`` and no trailing
    newline, so the upstream model continues generation as the AI turn.
    """
    conversation = "\n".join(f"{role_label(m.role)}: {m.content}" for m in selected_history)
    if conversation:
        conversation += "\n"
    return f"{system_instruction(model_name)}{conversation}User: {new_prompt}\nAI:"
