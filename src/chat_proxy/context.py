"""Context window management: choose which prior messages go upstream.

History is walked from newest to oldest and kept while the running character
count stays strictly under the budget. The walk stops at the first message
that does not fit, so the result is always a contiguous newest suffix of the
history. Older messages are never reconsidered once one has been dropped,
even if they are shorter.

The running count starts at ``new_prompt_length + overhead_chars``: the new
prompt and the instruction/role-label overhead are reserved up front, so the
budget only ever limits history, never the new prompt itself.
"""
from __future__ import annotations

import logging
from typing import List, Sequence

from .config import CONTEXT_OVERHEAD_CHARS, ProxySettings
from .messages import Message

logger = logging.getLogger(__name__)


def select_history(
    history: Sequence[Message],
    new_prompt_length: int,
    budget_chars: int,
    overhead_chars: int = CONTEXT_OVERHEAD_CHARS,
) -> List[Message]:
    """Return the longest newest suffix of ``history`` that fits ``budget_chars``.

    Messages are atomic: one that does not fit is dropped whole, never cut.
    ``history`` is not modified.
    """
    used = new_prompt_length + overhead_chars
    kept: List[Message] = []

    for idx in range(len(history) - 1, -1, -1):
        size = len(history[idx].content or "")
        if used + size < budget_chars:
            kept.append(history[idx])
            used += size
            continue
        logger.info(
            "Context full: dropped message of %d chars (%d older message(s) not sent)",
            size,
            idx + 1,
        )
        break

    kept.reverse()
    return kept


class ContextAssembler:
    """Binds the budget constants so callers only pass history and prompt size."""

    def __init__(self, budget_chars: int, overhead_chars: int = CONTEXT_OVERHEAD_CHARS) -> None:
        if budget_chars <= 0:
            raise ValueError("budget_chars must be positive")
        if overhead_chars < 0:
            raise ValueError("overhead_chars must not be negative")
        self.budget_chars = int(budget_chars)
        self.overhead_chars = int(overhead_chars)

    @classmethod
    def from_settings(cls, settings: ProxySettings) -> "ContextAssembler":
        return cls(settings.max_context_chars, settings.context_overhead_chars)

    def select(self, history: Sequence[Message], new_prompt_length: int) -> List[Message]:
        return select_history(history, new_prompt_length, self.budget_chars, self.overhead_chars)
