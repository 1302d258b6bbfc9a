"""Chat orchestration: history → context → prompt → upstream reply."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from .context import ContextAssembler
from .memory import HistoryStore
from .messages import Message
from .prompt import compose_prompt
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatResult:
    thread_id: str
    reply: str
    history: List[Message]  # stored history plus this exchange


class ChatService:
    """Runs one chat exchange. Persisting ``ChatResult.history`` is left to the caller."""

    def __init__(
        self,
        store: HistoryStore,
        upstream: UpstreamClient,
        assembler: ContextAssembler,
        default_model: str,
    ) -> None:
        self.store = store
        self.upstream = upstream
        self.assembler = assembler
        self.default_model = default_model

    def chat(self, thread_id: str, prompt: str, model: Optional[str] = None) -> ChatResult:
        history = self.store.load(thread_id)
        model_name = model or self.default_model

        kept = self.assembler.select(history, len(prompt))
        full_prompt = compose_prompt(model_name, kept, prompt)
        logger.info(
            "Sending to %s (%d chars, %d/%d history messages) for thread %s",
            model_name,
            len(full_prompt),
            len(kept),
            len(history),
            thread_id,
        )

        reply = self.upstream.invoke(full_prompt, model_name)

        updated = history + [Message.user(prompt), Message.assistant(reply)]
        return ChatResult(thread_id=thread_id, reply=reply, history=updated)
