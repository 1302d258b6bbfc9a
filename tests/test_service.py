from __future__ import annotations

from pathlib import Path

from chat_proxy.context import ContextAssembler
from chat_proxy.memory import HistoryStore
from chat_proxy.messages import Message
from chat_proxy.service import ChatService


class EchoUpstream:
    def __init__(self):
        self.calls = []

    def invoke(self, full_prompt: str, model_name: str) -> str:
        self.calls.append((full_prompt, model_name))
        return f"echo:{model_name}"


def test_chat_returns_updated_history_without_saving(threads_dir: Path):
    store = HistoryStore(str(threads_dir))
    store.save("t", [Message.user("old"), Message.assistant("reply")])
    upstream = EchoUpstream()
    service = ChatService(store, upstream, ContextAssembler(10_000), default_model="base")

    result = service.chat("t", "new")

    assert result.reply == "echo:base"
    assert result.history[-2:] == [Message.user("new"), Message.assistant("echo:base")]
    assert len(result.history) == 4
    # the caller decides when to persist
    assert len(store.load("t")) == 2

    prompt, model = upstream.calls[0]
    assert model == "base"
    assert prompt.endswith("User: old\nAI: reply\nUser: new\nAI:")


def test_explicit_model_overrides_default(threads_dir: Path):
    upstream = EchoUpstream()
    service = ChatService(HistoryStore(str(threads_dir)), upstream, ContextAssembler(10_000), "base")
    assert service.chat("t", "q", model="special").reply == "echo:special"
    assert upstream.calls[0][0].startswith("System: You are special,")
