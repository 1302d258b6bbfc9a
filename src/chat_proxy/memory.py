"""Disk-based conversation history keyed by thread id (one JSON file per thread)."""
from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Iterable, List

from .messages import Message, from_records, to_records

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


class HistoryStoreError(RuntimeError):
    """Raised when an existing history file cannot be read or parsed."""


# -----------------------------
# Helpers
# -----------------------------
def safe_thread_id(thread_id: str) -> str:
    """Drop every character outside ``[A-Za-z0-9_-]``."""
    return _UNSAFE.sub("", str(thread_id))


def derive_key(thread_id: str) -> str:
    # The prefix keeps the key non-empty even when nothing survives filtering.
    return f"thread_{safe_thread_id(thread_id)}"


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile("w", encoding="utf-8", delete=False, dir=str(path.parent)) as tmp:
            tmp_name = tmp.name
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        # Never leave a half-written temp file next to the thread files.
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
        raise


def _read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


# -----------------------------
# HistoryStore
# -----------------------------
class HistoryStore:
    """JSON-based per-thread conversation store.

    Layout:
        threads_dir/
          thread_<safe id>.json   # list[{"role": ..., "content": ...}]

    There is no per-thread locking. Two requests on the same thread that
    interleave their load/save cycles lose an update: the later save wins.
    """

    def __init__(self, threads_dir: str) -> None:
        self.root = Path(threads_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, thread_id: str) -> Path:
        return self.root / f"{derive_key(thread_id)}.json"

    # --------- core API ----------
    def load(self, thread_id: str) -> List[Message]:
        """Load the full history for a thread; empty when nothing was stored yet."""
        path = self.path_for(thread_id)
        if not path.exists():
            return []
        try:
            records = _read_json(path)
            if not isinstance(records, list):
                raise ValueError(f"expected a list, got {type(records).__name__}")
            return from_records(records)
        except (OSError, ValueError, AttributeError) as e:
            raise HistoryStoreError(f"Failed to load history from {path}: {e}") from e

    def save(self, thread_id: str, history: Iterable[Message]) -> bool:
        """Persist a thread's history. Best effort: failures are logged, not raised."""
        path = self.path_for(thread_id)
        try:
            _atomic_write_text(path, json.dumps(to_records(history), ensure_ascii=False, indent=2))
        except Exception:
            logger.exception("Error saving thread %s to %s", thread_id, path)
            return False
        return True

    # --------- convenience ----------
    def append(self, thread_id: str, *messages: Message) -> List[Message]:
        history = self.load(thread_id)
        history.extend(messages)
        self.save(thread_id, history)
        return history

    def list_threads(self) -> List[str]:
        """Return the storage keys of all stored threads."""
        return sorted(p.stem for p in self.root.glob("thread_*.json"))
