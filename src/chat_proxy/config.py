"""Configuration loading utilities for the chat proxy.

This module handles layered configuration:
1. Explicit path argument (highest precedence)
2. Environment variable CHAT_PROXY_CONFIG
3. Fallback to "config/default.yaml"

It also supports optional overrides from environment variables with prefix
``CHAT_PROXY__`` (e.g., CHAT_PROXY__CONTEXT__MAX_CHARS=200000). The service's
own variables (``MCP_PORT``, ``MCP_API_KEY``, ``API_SERVER_BASE``,
``API_SERVER_KEY``, ``DEFAULT_MODEL``) are applied last and win over both.
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-oss:120b"
# ~128k tokens, approximated as characters
MAX_CONTEXT_CHARS = 450_000
# Room for the instruction line and role labels
CONTEXT_OVERHEAD_CHARS = 1_000
UPSTREAM_TIMEOUT = 240.0

_DEFAULTS: Dict[str, Any] = {
    "server": {"host": "127.0.0.1", "port": 4000, "cors_origins": ["*"]},
    "auth": {"api_key": "v1"},
    "upstream": {
        "base_url": "http://127.0.0.1:3000",
        "api_key": "",
        "timeout": UPSTREAM_TIMEOUT,
        "default_model": DEFAULT_MODEL,
    },
    "context": {
        "max_chars": MAX_CONTEXT_CHARS,
        "overhead_chars": CONTEXT_OVERHEAD_CHARS,
    },
    "memory": {"threads_dir": "threads"},
}

# env var -> (section, key)
_SERVICE_ENV = {
    "MCP_PORT": ("server", "port"),
    "MCP_API_KEY": ("auth", "api_key"),
    "API_SERVER_BASE": ("upstream", "base_url"),
    "API_SERVER_KEY": ("upstream", "api_key"),
    "DEFAULT_MODEL": ("upstream", "default_model"),
}


@dataclass(frozen=True)
class ProxySettings:
    """Immutable runtime configuration handed to the app's collaborators."""

    host: str = "127.0.0.1"
    port: int = 4000
    api_key: str = "v1"
    upstream_base: str = "http://127.0.0.1:3000"
    upstream_key: str = ""
    default_model: str = DEFAULT_MODEL
    max_context_chars: int = MAX_CONTEXT_CHARS
    context_overhead_chars: int = CONTEXT_OVERHEAD_CHARS
    upstream_timeout: float = UPSTREAM_TIMEOUT
    threads_dir: str = "threads"
    cors_origins: Tuple[str, ...] = ("*",)

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any]) -> "ProxySettings":
        server = cfg.get("server") or {}
        auth = cfg.get("auth") or {}
        upstream = cfg.get("upstream") or {}
        context = cfg.get("context") or {}
        memory = cfg.get("memory") or {}
        origins = server.get("cors_origins") or ["*"]
        if isinstance(origins, str):
            origins = [o.strip() for o in origins.split(",") if o.strip()]
        return cls(
            host=str(server.get("host", "127.0.0.1")),
            port=int(server.get("port", 4000)),
            api_key=str(auth.get("api_key", "v1")),
            upstream_base=str(upstream.get("base_url", "http://127.0.0.1:3000")),
            upstream_key=str(upstream.get("api_key") or ""),
            default_model=str(upstream.get("default_model") or DEFAULT_MODEL),
            max_context_chars=int(context.get("max_chars", MAX_CONTEXT_CHARS)),
            context_overhead_chars=int(context.get("overhead_chars", CONTEXT_OVERHEAD_CHARS)),
            upstream_timeout=float(upstream.get("timeout", UPSTREAM_TIMEOUT)),
            threads_dir=str(memory.get("threads_dir", "threads")),
            cors_origins=tuple(origins),
        )


def _coerce(value: str) -> Any:
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides with prefix CHAT_PROXY__."""
    prefix = "CHAT_PROXY__"
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        # e.g., CHAT_PROXY__UPSTREAM__TIMEOUT -> cfg["upstream"]["timeout"]
        parts = key[len(prefix):].lower().split("__")
        sub = cfg
        for p in parts[:-1]:
            if p not in sub or not isinstance(sub[p], dict):
                sub[p] = {}
            sub = sub[p]
        sub[parts[-1]] = _coerce(value)
    return cfg


def _apply_service_env(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for var, (section, key) in _SERVICE_ENV.items():
        value = os.environ.get(var)
        if value is None or value == "":
            continue
        cfg.setdefault(section, {})[key] = value
    return cfg


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load YAML configuration for the chat proxy.

    Parameters
    ----------
    path : str | None
        Optional path to a configuration file. If not provided, the
        environment variable ``CHAT_PROXY_CONFIG`` is consulted. As a
        last resort ``config/default.yaml`` is used.

    Returns
    -------
    Dict[str, Any]
        Parsed configuration merged over the built-in defaults, with
        environment overrides applied.
    """
    load_dotenv()

    if path is None:
        path = os.environ.get("CHAT_PROXY_CONFIG", "config/default.yaml")

    path_obj = Path(path)
    if not path_obj.exists():
        logger.warning("Config file not found at %s. Using defaults.", path_obj)
        cfg = _merge(_DEFAULTS, {})
        return _apply_service_env(_apply_env_overrides(cfg))

    with path_obj.open("r", encoding="utf-8") as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RuntimeError(f"Failed to parse config file {path_obj}: {e}")

    if not isinstance(loaded, dict):
        raise RuntimeError(f"Invalid config format in {path_obj}, expected dict.")

    cfg = _merge(_DEFAULTS, loaded)
    return _apply_service_env(_apply_env_overrides(cfg))


def load_settings(path: Optional[str] = None) -> ProxySettings:
    """Convenience wrapper: :func:`load_config` then build :class:`ProxySettings`."""
    return ProxySettings.from_dict(load_config(path))
