"""HTTP client for the upstream text-generation service."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from .config import ProxySettings

logger = logging.getLogger(__name__)

OFFLINE_REPLY = "Error: AI Server is offline."
EMPTY_RESPONSE = "Empty response from AI"


# -----------------------------
# Errors
# -----------------------------
class UpstreamError(RuntimeError):
    """Base class for every failure talking to the upstream service."""


class UpstreamTransportError(UpstreamError):
    """Network-level failure, timeout, or a non-2xx HTTP status."""


class UpstreamProtocolError(UpstreamError):
    """The upstream answered, but not with a usable reply."""


class UpstreamApplicationError(UpstreamProtocolError):
    """The response body carries an upstream error field."""


class MalformedResponseError(UpstreamProtocolError):
    """The response body has no reply field."""


# -----------------------------
# Helpers
# -----------------------------
def _is_connection_refused(exc: BaseException) -> bool:
    seen: Optional[BaseException] = exc
    while seen is not None:
        if isinstance(seen, ConnectionRefusedError):
            return True
        text = str(seen).lower()
        if "connection refused" in text or "econnrefused" in text:
            return True
        seen = seen.__cause__ or seen.__context__
    return False


def _body_text(resp: httpx.Response) -> str:
    try:
        return json.dumps(resp.json(), ensure_ascii=False)
    except ValueError:
        return resp.text


def _upstream_error(payload: Any) -> Optional[str]:
    """Return the error text from ``{"raw": {"error": ...}}`` if present."""
    if not isinstance(payload, dict):
        return None
    raw = payload.get("raw")
    if isinstance(raw, dict) and raw.get("error"):
        return str(raw["error"])
    return None


# -----------------------------
# Client
# -----------------------------
class UpstreamClient:
    """Thin wrapper around :class:`httpx.Client` for the chat and models endpoints.

    Usage:
        client = UpstreamClient("http://127.0.0.1:3000", api_key="secret")
        text = client.invoke(full_prompt, "gpt-oss:120b")

    Notes:
        - ``history`` is always sent empty; the conversation is already part
          of ``prompt``, which keeps the upstream stateless.
        - A refused connection yields :data:`OFFLINE_REPLY` instead of raising.
        - Nothing is retried; every failure is logged once and raised.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        *,
        timeout: float = 240.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.chat_url = f"{self.base_url}/api/chat"
        self.models_url = f"{self.base_url}/models"
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            headers={"api-key": api_key},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: ProxySettings, transport: Optional[httpx.BaseTransport] = None) -> "UpstreamClient":
        return cls(
            settings.upstream_base,
            settings.upstream_key,
            timeout=settings.upstream_timeout,
            transport=transport,
        )

    # ----------------------------
    # Public API
    # ----------------------------
    def invoke(self, full_prompt: str, model_name: str) -> str:
        """Send a composed prompt and return the assistant reply text."""
        body: Dict[str, Any] = {"prompt": full_prompt, "history": [], "model": model_name}
        try:
            resp = self._client.post(self.chat_url, json=body)
        except httpx.ConnectError as e:
            if _is_connection_refused(e):
                logger.error("AI API ERROR: upstream %s refused the connection", self.base_url)
                return OFFLINE_REPLY
            logger.error("AI API ERROR: %s", e)
            raise UpstreamTransportError(str(e) or e.__class__.__name__) from e
        except httpx.TransportError as e:
            logger.error("AI API ERROR: %s", e)
            raise UpstreamTransportError(str(e) or e.__class__.__name__) from e

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        upstream_err = _upstream_error(payload)
        if upstream_err:
            logger.error("AI API ERROR: upstream reported %s", upstream_err)
            raise UpstreamApplicationError(f"Upstream Error: {upstream_err}")

        if resp.is_error:
            detail = _body_text(resp)
            logger.error("AI API ERROR: HTTP %d %s", resp.status_code, detail)
            raise UpstreamTransportError(detail or f"HTTP {resp.status_code}")

        if not isinstance(payload, dict) or not payload.get("message"):
            logger.error("AI API ERROR: %s", EMPTY_RESPONSE)
            raise MalformedResponseError(EMPTY_RESPONSE)

        return str(payload["message"])

    def list_models(self) -> Any:
        """Fetch the upstream model list as parsed JSON."""
        try:
            resp = self._client.get(self.models_url)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPError as e:
            logger.error("Failed to fetch models: %s", e)
            raise UpstreamTransportError(str(e) or e.__class__.__name__) from e
        except ValueError as e:
            logger.error("Failed to fetch models: invalid JSON (%s)", e)
            raise MalformedResponseError(f"Invalid model list: {e}") from e

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "UpstreamClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
