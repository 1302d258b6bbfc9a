"""Request authorization checks used by the chat route."""
from __future__ import annotations

import hmac
from typing import Mapping, Protocol


class Authorizer(Protocol):
    def authorize(self, headers: Mapping[str, str]) -> bool:
        ...


class SharedSecretAuthorizer:
    """Accept a request when a header equals a static shared secret."""

    def __init__(self, secret: str, header: str = "api-key") -> None:
        self.secret = secret
        self.header = header

    def authorize(self, headers: Mapping[str, str]) -> bool:
        supplied = headers.get(self.header)
        if supplied is None:
            return False
        return hmac.compare_digest(supplied.encode("utf-8"), self.secret.encode("utf-8"))


class AllowAllAuthorizer:
    """No-op check for local development."""

    def authorize(self, headers: Mapping[str, str]) -> bool:
        return True
