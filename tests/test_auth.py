from __future__ import annotations

from chat_proxy.auth import AllowAllAuthorizer, SharedSecretAuthorizer


def test_shared_secret_matches_exact_header():
    auth = SharedSecretAuthorizer("v1")
    assert auth.authorize({"api-key": "v1"}) is True
    assert auth.authorize({"api-key": "v2"}) is False
    assert auth.authorize({"api-key": ""}) is False
    assert auth.authorize({}) is False


def test_shared_secret_custom_header():
    auth = SharedSecretAuthorizer("tok", header="x-token")
    assert auth.authorize({"x-token": "tok"}) is True
    assert auth.authorize({"api-key": "tok"}) is False


def test_allow_all():
    assert AllowAllAuthorizer().authorize({}) is True
