from __future__ import annotations

from pathlib import Path

import pytest

from chat_proxy.config import (
    CONTEXT_OVERHEAD_CHARS,
    MAX_CONTEXT_CHARS,
    ProxySettings,
    load_config,
    load_settings,
)


def test_shipped_config_loads(config_path: Path, clean_env):
    settings = load_settings(str(config_path))
    assert settings.port == 4000
    assert settings.max_context_chars == MAX_CONTEXT_CHARS
    assert settings.context_overhead_chars == CONTEXT_OVERHEAD_CHARS
    assert settings.upstream_timeout == 240.0
    assert settings.upstream_base == "http://127.0.0.1:3000"


def test_missing_file_uses_defaults(tmp_path: Path, clean_env):
    settings = load_settings(str(tmp_path / "nope.yaml"))
    assert settings == ProxySettings()


def test_service_env_vars_win(tmp_path: Path, clean_env, monkeypatch: pytest.MonkeyPatch):
    cfg_file = tmp_path / "c.yaml"
    cfg_file.write_text("server:\n  port: 5000\nupstream:\n  base_url: http://yaml\n", encoding="utf-8")
    monkeypatch.setenv("MCP_PORT", "4100")
    monkeypatch.setenv("MCP_API_KEY", "s3cret")
    monkeypatch.setenv("API_SERVER_BASE", "http://env:3000/")
    monkeypatch.setenv("API_SERVER_KEY", "up-key")
    monkeypatch.setenv("DEFAULT_MODEL", "llama3")

    settings = load_settings(str(cfg_file))
    assert settings.port == 4100
    assert settings.api_key == "s3cret"
    assert settings.upstream_key == "up-key"
    assert settings.default_model == "llama3"
    assert settings.upstream_base == "http://env:3000/"


def test_prefixed_env_overrides(tmp_path: Path, clean_env, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CHAT_PROXY__CONTEXT__MAX_CHARS", "12345")
    monkeypatch.setenv("CHAT_PROXY__UPSTREAM__TIMEOUT", "30.5")
    cfg = load_config(str(tmp_path / "missing.yaml"))
    assert cfg["context"]["max_chars"] == 12345
    assert cfg["upstream"]["timeout"] == 30.5
    # untouched defaults survive the merge
    assert cfg["context"]["overhead_chars"] == CONTEXT_OVERHEAD_CHARS


def test_config_path_from_env(tmp_path: Path, clean_env, monkeypatch: pytest.MonkeyPatch):
    cfg_file = tmp_path / "alt.yaml"
    cfg_file.write_text("memory:\n  threads_dir: /tmp/elsewhere\n", encoding="utf-8")
    monkeypatch.setenv("CHAT_PROXY_CONFIG", str(cfg_file))
    assert load_settings().threads_dir == "/tmp/elsewhere"


def test_invalid_yaml_raises(tmp_path: Path, clean_env):
    bad = tmp_path / "bad.yaml"
    bad.write_text("server: [unclosed", encoding="utf-8")
    with pytest.raises(RuntimeError):
        load_config(str(bad))


def test_non_mapping_yaml_raises(tmp_path: Path, clean_env):
    bad = tmp_path / "list.yaml"
    bad.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(RuntimeError, match="expected dict"):
        load_config(str(bad))


def test_settings_are_immutable():
    settings = ProxySettings()
    with pytest.raises(Exception):
        settings.port = 1  # type: ignore[misc]
