"""Tests for layered app configuration."""

import json

from rpg_chat import config


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("AI_GATEWAY_URL", raising=False)
    monkeypatch.delenv("AI_MODEL", raising=False)
    cfg = config.get_config(tmp_path)
    assert cfg == {
        "gateway_url": config.DEFAULT_GATEWAY_URL,
        "model": config.DEFAULT_MODEL,
        "safe_mode": True,
        "history_limit": 0,
        "timeout": None,
    }


def test_env_fills_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("AI_GATEWAY_URL", "http://localhost:8080/v1")
    monkeypatch.setenv("AI_MODEL", "local/model")
    cfg = config.get_config(tmp_path)
    assert cfg["gateway_url"] == "http://localhost:8080/v1"
    assert cfg["model"] == "local/model"


def test_stored_values_win_over_env(tmp_path, monkeypatch):
    monkeypatch.setenv("AI_MODEL", "env/model")
    config.update_config(tmp_path, {"model": "stored/model"})
    assert config.get_config(tmp_path)["model"] == "stored/model"


def test_update_merges_known_keys_only(tmp_path):
    config.update_config(tmp_path, {"safe_mode": False})
    cfg = config.update_config(tmp_path, {"history_limit": 10, "api_key": "leak", "bogus": 1})
    assert cfg["safe_mode"] is False
    assert cfg["history_limit"] == 10
    stored = json.loads((tmp_path / "config.json").read_text())
    assert "api_key" not in stored
    assert "bogus" not in stored


def test_api_key_from_env(monkeypatch):
    monkeypatch.setenv("AI_API_KEY", "sk-123")
    assert config.api_key() == "sk-123"
    monkeypatch.delenv("AI_API_KEY")
    assert config.api_key() == ""
