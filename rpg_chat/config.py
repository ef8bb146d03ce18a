"""App configuration (AI gateway, model, chat defaults).

Values come from three layers, later ones winning:
  1. built-in defaults
  2. environment (.env is loaded by the app and the dev launcher)
  3. {data_dir}/config.json, written by update_config()

The API key is read from the environment only and is never written to disk.
"""

import json
import os
from pathlib import Path
from typing import Any

DEFAULT_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1"
DEFAULT_MODEL = "google/gemini-2.5-flash"

_STORED_KEYS = ("gateway_url", "model", "safe_mode", "history_limit", "timeout")


def _defaults() -> dict[str, Any]:
    return {
        "gateway_url": os.getenv("AI_GATEWAY_URL", DEFAULT_GATEWAY_URL),
        "model": os.getenv("AI_MODEL", DEFAULT_MODEL),
        "safe_mode": True,
        "history_limit": 0,  # prior turns sent upstream; 0 = whole transcript
        "timeout": None,     # seconds; None leaves it to the transport
    }


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def get_config(data_dir: Path) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config = _defaults()
    path = _config_path(data_dir)
    if path.is_file():
        stored = json.loads(path.read_text())
        for key in _STORED_KEYS:
            if key in stored:
                config[key] = stored[key]
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge known fields into config and persist. Returns full config."""
    config = get_config(data_dir)
    for key in _STORED_KEYS:
        if key in fields:
            config[key] = fields[key]
    _config_path(data_dir).write_text(json.dumps(config, indent=2))
    return config


def api_key() -> str:
    return os.getenv("AI_API_KEY", "")
