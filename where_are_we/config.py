"""Global app configuration (AI service connections, game options).

Stored as config.json inside the data directory given to init_config().
get_config() returns defaults merged with stored values; update_config()
merges a partial update section by section and persists it.

Blank API keys fall back to OPENAI_API_KEY / ELEVENLABS_API_KEY from the
environment at read time, so secrets never have to be written to disk.
"""

import json
import os
from pathlib import Path
from typing import Any

_data_dir: Path | None = None

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm": {
        "provider_url": "https://api.openai.com",
        "api_key": "",
        "provider_format": "openai",
        "model": "gpt-4o-mini",
        "timeout": 60,
    },
    "images": {
        "provider_url": "https://api.openai.com",
        "api_key": "",
        "model": "dall-e-3",
        "size": "1792x1024",
    },
    "speech": {
        "tts_url": "https://api.elevenlabs.io",
        "tts_api_key": "",
        "tts_model": "eleven_multilingual_v2",
        "transcribe_url": "https://api.openai.com",
        "transcribe_api_key": "",
        "transcribe_model": "whisper-1",
    },
    "game": {
        "cap_npc_hints": False,
        "npc_voice_enabled": True,
    },
}

_SECRET_ENV: dict[tuple[str, str], str] = {
    ("llm", "api_key"): "OPENAI_API_KEY",
    ("images", "api_key"): "OPENAI_API_KEY",
    ("speech", "transcribe_api_key"): "OPENAI_API_KEY",
    ("speech", "tts_api_key"): "ELEVENLABS_API_KEY",
}


def init_config(data_dir: Path) -> None:
    global _data_dir
    _data_dir = data_dir
    _data_dir.mkdir(parents=True, exist_ok=True)


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_config() before using config"
    return _data_dir


def _config_path() -> Path:
    return data_dir() / "config.json"


def _defaults() -> dict[str, Any]:
    return json.loads(json.dumps(_CONFIG_DEFAULTS))  # deep copy


def _stored() -> dict[str, Any]:
    path = _config_path()
    if not path.is_file():
        return {}
    return json.loads(path.read_text())


def _merge(config: dict[str, Any], fields: dict[str, Any]) -> None:
    for section, vals in fields.items():
        if section in config and isinstance(vals, dict):
            for key, value in vals.items():
                if key in config[section]:
                    config[section][key] = value


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values and env secrets."""
    config = _defaults()
    _merge(config, _stored())
    for (section, key), env_name in _SECRET_ENV.items():
        if not config[section][key]:
            config[section][key] = os.getenv(env_name, "")
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into stored config and persist. Returns full config.

    Unknown sections and keys are dropped. Secrets pulled from the
    environment are not written back.
    """
    stored = _defaults()
    _merge(stored, _stored())
    _merge(stored, fields)
    _config_path().write_text(json.dumps(stored, indent=2))
    return get_config()
