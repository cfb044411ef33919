"""TOML configuration loader."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

_DEFAULT_DB_PATH = "~/.config/optipanier/optipanier.db"
_DEFAULT_SETTINGS_PATH = "~/.config/optipanier/settings.json"

_LIVE_INSTRUCTION = (
    "Vous êtes un assistant d'achat amical et serviable. "
    "Gardez vos réponses courtes et conversationnelles."
)


@dataclass
class StorageConfig:
    db_path: str = _DEFAULT_DB_PATH
    settings_path: str = _DEFAULT_SETTINGS_PATH


@dataclass
class GeminiConfig:
    api_key: str = ""
    model: str = "gemini-2.5-flash"
    optimizer_model: str = "gemini-2.5-pro"
    tts_model: str = "gemini-2.5-flash-preview-tts"
    tts_voice: str = "Kore"
    live_model: str = "gemini-2.5-flash-native-audio-preview-09-2025"


@dataclass
class LiveConfig:
    input_sample_rate: int = 16000
    output_sample_rate: int = 24000
    frame_size: int = 4096
    system_instruction: str = _LIVE_INSTRUCTION


@dataclass
class OptiPanierConfig:
    storage: StorageConfig = field(default_factory=StorageConfig)
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    live: LiveConfig = field(default_factory=LiveConfig)


def load_config(path: str | Path | None = None) -> OptiPanierConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    The Gemini API key can be supplied via GEMINI_API_KEY or API_KEY.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    sto = raw.get("storage", {})
    gem = raw.get("gemini", {})
    liv = raw.get("live", {})

    # config file → GEMINI_API_KEY → API_KEY
    api_key = (
        gem.get("api_key", "")
        or os.environ.get("GEMINI_API_KEY", "")
        or os.environ.get("API_KEY", "")
    )

    defaults = GeminiConfig()
    return OptiPanierConfig(
        storage=StorageConfig(
            db_path=sto.get("db_path", _DEFAULT_DB_PATH),
            settings_path=sto.get("settings_path", _DEFAULT_SETTINGS_PATH),
        ),
        gemini=GeminiConfig(
            api_key=api_key,
            model=gem.get("model", defaults.model),
            optimizer_model=gem.get("optimizer_model", defaults.optimizer_model),
            tts_model=gem.get("tts_model", defaults.tts_model),
            tts_voice=gem.get("tts_voice", defaults.tts_voice),
            live_model=gem.get("live_model", defaults.live_model),
        ),
        live=LiveConfig(
            input_sample_rate=liv.get("input_sample_rate", 16000),
            output_sample_rate=liv.get("output_sample_rate", 24000),
            frame_size=liv.get("frame_size", 4096),
            system_instruction=liv.get("system_instruction", _LIVE_INSTRUCTION),
        ),
    )
