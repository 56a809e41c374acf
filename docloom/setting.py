"""docloom settings.

Defaults live in the pydantic models below, ``config/docloom.yaml``
overrides them, and environment variables override both. ``.env`` files
are loaded first.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "docloom.yaml"


class PlacementSettings(BaseModel):
    after_signature_languages: List[str] = Field(default_factory=lambda: ["python"])
    existing_comment_policy: str = "next_declaration"
    enclosing_window: int = 30
    claim_window: int = 10
    redocument_window: int = 10
    raw_cursor_fallback: bool = False
    proceed_on_low_confidence: bool = False
    feedback_path: Optional[str] = None


class ScoringSettings(BaseModel):
    proximity_window: int = 10
    always_keep_distance: int = 2
    heuristic_cap: float = 0.8


class StrategySettings(BaseModel):
    preference: str = "auto"
    prefer_quality: bool = False
    high_complexity_threshold: int = 10


class RemoteSettings(BaseModel):
    url: str = "https://api.anthropic.com/v1/messages"
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 2000
    timeout: float = 8.0
    max_tries: int = 2
    context_radius: int = 20
    rate_limit_calls: int = 20
    rate_limit_window: float = 60.0
    api_key_env: str = "ANTHROPIC_API_KEY"


class DocloomSettings(BaseModel):
    placement: PlacementSettings = Field(default_factory=PlacementSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    strategy: StrategySettings = Field(default_factory=StrategySettings)
    remote: RemoteSettings = Field(default_factory=RemoteSettings)
    log_level: str = "INFO"

    def api_key(self) -> Optional[str]:
        """API key from the environment variable named by ``remote.api_key_env``."""
        value = os.getenv(self.remote.api_key_env, "").strip()
        return value or None


_ENV_OVERRIDES = {
    "DOCLOOM_LOG_LEVEL": ("log_level",),
    "DOCLOOM_STRATEGY": ("strategy", "preference"),
    "DOCLOOM_REMOTE_URL": ("remote", "url"),
    "DOCLOOM_REMOTE_MODEL": ("remote", "model"),
    "DOCLOOM_REMOTE_TIMEOUT": ("remote", "timeout"),
}


def _read_yaml(path: Path) -> dict:
    if not path.exists():
        logger.debug(f"No config file at {path}, using defaults")
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")
    return data


def load_settings(config_path: Optional[str] = None) -> DocloomSettings:
    """Build settings from defaults, the YAML file and the environment.

    Args:
        config_path: YAML file; defaults to $DOCLOOM_CONFIG, then config/docloom.yaml
    """
    path = Path(config_path or os.getenv("DOCLOOM_CONFIG") or DEFAULT_CONFIG_PATH)
    data = _read_yaml(path)

    for env_name, keys in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        section = data
        for key in keys[:-1]:
            if not isinstance(section.get(key), dict):
                section[key] = {}
            section = section[key]
        section[keys[-1]] = value

    return DocloomSettings.model_validate(data)


_settings: Optional[DocloomSettings] = None


def get_settings() -> DocloomSettings:
    """Process-wide settings, loaded on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
