"""Configuration loading utilities for YAML-based application settings."""

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from .logging_config import get_logger


logger = get_logger(__name__)
_BASE_DIR = Path(__file__).resolve().parent.parent
_CONFIG_PATH = _BASE_DIR / "config.yml"
_DEFAULT_SEED_PATH = _BASE_DIR / "settings" / "mock_data.json"
_DEFAULT_SESSION_PATH = _BASE_DIR / ".session" / "local_storage.json"


@dataclass(frozen=True)
class AppSettings:
    """Application settings loaded from YAML configuration file."""

    app_name: str
    debug: bool
    host: str
    port: int
    log_level: str
    store_latency_sec: float
    store_serialize_mutations: bool
    store_seed_path: str
    session_storage_path: str
    session_current_user_key: str
    session_selected_user_key: str
    assistant_enabled: bool
    assistant_api_key: Optional[str]
    assistant_model: str
    assistant_base_url: str
    assistant_timeout_sec: int


def _to_bool(value: Any, default: bool = False) -> bool:
    """Convert value to bool with a default fallback."""
    try:
        if isinstance(value, bool):
            return value
        return value.strip().lower() in {"1", "true", "yes", "on"}
    except (AttributeError, ValueError):
        logger.warning("Invalid boolean value '%s'. Using default=%s", value, default)
        return default


def _to_int(value: Any, default: int) -> int:
    """Convert value to int with a default fallback."""
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer value '%s'. Using default=%s", value, default)
        return default


def _to_float(value: Any, default: float) -> float:
    """Convert value to float with a default fallback."""
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid float value '%s'. Using default=%s", value, default)
        return default


def _resolve_path(value: Any, default: Path) -> str:
    """Resolve a configured path relative to the backend directory."""
    if not value:
        return str(default)
    path = Path(str(value))
    if not path.is_absolute():
        path = _BASE_DIR / path
    return str(path)


def _read_config(path: Optional[Path] = None) -> dict:
    """Read and parse YAML configuration."""
    config_path = path or _CONFIG_PATH
    try:
        with config_path.open("r", encoding="utf-8") as config_file:
            config_data = yaml.safe_load(config_file) or {}
        logger.info("Configuration loaded from %s", config_path)
        return config_data
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Falling back to defaults.", config_path)
        return {}
    except Exception:
        logger.exception("Failed to load config file from %s", config_path)
        return {}


def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Read one config value using dot-notation keys, e.g. ``app.name``."""
    try:
        data = _read_config()
        current: Any = data
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        if current is None:
            return default
        return str(current)
    except Exception:
        logger.exception("Failed to read config key '%s'.", key)
        return default


def load_settings(path: Optional[str] = None) -> AppSettings:
    """Load and validate application settings from `config.yml`."""
    config = _read_config(Path(path) if path else None)
    app_cfg = config.get("app") or {}
    store_cfg = config.get("store") or {}
    session_cfg = config.get("session") or {}
    assistant_cfg = config.get("assistant") or {}

    latency_ms = _to_float(store_cfg.get("latency_ms", 500), 500.0)
    # API_KEY from the environment takes precedence over config.yml.
    api_key = os.getenv("API_KEY") or assistant_cfg.get("api_key")

    return AppSettings(
        app_name=str(app_cfg.get("name", "LoanHub API")),
        debug=_to_bool(app_cfg.get("debug", False), False),
        host=str(app_cfg.get("host", "127.0.0.1")),
        port=_to_int(app_cfg.get("port", 8000), 8000),
        log_level=str(app_cfg.get("log_level", "INFO")).upper(),
        store_latency_sec=max(latency_ms, 0.0) / 1000.0,
        store_serialize_mutations=_to_bool(store_cfg.get("serialize_mutations", False), False),
        store_seed_path=_resolve_path(store_cfg.get("seed_path"), _DEFAULT_SEED_PATH),
        session_storage_path=_resolve_path(session_cfg.get("storage_path"), _DEFAULT_SESSION_PATH),
        session_current_user_key=str(session_cfg.get("current_user_key", "currentUser")),
        session_selected_user_key=str(session_cfg.get("selected_user_key", "selectedUser")),
        assistant_enabled=_to_bool(assistant_cfg.get("enabled", True), True),
        assistant_api_key=str(api_key).strip() if api_key else None,
        assistant_model=str(assistant_cfg.get("model", "gemini-2.5-flash")),
        assistant_base_url=str(
            assistant_cfg.get("base_url", "https://generativelanguage.googleapis.com/v1beta")
        ),
        assistant_timeout_sec=_to_int(assistant_cfg.get("timeout_sec", 30), 30),
    )
