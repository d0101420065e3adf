"""Configuration helpers for the Screenshot Flow Analyzer project."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_MAX_TOKENS = 4000
DEFAULT_TIMEOUT = 120.0


@dataclass(slots=True)
class AppConfig:
    """Centralized application configuration."""

    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    credential_path: Path = Path("data/config.json")
    anthropic_key: Optional[str] = None
    history_capacity: int = 50
    server_port: int = 7860
    metadata: dict[str, Any] = field(default_factory=dict)


def _read_dotenv(path: Path) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines; ``export`` prefixes and surrounding quotes are dropped."""
    values: dict[str, str] = {}
    if not path.is_file():
        return values

    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        name, value = (part.strip() for part in line.split("=", 1))
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        if name:
            values[name] = value
    return values


def _apply_dotenv(path: Path) -> None:
    # variables already exported by the shell win over the file
    for name, value in _read_dotenv(path).items():
        os.environ.setdefault(name, value)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Return an AppConfig instance with environment-aware settings."""
    env_path = Path(config_path) if config_path else Path(".env")
    _apply_dotenv(env_path)

    data_dir = Path(os.getenv("DATA_DIR", "data")).expanduser().resolve()
    log_dir = Path(os.getenv("LOG_DIR", "logs")).expanduser().resolve()

    metadata: dict[str, Any] = {
        "api_base_url": (os.getenv("ANTHROPIC_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
        "model": os.getenv("ANTHROPIC_MODEL") or DEFAULT_MODEL,
        "max_tokens": _env_int("ANTHROPIC_MAX_TOKENS", DEFAULT_MAX_TOKENS),
        "request_timeout": _env_float("REQUEST_TIMEOUT", DEFAULT_TIMEOUT),
    }

    return AppConfig(
        data_dir=data_dir,
        log_dir=log_dir,
        log_level=os.getenv("LOG_LEVEL") or "INFO",
        credential_path=data_dir / "config.json",
        anthropic_key=os.getenv("ANTHROPIC_API_KEY") or None,
        history_capacity=_env_int("HISTORY_CAPACITY", 50),
        server_port=_env_int("PORT", 7860),
        metadata=metadata,
    )
