# src/pulse_scheduler/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time; a missing LLM key degrades the
  translator/executor to "not configured" instead of failing startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "PULSE"

DEFAULT_LLM_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_LLM_MODELS = ["gemini-2.5-flash", "gemini-2.0-flash"]


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool
    api_enabled: bool
    api_host: str
    api_port: int

    # ---- LLM (OpenAI-compatible endpoint) ----
    llm_api_key: str | None
    llm_base_url: str
    llm_models: list[str]
    llm_connect_timeout_seconds: float
    llm_read_timeout_seconds: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_path: Path

    # ---- Scheduler tuning ----
    tick_seconds: float
    save_debounce_seconds: float
    action_timeout_seconds: float

    @staticmethod
    def from_env() -> Settings:
        app_name = _env(_k("APP_NAME"), "pulse") or "pulse"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        api_enabled = _env_bool(_k("API_ENABLED"), False)
        api_host = _env(_k("API_HOST"), "127.0.0.1")
        api_port = _env_int(_k("API_PORT"), _env_int("PORT", 3000))

        # Accept the generic names too, so an existing Gemini key "just works".
        llm_api_key = _first_env(_k("LLM_API_KEY"), "GEMINI_API_KEY", "API_KEY", default=None)
        llm_base_url = _env(_k("LLM_BASE_URL"), DEFAULT_LLM_BASE_URL)
        llm_models = _env_list(_k("LLM_MODELS"), DEFAULT_LLM_MODELS)

        connect_timeout = _env_float(_k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0)
        # keep read >= connect as a sane baseline
        read_timeout = max(_env_float(_k("LLM_READ_TIMEOUT_SECONDS"), 60.0), connect_timeout)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/pulse"))
        tasks_path = _env_path(_k("TASKS_PATH"), data_dir / "tasks.json")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            api_enabled=api_enabled,
            api_host=api_host,
            api_port=api_port,
            llm_api_key=llm_api_key,
            llm_base_url=llm_base_url,
            llm_models=llm_models,
            llm_connect_timeout_seconds=connect_timeout,
            llm_read_timeout_seconds=read_timeout,
            data_dir=data_dir,
            tasks_path=tasks_path,
            tick_seconds=max(0.05, _env_float(_k("TICK_SECONDS"), 1.0)),
            save_debounce_seconds=max(0.0, _env_float(_k("SAVE_DEBOUNCE_SECONDS"), 0.5)),
            action_timeout_seconds=max(0.0, _env_float(_k("ACTION_TIMEOUT_SECONDS"), 60.0)),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Process-wide settings; .env is read on first use, never at import time."""
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
