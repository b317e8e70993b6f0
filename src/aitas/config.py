# src/aitas/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Runtime user preferences (personality, keywords, weights) live in the store;
  values here are only the defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "AITAS"

AI_MODES = ("local", "cloud", "hybrid")

DEFAULT_SANCTUARY_KEYWORDS = [
    "walk",
    "nap",
    "meditat",
    "family",
    "date night",
    "bath",
    "hobby",
    "game",
    "read for fun",
]


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Local .env never overrides variables already set in the environment.
load_dotenv(override=False)


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


def _env_list(name: str, default: List[str]) -> List[str]:
    # Comma-separated: keywords may contain spaces ("date night").
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.split(",") if p.strip()]


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

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Reasoning backends ----
    ai_mode: str
    ollama_base_url: str
    ollama_model: str
    gemini_api_key: Optional[str]
    gemini_base_url: str
    gemini_model: str

    # ---- Timeouts (seconds) ----
    llm_probe_timeout_seconds: float
    classify_timeout_seconds: float
    review_timeout_seconds: float

    # ---- Pipeline ----
    replay_pause_seconds: float
    suggestion_window_days: int

    # ---- User-facing defaults ----
    default_personality: str
    sanctuary_keywords: List[str]
    console_enabled: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "aitas")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/aitas"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "aitas.sqlite3")

        ai_mode = _env(_k("AI_MODE"), "hybrid").strip().lower()
        if ai_mode not in AI_MODES:
            ai_mode = "hybrid"

        ollama_base_url = _env(_k("OLLAMA_BASE_URL"), "http://127.0.0.1:11434/v1")
        ollama_model = _env(_k("OLLAMA_MODEL"), "llama3.1:8b")

        gemini_api_key = _first_env(_k("GEMINI_API_KEY"), "GEMINI_API_KEY", default=None)
        gemini_base_url = _env(
            _k("GEMINI_BASE_URL"), "https://generativelanguage.googleapis.com/v1beta/openai/"
        )
        gemini_model = _env(_k("GEMINI_MODEL"), "gemini-2.0-flash")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            ai_mode=ai_mode,
            ollama_base_url=ollama_base_url,
            ollama_model=ollama_model,
            gemini_api_key=gemini_api_key,
            gemini_base_url=gemini_base_url,
            gemini_model=gemini_model,
            llm_probe_timeout_seconds=_env_float(_k("LLM_PROBE_TIMEOUT_SECONDS"), 3.0),
            classify_timeout_seconds=_env_float(_k("CLASSIFY_TIMEOUT_SECONDS"), 5.0),
            review_timeout_seconds=_env_float(_k("REVIEW_TIMEOUT_SECONDS"), 10.0),
            replay_pause_seconds=_env_float(_k("REPLAY_PAUSE_SECONDS"), 1.0),
            suggestion_window_days=_env_int(_k("SUGGESTION_WINDOW_DAYS"), 7),
            default_personality=_env(_k("PERSONALITY"), "standard").strip().lower(),
            sanctuary_keywords=_env_list(_k("SANCTUARY_KEYWORDS"), DEFAULT_SANCTUARY_KEYWORDS),
            console_enabled=_env_bool(_k("CONSOLE_ENABLED"), True),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
