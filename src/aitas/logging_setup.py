# src/aitas/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Enrichment runs in the background; its INFO chatter would land mid-prompt.
BACKGROUND_PREFIXES: tuple[str, ...] = ("aitas.pipeline.", "aitas.llm.")

# Transport libraries log every request at INFO.
LIBRARY_LEVELS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "openai": logging.WARNING,
    "asyncio": logging.WARNING,
}

MAX_LOG_BYTES = 2 * 1024 * 1024
LOG_BACKUPS = 3


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console view of the log stream:
    - aitas foreground modules (cli, care, storage...) pass through
    - background enrichment only shows WARNING+
    - everything else (libraries, captured py.warnings) only ERROR+
    """

    def __init__(self, background_prefixes: tuple[str, ...] = BACKGROUND_PREFIXES) -> None:
        super().__init__()
        self._background = background_prefixes

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("aitas."):
            return record.levelno >= logging.ERROR
        if name.startswith(self._background):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/aitas",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    quiet_background: bool = True,
) -> Path:
    """
    Console handler (filtered) + rotating file handler (everything).

    Call once at startup; repeated calls replace the handlers instead of
    stacking them. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "aitas.log"

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter(BACKGROUND_PREFIXES if quiet_background else ()))
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    for name, level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    return log_file
