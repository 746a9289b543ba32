# logging_setup.py
# Loguru sinks for cursor-ai. The rich console belongs to display.py, so the
# stderr sink is off unless --verbose asks for it; the rotating file sink is
# always on.

import os
import sys
from pathlib import Path

from loguru import logger

from cursor_ai.settings import default_home

LOG_FILENAME = "cursor-ai.log"

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "{level:<7} | "
    "{name}:{line} | "
    "{message}"
)

_VALID_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}

_SINK_IDS: list[int] = []
_LAST_CFG: dict = {
    "console": False,
    "log_file": None,
    "rotation": "5 MB",
    "retention": 10,
}


def _resolve_level(level: str | None) -> str:
    """Explicit arg, else $CURSOR_AI_LOG_LEVEL, else INFO."""
    val = (level or os.getenv("CURSOR_AI_LOG_LEVEL") or "INFO").strip().upper()
    val = {"WARN": "WARNING"}.get(val, val)
    return val if val in _VALID_LEVELS else "INFO"


def _log_path(path_like: str | Path | None) -> Path:
    """A directory gets the default filename inside it. Parent is created."""
    if path_like is None:
        path = default_home() / "logs" / LOG_FILENAME
    else:
        path = Path(path_like)
        if path.suffix == "":
            path = path / LOG_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def _reconfigure(level: str) -> None:
    global _SINK_IDS
    for sid in _SINK_IDS:
        logger.remove(sid)
    _SINK_IDS = []

    if _LAST_CFG["console"]:
        _SINK_IDS.append(logger.add(sys.stderr, level=level, format=_FORMAT))

    _SINK_IDS.append(
        logger.add(
            str(_log_path(_LAST_CFG["log_file"])),
            level=level,
            format=_FORMAT,
            rotation=_LAST_CFG["rotation"],
            retention=_LAST_CFG["retention"],
            encoding="utf-8",
        )
    )


def configure_logging(
    level: str | None = None,
    *,
    console: bool = False,
    log_file: str | Path | None = None,
    rotation: str = "5 MB",
    retention: int | str = 10,
) -> None:
    """
    Configure loguru once at CLI start.

    Args:
        level: "DEBUG"/"INFO"/... (env fallback: CURSOR_AI_LOG_LEVEL)
        console: also log to stderr
        log_file: file path or directory (default: <home>/logs/cursor-ai.log)
        rotation: loguru rotation policy, e.g. "5 MB" or "1 day"
        retention: number of files kept, or a duration string
    """
    # Also drops loguru's default stderr handler.
    logger.remove()
    _SINK_IDS.clear()
    _LAST_CFG.update(console=console, log_file=log_file, rotation=rotation, retention=retention)
    _reconfigure(_resolve_level(level))


def set_level(level: str) -> None:
    """Change level at runtime."""
    _reconfigure(_resolve_level(level))
