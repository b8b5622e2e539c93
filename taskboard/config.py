from __future__ import annotations

import logging
import os
from pathlib import Path

DEFAULT_STORAGE_KEY = "todoApp"


def default_db_path() -> Path:
    """
    Default per-user store:
      ~/.taskboard/taskboard.db

    Override with TASKBOARD_DB env var or --db CLI option.
    """
    env = os.getenv("TASKBOARD_DB")
    if env:
        return Path(env).expanduser().resolve()

    return (Path.home() / ".taskboard" / "taskboard.db").resolve()


def storage_key() -> str:
    """Key the whole board is saved under (TASKBOARD_KEY, default 'todoApp')."""
    env = os.getenv("TASKBOARD_KEY", "").strip()
    return env or DEFAULT_STORAGE_KEY


def log_level() -> int:
    raw = os.getenv("TASKBOARD_LOG_LEVEL", "").strip().upper()
    if not raw:
        return logging.WARNING
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.WARNING
