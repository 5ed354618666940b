"""
Debug Log Utility

Provides optional, safe file-based debug logging for the MPR engine.
Logs are written only when enabled via environment variable; failures are
swallowed so volume builds and renders never fail because of logging.

Inputs:
    - debug_log(location, message, data) calls from engine code
    - Environment: DICOMMPR_DEBUG_LOG (set to 1, true, or yes to enable)
    - Environment: DICOMMPR_DEBUG_LOG_PATH (optional log file override)

Outputs:
    - When enabled: appends JSON lines to the log file
      (default <project_root>/.debug/mpr_debug.log)
    - When disabled or on error: no side effects

Requirements:
    - Standard library only: pathlib, os, json, time, threading
"""

import json
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

# Project root: this file is src/utils/debug_log.py -> parent=utils, parent.parent=src, parent.parent.parent=project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_DEFAULT_LOG_PATH = _PROJECT_ROOT / ".debug" / "mpr_debug.log"

_write_lock = threading.Lock()


def is_debug_log_enabled() -> bool:
    """Read DICOMMPR_DEBUG_LOG at call time so tests and callers can toggle it."""
    return os.getenv("DICOMMPR_DEBUG_LOG", "0").strip().lower() in ("1", "true", "yes")


def get_debug_log_path() -> Path:
    override = os.getenv("DICOMMPR_DEBUG_LOG_PATH", "").strip()
    return Path(override) if override else _DEFAULT_LOG_PATH


def debug_log(
    location: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Append one JSON log line when debug logging is enabled.

    Failures (missing dir, permission, disk full, etc.) are caught and ignored.

    Args:
        location: Call site identifier (e.g. "volume_builder.py:build_volume").
        message: Short description of the event.
        data: Arbitrary dict of context (must be JSON-serializable).
    """
    if not is_debug_log_enabled():
        return
    try:
        log_path = get_debug_log_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "location": location,
            "message": message,
            "data": data or {},
            "thread": threading.current_thread().name,
            "timestamp": int(time.time() * 1000),
        }
        with _write_lock:
            with open(log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(payload) + "\n")
    except Exception:
        pass
