"""
utils/logging_utils.py

Purpose
-------
Append-only JSON-lines audit log for user-initiated writes: sign-in/out,
earnings edits, account deletions.

Public API
----------
- get_logger(file_path=None, level=logging.INFO) -> logging.Logger
- log_event(logger, op, phase, message, extra: dict = {})
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

__all__ = ["get_logger", "log_event"]

_LOGGER_NAME = "training_portal.audit"


def _ensure_log_dir(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
        return True
    except OSError:
        return False


def get_logger(file_path: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
    """
    Return the audit logger. Writes JSON lines to `file_path` (defaults to
    config.AUDIT_LOG_PATH) and mirrors WARNING+ to stderr.
    Reuses the same logger (no duplicate handlers) across calls.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    if logger.handlers:
        return logger

    if file_path is None:
        from ..config import AUDIT_LOG_PATH
        log_file = AUDIT_LOG_PATH
    else:
        log_file = Path(file_path)

    if _ensure_log_dir(log_file.parent):
        fh = logging.FileHandler(str(log_file), mode="a", encoding="utf-8", delay=True)
        fh.setLevel(level)
        fh.setFormatter(_JsonLineFormatter())
        logger.addHandler(fh)

    sh = logging.StreamHandler()
    sh.setLevel(logging.WARNING)
    sh.setFormatter(_JsonLineFormatter())
    logger.addHandler(sh)

    return logger


class _JsonLineFormatter(logging.Formatter):
    """
    Minimal JSON-lines formatter:
      {"ts":"2025-06-16T12:00:01.123Z","level":"INFO","name":"training_portal.audit","msg":"...","extra":{...}}
    """
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "extra_payload") and isinstance(record.extra_payload, dict):
            payload["extra"] = record.extra_payload
        return json.dumps(payload, ensure_ascii=False, default=str)


def log_event(
    logger: logging.Logger,
    op: str,
    phase: str,
    message: str,
    extra: Dict[str, object] | None = None,
    level: int = logging.INFO,
) -> None:
    """
    Log a structured audit line.

    Args:
        logger: Obtained from get_logger().
        op: Operation name, e.g. "earnings.set", "earnings.add", "account.delete".
        phase: "ok" or "failed" (or any short phase label).
        message: Human-readable short message.
        extra: Optional additional key/values (user ids, amounts, month keys).
        level: Logging level (default INFO).
    """
    extra_payload = {"op": op, "phase": phase}
    if extra:
        # required keys win
        for k, v in extra.items():
            if k not in extra_payload:
                extra_payload[k] = v

    logger.log(level, message, extra={"extra_payload": extra_payload})
