# src/stakepool/log_events.py
"""
JSONL event log for ledger transitions.

Every state change logs one line: {"event": ..., "ts": ..., **fields}. Ledger
quantities are u128, so integers beyond the float-safe range are written as
decimal strings; most JSON consumers would silently round them otherwise.
Handlers pass plain ints and records; this module owns the encoding.
"""

from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Dict

Json = Dict[str, Any]

# Largest integer a float64 JSON reader round-trips exactly.
_SAFE_INT = 2**53 - 1

_LOGGER_ROOT = "stakepool"


def _encode(v: Any) -> Any:
    if isinstance(v, bool) or v is None:
        return v
    if isinstance(v, int):
        return v if -_SAFE_INT <= v <= _SAFE_INT else str(v)
    if isinstance(v, (bytes, bytearray)):
        return bytes(v).hex()
    if isinstance(v, dict):
        return {str(k): _encode(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set, frozenset)):
        return [_encode(x) for x in v]
    to_json = getattr(v, "to_json", None)
    if callable(to_json):
        return _encode(to_json())
    return v if isinstance(v, (str, float)) else str(v)


def event_line(event: str, **fields: Any) -> str:
    payload: Json = {k: _encode(v) for k, v in fields.items()}
    payload["event"] = str(event)
    payload["ts"] = round(time.time(), 3)
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    if logger.isEnabledFor(level):
        logger.log(level, event_line(event, **fields))


class _EventHandler(logging.StreamHandler):
    """Marker type so repeated configuration does not stack handlers."""


def configure_structured_logging(level_name: str | None = None) -> None:
    """Send `stakepool.*` loggers to stderr, one event per line.

    Level comes from the argument, else STAKEPOOL_LOG_LEVEL, else INFO. Other
    libraries' loggers (uvicorn, httpx) are left as they are.
    """
    name = (level_name or os.environ.get("STAKEPOOL_LOG_LEVEL") or "INFO").strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger(_LOGGER_ROOT)
    logger.setLevel(level)
    if not any(isinstance(h, _EventHandler) for h in logger.handlers):
        handler = _EventHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
