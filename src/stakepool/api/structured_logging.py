# src/stakepool/api/structured_logging.py
from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from stakepool.log_events import log_event

log = logging.getLogger("stakepool.http")

# Set by the ContractError handler; read back here after the response.
CONTRACT_ERROR_STATE = "contract_error"


def _flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` event per call, tagged with an x-request-id.

    Calls the contract rejected are logged at WARNING with the contract's error
    code and reason, so a rejected redeem is distinguishable from a malformed
    request that got the same HTTP status. Request bodies are never logged:
    queries carry viewing keys. STAKEPOOL_LOG_REQUESTS=0 disables it.
    """

    def __init__(self, app, *, enabled: Optional[bool] = None) -> None:
        super().__init__(app)
        self._enabled = _flag("STAKEPOOL_LOG_REQUESTS", True) if enabled is None else bool(enabled)

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        fields: Dict[str, Any] = {"request_id": request_id, "method": request.method, "path": request.url.path}

        try:
            response = await call_next(request)
        except Exception as e:
            log_event(log, "http_request", level=logging.ERROR, status=500, error=type(e).__name__, **fields)
            raise

        fields["status"] = response.status_code
        fields["elapsed_ms"] = round((time.perf_counter() - started) * 1000, 2)

        rejected = getattr(request.state, CONTRACT_ERROR_STATE, None)
        if rejected is not None:
            code, reason = rejected
            log_event(log, "http_request", level=logging.WARNING, contract_error=code, reason=reason, **fields)
        else:
            log_event(log, "http_request", **fields)

        response.headers["x-request-id"] = request_id
        return response
