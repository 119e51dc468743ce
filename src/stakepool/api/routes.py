from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field

from stakepool.api.errors import ApiError
from stakepool.runtime.host import LocalHost
from stakepool.runtime.msgs import dump

router = APIRouter()

Json = Dict[str, Any]


class _Body(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ExecuteBody(_Body):
    sender: str = Field(..., min_length=1)
    msg: Optional[Json] = None
    msgs: Optional[List[Json]] = None
    # Advance the host to this height before executing.
    height: Optional[int] = Field(default=None, ge=0)


class SendBody(_Body):
    sender: str = Field(..., min_length=1)
    action: str = Field(..., pattern="^(lock_tokens|add_to_reward_pool)$")
    amount: int = Field(..., ge=0)


class QueryBody(_Body):
    msg: Json
    height: Optional[int] = Field(default=None, ge=0)


class BlocksBody(_Body):
    count: int = Field(default=1, ge=0)


class MintBody(_Body):
    token: str = Field(..., min_length=1)
    account: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)


def _host(request: Request) -> LocalHost:
    host = getattr(request.app.state, "host", None)
    if host is None:
        raise ApiError.internal("not_ready", "host not attached to app.state", {})
    return host


@router.get("/health")
def health() -> Json:
    return {"ok": True}


@router.get("/status")
def status(request: Request) -> Json:
    return {"ok": True, **_host(request).status()}


@router.post("/execute")
def execute(body: ExecuteBody, request: Request) -> Json:
    """Run one handle message, or a batch from one sender, as one transaction."""
    host = _host(request)
    if (body.msg is None) == (body.msgs is None):
        raise ApiError.bad_request("invalid_msg", "exactly one of msg / msgs is required", {})

    msgs = [body.msg] if body.msg is not None else list(body.msgs or [])
    return host.execute_many(body.sender, msgs, body.height).to_json()


@router.post("/send")
def send(body: SendBody, request: Request) -> Json:
    """Transfer tokens into the contract with a lock / top-up notification."""
    host = _host(request)
    if body.action == "lock_tokens":
        return host.lock(body.sender, body.amount).to_json()
    return host.add_rewards(body.sender, body.amount).to_json()


@router.post("/query")
def query(body: QueryBody, request: Request) -> Json:
    answer = _host(request).query(body.msg, body.height)
    return {"ok": True, "answer": dump(answer)}


@router.post("/blocks")
def blocks(body: BlocksBody, request: Request) -> Json:
    height = _host(request).advance_blocks(body.count)
    return {"ok": True, "height": height}


@router.post("/tokens/mint")
def mint(body: MintBody, request: Request) -> Json:
    """Credit simulated token balance. Disabled in prod."""
    mode = (os.environ.get("STAKEPOOL_MODE") or "prod").strip().lower()
    if mode == "prod":
        raise ApiError.forbidden("forbidden", "token minting is disabled in prod mode", {})
    balance = _host(request).mint(body.token, body.account, body.amount)
    return {"ok": True, "balance": str(balance)}
