# src/stakepool/runtime/host.py
"""
Single-process host for one contract instance.

LocalHost owns the block height, the contract and its backing store, and a
TokenSim standing in for the two asset contracts. Every call is serialised
with a lock; the HTTP layer may run handlers on a thread pool.

Outbound messages are executed against the TokenSim before the contract's
writes are flushed, so a transfer the contract cannot fund aborts the whole
call, contract state included. The token ledger is written into the same
batch as the contract records, so a persistent host restarts with both.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence, TypeVar

from pydantic import BaseModel

from stakepool.errors import ContractError
from stakepool.ledger.store import MemoryKV, StagedKV, canon_json
from stakepool.log_events import log_event
from stakepool.runtime.contract import Contract, ExecResult
from stakepool.runtime.env import BlockInfo, ContractInfo, TxEnv
from stakepool.runtime.msgs import AddToRewardPool, LockTokens, Receive, encode_embedded
from stakepool.runtime.node_config import NodeConfig
from stakepool.runtime.sqlite_db import SqliteDB, SqliteKV
from stakepool.testing.token_sim import TOKEN_LEDGER_KEY, TokenSim

Json = Dict[str, Any]
T = TypeVar("T")

log = logging.getLogger("stakepool.host")

_HEIGHT_META_KEY = "host_height"


def _load_tokens(kv: Any) -> TokenSim:
    raw = kv.get(TOKEN_LEDGER_KEY)
    return TokenSim() if raw is None else TokenSim.from_json(json.loads(raw))


class LocalHost:
    def __init__(
        self,
        *,
        kv: Any,
        contract_address: str = "stakepool",
        contract_code_hash: str = "",
        tokens: Optional[TokenSim] = None,
        height: int = 1,
    ) -> None:
        self.kv = kv
        self.contract = Contract(kv)
        self.info = ContractInfo(address=str(contract_address), code_hash=str(contract_code_hash))
        self.tokens = tokens if tokens is not None else _load_tokens(kv)
        self._lock = threading.Lock()

        self._height = int(height)
        if isinstance(kv, SqliteKV):
            stored = kv.get_meta(_HEIGHT_META_KEY)
            if stored is not None:
                self._height = int(stored)

    # -- Blocks ----------------------------------------------------------------

    @property
    def height(self) -> int:
        return self._height

    def _set_height(self, height: int) -> None:
        self._height = int(height)
        if isinstance(self.kv, SqliteKV):
            self.kv.set_meta(_HEIGHT_META_KEY, str(self._height))

    def advance_blocks(self, count: int = 1) -> int:
        if int(count) < 0:
            raise ContractError("invalid_argument", "negative_block_count", {"count": int(count)})
        with self._lock:
            self._set_height(self._height + int(count))
            return self._height

    def advance_to(self, height: int) -> int:
        with self._lock:
            if int(height) < self._height:
                raise ContractError("invalid_argument", "height_goes_backwards", {"height": int(height), "current": self._height})
            self._set_height(height)
            return self._height

    def env_for(self, sender: str) -> TxEnv:
        return TxEnv(block=BlockInfo(height=self._height, time=int(time.time())), sender=str(sender), contract=self.info)

    # -- Calls -------------------------------------------------------------------

    def _guarded(self, call: Callable[[], T]) -> T:
        """Run `call`, rolling the in-memory token ledger back if it raises.

        Callers hold self._lock.
        """
        snap = self.tokens.snapshot()
        try:
            return call()
        except Exception:
            self.tokens.restore(snap)
            raise

    def _commit_messages(self, result: ExecResult, staged: StagedKV) -> None:
        self.tokens.apply_messages(self.info.address, result.messages)
        staged.set(TOKEN_LEDGER_KEY, canon_json(self.tokens.to_json()))

    def _save_tokens(self) -> None:
        self.kv.set(TOKEN_LEDGER_KEY, canon_json(self.tokens.to_json()))

    def instantiate(self, sender: str, msg: Any) -> ExecResult:
        with self._lock:
            return self._guarded(lambda: self.contract.instantiate(self.env_for(sender), msg, self._commit_messages))

    def execute(self, sender: str, msg: Any, height: Optional[int] = None) -> ExecResult:
        return self.execute_many(sender, [msg], height)

    def execute_many(self, sender: str, msgs: Sequence[Any], height: Optional[int] = None) -> ExecResult:
        """Execute at the current block, or first move to `height`.

        The height move belongs to the call: if execution fails the host
        stays at the block it was on.
        """
        with self._lock:
            prev = self._height
            if height is not None:
                if int(height) < prev:
                    raise ContractError("invalid_argument", "height_goes_backwards", {"height": int(height), "current": prev})
                self._set_height(height)
            try:
                return self._guarded(
                    lambda: self.contract.execute_many(self.env_for(sender), msgs, self.tokens, self._commit_messages)
                )
            except Exception:
                if self._height != prev:
                    self._set_height(prev)
                raise

    def send(self, sender: str, token: str, amount: int, msg: BaseModel) -> ExecResult:
        """Move `amount` of `token` from `sender` to the contract and notify it.

        The token contract is the caller of the resulting receive; `sender`
        appears as its `from`.
        """
        receive = Receive(sender=str(sender), from_=str(sender), amount=int(amount), msg=encode_embedded(msg))

        def _call() -> ExecResult:
            self.tokens.move(token, sender, self.info.address, int(amount))
            return self.contract.execute(self.env_for(token), receive, self.tokens, self._commit_messages)

        with self._lock:
            return self._guarded(_call)

    def lock(self, sender: str, amount: int) -> ExecResult:
        cfg = self.contract.store.load_config()
        return self.send(sender, cfg.locked_asset.address, amount, LockTokens())

    def add_rewards(self, sender: str, amount: int) -> ExecResult:
        cfg = self.contract.store.load_config()
        return self.send(sender, cfg.reward_asset.address, amount, AddToRewardPool())

    def mint(self, token: str, account: str, amount: int) -> int:
        with self._lock:
            self.tokens.mint(token, account, int(amount))
            self._save_tokens()
            return self.tokens.balance_of(token, account)

    def query(self, msg: Any, height: Optional[int] = None) -> BaseModel:
        with self._lock:
            return self.contract.query(msg, self._height if height is None else int(height))

    def status(self) -> Json:
        initialized = self.contract.is_initialized()
        return {
            "height": self._height,
            "contract": self.info.address,
            "initialized": initialized,
            "is_stopped": bool(self.contract.store.load_config().is_stopped) if initialized else False,
        }


def build_host(cfg: NodeConfig) -> LocalHost:
    """Build a LocalHost from node config, instantiating on first boot when
    `init_path` is set."""
    if cfg.db_path.strip():
        kv: Any = SqliteKV(db=SqliteDB(path=cfg.db_path))
    else:
        kv = MemoryKV()

    host = LocalHost(kv=kv, contract_address=cfg.contract_address, contract_code_hash=cfg.contract_code_hash)

    if cfg.init_path and not host.contract.is_initialized():
        init_msg = json.loads(Path(cfg.init_path).read_text(encoding="utf-8"))
        host.instantiate(cfg.admin, init_msg)

    log_event(
        log,
        "host_booted",
        node_id=cfg.node_id,
        mode=cfg.mode,
        persistent=bool(cfg.db_path.strip()),
        initialized=host.contract.is_initialized(),
        height=host.height,
    )
    return host
