# src/stakepool/runtime/context.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol

from stakepool.ledger.store import ContractStore
from stakepool.ledger.types import AssetDescriptor, Config, RewardPool
from stakepool.runtime.accrual import advance
from stakepool.runtime.env import TxEnv
from stakepool.runtime.msgs import Transfer


class TokenQuerier(Protocol):
    """Read access to external asset contracts (the host's side of a query)."""

    def balance(self, token: AssetDescriptor, address: str, key: str) -> int: ...


@dataclass
class ExecCtx:
    """State threaded through one handler call.

    The entry point loads `config` and `pool`, the handler replaces or mutates
    them, and the entry point stores them back. Per-account records go through
    `store` directly. Outbound messages accumulate in `messages` in emission
    order.
    """

    env: TxEnv
    store: ContractStore
    config: Config
    pool: RewardPool
    querier: Optional[TokenQuerier] = None
    messages: List[Any] = field(default_factory=list)

    @property
    def sender(self) -> str:
        return self.env.sender

    def advance(self) -> RewardPool:
        self.pool = advance(self.pool, self.config, self.env.height)
        return self.pool

    def transfer(self, token: AssetDescriptor, recipient: str, amount: int) -> None:
        if int(amount) <= 0:
            return
        self.messages.append(Transfer(token=token, recipient=str(recipient), amount=int(amount)))
