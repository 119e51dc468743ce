# src/stakepool/runtime/queries.py
"""
Read-only queries.

Unauthenticated queries answer from Config / RewardPool directly. QueryRewards
and QueryDeposit disclose per-account state and go through authenticate()
first; any authentication failure yields the same QueryErrorAnswer.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Type

from pydantic import BaseModel

from stakepool.crypto.viewing_key import EMPTY_KEY_HASH, ViewingKey
from stakepool.errors import ContractError
from stakepool.ledger.store import ContractStore
from stakepool.ledger.types import Config, RewardPool
from stakepool.ledger.units import unscale_locked
from stakepool.runtime.accrual import entitlement, project
from stakepool.runtime.msgs import (
    AUTHENTICATED_QUERIES,
    QUERY_MSG_TYPES,
    BalanceAnswer,
    ContractStatusAnswer,
    DepositAnswer,
    HeightAnswer,
    QueryContractStatus,
    QueryDeposit,
    QueryEndHeight,
    QueryErrorAnswer,
    QueryIncentivizedToken,
    QueryLastRewardBlock,
    QueryRewardPoolBalance,
    QueryRewards,
    QueryRewardToken,
    QueryUnlockClaimHeight,
    RewardsAnswer,
    TokenAnswer,
)

AUTH_FAILED_MSG = "Wrong viewing key for this address or viewing key not set"


def authenticate(store: ContractStore, address: str, key: str) -> bool:
    """Check `key` against the stored hash for `address`.

    A missing hash is replaced by EMPTY_KEY_HASH and compared anyway, so both
    failure modes take the same path and the same time.
    """
    stored = store.load_viewing_key_hash(address)
    expected = stored if stored is not None else EMPTY_KEY_HASH
    matched = ViewingKey(key).check_viewing_key(expected)
    return matched and stored is not None


def _query_rewards(cfg: Config, pool: RewardPool, store: ContractStore, msg: QueryRewards, height: Optional[int]) -> BaseModel:
    user = store.load_user(msg.address)
    at = msg.height if msg.height is not None else height
    if at is None:
        at = pool.last_reward_block
    # Advisory: `at` is not checked against the chain.
    projected = project(pool, cfg, at)
    return RewardsAnswer(rewards=entitlement(user, projected))


def _query_deposit(cfg: Config, pool: RewardPool, store: ContractStore, msg: QueryDeposit, height: Optional[int]) -> BaseModel:
    user = store.load_user(msg.address)
    return DepositAnswer(deposit=unscale_locked(user.locked))


QueryFn = Callable[[Config, RewardPool, ContractStore, Any, Optional[int]], BaseModel]

_QUERIES: Dict[Type[Any], QueryFn] = {
    QueryUnlockClaimHeight: lambda cfg, pool, store, msg, h: HeightAnswer(type=msg.type, height=cfg.pool_claim_height),
    QueryContractStatus: lambda cfg, pool, store, msg, h: ContractStatusAnswer(is_stopped=cfg.is_stopped),
    QueryRewardToken: lambda cfg, pool, store, msg, h: TokenAnswer(type=msg.type, token=cfg.reward_asset),
    QueryIncentivizedToken: lambda cfg, pool, store, msg, h: TokenAnswer(type=msg.type, token=cfg.locked_asset),
    QueryEndHeight: lambda cfg, pool, store, msg, h: HeightAnswer(type=msg.type, height=cfg.deadline),
    QueryLastRewardBlock: lambda cfg, pool, store, msg, h: HeightAnswer(type=msg.type, height=pool.last_reward_block),
    QueryRewardPoolBalance: lambda cfg, pool, store, msg, h: BalanceAnswer(balance=pool.pending_rewards),
    QueryRewards: _query_rewards,
    QueryDeposit: _query_deposit,
}

_missing = [t.__name__ for t in QUERY_MSG_TYPES if t not in _QUERIES]
assert not _missing, f"query variants without a handler: {_missing}"


def run_query(store: ContractStore, msg: Any, height: Optional[int] = None) -> BaseModel:
    """Answer one parsed query. Never writes to `store`."""
    fn = _QUERIES.get(type(msg))
    if fn is None:
        raise ContractError("invalid_msg", "unknown_query_type", {"msg": type(msg).__name__})

    if isinstance(msg, AUTHENTICATED_QUERIES) and not authenticate(store, msg.address, msg.key):
        return QueryErrorAnswer(msg=AUTH_FAILED_MSG)

    cfg = store.load_config()
    pool = store.load_pool()
    return fn(cfg, pool, store, msg, height)
