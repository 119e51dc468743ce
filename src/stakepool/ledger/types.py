# src/stakepool/ledger/types.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict

Json = Dict[str, Any]


def _coerce_u(v: Any, *, record: str, field: str) -> int:
    """Strict non-negative integer for persisted ledger fields.

    Accepts ints and decimal strings. A record that fails here is corrupt;
    loading it as a default would silently break conservation.
    """
    try:
        # bool is an int subclass; float would truncate
        if isinstance(v, (bool, float)):
            raise ValueError(f"{type(v).__name__} is not a valid integer")
        n = int(v)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{record} schema error: field '{field}' must be an integer (got {v!r})") from e
    if n < 0:
        raise ValueError(f"{record} schema error: field '{field}' must be non-negative (got {n})")
    return n


@dataclass(frozen=True)
class AssetDescriptor:
    """External fungible-token contract: address plus callback code hash."""

    address: str
    code_hash: str

    @staticmethod
    def from_json(j: Any) -> "AssetDescriptor":
        if isinstance(j, AssetDescriptor):
            return j
        j = dict(j or {})
        return AssetDescriptor(address=str(j.get("address", "")), code_hash=str(j.get("code_hash", "")))

    def to_json(self) -> Json:
        return {"address": self.address, "code_hash": self.code_hash}


@dataclass
class Config:
    admin: str
    reward_asset: AssetDescriptor
    locked_asset: AssetDescriptor
    deadline: int
    pool_claim_height: int
    authentication_seed: bytes
    viewing_key: str
    is_stopped: bool = False

    @staticmethod
    def from_json(j: Json) -> "Config":
        stopped = j.get("is_stopped", False)
        if not isinstance(stopped, bool):
            raise ValueError(f"Config schema error: field 'is_stopped' must be a bool (got {stopped!r})")
        return Config(
            admin=str(j.get("admin", "")),
            reward_asset=AssetDescriptor.from_json(j.get("reward_asset")),
            locked_asset=AssetDescriptor.from_json(j.get("locked_asset")),
            deadline=_coerce_u(j.get("deadline"), record="Config", field="deadline"),
            pool_claim_height=_coerce_u(j.get("pool_claim_height"), record="Config", field="pool_claim_height"),
            authentication_seed=bytes.fromhex(str(j.get("authentication_seed") or "")),
            viewing_key=str(j.get("viewing_key", "")),
            is_stopped=stopped,
        )

    def to_json(self) -> Json:
        return {
            "admin": self.admin,
            "reward_asset": self.reward_asset.to_json(),
            "locked_asset": self.locked_asset.to_json(),
            "deadline": int(self.deadline),
            "pool_claim_height": int(self.pool_claim_height),
            "authentication_seed": self.authentication_seed.hex(),
            "viewing_key": self.viewing_key,
            "is_stopped": bool(self.is_stopped),
        }


@dataclass(frozen=True)
class RewardPool:
    """Global vesting state.

    Frozen: advance() and the handlers derive new pools with evolve() so a
    projection can never leak into the stored value.
    """

    pending_rewards: int = 0
    inc_token_supply: int = 0
    last_reward_block: int = 0
    acc_reward_per_share: int = 0

    def evolve(self, **changes: int) -> "RewardPool":
        return replace(self, **changes)

    @staticmethod
    def from_json(j: Json) -> "RewardPool":
        # u128 values are persisted as decimal strings (JSON has no 128-bit ints).
        return RewardPool(
            pending_rewards=_coerce_u(j.get("pending_rewards"), record="RewardPool", field="pending_rewards"),
            inc_token_supply=_coerce_u(j.get("inc_token_supply"), record="RewardPool", field="inc_token_supply"),
            last_reward_block=_coerce_u(j.get("last_reward_block"), record="RewardPool", field="last_reward_block"),
            acc_reward_per_share=_coerce_u(j.get("acc_reward_per_share"), record="RewardPool", field="acc_reward_per_share"),
        )

    def to_json(self) -> Json:
        return {
            "pending_rewards": str(self.pending_rewards),
            "inc_token_supply": str(self.inc_token_supply),
            "last_reward_block": int(self.last_reward_block),
            "acc_reward_per_share": str(self.acc_reward_per_share),
        }


@dataclass
class UserInfo:
    locked: int = 0
    debt: int = 0

    @staticmethod
    def from_json(j: Json) -> "UserInfo":
        return UserInfo(
            locked=_coerce_u(j.get("locked"), record="UserInfo", field="locked"),
            debt=_coerce_u(j.get("debt"), record="UserInfo", field="debt"),
        )

    def to_json(self) -> Json:
        return {"locked": str(self.locked), "debt": str(self.debt)}

