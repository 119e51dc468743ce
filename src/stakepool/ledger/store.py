# src/stakepool/ledger/store.py
"""Key-value persistence for the contract.

The host primitive is a flat string-keyed store of JSON values with per-key
read/write. Three layers sit on top of it:

  - MemoryKV: dict-backed store (tests, in-memory nodes)
  - StagedKV: write overlay used for one transaction; flush() publishes every
    staged write at once, dropping the overlay discards them
  - ContractStore: typed accessors for Config / RewardPool / UserInfo /
    viewing-key hashes

Values are canonical JSON strings so a MemoryKV and the SQLite store persist
byte-identical records.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterator, Optional, Protocol, Tuple

from stakepool.constants import CONFIG_KEY, REWARD_POOL_KEY, USER_INFO_PREFIX, VIEWING_KEY_PREFIX
from stakepool.errors import ContractError
from stakepool.ledger.types import Config, RewardPool, UserInfo

Json = Dict[str, Any]


def canon_json(obj: Any) -> str:
    # No default=str: unknown types must fail fast instead of persisting drift.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class KVStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKV:
    def __init__(self, data: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[str(key)] = str(value)

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(sorted(self._data.items()))

    def apply_batch(self, writes: Dict[str, str]) -> None:
        self._data.update(writes)


class StagedKV:
    """Read-through write overlay for one transaction."""

    def __init__(self, base: Any) -> None:
        self._base = base
        self._writes: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        if key in self._writes:
            return self._writes[key]
        return self._base.get(key)

    def set(self, key: str, value: str) -> None:
        self._writes[str(key)] = str(value)

    def flush(self) -> None:
        """Publish staged writes to the base store in one batch."""
        if not self._writes:
            return
        self._base.apply_batch(dict(self._writes))
        self._writes.clear()


class ContractStore:
    """Typed accessors over a KVStore."""

    def __init__(self, kv: Any) -> None:
        self.kv = kv

    def _load(self, key: str) -> Optional[Json]:
        raw = self.kv.get(key)
        if raw is None:
            return None
        obj = json.loads(raw)
        if not isinstance(obj, dict):
            raise ValueError(f"stored record {key!r} is not a JSON object")
        return obj

    # -- Config ------------------------------------------------------------

    def has_config(self) -> bool:
        return self.kv.get(CONFIG_KEY) is not None

    def load_config(self) -> Config:
        j = self._load(CONFIG_KEY)
        if j is None:
            raise ContractError("not_initialized", "config_missing", None)
        return Config.from_json(j)

    def save_config(self, config: Config) -> None:
        self.kv.set(CONFIG_KEY, canon_json(config.to_json()))

    # -- RewardPool --------------------------------------------------------

    def load_pool(self) -> RewardPool:
        j = self._load(REWARD_POOL_KEY)
        if j is None:
            raise ContractError("not_initialized", "reward_pool_missing", None)
        return RewardPool.from_json(j)

    def save_pool(self, pool: RewardPool) -> None:
        self.kv.set(REWARD_POOL_KEY, canon_json(pool.to_json()))

    # -- UserInfo ----------------------------------------------------------

    def load_user(self, account: str) -> UserInfo:
        # Missing record means "no position".
        j = self._load(USER_INFO_PREFIX + account)
        return UserInfo() if j is None else UserInfo.from_json(j)

    def save_user(self, account: str, user: UserInfo) -> None:
        self.kv.set(USER_INFO_PREFIX + account, canon_json(user.to_json()))

    # -- Viewing keys --------------------------------------------------------

    def load_viewing_key_hash(self, account: str) -> Optional[bytes]:
        raw = self.kv.get(VIEWING_KEY_PREFIX + account)
        return None if raw is None else bytes.fromhex(raw)

    def save_viewing_key_hash(self, account: str, hashed: bytes) -> None:
        self.kv.set(VIEWING_KEY_PREFIX + account, hashed.hex())
