from __future__ import annotations

import base64
import sys
from pathlib import Path
from typing import Any, Dict

import pytest

# Ensure local "src/" takes precedence over any globally-installed "stakepool" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from stakepool.constants import LOCK_SCALE  # noqa: E402
from stakepool.ledger.store import MemoryKV  # noqa: E402
from stakepool.runtime.host import LocalHost  # noqa: E402

ADMIN = "admin"
REWARD = "reward-token"
LOCKED = "locked-token"
CONTRACT = "stakepool"
CONTRACT_VK = "contract-vk"

DEADLINE = 1_000_001
POOL_CLAIM_HEIGHT = 500


def init_msg(*, deadline: int = DEADLINE, pool_claim_block: int = POOL_CLAIM_HEIGHT) -> Dict[str, Any]:
    return {
        "reward_token": {"address": REWARD, "code_hash": "reward-hash"},
        "inc_token": {"address": LOCKED, "code_hash": "locked-hash"},
        "deadline": deadline,
        "pool_claim_block": pool_claim_block,
        "viewing_key": CONTRACT_VK,
        "prng_seed": base64.b64encode(b"test-seed").decode("ascii"),
    }


def units(n: int) -> int:
    """Raw locked-asset amount for `n` whole lockable units."""
    return int(n) * LOCK_SCALE


def make_host(kv: Any = None, **init_kw: Any) -> LocalHost:
    host = LocalHost(kv=kv if kv is not None else MemoryKV(), contract_address=CONTRACT, contract_code_hash="stakepool-hash")
    host.instantiate(ADMIN, init_msg(**init_kw))
    return host


@pytest.fixture
def host() -> LocalHost:
    return make_host()
