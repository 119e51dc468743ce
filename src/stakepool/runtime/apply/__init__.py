# src/stakepool/runtime/apply/__init__.py
"""Handler modules, one function per handle message variant.

Each handler takes (ExecCtx, msg) and returns a HandleAnswer. Handlers raise
ContractError to abort; they never persist Config or RewardPool themselves.
"""

from __future__ import annotations

__all__ = [
    "staking",
    "admin",
    "auth",
]
