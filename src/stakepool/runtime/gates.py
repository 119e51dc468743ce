# src/stakepool/runtime/gates.py
from __future__ import annotations

from typing import Any, Tuple, Type

from stakepool.errors import ContractError, contract_stopped
from stakepool.ledger.types import Config
from stakepool.runtime.env import TxEnv
from stakepool.runtime.msgs import EmergencyRedeem, Redeem, ResumeContract

# Reachable while the contract is stopped. Everything else is rejected before
# its own validation runs.
STOPPED_ALLOWED: Tuple[Type[Any], ...] = (Redeem, EmergencyRedeem, ResumeContract)


def msg_kind(msg: Any) -> str:
    return str(getattr(msg, "type", type(msg).__name__))


def require_running(config: Config, msg: Any) -> None:
    if config.is_stopped and not isinstance(msg, STOPPED_ALLOWED):
        raise contract_stopped(msg_kind(msg))


def require_admin(config: Config, env: TxEnv) -> None:
    if env.sender != config.admin:
        raise ContractError("unauthorized", "admin_only", {"sender": env.sender})
