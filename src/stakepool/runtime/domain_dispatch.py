# src/stakepool/runtime/domain_dispatch.py

from __future__ import annotations

from typing import Any, Callable, Dict, Type

from stakepool.errors import ContractError
from stakepool.runtime.context import ExecCtx
from stakepool.runtime.gates import msg_kind, require_running
from stakepool.runtime.msgs import (
    HANDLE_MSG_TYPES,
    AddToRewardPool,
    ChangeAdmin,
    ClaimRewardPool,
    CreateViewingKey,
    EmergencyRedeem,
    HandleAnswer,
    LockTokens,
    Receive,
    Redeem,
    ResumeContract,
    SetViewingKey,
    StopContract,
    UpdateDeadline,
    UpdateIncentivizedToken,
    UpdatePoolClaimHeight,
    UpdateRewardToken,
)

from stakepool.runtime.apply.admin import (
    apply_change_admin,
    apply_claim_reward_pool,
    apply_resume_contract,
    apply_stop_contract,
    apply_update_deadline,
    apply_update_incentivized_token,
    apply_update_pool_claim_height,
    apply_update_reward_token,
)
from stakepool.runtime.apply.auth import apply_create_viewing_key, apply_set_viewing_key
from stakepool.runtime.apply.staking import (
    apply_emergency_redeem,
    apply_not_top_level,
    apply_receive,
    apply_redeem,
)

HandlerFn = Callable[[ExecCtx, Any], HandleAnswer]

_HANDLERS: Dict[Type[Any], HandlerFn] = {
    Receive: apply_receive,
    LockTokens: apply_not_top_level,
    AddToRewardPool: apply_not_top_level,
    Redeem: apply_redeem,
    EmergencyRedeem: apply_emergency_redeem,
    CreateViewingKey: apply_create_viewing_key,
    SetViewingKey: apply_set_viewing_key,
    UpdateIncentivizedToken: apply_update_incentivized_token,
    UpdateRewardToken: apply_update_reward_token,
    UpdateDeadline: apply_update_deadline,
    UpdatePoolClaimHeight: apply_update_pool_claim_height,
    ClaimRewardPool: apply_claim_reward_pool,
    StopContract: apply_stop_contract,
    ResumeContract: apply_resume_contract,
    ChangeAdmin: apply_change_admin,
}

_missing = [t.__name__ for t in HANDLE_MSG_TYPES if t not in _HANDLERS]
assert not _missing, f"handle variants without a handler: {_missing}"


def apply_msg(ctx: ExecCtx, msg: Any) -> HandleAnswer:
    """Dispatch one parsed handle message to its handler.

    The stopped-state gate runs before the handler so a rejected message never
    reaches its own validation.
    """
    fn = _HANDLERS.get(type(msg))
    if fn is None:
        raise ContractError("invalid_msg", "unknown_msg_type", {"msg": msg_kind(msg)})

    require_running(ctx.config, msg)
    return fn(ctx, msg)
