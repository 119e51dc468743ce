# src/stakepool/runtime/apply/admin.py
"""
Admin handlers and the Active/Stopped state machine.

Every handler here re-checks sender == config.admin. Stopped-state gating
happens earlier, in domain_dispatch.
"""

from __future__ import annotations

import logging

from stakepool.errors import ContractError
from stakepool.log_events import log_event
from stakepool.runtime.context import ExecCtx
from stakepool.runtime.gates import require_admin
from stakepool.runtime.msgs import (
    ChangeAdmin,
    ClaimRewardPool,
    HandleAnswer,
    ResumeContract,
    StopContract,
    UpdateDeadline,
    UpdateIncentivizedToken,
    UpdatePoolClaimHeight,
    UpdateRewardToken,
)

log = logging.getLogger("stakepool.admin")


def apply_update_incentivized_token(ctx: ExecCtx, msg: UpdateIncentivizedToken) -> HandleAnswer:
    require_admin(ctx.config, ctx.env)
    ctx.config.locked_asset = msg.new_token
    log_event(log, "locked_asset_updated", address=msg.new_token.address, height=ctx.env.height)
    return HandleAnswer(type="update_incentivized_token")


def apply_update_reward_token(ctx: ExecCtx, msg: UpdateRewardToken) -> HandleAnswer:
    require_admin(ctx.config, ctx.env)
    ctx.config.reward_asset = msg.new_token
    log_event(log, "reward_asset_updated", address=msg.new_token.address, height=ctx.env.height)
    return HandleAnswer(type="update_reward_token")


def apply_update_deadline(ctx: ExecCtx, msg: UpdateDeadline) -> HandleAnswer:
    """Move the end of the vesting window.

    The pool is advanced against the old deadline first so blocks already
    elapsed vest on the old schedule. If the old window had already lapsed,
    advance() stops at it; the checkpoint is then moved to the current block
    so the new window starts now and no dead block vests anything.
    """
    require_admin(ctx.config, ctx.env)

    new_deadline = int(msg.height)
    if new_deadline < ctx.env.height:
        raise ContractError(
            "invalid_argument",
            "deadline_in_past",
            {"deadline": new_deadline, "height": ctx.env.height},
        )

    ctx.advance()
    if ctx.pool.last_reward_block < ctx.env.height:
        ctx.pool = ctx.pool.evolve(last_reward_block=ctx.env.height)
    old = ctx.config.deadline
    ctx.config.deadline = new_deadline

    log_event(log, "deadline_updated", old=old, new=new_deadline, height=ctx.env.height)
    return HandleAnswer(type="update_deadline")


def apply_update_pool_claim_height(ctx: ExecCtx, msg: UpdatePoolClaimHeight) -> HandleAnswer:
    require_admin(ctx.config, ctx.env)
    old = ctx.config.pool_claim_height
    ctx.config.pool_claim_height = int(msg.height)
    log_event(log, "pool_claim_height_updated", old=old, new=int(msg.height), height=ctx.env.height)
    return HandleAnswer(type="update_pool_claim_height")


def apply_claim_reward_pool(ctx: ExecCtx, msg: ClaimRewardPool) -> HandleAnswer:
    """Sweep the contract's whole reward-asset balance to `recipient`.

    The balance is read from the asset contract, not from the internal pool,
    and the internal ledger is left as is. Claiming while participants still
    hold unpaid entitlement leaves later reward transfers unfunded.
    """
    cfg = ctx.config
    require_admin(cfg, ctx.env)

    if ctx.env.height < cfg.pool_claim_height:
        raise ContractError(
            "not_yet_eligible",
            "pool_claim_height_not_reached",
            {"pool_claim_height": cfg.pool_claim_height, "height": ctx.env.height},
        )
    if ctx.querier is None:
        raise ContractError("invalid_state", "token_querier_unavailable", None)

    balance = int(ctx.querier.balance(cfg.reward_asset, ctx.env.contract.address, cfg.viewing_key))
    recipient = msg.recipient or ctx.sender
    ctx.transfer(cfg.reward_asset, recipient, balance)

    log_event(log, "claim_reward_pool", recipient=recipient, amount=balance, height=ctx.env.height)
    return HandleAnswer(type="claim_reward_pool")


def apply_stop_contract(ctx: ExecCtx, msg: StopContract) -> HandleAnswer:
    require_admin(ctx.config, ctx.env)
    ctx.config.is_stopped = True
    log_event(log, "contract_stopped", admin=ctx.sender, height=ctx.env.height)
    return HandleAnswer(type="stop_contract")


def apply_resume_contract(ctx: ExecCtx, msg: ResumeContract) -> HandleAnswer:
    require_admin(ctx.config, ctx.env)
    if not ctx.config.is_stopped:
        raise ContractError("invalid_state", "contract_not_stopped", None)
    ctx.config.is_stopped = False
    log_event(log, "contract_resumed", admin=ctx.sender, height=ctx.env.height)
    return HandleAnswer(type="resume_contract")


def apply_change_admin(ctx: ExecCtx, msg: ChangeAdmin) -> HandleAnswer:
    require_admin(ctx.config, ctx.env)
    old = ctx.config.admin
    ctx.config.admin = msg.address
    log_event(log, "admin_changed", old=old, new=msg.address, height=ctx.env.height)
    return HandleAnswer(type="change_admin")
