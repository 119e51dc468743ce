# src/stakepool/runtime/apply/staking.py
"""
Staking handlers: lock (via receive), reward top-up (via receive), redeem and
emergency redeem.

Lock and top-up are only reachable as the embedded message of a receive
notification from the matching asset contract. The notification's `from` is
the account whose tokens moved; env.sender is the asset contract.

Everything except emergency_redeem advances the pool to the current height
before it reads or writes a UserInfo.
"""

from __future__ import annotations

import logging

from stakepool.constants import LOCK_SCALE
from stakepool.errors import ContractError
from stakepool.ledger.units import checked_add, checked_sub, scale_locked, unscale_locked
from stakepool.log_events import log_event
from stakepool.runtime.accrual import entitlement, settle_debt
from stakepool.runtime.context import ExecCtx
from stakepool.runtime.gates import msg_kind
from stakepool.runtime.msgs import (
    AddToRewardPool,
    EmergencyRedeem,
    HandleAnswer,
    LockTokens,
    Receive,
    Redeem,
    decode_embedded,
)

log = logging.getLogger("stakepool.staking")


def _require_origin(ctx: ExecCtx, expected: str, what: str) -> None:
    if ctx.sender != expected:
        raise ContractError(
            "unsupported_origin",
            f"{what}_from_unexpected_asset",
            {"sender": ctx.sender, "expected": expected},
        )


def _lock(ctx: ExecCtx, account: str, raw_amount: int) -> HandleAnswer:
    cfg = ctx.config
    _require_origin(ctx, cfg.locked_asset.address, "lock")

    scaled = scale_locked(raw_amount)
    if scaled == 0:
        raise ContractError(
            "invalid_amount",
            "below_lock_unit",
            {"amount": str(raw_amount), "unit": str(LOCK_SCALE)},
        )

    pool = ctx.advance()
    user = ctx.store.load_user(account)

    paid = entitlement(user, pool)
    ctx.transfer(cfg.reward_asset, account, paid)

    user.locked = checked_add(user.locked, scaled)
    settle_debt(user, pool)
    ctx.pool = pool.evolve(inc_token_supply=checked_add(pool.inc_token_supply, scaled))
    ctx.store.save_user(account, user)

    # Sub-unit remainder cannot be represented in the scaled ledger.
    refund = checked_sub(raw_amount, unscale_locked(scaled))
    ctx.transfer(cfg.locked_asset, account, refund)

    log_event(
        log,
        "lock",
        account=account,
        amount=raw_amount,
        scaled=scaled,
        refund=refund,
        rewards_paid=paid,
        height=ctx.env.height,
    )
    return HandleAnswer(type="lock_tokens")


def _add_to_reward_pool(ctx: ExecCtx, account: str, amount: int) -> HandleAnswer:
    _require_origin(ctx, ctx.config.reward_asset.address, "reward_topup")

    pool = ctx.advance()
    ctx.pool = pool.evolve(pending_rewards=checked_add(pool.pending_rewards, amount))

    log_event(
        log,
        "reward_pool_topup",
        account=account,
        amount=amount,
        pending_rewards=ctx.pool.pending_rewards,
        height=ctx.env.height,
    )
    return HandleAnswer(type="add_to_reward_pool")


def apply_receive(ctx: ExecCtx, msg: Receive) -> HandleAnswer:
    inner = decode_embedded(msg.msg)

    if isinstance(inner, Receive):
        raise ContractError("invalid_msg", "recursive_receive", None)
    if isinstance(inner, LockTokens):
        return _lock(ctx, msg.from_, msg.amount)
    if isinstance(inner, AddToRewardPool):
        return _add_to_reward_pool(ctx, msg.from_, msg.amount)

    raise ContractError("invalid_msg", "not_receivable", {"msg": msg_kind(inner)})


def apply_not_top_level(ctx: ExecCtx, msg: LockTokens | AddToRewardPool) -> HandleAnswer:
    raise ContractError("invalid_msg", "receive_only", {"msg": msg_kind(msg)})


def apply_redeem(ctx: ExecCtx, msg: Redeem) -> HandleAnswer:
    cfg = ctx.config
    account = ctx.sender

    pool = ctx.advance()
    user = ctx.store.load_user(account)
    if user.locked == 0:
        raise ContractError("insufficient_funds", "no_position", {"account": account})

    scaled = user.locked if msg.amount is None else scale_locked(msg.amount)
    if scaled > user.locked:
        raise ContractError(
            "insufficient_funds",
            "redeem_exceeds_locked",
            {"account": account, "requested": str(scaled), "locked": str(user.locked)},
        )

    paid = entitlement(user, pool)
    ctx.transfer(cfg.reward_asset, account, paid)

    user.locked = checked_sub(user.locked, scaled)
    settle_debt(user, pool)
    ctx.pool = pool.evolve(inc_token_supply=checked_sub(pool.inc_token_supply, scaled))
    ctx.store.save_user(account, user)

    principal = unscale_locked(scaled)
    ctx.transfer(cfg.locked_asset, account, principal)

    log_event(
        log,
        "redeem",
        account=account,
        principal=principal,
        rewards_paid=paid,
        remaining=user.locked,
        height=ctx.env.height,
    )
    return HandleAnswer(type="redeem")


def apply_emergency_redeem(ctx: ExecCtx, msg: EmergencyRedeem) -> HandleAnswer:
    """Withdraw the whole position without touching the accumulator.

    Unpaid entitlement is forfeited and stays in the pool for the remaining
    participants.
    """
    account = ctx.sender
    user = ctx.store.load_user(account)
    if user.locked == 0:
        raise ContractError("insufficient_funds", "no_position", {"account": account})

    scaled = user.locked
    principal = unscale_locked(scaled)
    ctx.pool = ctx.pool.evolve(inc_token_supply=checked_sub(ctx.pool.inc_token_supply, scaled))

    user.locked = 0
    user.debt = 0
    ctx.store.save_user(account, user)

    ctx.transfer(ctx.config.locked_asset, account, principal)

    log_event(log, "emergency_redeem", account=account, principal=principal, height=ctx.env.height)
    return HandleAnswer(type="emergency_redeem")
