# src/stakepool/runtime/accrual.py
"""
Reward accumulator and linear vesting.

advance() is a pure function of (pool, config, height). Handlers call it at the
top of every mutating operation; queries call project() on a scratch copy.
Nothing here reads or writes storage.

Vesting is proportional to the *remaining* window: at every checkpoint the
pending balance is spread evenly over the blocks left until the deadline, so
top-ups mid-window need no replanning and everything pending at the last
checkpoint before the deadline is vested exactly at the deadline.

All divisions floor. Truncation dust stays in pending_rewards (vesting) or is
left undistributed (per-share), never fabricated.
"""

from __future__ import annotations

from stakepool.constants import REWARD_SCALE
from stakepool.errors import ContractError
from stakepool.ledger.types import Config, RewardPool, UserInfo
from stakepool.ledger.units import as_u64, checked_add, checked_div, checked_mul, checked_sub


def advance(pool: RewardPool, config: Config, height: int) -> RewardPool:
    """Return the pool with rewards vested up to `height`.

    Idempotent: a second call at the same height returns the pool unchanged.
    """
    height = as_u64(height)
    last = int(pool.last_reward_block)
    deadline = int(config.deadline)

    # At last == deadline the remaining window is empty; nothing left to vest.
    if height <= last or last >= deadline:
        return pool

    if pool.inc_token_supply == 0 or pool.pending_rewards == 0:
        return pool.evolve(last_reward_block=height)

    blocks_to_go = deadline - last
    blocks_elapsed = min(height, deadline) - last

    vested = checked_div(checked_mul(blocks_elapsed, pool.pending_rewards), blocks_to_go)
    per_share = checked_div(checked_mul(vested, REWARD_SCALE), pool.inc_token_supply)

    return pool.evolve(
        acc_reward_per_share=checked_add(pool.acc_reward_per_share, per_share),
        pending_rewards=checked_sub(pool.pending_rewards, vested),
        last_reward_block=height,
    )


def project(pool: RewardPool, config: Config, height: int) -> RewardPool:
    """Advisory projection to min(height, deadline). The input is not modified."""
    return advance(pool, config, min(int(height), int(config.deadline)))


def accrued(locked: int, pool: RewardPool) -> int:
    """locked * acc_reward_per_share / REWARD_SCALE."""
    return checked_mul(locked, pool.acc_reward_per_share) // REWARD_SCALE


def entitlement(user: UserInfo, pool: RewardPool) -> int:
    """Unpaid reward for one account against an up-to-date pool.

    Negative entitlement means the debt bookkeeping is broken; fail the
    transaction instead of paying or clamping.
    """
    owed = accrued(user.locked, pool) - int(user.debt)
    if owed < 0:
        raise ContractError(
            "ledger_invariant",
            "negative_entitlement",
            {"locked": str(user.locked), "debt": str(user.debt), "acc": str(pool.acc_reward_per_share)},
        )
    return owed


def settle_debt(user: UserInfo, pool: RewardPool) -> None:
    """Price the current accumulator into the account's debt."""
    user.debt = accrued(user.locked, pool)
