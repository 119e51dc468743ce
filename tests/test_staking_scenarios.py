from __future__ import annotations

import random

import pytest

from conftest import ADMIN, CONTRACT, LOCKED, REWARD, make_host, units
from stakepool.errors import ContractError
from stakepool.runtime.accrual import entitlement
from stakepool.runtime.host import LocalHost


def _fund(host: LocalHost, account: str, *, locked: int = 0, reward: int = 0) -> None:
    if locked:
        host.mint(LOCKED, account, locked)
    if reward:
        host.mint(REWARD, account, reward)


def _set_key(host: LocalHost, account: str) -> str:
    key = f"key-{account}"
    host.execute(account, {"type": "set_viewing_key", "key": key})
    return key


def _rewards(host: LocalHost, account: str, height: int) -> int:
    ans = host.query({"type": "query_rewards", "address": account, "key": f"key-{account}", "height": height})
    return int(ans.rewards)


def _pool(host: LocalHost):
    return host.contract.store.load_pool()


def _user(host: LocalHost, account: str):
    return host.contract.store.load_user(account)


def test_lock_before_rewards_accrues_nothing_until_topped_up(host: LocalHost) -> None:
    _fund(host, "alice", locked=units(1_000))
    _fund(host, "funder", reward=500_000)
    _set_key(host, "alice")

    host.lock("alice", units(1_000))
    assert _user(host, "alice").locked == 1_000
    assert _pool(host).inc_token_supply == 1_000

    host.advance_to(2)
    assert _rewards(host, "alice", 2) == 0

    host.add_rewards("funder", 500_000)
    assert _pool(host).pending_rewards == 500_000
    assert _pool(host).last_reward_block == 2

    # One block of a 999_999-block window: 500_000 // 999_999 truncates to 0.
    assert _rewards(host, "alice", 3) == 0
    # 2000 blocks: 500_000 * 2000 // 999_999 == 1000 vested, all to alice.
    assert _rewards(host, "alice", 2_002) == 1_000


def _two_stakers_setup() -> LocalHost:
    host = make_host()
    _fund(host, "alice", locked=units(1_000))
    _fund(host, "bob", locked=units(1_000))
    _fund(host, "funder", reward=500_000)
    _set_key(host, "alice")
    _set_key(host, "bob")

    host.lock("alice", units(1_000))
    host.advance_to(2)
    host.add_rewards("funder", 500_000)
    host.advance_to(2_002)
    return host


def test_late_staker_gets_no_retroactive_share() -> None:
    host = _two_stakers_setup()

    host.lock("bob", units(1_000))
    pool = _pool(host)
    assert pool.last_reward_block == 2_002
    assert pool.pending_rewards == 499_000

    bob = _user(host, "bob")
    assert bob.debt == 1_000
    assert entitlement(bob, pool) == 0
    assert _rewards(host, "bob", 2_002) == 0
    assert _rewards(host, "alice", 2_002) == 1_000

    # Next 2000 blocks vest 499_000 * 2000 // 997_999 == 1000, split evenly.
    assert _rewards(host, "alice", 4_002) == 1_500
    assert _rewards(host, "bob", 4_002) == 500


def test_emergency_redeem_forfeits_unpaid_entitlement() -> None:
    host = _two_stakers_setup()
    assert _rewards(host, "alice", 2_002) == 1_000

    res = host.execute("alice", {"type": "emergency_redeem"})

    # Principal only; no reward transfer.
    assert [(m.token.address, m.recipient, m.amount) for m in res.messages] == [(LOCKED, "alice", units(1_000))]
    assert host.tokens.balance_of(LOCKED, "alice") == units(1_000)
    assert host.tokens.balance_of(REWARD, "alice") == 0

    alice = _user(host, "alice")
    assert alice.locked == 0
    assert alice.debt == 0
    assert _rewards(host, "alice", 2_002) == 0
    assert _rewards(host, "alice", 900_000) == 0
    assert _pool(host).inc_token_supply == 0


def test_emergency_redeem_skips_accumulator_update() -> None:
    host = _two_stakers_setup()
    before = _pool(host)
    host.execute("alice", {"type": "emergency_redeem"})
    after = _pool(host)
    assert after.last_reward_block == before.last_reward_block
    assert after.acc_reward_per_share == before.acc_reward_per_share


def test_emergency_redeem_without_position_fails(host: LocalHost) -> None:
    with pytest.raises(ContractError) as e:
        host.execute("nobody", {"type": "emergency_redeem"})
    assert e.value.code == "insufficient_funds"


def test_redeem_pays_rewards_and_returns_principal() -> None:
    host = _two_stakers_setup()

    res = host.execute("alice", {"type": "redeem", "amount": str(units(400))})
    transfers = [(m.token.address, m.recipient, m.amount) for m in res.messages]
    assert transfers == [(REWARD, "alice", 1_000), (LOCKED, "alice", units(400))]

    alice = _user(host, "alice")
    assert alice.locked == 600
    assert entitlement(alice, _pool(host)) == 0
    assert _pool(host).inc_token_supply == 600
    assert host.tokens.balance_of(REWARD, "alice") == 1_000


def test_redeem_without_amount_withdraws_whole_position() -> None:
    host = _two_stakers_setup()
    host.execute("alice", {"type": "redeem"})
    assert _user(host, "alice").locked == 0
    assert host.tokens.balance_of(LOCKED, "alice") == units(1_000)
    assert host.tokens.balance_of(LOCKED, CONTRACT) == 0


def test_redeem_more_than_locked_fails() -> None:
    host = _two_stakers_setup()
    with pytest.raises(ContractError) as e:
        host.execute("alice", {"type": "redeem", "amount": str(units(1_001))})
    assert e.value.code == "insufficient_funds"
    assert _user(host, "alice").locked == 1_000


def test_redeem_without_position_fails(host: LocalHost) -> None:
    with pytest.raises(ContractError) as e:
        host.execute("nobody", {"type": "redeem"})
    assert e.value.code == "insufficient_funds"
    assert e.value.reason == "no_position"


def test_conservation_and_non_negative_entitlement_over_random_sequence() -> None:
    rng = random.Random(1337)
    host = make_host(deadline=5_000)
    accounts = ["a", "b", "c", "d"]
    for acct in accounts:
        _fund(host, acct, locked=units(10_000))
    _fund(host, "funder", reward=10**9)

    for _ in range(200):
        host.advance_blocks(rng.randint(0, 40))
        acct = rng.choice(accounts)
        op = rng.random()
        try:
            if op < 0.35:
                host.lock(acct, units(rng.randint(1, 300)))
            elif op < 0.55:
                host.add_rewards("funder", rng.randint(1, 1_000_000))
            elif op < 0.85:
                held = _user(host, acct).locked
                if held:
                    host.execute(acct, {"type": "redeem", "amount": str(units(rng.randint(0, held)))})
            else:
                if _user(host, acct).locked:
                    host.execute(acct, {"type": "emergency_redeem"})
        except ContractError as e:
            # Only locks beyond a depleted balance may fail here.
            assert e.code == "insufficient_funds"

        pool = _pool(host)
        users = [_user(host, a) for a in accounts]
        assert sum(u.locked for u in users) == pool.inc_token_supply
        for u in users:
            assert entitlement(u, pool) >= 0

    # Every unit of locked asset is accounted for.
    total_locked = sum(host.tokens.balance_of(LOCKED, a) for a in accounts) + host.tokens.balance_of(LOCKED, CONTRACT)
    assert total_locked == len(accounts) * units(10_000)
    assert host.tokens.balance_of(LOCKED, CONTRACT) == units(_pool(host).inc_token_supply)


def test_admin_is_instantiating_sender(host: LocalHost) -> None:
    assert host.contract.store.load_config().admin == ADMIN
