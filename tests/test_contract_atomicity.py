from __future__ import annotations

from pathlib import Path

import pytest

from conftest import ADMIN, CONTRACT, CONTRACT_VK, LOCKED, REWARD, init_msg, make_host, units
from stakepool.errors import ContractError
from stakepool.ledger.store import MemoryKV
from stakepool.runtime.contract import Contract
from stakepool.runtime.env import BlockInfo, ContractInfo, TxEnv
from stakepool.runtime.host import LocalHost
from stakepool.runtime.msgs import RegisterReceive, SetTokenViewingKey
from stakepool.runtime.sqlite_db import SqliteDB, SqliteKV


def _env(sender: str, height: int = 1) -> TxEnv:
    return TxEnv(block=BlockInfo(height=height), sender=sender, contract=ContractInfo(CONTRACT, "stakepool-hash"))


def test_instantiate_emits_four_messages_in_order() -> None:
    c = Contract(MemoryKV())
    res = c.instantiate(_env(ADMIN, height=7), init_msg())

    kinds = [(type(m), m.token.address) for m in res.messages]
    assert kinds == [
        (RegisterReceive, REWARD),
        (RegisterReceive, LOCKED),
        (SetTokenViewingKey, REWARD),
        (SetTokenViewingKey, LOCKED),
    ]
    assert all(m.code_hash == "stakepool-hash" for m in res.messages[:2])
    assert all(m.key == CONTRACT_VK for m in res.messages[2:])

    cfg = c.store.load_config()
    assert cfg.admin == ADMIN
    assert cfg.is_stopped is False
    assert len(cfg.authentication_seed) == 32
    assert c.store.load_pool().last_reward_block == 7


def test_instantiate_twice_is_rejected() -> None:
    c = Contract(MemoryKV())
    c.instantiate(_env(ADMIN), init_msg())
    with pytest.raises(ContractError) as e:
        c.instantiate(_env(ADMIN), init_msg())
    assert e.value.code == "invalid_state"


def test_instantiate_rejects_bad_seed_without_writing() -> None:
    kv = MemoryKV()
    with pytest.raises(ContractError) as e:
        Contract(kv).instantiate(_env(ADMIN), {**init_msg(), "prng_seed": "***"})
    assert e.value.code == "invalid_msg"
    assert list(kv.items()) == []


def test_execute_before_instantiate_is_not_initialized() -> None:
    c = Contract(MemoryKV())
    with pytest.raises(ContractError) as e:
        c.execute(_env("alice"), {"type": "redeem"})
    assert e.value.code == "not_initialized"


def test_unknown_fields_fail_schema_validation() -> None:
    c = Contract(MemoryKV())
    c.instantiate(_env(ADMIN), init_msg())
    with pytest.raises(ContractError) as e:
        c.execute(_env("alice"), {"type": "redeem", "amount": "1", "extra": True})
    assert e.value.code == "invalid_msg"
    assert e.value.reason == "schema_mismatch"


def _populated(kv) -> LocalHost:
    host = make_host(kv)
    host.mint(LOCKED, "alice", units(10))
    host.mint(REWARD, "funder", 1_000)
    host.lock("alice", units(10))
    host.add_rewards("funder", 1_000)
    # Half the window: 500 reward units vested to alice.
    host.advance_to(500_001)
    return host


def _kv_snapshot(host: LocalHost) -> dict:
    store = host.contract.store
    return {
        "config": store.load_config().to_json(),
        "pool": store.load_pool().to_json(),
        "alice": store.load_user("alice").to_json(),
    }


@pytest.fixture(params=["memory", "sqlite"])
def backing_kv(request: pytest.FixtureRequest, tmp_path: Path):
    if request.param == "memory":
        return MemoryKV()
    return SqliteKV(db=SqliteDB(path=str(tmp_path / "stakepool.db")))


def test_failed_batch_leaves_store_untouched(backing_kv) -> None:
    host = _populated(backing_kv)
    before = _kv_snapshot(host)

    # Redeem succeeds (advancing the pool and moving alice), then the
    # over-redeem fails: nothing from the batch may persist.
    with pytest.raises(ContractError) as e:
        host.execute_many(
            "alice",
            [
                {"type": "redeem", "amount": str(units(5))},
                {"type": "redeem", "amount": str(units(6))},
            ],
        )
    assert e.value.code == "insufficient_funds"
    assert _kv_snapshot(host) == before
    assert host.tokens.balance_of(LOCKED, "alice") == 0


def test_successful_batch_commits_every_message(backing_kv) -> None:
    host = _populated(backing_kv)
    res = host.execute_many(
        ADMIN,
        [
            {"type": "update_deadline", "height": 2_000_000},
            {"type": "update_pool_claim_height", "height": 1_500_000},
        ],
    )
    assert [a.type for a in res.answers] == ["update_deadline", "update_pool_claim_height"]
    cfg = host.contract.store.load_config()
    assert (cfg.deadline, cfg.pool_claim_height) == (2_000_000, 1_500_000)


def test_batch_stop_then_gated_message_fails_as_a_whole(backing_kv) -> None:
    host = _populated(backing_kv)
    with pytest.raises(ContractError) as e:
        host.execute_many(ADMIN, [{"type": "stop_contract"}, {"type": "set_viewing_key", "key": "k"}])
    assert e.value.code == "contract_stopped"
    assert host.contract.store.load_config().is_stopped is False


def test_unfundable_transfer_aborts_contract_state(backing_kv) -> None:
    host = _populated(backing_kv)
    before = _kv_snapshot(host)

    # Drain the contract's locked-asset balance behind its back.
    host.tokens.move(LOCKED, CONTRACT, "thief", units(10))

    with pytest.raises(ContractError) as e:
        host.execute("alice", {"type": "redeem"})
    assert e.value.code == "insufficient_funds"
    assert e.value.reason == "token_balance_too_low"
    assert _kv_snapshot(host) == before
    # The reward payout that preceded the failed transfer was rolled back too.
    assert host.tokens.balance_of(REWARD, "alice") == 0


def test_sqlite_state_survives_reopen(tmp_path: Path) -> None:
    path = str(tmp_path / "stakepool.db")
    host = _populated(SqliteKV(db=SqliteDB(path=path)))
    snap = _kv_snapshot(host)

    reopened = LocalHost(kv=SqliteKV(db=SqliteDB(path=path)), contract_address=CONTRACT)
    assert reopened.height == 500_001
    assert _kv_snapshot(reopened) == snap


def test_sqlite_restart_keeps_token_ledger(tmp_path: Path) -> None:
    path = str(tmp_path / "stakepool.db")
    host = make_host(SqliteKV(db=SqliteDB(path=path)))
    host.mint(LOCKED, "alice", units(5) + 7)
    host.lock("alice", units(5))

    # A rejected lock must not leave its token move on disk.
    host.execute(ADMIN, {"type": "stop_contract"})
    with pytest.raises(ContractError):
        host.lock("alice", 7)

    reopened = LocalHost(kv=SqliteKV(db=SqliteDB(path=path)), contract_address=CONTRACT)
    assert reopened.tokens.balance_of(LOCKED, CONTRACT) == units(5)
    assert reopened.tokens.balance_of(LOCKED, "alice") == 7
    assert reopened.tokens.viewing_keys[(REWARD, CONTRACT)] == CONTRACT_VK

    reopened.execute("alice", {"type": "redeem"})
    assert reopened.tokens.balance_of(LOCKED, "alice") == units(5) + 7
    assert reopened.tokens.balance_of(LOCKED, CONTRACT) == 0


def test_failed_execute_does_not_keep_requested_height(backing_kv) -> None:
    host = make_host(backing_kv)
    with pytest.raises(ContractError):
        host.execute("nobody", {"type": "redeem"}, height=40)
    assert host.height == 1

    host.execute(ADMIN, {"type": "update_pool_claim_height", "height": 9}, height=40)
    assert host.height == 40
