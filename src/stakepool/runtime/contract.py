# src/stakepool/runtime/contract.py
"""
Contract entry points: instantiate, execute, execute_many, query.

Each mutating call runs against a StagedKV overlay over the backing store.
Config and RewardPool are loaded once, threaded through the handlers via
ExecCtx, and written back at the end; the overlay is flushed only when every
handler returned. Any ContractError discards the overlay, so a failed call
leaves the backing store untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel

from stakepool.errors import ContractError
from stakepool.ledger.store import ContractStore, StagedKV
from stakepool.ledger.types import Config, RewardPool
from stakepool.log_events import log_event
from stakepool.runtime.apply.auth import seed_from_init
from stakepool.runtime.context import ExecCtx, TokenQuerier
from stakepool.runtime.domain_dispatch import apply_msg
from stakepool.runtime.env import TxEnv
from stakepool.runtime.gates import msg_kind
from stakepool.runtime.msgs import (
    HandleAnswer,
    RegisterReceive,
    SetTokenViewingKey,
    dump,
    dump_all,
    parse_handle_msg,
    parse_init_msg,
    parse_query_msg,
)
from stakepool.runtime.queries import run_query

Json = Dict[str, Any]

log = logging.getLogger("stakepool.contract")


@dataclass
class ExecResult:
    answers: List[HandleAnswer]
    messages: List[Any] = field(default_factory=list)

    @property
    def answer(self) -> Optional[HandleAnswer]:
        return self.answers[0] if self.answers else None

    def to_json(self) -> Json:
        out: Json = {"ok": True, "messages": dump_all(self.messages)}
        if len(self.answers) == 1:
            out["answer"] = dump(self.answers[0])
        else:
            out["answers"] = dump_all(self.answers)
        return out


# Runs after every handler succeeded, before the flush. It may stage extra
# writes (the host records its token ledger) into the same batch.
CommitHook = Callable[[ExecResult, StagedKV], None]


class Contract:
    """One contract instance bound to a backing KV store.

    The backing store must provide get / set / apply_batch (MemoryKV,
    SqliteKV).
    """

    def __init__(self, kv: Any) -> None:
        self.kv = kv

    @property
    def store(self) -> ContractStore:
        return ContractStore(self.kv)

    def is_initialized(self) -> bool:
        return self.store.has_config()

    def instantiate(self, env: TxEnv, msg: Any, before_commit: Optional[CommitHook] = None) -> ExecResult:
        init = parse_init_msg(msg)
        if self.is_initialized():
            raise ContractError("invalid_state", "already_initialized", None)

        staged = StagedKV(self.kv)
        store = ContractStore(staged)

        config = Config(
            admin=env.sender,
            reward_asset=init.reward_token,
            locked_asset=init.inc_token,
            deadline=int(init.deadline),
            pool_claim_height=int(init.pool_claim_block),
            authentication_seed=seed_from_init(init.prng_seed),
            viewing_key=init.viewing_key,
        )
        store.save_config(config)
        store.save_pool(RewardPool(last_reward_block=env.height))

        code_hash = env.contract.code_hash
        messages: List[BaseModel] = [
            RegisterReceive(token=init.reward_token, code_hash=code_hash),
            RegisterReceive(token=init.inc_token, code_hash=code_hash),
            SetTokenViewingKey(token=init.reward_token, key=init.viewing_key),
            SetTokenViewingKey(token=init.inc_token, key=init.viewing_key),
        ]
        result = ExecResult(answers=[HandleAnswer(type="init")], messages=messages)
        if before_commit is not None:
            before_commit(result, staged)

        staged.flush()
        log_event(
            log,
            "instantiated",
            admin=config.admin,
            deadline=config.deadline,
            pool_claim_height=config.pool_claim_height,
            height=env.height,
        )
        return result

    def execute(
        self,
        env: TxEnv,
        msg: Any,
        querier: Optional[TokenQuerier] = None,
        before_commit: Optional[CommitHook] = None,
    ) -> ExecResult:
        return self.execute_many(env, [msg], querier, before_commit)

    def execute_many(
        self,
        env: TxEnv,
        msgs: Sequence[Any],
        querier: Optional[TokenQuerier] = None,
        before_commit: Optional[CommitHook] = None,
    ) -> ExecResult:
        """Apply several handle messages from one sender as one transaction.

        Used for admin changes that must land together, e.g. UpdateDeadline
        with UpdatePoolClaimHeight. Reward top-ups are not batchable here; they
        only arrive as a Receive from the reward-asset contract.

        `before_commit` receives the result and the staged store after every
        handler succeeded and before anything is flushed; raising from it
        aborts the transaction.
        """
        parsed = [parse_handle_msg(m) for m in msgs]
        if not parsed:
            raise ContractError("invalid_msg", "empty_batch", None)

        staged = StagedKV(self.kv)
        store = ContractStore(staged)
        ctx = ExecCtx(env=env, store=store, config=store.load_config(), pool=store.load_pool(), querier=querier)

        answers: List[HandleAnswer] = []
        try:
            for m in parsed:
                answers.append(apply_msg(ctx, m))
        except ContractError as e:
            log_event(
                log,
                "execute_rejected",
                sender=env.sender,
                msg=msg_kind(parsed[len(answers)]),
                code=e.code,
                reason=e.reason,
                height=env.height,
            )
            raise

        store.save_config(ctx.config)
        store.save_pool(ctx.pool)
        result = ExecResult(answers=answers, messages=list(ctx.messages))
        if before_commit is not None:
            before_commit(result, staged)
        staged.flush()
        return result

    def query(self, msg: Any, height: Optional[int] = None) -> BaseModel:
        return run_query(self.store, parse_query_msg(msg), height)
