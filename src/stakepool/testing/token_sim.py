# src/stakepool/testing/token_sim.py
"""
In-process stand-in for the two external fungible-token contracts.

Tracks balances per (token address, account), the viewing keys accounts have
registered with each token, and receive registrations. The contract never
calls this directly: the host executes the contract's outbound messages here
and passes it to the contract as the TokenQuerier.

The whole ledger round-trips through to_json()/from_json() so the host can
persist it under TOKEN_LEDGER_KEY next to the contract's own records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Set, Tuple

from stakepool.errors import ContractError
from stakepool.ledger.types import AssetDescriptor
from stakepool.runtime.msgs import RegisterReceive, SetTokenViewingKey, Transfer

Json = Dict[str, Any]

TOKEN_LEDGER_KEY = "tokens/ledger"


@dataclass
class TokenSim:
    balances: Dict[Tuple[str, str], int] = field(default_factory=dict)
    viewing_keys: Dict[Tuple[str, str], str] = field(default_factory=dict)
    registered: Set[Tuple[str, str]] = field(default_factory=set)

    def balance_of(self, token: str, account: str) -> int:
        return int(self.balances.get((token, account), 0))

    def mint(self, token: str, account: str, amount: int) -> None:
        self.balances[(token, account)] = self.balance_of(token, account) + int(amount)

    def move(self, token: str, sender: str, recipient: str, amount: int) -> None:
        amount = int(amount)
        have = self.balance_of(token, sender)
        if amount < 0 or have < amount:
            raise ContractError(
                "insufficient_funds",
                "token_balance_too_low",
                {"token": token, "account": sender, "balance": str(have), "amount": str(amount)},
            )
        self.balances[(token, sender)] = have - amount
        self.balances[(token, recipient)] = self.balance_of(token, recipient) + amount

    # -- TokenQuerier --------------------------------------------------------

    def balance(self, token: AssetDescriptor, address: str, key: str) -> int:
        stored = self.viewing_keys.get((token.address, address))
        if stored is None or stored != key:
            raise ContractError("unauthorized", "token_viewing_key_mismatch", {"token": token.address})
        return self.balance_of(token.address, address)

    # -- Outbound message execution -------------------------------------------

    def apply_messages(self, contract_address: str, messages: Iterable[Any]) -> None:
        for m in messages:
            if isinstance(m, Transfer):
                self.move(m.token.address, contract_address, m.recipient, m.amount)
            elif isinstance(m, RegisterReceive):
                self.registered.add((m.token.address, contract_address))
            elif isinstance(m, SetTokenViewingKey):
                self.viewing_keys[(m.token.address, contract_address)] = m.key
            else:
                raise ContractError("invalid_msg", "unknown_outbound_msg", {"msg": type(m).__name__})

    def snapshot(self) -> "TokenSim":
        return TokenSim(dict(self.balances), dict(self.viewing_keys), set(self.registered))

    def restore(self, snap: "TokenSim") -> None:
        self.balances = dict(snap.balances)
        self.viewing_keys = dict(snap.viewing_keys)
        self.registered = set(snap.registered)

    # -- Persistence -----------------------------------------------------------

    def to_json(self) -> Json:
        # Zero balances are dropped; amounts are u128 decimal strings.
        return {
            "balances": [[t, a, str(n)] for (t, a), n in sorted(self.balances.items()) if n],
            "viewing_keys": [[t, a, k] for (t, a), k in sorted(self.viewing_keys.items())],
            "registered": [[t, a] for t, a in sorted(self.registered)],
        }

    @staticmethod
    def from_json(j: Json) -> "TokenSim":
        try:
            return TokenSim(
                balances={(str(t), str(a)): int(n) for t, a, n in j.get("balances", [])},
                viewing_keys={(str(t), str(a)): str(k) for t, a, k in j.get("viewing_keys", [])},
                registered={(str(t), str(a)) for t, a in j.get("registered", [])},
            )
        except (TypeError, ValueError) as e:
            raise ValueError(f"token ledger schema error: {e}") from e
