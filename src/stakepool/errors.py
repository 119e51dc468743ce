# src/stakepool/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ContractError(Exception):
    """Canonical error type for handler, dispatch and entry-point failures.

    Raising aborts the whole transaction; the entry point discards every staged
    write before the error reaches the caller.
    """

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"

    def to_json(self) -> dict:
        return {"code": self.code, "reason": self.reason, "details": self.details}


# Stopped-contract rejection is one fixed error regardless of the message.
def contract_stopped(kind: str) -> ContractError:
    return ContractError(
        "contract_stopped",
        "This contract is stopped and this action is not allowed",
        {"msg": kind},
    )
