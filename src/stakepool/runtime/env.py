from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BlockInfo:
    height: int
    time: int = 0  # unix seconds
    chain_id: str = "stakepool-dev"


@dataclass(frozen=True)
class ContractInfo:
    address: str
    code_hash: str


@dataclass(frozen=True)
class TxEnv:
    """Execution environment for one handle / init call.

    `sender` is the immediate caller. For a receive notification that is the
    asset contract, not the account whose tokens moved.
    """

    block: BlockInfo
    sender: str
    contract: ContractInfo

    @property
    def height(self) -> int:
        return int(self.block.height)
