"""Request, answer and outbound message schemas.

Every request kind is one pydantic model carrying a `type` literal; HandleMsg
and QueryMsg are discriminated unions over them, so parsing selects exactly one
variant and domain_dispatch maps each variant class to one handler.

Wire form (JSON, internally tagged):

    {"type": "redeem", "amount": "1000000000000"}
    {"type": "receive", "sender": "...", "from": "alice", "amount": "5", "msg": "<base64 json>"}

u128 quantities accept ints or decimal strings.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from stakepool.constants import U64_MAX, U128_MAX
from stakepool.errors import ContractError
from stakepool.ledger.types import AssetDescriptor

Json = Dict[str, Any]

Uint128 = Annotated[int, Field(ge=0, le=U128_MAX)]
Height = Annotated[int, Field(ge=0, le=U64_MAX)]


class _StrictModel(BaseModel):
    """Strict model: reject unknown keys."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


# ---------------------------------------------------------------------------
# Init
# ---------------------------------------------------------------------------


class InitMsg(_StrictModel):
    reward_token: AssetDescriptor
    inc_token: AssetDescriptor
    deadline: Height
    pool_claim_block: Height
    viewing_key: str = Field(..., min_length=1)
    prng_seed: str = Field(..., description="base64 seed for viewing key derivation")


# ---------------------------------------------------------------------------
# Handle messages
# ---------------------------------------------------------------------------


class LockTokens(_StrictModel):
    type: Literal["lock_tokens"] = "lock_tokens"


class AddToRewardPool(_StrictModel):
    type: Literal["add_to_reward_pool"] = "add_to_reward_pool"


class Redeem(_StrictModel):
    type: Literal["redeem"] = "redeem"
    amount: Optional[Uint128] = None


class EmergencyRedeem(_StrictModel):
    type: Literal["emergency_redeem"] = "emergency_redeem"


class CreateViewingKey(_StrictModel):
    type: Literal["create_viewing_key"] = "create_viewing_key"
    entropy: str
    padding: Optional[str] = None


class SetViewingKey(_StrictModel):
    type: Literal["set_viewing_key"] = "set_viewing_key"
    key: str = Field(..., min_length=1)
    padding: Optional[str] = None


class Receive(_StrictModel):
    type: Literal["receive"] = "receive"
    sender: str
    from_: str = Field(..., alias="from", min_length=1)
    amount: Uint128
    msg: str


class UpdateIncentivizedToken(_StrictModel):
    type: Literal["update_incentivized_token"] = "update_incentivized_token"
    new_token: AssetDescriptor


class UpdateRewardToken(_StrictModel):
    type: Literal["update_reward_token"] = "update_reward_token"
    new_token: AssetDescriptor


class UpdateDeadline(_StrictModel):
    type: Literal["update_deadline"] = "update_deadline"
    height: Height


class UpdatePoolClaimHeight(_StrictModel):
    type: Literal["update_pool_claim_height"] = "update_pool_claim_height"
    height: Height


class ClaimRewardPool(_StrictModel):
    type: Literal["claim_reward_pool"] = "claim_reward_pool"
    recipient: Optional[str] = None


class StopContract(_StrictModel):
    type: Literal["stop_contract"] = "stop_contract"


class ResumeContract(_StrictModel):
    type: Literal["resume_contract"] = "resume_contract"


class ChangeAdmin(_StrictModel):
    type: Literal["change_admin"] = "change_admin"
    address: str = Field(..., min_length=1)


HANDLE_MSG_TYPES = (
    LockTokens,
    AddToRewardPool,
    Redeem,
    EmergencyRedeem,
    CreateViewingKey,
    SetViewingKey,
    Receive,
    UpdateIncentivizedToken,
    UpdateRewardToken,
    UpdateDeadline,
    UpdatePoolClaimHeight,
    ClaimRewardPool,
    StopContract,
    ResumeContract,
    ChangeAdmin,
)

HandleMsg = Annotated[Union[HANDLE_MSG_TYPES], Field(discriminator="type")]


# ---------------------------------------------------------------------------
# Query messages
# ---------------------------------------------------------------------------


class QueryUnlockClaimHeight(_StrictModel):
    type: Literal["query_unlock_claim_height"] = "query_unlock_claim_height"


class QueryContractStatus(_StrictModel):
    type: Literal["query_contract_status"] = "query_contract_status"


class QueryRewardToken(_StrictModel):
    type: Literal["query_reward_token"] = "query_reward_token"


class QueryIncentivizedToken(_StrictModel):
    type: Literal["query_incentivized_token"] = "query_incentivized_token"


class QueryEndHeight(_StrictModel):
    type: Literal["query_end_height"] = "query_end_height"


class QueryLastRewardBlock(_StrictModel):
    type: Literal["query_last_reward_block"] = "query_last_reward_block"


class QueryRewardPoolBalance(_StrictModel):
    type: Literal["query_reward_pool_balance"] = "query_reward_pool_balance"


class QueryRewards(_StrictModel):
    type: Literal["query_rewards"] = "query_rewards"
    address: str
    key: str
    height: Optional[Height] = None


class QueryDeposit(_StrictModel):
    type: Literal["query_deposit"] = "query_deposit"
    address: str
    key: str


QUERY_MSG_TYPES = (
    QueryUnlockClaimHeight,
    QueryContractStatus,
    QueryRewardToken,
    QueryIncentivizedToken,
    QueryEndHeight,
    QueryLastRewardBlock,
    QueryRewardPoolBalance,
    QueryRewards,
    QueryDeposit,
)

QueryMsg = Annotated[Union[QUERY_MSG_TYPES], Field(discriminator="type")]

AUTHENTICATED_QUERIES = (QueryRewards, QueryDeposit)


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------


class HandleAnswer(BaseModel):
    type: str
    status: Literal["success", "failure"] = "success"
    key: Optional[str] = None


class RewardsAnswer(BaseModel):
    type: Literal["query_rewards"] = "query_rewards"
    rewards: int


class DepositAnswer(BaseModel):
    type: Literal["query_deposit"] = "query_deposit"
    deposit: int


class HeightAnswer(BaseModel):
    type: str
    height: int


class ContractStatusAnswer(BaseModel):
    type: Literal["query_contract_status"] = "query_contract_status"
    is_stopped: bool


class TokenAnswer(BaseModel):
    type: str
    token: AssetDescriptor


class BalanceAnswer(BaseModel):
    type: Literal["query_reward_pool_balance"] = "query_reward_pool_balance"
    balance: int


class QueryErrorAnswer(BaseModel):
    type: Literal["query_error"] = "query_error"
    msg: str


# ---------------------------------------------------------------------------
# Outbound messages (returned to the host, never executed here)
# ---------------------------------------------------------------------------


class Transfer(BaseModel):
    type: Literal["transfer"] = "transfer"
    token: AssetDescriptor
    recipient: str
    amount: int


class RegisterReceive(BaseModel):
    type: Literal["register_receive"] = "register_receive"
    token: AssetDescriptor
    code_hash: str


class SetTokenViewingKey(BaseModel):
    type: Literal["set_viewing_key"] = "set_viewing_key"
    token: AssetDescriptor
    key: str


OutboundMsg = Union[Transfer, RegisterReceive, SetTokenViewingKey]


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

_HANDLE_ADAPTER: TypeAdapter = TypeAdapter(HandleMsg)
_QUERY_ADAPTER: TypeAdapter = TypeAdapter(QueryMsg)


def _schema_error(kind: str, ve: ValidationError) -> ContractError:
    return ContractError(
        "invalid_msg",
        "schema_mismatch",
        {"kind": kind, "errors": ve.errors(include_url=False, include_context=False, include_input=False)},
    )


def parse_init_msg(obj: Any) -> InitMsg:
    if isinstance(obj, InitMsg):
        return obj
    try:
        return InitMsg.model_validate(obj)
    except ValidationError as ve:
        raise _schema_error("init", ve) from ve


def parse_handle_msg(obj: Any) -> Any:
    if isinstance(obj, HANDLE_MSG_TYPES):
        return obj
    try:
        return _HANDLE_ADAPTER.validate_python(obj)
    except ValidationError as ve:
        raise _schema_error("handle", ve) from ve


def parse_query_msg(obj: Any) -> Any:
    if isinstance(obj, QUERY_MSG_TYPES):
        return obj
    try:
        return _QUERY_ADAPTER.validate_python(obj)
    except ValidationError as ve:
        raise _schema_error("query", ve) from ve


def encode_embedded(msg: BaseModel) -> str:
    """Encode a handle message for the `msg` field of a receive notification."""
    raw = json.dumps(msg.model_dump(by_alias=True, exclude_none=True), sort_keys=True, separators=(",", ":"))
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_embedded(data: str) -> Any:
    try:
        raw = base64.b64decode(data.encode("ascii"), validate=True)
        obj = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise ContractError("invalid_msg", "embedded_msg_undecodable", {"error": str(e)}) from e
    return parse_handle_msg(obj)


def dump(msg: BaseModel) -> Json:
    return msg.model_dump(mode="json", by_alias=True, exclude_none=True)


def dump_all(msgs: List[BaseModel]) -> List[Json]:
    return [dump(m) for m in msgs]
