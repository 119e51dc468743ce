from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from stakepool.errors import ContractError

# Contract error codes that are not plain client mistakes.
_STATUS_BY_CODE = {
    "unauthorized": 403,
    "not_initialized": 409,
}


@dataclass(frozen=True, slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_contract_error(e: ContractError) -> "ApiError":
        details = e.details if isinstance(e.details, dict) else ({} if e.details is None else {"value": e.details})
        return ApiError(_STATUS_BY_CODE.get(e.code, 400), e.code, e.reason, details)

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "reason": self.message, "details": self.details}}
