# src/stakepool/ledger/units.py
"""Bounded integer arithmetic and locked-asset scaling.

Stored balances are unsigned 128-bit quantities and heights are unsigned
64-bit. Python ints never overflow, so every step that could leave the range
is checked here and fails closed with ContractError("overflow", ...).

scale_locked / unscale_locked are the only places LOCK_SCALE is applied.
"""

from __future__ import annotations

from stakepool.constants import LOCK_SCALE, U64_MAX, U128_MAX
from stakepool.errors import ContractError


def _check(v: int, limit: int, op: str) -> int:
    if v < 0 or v > limit:
        raise ContractError("overflow", f"{op}_out_of_range", {"value": str(v)})
    return v


def checked_add(a: int, b: int, *, limit: int = U128_MAX) -> int:
    return _check(int(a) + int(b), limit, "add")


def checked_sub(a: int, b: int, *, limit: int = U128_MAX) -> int:
    return _check(int(a) - int(b), limit, "sub")


def checked_mul(a: int, b: int, *, limit: int = U128_MAX) -> int:
    return _check(int(a) * int(b), limit, "mul")


def checked_div(a: int, b: int) -> int:
    if int(b) == 0:
        raise ContractError("overflow", "division_by_zero", None)
    return int(a) // int(b)


def as_u128(v: int) -> int:
    return _check(int(v), U128_MAX, "u128")


def as_u64(v: int) -> int:
    return _check(int(v), U64_MAX, "u64")


def scale_locked(raw: int) -> int:
    """Raw locked-asset amount -> stored (scaled) amount, floored."""
    return as_u128(raw) // LOCK_SCALE


def unscale_locked(scaled: int) -> int:
    """Stored (scaled) amount -> raw locked-asset amount."""
    return checked_mul(scaled, LOCK_SCALE)
