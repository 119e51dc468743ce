# src/stakepool/runtime/apply/auth.py
from __future__ import annotations

import base64
import binascii

from stakepool.crypto.viewing_key import ViewingKey, sha_256
from stakepool.errors import ContractError
from stakepool.runtime.context import ExecCtx
from stakepool.runtime.msgs import CreateViewingKey, HandleAnswer, SetViewingKey


def apply_create_viewing_key(ctx: ExecCtx, msg: CreateViewingKey) -> HandleAnswer:
    key = ViewingKey.new(ctx.env, ctx.config.authentication_seed, msg.entropy.encode("utf-8"))
    ctx.store.save_viewing_key_hash(ctx.sender, key.to_hashed())
    return HandleAnswer(type="create_viewing_key", key=str(key))


def apply_set_viewing_key(ctx: ExecCtx, msg: SetViewingKey) -> HandleAnswer:
    # Caller-chosen key; only the hash is kept.
    ctx.store.save_viewing_key_hash(ctx.sender, ViewingKey(msg.key).to_hashed())
    return HandleAnswer(type="set_viewing_key")


def seed_from_init(prng_seed_b64: str) -> bytes:
    """Decode the init-time seed; the contract keeps only its SHA-256."""
    try:
        raw = base64.b64decode(prng_seed_b64.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeError) as e:
        raise ContractError("invalid_msg", "prng_seed_not_base64", {"error": str(e)}) from e
    return sha_256(raw)
