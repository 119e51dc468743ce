# src/stakepool/crypto/viewing_key.py
from __future__ import annotations

import base64
import hashlib

from cryptography.hazmat.primitives import constant_time, hashes, hmac

from stakepool.constants import VIEWING_KEY_PREFIX_STR, VIEWING_KEY_SIZE
from stakepool.runtime.env import TxEnv


def sha_256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def _hmac_sha256(key: bytes, message: bytes) -> bytes:
    h = hmac.HMAC(key, hashes.SHA256())
    h.update(message)
    return h.finalize()


class ViewingKey(str):
    """Per-account read secret. Only SHA-256(key) is ever persisted."""

    @classmethod
    def new(cls, env: TxEnv, seed: bytes, entropy: bytes) -> "ViewingKey":
        """Derive a fresh key from the contract seed and caller-supplied entropy.

        Block height, block time and sender are mixed in so the same entropy
        produces different keys for different callers and calls.
        """
        material = b"".join(
            [
                int(env.block.height).to_bytes(8, "big"),
                int(env.block.time).to_bytes(8, "big"),
                env.sender.encode("utf-8"),
                entropy,
            ]
        )
        rand = _hmac_sha256(seed, material)
        key = sha_256(rand)
        return cls(VIEWING_KEY_PREFIX_STR + base64.b64encode(key).decode("ascii"))

    def to_hashed(self) -> bytes:
        return sha_256(str(self).encode("utf-8"))

    def check_viewing_key(self, hashed: bytes) -> bool:
        """Constant-time comparison of this key's hash against a stored hash."""
        return constant_time.bytes_eq(self.to_hashed(), hashed)


# Compared against when an account has no stored key, so "not set" and
# "wrong key" take the same path.
EMPTY_KEY_HASH = bytes(VIEWING_KEY_SIZE)
