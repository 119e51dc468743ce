# src/stakepool/constants.py
from __future__ import annotations

# Storage keys (single namespace per entity kind).
CONFIG_KEY = "config"
REWARD_POOL_KEY = "rewardpool"
USER_INFO_PREFIX = "users/"
VIEWING_KEY_PREFIX = "viewingkey/"

# Responses are padded to a multiple of this many bytes by the HTTP layer.
RESPONSE_BLOCK_SIZE = 256

# Fixed-point factors. Raw locked-asset amounts are divided by LOCK_SCALE
# before they are stored; accumulated reward per share is multiplied by
# REWARD_SCALE.
LOCK_SCALE = 1_000_000_000_000  # 10 ^ 12
REWARD_SCALE = 1_000_000_000_000  # 10 ^ 12

U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1

VIEWING_KEY_SIZE = 32
VIEWING_KEY_PREFIX_STR = "api_key_"
