from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

from stakepool.constants import RESPONSE_BLOCK_SIZE


def pad_to_block(body: bytes, block_size: int = RESPONSE_BLOCK_SIZE) -> bytes:
    """Right-pad with spaces to a multiple of `block_size` bytes.

    Trailing whitespace is insignificant to JSON parsers, so padded bodies
    decode unchanged while every answer of a given kind has the same length.
    """
    rem = len(body) % block_size
    if rem == 0:
        return body
    return body + b" " * (block_size - rem)


class PaddedJSONResponse(JSONResponse):
    def render(self, content: Any) -> bytes:
        return pad_to_block(super().render(content))
