"""
Random payload generation.

Payloads are filled from ``os.urandom`` in bounded pieces so that no single
call asks the generator for more than ``MAX_FILL_SIZE`` bytes, and so that
streaming producers never hold the whole body in memory.
"""
from __future__ import annotations

import os
from typing import Iterator

from .constants import DEFAULT_STREAM_SIZE, MAX_FILL_SIZE, STREAM_CHUNK_SIZE


def generate(byte_length: int) -> bytes:
    """Return exactly *byte_length* cryptographically random bytes."""
    if byte_length < 0:
        raise ValueError(f"byte_length must be >= 0, got {byte_length}")

    buf = bytearray(byte_length)
    view = memoryview(buf)
    offset = 0
    while offset < byte_length:
        n = min(MAX_FILL_SIZE, byte_length - offset)
        view[offset:offset + n] = os.urandom(n)
        offset += n
    return bytes(buf)


def iter_chunks(
    total: int = DEFAULT_STREAM_SIZE,
    chunk_size: int = STREAM_CHUNK_SIZE,
) -> Iterator[bytes]:
    """Yield random chunks adding up to *total* bytes.

    Each chunk is at most *chunk_size* bytes and is generated only when the
    consumer asks for it.
    """
    if total < 0:
        raise ValueError(f"total must be >= 0, got {total}")
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")

    remaining = total
    while remaining > 0:
        n = min(chunk_size, remaining)
        yield generate(n)
        remaining -= n
