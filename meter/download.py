"""
Download speed test module.

Each transfer is one GET against ``/download?size=N``.  The server streams
N random bytes without a ``Content-Length``, so the client simply reads
until EOF and counts what arrived.  A phase runs ``connections`` of these
at once and derives Mbps from the total bytes and the slowest transfer.
"""
from __future__ import annotations

import logging
import time
from typing import Optional

import aiohttp

from .constants import (
    DEFAULT_CONNECTIONS,
    DEFAULT_TIMEOUT_MS,
    DOWNLOAD_BYTES,
    HTTP_NO_CONTENT,
    HTTP_RESET_CONTENT,
    READ_CHUNK_SIZE,
)
from .errors import MissingBodyError, NetworkError, TransferStatusError
from .phase import StepFn, run_phase
from .stats import PhaseAggregate, TransferResult
from .target import Target, is_success

LOGGER = logging.getLogger(__name__)


class DownloadTester:
    """Parallel download speed tester."""

    def __init__(
        self,
        target: Target,
        byte_length: int = DOWNLOAD_BYTES,
        connections: int = DEFAULT_CONNECTIONS,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.target = target
        self.byte_length = byte_length
        self.connections = connections
        self.timeout_ms = timeout_ms

    async def once(self, session: aiohttp.ClientSession) -> TransferResult:
        """Download one stream of ``byte_length`` bytes and time it."""
        url = self.target.download_url
        params = {"size": str(self.byte_length), **Target.nonce()}
        received = 0

        t0 = time.perf_counter()
        try:
            async with session.get(url, params=params) as resp:
                if not is_success(resp.status):
                    raise TransferStatusError(
                        f"download failed: HTTP {resp.status}", resp.status, url
                    )
                if resp.status in (HTTP_NO_CONTENT, HTTP_RESET_CONTENT):
                    raise MissingBodyError(f"download failed: HTTP {resp.status} has no body")

                async for chunk in resp.content.iter_chunked(READ_CHUNK_SIZE):
                    received += len(chunk)
        except (aiohttp.ClientError, OSError) as exc:
            raise NetworkError(f"download failed: {exc}") from exc
        elapsed_ms = (time.perf_counter() - t0) * 1000

        LOGGER.debug("downloaded %d bytes in %.1f ms", received, elapsed_ms)
        return TransferResult(bytes_transferred=received, elapsed_ms=elapsed_ms)

    async def test(
        self,
        session: aiohttp.ClientSession,
        on_step: Optional[StepFn] = None,
    ) -> PhaseAggregate:
        return await run_phase(
            self.connections,
            lambda: self.once(session),
            timeout_ms=self.timeout_ms,
            on_step=on_step,
        )
