"""
Upload speed test module.
Uses HTTP POST of a random payload to measure upload speed.
"""
from __future__ import annotations

import logging
import time
from typing import Optional

import aiohttp

from .constants import DEFAULT_CONNECTIONS, DEFAULT_TIMEOUT_MS, UPLOAD_BYTES
from .errors import NetworkError, TransferStatusError
from .payload import generate
from .phase import StepFn, run_phase
from .stats import PhaseAggregate, TransferResult
from .target import Target, is_success

LOGGER = logging.getLogger(__name__)


class UploadTester:
    """
    Parallel upload speed tester.

    Every connection posts its own freshly generated payload; random data
    keeps compressing proxies from shrinking what goes over the wire.
    """

    HEADERS = {"Content-Type": "application/octet-stream"}

    def __init__(
        self,
        target: Target,
        byte_length: int = UPLOAD_BYTES,
        connections: int = DEFAULT_CONNECTIONS,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.target = target
        self.byte_length = byte_length
        self.connections = connections
        self.timeout_ms = timeout_ms

    async def once(self, session: aiohttp.ClientSession) -> TransferResult:
        """Upload ``byte_length`` random bytes and time the exchange."""
        url = self.target.upload_url
        payload = generate(self.byte_length)

        # Timer starts after generation so only the exchange is measured
        t0 = time.perf_counter()
        try:
            async with session.post(
                url,
                params=Target.nonce(),
                data=payload,
                headers=self.HEADERS,
            ) as resp:
                await resp.read()
                if not is_success(resp.status):
                    raise TransferStatusError(
                        f"upload failed: HTTP {resp.status}", resp.status, url
                    )
        except (aiohttp.ClientError, OSError) as exc:
            raise NetworkError(f"upload failed: {exc}") from exc
        elapsed_ms = (time.perf_counter() - t0) * 1000

        LOGGER.debug("uploaded %d bytes in %.1f ms", self.byte_length, elapsed_ms)
        return TransferResult(bytes_transferred=self.byte_length, elapsed_ms=elapsed_ms)

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
