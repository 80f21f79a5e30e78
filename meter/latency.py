"""
HTTP latency measurement.

Protocol flow::

    1. GET  /ping?ts={epoch_ms}&r={nonce}   (Cache-Control: no-store)
    2. Read the short body.
    3. Round-trip time = wall clock between 1 and 2.
    4. Repeat strictly one at a time for the desired number of samples.

Probes never overlap; concurrent probes would queue behind each other on
the access link and inflate the numbers.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import aiohttp

from .constants import DEFAULT_PING_COUNT, DEFAULT_TIMEOUT_MS, NO_STORE_HEADERS
from .errors import NetworkError, ProbeStatusError
from .phase import StepFn, with_timeout
from .stats import LatencyStats, Sample
from .target import Target, is_success

LOGGER = logging.getLogger(__name__)

SampleFn = Callable[[Sample], None]


class LatencyTester:
    """Sequential round-trip tester against a server's ``/ping`` endpoint."""

    def __init__(
        self,
        target: Target,
        ping_count: int = DEFAULT_PING_COUNT,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.target = target
        self.ping_count = ping_count
        self.timeout_ms = timeout_ms

    async def probe_once(self, session: aiohttp.ClientSession) -> float:
        """Send one ping and return the round-trip time in milliseconds."""
        url = self.target.ping_url

        t0 = time.perf_counter()
        try:
            async with session.get(
                url,
                params=Target.ping_params(),
                headers=NO_STORE_HEADERS,
            ) as resp:
                if not is_success(resp.status):
                    raise ProbeStatusError(f"ping failed: HTTP {resp.status}", resp.status, url)
                await resp.read()
        except (aiohttp.ClientError, OSError) as exc:
            raise NetworkError(f"ping failed: {exc}") from exc
        return (time.perf_counter() - t0) * 1000

    async def test(
        self,
        session: aiohttp.ClientSession,
        on_step: Optional[StepFn] = None,
        on_sample: Optional[SampleFn] = None,
    ) -> LatencyStats:
        result = LatencyStats()

        for i in range(self.ping_count):
            rtt = await with_timeout(lambda: self.probe_once(session), self.timeout_ms)
            result.samples.append(rtt)
            LOGGER.debug("ping %d/%d: %.2f ms", i + 1, self.ping_count, rtt)
            if on_sample:
                on_sample(Sample(phase="latency", value=rtt))
            if on_step:
                on_step()

        result.calculate()
        return result
