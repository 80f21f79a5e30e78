"""
Measurement session -- sequences latency, download and upload phases.

A session runs one measurement at a time::

    session = MeasurementSession(Target.from_url("http://host:8080"))
    snapshot = await session.start()

Progress and results are published as :class:`Snapshot` objects through the
``on_update`` callback after every completed step and at every phase
boundary, so a display layer can render them however it likes.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, Optional, TypeVar

import aiohttp

from .constants import (
    COMMON_HEADERS,
    DEFAULT_CONNECTIONS,
    DEFAULT_PING_COUNT,
    DEFAULT_TIMEOUT_MS,
    DOWNLOAD_BYTES,
    UPLOAD_BYTES,
)
from .download import DownloadTester
from .errors import MeasurementCancelled, MeasurementError
from .latency import LatencyTester, SampleFn
from .stats import LatencyStats, PhaseAggregate, Sample, measurable
from .target import Target
from .upload import UploadTester

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class SessionState(Enum):
    IDLE = "idle"
    MEASURING_LATENCY = "measuring_latency"
    MEASURING_DOWNLOAD = "measuring_download"
    MEASURING_UPLOAD = "measuring_upload"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_running(self) -> bool:
        return self in _RUNNING


_RUNNING = frozenset({
    SessionState.MEASURING_LATENCY,
    SessionState.MEASURING_DOWNLOAD,
    SessionState.MEASURING_UPLOAD,
})


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

class Progress:
    """Counter of completed steps mapped onto 0..100."""

    def __init__(self, total_steps: int = 1) -> None:
        self.reset(total_steps)

    def reset(self, total_steps: int) -> None:
        self.total_steps = max(1, total_steps)
        self.completed = 0
        self._finished = False

    def step(self) -> None:
        self.completed += 1

    def finish(self) -> None:
        self._finished = True

    @property
    def percent(self) -> float:
        if self._finished:
            return 100.0
        return min(100.0, self.completed * 100.0 / self.total_steps)


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

@dataclass
class Snapshot:
    """Point-in-time view of a session for the display layer.

    Metrics stay ``None`` until their phase has produced a measurable value.
    """

    state: SessionState = SessionState.IDLE
    progress_percent: float = 0.0
    average_latency_ms: Optional[float] = None
    jitter_ms: Optional[float] = None
    download_mbps: Optional[float] = None
    upload_mbps: Optional[float] = None
    status: str = ""

    def to_dict(self) -> Dict[str, Any]:
        def _r(v: Optional[float], n: int) -> Optional[float]:
            return None if v is None else round(v, n)

        return {
            "state": self.state.value,
            "progress": round(self.progress_percent, 1),
            "ping": _r(self.average_latency_ms, 3),
            "jitter": _r(self.jitter_ms, 3),
            "download_mbps": _r(self.download_mbps, 2),
            "upload_mbps": _r(self.upload_mbps, 2),
            "status": self.status,
        }


UpdateFn = Callable[[Snapshot], None]


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class MeasurementSession:
    """Runs latency -> download -> upload against one :class:`Target`."""

    def __init__(
        self,
        target: Target,
        *,
        ping_count: int = DEFAULT_PING_COUNT,
        connections: int = DEFAULT_CONNECTIONS,
        download_bytes: int = DOWNLOAD_BYTES,
        upload_bytes: int = UPLOAD_BYTES,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
        on_update: Optional[UpdateFn] = None,
        on_sample: Optional[SampleFn] = None,
    ) -> None:
        if ping_count < 1:
            raise ValueError(f"ping_count must be >= 1, got {ping_count}")
        if connections < 1:
            raise ValueError(f"connections must be >= 1, got {connections}")
        if download_bytes < 0 or upload_bytes < 0:
            raise ValueError("transfer sizes must be >= 0")

        self.target = target
        self.latency = LatencyTester(target, ping_count=ping_count, timeout_ms=timeout_ms)
        self.download = DownloadTester(
            target, byte_length=download_bytes, connections=connections, timeout_ms=timeout_ms
        )
        self.upload = UploadTester(
            target, byte_length=upload_bytes, connections=connections, timeout_ms=timeout_ms
        )
        self.on_update = on_update
        self.on_sample = on_sample

        self.state = SessionState.IDLE
        self.progress = Progress()
        self.latency_stats: Optional[LatencyStats] = None
        self.download_result: Optional[PhaseAggregate] = None
        self.upload_result: Optional[PhaseAggregate] = None
        self.error: Optional[BaseException] = None

        self._snapshot = Snapshot()
        self._current: Optional[asyncio.Future] = None
        self._aborted = False

    # -- Public API ---------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    def snapshot(self) -> Snapshot:
        self._snapshot.state = self.state
        self._snapshot.progress_percent = self.progress.percent
        return replace(self._snapshot)

    async def start(self) -> Snapshot:
        """Run one full measurement and return the final snapshot.

        Calling this while a run is in progress changes nothing and returns
        the current snapshot.
        """
        if self.is_running:
            LOGGER.debug("start() ignored: session is %s", self.state.value)
            return self.snapshot()

        self._reset()
        self._transition(SessionState.MEASURING_LATENCY, "Measuring latency...")

        try:
            async with self._client_session() as http:
                stats = await self._phase(
                    self.latency.test(http, on_step=self._step, on_sample=self._sample)
                )
                self.latency_stats = stats
                self._snapshot.average_latency_ms = measurable(stats.average)
                self._snapshot.jitter_ms = measurable(stats.jitter)
                LOGGER.info("latency %.2f ms, jitter %.2f ms", stats.average, stats.jitter)

                self._transition(SessionState.MEASURING_DOWNLOAD, "Measuring download...")
                dl = await self._phase(self.download.test(http, on_step=self._step))
                self.download_result = dl
                self._snapshot.download_mbps = self._speed("download", dl)

                self._transition(SessionState.MEASURING_UPLOAD, "Measuring upload...")
                ul = await self._phase(self.upload.test(http, on_step=self._step))
                self.upload_result = ul
                self._snapshot.upload_mbps = self._speed("upload", ul)

            self.progress.finish()
            self._transition(SessionState.COMPLETED, "Done")

        except asyncio.CancelledError:
            if not self._aborted:
                self._fail(MeasurementCancelled("measurement cancelled"))
                raise
            self._fail(MeasurementCancelled("measurement aborted"))
        except MeasurementError as exc:
            self._fail(exc)
        except Exception as exc:
            LOGGER.exception("unexpected error during %s", self.state.value)
            self._fail(exc)
        finally:
            self._current = None

        return self.snapshot()

    def abort(self) -> bool:
        """Cancel the phase in flight.  Returns False when nothing is running."""
        if not self.is_running:
            return False
        LOGGER.info("aborting measurement during %s", self.state.value)
        self._aborted = True
        if self._current is not None:
            self._current.cancel()
        return True

    # -- Internals ----------------------------------------------------------

    def _client_session(self) -> aiohttp.ClientSession:
        # One request per connection; nothing is kept alive past a request.
        connector = aiohttp.TCPConnector(
            limit=self.download.connections,
            force_close=True,
        )
        timeout = aiohttp.ClientTimeout(total=None)
        return aiohttp.ClientSession(
            headers=COMMON_HEADERS,
            connector=connector,
            timeout=timeout,
            auto_decompress=False,
        )

    async def _phase(self, coro: Coroutine[Any, Any, T]) -> T:
        if self._aborted:
            coro.close()
            raise MeasurementCancelled("measurement aborted")
        self._current = asyncio.ensure_future(coro)
        return await self._current

    def _reset(self) -> None:
        steps = (
            self.latency.ping_count
            + self.download.connections
            + self.upload.connections
        )
        self.progress.reset(steps)
        self.latency_stats = None
        self.download_result = None
        self.upload_result = None
        self.error = None
        self._snapshot = Snapshot()
        self._aborted = False

    def _speed(self, phase: str, aggregate: PhaseAggregate) -> Optional[float]:
        mbps = measurable(aggregate.derived_mbps)
        if mbps is None:
            LOGGER.warning(
                "%s too fast to measure: %d bytes in %.3f ms",
                phase, aggregate.total_bytes, aggregate.max_elapsed_ms,
            )
        else:
            LOGGER.info("%s %.2f Mbps (%d bytes, %.1f ms)",
                        phase, mbps, aggregate.total_bytes, aggregate.max_elapsed_ms)
        return mbps

    def _transition(self, state: SessionState, status: str) -> None:
        LOGGER.debug("session %s -> %s", self.state.value, state.value)
        self.state = state
        self._snapshot.status = status
        self._emit()

    def _fail(self, exc: BaseException) -> None:
        self.error = exc
        LOGGER.error("measurement failed during %s: %s", self.state.value, exc)
        self._transition(SessionState.FAILED, f"Error: {str(exc) or type(exc).__name__}")

    def _step(self) -> None:
        self.progress.step()
        self._emit()

    def _sample(self, sample: Sample) -> None:
        if self.on_sample:
            self.on_sample(sample)

    def _emit(self) -> None:
        if self.on_update:
            self.on_update(self.snapshot())
