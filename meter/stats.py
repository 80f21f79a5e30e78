"""
Network measurement statistics.

Pure functions and lightweight dataclasses -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import math
import statistics
from dataclasses import dataclass, field
from typing import List, Optional, Sequence


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def mean(samples: Sequence[float]) -> float:
    """Arithmetic mean.  Returns ``nan`` for an empty sequence."""
    if not samples:
        return math.nan
    return float(statistics.mean(samples))


def jitter(samples: Sequence[float]) -> float:
    """Population standard deviation (divides by N, not N - 1).

    Returns ``nan`` for an empty sequence and ``0.0`` for a single sample.
    """
    if not samples:
        return math.nan
    return float(statistics.pstdev(samples))


def throughput_mbps(total_bytes: int, elapsed_ms: float) -> float:
    """Megabits per second for *total_bytes* moved in *elapsed_ms*.

    A zero duration yields ``inf`` (or ``nan`` when nothing was moved);
    pass the result through :func:`measurable` before displaying it.
    """
    if elapsed_ms < 0:
        raise ValueError(f"elapsed_ms must be >= 0, got {elapsed_ms}")
    if elapsed_ms == 0:
        return math.inf if total_bytes > 0 else math.nan
    return (total_bytes * 8) / (elapsed_ms / 1000) / 1_000_000


def measurable(value: float) -> Optional[float]:
    """Return *value*, or ``None`` when it is infinite or NaN."""
    if value is None or not math.isfinite(value):
        return None
    return value


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass
class Sample:
    """One scalar measurement tagged with the phase that produced it."""

    phase: str
    value: float


@dataclass
class TransferResult:
    """Outcome of a single download or upload request."""

    bytes_transferred: int = 0
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "bytes": self.bytes_transferred,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }


@dataclass
class PhaseAggregate:
    """Totals for one parallel download or upload phase.

    The phase duration is the slowest transfer's elapsed time: the link is
    considered busy until the last stream finishes.
    """

    total_bytes: int = 0
    max_elapsed_ms: float = 0.0
    derived_mbps: float = 0.0
    results: List[TransferResult] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: Sequence[TransferResult]) -> PhaseAggregate:
        if not results:
            raise ValueError("cannot aggregate an empty phase")
        total = sum(r.bytes_transferred for r in results)
        slowest = max(r.elapsed_ms for r in results)
        return cls(
            total_bytes=total,
            max_elapsed_ms=slowest,
            derived_mbps=throughput_mbps(total, slowest),
            results=list(results),
        )

    def to_dict(self) -> dict:
        return {
            "bytes": self.total_bytes,
            "duration_ms": round(self.max_elapsed_ms, 2),
            "speed_mbps": _rounded(measurable(self.derived_mbps), 2),
            "transfers": [r.to_dict() for r in self.results],
        }


@dataclass
class LatencyStats:
    """Aggregated latency statistics computed from a list of samples."""

    samples: List[float] = field(default_factory=list)
    min: float = 0.0
    max: float = 0.0
    average: float = 0.0
    median: float = 0.0
    jitter: float = 0.0
    count: int = 0

    def calculate(self) -> None:
        if not self.samples:
            self.average = self.median = self.jitter = math.nan
            return
        self.count = len(self.samples)
        self.min = min(self.samples)
        self.max = max(self.samples)
        self.average = mean(self.samples)
        self.median = float(statistics.median(self.samples))
        self.jitter = jitter(self.samples)

    def to_dict(self) -> dict:
        return {
            "samples": [round(s, 3) for s in self.samples],
            "min": round(self.min, 3),
            "max": round(self.max, 3),
            "average": round(self.average, 3),
            "median": round(self.median, 3),
            "jitter": round(self.jitter, 3),
            "count": self.count,
        }


def _rounded(value: Optional[float], digits: int) -> Optional[float]:
    return None if value is None else round(value, digits)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: Optional[float]) -> str:
    """Human-readable speed string; ``None`` renders as a placeholder."""
    if speed_mbps is None:
        return "-- Mbps"
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.1f} Mbps"


def format_latency(latency_ms: Optional[float]) -> str:
    """Human-readable latency string; ``None`` renders as a placeholder."""
    if latency_ms is None:
        return "-- ms"
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
