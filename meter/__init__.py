"""Speed measurement library -- HTTP transfers, latency probes, and statistics."""

from .download import DownloadTester
from .errors import (
    HttpStatusError,
    MeasurementCancelled,
    MeasurementError,
    MissingBodyError,
    NetworkError,
    OperationTimeoutError,
    ProbeError,
    ProbeStatusError,
    TransferError,
    TransferStatusError,
)
from .latency import LatencyTester
from .phase import run_phase, with_timeout
from .session import MeasurementSession, Progress, SessionState, Snapshot
from .stats import (
    LatencyStats,
    PhaseAggregate,
    Sample,
    TransferResult,
    format_latency,
    format_speed,
    jitter,
    mean,
    measurable,
    throughput_mbps,
)
from .target import Target, is_success
from .upload import UploadTester

__all__ = [
    "DownloadTester",
    "HttpStatusError",
    "LatencyStats",
    "LatencyTester",
    "MeasurementCancelled",
    "MeasurementError",
    "MeasurementSession",
    "MissingBodyError",
    "NetworkError",
    "OperationTimeoutError",
    "PhaseAggregate",
    "ProbeError",
    "ProbeStatusError",
    "Progress",
    "Sample",
    "SessionState",
    "Snapshot",
    "Target",
    "TransferError",
    "TransferResult",
    "TransferStatusError",
    "UploadTester",
    "format_latency",
    "format_speed",
    "is_success",
    "jitter",
    "mean",
    "measurable",
    "run_phase",
    "throughput_mbps",
    "with_timeout",
]
