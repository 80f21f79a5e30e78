"""
Exceptions raised by the measurement engine.

Every error derives from :class:`MeasurementError`, which is what the
session catches to turn a failed phase into a ``FAILED`` run.  Status
errors are raised as the protocol-specific subclass so callers can catch
either "anything wrong with a transfer" or "any bad HTTP status".
"""
from __future__ import annotations

from typing import Optional


class MeasurementError(Exception):
    """Base class for all measurement failures."""


class NetworkError(MeasurementError):
    """Connection, DNS or socket level failure."""


class HttpStatusError(MeasurementError):
    """A success status was required but the server answered otherwise."""

    def __init__(self, message: str, status: int, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.url = url


class TransferError(MeasurementError):
    """A download or upload exchange failed."""


class TransferStatusError(HttpStatusError, TransferError):
    pass


class MissingBodyError(TransferError):
    """The server answered with success but sent no body to read."""


class ProbeError(MeasurementError):
    """A latency probe failed."""


class ProbeStatusError(HttpStatusError, ProbeError):
    pass


class OperationTimeoutError(MeasurementError, TimeoutError):
    """The per-operation timer fired before the operation completed."""


class MeasurementCancelled(MeasurementError):
    """The run was aborted on request."""
