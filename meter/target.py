"""
Measurement server addressing.

A :class:`Target` is the base URL of a server exposing ``/download``,
``/upload`` and ``/ping``.  Every request carries a random nonce in its
query string so intermediate caches never answer on the server's behalf.
"""
from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Dict


def is_success(status: int) -> bool:
    return 200 <= status < 300


@dataclass
class Target:
    """A measurement server reachable at *base_url*."""

    base_url: str

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_url(cls, url: str) -> Target:
        url = url.strip()
        if not url.startswith(("http://", "https://")):
            url = "http://" + url
        return cls(base_url=url.rstrip("/"))

    # -- Derived URLs -------------------------------------------------------

    @property
    def download_url(self) -> str:
        return f"{self.base_url}/download"

    @property
    def upload_url(self) -> str:
        return f"{self.base_url}/upload"

    @property
    def ping_url(self) -> str:
        return f"{self.base_url}/ping"

    # -- Query parameters ---------------------------------------------------

    @staticmethod
    def nonce() -> Dict[str, str]:
        return {"r": repr(random.random())}

    @staticmethod
    def ping_params() -> Dict[str, str]:
        """Timestamp plus nonce; ignored by the server."""
        return {"ts": str(int(time.time() * 1000)), **Target.nonce()}

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.base_url}
