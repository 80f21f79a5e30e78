"""
Shared constants used across all measurement modules.

Centralises magic numbers, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

USER_AGENT = "speedcheck/1.0 (+aiohttp)"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    # Compression would change the number of bytes on the wire.
    "Accept-Encoding": "identity",
}

NO_STORE_HEADERS = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}

HTTP_NO_CONTENT = 204
HTTP_RESET_CONTENT = 205

DEFAULT_URL = "http://127.0.0.1:8080"

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080

DEFAULT_STREAM_SIZE = 10 * 1024 * 1024   # /download when ?size= is missing
STREAM_CHUNK_SIZE = 64 * 1024            # bytes per streamed chunk

# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------

MAX_FILL_SIZE = 64 * 1024                # largest single random fill

# ---------------------------------------------------------------------------
# Connection limits
# ---------------------------------------------------------------------------

MIN_CONNECTIONS = 1
MAX_CONNECTIONS = 32
DEFAULT_CONNECTIONS = 4

# ---------------------------------------------------------------------------
# Latency
# ---------------------------------------------------------------------------

DEFAULT_PING_COUNT = 8
MIN_PING_COUNT = 1
MAX_PING_COUNT = 100

# ---------------------------------------------------------------------------
# Transfer sizes
# ---------------------------------------------------------------------------

DOWNLOAD_BYTES = 20 * 1024 * 1024        # per parallel download request
UPLOAD_BYTES = 10 * 1024 * 1024          # per parallel upload request
MIN_TRANSFER_BYTES = 1
MAX_TRANSFER_BYTES = 1024 * 1024 * 1024

READ_CHUNK_SIZE = 64 * 1024

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

DEFAULT_TIMEOUT_MS = 60_000.0            # per request
MIN_TIMEOUT_MS = 100.0
MAX_TIMEOUT_MS = 600_000.0
