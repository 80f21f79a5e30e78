"""HTTP endpoints a measurement session runs against."""

from .app import create_app, parse_size, run_server

__all__ = [
    "create_app",
    "parse_size",
    "run_server",
]
