#!/usr/bin/env python3
"""
speedcheck -- HTTP throughput and latency measurement from the terminal.

Usage::

    python speedcheck.py --serve                      # run the endpoints
    python speedcheck.py --url http://host:8080       # rich dashboard
    python speedcheck.py --url http://host:8080 --simple
    python speedcheck.py --url http://host:8080 --json
    python speedcheck.py -o result.json               # save to file
    python speedcheck.py --set connections=8          # persist a default
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional

from backend.app import run_server
from display.dashboard import (
    ProgressDisplay,
    console,
    print_final_results,
    print_header,
    print_latency_details,
    print_phase_result,
)
from display.logs import configure_logging
from display.output import create_result_json, format_text_result, save_json
from meter.config import DEFAULTS, config_path, load_config, set_config_value
from meter.constants import (
    MAX_CONNECTIONS,
    MAX_PING_COUNT,
    MAX_TIMEOUT_MS,
    MAX_TRANSFER_BYTES,
    MIN_CONNECTIONS,
    MIN_PING_COUNT,
    MIN_TIMEOUT_MS,
    MIN_TRANSFER_BYTES,
)
from meter.session import MeasurementSession, SessionState
from meter.target import Target

LOGGER = logging.getLogger("speedcheck")


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(
    ping_count: int,
    connections: int,
    download_bytes: int,
    upload_bytes: int,
    timeout_ms: float,
) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if not MIN_PING_COUNT <= ping_count <= MAX_PING_COUNT:
        raise ValueError(f"Ping count must be between {MIN_PING_COUNT} and {MAX_PING_COUNT}")
    if not MIN_CONNECTIONS <= connections <= MAX_CONNECTIONS:
        raise ValueError(f"Connections must be between {MIN_CONNECTIONS} and {MAX_CONNECTIONS}")
    if not MIN_TRANSFER_BYTES <= download_bytes <= MAX_TRANSFER_BYTES:
        raise ValueError(f"Download size must be between {MIN_TRANSFER_BYTES} and {MAX_TRANSFER_BYTES} bytes")
    if not MIN_TRANSFER_BYTES <= upload_bytes <= MAX_TRANSFER_BYTES:
        raise ValueError(f"Upload size must be between {MIN_TRANSFER_BYTES} and {MAX_TRANSFER_BYTES} bytes")
    if not MIN_TIMEOUT_MS <= timeout_ms <= MAX_TIMEOUT_MS:
        raise ValueError(f"Timeout must be between {MIN_TIMEOUT_MS:.0f} and {MAX_TIMEOUT_MS:.0f} ms")


def _parse_setting(item: str) -> tuple:
    """Split ``KEY=VALUE``, decoding VALUE as JSON when possible."""
    key, sep, raw = item.partition("=")
    key = key.strip()
    if not sep or key not in DEFAULTS:
        raise ValueError(f"Unknown setting {item!r}; expected one of: {', '.join(DEFAULTS)}")
    try:
        value: Any = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return key, value


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

async def run_speedcheck(
    url: str,
    *,
    json_output: bool = False,
    output_file: Optional[str] = None,
    simple: bool = False,
    ping_count: int = DEFAULTS["ping_count"],
    connections: int = DEFAULTS["connections"],
    download_bytes: int = DEFAULTS["download_bytes"],
    upload_bytes: int = DEFAULTS["upload_bytes"],
    timeout_ms: float = DEFAULTS["timeout_ms"],
) -> Dict[str, Any]:
    """Execute one measurement session and return a JSON-serialisable dict."""

    show_ui = not json_output and not simple
    target = Target.from_url(url)

    if show_ui:
        print_header(target.base_url)
        progress = ProgressDisplay()

    session = MeasurementSession(
        target,
        ping_count=ping_count,
        connections=connections,
        download_bytes=download_bytes,
        upload_bytes=upload_bytes,
        timeout_ms=timeout_ms,
        on_update=progress.update if show_ui else None,
    )

    if show_ui:
        progress.start()
    try:
        snapshot = await session.start()
    finally:
        if show_ui:
            progress.stop()

    if show_ui:
        print_latency_details(session.latency_stats)
        print_phase_result(session.download_result, snapshot.download_mbps, "Download Results", "green")
        print_phase_result(session.upload_result, snapshot.upload_mbps, "Upload Results", "blue")
        print_final_results(snapshot)
    elif simple:
        print(format_text_result(snapshot, target.base_url))

    result_json = create_result_json(session)

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    return result_json


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main() -> None:
    config = load_config()

    parser = argparse.ArgumentParser(
        description="speedcheck -- HTTP throughput and latency measurement",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--log-level", default=config["log_level"], metavar="LEVEL", help="Logging level (default: %(default)s)")

    # Server
    parser.add_argument("--url", "-u", default=config["url"], help="Measurement server base URL (default: %(default)s)")
    parser.add_argument("--serve", action="store_true", help="Serve the measurement endpoints instead of measuring")
    parser.add_argument("--host", default=config["host"], help="Bind address for --serve (default: %(default)s)")
    parser.add_argument("--port", type=int, default=config["port"], help="Port for --serve (default: %(default)s)")

    # Test parameters
    parser.add_argument("--ping-count", type=int, default=config["ping_count"], metavar="N", help="Number of ping samples (default: %(default)s)")
    parser.add_argument("--connections", type=int, default=config["connections"], metavar="N", help="Parallel transfers per phase (default: %(default)s)")
    parser.add_argument("--download-bytes", type=int, default=config["download_bytes"], metavar="BYTES", help="Bytes per download transfer (default: %(default)s)")
    parser.add_argument("--upload-bytes", type=int, default=config["upload_bytes"], metavar="BYTES", help="Bytes per upload transfer (default: %(default)s)")
    parser.add_argument("--timeout-ms", type=float, default=config["timeout_ms"], metavar="MS", help="Per-request timeout (default: %(default)s)")

    # Config
    parser.add_argument("--set", action="append", default=[], metavar="KEY=VALUE", help="Persist a default in the config file and exit")
    parser.add_argument("--show-config", action="store_true", help="Print the effective configuration and exit")

    args = parser.parse_args()

    configure_logging(args.log_level, console)

    # Config mode
    if args.set:
        try:
            for item in args.set:
                key, value = _parse_setting(item)
                path = set_config_value(key, value)
        except ValueError as exc:
            console.print(f"[red]Error: {exc}[/red]")
            sys.exit(1)
        console.print(f"[green]Saved to:[/green] {path}")
        return

    if args.show_config:
        console.print(f"[dim]{config_path()}[/dim]")
        console.print_json(json.dumps(config))
        return

    # Server mode
    if args.serve:
        run_server(args.host, args.port)
        return

    # Validate
    try:
        _validate(
            ping_count=args.ping_count,
            connections=args.connections,
            download_bytes=args.download_bytes,
            upload_bytes=args.upload_bytes,
            timeout_ms=args.timeout_ms,
        )
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    try:
        result = asyncio.run(
            run_speedcheck(
                args.url,
                json_output=args.json,
                output_file=args.output,
                simple=args.simple,
                ping_count=args.ping_count,
                connections=args.connections,
                download_bytes=args.download_bytes,
                upload_bytes=args.upload_bytes,
                timeout_ms=args.timeout_ms,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as exc:
        LOGGER.debug("unexpected failure", exc_info=True)
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)

    if result["state"] == SessionState.FAILED.value:
        sys.exit(1)


if __name__ == "__main__":
    main()
