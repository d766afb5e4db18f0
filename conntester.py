#!/usr/bin/env python3
"""
Connection tester CLI -- round-trip latency to every server, from the terminal.

Usage::

    python conntester.py --base-url https://host/api/ext/conntest   # rich dashboard
    python conntester.py --servers-file servers.json --simple       # plain text
    python conntester.py --base-url ... --json                      # JSON to stdout
    python conntester.py --base-url ... -o result.json              # save to file
    python conntester.py --base-url ... --csv log.csv               # append CSV rows
    python conntester.py --base-url ... -n 8                        # 8 servers at once
    python conntester.py --base-url ... -r <permalink data>         # restore a result
    python conntester.py --base-url ... --current https://my.host/  # recommend a server
    python conntester.py --serve --config-dir /etc/conntest         # REST server
"""
from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Dict, Optional

import aiohttp

from conntest.api import ConnectionTestAPI, Server
from conntest.config import load_config
from conntest.constants import (
    COMMON_HEADERS,
    MAX_CONCURRENCY,
    MAX_SAMPLE_SIZE,
    MAX_SAMPLING_TIME_LIMIT,
    MIN_SAMPLE_SIZE,
    MIN_SAMPLING_TIME,
)
from conntest.errors import PermalinkError
from conntest.logging_config import setup_logging
from conntest.permalink import pack
from conntest.probe import TimingService
from conntest.results import Result, rank_results, recommend_server
from conntest.sampler import RoundTripSampler
from conntest.scheduler import ConnectionTest, effective_concurrency
from conntest.server import run_server
from conntest.serverconf import ServerListFile, ThresholdFile
from conntest.thresholds import Thresholds
from ui.dashboard import (
    ProgressDisplay,
    console,
    print_header,
    print_permalink,
    print_recommendation,
    print_results,
    print_statistics,
)
from ui.output import (
    build_permalink,
    create_result_json,
    format_csv_header,
    format_csv_row,
    format_text_result,
    save_json,
)


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(
    concurrency: Optional[int],
    max_sampling_time: float,
    sample_timeout: float,
    min_samples: int,
) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if concurrency is not None and concurrency > MAX_CONCURRENCY:
        raise ValueError(f"Concurrency must be at most {MAX_CONCURRENCY}")
    if not MIN_SAMPLING_TIME <= max_sampling_time <= MAX_SAMPLING_TIME_LIMIT:
        raise ValueError(
            f"Sampling time must be between {MIN_SAMPLING_TIME} and {MAX_SAMPLING_TIME_LIMIT} s"
        )
    if not MIN_SAMPLING_TIME <= sample_timeout <= MAX_SAMPLING_TIME_LIMIT:
        raise ValueError(
            f"Sample timeout must be between {MIN_SAMPLING_TIME} and {MAX_SAMPLING_TIME_LIMIT} s"
        )
    if not MIN_SAMPLE_SIZE <= min_samples <= MAX_SAMPLE_SIZE:
        raise ValueError(f"Minimum samples must be between {MIN_SAMPLE_SIZE} and {MAX_SAMPLE_SIZE}")


# ---------------------------------------------------------------------------
# Configuration loading
# ---------------------------------------------------------------------------

def _split(path: str):
    return os.path.dirname(path) or ".", os.path.basename(path)


def _load_local_servers(path: str) -> Dict[str, Server]:
    return ServerListFile(*_split(path)).get_value()


def _load_local_thresholds(path: str) -> Thresholds:
    return Thresholds(ThresholdFile(*_split(path)).get_value())


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

async def run_connection_test(
    *,
    base_url: Optional[str] = None,
    servers_file: Optional[str] = None,
    thresholds_file: Optional[str] = None,
    concurrency: Optional[int] = None,
    permalink: Optional[str] = None,
    json_output: bool = False,
    output_file: Optional[str] = None,
    csv_file: Optional[str] = None,
    simple: bool = False,
    current_url: Optional[str] = None,
    max_sampling_time: float,
    sample_timeout: float,
    min_samples: int,
) -> Optional[dict]:
    """Test (or restore) every configured server and return a JSON-serialisable dict."""

    show_ui = not json_output and not simple

    if show_ui:
        print_header()

    async with aiohttp.ClientSession(headers=COMMON_HEADERS) as session:

        # -- Configuration --------------------------------------------------
        servers: Dict[str, Server] = {}
        thresholds = Thresholds()

        if base_url:
            if show_ui:
                console.print("[dim]Fetching server list...[/dim]")
            async with ConnectionTestAPI(base_url, session=session) as api:
                if not servers_file:
                    servers = await api.fetch_servers()
                if not thresholds_file:
                    thresholds = await api.fetch_thresholds(thresholds)

        if servers_file:
            servers = _load_local_servers(servers_file)
        if thresholds_file:
            thresholds = _load_local_thresholds(thresholds_file)

        if not servers:
            console.print("[red]Error: No servers available[/red]")
            return None

        # -- Test or restore ------------------------------------------------
        progress: Optional[ProgressDisplay] = ProgressDisplay() if show_ui else None

        sampler = RoundTripSampler(
            TimingService(session),
            max_sampling_time=max_sampling_time,
            sample_timeout=sample_timeout,
            min_samples=min_samples,
        )
        test = ConnectionTest(
            sampler,
            thresholds,
            on_progress=progress.update if progress else None,
        )

        if permalink:
            results = test.restore(servers, permalink)
        else:
            if progress:
                console.print(f"\n[bold]Testing {len(servers)} servers...[/bold]")
                progress.start()
            try:
                results = await test.run(servers, concurrency)
            finally:
                if progress:
                    progress.stop()

    # -- Render -------------------------------------------------------------
    ranked = rank_results(results)

    if show_ui:
        print_results(results, thresholds)
        if ranked and ranked[0].reachable:
            print_statistics(ranked[0])
    elif simple:
        print(format_text_result(results))

    # -- Permalink ----------------------------------------------------------
    packed = pack(results)
    link = (
        build_permalink(base_url, packed, effective_concurrency(concurrency))
        if base_url
        else packed
    )
    if show_ui:
        print_permalink(link)
    elif simple:
        print(f"Permalink: {link}")

    # -- Recommendation -----------------------------------------------------
    recommendation = recommend_server(results, current_url) if current_url else None
    if recommendation is not None:
        name = next((r.name for r in results if r.server == recommendation), None)
        if show_ui:
            print_recommendation(recommendation, name)
        elif simple:
            print(f"Faster server available: {name or recommendation.url}")

    # -- JSON result --------------------------------------------------------
    result_json = create_result_json(results, thresholds, link, recommendation)

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    # -- CSV append ---------------------------------------------------------
    if csv_file:
        for result in results:
            _append_csv(csv_file, result)
        if not json_output:
            console.print(f"[green]CSV rows appended to:[/green] {csv_file}")

    return result_json


def _append_csv(path: str, result: Result) -> None:
    """Append a single CSV row, writing the header if the file is new."""
    write_header = not os.path.isfile(path) or os.path.getsize(path) == 0
    with open(path, "a", encoding="utf-8") as fh:
        if write_header:
            fh.write(format_csv_header() + "\n")
        fh.write(format_csv_row(result) + "\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser(config: dict) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Connection tester -- round-trip latency to every available server",
    )
    # Configuration sources
    parser.add_argument("--base-url", type=str, default=config["base_url"] or None, metavar="URL", help="Configuration API serving /servers and /thresholds")
    parser.add_argument("--servers-file", type=str, metavar="FILE", help="Read the server list from a local JSON file")
    parser.add_argument("--thresholds-file", type=str, metavar="FILE", help="Read the thresholds from a local JSON file")

    # Run mode
    parser.add_argument("--concurrency", "-n", type=int, default=config["concurrency"], metavar="N", help="Servers tested at once (default: 4)")
    parser.add_argument("--permalink", "-r", type=str, metavar="DATA", help="Restore results from permalink data instead of testing")
    parser.add_argument("--current", type=str, default=config["current_url"] or None, metavar="URL", help="Server currently in use, for recommendations")

    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--csv", type=str, default=config["csv_file"] or None, metavar="FILE", help="Append results as CSV rows")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")

    # Sampling parameters
    parser.add_argument("--max-sampling-time", type=float, default=config["max_sampling_time"], metavar="SECS", help="Maximum time spent sampling one server (default: 3)")
    parser.add_argument("--sample-timeout", type=float, default=config["sample_timeout"], metavar="SECS", help="Maximum time for a single round trip (default: 5)")
    parser.add_argument("--min-samples", type=int, default=config["min_samples"], metavar="N", help="Samples required before a result can be accurate (default: 5)")

    # Server mode
    parser.add_argument("--serve", action="store_true", help="Run the connection test REST API")
    parser.add_argument("--config-dir", type=str, default=".", metavar="DIR", help="Directory holding servers.json and thresholds.json (default: .)")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Server bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Server port (default: 8080)")

    # Logging
    parser.add_argument("--log-level", type=str, default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level (default: WARNING)")
    parser.add_argument("--log-file", type=str, metavar="FILE", help="Also write logs to FILE")

    return parser


def main() -> None:
    args = build_parser(load_config()).parse_args()

    setup_logging(args.log_level, args.log_file)

    # Server mode
    if args.serve:
        run_server(args.config_dir, host=args.host, port=args.port)
        return

    # Validate
    try:
        _validate(
            concurrency=args.concurrency,
            max_sampling_time=args.max_sampling_time,
            sample_timeout=args.sample_timeout,
            min_samples=args.min_samples,
        )
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    if not args.base_url and not args.servers_file:
        console.print("[red]Error: --base-url or --servers-file is required[/red]")
        sys.exit(1)

    try:
        result = asyncio.run(
            run_connection_test(
                base_url=args.base_url,
                servers_file=args.servers_file,
                thresholds_file=args.thresholds_file,
                concurrency=args.concurrency,
                permalink=args.permalink,
                json_output=args.json,
                output_file=args.output,
                csv_file=args.csv,
                simple=args.simple,
                current_url=args.current,
                max_sampling_time=args.max_sampling_time,
                sample_timeout=args.sample_timeout,
                min_samples=args.min_samples,
            )
        )
    except PermalinkError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)

    if result is None:
        sys.exit(1)


if __name__ == "__main__":
    main()
