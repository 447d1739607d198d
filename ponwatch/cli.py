"""
Command-line interface for the PONWATCH analysis engine.

Provides argument parsing and orchestration for analyzing decoded
control-plane events supplied as capture dumps, either in one pass or by
following a file that a live capture keeps appending to.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Optional

import ponwatch
from ponwatch.core.config import AnalyzerConfig
from ponwatch.core.engine import AnalysisEngine
from ponwatch.core.errors import PonwatchError
from ponwatch.filter.grammar import parse_filter
from ponwatch.filter.predicate import FilterPredicate, StructuralFilter, TextFilter
from ponwatch.utils.feed import FileFeed
from ponwatch.utils.logger import AnalysisLogger, LogLevel
from ponwatch.utils.report import (
    render_event,
    render_key_index,
    render_statistics,
    to_json,
)
from ponwatch.utils.trace_reader import TraceReader


def _int_literal(text: str) -> int:
    """Parse a decimal or 0x-prefixed integer argument."""
    try:
        return int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: '{text}'")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the PONWATCH CLI."""
    parser = argparse.ArgumentParser(
        prog="ponwatch",
        description=(
            "PONWATCH: request/response integrity and performance "
            "analysis of decoded control-plane events"
        ),
    )

    required = parser.add_argument_group("required arguments")
    required.add_argument(
        "-t",
        "--trace",
        type=Path,
        required=True,
        help="Path to capture dump (.json array or .jsonl)",
    )

    selection = parser.add_argument_group("filtering")
    selection.add_argument(
        "--link",
        type=_int_literal,
        default=None,
        help="Analyze only this link",
    )
    selection.add_argument(
        "--endpoint",
        type=_int_literal,
        default=None,
        help="Analyze only this endpoint on --link",
    )
    selection.add_argument(
        "--text",
        default=None,
        help="Surface only events containing this text (case-insensitive)",
    )
    selection.add_argument(
        "-f",
        "--filter",
        default=None,
        metavar="QUERY",
        help='Filter query, e.g. \'link:1 endpoint:2 "get response"\'',
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        default=100,
        help="Events per ingest batch (default: 100)",
    )
    parser.add_argument(
        "--follow",
        action="store_true",
        help="Keep polling the trace file for appended events",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=1.0,
        help="Seconds between polls with --follow (default: 1.0)",
    )
    parser.add_argument(
        "--polls",
        type=int,
        default=0,
        help="Stop following after this many polls (default: 0 = never)",
    )
    parser.add_argument(
        "--high-latency-ms",
        type=float,
        default=None,
        help="Latency threshold for slow transactions (default: 1000)",
    )
    parser.add_argument(
        "--success-code",
        type=int,
        default=None,
        help="Result code that denotes a successful operation (default: 0)",
    )
    parser.add_argument(
        "--events",
        action="store_true",
        help="Print surfaced events with their annotations",
    )
    parser.add_argument(
        "--key-index",
        action="store_true",
        help="Print active links and endpoints",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )
    parser.add_argument(
        "-o",
        "--output",
        choices=["silent", "normal", "verbose"],
        default="normal",
        help="Output level (default: normal)",
    )
    parser.add_argument(
        "-d",
        "--debug",
        type=int,
        choices=[0, 1, 2, 3],
        default=0,
        help="Debug level 0-3 (default: 0)",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print statistics after analysis",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ponwatch {ponwatch.__version__}",
    )

    return parser


def _resolve_log_level(output: str, debug: int) -> LogLevel:
    """Determine the effective log level from output and debug settings."""
    if debug >= 3:
        return LogLevel.DEBUG
    if debug >= 2:
        return LogLevel.VERBOSE
    if output == "verbose" or debug >= 1:
        return LogLevel.VERBOSE
    if output == "silent":
        return LogLevel.SILENT
    return LogLevel.NORMAL


def _resolve_filter(args: argparse.Namespace) -> FilterPredicate:
    """Build the filter from either --filter or the individual options."""
    if args.filter is not None:
        return parse_filter(args.filter)
    return FilterPredicate(
        structural=StructuralFilter(args.link, args.endpoint),
        text=TextFilter(args.text or ""),
    )


def main(argv: Optional[list] = None) -> None:
    """Entry point for the ``ponwatch`` CLI command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.filter is not None and (
        args.link is not None or args.endpoint is not None or args.text
    ):
        parser.error("--filter cannot be combined with --link/--endpoint/--text")
    if args.endpoint is not None and args.link is None:
        parser.error("--endpoint requires --link")
    if args.batch_size <= 0:
        parser.error("--batch-size must be positive")

    try:
        _run(args)
    except SystemExit:
        raise
    except (PonwatchError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)


def _run(args: argparse.Namespace) -> None:
    """Execute the analysis pipeline."""
    if not args.trace.exists() and not args.follow:
        print(f"Error: Trace file not found: {args.trace}", file=sys.stderr)
        sys.exit(2)

    log_level = _resolve_log_level(args.output, args.debug)
    stream = sys.stdout if args.output != "silent" else open(os.devnull, "w")
    logger = AnalysisLogger(level=log_level, stream=stream)

    reader = TraceReader(args.trace)
    config = AnalyzerConfig.from_directives(reader.read_directives())
    config = config.with_overrides(
        high_latency_ms=args.high_latency_ms,
        success_result_code=args.success_code,
    )
    predicate = _resolve_filter(args)

    engine = AnalysisEngine(config=config, logger=logger)
    if args.follow:
        _follow(engine, args, predicate, logger)
    else:
        for batch in reader.iter_batches(args.batch_size):
            engine.ingest(batch)

    snapshot = engine.apply_filter(predicate)
    counts = engine.current_counts()

    if args.json:
        records = engine.surfaced() if args.events else None
        print(to_json(snapshot, counts, records))
    else:
        if args.events:
            for record in engine.surfaced():
                print(render_event(record))
        if args.key_index:
            print(render_key_index(engine.key_index_snapshot()))
        logger.verdict(snapshot.finding_count)
        # Statistics (skip if verbose already printed them)
        if args.stats and log_level.value < LogLevel.VERBOSE.value:
            print()
            print(render_statistics(snapshot, counts))

    if snapshot.has_findings:
        sys.exit(1)
    sys.exit(0)


def _follow(
    engine: AnalysisEngine,
    args: argparse.Namespace,
    predicate: FilterPredicate,
    logger: AnalysisLogger,
) -> None:
    """Poll the trace file, ingesting and reanalyzing after every batch."""
    feed = FileFeed(args.trace)
    polls = 0

    def should_stop() -> bool:
        nonlocal polls
        if args.polls and polls >= args.polls:
            return True
        polls += 1
        return False

    logger.info(f"Following {args.trace} every {args.interval}s")
    try:
        for batch in feed.follow(args.interval, should_stop=should_stop):
            engine.ingest(batch)
            snapshot = engine.apply_filter(predicate)
            logger.info(
                f"Refreshed: {snapshot.event_count} events analyzed, "
                f"{snapshot.finding_count} finding(s)"
            )
    except KeyboardInterrupt:
        logger.info("Stopped following")
