#!/usr/bin/env python3
"""gc-insight command line: analyze a GC log or watch it for heap growth."""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Annotated

import typer
from rich.logging import RichHandler
from rich.markup import escape

from gc_insight import __version__
from gc_insight.analyzer import analyze as analyze_timeline
from gc_insight.config import load_thresholds
from gc_insight.errors import GCInsightError
from gc_insight.leak import detect_memory_leak, quick_leak_check
from gc_insight.parsers import parse_lines, read_log
from gc_insight.render import console, format_bytes, render_report

app = typer.Typer(
    name="gc-insight",
    help="GC log analyzer with pause statistics and memory leak detection (G1, Z, Parallel)",
    add_completion=False,
    rich_markup_mode="rich",
)

LogFileArgument = Annotated[
    Path,
    typer.Argument(
        help="Path to GC log file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
]


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.command()
def analyze(
    log_file: LogFileArgument,
    long_pause_ms: Annotated[
        float | None,
        typer.Option(
            "--long-pause-ms", help="Pause length (ms) reported as long (default: 100)", min=0.0
        ),
    ] = None,
    critical_pause_ms: Annotated[
        float | None,
        typer.Option(
            "--critical-pause-ms",
            help="Pause length (ms) reported as critical (default: 1000)",
            min=0.0,
        ),
    ] = None,
    gc_time_threshold: Annotated[
        float | None,
        typer.Option(
            "--gc-time-threshold",
            help="GC time share (%) that raises a warning (default: 10)",
            min=0.0,
        ),
    ] = None,
    efficiency_threshold: Annotated[
        float | None,
        typer.Option(
            "--efficiency-threshold",
            help="Average memory efficiency (%) below which a warning is raised (default: 50)",
            min=0.0,
            max=100.0,
        ),
    ] = None,
    leak_confidence: Annotated[
        float | None,
        typer.Option(
            "--leak-confidence",
            help="Confidence needed to report a leak (default: 0.7)",
            min=0.0,
            max=1.0,
        ),
    ] = None,
    min_leak_events: Annotated[
        int | None,
        typer.Option(
            "--min-leak-events", help="Events needed before leak analysis runs (default: 10)", min=1
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose", "-v", help="Enable verbose output with detailed parsing information"
        ),
    ] = False,
) -> None:
    """Analyze a GC log file.

    Exit codes: 0 = clean, 1 = warnings, 2 = critical issues or a detected leak.
    """
    configure_logging(verbose)

    try:
        thresholds = load_thresholds(
            long_pause_ms=long_pause_ms,
            critical_pause_ms=critical_pause_ms,
            gc_time_percentage=gc_time_threshold,
            memory_efficiency_percentage=efficiency_threshold,
            leak_confidence=leak_confidence,
            min_events_for_leak_analysis=min_leak_events,
        )
        lines = read_log(log_file)

        timeline, outcome = parse_lines(lines, source=str(log_file))
        report = analyze_timeline(timeline, thresholds)
        leak_result = detect_memory_leak(timeline, thresholds)

        render_report(report, leak_result, outcome)

        if report.critical_issue_count or leak_result.leak_detected:
            sys.exit(2)
        elif report.warning_issue_count:
            sys.exit(1)

    except (GCInsightError, ValueError) as e:
        # Invalid GC_INSIGHT_* values surface as pydantic ValidationError (a ValueError)
        console.print(f"[critical]ERROR: {escape(str(e))}[/critical]")
        sys.exit(1)


@app.command()
def watch(
    log_file: LogFileArgument,
    interval: Annotated[
        float, typer.Option("--interval", "-i", help="Seconds between samples", min=0.0)
    ] = 5.0,
    window: Annotated[
        int, typer.Option("--window", "-w", help="Number of most recent events checked", min=1)
    ] = 50,
    ticks: Annotated[
        int | None,
        typer.Option(
            "--ticks", help="Stop after this many samples (default: run until Ctrl-C)", min=1
        ),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose output")] = False,
) -> None:
    """Re-read a growing GC log at a fixed interval and flag rising heap after major GCs."""
    configure_logging(verbose)
    completed = 0

    try:
        while ticks is None or completed < ticks:
            if completed:
                time.sleep(interval)
            try:
                lines = read_log(log_file)
            except GCInsightError as e:
                console.print(f"[critical]ERROR: {escape(str(e))}[/critical]")
                sys.exit(1)

            timeline, _ = parse_lines(lines, source=str(log_file))
            recent = timeline.events[-window:]
            completed += 1

            if quick_leak_check(recent):
                last_heap = format_bytes(recent[-1].heap_after)
                console.print(
                    f"[critical]Tick {completed}: heap after major GC rising "
                    f"({len(recent)} events, last {last_heap})[/critical]"
                )
            else:
                console.print(
                    f"[success]Tick {completed}: no heap growth ({len(recent)} events)[/success]"
                )
    except KeyboardInterrupt:
        console.print(f"\n[info]Stopped after {completed} samples[/info]")


@app.command()
def version() -> None:
    """Display version."""
    console.print(f"gc-insight {__version__}")


if __name__ == "__main__":
    app()
