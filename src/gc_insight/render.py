"""Rich terminal rendering of analysis reports and leak verdicts."""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from gc_insight.models import (
    BYTES_PER_MB,
    AnalysisReport,
    Issue,
    LeakAnalysisResult,
    ParseOutcome,
)

GC_INSIGHT_THEME = Theme(
    {
        "critical": "bold red",
        "warning": "bold yellow",
        "success": "bold green",
        "info": "cyan",
        "metric": "white",
        "label": "dim white",
        "header": "bold magenta",
    }
)

console = Console(theme=GC_INSIGHT_THEME)

SUSPICIOUS_EVENTS_SHOWN = 5


def format_ms(value: float) -> str:
    """Format milliseconds for human-readable output."""
    if value >= 1000:
        return f"{value / 1000:.3f}s"
    return f"{value:.1f}ms"


def format_bytes(size_bytes: int | float) -> str:
    if abs(size_bytes) >= 1024**3:
        return f"{size_bytes / 1024**3:.2f}G"
    if abs(size_bytes) >= BYTES_PER_MB:
        return f"{size_bytes / BYTES_PER_MB:.1f}M"
    if abs(size_bytes) >= 1024:
        return f"{size_bytes / 1024:.1f}K"
    return f"{size_bytes:.0f}B"


def create_key_value_table(title: str, rows: list[tuple[str, str]]) -> Table:
    """Create a simple two-column key/value table."""
    table = Table(title=title, show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="label")
    table.add_column("Value", style="metric")
    for label, value in rows:
        table.add_row(label, value)
    return table


def build_overview_rows(
    report: AnalysisReport, outcome: ParseOutcome | None
) -> list[tuple[str, str]]:
    timeline = report.timeline
    rows = [
        ("Collector family", timeline.gc_family),
        ("Runtime version", timeline.runtime_version or "Unknown"),
        ("Log span", format_ms(timeline.duration_ms)),
        (
            "Events (major / minor)",
            f"{report.total_events} ({report.major_gc_count} / {report.minor_gc_count})",
        ),
        ("Total GC time", format_ms(report.total_gc_time_ms)),
        ("GC time share", f"{report.gc_time_percentage:.2f}%"),
        ("Throughput", f"{report.throughput_percentage:.2f}%"),
        ("Avg memory efficiency", f"{report.average_memory_efficiency:.1f}%"),
        ("Total heap freed", format_bytes(timeline.total_heap_freed)),
    ]
    if outcome is not None:
        rows.append(
            (
                "Parsing coverage",
                f"{outcome.parsed_events} events from {outcome.total_lines} lines, "
                f"{outcome.skipped_lines} candidate lines skipped",
            )
        )
    return rows


def create_pause_table(report: AnalysisReport) -> Table:
    """Pause distribution with nearest-rank percentiles."""
    table = Table(title="Pause Distribution", header_style="header")
    for column in ("Average", "P50", "P90", "P95", "P99", "Max"):
        table.add_column(column, justify="right", style="metric")
    table.add_row(
        format_ms(report.average_pause_ms),
        format_ms(report.p50),
        format_ms(report.p90),
        format_ms(report.p95),
        format_ms(report.p99),
        format_ms(report.longest_pause_ms),
    )
    return table


def render_issues_panel(issues: tuple[Issue, ...]) -> Panel:
    """Render fired issues in a prominent banner."""
    if not issues:
        return Panel(
            Text(" No issues detected", style="success"), title="Status", border_style="green"
        )

    has_critical = any(issue.severity == "CRITICAL" for issue in issues)
    content = Text()
    for index, issue in enumerate(issues):
        style = "critical" if issue.severity == "CRITICAL" else "warning"
        line_ending = "\n" if index < len(issues) - 1 else ""
        content.append(f" {issue.code}", style=style)
        content.append(f"  {issue.description}{line_ending}", style="metric")

    return Panel(
        content,
        title="[critical]Issues[/critical]" if has_critical else "[warning]Issues[/warning]",
        border_style="red" if has_critical else "yellow",
    )


def render_leak_panel(result: LeakAnalysisResult) -> Panel:
    """Render the leak detector verdict."""
    color = "bold red" if result.leak_detected else "green"

    content = Text()
    content.append("Confidence: ", style="label")
    content.append(f"{result.confidence * 100:.1f}%\n", style=color)
    content.append("Pattern: ", style="label")
    content.append(f"{result.pattern_type or 'None'}\n", style=color)
    content.append("Growth rate: ", style="label")
    content.append(f"{result.growth_rate_mb_per_minute:.2f} MB/min\n", style=color)
    content.append("Suspicious events: ", style="label")
    content.append(f"{len(result.suspicious_events)}\n", style=color)
    for event in result.suspicious_events[:SUSPICIOUS_EVENTS_SHOWN]:
        content.append(
            f"  - {format_ms(event.timestamp_ms)}: heap after GC "
            f"{event.heap_after / BYTES_PER_MB:.1f} MB\n",
            style="metric",
        )
    content.append("\n")
    content.append(result.description, style=color)

    return Panel(content, title=f"[{color}]Memory Leak Assessment[/{color}]", border_style=color)


def render_recommendations(recommendations: tuple[str, ...]) -> Panel:
    text = Text()
    for index, recommendation in enumerate(recommendations, start=1):
        line_ending = "\n" if index < len(recommendations) else ""
        text.append(f"{index}. {recommendation}{line_ending}", style="metric")
    return Panel(text, title="Recommendations", border_style="info")


def render_report(
    report: AnalysisReport,
    leak_result: LeakAnalysisResult,
    outcome: ParseOutcome | None = None,
    target: Console | None = None,
) -> None:
    """Print the full analysis to the console."""
    out = target or console
    title = report.timeline.source or "GC log"
    out.print(
        Panel(
            Group(
                create_key_value_table("Overview", build_overview_rows(report, outcome)),
                create_pause_table(report),
            ),
            title=f"[header]GC Analysis: {title}[/header]",
            border_style="header",
        )
    )
    out.print(render_issues_panel(report.issues))
    out.print(render_leak_panel(leak_result))
    out.print(render_recommendations(report.recommendations))
