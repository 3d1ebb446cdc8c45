"""Pause statistics, threshold-based issue rules and tuning recommendations."""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Iterable, Sequence

from gc_insight.config import DEFAULT_THRESHOLDS, AnalysisThresholds
from gc_insight.models import BYTES_PER_MB, AnalysisReport, GCEvent, GCFamily, Issue, Timeline

log = logging.getLogger(__name__)

GC_STORM_WINDOW_MS = 60_000
GC_STORM_EVENT_LIMIT = 10
MAJOR_GC_RATIO_LIMIT = 0.1
HEAP_TREND_SAMPLE_SIZE = 20
HEAP_TREND_MIN_SAMPLES = 5
HEAP_TREND_SLOPE_LIMIT = BYTES_PER_MB  # bytes per event

# Ordered: recommendations follow the order of this mapping, not of the issues.
ISSUE_RECOMMENDATIONS: dict[str, tuple[str, ...]] = {
    "NO_EVENTS": (
        "Verify GC logging is enabled (-Xlog:gc* or -XX:+PrintGCDetails) and the log is complete",
    ),
    "CRITICAL_PAUSES": (
        "Consider tuning GC parameters to reduce pause times",
        "Evaluate switching to low-pause GC (ZGC, Shenandoah) for critical applications",
    ),
    "HIGH_GC_TIME": (
        "Increase heap size to reduce GC frequency",
        "Optimize object allocation patterns",
    ),
    "GC_STORM": (
        "Investigate allocation bursts; a larger young generation can absorb them",
    ),
    "LOW_MEMORY_EFFICIENCY": (
        "Review object retention and memory usage patterns",
        "Consider adjusting generation sizes",
    ),
    "POSSIBLE_MEMORY_LEAK": (
        "Perform memory profiling to identify leaking objects",
        "Review object lifecycle management",
    ),
    "HIGH_MAJOR_GC_RATIO": (
        "Increase young generation size to reduce promotion rate",
        "Tune -XX:MaxTenuringThreshold if appropriate",
    ),
    "SYSTEM_GC_CALLS": (
        "Remove explicit System.gc() calls or run with -XX:+DisableExplicitGC",
    ),
}

FAMILY_RECOMMENDATIONS: dict[GCFamily, str] = {
    "G1": "Consider tuning G1GC: -XX:MaxGCPauseMillis, -XX:G1HeapRegionSize",
    "Z": "ZGC is well-tuned by default, but ensure adequate memory for best performance",
    "Parallel": "For better pause times, consider switching to G1GC or ZGC",
}

# ============================================================
# STATISTICS
# ============================================================


def percentile(sorted_values: Sequence[float], pct: float) -> float:
    """Nearest-rank percentile of a pre-sorted list (0 when empty)."""
    if not sorted_values:
        return 0.0
    index = math.ceil(pct * len(sorted_values) / 100) - 1
    index = max(0, min(index, len(sorted_values) - 1))
    return sorted_values[index]


def average_memory_efficiency(events: Sequence[GCEvent]) -> float:
    """Mean percentage of the pre-collection heap reclaimed per event."""
    if not events:
        return 0.0
    return sum(e.efficiency * 100 for e in events) / len(events)


def heap_trend_slope(events: Sequence[GCEvent]) -> float | None:
    """Least-squares slope of heap-after over the most recent events.

    Uses the last ``HEAP_TREND_SAMPLE_SIZE`` events with the event index as
    x, so the slope is in bytes per event. None with too few samples.
    """
    recent = events[-HEAP_TREND_SAMPLE_SIZE:]
    n = len(recent)
    if n < HEAP_TREND_MIN_SAMPLES:
        return None

    sum_x = sum_y = sum_xy = sum_x2 = 0.0
    for x, event in enumerate(recent):
        y = float(event.heap_after)
        sum_x += x
        sum_y += y
        sum_xy += x * y
        sum_x2 += x * x

    return (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)


def throughput_percentage(timeline: Timeline) -> float:
    """Share of wall-clock time not spent in GC."""
    if timeline.duration_ms == 0:
        return 100.0
    return 100.0 - timeline.gc_time_percentage


def find_events_by_type(timeline: Timeline, gc_type: str) -> list[GCEvent]:
    """Events whose type label contains ``gc_type`` (case-insensitive)."""
    needle = gc_type.lower()
    return [e for e in timeline.events if needle in e.gc_type.lower()]


def gc_type_distribution(timeline: Timeline) -> dict[str, int]:
    return dict(Counter(e.gc_type for e in timeline.events))


# ============================================================
# ISSUE RULES
# ============================================================


def detect_pause_issues(
    timeline: Timeline, thresholds: AnalysisThresholds
) -> tuple[list[Issue], list[GCEvent], list[GCEvent]]:
    """Critical, long and high-average pause rules."""
    issues: list[Issue] = []
    long_pauses = timeline.long_pauses(thresholds.long_pause_ms)
    critical_pauses = timeline.long_pauses(thresholds.critical_pause_ms)

    if critical_pauses:
        issues.append(
            Issue(
                code="CRITICAL_PAUSES",
                description=(
                    f"Found {len(critical_pauses)} critical pauses "
                    f"(>{thresholds.critical_pause_ms:g}ms)"
                ),
                severity="CRITICAL",
            )
        )
    if long_pauses:
        issues.append(
            Issue(
                code="LONG_PAUSES",
                description=(
                    f"Found {len(long_pauses)} long pauses (>{thresholds.long_pause_ms:g}ms)"
                ),
                severity="WARNING",
            )
        )
    if timeline.average_pause_ms > thresholds.long_pause_ms:
        issues.append(
            Issue(
                code="HIGH_AVERAGE_PAUSE",
                description=f"Average pause time {timeline.average_pause_ms:.2f}ms is high",
                severity="WARNING",
            )
        )
    return issues, long_pauses, critical_pauses


def detect_frequency_issues(timeline: Timeline, thresholds: AnalysisThresholds) -> list[Issue]:
    """GC time share and GC storm rules."""
    issues: list[Issue] = []
    gc_time_pct = timeline.gc_time_percentage

    if gc_time_pct > thresholds.gc_time_percentage:
        issues.append(
            Issue(
                code="HIGH_GC_TIME",
                description=(
                    f"GC time is {gc_time_pct:.1f}% of total time "
                    f"(threshold: {thresholds.gc_time_percentage:.1f}%)"
                ),
                severity="WARNING",
            )
        )

    events_per_window = Counter(e.timestamp_ms // GC_STORM_WINDOW_MS for e in timeline.events)
    busiest = max(events_per_window.values(), default=0)
    if busiest > GC_STORM_EVENT_LIMIT:
        issues.append(
            Issue(
                code="GC_STORM",
                description=f"Detected GC storm: {busiest} GCs in one minute",
                severity="WARNING",
            )
        )
    return issues


def detect_memory_issues(
    timeline: Timeline, efficiency_pct: float, thresholds: AnalysisThresholds
) -> list[Issue]:
    """Efficiency, heap trend and major-GC ratio rules."""
    issues: list[Issue] = []

    if efficiency_pct < thresholds.memory_efficiency_percentage:
        issues.append(
            Issue(
                code="LOW_MEMORY_EFFICIENCY",
                description=(
                    f"Low memory efficiency: {efficiency_pct:.1f}% "
                    f"(threshold: {thresholds.memory_efficiency_percentage:.1f}%)"
                ),
                severity="WARNING",
            )
        )

    # Independent of gc_insight.leak; the two heuristics can disagree.
    slope = heap_trend_slope(timeline.events)
    if slope is not None and slope > HEAP_TREND_SLOPE_LIMIT:
        issues.append(
            Issue(
                code="POSSIBLE_MEMORY_LEAK",
                description="Detected growing heap trend after GCs - possible memory leak",
                severity="CRITICAL",
            )
        )

    major_ratio = len(timeline.major_events()) / len(timeline.events)
    if major_ratio > MAJOR_GC_RATIO_LIMIT:
        issues.append(
            Issue(
                code="HIGH_MAJOR_GC_RATIO",
                description=f"High ratio of major GCs: {major_ratio * 100:.1f}%",
                severity="WARNING",
            )
        )
    return issues


def detect_system_gc_issues(timeline: Timeline) -> list[Issue]:
    system_gc_count = sum(1 for e in timeline.events if e.is_system_gc)
    if not system_gc_count:
        return []
    return [
        Issue(
            code="SYSTEM_GC_CALLS",
            description=(
                f"Found {system_gc_count} System.gc() calls - can cause unnecessary pauses"
            ),
            severity="WARNING",
        )
    ]


def build_recommendations(issue_codes: Iterable[str], family: GCFamily) -> list[str]:
    """Map fired issue codes and the collector family to tuning suggestions."""
    fired = set(issue_codes)
    recommendations: list[str] = []
    for code, suggestions in ISSUE_RECOMMENDATIONS.items():
        if code in fired:
            recommendations.extend(s for s in suggestions if s not in recommendations)
    recommendations.append(FAMILY_RECOMMENDATIONS[family])
    return recommendations


# ============================================================
# ANALYSIS ENTRY POINT
# ============================================================


def analyze(timeline: Timeline, thresholds: AnalysisThresholds | None = None) -> AnalysisReport:
    """Compute statistics, issues and recommendations for one timeline."""
    thresholds = thresholds or DEFAULT_THRESHOLDS
    events = timeline.events
    log.info("Starting GC log analysis for %d events", len(events))

    timeline.calculate_statistics()

    if not events:
        issues = [
            Issue(code="NO_EVENTS", description="No GC events found in log", severity="WARNING")
        ]
        return AnalysisReport(
            timeline=timeline,
            issues=tuple(issues),
            recommendations=tuple(build_recommendations(["NO_EVENTS"], timeline.gc_family)),
        )

    durations = sorted(e.duration_ms for e in events)
    major_count = len(timeline.major_events())
    efficiency_pct = average_memory_efficiency(events)

    pause_issues, long_pauses, critical_pauses = detect_pause_issues(timeline, thresholds)
    issues = [
        *pause_issues,
        *detect_frequency_issues(timeline, thresholds),
        *detect_memory_issues(timeline, efficiency_pct, thresholds),
        *detect_system_gc_issues(timeline),
    ]

    report = AnalysisReport(
        timeline=timeline,
        total_events=len(events),
        major_gc_count=major_count,
        minor_gc_count=len(events) - major_count,
        total_gc_time_ms=timeline.total_gc_time_ms,
        longest_pause_ms=timeline.longest_pause_ms,
        average_pause_ms=timeline.average_pause_ms,
        p50=percentile(durations, 50),
        p90=percentile(durations, 90),
        p95=percentile(durations, 95),
        p99=percentile(durations, 99),
        gc_time_percentage=timeline.gc_time_percentage,
        throughput_percentage=throughput_percentage(timeline),
        average_memory_efficiency=efficiency_pct,
        long_pauses=tuple(long_pauses),
        critical_pauses=tuple(critical_pauses),
        issues=tuple(issues),
        most_efficient_gc=max(events, key=lambda e: e.efficiency),
        least_efficient_gc=min(events, key=lambda e: e.efficiency),
        recommendations=tuple(
            build_recommendations((i.code for i in issues), timeline.gc_family)
        ),
    )

    log.info("GC analysis completed. Found %d issues.", len(issues))
    return report
