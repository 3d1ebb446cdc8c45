"""Memory leak detection over heap-after-GC trends.

Four independent strategies look at the major collections of a timeline.
Each returns an immutable ``StrategyVerdict``; the verdict with the highest
confidence wins, ties going to the strategy evaluated first (linear,
exponential, stepping, efficiency decline).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from statistics import mean
from typing import NamedTuple

from gc_insight.config import DEFAULT_THRESHOLDS, AnalysisThresholds
from gc_insight.models import BYTES_PER_MB, GCEvent, LeakAnalysisResult, LeakPattern, Timeline

log = logging.getLogger(__name__)

MS_PER_MINUTE = 60_000.0

LINEAR_MIN_POINTS = 5
LINEAR_MIN_R_SQUARED = 0.6
LINEAR_MAX_CONFIDENCE = 0.9
LINEAR_SUSPICIOUS_CONFIDENCE = 0.7

EXPONENTIAL_MIN_POINTS = 8
EXPONENTIAL_CONFIDENCE = 0.8

STEPPING_MIN_POINTS = 6
STEPPING_MIN_STEPS = 2
STEPPING_PLATEAU_TOLERANCE = 0.05
STEPPING_JUMP_FACTOR = 1.1
STEPPING_CONFIDENCE_PER_STEP = 0.3
STEPPING_MAX_CONFIDENCE = 0.8

EFFICIENCY_MIN_EVENTS = 10
EFFICIENCY_DROP_LIMIT = 0.2
EFFICIENCY_CONFIDENCE = 0.7

QUICK_CHECK_MIN_EVENTS = 3

LEAK_DESCRIPTIONS: dict[LeakPattern, str] = {
    "LINEAR": (
        "Linear memory leak detected ({confidence:.1f}% confidence). "
        "Heap growing at {rate:.2f} MB/minute. "
        "This suggests consistent object accumulation."
    ),
    "EXPONENTIAL": (
        "Exponential memory leak detected ({confidence:.1f}% confidence). "
        "Growth rate accelerating, latest {rate:.2f} MB/minute. "
        "This suggests unbounded data structure growth."
    ),
    "STEPPING": (
        "Stepping memory leak detected ({confidence:.1f}% confidence). "
        "Memory grows in distinct steps, {rate:.2f} MB/minute overall. "
        "This suggests cache-like behavior or periodic allocations."
    ),
    "EFFICIENCY_DECLINE": (
        "Memory efficiency declining ({confidence:.1f}% confidence). "
        "GC becoming less effective over time, heap trending {rate:.2f} MB/minute. "
        "This suggests fragmentation or changing allocation patterns."
    ),
}


class StrategyVerdict(NamedTuple):
    confidence: float
    pattern: LeakPattern | None
    growth_rate: float  # bytes per minute
    suspicious_events: tuple[GCEvent, ...]


NO_VERDICT = StrategyVerdict(0.0, None, 0.0, ())


def filter_major_events(events: Sequence[GCEvent]) -> list[GCEvent]:
    """Major collections with a known, positive pre-collection heap."""
    return [e for e in events if e.is_major and e.heap_before > 0]


def _minutes_since(event: GCEvent, origin: GCEvent) -> float:
    return (event.timestamp_ms - origin.timestamp_ms) / MS_PER_MINUTE


def _overall_growth_rate(events: Sequence[GCEvent]) -> float:
    """Heap-after change per minute between the first and last event."""
    if len(events) < 2:
        return 0.0
    minutes = _minutes_since(events[-1], events[0])
    if minutes <= 0:
        return 0.0
    return (events[-1].heap_after - events[0].heap_after) / minutes


def _least_squares(xs: Sequence[float], ys: Sequence[float]) -> tuple[float, float, float]:
    """Return slope, intercept and R-squared of an ordinary least-squares fit."""
    n = len(xs)
    sum_x = sum(xs)
    sum_y = sum(ys)
    sum_xy = sum(x * y for x, y in zip(xs, ys))
    sum_x2 = sum(x * x for x in xs)

    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0, sum_y / n, 0.0

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    mean_y = sum_y / n
    ss_tot = sum((y - mean_y) ** 2 for y in ys)
    ss_res = sum((y - (slope * x + intercept)) ** 2 for x, y in zip(xs, ys))
    r_squared = 1 - ss_res / ss_tot if ss_tot > 0 else 0.0
    return slope, intercept, r_squared


# ============================================================
# STRATEGIES
# ============================================================


def analyze_linear_growth(filtered: Sequence[GCEvent]) -> StrategyVerdict:
    """Regress heap-after against elapsed minutes."""
    if len(filtered) < LINEAR_MIN_POINTS:
        return NO_VERDICT

    xs = [_minutes_since(e, filtered[0]) for e in filtered]
    ys = [float(e.heap_after) for e in filtered]
    slope, _, r_squared = _least_squares(xs, ys)
    log.debug("Linear growth analysis: slope=%.2f, r2=%.3f", slope, r_squared)

    if slope <= 0 or r_squared <= LINEAR_MIN_R_SQUARED:
        return NO_VERDICT

    confidence = min(r_squared, LINEAR_MAX_CONFIDENCE)
    suspicious: tuple[GCEvent, ...] = ()
    if confidence > LINEAR_SUSPICIOUS_CONFIDENCE:
        # Later events carry more of the accumulated growth
        suspicious = tuple(filtered[len(filtered) // 2 :])
    return StrategyVerdict(confidence, "LINEAR", slope, suspicious)


def analyze_exponential_growth(filtered: Sequence[GCEvent]) -> StrategyVerdict:
    """Look for growth rates that keep increasing between collections."""
    if len(filtered) < EXPONENTIAL_MIN_POINTS:
        return NO_VERDICT

    rates: list[float] = []
    rate_events: list[GCEvent] = []
    for prev, curr in zip(filtered, filtered[1:]):
        minutes = _minutes_since(curr, prev)
        if minutes > 0:
            rates.append((curr.heap_after - prev.heap_after) / minutes)
            rate_events.append(curr)

    if len(rates) < 3 or not any(rate > 0 for rate in rates):
        return NO_VERDICT

    accelerating = [
        rate_events[i] for i in range(1, len(rates)) if rates[i] > rates[i - 1]
    ]
    pair_count = len(rates) - 1
    log.debug(
        "Exponential growth analysis: %d/%d accelerating pairs", len(accelerating), pair_count
    )

    if len(accelerating) * 2 <= pair_count:
        return NO_VERDICT
    return StrategyVerdict(EXPONENTIAL_CONFIDENCE, "EXPONENTIAL", rates[-1], tuple(accelerating))


def analyze_stepping_pattern(filtered: Sequence[GCEvent]) -> StrategyVerdict:
    """Find plateaus in heap-after that end in a sudden jump."""
    if len(filtered) < STEPPING_MIN_POINTS:
        return NO_VERDICT

    step_events: list[GCEvent] = []
    for prev, curr, nxt in zip(filtered, filtered[1:], filtered[2:]):
        plateau = (
            abs(curr.heap_after - prev.heap_after) < prev.heap_after * STEPPING_PLATEAU_TOLERANCE
        )
        jump = nxt.heap_after > curr.heap_after * STEPPING_JUMP_FACTOR
        if plateau and jump:
            step_events.append(nxt)

    log.debug("Stepping pattern analysis: %d steps", len(step_events))
    if len(step_events) < STEPPING_MIN_STEPS:
        return NO_VERDICT

    confidence = min(len(step_events) * STEPPING_CONFIDENCE_PER_STEP, STEPPING_MAX_CONFIDENCE)
    return StrategyVerdict(
        confidence, "STEPPING", _overall_growth_rate(filtered), tuple(step_events)
    )


def analyze_efficiency_trend(
    events: Sequence[GCEvent], filtered: Sequence[GCEvent]
) -> StrategyVerdict:
    """Compare reclaim efficiency of the early and late halves of the log."""
    if len(events) < EFFICIENCY_MIN_EVENTS:
        return NO_VERDICT

    measured = [e for e in events if e.heap_before > 0]
    if len(measured) < 2:
        return NO_VERDICT

    efficiencies = [e.efficiency for e in measured]
    half = len(efficiencies) // 2
    early = mean(efficiencies[:half])
    late = mean(efficiencies[half:])
    log.debug("Efficiency trend analysis: early=%.3f, late=%.3f", early, late)

    if early - late <= EFFICIENCY_DROP_LIMIT:
        return NO_VERDICT

    suspicious = tuple(e for e in measured if e.efficiency < late)
    return StrategyVerdict(
        EFFICIENCY_CONFIDENCE, "EFFICIENCY_DECLINE", _overall_growth_rate(filtered), suspicious
    )


# ============================================================
# DETECTION ENTRY POINTS
# ============================================================


def select_verdict(verdicts: Sequence[StrategyVerdict]) -> StrategyVerdict:
    """Highest confidence wins; on a tie the earlier strategy is kept."""
    best = NO_VERDICT
    for verdict in verdicts:
        if verdict.confidence > best.confidence:
            best = verdict
    return best


def build_leak_description(verdict: StrategyVerdict) -> str:
    if verdict.pattern is None:
        return "No strong evidence of memory leak detected"
    return LEAK_DESCRIPTIONS[verdict.pattern].format(
        confidence=verdict.confidence * 100,
        rate=verdict.growth_rate / BYTES_PER_MB,
    )


def detect_memory_leak(
    timeline: Timeline, thresholds: AnalysisThresholds | None = None
) -> LeakAnalysisResult:
    """Score the likelihood that heap usage after GC grows like a leak."""
    thresholds = thresholds or DEFAULT_THRESHOLDS
    events = timeline.events
    log.info("Starting memory leak detection analysis")

    if len(events) < thresholds.min_events_for_leak_analysis:
        return LeakAnalysisResult(
            leak_detected=False,
            confidence=0.0,
            description=(
                "Insufficient data for leak detection "
                f"(need at least {thresholds.min_events_for_leak_analysis} events)"
            ),
        )

    filtered = filter_major_events(events)
    best = select_verdict(
        [
            analyze_linear_growth(filtered),
            analyze_exponential_growth(filtered),
            analyze_stepping_pattern(filtered),
            analyze_efficiency_trend(events, filtered),
        ]
    )

    # A zero threshold alone never flags a leak; some strategy must have fired
    leak_detected = best.pattern is not None and best.confidence >= thresholds.leak_confidence
    if leak_detected:
        description = build_leak_description(best)
        log.warning("Memory leak detected with %.1f%% confidence", best.confidence * 100)
    else:
        description = "No strong evidence of memory leak detected"
        log.info("No memory leak detected (confidence: %.1f%%)", best.confidence * 100)

    return LeakAnalysisResult(
        leak_detected=leak_detected,
        confidence=best.confidence,
        pattern_type=best.pattern,
        growth_rate=best.growth_rate,
        suspicious_events=best.suspicious_events,
        description=description,
    )


def quick_leak_check(recent_events: Sequence[GCEvent]) -> bool:
    """Cheap near-real-time check: heap-after strictly rising across major GCs."""
    major_events = filter_major_events(recent_events)
    if len(major_events) < QUICK_CHECK_MIN_EVENTS:
        return False
    return all(
        curr.heap_after > prev.heap_after for prev, curr in zip(major_events, major_events[1:])
    )
