import pytest

from gc_insight.config import AnalysisThresholds
from gc_insight.leak import (
    NO_VERDICT,
    StrategyVerdict,
    analyze_efficiency_trend,
    analyze_exponential_growth,
    analyze_linear_growth,
    analyze_stepping_pattern,
    detect_memory_leak,
    filter_major_events,
    quick_leak_check,
    select_verdict,
)

MB = 1024 * 1024

LINEAR_SERIES = [100 * MB + i * 2 * MB for i in range(20)]
OSCILLATING_SERIES = [100 * MB + [0, 2, 4, 2, 0, -2, -4, -2][i % 8] * MB for i in range(20)]
# Plateaus at 100MB broken by a 15% spike that is collected again
STEPPING_SERIES = ([100 * MB] * 5 + [115 * MB]) * 3


def test_linear_growth_detected(heap_series_timeline):
    result = detect_memory_leak(heap_series_timeline(LINEAR_SERIES))

    assert result.leak_detected is True
    assert result.pattern_type == "LINEAR"
    assert result.confidence == pytest.approx(0.9)
    assert result.growth_rate == pytest.approx(2 * MB)
    assert result.growth_rate_mb_per_minute == pytest.approx(2.0)
    assert len(result.suspicious_events) == 10
    assert result.suspicious_events[0].heap_after == LINEAR_SERIES[10]
    assert "Heap growing at 2.00 MB/minute" in result.description


def test_oscillating_heap_is_not_a_leak(heap_series_timeline):
    result = detect_memory_leak(heap_series_timeline(OSCILLATING_SERIES))

    assert result.leak_detected is False
    assert result.confidence == 0.0
    assert result.pattern_type is None
    assert result.description == "No strong evidence of memory leak detected"
    assert str(result) == "No memory leak detected (confidence: 0.0%)"


def test_stepping_pattern_detected(heap_series_timeline):
    result = detect_memory_leak(heap_series_timeline(STEPPING_SERIES))

    assert result.leak_detected is True
    assert result.pattern_type == "STEPPING"
    assert result.confidence == pytest.approx(0.8)
    assert [e.heap_after for e in result.suspicious_events] == [115 * MB] * 3


def test_verdict_below_threshold_is_reported_but_not_detected(heap_series_timeline):
    thresholds = AnalysisThresholds(leak_confidence=0.85)
    result = detect_memory_leak(heap_series_timeline(STEPPING_SERIES), thresholds)

    assert result.leak_detected is False
    assert result.pattern_type == "STEPPING"
    assert result.confidence == pytest.approx(0.8)
    assert result.description == "No strong evidence of memory leak detected"


def test_insufficient_data(heap_series_timeline):
    result = detect_memory_leak(heap_series_timeline(LINEAR_SERIES[:5]))

    assert result.leak_detected is False
    assert result.confidence == 0.0
    assert result.description == "Insufficient data for leak detection (need at least 10 events)"

    lenient = AnalysisThresholds(min_events_for_leak_analysis=5)
    assert detect_memory_leak(heap_series_timeline(LINEAR_SERIES[:5]), lenient).leak_detected


def test_efficiency_decline_detected(make_event, build_timeline):
    early = [
        make_event(
            timestamp_ms=i * 60_000, heap_before=100 * MB, heap_after=40 * MB, is_major=False
        )
        for i in range(5)
    ]
    late = [
        make_event(
            timestamp_ms=(5 + i) * 60_000,
            heap_before=100 * MB,
            heap_after=(75 if i % 2 == 0 else 85) * MB,
            is_major=False,
        )
        for i in range(5)
    ]
    result = detect_memory_leak(build_timeline(early + late))

    assert result.leak_detected is True
    assert result.pattern_type == "EFFICIENCY_DECLINE"
    assert result.confidence == pytest.approx(0.7)
    assert result.growth_rate == 0.0
    assert [e.heap_after for e in result.suspicious_events] == [85 * MB, 85 * MB]


# ============================================================
# INDIVIDUAL STRATEGIES
# ============================================================


def test_exponential_growth_strategy(heap_series_timeline):
    events = heap_series_timeline([100 * MB + i * i * MB for i in range(10)]).events

    verdict = analyze_exponential_growth(events)
    assert verdict.pattern == "EXPONENTIAL"
    assert verdict.confidence == pytest.approx(0.8)
    assert verdict.growth_rate == pytest.approx(17 * MB)
    assert len(verdict.suspicious_events) == 8


def test_strategies_need_minimum_points(heap_series_timeline):
    events = heap_series_timeline(LINEAR_SERIES[:4]).events

    assert analyze_linear_growth(events) == NO_VERDICT
    assert analyze_exponential_growth(events) == NO_VERDICT
    assert analyze_stepping_pattern(events) == NO_VERDICT
    assert analyze_efficiency_trend(events, events) == NO_VERDICT


def test_linear_strategy_ignores_shrinking_heap(heap_series_timeline):
    events = heap_series_timeline(list(reversed(LINEAR_SERIES))).events
    assert analyze_linear_growth(events) == NO_VERDICT


def test_single_step_is_not_enough(heap_series_timeline):
    events = heap_series_timeline([100 * MB] * 5 + [115 * MB]).events
    assert analyze_stepping_pattern(events) == NO_VERDICT


def test_filter_major_events_requires_heap_before(make_event):
    events = [
        make_event(is_major=True),
        make_event(is_major=False),
        make_event(is_major=True, heap_before=0, heap_after=0),
    ]
    assert filter_major_events(events) == [events[0]]


def test_select_verdict_prefers_earlier_strategy_on_tie():
    exponential = StrategyVerdict(0.8, "EXPONENTIAL", 1.0, ())
    stepping = StrategyVerdict(0.8, "STEPPING", 2.0, ())
    linear = StrategyVerdict(0.65, "LINEAR", 3.0, ())

    assert select_verdict([linear, exponential, stepping]) is exponential
    assert select_verdict([NO_VERDICT, NO_VERDICT]) == NO_VERDICT
    assert select_verdict([]) == NO_VERDICT


# ============================================================
# QUICK CHECK
# ============================================================


def test_quick_leak_check_strictly_rising(make_event):
    rising = [make_event(heap_after=v * MB) for v in (100, 110, 120)]
    assert quick_leak_check(rising) is True


def test_quick_leak_check_ignores_minor_gcs(make_event):
    events = [
        make_event(heap_after=100 * MB),
        make_event(heap_after=50 * MB, is_major=False),
        make_event(heap_after=110 * MB),
        make_event(heap_after=120 * MB),
    ]
    assert quick_leak_check(events) is True


@pytest.mark.parametrize("values", [(100, 110, 105), (100, 100, 110), (100, 110)])
def test_quick_leak_check_negative(make_event, values):
    assert quick_leak_check([make_event(heap_after=v * MB) for v in values]) is False


def test_rising_staircase_resolves_to_linear(heap_series_timeline):
    staircase = [level * MB for level in (100, 115, 132, 152) for _ in range(5)]
    timeline = heap_series_timeline(staircase)

    stepping = analyze_stepping_pattern(timeline.events)
    assert stepping.pattern == "STEPPING"
    assert stepping.confidence == pytest.approx(0.8)

    # The regression fits a staircase well enough to outrank the step count
    result = detect_memory_leak(timeline)
    assert result.pattern_type == "LINEAR"
    assert result.confidence == pytest.approx(0.9)
    assert result.leak_detected is True


def test_zero_confidence_threshold_needs_a_pattern(heap_series_timeline):
    thresholds = AnalysisThresholds(leak_confidence=0.0)
    result = detect_memory_leak(heap_series_timeline(OSCILLATING_SERIES), thresholds)

    assert result.confidence == 0.0
    assert result.pattern_type is None
    assert result.leak_detected is False
