import pytest
from pydantic import ValidationError

from gc_insight.models import GCEvent, Issue, LeakAnalysisResult, Timeline

MB = 1024 * 1024


def test_calculate_statistics_is_idempotent(make_event, build_timeline):
    timeline = build_timeline(
        [
            make_event(
                timestamp_ms=1000, duration_ms=20.0, heap_before=300 * MB, heap_after=100 * MB
            ),
            make_event(
                timestamp_ms=5000, duration_ms=40.0, heap_before=250 * MB, heap_after=150 * MB
            ),
            make_event(
                timestamp_ms=9000, duration_ms=30.0, heap_before=200 * MB, heap_after=120 * MB
            ),
        ]
    )
    first = timeline.model_dump(exclude={"events"})
    timeline.calculate_statistics()
    assert timeline.model_dump(exclude={"events"}) == first

    assert timeline.total_events == 3
    assert timeline.start_time_ms == 1000
    assert timeline.end_time_ms == 9000
    assert timeline.total_gc_time_ms == pytest.approx(90.0)
    assert timeline.longest_pause_ms == pytest.approx(40.0)
    assert timeline.average_pause_ms == pytest.approx(30.0)
    assert timeline.total_heap_freed == (200 + 100 + 80) * MB


def test_empty_timeline_aggregates_are_zero():
    timeline = Timeline()
    timeline.calculate_statistics()
    timeline.calculate_statistics()

    assert timeline.total_events == 0
    assert timeline.start_time_ms == 0
    assert timeline.end_time_ms == 0
    assert timeline.total_gc_time_ms == 0
    assert timeline.longest_pause_ms == 0
    assert timeline.average_pause_ms == 0
    assert timeline.total_heap_freed == 0
    assert timeline.gc_time_percentage == 0


def test_negative_heap_freed_is_tolerated(make_event):
    event = make_event(heap_before=100 * MB, heap_after=120 * MB)
    assert event.heap_freed == -20 * MB
    assert event.efficiency == pytest.approx(-0.2)


def test_efficiency_without_heap_before_is_zero():
    event = GCEvent(gc_type="ZGC Pause Mark Start", timestamp_ms=0, duration_ms=0.05)
    assert event.heap_before == 0
    assert event.efficiency == 0.0


def test_negative_duration_is_rejected():
    with pytest.raises(ValidationError):
        GCEvent(gc_type="G1 Evacuation Pause", timestamp_ms=0, duration_ms=-1.0)


def test_gc_time_percentage_and_filters(make_event, build_timeline):
    timeline = build_timeline(
        [
            make_event(timestamp_ms=0, duration_ms=50.0, is_major=False),
            make_event(timestamp_ms=500, duration_ms=150.0, is_major=True),
            make_event(timestamp_ms=1000, duration_ms=100.0, is_major=False),
        ]
    )
    assert timeline.gc_time_percentage == pytest.approx(30.0)
    assert timeline.duration_ms == 1000
    assert [e.duration_ms for e in timeline.major_events()] == [150.0]
    assert [e.duration_ms for e in timeline.long_pauses(100.0)] == [150.0]


def test_issue_string_is_code_description_severity():
    issue = Issue(
        code="GC_STORM", description="Detected GC storm: 12 GCs in one minute", severity="WARNING"
    )
    assert str(issue) == "GC_STORM:Detected GC storm: 12 GCs in one minute:WARNING"


def test_leak_result_confidence_is_bounded():
    with pytest.raises(ValidationError):
        LeakAnalysisResult(confidence=1.5)


def test_leak_result_str():
    result = LeakAnalysisResult(
        leak_detected=True, confidence=0.9, pattern_type="LINEAR", growth_rate=2 * MB
    )
    assert str(result) == (
        "Memory leak detected! Type: LINEAR, Confidence: 90.0%, Growth: 2.00 MB/min"
    )
    assert "No memory leak detected" in str(LeakAnalysisResult(confidence=0.3))
