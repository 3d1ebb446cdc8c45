from collections.abc import Callable, Sequence

import pytest

from gc_insight.models import GCEvent, GCFamily, Timeline

MB = 1024 * 1024
MINUTE_MS = 60_000


@pytest.fixture
def make_event() -> Callable[..., GCEvent]:
    """Factory for events; heap_before defaults to heap_after + 50MB."""

    def _make(
        timestamp_ms: int = 0,
        heap_after: int = 100 * MB,
        heap_before: int | None = None,
        duration_ms: float = 10.0,
        is_major: bool = True,
        **overrides,
    ) -> GCEvent:
        fields = {
            "gc_type": "Pause Full" if is_major else "Pause Young",
            "gc_cause": "Allocation Failure",
            "timestamp_ms": timestamp_ms,
            "duration_ms": duration_ms,
            "heap_before": heap_after + 50 * MB if heap_before is None else heap_before,
            "heap_after": heap_after,
            "heap_committed": 512 * MB,
            "is_major": is_major,
        }
        fields.update(overrides)
        return GCEvent(**fields)

    return _make


@pytest.fixture
def build_timeline() -> Callable[..., Timeline]:
    """Wrap events in a timeline with statistics already computed."""

    def _build(events: Sequence[GCEvent], family: GCFamily = "G1") -> Timeline:
        timeline = Timeline(gc_family=family)
        for event in events:
            timeline.add_event(event)
        timeline.calculate_statistics()
        return timeline

    return _build


@pytest.fixture
def heap_series_timeline(make_event, build_timeline) -> Callable[..., Timeline]:
    """Timeline of major GCs one minute apart with the given heap-after values."""

    def _series(heap_after_values: Sequence[int]) -> Timeline:
        events = [
            make_event(timestamp_ms=i * MINUTE_MS, heap_after=value)
            for i, value in enumerate(heap_after_values)
        ]
        return build_timeline(events)

    return _series
