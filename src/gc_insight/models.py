"""Pydantic models shared by the parsers, the analyzer and the leak detector."""

from __future__ import annotations

from typing import Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

# ============================================================
# TYPE ALIASES
# ============================================================

GCFamily: TypeAlias = Literal["G1", "Z", "Parallel"]
Severity: TypeAlias = Literal["WARNING", "CRITICAL"]
LeakPattern: TypeAlias = Literal["LINEAR", "EXPONENTIAL", "STEPPING", "EFFICIENCY_DECLINE"]
BytesValue: TypeAlias = int
MillisecondsValue: TypeAlias = float
PercentageValue: TypeAlias = float

BYTES_PER_MB = 1024 * 1024

# ============================================================
# EVENTS AND TIMELINE
# ============================================================


class GCEvent(BaseModel):
    """One collection pause, normalized to bytes and milliseconds."""

    model_config = ConfigDict(frozen=True)

    gc_type: str
    gc_cause: str = ""
    timestamp_ms: int
    duration_ms: MillisecondsValue = Field(ge=0.0)

    heap_before: BytesValue = 0
    heap_after: BytesValue = 0
    heap_committed: BytesValue = 0

    # Generation breakdown, zero when the log does not report it
    young_before: BytesValue = 0
    young_after: BytesValue = 0
    old_before: BytesValue = 0
    old_after: BytesValue = 0

    is_major: bool = False
    is_system_gc: bool = False

    @property
    def heap_freed(self) -> BytesValue:
        """Bytes reclaimed; negative for concurrent phases that grew the heap."""
        return self.heap_before - self.heap_after

    @property
    def efficiency(self) -> float:
        """Fraction of the pre-collection heap reclaimed (0 when unknown)."""
        if self.heap_before <= 0:
            return 0.0
        return self.heap_freed / self.heap_before

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000


class Timeline(BaseModel):
    """Ordered, append-only event store for one log.

    Aggregates are only valid after ``calculate_statistics`` has run; it can
    be called any number of times and always recomputes from all events.
    """

    gc_family: GCFamily = "G1"
    runtime_version: str | None = None
    source: str | None = None
    events: list[GCEvent] = Field(default_factory=list)

    total_events: int = 0
    start_time_ms: int = 0
    end_time_ms: int = 0
    total_gc_time_ms: MillisecondsValue = 0.0
    longest_pause_ms: MillisecondsValue = 0.0
    average_pause_ms: MillisecondsValue = 0.0
    total_heap_freed: BytesValue = 0

    def add_event(self, event: GCEvent) -> None:
        self.events.append(event)

    def calculate_statistics(self) -> None:
        """Recompute all rollups from the accumulated events."""
        if not self.events:
            self.total_events = 0
            self.start_time_ms = 0
            self.end_time_ms = 0
            self.total_gc_time_ms = 0.0
            self.longest_pause_ms = 0.0
            self.average_pause_ms = 0.0
            self.total_heap_freed = 0
            return

        durations = [e.duration_ms for e in self.events]
        timestamps = [e.timestamp_ms for e in self.events]

        self.total_events = len(self.events)
        self.total_gc_time_ms = sum(durations)
        self.longest_pause_ms = max(durations)
        self.average_pause_ms = self.total_gc_time_ms / len(durations)
        self.total_heap_freed = sum(e.heap_freed for e in self.events)
        self.start_time_ms = min(timestamps)
        self.end_time_ms = max(timestamps)

    @property
    def duration_ms(self) -> int:
        """Wall-clock span covered by the events."""
        return max(0, self.end_time_ms - self.start_time_ms)

    @property
    def gc_time_percentage(self) -> PercentageValue:
        if self.end_time_ms <= self.start_time_ms:
            return 0.0
        return self.total_gc_time_ms / (self.end_time_ms - self.start_time_ms) * 100

    def major_events(self) -> list[GCEvent]:
        return [e for e in self.events if e.is_major]

    def long_pauses(self, threshold_ms: float) -> list[GCEvent]:
        return [e for e in self.events if e.duration_ms > threshold_ms]


class ParseOutcome(BaseModel):
    """Parsing coverage for one batch of lines."""

    model_config = ConfigDict(frozen=True)

    total_lines: int = 0
    candidate_lines: int = 0
    parsed_events: int = 0
    skipped_lines: int = 0


# ============================================================
# ANALYSIS RESULTS
# ============================================================


class Issue(BaseModel):
    """A threshold rule that fired."""

    model_config = ConfigDict(frozen=True)

    code: str
    description: str
    severity: Severity

    def __str__(self) -> str:
        return f"{self.code}:{self.description}:{self.severity}"


class AnalysisReport(BaseModel):
    """Read-only result of one ``analyze`` call."""

    model_config = ConfigDict(frozen=True)

    timeline: Timeline

    total_events: int = 0
    major_gc_count: int = 0
    minor_gc_count: int = 0

    total_gc_time_ms: MillisecondsValue = 0.0
    longest_pause_ms: MillisecondsValue = 0.0
    average_pause_ms: MillisecondsValue = 0.0

    p50: MillisecondsValue = 0.0
    p90: MillisecondsValue = 0.0
    p95: MillisecondsValue = 0.0
    p99: MillisecondsValue = 0.0

    gc_time_percentage: PercentageValue = 0.0
    throughput_percentage: PercentageValue = 100.0
    average_memory_efficiency: PercentageValue = 0.0

    long_pauses: tuple[GCEvent, ...] = ()
    critical_pauses: tuple[GCEvent, ...] = ()
    issues: tuple[Issue, ...] = ()

    most_efficient_gc: GCEvent | None = None
    least_efficient_gc: GCEvent | None = None

    recommendations: tuple[str, ...] = ()

    @property
    def issue_strings(self) -> list[str]:
        """Issues as ``CODE:description:SEVERITY`` triples."""
        return [str(issue) for issue in self.issues]

    @property
    def issue_codes(self) -> list[str]:
        return [issue.code for issue in self.issues]

    @property
    def critical_issue_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "CRITICAL")

    @property
    def warning_issue_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "WARNING")


class LeakAnalysisResult(BaseModel):
    """Verdict of the multi-strategy leak detector."""

    model_config = ConfigDict(frozen=True)

    leak_detected: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    pattern_type: LeakPattern | None = None
    growth_rate: float = 0.0  # bytes per minute
    suspicious_events: tuple[GCEvent, ...] = ()
    description: str = ""

    @property
    def growth_rate_mb_per_minute(self) -> float:
        return self.growth_rate / BYTES_PER_MB

    def __str__(self) -> str:
        if not self.leak_detected:
            return f"No memory leak detected (confidence: {self.confidence * 100:.1f}%)"
        return (
            f"Memory leak detected! Type: {self.pattern_type}, "
            f"Confidence: {self.confidence * 100:.1f}%, "
            f"Growth: {self.growth_rate_mb_per_minute:.2f} MB/min"
        )
