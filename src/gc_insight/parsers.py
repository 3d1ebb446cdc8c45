"""Grammar-table driven parsers for G1, Parallel and Z GC logs.

Every collector family is described by one ``FamilyGrammar`` record: the
cheap substring prefilter, the line patterns, the unit assumed for bare
numbers and the labels that mark a major collection. A single
``FamilyParser`` loop applies any grammar, so adding a family means adding
a record rather than another parser class.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TypeAlias

from pydantic import ValidationError

from gc_insight.detection import detect_gc_family
from gc_insight.errors import LogReadError
from gc_insight.models import GCEvent, GCFamily, ParseOutcome, Timeline

log = logging.getLogger(__name__)

SizeUnit: TypeAlias = Literal["B", "K", "M", "G"]

_UNIT_MULTIPLIERS: dict[str, int] = {
    "B": 1,
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
}

_SIZE = r"\d+(?:\.\d+)?[BKMG]?"
_NUMBER = r"\d+(?:\.\d+)?"

# ============================================================
# UNIT NORMALIZATION
# ============================================================


def parse_size_to_bytes(size_text: str, default_unit: SizeUnit = "B") -> int:
    """Parse a size token like '512000K', '100M' or '100' into bytes.

    Tokens without a suffix are read in ``default_unit``.
    """
    match = re.fullmatch(r"(?P<value>\d+(?:\.\d+)?)(?P<unit>[BKMG])?", size_text.strip())
    if not match:
        raise ValueError(f"Unrecognized size token: {size_text}")
    unit = match.group("unit") or default_unit
    return int(float(match.group("value")) * _UNIT_MULTIPLIERS[unit])


def normalize_duration_ms(value: str, unit: str) -> float:
    """Convert a duration in seconds ('s', 'secs') or milliseconds to ms."""
    duration = float(value)
    if unit.strip() != "ms":
        duration *= 1000
    # Rounded to the microsecond so 0.123s is exactly 123ms
    return round(duration, 3)


# ============================================================
# GRAMMAR TABLE
# ============================================================


@dataclass(frozen=True)
class FamilyGrammar:
    """Line grammar and classification rules for one collector family."""

    family: GCFamily
    line_patterns: tuple[re.Pattern[str], ...]
    required_substrings: tuple[str, ...]
    major_markers: tuple[str, ...]
    default_cause: str
    bare_unit: SizeUnit = "B"
    excluded_substrings: tuple[str, ...] = ()
    heap_pattern: re.Pattern[str] | None = None
    generation_pattern: re.Pattern[str] | None = None
    generation_unit: SizeUnit = "K"
    label_prefix: str = ""

    def is_candidate(self, line: str) -> bool:
        """Cheap substring test run before any regex."""
        if not all(token in line for token in self.required_substrings):
            return False
        return not any(token in line for token in self.excluded_substrings)

    def is_major(self, label: str) -> bool:
        return any(marker in label for marker in self.major_markers)


G1_GRAMMAR = FamilyGrammar(
    family="G1",
    line_patterns=(
        # [1.234s][info][gc] G1 Evacuation Pause (Metadata GC Threshold) 100M->50M(200M) 0.050s
        re.compile(
            rf"\[(?P<timestamp>{_NUMBER})s\]\[info\]\[gc[^\]]*\]\s+"
            r"(?P<label>G1.*?)\s+"
            r"\((?P<cause>.*?)\)\s+"
            rf"(?P<before>{_SIZE})->(?P<after>{_SIZE})\((?P<committed>{_SIZE})\)\s+"
            r"(?:\[[^\]]*\]\s+)*"
            rf"(?P<duration>{_NUMBER})(?P<duration_unit>ms|s)\b"
        ),
        # [1.234s][info][gc] GC(4) Pause Young (Normal) (G1 Evacuation Pause) 24M->4M(256M) 3.123ms
        re.compile(
            rf"\[(?P<timestamp>{_NUMBER})s\].*?\[gc[^\]]*\]\s+GC\(\d+\)\s+"
            r"(?P<label>Pause\s+\w+"
            r"(?:\s+\((?:Normal|Mixed|Prepare Mixed|Concurrent Start|Concurrent End)\))?)\s+"
            r"(?:\((?P<cause>.*?)\)\s+)?"
            rf"(?P<before>{_SIZE})->(?P<after>{_SIZE})\((?P<committed>{_SIZE})\)\s+"
            rf"(?P<duration>{_NUMBER})(?P<duration_unit>ms|s)\b"
        ),
    ),
    required_substrings=("[gc",),
    excluded_substrings=("ergo",),
    major_markers=("Full", "Mixed", "Remark"),
    default_cause="Unknown",
    generation_pattern=re.compile(
        r"\[(?P<young_before>\d+)K->(?P<young_after>\d+)K\(\d+K\)\]\s+"
        r"\[(?P<old_before>\d+)K->(?P<old_after>\d+)K\(\d+K\)\]"
    ),
)

PARALLEL_GRAMMAR = FamilyGrammar(
    family="Parallel",
    line_patterns=(
        # [1.234s] [Full GC] 512000K->256000K(1024000K), 0.1230000 secs
        re.compile(
            rf"\[(?P<timestamp>{_NUMBER})s\]\s+"
            r"\[(?P<label>[^\]\(]*?GC)(?:\s+\((?P<cause>.*?)\))?\]\s+"
            r"(?P<before>\d+K?)->(?P<after>\d+K?)\((?P<committed>\d+K?)\),\s+"
            rf"(?P<duration>{_NUMBER})\s*(?P<duration_unit>secs)"
        ),
        # 2.345: [GC (Allocation Failure) [PSYoungGen: ...] 33280K->5096K(125952K), 0.0071 secs]
        re.compile(
            r"(?:\d{4}-\d{2}-\d{2}T[\d:.+-]+:\s+)?"
            rf"(?P<timestamp>{_NUMBER}):\s+"
            r"\[(?P<label>Full GC|GC)(?:\s+\((?P<cause>[^)]*(?:\(\))?)\))?\s+"
            r"(?:\[PSYoungGen:\s+(?P<young_before>\d+)K->(?P<young_after>\d+)K\(\d+K\)\]\s+)?"
            r"(?:\[ParOldGen:\s+(?P<old_before>\d+)K->(?P<old_after>\d+)K\(\d+K\)\]\s+)?"
            r"(?P<before>\d+K)->(?P<after>\d+K)\((?P<committed>\d+K)\).*?,\s+"
            rf"(?P<duration>{_NUMBER})\s*(?P<duration_unit>secs)"
        ),
    ),
    required_substrings=("GC", "secs"),
    major_markers=("Full",),
    default_cause="Allocation Failure",
    bare_unit="K",
)

Z_GRAMMAR = FamilyGrammar(
    family="Z",
    line_patterns=(
        # [2.345s][info][gc,phases] GC(3) Pause Mark Start 0.045ms
        re.compile(
            rf"\[(?P<timestamp>{_NUMBER})s\]\[info\]\[gc[^\]]*\]\s+"
            r"(?P<label>.*?)\s+"
            rf"(?P<duration>{_NUMBER})(?P<duration_unit>ms)\b"
        ),
    ),
    required_substrings=("[gc", "Pause"),
    major_markers=("Mark", "Relocate"),
    default_cause="Allocation",
    bare_unit="M",
    heap_pattern=re.compile(r"(?P<before>\d+)M?->(?P<after>\d+)M?\((?P<committed>\d+)M?\)"),
    label_prefix="ZGC ",
)

GRAMMARS: dict[GCFamily, FamilyGrammar] = {
    "G1": G1_GRAMMAR,
    "Parallel": PARALLEL_GRAMMAR,
    "Z": Z_GRAMMAR,
}

GC_ID_PREFIX: re.Pattern[str] = re.compile(r"^GC\(\d+\)\s*")

HEADER_VERSION_PATTERN: re.Pattern[str] = re.compile(r"(?:java|openjdk) version.*", re.IGNORECASE)
UNIFIED_VERSION_PATTERN: re.Pattern[str] = re.compile(r"\]\s*Version:\s+(?P<version>\S+)")

# ============================================================
# GENERIC PARSER
# ============================================================


class FamilyParser:
    """Applies one family grammar to a batch of log lines."""

    def __init__(self, grammar: FamilyGrammar) -> None:
        self.grammar = grammar

    @property
    def family(self) -> GCFamily:
        return self.grammar.family

    def parse(self, log_lines: Sequence[str], timeline: Timeline) -> ParseOutcome:
        """Append every recognizable event to ``timeline``.

        Parsing is best effort: a candidate line that does not fit the
        grammar is skipped and counted, it never aborts the batch.
        """
        candidates = 0
        parsed = 0
        skipped = 0

        for line in log_lines:
            line = line.rstrip("\r\n")
            if timeline.runtime_version is None and "ersion" in line:
                timeline.runtime_version = extract_runtime_version(line)

            if not self.grammar.is_candidate(line):
                continue
            candidates += 1

            event = self.parse_line(line)
            if event is None:
                skipped += 1
                log.debug("Skipping unparsed %s line: %s", self.family, line)
                continue

            timeline.add_event(event)
            parsed += 1

        return ParseOutcome(
            total_lines=len(log_lines),
            candidate_lines=candidates,
            parsed_events=parsed,
            skipped_lines=skipped,
        )

    def parse_line(self, line: str) -> GCEvent | None:
        """Extract one event, or None if the line does not fit the grammar."""
        for pattern in self.grammar.line_patterns:
            if match := pattern.search(line):
                try:
                    return self._build_event(match, line)
                except (ValueError, ValidationError) as exc:
                    log.warning("Error parsing %s line %r: %s", self.family, line, exc)
                    return None
        return None

    def _build_event(self, match: re.Match[str], line: str) -> GCEvent:
        grammar = self.grammar
        groups = match.groupdict()

        label = GC_ID_PREFIX.sub("", groups["label"].strip())
        heap_groups = groups
        if grammar.heap_pattern is not None:
            heap_match = grammar.heap_pattern.search(line)
            heap_groups = heap_match.groupdict() if heap_match else {}
            label = grammar.heap_pattern.sub("", label).strip()

        cause = (groups.get("cause") or grammar.default_cause).strip()

        event_fields: dict[str, object] = {
            "gc_type": f"{grammar.label_prefix}{label}",
            "gc_cause": cause,
            "timestamp_ms": round(float(groups["timestamp"]) * 1000),
            "duration_ms": normalize_duration_ms(groups["duration"], groups["duration_unit"]),
            "is_major": grammar.is_major(label),
            "is_system_gc": "System.gc()" in cause,
        }

        for field in ("before", "after", "committed"):
            if heap_groups.get(field):
                event_fields[f"heap_{field}"] = parse_size_to_bytes(
                    heap_groups[field], grammar.bare_unit
                )

        event_fields.update(self._generation_fields(groups, line))
        return GCEvent(**event_fields)

    def _generation_fields(self, groups: dict[str, str | None], line: str) -> dict[str, int]:
        """Young/old breakdown, from the line pattern or the generation block."""
        source: dict[str, str | None] = groups
        if not groups.get("young_before") and self.grammar.generation_pattern is not None:
            # Substring guard: the block is a pair of bracketed K triples
            if "K->" in line and (gen_match := self.grammar.generation_pattern.search(line)):
                source = gen_match.groupdict()

        fields: dict[str, int] = {}
        for name in ("young_before", "young_after", "old_before", "old_after"):
            if value := source.get(name):
                fields[name] = parse_size_to_bytes(value, self.grammar.generation_unit)
        return fields


def extract_runtime_version(line: str) -> str | None:
    """Return the runtime version announced by a header line, if any."""
    if match := UNIFIED_VERSION_PATTERN.search(line):
        return match.group("version")
    if match := HEADER_VERSION_PATTERN.search(line):
        return match.group(0).strip()
    return None


PARSERS: dict[GCFamily, FamilyParser] = {
    family: FamilyParser(grammar) for family, grammar in GRAMMARS.items()
}


def parser_for(family: GCFamily) -> FamilyParser:
    return PARSERS[family]


# ============================================================
# PIPELINE ENTRY POINTS
# ============================================================


def parse_lines(
    log_lines: Sequence[str], source: str | None = None
) -> tuple[Timeline, ParseOutcome]:
    """Detect the collector family, parse all events and aggregate them."""
    family = detect_gc_family(log_lines)
    log.info("Detected GC family: %s", family)

    timeline = Timeline(gc_family=family, source=source)
    outcome = parser_for(family).parse(log_lines, timeline)
    timeline.calculate_statistics()

    log.info(
        "Parsed %d GC events from %d lines (%d candidate lines skipped)",
        outcome.parsed_events,
        outcome.total_lines,
        outcome.skipped_lines,
    )
    return timeline, outcome


def read_log(log_file: Path) -> list[str]:
    """Read a GC log into memory; undecodable bytes are replaced."""
    try:
        with log_file.open(encoding="utf-8", errors="replace") as f:
            return f.read().splitlines()
    except OSError as exc:
        raise LogReadError(f"Cannot read GC log {log_file}: {exc}") from exc
