"""Collector family detection from textual log markers."""

from __future__ import annotations

import re
from collections.abc import Iterable

from gc_insight.models import GCFamily

DEFAULT_FAMILY: GCFamily = "G1"

# Checked in this order on every line; the first hit decides the family.
FAMILY_MARKERS: tuple[tuple[GCFamily, tuple[str, ...]], ...] = (
    ("G1", ("g1", "garbage-first")),
    ("Z", ("zgc", "z garbage")),
    ("Parallel", ("parallelgc", " ps ", "psyounggen")),
)

COLLECTOR_FLAG_PATTERN: re.Pattern[str] = re.compile(
    r"-XX:\+Use(?P<collector>G1GC|ZGC|ParallelOldGC|ParallelGC)\b", re.IGNORECASE
)

_FLAG_FAMILIES: dict[str, GCFamily] = {
    "g1gc": "G1",
    "zgc": "Z",
    "parallelgc": "Parallel",
    "paralleloldgc": "Parallel",
}


def detect_gc_family(log_lines: Iterable[str]) -> GCFamily:
    """Classify a log's collector family.

    An explicit ``-XX:+Use<Collector>`` flag anywhere in the log overrides
    keyword markers. Otherwise the first line carrying a keyword marker
    decides, and G1 is assumed when nothing matches.
    """
    keyword_family: GCFamily | None = None

    for line in log_lines:
        # Substring guard: only run regex if a flag could be present
        if "-XX:" in line and (match := COLLECTOR_FLAG_PATTERN.search(line)):
            return _FLAG_FAMILIES[match.group("collector").lower()]

        if keyword_family is None:
            keyword_family = _match_keyword(line.lower())

    return keyword_family or DEFAULT_FAMILY


def _match_keyword(lower_line: str) -> GCFamily | None:
    for family, markers in FAMILY_MARKERS:
        if any(marker in lower_line for marker in markers):
            return family
    return None
