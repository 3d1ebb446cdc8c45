"""GC log analysis: pause statistics, tuning issues and memory leak detection."""

from gc_insight.analyzer import analyze
from gc_insight.config import AnalysisThresholds, load_thresholds
from gc_insight.detection import detect_gc_family
from gc_insight.errors import GCInsightError, LogReadError
from gc_insight.leak import detect_memory_leak, quick_leak_check
from gc_insight.models import (
    AnalysisReport,
    GCEvent,
    Issue,
    LeakAnalysisResult,
    ParseOutcome,
    Timeline,
)
from gc_insight.parsers import parse_lines, parser_for, read_log

__version__ = "1.0.0"

__all__ = [
    "AnalysisReport",
    "AnalysisThresholds",
    "GCEvent",
    "GCInsightError",
    "Issue",
    "LeakAnalysisResult",
    "LogReadError",
    "ParseOutcome",
    "Timeline",
    "analyze",
    "detect_gc_family",
    "detect_memory_leak",
    "load_thresholds",
    "parse_lines",
    "parser_for",
    "quick_leak_check",
    "read_log",
]
