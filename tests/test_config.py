import pytest
from pydantic import ValidationError

from gc_insight.config import DEFAULT_THRESHOLDS, AnalysisThresholds, load_thresholds


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for field in AnalysisThresholds.model_fields:
        monkeypatch.delenv(f"GC_INSIGHT_{field.upper()}", raising=False)


def test_defaults():
    assert load_thresholds() == DEFAULT_THRESHOLDS
    assert DEFAULT_THRESHOLDS.long_pause_ms == 100.0
    assert DEFAULT_THRESHOLDS.critical_pause_ms == 1000.0
    assert DEFAULT_THRESHOLDS.gc_time_percentage == 10.0
    assert DEFAULT_THRESHOLDS.memory_efficiency_percentage == 50.0
    assert DEFAULT_THRESHOLDS.leak_confidence == 0.7
    assert DEFAULT_THRESHOLDS.min_events_for_leak_analysis == 10


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("GC_INSIGHT_LONG_PAUSE_MS", "50")
    monkeypatch.setenv("GC_INSIGHT_MIN_EVENTS_FOR_LEAK_ANALYSIS", "20")

    thresholds = load_thresholds()
    assert thresholds.long_pause_ms == 50.0
    assert thresholds.min_events_for_leak_analysis == 20
    assert thresholds.critical_pause_ms == 1000.0


def test_overrides_win_over_environment(monkeypatch):
    monkeypatch.setenv("GC_INSIGHT_LEAK_CONFIDENCE", "0.5")

    thresholds = load_thresholds(leak_confidence=0.9, critical_pause_ms=None)
    assert thresholds.leak_confidence == 0.9
    assert thresholds.critical_pause_ms == 1000.0


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        AnalysisThresholds(leak_confidence=1.5)
    with pytest.raises(ValidationError):
        load_thresholds(min_events_for_leak_analysis=0)


def test_thresholds_are_frozen():
    with pytest.raises(ValidationError):
        DEFAULT_THRESHOLDS.long_pause_ms = 1.0
