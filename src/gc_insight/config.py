"""Analysis thresholds and their environment-backed loader."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalysisThresholds(BaseModel):
    """Configurable thresholds for issue rules and leak detection.

    Immutable and passed explicitly to each analysis call, so analyses with
    different thresholds can run side by side.
    """

    model_config = ConfigDict(frozen=True)

    long_pause_ms: float = Field(default=100.0, ge=0.0)
    critical_pause_ms: float = Field(default=1000.0, ge=0.0)
    gc_time_percentage: float = Field(default=10.0, ge=0.0)
    memory_efficiency_percentage: float = Field(default=50.0, ge=0.0, le=100.0)

    leak_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    min_events_for_leak_analysis: int = Field(default=10, ge=1)


DEFAULT_THRESHOLDS = AnalysisThresholds()


class Settings(BaseSettings):
    """Thresholds read from ``GC_INSIGHT_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="GC_INSIGHT_", extra="ignore")

    long_pause_ms: float = DEFAULT_THRESHOLDS.long_pause_ms
    critical_pause_ms: float = DEFAULT_THRESHOLDS.critical_pause_ms
    gc_time_percentage: float = DEFAULT_THRESHOLDS.gc_time_percentage
    memory_efficiency_percentage: float = DEFAULT_THRESHOLDS.memory_efficiency_percentage
    leak_confidence: float = DEFAULT_THRESHOLDS.leak_confidence
    min_events_for_leak_analysis: int = DEFAULT_THRESHOLDS.min_events_for_leak_analysis


def load_thresholds(**overrides: Any) -> AnalysisThresholds:
    """Build thresholds from the environment, with non-None overrides on top."""
    values = Settings().model_dump()
    values.update({key: value for key, value in overrides.items() if value is not None})
    return AnalysisThresholds(**values)
