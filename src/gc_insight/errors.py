"""Exceptions raised by gc-insight."""


class GCInsightError(Exception):
    """Base class for gc-insight errors."""


class LogReadError(GCInsightError):
    """The GC log could not be read from its source."""
