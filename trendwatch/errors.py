"""Exceptions raised at the public operation boundary of the trend engine.

Each wraps the underlying store failure as ``__cause__`` so callers get a
generic message while logs keep the original traceback.
"""


class TrendwatchError(Exception):
    """Base class for engine failures surfaced to callers."""


class TrendAnalysisError(TrendwatchError):
    def __init__(self, message: str = "Trend analysis failed") -> None:
        super().__init__(message)


class AlertGenerationError(TrendwatchError):
    def __init__(self, message: str = "Alert generation failed") -> None:
        super().__init__(message)


class AlertQueryError(TrendwatchError):
    def __init__(self, message: str = "Could not load alerts") -> None:
        super().__init__(message)


class SummaryError(TrendwatchError):
    def __init__(self, message: str = "Performance summary failed") -> None:
        super().__init__(message)


class SampleIngestionError(TrendwatchError):
    def __init__(self, message: str = "Could not save performance sample") -> None:
        super().__init__(message)


class MaintenanceError(TrendwatchError):
    def __init__(self, message: str = "Performance data maintenance failed") -> None:
        super().__init__(message)
