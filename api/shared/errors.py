"""
Domain exceptions for the analytics engines and API routes.

Engines never raise for dirty data, empty samples or zero variance; these
exceptions cover contract violations and user input the API rejects.
"""


class AnalyticsError(Exception):
    """Base class for analytics backend errors."""


class CSVFormatError(AnalyticsError):
    """A CSV export could not be ingested (header or structure problem)."""


class UnknownFieldError(AnalyticsError, ValueError):
    """A field name does not belong to the numeric record schema."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown numeric field: {name!r}")


class UnsupportedOperationError(AnalyticsError):
    """No handler is registered for a compute request kind."""


class NoDataError(AnalyticsError):
    """No repository data has been loaded in the current session."""

    def __init__(self, message: str = "No repository data loaded"):
        super().__init__(message)
