"""Exceptions for timeseries_toolkit."""

class TimeSeriesError(Exception):
    """Base exception for timeseries_toolkit."""


class BackendConnectionError(TimeSeriesError):
    """Connection to the backend failed."""


class BackendAuthenticationError(TimeSeriesError):
    """Authentication failed."""


class QueryError(TimeSeriesError):
    """Query execution failed."""


class CatalogFetchError(TimeSeriesError):
    """Fetching catalog children or tag values failed."""


class WriteError(TimeSeriesError):
    """Writing points failed."""


class UnsafeOperationError(TimeSeriesError):
    """Raised when a write operation is blocked by safety rules."""


class UnsupportedOperationError(TimeSeriesError):
    """Raised when an operation is not supported by the backend."""
