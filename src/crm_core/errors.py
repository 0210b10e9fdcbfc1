"""
Exception taxonomy for the CRM core.

Empty results are never errors. Malformed numbers are coerced, not raised.
Only an unreachable store, missing credentials and an all-empty sniper
search surface as exceptions.
"""


class CRMError(Exception):
    """Base class for every error raised by this project."""


class ConfigError(CRMError):
    """Required configuration (credentials, paths) is missing."""


class DataSourceUnavailable(CRMError):
    """The external store could not be reached or a query failed."""

    def __init__(self, message: str, table: str | None = None):
        super().__init__(message)
        self.table = table


class EmptySearchError(CRMError, ValueError):
    """A sniper search was requested with every criterion empty."""
