"""
Error taxonomy for the refresh pipeline and the catalog endpoints.

Each exception maps to one HTTP outcome in main.py. Entries dropped by the
estimator are not errors and never surface here.
"""

from typing import Optional, Dict, Any


class CountryAPIError(Exception):
    """Base exception for all application errors."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.error)
        self.message = message or self.error

    def to_dict(self) -> Dict[str, Any]:
        """Body returned to API clients."""
        return {"error": self.error}


class ExternalSourceUnavailable(CountryAPIError):
    """
    One of the two upstream datasets could not be fetched.

    Raised for timeouts, transport errors, non-success responses and
    payloads that do not have the expected shape.
    """

    status_code = 503
    error = "External data source unavailable"

    def __init__(self, source: str, reason: Optional[str] = None):
        self.source = source
        self.reason = reason
        super().__init__(f"[{source}] {reason}" if reason else f"[{source}] unavailable")

    @property
    def details(self) -> str:
        return f"Could not fetch data from {self.source}"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "details": self.details}


class RefreshInProgress(CountryAPIError):
    """Another refresh pass currently holds the refresh lock."""

    status_code = 409
    error = "Refresh already in progress"


class RefreshFailed(CountryAPIError):
    """
    Unexpected failure after fetching succeeded.

    Upserts completed before the failure stay committed; `saved` reports
    how many there were.
    """

    status_code = 500
    error = "Internal server error"

    def __init__(self, saved: int = 0, message: Optional[str] = None):
        self.saved = saved
        super().__init__(message)


class CountryNotFound(CountryAPIError):
    status_code = 404
    error = "Country not found"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Country not found: {name}")


class InvalidQuery(CountryAPIError):
    """A list filter or sort parameter was rejected."""

    status_code = 400
    error = "Validation failed"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")
        self.field_message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "details": {self.field: self.field_message}}
