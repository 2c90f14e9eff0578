"""
Custom exceptions for the Company Website Resolver.
"""


class SiteFinderError(Exception):
    """Base exception for all Company Website Resolver errors."""
    pass


class ConfigurationError(SiteFinderError):
    """Raised when there's an error in configuration loading or validation."""
    pass


class CSVProcessingError(SiteFinderError):
    """Raised when there's an error processing CSV files."""
    pass


class SearchAPIError(SiteFinderError):
    """Raised when there's an error with the external search capability."""
    pass


class RateLimitError(SearchAPIError):
    """Raised when API rate limit is still exceeded after all retries."""
    pass


class SystemicError(SiteFinderError):
    """Raised for failures that would hit every company in the batch alike.

    Deliberately not a SearchAPIError, so a single stage cannot absorb it.
    """
    pass


class AuthenticationError(SystemicError):
    """Raised when the search provider rejects our credentials."""
    pass


class ProviderUnavailableError(SystemicError):
    """Raised when the search provider stays unreachable call after call."""
    pass


class BatchAbortedError(SiteFinderError):
    """Raised when a batch run is stopped by a systemic failure."""

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause


class StateError(SiteFinderError):
    """Raised when there's an error in state management or checkpointing."""
    pass
