"""Custom exceptions for mac-data-core."""


class MacDataError(Exception):
    """Base exception for all mac-data-core errors."""


class ConfigurationError(MacDataError):
    """Exception raised for configuration related errors."""


class MessageValidationError(MacDataError):
    """Exception raised when a source record cannot form a valid message."""


class SourceFetchError(MacDataError):
    """Exception raised when an upstream mail source fails to return records."""


class CacheError(MacDataError):
    """Base exception for result cache errors."""


class CacheUnavailableError(CacheError):
    """Exception raised when the cache storage cannot be read or written.

    Callers treat this as a cache miss and fall back to the upstream fetch.
    """
