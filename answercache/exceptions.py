"""
answercache exception hierarchy.

All custom exceptions inherit from AnswerCacheException so callers can
catch a single base type when they want a broad safety net.
"""


class AnswerCacheException(Exception):
    """Base exception for all answercache errors."""


class ConfigurationError(AnswerCacheException, ValueError):
    """Raised when a cache is wired with missing or invalid configuration."""
