"""Crypto history exception hierarchy.

All fatal errors derive from :class:`CryptoHistoryError` so callers can catch
them uniformly. Non-fatal conditions are reported as :class:`AdvisoryWarning`
through the :mod:`warnings` module and never interrupt a run.
"""

from __future__ import annotations


class CryptoHistoryError(Exception):
    """Base class for crypto history exceptions.

    Derived exceptions should extend this class so that callers can catch all
    package-specific errors uniformly.
    """


class ConfigError(CryptoHistoryError):
    """Raised when configuration files or parameters are invalid."""


class DataValidationError(CryptoHistoryError):
    """Raised when a request fails validation before anything is fetched.

    Named DataValidationError to avoid conflict with pydantic's ValidationError.
    """


class DirectoryError(CryptoHistoryError):
    """Raised when the asset directory cannot be read."""


class FetchError(CryptoHistoryError):
    """Raised when a single HTTP request for a batch fails.

    The fetcher retries and finally absorbs these, so they never escape a
    batch boundary.
    """


class AdvisoryWarning(UserWarning):
    """Non-fatal condition worth reporting; execution continues.

    :param message: Description of the condition.
    :param asset_id: Asset concerned, if any.
    """

    def __init__(self, message: str, asset_id: int | None = None) -> None:
        super().__init__(message)
        self.asset_id = asset_id


__all__ = [
    "CryptoHistoryError",
    "ConfigError",
    "DataValidationError",
    "DirectoryError",
    "FetchError",
    "AdvisoryWarning",
]
