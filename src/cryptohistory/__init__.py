"""Crypto history package root."""

from cryptohistory.exceptions import (
    AdvisoryWarning,
    CryptoHistoryError,
    DataValidationError,
)
from cryptohistory.history import fetch_history
from cryptohistory.types import FetchHistoryConfig, ResultSet

__all__ = [
    "AdvisoryWarning",
    "CryptoHistoryError",
    "DataValidationError",
    "FetchHistoryConfig",
    "ResultSet",
    "fetch_history",
]
