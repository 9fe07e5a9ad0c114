"""Asset directory implementations.

An asset directory supplies the universe of assets to retrieve and the slug
lookup used to enrich results. This module provides an abstract interface
plus in-memory and CSV backed implementations.
"""

from __future__ import annotations

import csv
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

from pydantic import ValidationError

from cryptohistory.exceptions import DirectoryError
from cryptohistory.types import AssetId, AssetRef

if TYPE_CHECKING:
    from cryptohistory.types import FetchHistoryConfig


class AssetDirectory(ABC):
    """Abstract base class for asset directories.

    All directory implementations must inherit from this class and implement
    the `list_assets` method.
    """

    @abstractmethod
    def list_assets(self) -> list[AssetRef]:
        """List the assets known to the directory.

        :returns: Assets in directory order (e.g. by rank).
        :raises DirectoryError: If the directory cannot be read.
        """
        ...

    def slug_map(self) -> dict[int, str]:
        """Map asset ids to slugs."""
        return {asset.id: asset.slug for asset in self.list_assets()}


class StaticAssetDirectory(AssetDirectory):
    """Directory over an in-memory list of assets.

    :param assets: Assets, as AssetRef objects or mappings with the same keys.
    """

    def __init__(self, assets: Iterable[AssetRef | dict[str, Any]] = ()) -> None:
        """Initialize static asset directory.

        :param assets: Assets or mappings with AssetRef fields.
        :raises DirectoryError: If an entry is not a valid asset.
        """
        try:
            self.assets = [
                a if isinstance(a, AssetRef) else AssetRef.model_validate(a) for a in assets
            ]
        except (ValidationError, TypeError) as e:
            raise DirectoryError(f"Invalid static asset entry: {e}") from e

    def list_assets(self) -> list[AssetRef]:
        return list(self.assets)


class CSVAssetDirectory(AssetDirectory):
    """Directory that reads assets from a CSV file.

    Expected CSV format (default columns):
    - id: CoinMarketCap id
    - slug: URL slug
    - name: Asset name
    - symbol: Ticker symbol
    - first_historical_data, last_historical_data: optional ISO timestamps

    :param source_params: Required parameters:
        - file_path: Path to the CSV file.
        Optional parameters:
        - delimiter: CSV delimiter (default: ",")
    """

    def __init__(self, source_params: dict[str, Any] | None = None) -> None:
        """Initialize CSV asset directory.

        :param source_params: Configuration with file_path.
        :raises DirectoryError: If file_path is not provided.
        """
        self.params = source_params or {}
        self.file_path = self.params.get("file_path")
        if not self.file_path:
            raise DirectoryError("CSVAssetDirectory requires 'file_path' in directory_params")
        self.delimiter = self.params.get("delimiter", ",")

    @staticmethod
    def _parse_optional_datetime(value: str | None) -> datetime | None:
        if not value:
            return None
        try:
            ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise DirectoryError(f"Failed to parse timestamp '{value}': {e}") from e
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts

    def list_assets(self) -> list[AssetRef]:
        """Read assets from the CSV file.

        :returns: Assets in file order.
        :raises DirectoryError: If the file is missing or a row is invalid.
        """
        path = Path(self.file_path)
        if not path.exists():
            raise DirectoryError(f"CSV file not found: {self.file_path}")

        assets: list[AssetRef] = []
        try:
            with open(path, newline="", encoding="utf-8") as f:
                reader = csv.DictReader(f, delimiter=self.delimiter)
                for row in reader:
                    try:
                        assets.append(
                            AssetRef(
                                id=AssetId(int(row["id"])),
                                slug=row["slug"],
                                name=row["name"],
                                symbol=row["symbol"],
                                first_historical_data=self._parse_optional_datetime(
                                    row.get("first_historical_data")
                                ),
                                last_historical_data=self._parse_optional_datetime(
                                    row.get("last_historical_data")
                                ),
                            )
                        )
                    except (KeyError, ValueError, TypeError) as e:
                        raise DirectoryError(f"Failed to parse row {row}: {e}") from e
        except csv.Error as e:
            raise DirectoryError(f"CSV parsing error: {e}") from e
        except OSError as e:
            raise DirectoryError(f"Failed to read CSV file: {e}") from e

        return assets


def resolve_asset_directory(config: FetchHistoryConfig) -> AssetDirectory:
    """Construct an asset directory from configuration.

    :param config: FetchHistoryConfig with directory and directory_params.
    :returns: AssetDirectory instance for the specified type.
    :raises DirectoryError: If the directory type is unrecognized.
    """
    directory_type = config.directory.lower()

    if directory_type == "csv":
        return CSVAssetDirectory(config.directory_params)
    elif directory_type == "static":
        return StaticAssetDirectory(config.directory_params.get("assets", []))
    else:
        raise DirectoryError(
            f"Unrecognized asset directory type: '{config.directory}'. "
            f"Supported types: csv, static"
        )


__all__ = [
    "AssetDirectory",
    "StaticAssetDirectory",
    "CSVAssetDirectory",
    "resolve_asset_directory",
]
