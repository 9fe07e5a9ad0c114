"""Core type definitions for crypto history retrieval.

All data models use Pydantic BaseModel for automatic validation, JSON
serialization, and better error messages.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, NewType

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    import pandas as pd

# Type aliases for domain-specific identifiers
AssetId = NewType("AssetId", int)

# CoinMarketCap has no OHLCV data before this day.
DATA_FLOOR = date(2013, 4, 29)

DEFAULT_BASE_URL = "https://web-api.coinmarketcap.com/v1/cryptocurrency/ohlcv/historical"

# Sort key for records without a timestamp.
_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)

# Column order of the tabular result.
RESULT_COLUMNS = [
    "timestamp",
    "id",
    "slug",
    "name",
    "symbol",
    "ref_cur",
    "open",
    "high",
    "low",
    "close",
    "volume",
    "market_cap",
    "time_open",
    "time_close",
    "time_high",
    "time_low",
]


# ---------------------------------------------------------------------------
# Base Configuration
# ---------------------------------------------------------------------------


class FrozenModel(BaseModel):
    """Base model with frozen (immutable) configuration."""

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Date/Interval Types
# ---------------------------------------------------------------------------


class DateWindow(FrozenModel):
    """Inclusive range of calendar days to retrieve.

    :param start: First day of the window.
    :param end: Last day of the window.
    """

    start: date
    end: date


class TimePeriod(str, Enum):
    """Granularity at which the endpoint samples raw points."""

    HOURLY = "hourly"
    DAILY = "daily"


class IntervalSpec(FrozenModel):
    """Canonical sampling interval resolved for a date window.

    :param interval: Interval token sent to the endpoint (e.g. "daily", "7d").
    :param time_period: Raw sampling granularity.
    :param raw_points: Hourly or daily buckets spanning the window.
    :param points_per_window: Expected points per asset after the interval
        divisor is applied.
    """

    interval: str
    time_period: TimePeriod
    raw_points: int
    points_per_window: float


# ---------------------------------------------------------------------------
# Asset Types
# ---------------------------------------------------------------------------


class AssetRef(FrozenModel):
    """Asset entry supplied by an asset directory.

    :param id: CoinMarketCap unique id.
    :param slug: URL slug of the asset.
    :param name: Display name.
    :param symbol: Ticker symbol.
    :param first_historical_data: First day with data, if known.
    :param last_historical_data: Last day with data, if known.
    """

    id: AssetId
    slug: str
    name: str
    symbol: str
    first_historical_data: datetime | None = None
    last_historical_data: datetime | None = None


# ---------------------------------------------------------------------------
# Request Types
# ---------------------------------------------------------------------------


class BatchLimits(FrozenModel):
    """Server-side constraints used to size request batches.

    The endpoint does not document these; they are observed values.

    :param max_rows: Maximum rows the endpoint returns per request.
    :param max_url_length: Practical upper bound on request URL length.
    :param url_overhead: Characters of the URL not taken by the id list.
    :param chars_per_id: Average characters per comma-joined id.
    """

    max_rows: int = Field(default=10000, gt=0)
    max_url_length: int = Field(default=2000, gt=0)
    url_overhead: int = Field(default=142, ge=0)
    chars_per_id: float = Field(default=6, gt=0)


class Batch(FrozenModel):
    """Group of assets retrieved with a single HTTP request.

    :param index: Position of the batch in the plan.
    :param asset_ids: Asset ids covered by the request.
    :param request_url: Fully built request URL.
    """

    index: int
    asset_ids: list[AssetId]
    request_url: str


class FetchOutcome(FrozenModel):
    """Result of fetching one batch.

    :param batch: The batch that was requested.
    :param payload: The ``data`` document of the response, or None if every
        attempt failed.
    :param error: Last error message when the batch failed.
    """

    batch: Batch
    payload: Any = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.payload is None


# ---------------------------------------------------------------------------
# Result Types
# ---------------------------------------------------------------------------


class QuotePoint(FrozenModel):
    """One OHLCV point for an asset in one reference currency.

    :param timestamp: Timestamp of the entry in the source database.
    :param id: Asset id.
    :param slug: Asset URL slug, None until enriched from the directory.
    :param name: Asset name as reported by the endpoint.
    :param symbol: Asset symbol as reported by the endpoint.
    :param ref_cur: Reference currency the prices are denominated in.
    :param open: Market open.
    :param high: Market high.
    :param low: Market low.
    :param close: Market close.
    :param volume: Volume over the bucket.
    :param market_cap: Close times circulating supply.
    :param time_open: Timestamp of the open.
    :param time_close: Timestamp of the close.
    :param time_high: Timestamp of the high.
    :param time_low: Timestamp of the low.
    """

    timestamp: datetime | None
    id: AssetId
    slug: str | None = None
    name: str
    symbol: str
    ref_cur: str
    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float | None = None
    volume: float | None = None
    market_cap: float | None = None
    time_open: datetime | None = None
    time_close: datetime | None = None
    time_high: datetime | None = None
    time_low: datetime | None = None


class DiagnosticKind(str, Enum):
    """Kind of non-fatal condition recorded during a run."""

    ADVISORY = "advisory"
    FETCH_FAILURE = "fetch_failure"


class Diagnostic(FrozenModel):
    """Non-fatal condition recorded during a run.

    :param kind: Diagnostic category.
    :param message: Human readable description.
    :param asset_id: Asset concerned, if any.
    :param batch_index: Batch concerned, if any.
    """

    kind: DiagnosticKind
    message: str
    asset_id: AssetId | None = None
    batch_index: int | None = None


class RunInfo(FrozenModel):
    """Run metadata attached to a result set.

    :param date_window: Requested date window.
    :param interval: Interval token used.
    :param time_period: Raw sampling granularity used.
    :param convert: Reference currencies requested.
    :param batch_count: Number of HTTP batches planned.
    :param failed_batches: Indices of batches whose retries were exhausted.
    :param diagnostics: Non-fatal conditions encountered.
    """

    date_window: DateWindow
    interval: str
    time_period: TimePeriod
    convert: list[str]
    batch_count: int = 0
    failed_batches: list[int] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class ResultSet(FrozenModel):
    """Flat OHLCV records for all requested assets plus run metadata.

    Record order follows batch completion and is not chronological; use
    :meth:`sorted` when determinism matters.

    :param records: Normalized and enriched quote points.
    :param info: Run metadata.
    """

    records: list[QuotePoint] = Field(default_factory=list)
    info: RunInfo

    def __len__(self) -> int:
        return len(self.records)

    def asset_ids(self) -> set[int]:
        """Ids of the assets present in the result."""
        return {r.id for r in self.records}

    def sorted(self) -> ResultSet:
        """Return a copy ordered by ``(id, ref_cur, timestamp)``."""
        records = sorted(
            self.records,
            key=lambda r: (r.id, r.ref_cur, r.timestamp or _EARLIEST),
        )
        return self.model_copy(update={"records": records})

    def to_dataframe(self) -> pd.DataFrame:
        """Convert the records to a DataFrame.

        Run metadata is attached as ``df.attrs["info"]``.
        """
        import pandas as pd

        df = pd.DataFrame(
            [r.model_dump() for r in self.records], columns=RESULT_COLUMNS
        )
        df.attrs["info"] = self.info.model_dump(mode="json")
        return df


# ---------------------------------------------------------------------------
# Configuration Types
# ---------------------------------------------------------------------------


class FetchHistoryConfig(FrozenModel):
    """Configuration for a historical OHLCV retrieval.

    :param convert: Reference currencies to quote prices in.
    :param limit: Retrieve only the first n assets of the directory.
    :param start_date: First day to retrieve, data floor if None.
    :param end_date: Last day to retrieve, today if None.
    :param interval: Sampling interval token.
    :param sleep: Seconds to pause before every request.
    :param wait: Seconds to wait before retrying a failed request.
    :param final_cooldown: Block for 60 seconds after the run.
    :param single_mode: Issue one request per asset.
    :param timeout: Per-request HTTP timeout in seconds.
    :param base_url: Historical OHLCV endpoint.
    :param limits: Server constraints for batch sizing.
    :param directory: Asset directory type (e.g. "csv", "static").
    :param directory_params: Directory-specific parameters.
    :param output: Where the CLI writes the result, if anywhere.
    """

    convert: list[str] = Field(default_factory=lambda: ["USD"])
    limit: int | None = Field(default=None, gt=0)
    start_date: date | None = None
    end_date: date | None = None
    interval: str | None = "daily"
    sleep: float = Field(default=0.0, ge=0)
    wait: float = Field(default=60.0, ge=0)
    final_cooldown: bool = False
    single_mode: bool = False
    timeout: float | None = Field(default=30.0, gt=0)
    base_url: str = DEFAULT_BASE_URL
    limits: BatchLimits = Field(default_factory=BatchLimits)
    directory: str = "csv"
    directory_params: dict[str, Any] = Field(default_factory=dict)
    output: str | None = None


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------

__all__ = [
    # Type aliases
    "AssetId",
    # Constants
    "DATA_FLOOR",
    "DEFAULT_BASE_URL",
    "RESULT_COLUMNS",
    # Base models
    "FrozenModel",
    # Date/Interval
    "DateWindow",
    "TimePeriod",
    "IntervalSpec",
    # Assets
    "AssetRef",
    # Requests
    "BatchLimits",
    "Batch",
    "FetchOutcome",
    # Results
    "QuotePoint",
    "DiagnosticKind",
    "Diagnostic",
    "RunInfo",
    "ResultSet",
    # Configuration
    "FetchHistoryConfig",
]
