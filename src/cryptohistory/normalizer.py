"""Normalization of nested OHLCV responses into flat quote points."""

from __future__ import annotations

import logging
import warnings
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Sequence

from cryptohistory.exceptions import AdvisoryWarning
from cryptohistory.fetcher import absorbing_failures
from cryptohistory.types import AssetId, Batch, FetchOutcome, QuotePoint

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"

PRICE_FIELDS = ("open", "high", "low", "close", "volume", "market_cap")
TIME_FIELDS = ("time_open", "time_close", "time_high", "time_low")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a ``YYYY-MM-DDTHH:MM:SS`` timestamp as UTC.

    Fractional seconds and a trailing zone designator are ignored.

    :raises ValueError: If the value does not start with the expected form.
    """
    if value is None:
        return None
    return datetime.strptime(str(value)[:19], TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def unpack(data: Any, batch: Batch) -> list[tuple[AssetId, dict[str, Any] | None]]:
    """Split a batch's ``data`` document into per-asset payloads.

    A single-id response carries the asset payload directly, a multi-id
    response is keyed by asset id. Requested ids missing from the response
    pair with ``None``.

    :param data: The ``data`` document, or None if the batch failed.
    :param batch: The batch the document answers.
    :returns: ``(asset_id, payload)`` pairs in request order.
    """
    if data is None:
        return [(asset_id, None) for asset_id in batch.asset_ids]

    if isinstance(data, dict) and "quotes" in data:
        asset_id = AssetId(int(data.get("id", batch.asset_ids[0])))
        pairs: list[tuple[AssetId, dict[str, Any] | None]] = [(asset_id, data)]
        pairs.extend((i, None) for i in batch.asset_ids if i != asset_id)
        return pairs

    if not isinstance(data, dict):
        logger.warning("Unexpected data document for batch %d: %r", batch.index, type(data))
        return [(asset_id, None) for asset_id in batch.asset_ids]

    keyed = {str(key): value for key, value in data.items()}
    pairs = [(asset_id, keyed.pop(str(asset_id), None)) for asset_id in batch.asset_ids]
    # The endpoint may answer for ids it was not asked about; keep them.
    for key, value in keyed.items():
        if isinstance(value, dict) and str(value.get("id", key)).isdigit():
            pairs.append((AssetId(int(value.get("id", key))), value))
    return pairs


def _currencies(quotes: Iterable[dict[str, Any]]) -> list[str]:
    seen: dict[str, None] = {}
    for entry in quotes:
        for currency in (entry.get("quote") or {}):
            seen.setdefault(currency, None)
    return list(seen)


def normalize(asset_id: int, payload: dict[str, Any] | None) -> list[QuotePoint]:
    """Flatten one asset's payload into quote points.

    Points are grouped by reference currency, then follow the payload's own
    order. ``id``, ``name`` and ``symbol`` come from the payload envelope.
    An absent payload or one without quotes yields an empty list and a
    single :class:`AdvisoryWarning` naming the asset.

    :param asset_id: Id the payload was requested for.
    :param payload: As-received asset payload, or None.
    :returns: Quote points, not yet enriched with a slug.
    :raises ValueError: If a timestamp or price cannot be parsed.
    """
    payload = payload or {}
    quotes = payload.get("quotes") or []
    if not quotes:
        name = payload.get("name")
        label = f"{name} (id {asset_id})" if name else f"id {asset_id}"
        warnings.warn(
            AdvisoryWarning(
                f"Coin {label} does not have data available, skipping",
                asset_id=asset_id,
            ),
            stacklevel=2,
        )
        return []

    envelope = {
        "id": AssetId(int(payload.get("id", asset_id))),
        "name": str(payload.get("name") or ""),
        "symbol": str(payload.get("symbol") or ""),
    }

    points: list[QuotePoint] = []
    for currency in _currencies(quotes):
        for entry in quotes:
            quote = (entry.get("quote") or {}).get(currency)
            if quote is None:
                continue
            points.append(
                QuotePoint(
                    timestamp=parse_timestamp(quote.get("timestamp")),
                    ref_cur=currency,
                    **envelope,
                    **{field: quote.get(field) for field in PRICE_FIELDS},
                    **{field: parse_timestamp(entry.get(field)) for field in TIME_FIELDS},
                )
            )
    return points


def _report_malformed(error: Exception, asset_id: int, payload: Any) -> None:
    warnings.warn(
        AdvisoryWarning(
            f"Coin id {asset_id} returned malformed data, skipping: {error}",
            asset_id=asset_id,
        ),
        stacklevel=3,
    )


normalize_safely = absorbing_failures(
    otherwise=(), on_failure=_report_malformed, absorb=(ValueError, TypeError, AttributeError)
)(normalize)


def normalize_outcomes(
    outcomes: Iterable[FetchOutcome],
    on_progress: Callable[[int, int], None] | None = None,
) -> list[Sequence[QuotePoint]]:
    """Normalize every asset payload of every fetched batch.

    :param outcomes: Fetch outcomes in completion order.
    :param on_progress: Called with ``(completed, total)`` after each asset.
    :returns: One sequence of quote points per asset, in completion order.
    """
    pairs = [
        pair for outcome in outcomes for pair in unpack(outcome.payload, outcome.batch)
    ]
    normalized: list[Sequence[QuotePoint]] = []
    for completed, (asset_id, payload) in enumerate(pairs, start=1):
        normalized.append(normalize_safely(asset_id, payload))
        if on_progress is not None:
            on_progress(completed, len(pairs))
    return normalized


__all__ = [
    "TIMESTAMP_FORMAT",
    "parse_timestamp",
    "unpack",
    "normalize",
    "normalize_safely",
    "normalize_outcomes",
]
