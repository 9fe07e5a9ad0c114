"""Request batch planning.

Splits a set of asset ids into the smallest number of HTTP requests that
respects the endpoint's row limit and a practical URL length budget.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence, TypeVar

from cryptohistory.intervals import to_unix_seconds
from cryptohistory.types import (
    DEFAULT_BASE_URL,
    AssetId,
    Batch,
    BatchLimits,
    DateWindow,
    IntervalSpec,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

URL_TEMPLATE = (
    "{base_url}?convert={convert}&time_end={time_end}&time_start={time_start}"
    "&interval={interval}&time_period={time_period}&id={ids}"
)


def batch_count(asset_count: int, interval_spec: IntervalSpec, limits: BatchLimits) -> int:
    """Minimal number of requests for ``asset_count`` assets.

    The first bound keeps each response under ``limits.max_rows`` rows, the
    second keeps the comma-joined id list within the URL length budget.

    :param asset_count: Number of distinct assets.
    :param interval_spec: Resolved interval for the window.
    :param limits: Server constraints.
    :returns: Number of batches, between 1 and ``asset_count`` (0 if no assets).
    """
    if asset_count <= 0:
        return 0

    # A window longer than max_rows still needs one asset per request.
    assets_per_request = max(1, math.floor(limits.max_rows / interval_spec.points_per_window))
    by_rows = math.ceil(asset_count / assets_per_request)

    ids_per_url = (limits.max_url_length - limits.url_overhead) / limits.chars_per_id
    by_url = math.ceil(asset_count / ids_per_url) if ids_per_url > 0 else asset_count

    return min(asset_count, max(1, by_rows, by_url))


def partition(items: Sequence[T], n: int) -> list[list[T]]:
    """Distribute ``items`` round-robin over ``n`` groups.

    Item ``i`` lands in group ``i mod n``, so group sizes differ by at most
    one and keep the input order within each group.
    """
    if n < 1:
        raise ValueError(f"Number of groups must be positive, got {n}")
    groups: list[list[T]] = [[] for _ in range(n)]
    for index, item in enumerate(items):
        groups[index % n].append(item)
    return groups


def build_request_url(
    asset_ids: Iterable[int],
    interval_spec: IntervalSpec,
    window: DateWindow,
    convert: Sequence[str],
    base_url: str = DEFAULT_BASE_URL,
) -> str:
    """Build the historical OHLCV request URL for a group of assets."""
    return URL_TEMPLATE.format(
        base_url=base_url,
        convert=",".join(convert),
        time_end=to_unix_seconds(window.end),
        time_start=to_unix_seconds(window.start),
        interval=interval_spec.interval,
        time_period=interval_spec.time_period.value,
        ids=",".join(str(i) for i in asset_ids),
    )


def plan(
    asset_ids: Iterable[int],
    interval_spec: IntervalSpec,
    window: DateWindow,
    convert: Sequence[str] = ("USD",),
    single_mode: bool = False,
    limits: BatchLimits | None = None,
    base_url: str = DEFAULT_BASE_URL,
) -> list[Batch]:
    """Plan the HTTP requests needed to retrieve ``asset_ids``.

    :param asset_ids: Asset ids to retrieve; duplicates are dropped.
    :param interval_spec: Resolved interval.
    :param window: Date window to retrieve.
    :param convert: Reference currencies.
    :param single_mode: One request per asset, ignoring capacity limits.
    :param limits: Server constraints, defaults if None.
    :param base_url: Historical OHLCV endpoint.
    :returns: Batches in request order.
    """
    limits = limits or BatchLimits()
    ids = [AssetId(i) for i in dict.fromkeys(asset_ids)]
    if not ids:
        return []

    n = len(ids) if single_mode else batch_count(len(ids), interval_spec, limits)
    groups = partition(ids, n)

    logger.info(
        "Planned %d batch(es) for %d asset(s) (single_mode=%s)",
        n,
        len(ids),
        single_mode,
    )
    return [
        Batch(
            index=index,
            asset_ids=group,
            request_url=build_request_url(group, interval_spec, window, convert, base_url),
        )
        for index, group in enumerate(groups)
    ]


__all__ = [
    "URL_TEMPLATE",
    "batch_count",
    "partition",
    "build_request_url",
    "plan",
]
