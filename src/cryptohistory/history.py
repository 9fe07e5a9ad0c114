"""End-to-end retrieval of historical OHLCV data.

Runs the pipeline interval resolution -> batch planning -> resilient fetch
-> normalization -> assembly for a :class:`FetchHistoryConfig`.
"""

from __future__ import annotations

import logging
import time
import warnings
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator

from cryptohistory import intervals, planner
from cryptohistory.assembler import assemble
from cryptohistory.directory import AssetDirectory, resolve_asset_directory
from cryptohistory.exceptions import AdvisoryWarning
from cryptohistory.fetcher import ResilientFetcher
from cryptohistory.normalizer import normalize_outcomes
from cryptohistory.types import (
    DATA_FLOOR,
    DateWindow,
    Diagnostic,
    DiagnosticKind,
    FetchHistoryConfig,
    ResultSet,
    RunInfo,
)

logger = logging.getLogger(__name__)


def build_window(config: FetchHistoryConfig) -> DateWindow:
    """Date window of a config; data floor to today (UTC) by default."""
    return DateWindow(
        start=config.start_date or DATA_FLOOR,
        end=config.end_date or datetime.now(timezone.utc).date(),
    )


@contextmanager
def collect_advisories(diagnostics: list[Diagnostic]) -> Iterator[None]:
    """Record advisory warnings raised in the block as diagnostics.

    Every caught warning is re-emitted afterwards so callers and warning
    filters still see it.
    """
    caught: list[warnings.WarningMessage] = []
    try:
        with warnings.catch_warnings(record=True) as recorded:
            warnings.simplefilter("always", AdvisoryWarning)
            caught = recorded
            yield
    finally:
        for w in caught:
            if issubclass(w.category, AdvisoryWarning):
                diagnostics.append(
                    Diagnostic(
                        kind=DiagnosticKind.ADVISORY,
                        message=str(w.message),
                        asset_id=getattr(w.message, "asset_id", None),
                    )
                )
            warnings.warn_explicit(w.message, w.category, w.filename, w.lineno)


def fetch_history(
    config: FetchHistoryConfig,
    directory: AssetDirectory | None = None,
    fetcher: ResilientFetcher | None = None,
    on_progress: Callable[[int, int], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ResultSet:
    """Retrieve historical OHLCV data for the assets of a directory.

    Validation happens before any HTTP request. Failed batches and assets
    without data are reported as diagnostics on the result, never raised.

    :param config: Retrieval configuration.
    :param directory: Asset directory, resolved from config if None.
    :param fetcher: Batch fetcher, built from config if None.
    :param on_progress: Called with ``(completed, total)`` per batch, per
        asset payload normalized and per cooldown second.
    :param sleep: Function used for every pause.
    :returns: Enriched quote points with run metadata.
    :raises DataValidationError: If the date window is invalid.
    :raises DirectoryError: If the asset directory cannot be read.
    """
    diagnostics: list[Diagnostic] = []
    window = build_window(config)

    with collect_advisories(diagnostics):
        interval_spec = intervals.resolve(config.interval, window)

        directory = directory or resolve_asset_directory(config)
        all_assets = directory.list_assets()
        assets = all_assets[: config.limit] if config.limit is not None else all_assets

        batches = planner.plan(
            (a.id for a in assets),
            interval_spec,
            window,
            convert=config.convert,
            single_mode=config.single_mode,
            limits=config.limits,
            base_url=config.base_url,
        )

        owns_fetcher = fetcher is None
        if fetcher is None:
            fetcher = ResilientFetcher(
                timeout=config.timeout, sleep=sleep, on_progress=on_progress
            )
        logger.info("Scraping historical crypto data")
        try:
            outcomes = fetcher.fetch(batches, config.sleep, config.wait)
        finally:
            if owns_fetcher:
                fetcher.close()

        for outcome in outcomes:
            if outcome.failed:
                diagnostics.append(
                    Diagnostic(
                        kind=DiagnosticKind.FETCH_FAILURE,
                        message=outcome.error or "all attempts failed",
                        batch_index=outcome.batch.index,
                    )
                )

        logger.info("Processing historical crypto data")
        normalized = normalize_outcomes(outcomes, on_progress=on_progress)

    info = RunInfo(
        date_window=window,
        interval=interval_spec.interval,
        time_period=interval_spec.time_period,
        convert=list(config.convert),
        batch_count=len(batches),
        failed_batches=[o.batch.index for o in outcomes if o.failed],
        diagnostics=diagnostics,
    )
    return assemble(
        normalized,
        {a.id: a.slug for a in all_assets},
        info,
        final_cooldown=config.final_cooldown,
        sleep=sleep,
        on_progress=on_progress,
    )


__all__ = ["build_window", "collect_advisories", "fetch_history"]
