#!/usr/bin/env python3
"""Command-line interface for crypto history retrieval."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from tqdm import tqdm

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ProgressBar:
    """Progress observer that renders each pipeline stage as a tqdm bar.

    A new bar starts whenever the completed count does not advance past the
    current bar, and a bar is closed once it reaches its total.

    :param tqdm_kwargs: Extra keyword arguments for every ``tqdm`` bar.
    """

    def __init__(self, **tqdm_kwargs: Any) -> None:
        self.tqdm_kwargs = tqdm_kwargs
        self.bar: tqdm | None = None

    def __call__(self, completed: int, total: int) -> None:
        if self.bar is None or completed <= self.bar.n:
            self.close()
            self.bar = tqdm(total=total, **self.tqdm_kwargs)
        self.bar.update(completed - self.bar.n)
        if completed >= total:
            self.close()

    def close(self) -> None:
        if self.bar is not None:
            self.bar.close()
            self.bar = None


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Collect config fields overridden on the command line."""
    from cryptohistory.commands.fetch_history import parse_fetch_history_config

    raw: dict[str, Any] = {}
    if args.convert is not None:
        raw["convert"] = args.convert
    if args.limit is not None:
        raw["limit"] = args.limit
    if args.start is not None:
        raw["start_date"] = args.start
    if args.end is not None:
        raw["end_date"] = args.end
    if args.interval is not None:
        raw["interval"] = args.interval
    if args.single:
        raw["single_mode"] = True
    if args.output is not None:
        raw["output"] = args.output
    if not raw:
        return {}

    # Validate through the same parser as the config file.
    parsed = parse_fetch_history_config(raw)
    return {key: getattr(parsed, key) for key in raw}


def write_result(df: Any, output: str) -> None:
    """Write a result DataFrame to ``.csv`` or ``.parquet``."""
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".parquet":
        df.to_parquet(path, index=False)
    else:
        df.to_csv(path, index=False)


def cmd_fetch(args: argparse.Namespace) -> int:
    """Fetch historical OHLCV data."""
    from cryptohistory.commands.fetch_history import load_fetch_history_config
    from cryptohistory.exceptions import (
        ConfigError,
        DataValidationError,
        DirectoryError,
    )
    from cryptohistory.history import build_window, fetch_history

    try:
        config = load_fetch_history_config(args.config)
        overrides = _overrides(args)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1
    if overrides:
        config = config.model_copy(update=overrides)

    window = build_window(config)

    print("=" * 60)
    print("FETCH HISTORY")
    print("=" * 60)
    print(f"Directory:   {config.directory}")
    print(f"Convert:     {', '.join(config.convert)}")
    print(f"Date Range:  {window.start} to {window.end}")
    print(f"Interval:    {config.interval}")
    print(f"Limit:       {config.limit or 'all'}")
    print(f"Single mode: {config.single_mode}")

    print("\n📊 Fetching data...")
    progress = ProgressBar(unit="step")
    try:
        result = fetch_history(config, on_progress=progress)
    except DataValidationError as e:
        print(f"Validation error: {e}")
        return 1
    except DirectoryError as e:
        print(f"Asset directory error: {e}")
        return 1
    finally:
        progress.close()

    print(f"   Fetched {len(result)} records for {len(result.asset_ids())} assets")
    print(f"   Batches: {result.info.batch_count}, failed: {len(result.info.failed_batches)}")
    for diagnostic in result.info.diagnostics:
        print(f"⚠️  {diagnostic.message}")

    if config.output:
        print("\n💾 Writing result...")
        try:
            write_result(result.to_dataframe(), config.output)
        except (OSError, ImportError, ValueError) as e:
            print(f"Failed to write result: {e}")
            return 1
        print(f"   Stored to {config.output}")

    print("\n✅ Done!")
    return 0


def cmd_intervals(args: argparse.Namespace) -> int:
    """List supported interval tokens."""
    from cryptohistory.intervals import (
        INTERVAL_DIVISORS,
        VALID_INTERVALS,
        time_period_for,
    )

    print(f"{'Interval':<10} {'Period':<8} {'Divisor':>7}")
    print("-" * 27)
    for interval in sorted(VALID_INTERVALS):
        period = time_period_for(interval).value
        print(f"{interval:<10} {period:<8} {INTERVAL_DIVISORS.get(interval, 1):>7}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Historical crypto OHLCV retrieval CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=VALID_LOG_LEVELS,
        help="Logging level (default: WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Fetch command
    fetch_parser = subparsers.add_parser("fetch", help="Fetch historical OHLCV data")
    fetch_parser.add_argument("config", help="Path to YAML configuration file")
    fetch_parser.add_argument("-o", "--output", help="Write result to .csv or .parquet")
    fetch_parser.add_argument("-c", "--convert", help="Reference currencies, e.g. USD,BTC")
    fetch_parser.add_argument("-n", "--limit", type=int, help="Retrieve only the first n assets")
    fetch_parser.add_argument("--start", help="Start date (yyyymmdd)")
    fetch_parser.add_argument("--end", help="End date (yyyymmdd)")
    fetch_parser.add_argument("-i", "--interval", help="Sampling interval (default: daily)")
    fetch_parser.add_argument(
        "--single", action="store_true", help="Issue one request per asset"
    )

    # Intervals command
    subparsers.add_parser("intervals", help="List supported interval tokens")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "fetch":
        return cmd_fetch(args)
    elif args.command == "intervals":
        return cmd_intervals(args)

    return 0


if __name__ == "__main__":
    sys.exit(main())
