"""Configuration for the fetch command.

Example config file (fetch_history.yaml):

    convert: ["USD", "BTC"]
    limit: 10
    start_date: "20200101"
    end_date: "20200110"       # Optional, today if omitted
    interval: "daily"
    sleep: 0
    wait: 60
    final_cooldown: false
    single_mode: false
    timeout: 30
    limits:                    # Optional, observed server constraints
      max_rows: 10000
      max_url_length: 2000
    directory: "csv"
    directory_params:
      file_path: "coins.csv"
    output: "history.csv"      # Optional
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from cryptohistory.exceptions import ConfigError, DataValidationError
from cryptohistory.intervals import parse_yyyymmdd
from cryptohistory.types import BatchLimits, FetchHistoryConfig

# Valid asset directory types
VALID_DIRECTORIES = frozenset(["csv", "static"])

_NUMERIC_FIELDS = ("sleep", "wait", "timeout")
_BOOLEAN_FIELDS = ("final_cooldown", "single_mode")


def _parse_date(value: Any, field: str) -> date | None:
    """Parse an optional ``yyyymmdd`` date field.

    YAML reads unquoted ``20200101`` as an integer, so those are accepted too.

    :raises ConfigError: If parsing fails.
    """
    if value is None:
        return None
    try:
        return parse_yyyymmdd(value if isinstance(value, date) else str(value))
    except DataValidationError as e:
        raise ConfigError(f"Invalid '{field}': {e}") from e


def _parse_convert(value: Any) -> list[str]:
    """Parse reference currencies from a list or a comma separated string."""
    if isinstance(value, str):
        currencies = [c.strip() for c in value.split(",")]
    elif isinstance(value, list):
        currencies = [str(c).strip() for c in value]
    else:
        raise ConfigError("'convert' must be a list or a comma separated string")
    currencies = [c.upper() for c in currencies if c]
    if not currencies:
        raise ConfigError("'convert' must name at least one currency")
    return currencies


def load_fetch_history_config(config_path: str | Path) -> FetchHistoryConfig:
    """Parse and validate a fetch configuration file.

    :param config_path: Path to YAML configuration file.
    :returns: Validated FetchHistoryConfig object.
    :raises ConfigError: If file cannot be read or config is invalid.
    """
    config_path = Path(config_path)

    # Read and parse YAML
    try:
        with open(config_path) as f:
            raw_config = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}") from e

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration must be a YAML mapping")

    return parse_fetch_history_config(raw_config)


def parse_fetch_history_config(raw_config: dict[str, Any]) -> FetchHistoryConfig:
    """Validate a raw configuration mapping.

    :param raw_config: Mapping as loaded from YAML.
    :returns: Validated FetchHistoryConfig object.
    :raises ConfigError: If the config is invalid.
    """
    fields: dict[str, Any] = {}

    if "convert" in raw_config:
        fields["convert"] = _parse_convert(raw_config["convert"])

    # Parse limit (optional)
    limit = raw_config.get("limit")
    if limit is not None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ConfigError("'limit' must be a positive integer")
        fields["limit"] = limit

    start_date = _parse_date(raw_config.get("start_date"), "start_date")
    end_date = _parse_date(raw_config.get("end_date"), "end_date")
    if start_date is not None and end_date is not None and start_date > end_date:
        raise ConfigError("'start_date' must not be after 'end_date'")
    fields["start_date"] = start_date
    fields["end_date"] = end_date

    if raw_config.get("interval") is not None:
        fields["interval"] = str(raw_config["interval"])

    for field in _NUMERIC_FIELDS:
        if field in raw_config:
            value = raw_config[field]
            if field == "timeout" and value is None:
                fields[field] = None
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ConfigError(f"'{field}' must be a non-negative number")
            fields[field] = float(value)

    for field in _BOOLEAN_FIELDS:
        if field in raw_config:
            if not isinstance(raw_config[field], bool):
                raise ConfigError(f"'{field}' must be a boolean")
            fields[field] = raw_config[field]

    if "base_url" in raw_config:
        fields["base_url"] = str(raw_config["base_url"])

    # Parse limits (optional)
    raw_limits = raw_config.get("limits")
    if raw_limits is not None:
        if not isinstance(raw_limits, dict):
            raise ConfigError("'limits' must be a mapping")
        try:
            fields["limits"] = BatchLimits(**raw_limits)
        except (ValidationError, TypeError) as e:
            raise ConfigError(f"Invalid 'limits': {e}") from e

    # Parse directory
    directory = raw_config.get("directory", "csv")
    if directory not in VALID_DIRECTORIES:
        raise ConfigError(
            f"Invalid directory '{directory}'. "
            f"Valid options: {sorted(VALID_DIRECTORIES)}"
        )
    fields["directory"] = directory

    directory_params = raw_config.get("directory_params", {})
    if not isinstance(directory_params, dict):
        raise ConfigError("'directory_params' must be a mapping")
    fields["directory_params"] = directory_params

    if raw_config.get("output") is not None:
        fields["output"] = str(raw_config["output"])

    try:
        return FetchHistoryConfig(**fields)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
