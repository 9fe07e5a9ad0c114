"""CLI command implementations for crypto history retrieval.

Each command module provides:
- Configuration loading and validation
- Command execution logic
- Integration with core library functions
"""

from cryptohistory.commands.fetch_history import (
    load_fetch_history_config,
    parse_fetch_history_config,
)

__all__ = [
    "load_fetch_history_config",
    "parse_fetch_history_config",
]
