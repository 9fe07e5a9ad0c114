"""Assembly of normalized quote points into a result set."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Mapping, Sequence

from cryptohistory.directory import AssetDirectory
from cryptohistory.types import QuotePoint, ResultSet, RunInfo

logger = logging.getLogger(__name__)

# Length of the endpoint's abuse-detection window.
COOLDOWN_SECONDS = 60


def enrich(
    points: Iterable[QuotePoint], slugs: Mapping[int, str]
) -> list[QuotePoint]:
    """Attach slugs by asset id; unknown ids keep a ``None`` slug."""
    return [p.model_copy(update={"slug": slugs.get(p.id)}) for p in points]


def cooldown(
    seconds: int = COOLDOWN_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    on_progress: Callable[[int, int], None] | None = None,
) -> None:
    """Block for ``seconds`` seconds, reporting progress once per second."""
    logger.info("Cooling down for %ds", seconds)
    for elapsed in range(1, seconds + 1):
        sleep(1)
        if on_progress is not None:
            on_progress(elapsed, seconds)


def assemble(
    normalized: Iterable[Sequence[QuotePoint]],
    directory: AssetDirectory | Mapping[int, str],
    info: RunInfo,
    final_cooldown: bool = False,
    sleep: Callable[[float], None] = time.sleep,
    on_progress: Callable[[int, int], None] | None = None,
) -> ResultSet:
    """Concatenate normalized sequences into a slug-enriched ResultSet.

    :param normalized: Quote point sequences in batch completion order.
    :param directory: Asset directory or id to slug mapping.
    :param info: Run metadata to attach.
    :param final_cooldown: Block for COOLDOWN_SECONDS before returning.
    :param sleep: Function used for the cooldown pause.
    :param on_progress: Called with ``(elapsed, total)`` during the cooldown.
    :returns: The assembled result set.
    """
    slugs = directory.slug_map() if isinstance(directory, AssetDirectory) else directory
    records = enrich((p for points in normalized for p in points), slugs)
    result = ResultSet(records=records, info=info)

    logger.info(
        "Assembled %d record(s) for %d asset(s)", len(records), len(result.asset_ids())
    )
    if final_cooldown:
        cooldown(sleep=sleep, on_progress=on_progress)
    return result


__all__ = ["COOLDOWN_SECONDS", "enrich", "cooldown", "assemble"]
