"""Rate-limited, retrying retrieval of request batches.

Each batch is fetched through three composable behaviors applied in order:
a fixed delay before every request, a bounded number of retries with a fixed
wait, and a fallback that turns exhausted retries into an absent payload.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, Sequence, TypeVar

import requests

from cryptohistory.exceptions import FetchError
from cryptohistory.types import Batch, FetchOutcome

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SleepFunc = Callable[[float], None]
ProgressCallback = Callable[[int, int], None]

DEFAULT_MAX_RETRIES = 2
DEFAULT_TIMEOUT = 30.0


def rate_limited(pause: float, sleep: SleepFunc = time.sleep) -> Callable[[F], F]:
    """Pause ``pause`` seconds before every call of the decorated function."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if pause > 0:
                sleep(pause)
            return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


def retrying(
    max_retries: int,
    wait: float,
    sleep: SleepFunc = time.sleep,
    retry_on: tuple[type[Exception], ...] = (FetchError,),
) -> Callable[[F], F]:
    """Retry the decorated function up to ``max_retries`` times.

    Waits ``wait`` seconds between attempts. When every attempt fails the last
    error is re-raised.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempts = max_retries + 1
            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    if attempt == attempts:
                        raise
                    logger.warning(
                        "Attempt %d/%d failed: %s; retrying in %ss",
                        attempt,
                        attempts,
                        e,
                        wait,
                    )
                    sleep(wait)
            raise AssertionError("unreachable")

        return wrapper  # type: ignore[return-value]

    return decorator


def absorbing_failures(
    otherwise: Any = None,
    on_failure: Callable[..., None] | None = None,
    absorb: tuple[type[Exception], ...] = (FetchError,),
) -> Callable[[F], F]:
    """Return ``otherwise`` instead of raising ``absorb`` errors.

    ``on_failure`` receives the error followed by the call's arguments.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except absorb as e:
                if on_failure is not None:
                    on_failure(e, *args, **kwargs)
                return otherwise

        return wrapper  # type: ignore[return-value]

    return decorator


class ResilientFetcher:
    """Fetches request batches one at a time under a retry policy.

    :param session: HTTP session, a new ``requests.Session`` if None; only a
        session created here is closed by :meth:`close`.
    :param timeout: Per-request timeout in seconds (None disables it).
    :param max_retries: Retries after the first failed attempt.
    :param sleep: Function used for every pause, ``time.sleep`` by default.
    :param on_progress: Called with ``(completed, total)`` after each batch.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        sleep: SleepFunc = time.sleep,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_retries = max_retries
        self.sleep = sleep
        self.on_progress = on_progress

    def close(self) -> None:
        """Close the HTTP session if this fetcher created it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> ResilientFetcher:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def request(self, batch: Batch) -> Any:
        """Issue a single GET for ``batch`` and return its ``data`` document.

        :raises FetchError: On network errors, timeouts, non-2xx responses,
            malformed JSON or a response without a ``data`` field.
        """
        logger.debug("GET %s", batch.request_url)
        try:
            response = self.session.get(batch.request_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"Request for batch {batch.index} failed: {e}") from e

        try:
            document = response.json()
        except ValueError as e:
            raise FetchError(
                f"Malformed JSON in response for batch {batch.index}: {e}"
            ) from e

        if not isinstance(document, dict) or document.get("data") is None:
            detail = ""
            if isinstance(document, dict) and isinstance(document.get("status"), dict):
                detail = document["status"].get("error_message") or ""
            raise FetchError(f"Response for batch {batch.index} has no data {detail}".strip())
        return document["data"]

    def fetch(
        self,
        batches: Sequence[Batch],
        sleep_interval: float = 0.0,
        retry_wait: float = 60.0,
    ) -> list[FetchOutcome]:
        """Fetch every batch sequentially.

        A batch whose attempts are all exhausted yields an outcome without
        payload; the remaining batches are still fetched.

        :param batches: Batches to fetch, in order.
        :param sleep_interval: Seconds to pause before every request.
        :param retry_wait: Seconds to wait before retrying a failed request.
        :returns: One outcome per batch, in the same order.
        """
        errors: dict[int, str] = {}

        def record_failure(error: Exception, batch: Batch) -> None:
            errors[batch.index] = str(error)
            logger.warning(
                "Batch %d (%d asset(s)) failed after %d attempt(s): %s",
                batch.index,
                len(batch.asset_ids),
                self.max_retries + 1,
                error,
            )

        fetch_batch = absorbing_failures(on_failure=record_failure)(
            retrying(self.max_retries, retry_wait, self.sleep)(
                rate_limited(sleep_interval, self.sleep)(self.request)
            )
        )

        outcomes: list[FetchOutcome] = []
        total = len(batches)
        for completed, batch in enumerate(batches, start=1):
            payload = fetch_batch(batch)
            outcomes.append(
                FetchOutcome(batch=batch, payload=payload, error=errors.get(batch.index))
            )
            if self.on_progress is not None:
                self.on_progress(completed, total)

        logger.info(
            "Fetched %d batch(es), %d failed",
            total,
            sum(1 for o in outcomes if o.failed),
        )
        return outcomes


__all__ = [
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_TIMEOUT",
    "rate_limited",
    "retrying",
    "absorbing_failures",
    "ResilientFetcher",
]
