"""Tests for the resilient batch fetcher."""

from unittest.mock import MagicMock

import pytest
import requests

from conftest import make_response
from cryptohistory.exceptions import FetchError
from cryptohistory.fetcher import (
    ResilientFetcher,
    absorbing_failures,
    rate_limited,
    retrying,
)
from cryptohistory.types import Batch


def _batch(index: int = 0, ids: list[int] | None = None) -> Batch:
    ids = ids or [1]
    return Batch(
        index=index,
        asset_ids=ids,
        request_url=f"https://example.test/ohlcv?id={','.join(map(str, ids))}",
    )


class TestPolicyDecorators:
    """Tests for the composable retry policy behaviors."""

    def test_rate_limited_pauses_before_each_call(self, sleeps: list[float]) -> None:
        func = rate_limited(2.5, sleeps.append)(lambda x: x * 2)

        assert func(2) == 4
        assert func(3) == 6
        assert sleeps == [2.5, 2.5]

    def test_rate_limited_zero_pause_does_not_sleep(self, sleeps: list[float]) -> None:
        func = rate_limited(0, sleeps.append)(lambda: "ok")
        assert func() == "ok"
        assert sleeps == []

    def test_retrying_returns_first_success(self, sleeps: list[float]) -> None:
        func = MagicMock(side_effect=[FetchError("a"), "ok"])
        wrapped = retrying(2, 60, sleeps.append)(func)

        assert wrapped() == "ok"
        assert func.call_count == 2
        assert sleeps == [60]

    def test_retrying_gives_up_after_max_retries(self, sleeps: list[float]) -> None:
        func = MagicMock(side_effect=FetchError("down"))
        wrapped = retrying(2, 5, sleeps.append)(func)

        with pytest.raises(FetchError, match="down"):
            wrapped()
        assert func.call_count == 3
        assert sleeps == [5, 5]

    def test_retrying_ignores_other_errors(self, sleeps: list[float]) -> None:
        func = MagicMock(side_effect=KeyError("bug"))
        wrapped = retrying(2, 5, sleeps.append)(func)

        with pytest.raises(KeyError):
            wrapped()
        assert func.call_count == 1

    def test_absorbing_failures_returns_fallback(self) -> None:
        failures = []
        func = MagicMock(side_effect=FetchError("gone"))
        wrapped = absorbing_failures(
            otherwise="fallback", on_failure=lambda e, *args: failures.append((str(e), args))
        )(func)

        assert wrapped("batch-0") == "fallback"
        assert failures == [("gone", ("batch-0",))]

    def test_absorbing_failures_passes_success_through(self) -> None:
        wrapped = absorbing_failures()(lambda: {"data": 1})
        assert wrapped() == {"data": 1}


class TestResilientFetcher:
    """Tests for ResilientFetcher."""

    def test_init_with_defaults(self) -> None:
        fetcher = ResilientFetcher()

        assert isinstance(fetcher.session, requests.Session)
        assert fetcher.timeout == 30
        assert fetcher.max_retries == 2

    def test_successful_fetch(self, sleeps: list[float]) -> None:
        session = MagicMock()
        session.get.return_value = make_response({"data": {"id": 1, "quotes": []}})
        fetcher = ResilientFetcher(session=session, timeout=10, sleep=sleeps.append)

        outcomes = fetcher.fetch([_batch()], sleep_interval=0, retry_wait=60)

        assert len(outcomes) == 1
        assert outcomes[0].payload == {"id": 1, "quotes": []}
        assert outcomes[0].error is None
        assert not outcomes[0].failed
        session.get.assert_called_once_with("https://example.test/ohlcv?id=1", timeout=10)
        assert sleeps == []

    def test_sleep_interval_before_every_request(self, sleeps: list[float]) -> None:
        session = MagicMock()
        session.get.return_value = make_response({"data": {}})
        fetcher = ResilientFetcher(session=session, sleep=sleeps.append)

        fetcher.fetch([_batch(0), _batch(1), _batch(2)], sleep_interval=1.5, retry_wait=60)

        assert sleeps == [1.5, 1.5, 1.5]

    def test_transient_failure_is_retried(self, sleeps: list[float]) -> None:
        session = MagicMock()
        session.get.side_effect = [
            requests.ConnectionError("reset"),
            make_response({"data": {"id": 1}}),
        ]
        fetcher = ResilientFetcher(session=session, sleep=sleeps.append)

        outcomes = fetcher.fetch([_batch()], sleep_interval=1, retry_wait=61)

        assert outcomes[0].payload == {"id": 1}
        assert session.get.call_count == 2
        # delay, failed attempt, retry wait, delay, successful attempt
        assert sleeps == [1, 61, 1]

    def test_exhausted_retries_yield_absent_payload(self, sleeps: list[float]) -> None:
        session = MagicMock()
        session.get.side_effect = requests.Timeout("read timed out")
        fetcher = ResilientFetcher(session=session, sleep=sleeps.append)

        outcomes = fetcher.fetch([_batch()], sleep_interval=0, retry_wait=60)

        assert outcomes[0].payload is None
        assert outcomes[0].failed
        assert "read timed out" in outcomes[0].error
        assert session.get.call_count == 3
        assert sleeps == [60, 60]

    def test_failure_does_not_stop_later_batches(self, sleeps: list[float]) -> None:
        session = MagicMock()
        session.get.side_effect = [
            make_response({"data": {"id": 1}}),
            make_response(status=500),
            make_response(status=502),
            make_response(status=503),
            make_response({"data": {"id": 3}}),
        ]
        fetcher = ResilientFetcher(session=session, sleep=sleeps.append)

        outcomes = fetcher.fetch([_batch(0, [1]), _batch(1, [2]), _batch(2, [3])])

        assert [o.failed for o in outcomes] == [False, True, False]
        assert outcomes[2].payload == {"id": 3}
        assert "503" in outcomes[1].error

    def test_malformed_json_is_retried(self, sleeps: list[float]) -> None:
        session = MagicMock()
        session.get.side_effect = [
            make_response(json_error=ValueError("Expecting value")),
            make_response({"data": {"id": 1}}),
        ]
        fetcher = ResilientFetcher(session=session, sleep=sleeps.append)

        outcomes = fetcher.fetch([_batch()], retry_wait=5)

        assert outcomes[0].payload == {"id": 1}
        assert sleeps == [5]

    def test_missing_data_field_is_a_failure(self, sleeps: list[float]) -> None:
        session = MagicMock()
        session.get.return_value = make_response(
            {"status": {"error_code": 1008, "error_message": "Rate limit exceeded"}}
        )
        fetcher = ResilientFetcher(session=session, sleep=sleeps.append)

        outcomes = fetcher.fetch([_batch()], retry_wait=0)

        assert outcomes[0].failed
        assert "Rate limit exceeded" in outcomes[0].error

    def test_request_raises_fetch_error(self) -> None:
        session = MagicMock()
        session.get.return_value = make_response(status=404)
        fetcher = ResilientFetcher(session=session)

        with pytest.raises(FetchError, match="batch 0 failed"):
            fetcher.request(_batch())

    def test_progress_reported_per_batch(self, sleeps: list[float]) -> None:
        progress = []
        session = MagicMock()
        session.get.side_effect = [
            requests.ConnectionError("x"),
            requests.ConnectionError("x"),
            requests.ConnectionError("x"),
            make_response({"data": {}}),
        ]
        fetcher = ResilientFetcher(
            session=session,
            sleep=sleeps.append,
            on_progress=lambda done, total: progress.append((done, total)),
        )

        fetcher.fetch([_batch(0), _batch(1)], retry_wait=0)

        assert progress == [(1, 2), (2, 2)]

    def test_no_batches(self) -> None:
        session = MagicMock()
        fetcher = ResilientFetcher(session=session)

        assert fetcher.fetch([]) == []
        session.get.assert_not_called()

    def test_context_manager_closes_own_session(self, monkeypatch) -> None:
        session = MagicMock()
        monkeypatch.setattr(requests, "Session", MagicMock(return_value=session))

        with ResilientFetcher() as fetcher:
            assert fetcher.session is session

        session.close.assert_called_once()

    def test_injected_session_left_open(self) -> None:
        session = MagicMock()

        with ResilientFetcher(session=session):
            pass

        session.close.assert_not_called()
