# tests/test_upstream_service.py
import threading
import time

import pytest
import requests

from class_defs.upstream_def import ErrorCode, RetryPolicy
from infrastructure.cancellation import CancelToken
from infrastructure.events import RecordingObserver
from infrastructure.relay_errors import UpstreamCallError, UpstreamCancelled
from services.upstream_service import ResilientUpstreamCall
from fakes import FakeResponse, FakeUpstream, RecordingSleeper

URL = "https://example.test/predict"

# --- Test Fixtures ---

@pytest.fixture
def policy():
    return RetryPolicy(max_attempts=3, per_attempt_timeout_ms=2000, base_delay_ms=1000, max_delay_ms=5000)

@pytest.fixture
def sleeper():
    return RecordingSleeper()

@pytest.fixture
def observer():
    return RecordingObserver()


def make_call(policy, upstream, sleeper=None, observer=None, **kwargs):
    return ResilientUpstreamCall(
        policy,
        session_factory=upstream.session,
        observer=observer or RecordingObserver(),
        sleeper=sleeper,
        **kwargs
    )

# --- Test Cases ---

def test_first_attempt_success_makes_one_call_and_never_sleeps(policy, sleeper, observer):
    upstream = FakeUpstream(FakeResponse(200, {"label": "healthy"}))

    result = make_call(policy, upstream, sleeper, observer).execute("POST", URL, data=b"x")

    assert result == {"label": "healthy"}
    assert len(upstream.calls) == 1
    assert sleeper.delays == []
    assert observer.of("backoff_scheduled") == []
    assert observer.names() == ["attempt_started", "attempt_succeeded"]


def test_recovers_from_cold_start_on_third_attempt(policy, sleeper):
    """503, 503, then a prediction: two backoffs of 1s and 2s, three calls."""
    upstream = FakeUpstream(
        FakeResponse(503, reason="Service Unavailable"),
        FakeResponse(503, reason="Service Unavailable"),
        FakeResponse(200, {"label": "aphid"}),
    )

    result = make_call(policy, upstream, sleeper).execute("POST", URL)

    assert result == {"label": "aphid"}
    assert len(upstream.calls) == 3
    assert sleeper.delays == [1.0, 2.0]
    assert sum(sleeper.delays) >= 3.0


@pytest.mark.parametrize("max_attempts", [1, 2, 3, 5])
def test_all_failures_make_exactly_max_attempts_calls(max_attempts, sleeper):
    policy = RetryPolicy(max_attempts=max_attempts)
    upstream = FakeUpstream(FakeResponse(500, reason="Internal Server Error"))

    with pytest.raises(UpstreamCallError) as exc_info:
        make_call(policy, upstream, sleeper).execute("POST", URL)

    assert len(upstream.calls) == max_attempts
    assert len(sleeper.delays) == max_attempts - 1
    assert exc_info.value.attempts == max_attempts


def test_exhausted_upstream_errors_are_classified(policy, sleeper):
    upstream = FakeUpstream(FakeResponse(502, reason="Bad Gateway"))

    with pytest.raises(UpstreamCallError) as exc_info:
        make_call(policy, upstream, sleeper).execute("POST", URL)

    error = exc_info.value
    assert error.code == ErrorCode.UPSTREAM_ERROR
    assert error.status_code == 500
    assert error.last_reason == "HTTP 502: Bad Gateway"
    assert error.message == "Failed after 3 attempts: HTTP 502: Bad Gateway"


def test_all_timeouts_classified_as_timeout(policy, sleeper, observer):
    upstream = FakeUpstream(requests.exceptions.ReadTimeout("read timed out"))

    with pytest.raises(UpstreamCallError) as exc_info:
        make_call(policy, upstream, sleeper, observer).execute("POST", URL)

    assert exc_info.value.code == ErrorCode.TIMEOUT
    assert exc_info.value.status_code == 504
    assert len(upstream.calls) == 3
    assert len(observer.of("attempt_failed")) == 3
    assert observer.names()[-1] == "sequence_failed"


def test_all_connection_errors_classified_as_connection_error(policy, sleeper):
    upstream = FakeUpstream(requests.exceptions.ConnectionError("Name or service not known"))

    with pytest.raises(UpstreamCallError) as exc_info:
        make_call(policy, upstream, sleeper).execute("POST", URL)

    assert exc_info.value.code == ErrorCode.CONNECTION_ERROR
    assert exc_info.value.status_code == 503
    assert "Name or service not known" in exc_info.value.message


def test_mixed_failures_reported_by_final_attempt(policy, sleeper):
    upstream = FakeUpstream(
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.ReadTimeout("slow"),
        FakeResponse(503, reason="Service Unavailable"),
    )

    with pytest.raises(UpstreamCallError) as exc_info:
        make_call(policy, upstream, sleeper).execute("POST", URL)

    assert exc_info.value.code == ErrorCode.UPSTREAM_ERROR
    assert exc_info.value.last_reason == "HTTP 503: Service Unavailable"


def test_malformed_body_is_not_retried(policy, sleeper):
    upstream = FakeUpstream(FakeResponse(200, raw_text="<html>loading</html>"))

    with pytest.raises(UpstreamCallError) as exc_info:
        make_call(policy, upstream, sleeper).execute("POST", URL)

    assert exc_info.value.code == ErrorCode.MALFORMED_RESPONSE
    assert exc_info.value.attempts == 1
    assert len(upstream.calls) == 1
    assert sleeper.delays == []


def test_rejected_prediction_is_not_retried(policy, sleeper):
    upstream = FakeUpstream(FakeResponse(200, {}))

    with pytest.raises(UpstreamCallError) as exc_info:
        make_call(policy, upstream, sleeper, accept=lambda body: bool(body)).execute("POST", URL)

    assert exc_info.value.code == ErrorCode.MALFORMED_RESPONSE
    assert "empty prediction" in exc_info.value.message
    assert len(upstream.calls) == 1


def test_each_attempt_gets_its_own_session_and_closes_it(policy, sleeper):
    upstream = FakeUpstream(FakeResponse(500, reason="Internal Server Error"))

    with pytest.raises(UpstreamCallError):
        make_call(policy, upstream, sleeper).execute("POST", URL)

    assert upstream.sessions_opened == 3
    assert upstream.sessions_closed == 3


def test_per_attempt_timeout_passed_to_transport(policy, sleeper):
    upstream = FakeUpstream(FakeResponse(200, {"label": "rust"}))

    make_call(policy, upstream, sleeper).execute("POST", URL, data=b"payload", headers={"X-Test": "1"})

    call = upstream.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == URL
    assert call["timeout"] == 2.0
    assert call["stream"] is True
    assert call["data"] == b"payload"
    assert call["headers"] == {"X-Test": "1"}


def test_cancel_during_backoff_stops_without_another_attempt(policy):
    """Real cancellable sleep: cancelling mid-backoff wakes it immediately."""
    slow_policy = RetryPolicy(max_attempts=3, base_delay_ms=10000, max_delay_ms=10000)
    token = CancelToken()
    upstream = FakeUpstream(FakeResponse(503, reason="Service Unavailable"))
    observer = RecordingObserver()
    call = make_call(slow_policy, upstream, observer=observer, cancel_token=token)

    timer = threading.Timer(0.05, token.cancel)
    timer.start()
    started = time.monotonic()
    try:
        with pytest.raises(UpstreamCancelled) as exc_info:
            call.execute("POST", URL)
    finally:
        timer.cancel()

    assert time.monotonic() - started < 5
    assert len(upstream.calls) == 1
    assert exc_info.value.code == ErrorCode.CANCELLED
    assert exc_info.value.attempts == 1
    assert observer.names()[-1] == "sequence_cancelled"


def test_already_cancelled_token_never_reaches_network(policy, sleeper):
    token = CancelToken()
    token.cancel()
    upstream = FakeUpstream(FakeResponse(200, {"label": "aphid"}))

    with pytest.raises(UpstreamCancelled):
        make_call(policy, upstream, sleeper, cancel_token=token).execute("POST", URL)

    assert upstream.calls == []


def test_backoff_events_carry_delay(policy, sleeper, observer):
    upstream = FakeUpstream(
        FakeResponse(503, reason="Service Unavailable"),
        FakeResponse(200, {"label": "aphid"}),
    )

    make_call(policy, upstream, sleeper, observer).execute("POST", URL)

    backoffs = observer.of("backoff_scheduled")
    assert len(backoffs) == 1
    assert backoffs[0].fields["delay_ms"] == 1000
    assert backoffs[0].fields["attempt"] == 1
