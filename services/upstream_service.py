import logging
from typing import Any, Callable, List, Optional

import requests

from class_defs.upstream_def import (
    AttemptOutcome,
    ErrorCode,
    FatalFailure,
    RetryPolicy,
    Success,
    TransientFailure,
)
from infrastructure.cancellation import CancelToken
from infrastructure.events import LoggingObserver, event
from infrastructure.relay_errors import UpstreamCallError, UpstreamCancelled
from services.backoff import delay_ms
from services.timeout_guard import call_with_deadline


class ResilientUpstreamCall:
    """
    One logical call to a cold-starting upstream, made as up to
    `policy.max_attempts` strictly sequential attempts.

    Timeouts, connection failures and non-2xx responses are retried after a
    capped exponential backoff. A 2xx response that is not JSON, or that
    `accept` rejects, fails the sequence at once. Nothing is kept between
    calls to `execute`; build one instance per inbound request.

    Args:
        policy: RetryPolicy for this sequence
        session_factory: returns a fresh requests.Session for each attempt
        observer: callable receiving UpstreamEvent objects
        cancel_token: token of the inbound request
        sleeper: callable(seconds) -> bool, False when the wait was cut short.
            Defaults to the cancel token's sleep.
        accept: optional predicate on the decoded body
    """

    def __init__(
        self,
        policy: RetryPolicy,
        session_factory: Optional[Callable[[], requests.Session]] = None,
        observer: Optional[Callable] = None,
        cancel_token: Optional[CancelToken] = None,
        sleeper: Optional[Callable[[float], bool]] = None,
        accept: Optional[Callable[[Any], bool]] = None,
    ):
        self.policy = policy
        self.session_factory = session_factory or requests.Session
        self.observer = observer or LoggingObserver()
        self.cancel_token = cancel_token or CancelToken()
        self.sleeper = sleeper or self.cancel_token.sleep
        self.accept = accept

    def execute(self, method: str, url: str, **request_kwargs) -> Any:
        """
        Runs the attempt loop.

        Returns:
            The decoded JSON body of the first successful attempt.

        Raises:
            UpstreamCallError: retries exhausted, or a fatal response
            UpstreamCancelled: the cancel token fired
        """
        failures: List[TransientFailure] = []
        max_attempts = self.policy.max_attempts

        for attempt in range(1, max_attempts + 1):
            self._emit("attempt_started", attempt=attempt, max_attempts=max_attempts, url=url)
            outcome = self._attempt(method, url, request_kwargs)

            if isinstance(outcome, Success):
                self._emit("attempt_succeeded", attempt=attempt, url=url)
                return outcome.body

            if isinstance(outcome, FatalFailure):
                if outcome.kind == ErrorCode.CANCELLED:
                    self._emit("sequence_cancelled", logging.WARNING, attempt=attempt, url=url)
                    raise UpstreamCancelled(attempt)
                self._emit("sequence_failed", logging.ERROR, attempt=attempt, code=outcome.kind,
                           reason=outcome.reason, url=url)
                raise UpstreamCallError(outcome.reason, outcome.kind, attempt, outcome.reason)

            failures.append(outcome)
            self._emit("attempt_failed", logging.WARNING, attempt=attempt, code=outcome.kind,
                       reason=outcome.reason, url=url)
            if attempt == max_attempts:
                break

            wait = delay_ms(attempt, self.policy)
            self._emit("backoff_scheduled", attempt=attempt, delay_ms=wait, url=url)
            if not self.sleeper(wait / 1000.0) or self.cancel_token.cancelled:
                self._emit("sequence_cancelled", logging.WARNING, attempt=attempt, url=url)
                raise UpstreamCancelled(attempt)

        last = failures[-1]
        # a uniform sequence keeps its kind; a mixed one is reported by its final attempt
        code = last.kind
        message = f"Failed after {len(failures)} attempts: {last.reason}"
        self._emit("sequence_failed", logging.ERROR, attempt=len(failures), code=code,
                   reason=last.reason, url=url)
        raise UpstreamCallError(message, code, len(failures), last.reason)

    def _attempt(self, method: str, url: str, request_kwargs: dict) -> AttemptOutcome:
        session = self.session_factory()
        try:
            result = call_with_deadline(
                lambda timeout: session.request(method, url, timeout=timeout, stream=True, **request_kwargs),
                session,
                self.policy.per_attempt_timeout_ms,
                self.cancel_token,
            )
            if isinstance(result, (TransientFailure, FatalFailure)):
                return result
            return self._classify_response(result)
        finally:
            session.close()

    def _classify_response(self, response) -> AttemptOutcome:
        if not 200 <= response.status_code < 300:
            return TransientFailure(
                ErrorCode.UPSTREAM_ERROR, f"HTTP {response.status_code}: {response.reason}"
            )
        try:
            body = response.json()
        except ValueError:
            return FatalFailure(ErrorCode.MALFORMED_RESPONSE, "Upstream returned a body that is not valid JSON")
        if self.accept is not None and not self.accept(body):
            return FatalFailure(ErrorCode.MALFORMED_RESPONSE, "Upstream returned an empty prediction")
        return Success(body)

    def _emit(self, name: str, level: int = logging.INFO, **fields):
        self.observer(event(name, level, **fields))
