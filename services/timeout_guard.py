import socket
import threading
import time
from typing import Callable, Optional, Union

import requests

from class_defs.upstream_def import ErrorCode, FatalFailure, TransientFailure
from infrastructure.cancellation import CancelToken

CHUNK_SIZE = 64 * 1024


def _shutdown_response(response):
    """
    Shuts down the socket under a streaming response so a read blocked on it
    returns at once, then releases the response.
    """
    if response is None:
        return
    connection = getattr(getattr(response, "raw", None), "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is not None:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
    response.close()


def call_with_deadline(
    send: Callable[[float], requests.Response],
    session: requests.Session,
    budget_ms: int,
    cancel_token: Optional[CancelToken] = None,
) -> Union[requests.Response, TransientFailure, FatalFailure]:
    """
    Runs one request, headers and body, under a hard deadline.

    `send` receives the budget in seconds, passes it on as the requests
    timeout and must request with stream=True. The transfer runs on a worker
    thread that reads the body in chunks; the caller waits for it, for the
    deadline, or for `cancel_token`, whichever comes first. On deadline or
    cancel the socket under the response is shut down, so the worker's
    blocked read ends. Before the headers arrive no response exists yet; the
    worker is then bounded by the requests read timeout.

    Args:
        send: callable issuing the streaming request on `session`
        session: session owned by this attempt
        budget_ms: per-attempt budget in milliseconds
        cancel_token: token of the inbound request, if any

    Returns:
        requests.Response with its body loaded on success,
        TransientFailure(TIMEOUT | CONNECTION_ERROR) on transport failure,
        FatalFailure(CANCELLED) when the token fired.
    """
    budget = budget_ms / 1000.0
    deadline = time.monotonic() + budget
    wake = threading.Event()
    stop = threading.Event()
    state = {}

    if cancel_token is not None and cancel_token.cancelled:
        return FatalFailure(ErrorCode.CANCELLED, "cancelled before request was sent")

    def _transfer():
        try:
            response = send(budget)
            state["response"] = response
            chunks = []
            for chunk in response.iter_content(CHUNK_SIZE):
                if stop.is_set() or time.monotonic() >= deadline:
                    return
                chunks.append(chunk)
            response._content = b"".join(chunks)
            response._content_consumed = True
            state["result"] = response
        except Exception as e:
            state["error"] = e
        finally:
            wake.set()

    if cancel_token is not None:
        cancel_token.register(wake.set)
    worker = threading.Thread(target=_transfer, name="upstream-attempt", daemon=True)
    worker.start()
    try:
        wake.wait(budget)
    finally:
        if cancel_token is not None:
            cancel_token.unregister(wake.set)

    if cancel_token is not None and cancel_token.cancelled:
        _abort(stop, state, session)
        return FatalFailure(ErrorCode.CANCELLED, "cancelled while waiting for response")

    if "result" not in state and "error" not in state:
        _abort(stop, state, session)
        return TransientFailure(ErrorCode.TIMEOUT, f"timeout after {budget_ms} ms")

    error = state.get("error")
    if isinstance(error, requests.exceptions.Timeout):
        return TransientFailure(ErrorCode.TIMEOUT, f"timeout after {budget_ms} ms")
    if isinstance(error, requests.exceptions.RequestException):
        return TransientFailure(ErrorCode.CONNECTION_ERROR, str(error) or error.__class__.__name__)
    if error is not None:
        raise error
    return state["result"]


def _abort(stop: threading.Event, state: dict, session: requests.Session):
    stop.set()
    _shutdown_response(state.get("response"))
    session.close()
