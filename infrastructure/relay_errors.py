from functools import wraps
from typing import Optional

from flask import jsonify
from werkzeug.exceptions import HTTPException

from class_defs.upstream_def import ErrorCode
from infrastructure.logger import get_logger
from utils.cold_start import SUGGESTION, failure_hint

logger = get_logger(__name__)

# Client Closed Request; there is no standard code for it
CLIENT_CLOSED_REQUEST = 499


class RelayError(Exception):
    """Base error for anything that stops a prediction relay"""
    def __init__(self, message: str, code: str, status_code: int = 500):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(self.message)


class InvalidInputError(RelayError):
    """Inbound upload is missing, empty, or otherwise unusable"""
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message, ErrorCode.INVALID_INPUT, status_code)


class UpstreamCallError(RelayError):
    """Upstream call sequence ended without a usable response"""
    STATUS_BY_CODE = {
        ErrorCode.TIMEOUT: 504,
        ErrorCode.CONNECTION_ERROR: 503,
    }

    def __init__(self, message: str, code: str, attempts: int, last_reason: Optional[str] = None):
        super().__init__(message, code, self.STATUS_BY_CODE.get(code, 500))
        self.attempts = attempts
        self.last_reason = last_reason


class UpstreamCancelled(RelayError):
    """Inbound caller went away while the sequence was still running"""
    def __init__(self, attempts: int):
        super().__init__(
            f"Cancelled after {attempts} attempt(s)",
            ErrorCode.CANCELLED,
            CLIENT_CLOSED_REQUEST,
        )
        self.attempts = attempts


def error_body(error: str, details: str, code: Optional[str] = None) -> dict:
    body = {
        "error": error,
        "details": details,
        "suggestion": SUGGESTION,
        "hint": failure_hint(code, details),
    }
    if code:
        body["code"] = code
    return body


def handle_relay_errors(error_message: str):
    """
    Turns relay failures into JSON responses. `error_message` is the
    human-readable summary placed in the "error" field.

    Status mapping:
        INVALID_INPUT -> 400, TIMEOUT -> 504, CONNECTION_ERROR -> 503,
        CANCELLED -> 499, everything else -> 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except InvalidInputError as e:
                logger.error(f"Invalid input in {f.__name__}: {e.message}")
                return jsonify(error_body(e.message, e.message, e.code)), e.status_code

            except HTTPException:
                # 413 and friends go to the app error handler
                raise

            except UpstreamCancelled as e:
                logger.error(f"Request cancelled in {f.__name__} after {e.attempts} attempt(s)")
                return jsonify(error_body(error_message, e.message, e.code)), e.status_code

            except RelayError as e:
                logger.error(f"{error_message} in {f.__name__}: [{e.code}] {e.message}")
                return jsonify(error_body(error_message, e.message, e.code)), e.status_code

            except Exception as e:
                logger.error(f"Unexpected error in {f.__name__}: {str(e)}", exc_info=True)
                # internal details stay in the log
                return jsonify(error_body(error_message, "Internal server error")), 500

        return decorated_function
    return decorator
