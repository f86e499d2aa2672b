"""
Defines the value types passed through an upstream inference call:
    RetryPolicy: bounds and delays for one call sequence. Built once per
        inbound request and never mutated.
    UpstreamRequest: target url plus the uploaded file being relayed.
    Success / TransientFailure / FatalFailure: the outcome of a single
        attempt. Transient failures may be retried, fatal ones may not.
    ErrorCode: failure categories surfaced to the caller.

    RetryPolicy.from_config builds a policy from a Flask config mapping.

"""

from dataclasses import dataclass
from typing import Any, Mapping, Union


class ErrorCode:
    INVALID_INPUT = "INVALID_INPUT"
    TIMEOUT = "TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    per_attempt_timeout_ms: int = 50000
    base_delay_ms: int = 1000
    max_delay_ms: int = 5000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.per_attempt_timeout_ms <= 0:
            raise ValueError("per_attempt_timeout_ms must be positive")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must not be negative")
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError("max_delay_ms must not be smaller than base_delay_ms")

    @property
    def per_attempt_timeout(self) -> float:
        return self.per_attempt_timeout_ms / 1000.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "RetryPolicy":
        defaults = cls()
        return cls(
            max_attempts=int(config.get("UPSTREAM_MAX_ATTEMPTS", defaults.max_attempts)),
            per_attempt_timeout_ms=int(config.get("UPSTREAM_TIMEOUT_MS", defaults.per_attempt_timeout_ms)),
            base_delay_ms=int(config.get("UPSTREAM_BASE_DELAY_MS", defaults.base_delay_ms)),
            max_delay_ms=int(config.get("UPSTREAM_MAX_DELAY_MS", defaults.max_delay_ms)),
        )


@dataclass(frozen=True)
class UpstreamRequest:
    target_url: str
    binary_payload: bytes
    filename: str
    mime_type: str

    def to_dict(self):
        # payload bytes are never serialized
        return {
            "target_url": self.target_url,
            "filename": self.filename,
            "mime_type": self.mime_type,
            "size": len(self.binary_payload),
        }


@dataclass(frozen=True)
class Success:
    body: Any


@dataclass(frozen=True)
class TransientFailure:
    kind: str
    reason: str


@dataclass(frozen=True)
class FatalFailure:
    kind: str
    reason: str


AttemptOutcome = Union[Success, TransientFailure, FatalFailure]

