# tests/test_backoff.py
import pytest

from class_defs.upstream_def import RetryPolicy
from services.backoff import delay_ms


@pytest.fixture
def default_policy():
    return RetryPolicy()


def test_default_policy_values(default_policy):
    assert default_policy.max_attempts == 3
    assert default_policy.per_attempt_timeout_ms == 50000
    assert default_policy.base_delay_ms == 1000
    assert default_policy.max_delay_ms == 5000
    assert default_policy.per_attempt_timeout == 50.0


def test_delays_before_attempts_two_to_five(default_policy):
    """Delay before attempt k is min(base * 2^(k-2), max)."""
    delays = [delay_ms(k - 1, default_policy) for k in range(2, 6)]
    assert delays == [1000, 2000, 4000, 5000]


def test_delay_stays_capped_for_large_attempt_numbers(default_policy):
    assert delay_ms(40, default_policy) == 5000


def test_custom_policy():
    policy = RetryPolicy(max_attempts=6, base_delay_ms=250, max_delay_ms=1500)
    assert [delay_ms(n, policy) for n in range(1, 6)] == [250, 500, 1000, 1500, 1500]


def test_zero_base_delay_never_waits():
    policy = RetryPolicy(base_delay_ms=0, max_delay_ms=0)
    assert delay_ms(3, policy) == 0


@pytest.mark.parametrize("attempt", [0, -1])
def test_attempt_number_must_be_positive(default_policy, attempt):
    with pytest.raises(ValueError):
        delay_ms(attempt, default_policy)


@pytest.mark.parametrize("kwargs", [
    {"max_attempts": 0},
    {"per_attempt_timeout_ms": 0},
    {"base_delay_ms": -1},
    {"base_delay_ms": 6000, "max_delay_ms": 5000},
])
def test_invalid_policies_rejected(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


def test_policy_from_config():
    policy = RetryPolicy.from_config({
        "UPSTREAM_MAX_ATTEMPTS": "5",
        "UPSTREAM_TIMEOUT_MS": 2000,
        "UPSTREAM_BASE_DELAY_MS": 100,
        "UPSTREAM_MAX_DELAY_MS": 400,
    })
    assert policy == RetryPolicy(max_attempts=5, per_attempt_timeout_ms=2000, base_delay_ms=100, max_delay_ms=400)


def test_policy_from_empty_config_uses_defaults():
    assert RetryPolicy.from_config({}) == RetryPolicy()


def test_policy_is_immutable(default_policy):
    with pytest.raises(Exception):
        default_policy.max_attempts = 10
