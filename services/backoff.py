from class_defs.upstream_def import RetryPolicy


def delay_ms(attempt_number: int, policy: RetryPolicy) -> int:
    """
    Delay to wait after attempt `attempt_number` fails, before the next one.

    Capped exponential: base_delay_ms * 2^(attempt_number - 1), never above
    max_delay_ms. With the default policy the waits before attempts 2..5 are
    1000, 2000, 4000 and 5000 ms.

    Args:
        attempt_number: 1-based number of the attempt that just failed
        policy: retry policy of the current call sequence

    Returns:
        int: milliseconds to wait
    """
    if attempt_number < 1:
        raise ValueError(f"attempt_number must be >= 1, got {attempt_number}")
    return min(policy.base_delay_ms * (2 ** (attempt_number - 1)), policy.max_delay_ms)
