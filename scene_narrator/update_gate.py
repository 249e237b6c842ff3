import time

# Last-update value before any narration happened
NEVER = float("-inf")


def now_ms() -> float:
    """Monotonic clock in milliseconds"""
    return time.monotonic() * 1000.0


def update_allowed(now: float, last: float, interval_ms: int) -> bool:
    """
    Check whether enough time passed since the last narration

    Args:
        now: Current time in milliseconds
        last: Time of the last narration in milliseconds, or NEVER
        interval_ms: Minimum gap between narrations

    Returns:
        bool: True if another narration may start
    """
    if interval_ms < 0:
        raise ValueError(f"Update interval must be >= 0, got {interval_ms}")
    return now - last >= interval_ms
