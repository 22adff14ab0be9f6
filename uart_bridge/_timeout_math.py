import threading
import time

TIMEOUT_MAX = threading.TIMEOUT_MAX


def to_deadline(timeout: float | int | None) -> float | int:
    """Converts a relative timeout (None = forever) to a monotonic deadline"""

    if timeout is None:
        return TIMEOUT_MAX
    elif timeout <= 0:
        return 0
    return min(TIMEOUT_MAX, time.monotonic() + timeout)


def from_deadline(deadline: float | int) -> float | int:
    """Converts a monotonic deadline back to the time remaining (>= 0)"""

    if deadline >= TIMEOUT_MAX:
        return TIMEOUT_MAX
    return max(0, deadline - time.monotonic())
