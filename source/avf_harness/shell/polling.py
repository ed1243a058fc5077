import time
from typing import Callable


def _wait_for(
    predicate: Callable[[], bool],
    timeout: float,
    interval: float = 0.05,
    what: str = "condition",
) -> bool:
    """
    Poll predicate every `interval` seconds until it returns True.

    This is plain polling: latency is bounded by the interval, not event driven.
    Raises TimeoutError once `timeout` seconds elapsed without success.
    """
    start = time.monotonic()
    deadline = start + timeout

    while True:
        if predicate():
            waited = time.monotonic() - start
            print(f"{what} READY! TIME TAKEN: {waited:.3f}s")
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        time.sleep(min(interval, remaining))

    raise TimeoutError(f"Timed out after {timeout}s waiting for {what}")
