"""Property checks for a single non-negative integer.

Each property has a pure predicate and a "check" wrapper. The wrapper first
performs simulated work (a fixed delay standing in for real cost) and then
evaluates the predicate. The orchestrator dispatches the wrappers; tests and
callers that only need the arithmetic use the predicates directly.

Simulated work waits on a stop event rather than sleeping, so a stopped
request wakes immediately and raises InterruptedError.
"""

import logging
import math
import threading
from typing import Callable, Optional

from src.analysis.schemas import CheckName, Parity

logger = logging.getLogger(__name__)

# Simulated work per check, in seconds
DELAY_EVEN_CHECK = 0.010
DELAY_PRIME_CHECK = 0.050
DELAY_SQUARE_CHECK = 0.020

# Trial-division iterations between stop-event polls
PRIME_STOP_POLL_INTERVAL = 1 << 16


def simulate_work(duration: float, stop_event: Optional[threading.Event] = None) -> None:
    """Block for `duration` seconds, or until `stop_event` is set.

    Raises:
        InterruptedError: If the stop event was set before the delay elapsed.
    """
    if stop_event is None:
        stop_event = threading.Event()
    if stop_event.wait(duration):
        logger.debug(f"Simulated work interrupted ({duration * 1000:.0f}ms budget)")
        raise InterruptedError("Interrupted during simulated work")


# --- Pure predicates ---


def is_even(n: int) -> bool:
    return n % 2 == 0


def is_prime(n: int, stop_event: Optional[threading.Event] = None) -> bool:
    """Trial division by odd divisors in [3, isqrt(n)].

    The stop event is polled periodically so that very large candidates
    can be abandoned.
    """
    if n <= 1:
        return False
    if n == 2:
        return True
    if n % 2 == 0:
        return False

    limit = math.isqrt(n)
    for i, divisor in enumerate(range(3, limit + 1, 2)):
        if stop_event is not None and i % PRIME_STOP_POLL_INTERVAL == 0 and stop_event.is_set():
            raise InterruptedError(f"Interrupted during primality test at divisor {divisor}")
        if n % divisor == 0:
            return False
    return True


def is_perfect_square(n: int) -> bool:
    # isqrt is exact for arbitrarily large ints, no float rounding
    if n < 0:
        return False
    if n in (0, 1):
        return True
    root = math.isqrt(n)
    return root * root == n


def parity(n: int) -> Parity:
    # Any nonzero remainder is odd
    return Parity.EVEN if n % 2 == 0 else Parity.ODD


# --- Delayed checks (what the orchestrator dispatches) ---


def check_even(n: int, stop_event: Optional[threading.Event] = None) -> bool:
    simulate_work(DELAY_EVEN_CHECK, stop_event)
    return is_even(n)


def check_prime(n: int, stop_event: Optional[threading.Event] = None) -> bool:
    simulate_work(DELAY_PRIME_CHECK, stop_event)
    return is_prime(n, stop_event)


def check_perfect_square(n: int, stop_event: Optional[threading.Event] = None) -> bool:
    simulate_work(DELAY_SQUARE_CHECK, stop_event)
    return is_perfect_square(n)


def check_parity(n: int, stop_event: Optional[threading.Event] = None) -> Parity:
    return parity(n)


CheckFn = Callable[[int, Optional[threading.Event]], object]

# Dispatch registry, in fold order
CHECKS: tuple[tuple[CheckName, CheckFn], ...] = (
    (CheckName.EVEN, check_even),
    (CheckName.PRIME, check_prime),
    (CheckName.PERFECT_SQUARE, check_perfect_square),
    (CheckName.PARITY, check_parity),
)
