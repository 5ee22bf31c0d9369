"""Fan-out/join orchestration for number analysis.

NumberAnalysisService.analyze():

1. Validates the input (no work is dispatched for bad input)
2. Submits the four checks to an owned, explicitly sized thread pool
3. Joins: waits until every check is terminal, polling the caller's
   cancellation check and each running check's time budget between waits
4. Folds the outcomes in fixed order (even, prime, perfect_square, parity)
   into NumberProperties, or raises the matching AnalysisError

Each check runs inside _run_check(), which converts whatever happens in the
worker thread into a CheckOutcome. The fold inspects those values; nothing is
re-raised out of a future.
"""

import logging
import os
import threading
import time
from concurrent.futures import ALL_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from src.analysis.analyzer import CHECKS, CheckFn
from src.analysis.errors import (
    AnalysisCancelledError,
    CheckFailedError,
    InvalidInputError,
)
from src.analysis.schemas import (
    INT64_MAX,
    CheckName,
    CheckOutcome,
    CheckStatus,
    NumberProperties,
)

logger = logging.getLogger(__name__)

# Worker threads owned by each service instance (one per check by default)
MAX_CHECK_CONCURRENCY = int(os.environ.get("ANALYZER_MAX_WORKERS", "4"))

# Per-check running-time budget, measured from when the check starts
# (queue wait does not count); 20x the slowest simulated check
JOIN_TIMEOUT_SECONDS = float(os.environ.get("ANALYZER_JOIN_TIMEOUT_SECONDS", "1.0"))

# How often the join wakes up to look at cancellation and time budgets
JOIN_POLL_INTERVAL_SECONDS = 0.005


def _run_check(
    name: CheckName,
    check: CheckFn,
    number: int,
    stop_event: threading.Event,
    started_at: dict[CheckName, float],
) -> CheckOutcome:
    """Run one check in a worker thread and capture its terminal state.

    Records its start in `started_at` so the join can time the check from
    when it actually began running.
    """
    if stop_event.is_set():
        return CheckOutcome(name=name, status=CheckStatus.CANCELLED)

    started_at[name] = time.monotonic()
    start_time = time.time()
    try:
        value = check(number, stop_event)
    except InterruptedError as e:
        return CheckOutcome(
            name=name,
            status=CheckStatus.CANCELLED,
            error=e,
            duration_ms=int((time.time() - start_time) * 1000),
        )
    except Exception as e:
        logger.error(f"Check '{name.value}' failed for {number}: {e}")
        return CheckOutcome(
            name=name,
            status=CheckStatus.FAILED,
            error=e,
            duration_ms=int((time.time() - start_time) * 1000),
        )

    return CheckOutcome(
        name=name,
        status=CheckStatus.COMPLETED,
        value=value,
        duration_ms=int((time.time() - start_time) * 1000),
    )


def _validate_number(number: object) -> int:
    if isinstance(number, bool) or not isinstance(number, int):
        raise InvalidInputError("Input number must be an integer.")
    if number < 0:
        raise InvalidInputError("Input number cannot be negative.", number=number)
    if number > INT64_MAX:
        raise InvalidInputError(
            "Input number exceeds the 64-bit signed range.", number=number
        )
    return number


class NumberAnalysisService:
    """Analyzes numbers by fanning checks out onto an owned worker pool.

    The pool lives as long as the service. Call shutdown() (or use the
    service as a context manager) to release its threads.
    """

    def __init__(
        self,
        max_workers: int = MAX_CHECK_CONCURRENCY,
        join_timeout: float = JOIN_TIMEOUT_SECONDS,
        checks: Optional[Iterable[tuple[CheckName, CheckFn]]] = None,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        if join_timeout <= 0:
            raise ValueError(f"join_timeout must be positive, got {join_timeout}")

        self.max_workers = max_workers
        self.join_timeout = join_timeout
        self._checks = tuple(checks) if checks is not None else CHECKS
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="number-check",
        )
        logger.info(
            f"NumberAnalysisService started (max_workers={max_workers}, "
            f"join_timeout={join_timeout}s)"
        )

    def __enter__(self) -> "NumberAnalysisService":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def shutdown(self, wait_for_checks: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_checks, cancel_futures=True)
        logger.info("NumberAnalysisService stopped")

    def analyze(
        self,
        number: int,
        cancellation_check: Optional[Callable[[], bool]] = None,
    ) -> NumberProperties:
        """Analyze a number, running all property checks concurrently.

        Args:
            number: Non-negative integer within the 64-bit signed range.
            cancellation_check: Polled while the join is waiting; returning
                True stops outstanding checks. It is only read, never reset.

        Returns:
            NumberProperties built from all four check results.

        Raises:
            InvalidInputError: Bad input; nothing was dispatched.
            AnalysisCancelledError: The caller cancelled, or a check was
                stopped before completing.
            CheckFailedError: A check raised, returned an inconsistent value,
                or ran longer than join_timeout.
        """
        number = _validate_number(number)

        stop_event = threading.Event()
        started_at: dict[CheckName, float] = {}
        futures: dict[Future, CheckName] = {
            self._executor.submit(
                _run_check, name, check, number, stop_event, started_at
            ): name
            for name, check in self._checks
        }

        caller_cancelled, timed_out = self._join(
            futures, stop_event, started_at, cancellation_check
        )

        outcomes: dict[CheckName, CheckOutcome] = {}
        for future, name in futures.items():
            if future.cancelled():
                outcomes[name] = CheckOutcome(name=name, status=CheckStatus.CANCELLED)
            else:
                outcomes[name] = future.result()

        return self._fold(number, outcomes, caller_cancelled, timed_out)

    def _join(
        self,
        futures: dict[Future, CheckName],
        stop_event: threading.Event,
        started_at: dict[CheckName, float],
        cancellation_check: Optional[Callable[[], bool]],
    ) -> tuple[bool, bool]:
        """Wait until every future is terminal.

        Returns (caller_cancelled, timed_out). Once either trips, the stop
        event is set and queued futures are cancelled, but the wait goes on
        until running checks have observed the stop.

        A check times out once it has been running longer than join_timeout.
        Checks still queued behind other requests are not timed.
        """
        caller_cancelled = False
        timed_out = False

        try:
            while True:
                if not stop_event.is_set():
                    if cancellation_check is not None and cancellation_check():
                        caller_cancelled = True
                    elif self._any_overran(futures, started_at):
                        timed_out = True

                    if caller_cancelled or timed_out:
                        stop_event.set()
                        for future in futures:
                            future.cancel()

                _, pending = wait(
                    futures,
                    timeout=JOIN_POLL_INTERVAL_SECONDS,
                    return_when=ALL_COMPLETED,
                )
                if not pending:
                    return caller_cancelled, timed_out
        except BaseException:
            # Interrupt of the joining thread: stop the checks and re-raise as-is
            stop_event.set()
            for future in futures:
                future.cancel()
            raise

    def _any_overran(
        self,
        futures: dict[Future, CheckName],
        started_at: dict[CheckName, float],
    ) -> bool:
        now = time.monotonic()
        for future, name in futures.items():
            start = started_at.get(name)
            if start is not None and not future.done() and now - start >= self.join_timeout:
                return True
        return False

    def _fold(
        self,
        number: int,
        outcomes: dict[CheckName, CheckOutcome],
        caller_cancelled: bool,
        timed_out: bool,
    ) -> NumberProperties:
        ordered = [outcomes[name] for name in CheckName if name in outcomes]

        if caller_cancelled or any(o.status == CheckStatus.CANCELLED for o in ordered):
            if timed_out and not caller_cancelled:
                logger.warning(
                    f"Analysis of {number} timed out after {self.join_timeout}s"
                )
                raise CheckFailedError(
                    f"Analysis timed out for number: {number}",
                    number=number,
                    cause=TimeoutError(
                        f"A check ran longer than {self.join_timeout}s"
                    ),
                )
            logger.warning(f"Analysis interrupted for {number}")
            raise AnalysisCancelledError(
                f"Analysis interrupted for number: {number}", number=number
            ) from InterruptedError(f"Analysis of {number} was stopped")

        for outcome in ordered:
            if outcome.status == CheckStatus.FAILED:
                raise CheckFailedError(
                    f"Error during number analysis for {number}",
                    number=number,
                    cause=outcome.error,
                ) from outcome.error

        missing = [name.value for name in CheckName if name not in outcomes]
        if missing:
            raise CheckFailedError(
                f"Error during number analysis for {number}",
                number=number,
                cause=LookupError(f"No check registered for: {', '.join(missing)}"),
            )

        try:
            return NumberProperties(
                number=number,
                is_even=outcomes[CheckName.EVEN].value,
                is_prime=outcomes[CheckName.PRIME].value,
                is_perfect_square=outcomes[CheckName.PERFECT_SQUARE].value,
                parity=outcomes[CheckName.PARITY].value,
            )
        except ValidationError as e:
            logger.error(f"Check results for {number} are inconsistent: {e}")
            raise CheckFailedError(
                f"Error during number analysis for {number}",
                number=number,
                cause=e,
            ) from e
