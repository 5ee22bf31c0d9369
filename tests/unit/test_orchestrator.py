"""
Tests for NumberAnalysisService (fan-out/join orchestration)

Covers:
1. Concrete analysis results
2. Validation before dispatch
3. Concurrent execution of all checks
4. Failure classification: check failed, cancelled, timed out
5. Fold order and idempotence
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest
from pydantic import ValidationError

from src.analysis.analyzer import CHECKS, check_parity
from src.analysis.errors import (
    AnalysisCancelledError,
    AnalysisError,
    CheckFailedError,
    ErrorKind,
    InvalidInputError,
)
from src.analysis.orchestrator import NumberAnalysisService
from src.analysis.schemas import CheckName, NumberProperties, Parity


@pytest.fixture
def service():
    with NumberAnalysisService(max_workers=4, join_timeout=2.0) as svc:
        yield svc


def _make_service(checks, join_timeout: float = 2.0) -> NumberAnalysisService:
    return NumberAnalysisService(max_workers=4, join_timeout=join_timeout, checks=checks)


def _returning(value):
    return lambda n, stop_event=None: value


class TestAnalyzeResults:
    """Concrete numbers end-to-end through the real checks"""

    @pytest.mark.parametrize(
        "number, even, prime, square, parity",
        [
            (16, True, False, True, Parity.EVEN),
            (17, False, True, False, Parity.ODD),
            (0, True, False, True, Parity.EVEN),
            (1, False, False, True, Parity.ODD),
            (2, True, True, False, Parity.EVEN),
        ],
    )
    def test_known_numbers(self, service, number, even, prime, square, parity) -> None:
        result = service.analyze(number)
        assert result == NumberProperties(
            number=number,
            is_even=even,
            is_prime=prime,
            is_perfect_square=square,
            parity=parity,
        )

    def test_idempotent(self, service) -> None:
        assert service.analyze(97) == service.analyze(97)

    def test_parity_agrees_with_is_even(self, service) -> None:
        for n in (3, 10, 25, 64):
            result = service.analyze(n)
            assert result.is_even == (result.parity == Parity.EVEN)

    def test_large_composite(self, service) -> None:
        n = 3000000003 * 3000000003
        result = service.analyze(n)
        assert result.is_perfect_square is True
        assert result.is_prime is False
        assert result.is_even is False


class TestValidation:
    """Bad input is rejected before any check is dispatched"""

    def test_negative_dispatches_nothing(self) -> None:
        mocks = [(name, Mock(return_value=True)) for name, _ in CHECKS]
        with _make_service(mocks) as svc:
            with pytest.raises(InvalidInputError) as exc_info:
                svc.analyze(-1)
        assert exc_info.value.message == "Input number cannot be negative."
        assert exc_info.value.kind == ErrorKind.INVALID_INPUT
        for _, mock in mocks:
            assert mock.call_count == 0

    def test_negative_five(self, service) -> None:
        with pytest.raises(InvalidInputError):
            service.analyze(-5)

    @pytest.mark.parametrize("value", [True, 1.5, "16", None])
    def test_non_integer_rejected(self, service, value) -> None:
        with pytest.raises(InvalidInputError):
            service.analyze(value)

    def test_above_int64_rejected(self, service) -> None:
        with pytest.raises(InvalidInputError):
            service.analyze(2**63)

    def test_int64_max_accepted_by_validation(self) -> None:
        checks = [
            (CheckName.EVEN, _returning(False)),
            (CheckName.PRIME, _returning(False)),
            (CheckName.PERFECT_SQUARE, _returning(False)),
            (CheckName.PARITY, check_parity),
        ]
        with _make_service(checks) as svc:
            assert svc.analyze(2**63 - 1).number == 2**63 - 1

    def test_invalid_constructor_args(self) -> None:
        with pytest.raises(ValueError):
            NumberAnalysisService(max_workers=0)
        with pytest.raises(ValueError):
            NumberAnalysisService(join_timeout=0)


class TestConcurrency:
    """All four checks run at the same time"""

    def test_checks_overlap(self) -> None:
        barrier = threading.Barrier(4, timeout=2.0)

        def rendezvous(value):
            def check(n, stop_event=None):
                barrier.wait()
                return value
            return check

        checks = [
            (CheckName.EVEN, rendezvous(True)),
            (CheckName.PRIME, rendezvous(False)),
            (CheckName.PERFECT_SQUARE, rendezvous(True)),
            (CheckName.PARITY, rendezvous(Parity.EVEN)),
        ]
        with _make_service(checks) as svc:
            result = svc.analyze(4)
        assert result.is_even is True
        assert result.is_perfect_square is True

    def test_checks_receive_same_number(self) -> None:
        mocks = [
            (CheckName.EVEN, Mock(return_value=False)),
            (CheckName.PRIME, Mock(return_value=True)),
            (CheckName.PERFECT_SQUARE, Mock(return_value=False)),
            (CheckName.PARITY, Mock(return_value=Parity.ODD)),
        ]
        with _make_service(mocks) as svc:
            svc.analyze(17)
        for _, mock in mocks:
            mock.assert_called_once()
            assert mock.call_args.args[0] == 17


class TestFailures:
    """Check failures, cancellation and timeout map onto AnalysisError kinds"""

    def test_check_failure_carries_cause(self) -> None:
        def broken(n, stop_event=None):
            raise ZeroDivisionError("boom")

        checks = list(CHECKS)
        checks[1] = (CheckName.PRIME, broken)
        with _make_service(checks) as svc:
            with pytest.raises(CheckFailedError) as exc_info:
                svc.analyze(16)

        err = exc_info.value
        assert err.kind == ErrorKind.CHECK_FAILED
        assert err.message == "Error during number analysis for 16"
        assert isinstance(err.cause, ZeroDivisionError)
        assert err.__cause__ is err.cause

    def test_first_failure_in_fold_order_wins(self) -> None:
        def failing(exc):
            def check(n, stop_event=None):
                raise exc
            return check

        checks = [
            (CheckName.EVEN, _returning(True)),
            (CheckName.PRIME, failing(KeyError("prime"))),
            (CheckName.PERFECT_SQUARE, failing(ValueError("square"))),
            (CheckName.PARITY, _returning(Parity.EVEN)),
        ]
        with _make_service(checks) as svc:
            with pytest.raises(CheckFailedError) as exc_info:
                svc.analyze(8)
        assert isinstance(exc_info.value.cause, KeyError)

    def test_caller_cancellation(self, service) -> None:
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(AnalysisCancelledError) as exc_info:
            service.analyze(16, cancellation_check=cancel.is_set)

        err = exc_info.value
        assert err.kind == ErrorKind.CANCELLED
        assert err.message == "Analysis interrupted for number: 16"
        assert isinstance(err.__cause__, InterruptedError)
        # Caller's cancellation state is left as it was
        assert cancel.is_set()

    def test_interrupted_check_is_cancelled(self) -> None:
        def interrupted(n, stop_event=None):
            raise InterruptedError("stopped")

        checks = list(CHECKS)
        checks[0] = (CheckName.EVEN, interrupted)
        with _make_service(checks) as svc:
            with pytest.raises(AnalysisCancelledError):
                svc.analyze(16)

    def test_join_timeout(self) -> None:
        def slow(n, stop_event=None):
            if stop_event.wait(5.0):
                raise InterruptedError("stopped")
            return True

        checks = list(CHECKS)
        checks[2] = (CheckName.PERFECT_SQUARE, slow)
        with _make_service(checks, join_timeout=0.1) as svc:
            with pytest.raises(CheckFailedError) as exc_info:
                svc.analyze(16)

        err = exc_info.value
        assert err.message == "Analysis timed out for number: 16"
        assert isinstance(err.cause, TimeoutError)

    def test_service_usable_after_failure(self) -> None:
        calls = {"count": 0}

        def flaky(n, stop_event=None):
            calls["count"] += 1
            if calls["count"] == 1:
                raise RuntimeError("first call fails")
            return False

        checks = list(CHECKS)
        checks[1] = (CheckName.PRIME, flaky)
        with _make_service(checks) as svc:
            with pytest.raises(AnalysisError):
                svc.analyze(9)
            assert svc.analyze(9).is_perfect_square is True

    def test_inconsistent_check_results_are_check_failures(self) -> None:
        """is_even/parity disagreement surfaces as CheckFailedError, not ValidationError"""
        checks = [
            (CheckName.EVEN, _returning(True)),
            (CheckName.PRIME, _returning(False)),
            (CheckName.PERFECT_SQUARE, _returning(False)),
            (CheckName.PARITY, _returning(Parity.ODD)),
        ]
        with _make_service(checks) as svc:
            with pytest.raises(CheckFailedError) as exc_info:
                svc.analyze(3)
        assert isinstance(exc_info.value.cause, ValidationError)

    def test_non_bool_check_result_is_check_failure(self) -> None:
        checks = list(CHECKS)
        checks[1] = (CheckName.PRIME, _returning("maybe"))
        with _make_service(checks) as svc:
            with pytest.raises(CheckFailedError):
                svc.analyze(7)

    def test_large_prime_exceeds_time_budget(self) -> None:
        """Trial division of a 61-bit prime cannot finish within the budget"""
        with NumberAnalysisService(max_workers=4, join_timeout=0.2) as svc:
            with pytest.raises(CheckFailedError) as exc_info:
                svc.analyze(2**61 - 1)
        assert exc_info.value.message == f"Analysis timed out for number: {2**61 - 1}"
        assert isinstance(exc_info.value.cause, TimeoutError)


class TestConcurrentCallers:
    """Many requests sharing one small pool"""

    def test_queued_checks_do_not_time_out(self) -> None:
        """Time spent waiting for a worker does not count against the budget"""
        callers = 40
        with NumberAnalysisService(max_workers=4, join_timeout=0.2) as svc:
            with ThreadPoolExecutor(max_workers=callers) as pool:
                futures = [pool.submit(svc.analyze, 16) for _ in range(callers)]
                results = [future.result(timeout=30) for future in futures]

        assert len(results) == callers
        for result in results:
            assert result.is_perfect_square is True
            assert result.parity == Parity.EVEN

    def test_cancelling_one_caller_leaves_others_alone(self) -> None:
        with NumberAnalysisService(max_workers=4, join_timeout=2.0) as svc:
            with ThreadPoolExecutor(max_workers=2) as pool:
                cancelled = pool.submit(svc.analyze, 17, lambda: True)
                normal = pool.submit(svc.analyze, 17)
                with pytest.raises(AnalysisCancelledError):
                    cancelled.result(timeout=10)
                assert normal.result(timeout=10).is_prime is True
