"""
Equivalence runner.

Runs the reference and a submission on the same test cases, in order, and
judges whether they behave the same: terminal status, raised error kind,
returned value and printed output. The first mismatch ends the run with a
failing verdict that carries the offending inputs.
"""

import logging
import math
import threading
from collections.abc import Callable, Iterable
from typing import Any

from ._worker import StructuredValue
from .errors import QuestionError
from .models import (
    ExecutionObservation,
    FailureReason,
    ObservationStatus,
    Question,
    TestCase,
    Verdict,
)

logger = logging.getLogger(__name__)

Invocable = Callable[[tuple[Any, ...]], ExecutionObservation]

_SUBMISSION_FAILURES = {
    ObservationStatus.TIMEOUT: FailureReason.TIMEOUT,
    ObservationStatus.CRASHED: FailureReason.CRASH,
    ObservationStatus.CONSTRUCTION_FAILED: FailureReason.CONSTRUCTION_ERROR,
}


class ObservationCache:
    """
    Reference observations keyed by test case.

    Each case is computed at most once, even when several submissions ask
    for it concurrently.
    """

    def __init__(self) -> None:
        self._observations: dict[tuple[int, str], ExecutionObservation] = {}
        self._locks: dict[tuple[int, str], threading.Lock] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._observations)

    def get(self, case: TestCase, compute: Callable[[], ExecutionObservation]) -> ExecutionObservation:
        key = case.key
        with self._guard:
            if key in self._observations:
                return self._observations[key]
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            if key not in self._observations:
                self._observations[key] = compute()
            return self._observations[key]


def values_equal(expected: Any, found: Any) -> bool:
    """
    Exact, type-aware equality.

    True is not 1 and 1 is not 1.0. NaN equals NaN. Lists, tuples, dicts
    and sets are compared structurally, as are the attributes of objects
    converted to StructuredValue by the worker.
    """
    if type(expected) is not type(found):
        return False
    if isinstance(expected, float):
        if math.isnan(expected) and math.isnan(found):
            return True
        return expected == found
    if isinstance(expected, (list, tuple)):
        return len(expected) == len(found) and all(values_equal(e, f) for e, f in zip(expected, found))
    if isinstance(expected, dict):
        if expected.keys() != found.keys():
            return False
        return all(values_equal(value, found[key]) for key, value in expected.items())
    if isinstance(expected, (set, frozenset)):
        # NaN and bool/int collisions inside sets are not distinguished
        return expected == found
    if isinstance(expected, StructuredValue):
        return (
            expected.type_name == found.type_name
            and expected.text == found.text
            and values_equal(expected.fields, found.fields)
        )
    try:
        return bool(expected == found)
    except Exception:
        return repr(expected) == repr(found)


def _call(question: Question, case: TestCase) -> str:
    arguments = ", ".join(repr(a) for a in case.arguments)
    owner = f"{question.klass}." if question.klass else ""
    return f"{owner}{question.entry_point}({arguments})"


class EquivalenceRunner:
    """Compares one submission against the reference on a sequence of cases."""

    def __init__(
        self,
        reference: Invocable,
        submission: Invocable,
        question: Question,
        cache: ObservationCache | None = None,
    ) -> None:
        self.reference = reference
        self.submission = submission
        self.question = question
        self.cache = cache if cache is not None else ObservationCache()

    def expected(self, case: TestCase) -> ExecutionObservation:
        """
        Reference observation for a case, computed once.

        Raises:
            QuestionError: If the reference itself times out, crashes or
                raises an undeclared error kind.
        """
        observation = self.cache.get(case, lambda: self.reference(case.arguments))
        if not observation.completed:
            raise QuestionError(
                f"Reference for '{self.question.slug}' failed on {_call(self.question, case)}: "
                f"{observation.describe()}"
            )
        if observation.status == ObservationStatus.THREW and observation.error_kind not in self.question.declared_errors:
            raise QuestionError(
                f"Reference for '{self.question.slug}' raised undeclared {observation.error_kind} "
                f"on {_call(self.question, case)}: {observation.error_message}"
            )
        return observation

    def compare(self, case: TestCase, expected: ExecutionObservation, found: ExecutionObservation) -> Verdict | None:
        """
        Judge one case.

        Returns:
            A failing Verdict on mismatch, None when the case is equivalent.
        """
        call = _call(self.question, case)
        details = {
            "test_case": case,
            "expected": expected.describe(),
            "found": found.describe(),
            "expected_output": expected.output,
            "found_output": found.output,
        }

        if found.status in _SUBMISSION_FAILURES:
            reason = _SUBMISSION_FAILURES[found.status]
            if found.status == ObservationStatus.TIMEOUT:
                message = f"{call}: timed out after {self.question.testing.timeout_seconds}s"
            else:
                message = f"{call}: {found.describe()}"
            return Verdict.failure(reason, message, **details)

        expected_threw = expected.status == ObservationStatus.THREW
        found_threw = found.status == ObservationStatus.THREW

        if found_threw and not expected_threw:
            if found.error_kind in self.question.declared_errors:
                reason = FailureReason.ERROR_MISMATCH
            else:
                reason = FailureReason.CRASH
            return Verdict.failure(
                reason,
                f"{call}: expected {expected.describe()} but raised {found.describe()}",
                **details,
            )
        if expected_threw and not found_threw:
            return Verdict.failure(
                FailureReason.ERROR_MISMATCH,
                f"{call}: expected {expected.error_kind} to be raised but returned {found.describe()}",
                **details,
            )
        if expected_threw and found_threw:
            if expected.error_kind != found.error_kind:
                return Verdict.failure(
                    FailureReason.ERROR_MISMATCH,
                    f"{call}: expected {expected.error_kind} but raised {found.error_kind}",
                    **details,
                )
        elif not self._same_value(expected, found):
            shown_expected, shown_found = expected.returned_repr, found.returned_repr
            if expected.returned_type != found.returned_type:
                shown_expected = f"{shown_expected} ({expected.returned_type})"
                shown_found = f"{shown_found} ({found.returned_type})"
            return Verdict.failure(
                FailureReason.VALUE_MISMATCH,
                f"{call}: expected {shown_expected} but found {shown_found}",
                **details,
            )

        if self.question.testing.check_output and (
            expected.output != found.output or expected.truncated_lines != found.truncated_lines
        ):
            return Verdict.failure(
                FailureReason.OUTPUT_MISMATCH,
                f"{call}: expected output {list(expected.output)} but found {list(found.output)}",
                **details,
            )
        return None

    @staticmethod
    def _same_value(expected: ExecutionObservation, found: ExecutionObservation) -> bool:
        if expected.returned_type != found.returned_type or expected.transferable != found.transferable:
            return False
        if expected.transferable:
            return values_equal(expected.returned, found.returned)
        return expected.returned_repr == found.returned_repr

    def run(self, test_cases: Iterable[TestCase]) -> Verdict:
        """
        Compare reference and submission on each case in order.

        Returns:
            The first failing Verdict, or a passing one when all cases agree.
        """
        cases_run = 0
        for case in test_cases:
            expected = self.expected(case)
            found = self.submission(case.arguments)
            cases_run += 1
            verdict = self.compare(case, expected, found)
            if verdict is not None:
                logger.debug("Case %d failed: %s", case.index, verdict.message)
                return verdict.model_copy(update={"cases_run": cases_run})
            logger.debug("Case %d passed", case.index)
        return Verdict.success(cases_run)


def run(
    reference: Invocable,
    submission: Invocable,
    test_cases: Iterable[TestCase],
    question: Question,
    cache: ObservationCache | None = None,
) -> Verdict:
    """Equivalence verdict for a submission against the reference."""
    return EquivalenceRunner(reference, submission, question, cache).run(test_cases)
