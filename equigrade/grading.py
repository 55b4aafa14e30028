"""
Grading orchestration.

A QuestionGrader owns everything one grading run needs for a question:
the wrapped reference, its observation cache and its extracted features.
Submissions are graded against it one at a time or concurrently.
"""

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from .errors import ConstructionError, ParseError, QuestionError, SubmissionError, UnsupportedShapeError
from .feature_checker import check, policy_violations
from .features import extract
from .generator import InputGenerator
from .metrics import check as check_size
from .metrics import measure
from .models import GradeResult, Question, Submission, ValidationReport, Verdict
from .runner import ObservationCache, run
from .wrapper import WrappedCallable, wrap

logger = logging.getLogger(__name__)


def combine(features: Verdict, equivalence: Verdict, size: Verdict | None = None) -> Verdict:
    """Combined verdict: structural failures first, then the equivalence failure, else pass."""
    for structural in (features, size):
        if structural is not None and not structural.passed:
            return structural.model_copy(update={"cases_run": equivalence.cases_run})
    if not equivalence.passed:
        return equivalence
    return Verdict.success(equivalence.cases_run)


class QuestionGrader:
    """
    Grades submissions for one question.

    The reference is wrapped once and its observations are shared by all
    submissions graded through this instance.
    """

    def __init__(self, question: Question, seed: int | None = None) -> None:
        """
        Initialize the grader.

        Args:
            question: Question to grade against.
            seed: Overrides the question's seed when given.

        Raises:
            QuestionError: If the reference solution cannot be analyzed or wrapped.
        """
        self.question = question
        self.seed = seed
        self.cache = ObservationCache()
        filename = f"<{question.slug} reference>"
        try:
            self.reference_features = extract(question.solution, filename)
            self.reference_metrics = measure(question.solution, filename)
            self.reference: WrappedCallable = wrap(question.solution, question, f"{question.slug}-reference", filename)
        except SubmissionError as e:
            raise QuestionError(f"Reference solution for '{question.slug}' is unusable: {e}") from e

    def __enter__(self) -> "QuestionGrader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def test_cases(self) -> InputGenerator:
        return InputGenerator(self.question, self.seed)

    def grade(self, submission: Submission) -> GradeResult:
        """
        Grade one submission.

        Returns:
            GradeResult with the combined verdict and, unless a structural
            error stopped grading early, both component verdicts.

        Raises:
            QuestionError: If the reference misbehaves on a test case.
            SandboxError: If a worker process cannot be started.
        """
        question = self.question
        filename = submission.path or f"<{submission.submission_id}>"
        logger.debug("Grading %s for %s", submission.submission_id, question.slug)

        try:
            features = extract(submission.source, filename)
            metrics = measure(submission.source, filename)
            wrapped = wrap(submission.source, question, f"{question.slug}-{submission.submission_id}", filename)
        except (ParseError, ConstructionError, UnsupportedShapeError) as e:
            return GradeResult(
                question=question.slug,
                submission_id=submission.submission_id,
                verdict=Verdict.failure(e.reason, str(e)),
            )

        with wrapped:
            equivalence = run(self.reference, wrapped, self.test_cases(), question, self.cache)
        feature_verdict = check(self.reference_features, features, question.features)
        size_verdict = check_size(self.reference_metrics, metrics, question.testing)

        return GradeResult(
            question=question.slug,
            submission_id=submission.submission_id,
            verdict=combine(feature_verdict, equivalence, size_verdict),
            equivalence=equivalence,
            features=feature_verdict,
            size=size_verdict,
        )

    def grade_all(self, submissions: Iterable[Submission], workers: int = 1) -> list[GradeResult]:
        """
        Grade several submissions, possibly concurrently.

        Returns:
            Results in the same order as the submissions.
        """
        submissions = list(submissions)
        if workers <= 1:
            return [self.grade(s) for s in submissions]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self.grade, submissions))

    def close(self) -> None:
        self.reference.close()


def validate_question(question: Question, seed: int | None = None) -> ValidationReport:
    """
    Check a question against its own examples.

    The reference must satisfy its feature policy and agree with itself,
    every also-correct source must pass, and every incorrect example must
    fail, for its declared reason when it has one.

    Returns:
        ValidationReport listing every problem found.
    """
    errors: list[str] = []
    results: list[GradeResult] = []
    test_count = 0

    try:
        grader = QuestionGrader(question, seed)
    except QuestionError as e:
        return ValidationReport(question=question.slug, passed=False, errors=[str(e)])

    with grader:
        violation = policy_violations(grader.reference_features, question.features)
        if violation is not None:
            errors.append(f"Reference solution violates the feature policy: {violation}")

        try:
            result = grader.grade(Submission(submission_id="reference", source=question.solution))
            results.append(result)
            if result.equivalence is None or not result.equivalence.passed:
                errors.append(f"Reference solution does not agree with itself: {result.verdict.message}")
            else:
                test_count = result.equivalence.cases_run

            for i, source in enumerate(question.also_correct, 1):
                result = grader.grade(Submission(submission_id=f"also_correct_{i}", source=source))
                results.append(result)
                if not result.passed:
                    errors.append(f"Correct example {i} failed: {result.verdict.message}")

            for i, example in enumerate(question.incorrect, 1):
                result = grader.grade(
                    Submission(submission_id=f"incorrect_{i}", source=example.source, path=example.path)
                )
                results.append(result)
                if result.passed:
                    errors.append(f"Incorrect example {i} passed")
                elif example.reason is not None and result.verdict.reason != example.reason:
                    errors.append(
                        f"Incorrect example {i} failed with {result.verdict.reason.value}, "
                        f"expected {example.reason.value}: {result.verdict.message}"
                    )
        except QuestionError as e:
            errors.append(str(e))

    for error in errors:
        logger.warning("Question %s: %s", question.slug, error)
    return ValidationReport(
        question=question.slug,
        passed=not errors,
        test_count=test_count,
        errors=errors,
        results=results,
    )
