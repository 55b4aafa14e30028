"""
Exception hierarchy for the equigrade system.

    GradingError                      -- base
      QuestionError                   -- unusable question or reference (aborts a run)
      SandboxError                    -- worker process cannot be started (aborts a run)
      SubmissionError                 -- caused by a submission, becomes a failing Verdict
        ParseError
        ConstructionError
        UnsupportedShapeError
        FeatureCheckError
          ForbiddenFeatureError
          MissingFeatureError
        ComplexityError
        LineCountError
"""

from collections.abc import Iterable

from .models import FailureReason, FeatureName


class GradingError(Exception):
    """Base class for all equigrade errors."""


class QuestionError(GradingError):
    """The question descriptor or its reference solution is unusable."""


class SandboxError(GradingError):
    """An isolated worker could not be started or talked to."""


class SubmissionError(GradingError):
    """
    A condition caused by the submission under test.

    Attributes:
        reason: FailureReason reported in the resulting Verdict.
    """

    reason: FailureReason = FailureReason.CRASH


class ParseError(SubmissionError):
    """Source unit is not valid Python."""

    reason = FailureReason.PARSE_ERROR

    def __init__(self, message: str, lineno: int | None = None) -> None:
        self.lineno = lineno
        location = f" (line {lineno})" if lineno is not None else ""
        super().__init__(f"{message}{location}")


class ConstructionError(SubmissionError):
    """Entry point owner cannot be instantiated, or the module body failed."""

    reason = FailureReason.CONSTRUCTION_ERROR


class UnsupportedShapeError(SubmissionError):
    """Entry point is missing or its signature does not match the question."""

    reason = FailureReason.UNSUPPORTED_SHAPE


class FeatureCheckError(SubmissionError):
    """
    Submission violates the question's feature policy.

    Attributes:
        features: Offending constructs, sorted by name.
    """

    def __init__(self, message: str, features: Iterable[FeatureName]) -> None:
        self.features = tuple(sorted(features, key=lambda f: f.value))
        names = ", ".join(f.value for f in self.features)
        super().__init__(f"{message}: {names}")


class ForbiddenFeatureError(FeatureCheckError):
    reason = FailureReason.FORBIDDEN_FEATURE

    def __init__(self, features: Iterable[FeatureName]) -> None:
        super().__init__("Submission uses forbidden constructs", features)


class MissingFeatureError(FeatureCheckError):
    reason = FailureReason.MISSING_FEATURE

    def __init__(self, features: Iterable[FeatureName]) -> None:
        super().__init__("Submission is missing required constructs", features)


class ComplexityError(SubmissionError):
    """Submission has too many decision points compared to the reference."""

    reason = FailureReason.COMPLEXITY_EXCEEDED


class LineCountError(SubmissionError):
    """Submission is too long compared to the reference."""

    reason = FailureReason.LINE_COUNT_EXCEEDED
