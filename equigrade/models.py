"""
Pydantic models for the equigrade system.

Defines the question descriptor, test cases, execution observations,
feature sets and the verdicts produced by grading.
"""

import math
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import (
    CHARSETS,
    DEFAULT_CHARSET,
    DEFAULT_DECLARED_ERRORS,
    DEFAULT_MAX_OUTPUT_LINES,
    DEFAULT_MAX_TEST_COUNT,
    DEFAULT_MIN_EXTRA_SOURCE_LINES,
    DEFAULT_SEED,
    DEFAULT_TEST_COUNT,
    DEFAULT_TIMEOUT_SECONDS,
    SUPPORTED_TYPES,
)


class FeatureName(str, Enum):
    """Language constructs recognized by the feature extractor."""

    IF_STATEMENTS = "if_statements"
    ELSE_STATEMENTS = "else_statements"
    ELIF_STATEMENTS = "elif_statements"
    CONDITIONAL_EXPRESSIONS = "conditional_expressions"
    MATCH_STATEMENTS = "match_statements"
    FOR_LOOPS = "for_loops"
    WHILE_LOOPS = "while_loops"
    COMPREHENSIONS = "comprehensions"
    ASSERT_STATEMENTS = "assert_statements"
    TRY_BLOCKS = "try_blocks"
    RAISE_STATEMENTS = "raise_statements"
    WITH_STATEMENTS = "with_statements"
    LAMBDA_EXPRESSIONS = "lambda_expressions"
    BREAK_STATEMENTS = "break_statements"
    CONTINUE_STATEMENTS = "continue_statements"
    RETURN_STATEMENTS = "return_statements"
    NESTED_FUNCTIONS = "nested_functions"
    CLASSES = "classes"
    RECURSION = "recursion"
    GLOBAL_STATEMENTS = "global_statements"
    PRINT_CALLS = "print_calls"
    BOOLEAN_OPERATORS = "boolean_operators"


class ExecutionMode(str, Enum):
    """How an entry point is invoked inside its worker."""

    DIRECT = "direct"
    AUTO_START = "auto_start"


class ObservationStatus(str, Enum):
    """Terminal status of one invocation."""

    RETURNED = "returned"
    THREW = "threw"
    TIMEOUT = "timeout"
    CRASHED = "crashed"
    CONSTRUCTION_FAILED = "construction_failed"


class FailureReason(str, Enum):
    """Reason tag carried by a failing verdict."""

    VALUE_MISMATCH = "value_mismatch"
    OUTPUT_MISMATCH = "output_mismatch"
    ERROR_MISMATCH = "error_mismatch"
    MISSING_FEATURE = "missing_required_feature"
    FORBIDDEN_FEATURE = "forbidden_feature_used"
    TIMEOUT = "timeout"
    CRASH = "crash"
    PARSE_ERROR = "parse_error"
    CONSTRUCTION_ERROR = "construction_error"
    UNSUPPORTED_SHAPE = "unsupported_shape"
    COMPLEXITY_EXCEEDED = "complexity_exceeded"
    LINE_COUNT_EXCEEDED = "line_count_exceeded"


class ParameterSpec(BaseModel):
    """
    Generative constraints for one entry-point parameter.

    Attributes:
        name: Parameter name, as written in the reference solution.
        type: One of SUPPORTED_TYPES.
        minimum: Lower bound for numbers (or list elements).
        maximum: Upper bound for numbers (or list elements).
        nullable: Whether None is a legal value.
        min_length: Minimum length for strings and lists.
        max_length: Maximum length for strings and lists.
        element_min_length: Minimum length of each string in a list[str].
        element_max_length: Maximum length of each string in a list[str].
        charset: Named character class for strings.
        alphabet: Explicit characters for strings, overrides charset.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Parameter name")
    type: str = Field(..., description="Parameter type")
    minimum: float | None = Field(default=None, description="Numeric lower bound")
    maximum: float | None = Field(default=None, description="Numeric upper bound")
    nullable: bool = Field(default=False, description="Whether None is allowed")
    min_length: int = Field(default=0, ge=0, description="Minimum string/list length")
    max_length: int | None = Field(default=None, ge=0, description="Maximum string/list length")
    element_min_length: int = Field(default=0, ge=0, description="Minimum length of list[str] elements")
    element_max_length: int | None = Field(default=None, ge=0, description="Maximum length of list[str] elements")
    charset: str = Field(default=DEFAULT_CHARSET, description="Named character class")
    alphabet: str | None = Field(default=None, description="Explicit string alphabet")

    @field_validator("type")
    @classmethod
    def _check_type(cls, value: str) -> str:
        normalized = value.replace(" ", "")
        if normalized not in SUPPORTED_TYPES:
            raise ValueError(f"Unsupported parameter type '{value}', expected one of {SUPPORTED_TYPES}")
        return normalized

    @field_validator("charset")
    @classmethod
    def _check_charset(cls, value: str) -> str:
        if value not in CHARSETS:
            raise ValueError(f"Unknown charset '{value}', expected one of {sorted(CHARSETS)}")
        return value

    @model_validator(mode="after")
    def _check_ranges(self) -> "ParameterSpec":
        if self.minimum is not None and self.maximum is not None and self.minimum > self.maximum:
            raise ValueError(f"Parameter '{self.name}': minimum {self.minimum} exceeds maximum {self.maximum}")
        if self.max_length is not None and self.min_length > self.max_length:
            raise ValueError(f"Parameter '{self.name}': min_length exceeds max_length")
        if self.element_max_length is not None and self.element_min_length > self.element_max_length:
            raise ValueError(f"Parameter '{self.name}': element_min_length exceeds element_max_length")
        if (
            self.type in ("int", "list[int]")
            and self.minimum is not None
            and self.maximum is not None
            and math.ceil(self.minimum) > math.floor(self.maximum)
        ):
            raise ValueError(f"Parameter '{self.name}': no integer between {self.minimum} and {self.maximum}")
        if self.alphabet is not None and not self.alphabet:
            raise ValueError(f"Parameter '{self.name}': alphabet must not be empty")
        return self

    @property
    def element_type(self) -> str | None:
        """Element type for list parameters, None otherwise."""
        if self.type.startswith("list[") and self.type.endswith("]"):
            return self.type[5:-1]
        return None

    @property
    def characters(self) -> str:
        """Characters used for string generation."""
        return self.alphabet or CHARSETS[self.charset]


class FeaturePolicy(BaseModel):
    """
    Required and forbidden constructs for a question.

    Attributes:
        required: Constructs the submission must use.
        forbidden: Constructs the submission must not use.
    """

    model_config = ConfigDict(frozen=True)

    required: frozenset[FeatureName] = Field(default_factory=frozenset, description="Required constructs")
    forbidden: frozenset[FeatureName] = Field(default_factory=frozenset, description="Forbidden constructs")

    @model_validator(mode="after")
    def _check_disjoint(self) -> "FeaturePolicy":
        overlap = self.required & self.forbidden
        if overlap:
            names = ", ".join(sorted(f.value for f in overlap))
            raise ValueError(f"Features both required and forbidden: {names}")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.required and not self.forbidden


class TestingControl(BaseModel):
    """Per-question testing knobs."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    seed: int = Field(default=DEFAULT_SEED, description="Seed for generated inputs")
    test_count: int = Field(default=DEFAULT_TEST_COUNT, ge=1, description="Generated case count")
    max_test_count: int = Field(default=DEFAULT_MAX_TEST_COUNT, ge=1, description="Hard cap on case count")
    include_boundaries: bool = Field(default=True, description="Always include boundary values")
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0, description="Per-invocation timeout")
    max_output_lines: int = Field(default=DEFAULT_MAX_OUTPUT_LINES, ge=0, description="Captured lines per call")
    check_output: bool = Field(default=True, description="Compare printed output line for line")
    max_extra_complexity: int | None = Field(
        default=None, ge=0, description="Decision points allowed beyond the reference, None disables"
    )
    source_lines_multiplier: float | None = Field(
        default=None, gt=0, description="Line count allowed as a multiple of the reference, None disables"
    )
    min_extra_source_lines: int = Field(
        default=DEFAULT_MIN_EXTRA_SOURCE_LINES, ge=0, description="Extra lines always allowed"
    )


class IncorrectExample(BaseModel):
    """A known-incorrect solution used to validate a question."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(..., description="Source text")
    path: str | None = Field(default=None, description="File the source was read from")
    reason: FailureReason | None = Field(default=None, description="Expected failure reason")


class Question(BaseModel):
    """
    Immutable question descriptor.

    Attributes:
        name: Display name (opaque metadata).
        author: Author contact (opaque metadata).
        version: Question version (opaque metadata).
        slug: Identifier used to locate submission files.
        description: Problem statement shown to students.
        entry_point: Function or method name to call.
        klass: Class owning the entry point; instantiated with no arguments per call.
        mode: Direct call or auto-started thread.
        solution: Reference solution source.
        parameters: Declared entry-point parameters.
        fixed_parameters: Literal argument tuples, used instead of generation.
        features: Feature policy.
        testing: Testing control.
        declared_errors: Error kinds the reference may legitimately raise.
        also_correct: Alternative correct sources.
        incorrect: Known-incorrect examples.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Question name")
    author: str = Field(default="", description="Question author")
    version: str = Field(default="", description="Question version")
    slug: str = Field(..., description="Submission file stem")
    description: str = Field(default="", description="Problem statement")
    entry_point: str = Field(..., description="Entry point name")
    klass: str | None = Field(default=None, description="Class owning the entry point")
    mode: ExecutionMode = Field(default=ExecutionMode.DIRECT, description="Execution mode")
    solution: str = Field(..., description="Reference solution source")
    parameters: tuple[ParameterSpec, ...] = Field(default=(), description="Entry-point parameters")
    fixed_parameters: tuple[tuple[Any, ...], ...] | None = Field(default=None, description="Fixed inputs")
    features: FeaturePolicy = Field(default_factory=FeaturePolicy, description="Feature policy")
    testing: TestingControl = Field(default_factory=TestingControl, description="Testing control")
    declared_errors: tuple[str, ...] = Field(default=DEFAULT_DECLARED_ERRORS, description="Declared error kinds")
    also_correct: tuple[str, ...] = Field(default=(), description="Alternative correct sources")
    incorrect: tuple[IncorrectExample, ...] = Field(default=(), description="Known-incorrect examples")

    @model_validator(mode="after")
    def _check_fixed_parameters(self) -> "Question":
        if self.fixed_parameters is not None:
            if not self.fixed_parameters:
                raise ValueError(f"Question '{self.name}': fixed_parameters must not be empty")
            arity = len(self.parameters)
            for arguments in self.fixed_parameters:
                if len(arguments) != arity:
                    raise ValueError(
                        f"Question '{self.name}': fixed input {list(arguments)} has {len(arguments)} "
                        f"values, entry point takes {arity}"
                    )
        return self

    @property
    def signature(self) -> str:
        params = ", ".join(f"{p.name}: {p.type}" for p in self.parameters)
        owner = f"{self.klass}." if self.klass else ""
        return f"{owner}{self.entry_point}({params})"


class Submission(BaseModel):
    """A candidate implementation. Never trusted."""

    submission_id: str = Field(..., description="Submission identifier")
    source: str = Field(..., description="Submission source text")
    path: str | None = Field(default=None, description="File the source was read from")


class TestCase(BaseModel):
    """One concrete input tuple."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Position in the sequence")
    arguments: tuple[Any, ...] = Field(..., description="Argument values")
    origin: Literal["fixed", "boundary", "random"] = Field(..., description="How the case was produced")

    @property
    def key(self) -> tuple[int, str]:
        return self.index, repr(self.arguments)


class ExecutionObservation(BaseModel):
    """
    Recorded outcome of invoking one callable on one test case.

    Attributes:
        status: Terminal status.
        returned: Returned value, None when not transferable.
        returned_repr: Bounded repr of the returned value.
        returned_type: Class name of the returned value.
        transferable: Whether `returned` holds the value, or its structural
            stand-in, rather than None.
        output: Captured stdout lines, in order.
        truncated_lines: Lines dropped past the output limit.
        error_kind: Exception class name when the call raised.
        error_message: Exception message when the call raised.
    """

    model_config = ConfigDict(frozen=True)

    status: ObservationStatus = Field(..., description="Terminal status")
    returned: Any = Field(default=None, description="Returned value")
    returned_repr: str = Field(default="None", description="Bounded repr of returned value")
    returned_type: str | None = Field(default=None, description="Class name of returned value")
    transferable: bool = Field(default=True, description="Whether returned is the real value")
    output: tuple[str, ...] = Field(default=(), description="Captured output lines")
    truncated_lines: int = Field(default=0, ge=0, description="Dropped output lines")
    error_kind: str | None = Field(default=None, description="Raised error kind")
    error_message: str | None = Field(default=None, description="Raised error message")

    @property
    def completed(self) -> bool:
        return self.status in (ObservationStatus.RETURNED, ObservationStatus.THREW)

    def describe(self) -> str:
        """Short human-readable outcome, used in verdict messages."""
        if self.status == ObservationStatus.RETURNED:
            return self.returned_repr
        if self.status == ObservationStatus.THREW:
            return f"{self.error_kind}: {self.error_message}" if self.error_message else str(self.error_kind)
        if self.status == ObservationStatus.CONSTRUCTION_FAILED:
            return f"construction failed ({self.error_kind}: {self.error_message})"
        return self.status.value


class FeatureSet(BaseModel):
    """Multiset of constructs extracted from one source unit."""

    model_config = ConfigDict(frozen=True)

    counts: dict[FeatureName, int] = Field(default_factory=dict, description="Construct counts")

    def __contains__(self, feature: object) -> bool:
        return self.counts.get(feature, 0) > 0  # type: ignore[arg-type]

    def count(self, feature: FeatureName) -> int:
        return self.counts.get(feature, 0)

    @property
    def names(self) -> frozenset[FeatureName]:
        return frozenset(f for f, n in self.counts.items() if n > 0)


class SourceMetrics(BaseModel):
    """
    Size of one source unit.

    Attributes:
        line_count: Lines holding code; blank lines, comments and docstrings excluded.
        complexity: One plus the number of decision points.
    """

    model_config = ConfigDict(frozen=True)

    line_count: int = Field(..., ge=0, description="Source lines")
    complexity: int = Field(..., ge=1, description="Cyclomatic complexity")


class Verdict(BaseModel):
    """
    Terminal judgement for one check of one (question, submission) pair.

    Attributes:
        passed: Whether the check passed.
        reason: Failure reason, None when passed.
        message: Explanation of the failure.
        test_case: Offending input.
        expected: Reference outcome on the offending input.
        found: Submission outcome on the offending input.
        expected_output: Reference output on the offending input.
        found_output: Submission output on the offending input.
        features: Offending constructs for feature failures.
        cases_run: Test cases executed before the verdict was reached.
    """

    model_config = ConfigDict(frozen=True)

    passed: bool = Field(..., description="Whether the check passed")
    reason: FailureReason | None = Field(default=None, description="Failure reason")
    message: str = Field(default="", description="Failure explanation")
    test_case: TestCase | None = Field(default=None, description="Offending input")
    expected: str | None = Field(default=None, description="Expected outcome")
    found: str | None = Field(default=None, description="Observed outcome")
    expected_output: tuple[str, ...] | None = Field(default=None, description="Expected output lines")
    found_output: tuple[str, ...] | None = Field(default=None, description="Observed output lines")
    features: tuple[FeatureName, ...] = Field(default=(), description="Offending constructs")
    cases_run: int = Field(default=0, ge=0, description="Cases executed")

    @classmethod
    def success(cls, cases_run: int = 0) -> "Verdict":
        return cls(passed=True, message="Passed", cases_run=cases_run)

    @classmethod
    def failure(cls, reason: FailureReason, message: str, **kwargs: Any) -> "Verdict":
        return cls(passed=False, reason=reason, message=message, **kwargs)


class GradeResult(BaseModel):
    """
    Grading result for one (question, submission) pair.

    Attributes:
        question: Question slug.
        submission_id: Submission identifier.
        verdict: Combined verdict.
        equivalence: Behavioral verdict, None when grading stopped early.
        features: Structural verdict, None when grading stopped early.
        size: Line count and complexity verdict, None when not checked.
    """

    model_config = ConfigDict(frozen=True)

    question: str = Field(..., description="Question slug")
    submission_id: str = Field(..., description="Submission identifier")
    verdict: Verdict = Field(..., description="Combined verdict")
    equivalence: Verdict | None = Field(default=None, description="Equivalence verdict")
    features: Verdict | None = Field(default=None, description="Feature verdict")
    size: Verdict | None = Field(default=None, description="Size verdict")

    @property
    def passed(self) -> bool:
        return self.verdict.passed


class ValidationReport(BaseModel):
    """Outcome of validating a question against its own examples."""

    question: str = Field(..., description="Question slug")
    passed: bool = Field(..., description="Whether validation passed")
    test_count: int = Field(default=0, ge=0, description="Cases the reference was run on")
    errors: list[str] = Field(default_factory=list, description="Validation failures")
    results: list[GradeResult] = Field(default_factory=list, description="Example grading results")
