"""
Source size metrics.

Measures how long and how branchy a source unit is, and compares a
submission's measurements against the reference's under the question's
testing control. Purely syntactic, like feature extraction.
"""

import ast
import logging

from .errors import ComplexityError, LineCountError
from .features import parse_source
from .models import SourceMetrics, TestingControl, Verdict

logger = logging.getLogger(__name__)

_BRANCHES = (ast.If, ast.IfExp, ast.For, ast.AsyncFor, ast.While, ast.ExceptHandler)


def _docstrings(tree: ast.Module) -> list[ast.Expr]:
    owners = [tree]
    owners += [n for n in ast.walk(tree) if isinstance(n, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef))]
    found = []
    for owner in owners:
        first = owner.body[0] if owner.body else None
        if (
            isinstance(first, ast.Expr)
            and isinstance(first.value, ast.Constant)
            and isinstance(first.value.value, str)
        ):
            found.append(first)
    return found


def line_count(tree: ast.Module) -> int:
    """Number of lines holding code, docstrings excluded."""
    skipped = set()
    for docstring in _docstrings(tree):
        skipped.update(range(docstring.lineno, docstring.end_lineno + 1))

    lines = set()
    for node in ast.walk(tree):
        if isinstance(node, (ast.stmt, ast.expr)):
            lines.add(node.lineno)
            lines.add(node.end_lineno)
    return len(lines - skipped)


def _is_wildcard(case: ast.match_case) -> bool:
    return isinstance(case.pattern, ast.MatchAs) and case.pattern.pattern is None and case.guard is None


def complexity(tree: ast.Module) -> int:
    """Cyclomatic complexity: one plus every place control flow can branch."""
    total = 1
    for node in ast.walk(tree):
        if isinstance(node, _BRANCHES):
            total += 1
        elif isinstance(node, ast.comprehension):
            total += 1 + len(node.ifs)
        elif isinstance(node, ast.BoolOp):
            total += len(node.values) - 1
        elif isinstance(node, ast.match_case) and not _is_wildcard(node):
            total += 1
    return total


def measure(source: str, filename: str = "<source>") -> SourceMetrics:
    """
    Measure a source unit.

    Raises:
        ParseError: If the source is not syntactically valid.
    """
    tree = parse_source(source, filename)
    return SourceMetrics(line_count=line_count(tree), complexity=complexity(tree))


def enforce(reference: SourceMetrics, submission: SourceMetrics, control: TestingControl) -> None:
    """
    Compare a submission's size with the reference's.

    Complexity fails when it exceeds the reference by more than
    `max_extra_complexity`. Line count fails when it exceeds the reference
    by more than `min_extra_source_lines` and is also above
    `source_lines_multiplier` times the reference.

    Raises:
        ComplexityError: If the submission is too complex.
        LineCountError: If the submission is too long.
    """
    if control.max_extra_complexity is not None:
        increase = submission.complexity - reference.complexity
        if increase > control.max_extra_complexity:
            raise ComplexityError(
                f"Submission complexity {submission.complexity} exceeds the solution's "
                f"{reference.complexity} by more than {control.max_extra_complexity}"
            )

    if control.source_lines_multiplier is not None:
        limit = int(reference.line_count * control.source_lines_multiplier)
        increase = submission.line_count - reference.line_count
        if increase > control.min_extra_source_lines and submission.line_count > limit:
            allowed = max(limit, reference.line_count + control.min_extra_source_lines)
            raise LineCountError(
                f"Submission has {submission.line_count} source lines, at most {allowed} allowed "
                f"(the solution has {reference.line_count})"
            )


def check(reference: SourceMetrics, submission: SourceMetrics, control: TestingControl) -> Verdict:
    """Size verdict for a submission."""
    try:
        enforce(reference, submission, control)
    except (ComplexityError, LineCountError) as e:
        logger.debug("Size check failed: %s", e)
        return Verdict.failure(e.reason, str(e))
    return Verdict.success()
