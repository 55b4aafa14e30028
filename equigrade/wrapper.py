"""
Callable wrapper.

Adapts a reference solution or a submission into a uniform invocable
bound to its own isolated worker. The entry point's shape is probed once,
with inspect.signature inside the worker, and checked against the
question's declared parameters before any test case runs.
"""

import logging
from typing import Any

from .errors import ConstructionError, UnsupportedShapeError
from .features import parse_source
from .models import ExecutionObservation, Question
from .sandbox import Sandbox

logger = logging.getLogger(__name__)

_POSITIONAL_KINDS = ("POSITIONAL_ONLY", "POSITIONAL_OR_KEYWORD")


class WrappedCallable:
    """
    A probed entry point ready to be invoked on test arguments.

    Every invocation re-executes the module in a fresh namespace and, for
    methods, constructs a fresh instance, so no state leaks between calls.
    """

    def __init__(self, label: str, source: str, filename: str, question: Question, sandbox: Sandbox) -> None:
        self.label = label
        self.source = source
        self.filename = filename
        self.question = question
        self.sandbox = sandbox

    def __enter__(self) -> "WrappedCallable":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"WrappedCallable({self.label!r}, {self.question.signature})"

    def _payload(self) -> dict[str, Any]:
        return _base_payload(self.source, self.filename, self.question)

    def invoke(self, arguments: tuple[Any, ...]) -> ExecutionObservation:
        """
        Invoke the entry point once.

        Args:
            arguments: Positional argument values, copied into the worker.

        Returns:
            ExecutionObservation for the call.
        """
        payload = self._payload()
        payload["arguments"] = tuple(arguments)
        return self.sandbox.invoke(payload, self.question.testing.timeout_seconds)

    __call__ = invoke

    def close(self) -> None:
        self.sandbox.close()


def _base_payload(source: str, filename: str, question: Question) -> dict[str, Any]:
    return {
        "source": source,
        "filename": filename,
        "entry_point": question.entry_point,
        "klass": question.klass,
        "mode": question.mode.value,
        "max_output_lines": question.testing.max_output_lines,
    }


def check_shape(parameters: list[dict[str, Any]], question: Question) -> None:
    """
    Check a probed parameter list against the question's declared signature.

    Raises:
        UnsupportedShapeError: If the shapes cannot be matched positionally.
    """
    declared = len(question.parameters)
    positional = [p for p in parameters if p["kind"] in _POSITIONAL_KINDS]
    required = [p for p in positional if not p["has_default"]]

    for p in parameters:
        if p["kind"] in ("VAR_POSITIONAL", "VAR_KEYWORD"):
            raise UnsupportedShapeError(
                f"{question.entry_point} must not use variadic parameters, expected {question.signature}"
            )
        if p["kind"] == "KEYWORD_ONLY" and not p["has_default"]:
            raise UnsupportedShapeError(
                f"{question.entry_point} has keyword-only parameter '{p['name']}', expected {question.signature}"
            )

    if not len(required) <= declared <= len(positional):
        raise UnsupportedShapeError(
            f"{question.entry_point} takes {len(positional)} parameters, expected {question.signature}"
        )


def wrap(source: str, question: Question, label: str = "submission", filename: str | None = None) -> WrappedCallable:
    """
    Wrap a source unit's entry point for the given question.

    Args:
        source: Python source defining the entry point.
        question: Question whose entry point, mode and signature apply.
        label: Name used for logs and the worker process.
        filename: Name used in tracebacks and parse errors.

    Returns:
        WrappedCallable bound to a running worker.

    Raises:
        ParseError: If the source is not valid Python.
        ConstructionError: If the module body or the class constructor fails.
        UnsupportedShapeError: If the entry point is missing or mismatched.
    """
    filename = filename or f"<{label}>"
    parse_source(source, filename)

    sandbox = Sandbox(label)
    try:
        reply = sandbox.probe(_base_payload(source, filename, question), question.testing.timeout_seconds)
        if not reply["ok"]:
            if reply["error"] == "shape":
                raise UnsupportedShapeError(reply["message"])
            raise ConstructionError(reply["message"])
        check_shape(reply["parameters"], question)
    except (ConstructionError, UnsupportedShapeError):
        sandbox.close()
        raise

    logger.debug("Wrapped %s as %s", label, question.signature)
    return WrappedCallable(label, source, filename, question, sandbox)
