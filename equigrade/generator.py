"""
Test input generation.

Produces the ordered sequence of test cases for a question: its fixed
inputs verbatim when it declares any, otherwise boundary values followed
by seeded random draws. Two generators with the same seed always produce
the same sequence.
"""

import math
import random
from collections.abc import Iterator
from typing import Any

from .config import DEFAULT_FLOAT_RANGE, DEFAULT_INT_RANGE, DEFAULT_MAX_LENGTH, NULL_PROBABILITY
from .models import ParameterSpec, Question, TestCase


class InputGenerator:
    """
    Restartable, finite sequence of test cases for one question.

    Iterating twice yields identical sequences: every iteration starts
    from a fresh random source seeded with the same seed.
    """

    def __init__(self, question: Question, seed: int | None = None) -> None:
        """
        Initialize the generator.

        Args:
            question: Question supplying parameters and testing control.
            seed: Overrides the question's seed when given.
        """
        self.question = question
        self.seed = question.testing.seed if seed is None else seed

    def __iter__(self) -> Iterator[TestCase]:
        if self.question.fixed_parameters is not None:
            for index, arguments in enumerate(self.question.fixed_parameters):
                yield TestCase(index=index, arguments=tuple(arguments), origin="fixed")
            return

        parameters = self.question.parameters
        if not parameters:
            yield TestCase(index=0, arguments=(), origin="boundary")
            return

        control = self.question.testing
        rng = random.Random(self.seed)
        index = 0

        if control.include_boundaries:
            for arguments in _boundary_cases(parameters):
                if index >= control.max_test_count:
                    return
                yield TestCase(index=index, arguments=arguments, origin="boundary")
                index += 1

        total = min(max(control.test_count, index), control.max_test_count)
        while index < total:
            arguments = tuple(_draw(spec, rng) for spec in parameters)
            yield TestCase(index=index, arguments=arguments, origin="random")
            index += 1


def generate(question: Question, seed: int | None = None) -> Iterator[TestCase]:
    """Lazy test case sequence for a question."""
    return iter(InputGenerator(question, seed))


def _bounds(low: Any, high: Any, default: tuple[Any, Any]) -> tuple[Any, Any]:
    """Fill a missing end from the default range without crossing the given end."""
    if low is None:
        low = default[0] if high is None else min(default[0], high)
    if high is None:
        high = max(default[1], low)
    return low, high


def _int_range(spec: ParameterSpec) -> tuple[int, int]:
    low = math.ceil(spec.minimum) if spec.minimum is not None else None
    high = math.floor(spec.maximum) if spec.maximum is not None else None
    return _bounds(low, high, DEFAULT_INT_RANGE)


def _float_range(spec: ParameterSpec) -> tuple[float, float]:
    low = float(spec.minimum) if spec.minimum is not None else None
    high = float(spec.maximum) if spec.maximum is not None else None
    return _bounds(low, high, DEFAULT_FLOAT_RANGE)


def _length_range(spec: ParameterSpec) -> tuple[int, int]:
    high = spec.max_length if spec.max_length is not None else max(DEFAULT_MAX_LENGTH, spec.min_length)
    return spec.min_length, high


def _string_length_range(spec: ParameterSpec) -> tuple[int, int]:
    """Lengths for a string parameter, or for each string of a list[str]."""
    if spec.element_type is None:
        return _length_range(spec)
    low = spec.element_min_length
    high = spec.element_max_length if spec.element_max_length is not None else max(DEFAULT_MAX_LENGTH, low)
    return low, high


def _unique(values: list[Any]) -> list[Any]:
    seen: list[Any] = []
    for value in values:
        if not any(type(value) is type(s) and value == s for s in seen):
            seen.append(value)
    return seen


def _scalar_boundaries(type_name: str, spec: ParameterSpec) -> list[Any]:
    if type_name == "int":
        low, high = _int_range(spec)
        return _unique([v for v in (0, -1, 1, low, high) if low <= v <= high])
    if type_name == "float":
        low, high = _float_range(spec)
        return _unique([v for v in (0.0, -1.0, 1.0, low, high) if low <= v <= high])
    if type_name == "bool":
        return [False, True]
    # str
    low, high = _string_length_range(spec)
    values = [spec.characters[0] * low]
    if high > low:
        values.append(spec.characters[0] * (low + 1))
    return values


def boundary_values(spec: ParameterSpec) -> list[Any]:
    """
    Boundary values for one parameter.

    Zero, -1 and 1 plus the range ends for numbers, the shortest strings
    and lists, and None when the parameter is nullable.
    """
    element = spec.element_type
    if element is None:
        values = _scalar_boundaries(spec.type, spec)
    else:
        low, high = _length_range(spec)
        first = _scalar_boundaries(element, spec)[0]
        values = [[first] * low]
        if high > low:
            values.append([first] * (low + 1))
    if spec.nullable:
        values = [None, *values]
    return values


def _boundary_cases(parameters: tuple[ParameterSpec, ...]) -> list[tuple[Any, ...]]:
    """One case per boundary position, cycling shorter boundary lists."""
    columns = [boundary_values(spec) for spec in parameters]
    count = max(len(column) for column in columns)
    return [tuple(column[i % len(column)] for column in columns) for i in range(count)]


def _draw_scalar(type_name: str, spec: ParameterSpec, rng: random.Random) -> Any:
    if type_name == "int":
        return rng.randint(*_int_range(spec))
    if type_name == "float":
        return rng.uniform(*_float_range(spec))
    if type_name == "bool":
        return rng.random() < 0.5
    length = rng.randint(*_string_length_range(spec))
    return "".join(rng.choice(spec.characters) for _ in range(length))


def _draw(spec: ParameterSpec, rng: random.Random) -> Any:
    if spec.nullable and rng.random() < NULL_PROBABILITY:
        return None
    element = spec.element_type
    if element is None:
        return _draw_scalar(spec.type, spec, rng)
    length = rng.randint(*_length_range(spec))
    return [_draw_scalar(element, spec, rng) for _ in range(length)]
