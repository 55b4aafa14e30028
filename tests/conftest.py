"""Shared test fixtures for equigrade."""

import textwrap
from pathlib import Path

import pytest

from equigrade.models import (
    ExecutionMode,
    FeatureName,
    FeaturePolicy,
    ParameterSpec,
    Question,
    TestingControl,
)


def source(text: str) -> str:
    return textwrap.dedent(text).lstrip()


ADD_TWO = source(
    """
    def add_two(value: int) -> int:
        return value + 2
    """
)

CHECK_VALUE = source(
    """
    def check_value(value: int) -> None:
        if value > 0:
            print("positive")
        else:
            print("non-positive")
    """
)

DETERMINE_STATUS = source(
    """
    def determine_status(value: int) -> str:
        match value:
            case 0:
                return "zero"
            case v if v > 0:
                return "positive"
            case _:
                return "negative"
    """
)

STRING_LENGTH = source(
    """
    def string_length(text: str) -> int:
        assert text, "text must not be empty"
        return len(text)
    """
)

GREET = source(
    """
    def greet(name: str) -> None:
        print(f"Hello, {name}!")
    """
)

COUNTER = source(
    """
    class Counter:
        def __init__(self):
            self.count = 0

        def increment(self, step: int) -> int:
            self.count += step
            return self.count
    """
)


def make_question(**fields) -> Question:
    """Question with the add_two defaults, overridden by `fields`."""
    data = {
        "name": "Add Two",
        "slug": "add_two",
        "entry_point": "add_two",
        "solution": ADD_TWO,
        "parameters": (ParameterSpec(name="value", type="int"),),
        "fixed_parameters": ((-1,), (0,), (2,), (100,)),
        "testing": TestingControl(timeout_seconds=2.0),
    }
    data.update(fields)
    return Question(**data)


@pytest.fixture
def add_two_question() -> Question:
    return make_question()


@pytest.fixture
def check_value_question() -> Question:
    return make_question(
        name="Check Value",
        slug="check_value",
        entry_point="check_value",
        solution=CHECK_VALUE,
        fixed_parameters=((-10,), (-1,), (0,), (1,), (10,), (100,)),
    )


@pytest.fixture
def determine_status_question() -> Question:
    return make_question(
        name="Determine Status",
        slug="determine_status",
        entry_point="determine_status",
        solution=DETERMINE_STATUS,
        fixed_parameters=None,
        parameters=(ParameterSpec(name="value", type="int", minimum=-5, maximum=5),),
        features=FeaturePolicy(
            required=frozenset({FeatureName.MATCH_STATEMENTS}),
            forbidden=frozenset({FeatureName.IF_STATEMENTS, FeatureName.CONDITIONAL_EXPRESSIONS}),
        ),
        testing=TestingControl(test_count=12),
    )


@pytest.fixture
def string_length_question() -> Question:
    return make_question(
        name="String Length",
        slug="string_length",
        entry_point="string_length",
        solution=STRING_LENGTH,
        fixed_parameters=None,
        parameters=(ParameterSpec(name="text", type="str", max_length=4),),
        testing=TestingControl(test_count=8),
    )


@pytest.fixture
def greet_question() -> Question:
    return make_question(
        name="Greet",
        slug="greet",
        entry_point="greet",
        solution=GREET,
        mode=ExecutionMode.AUTO_START,
        parameters=(ParameterSpec(name="name", type="str"),),
        fixed_parameters=(("Ada",), ("",), ("Grace",)),
    )


@pytest.fixture
def counter_question() -> Question:
    return make_question(
        name="Counter",
        slug="counter",
        entry_point="increment",
        klass="Counter",
        solution=COUNTER,
        parameters=(ParameterSpec(name="step", type="int"),),
        fixed_parameters=((1,), (1,), (5,)),
    )


@pytest.fixture
def question_dir(tmp_path: Path) -> Path:
    """A question.yml for add_two with its solution and examples on disk."""
    directory = tmp_path / "questions" / "add_two"
    directory.mkdir(parents=True)
    (directory / "solution.py").write_text(ADD_TWO, encoding="utf-8")
    (directory / "alternate.py").write_text(
        source(
            """
            def add_two(value: int) -> int:
                return 2 + value
            """
        ),
        encoding="utf-8",
    )
    (directory / "add_one.py").write_text(
        source(
            """
            def add_two(value: int) -> int:
                return value + 1
            """
        ),
        encoding="utf-8",
    )
    (directory / "question.yml").write_text(
        source(
            """
            name: Add Two
            author: staff@example.edu
            version: "1"
            entry_point: add_two
            solution: solution.py
            fixed_parameters: [-1, 0, 2, 100]
            also_correct:
              - alternate.py
            incorrect:
              - path: add_one.py
                reason: value_mismatch
            """
        ),
        encoding="utf-8",
    )
    return directory
