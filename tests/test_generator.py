"""Tests for generator.py."""

import math

import pytest
from pydantic import ValidationError

from conftest import make_question
from equigrade.generator import InputGenerator, boundary_values, generate
from equigrade.models import ParameterSpec, TestingControl


def _generated(parameters, **testing):
    return make_question(
        fixed_parameters=None,
        parameters=tuple(parameters),
        testing=TestingControl(**testing),
    )


def test_fixed_list_verbatim(add_two_question):
    cases = list(generate(add_two_question))
    assert [c.arguments for c in cases] == [(-1,), (0,), (2,), (100,)]
    assert [c.index for c in cases] == [0, 1, 2, 3]
    assert all(c.origin == "fixed" for c in cases)


def test_fixed_list_ignores_seed(add_two_question):
    assert list(generate(add_two_question, seed=1)) == list(generate(add_two_question, seed=2))


def test_same_seed_same_sequence():
    question = _generated([ParameterSpec(name="x", type="int"), ParameterSpec(name="s", type="str")])
    assert list(generate(question)) == list(generate(question))


def test_different_seed_different_sequence():
    question = _generated([ParameterSpec(name="x", type="int")], test_count=20)
    first = [c.arguments for c in generate(question, seed=1)]
    second = [c.arguments for c in generate(question, seed=2)]
    assert first != second


def test_restartable():
    generator = InputGenerator(_generated([ParameterSpec(name="x", type="float")]))
    assert list(generator) == list(generator)


def test_count_and_boundaries_first():
    question = _generated([ParameterSpec(name="x", type="int", minimum=-10, maximum=10)], test_count=20)
    cases = list(generate(question))
    assert len(cases) == 20
    boundary = [c.arguments[0] for c in cases if c.origin == "boundary"]
    assert boundary == [0, -1, 1, -10, 10]
    assert all(c.origin == "boundary" for c in cases[:5])
    assert all(-10 <= c.arguments[0] <= 10 for c in cases)


def test_boundaries_filtered_to_range():
    assert boundary_values(ParameterSpec(name="x", type="int", minimum=5, maximum=9)) == [5, 9]
    assert boundary_values(ParameterSpec(name="x", type="int", minimum=0, maximum=0)) == [0]


def test_boundaries_disabled():
    question = _generated([ParameterSpec(name="x", type="int")], test_count=5, include_boundaries=False)
    cases = list(generate(question))
    assert len(cases) == 5
    assert all(c.origin == "random" for c in cases)


def test_max_test_count_caps():
    question = _generated([ParameterSpec(name="x", type="int")], test_count=50, max_test_count=3)
    assert len(list(generate(question))) == 3


def test_boundaries_kept_when_test_count_smaller():
    question = _generated([ParameterSpec(name="x", type="int")], test_count=1)
    cases = list(generate(question))
    assert len(cases) == 5
    assert all(c.origin == "boundary" for c in cases)


def test_nullable_includes_none():
    spec = ParameterSpec(name="x", type="int", nullable=True)
    assert boundary_values(spec)[0] is None


def test_string_and_list_boundaries():
    assert boundary_values(ParameterSpec(name="s", type="str", alphabet="xy")) == ["", "x"]
    assert boundary_values(ParameterSpec(name="s", type="str", min_length=2, max_length=2, alphabet="q")) == ["qq"]
    assert boundary_values(ParameterSpec(name="v", type="list[int]")) == [[], [0]]
    assert boundary_values(ParameterSpec(name="b", type="bool")) == [False, True]


def test_boundary_columns_cycle():
    question = _generated(
        [ParameterSpec(name="b", type="bool"), ParameterSpec(name="x", type="int", minimum=0, maximum=3)],
        test_count=3,
    )
    boundary = [c.arguments for c in generate(question) if c.origin == "boundary"]
    assert boundary == [(False, 0), (True, 1), (False, 3)]


def test_generated_values_respect_constraints():
    question = _generated(
        [
            ParameterSpec(name="f", type="float", minimum=0.5, maximum=2.5),
            ParameterSpec(name="s", type="str", min_length=1, max_length=3, charset="digits"),
            ParameterSpec(name="v", type="list[int]", minimum=0, maximum=9, max_length=4),
        ],
        test_count=40,
    )
    for case in generate(question):
        f, s, v = case.arguments
        assert isinstance(f, float) and 0.5 <= f <= 2.5 and not math.isnan(f)
        assert 1 <= len(s) <= 3 and s.isdigit()
        assert len(v) <= 4 and all(0 <= x <= 9 for x in v)


def test_nullable_draws_none_sometimes():
    question = _generated(
        [ParameterSpec(name="x", type="int", nullable=True)],
        test_count=200,
        max_test_count=200,
        include_boundaries=False,
    )
    values = [c.arguments[0] for c in generate(question)]
    assert None in values
    assert any(v is not None for v in values)


def test_zero_parameters_single_case():
    question = _generated([], test_count=10)
    cases = list(generate(question))
    assert len(cases) == 1
    assert cases[0].arguments == ()


def test_indices_are_sequential():
    question = _generated([ParameterSpec(name="x", type="int")], test_count=12)
    assert [c.index for c in generate(question)] == list(range(12))


def test_fractional_int_bounds_rounded_inward():
    spec = ParameterSpec(name="x", type="int", minimum=0.5, maximum=3.5)
    assert boundary_values(spec) == [1, 3]
    question = _generated([spec], test_count=30)
    assert all(1 <= c.arguments[0] <= 3 for c in generate(question))


def test_int_bounds_without_an_integer_rejected():
    with pytest.raises(ValidationError, match="no integer"):
        ParameterSpec(name="x", type="int", minimum=0.2, maximum=0.8)


def test_single_bound_outside_default_range():
    spec = ParameterSpec(name="x", type="int", minimum=5000)
    assert boundary_values(spec) == [5000]
    question = _generated([spec], test_count=10)
    assert all(c.arguments[0] >= 5000 for c in generate(question))


def test_list_of_strings_element_lengths():
    spec = ParameterSpec(
        name="words",
        type="list[str]",
        min_length=1,
        max_length=3,
        element_min_length=5,
        element_max_length=6,
        alphabet="ab",
    )
    assert boundary_values(spec) == [["aaaaa"], ["aaaaa", "aaaaa"]]
    for case in generate(_generated([spec], test_count=30)):
        words = case.arguments[0]
        assert 1 <= len(words) <= 3
        assert all(5 <= len(w) <= 6 and set(w) <= {"a", "b"} for w in words)
