"""Tests for question_loader.py."""

import pytest

from conftest import source
from equigrade.errors import QuestionError
from equigrade.models import ExecutionMode, FailureReason, FeatureName
from equigrade.question_loader import discover_questions, infer_parameters, load_question


def test_load_question(question_dir):
    question = load_question(question_dir / "question.yml")
    assert question.slug == "add_two"
    assert question.name == "Add Two"
    assert question.version == "1"
    assert question.mode == ExecutionMode.DIRECT
    assert "return value + 2" in question.solution
    assert [(p.name, p.type) for p in question.parameters] == [("value", "int")]
    assert question.fixed_parameters == ((-1,), (0,), (2,), (100,))
    assert len(question.also_correct) == 1
    assert question.incorrect[0].reason == FailureReason.VALUE_MISMATCH
    assert question.incorrect[0].path.endswith("add_one.py")


def test_inline_solution_and_policy(tmp_path):
    (tmp_path / "question.yml").write_text(
        source(
            """
            name: Status
            slug: status
            entry_point: status
            mode: auto_start
            solution_source: |
              def status(value: int, label: str | None) -> str:
                  match value:
                      case 0:
                          return "zero"
                      case _:
                          return "other"
            parameters:
              - name: value
                minimum: -3
                maximum: 3
            features:
              required: [match_statements]
              forbidden: [if_statements]
            testing:
              seed: 9
              test_count: 5
            declared_errors: [AssertionError, ValueError]
            """
        ),
        encoding="utf-8",
    )
    question = load_question(tmp_path / "question.yml")
    assert question.mode == ExecutionMode.AUTO_START
    value, label = question.parameters
    assert (value.type, value.minimum, value.maximum, value.nullable) == ("int", -3, 3, False)
    assert (label.name, label.type, label.nullable) == ("label", "str", True)
    assert question.features.required == frozenset({FeatureName.MATCH_STATEMENTS})
    assert question.testing.seed == 9
    assert question.declared_errors == ("AssertionError", "ValueError")


def test_class_key_maps_to_klass(tmp_path):
    (tmp_path / "question.yml").write_text(
        source(
            """
            name: Counter
            entry_point: increment
            class: Counter
            solution_source: |
              class Counter:
                  def increment(self, step: int) -> int:
                      return step
            fixed_parameters: [1, 2]
            """
        ),
        encoding="utf-8",
    )
    question = load_question(tmp_path / "question.yml")
    assert question.klass == "Counter"
    assert question.slug == tmp_path.name
    assert [p.name for p in question.parameters] == ["step"]


def test_infer_parameters_annotations():
    text = source(
        """
        from typing import List, Optional

        def f(a: int, b: float, c: bool, d: list[str], e: List[int], g: Optional[int], h, i: dict):
            pass
        """
    )
    inferred = infer_parameters(text, "f")
    assert [(p["name"], p["type"], p["nullable"]) for p in inferred] == [
        ("a", "int", False),
        ("b", "float", False),
        ("c", "bool", False),
        ("d", "list[str]", False),
        ("e", "list[int]", False),
        ("g", "int", True),
        ("h", None, False),
        ("i", None, False),
    ]


def test_unannotated_parameter_needs_declaration(tmp_path):
    (tmp_path / "question.yml").write_text(
        "name: F\nentry_point: f\nsolution_source: |\n  def f(x):\n    return x\n",
        encoding="utf-8",
    )
    with pytest.raises(QuestionError, match="needs a declared type"):
        load_question(tmp_path / "question.yml")


def test_missing_entry_point_in_reference(tmp_path):
    (tmp_path / "question.yml").write_text(
        "name: F\nentry_point: g\nsolution_source: |\n  def f(x: int):\n    return x\n",
        encoding="utf-8",
    )
    with pytest.raises(QuestionError, match="does not define g"):
        load_question(tmp_path / "question.yml")


def test_fixed_arity_mismatch(tmp_path):
    (tmp_path / "question.yml").write_text(
        source(
            """
            name: F
            entry_point: f
            solution_source: |
              def f(x: int, y: int):
                  return x + y
            fixed_parameters: [[1, 2], [3]]
            """
        ),
        encoding="utf-8",
    )
    with pytest.raises(QuestionError, match="Invalid question"):
        load_question(tmp_path / "question.yml")


def test_missing_solution_file(tmp_path):
    (tmp_path / "question.yml").write_text("name: F\nentry_point: f\nsolution: nowhere.py\n", encoding="utf-8")
    with pytest.raises(QuestionError, match="File not found"):
        load_question(tmp_path / "question.yml")


def test_invalid_yaml(tmp_path):
    (tmp_path / "question.yml").write_text("name: [unclosed\n", encoding="utf-8")
    with pytest.raises(QuestionError, match="Invalid YAML"):
        load_question(tmp_path / "question.yml")


def test_discover_questions(question_dir):
    other = question_dir.parent / "zeta"
    other.mkdir()
    (other / "question.yml").write_text(
        "name: Zeta\nentry_point: z\nsolution_source: |\n  def z() -> int:\n    return 0\n",
        encoding="utf-8",
    )
    questions = discover_questions(question_dir.parent)
    assert [q.slug for q in questions] == ["add_two", "zeta"]
    assert questions[1].parameters == ()
