"""
Question loader.

Reads `question.yml` records, resolves the solution and example files they
point at, fills in parameter specs from the reference's annotations and
validates the result into an immutable Question.
"""

import ast
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import QUESTION_FILENAME
from .errors import ParseError, QuestionError
from .features import parse_source
from .models import Question

logger = logging.getLogger(__name__)

_SCALARS = ("int", "float", "bool", "str")


def _read(base: Path, relative: str) -> tuple[str, Path]:
    path = Path(relative)
    if not path.is_absolute():
        path = base / path
    if not path.exists():
        raise QuestionError(f"File not found: {path}")
    return path.read_text(encoding="utf-8"), path


def _annotation_type(node: ast.expr | None) -> tuple[str | None, bool]:
    """
    Map an annotation to a supported type name.

    Returns:
        (type name or None when unsupported, nullable)
    """
    if node is None:
        return None, False
    if isinstance(node, ast.Name) and node.id in _SCALARS:
        return node.id, False
    if isinstance(node, ast.Subscript) and isinstance(node.value, ast.Name):
        outer = node.value.id
        if outer in ("list", "List"):
            inner, inner_nullable = _annotation_type(node.slice)
            if inner in _SCALARS and not inner_nullable:
                return f"list[{inner}]", False
            return None, False
        if outer == "Optional":
            inner, _ = _annotation_type(node.slice)
            return inner, True
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        sides = [node.left, node.right]
        nones = [s for s in sides if isinstance(s, ast.Constant) and s.value is None]
        if len(nones) == 1:
            other = sides[1] if sides[0] is nones[0] else sides[0]
            inner, _ = _annotation_type(other)
            return inner, True
    return None, False


def _find_entry_point(tree: ast.Module, entry_point: str, klass: str | None) -> ast.FunctionDef | None:
    body = tree.body
    if klass:
        owners = [n for n in body if isinstance(n, ast.ClassDef) and n.name == klass]
        if not owners:
            return None
        body = owners[0].body
    for node in body:
        if isinstance(node, ast.FunctionDef) and node.name == entry_point:
            return node
    return None


def infer_parameters(source: str, entry_point: str, klass: str | None = None) -> list[dict[str, Any]]:
    """
    Infer parameter specs from the reference entry point's annotations.

    Args:
        source: Reference solution source.
        entry_point: Function or method name.
        klass: Owning class for methods; the first parameter is skipped.

    Returns:
        One {name, type, nullable} dictionary per parameter. `type` is None
        for parameters whose annotation is missing or unsupported.

    Raises:
        QuestionError: If the source does not parse or has no such entry point.
    """
    try:
        tree = parse_source(source, "<reference>")
    except ParseError as e:
        raise QuestionError(f"Reference solution does not parse: {e}") from e

    function = _find_entry_point(tree, entry_point, klass)
    if function is None:
        where = f"{klass}.{entry_point}" if klass else entry_point
        raise QuestionError(f"Reference solution does not define {where}")

    arguments = [*function.args.posonlyargs, *function.args.args]
    if klass:
        arguments = arguments[1:]

    parameters = []
    for argument in arguments:
        type_name, nullable = _annotation_type(argument.annotation)
        parameters.append({"name": argument.arg, "type": type_name, "nullable": nullable})
    return parameters


def _merge_parameters(declared: list[dict[str, Any]] | None, inferred: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Fill declared parameters from inferred ones.

    Positions follow the reference signature; declared values win.
    """
    by_name: dict[str, dict[str, Any]] = {}
    for entry in declared or []:
        if "name" not in entry:
            raise QuestionError(f"Declared parameter {entry!r} needs a name")
        by_name[entry["name"]] = dict(entry)

    merged = []
    for guess in inferred:
        entry = by_name.pop(guess["name"], {"name": guess["name"]})
        if "type" not in entry:
            if guess["type"] is None:
                raise QuestionError(f"Parameter '{guess['name']}' needs a declared type or a supported annotation")
            entry["type"] = guess["type"]
            entry.setdefault("nullable", guess["nullable"])
        merged.append(entry)

    if by_name:
        raise QuestionError(f"Declared parameters not in the reference signature: {', '.join(by_name)}")
    return merged


def _normalize_fixed(fixed: Any, arity: int) -> list[list[Any]] | None:
    """Single-parameter fixed lists may list bare values; wrap each one."""
    if fixed is None:
        return None
    if not isinstance(fixed, list):
        raise QuestionError("fixed_parameters must be a list")
    if arity == 1:
        return [[value] for value in fixed]
    for entry in fixed:
        if not isinstance(entry, list):
            raise QuestionError(f"fixed input {entry!r} must list {arity} values")
    return fixed


def _load_incorrect(base: Path, entries: list[Any]) -> list[dict[str, Any]]:
    examples = []
    for entry in entries:
        if isinstance(entry, str):
            entry = {"path": entry}
        entry = dict(entry)
        if "source" not in entry:
            if "path" not in entry:
                raise QuestionError(f"Incorrect example needs a path or a source: {entry!r}")
            source, path = _read(base, entry["path"])
            entry["source"] = source
            entry["path"] = str(path)
        examples.append(entry)
    return examples


def load_question(path: Path) -> Question:
    """
    Load one question record.

    Args:
        path: Path to a question.yml file.

    Returns:
        Validated Question.

    Raises:
        QuestionError: If the record or any file it references is invalid.
    """
    path = Path(path)
    if not path.exists():
        raise QuestionError(f"Question file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise QuestionError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise QuestionError(f"{path} must contain a mapping")

    base = path.parent
    data.setdefault("slug", base.name)
    if "class" in data:
        data["klass"] = data.pop("class")

    if "solution_source" in data:
        data["solution"] = data.pop("solution_source")
    elif "solution" in data:
        data["solution"], _ = _read(base, data["solution"])
    else:
        raise QuestionError(f"{path} must name a solution or give solution_source")

    if "entry_point" not in data:
        raise QuestionError(f"{path} must name an entry_point")

    inferred = infer_parameters(data["solution"], data["entry_point"], data.get("klass"))
    data["parameters"] = _merge_parameters(data.get("parameters"), inferred)
    data["fixed_parameters"] = _normalize_fixed(data.get("fixed_parameters"), len(data["parameters"]))

    data["also_correct"] = [_read(base, p)[0] for p in data.get("also_correct", [])]
    data["incorrect"] = _load_incorrect(base, data.get("incorrect", []))

    try:
        question = Question(**data)
    except ValidationError as e:
        raise QuestionError(f"Invalid question {path}: {e}") from e

    logger.debug("Loaded question %s: %s", question.slug, question.signature)
    return question


def discover_questions(root: Path) -> list[Question]:
    """
    Load every question record below a directory, sorted by path.

    Raises:
        QuestionError: If any record is invalid.
    """
    return [load_question(p) for p in sorted(Path(root).rglob(QUESTION_FILENAME))]
