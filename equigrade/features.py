"""
Source feature extraction.

Walks the Python AST of a source unit and counts the language
constructs it uses. Extraction is purely syntactic: nothing is executed.
"""

import ast
from collections import Counter

from .errors import ParseError
from .models import FeatureName, FeatureSet

_LOOP_FEATURES = (FeatureName.FOR_LOOPS, FeatureName.WHILE_LOOPS, FeatureName.COMPREHENSIONS)


def parse_source(source: str, filename: str = "<source>") -> ast.Module:
    """
    Parse a source unit.

    Raises:
        ParseError: If the source is not syntactically valid.
    """
    try:
        return ast.parse(source, filename=filename)
    except SyntaxError as e:
        raise ParseError(f"Invalid syntax in {filename}: {e.msg}", e.lineno) from e
    except ValueError as e:
        # null bytes in source
        raise ParseError(f"Invalid source in {filename}: {e}") from e


def extract(source: str, filename: str = "<source>") -> FeatureSet:
    """
    Extract the constructs used by a source unit.

    Args:
        source: Python source text.
        filename: Name used in error messages.

    Returns:
        FeatureSet with a count per construct.

    Raises:
        ParseError: If the source is not syntactically valid.
    """
    tree = parse_source(source, filename)
    visitor = _FeatureVisitor()
    visitor.visit(tree)
    return FeatureSet(counts=dict(sorted(visitor.counts.items(), key=lambda item: item[0].value)))


def has_feature(features: FeatureSet, feature: FeatureName) -> bool:
    return features.count(feature) > 0


def has_any_feature(features: FeatureSet, candidates: list[FeatureName]) -> bool:
    return any(has_feature(features, f) for f in candidates)


def uses_loop(features: FeatureSet) -> bool:
    """True if the source iterates with a loop or a comprehension."""
    return has_any_feature(features, list(_LOOP_FEATURES))


class _FeatureVisitor(ast.NodeVisitor):
    def __init__(self) -> None:
        self.counts: Counter[FeatureName] = Counter()
        # enclosing function names, innermost last
        self._functions: list[str] = []

    def _add(self, feature: FeatureName) -> None:
        self.counts[feature] += 1

    # Branching

    def visit_If(self, node: ast.If) -> None:
        self._add(FeatureName.IF_STATEMENTS)
        self.visit(node.test)
        for child in node.body:
            self.visit(child)
        self._visit_orelse(node.orelse)

    def _visit_orelse(self, orelse: list[ast.stmt]) -> None:
        if not orelse:
            return
        if len(orelse) == 1 and isinstance(orelse[0], ast.If):
            # "elif" and "else: if" read the same in the AST
            chained = orelse[0]
            self._add(FeatureName.ELIF_STATEMENTS)
            self.visit(chained.test)
            for child in chained.body:
                self.visit(child)
            self._visit_orelse(chained.orelse)
            return
        self._add(FeatureName.ELSE_STATEMENTS)
        for child in orelse:
            self.visit(child)

    def visit_IfExp(self, node: ast.IfExp) -> None:
        self._add(FeatureName.CONDITIONAL_EXPRESSIONS)
        self.generic_visit(node)

    def visit_Match(self, node: ast.Match) -> None:
        self._add(FeatureName.MATCH_STATEMENTS)
        self.generic_visit(node)

    def visit_BoolOp(self, node: ast.BoolOp) -> None:
        self._add(FeatureName.BOOLEAN_OPERATORS)
        self.generic_visit(node)

    # Loops

    def visit_For(self, node: ast.For) -> None:
        self._add(FeatureName.FOR_LOOPS)
        self.generic_visit(node)

    def visit_AsyncFor(self, node: ast.AsyncFor) -> None:
        self._add(FeatureName.FOR_LOOPS)
        self.generic_visit(node)

    def visit_While(self, node: ast.While) -> None:
        self._add(FeatureName.WHILE_LOOPS)
        self.generic_visit(node)

    def _visit_comprehension(self, node: ast.AST) -> None:
        self._add(FeatureName.COMPREHENSIONS)
        self.generic_visit(node)

    visit_ListComp = _visit_comprehension
    visit_SetComp = _visit_comprehension
    visit_DictComp = _visit_comprehension
    visit_GeneratorExp = _visit_comprehension

    def visit_Break(self, node: ast.Break) -> None:
        self._add(FeatureName.BREAK_STATEMENTS)

    def visit_Continue(self, node: ast.Continue) -> None:
        self._add(FeatureName.CONTINUE_STATEMENTS)

    # Errors and resources

    def visit_Assert(self, node: ast.Assert) -> None:
        self._add(FeatureName.ASSERT_STATEMENTS)
        self.generic_visit(node)

    def visit_Try(self, node: ast.Try) -> None:
        self._add(FeatureName.TRY_BLOCKS)
        self.generic_visit(node)

    visit_TryStar = visit_Try

    def visit_Raise(self, node: ast.Raise) -> None:
        self._add(FeatureName.RAISE_STATEMENTS)
        self.generic_visit(node)

    def visit_With(self, node: ast.With) -> None:
        self._add(FeatureName.WITH_STATEMENTS)
        self.generic_visit(node)

    visit_AsyncWith = visit_With

    # Definitions

    def _visit_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        if self._functions:
            self._add(FeatureName.NESTED_FUNCTIONS)
        self._functions.append(node.name)
        self.generic_visit(node)
        self._functions.pop()

    visit_FunctionDef = _visit_function
    visit_AsyncFunctionDef = _visit_function

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self._add(FeatureName.LAMBDA_EXPRESSIONS)
        self.generic_visit(node)

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._add(FeatureName.CLASSES)
        # methods of a class nested in a function are still nested functions
        self.generic_visit(node)

    def visit_Return(self, node: ast.Return) -> None:
        self._add(FeatureName.RETURN_STATEMENTS)
        self.generic_visit(node)

    def visit_Global(self, node: ast.Global) -> None:
        self._add(FeatureName.GLOBAL_STATEMENTS)

    visit_Nonlocal = visit_Global

    def visit_Call(self, node: ast.Call) -> None:
        func = node.func
        if isinstance(func, ast.Name):
            if func.id == "print":
                self._add(FeatureName.PRINT_CALLS)
            if self._functions and func.id == self._functions[-1]:
                self._add(FeatureName.RECURSION)
        elif (
            isinstance(func, ast.Attribute)
            and isinstance(func.value, ast.Name)
            and func.value.id in ("self", "cls")
            and self._functions
            and func.attr == self._functions[-1]
        ):
            self._add(FeatureName.RECURSION)
        self.generic_visit(node)
