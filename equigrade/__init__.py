"""
equigrade: Equivalence-Testing Autograder

Grades Python submissions against a reference solution by running both
in isolated worker processes over the same inputs, and checks the
submission's source for required or forbidden language constructs.
"""

__version__ = "0.1.0"
