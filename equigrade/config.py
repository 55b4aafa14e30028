"""
Configuration constants for the equigrade system.
"""

import string
from pathlib import Path


# Execution configuration
DEFAULT_TIMEOUT_SECONDS: float = 2.0
# Extra time the parent waits for a worker reply beyond the call timeout
RESPONSE_GRACE_SECONDS: float = 1.0
WORKER_START_TIMEOUT_SECONDS: float = 30.0
DEFAULT_MAX_OUTPUT_LINES: int = 1024
MAX_REPR_LENGTH: int = 256
MAX_MESSAGE_LENGTH: int = 1024
# Nesting followed when converting returned objects that cannot be pickled
MAX_STRUCTURE_DEPTH: int = 32

# Input generation
DEFAULT_SEED: int = 124
DEFAULT_TEST_COUNT: int = 32
DEFAULT_MAX_TEST_COUNT: int = 1024
DEFAULT_INT_RANGE: tuple[int, int] = (-1024, 1024)
DEFAULT_FLOAT_RANGE: tuple[float, float] = (-1024.0, 1024.0)
DEFAULT_MAX_LENGTH: int = 16
NULL_PROBABILITY: float = 0.1

# Size comparison against the reference
DEFAULT_MIN_EXTRA_SOURCE_LINES: int = 2

CHARSETS: dict[str, str] = {
    "ascii_letters": string.ascii_letters,
    "lowercase": string.ascii_lowercase,
    "uppercase": string.ascii_uppercase,
    "digits": string.digits,
    "alphanumeric": string.ascii_letters + string.digits,
    "printable": string.ascii_letters + string.digits + string.punctuation + " ",
}
DEFAULT_CHARSET: str = "ascii_letters"

SUPPORTED_TYPES: list[str] = [
    "int",
    "float",
    "bool",
    "str",
    "list[int]",
    "list[float]",
    "list[bool]",
    "list[str]",
]

# Error kinds a reference may raise unless a question says otherwise
DEFAULT_DECLARED_ERRORS: tuple[str, ...] = ("AssertionError",)

# File patterns
QUESTION_FILENAME: str = "question.yml"
SUBMISSION_SUFFIX: str = ".py"
RESULT_OUTPUT_SUFFIX: str = ".json"

# Default paths (can be overridden via the YAML configuration)
DEFAULT_RESULTS_DIR: Path = Path("results")
RESULTS_SUMMARY_FILENAME: str = "results_summary.json"
RESULTS_CSV_FILENAME: str = "results_summary.csv"
