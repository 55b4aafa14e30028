"""
Configuration loader for the equigrade system.

Handles parsing and validation of YAML run configuration files.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .config import DEFAULT_RESULTS_DIR


class GraderConfig(BaseModel):
    """
    Configuration model for a grading run.
    """
    questions_dir: Path = Field(..., description="Directory searched for question.yml files")
    submissions_dir: Optional[Path] = Field(None, description="Directory with one folder per student")
    results_dir: Path = Field(DEFAULT_RESULTS_DIR, description="Path to save grading results")

    # Overrides and flags
    seed: Optional[int] = Field(None, description="Seed overriding every question's own seed")
    workers: int = Field(1, ge=1, description="Submissions graded concurrently per question")
    validate_questions: bool = Field(True, description="Validate each question before grading with it")
    verbose: bool = Field(False, description="Enable verbose output")


def load_config(config_path: Path) -> GraderConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        GraderConfig object with loaded values.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        yaml.YAMLError: If config file is invalid YAML.
        ValidationError: If config data is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    # Resolve relative paths relative to the config file location
    config_dir = config_path.parent
    for path_field in ["questions_dir", "submissions_dir", "results_dir"]:
        if path_field in config_data and config_data[path_field]:
            path = Path(config_data[path_field])
            if not path.is_absolute():
                config_data[path_field] = config_dir / path

    if "results_dir" not in config_data:
        config_data["results_dir"] = config_dir / DEFAULT_RESULTS_DIR

    return GraderConfig(**config_data)
