"""Tests for config_loader.py."""

import pytest
from pydantic import ValidationError

from equigrade.config_loader import load_config


def test_relative_paths_resolve_against_config(tmp_path):
    config_path = tmp_path / "grader_config.yml"
    config_path.write_text(
        "questions_dir: questions\nsubmissions_dir: subs\nworkers: 3\nseed: 5\n",
        encoding="utf-8",
    )
    config = load_config(config_path)
    assert config.questions_dir == tmp_path / "questions"
    assert config.submissions_dir == tmp_path / "subs"
    assert config.results_dir == tmp_path / "results"
    assert config.workers == 3
    assert config.seed == 5
    assert config.validate_questions
    assert not config.verbose


def test_absolute_paths_kept(tmp_path):
    elsewhere = tmp_path / "elsewhere"
    config_path = tmp_path / "config.yml"
    config_path.write_text(f"questions_dir: {elsewhere}\nresults_dir: {elsewhere / 'out'}\n", encoding="utf-8")
    config = load_config(config_path)
    assert config.questions_dir == elsewhere
    assert config.results_dir == elsewhere / "out"
    assert config.submissions_dir is None


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yml")


def test_missing_questions_dir(tmp_path):
    config_path = tmp_path / "config.yml"
    config_path.write_text("", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_config(config_path)


def test_workers_must_be_positive(tmp_path):
    config_path = tmp_path / "config.yml"
    config_path.write_text("questions_dir: q\nworkers: 0\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_config(config_path)
