"""Tests for results_aggregator.py."""

import csv
import json

import pytest

from equigrade.models import FailureReason, GradeResult, TestCase, Verdict
from equigrade.results_aggregator import ResultsAggregator, load_results_from_dir


@pytest.fixture
def results():
    mismatch = Verdict.failure(
        FailureReason.VALUE_MISMATCH,
        "add_two(-1): expected 1 but found 0",
        test_case=TestCase(index=0, arguments=(-1,), origin="fixed"),
        expected="1",
        found="0",
        cases_run=1,
    )
    return [
        GradeResult(question="add_two", submission_id="bob", verdict=mismatch, equivalence=mismatch),
        GradeResult(question="add_two", submission_id="alice", verdict=Verdict.success(4)),
        GradeResult(
            question="check_value",
            submission_id="alice",
            verdict=Verdict.failure(FailureReason.PARSE_ERROR, "Invalid syntax (line 1)"),
        ),
    ]


def test_save_all(tmp_path, results):
    aggregator = ResultsAggregator(output_dir=tmp_path)
    aggregator.add_results(results)
    files = aggregator.save_all()

    assert (tmp_path / "add_two" / "alice.json").exists()
    assert files["add_two/bob"] == tmp_path / "add_two" / "bob.json"

    summary = json.loads(files["summary_json"].read_text(encoding="utf-8"))
    assert summary["total_results"] == 3
    assert [r["submission_id"] for r in summary["results"]] == ["alice", "bob", "alice"]
    assert summary["statistics"]["passed_count"] == 1
    assert summary["statistics"]["failure_reasons"] == {"parse_error": 1, "value_mismatch": 1}
    assert summary["statistics"]["questions"]["add_two"] == {"total": 2, "passed": 1}

    with open(files["summary_csv"], newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    bob = next(r for r in rows if r["submission_id"] == "bob")
    assert bob["passed"] == "No"
    assert bob["reason"] == "value_mismatch"
    assert bob["failing_input"] == "(-1,)"
    assert bob["expected"] == "1"


def test_statistics_empty(tmp_path):
    assert ResultsAggregator(output_dir=tmp_path).statistics() == {}


def test_round_trip_from_summary(tmp_path, results):
    aggregator = ResultsAggregator(output_dir=tmp_path)
    aggregator.add_results(results)
    aggregator.save_all()
    loaded = load_results_from_dir(tmp_path)
    assert [(r.question, r.submission_id) for r in loaded] == [
        ("add_two", "alice"),
        ("add_two", "bob"),
        ("check_value", "alice"),
    ]
    assert loaded[1].verdict.test_case.arguments == (-1,)
    assert loaded[1].verdict.reason == FailureReason.VALUE_MISMATCH


def test_load_from_individual_files(tmp_path, results):
    aggregator = ResultsAggregator(output_dir=tmp_path)
    aggregator.add_results(results)
    aggregator.save_all()
    (tmp_path / "results_summary.json").unlink()
    (tmp_path / "add_two" / "broken.json").write_text("{}", encoding="utf-8")
    loaded = load_results_from_dir(tmp_path)
    assert len(loaded) == 3
