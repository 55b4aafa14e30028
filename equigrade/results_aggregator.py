"""
Results aggregator for collecting and exporting grading results.

Saves results to a centralized folder with JSON and CSV summaries.
"""

import csv
import json
import logging
from collections import Counter
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from .config import (
    DEFAULT_RESULTS_DIR,
    RESULT_OUTPUT_SUFFIX,
    RESULTS_CSV_FILENAME,
    RESULTS_SUMMARY_FILENAME,
)
from .models import GradeResult

logger = logging.getLogger(__name__)


def _sort_key(result: GradeResult) -> tuple[str, str]:
    return result.question, result.submission_id


class ResultsAggregator:
    """
    Aggregates results over questions and submissions and exports them.
    """

    def __init__(self, output_dir: Path | None = None) -> None:
        """
        Initialize the results aggregator.

        Args:
            output_dir: Directory to save aggregated results. Defaults to ./results/
        """
        self.output_dir = output_dir or DEFAULT_RESULTS_DIR
        self.results: list[GradeResult] = []
        self.timestamp = datetime.now().isoformat()

    def add_result(self, result: GradeResult) -> None:
        self.results.append(result)

    def add_results(self, results: list[GradeResult]) -> None:
        self.results.extend(results)

    def save_all(self) -> dict[str, Path]:
        """
        Save all results to the output directory.

        Creates:
        - One JSON file per (question, submission), under a folder per question
        - Summary JSON with all results
        - Summary CSV with one row per result

        Returns:
            Dictionary of output file paths.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)

        output_files: dict[str, Path] = {}

        self.results.sort(key=_sort_key)

        for result in self.results:
            question_dir = self.output_dir / result.question
            question_dir.mkdir(parents=True, exist_ok=True)
            individual_path = question_dir / f"{result.submission_id}{RESULT_OUTPUT_SUFFIX}"
            with open(individual_path, "w", encoding="utf-8") as f:
                f.write(result.model_dump_json(indent=2))
            output_files[f"{result.question}/{result.submission_id}"] = individual_path

        summary_path = self.output_dir / RESULTS_SUMMARY_FILENAME
        summary_data = {
            "timestamp": self.timestamp,
            "total_results": len(self.results),
            "statistics": self.statistics(),
            "results": [result.model_dump(mode="json") for result in self.results],
        }
        with open(summary_path, "w", encoding="utf-8") as f:
            json.dump(summary_data, f, indent=2)
        output_files["summary_json"] = summary_path

        csv_path = self.output_dir / RESULTS_CSV_FILENAME
        self._save_csv(csv_path)
        output_files["summary_csv"] = csv_path

        return output_files

    def statistics(self) -> dict:
        """
        Calculate summary statistics for all results.

        Returns:
            Dictionary with overall and per-question pass counts and a
            count of failures per reason.
        """
        if not self.results:
            return {}

        passed = sum(1 for r in self.results if r.passed)
        reasons = Counter(r.verdict.reason.value for r in self.results if r.verdict.reason is not None)

        per_question: dict[str, dict[str, int]] = {}
        for result in self.results:
            entry = per_question.setdefault(result.question, {"total": 0, "passed": 0})
            entry["total"] += 1
            entry["passed"] += int(result.passed)

        return {
            "passed_count": passed,
            "failed_count": len(self.results) - passed,
            "passed_percent": (passed / len(self.results)) * 100,
            "failure_reasons": dict(sorted(reasons.items())),
            "questions": dict(sorted(per_question.items())),
        }

    def _save_csv(self, csv_path: Path) -> None:
        """
        Save results as CSV file.

        Args:
            csv_path: Path to save CSV file.
        """
        header = ["question", "submission_id", "passed", "reason", "failing_input", "expected", "found", "message"]

        with open(csv_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(header)

            for result in self.results:
                verdict = result.verdict
                case = verdict.test_case
                writer.writerow([
                    result.question,
                    result.submission_id,
                    "Yes" if result.passed else "No",
                    verdict.reason.value if verdict.reason else "",
                    repr(case.arguments) if case else "",
                    verdict.expected or "",
                    verdict.found or "",
                    verdict.message[:200],  # Truncate message
                ])


def load_results_from_dir(results_dir: Path) -> list[GradeResult]:
    """
    Load all grading results from a results directory.

    Args:
        results_dir: Path to the results directory.

    Returns:
        List of GradeResult objects sorted by question and submission.
    """
    results: list[GradeResult] = []

    # Try loading from summary file first
    summary_path = results_dir / RESULTS_SUMMARY_FILENAME
    if summary_path.exists():
        with open(summary_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        results = [GradeResult(**result_data) for result_data in data.get("results", [])]
        results.sort(key=_sort_key)
        return results

    # Fall back to individual files
    for json_file in results_dir.glob(f"*/*{RESULT_OUTPUT_SUFFIX}"):
        try:
            results.append(GradeResult.model_validate_json(json_file.read_text(encoding="utf-8")))
        except ValidationError as e:
            logger.warning("Skipping unreadable result %s: %s", json_file, e)

    results.sort(key=_sort_key)
    return results
