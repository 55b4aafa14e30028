"""
equigrade: equivalence and feature grading of small programming exercises

Usage:
  main.py grade [--config=PATH]
  main.py validate [--config=PATH]
  main.py (-h | --help)

Options:
  --config=PATH  Path to YAML configuration file [default: grader_config.yml].
  -h --help      Show this screen.
"""

import logging
import sys
from pathlib import Path

from docopt import docopt

from equigrade.config import SUBMISSION_SUFFIX
from equigrade.config_loader import GraderConfig, load_config
from equigrade.errors import QuestionError
from equigrade.grading import QuestionGrader, validate_question
from equigrade.models import GradeResult, Question, Submission, ValidationReport
from equigrade.question_loader import discover_questions
from equigrade.results_aggregator import ResultsAggregator


def find_submissions(submissions_dir: Path, question: Question) -> list[Submission]:
    """
    Find all student submissions for a question.

    Args:
        submissions_dir: Path to directory containing one folder per student.
        question: Question whose slug names the submission file.

    Returns:
        List of Submission objects, sorted by student.
    """
    submissions: list[Submission] = []

    for item in sorted(submissions_dir.iterdir()):
        if not item.is_dir():
            continue

        # Skip hidden directories and common non-submission dirs
        if item.name.startswith(".") or item.name in ("__pycache__", "tests", "results"):
            continue

        source_path = item / f"{question.slug}{SUBMISSION_SUFFIX}"
        if not source_path.exists():
            continue

        submissions.append(
            Submission(
                submission_id=item.name,
                source=source_path.read_text(encoding="utf-8"),
                path=str(source_path),
            )
        )

    return submissions


def print_result_summary(result: GradeResult, verbose: bool = False) -> None:
    """
    Print a summary of one result to console.

    Args:
        result: GradeResult to summarize.
        verbose: Also print the failing input and outputs.
    """
    status = "+" if result.passed else "-"
    verdict = result.verdict
    print(f"  [{status}] {result.submission_id}: {verdict.reason.value if verdict.reason else 'passed'}")
    if not result.passed:
        print(f"      {verdict.message}")
        if verbose and verdict.expected_output is not None:
            print(f"      expected output: {list(verdict.expected_output)}")
            print(f"      found output:    {list(verdict.found_output or ())}")


def print_validation_report(report: ValidationReport) -> None:
    status = "OK" if report.passed else "INVALID"
    print(f"  {report.question}: {status} ({report.test_count} cases)")
    for error in report.errors:
        print(f"    - {error}")


def run_validation(config: GraderConfig) -> bool:
    """
    Validate every question against its own examples.

    Returns:
        True when all questions are valid.
    """
    print(f"Loading questions from {config.questions_dir}...")
    questions = discover_questions(config.questions_dir)
    print(f"Found {len(questions)} questions")

    all_valid = True
    for question in questions:
        report = validate_question(question, config.seed)
        print_validation_report(report)
        all_valid = all_valid and report.passed
    return all_valid


def run_grading_pipeline(config: GraderConfig) -> list[GradeResult]:
    """
    Run the complete grading pipeline.

    Args:
        config: Loaded run configuration.

    Returns:
        List of GradeResult objects for all questions and submissions.
    """
    print(f"Loading questions from {config.questions_dir}...")
    questions = discover_questions(config.questions_dir)
    print(f"Found {len(questions)} questions")

    aggregator = ResultsAggregator(output_dir=config.results_dir)
    results: list[GradeResult] = []
    skipped: list[str] = []

    for i, question in enumerate(questions, 1):
        print(f"\n[{i}/{len(questions)}] {question.name} ({question.signature})")

        if config.validate_questions:
            report = validate_question(question, config.seed)
            if not report.passed:
                print_validation_report(report)
                print(f"  Skipping invalid question {question.slug}")
                skipped.append(question.slug)
                continue

        submissions = find_submissions(config.submissions_dir, question)
        print(f"  Found {len(submissions)} submissions")
        if not submissions:
            continue

        try:
            with QuestionGrader(question, config.seed) as grader:
                question_results = grader.grade_all(submissions, workers=config.workers)
        except QuestionError as e:
            print(f"  Error grading {question.slug}: {e}")
            skipped.append(question.slug)
            continue

        for result in question_results:
            print_result_summary(result, config.verbose)
        aggregator.add_results(question_results)
        results.extend(question_results)

    if results:
        print("\nSaving results...")
        output_files = aggregator.save_all()
        print(f"  Summary JSON: {output_files.get('summary_json')}")
        print(f"  Summary CSV:  {output_files.get('summary_csv')}")

    # Print summary
    print("\n" + "=" * 60)
    print("GRADING COMPLETE")
    print("=" * 60)
    print(f"Total results: {len(results)}")
    if results:
        passed = sum(1 for r in results if r.passed)
        print(f"Passed: {passed}/{len(results)} ({100*passed/len(results):.1f}%)")
    if skipped:
        print(f"Questions skipped: {', '.join(skipped)}")

    return results


def main() -> int:
    """
    Main CLI entrypoint.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    arguments = docopt(__doc__)
    config_path = Path(arguments["--config"])

    if not config_path.exists():
        print(f"Error: Configuration file not found at {config_path}")
        return 1

    try:
        config = load_config(config_path)
        print(f"Loaded configuration from {config_path}")
    except Exception as e:
        print(f"Error loading config: {e}")
        return 1

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not config.questions_dir.exists():
        print(f"Error: Questions directory not found: {config.questions_dir}")
        return 1

    try:
        if arguments["validate"]:
            return 0 if run_validation(config) else 1

        if not config.submissions_dir:
            print("Error: submissions_dir must be specified in the configuration file")
            return 1
        if not config.submissions_dir.exists():
            print(f"Error: Submissions directory not found: {config.submissions_dir}")
            return 1

        run_grading_pipeline(config)
        return 0
    except KeyboardInterrupt:
        print("\nGrading interrupted by user.")
        return 1
    except Exception as e:
        print(f"\nError: {e}")
        if config.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
