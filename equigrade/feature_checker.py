"""
Feature policy checks.

Compares the constructs a submission uses against the question's
required and forbidden sets. Independent of behavioral testing.
"""

import logging

from .errors import FeatureCheckError, ForbiddenFeatureError, MissingFeatureError
from .features import has_feature
from .models import FeaturePolicy, FeatureSet, Verdict

logger = logging.getLogger(__name__)


def policy_violations(features: FeatureSet, policy: FeaturePolicy) -> FeatureCheckError | None:
    """
    Find the first policy violation of a feature set.

    Forbidden constructs are reported before missing ones.

    Returns:
        The error describing the violation, or None.
    """
    forbidden = {f for f in policy.forbidden if has_feature(features, f)}
    if forbidden:
        return ForbiddenFeatureError(forbidden)
    missing = {f for f in policy.required if not has_feature(features, f)}
    if missing:
        return MissingFeatureError(missing)
    return None


def enforce(reference: FeatureSet, submission: FeatureSet, policy: FeaturePolicy) -> None:
    """
    Enforce a feature policy on a submission.

    Args:
        reference: Features of the reference solution.
        submission: Features of the submission.
        policy: Question feature policy.

    Raises:
        ForbiddenFeatureError: If the submission uses a forbidden construct.
        MissingFeatureError: If the submission lacks a required construct.
    """
    reference_error = policy_violations(reference, policy)
    if reference_error is not None:
        logger.warning("Reference solution violates its own feature policy: %s", reference_error)

    error = policy_violations(submission, policy)
    if error is not None:
        raise error


def check(reference: FeatureSet, submission: FeatureSet, policy: FeaturePolicy) -> Verdict:
    """
    Check a submission against a feature policy.

    Returns:
        Passing Verdict, or a failing one naming the offending constructs.
    """
    try:
        enforce(reference, submission, policy)
    except FeatureCheckError as e:
        return Verdict.failure(e.reason, str(e), features=e.features)
    return Verdict.success()
