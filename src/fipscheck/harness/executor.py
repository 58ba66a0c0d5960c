"""Run a single named check and record its result."""

from __future__ import annotations

from collections.abc import Callable

from fipscheck.core.log import logger
from fipscheck.core.result import (
    CheckResult,
    Outcome,
    OutcomeStatus,
    Polarity,
    RunSummary,
)
from fipscheck.harness.report import Reporter

Operation = Callable[[], Outcome]


def describe_error(error: BaseException) -> str:
    """Short "Type: message" text for a failure detail."""
    message = str(error).strip().splitlines()
    name = type(error).__name__
    return f"{name}: {message[0]}" if message else name


def classify(outcome: Outcome, polarity: Polarity) -> tuple[bool, str]:
    """Decide pass/fail for an outcome under a polarity.

    Returns:
        (passed, detail) for the CheckResult
    """
    if polarity is Polarity.EXPECT_REJECTION:
        if outcome.status is OutcomeStatus.SUCCEEDED:
            detail = "was NOT rejected"
            if outcome.detail:
                detail += f" ({outcome.detail})"
            return False, detail
        detail = "correctly rejected"
        if outcome.detail:
            detail += f" ({outcome.detail})"
        return True, detail

    return outcome.ok, outcome.detail


def run_check(
    name: str,
    operation: Operation,
    summary: RunSummary,
    reporter: Reporter,
    polarity: Polarity = Polarity.EXPECT_SUCCESS,
) -> CheckResult:
    """Run one check exactly once, report it, and tally it.

    Any exception from the operation is an ERRORED outcome; nothing
    escapes this boundary.

    Args:
        name: Check name shown in the report
        operation: Zero-argument callable returning an Outcome
        summary: Accumulator for this run
        reporter: Where the result line is written
        polarity: Which outcome counts as a pass

    Returns:
        The recorded CheckResult
    """
    with logger.span("Check {name}", name=name, polarity=polarity.value):
        try:
            outcome = operation()
        except Exception as e:
            logger.debug("Check operation raised", name=name, error=repr(e))
            outcome = Outcome.errored(describe_error(e))

    passed, detail = classify(outcome, polarity)
    result = CheckResult(name=name, passed=passed, detail=detail)

    summary.record(result)
    reporter.result(result)

    if not passed:
        logger.warn(
            "Check failed", name=name, status=outcome.status.value,
            detail=detail,
        )
    return result
