"""Tests for outcome classification."""

import itertools

import pytest

from docs_keeper.models.outcome import (
    OutcomeStatus,
    ProcessOutput,
    TestOutcome,
    meets_expectations,
)
from docs_keeper.testing.factories import TestFactory

STATUSES: tuple[OutcomeStatus, ...] = (
    "successful",
    "compile_failed",
    "run_failed",
    "cached",
)
FLAG_COMBINATIONS = list(itertools.product([False, True], repeat=4))


def expected(
    status: OutcomeStatus, *, should_panic: bool, compile_fail: bool
) -> bool:
    """Restate the expectation table row by row."""
    if status == "cached":
        return True
    if status == "compile_failed":
        return compile_fail
    if status == "run_failed":
        return should_panic
    return not should_panic and not compile_fail


@pytest.mark.parametrize("status", STATUSES)
@pytest.mark.parametrize(
    ("ignore", "no_run", "should_panic", "compile_fail"), FLAG_COMBINATIONS
)
def test_every_outcome_and_flag_combination_is_classified(
    status: OutcomeStatus,
    ignore: bool,
    no_run: bool,
    should_panic: bool,
    compile_fail: bool,
) -> None:
    """Each (outcome, flags) pair resolves to a boolean."""
    test = TestFactory.build(
        ignore=ignore,
        no_run=no_run,
        should_panic=should_panic,
        compile_fail=compile_fail,
    )
    outcome = TestOutcome(
        status=status,
        output=None if status == "cached" else ProcessOutput(returncode=0),
    )

    assert meets_expectations(outcome, test) is expected(
        status, should_panic=should_panic, compile_fail=compile_fail
    )


def test_successful_plain_test_meets_expectations() -> None:
    """A plain example that runs cleanly passes."""
    test = TestFactory.build()

    assert meets_expectations(TestOutcome.successful(ProcessOutput(returncode=0)), test)


def test_should_panic_test_that_succeeds_fails() -> None:
    """A should_panic example that exits cleanly misses expectations."""
    test = TestFactory.build(should_panic=True)

    assert not meets_expectations(
        TestOutcome.successful(ProcessOutput(returncode=0)), test
    )


def test_compile_fail_test_that_compiles_fails() -> None:
    """A compile_fail example that compiles misses expectations."""
    test = TestFactory.build(compile_fail=True)

    assert not meets_expectations(
        TestOutcome.successful(ProcessOutput(returncode=0)), test
    )


def test_unexpected_compile_failure_fails() -> None:
    """A compile failure is only expected for compile_fail examples."""
    test = TestFactory.build(should_panic=True)

    assert not meets_expectations(
        TestOutcome.compile_failed(ProcessOutput(returncode=1)), test
    )


def test_cached_outcome_has_no_output() -> None:
    """Cached outcomes carry no captured output."""
    assert TestOutcome.cached().output is None
