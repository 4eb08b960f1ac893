"""Models for test execution outcomes."""

from dataclasses import dataclass
from typing import Literal

from docs_keeper.models.test import Test

type OutcomeStatus = Literal["successful", "compile_failed", "run_failed", "cached"]


@dataclass(frozen=True, kw_only=True)
class ProcessOutput:
    """Captured result of one child process."""

    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""


@dataclass(frozen=True, kw_only=True)
class TestOutcome:
    """Outcome of verifying a single example.

    Successful and run-failed outcomes carry the compiler's output; the
    example binary's own output is only used to decide between the two.
    Cached outcomes carry no output.
    """

    __test__ = False

    status: OutcomeStatus
    output: ProcessOutput | None = None

    @classmethod
    def successful(cls, output: ProcessOutput) -> "TestOutcome":
        return cls(status="successful", output=output)

    @classmethod
    def compile_failed(cls, output: ProcessOutput) -> "TestOutcome":
        return cls(status="compile_failed", output=output)

    @classmethod
    def run_failed(cls, output: ProcessOutput) -> "TestOutcome":
        return cls(status="run_failed", output=output)

    @classmethod
    def cached(cls) -> "TestOutcome":
        return cls(status="cached")


def meets_expectations(outcome: TestOutcome, test: Test) -> bool:
    """Check whether an outcome is what the example's flags asked for.

    Cached outcomes always meet expectations: a cache file only survives
    reconciliation when its outcome met them.
    """
    match outcome.status:
        case "compile_failed":
            return test.compile_fail
        case "successful":
            return not test.should_panic and not test.compile_fail
        case "run_failed":
            return test.should_panic
        case "cached":
            return True
