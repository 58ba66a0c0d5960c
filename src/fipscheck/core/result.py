"""Result types for command execution and checks."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from fipscheck.core.base import BaseState


class ExecResult(BaseModel):
    """Result of a command execution."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        """Return True if command succeeded (returncode == 0)."""
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout followed by stderr, like a shell ``2>&1``."""
        return self.stdout + self.stderr


class OutcomeStatus(str, Enum):
    """How a check operation ended."""

    SUCCEEDED = "succeeded"
    MISMATCHED = "mismatched"
    ERRORED = "errored"


class Polarity(str, Enum):
    """Which outcome counts as a pass.

    EXPECT_SUCCESS passes only on SUCCEEDED. EXPECT_REJECTION is for
    checks that prove something is refused: it passes on anything
    except SUCCEEDED.
    """

    EXPECT_SUCCESS = "expect_success"
    EXPECT_REJECTION = "expect_rejection"


class Outcome(BaseModel):
    """Outcome of one check operation."""

    status: OutcomeStatus
    detail: str = ""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def succeeded(cls, detail: str = "") -> Outcome:
        return cls(status=OutcomeStatus.SUCCEEDED, detail=detail)

    @classmethod
    def mismatched(cls, detail: str = "") -> Outcome:
        return cls(status=OutcomeStatus.MISMATCHED, detail=detail)

    @classmethod
    def errored(cls, detail: str = "") -> Outcome:
        return cls(status=OutcomeStatus.ERRORED, detail=detail)

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED


class CheckResult(BaseModel):
    """Result of a check execution."""

    name: str
    passed: bool
    detail: str = ""

    model_config = ConfigDict(frozen=True)


class RunSummary(BaseState):
    """Pass/fail counters for one battery run."""

    passed_count: int = Field(default=0, description="Checks that passed")
    failed_count: int = Field(default=0, description="Checks that failed")
    results: list[CheckResult] = Field(
        default_factory=list,
        description="Recorded results in execution order",
    )

    def record(self, result: CheckResult) -> None:
        """Tally a completed check."""
        self.results.append(result)
        if result.passed:
            self.passed_count += 1
        else:
            self.failed_count += 1

    @property
    def total(self) -> int:
        return self.passed_count + self.failed_count

    @property
    def exit_code(self) -> int:
        """0 when nothing failed, 1 otherwise."""
        return 0 if self.failed_count == 0 else 1
