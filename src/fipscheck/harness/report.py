"""Console report of check results."""

from __future__ import annotations

import sys
from typing import TextIO

from fipscheck.core.result import CheckResult, RunSummary

GREEN = "\033[0;32m"
RED = "\033[0;31m"
YELLOW = "\033[0;33m"
BOLD = "\033[1m"
RESET = "\033[0m"

RULE = "=" * 43


class Reporter:
    """Writes PASS/FAIL lines, headings and the final summary.

    The report is the harness's user-facing output and always goes to
    its stream, independently of the log sinks.
    """

    def __init__(self, stream: TextIO | None = None, colors: str = "auto"):
        """Initialize Reporter.

        Args:
            stream: Output stream (defaults to sys.stdout)
            colors: "auto" (only on a TTY), "always" or "never"
        """
        self.stream = stream or sys.stdout
        if colors == "auto":
            isatty = getattr(self.stream, "isatty", None)
            self.colors = bool(isatty and isatty())
        else:
            self.colors = colors == "always"

    def _paint(self, text: str, color: str) -> str:
        if not self.colors:
            return text
        return f"{color}{text}{RESET}"

    def _write(self, text: str = "") -> None:
        self.stream.write(text + "\n")
        self.stream.flush()

    def banner(self, title: str, subtitle: str | None = None) -> None:
        self._write(self._paint(RULE, BOLD))
        self._write(self._paint(f"  {title}", BOLD))
        if subtitle:
            self._write(self._paint(f"  {subtitle}", BOLD))
        self._write(self._paint(RULE, BOLD))
        self._write()

    def section(self, title: str) -> None:
        self._write(f"{title}:")
        self._write()

    def result(self, result: CheckResult) -> None:
        """Write the line for one completed check."""
        if result.passed:
            marker = self._paint("PASS", GREEN)
        else:
            marker = self._paint("FAIL", RED)
        line = f"  {marker} {result.name}"
        if result.detail:
            line += f" - {result.detail}"
        self._write(line)

    def error(self, message: str) -> None:
        self._write(self._paint(message, RED))

    def summary(self, summary: RunSummary, subject: str) -> None:
        """Write the totals and the overall verdict."""
        passed = self._paint(f"{summary.passed_count} passed", GREEN)
        failed = f"{summary.failed_count} failed"
        if summary.failed_count:
            failed = self._paint(failed, RED)

        self._write()
        self._write(RULE)
        self._write(f"  Results: {passed}, {failed} (out of {summary.total})")
        self._write(RULE)

        if summary.failed_count:
            self._write(self._paint(f"{subject} FAILED", RED))
        else:
            self._write(self._paint(f"All {subject} checks PASSED", GREEN))
