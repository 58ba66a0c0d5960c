"""Pytest configuration and fixtures for fipscheck tests."""

import io
import sys
import tempfile
from pathlib import Path

import pytest

from fipscheck.core.log import ConsoleSink, setup_logger
from fipscheck.core.result import ExecResult, RunSummary
from fipscheck.harness.report import Reporter


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Console-only logging at debug level for the whole session."""
    test_log_root = Path(tempfile.gettempdir()) / "fipscheck-tests"
    setup_logger(
        log_root=test_log_root,
        run_name="test",
        console=ConsoleSink(level="debug"),
    )


class FakeExecutor:
    """CommandExecutor that answers from a handler and records calls.

    The handler receives the argv and returns an ExecResult; without a
    handler every command succeeds with empty output.
    """

    def __init__(self, handler=None):
        self.handler = handler or (lambda command: ExecResult(returncode=0))
        self.commands: list[list[str]] = []

    def execute(self, command: list[str]) -> ExecResult:
        self.commands.append(list(command))
        return self.handler(command)


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def report_stream():
    return io.StringIO()


@pytest.fixture
def reporter(report_stream):
    """Reporter writing uncolored text into report_stream."""
    return Reporter(stream=report_stream, colors="never")


@pytest.fixture
def summary():
    return RunSummary()


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Run config loading away from any real user or project config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setattr(sys, "argv", ["fipscheck"])
    return tmp_path


@pytest.fixture
def state(isolated_config):
    """State loaded from packaged defaults only."""
    from fipscheck.core.config import State

    return State()


def _lines_with(marker):
    def select(text: str) -> list[str]:
        return [
            line for line in text.splitlines()
            if line.startswith(f"  {marker} ")
        ]
    return select


@pytest.fixture
def fail_lines():
    """Function returning the FAIL lines of a report."""
    return _lines_with("FAIL")


@pytest.fixture
def pass_lines():
    """Function returning the PASS lines of a report."""
    return _lines_with("PASS")


@pytest.fixture
def make_executor():
    """Factory for FakeExecutor instances with a handler."""
    return FakeExecutor
