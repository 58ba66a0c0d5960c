"""Command execution using invoke library with custom extensions."""

from __future__ import annotations

import shlex
from typing import Protocol, runtime_checkable

from invoke import Context
from invoke.exceptions import CommandTimedOut

from fipscheck.core.log import logger
from fipscheck.core.result import ExecResult

# Stops MSYS/Git Bash on Windows from rewriting Linux paths in arguments
DEFAULT_ENV = {"MSYS_NO_PATHCONV": "1"}


@runtime_checkable
class CommandExecutor(Protocol):
    """Anything that can run an argv and report how it went."""

    def execute(self, command: list[str]) -> ExecResult:
        ...


class Runner(Context):
    """Wrapper around invoke.Context implementing CommandExecutor.

    Output is always captured and a non-zero exit never raises; the
    caller decides what the return code means.
    """

    def __init__(
        self,
        timeout: int | None = None,
        log_level: str | None = "trace",
        env: dict[str, str] | None = None,
    ):
        """Initialize Runner.

        Args:
            timeout: Maximum execution time per command in seconds
            log_level: Level for echoing captured output, or None
            env: Extra environment variables (merged over os.environ)
        """
        super().__init__()
        # Context turns plain attribute assignment into config entries
        self._set(
            _timeout=timeout,
            _log_level=log_level,
            _env={**DEFAULT_ENV, **(env or {})},
        )

    def execute(self, command: list[str]) -> ExecResult:
        """Run an argv and capture its result.

        Args:
            command: Program and arguments; quoted for the shell here

        Returns:
            ExecResult; a timeout is reported as returncode -1
        """
        line = shlex.join(command)
        logger.debug("Executing command", command=line)

        kwargs = {
            "hide": True,
            "warn": True,
            "in_stream": False,
            "env": self._env,
        }
        if self._timeout:
            kwargs["timeout"] = self._timeout

        try:
            result = self.run(line, **kwargs)
            returncode = result.exited
        except CommandTimedOut as e:
            logger.warn(
                "Command timed out", command=line, timeout=self._timeout
            )
            result = e.result
            returncode = -1

        if self._log_level:
            for text in (result.stdout, result.stderr):
                for output_line in text.splitlines():
                    logger.log(self._log_level, output_line.rstrip())

        return ExecResult(
            returncode=returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
