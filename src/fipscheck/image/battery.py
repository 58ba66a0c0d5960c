"""External battery: probes run against the image through the engine."""

from __future__ import annotations

import re
from functools import partial

from pydantic import Field, model_validator

from fipscheck.core.base import TEMPLATE_KEY, BaseConfig
from fipscheck.core.log import logger
from fipscheck.core.result import Outcome, Polarity, RunSummary
from fipscheck.harness.executor import run_check
from fipscheck.harness.report import Reporter
from fipscheck.image.engine import ContainerEngine


class Probe(BaseConfig):
    """One named inspection of the image."""

    name: str = Field(description="Check name shown in the report")
    command: list[str] = Field(
        default_factory=list,
        description="Command run inside an ephemeral container",
    )
    inspect_format: str | None = Field(
        default=None,
        description=(
            "Go template for image metadata; used instead of command"
        ),
    )
    expect: list[str] = Field(
        default_factory=list,
        description=(
            "Regexes that must all match stdout+stderr; {config.*} "
            "values are inserted as literal text"
        ),
        json_schema_extra={TEMPLATE_KEY: "regex"},
    )
    ignore_case: bool = Field(
        default=False,
        description="Match expect patterns case-insensitively",
    )
    check_exit: bool = Field(
        default=True,
        description="Treat a non-zero exit code as failure",
    )
    polarity: Polarity = Field(
        default=Polarity.EXPECT_SUCCESS,
        description=(
            "expect_success, or expect_rejection for probes that must "
            "fail (exit non-zero or not match)"
        ),
    )

    @model_validator(mode='after')
    def _require_target(self) -> Probe:
        if not self.command and not self.inspect_format:
            raise ValueError(
                f"Probe '{self.name}' needs a command or an inspect_format"
            )
        return self

    def patterns(self) -> list[re.Pattern]:
        flags = re.IGNORECASE if self.ignore_case else 0
        return [re.compile(p, flags) for p in self.expect]


def _last_line(text: str) -> str:
    lines = [line for line in text.strip().splitlines() if line.strip()]
    return lines[-1].strip() if lines else ""


def evaluate(probe: Probe, engine: ContainerEngine, image: str) -> Outcome:
    """Invoke one probe and turn exit code and output into an Outcome."""
    if probe.inspect_format:
        result = engine.inspect(image, probe.inspect_format)
    else:
        result = engine.run(image, probe.command)

    logger.trace(
        "Probe output", probe=probe.name, returncode=result.returncode,
        output=result.output,
    )

    if probe.check_exit and not result.success:
        detail = f"exit code {result.returncode}"
        reason = _last_line(result.stderr) or _last_line(result.stdout)
        if reason:
            detail += f": {reason}"
        return Outcome.errored(detail)

    missing = [
        pattern.pattern for pattern in probe.patterns()
        if not pattern.search(result.output)
    ]
    if missing:
        return Outcome.mismatched(
            "output lacks " + ", ".join(repr(p) for p in missing)
        )

    if probe.expect:
        return Outcome.succeeded("output matched")
    return Outcome.succeeded()


class ImageBattery:
    """Ordered list of probes against one image."""

    def __init__(
        self, engine: ContainerEngine, image: str, probes: list[Probe]
    ):
        self.engine = engine
        self.image = image
        self.probes = probes

    def preflight(self) -> None:
        """Abort before any probe if the image is missing.

        Raises:
            ImageNotFoundError: If the engine cannot find the image
        """
        self.engine.require_image(self.image)

    def run(self, summary: RunSummary, reporter: Reporter) -> RunSummary:
        """Run the pre-flight gate, then every probe in order."""
        self.preflight()

        for probe in self.probes:
            run_check(
                probe.name,
                partial(evaluate, probe, self.engine, self.image),
                summary,
                reporter,
                polarity=probe.polarity,
            )
        return summary
