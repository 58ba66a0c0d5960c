"""Image command - probes a container image through the engine CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from fipscheck.core.log import logger
from fipscheck.core.runner import CommandExecutor, Runner
from fipscheck.harness.report import Reporter
from fipscheck.image.battery import ImageBattery
from fipscheck.image.engine import ContainerEngine, ImageNotFoundError

if TYPE_CHECKING:
    from fipscheck.core.config import State


class ImageCommand(BaseModel):
    """Verify a built image from the outside.

    Each probe runs a one-shot command in a throwaway container (or
    reads image metadata) and checks exit code and output. The image
    must already exist; nothing is pulled or built.
    """

    image: str | None = Field(
        default=None,
        description="Image to test (overrides config.image.name)",
    )

    def run_workflow(
        self,
        state: State,
        reporter: Reporter | None = None,
        executor: CommandExecutor | None = None,
    ) -> int:
        """Run the image battery.

        Args:
            state: State instance
            reporter: Report writer (defaults to stdout)
            executor: Command executor (defaults to an invoke Runner)

        Returns:
            Exit code (0 when every probe passed, 1 otherwise or when
            the image is missing)
        """
        settings = state.config.image
        image = self.image or settings.name
        reporter = reporter or Reporter(colors=state.config.report.colors)
        executor = executor or Runner(timeout=settings.timeout)

        battery = ImageBattery(
            ContainerEngine(executor, settings.engine),
            image,
            settings.probes,
        )

        summary = state.runtime.image.summary
        reporter.banner("FIPS Validation Test Suite", f"Image: {image}")
        try:
            with logger.span("Image battery", image=image):
                battery.run(summary, reporter)
        except ImageNotFoundError as e:
            state.runtime.image.image_found = False
            logger.error("Pre-flight check failed", image=image)
            for line in e.remediation:
                reporter.error(line)
            return 1

        state.runtime.image.image_found = True
        reporter.summary(summary, "FIPS validation")
        return summary.exit_code
