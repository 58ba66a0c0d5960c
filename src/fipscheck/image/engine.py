"""Container engine CLI wrapper."""

from __future__ import annotations

from fipscheck.core.log import logger
from fipscheck.core.result import ExecResult
from fipscheck.core.runner import CommandExecutor


class ImageNotFoundError(RuntimeError):
    """The image under test does not exist locally."""

    def __init__(self, image: str, engine: str = "docker"):
        self.image = image
        self.engine = engine
        super().__init__(f"Image '{image}' not found")

    @property
    def remediation(self) -> list[str]:
        """Lines telling the user how to fix it."""
        return [
            f"ERROR: Image '{self.image}' not found. Build it first:",
            f"  {self.engine} build -t {self.image} .",
        ]


class ContainerEngine:
    """Runs one-shot commands against an image through the engine CLI.

    Every container is started with --rm, so probes leave nothing
    behind and never modify the image.
    """

    def __init__(self, executor: CommandExecutor, binary: str = "docker"):
        """Initialize ContainerEngine.

        Args:
            executor: Runs the engine commands
            binary: Engine executable (docker, podman, ...)
        """
        self.executor = executor
        self.binary = binary

    def image_exists(self, image: str) -> bool:
        result = self.executor.execute(
            [self.binary, "image", "inspect", image]
        )
        logger.debug(
            "Image lookup", image=image, returncode=result.returncode
        )
        return result.success

    def require_image(self, image: str) -> None:
        """Raise ImageNotFoundError unless the image exists."""
        if not self.image_exists(image):
            raise ImageNotFoundError(image, self.binary)

    def run(self, image: str, command: list[str]) -> ExecResult:
        """Run a command in a fresh, self-removing container."""
        return self.executor.execute(
            [self.binary, "run", "--rm", image, *command]
        )

    def inspect(self, image: str, template: str) -> ExecResult:
        """Render image metadata with a Go template."""
        return self.executor.execute(
            [self.binary, "image", "inspect", "--format", template, image]
        )
