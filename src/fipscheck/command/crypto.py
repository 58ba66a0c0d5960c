"""Crypto command - in-process primitive battery."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from fipscheck.core.log import logger
from fipscheck.crypto.battery import CryptoBattery
from fipscheck.harness.report import Reporter

if TYPE_CHECKING:
    from fipscheck.core.config import State


class CryptoCommand(BaseModel):
    """Exercise FIPS-approved and disapproved primitives in-process.

    Hashes, HMAC, AES-256-CBC, RSA and ECDSA must work; every PKCS#12
    container in the certificate directory must import; MD5 must be
    refused. Run this inside the image under test.
    """

    certificate_dir: Path | None = Field(
        default=None,
        alias="certificate-dir",
        description=(
            "Directory with .pfx/.p12 files "
            "(overrides config.crypto.certificate_dir)"
        ),
    )

    model_config = ConfigDict(populate_by_name=True)

    def run_workflow(
        self, state: State, reporter: Reporter | None = None
    ) -> int:
        """Run the crypto battery.

        Args:
            state: State instance
            reporter: Report writer (defaults to stdout)

        Returns:
            Exit code (0 when every check passed)
        """
        settings = state.config.crypto
        reporter = reporter or Reporter(colors=state.config.report.colors)

        battery = CryptoBattery(
            payload=settings.payload.encode("utf-8"),
            hmac_key=settings.hmac_key.encode("utf-8"),
            certificate_dir=self.certificate_dir or settings.certificate_dir,
            certificate_extensions=settings.certificate_extensions,
            pfx_password=settings.resolved_password(),
        )

        summary = state.runtime.crypto.summary
        reporter.banner("FIPS Crypto Validation Tests")
        with logger.span("Crypto battery"):
            battery.run(summary, reporter)
        reporter.summary(summary, "FIPS crypto validation")

        return summary.exit_code
