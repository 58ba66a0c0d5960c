"""CLI command modules for fipscheck."""

from fipscheck.command.crypto import CryptoCommand
from fipscheck.command.image import ImageCommand

__all__ = ["CryptoCommand", "ImageCommand"]
