"""In-process battery of cryptographic primitives.

Every operation goes through ``cryptography``, i.e. through whatever
OpenSSL the interpreter is bound to. In a correctly configured FIPS image
the approved algorithms work and MD5 is refused.
"""

from __future__ import annotations

import os
from functools import partial
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from fipscheck.core.log import logger
from fipscheck.core.result import Outcome, Polarity, RunSummary
from fipscheck.crypto import pkcs12
from fipscheck.harness.executor import run_check
from fipscheck.harness.report import Reporter

APPROVED_DIGESTS = (
    ("SHA-256", hashes.SHA256),
    ("SHA-384", hashes.SHA384),
    ("SHA-512", hashes.SHA512),
)

CONTAINER_CHECK = "PKCS#12 import"


def _preview(data: bytes) -> str:
    return data.hex().upper()[:16] + "..."


def openssl_status() -> dict[str, str]:
    """Describe the OpenSSL behind the restricted layer, for logging."""
    from cryptography.hazmat.backends.openssl import backend

    fips = getattr(backend, "_fips_enabled", None)
    return {
        "openssl": backend.openssl_version_text(),
        "fips_enabled": "unknown" if fips is None else str(fips),
    }


def find_containers(directory: Path, extensions: list[str]) -> list[Path]:
    """Certificate containers directly inside a directory, by name.

    A missing directory counts as empty.
    """
    if not directory.is_dir():
        return []
    wanted = {ext.lower() for ext in extensions}
    return sorted(
        path for path in directory.iterdir()
        if path.is_file() and path.suffix.lower() in wanted
    )


class CryptoBattery:
    """Fixed list of primitive checks over one plaintext payload."""

    def __init__(
        self,
        payload: bytes,
        hmac_key: bytes,
        certificate_dir: Path,
        certificate_extensions: list[str],
        pfx_password: str = "",
    ):
        """Initialize CryptoBattery.

        Args:
            payload: Plaintext fed to every primitive
            hmac_key: Key for the HMAC check
            certificate_dir: Directory scanned for PKCS#12 containers
            certificate_extensions: Container file suffixes
            pfx_password: Password for the containers
        """
        self.payload = payload
        self.hmac_key = hmac_key
        self.certificate_dir = certificate_dir
        self.certificate_extensions = certificate_extensions
        self.pfx_password = pfx_password

    # -- approved primitives ---------------------------------------------

    def digest(self, algorithm: hashes.HashAlgorithm) -> Outcome:
        h = hashes.Hash(algorithm)
        h.update(self.payload)
        value = h.finalize()
        if len(value) != algorithm.digest_size:
            return Outcome.mismatched(
                f"digest is {len(value)} bytes, "
                f"expected {algorithm.digest_size}"
            )
        return Outcome.succeeded(_preview(value))

    def keyed_hash(self) -> Outcome:
        h = hmac.HMAC(self.hmac_key, hashes.SHA256())
        h.update(self.payload)
        value = h.finalize()
        if len(value) != hashes.SHA256.digest_size:
            return Outcome.mismatched(f"MAC is {len(value)} bytes")
        return Outcome.succeeded(_preview(value))

    def aes_round_trip(self) -> Outcome:
        """AES-256-CBC encrypt then decrypt, compared byte for byte."""
        key = os.urandom(32)
        iv = os.urandom(16)
        cipher = Cipher(algorithms.AES(key), modes.CBC(iv))

        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(self.payload) + padder.finalize()
        encryptor = cipher.encryptor()
        encrypted = encryptor.update(padded) + encryptor.finalize()

        decryptor = cipher.decryptor()
        decrypted = decryptor.update(encrypted) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plaintext = unpadder.update(decrypted) + unpadder.finalize()

        if plaintext != self.payload:
            return Outcome.mismatched("round-trip mismatch")
        return Outcome.succeeded("encrypt/decrypt round-trip OK")

    def rsa_sign_verify(self) -> Outcome:
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        signature = key.sign(
            self.payload, asym_padding.PKCS1v15(), hashes.SHA256()
        )
        try:
            key.public_key().verify(
                signature, self.payload, asym_padding.PKCS1v15(),
                hashes.SHA256(),
            )
        except InvalidSignature:
            return Outcome.mismatched("signature invalid")
        return Outcome.succeeded("signature valid")

    def ecdsa_sign_verify(self) -> Outcome:
        key = ec.generate_private_key(ec.SECP256R1())
        signature = key.sign(self.payload, ec.ECDSA(hashes.SHA256()))
        try:
            key.public_key().verify(
                signature, self.payload, ec.ECDSA(hashes.SHA256())
            )
        except InvalidSignature:
            return Outcome.mismatched("signature invalid")
        return Outcome.succeeded("signature valid")

    # -- legacy certificate containers -----------------------------------

    def import_container(self, path: Path) -> Outcome:
        """Extract with the independent parser, re-import restricted."""
        contents = pkcs12.load(path, self.pfx_password)
        if not contents.private_keys:
            return Outcome.mismatched("no private key entry found")
        if not contents.certificates:
            return Outcome.mismatched("no certificate entry found")

        key = serialization.load_der_private_key(
            contents.private_keys[0], password=None
        )
        certificates = [
            x509.load_der_x509_certificate(der)
            for der in contents.certificates
        ]

        spki = (
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        key_public = key.public_key().public_bytes(*spki)
        for certificate in certificates:
            if certificate.public_key().public_bytes(*spki) == key_public:
                return Outcome.succeeded(
                    f"{certificate.subject.rfc4514_string()}, "
                    f"{len(certificates)} certificate(s)"
                )
        return Outcome.mismatched("private key does not match any certificate")

    def run_containers(self, summary: RunSummary, reporter: Reporter) -> None:
        """One check line per container, or a single FAIL if none exist."""
        paths = find_containers(
            self.certificate_dir, self.certificate_extensions
        )
        if not paths:
            suffixes = "/".join(self.certificate_extensions)
            run_check(
                CONTAINER_CHECK,
                lambda: Outcome.mismatched(
                    f"no {suffixes} files found in {self.certificate_dir}"
                ),
                summary,
                reporter,
            )
            return

        for path in paths:
            run_check(
                f"{CONTAINER_CHECK} ({path.name})",
                partial(self.import_container, path),
                summary,
                reporter,
            )

    # -- disapproved primitive -------------------------------------------

    def legacy_digest(self) -> Outcome:
        """MD5 through the restricted layer; must be refused under FIPS."""
        h = hashes.Hash(hashes.MD5())
        h.update(self.payload)
        return Outcome.succeeded(_preview(h.finalize()))

    # -- driver ------------------------------------------------------------

    def run(self, summary: RunSummary, reporter: Reporter) -> RunSummary:
        """Run every check in order and return the summary."""
        logger.info("OpenSSL status", **openssl_status())

        reporter.section("FIPS-Approved Algorithms (should succeed)")
        for name, algorithm in APPROVED_DIGESTS:
            run_check(
                name, partial(self.digest, algorithm()), summary, reporter
            )
        run_check("HMAC-SHA256", self.keyed_hash, summary, reporter)
        run_check("AES-256-CBC", self.aes_round_trip, summary, reporter)
        run_check(
            "RSA-2048 sign/verify", self.rsa_sign_verify, summary, reporter
        )
        run_check(
            "ECDSA P-256 sign/verify", self.ecdsa_sign_verify, summary,
            reporter,
        )
        self.run_containers(summary, reporter)

        reporter.section("Non-FIPS Algorithms (should be rejected)")
        run_check(
            "MD5 rejection",
            self.legacy_digest,
            summary,
            reporter,
            polarity=Polarity.EXPECT_REJECTION,
        )
        return summary
