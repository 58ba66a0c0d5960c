"""Certificate fixtures for the crypto tests."""

import datetime
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID


def _make_identity(common_name="fipscheck test"):
    """Self-signed P-256 certificate and its key."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.UTC)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return key, certificate


def _legacy_encryption(password: bytes):
    """3DES under the PKCS#12 KDF with a SHA-1 MAC, as old tools write."""
    return (
        serialization.PrivateFormat.PKCS12.encryption_builder()
        .kdf_rounds(2048)
        .key_cert_algorithm(pkcs12.PBES.PBESv1SHA1And3KeyTripleDESCBC)
        .hmac_hash(hashes.SHA1())
        .build(password)
    )


@pytest.fixture
def identity():
    return _make_identity()


@pytest.fixture
def write_pfx(tmp_path, identity):
    """Write a .pfx for the shared identity and return its path."""
    key, certificate = identity

    def _write(
        filename="identity.pfx", encryption=None, include_key=True, cas=None
    ):
        data = pkcs12.serialize_key_and_certificates(
            b"identity",
            key if include_key else None,
            certificate,
            cas,
            encryption or serialization.NoEncryption(),
        )
        path = tmp_path / filename
        path.write_bytes(data)
        return path

    return _write


@pytest.fixture
def make_identity():
    """Factory for extra self-signed identities."""
    return _make_identity


@pytest.fixture
def legacy_encryption():
    """Factory for legacy 3DES encryption settings."""
    return _legacy_encryption


@pytest.fixture
def fixtures_dir():
    """Checked-in containers written by the OpenSSL CLI."""
    return Path(__file__).parent / "data"


@pytest.fixture
def fixture_certificate(fixtures_dir):
    """The certificate every checked-in container holds."""
    return x509.load_pem_x509_certificate(
        (fixtures_dir / "cert.pem").read_bytes()
    )
