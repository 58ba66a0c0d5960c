"""Tests for the independent PKCS#12 parser."""

import pytest
from asn1crypto.pkcs12 import Pfx
from cryptography import x509
from cryptography.hazmat.primitives import serialization

from fipscheck.crypto import pkcs12

SPKI = (
    serialization.Encoding.DER,
    serialization.PublicFormat.SubjectPublicKeyInfo,
)


def _key_matches(contents, certificate):
    key = serialization.load_der_private_key(
        contents.private_keys[0], password=None
    )
    return (
        key.public_key().public_bytes(*SPKI)
        == certificate.public_key().public_bytes(*SPKI)
    )


def test_legacy_triple_des_container(
    write_pfx, identity, legacy_encryption
):
    _, certificate = identity
    path = write_pfx(encryption=legacy_encryption(b"s3cret"))

    contents = pkcs12.load(path, "s3cret")

    assert len(contents.certificates) == 1
    assert len(contents.private_keys) == 1
    assert x509.load_der_x509_certificate(
        contents.certificates[0]
    ) == certificate
    assert _key_matches(contents, certificate)


def test_pbes2_aes_container(write_pfx, identity):
    _, certificate = identity
    path = write_pfx(
        encryption=serialization.BestAvailableEncryption(b"s3cret")
    )

    contents = pkcs12.load(path, "s3cret")

    assert _key_matches(contents, certificate)


def test_unencrypted_container(write_pfx, identity):
    _, certificate = identity
    path = write_pfx()

    contents = pkcs12.load(path)

    assert _key_matches(contents, certificate)


def test_empty_password_container(fixtures_dir, fixture_certificate):
    contents = pkcs12.load(fixtures_dir / "empty-password.p12", "")

    assert x509.load_der_x509_certificate(
        contents.certificates[0]
    ) == fixture_certificate
    assert _key_matches(contents, fixture_certificate)


def test_empty_password_needs_the_right_encoding(fixtures_dir):
    """Only one of the two empty-password encodings opens the MAC."""
    pfx = Pfx.load((fixtures_dir / "empty-password.p12").read_bytes())
    opened = []
    for candidate in pkcs12.Password.candidates(""):
        try:
            opened.append(pkcs12._verify_mac(pfx, [candidate]).bmp)
        except pkcs12.Pkcs12Error:
            continue

    assert len(opened) == 1
    assert pkcs12._verify_mac(
        pfx, pkcs12.Password.candidates("")
    ).bmp == opened[0]


def test_empty_password_container_rejects_a_password(fixtures_dir):
    with pytest.raises(pkcs12.Pkcs12Error, match="MAC verification failed"):
        pkcs12.load(fixtures_dir / "empty-password.p12", "legacy")


@pytest.mark.parametrize(
    "filename",
    ["legacy-rc2-40.pfx", "legacy-2des-rc2-128.pfx"],
)
def test_legacy_rc2_and_two_key_containers(
    fixtures_dir, fixture_certificate, filename
):
    contents = pkcs12.load(fixtures_dir / filename, "legacy")

    assert len(contents.certificates) == 1
    assert _key_matches(contents, fixture_certificate)


def test_plain_key_bag_from_openssl(fixtures_dir, fixture_certificate):
    contents = pkcs12.load(fixtures_dir / "unencrypted.pfx")

    # Bare PKCS#8 SEQUENCE, not the bag's [0] wrapper
    assert contents.private_keys[0][:1] == b"\x30"
    assert _key_matches(contents, fixture_certificate)


def test_wrong_password(write_pfx, legacy_encryption):
    path = write_pfx(encryption=legacy_encryption(b"s3cret"))

    with pytest.raises(pkcs12.Pkcs12Error, match="MAC verification failed"):
        pkcs12.load(path, "nope")


def test_certificate_only_container(write_pfx):
    path = write_pfx(include_key=False)

    contents = pkcs12.load(path)

    assert len(contents.certificates) == 1
    assert contents.private_keys == []


def test_chain_certificates_are_extracted(
    write_pfx, make_identity, legacy_encryption
):
    _, ca_certificate = make_identity("fipscheck ca")
    path = write_pfx(
        encryption=legacy_encryption(b"pw"), cas=[ca_certificate]
    )

    contents = pkcs12.load(path, "pw")

    assert len(contents.certificates) == 2


def test_garbage_is_rejected():
    with pytest.raises(pkcs12.Pkcs12Error):
        pkcs12.parse(b"this is not a pfx file")


def test_kdf_is_deterministic_and_purpose_bound():
    password = pkcs12.Password.candidates("pw")[0].bmp
    args = ("sha1", password, b"saltsalt", 10)

    key = pkcs12.pkcs12_kdf(*args, 24, pkcs12.KDF_KEY)

    assert len(key) == 24
    assert key == pkcs12.pkcs12_kdf(*args, 24, pkcs12.KDF_KEY)
    assert key[:8] != pkcs12.pkcs12_kdf(*args, 8, pkcs12.KDF_IV)


def test_kdf_matches_reference_vector():
    """Key from the widely used "smeg" PKCS#12 KDF test vector."""
    password = "smeg".encode("utf-16-be") + b"\x00\x00"
    salt = bytes.fromhex("0A58CF64530D823F")

    key = pkcs12.pkcs12_kdf("sha1", password, salt, 1, 24, pkcs12.KDF_KEY)

    assert key == bytes.fromhex(
        "8AAAE6297B6CB04642AB5B077851284EB7128F1A2A7FBCA3"
    )


def test_empty_password_candidates():
    candidates = pkcs12.Password.candidates("")

    assert [c.bmp for c in candidates] == [b"\x00\x00", b""]
    assert pkcs12.Password.candidates("a")[0].bmp == b"\x00a\x00\x00"


def test_unsupported_hash():
    with pytest.raises(pkcs12.Pkcs12Error, match="Unsupported hash"):
        pkcs12.pkcs12_kdf("md2", b"", b"", 1, 8, pkcs12.KDF_KEY)
