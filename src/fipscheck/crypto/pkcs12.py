"""PKCS#12 container parsing outside the FIPS-restricted crypto layer.

Legacy .pfx files are typically protected with 3DES or RC2 under the
PKCS#12 key derivation function, none of which a FIPS-enforcing OpenSSL
will touch. This module parses them with asn1crypto and does all key
derivation, MAC checking and decryption with pycryptodome, which carries
its own primitive implementations, so the raw key material can then be
handed to the restricted layer for re-import.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path

from asn1crypto import keys, pkcs12
from Crypto.Cipher import AES, ARC2, DES, DES3
from Crypto.Hash import HMAC, SHA1, SHA224, SHA256, SHA384, SHA512
from Crypto.Protocol.KDF import PBKDF2
from Crypto.Util.Padding import unpad

from fipscheck.core.log import logger

HASHES = {
    'sha1': SHA1,
    'sha224': SHA224,
    'sha256': SHA256,
    'sha384': SHA384,
    'sha512': SHA512,
}

# PKCS#12 KDF purpose bytes (RFC 7292, appendix B.3)
KDF_KEY = 1
KDF_IV = 2
KDF_MAC = 3


class Pkcs12Error(ValueError):
    """A container could not be parsed or decrypted."""


@dataclass
class Pkcs12Contents:
    """Raw DER material extracted from a container."""

    certificates: list[bytes] = field(default_factory=list)
    private_keys: list[bytes] = field(default_factory=list)


@dataclass(frozen=True)
class Password:
    """A container password in both encodings PKCS#12 uses.

    PBES2 derives keys from the UTF-8 text; the PKCS#12 KDF uses a
    NUL-terminated BMPString.
    """

    text: str
    bmp: bytes

    @classmethod
    def candidates(cls, text: str) -> list[Password]:
        """Encodings to try for a password.

        An empty password may have been written either as a lone NUL
        or as no password at all.
        """
        bmp = text.encode('utf-16-be') + b'\x00\x00'
        if text:
            return [cls(text, bmp)]
        return [cls(text, bmp), cls(text, b'')]


def _hash_module(name: str):
    try:
        return HASHES[name]
    except KeyError:
        raise Pkcs12Error(f"Unsupported hash algorithm: {name}") from None


def pkcs12_kdf(
    hash_name: str,
    password: bytes,
    salt: bytes,
    iterations: int,
    key_length: int,
    purpose: int,
) -> bytes:
    """Derive key material with the PKCS#12 KDF (RFC 7292, appendix B.2).

    Args:
        hash_name: Hash to use (e.g. "sha1")
        password: BMPString-encoded password
        salt: Salt from the algorithm parameters
        iterations: Iteration count
        key_length: Number of bytes to produce
        purpose: KDF_KEY, KDF_IV or KDF_MAC

    Returns:
        key_length bytes of derived material
    """
    hash_mod = _hash_module(hash_name)
    u = hash_mod.digest_size
    v = hash_mod.block_size

    def _stretch(data: bytes) -> bytes:
        if not data:
            return b''
        length = v * math.ceil(len(data) / v)
        return (data * math.ceil(length / len(data)))[:length]

    diversifier = bytes([purpose]) * v
    i_block = bytearray(_stretch(salt) + _stretch(password))

    derived = b''
    for _ in range(math.ceil(key_length / u)):
        a = diversifier + bytes(i_block)
        for _ in range(iterations):
            a = hash_mod.new(a).digest()
        derived += a

        b = int.from_bytes((a * math.ceil(v / u))[:v], 'big') + 1
        for j in range(0, len(i_block), v):
            chunk = int.from_bytes(i_block[j:j + v], 'big')
            chunk = (chunk + b) % (1 << (8 * v))
            i_block[j:j + v] = chunk.to_bytes(v, 'big')

    return derived[:key_length]


def _new_cipher(cipher: str, key: bytes, iv: bytes):
    if cipher == 'aes':
        return AES.new(key, AES.MODE_CBC, iv)
    if cipher == 'tripledes':
        return DES3.new(key, DES3.MODE_CBC, iv)
    if cipher == 'des':
        return DES.new(key, DES.MODE_CBC, iv)
    if cipher == 'rc2':
        return ARC2.new(
            key, ARC2.MODE_CBC, iv, effective_keylen=len(key) * 8
        )
    raise Pkcs12Error(f"Unsupported cipher: {cipher}")


def decrypt(algorithm, ciphertext: bytes, password: Password) -> bytes:
    """Decrypt data protected by a PKCS#12 PBE or PBES2 algorithm.

    Args:
        algorithm: asn1crypto.algos.EncryptionAlgorithm
        ciphertext: Encrypted bytes
        password: Container password

    Returns:
        Plaintext with CBC padding removed
    """
    kdf = algorithm.kdf
    cipher = algorithm.encryption_cipher
    key_length = algorithm.key_length
    block_size = 16 if cipher == 'aes' else 8

    logger.trace(
        "Decrypting PKCS#12 payload",
        algorithm=algorithm['algorithm'].native, kdf=kdf, cipher=cipher,
    )

    if kdf == 'pkcs12_kdf':
        args = (
            algorithm.kdf_hmac,
            password.bmp,
            algorithm.kdf_salt,
            algorithm.kdf_iterations,
        )
        key = pkcs12_kdf(*args, key_length, KDF_KEY)
        iv = pkcs12_kdf(*args, block_size, KDF_IV)
    elif kdf == 'pbkdf2':
        key = PBKDF2(
            password.text.encode('utf-8'),
            algorithm.kdf_salt,
            dkLen=key_length,
            count=algorithm.kdf_iterations,
            hmac_hash_module=_hash_module(algorithm.kdf_hmac),
        )
        iv = algorithm.encryption_iv
    else:
        raise Pkcs12Error(f"Unsupported key derivation: {kdf}")

    plaintext = _new_cipher(cipher, key, iv).decrypt(ciphertext)
    try:
        return unpad(plaintext, block_size)
    except ValueError:
        raise Pkcs12Error(
            "Decryption failed (wrong password or corrupt data)"
        ) from None


def _verify_mac(pfx, candidates: list[Password]) -> Password:
    """Return the password encoding the container MAC accepts."""
    mac_data = pfx['mac_data']
    if not mac_data:
        return candidates[0]

    hash_name = mac_data['mac']['digest_algorithm']['algorithm'].native
    hash_mod = _hash_module(hash_name)
    content = pfx['auth_safe']['content'].native
    expected = mac_data['mac']['digest'].native

    for password in candidates:
        mac_key = pkcs12_kdf(
            hash_name,
            password.bmp,
            mac_data['mac_salt'].native,
            mac_data['iterations'].native,
            hash_mod.digest_size,
            KDF_MAC,
        )
        mac = HMAC.new(mac_key, content, digestmod=hash_mod)
        try:
            mac.verify(expected)
        except ValueError:
            continue
        return password

    raise Pkcs12Error("MAC verification failed (wrong password?)")


def _walk_safe_contents(safe_contents, password: Password, found):
    for bag in safe_contents:
        bag_id = bag['bag_id'].native
        value = bag['bag_value']

        if bag_id == 'cert_bag':
            if value['cert_id'].native == 'x509':
                found.certificates.append(value['cert_value'].parsed.dump())
        elif bag_id == 'key_bag':
            # Drop the bag's explicit [0] tag to get bare PKCS#8 DER
            key_der = value.untag().dump()
            found.private_keys.append(keys.PrivateKeyInfo.load(key_der).dump())
        elif bag_id == 'pkcs8_shrouded_key_bag':
            key_der = decrypt(
                value['encryption_algorithm'],
                value['encrypted_data'].native,
                password,
            )
            # Round-trip through PrivateKeyInfo so garbage fails here
            found.private_keys.append(keys.PrivateKeyInfo.load(key_der).dump())
        elif bag_id == 'safe_contents':
            _walk_safe_contents(value, password, found)
        else:
            logger.debug("Skipping PKCS#12 bag", bag_id=bag_id)


def parse(data: bytes, password: str = "") -> Pkcs12Contents:
    """Extract certificates and private keys from a PKCS#12 blob.

    Args:
        data: DER-encoded PFX
        password: Container password (empty string if none)

    Returns:
        Pkcs12Contents with DER certificates and PKCS#8 private keys

    Raises:
        Pkcs12Error: If the container is malformed, uses an unsupported
            algorithm, or the password is wrong
    """
    try:
        pfx = pkcs12.Pfx.load(data)
        content_type = pfx['auth_safe']['content_type'].native
        if content_type != 'data':
            raise Pkcs12Error(
                f"Unsupported authenticated safe type: {content_type}"
            )

        secret = _verify_mac(pfx, Password.candidates(password))

        found = Pkcs12Contents()
        for content_info in pfx.authenticated_safe:
            kind = content_info['content_type'].native
            content = content_info['content']

            if kind == 'data':
                safe_contents = pkcs12.SafeContents.load(content.native)
            elif kind == 'encrypted_data':
                encrypted = content['encrypted_content_info']
                safe_contents = pkcs12.SafeContents.load(decrypt(
                    encrypted['content_encryption_algorithm'],
                    encrypted['encrypted_content'].native,
                    secret,
                ))
            else:
                raise Pkcs12Error(f"Unsupported content type: {kind}")

            _walk_safe_contents(safe_contents, secret, found)
    except Pkcs12Error:
        raise
    except (ValueError, TypeError, KeyError) as e:
        raise Pkcs12Error(f"Malformed PKCS#12 data: {e}") from e

    return found


def load(path: Path, password: str = "") -> Pkcs12Contents:
    """Read and parse a PKCS#12 file."""
    with open(path, 'rb') as f:
        data = f.read()
    return parse(data, password)
