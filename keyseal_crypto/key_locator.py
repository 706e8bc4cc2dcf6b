"""Locate an RSA key in caller-supplied bytes.

Public keys may be an OpenSSH authorized_keys line, an SSH2 public key block,
or a PEM ``RSA PUBLIC KEY`` (PKCS #1) / ``PUBLIC KEY`` (PKIX) block.

Private keys may be an OpenSSH private key, a PEM PKCS #1 / PKCS #8 key
(optionally with legacy ``Proc-Type: 4,ENCRYPTED`` protection) or an
``ENCRYPTED PRIVATE KEY`` PKCS #8 block. The passphrase callback is only
invoked when the key actually needs one.
"""
import enum
import getpass
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa

from .errors import (
    PREFIX,
    DecryptError,
    EnvelopeError,
    KeyFormatError,
    KeyTypeMismatchError,
    PassphraseMissingError,
)
from .pem_blocks import PemBlock, decode_pem, decode_pem_blocks
from .ssh2 import parse_ssh2_public_key

log = logging.getLogger(__name__)

PassphraseCallback = Callable[[], bytes]

_SSH_KEY_TYPE_PREFIXES = (b"ssh-", b"ecdsa-", b"sk-")
_RAW_PRIVATE_KEY_TYPES = frozenset({
    "OPENSSH PRIVATE KEY",
    "RSA PRIVATE KEY",
    "PRIVATE KEY",
    "EC PRIVATE KEY",
    "DSA PRIVATE KEY",
})


class KeyEncoding(enum.Enum):
    AUTHORIZED_KEY = "authorized-key"
    SSH2 = "ssh2"
    PKCS1_DER = "pkcs1-der"
    PKIX_DER = "pkix-der"
    PKCS8_DER = "pkcs8-der"
    ENCRYPTED_PKCS8 = "encrypted-pkcs8"
    RAW_SSH_PRIVATE_KEY = "raw-ssh-private-key"


@dataclass(frozen=True)
class KeyMaterial:
    encoding: KeyEncoding
    key: Any


def enter_passphrase() -> bytes:
    return getpass.getpass("Enter passphrase for private key: ").encode("utf-8")


def key_algorithm(key) -> str:
    """Name the algorithm family of a public or private key object."""
    if isinstance(key, (rsa.RSAPublicKey, rsa.RSAPrivateKey)):
        return "RSA"
    if isinstance(key, (ec.EllipticCurvePublicKey, ec.EllipticCurvePrivateKey)):
        return "EC"
    if isinstance(key, (ed25519.Ed25519PublicKey, ed25519.Ed25519PrivateKey)):
        return "Ed25519"
    if isinstance(key, (ed448.Ed448PublicKey, ed448.Ed448PrivateKey)):
        return "Ed448"
    if isinstance(key, (dsa.DSAPublicKey, dsa.DSAPrivateKey)):
        return "DSA"
    return type(key).__name__


# --- Public keys ---

def _parse_authorized_key(data: bytes):
    for line in data.splitlines():
        line = line.strip()
        if not line or line.startswith(b"#"):
            continue
        fields = line.split()
        # the key may be preceded by an options field, e.g. from="10.0.0.1"
        for i, token in enumerate(fields):
            if i and not token.startswith(_SSH_KEY_TYPE_PREFIXES):
                continue
            try:
                return serialization.load_ssh_public_key(b" ".join(fields[i:]))
            except (ValueError, UnsupportedAlgorithm):
                continue
    return None


def _parse_ssh2(data: bytes):
    try:
        return parse_ssh2_public_key(data)
    except KeyFormatError as e:
        log.debug("Not an SSH2 public key: %s", e)
        return None


_PUBLIC_KEY_ATTEMPTS = (
    (KeyEncoding.AUTHORIZED_KEY, _parse_authorized_key),
    (KeyEncoding.SSH2, _parse_ssh2),
)


def _type_mismatch(key, kind: str) -> KeyTypeMismatchError:
    algorithm = key_algorithm(key)
    return KeyTypeMismatchError(
        f"{PREFIX}: requiring RSA {kind} key, not {algorithm}", algorithm
    )


def _parse_pem_public_key(block: PemBlock) -> KeyMaterial:
    if block.type == "RSA PUBLIC KEY":
        try:
            key = serialization.load_pem_public_key(block.encode())
        except (ValueError, UnsupportedAlgorithm) as e:
            raise KeyFormatError(
                f"{PREFIX}: not public key in PKCS #1, ASN.1 DER form -- {e}"
            ) from e
        encoding = KeyEncoding.PKCS1_DER
    elif block.type == "PUBLIC KEY":
        try:
            key = serialization.load_der_public_key(block.data)
        except (ValueError, UnsupportedAlgorithm) as e:
            raise KeyFormatError(f"{PREFIX}: error parsing PKIX public key -- {e}") from e
        encoding = KeyEncoding.PKIX_DER
    else:
        raise KeyFormatError(f"{PREFIX}: unsupported key type {block.type!r}")
    if not isinstance(key, rsa.RSAPublicKey):
        raise _type_mismatch(key, "public")
    return KeyMaterial(encoding, key)


def locate_public_key(data: bytes) -> KeyMaterial:
    """Find an RSA public key in ``data``.

    SSH encodings are tried first; a parse that yields a non-RSA key falls
    through to the next attempt. PEM blocks are the last resort and any
    error there is final.

    Raises:
        KeyFormatError: nothing usable was found, or the PEM block is malformed.
        KeyTypeMismatchError: the only key found is not an RSA key.
    """
    other = None
    for encoding, attempt in _PUBLIC_KEY_ATTEMPTS:
        key = attempt(data)
        if key is None:
            continue
        if isinstance(key, rsa.RSAPublicKey):
            log.debug("Located RSA public key (%s)", encoding.value)
            return KeyMaterial(encoding, key)
        log.debug("Skipping %s key found as %s", key_algorithm(key), encoding.value)
        if other is None:
            other = key

    blocks = decode_pem_blocks(data)
    if not blocks:
        if other is not None:
            raise _type_mismatch(other, "public")
        raise KeyFormatError(f"{PREFIX}: pem file decoding failed")
    material = _parse_pem_public_key(blocks[0])
    log.debug("Located RSA public key (%s)", material.encoding.value)
    return material


# --- Private keys ---

def parse_raw_private_key(data: bytes, passphrase: Optional[bytes] = None):
    """Parse the first PEM block of ``data`` as an SSH-usable private key.

    Accepts OpenSSH, PKCS #1, PKCS #8, SEC 1 and DSA private keys, including
    legacy encrypted PEM. Returns the key object, whatever its algorithm.

    Raises:
        PassphraseMissingError: the key is encrypted and ``passphrase`` is None.
        DecryptError: ``passphrase`` was given but does not open the key.
        KeyFormatError: no supported private key block was found.
    """
    block, _ = decode_pem(data)
    if block is None:
        raise KeyFormatError(f"{PREFIX}: no key found")
    if block.type not in _RAW_PRIVATE_KEY_TYPES:
        raise KeyFormatError(f"{PREFIX}: unsupported key type {block.type!r}")

    try:
        pem = block.encode()
        if block.type == "OPENSSH PRIVATE KEY":
            return serialization.load_ssh_private_key(pem, password=passphrase)
        return serialization.load_pem_private_key(pem, password=passphrase)
    except TypeError as e:
        if passphrase is None:
            raise PassphraseMissingError(
                f"{PREFIX}: private key is passphrase protected"
            ) from e
        raise KeyFormatError(f"{PREFIX}: parsing private key failed -- {e}") from e
    except (ValueError, UnsupportedAlgorithm) as e:
        if passphrase is not None:
            raise DecryptError(f"{PREFIX}: decrypting private key failed -- {e}") from e
        raise KeyFormatError(f"{PREFIX}: parsing private key failed -- {e}") from e


def _parse_raw_with_prompt(data: bytes, passphrase_cb: PassphraseCallback):
    try:
        return parse_raw_private_key(data)
    except PassphraseMissingError:
        log.debug("Private key is encrypted, asking for passphrase")
        return parse_raw_private_key(data, passphrase_cb())


def _parse_encrypted_pkcs8(block: PemBlock, passphrase_cb: PassphraseCallback):
    passphrase = passphrase_cb()
    try:
        return serialization.load_der_private_key(block.data, password=passphrase)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise DecryptError(f"{PREFIX}: decrypt PKCS #8 private key failed") from e


def locate_private_key(
    data: bytes, passphrase_cb: PassphraseCallback = enter_passphrase
) -> KeyMaterial:
    """Find an RSA private key in ``data``.

    ``passphrase_cb`` is called at most once, and only for encrypted keys.

    Raises:
        KeyFormatError: nothing usable was found; the first parser's error.
        DecryptError: the passphrase did not open the key.
        KeyTypeMismatchError: the key is not an RSA key.
    """
    blocks = decode_pem_blocks(data)
    try:
        key = _parse_raw_with_prompt(data, passphrase_cb)
    except EnvelopeError:
        if not blocks or blocks[0].type != "ENCRYPTED PRIVATE KEY":
            raise
        key = _parse_encrypted_pkcs8(blocks[0], passphrase_cb)
        encoding = KeyEncoding.ENCRYPTED_PKCS8
    else:
        if blocks[0].type == "PRIVATE KEY":
            encoding = KeyEncoding.PKCS8_DER
        else:
            encoding = KeyEncoding.RAW_SSH_PRIVATE_KEY

    if not isinstance(key, rsa.RSAPrivateKey):
        raise _type_mismatch(key, "private")
    log.debug("Located RSA private key (%s)", encoding.value)
    return KeyMaterial(encoding, key)
