"""RSA-OAEP envelope around a random 32-byte secret.

``seal`` generates the secret and encrypts it under a public key; the result
is an ``EnvelopeRecord`` holding the ciphertext and a digest of the secret.
``unseal`` recovers the secret with the matching private key and checks it
against the digest.

Security Note:
    Never log the secret, passphrases or ciphertext. A failed ``unseal``
    returns nothing; there is no partially decrypted secret to misuse.
"""
import base64
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .errors import PREFIX, DecryptError, DigestMismatchError, EncryptError, MetadataError
from .key_locator import PassphraseCallback, enter_passphrase, locate_private_key, locate_public_key

log = logging.getLogger(__name__)

SECRET_SIZE = 32  # AES-256 key

DigestFunction = Callable[[bytes], str]

_URLSAFE_B64_RE = re.compile(r"\A[A-Za-z0-9_-]*={0,2}\Z")
_FRACTION_RE = re.compile(r"\.(\d+)")


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def compute_digest(data: bytes) -> str:
    """SHA-256 of ``data`` as lowercase hex."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize().hex()


def _parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits
    value = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    return datetime.fromisoformat(value)


@dataclass
class EnvelopeRecord:
    timestamp: datetime
    digest: str
    ciphertext: str

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "digest": self.digest,
            "ciphertext": self.ciphertext,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EnvelopeRecord":
        if not isinstance(data, dict):
            raise MetadataError(f"{PREFIX}: envelope record must be an object")
        for name in ("timestamp", "digest", "ciphertext"):
            if not isinstance(data.get(name), str):
                raise MetadataError(f"{PREFIX}: envelope record field {name!r} is missing or not a string")
        try:
            timestamp = _parse_timestamp(data["timestamp"])
        except ValueError as e:
            raise MetadataError(f"{PREFIX}: invalid envelope timestamp -- {e}") from e
        return cls(timestamp=timestamp, digest=data["digest"], ciphertext=data["ciphertext"])


def seal(
    public_key: rsa.RSAPublicKey,
    *,
    compute_digest: DigestFunction = compute_digest,
    random_source: Callable[[int], bytes] = os.urandom,
) -> Tuple[EnvelopeRecord, bytes]:
    """Generate a fresh secret and encrypt it under ``public_key``.

    Returns ``(record, secret)``. Errors from ``random_source`` propagate
    unchanged; OAEP failures (e.g. a modulus too small for the secret) raise
    ``EncryptError``.
    """
    secret = random_source(SECRET_SIZE)
    if len(secret) != SECRET_SIZE:
        raise EncryptError(
            f"{PREFIX}: random source returned {len(secret)} bytes, need {SECRET_SIZE}"
        )
    try:
        encrypted = public_key.encrypt(secret, _oaep())
    except ValueError as e:
        raise EncryptError(f"{PREFIX}: encrypting secret key failed. {e}") from e

    record = EnvelopeRecord(
        timestamp=datetime.now(timezone.utc),
        digest=compute_digest(secret),
        ciphertext=base64.urlsafe_b64encode(encrypted).decode("ascii"),
    )
    return record, secret


def unseal(
    private_key: rsa.RSAPrivateKey,
    record: EnvelopeRecord,
    *,
    compute_digest: DigestFunction = compute_digest,
) -> bytes:
    """Decrypt the secret in ``record`` and verify it against ``record.digest``."""
    if not _URLSAFE_B64_RE.match(record.ciphertext):
        raise DecryptError(f"{PREFIX}: decoding ciphertext failed. illegal base64url data")
    try:
        ciphertext = base64.urlsafe_b64decode(record.ciphertext)
    except ValueError as e:
        raise DecryptError(f"{PREFIX}: decoding ciphertext failed. {e}") from e
    try:
        secret = private_key.decrypt(ciphertext, _oaep())
    except ValueError as e:
        raise DecryptError(f"{PREFIX}: decrypting secret key failed. {e}") from e

    actual = compute_digest(secret)
    if record.digest != actual:
        raise DigestMismatchError(record.digest, actual)
    return secret


class RsaEnvelope:
    """Owns one envelope operation over caller-supplied key bytes.

    With no ``record`` the key bytes must hold a public key and ``setup``
    seals a new secret; with a ``record`` they must hold the private key and
    ``setup`` unseals it. An instance performs exactly one ``setup``.
    """

    def __init__(
        self,
        key_data: bytes,
        record: Optional[EnvelopeRecord] = None,
        *,
        passphrase_cb: PassphraseCallback = enter_passphrase,
        compute_digest: DigestFunction = compute_digest,
    ):
        self.record = record
        self._key_data = key_data
        self._passphrase_cb = passphrase_cb
        self._compute_digest = compute_digest
        self._secret: Optional[bytes] = None
        self._done = False

    def __repr__(self) -> str:
        state = "unsealed" if self._secret is not None else "empty"
        return f"<RsaEnvelope {state} record={self.record!r}>"

    @property
    def secret(self) -> Optional[bytes]:
        return self._secret

    def setup(self) -> bytes:
        if self._done:
            raise RuntimeError("RsaEnvelope.setup() can only be called once")
        self._done = True
        if self.record is None:
            material = locate_public_key(self._key_data)
            self.record, secret = seal(material.key, compute_digest=self._compute_digest)
            log.debug("Sealed new secret with %s public key", material.encoding.value)
        else:
            material = locate_private_key(self._key_data, self._passphrase_cb)
            secret = unseal(material.key, self.record, compute_digest=self._compute_digest)
            log.debug("Unsealed secret with %s private key", material.encoding.value)
        self._secret = secret
        return secret
