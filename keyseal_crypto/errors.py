"""Exceptions raised by keyseal_crypto.

Every error carries the ``rsa_envelope:`` prefix in its message and wraps the
underlying library error as ``__cause__``.
"""

PREFIX = "rsa_envelope"


class EnvelopeError(ValueError):
    """Base class for all keyseal_crypto errors."""


class KeyFormatError(EnvelopeError):
    """No supported key encoding could be found in the supplied bytes."""


class PassphraseMissingError(KeyFormatError):
    """The private key is encrypted and no passphrase was supplied."""


class KeyTypeMismatchError(EnvelopeError):
    """A key was parsed but it is not an RSA key."""

    def __init__(self, message: str, algorithm: str):
        super().__init__(message)
        self.algorithm = algorithm


class EncryptError(EnvelopeError):
    pass


class DecryptError(EnvelopeError):
    pass


class DigestMismatchError(DecryptError):
    """The recovered secret does not match the digest stored in the envelope."""

    def __init__(self, expected: str, actual: str):
        super().__init__(
            f"{PREFIX}: digest mismatch. expect {expected!r}, actual {actual!r}"
        )
        self.expected = expected
        self.actual = actual


class MetadataError(EnvelopeError):
    """Envelope record or file header is malformed."""
