"""Shared key fixtures.

Keys are generated once per test session; each fixture returns key objects,
and the helpers below render them in the encodings the locator understands.
"""
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

PASSPHRASE = b"correct horse battery staple"


def public_pem(key, fmt=serialization.PublicFormat.SubjectPublicKeyInfo) -> bytes:
    return key.public_key().public_bytes(serialization.Encoding.PEM, fmt)


def public_openssh(key, comment: bytes = b"alice@example.org") -> bytes:
    line = key.public_key().public_bytes(
        serialization.Encoding.OpenSSH, serialization.PublicFormat.OpenSSH
    )
    return line + b" " + comment + b"\n"


def public_ssh2(key, comment: str = "2048-bit RSA, converted by alice@example.org from OpenSSH") -> bytes:
    line = key.public_key().public_bytes(
        serialization.Encoding.OpenSSH, serialization.PublicFormat.OpenSSH
    )
    b64 = line.split()[1].decode("ascii")
    body = "\n".join(b64[i:i + 70] for i in range(0, len(b64), 70))
    return (
        "---- BEGIN SSH2 PUBLIC KEY ----\n"
        f'Comment: "{comment}"\n'
        f"{body}\n"
        "---- END SSH2 PUBLIC KEY ----\n"
    ).encode("ascii")


def private_pem(key, fmt, passphrase=None) -> bytes:
    if passphrase is None:
        encryption = serialization.NoEncryption()
    else:
        encryption = serialization.BestAvailableEncryption(passphrase)
    return key.private_bytes(serialization.Encoding.PEM, fmt, encryption)


class FakePassphrase:
    """Deterministic passphrase source that counts how often it is asked."""

    def __init__(self, passphrase: bytes = PASSPHRASE):
        self.passphrase = passphrase
        self.calls = 0

    def __call__(self) -> bytes:
        self.calls += 1
        return self.passphrase


def no_prompt() -> bytes:
    raise AssertionError("passphrase prompt was not expected")


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ed25519_key():
    return ed25519.Ed25519PrivateKey.generate()


@pytest.fixture
def passphrase():
    return FakePassphrase()
