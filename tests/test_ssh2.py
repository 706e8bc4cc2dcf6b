"""Tests for the SSH2 (RFC 4716) public key parser."""
import pytest
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa

from keyseal_crypto.errors import KeyFormatError
from keyseal_crypto.ssh2 import parse_ssh2_public_key
from conftest import public_ssh2


class TestParseSsh2PublicKey:

    def test_rsa_key_with_comment(self, rsa_key):
        key = parse_ssh2_public_key(public_ssh2(rsa_key))
        assert isinstance(key, rsa.RSAPublicKey)
        assert key.public_numbers() == rsa_key.public_key().public_numbers()

    def test_accepts_text(self, rsa_key):
        key = parse_ssh2_public_key(public_ssh2(rsa_key).decode("ascii"))
        assert key.public_numbers() == rsa_key.public_key().public_numbers()

    def test_crlf_line_endings(self, rsa_key):
        data = public_ssh2(rsa_key).replace(b"\n", b"\r\n")
        key = parse_ssh2_public_key(data)
        assert key.public_numbers() == rsa_key.public_key().public_numbers()

    def test_continued_header_lines_are_skipped(self, rsa_key):
        data = public_ssh2(rsa_key).replace(
            b"Comment:",
            b"x-Tool: keyseal\nSubject: a rather long subject that \\\ncontinues here\nComment:",
        )
        key = parse_ssh2_public_key(data)
        assert key.public_numbers() == rsa_key.public_key().public_numbers()

    def test_non_rsa_key(self, ed25519_key):
        key = parse_ssh2_public_key(public_ssh2(ed25519_key))
        assert isinstance(key, ed25519.Ed25519PublicKey)

    def test_missing_block(self):
        with pytest.raises(KeyFormatError, match="no SSH2 public key block"):
            parse_ssh2_public_key(b"ssh-rsa AAAA user@host\n")

    def test_bad_base64(self):
        data = b"---- BEGIN SSH2 PUBLIC KEY ----\n!!!!\n---- END SSH2 PUBLIC KEY ----\n"
        with pytest.raises(KeyFormatError, match="base64 decoding error"):
            parse_ssh2_public_key(data)

    def test_truncated_blob(self):
        data = b"---- BEGIN SSH2 PUBLIC KEY ----\nAAAAB3Nz\n---- END SSH2 PUBLIC KEY ----\n"
        with pytest.raises(KeyFormatError):
            parse_ssh2_public_key(data)
