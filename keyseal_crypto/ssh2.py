"""Parser for SSH2 (RFC 4716) public key files, as written by ``ssh-keygen -e``::

    ---- BEGIN SSH2 PUBLIC KEY ----
    Comment: "2048-bit RSA, converted by me@host from OpenSSH"
    AAAAB3NzaC1yc2EAAAADAQABAAABAQ...
    ---- END SSH2 PUBLIC KEY ----
"""
import base64
import binascii
import struct
from typing import Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from .errors import KeyFormatError

BEGIN_MARKER = "---- BEGIN SSH2 PUBLIC KEY ----"
END_MARKER = "---- END SSH2 PUBLIC KEY ----"


def _key_type(blob: bytes) -> bytes:
    if len(blob) < 4:
        raise KeyFormatError("ssh2 key blob is truncated")
    (length,) = struct.unpack(">I", blob[:4])
    if len(blob) < 4 + length:
        raise KeyFormatError("ssh2 key blob is truncated")
    return blob[4:4 + length]


def parse_ssh2_public_key(key_data: Union[str, bytes]):
    """Return the public key held in an SSH2 public key block.

    Header lines (``Comment:`` and any other ``Tag: value`` line, including
    backslash continuations) are skipped.
    """
    if isinstance(key_data, bytes):
        key_data = key_data.decode("utf-8", "replace")

    body = []
    in_key = False
    continued = False
    for line in key_data.split("\n"):
        line = line.strip()
        if line == BEGIN_MARKER:
            in_key = True
            continue
        if line == END_MARKER:
            break
        if not in_key:
            continue
        if continued or ":" in line:
            continued = line.endswith("\\")
            continue
        body.append(line)
    if not in_key:
        raise KeyFormatError("no SSH2 public key block found")

    try:
        blob = base64.b64decode("".join(body), validate=True)
    except binascii.Error as e:
        raise KeyFormatError(f"base64 decoding error: {e}") from e

    key_type = _key_type(blob)
    line = key_type + b" " + base64.b64encode(blob)
    try:
        return serialization.load_ssh_public_key(line)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyFormatError(f"invalid SSH2 public key: {e}") from e
