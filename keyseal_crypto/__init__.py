"""
RSA envelope utilities.

High-level API:
- locate_public_key(data) -> KeyMaterial       (OpenSSH, SSH2, PKCS#1 / PKIX PEM)
- locate_private_key(data, passphrase_cb) -> KeyMaterial
- seal(public_key) -> (EnvelopeRecord, secret)
- unseal(private_key, record) -> secret
- encrypt_bytes(data, public_key_data) -> bytes
- decrypt_bytes(blob, private_key_data, passphrase_cb=...) -> bytes
- encrypt_file(input_path, output_path=None, public_key_path=...) -> output_path
- decrypt_file(input_path, output_path=None, private_key_path=..., passphrase_cb=...) -> output_path

Exceptions derive from EnvelopeError and are raised on errors instead of printing.
"""

from .envelope import (
    SECRET_SIZE,
    EnvelopeRecord,
    RsaEnvelope,
    compute_digest,
    seal,
    unseal,
)
from .errors import (
    DecryptError,
    DigestMismatchError,
    EncryptError,
    EnvelopeError,
    KeyFormatError,
    KeyTypeMismatchError,
    MetadataError,
    PassphraseMissingError,
)
from .file_crypto import (
    encrypt_file,
    decrypt_file,
    encrypt_bytes,
    decrypt_bytes,
    read_metadata,
)
from .key_locator import (
    KeyEncoding,
    KeyMaterial,
    enter_passphrase,
    key_algorithm,
    locate_private_key,
    locate_public_key,
    parse_raw_private_key,
)
from .pem_blocks import PemBlock, decode_pem, decode_pem_blocks
from .ssh2 import parse_ssh2_public_key

__all__ = [
    "SECRET_SIZE",
    "EnvelopeRecord",
    "RsaEnvelope",
    "compute_digest",
    "seal",
    "unseal",
    "DecryptError",
    "DigestMismatchError",
    "EncryptError",
    "EnvelopeError",
    "KeyFormatError",
    "KeyTypeMismatchError",
    "MetadataError",
    "PassphraseMissingError",
    "encrypt_file",
    "decrypt_file",
    "encrypt_bytes",
    "decrypt_bytes",
    "read_metadata",
    "KeyEncoding",
    "KeyMaterial",
    "enter_passphrase",
    "key_algorithm",
    "locate_private_key",
    "locate_public_key",
    "parse_raw_private_key",
    "PemBlock",
    "decode_pem",
    "decode_pem_blocks",
    "parse_ssh2_public_key",
]
