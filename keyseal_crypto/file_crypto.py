import io
import json
import logging
import os
from typing import Optional, Tuple, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .envelope import EnvelopeRecord, RsaEnvelope
from .errors import PREFIX, DecryptError, MetadataError
from .key_locator import PassphraseCallback, enter_passphrase

NONCE_SIZE = 12
TAG_SIZE = 16
HEADER_LEN_SIZE = 4
MAX_HEADER_SIZE = 64 * 1024
KEY_KIND = "rsa"

log = logging.getLogger(__name__)


# --- Header helpers ---

def _determine_chunk_size(file_size: int) -> int:
    if file_size <= 10 * 1024 * 1024:
        return 64 * 1024
    if file_size <= 100 * 1024 * 1024:
        return 256 * 1024
    return 1024 * 1024


def _read_key_file(path: str) -> bytes:
    with open(os.path.expanduser(path), 'rb') as key_file:
        return key_file.read()


def _encode_header(record: EnvelopeRecord) -> bytes:
    header = json.dumps({"key": KEY_KIND, KEY_KIND: record.to_dict()}, sort_keys=True).encode('utf-8')
    return len(header).to_bytes(HEADER_LEN_SIZE, 'big') + header


def _decode_header(header: bytes) -> EnvelopeRecord:
    try:
        meta = json.loads(header.decode('utf-8'))
    except ValueError as e:
        raise MetadataError(f"{PREFIX}: header is not valid JSON -- {e}") from e
    if not isinstance(meta, dict) or meta.get("key") != KEY_KIND:
        raise MetadataError(f"{PREFIX}: header does not describe an RSA envelope")
    return EnvelopeRecord.from_dict(meta.get(KEY_KIND))


def _read_header(read) -> Tuple[bytes, EnvelopeRecord]:
    """Read the length-prefixed header using ``read(n)``; return (raw header, record)."""
    len_bytes = read(HEADER_LEN_SIZE)
    if len(len_bytes) != HEADER_LEN_SIZE:
        raise MetadataError(f"{PREFIX}: encrypted data is corrupted or incomplete")
    header_len = int.from_bytes(len_bytes, 'big')
    if header_len > MAX_HEADER_SIZE:
        raise MetadataError(f"{PREFIX}: header length {header_len} exceeds {MAX_HEADER_SIZE}")
    header = read(header_len)
    if len(header) != header_len:
        raise MetadataError(f"{PREFIX}: encrypted data is corrupted or incomplete")
    return len_bytes + header, _decode_header(header)


def read_metadata(source: Union[bytes, str]) -> EnvelopeRecord:
    """Return the envelope record stored in encrypted bytes or an encrypted file."""
    if isinstance(source, (bytes, bytearray)):
        return _read_header(io.BytesIO(source).read)[1]
    with open(source, 'rb') as f_in:
        return _read_header(f_in.read)[1]


def _cipher(key: bytes, nonce: bytes, tag: Optional[bytes] = None) -> Cipher:
    return Cipher(algorithms.AES(key), modes.GCM(nonce, tag), backend=default_backend())


# --- Bytes API ---

def encrypt_bytes(data: bytes, public_key_data: bytes) -> bytes:
    """Encrypt raw bytes with a fresh AES-256-GCM key sealed under an RSA public key.

    Output format: [4-byte header_len][header JSON][12-byte nonce][ciphertext][16-byte tag]
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("data must be bytes")

    envelope = RsaEnvelope(public_key_data)
    aes_key = envelope.setup()
    header = _encode_header(envelope.record)
    nonce = os.urandom(NONCE_SIZE)

    encryptor = _cipher(aes_key, nonce).encryptor()
    encryptor.authenticate_additional_data(header)
    ciphertext = encryptor.update(data) + encryptor.finalize()

    out = bytearray()
    out += header
    out += nonce
    out += ciphertext
    out += encryptor.tag
    return bytes(out)


def decrypt_bytes(blob: bytes, private_key_data: bytes, *, passphrase_cb: PassphraseCallback = enter_passphrase) -> bytes:
    if not isinstance(blob, (bytes, bytearray)):
        raise TypeError("blob must be bytes")

    stream = io.BytesIO(blob)
    header, record = _read_header(stream.read)
    if len(blob) < len(header) + NONCE_SIZE + TAG_SIZE:
        raise MetadataError(f"{PREFIX}: encrypted data is corrupted or incomplete")
    nonce = stream.read(NONCE_SIZE)
    ciphertext = bytes(blob[len(header) + NONCE_SIZE:-TAG_SIZE])
    tag = bytes(blob[-TAG_SIZE:])

    aes_key = RsaEnvelope(private_key_data, record, passphrase_cb=passphrase_cb).setup()
    decryptor = _cipher(aes_key, nonce, tag).decryptor()
    decryptor.authenticate_additional_data(header)
    plaintext = decryptor.update(ciphertext)
    try:
        decryptor.finalize()
    except InvalidTag as e:
        raise DecryptError(f"{PREFIX}: incorrect key or corrupted data") from e
    return plaintext


# --- File API ---

def encrypt_file(input_path: str, output_path: Optional[str] = None, *, public_key_path: str) -> str:
    if output_path is None:
        output_path = f"{input_path}.enc"
    if os.path.exists(output_path):
        raise FileExistsError(f"Output file '{output_path}' already exists")

    file_size = os.path.getsize(input_path)
    chunk_size = _determine_chunk_size(file_size)

    envelope = RsaEnvelope(_read_key_file(public_key_path))
    aes_key = envelope.setup()
    header = _encode_header(envelope.record)
    nonce = os.urandom(NONCE_SIZE)
    encryptor = _cipher(aes_key, nonce).encryptor()
    encryptor.authenticate_additional_data(header)

    tmp_path = f"{output_path}.tmp"
    try:
        with open(input_path, 'rb') as f_in, open(tmp_path, 'wb') as f_out:
            f_out.write(header)
            f_out.write(nonce)

            while True:
                chunk = f_in.read(chunk_size)
                if not chunk:
                    break
                f_out.write(encryptor.update(chunk))

            f_out.write(encryptor.finalize())
            f_out.write(encryptor.tag)

        os.replace(tmp_path, output_path)
        log.info("Encrypted '%s' to '%s'", input_path, output_path)
        return output_path
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def decrypt_file(input_path: str, output_path: Optional[str] = None, *, private_key_path: str, passphrase_cb: PassphraseCallback = enter_passphrase) -> str:
    file_size = os.path.getsize(input_path)
    chunk_size = _determine_chunk_size(file_size)

    if output_path is None:
        output_path = input_path[:-4] if input_path.endswith('.enc') else f"{input_path}.dec"
    if os.path.exists(output_path):
        raise FileExistsError(f"Output file '{output_path}' already exists")

    tmp_path = f"{output_path}.tmp"
    try:
        with open(input_path, 'rb') as f_in:
            header, record = _read_header(f_in.read)
            data_size = file_size - len(header) - NONCE_SIZE - TAG_SIZE
            if data_size < 0:
                raise MetadataError(f"{PREFIX}: encrypted file is corrupted or incomplete")
            nonce = f_in.read(NONCE_SIZE)

            aes_key = RsaEnvelope(_read_key_file(private_key_path), record, passphrase_cb=passphrase_cb).setup()

            with open(tmp_path, 'wb') as f_out:
                f_in.seek(file_size - TAG_SIZE)
                tag = f_in.read(TAG_SIZE)
                f_in.seek(len(header) + NONCE_SIZE)

                decryptor = _cipher(aes_key, nonce, tag).decryptor()
                decryptor.authenticate_additional_data(header)

                bytes_read = 0
                while bytes_read < data_size:
                    chunk = f_in.read(min(chunk_size, data_size - bytes_read))
                    if not chunk:
                        break
                    f_out.write(decryptor.update(chunk))
                    bytes_read += len(chunk)

                try:
                    decryptor.finalize()
                except InvalidTag as e:
                    raise DecryptError(f"{PREFIX}: incorrect key or corrupted file") from e

        os.replace(tmp_path, output_path)
        log.info("Decrypted '%s' to '%s'", input_path, output_path)
        return output_path
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
