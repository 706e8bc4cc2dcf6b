"""Tests for the keyseal command-line tool."""
import json

import pytest
from cryptography.hazmat.primitives import serialization

import keyseal
from conftest import private_pem, public_ssh2


@pytest.fixture
def workspace(tmp_path, rsa_key):
    public_path = tmp_path / "key.ssh2"
    private_path = tmp_path / "key.pem"
    public_path.write_bytes(public_ssh2(rsa_key))
    private_path.write_bytes(private_pem(rsa_key, serialization.PrivateFormat.TraditionalOpenSSL))
    source = tmp_path / "notes.txt"
    source.write_bytes(b"meeting at noon\n")
    return tmp_path, str(public_path), str(private_path), source


def test_encrypt_decrypt(workspace, capsys):
    tmp_path, public_path, private_path, source = workspace
    assert keyseal.main(["-e", str(source), "-i", public_path]) == 0
    assert "successfully encrypted" in capsys.readouterr().out

    output = tmp_path / "notes.out"
    assert keyseal.main(["-d", f"{source}.enc", "-i", private_path, "-o", str(output)]) == 0
    assert output.read_bytes() == b"meeting at noon\n"


def test_metadata(workspace, capsys):
    _, public_path, _, source = workspace
    keyseal.main(["-e", str(source), "-i", public_path])
    capsys.readouterr()

    assert keyseal.main(["--metadata", f"{source}.enc"]) == 0
    record = json.loads(capsys.readouterr().out)
    assert set(record) == {"timestamp", "digest", "ciphertext"}


def test_library_error_exits_non_zero(workspace, capsys):
    tmp_path, _, _, source = workspace
    bogus = tmp_path / "bogus.pub"
    bogus.write_bytes(b"not a key")
    assert keyseal.main(["-e", str(source), "-i", str(bogus)]) == 1
    assert "pem file decoding failed" in capsys.readouterr().err


def test_missing_file_argument():
    with pytest.raises(SystemExit) as exc_info:
        keyseal.main(["-d", "-i", "key.pem"])
    assert exc_info.value.code == 2


def test_decrypt_requires_keyfile(workspace):
    _, _, _, source = workspace
    with pytest.raises(SystemExit):
        keyseal.main(["-d", str(source)])
