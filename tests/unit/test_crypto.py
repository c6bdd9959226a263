from __future__ import annotations

import os

import pytest
from pydantic import SecretStr

from quonitor.core.auth import ApiKeyCredentials, OAuthCredentials
from quonitor.core.crypto import (
    KEY_SIZE,
    CredentialCipher,
    FileKeySource,
    load_or_create_master_key,
)
from quonitor.core.errors import EncryptionError

pytestmark = pytest.mark.unit


class _MemorySource:
    def __init__(self, name: str, key: bytes | None = None, *, writable: bool = True) -> None:
        self.name = name
        self.key = key
        self.writable = writable
        self.load_calls = 0

    def load(self) -> bytes | None:
        self.load_calls += 1
        return self.key

    def store(self, key: bytes) -> bool:
        if not self.writable:
            return False
        self.key = key
        return True


def test_encrypt_credentials_round_trip_keeps_secret_values():
    cipher = CredentialCipher(os.urandom(KEY_SIZE))
    credentials = OAuthCredentials(access_token=SecretStr("ya29.token"), refresh_token=SecretStr("1//refresh"))

    restored = cipher.decrypt_credentials(cipher.encrypt_credentials(credentials))

    assert isinstance(restored, OAuthCredentials)
    assert restored.access_token.get_secret_value() == "ya29.token"
    assert restored.refresh_token is not None
    assert restored.refresh_token.get_secret_value() == "1//refresh"


def test_encrypt_uses_fresh_nonce_per_message():
    cipher = CredentialCipher(os.urandom(KEY_SIZE))
    first = cipher.encrypt("sk-same")
    second = cipher.encrypt("sk-same")
    assert first != second
    assert b"sk-same" not in first
    assert cipher.decrypt(first) == cipher.decrypt(second) == "sk-same"


def test_decrypt_rejects_tampered_ciphertext():
    cipher = CredentialCipher(os.urandom(KEY_SIZE))
    sealed = bytearray(cipher.encrypt("sk-test"))
    sealed[-1] ^= 0x01
    with pytest.raises(EncryptionError):
        cipher.decrypt(bytes(sealed))


def test_decrypt_rejects_foreign_key_and_short_input():
    sealed = CredentialCipher(os.urandom(KEY_SIZE)).encrypt("sk-test")
    other = CredentialCipher(os.urandom(KEY_SIZE))
    with pytest.raises(EncryptionError):
        other.decrypt(sealed)
    with pytest.raises(EncryptionError):
        other.decrypt(b"\x01short")


def test_cipher_rejects_wrong_key_length():
    with pytest.raises(EncryptionError):
        CredentialCipher(b"too-short")


def test_decrypt_credentials_rejects_unknown_payload():
    cipher = CredentialCipher(os.urandom(KEY_SIZE))
    with pytest.raises(EncryptionError):
        cipher.decrypt_credentials(cipher.encrypt('{"kind": "password", "value": "x"}'))


def test_master_key_prefers_first_source_with_a_key():
    keyring_source = _MemorySource("keyring", key=None)
    file_key = os.urandom(KEY_SIZE)
    file_source = _MemorySource("file", key=file_key)

    assert load_or_create_master_key([keyring_source, file_source]) == file_key
    assert keyring_source.load_calls == 1


def test_master_key_generated_once_and_stored_in_every_writable_source():
    keyring_source = _MemorySource("keyring", writable=False)
    file_source = _MemorySource("file")

    key = load_or_create_master_key([keyring_source, file_source])

    assert len(key) == KEY_SIZE
    assert file_source.key == key
    assert keyring_source.key is None
    assert load_or_create_master_key([keyring_source, file_source]) == key


def test_master_key_fails_when_nothing_can_store_it():
    with pytest.raises(EncryptionError):
        load_or_create_master_key([_MemorySource("keyring", writable=False)])


def test_file_key_source_persists_key(tmp_path):
    path = tmp_path / "nested" / "master.key"
    source = FileKeySource(path)
    assert source.load() is None

    key = os.urandom(KEY_SIZE)
    assert source.store(key) is True
    assert FileKeySource(path).load() == key


def test_file_key_source_rejects_corrupt_key(tmp_path):
    path = tmp_path / "master.key"
    path.write_text("not base64!", encoding="ascii")
    with pytest.raises(EncryptionError):
        FileKeySource(path).load()


def test_api_key_credentials_are_hidden_in_repr():
    credentials = ApiKeyCredentials(api_key=SecretStr("sk-visible"))
    assert "sk-visible" not in repr(credentials)
