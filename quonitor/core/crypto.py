from __future__ import annotations

import base64
import binascii
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Protocol

import keyring
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from keyring.errors import KeyringError

from quonitor.core.auth import ApiKeyCredentials, OAuthCredentials, dump_credentials, load_credentials
from quonitor.core.config.settings import get_settings
from quonitor.core.errors import EncryptionError

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
_FORMAT_VERSION = b"\x01"
_HEADER_SIZE = len(_FORMAT_VERSION) + NONCE_SIZE


class KeySource(Protocol):
    name: str

    def load(self) -> bytes | None: ...

    def store(self, key: bytes) -> bool: ...


def _encode_key(key: bytes) -> str:
    return base64.b64encode(key).decode("ascii")


def _decode_key(raw: str, origin: str) -> bytes:
    try:
        key = base64.b64decode(raw.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise EncryptionError(f"Failed to decode master key from {origin}") from exc
    if len(key) != KEY_SIZE:
        raise EncryptionError(f"Master key from {origin} has invalid length {len(key)}")
    return key


class KeyringKeySource:
    name = "keyring"

    def __init__(self, service: str, username: str) -> None:
        self._service = service
        self._username = username

    def load(self) -> bytes | None:
        try:
            raw = keyring.get_password(self._service, self._username)
        except KeyringError as exc:
            logger.warning("OS keyring unavailable service=%s error=%s", self._service, exc)
            return None
        if raw is None:
            return None
        return _decode_key(raw, self.name)

    def store(self, key: bytes) -> bool:
        try:
            keyring.set_password(self._service, self._username, _encode_key(key))
        except KeyringError as exc:
            logger.warning("Failed to store master key in OS keyring service=%s error=%s", self._service, exc)
            return False
        return True


class FileKeySource:
    name = "file"

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> bytes | None:
        if not self._path.exists():
            return None
        try:
            raw = self._path.read_text(encoding="ascii")
        except (OSError, UnicodeDecodeError) as exc:
            raise EncryptionError(f"Failed to read master key file {self._path}") from exc
        return _decode_key(raw, f"{self.name}:{self._path}")

    def store(self, key: bytes) -> bool:
        # The key must remain stable to decrypt previously stored credentials. If the database is
        # moved to another machine, move this file alongside it.
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(_encode_key(key), encoding="ascii")
            self._path.chmod(0o600)
        except OSError as exc:
            logger.warning("Failed to write master key file path=%s error=%s", self._path, exc)
            return False
        return True


def default_key_sources() -> list[KeySource]:
    settings = get_settings()
    sources: list[KeySource] = []
    if settings.keyring_enabled:
        sources.append(KeyringKeySource(settings.keyring_service, settings.keyring_username))
    sources.append(FileKeySource(settings.encryption_key_file))
    return sources


def load_or_create_master_key(sources: list[KeySource] | None = None) -> bytes:
    resolved = sources if sources is not None else default_key_sources()
    for source in resolved:
        key = source.load()
        if key is not None:
            logger.info("Loaded master key source=%s", source.name)
            return key

    key = AESGCM.generate_key(bit_length=KEY_SIZE * 8)
    stored_in = [source.name for source in resolved if source.store(key)]
    if not stored_in:
        raise EncryptionError("Failed to persist a new master key to any key source")
    logger.info("Generated new master key stored_in=%s", ",".join(stored_in))
    return key


class CredentialCipher:
    """AES-256-GCM with a random nonce per message.

    Layout: version byte, 12-byte nonce, ciphertext with the 16-byte tag appended.
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise EncryptionError(f"Master key must be {KEY_SIZE} bytes")
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: str) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        try:
            sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        except (ValueError, OverflowError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return _FORMAT_VERSION + nonce + sealed

    def decrypt(self, ciphertext: bytes) -> str:
        if len(ciphertext) <= _HEADER_SIZE or ciphertext[:1] != _FORMAT_VERSION:
            raise EncryptionError("Decryption failed: malformed ciphertext")
        nonce = ciphertext[1:_HEADER_SIZE]
        try:
            plaintext = self._aead.decrypt(nonce, ciphertext[_HEADER_SIZE:], None)
        except InvalidTag as exc:
            raise EncryptionError("Decryption failed: authentication tag mismatch") from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise EncryptionError("Decryption failed: invalid UTF-8") from exc

    def encrypt_credentials(self, credentials: ApiKeyCredentials | OAuthCredentials) -> bytes:
        return self.encrypt(dump_credentials(credentials))

    def decrypt_credentials(self, ciphertext: bytes) -> ApiKeyCredentials | OAuthCredentials:
        raw = self.decrypt(ciphertext)
        try:
            return load_credentials(raw)
        except ValueError as exc:
            raise EncryptionError(str(exc)) from exc


@lru_cache(maxsize=1)
def get_cipher() -> CredentialCipher:
    return CredentialCipher(load_or_create_master_key())
