"""Encryption of TOTP secrets at rest."""

import logging
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

from restaurant_security.exceptions import StoreFailureError

logger = logging.getLogger(__name__)


class SecretCipher(Protocol):
    def encrypt(self, plaintext: str) -> str: ...

    def decrypt(self, ciphertext: str) -> str: ...


class PlaintextSecretCipher:
    """Stores secrets as-is. Used only when no encryption key is configured."""

    def encrypt(self, plaintext: str) -> str:
        return plaintext

    def decrypt(self, ciphertext: str) -> str:
        return ciphertext


class FernetSecretCipher:
    """Symmetric encryption with a Fernet key from the key-management layer."""

    def __init__(self, key: str | bytes):
        self.fernet = Fernet(key)

    def encrypt(self, plaintext: str) -> str:
        return self.fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self.fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except InvalidToken as e:
            raise StoreFailureError("Stored 2FA secret could not be decrypted", operation="decrypt_secret") from e


def build_secret_cipher(encryption_key: str) -> SecretCipher:
    if not encryption_key:
        logger.warning("TOTP_ENCRYPTION_KEY is not set; 2FA secrets are stored unencrypted")
        return PlaintextSecretCipher()
    return FernetSecretCipher(encryption_key)
