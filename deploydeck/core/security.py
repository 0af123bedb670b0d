"""Field-level encryption for the persisted API token (Fernet)."""

from cryptography.fernet import Fernet, InvalidToken

from deploydeck.core.errors import StorageError


def generate_key() -> str:
    """Generate a fresh Fernet key suitable for ``ENCRYPTION_KEY``."""
    return Fernet.generate_key().decode()


def _get_fernet(key: str) -> Fernet:
    if not key:
        raise StorageError("ENCRYPTION_KEY is not configured")
    try:
        return Fernet(key.encode())
    except ValueError as exc:
        raise StorageError("ENCRYPTION_KEY is not a valid Fernet key") from exc


def encrypt_value(plaintext: str, key: str) -> str:
    """Encrypt a string value. Returns base64 ciphertext."""
    return _get_fernet(key).encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str, key: str) -> str:
    """Decrypt a Fernet-encrypted value.

    A missing or malformed key, or a ciphertext produced under a different
    key, surfaces as ``StorageError`` so the credential store treats it like
    any other unreadable record.
    """
    try:
        return _get_fernet(key).decrypt(ciphertext.encode()).decode()
    except InvalidToken as exc:
        raise StorageError("Stored credential could not be decrypted") from exc
