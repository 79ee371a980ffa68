"""
Symmetric encryption helpers for stored OAuth tokens.

Uses Fernet (AES-128 in CBC mode with HMAC). The key comes from the
UNIFIED_INBOX_ENCRYPTION_KEY environment variable when set, otherwise from a
key file that is generated on first use.
"""
import os
from cryptography.fernet import Fernet, InvalidToken

from unified_inbox import config
from unified_inbox.utils.errors import DecryptionError

KEY_ENV_VAR = "UNIFIED_INBOX_ENCRYPTION_KEY"


def _get_or_create_key() -> bytes:
    """
    Get the encryption key from the environment or key file.

    A missing or corrupted key file is replaced by a freshly generated key.
    """
    env_key = os.environ.get(KEY_ENV_VAR)
    if env_key:
        return env_key.encode("utf-8")

    key_file = config.SECRET_KEY_FILE
    key_file.parent.mkdir(parents=True, exist_ok=True)

    if key_file.exists():
        key = key_file.read_bytes().strip()
        try:
            Fernet(key)
            return key
        except (ValueError, TypeError):
            pass

    key = Fernet.generate_key()
    key_file.write_bytes(key)
    try:
        os.chmod(key_file, 0o600)
    except OSError:
        # Not supported on every platform
        pass
    return key


def _get_cipher() -> Fernet:
    return Fernet(_get_or_create_key())


def encrypt_text(text: str) -> str:
    """
    Encrypt a text string.

    Returns:
        The Fernet token as a URL-safe string, ready for a TEXT column.

    Raises:
        ValueError: If text is empty.
    """
    if not text:
        raise ValueError("Cannot encrypt empty text")
    return _get_cipher().encrypt(text.encode("utf-8")).decode("ascii")


def decrypt_text(token: str) -> str:
    """
    Decrypt a string produced by encrypt_text.

    Raises:
        DecryptionError: If the data is corrupted or the key changed.
    """
    if not token:
        raise DecryptionError("Cannot decrypt empty data")
    try:
        return _get_cipher().decrypt(token.encode("ascii")).decode("utf-8")
    except InvalidToken as e:
        raise DecryptionError("Decryption failed: invalid or corrupted data") from e
    except (UnicodeError, ValueError) as e:
        raise DecryptionError(f"Decryption failed: {e}") from e
