"""
Vault Exceptions — Error conditions raised by the secrets vault.

Every exception derives from ``VaultError`` and from the builtin that a
generic caller would expect (``KeyError`` for a missing secret, ``OSError``
for storage failures, ...), so both styles of handling work.

Security Note:
    Exception messages carry secret ids and file paths only, never
    passphrases, keys, plaintext or ciphertext.
"""


class VaultError(Exception):
    """Base class for all vault errors."""


class VaultNotInitialized(VaultError, FileNotFoundError):
    """The backing vault file does not exist."""


class VaultLocked(VaultError, RuntimeError):
    """The operation requires an unlocked vault."""


class SecretNotFound(VaultError, KeyError):
    """No secret with the requested id."""

    def __init__(self, secret_id: str):
        super().__init__(secret_id)
        self.secret_id = secret_id

    def __str__(self) -> str:
        return f"Secret not found: {self.secret_id}"


class MalformedInput(VaultError, ValueError):
    """Caller or file supplied data that does not describe a valid vault."""


class VaultIOError(VaultError, OSError):
    """The backing vault file could not be read or written."""


class DecryptionError(VaultError, ValueError):
    """Ciphertext could not be turned back into the original plaintext."""


class InvalidPassphrase(DecryptionError):
    """The passphrase does not decrypt the secrets stored in the vault."""
