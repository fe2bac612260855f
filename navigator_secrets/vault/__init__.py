"""Secrets Vault — Passphrase-protected secret storage in a local file.

Security Note (Threat Model):
    Secret values are encrypted one by one with AES-256-CTR under a key
    derived from the master passphrase (PBKDF2-HMAC-SHA256). Names, types,
    tags, notes and timestamps are stored in cleartext. CTR mode carries no
    authentication tag: tampering is detected only through the stored
    SHA-256 value hash, and a wrong passphrase is detected only when the
    vault holds at least one secret. Vaults created with the ``aes-256-gcm``
    cipher backend authenticate every value. Decrypted values and the key
    exist in process memory while the vault is unlocked; this is an
    accepted limitation.
"""

from .secrets_vault import SecretsVault, VaultState
from .config import VaultConfig
from .crypto import generate_secret
from .models import (
    RevealedSecret,
    SecretCreate,
    SecretMeta,
    SecretRecord,
    SecretUpdate,
    VaultDocument,
)
from .exceptions import (
    VaultError,
    VaultNotInitialized,
    VaultLocked,
    SecretNotFound,
    MalformedInput,
    VaultIOError,
    DecryptionError,
    InvalidPassphrase,
)

__all__ = [
    "SecretsVault",
    "VaultState",
    "VaultConfig",
    "generate_secret",
    "RevealedSecret",
    "SecretCreate",
    "SecretMeta",
    "SecretRecord",
    "SecretUpdate",
    "VaultDocument",
    "VaultError",
    "VaultNotInitialized",
    "VaultLocked",
    "SecretNotFound",
    "MalformedInput",
    "VaultIOError",
    "DecryptionError",
    "InvalidPassphrase",
]
