"""
Vault Configuration — Vault file location and validated settings.

Reads settings from environment variables:
    SECRETS_VAULT_PATH = <path to the vault JSON file>
    SECRETS_VAULT_CIPHER = aes-256-ctr | aes-256-gcm
    SECRETS_VAULT_KDF_ITERATIONS = <integer, minimum 100000>
    SECRETS_VAULT_VERIFY = true | false

Security Note:
    The passphrase is never part of the configuration and is never logged.
"""
import os
import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from .crypto import DEFAULT_CIPHER, PBKDF2_ITERATIONS, SUPPORTED_CIPHERS

logger = logging.getLogger("navigator.secrets")

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def default_vault_path() -> Path:
    """Return ``.secrets/vault.json`` under the current working directory."""
    return Path.cwd() / ".secrets" / "vault.json"


def get_vault_path() -> Path:
    """Read the vault file location from SECRETS_VAULT_PATH.

    Returns:
        Configured path, or :func:`default_vault_path` when unset.
    """
    raw = os.environ.get("SECRETS_VAULT_PATH")
    if not raw:
        return default_vault_path()
    return Path(raw).expanduser()


def _env_bool(name: str, default: bool) -> bool:
    """Parse a boolean environment variable.

    Raises:
        ValueError: If the value is not a recognised boolean spelling.
    """
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    vault_path: Path = Field(default_factory=default_vault_path)
    cipher_backend: str = Field(default=DEFAULT_CIPHER)
    kdf_iterations: int = Field(default=PBKDF2_ITERATIONS, ge=PBKDF2_ITERATIONS)
    verify_passphrase: bool = Field(default=True)

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in SUPPORTED_CIPHERS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        config = cls(
            vault_path=get_vault_path(),
            cipher_backend=os.environ.get("SECRETS_VAULT_CIPHER", DEFAULT_CIPHER),
            kdf_iterations=int(
                os.environ.get("SECRETS_VAULT_KDF_ITERATIONS", PBKDF2_ITERATIONS)
            ),
            verify_passphrase=_env_bool("SECRETS_VAULT_VERIFY", True),
        )
        logger.debug(
            "Vault config: path=%s cipher=%s iterations=%d",
            config.vault_path, config.cipher_backend, config.kdf_iterations,
        )
        return config
