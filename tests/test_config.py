"""
Tests for VaultConfig.

Tests cover:
- Default values and validation bounds
- Loading settings from environment variables
"""
from pathlib import Path

import pytest
from pydantic import ValidationError

from navigator_secrets.vault.config import VaultConfig, default_vault_path, get_vault_path
from navigator_secrets.vault.crypto import AES_CTR, AES_GCM, PBKDF2_ITERATIONS


_ENV_VARS = (
    "SECRETS_VAULT_PATH",
    "SECRETS_VAULT_CIPHER",
    "SECRETS_VAULT_KDF_ITERATIONS",
    "SECRETS_VAULT_VERIFY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestVaultConfig:
    """Tests for VaultConfig validation."""

    def test_defaults(self):
        config = VaultConfig()
        assert config.vault_path == default_vault_path()
        assert config.vault_path.parts[-2:] == (".secrets", "vault.json")
        assert config.cipher_backend == AES_CTR
        assert config.kdf_iterations == PBKDF2_ITERATIONS
        assert config.verify_passphrase is True

    def test_cipher_is_normalized(self):
        assert VaultConfig(cipher_backend="AES-256-GCM").cipher_backend == AES_GCM

    def test_rejects_unknown_cipher(self):
        with pytest.raises(ValidationError):
            VaultConfig(cipher_backend="chacha20")

    def test_rejects_low_iterations(self):
        with pytest.raises(ValidationError):
            VaultConfig(kdf_iterations=10_000)


class TestFromEnv:
    """Tests for VaultConfig.from_env."""

    def test_empty_env_uses_defaults(self):
        config = VaultConfig.from_env()
        assert config.model_dump() == VaultConfig().model_dump()

    def test_reads_all_variables(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SECRETS_VAULT_PATH", str(tmp_path / "v.json"))
        monkeypatch.setenv("SECRETS_VAULT_CIPHER", "aes-256-gcm")
        monkeypatch.setenv("SECRETS_VAULT_KDF_ITERATIONS", "200000")
        monkeypatch.setenv("SECRETS_VAULT_VERIFY", "off")
        config = VaultConfig.from_env()
        assert config.vault_path == tmp_path / "v.json"
        assert config.cipher_backend == AES_GCM
        assert config.kdf_iterations == 200_000
        assert config.verify_passphrase is False

    def test_path_expands_user(self, monkeypatch):
        monkeypatch.setenv("SECRETS_VAULT_PATH", "~/vault.json")
        assert get_vault_path() == Path("~/vault.json").expanduser()

    def test_invalid_bool(self, monkeypatch):
        monkeypatch.setenv("SECRETS_VAULT_VERIFY", "maybe")
        with pytest.raises(ValueError):
            VaultConfig.from_env()

    def test_invalid_iterations(self, monkeypatch):
        monkeypatch.setenv("SECRETS_VAULT_KDF_ITERATIONS", "1000")
        with pytest.raises(ValidationError):
            VaultConfig.from_env()
