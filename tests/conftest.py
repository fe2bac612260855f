"""Shared fixtures for the secrets vault tests."""
import pytest

from navigator_secrets.vault import SecretsVault, VaultConfig


PASSPHRASE = "pw1"


@pytest.fixture
def vault_path(tmp_path):
    """Vault file inside a directory that does not exist yet."""
    return tmp_path / ".secrets" / "vault.json"


@pytest.fixture
def config(vault_path):
    return VaultConfig(vault_path=vault_path)


@pytest.fixture
def vault(config):
    """A vault with no backing file."""
    return SecretsVault(config=config)


@pytest.fixture
def unlocked_vault(vault):
    """A freshly initialized, unlocked vault."""
    vault.init(PASSPHRASE)
    yield vault
    vault.lock()
