"""Navigator Secrets.

Local encrypted vault for passwords, tokens, keys and certificates.
"""
from .version import (
    __title__,
    __description__,
    __version__,
    __author__,
    __author_email__,
    __license__,
)
from .vault import (
    SecretsVault,
    VaultConfig,
    generate_secret,
)

__all__ = ["SecretsVault", "VaultConfig", "generate_secret", "__version__"]
