"""
SecretsVault — Passphrase-protected secret storage backed by a single file.

Provides the public API for the Secrets Vault:
- ``init(passphrase)`` / ``unlock(passphrase)`` / ``lock()`` — lifecycle
- ``add_secret`` / ``get_secret`` / ``update_secret`` / ``delete_secret``
- ``get_secret_meta`` / ``list_secrets`` / ``search_secrets`` /
  ``get_secrets_by_type`` / ``get_expired_secrets`` — metadata-only views
- ``export_vault()`` / ``import_vault(blob)`` — whole-document transfer

Security Note:
    Never log passphrases, keys, plaintext or ciphertext values. Only log
    secret ids, counts and operations. The master key lives in a bytearray
    owned by the vault instance and is zeroed on ``lock()``.
"""
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union
from collections.abc import Mapping

from pydantic import BaseModel, ValidationError

from .config import VaultConfig
from .crypto import decrypt, derive_key, encrypt, generate_id, hash_value
from .exceptions import (
    DecryptionError,
    InvalidPassphrase,
    MalformedInput,
    SecretNotFound,
    VaultLocked,
    VaultNotInitialized,
)
from .models import (
    RevealedSecret,
    SecretCreate,
    SecretMeta,
    SecretRecord,
    SecretUpdate,
    VaultDocument,
    utcnow,
)
from .storage import VaultFile, dump_document, parse_document

logger = logging.getLogger("navigator.secrets")


class VaultState(str, Enum):
    """Lifecycle state of a vault."""

    UNINITIALIZED = "uninitialized"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


def _coerce(model: type[BaseModel], data: Any) -> Any:
    """Validate caller input into ``model``, mapping failures to MalformedInput."""
    if isinstance(data, model):
        return data
    if not isinstance(data, Mapping):
        raise MalformedInput(
            f"{model.__name__} expects a mapping, got {type(data).__name__}"
        )
    try:
        return model.model_validate(dict(data))
    except ValidationError as err:
        raise MalformedInput(f"Invalid {model.__name__}: {err}") from err


class SecretsVault:
    """Encrypted vault of secret records stored in one JSON file.

    The instance is the session: it holds the loaded document and, only
    while unlocked, the master key. Each secret value is encrypted on its
    own with a fresh IV; names, types, tags and timestamps stay in
    cleartext so metadata queries never need to decrypt.

    Every mutating operation works on a copy of the document, writes the
    whole copy to disk, and only then adopts it, so a failed write leaves
    both the file and the in-memory state unchanged.
    """

    def __init__(
        self,
        path: Union[str, Path, None] = None,
        config: Optional[VaultConfig] = None,
    ):
        self._config = config or VaultConfig.from_env()
        if path is not None:
            self._config = self._config.model_copy(
                update={"vault_path": Path(path).expanduser()}
            )
        self._file = VaultFile(self._config.vault_path)
        self._document: Optional[VaultDocument] = None
        self._key: Optional[bytearray] = None

    def __repr__(self) -> str:
        return f"<SecretsVault [{self.state.value}] path={self.path}>"

    def __enter__(self) -> "SecretsVault":
        return self

    def __exit__(self, *exc_info) -> None:
        self.lock()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._file.path

    @property
    def config(self) -> VaultConfig:
        return self._config

    @property
    def state(self) -> VaultState:
        if self._key is not None:
            return VaultState.UNLOCKED
        if self._file.exists():
            return VaultState.LOCKED
        return VaultState.UNINITIALIZED

    def exists(self) -> bool:
        """True when the backing vault file is present."""
        return self._file.exists()

    def is_unlocked(self) -> bool:
        """True while the master key is held."""
        return self._key is not None

    def _ensure_unlocked(self) -> VaultDocument:
        """Return the loaded document or raise the matching lifecycle error."""
        if self._key is None or self._document is None:
            if not self._file.exists():
                raise VaultNotInitialized(
                    f"Vault does not exist at {self.path}. Initialize it first."
                )
            raise VaultLocked("Vault is locked. Unlock it first.")
        return self._document

    @property
    def _cipher(self) -> str:
        return self._document.metadata.cipher

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self, passphrase: str) -> None:
        """Create a new empty vault and leave it unlocked.

        An existing vault file at the same path is overwritten.

        Args:
            passphrase: Master passphrase for the new vault.

        Raises:
            VaultIOError: If the vault directory or file cannot be written.
        """
        key, salt = derive_key(passphrase, iterations=self._config.kdf_iterations)
        document = VaultDocument.new(
            salt=salt,
            cipher=self._config.cipher_backend,
            iterations=self._config.kdf_iterations,
        )
        self._file.save(document)
        self.lock()
        self._document = document
        self._key = bytearray(key)
        logger.info(
            "Vault initialized at %s (cipher=%s)", self.path, document.metadata.cipher
        )

    def unlock(self, passphrase: str) -> None:
        """Load the vault and derive the master key from its stored salt.

        Args:
            passphrase: Master passphrase.

        Raises:
            VaultNotInitialized: If no vault file exists.
            VaultIOError: If the vault file cannot be read.
            MalformedInput: If the vault file is not a valid vault document.
            InvalidPassphrase: If passphrase verification is enabled and the
                derived key does not decrypt the stored secrets.
        """
        if not self._file.exists():
            raise VaultNotInitialized(
                f"Vault does not exist at {self.path}. Initialize it first."
            )
        document = self._file.load()
        salt, iterations, cipher = document.metadata.kdf_params()
        key = bytearray(derive_key(passphrase, salt, iterations)[0])
        if self._config.verify_passphrase and not self._key_opens(document, key):
            _wipe(key)
            logger.warning("Vault unlock rejected for %s", self.path)
            raise InvalidPassphrase("Passphrase does not open this vault")
        self.lock()
        self._document = document
        self._key = key
        logger.info(
            "Vault unlocked at %s: %d secret(s)", self.path, len(document.secrets)
        )

    def lock(self) -> None:
        """Zero and discard the master key and the loaded document."""
        was_unlocked = self._key is not None
        if self._key is not None:
            _wipe(self._key)
        self._key = None
        self._document = None
        if was_unlocked:
            logger.info("Vault locked at %s", self.path)

    @staticmethod
    def _key_opens(document: VaultDocument, key: bytearray) -> bool:
        """Trial-decrypt the first secret and compare it with its hash.

        An empty vault has nothing to check against and always passes.
        """
        if not document.secrets:
            return True
        record = document.secrets[0]
        try:
            plaintext = decrypt(record.value, key, document.metadata.cipher)
        except DecryptionError:
            return False
        return hash_value(plaintext) == record.value_hash

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _find(self, document: VaultDocument, secret_id: str) -> SecretRecord:
        record = document.find(secret_id)
        if record is None:
            raise SecretNotFound(secret_id)
        return record

    def _commit(self, document: VaultDocument) -> None:
        """Bump the vault timestamp, write the whole document, then adopt it."""
        document.touch()
        self._file.save(document)
        self._document = document

    def _new_id(self, document: VaultDocument) -> str:
        while True:
            secret_id = generate_id()
            if secret_id and document.find(secret_id) is None:
                return secret_id
            logger.debug("Regenerating colliding secret id")

    def _reveal(self, record: SecretRecord) -> str:
        plaintext = decrypt(record.value, self._key, self._cipher)
        if hash_value(plaintext) != record.value_hash:
            raise DecryptionError(
                f"Secret {record.id} does not match its stored hash"
            )
        return plaintext

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def add_secret(
        self, fields: Union[SecretCreate, Mapping[str, Any]]
    ) -> RevealedSecret:
        """Encrypt and persist a new secret.

        Args:
            fields: ``name`` and ``value`` are required; ``type`` defaults to
                ``generic``, ``tags``/``metadata`` to empty, ``notes`` to ``""``
                and ``expiresAt`` to never.

        Returns:
            The created secret including its plaintext value. This is the
            only call that hands back the value of a newly created secret.

        Raises:
            VaultLocked: If the vault is locked.
            MalformedInput: If fields are missing or of the wrong type.
        """
        current = self._ensure_unlocked()
        data: SecretCreate = _coerce(SecretCreate, fields)
        document = current.model_copy(deep=True)
        now = utcnow()
        record = SecretRecord(
            id=self._new_id(document),
            name=data.name,
            type=data.type,
            value=encrypt(data.value, self._key, self._cipher),
            value_hash=hash_value(data.value),
            created_at=now,
            updated_at=now,
            expires_at=data.expires_at,
            metadata=dict(data.metadata),
            tags=list(data.tags),
            notes=data.notes,
        )
        document.secrets.append(record)
        self._commit(document)
        logger.debug("Vault add: id=%s type=%s", record.id, record.type)
        return RevealedSecret.from_record(record, data.value)

    def get_secret(self, secret_id: str) -> RevealedSecret:
        """Decrypt and return a secret.

        Raises:
            VaultLocked: If the vault is locked.
            SecretNotFound: If no secret has this id.
            DecryptionError: If the value does not decrypt to its stored hash.
        """
        document = self._ensure_unlocked()
        record = self._find(document, secret_id)
        return RevealedSecret.from_record(record, self._reveal(record))

    def get_secret_meta(self, secret_id: str) -> SecretMeta:
        """Return a secret without its value."""
        document = self._ensure_unlocked()
        return self._find(document, secret_id).meta()

    def update_secret(
        self,
        secret_id: str,
        updates: Union[SecretUpdate, Mapping[str, Any]],
    ) -> SecretMeta:
        """Apply the supplied fields to a secret and persist it.

        ``value`` is re-encrypted and re-hashed, ``metadata`` is merged into
        the existing mapping, ``tags`` replace the existing list and
        ``expiresAt: None`` clears the expiry.

        Raises:
            VaultLocked: If the vault is locked.
            SecretNotFound: If no secret has this id.
            MalformedInput: If updates are of the wrong type.
        """
        current = self._ensure_unlocked()
        changes = _coerce(SecretUpdate, updates).changes()
        self._find(current, secret_id)
        document = current.model_copy(deep=True)
        record = self._find(document, secret_id)
        for field, value in changes.items():
            if field == "value":
                record.value = encrypt(value, self._key, self._cipher)
                record.value_hash = hash_value(value)
            elif field == "metadata":
                record.metadata = {**record.metadata, **value}
            elif field == "tags":
                record.tags = list(value)
            else:
                setattr(record, field, value)
        record.updated_at = utcnow()
        self._commit(document)
        logger.debug(
            "Vault update: id=%s fields=%s", secret_id, sorted(changes)
        )
        return record.meta()

    def delete_secret(self, secret_id: str) -> None:
        """Remove a secret and persist the vault.

        Raises:
            VaultLocked: If the vault is locked.
            SecretNotFound: If no secret has this id.
        """
        current = self._ensure_unlocked()
        self._find(current, secret_id)
        document = current.model_copy(deep=True)
        document.secrets = [r for r in document.secrets if r.id != secret_id]
        self._commit(document)
        logger.debug("Vault delete: id=%s", secret_id)

    # ------------------------------------------------------------------
    # Queries (metadata only, never decrypt)
    # ------------------------------------------------------------------

    def list_secrets(self) -> list[SecretMeta]:
        """All secrets in insertion order, without values."""
        document = self._ensure_unlocked()
        return [record.meta() for record in document.secrets]

    def search_secrets(self, query: str) -> list[SecretMeta]:
        """Case-insensitive substring search on name, type and tags."""
        document = self._ensure_unlocked()
        return [
            record.meta() for record in document.secrets
            if record.matches(query)
        ]

    def get_secrets_by_type(self, secret_type: str) -> list[SecretMeta]:
        """Secrets whose type equals ``secret_type`` exactly."""
        document = self._ensure_unlocked()
        return [
            record.meta() for record in document.secrets
            if record.type == secret_type
        ]

    def get_expired_secrets(self) -> list[SecretMeta]:
        """Secrets whose expiry is set and not later than now."""
        document = self._ensure_unlocked()
        now = utcnow()
        return [
            record.meta() for record in document.secrets
            if record.is_expired(now)
        ]

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_vault(self) -> str:
        """Serialize the whole vault (ciphertexts, hashes, salt) as JSON."""
        document = self._ensure_unlocked()
        return dump_document(document).decode("utf-8")

    def import_vault(
        self, blob: Union[str, bytes, Mapping[str, Any]]
    ) -> int:
        """Replace the vault with an exported document.

        The blob is validated before anything is replaced. When it was
        exported from a vault with a different salt, iteration count or
        cipher, the current key cannot open it, so the vault is locked
        after the import and must be unlocked with that vault's passphrase.

        Args:
            blob: JSON text/bytes from :meth:`export_vault`, or its parsed dict.

        Returns:
            Number of imported secrets.

        Raises:
            VaultLocked: If the vault is locked.
            MalformedInput: If the blob is not a valid vault document.
        """
        current = self._ensure_unlocked()
        if isinstance(blob, Mapping):
            document = _coerce(VaultDocument, blob)
        else:
            document = parse_document(blob)
        same_key = document.metadata.kdf_params() == current.metadata.kdf_params()
        self._commit(document)
        count = len(document.secrets)
        logger.info("Vault import: %d secret(s) into %s", count, self.path)
        if not same_key:
            logger.info("Imported vault uses different key parameters; locking")
            self.lock()
        return count


def _wipe(buffer: bytearray) -> None:
    for i in range(len(buffer)):
        buffer[i] = 0
