"""
Vault Models — Persisted vault document, secret records and caller inputs.

On disk every field is camelCase (``valueHash``, ``expiresAt``, ...);
Python attributes are snake_case. Both spellings are accepted as input.
"""
from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    JsonValue,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .crypto import DEFAULT_CIPHER, PBKDF2_ITERATIONS, SUPPORTED_CIPHERS

VAULT_FORMAT_VERSION = 1
DEFAULT_SECRET_TYPE = "generic"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


def _unique(tags: list[str]) -> list[str]:
    """Drop repeated tags, keeping first-seen order."""
    return list(dict.fromkeys(tags))


TagList = Annotated[list[str], AfterValidator(_unique)]
JsonMapping = dict[str, JsonValue]


class VaultModel(BaseModel):
    """Base model with the camelCase on-disk naming."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict using the on-disk field names."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Secret records and views
# ---------------------------------------------------------------------------

class SecretMeta(VaultModel):
    """Metadata-only view of a secret; never carries the value."""

    id: str
    name: str
    type: str = DEFAULT_SECRET_TYPE
    value_hash: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
    expires_at: Optional[UtcDatetime] = None
    metadata: JsonMapping = Field(default_factory=dict)
    tags: TagList = Field(default_factory=list)
    notes: str = ""

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True when an expiry is set and has been reached."""
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name, type or any tag."""
        q = query.lower()
        return (
            q in self.name.lower()
            or q in self.type.lower()
            or any(q in tag.lower() for tag in self.tags)
        )


class SecretRecord(SecretMeta):
    """A secret as persisted: ``value`` holds the base64 ciphertext."""

    value: str

    def meta(self) -> SecretMeta:
        return SecretMeta.model_validate(
            self.model_dump(exclude={"value"})
        )


class RevealedSecret(SecretMeta):
    """A secret with its decrypted plaintext ``value``."""

    value: str

    @classmethod
    def from_record(cls, record: SecretRecord, plaintext: str) -> "RevealedSecret":
        data = record.model_dump(exclude={"value"})
        data["value"] = plaintext
        return cls.model_validate(data)


# ---------------------------------------------------------------------------
# Caller inputs
# ---------------------------------------------------------------------------

class SecretCreate(VaultModel):
    """Fields accepted when adding a secret."""

    name: str = Field(min_length=1)
    value: str
    type: str = DEFAULT_SECRET_TYPE
    expires_at: Optional[UtcDatetime] = None
    metadata: JsonMapping = Field(default_factory=dict)
    tags: TagList = Field(default_factory=list)
    notes: str = ""


class SecretUpdate(VaultModel):
    """Fields accepted when updating a secret.

    Only fields explicitly supplied are applied; ``expires_at=None``
    clears the expiry.
    """

    name: Optional[str] = Field(default=None, min_length=1)
    value: Optional[str] = None
    type: Optional[str] = None
    expires_at: Optional[UtcDatetime] = None
    metadata: Optional[JsonMapping] = None
    tags: Optional[TagList] = None
    notes: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        """Supplied fields, dropping explicit ``None`` except for expiry."""
        return {
            k: v for k, v in self.model_dump(exclude_unset=True).items()
            if v is not None or k == "expires_at"
        }


# ---------------------------------------------------------------------------
# Vault document
# ---------------------------------------------------------------------------

class VaultMetadata(VaultModel):
    """Vault-wide metadata; ``salt`` is hex and fixed at creation."""

    created_at: UtcDatetime
    updated_at: UtcDatetime
    salt: str
    cipher: str = DEFAULT_CIPHER
    iterations: int = PBKDF2_ITERATIONS

    @field_validator("salt")
    @classmethod
    def validate_salt(cls, v: str) -> str:
        """Salt must be non-empty hex."""
        try:
            if not bytes.fromhex(v):
                raise ValueError("salt is empty")
        except ValueError as err:
            raise ValueError(f"salt must be hex-encoded bytes: {err}") from err
        return v

    @field_validator("cipher")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        if v not in SUPPORTED_CIPHERS:
            raise ValueError(f"Unsupported cipher: {v}")
        return v

    def kdf_params(self) -> tuple[str, int, str]:
        return self.salt, self.iterations, self.cipher


class VaultDocument(VaultModel):
    """Root persisted object: format version, ordered secrets, metadata."""

    version: int = VAULT_FORMAT_VERSION
    secrets: list[SecretRecord] = Field(default_factory=list)
    metadata: VaultMetadata

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        if v != VAULT_FORMAT_VERSION:
            raise ValueError(
                f"Unsupported vault format version {v} "
                f"(expected {VAULT_FORMAT_VERSION})"
            )
        return v

    @field_validator("secrets")
    @classmethod
    def validate_unique_ids(cls, v: list[SecretRecord]) -> list[SecretRecord]:
        seen: set[str] = set()
        for record in v:
            if record.id in seen:
                raise ValueError(f"Duplicate secret id: {record.id}")
            seen.add(record.id)
        return v

    @classmethod
    def new(cls, salt: str, cipher: str, iterations: int) -> "VaultDocument":
        now = utcnow()
        return cls(
            metadata=VaultMetadata(
                created_at=now,
                updated_at=now,
                salt=salt,
                cipher=cipher,
                iterations=iterations,
            )
        )

    def find(self, secret_id: str) -> Optional[SecretRecord]:
        for record in self.secrets:
            if record.id == secret_id:
                return record
        return None

    def touch(self) -> None:
        self.metadata.updated_at = utcnow()
