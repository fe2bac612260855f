"""
Tests for vault models and file storage.

Tests cover:
- Whole-document save/load and on-disk field names
- Atomic writes, directory creation and file permissions
- Error mapping for missing, unreadable and malformed files
- Loading documents without cipher/iteration metadata
- Tag de-duplication and JSON-only metadata in caller inputs
"""
import os

import orjson
import pytest

from navigator_secrets.vault.crypto import AES_CTR, PBKDF2_ITERATIONS
from navigator_secrets.vault.exceptions import (
    MalformedInput,
    VaultIOError,
    VaultNotInitialized,
)
from navigator_secrets.vault.models import (
    SecretCreate,
    SecretRecord,
    SecretUpdate,
    VaultDocument,
    utcnow,
)
from navigator_secrets.vault.storage import VaultFile, dump_document, parse_document


LEGACY_VAULT = b"""{
  "version": 1,
  "secrets": [
    {
      "id": "abcDEF123ghiJKL4",
      "name": "db",
      "type": "password",
      "value": "AAAAAAAAAAAAAAAAAAAAAA==",
      "valueHash": "2bb80d537b1da3e38bd30361aa855686bde0eacd7162fef6a25fe97bf527a25b",
      "createdAt": "2024-01-01T00:00:00.000Z",
      "updatedAt": "2024-01-01T00:00:00.000Z",
      "expiresAt": null,
      "metadata": {},
      "tags": ["prod"],
      "notes": ""
    }
  ],
  "metadata": {
    "createdAt": "2024-01-01T00:00:00.000Z",
    "updatedAt": "2024-01-01T00:00:00.000Z",
    "salt": "00112233445566778899aabbccddeeff"
  }
}"""


@pytest.fixture
def document():
    doc = VaultDocument.new(salt="ab" * 16, cipher=AES_CTR, iterations=PBKDF2_ITERATIONS)
    now = utcnow()
    doc.secrets.append(SecretRecord(
        id="abc123",
        name="db",
        type="password",
        value="ciphertext",
        value_hash="hash",
        created_at=now,
        updated_at=now,
        tags=["prod"],
    ))
    return doc


# --- Storage ---

class TestVaultFile:
    """Tests for VaultFile save/load."""

    def test_save_creates_directory(self, tmp_path, document):
        vault_file = VaultFile(tmp_path / "nested" / "dir" / "vault.json")
        assert vault_file.exists() is False
        vault_file.save(document)
        assert vault_file.exists() is True

    def test_round_trip(self, tmp_path, document):
        vault_file = VaultFile(tmp_path / "vault.json")
        vault_file.save(document)
        loaded = vault_file.load()
        assert loaded.to_dict() == document.to_dict()

    def test_camel_case_on_disk(self, tmp_path, document):
        vault_file = VaultFile(tmp_path / "vault.json")
        vault_file.save(document)
        raw = orjson.loads(vault_file.path.read_bytes())
        assert raw["metadata"]["salt"] == "ab" * 16
        record = raw["secrets"][0]
        assert record["valueHash"] == "hash"
        assert "createdAt" in record and "expiresAt" in record
        assert "value_hash" not in record

    def test_no_temp_file_left(self, tmp_path, document):
        VaultFile(tmp_path / "vault.json").save(document)
        assert [p.name for p in tmp_path.iterdir()] == ["vault.json"]

    def test_overwrites_whole_file(self, tmp_path, document):
        vault_file = VaultFile(tmp_path / "vault.json")
        vault_file.save(document)
        document.secrets.clear()
        vault_file.save(document)
        assert vault_file.load().secrets == []

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_owner_only_permissions(self, tmp_path, document):
        vault_file = VaultFile(tmp_path / "vault.json")
        vault_file.save(document)
        assert vault_file.path.stat().st_mode & 0o777 == 0o600

    def test_load_missing(self, tmp_path):
        with pytest.raises(VaultNotInitialized):
            VaultFile(tmp_path / "missing.json").load()

    def test_load_directory_is_io_error(self, tmp_path):
        with pytest.raises(VaultIOError):
            VaultFile(tmp_path).load()

    def test_load_garbage(self, tmp_path):
        path = tmp_path / "vault.json"
        path.write_bytes(b"\x00\x01 garbage")
        with pytest.raises(MalformedInput):
            VaultFile(path).load()

    def test_save_io_error(self, tmp_path, document):
        blocker = tmp_path / "blocker"
        blocker.write_text("file")
        with pytest.raises(VaultIOError):
            VaultFile(blocker / "vault.json").save(document)


# --- Documents ---

class TestDocuments:
    """Tests for parsing and validating vault documents."""

    def test_legacy_document_defaults(self):
        """Documents without cipher/iterations use the CTR defaults."""
        doc = parse_document(LEGACY_VAULT)
        assert doc.metadata.cipher == AES_CTR
        assert doc.metadata.iterations == PBKDF2_ITERATIONS
        assert doc.secrets[0].value_hash.startswith("2bb80d")
        assert doc.secrets[0].created_at.tzinfo is not None

    def test_dump_parse_round_trip(self, document):
        assert parse_document(dump_document(document)).to_dict() == document.to_dict()

    def test_find(self, document):
        assert document.find("abc123").name == "db"
        assert document.find("nope") is None

    def test_rejects_unknown_cipher(self):
        raw = orjson.loads(LEGACY_VAULT)
        raw["metadata"]["cipher"] = "rot13"
        with pytest.raises(MalformedInput):
            parse_document(orjson.dumps(raw))

    def test_rejects_empty_salt(self):
        raw = orjson.loads(LEGACY_VAULT)
        raw["metadata"]["salt"] = ""
        with pytest.raises(MalformedInput):
            parse_document(orjson.dumps(raw))

    def test_meta_view_drops_value(self, document):
        meta = document.secrets[0].meta()
        assert "value" not in meta.model_dump()
        assert meta.tags == ["prod"]

    def test_dump_rejects_non_json_values(self, document):
        """Values slipped past validation still fail as MalformedInput."""
        document.secrets[0].metadata["k"] = object()
        with pytest.raises(MalformedInput):
            dump_document(document)


class TestInputModels:
    """Tests for SecretCreate and SecretUpdate."""

    def test_create_accepts_both_spellings(self):
        by_alias = SecretCreate.model_validate(
            {"name": "a", "value": "x", "expiresAt": "2030-01-01T00:00:00Z"}
        )
        by_name = SecretCreate.model_validate(
            {"name": "a", "value": "x", "expires_at": "2030-01-01T00:00:00Z"}
        )
        assert by_alias.expires_at == by_name.expires_at

    def test_update_changes_only_supplied(self):
        update = SecretUpdate.model_validate({"name": "b", "tags": ["t"]})
        assert update.changes() == {"name": "b", "tags": ["t"]}

    def test_update_keeps_explicit_expiry_clear(self):
        update = SecretUpdate.model_validate({"expiresAt": None, "notes": None})
        assert update.changes() == {"expires_at": None}

    def test_tags_keep_first_seen_order(self):
        create = SecretCreate(name="a", value="x", tags=["b", "a", "b", "a"])
        assert create.tags == ["b", "a"]
        update = SecretUpdate(tags=["z", "z"])
        assert update.changes() == {"tags": ["z"]}

    def test_metadata_must_be_json(self):
        with pytest.raises(ValueError):
            SecretCreate(name="a", value="x", metadata={"k": object()})
