"""
Vault Storage — Whole-document persistence of the vault file.

Every mutating vault operation rewrites the complete document; there is no
incremental update or append log. Writes go to a temporary sibling file that
replaces the vault in a single rename, so a failed write never leaves a
truncated vault behind.

Security Note:
    The vault file holds ciphertexts, value hashes and the salt only.
    It is written with owner-only permissions (0600).
"""
import os
import logging
import contextlib
from pathlib import Path
from typing import Union

import orjson
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from .exceptions import MalformedInput, VaultIOError, VaultNotInitialized
from .models import VaultDocument

logger = logging.getLogger("navigator.secrets")

_FILE_MODE = 0o600


def dump_document(document: VaultDocument) -> bytes:
    """Serialize a vault document to indented JSON bytes.

    Raises:
        MalformedInput: If a record holds a value that is not JSON.
    """
    try:
        return orjson.dumps(document.to_dict(), option=orjson.OPT_INDENT_2)
    except (
        PydanticSerializationError, UnicodeDecodeError, orjson.JSONEncodeError
    ) as err:
        raise MalformedInput(f"Vault data is not JSON serializable: {err}") from err


def parse_document(data: Union[str, bytes]) -> VaultDocument:
    """Deserialize and validate a vault document.

    Args:
        data: JSON text or bytes.

    Returns:
        Validated VaultDocument.

    Raises:
        MalformedInput: If data is not JSON or not a valid vault document.
    """
    try:
        raw = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise MalformedInput(f"Vault data is not valid JSON: {err}") from err
    if not isinstance(raw, dict):
        raise MalformedInput("Vault data must be a JSON object")
    try:
        return VaultDocument.model_validate(raw)
    except ValidationError as err:
        raise MalformedInput(f"Invalid vault document: {err}") from err


class VaultFile:
    """Single JSON file backing a vault."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"<VaultFile {self.path}>"

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> VaultDocument:
        """Read and validate the vault document.

        Raises:
            VaultNotInitialized: If the file does not exist.
            VaultIOError: If the file cannot be read.
            MalformedInput: If the file content is not a valid vault.
        """
        try:
            data = self.path.read_bytes()
        except FileNotFoundError as err:
            raise VaultNotInitialized(
                f"Vault does not exist at {self.path}"
            ) from err
        except OSError as err:
            raise VaultIOError(f"Cannot read vault {self.path}: {err}") from err
        document = parse_document(data)
        logger.debug(
            "Vault loaded from %s: %d secret(s)", self.path, len(document.secrets)
        )
        return document

    def save(self, document: VaultDocument) -> None:
        """Write the whole document, creating the parent directory on demand.

        Raises:
            VaultIOError: If the directory or file cannot be written.
        """
        data = dump_document(document)
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
            with os.fdopen(fd, "wb") as fo:
                fo.write(data)
                fo.flush()
                os.fsync(fo.fileno())
            tmp.replace(self.path)
        except OSError as err:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            raise VaultIOError(f"Cannot write vault {self.path}: {err}") from err
        logger.debug(
            "Vault saved to %s: %d secret(s)", self.path, len(document.secrets)
        )
