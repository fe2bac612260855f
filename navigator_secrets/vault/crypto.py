"""
Vault Crypto Core — Key derivation, encryption/decryption, hashing and tokens.

- Master key: PBKDF2-HMAC-SHA256(passphrase, salt) → 32-byte key
- Secret values: AES-256-CTR → base64([iv 16B][ciphertext])
- Optional suite: AES-256-GCM → base64([nonce 12B][ciphertext + tag 16B])

Security Note:
    Never log passphrases, keys, plaintext or ciphertext values.
    AES-256-CTR provides confidentiality only: a wrong key or tampered
    ciphertext decrypts to wrong bytes without error. Callers compare the
    result against the stored SHA-256 fingerprint to detect that.
    IVs are random 128-bit per call and must never be reused under one key.
"""
import os
import re
import base64
import binascii
import hashlib
import secrets
import logging

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .exceptions import DecryptionError

logger = logging.getLogger("navigator.secrets")

KEY_LENGTH = 32  # AES-256
SALT_SIZE = 16  # 128-bit salt
IV_SIZE = 16  # 128-bit CTR initial counter block
NONCE_SIZE = 12  # 96-bit GCM nonce
TAG_SIZE = 16
PBKDF2_ITERATIONS = 100_000
ID_LENGTH = 16

AES_CTR = "aes-256-ctr"
AES_GCM = "aes-256-gcm"
SUPPORTED_CIPHERS = (AES_CTR, AES_GCM)
DEFAULT_CIPHER = AES_CTR

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(
    passphrase: str,
    salt: str | None = None,
    iterations: int = PBKDF2_ITERATIONS,
) -> tuple[bytes, str]:
    """Derive a 32-byte master key from a passphrase using PBKDF2-HMAC-SHA256.

    Args:
        passphrase: Master passphrase.
        salt: Hex-encoded salt. A fresh random 16-byte salt is generated
            when omitted.
        iterations: PBKDF2 iteration count (minimum 100,000).

    Returns:
        Tuple of (key, hex-encoded salt).

    Raises:
        ValueError: If iterations is below the minimum or salt is not hex.
    """
    if iterations < PBKDF2_ITERATIONS:
        raise ValueError(
            f"PBKDF2 iterations must be at least {PBKDF2_ITERATIONS}, "
            f"got {iterations}"
        )
    if salt is None:
        salt = os.urandom(SALT_SIZE).hex()
    salt_bytes = bytes.fromhex(salt)
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt_bytes,
        iterations=iterations,
    )
    return kdf.derive(passphrase.encode("utf-8")), salt


# ---------------------------------------------------------------------------
# Encryption
# ---------------------------------------------------------------------------

def _check_cipher(cipher: str) -> None:
    if cipher not in SUPPORTED_CIPHERS:
        raise ValueError(f"Unsupported cipher: {cipher}")


def _ctr(key: bytes, iv: bytes) -> Cipher:
    return Cipher(algorithms.AES(bytes(key)), modes.CTR(iv))


def encrypt(plaintext: str, key: bytes, cipher: str = DEFAULT_CIPHER) -> str:
    """Encrypt a plaintext string under the master key.

    A fresh random IV (nonce for GCM) is generated for every call and
    prefixed to the ciphertext, so each value decrypts on its own.

    Args:
        plaintext: Text to encrypt.
        key: 32-byte master key.
        cipher: Cipher suite name (``aes-256-ctr`` or ``aes-256-gcm``).

    Returns:
        Base64 text of ``[iv][ciphertext]``.
    """
    _check_cipher(cipher)
    data = plaintext.encode("utf-8")
    if cipher == AES_GCM:
        nonce = os.urandom(NONCE_SIZE)
        blob = nonce + AESGCM(bytes(key)).encrypt(nonce, data, None)
    else:
        iv = os.urandom(IV_SIZE)
        encryptor = _ctr(key, iv).encryptor()
        blob = iv + encryptor.update(data) + encryptor.finalize()
    return base64.b64encode(blob).decode("ascii")


def decrypt(ciphertext: str, key: bytes, cipher: str = DEFAULT_CIPHER) -> str:
    """Decrypt a value produced by :func:`encrypt`.

    Args:
        ciphertext: Base64 text of ``[iv][ciphertext]``.
        key: 32-byte master key.
        cipher: Cipher suite the value was encrypted with.

    Returns:
        Recovered plaintext.

    Raises:
        DecryptionError: If the blob is not valid base64, is too short,
            fails GCM authentication, or does not decode as UTF-8.
    """
    _check_cipher(cipher)
    try:
        blob = base64.b64decode(ciphertext, validate=True)
    except (binascii.Error, ValueError) as err:
        raise DecryptionError("Ciphertext is not valid base64") from err
    if cipher == AES_GCM:
        _min = NONCE_SIZE + TAG_SIZE
        if len(blob) < _min:
            raise DecryptionError(
                f"Ciphertext too short: {len(blob)} bytes (minimum {_min})"
            )
        try:
            data = AESGCM(bytes(key)).decrypt(
                blob[:NONCE_SIZE], blob[NONCE_SIZE:], None
            )
        except InvalidTag as err:
            raise DecryptionError("Ciphertext failed authentication") from err
    else:
        if len(blob) < IV_SIZE:
            raise DecryptionError(
                f"Ciphertext too short: {len(blob)} bytes (minimum {IV_SIZE})"
            )
        decryptor = _ctr(key, blob[:IV_SIZE]).decryptor()
        data = decryptor.update(blob[IV_SIZE:]) + decryptor.finalize()
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as err:
        raise DecryptionError("Decrypted value is not valid UTF-8") from err


# ---------------------------------------------------------------------------
# Fingerprints and random tokens
# ---------------------------------------------------------------------------

def hash_value(value: str) -> str:
    """Return the hex SHA-256 digest of a plaintext string."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_secret(length: int = 32) -> str:
    """Generate ``length`` random bytes encoded as URL-safe base64 (no padding).

    Args:
        length: Number of random bytes.

    Returns:
        URL-safe token string.
    """
    if length < 1:
        raise ValueError(f"Secret length must be positive, got {length}")
    return secrets.token_urlsafe(length)


def generate_id() -> str:
    """Generate a 16-character alphanumeric record identifier."""
    return _NON_ALNUM.sub("", generate_secret(ID_LENGTH))[:ID_LENGTH]
