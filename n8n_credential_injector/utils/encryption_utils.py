"""
Symmetric encryption for credential data written straight into n8n's database.

The output is consumed by n8n's own decryption, so the scheme is fixed:
SHA-256 of the shared secret as the AES-256 key, a random 16-byte IV per
call, CBC mode with PKCS7 padding, stored as "<hex iv>:<base64 ciphertext>".
"""

import base64
import hashlib
import os
from typing import Any, Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .json_utils import dumps

IV_LENGTH = 16


def derive_key(secret: str) -> bytes:
    """
    Derive the 256-bit AES key from the shared secret.

    Args:
        secret: The n8n encryption key (N8N_ENCRYPTION_KEY)

    Returns:
        32-byte SHA-256 digest of the UTF-8 secret
    """
    return hashlib.sha256(secret.encode("utf-8")).digest()


def encrypt_bytes(plaintext: bytes, key: bytes, iv: Optional[bytes] = None) -> str:
    """
    Encrypt raw bytes with AES-256-CBC and PKCS7 padding.

    Args:
        plaintext: Bytes to encrypt
        key: 32-byte AES key
        iv: Initialization vector; a fresh random one is generated when omitted

    Returns:
        "<hex iv>:<base64 ciphertext>"
    """
    if iv is None:
        iv = os.urandom(IV_LENGTH)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return f"{iv.hex()}:{base64.b64encode(ciphertext).decode('ascii')}"


def encrypt_payload(payload: Any, secret: str, iv: Optional[bytes] = None) -> str:
    """
    Encrypt a JSON-serializable payload for storage in n8n's credential table.

    Cipher errors are not caught.

    Args:
        payload: Any value json_utils.dumps can serialize
        secret: The n8n encryption key
        iv: Optional fixed IV (tests only)

    Returns:
        "<hex iv>:<base64 ciphertext>"
    """
    plaintext = dumps(payload).encode("utf-8")
    return encrypt_bytes(plaintext, derive_key(secret), iv)
