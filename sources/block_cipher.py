# block_cipher.py
"""
AES-128-CBC with an all-zero IV and no padding, as used on the Libre 2
radio link.  Callers pass block-aligned buffers.
"""

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from app_logger import get_logger
from errors import MalformedCiphertext

log = get_logger("cipher")

BLOCK_SIZE = 16
ZERO_IV = bytes(BLOCK_SIZE)


def _cipher(key: bytes) -> Cipher:
    return Cipher(algorithms.AES(bytes(key)), modes.CBC(ZERO_IV))


def _check_aligned(data: bytes) -> None:
    if len(data) % BLOCK_SIZE:
        raise MalformedCiphertext(length=len(data), block_size=BLOCK_SIZE)


def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """Encrypt a block-aligned buffer."""
    _check_aligned(plaintext)
    encryptor = _cipher(key).encryptor()
    return encryptor.update(bytes(plaintext)) + encryptor.finalize()


def decrypt(ciphertext: bytes, key: bytes) -> bytes:
    """
    Decrypt a block-aligned buffer.

    Raises
    ------
    MalformedCiphertext
        If the length is not a multiple of 16.
    """
    try:
        _check_aligned(ciphertext)
    except MalformedCiphertext as exc:
        log.error("decrypt rejected: %s", exc)
        raise
    decryptor = _cipher(key).decryptor()
    return decryptor.update(bytes(ciphertext)) + decryptor.finalize()
