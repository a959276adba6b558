# key_derivation.py
"""
Libre 2 key generation.

Given the 8-byte sensor UID:

1. compute an 8-byte auth code (MAC) from a fixed initial state,
2. mix MAC and UID into a 16-byte seed,
3. derive the encryption (0x01) and decryption (0x02) keys from the seed
   with four add / xor / rotate rounds.

Everything here is deterministic: the same UID always yields the same
``KeyPair``.
"""

from typing import List, Sequence

from app_logger import get_logger
from errors import InvalidIdentifier
from models import KeyPair
from timing_decorator import timed

log = get_logger("keys")

UID_LEN = 8
SEED_LEN = 16
KEY_LEN = 16
ROUNDS = 4

MAC_INITIAL_STATE = (0x09, 0x76, 0x42, 0x71, 0xF8, 0xC4, 0x46, 0x93)
SEED_XOR = 0x55

KEY_TYPE_ENCRYPT = 0x01
KEY_TYPE_DECRYPT = 0x02


# ----------------------------------------------------------------------
# Substitution table
# ----------------------------------------------------------------------
def _rotl8(x: int, shift: int) -> int:
    return ((x << shift) | (x >> (8 - shift))) & 0xFF


def _generate_substitution_table() -> List[int]:
    """
    Rijndael forward S-box: multiplicative inverse in GF(2^8) followed by
    the affine transform.  Stands in for the manufacturer table, whose
    published fragment matches it entry for entry.
    """
    table = [0] * 256
    p = q = 1
    while True:
        # p *= 3
        p = (p ^ (p << 1) ^ (0x1B if p & 0x80 else 0)) & 0xFF
        # q /= 3
        q ^= q << 1
        q ^= q << 2
        q ^= q << 4
        q &= 0xFF
        if q & 0x80:
            q ^= 0x09
        affine = q ^ _rotl8(q, 1) ^ _rotl8(q, 2) ^ _rotl8(q, 3) ^ _rotl8(q, 4)
        table[p] = affine ^ 0x63
        if p == 1:
            break
    table[0] = 0x63                      # 0 has no inverse
    return table


SUBSTITUTION_TABLE = tuple(_generate_substitution_table())


# ----------------------------------------------------------------------
# Pipeline steps
# ----------------------------------------------------------------------
def _check_uid(uid: Sequence[int]) -> bytes:
    if uid is None:
        raise InvalidIdentifier(length=0)
    uid = bytes(uid)
    if len(uid) != UID_LEN:
        raise InvalidIdentifier(length=len(uid))
    return uid


def calculate_auth_code(uid: Sequence[int]) -> bytes:
    """Auth code (MAC) of the UID: reversed-UID xor, substitution, pairwise add."""
    uid = _check_uid(uid)
    state = [s ^ uid[UID_LEN - 1 - i] for i, s in enumerate(MAC_INITIAL_STATE)]
    state = [SUBSTITUTION_TABLE[b] for b in state]
    # all sums use the substituted state, not the partially updated one
    return bytes((state[i] + state[(i + 1) % UID_LEN]) & 0xFF for i in range(UID_LEN))


def generate_seed(auth_code: bytes, uid: Sequence[int]) -> bytes:
    """16-byte seed: MAC, then UID xor MAC, then ``(b ^ 0x55) + index``."""
    uid = _check_uid(uid)
    if len(auth_code) != UID_LEN:
        raise ValueError(f"auth code must be {UID_LEN} bytes, got {len(auth_code)}")
    raw = bytes(auth_code) + bytes(u ^ m for u, m in zip(uid, auth_code))
    return bytes(((b ^ SEED_XOR) + i) & 0xFF for i, b in enumerate(raw))


def derive_key(seed: bytes, discriminator: int) -> bytes:
    """
    One 16-byte key from the seed.  Each round first applies the additive
    step to all 16 bytes, then rotates the whole array left by the round
    index.
    """
    if len(seed) != SEED_LEN:
        raise ValueError(f"seed must be {SEED_LEN} bytes, got {len(seed)}")
    key = [b ^ discriminator for b in seed]
    for round_index in range(ROUNDS):
        key = [((k + seed[i % 8]) ^ seed[8 + (i % 8)]) & 0xFF for i, k in enumerate(key)]
        key = key[round_index:] + key[:round_index]
    return bytes(key)


@timed("generate_keys")
def generate_keys(uid: Sequence[int]) -> KeyPair:
    """
    Derive the session ``KeyPair`` for a sensor.

    Raises
    ------
    InvalidIdentifier
        If *uid* is not exactly 8 bytes.
    """
    try:
        uid = _check_uid(uid)
    except InvalidIdentifier as exc:
        log.error("key generation rejected: %s", exc)
        raise

    mac = calculate_auth_code(uid)
    seed = generate_seed(mac, uid)
    pair = KeyPair(
        encryption_key=derive_key(seed, KEY_TYPE_ENCRYPT),
        decryption_key=derive_key(seed, KEY_TYPE_DECRYPT),
        mac=mac,
    )
    log.debug("derived keys for uid %s (mac %s)", uid.hex(), mac.hex())
    return pair
