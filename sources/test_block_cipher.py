"""Tests for the AES-CBC adapter."""

import os

import pytest

from block_cipher import BLOCK_SIZE, decrypt, encrypt
from errors import MalformedCiphertext
from key_derivation import generate_keys

# FIPS-197 appendix C.1; with a zero IV a single CBC block equals ECB
FIPS_KEY = bytes(range(16))
FIPS_PLAINTEXT = bytes.fromhex("00112233445566778899aabbccddeeff")
FIPS_CIPHERTEXT = bytes.fromhex("69c4e0d86a7b0430d8cdb78070b4c55a")


def test_known_answer_encrypt():
    assert encrypt(FIPS_PLAINTEXT, FIPS_KEY) == FIPS_CIPHERTEXT


def test_known_answer_decrypt():
    assert decrypt(FIPS_CIPHERTEXT, FIPS_KEY) == FIPS_PLAINTEXT


def test_blocks_are_chained():
    ciphertext = encrypt(FIPS_PLAINTEXT * 2, FIPS_KEY)
    assert ciphertext[:BLOCK_SIZE] == FIPS_CIPHERTEXT
    assert ciphertext[BLOCK_SIZE:] != FIPS_CIPHERTEXT


@pytest.mark.parametrize("length", [0, 16, 32, 64, 256])
def test_round_trip_with_derived_key(length):
    key = generate_keys(bytes.fromhex("0102030405060708")).decryption_key
    plaintext = os.urandom(length)
    ciphertext = encrypt(plaintext, key)
    assert len(ciphertext) == length
    assert decrypt(ciphertext, key) == plaintext


def test_wrong_key_does_not_round_trip():
    pair = generate_keys(bytes(8))
    ciphertext = encrypt(FIPS_PLAINTEXT, pair.encryption_key)
    assert decrypt(ciphertext, pair.decryption_key) != FIPS_PLAINTEXT


@pytest.mark.parametrize("length", [1, 9, 15, 17, 31])
def test_decrypt_rejects_unaligned_input(length):
    with pytest.raises(MalformedCiphertext) as exc_info:
        decrypt(bytes(length), FIPS_KEY)
    assert exc_info.value.length == length
    assert "multiple of the 16-byte block size" in str(exc_info.value)


def test_encrypt_rejects_unaligned_input():
    with pytest.raises(MalformedCiphertext):
        encrypt(bytes(20), FIPS_KEY)
