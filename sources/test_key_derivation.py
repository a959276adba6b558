"""Tests for the Libre 2 key derivation pipeline."""

import pytest

from errors import InvalidIdentifier
from key_derivation import (
    SUBSTITUTION_TABLE,
    KEY_TYPE_DECRYPT,
    KEY_TYPE_ENCRYPT,
    calculate_auth_code,
    derive_key,
    generate_keys,
    generate_seed,
)
from models import KeyPair

UID = bytes([0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0x07, 0x08])

# Reference vector for UID 01..08
EXPECTED_MAC = bytes.fromhex("1fbead4276e16acb")
EXPECTED_SEED = bytes.fromhex("4aecfa1a27b945a553f2051e32bf46a5")
EXPECTED_ENCRYPTION_KEY = bytes.fromhex("d054bced76f54754c954b9876bc96e62")
EXPECTED_DECRYPTION_KEY = bytes.fromhex("c96f43e01fce4055d06faeee12f2694f")


class TestSubstitutionTable:
    """The generated table must agree with the published fragment."""

    def test_has_256_entries(self):
        assert len(SUBSTITUTION_TABLE) == 256

    def test_is_a_permutation(self):
        assert sorted(SUBSTITUTION_TABLE) == list(range(256))

    def test_first_rows_match_fragment(self):
        fragment = [
            0x63, 0x7c, 0x77, 0x7b, 0xf2, 0x6b, 0x6f, 0xc5, 0x30, 0x01, 0x67, 0x2b, 0xfe, 0xd7, 0xab, 0x76,
            0xca, 0x82, 0xc9, 0x7d, 0xfa, 0x59, 0x47, 0xf0, 0xad, 0xd4, 0xa2, 0xaf, 0x9c, 0xa4, 0x72, 0xc0,
        ]
        assert list(SUBSTITUTION_TABLE[:32]) == fragment

    def test_last_row_matches_fragment(self):
        fragment = [0x8c, 0xa1, 0x89, 0x0d, 0xbf, 0xe6, 0x42, 0x68,
                    0x41, 0x99, 0x2d, 0x0f, 0xb0, 0x54, 0xbb, 0x16]
        assert list(SUBSTITUTION_TABLE[240:]) == fragment


class TestReferenceVector:
    def test_auth_code(self):
        assert calculate_auth_code(UID) == EXPECTED_MAC

    def test_seed(self):
        assert generate_seed(EXPECTED_MAC, UID) == EXPECTED_SEED

    def test_encryption_key(self):
        assert derive_key(EXPECTED_SEED, KEY_TYPE_ENCRYPT) == EXPECTED_ENCRYPTION_KEY

    def test_decryption_key(self):
        assert derive_key(EXPECTED_SEED, KEY_TYPE_DECRYPT) == EXPECTED_DECRYPTION_KEY

    def test_generate_keys(self):
        pair = generate_keys(UID)
        assert pair == KeyPair(
            encryption_key=EXPECTED_ENCRYPTION_KEY,
            decryption_key=EXPECTED_DECRYPTION_KEY,
            mac=EXPECTED_MAC,
        )

    def test_accepts_list_of_ints(self):
        assert generate_keys(list(UID)) == generate_keys(UID)


class TestDeterminism:
    @pytest.mark.parametrize("uid", [
        bytes(8),
        bytes([0xFF] * 8),
        bytes.fromhex("e007a00000abcdef"),
        UID,
    ])
    def test_same_uid_same_keys(self, uid):
        first = generate_keys(uid)
        for _ in range(5):
            assert generate_keys(uid) == first

    def test_keys_are_16_bytes_and_distinct(self):
        pair = generate_keys(UID)
        assert len(pair.encryption_key) == 16
        assert len(pair.decryption_key) == 16
        assert len(pair.mac) == 8
        assert pair.encryption_key != pair.decryption_key

    def test_different_uids_give_different_keys(self):
        assert generate_keys(UID) != generate_keys(bytes(reversed(UID)))

    def test_repr_hides_keys(self):
        text = repr(generate_keys(UID))
        assert EXPECTED_ENCRYPTION_KEY.hex() not in text
        assert EXPECTED_MAC.hex() in text


class TestInvalidIdentifier:
    @pytest.mark.parametrize("uid", [b"", bytes(7), bytes(9), bytes(16)])
    def test_wrong_length_rejected(self, uid):
        with pytest.raises(InvalidIdentifier) as exc_info:
            generate_keys(uid)
        assert exc_info.value.length == len(uid)

    def test_none_rejected(self):
        with pytest.raises(InvalidIdentifier):
            generate_keys(None)

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            calculate_auth_code(bytes(4))

    def test_message(self):
        assert str(InvalidIdentifier(length=3)) == "UID must be 8 bytes, got 3"


def test_zero_seed_keeps_discriminator():
    """With an all-zero seed every round is the identity on a uniform key."""
    key = derive_key(bytes(16), KEY_TYPE_ENCRYPT)
    assert key == bytes([0x01] * 16)
