"""
Grid geometry, decryption and encryption of the columnar transposition
"""

import sys
import os
from collections import Counter

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

from columnar_implementation import (
    get_possible_dimensions,
    fill_grid,
    read_grid,
    identity_order,
    decrypt_with_order,
    encrypt_message,
    column_order_from_key,
    key_from_column_order,
    normalize_cipher_text,
    validate_cipher_text,
    pad_plaintext,
)


def test_dimensions_match_divisors():
    for length in (4, 6, 12, 24, 36, 50, 100):
        expected = [(r, length // r) for r in range(2, length) if length % r == 0]
        assert get_possible_dimensions(length) == expected
        for rows, cols in get_possible_dimensions(length):
            assert rows * cols == length
            assert rows >= 2 and cols >= 2


def test_dimensions_ascending_by_rows():
    assert get_possible_dimensions(12) == [(2, 6), (3, 4), (4, 3), (6, 2)]


def test_prime_length_has_no_dimensions():
    assert get_possible_dimensions(13) == []
    assert get_possible_dimensions(2) == []
    assert get_possible_dimensions(3) == []


def test_fill_grid_is_column_major():
    grid = fill_grid("TEHTAHNEDTAH", 3, 4)
    assert grid == [
        ["T", "T", "N", "T"],
        ["E", "A", "E", "A"],
        ["H", "H", "D", "H"],
    ]


def test_identity_read_of_example_grid():
    grid = fill_grid("TEHTAHNEDTAH", 3, 4)
    assert read_grid(grid, [0, 1, 2, 3]) == "TTNTEAEAHHDH"


def test_read_grid_follows_column_order():
    grid = fill_grid("ABCDEF", 2, 3)
    # columns: AB, CD, EF
    assert read_grid(grid, [0, 1, 2]) == "ACEBDF"
    assert read_grid(grid, [2, 0, 1]) == "EACFBD"


def test_encrypt_then_decrypt_round_trip():
    plaintext = "WEAREDISCOVEREDFLEEATONCE"
    for order in ([0, 1, 2, 3, 4], [4, 2, 0, 1, 3], [1, 0, 4, 3, 2]):
        ciphertext = encrypt_message(plaintext, 5, 5, order)
        assert decrypt_with_order(ciphertext, (5, 5), order) == plaintext


def test_decrypt_then_encrypt_round_trip():
    ciphertext = "TEHTAHNEDTAH"
    for dims in get_possible_dimensions(len(ciphertext)):
        order = identity_order(dims[1])
        plain = decrypt_with_order(ciphertext, dims, order)
        assert encrypt_message(plain, dims[0], dims[1], order) == ciphertext


def test_decryption_preserves_character_multiset():
    ciphertext = "HTEOMRSTEILNGUAATDNEASRC"
    for rows, cols in get_possible_dimensions(len(ciphertext)):
        order = list(reversed(range(cols)))
        plain = decrypt_with_order(ciphertext, (rows, cols), order)
        assert len(plain) == len(ciphertext)
        assert Counter(plain) == Counter(ciphertext)


def test_fill_grid_rejects_mismatched_dimensions():
    with pytest.raises(ValueError):
        fill_grid("ABCDEFG", 2, 3)
    with pytest.raises(ValueError):
        fill_grid("", 0, 3)


def test_read_grid_rejects_non_permutation():
    grid = fill_grid("ABCDEF", 2, 3)
    with pytest.raises(ValueError):
        read_grid(grid, [0, 0, 1])
    with pytest.raises(ValueError):
        read_grid(grid, [0, 1])


def test_column_order_from_key():
    assert column_order_from_key("ZEBRAS") == [5, 2, 1, 3, 0, 4]
    # repeated letters rank left to right
    assert column_order_from_key("BAB") == [1, 0, 2]


def test_keyword_encryption_reads_columns_in_key_order():
    # "ZEBRAS" rank order reads column A first, then B, E, R, S, Z
    plaintext = "WEAREDISCOVEREDFLEEATONC"
    ciphertext = encrypt_message(plaintext, 4, 6, column_order_from_key("ZEBRAS"))
    assert ciphertext == "EVLNACDTESEAROFODEECWIRE"


def test_key_from_column_order_inverts_ranking():
    order = [3, 0, 2, 1]
    key = key_from_column_order(order)
    assert key == "DACB"
    assert column_order_from_key(key) == order


def test_normalize_and_validate():
    assert normalize_cipher_text("tehta hn\nedtah") == "TEHTAHNEDTAH"
    validate_cipher_text("TEHTAHNEDTAH")
    with pytest.raises(ValueError):
        validate_cipher_text("TEH TAH")
    with pytest.raises(ValueError):
        validate_cipher_text("tehtah")


def test_pad_plaintext():
    assert pad_plaintext("ABCDE", 3) == "ABCDEX"
    assert pad_plaintext("ABCDEF", 3) == "ABCDEF"
