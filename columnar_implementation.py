"""
Fixed-width columnar transposition: grid geometry, decryption and encryption
"""

import string

ALPHABET = string.ascii_uppercase
PADDING_CHAR = "X"
DEBUG_OUTPUT = False


def debug(*args, **kwargs):
    if DEBUG_OUTPUT:
        print(*args, **kwargs)


def normalize_cipher_text(text):
    """Drop whitespace and uppercase the text (callers do this before solving)."""
    return "".join(text.split()).upper()


def validate_cipher_text(cipher_text):
    """Raise ValueError unless the text consists only of uppercase letters A-Z."""
    invalid = sorted({ch for ch in cipher_text if ch not in ALPHABET})
    if invalid:
        raise ValueError(
            f"Cipher text must contain only uppercase letters A-Z, found: {''.join(invalid)!r}"
        )


def get_possible_dimensions(text_length):
    """
    Return every (rows, cols) with rows * cols == text_length and
    2 <= rows <= text_length - 1, ascending by rows.
    An empty list means the length is prime (or < 4): no rectangular grid exists.
    """
    dimensions = []
    for rows in range(2, text_length):
        if text_length % rows == 0:
            dimensions.append((rows, text_length // rows))
    return dimensions


def validate_column_order(column_order, cols):
    """Raise ValueError unless column_order is a permutation of range(cols)."""
    if len(column_order) != cols or sorted(column_order) != list(range(cols)):
        raise ValueError(
            f"Column order {list(column_order)} is not a permutation of 0..{cols - 1}"
        )


def fill_grid(cipher_text, rows, cols):
    """Write the text into a rows x cols grid column by column, top to bottom."""
    if rows <= 0 or cols <= 0:
        raise ValueError(f"Grid dimensions must be positive, got {rows}x{cols}")
    if rows * cols != len(cipher_text):
        raise ValueError(
            f"Grid {rows}x{cols} does not match text length {len(cipher_text)}"
        )

    grid = [[""] * cols for _ in range(rows)]
    char_index = 0
    for col in range(cols):
        for row in range(rows):
            grid[row][col] = cipher_text[char_index]
            char_index += 1
    return grid


def read_grid(grid, column_order):
    """Read the grid row by row, emitting each row's cells in column_order."""
    if not grid:
        return ""
    validate_column_order(column_order, len(grid[0]))
    return "".join("".join(row[col] for col in column_order) for row in grid)


def identity_order(cols):
    """Return the unpermuted column order [0, 1, ..., cols - 1]."""
    return list(range(cols))


def decrypt_with_order(cipher_text, dimensions, column_order):
    """Decrypt with a chosen grid geometry and column order."""
    rows, cols = dimensions
    grid = fill_grid(cipher_text, rows, cols)
    plaintext = read_grid(grid, column_order)

    debug(f"\n=== DECRYPTION DEBUG ({rows}x{cols}) ===")
    for row_idx, row in enumerate(grid):
        debug(f"Row {row_idx}: {' '.join(row)}")
    debug(f"Column order: {list(column_order)}")
    debug(f"Plaintext: {plaintext}")
    debug("=== END DECRYPTION DEBUG ===\n")

    return plaintext


def encrypt_message(plaintext, rows, cols, column_order):
    """
    Inverse of decrypt_with_order: place plaintext row-major so that reading the
    grid with column_order reproduces it, then emit the grid column-major.
    """
    if rows * cols != len(plaintext):
        raise ValueError(
            f"Grid {rows}x{cols} does not match text length {len(plaintext)}"
        )
    validate_column_order(column_order, cols)

    grid = [[""] * cols for _ in range(rows)]
    for row in range(rows):
        for position, col in enumerate(column_order):
            grid[row][col] = plaintext[row * cols + position]

    ciphertext = "".join(grid[row][col] for col in range(cols) for row in range(rows))
    debug(f"Encrypted {rows}x{cols} order={list(column_order)}: {ciphertext}")
    return ciphertext


def pad_plaintext(plaintext, cols, padding_char=PADDING_CHAR):
    """Pad plaintext with padding_char up to a multiple of cols."""
    remainder = len(plaintext) % cols
    if remainder:
        plaintext += padding_char * (cols - remainder)
    return plaintext


def column_order_from_key(column_key):
    """
    Derive the decryption column order from a keyword.

    Letters are ranked alphabetically (ties broken left to right); the rank of
    each key position is the ciphertext column read at that plaintext position.
    """
    indexed_key = [(i, char) for i, char in enumerate(column_key.upper())]
    sorted_indexed_key = sorted(indexed_key, key=lambda x: (x[1], x[0]))

    ranks = [0] * len(column_key)
    for rank, (original_pos, _) in enumerate(sorted_indexed_key):
        ranks[original_pos] = rank
    return ranks


def key_from_column_order(column_order):
    """Return a keyword whose ranking reproduces column_order."""
    cols = len(column_order)
    validate_column_order(column_order, cols)
    if cols > len(ALPHABET):
        raise ValueError(f"Cannot express {cols} columns as a letter key")
    return "".join(ALPHABET[rank] for rank in column_order)
