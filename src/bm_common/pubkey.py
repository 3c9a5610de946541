"""Ledger address validation.

Solana account addresses and signatures are base58 (Bitcoin alphabet) encodings
of fixed-size byte strings: 32 bytes for public keys, 64 bytes for signatures.
"""

import base58

PUBKEY_LENGTH = 32
SIGNATURE_LENGTH = 64


def b58decode(value: str) -> bytes:
    """Decode a base58 string. Raises ValueError on anything outside the alphabet."""
    # base58 strips trailing whitespace itself; an address never carries any
    if value != value.strip():
        raise ValueError("Invalid base58 string: surrounding whitespace")
    try:
        return base58.b58decode(value)
    except ValueError as exc:
        raise ValueError(f"Invalid base58 string: {exc}") from exc


def b58encode(raw: bytes) -> str:
    return base58.b58encode(raw).decode("ascii")


def _decodes_to(value: object, length: int) -> bool:
    if not isinstance(value, str) or not value or len(value) > 2 * length:
        return False
    try:
        return len(b58decode(value)) == length
    except ValueError:
        return False


def is_valid_pubkey(value: object) -> bool:
    """True when value is a base58 string decoding to exactly 32 bytes."""
    return _decodes_to(value, PUBKEY_LENGTH)


def is_valid_signature(value: object) -> bool:
    """True when value is a base58 string decoding to exactly 64 bytes."""
    return _decodes_to(value, SIGNATURE_LENGTH)
