"""Checks applied before a trade intent is recorded."""

from src.bm_common.amounts import MAX_BIGINT, total_amount
from src.bm_common.errors import ValidationError
from src.bm_common.pubkey import is_valid_pubkey

MAX_REFERENCE_LENGTH = 128


def check_intent(
    *,
    buyer: str,
    seller: str | None,
    bond_quantity: int,
    price_per_bond: int,
    settlement_reference: str,
) -> None:
    if not is_valid_pubkey(buyer):
        raise ValidationError(f"Invalid buyer public key: {buyer}")
    if seller is not None and not is_valid_pubkey(seller):
        raise ValidationError(f"Invalid seller public key: {seller}")
    if bond_quantity <= 0:
        raise ValidationError(f"bondQuantity must be positive, got {bond_quantity}")
    if price_per_bond <= 0:
        raise ValidationError(f"pricePerBond must be positive, got {price_per_bond}")
    if total_amount(bond_quantity, price_per_bond) > MAX_BIGINT:
        raise ValidationError(
            f"bondQuantity x pricePerBond exceeds the largest storable amount ({MAX_BIGINT})"
        )
    ref = settlement_reference
    if not ref or ref != ref.strip() or " " in ref or len(ref) > MAX_REFERENCE_LENGTH:
        raise ValidationError(
            f"settlementReference must be 1-{MAX_REFERENCE_LENGTH} characters without whitespace"
        )


def check_block_number(block_number: int | None) -> None:
    if block_number is not None and not 0 <= block_number <= MAX_BIGINT:
        raise ValidationError(f"blockNumber must be between 0 and {MAX_BIGINT}, got {block_number}")
