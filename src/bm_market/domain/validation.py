"""Creation-time checks for markets. Raise ValidationError, never ValueError."""

import math
from datetime import datetime
from decimal import Decimal

from src.bm_common.amounts import MAX_BIGINT, MAX_COUPON_BPS, percent_to_bps
from src.bm_common.datetime_utils import ensure_utc
from src.bm_common.errors import ValidationError
from src.bm_common.pubkey import is_valid_pubkey
from src.bm_market.domain.models import NewMarket

MAX_SYMBOL_LENGTH = 16


def _storable_amount(name: str, value: int) -> None:
    if value < 0 or value > MAX_BIGINT:
        raise ValidationError(f"{name} must be between 0 and {MAX_BIGINT}, got {value}")


def build_new_market(
    *,
    issuer: str,
    bond_name: str,
    bond_symbol: str,
    total_supply: int,
    face_value: int,
    current_price: int,
    coupon_rate: float | Decimal | int,
    maturity_date: datetime,
    now: datetime,
    creation_reference: str | None = None,
) -> NewMarket:
    if not is_valid_pubkey(issuer):
        raise ValidationError(f"Invalid issuer public key: {issuer}")
    name = bond_name.strip()
    if not name:
        raise ValidationError("bondName must not be empty")
    symbol = bond_symbol.strip().upper()
    if not symbol or len(symbol) > MAX_SYMBOL_LENGTH or " " in symbol:
        raise ValidationError(
            f"bondSymbol must be 1-{MAX_SYMBOL_LENGTH} characters without spaces"
        )
    _storable_amount("totalSupply", total_supply)
    _storable_amount("faceValue", face_value)
    _storable_amount("currentPrice", current_price)

    if not math.isfinite(coupon_rate) or coupon_rate < 0 or coupon_rate > 100:
        raise ValidationError(f"couponRate must be between 0 and 100, got {coupon_rate}")
    coupon_bps = percent_to_bps(coupon_rate)
    if coupon_bps > MAX_COUPON_BPS:
        raise ValidationError(f"couponRate must be between 0 and 100, got {coupon_rate}")

    maturity = ensure_utc(maturity_date)
    if maturity <= now:
        raise ValidationError("maturityDate must be in the future")

    return NewMarket(
        issuer=issuer,
        bond_name=name,
        bond_symbol=symbol,
        total_supply=total_supply,
        face_value=face_value,
        current_price=current_price,
        coupon_rate_bps=coupon_bps,
        maturity_date=maturity,
        creation_reference=creation_reference,
    )


def check_ledger_addresses(market_account: str, bond_mint: str) -> None:
    if not is_valid_pubkey(market_account):
        raise ValidationError(f"Invalid marketAccount address: {market_account}")
    if not is_valid_pubkey(bond_mint):
        raise ValidationError(f"Invalid bondMint address: {bond_mint}")
    if market_account == bond_mint:
        raise ValidationError("marketAccount and bondMint must be different accounts")
