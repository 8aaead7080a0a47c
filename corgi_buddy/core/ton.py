# corgi_buddy/core/ton.py
"""
TON address validation and token amount conversion.

Amounts are carried as integer base units everywhere below the API layer;
coins only appear as `Decimal` at the edges.
"""
from __future__ import annotations

import re
from decimal import ROUND_DOWN, Decimal
from typing import Dict, Union

RAW_ADDRESS_RE = re.compile(r"^[0-9a-fA-F]{64}$")
FRIENDLY_ADDRESS_RE = re.compile(r"^[A-Za-z0-9+/\-_]{48}$")
USER_FRIENDLY_ADDRESS_RE = re.compile(r"^(EQ|UQ)[A-Za-z0-9+/\-_]{46}$")


def normalize_address(address: str) -> str:
    return (address or "").strip()


def is_valid_ton_address(address: str) -> bool:
    candidate = normalize_address(address)
    if not candidate:
        return False
    return bool(
        RAW_ADDRESS_RE.match(candidate)
        or USER_FRIENDLY_ADDRESS_RE.match(candidate)
        or FRIENDLY_ADDRESS_RE.match(candidate)
    )


def coins_to_base_units(coins: Union[Decimal, int, str], decimals: int) -> int:
    value = Decimal(str(coins))
    scaled = (value * (Decimal(10) ** decimals)).quantize(Decimal(1), rounding=ROUND_DOWN)
    return int(scaled)


def base_units_to_coins(amount: int, decimals: int) -> Decimal:
    return Decimal(int(amount)) / (Decimal(10) ** decimals)


def format_coins(amount: int, decimals: int) -> str:
    coins = base_units_to_coins(amount, decimals).normalize()
    # normalize() may produce exponent notation for whole numbers
    return format(coins, "f")


def build_ton_transfer(to_address: str, amount: int, memo: str) -> Dict[str, str]:
    """Parameters the Mini App passes to TON Connect for client-side signing."""
    return {
        "to": normalize_address(to_address),
        "amount": str(int(amount)),
        "payload": memo,
    }
