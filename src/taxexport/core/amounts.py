from __future__ import annotations

from decimal import Decimal
from typing import Any, Union

from taxexport.core.errors import MalformedAmountError


def parse_raw_amount(value: Any) -> int:
    """
    Parse a base-unit integer as reported by the explorer.

    Empty/None means zero. Anything that is not a plain non-negative base-10
    integer raises MalformedAmountError instead of being coerced to zero.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise MalformedAmountError(f"Invalid raw amount: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise MalformedAmountError(f"Negative raw amount: {value}")
        return value

    s = str(value).strip()
    if not s:
        return 0
    if not s.isdigit() or not s.isascii():
        raise MalformedAmountError(f"Invalid raw amount: {value!r}")
    return int(s)


def to_decimal_string(raw: Union[int, str], decimals: int) -> str:
    amount = parse_raw_amount(raw)
    if amount == 0:
        return "0"
    if decimals < 0:
        raise ValueError("decimals must be >= 0")

    whole, remainder = divmod(amount, 10 ** decimals)
    if remainder == 0:
        return str(whole)

    frac = str(remainder).rjust(decimals, "0").rstrip("0")
    return f"{whole}.{frac}"


def compute_fee(gas_price: Union[int, str, None], gas_used: Union[int, str, None], native_decimals: int) -> str:
    if not gas_price or not gas_used:
        return "0"
    fee = parse_raw_amount(gas_price) * parse_raw_amount(gas_used)
    return to_decimal_string(fee, native_decimals)


def to_decimal(amount: str) -> Decimal:
    # exact; empty means "not applicable" and counts as zero
    return Decimal(amount) if amount else Decimal("0")
