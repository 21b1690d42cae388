from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple


class Direction(str, Enum):
    IN = "in"
    OUT = "out"


class Tag(str, Enum):
    TRANSFER = "Transfer"
    TRADE = "Trade"
    APPROVAL = "Approval"
    WRAP = "Wrap"
    CONTRACT = "Contract"
    FAILED = "Failed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ValueMovement:
    """
    One directional, single-asset transfer inside a transaction.

    raw_amount is in the asset's smallest unit and is always > 0;
    zero-value transfers are dropped before a movement is built.
    """

    direction: Direction
    raw_amount: int
    currency: str
    decimals: int


@dataclass(frozen=True)
class CanonicalTransaction:
    """
    One on-chain transaction as seen from the queried wallet, after the
    plain, internal and token feeds have been folded together.
    """

    tx_hash: str
    timestamp: int
    from_address: str
    to_address: str
    is_error: bool = False
    gas_price: str = "0"
    gas_used: str = "0"
    function_name: str = ""
    input: str = "0x"
    movements: Tuple[ValueMovement, ...] = ()
    # first unparseable amount seen while merging; projection raises on it
    malformed_amount: str = ""

    @property
    def inbound(self) -> List[ValueMovement]:
        return [m for m in self.movements if m.direction is Direction.IN]

    @property
    def outbound(self) -> List[ValueMovement]:
        return [m for m in self.movements if m.direction is Direction.OUT]


@dataclass(frozen=True)
class CsvRow:
    # Empty string = field not applicable to this row
    date: str
    received_amount: str = ""
    received_currency: str = ""
    sent_amount: str = ""
    sent_currency: str = ""
    fee_amount: str = "0"
    fee_currency: str = ""
    tag: str = ""

    def fields(self) -> List[str]:
        return [
            self.date,
            self.received_amount,
            self.received_currency,
            self.sent_amount,
            self.sent_currency,
            self.fee_amount,
            self.fee_currency,
            self.tag,
        ]


@dataclass
class ExportConfig:
    """
    User input / run configuration for one export.
    """

    address: str
    chain_name: str
    out_dir: str = "out"
    strict: bool = True
    write_summary: bool = False
