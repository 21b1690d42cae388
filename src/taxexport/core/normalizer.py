from __future__ import annotations

from typing import Optional

from taxexport.config import settings
from taxexport.core.amounts import parse_raw_amount
from taxexport.core.dto import ChainConfig, RawInternalTx, RawNormalTx, RawTokenTx
from taxexport.core.models import Direction, ValueMovement
from taxexport.core.scam import ScamFilter, ScamPredicate


class FeedNormalizer:
    """
    Turns one raw feed record into at most one ValueMovement, seen from
    the queried address.
    """

    def __init__(
        self,
        address: str,
        chain: ChainConfig,
        scam_filter: Optional[ScamPredicate] = None,
    ) -> None:
        chain.validate()
        self.address = address.lower()
        self.chain = chain
        self.is_scam = scam_filter if scam_filter is not None else ScamFilter()

    def _direction(self, from_address: str) -> Direction:
        return Direction.OUT if (from_address or "").lower() == self.address else Direction.IN

    def _native(self, from_address: str, value: str) -> Optional[ValueMovement]:
        amount = parse_raw_amount(value)
        if amount == 0:
            return None
        return ValueMovement(
            direction=self._direction(from_address),
            raw_amount=amount,
            currency=str(self.chain.symbol),
            decimals=int(self.chain.decimals),
        )

    def normal_movement(self, tx: RawNormalTx) -> Optional[ValueMovement]:
        return self._native(tx.from_address, tx.value)

    def internal_movement(self, tx: RawInternalTx) -> Optional[ValueMovement]:
        # reverted internal calls moved nothing
        if tx.is_error:
            return None
        return self._native(tx.from_address, tx.value)

    def token_movement(self, tx: RawTokenTx) -> Optional[ValueMovement]:
        if self.is_scam(tx.token_symbol, tx.token_name):
            return None
        amount = parse_raw_amount(tx.value)
        if amount == 0:
            return None
        return ValueMovement(
            direction=self._direction(tx.from_address),
            raw_amount=amount,
            currency=tx.token_symbol,
            decimals=token_decimals(tx.token_decimal),
        )


def token_decimals(raw: str) -> int:
    s = (raw or "").strip()
    if s.isdigit():
        return int(s)
    return settings.DEFAULT_TOKEN_DECIMALS
