from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from taxexport.core.dto import ChainConfig, RawInternalTx, RawNormalTx, RawTokenTx
from taxexport.core.errors import MalformedAmountError
from taxexport.core.models import CanonicalTransaction, ValueMovement
from taxexport.core.normalizer import FeedNormalizer
from taxexport.core.scam import ScamPredicate


@dataclass
class _TxBuilder:
    tx_hash: str
    timestamp: int
    from_address: str
    to_address: str
    is_error: bool = False
    gas_price: str = "0"
    gas_used: str = "0"
    function_name: str = ""
    input: str = "0x"
    movements: List[ValueMovement] = field(default_factory=list)
    malformed_amount: str = ""

    def mark_malformed(self, err: MalformedAmountError) -> None:
        if not self.malformed_amount:
            self.malformed_amount = str(err)

    def freeze(self) -> CanonicalTransaction:
        return CanonicalTransaction(
            tx_hash=self.tx_hash,
            timestamp=self.timestamp,
            from_address=self.from_address,
            to_address=self.to_address,
            is_error=self.is_error,
            gas_price=self.gas_price,
            gas_used=self.gas_used,
            function_name=self.function_name,
            input=self.input,
            movements=tuple(self.movements),
            malformed_amount=self.malformed_amount,
        )


def merge_feeds(
    normal: Iterable[RawNormalTx],
    internal: Iterable[RawInternalTx],
    token: Iterable[RawTokenTx],
    address: str,
    chain: ChainConfig,
    scam_filter: Optional[ScamPredicate] = None,
) -> List[CanonicalTransaction]:
    """
    Fold the three explorer feeds into one record per transaction hash.

    Fold order is plain -> internal -> token; it fixes the order of
    movements inside a transaction, which swap pairing relies on.
    Any subset of records is accepted, including none at all.
    Result is sorted newest first; ties keep first-seen order.
    An unparseable amount marks its transaction instead of failing the
    merge; projecting that transaction raises MalformedAmountError.
    """
    norm = FeedNormalizer(address, chain, scam_filter=scam_filter)
    by_hash: Dict[str, _TxBuilder] = {}

    # Plain transactions carry the full metadata
    for tx in normal:
        key = tx.tx_hash.lower()
        b = _TxBuilder(
            tx_hash=key,
            timestamp=tx.timestamp,
            from_address=tx.from_address.lower(),
            to_address=(tx.to_address or "").lower(),
            is_error=tx.is_error,
            gas_price=tx.gas_price,
            gas_used=tx.gas_used,
            function_name=tx.function_name or "",
            input=tx.input or "0x",
        )
        try:
            mv = norm.normal_movement(tx)
        except MalformedAmountError as e:
            b.mark_malformed(e)
            mv = None
        if mv is not None:
            b.movements.append(mv)
        # overlapping pages repeat records; last one wins
        by_hash[key] = b

    # Internal transfers: native payouts triggered by contract execution
    for itx in internal:
        try:
            mv = norm.internal_movement(itx)
        except MalformedAmountError as e:
            _get_or_create(by_hash, itx.tx_hash, itx.timestamp, itx.from_address, itx.to_address).mark_malformed(e)
            continue
        if mv is None:
            continue
        _get_or_create(by_hash, itx.tx_hash, itx.timestamp, itx.from_address, itx.to_address).movements.append(mv)

    # Token transfers (scam filter applied by the normalizer)
    for ttx in token:
        try:
            mv = norm.token_movement(ttx)
        except MalformedAmountError as e:
            _get_or_create(by_hash, ttx.tx_hash, ttx.timestamp, ttx.from_address, ttx.to_address).mark_malformed(e)
            continue
        if mv is None:
            continue
        _get_or_create(by_hash, ttx.tx_hash, ttx.timestamp, ttx.from_address, ttx.to_address).movements.append(mv)

    merged = [b.freeze() for b in by_hash.values()]
    merged.sort(key=lambda t: t.timestamp, reverse=True)
    return merged


def _get_or_create(
    by_hash: Dict[str, _TxBuilder],
    tx_hash: str,
    timestamp: int,
    from_address: str,
    to_address: str,
) -> _TxBuilder:
    key = tx_hash.lower()
    b = by_hash.get(key)
    if b is None:
        # no top-level record seen: no gas/function metadata available
        b = _TxBuilder(
            tx_hash=key,
            timestamp=timestamp,
            from_address=(from_address or "").lower(),
            to_address=(to_address or "").lower(),
        )
        by_hash[key] = b
    return b
