from __future__ import annotations

from taxexport.core.models import CanonicalTransaction, Direction, Tag


def classify(tx: CanonicalTransaction) -> Tag:
    """
    Map a merged transaction to exactly one tax tag. First matching rule wins.

    Function-name hints beat inferred direction, except that a transaction
    moving value both in and out is always a Trade: swaps are often routed
    through proxies with opaque method names.
    """
    if tx.is_error:
        return Tag.FAILED

    fn = (tx.function_name or "").lower()
    has_in = any(m.direction is Direction.IN for m in tx.movements)
    has_out = any(m.direction is Direction.OUT for m in tx.movements)

    if "approve" in fn:
        return Tag.APPROVAL
    if "wrap" in fn:
        # also covers "unwrap"
        return Tag.WRAP
    if "swap" in fn or (has_in and has_out):
        return Tag.TRADE

    if tx.input == "0x" and tx.movements:
        return Tag.TRANSFER
    if has_in != has_out:
        return Tag.TRANSFER

    if not tx.movements and tx.input != "0x":
        return Tag.CONTRACT

    return Tag.TRANSFER
