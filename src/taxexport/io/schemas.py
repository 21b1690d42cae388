from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List

from taxexport.core.amounts import to_decimal_string
from taxexport.core.classifier import classify
from taxexport.core.models import CanonicalTransaction, CsvRow


def transaction_to_dict(tx: CanonicalTransaction) -> Dict[str, Any]:
    # amounts stay strings for JSON precision safety
    return {
        "hash": tx.tx_hash,
        "timestamp": tx.timestamp,
        "from": tx.from_address,
        "to": tx.to_address,
        "is_error": tx.is_error,
        "gas_price": tx.gas_price,
        "gas_used": tx.gas_used,
        "function_name": tx.function_name,
        "input": tx.input,
        "tag": str(classify(tx)),
        "movements": [
            {
                "direction": m.direction.value,
                "raw_amount": str(m.raw_amount),
                "amount": to_decimal_string(m.raw_amount, m.decimals),
                "currency": m.currency,
                "decimals": m.decimals,
            }
            for m in tx.movements
        ],
    }


def tag_breakdown(rows: Iterable[CsvRow]) -> Dict[str, int]:
    return dict(Counter(r.tag for r in rows))


def export_summary(
    transactions: List[CanonicalTransaction],
    rows: List[CsvRow],
) -> Dict[str, Any]:
    return {
        "transaction_count": len(transactions),
        "row_count": len(rows),
        "tags": tag_breakdown(rows),
        "transactions": [transaction_to_dict(t) for t in transactions],
    }
