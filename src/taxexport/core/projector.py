from __future__ import annotations

import datetime as dt
from typing import Iterable, List

from taxexport.core.amounts import compute_fee, to_decimal_string
from taxexport.core.classifier import classify
from taxexport.core.dto import ChainConfig
from taxexport.core.errors import MalformedAmountError
from taxexport.core.models import CanonicalTransaction, CsvRow


def format_date(timestamp: int) -> str:
    # M/D/YY H:MM in UTC, only minutes zero-padded
    d = dt.datetime.fromtimestamp(int(timestamp), tz=dt.timezone.utc)
    return f"{d.month}/{d.day}/{d.year % 100:02d} {d.hour}:{d.minute:02d}"


def project(tx: CanonicalTransaction, wallet_address: str, chain: ChainConfig) -> List[CsvRow]:
    """
    Expand one transaction into CSV rows.

    Inbound and outbound movements are paired by index (first in with
    first out), giving max(len(ins), len(outs)) rows. The gas fee is only
    charged when the wallet sent the transaction, and only on row 0.
    """
    chain.validate()
    if tx.malformed_amount:
        raise MalformedAmountError(f"{tx.tx_hash}: {tx.malformed_amount}")
    tag = str(classify(tx))
    date = format_date(tx.timestamp)
    is_sender = tx.from_address == wallet_address.lower()
    fee = compute_fee(tx.gas_price, tx.gas_used, int(chain.decimals)) if is_sender else "0"
    fee_currency = str(chain.symbol) if is_sender else ""

    if not tx.movements:
        return [
            CsvRow(
                date=date,
                fee_amount=fee,
                fee_currency=fee_currency,
                tag=tag,
            )
        ]

    ins = tx.inbound
    outs = tx.outbound
    rows: List[CsvRow] = []

    for i in range(max(len(ins), len(outs), 1)):
        in_mv = ins[i] if i < len(ins) else None
        out_mv = outs[i] if i < len(outs) else None
        rows.append(
            CsvRow(
                date=date,
                received_amount=to_decimal_string(in_mv.raw_amount, in_mv.decimals) if in_mv else "",
                received_currency=in_mv.currency if in_mv else "",
                sent_amount=to_decimal_string(out_mv.raw_amount, out_mv.decimals) if out_mv else "",
                sent_currency=out_mv.currency if out_mv else "",
                fee_amount=fee if i == 0 else "0",
                fee_currency=fee_currency if i == 0 else "",
                tag=tag,
            )
        )

    return rows


def transactions_to_rows(
    transactions: Iterable[CanonicalTransaction],
    chain: ChainConfig,
    address: str,
) -> List[CsvRow]:
    addr = address.lower()
    rows: List[CsvRow] = []
    for tx in transactions:
        rows.extend(project(tx, addr, chain))
    return rows
