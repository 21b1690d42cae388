from __future__ import annotations

import datetime as dt
import re
from typing import Iterable, Optional

from taxexport.core.dto import ChainConfig
from taxexport.core.models import CanonicalTransaction, CsvRow
from taxexport.core.projector import transactions_to_rows

CSV_HEADER = (
    "Date,Received Quantity,Received Currency,Sent Quantity,"
    "Sent Currency,Fee Amount,Fee Currency,Notes"
)

_FORMULA_PREFIXES = ("=", "+", "-", "@")


def escape_field(value: str) -> str:
    if not value:
        return ""
    # tabs / CRs break naive row splitting
    value = value.replace("\t", " ").replace("\r", " ")
    if value[0] in _FORMULA_PREFIXES:
        value = "'" + value
    if "," in value or '"' in value or "\n" in value:
        value = '"' + value.replace('"', '""') + '"'
    return value


def serialize_rows(rows: Iterable[CsvRow]) -> str:
    lines = [CSV_HEADER]
    for r in rows:
        lines.append(",".join(escape_field(f) for f in r.fields()))
    return "\n".join(lines)


def to_tax_csv(
    transactions: Iterable[CanonicalTransaction],
    chain: ChainConfig,
    address: str,
) -> str:
    return serialize_rows(transactions_to_rows(transactions, chain, address))


def export_filename(chain: ChainConfig, address: str, today: Optional[dt.date] = None) -> str:
    day = today or dt.datetime.now(dt.timezone.utc).date()
    safe_name = re.sub(r"[^a-zA-Z0-9_-]", "_", chain.name)
    return f"{safe_name}_{address[:8]}_{day.strftime('%Y%m%d')}.csv"
