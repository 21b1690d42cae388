from __future__ import annotations

import json
from pathlib import Path
from typing import List

from taxexport.core.models import CanonicalTransaction, CsvRow
from taxexport.io.schemas import export_summary


def write_csv(text: str, out_dir: str, filename: str) -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    # newline="" keeps the "\n" separators as-is on every platform
    with out_path.open("w", encoding="utf-8", newline="") as f:
        f.write(text)

    return str(out_path)


def write_summary_json(
    transactions: List[CanonicalTransaction],
    rows: List[CsvRow],
    out_dir: str,
    filename: str = "summary.json",
) -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(export_summary(transactions, rows), f, indent=2)

    return str(out_path)
