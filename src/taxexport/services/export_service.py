from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from taxexport.config import settings
from taxexport.core.dto import ChainConfig, FeedBundle
from taxexport.core.errors import FetchCancelled, MalformedAmountError
from taxexport.core.merger import merge_feeds
from taxexport.core.models import CanonicalTransaction, CsvRow
from taxexport.core.projector import project
from taxexport.core.scam import ScamPredicate
from taxexport.io.csv_writer import serialize_rows
from taxexport.ports.explorer_port import ExplorerPort

logger = logging.getLogger(__name__)

ProgressFn = Callable[[str, dict], None]
ExplorerFactory = Callable[[ChainConfig], ExplorerPort]


def _noop_progress(event: str, data: dict) -> None:
    return None


@dataclass
class ScanResult:
    scanned: int = 0
    active: List[ChainConfig] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


class ExportService:
    """
    Wallet history -> tax CSV for one chain.

    - Fetch: plain, token and internal feeds, page by page, cancellable
    - Merge: one record per transaction hash
    - Project/serialize: fixed 8-column CSV
    """

    def __init__(
        self,
        explorer: ExplorerPort,
        chain: ChainConfig,
        scam_filter: Optional[ScamPredicate] = None,
    ) -> None:
        self.explorer = explorer
        self.chain = chain.validate()
        self.scam_filter = scam_filter

    def fetch_feeds(
        self,
        address: str,
        cancel: Optional[threading.Event] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> FeedBundle:
        progress = on_progress or _noop_progress
        addr = address.lower()
        bundle = FeedBundle()

        feeds = (
            ("normal", self.explorer.iter_normal_txs, bundle.normal),
            ("token", self.explorer.iter_token_txs, bundle.token),
            ("internal", self.explorer.iter_internal_txs, bundle.internal),
        )
        for phase, fetch, sink in feeds:
            if cancel is not None and cancel.is_set():
                break
            progress("fetch", {"phase": phase, "address": addr, "chain": self.chain.name})
            for rec in fetch(addr, cancel=cancel):
                sink.append(rec)
            progress("fetch_done", {"phase": phase, "count": len(sink)})

        bundle.cancelled = cancel is not None and cancel.is_set()
        counts = bundle.counts()
        logger.info(
            "%s: fetched %d txs, %d token txs, %d internal txs%s",
            self.chain.name, counts["normal"], counts["token"], counts["internal"],
            " (cancelled)" if bundle.cancelled else "",
        )
        return bundle

    def merge(self, bundle: FeedBundle, address: str) -> List[CanonicalTransaction]:
        return merge_feeds(
            bundle.normal,
            bundle.internal,
            bundle.token,
            address,
            self.chain,
            scam_filter=self.scam_filter,
        )

    def fetch(
        self,
        address: str,
        cancel: Optional[threading.Event] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> List[CanonicalTransaction]:
        """
        Fetch and merge. When cancelled, raises FetchCancelled carrying the
        transactions merged from whatever arrived before the signal.
        """
        progress = on_progress or _noop_progress
        bundle = self.fetch_feeds(address, cancel=cancel, on_progress=progress)
        txs = self.merge(bundle, address)
        progress("merge", {"transactions": len(txs), **bundle.counts()})

        if bundle.cancelled:
            raise FetchCancelled(txs)
        return txs

    def to_rows(
        self,
        transactions: Sequence[CanonicalTransaction],
        address: str,
        strict: bool = True,
    ) -> List[CsvRow]:
        """
        strict=False drops a transaction whose amounts cannot be parsed
        (all of its rows, never a partial set) instead of failing the export.
        """
        addr = address.lower()
        rows: List[CsvRow] = []
        for tx in transactions:
            try:
                tx_rows = project(tx, addr, self.chain)
            except MalformedAmountError as e:
                if strict:
                    raise
                logger.warning("Skipping %s: %s", tx.tx_hash, e)
                continue
            rows.extend(tx_rows)
        return rows

    def export_csv(
        self,
        transactions: Sequence[CanonicalTransaction],
        address: str,
        strict: bool = True,
    ) -> str:
        return serialize_rows(self.to_rows(transactions, address, strict=strict))


def scan_activity(
    chains: Sequence[ChainConfig],
    address: str,
    explorer_factory: ExplorerFactory,
    batch_size: int = settings.SCAN_BATCH_SIZE,
    batch_delay_sec: float = settings.SCAN_BATCH_DELAY_SEC,
) -> ScanResult:
    """
    Ask each chain's explorer whether the address has any transaction.
    Chains are checked `batch_size` at a time; per-chain failures are
    collected, not raised.
    """
    result = ScanResult(scanned=len(chains))
    addr = address.lower()
    step = max(batch_size, 1)

    def _check(chain: ChainConfig) -> bool:
        return explorer_factory(chain).has_activity(addr)

    with ThreadPoolExecutor(max_workers=step) as pool:
        for start in range(0, len(chains), step):
            batch = list(chains[start:start + step])
            futures = [(c, pool.submit(_check, c)) for c in batch]
            for chain, fut in futures:
                try:
                    if fut.result():
                        result.active.append(chain)
                except Exception as e:
                    logger.warning("Scan failed on %s: %s", chain.name, e)
                    result.errors[chain.name] = str(e)

            if start + step < len(chains) and batch_delay_sec > 0:
                time.sleep(batch_delay_sec)

    return result
