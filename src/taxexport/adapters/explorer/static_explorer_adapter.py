from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, TypeVar

from taxexport.core.dto import RawInternalTx, RawNormalTx, RawTokenTx
from taxexport.ports.explorer_port import ExplorerPort

T = TypeVar("T")


class StaticExplorerAdapter(ExplorerPort):
    """
    In-memory feeds (dev/testing). `page_size` splits each feed into pages
    so that cancellation between pages behaves like the HTTP adapter.
    """

    def __init__(self,
                 normal_txs: Optional[List[RawNormalTx]] = None,
                 internal_txs: Optional[List[RawInternalTx]] = None,
                 token_txs: Optional[List[RawTokenTx]] = None,
                 page_size: int = 0,
                 ):
        self._normal = normal_txs or []
        self._internal = internal_txs or []
        self._token = token_txs or []
        self._page_size = page_size

    @classmethod
    def from_json_file(cls, path: str) -> "StaticExplorerAdapter":
        """
        Load raw explorer responses saved as
        {"txlist": [...], "txlistinternal": [...], "tokentx": [...]}.
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(
            normal_txs=[RawNormalTx.from_api(r) for r in data.get("txlist") or []],
            internal_txs=[RawInternalTx.from_api(r) for r in data.get("txlistinternal") or []],
            token_txs=[RawTokenTx.from_api(r) for r in data.get("tokentx") or []],
        )

    def _paged(self, items: Sequence[T], address: str, cancel: Optional[threading.Event]) -> Iterator[T]:
        ad = address.lower()
        mine = [
            t for t in items
            if t.from_address.lower() == ad or t.to_address.lower() == ad
        ]
        size = self._page_size or max(len(mine), 1)
        for start in range(0, len(mine), size):
            if cancel is not None and cancel.is_set():
                return
            yield from mine[start:start + size]

    def iter_normal_txs(self, address, cancel=None) -> Iterable[RawNormalTx]:
        return self._paged(self._normal, address, cancel)

    def iter_internal_txs(self, address, cancel=None) -> Iterable[RawInternalTx]:
        return self._paged(self._internal, address, cancel)

    def iter_token_txs(self, address, cancel=None) -> Iterable[RawTokenTx]:
        return self._paged(self._token, address, cancel)

    def has_activity(self, address):
        ad = address.lower()
        return any(t.from_address.lower() == ad or t.to_address.lower() == ad for t in self._normal)
