from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from taxexport.core.dto import RawInternalTx, RawNormalTx, RawTokenTx


class ExplorerPort(ABC):
    """
    Abstract Class for fetching one wallet's transaction feeds on one chain.

    Iterators stop before requesting the next page once `cancel` is set;
    records already yielded stay valid.
    """

    # --- top-level transactions ---

    @abstractmethod
    def iter_normal_txs(
        self,
        address: str,
        cancel: Optional[threading.Event] = None,
    ) -> Iterable[RawNormalTx]:
        raise NotImplementedError

    # --- contract-triggered native transfers ---

    @abstractmethod
    def iter_internal_txs(
        self,
        address: str,
        cancel: Optional[threading.Event] = None,
    ) -> Iterable[RawInternalTx]:
        raise NotImplementedError

    # --- token Transfer events ---

    @abstractmethod
    def iter_token_txs(
        self,
        address: str,
        cancel: Optional[threading.Event] = None,
    ) -> Iterable[RawTokenTx]:
        raise NotImplementedError

    # --- any activity at all ---

    @abstractmethod
    def has_activity(self, address: str) -> bool:
        raise NotImplementedError
