from __future__ import annotations

from typing import List, Optional


class ExportError(Exception):
    pass


class DataSourceError(ExportError):
    pass


class RateLimitError(DataSourceError):
    pass


class MalformedAmountError(ExportError, ValueError):
    pass


class ChainNotFoundError(ExportError, LookupError):
    pass


class InvalidChainConfigError(ExportError, ValueError):
    pass


class FetchCancelled(ExportError):
    """
    Raised when a fetch was cancelled mid-pagination.

    `transactions` holds everything merged from the records that arrived
    before the cancel signal, so the caller can still export it.
    """

    def __init__(self, transactions: Optional[List] = None) -> None:
        super().__init__("Fetch cancelled")
        self.transactions = list(transactions or [])
