from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, Iterator, Optional

import requests

from taxexport.adapters.explorer.rate_limiter import SimpleRateLimiter, backoff_sleep
from taxexport.config import settings
from taxexport.core.dto import ChainConfig, RawInternalTx, RawNormalTx, RawTokenTx
from taxexport.core.errors import DataSourceError, RateLimitError
from taxexport.ports.explorer_port import ExplorerPort

logger = logging.getLogger(__name__)


class BlockscoutExplorerAdapter(ExplorerPort):
    """
    Etherscan-compatible account API exposed by Blockscout instances
    (`<explorer>/api?module=account&action=...`).
    """

    def __init__(
        self,
        chain: ChainConfig,
        page_size: int = settings.BLOCKSCOUT_PAGE_SIZE,
        requests_per_sec: float = settings.BLOCKSCOUT_REQUESTS_PER_SEC,
        timeout_sec: int = settings.BLOCKSCOUT_TIMEOUT_SEC,
        max_retries: int = settings.BLOCKSCOUT_MAX_RETRIES,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not chain.api_url:
            raise DataSourceError(f"Chain {chain.name!r} has no explorer API URL")
        self._chain = chain
        self._base_url = chain.api_url
        self._page_size = page_size
        self._timeout = timeout_sec
        self._max_retries = max_retries

        self._rl = SimpleRateLimiter(requests_per_sec)
        self._session = session or requests.Session()

    # ---------- internal ----------

    def _call(self, params: Dict[str, Any]) -> Dict[str, Any]:
        last_err: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                self._rl.wait()
                resp = self._session.get(
                    self._base_url,
                    params=params,
                    timeout=self._timeout,
                )
                resp.raise_for_status()
                data = resp.json()
                if not isinstance(data, dict):
                    raise DataSourceError(f"Invalid Blockscout response: {data!r}")

                status = str(data.get("status", "1"))
                message = str(data.get("message", "OK"))

                if status == "0" and "rate" in message.lower():
                    last_err = RateLimitError(message)
                    logger.warning("%s rate limited (attempt %d): %s", self._chain.name, attempt + 1, message)
                    backoff_sleep(attempt, rate_limited=True)
                    continue

                return data

            except (requests.RequestException, ValueError, DataSourceError) as e:
                last_err = e
                logger.warning("%s request failed (attempt %d): %s", self._chain.name, attempt + 1, e)
                backoff_sleep(attempt)

        raise DataSourceError(f"Blockscout API error on {self._chain.name} after retries: {last_err}")

    def _iter_pages(
        self,
        action: str,
        address: str,
        cancel: Optional[threading.Event],
    ) -> Iterator[Dict[str, Any]]:
        page = 1
        while True:
            if cancel is not None and cancel.is_set():
                logger.info("%s %s: cancelled before page %d", self._chain.name, action, page)
                break

            data = self._call({
                "module": "account",
                "action": action,
                "address": address.lower(),
                "page": page,
                "offset": self._page_size,
                "sort": "desc",
            })

            rows = data.get("result")
            # status "0" also means "No transactions found"
            if str(data.get("status")) != "1" or not isinstance(rows, list):
                break

            logger.debug("%s %s page %d: %d row(s)", self._chain.name, action, page, len(rows))
            for r in rows:
                if isinstance(r, dict):
                    yield r

            if len(rows) < self._page_size:
                break
            page += 1

    # ---------- port methods ----------

    def iter_normal_txs(
        self,
        address: str,
        cancel: Optional[threading.Event] = None,
    ) -> Iterable[RawNormalTx]:
        for r in self._iter_pages("txlist", address, cancel):
            yield RawNormalTx.from_api(r)

    def iter_internal_txs(
        self,
        address: str,
        cancel: Optional[threading.Event] = None,
    ) -> Iterable[RawInternalTx]:
        for r in self._iter_pages("txlistinternal", address, cancel):
            yield RawInternalTx.from_api(r)

    def iter_token_txs(
        self,
        address: str,
        cancel: Optional[threading.Event] = None,
    ) -> Iterable[RawTokenTx]:
        for r in self._iter_pages("tokentx", address, cancel):
            yield RawTokenTx.from_api(r)

    def has_activity(self, address: str) -> bool:
        data = self._call({
            "module": "account",
            "action": "txlist",
            "address": address.lower(),
            "page": 1,
            "offset": 1,
            "sort": "desc",
        })
        rows = data.get("result")
        return str(data.get("status")) == "1" and isinstance(rows, list) and len(rows) > 0
