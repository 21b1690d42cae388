from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from taxexport.config import settings
from taxexport.core.dto import ChainConfig
from taxexport.core.errors import DataSourceError
from taxexport.ports.chain_directory_port import ChainDirectoryPort

logger = logging.getLogger(__name__)


def parse_chainscout(data: Dict[str, Any]) -> List[ChainConfig]:
    """
    Keep only chains with a Blockscout-hosted explorer; their API lives at
    `<explorer url>/api`. Native decimals are not published, 18 is assumed.
    """
    chains: List[ChainConfig] = []
    for chain_id, entry in data.items():
        if not isinstance(entry, dict):
            continue
        explorers = entry.get("explorers") or []
        hosted = next(
            (e for e in explorers if isinstance(e, dict) and e.get("hostedBy") == "blockscout"),
            None,
        )
        if not hosted or not hosted.get("url"):
            continue

        chains.append(
            ChainConfig(
                chain_id=str(chain_id),
                name=str(entry.get("name") or chain_id),
                symbol=entry.get("native_currency") or settings.DEFAULT_NATIVE_SYMBOL,
                decimals=settings.DEFAULT_NATIVE_DECIMALS,
                api_url=str(hosted["url"]).rstrip("/") + "/api",
                logo=str(entry.get("logo") or ""),
            )
        )

    chains.sort(key=lambda c: c.name.lower())
    return chains


class ChainscoutDirectoryAdapter(ChainDirectoryPort):

    def __init__(
        self,
        url: str = settings.CHAINSCOUT_URL,
        timeout_sec: int = settings.CHAINSCOUT_TIMEOUT_SEC,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout_sec
        self._session = session or requests.Session()
        self._cache: Optional[List[ChainConfig]] = None

    def list_chains(self) -> List[ChainConfig]:
        if self._cache is not None:
            return self._cache

        try:
            resp = self._session.get(self._url, timeout=self._timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise DataSourceError(f"Failed to fetch chain list: {e}") from e

        if not isinstance(data, dict):
            raise DataSourceError("Failed to fetch chain list: unexpected payload")

        self._cache = parse_chainscout(data)
        logger.info("Loaded %d Blockscout chain(s)", len(self._cache))
        return self._cache
