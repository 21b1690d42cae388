from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from taxexport.core.errors import InvalidChainConfigError


def _s(val: Any) -> str:
    return "" if val is None else str(val)


def _addr(val: Any) -> str:
    return _s(val).lower()


def _ts(val: Any) -> int:
    try:
        return int(val)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class RawNormalTx:
    tx_hash: str
    timestamp: int
    from_address: str
    to_address: str
    value: str              # native value in base units (raw)
    gas_price: str = "0"
    gas_used: str = "0"
    is_error: bool = False
    function_name: str = ""
    input: str = "0x"

    @classmethod
    def from_api(cls, r: Dict[str, Any]) -> "RawNormalTx":
        return cls(
            tx_hash=_s(r.get("hash")),
            timestamp=_ts(r.get("timeStamp")),
            from_address=_addr(r.get("from")),
            to_address=_addr(r.get("to")),
            value=_s(r.get("value")),
            gas_price=_s(r.get("gasPrice")),
            gas_used=_s(r.get("gasUsed")),
            is_error=_s(r.get("isError")) == "1",
            function_name=_s(r.get("functionName")),
            input=_s(r.get("input")) or "0x",
        )


@dataclass(frozen=True)
class RawInternalTx:
    tx_hash: str
    timestamp: int
    from_address: str
    to_address: str
    value: str
    is_error: bool = False

    @classmethod
    def from_api(cls, r: Dict[str, Any]) -> "RawInternalTx":
        return cls(
            tx_hash=_s(r.get("hash")),
            timestamp=_ts(r.get("timeStamp")),
            from_address=_addr(r.get("from")),
            to_address=_addr(r.get("to")),
            value=_s(r.get("value")),
            is_error=_s(r.get("isError")) == "1",
        )


@dataclass(frozen=True)
class RawTokenTx:
    tx_hash: str
    timestamp: int
    from_address: str
    to_address: str
    value: str              # token amount in raw units (before decimals)
    token_symbol: str = ""
    token_name: str = ""
    token_decimal: str = ""
    contract_address: str = ""

    @classmethod
    def from_api(cls, r: Dict[str, Any]) -> "RawTokenTx":
        return cls(
            tx_hash=_s(r.get("hash")),
            timestamp=_ts(r.get("timeStamp")),
            from_address=_addr(r.get("from")),
            to_address=_addr(r.get("to")),
            value=_s(r.get("value")),
            token_symbol=_s(r.get("tokenSymbol")),
            token_name=_s(r.get("tokenName")),
            token_decimal=_s(r.get("tokenDecimal")),
            contract_address=_addr(r.get("contractAddress")),
        )


@dataclass(frozen=True)
class ChainConfig:
    chain_id: str
    name: str
    symbol: Optional[str]
    decimals: Optional[int]
    api_url: str = ""
    logo: str = ""

    def validate(self) -> "ChainConfig":
        if not self.symbol:
            raise InvalidChainConfigError(f"Chain {self.name!r} has no native symbol")
        if self.decimals is None or int(self.decimals) < 0:
            raise InvalidChainConfigError(f"Chain {self.name!r} has no native decimals")
        return self


@dataclass
class FeedBundle:
    normal: List[RawNormalTx] = field(default_factory=list)
    internal: List[RawInternalTx] = field(default_factory=list)
    token: List[RawTokenTx] = field(default_factory=list)
    cancelled: bool = False

    def counts(self) -> Dict[str, int]:
        return {
            "normal": len(self.normal),
            "internal": len(self.internal),
            "token": len(self.token),
        }
