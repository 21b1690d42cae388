from __future__ import annotations

import re
from typing import Callable, Optional, Pattern, Union

# Promotional / phishing token heuristics: "$" prefix, giveaway words,
# or a domain-looking suffix in the symbol or name.
DEFAULT_SCAM_PATTERN = r"^\$|airdrop|\.com|\.io|\.org|\.net|claim|reward|visit"

ScamPredicate = Callable[[str, str], bool]


class ScamFilter:
    """
    Best-effort denylist for token transfers. Not a security boundary:
    false positives and negatives are accepted.
    """

    def __init__(self, pattern: Union[str, Pattern[str]] = DEFAULT_SCAM_PATTERN) -> None:
        if isinstance(pattern, str):
            pattern = re.compile(pattern, re.IGNORECASE)
        self._pattern = pattern

    def is_scam(self, symbol: Optional[str], name: Optional[str]) -> bool:
        return bool(
            self._pattern.search(symbol or "")
            or self._pattern.search(name or "")
        )

    def __call__(self, symbol: Optional[str], name: Optional[str]) -> bool:
        return self.is_scam(symbol, name)


def no_filter(symbol: Optional[str], name: Optional[str]) -> bool:
    return False
