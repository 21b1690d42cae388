from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

from taxexport.core.dto import ChainConfig
from taxexport.core.errors import ChainNotFoundError


class ChainDirectoryPort(ABC):

    @abstractmethod
    def list_chains(self) -> List[ChainConfig]:
        raise NotImplementedError

    def get_chain(self, name_or_id: str) -> ChainConfig:
        key = (name_or_id or "").strip().lower()
        chains = self.list_chains()
        for c in chains:
            if c.name.lower() == key:
                return c
        for c in chains:
            if c.chain_id.lower() == key:
                return c
        raise ChainNotFoundError(f'Chain "{name_or_id}" not found')

    def find_chains(self, fragments: Sequence[str]) -> List[ChainConfig]:
        chains = self.list_chains()
        if not fragments:
            return chains
        frags = [f.lower() for f in fragments if f]
        return [c for c in chains if any(f in c.name.lower() for f in frags)]
