from taxexport.core.dto import ChainConfig
from taxexport.ports.chain_directory_port import ChainDirectoryPort
from typing import List, Optional


class StaticChainDirectory(ChainDirectoryPort):
    def __init__(self, chains: Optional[List[ChainConfig]] = None):
        self._chains = sorted(chains or [], key=lambda c: c.name.lower())

    def list_chains(self) -> List[ChainConfig]:
        return list(self._chains)
