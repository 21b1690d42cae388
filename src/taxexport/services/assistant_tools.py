from __future__ import annotations

import datetime as dt
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from taxexport.config import settings
from taxexport.core.amounts import to_decimal
from taxexport.core.dto import ChainConfig
from taxexport.core.errors import ChainNotFoundError, ExportError
from taxexport.core.models import CanonicalTransaction, CsvRow
from taxexport.io.csv_writer import export_filename, serialize_rows
from taxexport.io.output_writer import write_csv
from taxexport.io.schemas import tag_breakdown
from taxexport.ports.chain_directory_port import ChainDirectoryPort
from taxexport.services.export_service import ExplorerFactory, ExportService, scan_activity

logger = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

_NO_PARAMS: Dict[str, Any] = {"type": "object", "properties": {}, "required": []}

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": "list_chains",
        "description": "List all available blockchain chains the user can query. Returns chain names, symbols, and IDs.",
        "parameters": _NO_PARAMS,
    },
    {
        "name": "set_address",
        "description": "Set the wallet address to query. Must be a valid 0x Ethereum-style address (42 hex chars).",
        "parameters": {
            "type": "object",
            "properties": {"address": {"type": "string", "description": "The 0x wallet address"}},
            "required": ["address"],
        },
    },
    {
        "name": "scan_chains",
        "description": (
            "Scan multiple chains to find which ones have transaction activity for the current "
            "wallet address. Returns a list of chains with activity."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "chain_names": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Optional list of chain names to scan. If empty, scans all chains.",
                },
            },
            "required": [],
        },
    },
    {
        "name": "fetch_transactions",
        "description": (
            "Fetch all transactions for the current wallet address on a specific chain. "
            "This loads the full transaction history and prepares CSV export data."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "chain_name": {
                    "type": "string",
                    "description": "The name of the chain to fetch transactions from (e.g. 'Ethereum', 'Polygon')",
                },
            },
            "required": ["chain_name"],
        },
    },
    {
        "name": "download_csv",
        "description": "Write a CSV file of the currently loaded transactions for a specific chain.",
        "parameters": {
            "type": "object",
            "properties": {"chain_name": {"type": "string", "description": "The chain name for the download"}},
            "required": ["chain_name"],
        },
    },
    {
        "name": "get_status",
        "description": (
            "Get the current status: which chain is selected, what address is entered, "
            "how many transactions are loaded, and a summary of the data."
        ),
        "parameters": _NO_PARAMS,
    },
    {
        "name": "search_transactions",
        "description": "Search the loaded CSV rows by text, tag, currency or amount range. Results are paged.",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Free-text match against the whole row"},
                "tag": {"type": "string", "description": "Exact tag, e.g. Trade or Transfer"},
                "currency": {"type": "string", "description": "Received or sent currency symbol"},
                "min_amount": {"type": "number"},
                "max_amount": {"type": "number"},
                "offset": {"type": "integer", "description": "Row offset for paging"},
            },
            "required": [],
        },
    },
]


def openai_tools() -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {"name": t["name"], "description": t["description"], "parameters": t["parameters"]},
        }
        for t in TOOL_DEFINITIONS
    ]


def anthropic_tools() -> List[Dict[str, Any]]:
    return [
        {"name": t["name"], "description": t["description"], "input_schema": t["parameters"]}
        for t in TOOL_DEFINITIONS
    ]


def _row_line(r: CsvRow) -> str:
    return (
        f"{r.date} | Recv: {r.received_amount} {r.received_currency} | "
        f"Sent: {r.sent_amount} {r.sent_currency} | Fee: {r.fee_amount} {r.fee_currency} | {r.tag}"
    )


class AssistantToolbox:
    """
    Tool executor for the chat mode. Keeps the session state (address,
    chain, loaded data) and answers each tool call with a plain string,
    since the result is handed straight back to the model.
    """

    def __init__(
        self,
        directory: ChainDirectoryPort,
        explorer_factory: ExplorerFactory,
        out_dir: str = settings.EXPORT_OUT_DIR,
        today: Optional[Callable[[], dt.date]] = None,
    ) -> None:
        self.directory = directory
        self.explorer_factory = explorer_factory
        self.out_dir = out_dir
        self._today = today

        self.address: str = ""
        self.chain: Optional[ChainConfig] = None
        self.transactions: List[CanonicalTransaction] = []
        self.rows: List[CsvRow] = []

        self._handlers: Dict[str, Callable[[Dict[str, Any]], str]] = {
            "list_chains": self._list_chains,
            "set_address": self._set_address,
            "scan_chains": self._scan_chains,
            "fetch_transactions": self._fetch_transactions,
            "download_csv": self._download_csv,
            "get_status": self._get_status,
            "search_transactions": self._search_transactions,
        }

    def execute(self, name: str, args: Optional[Dict[str, Any]] = None) -> str:
        handler = self._handlers.get(name)
        if handler is None:
            return f"Unknown tool: {name}"
        logger.info("Running %s", name)
        try:
            return handler(dict(args or {}))
        except ExportError as e:
            logger.warning("%s failed: %s", name, e)
            return f"Error: {e}"

    def system_prompt(self) -> str:
        chains = self.directory.list_chains()
        c = self.chain
        if self.transactions:
            preview = "\n".join(_row_line(r) for r in self.rows[: settings.STATUS_PREVIEW_ROWS])
            more = len(self.rows) - settings.STATUS_PREVIEW_ROWS
            summary = (
                f"Currently {len(self.transactions)} transactions loaded on "
                f"{c.name if c else 'unknown'} for address {self.address}.\n\n"
                f"CSV data summary (first {settings.STATUS_PREVIEW_ROWS} rows):\n{preview}"
            )
            if more > 0:
                summary += f"\n\n... and {more} more rows."
        else:
            summary = "No transactions currently loaded."

        return (
            "You are an assistant for a tax CSV exporter. You help users explore their "
            f"blockchain transaction history across {len(chains)} EVM chains via Blockscout.\n\n"
            "Current state:\n"
            f"- Selected chain: {c.name if c else 'none'} ({c.symbol if c else ''})\n"
            f"- Wallet address: {self.address or 'none'}\n"
            f"- {summary}\n\n"
            "When a user provides a wallet address, use set_address first. "
            "To export, use fetch_transactions then download_csv. "
            "Confirm before scanning every chain. Be concise."
        )

    # ---------- tools ----------

    def _list_chains(self, args: Dict[str, Any]) -> str:
        chains = self.directory.list_chains()
        listing = ", ".join(f"{c.name} ({c.symbol})" for c in chains)
        return f"Available chains ({len(chains)}): {listing}"

    def _set_address(self, args: Dict[str, Any]) -> str:
        addr = str(args.get("address") or "")
        if not ADDRESS_RE.match(addr):
            return "Error: Invalid address format. Must be 0x followed by 40 hex characters."
        self.address = addr
        return f"Address set to {addr}"

    def _scan_chains(self, args: Dict[str, Any]) -> str:
        if not self.address:
            return "Error: No wallet address set. Use set_address first."

        names = [str(n) for n in (args.get("chain_names") or [])]
        to_scan = self.directory.find_chains(names)
        if names and not to_scan:
            return f"No matching chains found for: {', '.join(names)}. Use list_chains to see available chains."

        res = scan_activity(to_scan, self.address, self.explorer_factory)
        err_note = f"{len(res.errors)} chains had errors" if res.errors else ""
        if not res.active:
            msg = f"Scanned {res.scanned} chains. No transaction activity found for {self.address}."
            return msg + (f" ({err_note})" if err_note else "")

        lines = "\n".join(f"- {c.name} ({c.symbol})" for c in res.active)
        msg = f"Found activity on {len(res.active)} of {res.scanned} chains scanned:\n{lines}"
        return msg + (f"\n({err_note})" if err_note else "")

    def _resolve_chain(self, args: Dict[str, Any]) -> ChainConfig:
        return self.directory.get_chain(str(args.get("chain_name") or ""))

    def _fetch_transactions(self, args: Dict[str, Any]) -> str:
        if not self.address:
            return "Error: No wallet address set. Use set_address first."
        try:
            target = self._resolve_chain(args)
        except ChainNotFoundError:
            return f'Error: Chain "{args.get("chain_name")}" not found. Use list_chains to see available chains.'

        self.chain = target
        try:
            svc = ExportService(self.explorer_factory(target), target)
            txs = svc.fetch(self.address)
            rows = svc.to_rows(txs, self.address)
        except ExportError as e:
            return f"Error fetching transactions on {target.name}: {e}"

        self.transactions = txs
        self.rows = rows
        if not txs:
            return f"Fetched transactions on {target.name}: 0 transactions found."

        tags = ", ".join(f"{t}: {n}" for t, n in tag_breakdown(rows).items())
        return (
            f"Fetched {len(txs)} transactions ({len(rows)} CSV rows) on {target.name}.\n"
            f"Tag breakdown: {tags}"
        )

    def _download_csv(self, args: Dict[str, Any]) -> str:
        if not self.address:
            return "Error: No wallet address set."
        try:
            target = self._resolve_chain(args)
        except ChainNotFoundError:
            return f'Error: Chain "{args.get("chain_name")}" not found.'
        if not self.transactions:
            return "Error: No transactions loaded. Use fetch_transactions first."

        today = self._today() if self._today else None
        filename = export_filename(target, self.address, today=today)
        path = write_csv(serialize_rows(self.rows), self.out_dir, filename)
        return f"CSV downloaded: {path} ({len(self.transactions)} transactions)"

    def _get_status(self, args: Dict[str, Any]) -> str:
        c = self.chain
        return (
            "Status:\n"
            f"- Chain: {c.name if c else 'none'} ({c.symbol if c else ''})\n"
            f"- Address: {self.address or 'none'}\n"
            f"- Transactions loaded: {len(self.transactions)}\n"
            f"- CSV rows: {len(self.rows)}\n"
            f"- Available chains: {len(self.directory.list_chains())}"
        )

    def _search_transactions(self, args: Dict[str, Any]) -> str:
        if not self.rows:
            return "No transactions loaded. Use fetch_transactions first."

        query = str(args.get("query") or "").lower()
        tag = str(args.get("tag") or "").lower()
        currency = str(args.get("currency") or "").lower()
        try:
            min_amount = Decimal(str(args["min_amount"])) if args.get("min_amount") is not None else None
            max_amount = Decimal(str(args["max_amount"])) if args.get("max_amount") is not None else None
            offset = int(args.get("offset") or 0)
        except (InvalidOperation, ValueError):
            return "Error: min_amount, max_amount and offset must be numbers."
        if offset < 0 or any(b is not None and not b.is_finite() for b in (min_amount, max_amount)):
            return "Error: min_amount, max_amount and offset must be numbers."

        def _match(r: CsvRow) -> bool:
            if tag and r.tag.lower() != tag:
                return False
            if currency and currency not in (r.received_currency.lower(), r.sent_currency.lower()):
                return False
            if min_amount is not None or max_amount is not None:
                amt = max(to_decimal(r.received_amount), to_decimal(r.sent_amount))
                if min_amount is not None and amt < min_amount:
                    return False
                if max_amount is not None and amt > max_amount:
                    return False
            if query and query not in " ".join(r.fields()).lower():
                return False
            return True

        matched = [r for r in self.rows if _match(r)]
        page = matched[offset: offset + settings.SEARCH_PAGE_SIZE]
        if not page:
            return f"No matching transactions found (searched {len(self.rows)} rows)."

        header = f"Found {len(matched)} matching rows (showing {offset + 1}-{offset + len(page)}):"
        out = header + "\n" + "\n".join(_row_line(r) for r in page)
        nxt = offset + settings.SEARCH_PAGE_SIZE
        if nxt < len(matched):
            out += f"\n... {len(matched) - nxt} more rows. Use offset={nxt} to see next page."
        return out
