from __future__ import annotations

import argparse
import datetime as dt
import logging
import signal
import sys
import threading
import time
from typing import List, Optional

from taxexport.config import settings
from taxexport.core.dto import ChainConfig
from taxexport.core.errors import ExportError, FetchCancelled
from taxexport.core.models import ExportConfig
from taxexport.core.scam import ScamFilter, no_filter
from taxexport.io.csv_writer import export_filename, serialize_rows
from taxexport.io.output_writer import write_csv, write_summary_json
from taxexport.services.export_service import ExportService, scan_activity

from taxexport.adapters.chains.chainscout_adapter import ChainscoutDirectoryAdapter
from taxexport.adapters.explorer.blockscout_adapter import BlockscoutExplorerAdapter
from taxexport.adapters.explorer.static_explorer_adapter import StaticExplorerAdapter

EXIT_CANCELLED = 130


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="taxexport", description="Wallet history -> tax CSV (Blockscout chains)")
    p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("chains", help="List chains with a Blockscout explorer")

    e = sub.add_parser("export", help="Fetch a wallet's history and write the CSV")
    e.add_argument("--address", required=True, help="Wallet address")
    e.add_argument("--chain", required=True, help="Chain name or id")
    e.add_argument("--out", default=settings.EXPORT_OUT_DIR, help="Output folder")
    e.add_argument("--summary", action="store_true", help="Also write summary.json with merged transactions")
    e.add_argument("--lenient", action="store_true", help="Skip transactions with malformed amounts instead of failing")
    e.add_argument("--no-scam-filter", action="store_true", help="Keep token transfers that look like spam")
    e.add_argument("--use-static", metavar="FEEDS_JSON", help="Read raw feeds from a JSON file (dev/testing)")
    e.add_argument("--symbol", default=settings.DEFAULT_NATIVE_SYMBOL, help="Native symbol with --use-static")
    e.add_argument("--decimals", type=int, default=settings.DEFAULT_NATIVE_DECIMALS, help="Native decimals with --use-static")

    s = sub.add_parser("scan", help="Find chains where the wallet has activity")
    s.add_argument("--address", required=True, help="Wallet address")
    s.add_argument("--chains", nargs="*", default=[], help="Chain name fragments to scan (default: all)")
    return p


def _configure_logging(verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = getattr(logging, str(settings.LOG_LEVEL).upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _make_progress_reporter(cfg: ExportConfig):
    start_time = time.time()
    is_tty = sys.stdout.isatty()

    def _short_addr(addr: str) -> str:
        if not addr:
            return ""
        if len(addr) <= 12:
            return addr
        return f"{addr[:6]}...{addr[-4:]}"

    def _ts() -> str:
        return dt.datetime.now().strftime("%H:%M:%S")

    def _print_line(message: str) -> None:
        if is_tty:
            sys.stdout.write("\r" + message.ljust(88))
            sys.stdout.flush()
        else:
            print(message)

    def _clear_line() -> None:
        if is_tty:
            sys.stdout.write("\r" + (" " * 88) + "\r")
            sys.stdout.flush()

    def progress(event: str, data: dict) -> None:
        if event == "start":
            print(f"[{_ts()}] Exporting {cfg.address} on {cfg.chain_name}")
            return
        if event == "fetch":
            phase = data.get("phase", "data").upper()
            addr = _short_addr(str(data.get("address", "")))
            _print_line(f"Fetching {phase} transactions for {addr}...")
            return
        if event == "fetch_done":
            phase = data.get("phase", "data").upper()
            _print_line(f"Fetched {phase}: {data.get('count', 0)} record(s)")
            return
        if event == "merge":
            _clear_line()
            print(
                f"[{_ts()}] Fetched {data.get('normal', 0)} txs, {data.get('token', 0)} token txs, "
                f"{data.get('internal', 0)} internal txs -> {data['transactions']} transaction(s)"
            )
            return
        if event == "cancelled":
            _clear_line()
            print(f"[{_ts()}] Cancelled: exporting {data.get('transactions', 0)} transaction(s) fetched so far")
            return
        if event == "done":
            _clear_line()
            elapsed = time.time() - start_time
            print(f"[{_ts()}] Done in {elapsed:.1f}s • {data['transactions']} transactions • {data['rows']} rows")
            return

    return progress


def _cmd_chains() -> int:
    for c in ChainscoutDirectoryAdapter().list_chains():
        print(f"{c.chain_id}\t{c.name}\t{c.symbol}\t{c.api_url}")
    return 0


def _cmd_scan(args: argparse.Namespace) -> int:
    directory = ChainscoutDirectoryAdapter()
    chains = directory.find_chains(args.chains)
    if not chains:
        print(f"No matching chains found for: {', '.join(args.chains)}", file=sys.stderr)
        return 2

    print(f"Scanning {len(chains)} chain(s) for {args.address}...")
    res = scan_activity(chains, args.address, BlockscoutExplorerAdapter)
    for c in res.active:
        print(f"- {c.name} ({c.symbol})")
    if not res.active:
        print("No transaction activity found.")
    if res.errors:
        print(f"({len(res.errors)} chain(s) had scan errors)", file=sys.stderr)
    return 0


def _fetch_with_interrupt(svc: ExportService, address: str, progress) -> tuple:
    """
    First Ctrl-C stops pagination; what was fetched is still exported.
    Returns (transactions, cancelled).
    """
    cancel = threading.Event()

    def _on_sigint(signum, frame) -> None:
        cancel.set()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        return svc.fetch(address, cancel=cancel, on_progress=progress), False
    except FetchCancelled as e:
        progress("cancelled", {"transactions": len(e.transactions)})
        return e.transactions, True
    finally:
        signal.signal(signal.SIGINT, previous)


def _cmd_export(args: argparse.Namespace) -> int:
    cfg = ExportConfig(
        address=args.address,
        chain_name=args.chain,
        out_dir=args.out,
        strict=not args.lenient,
        write_summary=args.summary,
    )
    progress = _make_progress_reporter(cfg)

    # Ports
    if args.use_static:
        chain = ChainConfig(chain_id=cfg.chain_name, name=cfg.chain_name, symbol=args.symbol, decimals=args.decimals)
        explorer = StaticExplorerAdapter.from_json_file(args.use_static)
    else:
        chain = ChainscoutDirectoryAdapter().get_chain(cfg.chain_name)
        explorer = BlockscoutExplorerAdapter(chain)

    svc = ExportService(explorer, chain, scam_filter=no_filter if args.no_scam_filter else ScamFilter())
    progress("start", {})
    txs, cancelled = _fetch_with_interrupt(svc, cfg.address, progress)

    rows = svc.to_rows(txs, cfg.address, strict=cfg.strict)
    csv_text = serialize_rows(rows)

    # Outputs
    csv_path = write_csv(csv_text, cfg.out_dir, export_filename(chain, cfg.address))
    summary_path: Optional[str] = None
    if cfg.write_summary:
        summary_path = write_summary_json(txs, rows, cfg.out_dir)

    progress("done", {"transactions": len(txs), "rows": len(rows)})
    print(f"Wrote: {csv_path}")
    if summary_path:
        print(f"Wrote: {summary_path}")
    return EXIT_CANCELLED if cancelled else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        if args.command == "chains":
            return _cmd_chains()
        if args.command == "scan":
            return _cmd_scan(args)
        return _cmd_export(args)
    except ExportError as exc:
        print(f"Error: {exc.__class__.__name__}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
