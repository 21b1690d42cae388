import threading
import unittest

from taxexport.adapters.explorer.static_explorer_adapter import StaticExplorerAdapter
from taxexport.core.dto import ChainConfig, RawInternalTx, RawNormalTx, RawTokenTx
from taxexport.core.errors import FetchCancelled, MalformedAmountError
from taxexport.io.csv_writer import CSV_HEADER
from taxexport.services.export_service import ExportService, scan_activity

WALLET = "0x" + "a" * 40
OTHER = "0x" + "b" * 40
ETH = ChainConfig(chain_id="1", name="Ethereum", symbol="ETH", decimals=18, api_url="https://eth.example/api")


def _normal(tx_hash: str, timestamp: int, value: str = "1000000000000000000", gas_price: str = "1000000000") -> RawNormalTx:
    return RawNormalTx(
        tx_hash=tx_hash,
        timestamp=timestamp,
        from_address=WALLET,
        to_address=OTHER,
        value=value,
        gas_price=gas_price,
        gas_used="21000",
    )


class _CancelAfterFirst(StaticExplorerAdapter):
    """Sets the cancel signal as soon as the first plain record is consumed."""

    def __init__(self, cancel: threading.Event, **kwargs) -> None:
        super().__init__(**kwargs)
        self._cancel = cancel

    def iter_normal_txs(self, address, cancel=None):
        for rec in super().iter_normal_txs(address, cancel=cancel):
            yield rec
            self._cancel.set()


class ExportServiceTests(unittest.TestCase):
    def _explorer(self, **kwargs) -> StaticExplorerAdapter:
        defaults = dict(
            normal_txs=[_normal("0x1", 100), _normal("0x2", 200)],
            internal_txs=[
                RawInternalTx(tx_hash="0x3", timestamp=150, from_address=OTHER, to_address=WALLET, value="5"),
            ],
            token_txs=[
                RawTokenTx(tx_hash="0x2", timestamp=200, from_address=OTHER, to_address=WALLET,
                           value="1000", token_symbol="TKN", token_name="Token", token_decimal="2"),
            ],
        )
        defaults.update(kwargs)
        return StaticExplorerAdapter(**defaults)

    def test_fetch_merges_all_feeds(self) -> None:
        events = []
        svc = ExportService(self._explorer(), ETH)
        txs = svc.fetch(WALLET.upper().replace("0X", "0x"), on_progress=lambda e, d: events.append(e))

        self.assertEqual([t.tx_hash for t in txs], ["0x2", "0x3", "0x1"])
        self.assertEqual(len(txs[0].movements), 2)
        self.assertIn("merge", events)
        self.assertEqual(events.count("fetch"), 3)

    def test_export_csv(self) -> None:
        svc = ExportService(self._explorer(), ETH)
        txs = svc.fetch(WALLET)
        lines = svc.export_csv(txs, WALLET).split("\n")
        self.assertEqual(lines[0], CSV_HEADER)
        self.assertEqual(len(lines), 4)
        self.assertTrue(lines[1].endswith(",10,TKN,1,ETH,0.000021,ETH,Trade"))
        self.assertTrue(lines[2].endswith(",0.000000000000000005,ETH,,,0,,Transfer"))

    def test_cancel_between_feeds_keeps_partial_results(self) -> None:
        cancel = threading.Event()

        def progress(event, data):
            if event == "fetch_done" and data["phase"] == "normal":
                cancel.set()

        svc = ExportService(self._explorer(), ETH)
        with self.assertRaises(FetchCancelled) as ctx:
            svc.fetch(WALLET, cancel=cancel, on_progress=progress)

        partial = ctx.exception.transactions
        self.assertEqual([t.tx_hash for t in partial], ["0x2", "0x1"])
        # still exportable
        self.assertEqual(len(svc.export_csv(partial, WALLET).split("\n")), 3)

    def test_cancel_mid_pagination(self) -> None:
        cancel = threading.Event()
        explorer = _CancelAfterFirst(
            cancel,
            normal_txs=[_normal("0x1", 100), _normal("0x2", 200)],
            page_size=1,
        )
        bundle = ExportService(explorer, ETH).fetch_feeds(WALLET, cancel=cancel)
        self.assertTrue(bundle.cancelled)
        self.assertEqual(bundle.counts(), {"normal": 1, "internal": 0, "token": 0})

    def test_empty_history(self) -> None:
        svc = ExportService(StaticExplorerAdapter(), ETH)
        txs = svc.fetch(WALLET)
        self.assertEqual(txs, [])
        self.assertEqual(svc.export_csv(txs, WALLET), CSV_HEADER)

    def test_lenient_projection_drops_whole_transaction(self) -> None:
        explorer = self._explorer(normal_txs=[_normal("0x1", 100), _normal("0x2", 200, gas_price="oops")])
        svc = ExportService(explorer, ETH)
        txs = svc.fetch(WALLET)

        with self.assertRaises(MalformedAmountError):
            svc.to_rows(txs, WALLET)

        rows = svc.to_rows(txs, WALLET, strict=False)
        # 0x2 (two movements) is gone entirely; 0x3 and 0x1 remain
        self.assertEqual(len(rows), 2)
        self.assertFalse(any(r.received_currency == "TKN" for r in rows))

    def test_lenient_export_skips_transaction_with_bad_value(self) -> None:
        explorer = StaticExplorerAdapter(normal_txs=[_normal("0x1", 100), _normal("0x2", 200, value="12abc")])
        svc = ExportService(explorer, ETH)
        txs = svc.fetch(WALLET)
        self.assertEqual(len(txs), 2)

        with self.assertRaises(MalformedAmountError):
            svc.export_csv(txs, WALLET)

        csv_text = svc.export_csv(txs, WALLET, strict=False)
        lines = csv_text.split("\n")
        self.assertEqual(len(lines), 2)
        self.assertTrue(lines[1].endswith(",,,1,ETH,0.000021,ETH,Transfer"))


class ScanActivityTests(unittest.TestCase):
    def test_collects_active_chains_and_errors(self) -> None:
        chains = [
            ChainConfig(chain_id=str(i), name=f"Chain {i}", symbol="ETH", decimals=18, api_url=f"https://{i}/api")
            for i in range(7)
        ]
        active_ids = {"1", "5"}

        class _Broken(StaticExplorerAdapter):
            def has_activity(self, address):
                raise RuntimeError("HTTP 502")

        def factory(chain):
            if chain.chain_id == "3":
                return _Broken()
            if chain.chain_id in active_ids:
                return StaticExplorerAdapter(normal_txs=[_normal("0x" + chain.chain_id, 1)])
            return StaticExplorerAdapter()

        res = scan_activity(chains, WALLET, factory, batch_size=3, batch_delay_sec=0)
        self.assertEqual(res.scanned, 7)
        self.assertEqual([c.chain_id for c in res.active], ["1", "5"])
        self.assertEqual(res.errors, {"Chain 3": "HTTP 502"})

    def test_non_positive_batch_size_checks_one_chain_at_a_time(self) -> None:
        chains = [
            ChainConfig(chain_id=str(i), name=f"Chain {i}", symbol="ETH", decimals=18, api_url=f"https://{i}/api")
            for i in range(3)
        ]
        explorer = StaticExplorerAdapter(normal_txs=[_normal("0x1", 1)])
        res = scan_activity(chains, WALLET, lambda chain: explorer, batch_size=0, batch_delay_sec=0)
        self.assertEqual(len(res.active), 3)
        self.assertEqual(res.errors, {})


if __name__ == "__main__":
    unittest.main()
