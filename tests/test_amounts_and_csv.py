import datetime as dt
import unittest
from decimal import Decimal

from taxexport.core.amounts import compute_fee, parse_raw_amount, to_decimal, to_decimal_string
from taxexport.core.dto import ChainConfig
from taxexport.core.errors import MalformedAmountError
from taxexport.core.models import CsvRow
from taxexport.io.csv_writer import CSV_HEADER, escape_field, export_filename, serialize_rows


def _rebuild(s: str, decimals: int) -> int:
    whole, _, frac = s.partition(".")
    return int(whole) * 10 ** decimals + int(frac.ljust(decimals, "0") or "0")


class AmountCodecTests(unittest.TestCase):
    def test_whole_and_fraction(self) -> None:
        self.assertEqual(to_decimal_string("1000000000000000000", 18), "1")
        self.assertEqual(to_decimal_string("1500000", 6), "1.5")
        self.assertEqual(to_decimal_string("1", 18), "0.000000000000000001")
        self.assertEqual(to_decimal_string("123", 0), "123")

    def test_zero_and_empty(self) -> None:
        self.assertEqual(to_decimal_string("0", 18), "0")
        self.assertEqual(to_decimal_string("", 6), "0")

    def test_large_values_keep_every_digit(self) -> None:
        raw = 10 ** 30 + 1
        self.assertEqual(to_decimal_string(str(raw), 18), "1000000000000.000000000000000001")

    def test_round_trip(self) -> None:
        values = [0, 1, 7, 10, 999, 10 ** 18, 123456789012345678901234567890, 2 ** 256 - 1]
        for v in values:
            for d in range(0, 19):
                with self.subTest(v=v, d=d):
                    self.assertEqual(_rebuild(to_decimal_string(v, d), d), v)

    def test_fee(self) -> None:
        self.assertEqual(compute_fee("20000000000", "21000", 18), "0.00042")
        self.assertEqual(compute_fee("", "21000", 18), "0")
        self.assertEqual(compute_fee("20000000000", None, 18), "0")
        self.assertEqual(compute_fee("0", "0", 18), "0")

    def test_malformed_amount_fails_loudly(self) -> None:
        for bad in ("1e18", "-5", "0x10", "12.5", "abc"):
            with self.subTest(bad=bad):
                with self.assertRaises(MalformedAmountError):
                    parse_raw_amount(bad)
        with self.assertRaises(ValueError):
            compute_fee("abc", "21000", 18)

    def test_to_decimal(self) -> None:
        self.assertEqual(to_decimal(""), Decimal("0"))
        self.assertEqual(to_decimal("0.00042"), Decimal("0.00042"))


class CsvSerializerTests(unittest.TestCase):
    def test_formula_injection_is_defused(self) -> None:
        self.assertEqual(escape_field("=SUM(A1:A2)"), "'=SUM(A1:A2)")
        self.assertEqual(escape_field("+1"), "'+1")
        self.assertEqual(escape_field("-1"), "'-1")
        self.assertEqual(escape_field("@x"), "'@x")

    def test_quoting(self) -> None:
        self.assertEqual(escape_field("a,b"), '"a,b"')
        self.assertEqual(escape_field('say "hi", ok'), '"say ""hi"", ok"')
        self.assertEqual(escape_field("x\ny"), '"x\ny"')
        self.assertEqual(escape_field('=a,"b"'), '"\'=a,""b"""')

    def test_tabs_and_carriage_returns_become_spaces(self) -> None:
        self.assertEqual(escape_field("a\tb\rc"), "a b c")

    def test_empty_field(self) -> None:
        self.assertEqual(escape_field(""), "")

    def test_serialize(self) -> None:
        rows = [
            CsvRow(date="1/1/24 0:00", sent_amount="1", sent_currency="ETH",
                   fee_amount="0.00042", fee_currency="ETH", tag="Transfer"),
            CsvRow(date="1/2/24 3:05", received_amount="5", received_currency="TKN, Inc",
                   fee_amount="0", tag="Transfer"),
        ]
        text = serialize_rows(rows)
        lines = text.split("\n")
        self.assertEqual(lines[0], CSV_HEADER)
        self.assertEqual(
            CSV_HEADER,
            "Date,Received Quantity,Received Currency,Sent Quantity,Sent Currency,Fee Amount,Fee Currency,Notes",
        )
        self.assertEqual(lines[1], "1/1/24 0:00,,,1,ETH,0.00042,ETH,Transfer")
        self.assertEqual(lines[2], '1/2/24 3:05,5,"TKN, Inc",,,0,,Transfer')
        self.assertFalse(text.endswith("\n"))

    def test_header_only_when_no_rows(self) -> None:
        self.assertEqual(serialize_rows([]), CSV_HEADER)

    def test_export_filename(self) -> None:
        chain = ChainConfig(chain_id="137", name="Polygon PoS", symbol="POL", decimals=18)
        name = export_filename(chain, "0xAbCdEf0123456789", today=dt.date(2024, 3, 9))
        self.assertEqual(name, "Polygon_PoS_0xAbCdEf_20240309.csv")


if __name__ == "__main__":
    unittest.main()
