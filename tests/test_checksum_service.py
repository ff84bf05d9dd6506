from __future__ import annotations

import hashlib
import unittest

from app.services.checksum_service import canonical_row, compute_checksum, format_number
from factories import make_row


class TestChecksum(unittest.TestCase):
    def test_integral_floats_lose_trailing_zero(self) -> None:
        self.assertEqual(format_number(5.0), "5")
        self.assertEqual(format_number(-45), "-45")
        self.assertEqual(format_number(5.25), "5.25")
        self.assertEqual(format_number(None), "")

    def test_row_renders_lat_lon_and_primary_months(self) -> None:
        row = {"lat": -20.5, "lon": -45.0, "m01": 5.1, "m12": 6.0, "dhi_m01": 2.0}

        rendered = canonical_row(row)

        self.assertEqual(rendered, "-20.5:-45:5.1" + ":" * 10 + ":6")

    def test_digest_matches_joined_rows(self) -> None:
        rows = [make_row(-20.5, -45.0), make_row(-20.6, -45.0)]
        payload = "|".join(canonical_row(row) for row in rows)

        self.assertEqual(compute_checksum(rows), hashlib.sha256(payload.encode("utf-8")).hexdigest())
        self.assertEqual(len(compute_checksum(rows)), 64)

    def test_same_rows_same_checksum(self) -> None:
        self.assertEqual(
            compute_checksum([make_row(-1.0, -40.0), make_row(-2.0, -40.0)]),
            compute_checksum([make_row(-1.0, -40.0), make_row(-2.0, -40.0)]),
        )

    def test_row_order_changes_checksum(self) -> None:
        first = make_row(-1.0, -40.0)
        second = make_row(-2.0, -40.0)

        self.assertNotEqual(compute_checksum([first, second]), compute_checksum([second, first]))

    def test_diffuse_columns_do_not_affect_checksum(self) -> None:
        self.assertEqual(
            compute_checksum([make_row(-1.0, -40.0)]),
            compute_checksum([make_row(-1.0, -40.0, dhi=2.0)]),
        )

    def test_empty_input_hashes_empty_string(self) -> None:
        self.assertEqual(compute_checksum([]), hashlib.sha256(b"").hexdigest())


if __name__ == "__main__":
    unittest.main()
