import io
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest import mock

import numpy as np
import pandas as pd
from openpyxl import Workbook

from cert_tracker.errors import FileReadError, SheetImportError
from cert_tracker.loader import load_rows, normalize_scalar


def workbook_bytes(sheets: dict[str, list[list]]) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class NormalizeScalarTests(unittest.TestCase):
    def test_pandas_and_numpy_values_are_narrowed(self):
        self.assertIsNone(normalize_scalar(pd.NaT))
        self.assertIsNone(normalize_scalar(float("nan")))
        self.assertIsNone(normalize_scalar(np.float64("nan")))
        self.assertEqual(normalize_scalar(np.int64(7)), 7)
        self.assertIsInstance(normalize_scalar(np.int64(7)), int)
        self.assertEqual(normalize_scalar(pd.Timestamp("2025-07-01 10:00")), datetime(2025, 7, 1, 10, 0))
        self.assertEqual(normalize_scalar("a\x00b"), "ab")


class TextLoaderTests(unittest.TestCase):
    def test_semicolon_csv_with_bom(self):
        raw = "\ufeffPEDIDO;VALOR\n1;10,50\n2;20,00\n".encode("utf-8")
        loaded = load_rows(raw, filename="vendas.csv")
        self.assertEqual(loaded["headers"], ["PEDIDO", "VALOR"])
        self.assertEqual(loaded["delimiter"], ";")
        self.assertEqual(loaded["rows"][0], {"PEDIDO": "1", "VALOR": "10,50"})
        self.assertEqual(loaded["detected_format"], "csv")

    def test_empty_rows_are_dropped_but_numbering_is_kept(self):
        raw = b"PEDIDO;VALOR\n1;10\n;\n3;30\n"
        loaded = load_rows(raw, filename="vendas.csv")
        self.assertEqual([row["PEDIDO"] for row in loaded["rows"]], ["1", "3"])
        self.assertEqual(loaded["row_numbers"], [2, 4])

    def test_latin1_bytes_are_decoded(self):
        raw = "PEDIDO;TIPO\n1;MIGRAÇÃO\n2;VENDA\n".encode("latin-1")
        loaded = load_rows(raw, filename="vendas.csv")
        self.assertTrue(loaded["rows"][0]["TIPO"].startswith("MIGRA"))
        self.assertNotIn("\ufffd", loaded["rows"][0]["TIPO"])

    def test_low_confidence_or_non_latin_guess_falls_back_to_cp1252(self):
        raw = "PEDIDO;PRODUTO\n1;Licença Office\n".encode("latin-1")
        with mock.patch("cert_tracker.loader.chardet.detect", return_value={"encoding": "cp424", "confidence": 0.99}):
            loaded = load_rows(raw, filename="vendas.csv")
        self.assertEqual(loaded["detected_encoding"], "cp1252")
        self.assertEqual(loaded["rows"], [{"PEDIDO": "1", "PRODUTO": "Licença Office"}])

        with mock.patch("cert_tracker.loader.chardet.detect", return_value={"encoding": "ISO-8859-1", "confidence": 0.2}):
            self.assertEqual(load_rows(raw, filename="vendas.csv")["detected_encoding"], "cp1252")

    def test_lines_with_extra_fields_are_reported_with_their_line_number(self):
        raw = b"PEDIDO;VALOR\n1;10\n2;20;extra\n3;30;\n4\n"
        loaded = load_rows(raw, filename="vendas.csv")
        self.assertEqual([row["PEDIDO"] for row in loaded["rows"]], ["1", "3", "4"])
        self.assertEqual(loaded["row_numbers"], [2, 4, 5])
        self.assertEqual(loaded["rows"][2], {"PEDIDO": "4", "VALOR": ""})
        self.assertEqual(loaded["malformed_lines"], [3])
        self.assertEqual(len(loaded["warnings"]), 1)

    def test_quoted_field_spanning_lines_keeps_physical_numbering(self):
        raw = b'PEDIDO;OBS\n1;"linha\nquebrada"\n2;ok\n'
        loaded = load_rows(raw, filename="vendas.csv")
        self.assertEqual(loaded["rows"][0]["OBS"], "linha\nquebrada")
        self.assertEqual(loaded["row_numbers"], [2, 4])

    def test_path_input(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "vendas.tsv"
            path.write_text("PEDIDO\tVALOR\n1\t10\n", encoding="utf-8")
            loaded = load_rows(path)
        self.assertEqual(loaded["delimiter"], "\t")
        self.assertEqual(loaded["rows"], [{"PEDIDO": "1", "VALOR": "10"}])


class WorkbookLoaderTests(unittest.TestCase):
    def test_first_sheet_is_used_with_warning(self):
        raw = workbook_bytes(
            {
                "Vendas": [["PEDIDO", "VALOR", "DATA"], ["A-1", 1000, datetime(2025, 7, 1)]],
                "Resumo": [["x"], [1]],
            }
        )
        loaded = load_rows(raw, filename="vendas.xlsx")
        self.assertEqual(loaded["sheet_name"], "Vendas")
        self.assertEqual(loaded["sheet_names"], ["Vendas", "Resumo"])
        self.assertEqual(len(loaded["warnings"]), 1)
        row = loaded["rows"][0]
        self.assertEqual(row["PEDIDO"], "A-1")
        self.assertEqual(row["VALOR"], 1000)
        self.assertEqual(row["DATA"], datetime(2025, 7, 1))

    def test_named_sheet(self):
        raw = workbook_bytes({"A": [["x"], [1]], "B": [["y"], [2]]})
        loaded = load_rows(raw, filename="vendas.xlsx", sheet_name="B")
        self.assertEqual(loaded["rows"], [{"y": 2}])

    def test_unknown_sheet_is_an_import_error(self):
        raw = workbook_bytes({"A": [["x"], [1]]})
        with self.assertRaisesRegex(SheetImportError, "not found"):
            load_rows(raw, filename="vendas.xlsx", sheet_name="Z")

    def test_workbook_format_is_sniffed_from_bytes(self):
        raw = workbook_bytes({"A": [["x"], [1]]})
        loaded = load_rows(raw)
        self.assertEqual(loaded["detected_format"], "xlsx")

    def test_file_like_input(self):
        raw = workbook_bytes({"A": [["x"], [1]]})
        handle = io.BytesIO(raw)
        handle.name = "upload.xlsx"
        self.assertEqual(load_rows(handle)["rows"], [{"x": 1}])


class LoaderFailureTests(unittest.TestCase):
    def test_missing_path(self):
        with self.assertRaises(FileReadError):
            load_rows(Path("/nonexistent/dir/vendas.csv"))

    def test_unsupported_suffix(self):
        with self.assertRaisesRegex(SheetImportError, "Unsupported format"):
            load_rows(b"%PDF-1.4", filename="vendas.pdf")

    def test_empty_file(self):
        with self.assertRaisesRegex(SheetImportError, "empty"):
            load_rows(b"   \n", filename="vendas.csv")

    def test_corrupt_workbook(self):
        with self.assertRaisesRegex(SheetImportError, "Could not read workbook"):
            load_rows(b"PK\x03\x04garbage", filename="vendas.xlsx")


if __name__ == "__main__":
    unittest.main()
