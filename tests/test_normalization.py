from __future__ import annotations

import unittest
from datetime import date, datetime

import pandas as pd

from cert_tracker.errors import InvalidCellValue, InvalidDate
from cert_tracker.normalization import (
    area_of,
    cell_text,
    fold_text,
    normalize_tax_id,
    parse_date,
    parse_value,
    partner_of,
    sale_type_of,
    serial_to_datetime,
)
from cert_tracker.shared import DENTRO, FORA, JLC_TECH, MIGRACAO, SAFE_TI, VENDA


class ParseValueTests(unittest.TestCase):
    def test_brazilian_currency_string(self):
        self.assertEqual(parse_value("R$ 1.234,56"), 1234.56)
        self.assertEqual(parse_value("1234,56"), 1234.56)
        self.assertEqual(parse_value("R$ 1.234.567,89"), 1234567.89)

    def test_us_formatted_string(self):
        self.assertEqual(parse_value("1,234.56"), 1234.56)

    def test_three_fraction_digits_mean_thousands(self):
        self.assertEqual(parse_value("1.234"), 1234.0)
        self.assertEqual(parse_value("12,500"), 12500.0)

    def test_empty_and_sentinel_cells_are_zero(self):
        for value in (None, "", "   ", "null", "nulo", "NaN", "-", "n/a", float("nan")):
            with self.subTest(value=value):
                self.assertEqual(parse_value(value), 0.0)

    def test_sign_and_accounting_parentheses(self):
        self.assertEqual(parse_value("-150,00"), -150.0)
        self.assertEqual(parse_value("(200,50)"), -200.5)

    def test_scientific_notation_string(self):
        self.assertEqual(parse_value("1.5E+3"), 1500.0)

    def test_native_numbers_are_not_scaled_by_default(self):
        self.assertEqual(parse_value(1500), 1500.0)
        self.assertEqual(parse_value(99.9), 99.9)
        self.assertEqual(parse_value(12, scale=100), 1200.0)

    def test_unparsable_text(self):
        self.assertEqual(parse_value("abc"), 0.0)
        with self.assertRaises(InvalidCellValue):
            parse_value("abc", strict=True)


class ParseDateTests(unittest.TestCase):
    def test_day_first_string(self):
        parsed = parse_date("31/12/2025")
        self.assertEqual((parsed.year, parsed.month, parsed.day), (2025, 12, 31))

    def test_day_first_string_with_time(self):
        self.assertEqual(parse_date("15/07/2025 14:30"), datetime(2025, 7, 15, 14, 30))

    def test_iso_string(self):
        parsed = parse_date("2025-07-01")
        self.assertEqual((parsed.year, parsed.month, parsed.day), (2025, 7, 1))
        self.assertEqual(parse_date("2025-07-01T08:15:00"), datetime(2025, 7, 1, 8, 15))

    def test_serial_day_one_is_first_of_january_1900(self):
        self.assertEqual(parse_date(1), datetime(1900, 1, 1))

    def test_modern_serials(self):
        self.assertEqual(parse_date(45839), datetime(2025, 7, 1))
        self.assertEqual(parse_date(45839.5), datetime(2025, 7, 1, 12, 0))
        self.assertEqual(parse_date("45839"), datetime(2025, 7, 1))
        self.assertEqual(serial_to_datetime(61), datetime(1900, 3, 1))

    def test_native_dates_pass_through(self):
        self.assertEqual(parse_date(datetime(2025, 8, 2, 10, 0)), datetime(2025, 8, 2, 10, 0))
        self.assertEqual(parse_date(date(2025, 8, 2)), datetime(2025, 8, 2))
        self.assertEqual(parse_date(pd.Timestamp("2025-08-02")), datetime(2025, 8, 2))

    def test_invalid_inputs_raise_invalid_date(self):
        for value in (None, "", "nulo", "31/02/2025", "not a date", -5, pd.NaT):
            with self.subTest(value=value):
                with self.assertRaises(InvalidDate):
                    parse_date(value)

    def test_invalid_date_is_an_invalid_cell_value(self):
        self.assertTrue(issubclass(InvalidDate, InvalidCellValue))


class TaxIdTests(unittest.TestCase):
    def test_formatted_cnpj(self):
        self.assertEqual(normalize_tax_id("12.345.678/0001-90"), "12345678000190")

    def test_numeric_inputs(self):
        self.assertEqual(normalize_tax_id(12345678000190), "12345678000190")
        self.assertEqual(normalize_tax_id(1.234567800019e13), "12345678000190")
        self.assertEqual(normalize_tax_id("1.2345678000199E+13"), "12345678000199")
        self.assertEqual(normalize_tax_id("12345678000190.0"), "12345678000190")

    def test_short_ids_are_left_padded(self):
        self.assertEqual(normalize_tax_id("123"), "00000000000123")

    def test_empty(self):
        self.assertEqual(normalize_tax_id(None), "")
        self.assertEqual(normalize_tax_id(""), "")
        self.assertEqual(normalize_tax_id("sem cnpj"), "")


class LabelTests(unittest.TestCase):
    def test_sale_type_markers(self):
        self.assertEqual(sale_type_of("VENDA"), VENDA)
        self.assertEqual(sale_type_of("Ganho Novo"), VENDA)
        self.assertEqual(sale_type_of("Migração"), MIGRACAO)
        self.assertIsNone(sale_type_of("Cancelamento"))
        self.assertIsNone(sale_type_of(None))

    def test_migration_marker_wins_over_sale_marker(self):
        self.assertEqual(sale_type_of("MIGRAÇÃOVENDA"), MIGRACAO)
        self.assertEqual(sale_type_of("Venda - migracao de plano"), MIGRACAO)

    def test_partner_detection(self):
        self.assertEqual(partner_of("Safe TI"), SAFE_TI)
        self.assertEqual(partner_of("JLC Tech"), JLC_TECH)
        self.assertEqual(partner_of(""), JLC_TECH)

    def test_area_detection(self):
        self.assertEqual(area_of("Fora da área"), FORA)
        self.assertEqual(area_of("Dentro"), DENTRO)
        self.assertEqual(area_of(None), DENTRO)

    def test_text_helpers(self):
        self.assertEqual(fold_text("MIGRAÇÃO"), "migracao")
        self.assertEqual(cell_text(12345.0), "12345")
        self.assertEqual(cell_text("  IP   Dedicado "), "IP Dedicado")
        self.assertEqual(cell_text("nulo"), "")


if __name__ == "__main__":
    unittest.main()
