from __future__ import annotations

import json
import unittest
from datetime import datetime
from pathlib import Path

from cert_tracker.contracts import (
    CONTRACT_VERSIONS,
    build_contract,
    build_run_summary,
    cycle_payload,
    import_payload,
    simulation_payload,
)
from cert_tracker.importer import import_rows
from cert_tracker.scoring import cycle_result
from cert_tracker.simulator import simulate_from_cycle

ROWS = [
    {
        "NR_PEDIDO": "A-1",
        "DT_RFS": "15/07/2025",
        "VL_BRUTO_SN": "1.000,00",
        "TIPO_GANHO_DETALHE": "VENDA",
        "DS_PRODUTO": "IP Dedicado",
        "CNPJ": "12.345.678/0001-90",
        "CLIENTE": "Cliente X",
        "PARCEIRO": "JLC Tech",
    },
    {
        "NR_PEDIDO": "B-1",
        "DT_RFS": "16/07/2025",
        "VL_BRUTO_SN": "200,00",
        "TIPO_GANHO_DETALHE": "VENDA",
        "DS_PRODUTO": "Internet IP",
        "CNPJ": "12.345.678/0001-90",
        "CLIENTE": "Cliente X",
        "PARCEIRO": "JLC Tech",
    },
    {
        "NR_PEDIDO": "",
        "DT_RFS": "16/07/2025",
        "VL_BRUTO_SN": "10",
        "TIPO_GANHO_DETALHE": "VENDA",
        "DS_PRODUTO": "VPN",
        "CNPJ": "",
        "CLIENTE": "",
        "PARCEIRO": "",
    },
]


def fixed_clock() -> datetime:
    return datetime(2025, 8, 1, 12, 0, 0)


class ContractTests(unittest.TestCase):
    def setUp(self):
        self.result = import_rows(ROWS, "AVANCADOS", clock=fixed_clock, stamp="T1")
        self.cycle = cycle_result(self.result.records)

    def test_import_payload(self):
        payload = import_payload(self.result)
        self.assertEqual(payload["contract"], build_contract("cert_tracker.import"))
        self.assertEqual(payload["counts"]["records"], 1)
        self.assertEqual(payload["counts"]["bundles"], 1)
        self.assertEqual(payload["counts"]["skipped"], 1)
        record = payload["records"][0]
        self.assertEqual(record["absorbed_orders"], ["B-1"])
        self.assertEqual(record["gross_value"], 1200.0)
        self.assertEqual(record["activation_date"], "2025-07-15T00:00:00")
        self.assertEqual(payload["skipped"][0], {"row_number": 4, "reason": "missing order number", "order_number": ""})
        json.dumps(payload)

    def test_cycle_payload_is_json_safe(self):
        payload = cycle_payload(self.cycle)
        self.assertEqual(payload["contract"]["version"], CONTRACT_VERSIONS["cert_tracker.cycle"])
        self.assertEqual(len(payload["months"]), 6)
        self.assertEqual(payload["months"][0]["month"], "2025-07")
        self.assertEqual(payload["tier"], self.cycle.tier)
        self.assertEqual(payload["records_scored"], 1)
        self.assertEqual(len(payload["trend"]), 5)
        json.dumps(payload, allow_nan=False)

    def test_simulation_payload(self):
        payload = simulation_payload(simulate_from_cycle(self.cycle, 3500, 1))
        self.assertEqual(payload["contract"]["name"], "cert_tracker.simulation")
        self.assertEqual(payload["target_score"], 3500)
        self.assertEqual(payload["projected_tier"], "PRATA")
        self.assertEqual(payload["projected_tier_label"], "Prata")
        json.dumps(payload, allow_nan=False)

    def test_run_summary(self):
        summary = build_run_summary(
            tool="cert-tracker",
            command="import",
            input_paths=[Path("vendas.xlsx")],
            metrics={"records": 1},
            warnings=["w1"],
        )
        self.assertEqual(summary["status"], "ok")
        self.assertEqual(summary["input_files"], ["vendas.xlsx"])
        self.assertIsNone(summary["output_file"])
        self.assertEqual(summary["warnings_count"], 1)
        self.assertTrue(summary["generated_at"].endswith("Z"))


if __name__ == "__main__":
    unittest.main()
