#!/usr/bin/env python3
"""
Generates sample-data/avancados_sample.xlsx, a sales export in the shape the
AVANCADOS team sends, with the formatting problems cert-tracker has to absorb.

Run from the repo root:
    python sample-data/generate_xlsx.py
    cert-tracker score sample-data/avancados_sample.xlsx --source AVANCADOS

Problems baked in:
  Sheet "Vendas"
    - Header variants: "Nº Pedido", "Data Ativação", "Valor Bruto", ...
    - Values as native numbers, "R$ 1.234,56" text and "1,234.56" text
    - Dates as real dates, DD/MM/YYYY text and spreadsheet serials
    - CNPJ as formatted text, as a bare number and in scientific notation
    - Dedicated-IP bundle: one primary plus two satellites for one customer
    - A migration row and a "MIGRAÇÃOVENDA" row (both excluded)
    - A row without product and a row without order number
    - An empty row
  Sheet "Resumo"
    - Second sheet, ignored unless --sheet is given
"""

from datetime import datetime
from pathlib import Path

import openpyxl

OUTPUT = Path(__file__).parent / "avancados_sample.xlsx"

wb = openpyxl.Workbook()

# ── Sheet 1: Vendas ──────────────────────────────────────────────────────────
ws = wb.active
ws.title = "Vendas"

headers = ["Nº Pedido", "Data Ativação", "Valor Bruto", "Tipo Venda", "Produto", "CNPJ", "Cliente", "Parceiro", "Área"]
ws.append(headers)

data = [
    # pedido    ativação                 valor           tipo              produto                      cnpj                    cliente            parceiro     área
    ["P-1001", datetime(2025, 7, 3),    1000,           "VENDA",          "IP Dedicado 50MB",          "12.345.678/0001-90",   "Padaria Sol",     "JLC Tech",  "Dentro"],   # row 2
    ["P-1002", "05/07/2025",            "R$ 200,00",    "VENDA",          "Monitoramento de Dados",    12345678000190,         "Padaria Sol",     "JLC Tech",  "Dentro"],   # row 3
    ["P-1003", 45846,                   "150,00",       "VENDA",          "Internet IP",               "1.234567800019E+13",   "Padaria Sol",     "JLC Tech",  "Dentro"],   # row 4
    ["P-1004", "12/08/2025",            "1,250.00",     "Ganho Novo",     "SIP Trunk 30 canais",       "98.765.432/0001-10",   "Mercado Lua",     "JLC Tech",  "Dentro"],   # row 5
    [None,     None,                    None,           None,             None,                        None,                   None,              None,        None],       # row 6: empty
    ["P-1005", "20/08/2025",            "R$ 3.400,00",  "VENDA",          "Cloud Server Pro",          "11.222.333/0001-44",   "Clínica Estrela", "Safe TI",   "Fora"],     # row 7
    ["P-1006", "02/09/2025",            "500,00",       "MIGRAÇÃO",       "Microsoft 365 Business",    "11.222.333/0001-44",   "Clínica Estrela", "Safe TI",   "Dentro"],   # row 8
    ["P-1007", "03/09/2025",            "800,00",       "MIGRAÇÃOVENDA",  "VPN IP",                    "11.222.333/0001-44",   "Clínica Estrela", "Safe TI",   "Dentro"],   # row 9
    ["P-1008", "15/09/2025",            "900,00",       "VENDA",          None,                        "55.666.777/0001-88",   "Oficina Norte",   "JLC Tech",  "Dentro"],   # row 10: no product
    [None,     "16/09/2025",            "900,00",       "VENDA",          "Locação de Equipamento",    "55.666.777/0001-88",   "Oficina Norte",   "JLC Tech",  "Dentro"],   # row 11: no order
    ["P-1009", "01/10/2025",            "2.100,00",     "VENDA",          "Locação de Equipamento",    "55.666.777/0001-88",   "Oficina Norte",   "JLC Tech",  "Dentro"],   # row 12
    ["P-1010", "nulo",                  "700,00",       "VENDA",          "Google Workspace",          None,                   None,              None,        None],       # row 13: bad date
]

for row in data:
    ws.append(row)

# ── Sheet 2: Resumo ───────────────────────────────────────────────────────────
ws_summary = wb.create_sheet("Resumo")
ws_summary.append(["mês", "pontos"])
ws_summary.append(["2025-07", 2400])

wb.save(OUTPUT)
print(f"Created: {OUTPUT}")
