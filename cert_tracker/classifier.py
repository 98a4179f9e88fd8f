"""
Product description → certification category.

Groups are checked in order and the first group with a matching keyword
wins, so a description naming both a voice product and a digital product
lands in VOZ_AVANCADA. Keywords match anywhere in the lower-cased text,
short ones included ("ti" also matches "ativos"). Anything unmatched falls
back to DADOS_AVANCADOS.
"""

from __future__ import annotations

from typing import Any

from cert_tracker.normalization import cell_text
from cert_tracker.shared import (
    DADOS_AVANCADOS,
    DEFAULT_CATEGORY,
    DIGITAL_TI,
    LICENCAS,
    LOCACAO_EQUIPAMENTOS,
    NOVOS_PRODUTOS,
    VOZ_AVANCADA,
)

KEYWORD_GROUPS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (DADOS_AVANCADOS, ("internet dedicada", "vpn", "satélite", "satelite", "vox", "frame relay")),
    (VOZ_AVANCADA, ("vvn", "sip", "num", "ddr", "0800")),
    (DIGITAL_TI, ("digital", "ti", "cloud", "nuvem", "one shot")),
    (LICENCAS, ("microsoft", "office", "google workspace", "licença", "licenca")),
    (LOCACAO_EQUIPAMENTOS, ("locação", "locacao", "equipamento")),
    (NOVOS_PRODUTOS, ("energia", "novo")),
)


def classify_product(product: Any) -> str:
    text = cell_text(product).lower()
    for category, keywords in KEYWORD_GROUPS:
        if any(keyword in text for keyword in keywords):
            return category
    return DEFAULT_CATEGORY
