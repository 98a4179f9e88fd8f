"""
Static lookup tables and import policy settings.

Tables:
    REVENUE_BANDS         — category → five RevenueBand rows covering [0, inf)
    CLASSIFICATION_TIERS  — six tiers covering [0, inf)
    HEADER_VARIANTS       — canonical field → accepted spreadsheet headers
    SOURCE_COLUMNS        — source tag → canonical fields its export carries

Settings:
    ImportSettings        — migration / date-fallback / numeric-scale policy,
                            optionally read from CERT_TRACKER_* env vars
"""

from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from cert_tracker.errors import ConfigurationError
from cert_tracker.shared import (
    CATEGORIES,
    DADOS_AVANCADOS,
    DIGITAL_TI,
    LICENCAS,
    LOCACAO_EQUIPAMENTOS,
    NOVOS_PRODUTOS,
    SOURCES,
    VOZ_AVANCADA,
    ClassificationTier,
    RevenueBand,
)

INF = math.inf

# ── Revenue bands ──────────────────────────────────────────────────────────────

def _bands(*rows: tuple[float, float, int]) -> tuple[RevenueBand, ...]:
    return tuple(
        RevenueBand(rank=rank, minimum=low, maximum=high, points=points)
        for rank, (low, high, points) in enumerate(rows, start=1)
    )


REVENUE_BANDS: dict[str, tuple[RevenueBand, ...]] = {
    DADOS_AVANCADOS: _bands(
        (0, 300, 800), (300, 1000, 1600), (1000, 2000, 2400), (2000, 3500, 3200), (3500, INF, 4000),
    ),
    VOZ_AVANCADA: _bands(
        (0, 300, 800), (300, 1000, 1600), (1000, 2000, 2400), (2000, 3500, 3200), (3500, INF, 4000),
    ),
    DIGITAL_TI: _bands(
        (0, 1200, 400), (1200, 2100, 800), (2100, 3000, 1200), (3000, 4200, 1600), (4200, INF, 2000),
    ),
    NOVOS_PRODUTOS: _bands(
        (0, 2000, 100), (2000, 4000, 200), (4000, 6000, 300), (6000, 8000, 400), (8000, INF, 500),
    ),
    LOCACAO_EQUIPAMENTOS: _bands(
        (0, 400, 200), (400, 800, 400), (800, 1200, 600), (1200, 1600, 800), (1600, INF, 1000),
    ),
    LICENCAS: _bands(
        (0, 400, 100), (400, 800, 200), (800, 1200, 300), (1200, 1600, 400), (1600, INF, 500),
    ),
}

# ── Classification tiers ───────────────────────────────────────────────────────

CLASSIFICATION_TIERS: tuple[ClassificationTier, ...] = (
    ClassificationTier("NAO_CERTIFICADO", 0, 1499, 0.0),
    ClassificationTier("BRONZE", 1500, 3499, 0.0),
    ClassificationTier("PRATA", 3500, 5499, 2.5),
    ClassificationTier("OURO", 5500, 7499, 5.0),
    ClassificationTier("DIAMANTE", 7500, 9499, 7.5),
    ClassificationTier("PLATINUM", 9500, INF, 10.0),
)

# Second certification cycle: July to December 2025.
DEFAULT_CYCLE_START = datetime(2025, 7, 1)
DEFAULT_CYCLE_END = datetime(2025, 12, 31)

# ── Column mapping ─────────────────────────────────────────────────────────────

HEADER_VARIANTS: dict[str, tuple[str, ...]] = {
    "order_number": (
        "NR_PEDIDO", "PEDIDO", "Número do Pedido", "Nº Pedido", "Num Pedido",
        "NR_ORDEM", "Ordem", "Order", "Order Number", "OS",
    ),
    "activation_date": (
        "DT_RFS", "Data RFS", "Data Ativação", "DT_ATIVACAO", "Data de Ativação",
        "Activation Date", "Data",
    ),
    "gross_value": (
        "VL_BRUTO_SN", "Valor Bruto SN", "Valor Bruto", "VL_BRUTO", "Receita",
        "Gross Value", "Valor",
    ),
    "sale_type": (
        "TIPO_GANHO_DETALHE", "Tipo Ganho Detalhe", "Tipo Venda", "Tipo de Venda",
        "TIPO_VENDA", "Sale Type", "Tipo",
    ),
    "product": (
        "DS_PRODUTO", "Produto", "Descrição do Produto", "Descricao Produto",
        "Product", "Produto Vendido",
    ),
    "tax_id": (
        "CNPJ", "NR_CNPJ", "CPF/CNPJ", "CNPJ Cliente", "Tax ID",
    ),
    "customer_name": (
        "CLIENTE", "Nome Cliente", "Nome do Cliente", "Razão Social", "Customer",
    ),
    "partner": (
        "PARCEIRO", "Parceiro", "Rede", "Canal", "Partner",
    ),
    "area": (
        "AREA", "Área de Atuação", "Area Atuacao", "Área",
    ),
}

CANONICAL_FIELDS = tuple(HEADER_VARIANTS)

_COMMON_COLUMNS = ("order_number", "activation_date", "gross_value", "sale_type", "product")

SOURCE_COLUMNS: dict[str, tuple[str, ...]] = {
    "AVANCADOS": _COMMON_COLUMNS + ("tax_id", "customer_name", "partner"),
    "TI_GUD": _COMMON_COLUMNS + ("tax_id", "customer_name", "partner"),
    "TECH": _COMMON_COLUMNS + ("tax_id", "customer_name"),
}

# ── Policies ───────────────────────────────────────────────────────────────────

MIGRATION_POLICIES = ("skip", "retain")
DATE_FALLBACKS = ("batch", "skip")


@dataclass(frozen=True)
class ImportSettings:
    """
    Policy knobs for one import call.

    migration_policy  "skip" drops migration rows; "retain" keeps them as
                      non-scoring MIGRACAO records for audit.
    date_fallback     "batch" substitutes the batch clock for unparseable
                      dates; "skip" drops the row instead.
    numeric_scale     factor applied to native numeric value cells.
    """

    migration_policy: str = "skip"
    date_fallback: str = "batch"
    numeric_scale: float = 1.0

    def __post_init__(self) -> None:
        if self.migration_policy not in MIGRATION_POLICIES:
            raise ConfigurationError(
                f"Unknown migration policy '{self.migration_policy}'. "
                f"Expected one of: {', '.join(MIGRATION_POLICIES)}"
            )
        if self.date_fallback not in DATE_FALLBACKS:
            raise ConfigurationError(
                f"Unknown date fallback '{self.date_fallback}'. "
                f"Expected one of: {', '.join(DATE_FALLBACKS)}"
            )
        if self.numeric_scale <= 0:
            raise ConfigurationError("numeric_scale must be positive")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "ImportSettings":
        env = os.environ if environ is None else environ
        scale_text = env.get("CERT_TRACKER_NUMERIC_SCALE", "1")
        try:
            scale = float(scale_text)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid CERT_TRACKER_NUMERIC_SCALE: {scale_text!r}") from exc
        return cls(
            migration_policy=env.get("CERT_TRACKER_MIGRATION_POLICY", "skip").strip().lower(),
            date_fallback=env.get("CERT_TRACKER_DATE_FALLBACK", "batch").strip().lower(),
            numeric_scale=scale,
        )


def validate_source(source: str) -> str:
    tag = (source or "").strip().upper()
    if tag not in SOURCES:
        raise ConfigurationError(f"Unknown source '{source}'. Expected one of: {', '.join(SOURCES)}")
    return tag


# ── Table validation ───────────────────────────────────────────────────────────

def validate_bands(bands: tuple[RevenueBand, ...] | list[RevenueBand], label: str = "bands") -> None:
    """Bands must start at 0, be contiguous, and end unbounded."""
    if not bands:
        raise ConfigurationError(f"{label}: no bands configured")
    if bands[0].minimum != 0:
        raise ConfigurationError(f"{label}: first band must start at 0")
    for before, after in zip(bands, bands[1:]):
        if before.maximum != after.minimum:
            raise ConfigurationError(
                f"{label}: band {before.rank} ends at {before.maximum} but band {after.rank} "
                f"starts at {after.minimum}"
            )
    for band in bands:
        if band.maximum <= band.minimum:
            raise ConfigurationError(f"{label}: band {band.rank} is empty")
    if not math.isinf(bands[-1].maximum):
        raise ConfigurationError(f"{label}: last band must be unbounded")


def validate_tiers(tiers: tuple[ClassificationTier, ...] | list[ClassificationTier]) -> None:
    """Integer tier ranges must be ascending and contiguous from 0 to inf."""
    if not tiers:
        raise ConfigurationError("tiers: no tiers configured")
    if tiers[0].minimum != 0:
        raise ConfigurationError("tiers: first tier must start at 0")
    for before, after in zip(tiers, tiers[1:]):
        if after.minimum != before.maximum + 1:
            raise ConfigurationError(
                f"tiers: {before.name} ends at {before.maximum} but {after.name} starts at {after.minimum}"
            )
    if not math.isinf(tiers[-1].maximum):
        raise ConfigurationError("tiers: last tier must be unbounded")


def _bound(value: Any) -> float:
    if value is None or (isinstance(value, str) and value.strip().lower() in {"inf", "infinity"}):
        return INF
    return float(value)


def load_tables(path: "str | Path") -> dict[str, Any]:
    """
    Read a JSON override for the scoring tables.

    Shape:
        {"bands": {"DADOS_AVANCADOS": [[0, 300, 800], ..., [3500, null, 4000]]},
         "tiers": [["NAO_CERTIFICADO", 0, 1499, 0], ..., ["PLATINUM", 9500, null, 10]]}

    Missing keys fall back to the built-in tables. Returns
    {"bands": {...}, "tiers": (...)}.
    """
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Could not read tables from {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Tables file {path} must hold a JSON object")

    bands = dict(REVENUE_BANDS)
    for category, rows in (payload.get("bands") or {}).items():
        if category not in CATEGORIES:
            raise ConfigurationError(f"Unknown category in band table: {category}")
        try:
            parsed = _bands(*[(float(low), _bound(high), int(points)) for low, high, points in rows])
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"Band rows for {category} must be [min, max, points] numbers: {exc}"
            ) from exc
        validate_bands(parsed, category)
        bands[category] = parsed

    tiers = CLASSIFICATION_TIERS
    if payload.get("tiers"):
        try:
            tiers = tuple(
                ClassificationTier(str(name), float(low), _bound(high), float(bonus))
                for name, low, high, bonus in payload["tiers"]
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Tier rows must be [name, min, max, bonus]: {exc}") from exc
        validate_tiers(tiers)

    return {"bands": bands, "tiers": tiers}
