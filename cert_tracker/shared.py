from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Mapping

DADOS_AVANCADOS = "DADOS_AVANCADOS"
VOZ_AVANCADA = "VOZ_AVANCADA"
DIGITAL_TI = "DIGITAL_TI"
LICENCAS = "LICENCAS"
LOCACAO_EQUIPAMENTOS = "LOCACAO_EQUIPAMENTOS"
NOVOS_PRODUTOS = "NOVOS_PRODUTOS"

CATEGORIES = (
    DADOS_AVANCADOS,
    VOZ_AVANCADA,
    DIGITAL_TI,
    LICENCAS,
    LOCACAO_EQUIPAMENTOS,
    NOVOS_PRODUTOS,
)
DEFAULT_CATEGORY = DADOS_AVANCADOS

CATEGORY_LABELS = {
    DADOS_AVANCADOS: "Dados Avançados",
    VOZ_AVANCADA: "Voz Avançada + VVN",
    DIGITAL_TI: "Digital/TI",
    LICENCAS: "Licenças",
    LOCACAO_EQUIPAMENTOS: "Locação de Equipamentos",
    NOVOS_PRODUTOS: "Novos Produtos",
}

VENDA = "VENDA"
MIGRACAO = "MIGRACAO"

JLC_TECH = "JLC_TECH"
SAFE_TI = "SAFE_TI"
PARTNERS = (JLC_TECH, SAFE_TI)
DEFAULT_PARTNER = JLC_TECH

PARTNER_LABELS = {
    JLC_TECH: "JLC Tech",
    SAFE_TI: "Safe TI",
}

DENTRO = "DENTRO"
FORA = "FORA"
AREAS = (DENTRO, FORA)

SOURCES = ("AVANCADOS", "TI_GUD", "TECH")

NAO_CERTIFICADO = "NAO_CERTIFICADO"

TIER_LABELS = {
    "NAO_CERTIFICADO": "Não Certificado",
    "BRONZE": "Bronze",
    "PRATA": "Prata",
    "OURO": "Ouro",
    "DIAMANTE": "Diamante",
    "PLATINUM": "Platinum",
}


@dataclass(frozen=True)
class SalesRecord:
    id: str
    order_number: str
    activation_date: datetime
    gross_value: float
    sale_type: str
    partner: str
    category: str
    product: str
    tax_id: str
    customer_name: str
    source: str
    absorbed_orders: tuple[str, ...] = ()
    area: str = DENTRO
    network: str = ""

    @property
    def is_sale(self) -> bool:
        return self.sale_type == VENDA

    @property
    def is_bundle(self) -> bool:
        return bool(self.absorbed_orders)


@dataclass(frozen=True)
class RevenueBand:
    rank: int
    minimum: float
    maximum: float
    points: int

    def contains(self, revenue: float) -> bool:
        return self.minimum <= revenue < self.maximum


@dataclass(frozen=True)
class ClassificationTier:
    name: str
    minimum: float
    maximum: float
    bonus_percent: float

    def contains(self, score: float) -> bool:
        return self.minimum <= score <= self.maximum

    @property
    def label(self) -> str:
        return TIER_LABELS.get(self.name, self.name)


@dataclass(frozen=True)
class MonthlyResult:
    year: int
    month: int
    revenue: Mapping[str, float]
    points: Mapping[str, int]
    points_total: int

    def __post_init__(self) -> None:
        # read-only copies; the result is a value
        object.__setattr__(self, "revenue", MappingProxyType(dict(self.revenue)))
        object.__setattr__(self, "points", MappingProxyType(dict(self.points)))

    @property
    def has_revenue(self) -> bool:
        return any(value > 0 for value in self.revenue.values())

    @property
    def total_revenue(self) -> float:
        return sum(self.revenue.values())

    @property
    def key(self) -> str:
        return f"{self.year}-{self.month:02d}"


@dataclass(frozen=True)
class CycleResult:
    start: datetime
    end: datetime
    months: tuple[MonthlyResult, ...]
    average_score: float
    tier: str
    bonus_percent: float
    records: tuple[SalesRecord, ...] = ()

    @property
    def total_revenue(self) -> float:
        return sum(month.total_revenue for month in self.months)

    @property
    def total_points(self) -> int:
        return sum(month.points_total for month in self.months)

    @property
    def active_months(self) -> int:
        return sum(1 for month in self.months if month.has_revenue)

    @property
    def trend(self) -> list[int]:
        """Month-over-month change of the monthly point totals."""
        totals = [month.points_total for month in self.months]
        return [after - before for before, after in zip(totals, totals[1:])]


@dataclass(frozen=True)
class SimulatorResult:
    target_score: float
    current_score: float
    points_needed: float
    points_per_month: float
    revenue_needed_per_month: float
    success_probability: float
    projected_tier: str


@dataclass
class SkippedRow:
    row_number: int
    reason: str
    order_number: str = ""


@dataclass
class Change:
    record_id: str
    field_name: str
    original_value: object
    new_value: object
    reason: str


@dataclass
class ImportResult:
    records: list[SalesRecord]
    skipped: list[SkippedRow]
    warnings: list[str]
    source: str
    batch_stamp: str
    rows_total: int
    missing_columns: list[str] = field(default_factory=list)

    @property
    def sales(self) -> list[SalesRecord]:
        return [record for record in self.records if record.is_sale]

    @property
    def migrations(self) -> list[SalesRecord]:
        return [record for record in self.records if not record.is_sale]

    @property
    def bundles(self) -> list[SalesRecord]:
        return [record for record in self.records if record.is_bundle]

