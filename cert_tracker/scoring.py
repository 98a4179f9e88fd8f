"""
Scoring engine: sale records → monthly points → cycle score and tier.

Only VENDA records are scored. Revenue booked outside the partner's
territory (area FORA) counts at half its value.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Iterable, Mapping, Optional, Sequence

from cert_tracker.config import (
    CLASSIFICATION_TIERS,
    DEFAULT_CYCLE_END,
    DEFAULT_CYCLE_START,
    REVENUE_BANDS,
)
from cert_tracker.shared import (
    CATEGORIES,
    FORA,
    NAO_CERTIFICADO,
    ClassificationTier,
    CycleResult,
    MonthlyResult,
    RevenueBand,
    SalesRecord,
)

logger = logging.getLogger(__name__)

OUTSIDE_AREA_FACTOR = 0.5

BandTable = Mapping[str, Sequence[RevenueBand]]


def points_for_revenue(revenue: float, bands: Sequence[RevenueBand]) -> int:
    if revenue <= 0 or not bands:
        return 0
    for band in bands:
        if band.contains(revenue):
            return band.points
    return bands[-1].points


def scored_value(record: SalesRecord) -> float:
    if record.area == FORA:
        return record.gross_value * OUTSIDE_AREA_FACTOR
    return record.gross_value


def monthly_result(
    month: int,
    year: int,
    records: Iterable[SalesRecord],
    bands: Optional[BandTable] = None,
) -> MonthlyResult:
    bands = REVENUE_BANDS if bands is None else bands
    revenue = {category: 0.0 for category in CATEGORIES}
    for record in records:
        if not record.is_sale:
            continue
        when = record.activation_date
        if when.year != year or when.month != month:
            continue
        revenue[record.category] += scored_value(record)

    points = {category: points_for_revenue(revenue[category], bands[category]) for category in CATEGORIES}
    return MonthlyResult(
        year=year,
        month=month,
        revenue=revenue,
        points=points,
        points_total=sum(points.values()),
    )


def cycle_months(start: date, end: date) -> list[tuple[int, int]]:
    """Every (year, month) from ``start`` to ``end``, both inclusive."""
    if end < start:
        raise ValueError(f"Cycle end {end:%Y-%m-%d} is before start {start:%Y-%m-%d}")
    months = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        months.append((year, month))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


def resolve_tier(
    score: float,
    tiers: Optional[Sequence[ClassificationTier]] = None,
) -> ClassificationTier:
    tiers = CLASSIFICATION_TIERS if tiers is None else tiers
    floored = math.floor(score) if math.isfinite(score) else score
    for tier in tiers:
        if tier.contains(floored):
            return tier
    return ClassificationTier(NAO_CERTIFICADO, 0, 0, 0.0)


def cycle_result(
    records: Iterable[SalesRecord],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    bands: Optional[BandTable] = None,
    tiers: Optional[Sequence[ClassificationTier]] = None,
    partner: Optional[str] = None,
) -> CycleResult:
    """
    Score a certification cycle.

    Every calendar month between ``start`` and ``end`` gets a
    MonthlyResult, active or not. The average divides the summed points by
    the number of months with revenue, or by the month count when none has
    any. ``partner`` restricts scoring to one partner's records.
    """
    if start is None or end is None:
        default_start, default_end = default_cycle()
        start = start or default_start
        end = end or default_end

    selected = tuple(
        record
        for record in records
        if record.is_sale and (partner is None or record.partner == partner)
    )
    months = tuple(
        monthly_result(month, year, selected, bands) for year, month in cycle_months(start, end)
    )
    active = sum(1 for month in months if month.has_revenue)
    divisor = active or len(months)
    average = round(sum(month.points_total for month in months) / divisor, 2)
    tier = resolve_tier(average, tiers)

    logger.info(
        "Cycle %s..%s: %d record(s), %d/%d active month(s), average %.2f -> %s",
        f"{start:%Y-%m}", f"{end:%Y-%m}", len(selected), active, len(months), average, tier.name,
    )
    return CycleResult(
        start=start,
        end=end,
        months=months,
        average_score=average,
        tier=tier.name,
        bonus_percent=tier.bonus_percent,
        records=selected,
    )


def default_cycle() -> tuple[datetime, datetime]:
    return DEFAULT_CYCLE_START, DEFAULT_CYCLE_END
