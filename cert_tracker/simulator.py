"""Goal simulator: what it takes to reach a target score. Advisory only."""

from __future__ import annotations

from typing import Optional, Sequence

from cert_tracker.config import CLASSIFICATION_TIERS
from cert_tracker.errors import ConfigurationError
from cert_tracker.scoring import resolve_tier
from cert_tracker.shared import (
    DADOS_AVANCADOS,
    DIGITAL_TI,
    VOZ_AVANCADA,
    ClassificationTier,
    CycleResult,
    SimulatorResult,
)

# Categories whose revenue drives the revenue projection.
PROJECTION_CATEGORIES = (DADOS_AVANCADOS, VOZ_AVANCADA, DIGITAL_TI)

MIN_PROBABILITY = 10.0
ON_PACE_PROBABILITY = 90.0
REACHED_PROBABILITY = 100.0


def simulate_goal(
    target_score: float,
    months_remaining: int,
    current_score: float,
    average_monthly_revenue: float,
    tiers: Optional[Sequence[ClassificationTier]] = None,
) -> SimulatorResult:
    points_needed = max(0.0, target_score - current_score)
    points_per_month = points_needed / months_remaining if months_remaining > 0 else 0.0

    if average_monthly_revenue > 0 and current_score > 0:
        revenue_needed = points_per_month / current_score * average_monthly_revenue
    else:
        revenue_needed = 0.0

    if points_needed <= 0:
        probability = REACHED_PROBABILITY
    elif current_score >= points_per_month:
        probability = ON_PACE_PROBABILITY
    else:
        ratio = current_score / points_per_month
        probability = min(ON_PACE_PROBABILITY, max(MIN_PROBABILITY, ratio * 100))

    projected = resolve_tier(current_score + points_per_month * max(months_remaining, 0), tiers)
    return SimulatorResult(
        target_score=target_score,
        current_score=current_score,
        points_needed=points_needed,
        points_per_month=points_per_month,
        revenue_needed_per_month=revenue_needed,
        success_probability=probability,
        projected_tier=projected.name,
    )


def average_monthly_revenue(cycle: CycleResult) -> float:
    """Mean advanced-data + voice + digital revenue over every cycle month."""
    if not cycle.months:
        return 0.0
    total = sum(month.revenue.get(category, 0.0) for month in cycle.months for category in PROJECTION_CATEGORIES)
    return total / len(cycle.months)


def simulate_from_cycle(
    cycle: CycleResult,
    target_score: float,
    months_remaining: int,
    tiers: Optional[Sequence[ClassificationTier]] = None,
) -> SimulatorResult:
    return simulate_goal(
        target_score,
        months_remaining,
        cycle.average_score,
        average_monthly_revenue(cycle),
        tiers,
    )


def target_for_tier(name: str, tiers: Optional[Sequence[ClassificationTier]] = None) -> float:
    """Minimum score of the named tier ('prata', 'OURO', ...)."""
    wanted = name.strip().upper()
    for tier in CLASSIFICATION_TIERS if tiers is None else tiers:
        if tier.name == wanted:
            return float(tier.minimum)
    raise ConfigurationError(f"Unknown tier '{name}'")
