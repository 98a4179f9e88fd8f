"""Versioned JSON payloads handed to the presentation layer."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cert_tracker.shared import (
    CATEGORY_LABELS,
    TIER_LABELS,
    CycleResult,
    ImportResult,
    MonthlyResult,
    SalesRecord,
    SimulatorResult,
)

CONTRACT_VERSIONS = {
    "cert_tracker.import": "1.0.0",
    "cert_tracker.cycle": "1.0.0",
    "cert_tracker.simulation": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    tool: str,
    command: str,
    input_paths: list[Path],
    status: str = "ok",
    output_path: Path | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": tool,
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_files": [str(path) for path in input_paths],
        "output_file": str(output_path) if output_path else None,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def _number(value: float) -> float | None:
    # JSON has no infinity; unbounded limits become null.
    if math.isinf(value):
        return None
    return round(value, 2)


def record_payload(record: SalesRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "order_number": record.order_number,
        "activation_date": record.activation_date.isoformat(),
        "gross_value": round(record.gross_value, 2),
        "sale_type": record.sale_type,
        "partner": record.partner,
        "category": record.category,
        "product": record.product,
        "tax_id": record.tax_id,
        "customer_name": record.customer_name,
        "source": record.source,
        "absorbed_orders": list(record.absorbed_orders),
        "area": record.area,
        "network": record.network,
    }


def import_payload(result: ImportResult) -> dict[str, Any]:
    return {
        "contract": build_contract("cert_tracker.import"),
        "source": result.source,
        "batch_stamp": result.batch_stamp,
        "rows_total": result.rows_total,
        "records": [record_payload(record) for record in result.records],
        "skipped": [
            {"row_number": row.row_number, "reason": row.reason, "order_number": row.order_number}
            for row in result.skipped
        ],
        "missing_columns": list(result.missing_columns),
        "warnings": list(result.warnings),
        "counts": {
            "records": len(result.records),
            "sales": len(result.sales),
            "migrations": len(result.migrations),
            "bundles": len(result.bundles),
            "skipped": len(result.skipped),
        },
    }


def month_payload(month: MonthlyResult) -> dict[str, Any]:
    return {
        "month": month.key,
        "revenue": {category: round(value, 2) for category, value in month.revenue.items()},
        "points": dict(month.points),
        "points_total": month.points_total,
        "has_revenue": month.has_revenue,
    }


def cycle_payload(cycle: CycleResult) -> dict[str, Any]:
    return {
        "contract": build_contract("cert_tracker.cycle"),
        "start": cycle.start.strftime("%Y-%m-%d"),
        "end": cycle.end.strftime("%Y-%m-%d"),
        "months": [month_payload(month) for month in cycle.months],
        "average_score": cycle.average_score,
        "tier": cycle.tier,
        "tier_label": TIER_LABELS.get(cycle.tier, cycle.tier),
        "bonus_percent": cycle.bonus_percent,
        "total_revenue": round(cycle.total_revenue, 2),
        "total_points": cycle.total_points,
        "active_months": cycle.active_months,
        "trend": cycle.trend,
        "records_scored": len(cycle.records),
        "category_labels": dict(CATEGORY_LABELS),
    }


def simulation_payload(result: SimulatorResult) -> dict[str, Any]:
    return {
        "contract": build_contract("cert_tracker.simulation"),
        "target_score": _number(result.target_score),
        "current_score": _number(result.current_score),
        "points_needed": _number(result.points_needed),
        "points_per_month": _number(result.points_per_month),
        "revenue_needed_per_month": _number(result.revenue_needed_per_month),
        "success_probability": _number(result.success_probability),
        "projected_tier": result.projected_tier,
        "projected_tier_label": TIER_LABELS.get(result.projected_tier, result.projected_tier),
    }
