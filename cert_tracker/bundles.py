"""
Related-order aggregation.

A dedicated-IP order absorbs the data-monitoring and internet-IP orders
placed by the same customer in the same import batch. Customers are
matched on the normalized (digits-only) tax id. Satellites whose customer
has no dedicated-IP order in the batch are left alone and emitted as
ordinary records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from cert_tracker.normalization import cell_text, fold_text

logger = logging.getLogger(__name__)

PRIMARY = "primary"
SATELLITE = "satellite"

PRIMARY_KEYWORDS = ("ip dedicado", "ip dedicada", "dedicated ip")
SATELLITE_KEYWORDS = ("monitoramento de dados", "data monitoring", "internet ip")


@dataclass
class Bundle:
    tax_id: str
    primary: int
    satellites: list[int] = field(default_factory=list)


def bundle_role(product: Any) -> str | None:
    text = " ".join(fold_text(cell_text(product)).split())
    if any(keyword in text for keyword in PRIMARY_KEYWORDS):
        return PRIMARY
    if any(keyword in text for keyword in SATELLITE_KEYWORDS):
        return SATELLITE
    return None


def find_bundles(candidates: Iterable[tuple[int, Any, str]]) -> list[Bundle]:
    """
    Group satellites under their customer's dedicated-IP order.

    ``candidates`` yields (row index, product, normalized tax id) for every
    row eligible to take part. When a customer has several dedicated-IP
    orders, the first one in row order absorbs all satellites. Only
    bundles with at least one satellite are returned.
    """
    primaries: dict[str, int] = {}
    satellites: dict[str, list[int]] = {}

    for index, product, tax_id in candidates:
        if not tax_id:
            continue
        role = bundle_role(product)
        if role == PRIMARY:
            primaries.setdefault(tax_id, index)
        elif role == SATELLITE:
            satellites.setdefault(tax_id, []).append(index)

    bundles = []
    for tax_id, primary in primaries.items():
        members = satellites.get(tax_id)
        if not members:
            continue
        bundles.append(Bundle(tax_id=tax_id, primary=primary, satellites=list(members)))
        logger.debug("Bundled %d satellite order(s) into row %d for %s", len(members), primary, tax_id)
    return sorted(bundles, key=lambda bundle: bundle.primary)


def absorbed_indices(bundles: Iterable[Bundle]) -> set[int]:
    return {index for bundle in bundles for index in bundle.satellites}
