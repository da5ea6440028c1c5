"""
Tax & Fee Engine — Starter Catalog
==================================
The four Texas dealer regimes a fresh install starts with. Shaped for
InMemoryRuleCatalog.from_dict; load_seed_catalog publishes the same
data into any catalog store (in-memory or ORM).
"""

from __future__ import annotations

from typing import Any, Mapping

from engines.tax_fees.catalog import load_catalog

TITLE_FEE = {"name": "Title Fee", "calc_type": "fixed", "base": "custom", "rate_or_amount": "33.00"}
TEMP_PLATE = {
    "name": "Temp Plate", "calc_type": "fixed", "base": "custom",
    "rate_or_amount": "25.00", "kind": "temp_plate",
}
SALES_TAX = {
    "name": "Sales Tax", "calc_type": "percent", "base": "vehicle_subtotal",
    "rate_or_amount": "6.25", "kind": "tax",
}

SEED_CATALOG = {
    "regimes": [
        {
            "regime_id": "tx-combo",
            "name": "TX Combo",
            "jurisdiction": "TX",
            "rules": [{
                "effective_from": "2025-01-01",
                "lines": [
                    SALES_TAX,
                    TITLE_FEE,
                    {"name": "Registration", "calc_type": "fixed", "base": "custom",
                     "rate_or_amount": "68.50"},
                    TEMP_PLATE,
                ],
            }],
        },
        {
            "regime_id": "tx-apportioned",
            "name": "TX Apportioned",
            "jurisdiction": "TX",
            "rules": [{
                "effective_from": "2025-01-01",
                "lines": [
                    dict(SALES_TAX, conditions={"tag": "apportioned"}),
                    dict(TITLE_FEE, conditions={"tag": "apportioned"}),
                    {"name": "Apportioned Plate", "calc_type": "fixed", "base": "custom",
                     "rate_or_amount": "150.00", "conditions": {"tag": "apportioned"}},
                ],
            }],
        },
        {
            "regime_id": "out-of-state",
            "name": "Out-of-State",
            "jurisdiction": "TX",
            "rules": [{
                "effective_from": "2025-01-01",
                "lines": [
                    dict(TITLE_FEE, conditions={"out_of_state": True}),
                    dict(TEMP_PLATE, conditions={"out_of_state": True}),
                ],
            }],
        },
        {
            # No taxes on dealer-to-dealer sales.
            "regime_id": "wholesale",
            "name": "Wholesale",
            "jurisdiction": "TX",
            "rules": [{
                "effective_from": "2025-01-01",
                "lines": [
                    {"name": "Processing Fee", "calc_type": "fixed", "base": "custom",
                     "rate_or_amount": "100.00", "kind": "doc",
                     "conditions": {"resale_cert": True}},
                ],
            }],
        },
    ],
}


def load_seed_catalog(catalog, data: Mapping[str, Any] = SEED_CATALOG) -> int:
    """Publish the starter regimes into `catalog`, skipping ones it already has."""
    return load_catalog(catalog, data)
