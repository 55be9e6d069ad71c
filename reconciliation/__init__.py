"""Inventory reconciliation - target stock -> source ERP adjustments.

Usage:
    from reconciliation import reconcile, extract_inventory_settings

    settings = extract_inventory_settings(tenant_config, connection_id)
    result = reconcile(settings, inventory_item, catalog_products, availability)
    if result.should_auto_approve:
        ...
"""

from reconciliation.engine import (
    build_adjustments,
    evaluate_auto_approval,
    reconcile,
    enrich_adjustment_lines,
    extract_inventory_settings,
    match_product,
)
from reconciliation.models import (
    AdjustmentBuild,
    AdjustmentLine,
    ApprovalVerdict,
    AvailabilityRow,
    CatalogProduct,
    InventoryAdjustment,
    InventoryLot,
    InventorySettings,
    InventorySnapshot,
    InventoryWarehouse,
    LocationScope,
    ReconciliationResult,
)

__all__ = [
    # Engine
    "build_adjustments",
    "evaluate_auto_approval",
    "reconcile",
    "enrich_adjustment_lines",
    "extract_inventory_settings",
    "match_product",
    # Models
    "AdjustmentBuild",
    "AdjustmentLine",
    "ApprovalVerdict",
    "AvailabilityRow",
    "CatalogProduct",
    "InventoryAdjustment",
    "InventoryLot",
    "InventorySettings",
    "InventorySnapshot",
    "InventoryWarehouse",
    "LocationScope",
    "ReconciliationResult",
]
