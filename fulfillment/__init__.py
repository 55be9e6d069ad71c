"""Fulfillment sync - target-WMS shipments -> source-ERP Pick/Pack/Ship.

Usage:
    from fulfillment import classify, build_operations, aggregate

    sale_type = classify(order)
    operations = build_operations(order, location_mapping, sale_type, task_id)
    # ... the workflow executes salePick, salePack, saleShip in order ...
    outcome = aggregate(pick_result, pack_result, ship_result, cin7_key, reference_key)
"""

from fulfillment.aggregator import OperationResult, aggregate
from fulfillment.classifier import classify
from fulfillment.models import (
    Order,
    SaleType,
    Shipment,
    ShipmentOperation,
    SubOperation,
    SyncOutcome,
    SyncStatus,
)
from fulfillment.operations import (
    build_operations,
    existing_pick_lines_from_sale,
    normalize_task_id,
)
from fulfillment.references import sale_references
from fulfillment.sale_update import build_sale_update, plan_order_sync

__all__ = [
    # Classification and operations
    "classify",
    "build_operations",
    "existing_pick_lines_from_sale",
    "normalize_task_id",
    "plan_order_sync",
    "build_sale_update",
    "sale_references",
    # Aggregation
    "aggregate",
    "OperationResult",
    # Models
    "Order",
    "SaleType",
    "Shipment",
    "ShipmentOperation",
    "SubOperation",
    "SyncOutcome",
    "SyncStatus",
]
