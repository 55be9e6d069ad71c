"""Activity definitions module."""

from activities.mapping import (
    resolve_location_activity,
    resolve_transfer_locations_activity,
    select_schema_activity,
    build_sale_order_activity,
    build_purchase_payloads_activity,
    build_transfer_inbound_activity,
    build_transfer_completion_activity,
    ResolveLocationInput,
    ResolveTransferLocationsInput,
    SelectSchemaInput,
    BuildSaleOrderInput,
    BuildPurchasePayloadsInput,
    BuildTransferInboundInput,
    TransferCompletionInput,
)
from activities.inventory import (
    find_inventory_connection_activity,
    reconcile_inventory_activity,
    evaluate_auto_approval_activity,
    enrich_adjustment_activity,
    FindInventoryConnectionInput,
    ReconcileInventoryInput,
    EvaluateAutoApprovalInput,
    EnrichAdjustmentInput,
)
from activities.fulfillment import (
    plan_order_sync_activity,
    build_shipment_operations_activity,
    aggregate_shipment_results_activity,
    sale_references_activity,
    PlanOrderSyncInput,
    BuildShipmentOperationsInput,
    AggregateShipmentResultsInput,
    SaleReferencesInput,
)


MAPPING_ACTIVITIES = [
    resolve_location_activity,
    resolve_transfer_locations_activity,
    select_schema_activity,
    build_sale_order_activity,
    build_purchase_payloads_activity,
    build_transfer_inbound_activity,
    build_transfer_completion_activity,
]

INVENTORY_ACTIVITIES = [
    find_inventory_connection_activity,
    reconcile_inventory_activity,
    evaluate_auto_approval_activity,
    enrich_adjustment_activity,
]

FULFILLMENT_ACTIVITIES = [
    plan_order_sync_activity,
    build_shipment_operations_activity,
    aggregate_shipment_results_activity,
    sale_references_activity,
]

ALL_ACTIVITIES = MAPPING_ACTIVITIES + INVENTORY_ACTIVITIES + FULFILLMENT_ACTIVITIES

__all__ = [
    # Mapping activities
    "resolve_location_activity",
    "resolve_transfer_locations_activity",
    "select_schema_activity",
    "build_sale_order_activity",
    "build_purchase_payloads_activity",
    "build_transfer_inbound_activity",
    "build_transfer_completion_activity",
    "ResolveLocationInput",
    "ResolveTransferLocationsInput",
    "SelectSchemaInput",
    "BuildSaleOrderInput",
    "BuildPurchasePayloadsInput",
    "BuildTransferInboundInput",
    "TransferCompletionInput",
    # Inventory activities
    "find_inventory_connection_activity",
    "reconcile_inventory_activity",
    "evaluate_auto_approval_activity",
    "enrich_adjustment_activity",
    "FindInventoryConnectionInput",
    "ReconcileInventoryInput",
    "EvaluateAutoApprovalInput",
    "EnrichAdjustmentInput",
    # Fulfillment activities
    "plan_order_sync_activity",
    "build_shipment_operations_activity",
    "aggregate_shipment_results_activity",
    "sale_references_activity",
    "PlanOrderSyncInput",
    "BuildShipmentOperationsInput",
    "AggregateShipmentResultsInput",
    "SaleReferencesInput",
    # Groupings
    "MAPPING_ACTIVITIES",
    "INVENTORY_ACTIVITIES",
    "FULFILLMENT_ACTIVITIES",
    "ALL_ACTIVITIES",
]
