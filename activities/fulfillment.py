"""Fulfillment activities.

Temporal activities that plan source-ERP updates for target-WMS order
changes, build per-shipment Pick/Pack/Ship operations and aggregate their
results once the workflow has executed them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from temporalio import activity

from activities.common import activity_correlation, error_result
from fulfillment import (
    aggregate,
    build_operations,
    classify,
    existing_pick_lines_from_sale,
    normalize_task_id,
    plan_order_sync,
    sale_references,
)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class PlanOrderSyncInput:
    """Input for plan_order_sync_activity.

    Attributes:
        order: Target order record (new version)
        previous_attributes: Old values of changed fields; None for no change data
        reference_id: Stored source sale reference
        location_mapping: Tenant location mappings
        source_sale: Current source sale (its pick lines carry lot data)
        direct_trigger: Sync every field rather than only changed ones
    """
    order: Dict[str, Any]
    previous_attributes: Optional[Dict[str, Any]] = None
    reference_id: Optional[str] = None
    location_mapping: Any = None
    source_sale: Optional[Dict[str, Any]] = None
    direct_trigger: bool = False
    tenant_id: Optional[str] = None


@dataclass
class BuildShipmentOperationsInput:
    order: Dict[str, Any]
    location_mapping: Any = None
    reference_id: Optional[str] = None
    source_sale: Optional[Dict[str, Any]] = None
    tenant_id: Optional[str] = None


@dataclass
class AggregateShipmentResultsInput:
    """Results of one shipment's calls; None where a call was not made."""
    pick: Optional[Dict[str, Any]] = None
    pack: Optional[Dict[str, Any]] = None
    ship: Optional[Dict[str, Any]] = None
    cin7_key: str = ""
    reference_key: str = ""
    tenant_id: Optional[str] = None


@dataclass
class SaleReferencesInput:
    sale: Dict[str, Any] = field(default_factory=dict)
    sale_order_type: Optional[str] = None
    fulfilment: Optional[Dict[str, Any]] = None
    tenant_id: Optional[str] = None


# =============================================================================
# Activity Definitions
# =============================================================================

@activity.defn
async def plan_order_sync_activity(input: PlanOrderSyncInput) -> Dict[str, Any]:
    """Plan the source sale update and shipment operations for an order change."""
    with activity_correlation(tenant_id=input.tenant_id, entity="sale", reference_key=input.reference_id):
        plan = plan_order_sync(
            input.order,
            previous_attributes=input.previous_attributes,
            reference_id=input.reference_id,
            location_mapping=input.location_mapping,
            existing_pick_lines=existing_pick_lines_from_sale(input.source_sale),
            direct_trigger=input.direct_trigger,
        )
    activity.logger.info(
        f"Order {input.order.get('id')}: {plan.get('saleType', 'no changes')}, "
        f"{len(plan.get('shipmentOperations', []))} shipment operation(s)"
    )
    return plan


@activity.defn
async def build_shipment_operations_activity(input: BuildShipmentOperationsInput) -> Dict[str, Any]:
    """Classify an order and build Pick/Pack/Ship operations per shipment."""
    if not input.order:
        return error_result("No order data provided", shipmentOperations=[])

    with activity_correlation(tenant_id=input.tenant_id, entity="sale", reference_key=input.reference_id):
        sale_type = classify(input.order)
        operations = build_operations(
            input.order,
            input.location_mapping,
            sale_type=sale_type,
            task_id=normalize_task_id(input.reference_id),
            existing_pick_lines=existing_pick_lines_from_sale(input.source_sale),
        )
    return {
        "saleType": sale_type.value,
        "shipmentOperations": [op.to_dict() for op in operations],
    }


@activity.defn
async def aggregate_shipment_results_activity(input: AggregateShipmentResultsInput) -> Dict[str, Any]:
    """Combine one shipment's Pick/Pack/Ship results into a sync outcome."""
    with activity_correlation(tenant_id=input.tenant_id, entity="sale", reference_key=input.reference_key):
        outcome = aggregate(
            input.pick,
            input.pack,
            input.ship,
            cin7_key=input.cin7_key,
            reference_key=input.reference_key,
        )
    if not outcome.succeeded:
        activity.logger.warning(f"Shipment sync failed: {outcome.message}")
    return outcome.to_dict()


@activity.defn
async def sale_references_activity(input: SaleReferencesInput) -> Dict[str, Any]:
    """Reference id/key under which a synced sale (fulfilment) is recorded."""
    with activity_correlation(tenant_id=input.tenant_id, entity="sale"):
        result = sale_references(input.sale, input.sale_order_type, input.fulfilment)
    if "error" in result:
        return error_result(result["error"])
    return result
