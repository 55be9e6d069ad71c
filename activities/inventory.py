"""Inventory reconciliation activities.

Temporal activities that turn a target-WMS inventory snapshot into source-ERP
stock adjustments and decide whether they may be applied without review.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from temporalio import activity

from activities.common import activity_correlation, error_result
from location_resolver import LocationResolver
from reconciliation import (
    enrich_adjustment_lines,
    evaluate_auto_approval,
    extract_inventory_settings,
    reconcile,
)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ReconcileInventoryInput:
    """Input for reconcile_inventory_activity.

    Attributes:
        tenant_config: Tenant configuration (JSON string or dict)
        inventory_item: Target inventory snapshot for one SKU
        products: Source catalog lookup result for the SKU
        availability: Source on-hand rows ({SKU, Location, OnHand})
        connection_id: Connection the inventory event arrived on
        final_should_auto_approve: Verdict of earlier passes (can only demote)
    """
    tenant_config: Any
    inventory_item: Dict[str, Any]
    products: Any = None
    availability: Any = None
    connection_id: Optional[str] = None
    final_should_auto_approve: bool = True
    tenant_id: Optional[str] = None


@dataclass
class FindInventoryConnectionInput:
    location_mapping: Any
    connection_id: Optional[str] = None
    tenant_id: Optional[str] = None


@dataclass
class EvaluateAutoApprovalInput:
    adjustment: Dict[str, Any]
    availability: Any = None
    auto_accept_threshold: float = 0
    final_should_auto_approve: bool = True
    tenant_id: Optional[str] = None


@dataclass
class EnrichAdjustmentInput:
    adjustment: Dict[str, Any]
    location_list: Any = field(default_factory=list)
    tenant_id: Optional[str] = None


# =============================================================================
# Activity Definitions
# =============================================================================

@activity.defn
async def find_inventory_connection_activity(input: FindInventoryConnectionInput) -> Dict[str, Any]:
    """Find the connection (and its first warehouse) an inventory event belongs to."""
    with activity_correlation(tenant_id=input.tenant_id, entity="inventory"):
        result = LocationResolver(input.location_mapping).find_connection(input.connection_id)
    if result["connectionId"] is None:
        activity.logger.warning(f"No connection for inventory event on '{input.connection_id}'")
    return result


@activity.defn
async def reconcile_inventory_activity(input: ReconcileInventoryInput) -> Dict[str, Any]:
    """Reconcile one SKU's target inventory against the source ERP.

    Returns:
        {adjustments, shouldAutoApprove, adjustmentNeeded, message, isSyncActive}
        plus ``error`` when no adjustment could be built
    """
    sku = (input.inventory_item or {}).get("sku")
    with activity_correlation(
        tenant_id=input.tenant_id,
        connection_id=input.connection_id,
        entity="inventory",
        reference_key=sku,
    ):
        settings = extract_inventory_settings(input.tenant_config, input.connection_id)
        if not settings.is_sync_active:
            activity.logger.info(f"Inventory sync inactive, skipping {sku}")
            return {
                "adjustments": [],
                "shouldAutoApprove": False,
                "adjustmentNeeded": False,
                "message": "Inventory sync is not active",
                "isSyncActive": False,
            }

        result = reconcile(
            settings,
            input.inventory_item,
            input.products,
            input.availability,
            final_should_auto_approve=input.final_should_auto_approve,
        )

    output = result.to_dict()
    output["isSyncActive"] = True
    if result.error:
        activity.logger.warning(f"Reconciliation for {sku} failed: {result.error}")
    else:
        activity.logger.info(
            f"Reconciled {sku}: {len(result.adjustments)} adjustment(s), "
            f"auto-approve={result.should_auto_approve}, needed={result.adjustment_needed}"
        )
    return output


@activity.defn
async def evaluate_auto_approval_activity(input: EvaluateAutoApprovalInput) -> Dict[str, Any]:
    """Evaluate one adjustment against source availability."""
    with activity_correlation(tenant_id=input.tenant_id, entity="inventory"):
        verdict = evaluate_auto_approval(
            input.adjustment,
            input.availability,
            input.auto_accept_threshold,
            input.final_should_auto_approve,
        )
    return verdict.to_dict()


@activity.defn
async def enrich_adjustment_activity(input: EnrichAdjustmentInput) -> Dict[str, Any]:
    """Attach source location ids to an approved adjustment's lines."""
    with activity_correlation(tenant_id=input.tenant_id, entity="inventory"):
        result = enrich_adjustment_lines(input.adjustment, input.location_list)
    if isinstance(result, dict):
        return error_result(result["error"])
    return {"lines": result}
