"""Mapping activities for the ERP/WMS sync.

Temporal activities that resolve locations, select integration schemas and
build outbound payloads. Every activity takes a dataclass input and returns
a JSON dict; data problems come back as ``{"error": ...}`` results.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from temporalio import activity

from activities.common import activity_correlation, error_result
from core.mapping.integration_schema import DEFAULT_ACTION, select_operation_schema
from location_resolver import LocationResolver
from payloads import (
    SaleContext,
    build_purchase_payloads,
    build_sale_order_body,
    build_transfer_completion,
    build_transfer_inbound_body,
)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ResolveLocationInput:
    """Input for resolve_location_activity.

    Attributes:
        location_mapping: Tenant location mappings (JSON string or list)
        by_name: Source warehouse name to resolve
        by_target_id: Target location id to resolve (reverse lookup)
        preferred_connection_id: Connection to use when no value is given
        tenant_id: Tenant for log correlation
    """
    location_mapping: Any
    by_name: Optional[str] = None
    by_target_id: Optional[str] = None
    preferred_connection_id: Optional[str] = None
    tenant_id: Optional[str] = None


@dataclass
class ResolveTransferLocationsInput:
    location_mapping: Any
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    tenant_id: Optional[str] = None


@dataclass
class SelectSchemaInput:
    """Input for select_schema_activity.

    Attributes:
        integration_schema: Stored integration schema record, JSON string or dict
        action: Operation to select (default ``create_order``)
    """
    integration_schema: Any
    action: str = DEFAULT_ACTION
    tenant_id: Optional[str] = None


@dataclass
class BuildSaleOrderInput:
    sale: Dict[str, Any]
    flat_schema: Dict[str, Any]
    warehouse_id: Optional[str] = None
    reference_id: Optional[str] = None
    reference_key: Optional[str] = None
    location_mapping: Any = None
    connection_id: Optional[str] = None
    fulfilment: Optional[Dict[str, Any]] = None
    products: List[Dict[str, Any]] = field(default_factory=list)
    shipping_country: Optional[str] = None
    entity_mapping: Optional[Dict[str, Any]] = None
    integration_name: Optional[str] = None
    tenant_id: Optional[str] = None


@dataclass
class BuildPurchasePayloadsInput:
    purchase: Dict[str, Any]
    flat_schema: Dict[str, Any]
    warehouse_id: Optional[str] = None
    invoice_id: Optional[str] = None
    tenant_id: Optional[str] = None


@dataclass
class BuildTransferInboundInput:
    transfer: Dict[str, Any]
    flat_schema: Dict[str, Any]
    warehouse_id: Optional[str] = None
    has_inventory_fields: bool = False
    inventory_items: List[Dict[str, Any]] = field(default_factory=list)
    tenant_id: Optional[str] = None


@dataclass
class TransferCompletionInput:
    cin7_id: Optional[str]
    line_items: List[Dict[str, Any]] = field(default_factory=list)
    updated_date: Optional[str] = None
    tenant_id: Optional[str] = None


# =============================================================================
# Activity Definitions
# =============================================================================

@activity.defn
async def resolve_location_activity(input: ResolveLocationInput) -> Dict[str, Any]:
    """Resolve a source warehouse name (or target location id) to its mapping.

    Returns:
        {connectionId, mappedWarehouse, mappingKey, default3PLShippingMethod, found}
    """
    with activity_correlation(tenant_id=input.tenant_id):
        resolver = LocationResolver(input.location_mapping)
        resolution = resolver.resolve(
            by_name=input.by_name,
            by_target_id=input.by_target_id,
            preferred_connection_id=input.preferred_connection_id,
        )

    query = input.by_name or input.by_target_id or input.preferred_connection_id
    if resolution.found:
        activity.logger.info(
            f"Resolved '{query}' -> {resolution.connection_id}/{resolution.mapped_warehouse} "
            f"({resolution.match_type.value})"
        )
    else:
        activity.logger.warning(f"No location mapping for '{query}'")

    output = resolution.to_output()
    output["found"] = resolution.found
    return output


@activity.defn
async def resolve_transfer_locations_activity(input: ResolveTransferLocationsInput) -> Dict[str, Any]:
    """Resolve both ends of a stock transfer; only mapped ends are returned."""
    with activity_correlation(tenant_id=input.tenant_id, entity="transfer"):
        locations = LocationResolver(input.location_mapping).resolve_transfer_locations(
            input.from_location, input.to_location
        )
    activity.logger.info(f"Transfer {input.from_location} -> {input.to_location}: {len(locations)} mapped end(s)")
    return {"locations": [loc.model_dump(by_alias=True) for loc in locations]}


@activity.defn
async def select_schema_activity(input: SelectSchemaInput) -> Dict[str, Any]:
    """Select one operation's flat schema from an integration schema record."""
    with activity_correlation(tenant_id=input.tenant_id):
        selected = select_operation_schema(input.integration_schema, input.action)
    if "error" in selected:
        return error_result(selected["error"])
    activity.logger.info(
        f"Selected {selected['integration_name']}/{selected['action']} "
        f"({len(selected['fields'])} fields)"
    )
    return selected


@activity.defn
async def build_sale_order_activity(input: BuildSaleOrderInput) -> Dict[str, Any]:
    """Build the target order body for one source sale fulfilment."""
    context = SaleContext(
        warehouse_id=input.warehouse_id,
        reference_id=input.reference_id,
        reference_key=input.reference_key,
        location_mapping=input.location_mapping,
        connection_id=input.connection_id,
        fulfilment=input.fulfilment,
        products=input.products,
        shipping_country=input.shipping_country,
        entity_mapping=input.entity_mapping,
        integration_name=input.integration_name,
    )
    with activity_correlation(
        tenant_id=input.tenant_id,
        connection_id=input.connection_id,
        entity="sale",
        reference_key=input.reference_key,
    ):
        result = build_sale_order_body(input.sale, input.flat_schema, context)

    activity.logger.info(f"Built sale order body for {input.reference_key}")
    return result


@activity.defn
async def build_purchase_payloads_activity(input: BuildPurchasePayloadsInput) -> Dict[str, Any]:
    """Build inbound shipment payloads for a purchase's invoices.

    Returns:
        {"payloads": [...]} or {"error": ..., "payloads": []}
    """
    with activity_correlation(tenant_id=input.tenant_id, entity="purchase"):
        result = build_purchase_payloads(
            input.purchase, input.flat_schema, input.warehouse_id, input.invoice_id
        )
    if isinstance(result, dict):
        return error_result(result["error"], payloads=[])
    activity.logger.info(f"Built {len(result)} inbound payload(s)")
    return {"payloads": result}


@activity.defn
async def build_transfer_inbound_activity(input: BuildTransferInboundInput) -> Dict[str, Any]:
    """Build the inbound shipment body for a stock transfer."""
    with activity_correlation(tenant_id=input.tenant_id, entity="transfer"):
        return build_transfer_inbound_body(
            input.transfer,
            input.flat_schema,
            input.warehouse_id,
            has_inventory_fields=input.has_inventory_fields,
            inventory_items=input.inventory_items,
        )


@activity.defn
async def build_transfer_completion_activity(input: TransferCompletionInput) -> Dict[str, Any]:
    """Build the source transfer completion once every line is received."""
    with activity_correlation(tenant_id=input.tenant_id, entity="transfer", reference_key=input.cin7_id):
        result = build_transfer_completion(input.cin7_id, input.line_items, input.updated_date)
    if result.get("result") is False:
        activity.logger.info(f"Transfer {input.cin7_id} not fully received yet")
    return result
